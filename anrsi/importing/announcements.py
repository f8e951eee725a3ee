"""Import of "appels à candidatures" announcements into one structured page.

The file is imported as a whole: items are collected into per-language
``appels`` lists and the page is written in a single transaction.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from anrsi.importing.assets import AssetLocalizer
from anrsi.importing.languages import AR, EN, FR, LANGUAGES
from anrsi.importing.merge import ANNOUNCEMENT_EXCERPT_CHARS, derive_excerpt
from anrsi.importing.records import (
    SourceRecord,
    is_translation_format,
    parse_announcement_fields,
    read_json_array,
    resolve_source_path,
)
from anrsi.importing.result import ImportResult
from anrsi.storage.content_store import ContentStore


logger = logging.getLogger(__name__)

PAGE_SLUG = "appels-candidatures"

HERO_TEXTS: Dict[str, Dict[str, str]] = {
    FR: {
        "heroTitle": "Appels à Candidatures",
        "heroSubtitle": "Opportunités de recherche et d'innovation en Mauritanie",
        "introText": (
            "L'ANRSI lance régulièrement des appels à candidatures pour financer des projets de recherche "
            "et d'innovation qui contribuent au développement scientifique et technologique de la Mauritanie."
        ),
    },
    AR: {
        "heroTitle": "دعوات التقديم",
        "heroSubtitle": "فرص البحث والابتكار في موريتانيا",
        "introText": (
            "تطلق الوكالة الوطنية للبحث العلمي والابتكار بانتظام دعوات للتقديم لتمويل مشاريع البحث والابتكار "
            "التي تساهم في التنمية العلمية والتكنولوجية لموريتانيا."
        ),
    },
    EN: {
        "heroTitle": "Calls for Applications",
        "heroSubtitle": "Research and innovation opportunities in Mauritania",
        "introText": (
            "ANRSI regularly launches calls for applications to fund research and innovation projects "
            "that contribute to the scientific and technological development of Mauritania."
        ),
    },
}

ACTION_TEXTS = {FR: "En savoir plus", AR: "المزيد", EN: "Learn more"}
DATE_LABELS = {FR: "Date", AR: "التاريخ", EN: "Date"}


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def build_appel_entry(record: SourceRecord, language: str, image_url: Optional[str]) -> Optional[Dict[str, Any]]:
    """One entry of a language's ``appels`` list, or None without a title."""
    title = _clean(record.title)
    if not title:
        return None
    description = _clean(record.summary) or derive_excerpt(record.body_text, ANNOUNCEMENT_EXCERPT_CHARS)
    entry: Dict[str, Any] = {
        "status": "active",
        "title": title,
        "description": description,
    }
    if image_url:
        entry["imageUrl"] = image_url
    details = []
    if _clean(record.date):
        details.append({"label": DATE_LABELS[language], "value": record.date.strip()})
    entry["details"] = details
    actions = []
    if _clean(record.url):
        actions.append({"text": ACTION_TEXTS[language], "url": record.url.strip(), "type": "primary"})
    entry["actions"] = actions
    return entry


def page_content(language: str, appels: List[Dict[str, Any]]) -> Dict[str, Any]:
    content: Dict[str, Any] = dict(HERO_TEXTS[language])
    content["appels"] = appels
    for key in ("categories", "processSteps", "criteria", "supportServices", "contactInfo"):
        content[key] = []
    return content


class AnnouncementImporter:
    def __init__(
        self,
        store: ContentStore,
        localizer: AssetLocalizer,
        *,
        base_dirs: Sequence[str] = (),
    ):
        self.store = store
        self.localizer = localizer
        self.base_dirs = tuple(base_dirs)

    def _language_records(self, item: Dict[str, Any], translated: bool, image_url: Optional[str]) -> Dict[str, SourceRecord]:
        root_url = _clean(item.get("url") if isinstance(item.get("url"), str) else None) or None
        if not translated:
            record = parse_announcement_fields(item, image=image_url, url=root_url)
            return {lang: record for lang in LANGUAGES}
        out: Dict[str, SourceRecord] = {}
        for lang in LANGUAGES:
            block = item.get(lang)
            if not isinstance(block, dict):
                continue
            out[lang] = parse_announcement_fields(block, image=image_url, url=root_url)
        return out

    def import_file(self, path: str) -> ImportResult:
        """Import ``path`` into the announcements page.

        Raises SourceFileError for an unusable file and DatabaseError when the
        page cannot be written; in both cases nothing is stored.
        """
        resolved = resolve_source_path(path, self.base_dirs)
        logger.info(f"Starting announcement import from file: {resolved}")
        items = read_json_array(resolved)
        translated = is_translation_format(items)

        result = ImportResult(total=len(items), files_processed=1)
        appels: Dict[str, List[Dict[str, Any]]] = {lang: [] for lang in LANGUAGES}

        for index, item in enumerate(items, start=1):
            logger.info(f"Processing item {index}/{len(items)}")
            if not isinstance(item, dict):
                result.errors.append(f"Item {index}: not a JSON object")
                continue
            image = item.get("image") if isinstance(item.get("image"), str) else None
            image_url = self.localizer.localize(image)
            entries = {}
            for lang, record in self._language_records(item, translated, image_url).items():
                entry = build_appel_entry(record, lang, image_url)
                if entry is None:
                    logger.warning(f"Item {index}: skipping '{lang}' entry without a title")
                    continue
                entries[lang] = entry
            if not entries:
                result.errors.append(f"Item {index}: no usable title in any language")
                continue
            for lang, entry in entries.items():
                appels[lang].append(entry)
            result.success_count += 1

        # Languages without any entry keep what is stored, unless the file is empty
        languages = [lang for lang in LANGUAGES if appels[lang]] or list(LANGUAGES)
        translations = {
            lang: {
                "title": HERO_TEXTS[lang]["heroTitle"],
                "hero_title": HERO_TEXTS[lang]["heroTitle"],
                "hero_subtitle": HERO_TEXTS[lang]["heroSubtitle"],
                "content": json.dumps(page_content(lang, appels[lang]), ensure_ascii=False),
            }
            for lang in languages
        }
        page_id, created = self.store.upsert_page_by_slug(
            PAGE_SLUG,
            {
                "title": HERO_TEXTS[FR]["heroTitle"],
                "hero_title": HERO_TEXTS[FR]["heroTitle"],
                "hero_subtitle": HERO_TEXTS[FR]["heroSubtitle"],
                "page_type": "STRUCTURED",
                "is_published": True,
                "is_active": True,
            },
            translations,
        )
        counts = ", ".join(f"{lang.upper()}: {len(appels[lang])}" for lang in LANGUAGES)
        logger.info(f"{'Created' if created else 'Updated'} page {page_id} with appels ({counts})")
        return result
