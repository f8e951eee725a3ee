"""Translation merge and French fallback for grouped import nodes.

Two input shapes reach this module:
- already-merged scrapes, where one record exposes ``title_fr``/``title_en``
  next to the unsuffixed (Arabic) columns; that record is authoritative and
  nothing is borrowed across languages;
- per-language records grouped by node id, where French is the anchor and
  missing Arabic/English records reuse the French text verbatim.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from anrsi.errors import NodeImportError
from anrsi.importing.languages import ANCHOR_LANGUAGE, AR, EN, FR, LANGUAGES
from anrsi.importing.records import SourceRecord


logger = logging.getLogger(__name__)

ARTICLE_EXCERPT_CHARS = 200
ANNOUNCEMENT_EXCERPT_CHARS = 250
ELLIPSIS = "..."
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_TAG_RE = re.compile(r"<[^>]*>")


@dataclass(frozen=True)
class TranslationDraft:
    language: str
    title: str
    content: str
    excerpt: str = ""


@dataclass
class MergedNode:
    node_id: Optional[int]
    translations: Dict[str, TranslationDraft]
    image_url: Optional[str]
    publish_date: datetime
    fallback_languages: List[str] = field(default_factory=list)


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def strip_markup(value: Optional[str]) -> str:
    """Drop HTML tags and unescape entities."""
    if not value:
        return ""
    return html.unescape(_TAG_RE.sub("", value)).strip()


def derive_excerpt(text: Optional[str], budget: int) -> str:
    """Hard character cut: first ``budget`` characters of the trimmed text plus '...'."""
    t = _clean(text)
    if len(t) > budget:
        return t[:budget] + ELLIPSIS
    return t


def select_content(body_html: Optional[str], body_text: Optional[str], summary: Optional[str] = None) -> str:
    """Prefer HTML body, then plain text, then the short summary."""
    for candidate in (body_html, body_text, summary):
        c = _clean(candidate)
        if c:
            return c
    return ""


def build_translation(
    language: str,
    *,
    title: Optional[str],
    body_html: Optional[str] = None,
    body_text: Optional[str] = None,
    summary: Optional[str] = None,
    excerpt: Optional[str] = None,
    budget: int = ARTICLE_EXCERPT_CHARS,
) -> Optional[TranslationDraft]:
    """Build one language's translation, or None when title or content is empty."""
    t = _clean(title)
    if not t:
        return None
    content = select_content(body_html, body_text, summary)
    if not content:
        return None
    ex = _clean(excerpt)
    if not ex:
        source = _clean(body_text) or strip_markup(content)
        ex = derive_excerpt(source, budget)
    return TranslationDraft(language=language, title=t, content=content, excerpt=ex)


def parse_publish_date(value: Optional[str]) -> Optional[datetime]:
    v = _clean(value)
    if not v:
        return None
    try:
        return datetime.strptime(v, DATE_FORMAT)
    except ValueError:
        logger.debug(f"Unparseable publish date {v!r}")
        return None


def earliest_publish_date(values: Iterable[Optional[str]], now: datetime) -> datetime:
    parsed = [d for d in (parse_publish_date(v) for v in values) if d is not None]
    return min(parsed) if parsed else now


def has_multilingual_fields(record: SourceRecord) -> bool:
    """True for already-merged records, even when their suffixed columns are empty strings."""
    return record.multilingual or any(lang in record.localized for lang in (FR, EN))


def _first_image(records: Iterable[SourceRecord]) -> Optional[str]:
    for rec in records:
        if _clean(rec.image):
            return rec.image.strip()
    return None


def _merge_multilingual(record: SourceRecord, budget: int) -> Dict[str, TranslationDraft]:
    out: Dict[str, TranslationDraft] = {}
    base = build_translation(
        AR, title=record.title, body_html=record.body_html, body_text=record.body_text, budget=budget
    )
    if base:
        out[AR] = base
    for lang in (EN, FR):
        loc = record.localized.get(lang)
        if loc is None:
            continue
        tr = build_translation(lang, title=loc.title, body_html=loc.body_html, body_text=loc.body_text, budget=budget)
        if tr:
            out[lang] = tr
    return out


def _merge_with_fallback(
    node_id: Optional[int], records: Mapping[str, SourceRecord], budget: int
) -> Tuple[Dict[str, TranslationDraft], List[str]]:
    out: Dict[str, TranslationDraft] = {}
    for lang, rec in records.items():
        tr = build_translation(
            lang,
            title=rec.title,
            body_html=rec.body_html,
            body_text=rec.body_text,
            summary=rec.summary,
            budget=budget,
        )
        if tr:
            out[lang] = tr
        else:
            logger.warning(f"Node {node_id}: skipping '{lang}' translation (missing title or content)")

    anchor = out.get(ANCHOR_LANGUAGE)
    if anchor is None:
        raise NodeImportError(node_id, f"Missing required '{ANCHOR_LANGUAGE}' translation for node {node_id}")

    fallbacks: List[str] = []
    for lang in LANGUAGES:
        if lang == ANCHOR_LANGUAGE or lang in records:
            continue
        out[lang] = replace(anchor, language=lang)
        fallbacks.append(lang)
        logger.warning(f"Node {node_id}: no '{lang}' record, reusing '{ANCHOR_LANGUAGE}' text")
    return out, fallbacks


def merge_node(
    node_id: Optional[int],
    records: Mapping[str, SourceRecord],
    *,
    now: Optional[datetime] = None,
    budget: int = ARTICLE_EXCERPT_CHARS,
) -> MergedNode:
    """Merge one node's per-language records into a multilingual target."""
    if not records:
        raise NodeImportError(node_id, f"No translations found for node {node_id}")
    now = now or datetime.now()

    first = next(iter(records.values()))
    fallbacks: List[str] = []
    if has_multilingual_fields(first):
        translations = _merge_multilingual(first, budget)
    else:
        translations, fallbacks = _merge_with_fallback(node_id, records, budget)

    if not translations:
        raise NodeImportError(node_id, f"No valid translations found for node {node_id}")

    return MergedNode(
        node_id=node_id,
        translations={lang: translations[lang] for lang in LANGUAGES if lang in translations},
        image_url=_first_image(records.values()),
        publish_date=earliest_publish_date((r.date for r in records.values()), now),
        fallback_languages=fallbacks,
    )
