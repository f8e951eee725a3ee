"""Source record types and JSON file reading for the import pipeline."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from anrsi.errors import SourceFileError
from anrsi.importing.languages import EN, FR, LANGUAGES


logger = logging.getLogger(__name__)

NODE_ID_MIN = -(2 ** 63)
NODE_ID_MAX = 2 ** 63 - 1

# Any of these present and non-null marks an already-merged multilingual record
MULTILINGUAL_KEYS = ("title_en", "title_fr", "content_text_en", "content_text_fr")


@dataclass(frozen=True)
class LocalizedFields:
    title: Optional[str] = None
    body_html: Optional[str] = None
    body_text: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.title or self.body_html or self.body_text)


@dataclass(frozen=True)
class SourceRecord:
    """One raw import record, transient for the duration of a run.

    ``localized`` only carries the suffixed columns (``title_en``,
    ``content_html_fr``...) found in already-merged scrapes.
    """

    node_id: Optional[int]
    url: Optional[str] = None
    title: Optional[str] = None
    body_html: Optional[str] = None
    body_text: Optional[str] = None
    summary: Optional[str] = None
    date: Optional[str] = None
    image: Optional[str] = None
    localized: Dict[str, LocalizedFields] = field(default_factory=dict)
    multilingual: bool = False
    raw: Optional[Dict[str, Any]] = None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return str(value)


def _node_id(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if not isinstance(value, int):
        try:
            value = int(str(value).strip())
        except (TypeError, ValueError):
            return None
    # node ids are stored as SQLite INTEGER (signed 64-bit)
    if not NODE_ID_MIN <= value <= NODE_ID_MAX:
        logger.warning(f"Ignoring out-of-range node_id {value}")
        return None
    return value


def parse_article_record(obj: Dict[str, Any]) -> SourceRecord:
    """Map one scraped article node (``node_id``, ``title_en``, ``content_html``...) to a record."""
    localized: Dict[str, LocalizedFields] = {}
    for lang in (EN, FR):
        fields = LocalizedFields(
            title=_text(obj.get(f"title_{lang}")),
            body_html=_text(obj.get(f"content_html_{lang}")),
            body_text=_text(obj.get(f"content_text_{lang}")),
        )
        if not fields.is_empty():
            localized[lang] = fields
    return SourceRecord(
        node_id=_node_id(obj.get("node_id")),
        url=_text(obj.get("url")),
        title=_text(obj.get("title")),
        body_html=_text(obj.get("content_html")),
        body_text=_text(obj.get("content_text")),
        summary=_text(obj.get("summary")),
        date=_text(obj.get("date")),
        image=_text(obj.get("image")),
        localized=localized,
        multilingual=any(obj.get(k) is not None for k in MULTILINGUAL_KEYS),
        raw=obj,
    )


def parse_announcement_fields(obj: Dict[str, Any], *, image: Optional[str] = None, url: Optional[str] = None) -> SourceRecord:
    """Map one language block of a call-for-applications item to a record."""
    return SourceRecord(
        node_id=None,
        url=url if url is not None else _text(obj.get("url")),
        title=_text(obj.get("title")),
        body_text=_text(obj.get("full_text")),
        summary=_text(obj.get("summary")),
        date=_text(obj.get("date")),
        image=image if image is not None else _text(obj.get("image")),
        raw=obj,
    )


def resolve_source_path(path: str, base_dirs: Sequence[str] = ()) -> str:
    """Resolve a user supplied path against fallback base directories."""
    candidate = (path or "").strip()
    if not candidate or os.path.isabs(candidate) or os.path.exists(candidate):
        return candidate
    for base in base_dirs:
        joined = os.path.join(base, candidate)
        if os.path.exists(joined):
            return joined
    return candidate


def read_json_array(path: str) -> List[Any]:
    """Read a JSON file whose root must be an array."""
    if not path or not os.path.isfile(path):
        raise SourceFileError(path, "File not found")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError) as e:
        raise SourceFileError(path, f"File cannot be read ({e})") from e
    except json.JSONDecodeError as e:
        raise SourceFileError(path, f"Invalid JSON ({e.msg} at line {e.lineno})") from e
    if not isinstance(data, list):
        raise SourceFileError(path, "JSON file must contain an array of items")
    return data


def is_translation_format(items: Sequence[Any]) -> bool:
    """True when the first element carries per-language sub-objects."""
    if not items or not isinstance(items[0], dict):
        return False
    return any(lang in items[0] for lang in LANGUAGES)


def read_article_files(
    paths: Iterable[str], base_dirs: Sequence[str] = ()
) -> Tuple[List[Tuple[str, List[SourceRecord]]], List[str]]:
    """Read every file; a failing file is reported and skipped.

    Returns ([(path, records), ...], errors).
    """
    loaded: List[Tuple[str, List[SourceRecord]]] = []
    errors: List[str] = []
    for raw_path in paths:
        path = resolve_source_path(raw_path, base_dirs)
        try:
            items = read_json_array(path)
        except SourceFileError as e:
            if e.reason == "File not found":
                errors.append(f"File not found: {raw_path}")
            else:
                errors.append(f"Error reading JSON file {raw_path}: {e.reason}")
            logger.warning(f"Skipping import file {raw_path}: {e.reason}")
            continue
        records = [parse_article_record(it) for it in items if isinstance(it, dict)]
        skipped = len(items) - len(records)
        if skipped:
            errors.append(f"{skipped} non-object entries ignored in file: {raw_path}")
        logger.info(f"Read {len(records)} records from {path}")
        loaded.append((raw_path, records))
    return loaded, errors
