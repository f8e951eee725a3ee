"""Request body parsing for the admin endpoints.

Each parser takes the decoded JSON body and returns keyword arguments for the
matching ContentStore call, raising ValidationError on bad input.
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from anrsi.errors import ValidationError
from anrsi.importing.languages import FR, LANGUAGES
from anrsi.importing.merge import ARTICLE_EXCERPT_CHARS, derive_excerpt, strip_markup
from anrsi.storage.content_store import PAGE_TYPES

ROLES = ("ADMIN", "EDITOR", "USER")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _text(data: Mapping[str, Any], key: str, *, required: bool = False, label: Optional[str] = None) -> Optional[str]:
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{label or key} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{label or key} must be a string")
    return value.strip()


def _bool(data: Mapping[str, Any], key: str) -> Optional[bool]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be true or false")
    return value


def _int(data: Mapping[str, Any], key: str, *, required: bool = False, minimum: Optional[int] = None) -> Optional[int]:
    value = data.get(key)
    if value is None:
        if required:
            raise ValidationError(f"{key} is required")
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    if minimum is not None and value < minimum:
        raise ValidationError(f"{key} must be >= {minimum}")
    return value


def _datetime(data: Mapping[str, Any], key: str) -> Optional[datetime]:
    value = _text(data, key)
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(f"{key} must be an ISO date-time") from e


def require_body(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict) or not data:
        raise ValidationError("No data provided")
    return data


# ----------------------------------------------------------------------
# Articles
# ----------------------------------------------------------------------

def _article_translation(lang: str, raw: Any) -> Dict[str, str]:
    if not isinstance(raw, dict):
        raise ValidationError(f"translations.{lang} must be an object")
    title = _text(raw, "title", required=True, label=f"translations.{lang}.title")
    content = _text(raw, "content", required=True, label=f"translations.{lang}.content")
    excerpt = _text(raw, "excerpt") or derive_excerpt(strip_markup(content), ARTICLE_EXCERPT_CHARS)
    return {"title": title, "content": content, "excerpt": excerpt}


def article_translations(data: Mapping[str, Any], *, required: bool) -> Dict[str, Dict[str, str]]:
    """``translations`` keyed by language, or flat title/content stored as French."""
    raw = data.get("translations")
    if raw:
        if not isinstance(raw, dict):
            raise ValidationError("translations must be an object keyed by language")
        unknown = sorted(set(raw) - set(LANGUAGES))
        if unknown:
            raise ValidationError(f"Unsupported language(s): {', '.join(unknown)}")
        return {lang: _article_translation(lang, raw[lang]) for lang in LANGUAGES if lang in raw}
    if data.get("title") is not None or data.get("content") is not None or required:
        return {FR: _article_translation(FR, data)}
    return {}


def article_create(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "translations": article_translations(data, required=True),
        "author": _text(data, "author", required=True),
        "publish_date": _datetime(data, "publishDate"),
        "image_url": _text(data, "imageUrl"),
        "published": _bool(data, "published") is not False,
        "featured": bool(_bool(data, "featured")),
    }


def article_update(data: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Dict[str, str]]]:
    fields: Dict[str, Any] = {
        "author": _text(data, "author"),
        "publish_date": _datetime(data, "publishDate"),
        "featured": _bool(data, "featured"),
        "published": _bool(data, "published"),
    }
    if "imageUrl" in data:
        fields["image_url"] = _text(data, "imageUrl")
    return fields, article_translations(data, required=False)


# ----------------------------------------------------------------------
# Pages
# ----------------------------------------------------------------------

def _page_translations(data: Mapping[str, Any], *, required: bool) -> Dict[str, Dict[str, Any]]:
    raw = data.get("translations")
    if not raw:
        if required:
            raise ValidationError("At least one translation is required")
        return {}
    if not isinstance(raw, dict):
        raise ValidationError("translations must be an object keyed by language")
    out: Dict[str, Dict[str, Any]] = {}
    for lang, tr in raw.items():
        if lang not in LANGUAGES:
            raise ValidationError(f"Unsupported language: {lang}")
        if not isinstance(tr, dict):
            raise ValidationError(f"translations.{lang} must be an object")
        content = tr.get("content")
        out[lang] = {
            "title": _text(tr, "title", required=True, label=f"translations.{lang}.title"),
            "hero_title": _text(tr, "heroTitle"),
            "hero_subtitle": _text(tr, "heroSubtitle"),
            # structured pages send their content as a JSON object
            "content": content if isinstance(content, str) or content is None else json.dumps(content, ensure_ascii=False),
            "extra": _text(tr, "extra"),
        }
    return out


def _page_type(data: Mapping[str, Any]) -> Optional[str]:
    value = _text(data, "pageType")
    if value is None:
        return None
    value = value.upper()
    if value not in PAGE_TYPES:
        raise ValidationError(f"pageType must be one of {', '.join(PAGE_TYPES)}")
    return value


def _page_fields(data: Mapping[str, Any], translations: Mapping[str, Mapping[str, Any]]) -> Dict[str, Any]:
    anchor = translations.get(FR) or next(iter(translations.values()), {})
    return {
        "title": _text(data, "title") or anchor.get("title"),
        "hero_title": _text(data, "heroTitle") or anchor.get("hero_title"),
        "hero_subtitle": _text(data, "heroSubtitle") or anchor.get("hero_subtitle"),
        "hero_image_url": _text(data, "heroImageUrl"),
        "page_type": _page_type(data),
        "is_published": _bool(data, "isPublished"),
        "is_active": _bool(data, "isActive"),
    }


def page_create(data: Mapping[str, Any]) -> Dict[str, Any]:
    slug = _text(data, "slug", required=True)
    translations = _page_translations(data, required=True)
    fields = _page_fields(data, translations)
    fields["is_published"] = bool(fields["is_published"])
    fields["is_active"] = fields["is_active"] is not False
    return {"slug": slug, "fields": fields, "translations": translations}


def page_update(data: Mapping[str, Any]) -> Dict[str, Any]:
    translations = _page_translations(data, required=False)
    fields = _page_fields(data, translations)
    fields["slug"] = _text(data, "slug")
    return {"fields": fields, "translations": translations}


# ----------------------------------------------------------------------
# Site content
# ----------------------------------------------------------------------

def video(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "title": _text(data, "title", required=True, label="Title"),
        "url": _text(data, "url", required=True, label="URL"),
        "type": _text(data, "type"),
        "description": _text(data, "description"),
        "thumbnail_url": _text(data, "thumbnailUrl"),
    }


def statistics(data: Mapping[str, Any]) -> Dict[str, Optional[int]]:
    return {
        "research_projects": _int(data, "researchProjects", minimum=0),
        "partner_institutions": _int(data, "partnerInstitutions", minimum=0),
        "published_articles": _int(data, "publishedArticles", minimum=0),
        "research_funding": _int(data, "researchFunding", minimum=0),
    }


def contact_message(data: Mapping[str, Any]) -> Dict[str, str]:
    if data.get("consent") is not True:
        raise ValidationError("Consent is required to submit a contact message")
    email = _text(data, "email", required=True, label="Email")
    if not _EMAIL_RE.match(email):
        raise ValidationError("Email should be valid")
    return {
        "name": _text(data, "name", required=True, label="Name"),
        "email": email,
        "subject": _text(data, "subject", required=True, label="Subject"),
        "message": _text(data, "message", required=True, label="Message"),
    }


def website(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "name": _text(data, "name", required=True, label="Name"),
        "url": _text(data, "url", required=True, label="URL"),
        "order": _int(data, "order", required=True, minimum=0),
    }


def website_order(data: Mapping[str, Any]) -> List[Tuple[int, int]]:
    items = data.get("websites")
    if not isinstance(items, list) or not items:
        raise ValidationError("websites must be a non-empty list")
    pairs = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("websites entries must be objects")
        pairs.append((_int(item, "id", required=True), _int(item, "order", required=True, minimum=0)))
    return pairs


# ----------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------

def _role(data: Mapping[str, Any], *, required: bool) -> Optional[str]:
    value = _text(data, "role", required=required)
    if value is None:
        return None
    value = value.upper()
    if value not in ROLES:
        raise ValidationError(f"role must be one of {', '.join(ROLES)}")
    return value


def _email(data: Mapping[str, Any], *, required: bool) -> Optional[str]:
    value = _text(data, "email", required=required, label="Email")
    if value is not None and not _EMAIL_RE.match(value):
        raise ValidationError("Email should be valid")
    return value


def user_create(data: Mapping[str, Any]) -> Dict[str, Any]:
    password = data.get("password")
    if not isinstance(password, str) or len(password) < 6:
        raise ValidationError("Password must be at least 6 characters")
    return {
        "username": _text(data, "username", required=True, label="Username"),
        "email": _email(data, required=True),
        "password": password,
        "first_name": _text(data, "firstName"),
        "last_name": _text(data, "lastName"),
        "role": _role(data, required=True),
        "is_active": _bool(data, "isActive") is not False,
    }


def user_update(data: Mapping[str, Any]) -> Dict[str, Any]:
    password = data.get("password")
    if password is not None and password != "" and (not isinstance(password, str) or len(password) < 6):
        raise ValidationError("Password must be at least 6 characters")
    return {
        "username": _text(data, "username"),
        "email": _email(data, required=False),
        "password": password or None,
        "first_name": _text(data, "firstName"),
        "last_name": _text(data, "lastName"),
        "role": _role(data, required=False),
        "is_active": _bool(data, "isActive"),
    }
