"""Default accounts and pages.

``ensure_default_state`` is safe to call on every start: it only creates what
is missing and never resets existing accounts or pages.
"""

from __future__ import annotations

import json
import logging
import secrets
from typing import Any, Dict, List

from anrsi.auth.passwords import hash_password
from anrsi.config import Settings
from anrsi.errors import DuplicateIdentityError
from anrsi.importing.announcements import HERO_TEXTS as APPELS_HERO_TEXTS
from anrsi.importing.announcements import PAGE_SLUG as APPELS_SLUG
from anrsi.importing.announcements import page_content as appels_content
from anrsi.importing.languages import AR, EN, FR, LANGUAGES
from anrsi.storage.content_store import ContentStore


logger = logging.getLogger(__name__)

DEFAULT_USERS = (
    {"username": "admin", "email": "admin@anrsi.mr", "first_name": "Admin", "last_name": "User", "role": "ADMIN"},
    {"username": "editor", "email": "editor@anrsi.mr", "first_name": "Editor", "last_name": "User", "role": "EDITOR"},
)

_STATIC_PAGE_HEROES: Dict[str, Dict[str, Dict[str, str]]] = {
    "agence-medias": {
        FR: {"heroTitle": "ANRSI dans les Médias", "heroSubtitle": "Actualités, publications et visibilité médiatique"},
        AR: {"heroTitle": "الوكالة في وسائل الإعلام", "heroSubtitle": "الأخبار والمنشورات والحضور الإعلامي"},
        EN: {"heroTitle": "ANRSI in the Media", "heroSubtitle": "News, publications and media visibility"},
    },
    "cooperation": {
        FR: {"heroTitle": "Coopération & Partenariats", "heroSubtitle": "Partenariats nationaux et internationaux de l'ANRSI"},
        AR: {"heroTitle": "التعاون والشراكات", "heroSubtitle": "الشراكات الوطنية والدولية للوكالة"},
        EN: {"heroTitle": "Cooperation & Partnerships", "heroSubtitle": "ANRSI's national and international partnerships"},
    },
}


def _default_pages() -> Dict[str, Dict[str, Dict[str, Any]]]:
    pages: Dict[str, Dict[str, Dict[str, Any]]] = {
        APPELS_SLUG: {
            lang: {
                "title": APPELS_HERO_TEXTS[lang]["heroTitle"],
                "hero_title": APPELS_HERO_TEXTS[lang]["heroTitle"],
                "hero_subtitle": APPELS_HERO_TEXTS[lang]["heroSubtitle"],
                "content": json.dumps(appels_content(lang, []), ensure_ascii=False),
            }
            for lang in LANGUAGES
        }
    }
    for slug, heroes in _STATIC_PAGE_HEROES.items():
        pages[slug] = {
            lang: {
                "title": heroes[lang]["heroTitle"],
                "hero_title": heroes[lang]["heroTitle"],
                "hero_subtitle": heroes[lang]["heroSubtitle"],
                "content": json.dumps(heroes[lang], ensure_ascii=False),
            }
            for lang in LANGUAGES
        }
    return pages


def _initial_password(configured: str, username: str) -> str:
    if configured:
        return configured
    logger.warning(
        f"No default password configured for '{username}'; a random one was generated. "
        "Set DEFAULT_ADMIN_PASSWORD / DEFAULT_EDITOR_PASSWORD to choose it."
    )
    return secrets.token_urlsafe(18)


def ensure_default_state(store: ContentStore, settings: Settings) -> Dict[str, List[str]]:
    """Create the default accounts and pages that are missing.

    Returns {"users": [...created usernames], "pages": [...created slugs]}.
    """
    created: Dict[str, List[str]] = {"users": [], "pages": []}
    passwords = {"admin": settings.default_admin_password, "editor": settings.default_editor_password}

    for account in DEFAULT_USERS:
        if store.get_user_by_username(account["username"]) is not None:
            continue
        password_hash, salt = hash_password(_initial_password(passwords[account["username"]], account["username"]))
        try:
            store.create_user(password_hash=password_hash, salt=salt, **account)
        except DuplicateIdentityError:
            continue
        created["users"].append(account["username"])

    for slug, translations in _default_pages().items():
        if store.get_page_by_slug(slug) is not None:
            continue
        fr = translations[FR]
        try:
            store.create_page(
                slug,
                {
                    "title": fr["title"],
                    "hero_title": fr["hero_title"],
                    "hero_subtitle": fr["hero_subtitle"],
                    "page_type": "STRUCTURED",
                    "is_published": True,
                    "is_active": True,
                },
                translations,
            )
        except DuplicateIdentityError:
            continue
        created["pages"].append(slug)

    logger.info(f"Default state ensured: users created={created['users']} pages created={created['pages']}")
    return created
