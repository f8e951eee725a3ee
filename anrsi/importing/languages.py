"""Language tags and URL-based language inference for scraped records."""

from __future__ import annotations

from typing import Optional, Tuple


FR = "fr"
AR = "ar"
EN = "en"

LANGUAGES: Tuple[str, ...] = (FR, AR, EN)
ANCHOR_LANGUAGE = FR

# The legacy Drupal site prefixes localized paths with the language code,
# either as a path segment or inside the ?q= query form.
_LOCALE_MARKERS = {
    AR: ("/ar/", "/?q=ar/"),
    EN: ("/en/", "/?q=en/"),
}


def language_from_url(url: Optional[str]) -> str:
    """Infer the language of a scraped page from its source URL.

    Arabic markers are checked first, then English; anything else is French.
    """
    if not url:
        return ANCHOR_LANGUAGE
    for lang in (AR, EN):
        if any(marker in url for marker in _LOCALE_MARKERS[lang]):
            return lang
    return ANCHOR_LANGUAGE
