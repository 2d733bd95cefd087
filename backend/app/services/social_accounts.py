"""
Helpers for social-account ownership verification.

A user proves they control a profile by placing a short code in its bio; the
scraped profile payload is then searched for that code.
"""
from __future__ import annotations

import random
import re
import string
from typing import Any

VERIFICATION_CODE_LENGTH = 6
_CODE_ALPHABET = string.ascii_uppercase + string.digits
_WHITESPACE_RE = re.compile(r"\s+")

_TIKTOK_BIO_FALLBACKS = ("signature", "bio", "bio_text", "description")
_INSTAGRAM_BIO_FALLBACKS = ("bio", "bio_text", "description")
_YOUTUBE_BIO_FALLBACKS = ("about", "about_text", "bio", "bio_text")
_GENERIC_BIO_FIELDS = (
    "biography",
    "bio",
    "Description",
    "description",
    "bio_text",
    "description_text",
    "about",
    "about_text",
    "signature",
)


def generate_verification_code() -> str:
    """Six uppercase alphanumerics. Meant for copying into a bio, not as a secret."""
    return "".join(random.choices(_CODE_ALPHABET, k=VERIFICATION_CODE_LENGTH))


def _str_field(data: dict, key: str) -> str | None:
    value = data.get(key)
    if isinstance(value, str) and value:
        return value
    return None


def _first_str(data: dict, keys: tuple[str, ...]) -> str:
    for key in keys:
        value = _str_field(data, key)
        if value:
            return value
    return ""


def extract_bio_from_profile_data(profile_data: Any, platform: str | None) -> str:
    """Pull the bio/description text out of a BrightData profile payload.

    Returns an empty string when nothing usable is found.
    """
    if not isinstance(profile_data, dict):
        return ""

    if platform == "tiktok":
        return _str_field(profile_data, "biography") or _first_str(profile_data, _TIKTOK_BIO_FALLBACKS)

    if platform == "instagram":
        bio = _str_field(profile_data, "biography")
        if bio:
            return bio
        # BrightData sometimes nests Instagram data under "account"
        account = profile_data.get("account")
        if isinstance(account, dict):
            bio = _str_field(account, "biography") or _str_field(account, "bio")
            if bio:
                return bio
        return _first_str(profile_data, _INSTAGRAM_BIO_FALLBACKS)

    if platform == "youtube":
        for key in ("Description", "description"):
            bio = _str_field(profile_data, key)
            if bio:
                return bio.strip()
        return _first_str(profile_data, _YOUTUBE_BIO_FALLBACKS)

    return _first_str(profile_data, _GENERIC_BIO_FIELDS)


def verify_code_in_bio(bio_text: str | None, verification_code: str | None) -> bool:
    """Case-insensitive substring match after collapsing whitespace runs in the bio.

    Only runs of whitespace collapse; a code split by a single space does not match.
    """
    if not bio_text or not verification_code:
        return False
    normalized_bio = _WHITESPACE_RE.sub(" ", bio_text).strip()
    normalized_code = verification_code.strip()
    if not normalized_code:
        return False
    return normalized_code.lower() in normalized_bio.lower()


def profile_url_for_scrape(profile_url: str, platform: str) -> str:
    """YouTube profile scrapes need the channel's /about page."""
    if platform == "youtube" and "/about" not in profile_url:
        return f"{profile_url.rstrip('/')}/about"
    return profile_url
