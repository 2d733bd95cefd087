"""
Platform detection and URL canonicalization for TikTok, Instagram and YouTube Shorts.

Video URLs are rewritten to a single canonical form per platform so that the
same clip submitted twice (with tracking params, mobile hosts, short links)
maps to the same row. Profile URLs have their own, lighter normalization.
"""
from __future__ import annotations

import re
from typing import Iterable, Literal
from urllib.parse import urlsplit, urlunsplit

Platform = Literal["tiktok", "instagram", "youtube", "unknown"]

TIKTOK_DOMAINS = ("tiktok.com", "vm.tiktok.com", "tiktokcdn.com", "ttwstatic.com")
INSTAGRAM_DOMAINS = ("instagram.com", "instagr.am", "cdninstagram.com")
YOUTUBE_DOMAINS = ("youtube.com", "youtu.be", "googlevideo.com", "ytimg.com")

_TIKTOK_VIDEO_RE = re.compile(r"/@([^/]+)/video/(\d+)")
_INSTAGRAM_POST_RE = re.compile(r"/(p|reel)/([A-Za-z0-9_-]+)")
_YOUTUBE_SHORTS_RE = re.compile(r"/shorts/([A-Za-z0-9_-]+)")
_YOUTU_BE_ID_RE = re.compile(r"^/([A-Za-z0-9_-]+)")

_VALID_TIKTOK_RES = (
    re.compile(r"tiktok\.com/@[^/]+/video/\d+"),
    re.compile(r"vm\.tiktok\.com"),
    re.compile(r"tiktok\.com/t/[A-Za-z0-9]+"),
)
_VALID_INSTAGRAM_RE = re.compile(r"instagram\.com/(p|reel)/[A-Za-z0-9_-]+")
_VALID_YOUTUBE_RES = (
    re.compile(r"youtube\.com/shorts/[A-Za-z0-9_-]+"),
    re.compile(r"youtu\.be/[A-Za-z0-9_-]+"),
)


class UnsupportedUrlError(ValueError):
    """Raised for URLs the platform refuses outright (long-form YouTube)."""


def _strip_query(url: str) -> str:
    return url.split("?", 1)[0].strip()


def _ensure_scheme(url: str) -> str:
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        return f"https://{url}"
    return url


def _split(url: str):
    """Parse a URL, returning None when it has no usable host."""
    try:
        parts = urlsplit(_ensure_scheme(url))
    except ValueError:
        return None
    if not parts.hostname:
        return None
    return parts


def detect_platform(url: str | None) -> Platform:
    if not url:
        return "unknown"
    normalized = url.lower()
    if any(domain in normalized for domain in TIKTOK_DOMAINS):
        return "tiktok"
    if any(domain in normalized for domain in INSTAGRAM_DOMAINS):
        return "instagram"
    if any(domain in normalized for domain in YOUTUBE_DOMAINS):
        return "youtube"
    return "unknown"


def standardize_tiktok_url(url: str) -> str:
    """Return ``https://www.tiktok.com/@user/video/{id}`` (or the cleaned path for short links).

    Short links (``vm.tiktok.com/XYZ``) are rewritten by path only; resolving
    the redirect target would need a network call.
    """
    parts = _split(url)
    if parts is None:
        return _strip_query(url)

    if "tiktok.com" in parts.hostname and parts.path not in ("", "/"):
        return f"https://www.tiktok.com{parts.path}"

    match = _TIKTOK_VIDEO_RE.search(parts.path)
    if match:
        username, video_id = match.groups()
        return f"https://www.tiktok.com/@{username}/video/{video_id}"
    return _strip_query(url)


def standardize_instagram_url(url: str) -> str:
    parts = _split(url)
    if parts is None:
        return _strip_query(url)
    match = _INSTAGRAM_POST_RE.search(parts.path)
    if not match:
        return _strip_query(url)
    post_type, shortcode = match.groups()
    return f"https://www.instagram.com/{post_type}/{shortcode}"


def standardize_youtube_url(url: str) -> str:
    """Canonicalize a YouTube Shorts URL. Regular ``/watch`` videos are rejected."""
    parts = _split(url)
    if parts is None:
        raise UnsupportedUrlError("Invalid YouTube Shorts URL")

    if parts.hostname == "youtu.be":
        match = _YOUTU_BE_ID_RE.match(parts.path)
        if match:
            return f"https://www.youtube.com/shorts/{match.group(1)}"

    match = _YOUTUBE_SHORTS_RE.search(parts.path)
    if match:
        return f"https://www.youtube.com/shorts/{match.group(1)}"

    if "/watch" in parts.path:
        raise UnsupportedUrlError(
            "Regular YouTube videos are not accepted. Only YouTube Shorts URLs are allowed."
        )
    raise UnsupportedUrlError("Invalid YouTube Shorts URL format")


def standardize_url(url: str) -> str:
    platform = detect_platform(url)
    if platform == "tiktok":
        return standardize_tiktok_url(url)
    if platform == "instagram":
        return standardize_instagram_url(url)
    if platform == "youtube":
        return standardize_youtube_url(url)
    return _strip_query(url)


def is_valid_tiktok_url(url: str) -> bool:
    return any(pattern.search(url or "") for pattern in _VALID_TIKTOK_RES)


def is_valid_instagram_url(url: str) -> bool:
    return bool(_VALID_INSTAGRAM_RE.search(url or ""))


def is_valid_youtube_url(url: str) -> bool:
    if re.search(r"youtube\.com/watch", url or ""):
        return False
    return any(pattern.search(url or "") for pattern in _VALID_YOUTUBE_RES)


def is_valid_url(url: str) -> bool:
    return is_valid_tiktok_url(url) or is_valid_instagram_url(url) or is_valid_youtube_url(url)


def has_edit_hashtag(hashtags: str | Iterable[str] | None) -> bool:
    """True if any hashtag contains "edit" (``#NBAedit``, ``creededit`` ...)."""
    if not hashtags:
        return False
    tags = [hashtags] if isinstance(hashtags, str) else list(hashtags)
    return any("edit" in str(tag).lower().replace("#", "") for tag in tags)


# ── Profile URLs ─────────────────────────────────────────────

def normalize_profile_url(url: str) -> str:
    """Add https, drop one trailing slash, query and fragment."""
    if not url:
        return url
    candidate = _ensure_scheme(url)
    try:
        parts = urlsplit(candidate)
    except ValueError:
        return url
    if not parts.netloc:
        return url
    path = parts.path[:-1] if parts.path.endswith("/") else parts.path
    return urlunsplit((parts.scheme, parts.netloc.lower(), path, "", ""))


def extract_username_from_url(url: str, platform: str) -> str | None:
    parts = _split(url)
    if parts is None:
        return None
    path = parts.path

    if platform == "tiktok":
        match = re.match(r"^/@([^/]+)", path)
        return match.group(1) if match else None

    if platform == "instagram":
        match = re.match(r"^/([^/]+)", path)
        if match and match.group(1) not in ("p", "reel", "stories"):
            return match.group(1)
        return None

    if platform == "youtube":
        for pattern in (r"^/@([^/]+)", r"^/c/([^/]+)", r"^/user/([^/]+)"):
            match = re.match(pattern, path)
            if match:
                return match.group(1)
        return None

    return None


def validate_profile_url(url: str, platform: str) -> bool:
    parts = _split(url)
    if parts is None:
        return False
    host = parts.hostname

    if platform == "tiktok":
        if "tiktok.com" not in host:
            return False
        return parts.path.startswith("/@") or host == "vm.tiktok.com"

    if platform == "instagram":
        if "instagram.com" not in host:
            return False
        match = re.match(r"^/([^/]+)", parts.path)
        return match is not None and match.group(1) not in ("p", "reel", "stories", "explore", "accounts")

    if platform == "youtube":
        if "youtube.com" not in host:
            return False
        path = re.sub(r"/about$", "", parts.path)
        return path.startswith(("/@", "/c/", "/channel/", "/user/"))

    return False


def parse_profile_url(url: str) -> tuple[str | None, str | None]:
    """Identify the platform and handle of a profile URL."""
    parts = _split(url or "")
    if parts is None:
        return None, None
    host = parts.hostname
    candidate = _ensure_scheme(url)
    if "tiktok.com" in host:
        return "tiktok", extract_username_from_url(candidate, "tiktok")
    if "instagram.com" in host:
        return "instagram", extract_username_from_url(candidate, "instagram")
    if "youtube.com" in host or "youtu.be" in host:
        return "youtube", extract_username_from_url(candidate, "youtube")
    return None, None
