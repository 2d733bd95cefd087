"""
Map BrightData post/video payloads onto one canonical metrics schema.

BrightData returns differently shaped records per platform and per dataset
version (top-level counters, nested ``stats`` objects, label/value metric
lists, "1.2k"-style strings). Every metric is resolved through ordered key
candidates and a few fallbacks; anything that cannot be found is 0.
"""
from __future__ import annotations

import math
import re
from typing import Any, TypedDict

from app.services.url_utils import Platform, detect_platform

_NUMERIC_RE = re.compile(r"([0-9][0-9.,]*)([kmb])?")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_MULTIPLIERS = {"k": 1_000, "m": 1_000_000, "b": 1_000_000_000}
# metrics land in BIGINT columns
MAX_METRIC = 2**63 - 1

_LABEL_FIELDS = ("label", "name", "metric", "key", "title", "type", "caption")
_VALUE_FIELDS = ("value", "count", "total", "number", "text", "display", "data")

VIEW_KEYS = {
    "instagram": ["video_play_count", "play_count", "views", "view_count", "total_views"],
    "youtube": ["views", "view_count", "play_count", "total_views"],
    "default": ["play_count", "views", "view_count", "video_play_count", "total_views"],
}
LIKE_KEYS = {
    "tiktok": ["digg_count", "likes", "like_count", "likes_count", "favorite_count"],
    "default": ["likes", "like_count", "likes_count", "digg_count", "favorite_count"],
}
COMMENT_KEYS = ["num_comments", "comment_count", "comments_count", "comments"]
SHARE_KEYS = ["share_count", "shares_count", "shares", "reshare_count"]
SAVE_KEYS = ["save_count", "saves_count", "saves", "collect_count", "favorite_count", "favorites"]


class NormalizedMetrics(TypedDict):
    total_views: int
    like_count: int
    comment_count: int
    share_count: int
    save_count: int


class NormalizedRecord(TypedDict):
    platform: Platform
    normalized_metrics: NormalizedMetrics


def normalize_brightdata_record(record: dict[str, Any], platform_hint: Platform | None = None) -> NormalizedRecord:
    if not isinstance(record, dict):
        record = {}
    platform = _resolve_platform(record, platform_hint)
    return {"platform": platform, "normalized_metrics": _extract_metrics(record, platform)}


def attach_normalized_metrics(record: dict[str, Any], platform_hint: Platform | None = None) -> dict[str, Any]:
    normalization = normalize_brightdata_record(record, platform_hint)
    return {
        **(record if isinstance(record, dict) else {}),
        "normalized_platform": normalization["platform"],
        "normalized_metrics": normalization["normalized_metrics"],
    }


def parse_numeric(value: Any) -> float | None:
    """Coerce a vendor value to a number: ``1234``, ``"2,345"``, ``"1.2k"``, ``"400 likes"``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return value
    if not isinstance(value, str):
        return None

    trimmed = value.strip().lower()
    match = _NUMERIC_RE.search(trimmed)
    if not match:
        return None
    try:
        base = float(match.group(1).replace(",", ""))
    except ValueError:
        base = None
    if base is not None:
        if not math.isfinite(base):
            return None
        suffix = match.group(2)
        if not suffix:
            return base
        scaled = base * _MULTIPLIERS[suffix]
        if not math.isfinite(scaled):
            return None
        return math.floor(scaled + 0.5)

    try:
        parsed = float(trimmed.replace(",", ""))
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def normalize_key(raw: Any) -> str:
    return _NON_ALNUM_RE.sub("_", str(raw).lower()).strip("_")


def _simplify_key(normalized: str) -> str:
    return re.sub(r"_count$", "", re.sub(r"^num_", "", normalized))


def _get(obj: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def _resolve_platform(record: dict[str, Any], hint: Platform | None) -> Platform:
    if hint and hint != "unknown":
        return hint

    direct = next(
        (record.get(key) for key in ("platform", "source", "site", "dataset") if record.get(key)),
        None,
    )
    if direct:
        direct_text = str(direct).lower()
        for platform in ("tiktok", "instagram", "youtube"):
            if platform in direct_text:
                return platform  # type: ignore[return-value]

    url_candidate = (
        record.get("url")
        or record.get("video_url")
        or record.get("post_url")
        or record.get("share_url")
        or record.get("link")
        or _get(record, "input", "url")
        or record.get("source_url")
    )
    if isinstance(url_candidate, str):
        return detect_platform(url_candidate)
    return "unknown"


def _extract_metrics(record: dict[str, Any], platform: Platform) -> NormalizedMetrics:
    lookup = _build_metrics_lookup(record)
    view_keys = VIEW_KEYS.get(platform, VIEW_KEYS["default"])
    like_keys = LIKE_KEYS.get(platform, LIKE_KEYS["default"])
    return {
        "total_views": _metric_value(record, lookup, view_keys),
        "like_count": _metric_value(record, lookup, like_keys),
        "comment_count": _metric_value(record, lookup, COMMENT_KEYS),
        "share_count": _metric_value(record, lookup, SHARE_KEYS),
        "save_count": _metric_value(record, lookup, SAVE_KEYS),
    }


def _nested_sources(record: dict[str, Any]) -> list[dict]:
    candidates = [
        record,
        record.get("stats"),
        record.get("statistics"),
        record.get("metrics"),
        _get(record, "metrics", "stats"),
        record.get("metrics_stats"),
        record.get("author_stats"),
        _get(record, "author", "stats"),
        _get(record, "profile", "stats"),
        record.get("details"),
        record.get("engagement"),
        record.get("engagements"),
        record.get("performance"),
    ]
    return [source for source in candidates if isinstance(source, dict) and source]


def _metric_collections(record: dict[str, Any]) -> list[Any]:
    return [
        record.get("metrics"),
        record.get("metrics_data"),
        record.get("metrics_list"),
        _get(record, "statistics", "metrics"),
        _get(record, "details", "metrics"),
    ]


def _value_from_object(source: Any, key: str) -> Any:
    if not isinstance(source, dict):
        return None
    if key in source:
        return source[key]
    lower_key = key.lower()
    for k, v in source.items():
        if isinstance(k, str) and k.lower() == lower_key:
            return v
    return None


def _entry_label(entry: dict) -> Any:
    return next((entry[field] for field in _LABEL_FIELDS if entry.get(field)), None)


def _entry_value(entry: dict) -> Any:
    return next((entry[field] for field in _VALUE_FIELDS if entry.get(field) is not None), None)


def _label_matches(label: str, key: str) -> bool:
    normalized_key = normalize_key(key)
    return (
        label == normalized_key
        or label == _simplify_key(normalized_key)
        or normalized_key.replace("_", "") in label
    )


def _value_from_collection(collection: Any, keys: list[str]) -> float | None:
    if isinstance(collection, list):
        for entry in collection:
            if not isinstance(entry, dict):
                continue
            parsed = parse_numeric(_value_from_object(entry, keys[0]))
            if parsed is not None:
                return parsed

            label = _entry_label(entry)
            if not label:
                continue
            normalized_label = normalize_key(label)
            for key in keys:
                if _label_matches(normalized_label, key):
                    parsed = parse_numeric(_entry_value(entry))
                    if parsed is not None:
                        return parsed
    elif isinstance(collection, dict):
        for key in keys:
            parsed = parse_numeric(_value_from_object(collection, key))
            if parsed is not None:
                return parsed
    return None


def _build_metrics_lookup(record: dict[str, Any]) -> dict[str, Any]:
    """Flatten every metric-shaped object/collection into one normalized-key map (first key wins)."""
    lookup: dict[str, Any] = {}

    def add(key: Any, value: Any) -> None:
        if not key:
            return
        normalized = normalize_key(key)
        if normalized and normalized not in lookup:
            lookup[normalized] = value

    def add_object(obj: Any) -> None:
        if isinstance(obj, dict):
            for key, value in obj.items():
                add(key, value)

    add_object(record.get("metrics"))
    add_object(_get(record, "metrics", "stats"))
    add_object(_get(record, "statistics", "metrics"))
    add_object(_get(record, "details", "metrics"))

    for collection in _metric_collections(record):
        if not isinstance(collection, list):
            continue
        for entry in collection:
            if not isinstance(entry, dict):
                continue
            add(_entry_label(entry), _entry_value(entry))
            add_object(entry)

    return lookup


def _to_metric(value: float) -> int:
    return min(MAX_METRIC, max(0, int(round(value))))


def _metric_value(record: dict[str, Any], lookup: dict[str, Any], keys: list[str]) -> int:
    sources = _nested_sources(record)
    for key in keys:
        for source in sources:
            parsed = parse_numeric(_value_from_object(source, key))
            if parsed is not None:
                return _to_metric(parsed)

    for collection in _metric_collections(record):
        parsed = _value_from_collection(collection, keys)
        if parsed is not None:
            return _to_metric(parsed)

    for key in keys:
        normalized = normalize_key(key)
        for candidate in (normalized, _simplify_key(normalized)):
            if candidate in lookup:
                parsed = parse_numeric(lookup[candidate])
                if parsed is not None:
                    return _to_metric(parsed)

    return 0
