"""
Video submission and BrightData snapshot ingestion.

``submit_videos`` canonicalizes the URLs, triggers one BrightData post
collection for the batch and stores PENDING rows. When the snapshot is
delivered, ``ingest_snapshot_records`` matches records back to rows by
canonical URL, attaches normalized metrics and settles each row.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.integrations import brightdata_client
from app.models import SubmissionStatus, User, VideoSubmission
from app.services.brightdata_normalizer import attach_normalized_metrics
from app.services.url_utils import (
    UnsupportedUrlError,
    detect_platform,
    has_edit_hashtag,
    is_valid_url,
    standardize_url,
)
from app.settings import get_settings

logger = logging.getLogger(__name__)

VIDEO_WEBHOOK_PATH = "/api/brightdata/webhook"
MAX_URLS_PER_SUBMISSION = 50


def video_webhook_url() -> str:
    return f"{get_settings().app_url.rstrip('/')}{VIDEO_WEBHOOK_PATH}"


def canonicalize_submission(urls: list[str]) -> tuple[str, list[str]]:
    """Validate a batch of video URLs. Returns ``(platform, canonical_urls)``.

    A batch must be a single platform, since one BrightData dataset serves it.
    """
    cleaned = [u.strip() for u in urls if u and u.strip()]
    if not cleaned:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At least one URL is required")
    if len(cleaned) > MAX_URLS_PER_SUBMISSION:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {MAX_URLS_PER_SUBMISSION} URLs per submission",
        )

    canonical: list[str] = []
    platforms: set[str] = set()
    for url in cleaned:
        try:
            standardized = standardize_url(url)
        except UnsupportedUrlError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"error": str(exc), "url": url}) from exc
        # short links lose their host when standardized, so the raw form counts too
        if not (is_valid_url(standardized) or is_valid_url(url)):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"error": "Unsupported video URL", "url": url},
            )
        platforms.add(detect_platform(standardized))
        if standardized not in canonical:
            canonical.append(standardized)

    if len(platforms) > 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="All URLs in one submission must be from the same platform",
        )
    return platforms.pop(), canonical


async def submit_videos(
    session: AsyncSession,
    user: User,
    urls: list[str],
    *,
    skip_validation: bool = False,
) -> list[VideoSubmission]:
    platform, canonical = canonicalize_submission(urls)

    dataset_id = get_settings().post_dataset_id(platform)
    if not dataset_id:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Post scraper not configured for {platform}",
        )

    existing = {
        sub.video_url: sub
        for sub in (
            await session.scalars(select(VideoSubmission).where(VideoSubmission.video_url.in_(canonical)))
        ).all()
    }
    taken = [url for url, sub in existing.items() if sub.user_id != user.id]
    if taken:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "Video already submitted by another user", "urls": taken},
        )

    snapshot_id = await brightdata_client.trigger_collection(dataset_id, canonical, video_webhook_url())

    submissions: list[VideoSubmission] = []
    for url in canonical:
        submission = existing.get(url) or VideoSubmission(user_id=user.id, platform=platform, video_url=url)
        submission.snapshot_id = snapshot_id
        submission.status = SubmissionStatus.pending.value
        submission.skip_validation = skip_validation
        submission.error = None
        session.add(submission)
        submissions.append(submission)

    await session.commit()
    for submission in submissions:
        await session.refresh(submission)
    logger.info("[videos] user=%s submitted %d %s urls snapshot=%s", user.id, len(submissions), platform, snapshot_id)
    return submissions


def extract_hashtags(record: dict[str, Any]) -> list[str]:
    """Hashtags as lowercase strings without ``#``.

    BrightData sends a list of strings (TikTok, Instagram), a list of
    ``{"hashtag": ...}`` objects (YouTube) or a single string.
    """
    raw = record.get("normalized_hashtags") or record.get("hashtags")
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return []

    tags: list[str] = []
    for item in raw:
        if isinstance(item, dict):
            item = item.get("hashtag")
        if not isinstance(item, str):
            continue
        tag = item.replace("#", "").strip().lower()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def _record_urls(record: dict[str, Any]) -> list[str]:
    nested = record.get("input") if isinstance(record.get("input"), dict) else {}
    urls: list[str] = []
    for candidate in (
        record.get("url"),
        record.get("video_url"),
        record.get("post_url"),
        record.get("share_url"),
        nested.get("url"),
    ):
        if isinstance(candidate, str) and candidate and candidate not in urls:
            urls.append(candidate)
    return urls


def _canonical_or_none(url: str | None) -> str | None:
    if not url:
        return None
    try:
        return standardize_url(url)
    except UnsupportedUrlError:
        return None


async def _match_submission(
    session: AsyncSession, by_url: dict[str, VideoSubmission], urls: list[str]
) -> VideoSubmission | None:
    # vendor records carry the resolved url first and the submitted one under input.url
    canonicals = [c for c in (_canonical_or_none(url) for url in urls) if c]
    for canonical in canonicals:
        if canonical in by_url:
            return by_url[canonical]
    for canonical in canonicals:
        submission = await session.scalar(select(VideoSubmission).where(VideoSubmission.video_url == canonical))
        if submission is not None:
            return submission
    return None


def apply_record(submission: VideoSubmission, record: dict[str, Any]) -> None:
    if record.get("error") and not record.get("url"):
        submission.status = SubmissionStatus.failed.value
        submission.error = str(record.get("error"))[:1000]
        submission.raw_payload = record
        return

    enriched = attach_normalized_metrics(record, submission.platform)
    metrics = enriched["normalized_metrics"]
    hashtags = extract_hashtags(record)

    submission.raw_payload = enriched
    submission.hashtags = hashtags
    submission.total_views = metrics["total_views"]
    submission.like_count = metrics["like_count"]
    submission.comment_count = metrics["comment_count"]
    submission.share_count = metrics["share_count"]
    submission.save_count = metrics["save_count"]
    submission.is_edit = has_edit_hashtag(hashtags)
    submission.error = None
    if submission.is_edit or submission.skip_validation:
        submission.status = SubmissionStatus.completed.value
    else:
        submission.status = SubmissionStatus.rejected.value
        submission.error = "No edit hashtag found"


async def ingest_snapshot_records(session: AsyncSession, snapshot_id: str | None, records: Any) -> dict[str, Any]:
    if isinstance(records, dict):
        records = [records]
    if not isinstance(records, list):
        records = []

    pending: list[VideoSubmission] = []
    if snapshot_id:
        pending = list(
            (await session.scalars(select(VideoSubmission).where(VideoSubmission.snapshot_id == snapshot_id))).all()
        )
    by_url = {sub.video_url: sub for sub in pending}

    result = {"snapshot_id": snapshot_id, "records": len(records), "completed": 0, "rejected": 0, "failed": 0, "skipped": 0}
    for record in records:
        if not isinstance(record, dict):
            result["skipped"] += 1
            continue

        urls = _record_urls(record)
        submission = await _match_submission(session, by_url, urls)
        if submission is None and len(pending) == 1 and len(records) == 1:
            submission = pending[0]
        if submission is None:
            logger.warning("[ingest] snapshot=%s no submission for urls=%s", snapshot_id, urls)
            result["skipped"] += 1
            continue

        apply_record(submission, record)
        session.add(submission)
        if submission.status == SubmissionStatus.completed.value:
            result["completed"] += 1
        elif submission.status == SubmissionStatus.rejected.value:
            result["rejected"] += 1
        else:
            result["failed"] += 1

    await session.commit()
    logger.info("[ingest] %s", result)
    return result


def parse_video_webhook(payload: Any, headers: Mapping[str, str] | None = None) -> tuple[str | None, list | None]:
    """Return ``(snapshot_id, records)``. ``records`` is None for status-only notifications."""
    headers = headers or {}
    snapshot_id = headers.get("x-snapshot-id") or headers.get("snapshot-id") or headers.get("x-brightdata-snapshot-id")

    if isinstance(payload, list):
        first = payload[0] if payload and isinstance(payload[0], dict) else {}
        nested = first.get("input") if isinstance(first.get("input"), dict) else {}
        snapshot_id = snapshot_id or first.get("snapshot_id") or nested.get("snapshot_id")
        return (str(snapshot_id) if snapshot_id else None), payload

    if isinstance(payload, dict):
        snapshot_id = snapshot_id or payload.get("snapshot_id") or payload.get("id")
        data = payload.get("data") or payload.get("results")
        if isinstance(data, dict):
            data = [data]
        if isinstance(data, list):
            return (str(snapshot_id) if snapshot_id else None), data
        if _record_urls(payload):
            return (str(snapshot_id) if snapshot_id else None), [payload]
        return (str(snapshot_id) if snapshot_id else None), None

    return (str(snapshot_id) if snapshot_id else None), None


async def ingest_snapshot(session: AsyncSession, snapshot_id: str) -> dict[str, Any]:
    """Download a finished snapshot and ingest it. Used when the webhook only notifies."""
    records = await brightdata_client.get_snapshot_data(snapshot_id)
    if records is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Snapshot not ready")
    return await ingest_snapshot_records(session, snapshot_id, records)
