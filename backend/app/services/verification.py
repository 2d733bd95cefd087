"""
Ownership verification for connected social accounts.

Flow: the user puts ``account.verification_code`` in their bio, ``trigger_verification``
starts a BrightData profile scrape, and the result arrives either through the
profile webhook or by polling the snapshot (``check_verification_status``).
Either way the scraped bio is searched for the code and the account moves
PENDING -> VERIFIED or PENDING -> FAILED.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from fastapi import HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.integrations import brightdata_client
from app.models import SocialAccount, VerificationStatus, WebhookStatus
from app.services.polling import poll_until
from app.services.social_accounts import (
    extract_bio_from_profile_data,
    generate_verification_code,
    profile_url_for_scrape,
    verify_code_in_bio,
)
from app.services.url_utils import normalize_profile_url
from app.settings import get_settings

logger = logging.getLogger(__name__)

PROFILE_WEBHOOK_PATH = "/api/brightdata/profile-webhook"

_PROFILE_MARKERS = ("account_id", "biography", "nickname", "account", "url", "handle", "Description", "description")
_SNAPSHOT_HEADERS = ("x-snapshot-id", "snapshot-id", "x-brightdata-snapshot-id")
_SNAPSHOT_KEYS = ("snapshot_id", "id", "snapshotId", "collection_id")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _first_record(payload: Any) -> dict | None:
    if isinstance(payload, list):
        payload = payload[0] if payload else None
    return payload if isinstance(payload, dict) and payload else None


def looks_like_profile(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    return any(data.get(key) for key in _PROFILE_MARKERS) or "followers" in data


def profile_data_from_status(payload: dict[str, Any]) -> dict | None:
    """Some BrightData datasets return the scraped profile inline with the snapshot status."""
    if looks_like_profile(payload):
        return payload
    nested = _first_record(payload.get("data"))
    if looks_like_profile(nested):
        return nested
    return None


def profile_webhook_url() -> str:
    return f"{get_settings().app_url.rstrip('/')}{PROFILE_WEBHOOK_PATH}"


# ── State transitions ────────────────────────────────────────

def correlate_profile_data(account: SocialAccount, profile_data: dict) -> bool:
    """Store the scraped profile and settle the account. Returns True if the code was found."""
    bio = extract_bio_from_profile_data(profile_data, account.platform)
    found = verify_code_in_bio(bio, account.verification_code)

    account.profile_data = profile_data
    account.webhook_status = WebhookStatus.completed.value
    account.last_verification_attempt_at = _now()
    if found:
        account.verification_status = VerificationStatus.verified.value
        account.verification_attempts = 0
    else:
        account.verification_status = VerificationStatus.failed.value
        account.verification_attempts = (account.verification_attempts or 0) + 1

    logger.info(
        "[verify] account=%s platform=%s code_found=%s bio_len=%d",
        account.id,
        account.platform,
        found,
        len(bio),
    )
    return found


def mark_verification_failed(account: SocialAccount) -> None:
    account.webhook_status = WebhookStatus.failed.value
    account.verification_status = VerificationStatus.failed.value
    account.verification_attempts = (account.verification_attempts or 0) + 1
    account.last_verification_attempt_at = _now()


def is_pollable(account: SocialAccount) -> bool:
    return (
        account.webhook_status == WebhookStatus.pending.value
        and bool(account.snapshot_id)
        and account.verification_status == VerificationStatus.pending.value
    )


async def trigger_verification(
    session: AsyncSession,
    account: SocialAccount,
    *,
    regenerate_code: bool = False,
) -> SocialAccount:
    if account.verification_status == VerificationStatus.verified.value:
        logger.info("[verify] account=%s already verified, not triggering", account.id)
        return account

    settings = get_settings()
    if regenerate_code:
        account.verification_code = generate_verification_code()

    snapshot_id = await brightdata_client.trigger_collection(
        settings.profile_dataset_id(account.platform),
        [profile_url_for_scrape(account.profile_url, account.platform)],
        profile_webhook_url(),
    )

    account.snapshot_id = snapshot_id
    account.webhook_status = WebhookStatus.pending.value
    account.verification_status = VerificationStatus.pending.value
    account.last_verification_attempt_at = _now()
    session.add(account)
    await session.commit()
    await session.refresh(account)
    logger.info("[verify] account=%s triggered snapshot=%s", account.id, snapshot_id)
    return account


async def check_verification_status(session: AsyncSession, account: SocialAccount) -> SocialAccount:
    """Poll the account's snapshot once and settle the account if BrightData is done."""
    if not is_pollable(account):
        return account

    snapshot_id = account.snapshot_id
    try:
        status_payload = await brightdata_client.get_snapshot_status(snapshot_id)
        snapshot_state = brightdata_client.snapshot_status(status_payload)
        profile_data = profile_data_from_status(status_payload)
        if profile_data is None and snapshot_state in brightdata_client.READY_STATUSES:
            profile_data = _first_record(await brightdata_client.get_snapshot_data(snapshot_id))
    except HTTPException as exc:
        logger.warning("[verify] account=%s snapshot=%s poll failed: %s", account.id, snapshot_id, exc.detail)
        return account

    if profile_data is not None:
        correlate_profile_data(account, profile_data)
    elif snapshot_state in brightdata_client.FAILED_STATUSES:
        logger.info("[verify] account=%s snapshot=%s failed at vendor", account.id, snapshot_id)
        mark_verification_failed(account)
    else:
        logger.debug("[verify] account=%s snapshot=%s state=%s", account.id, snapshot_id, snapshot_state)
        return account

    session.add(account)
    await session.commit()
    await session.refresh(account)
    return account


async def wait_for_verification(
    session: AsyncSession,
    account: SocialAccount,
    *,
    interval: float | None = None,
    deadline: float | None = None,
) -> SocialAccount:
    """Poll until the account leaves PENDING. Raises PollTimeoutError at the deadline.

    The deadline only bounds this call; the vendor job keeps running.
    """
    settings = get_settings()

    async def fetch() -> SocialAccount:
        # the webhook may have settled the row from another session
        await session.refresh(account)
        return await check_verification_status(session, account)

    return await poll_until(
        fetch,
        lambda acc: acc.verification_status != VerificationStatus.pending.value,
        interval=settings.verification_poll_interval_sec if interval is None else interval,
        deadline=settings.verification_timeout_sec if deadline is None else deadline,
    )


async def sweep_pending_verifications(session: AsyncSession, limit: int | None = None) -> dict[str, int]:
    """Check every account still waiting on a snapshot. Used by the scheduler and the cron endpoint."""
    limit = limit or get_settings().verification_sweep_batch_size
    accounts = (
        await session.scalars(
            select(SocialAccount)
            .where(
                SocialAccount.webhook_status == WebhookStatus.pending.value,
                SocialAccount.verification_status == VerificationStatus.pending.value,
                SocialAccount.snapshot_id.is_not(None),
            )
            .order_by(SocialAccount.id)
            .limit(limit)
        )
    ).all()

    result = {"processed": 0, "verified": 0, "failed": 0, "still_pending": 0}
    for account in accounts:
        account_id = account.id
        try:
            account = await check_verification_status(session, account)
        except Exception:
            logger.exception("[sweep] account=%s check failed", account_id)
            await session.rollback()
            result["still_pending"] += 1
            continue
        result["processed"] += 1
        if account.verification_status == VerificationStatus.verified.value:
            result["verified"] += 1
        elif account.verification_status == VerificationStatus.failed.value:
            result["failed"] += 1
        else:
            result["still_pending"] += 1

    if accounts:
        logger.info("[sweep] %s", result)
    return result


# ── Profile webhook ──────────────────────────────────────────

def _snapshot_id_from(item: dict) -> str | None:
    for key in _SNAPSHOT_KEYS:
        if item.get(key):
            return str(item[key])
    for parent, key in (("input", "snapshot_id"), ("input", "id"), ("metadata", "snapshot_id")):
        nested = item.get(parent)
        if isinstance(nested, dict) and nested.get(key):
            return str(nested[key])
    return None


def _unwrap(item: dict) -> tuple[dict | None, str | None]:
    data = item.get("data") or item.get("result") or item.get("results")
    if not data:
        return None, None
    state = item.get("status") or item.get("state") or "completed"
    return _first_record(data), str(state).lower()


def parse_profile_webhook(
    payload: Any, headers: Mapping[str, str] | None = None
) -> tuple[str | None, str | None, dict | None]:
    """Pull ``(snapshot_id, status, profile_data)`` out of any of BrightData's webhook shapes.

    Shapes seen: a list of profile records (snapshot id under ``input``), a list
    or object wrapping records in ``data``/``result``/``results``, a bare profile
    object, and a status-only notification ``{"snapshot_id", "status"}``.
    """
    headers = headers or {}
    snapshot_id = next((headers[h] for h in _SNAPSHOT_HEADERS if headers.get(h)), None)
    state: str | None = None
    profile_data: dict | None = None

    item = _first_record(payload) if isinstance(payload, list) else payload
    if isinstance(item, dict):
        snapshot_id = snapshot_id or _snapshot_id_from(item)
        profile_data, state = _unwrap(item)
        if profile_data is None:
            if isinstance(payload, list) or looks_like_profile(item) or item.get("name"):
                profile_data, state = item, "completed"
            else:
                raw_state = item.get("status") or item.get("state")
                state = str(raw_state).lower() if raw_state else None

    if not snapshot_id and profile_data and isinstance(profile_data.get("input"), dict):
        snapshot_id = _snapshot_id_from({"input": profile_data["input"]})
    return snapshot_id, state, profile_data


async def _account_by_profile_url(session: AsyncSession, profile_data: dict) -> SocialAccount | None:
    raw_url = profile_data.get("url") or profile_data.get("profile_url") or profile_data.get("account_url")
    if not isinstance(raw_url, str) or not raw_url:
        return None
    normalized = normalize_profile_url(raw_url.replace("/about", "").rstrip("/"))
    return await session.scalar(
        select(SocialAccount)
        .where(
            SocialAccount.profile_url == normalized,
            or_(
                SocialAccount.webhook_status == WebhookStatus.pending.value,
                SocialAccount.webhook_status.is_(None),
            ),
        )
        .limit(1)
    )


async def handle_profile_webhook(
    session: AsyncSession, payload: Any, headers: Mapping[str, str] | None = None
) -> dict[str, Any]:
    snapshot_id, state, profile_data = parse_profile_webhook(payload, headers)
    if not snapshot_id:
        logger.warning("[webhook] profile payload without snapshot id")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing snapshot_id")

    account = await session.scalar(select(SocialAccount).where(SocialAccount.snapshot_id == snapshot_id).limit(1))
    if account is None and profile_data:
        account = await _account_by_profile_url(session, profile_data)
        if account is not None:
            logger.info("[webhook] snapshot=%s matched account=%s by profile url", snapshot_id, account.id)
            account.snapshot_id = snapshot_id
    if account is None:
        logger.warning("[webhook] no account for snapshot=%s", snapshot_id)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")

    if account.verification_status != VerificationStatus.pending.value:
        logger.info("[webhook] account=%s already %s, ignoring snapshot=%s", account.id, account.verification_status, snapshot_id)
        return {"success": True, "account_id": account.id, "status": "ignored", "verified": account.verification_status == VerificationStatus.verified.value}

    if state in brightdata_client.FAILED_STATUSES:
        mark_verification_failed(account)
        session.add(account)
        await session.commit()
        return {"success": True, "account_id": account.id, "status": "failed", "verified": False}

    if profile_data is None:
        logger.info("[webhook] snapshot=%s notification without data, downloading", snapshot_id)
        profile_data = _first_record(await brightdata_client.get_snapshot_data(snapshot_id))
    if profile_data is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No profile data available")

    found = correlate_profile_data(account, profile_data)
    session.add(account)
    await session.commit()
    return {"success": True, "account_id": account.id, "status": "completed", "verified": found}
