from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.services import verification
from app.services.polling import PollTimeoutError
from app.services.social_accounts import generate_verification_code
from app.services.url_utils import normalize_profile_url, parse_profile_url, validate_profile_url
from .db import get_session
from .models import SocialAccount, VerificationStatus
from .routes_auth import CurrentUser
from .schemas import (
    ConnectedAccountCreate,
    ConnectedAccountRead,
    VerificationStatusRead,
    VerifyRequest,
    VerifyWaitRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings/connected-accounts", tags=["connected-accounts"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def _get_owned_account(session: AsyncSession, account_id: int, user_id: int) -> SocialAccount:
    account = await session.scalar(
        select(SocialAccount).where(SocialAccount.id == account_id, SocialAccount.user_id == user_id)
    )
    if not account:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    return account


def _status_read(account: SocialAccount) -> VerificationStatusRead:
    return VerificationStatusRead(
        account_id=account.id,
        verification_status=account.verification_status,
        webhook_status=account.webhook_status,
        verification_code=account.verification_code,
        snapshot_id=account.snapshot_id,
        verification_attempts=account.verification_attempts or 0,
        last_verification_attempt_at=account.last_verification_attempt_at,
    )


@router.get("", response_model=list[ConnectedAccountRead])
async def list_connected_accounts(session: SessionDep, user: CurrentUser) -> list[SocialAccount]:
    rows = await session.scalars(
        select(SocialAccount)
        .where(SocialAccount.user_id == user.id)
        .order_by(SocialAccount.created_at.desc(), SocialAccount.id.desc())
    )
    return list(rows.all())


@router.post("", response_model=ConnectedAccountRead, status_code=status.HTTP_201_CREATED)
async def create_connected_account(
    payload: ConnectedAccountCreate, session: SessionDep, user: CurrentUser
) -> SocialAccount:
    profile_url = normalize_profile_url(payload.profile_url)
    detected, url_username = parse_profile_url(profile_url)
    platform = payload.platform.value if payload.platform else detected
    if platform is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid platform. Must be tiktok, instagram, or youtube",
        )
    if not validate_profile_url(profile_url, platform):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {platform} profile URL")

    existing = await session.scalar(
        select(SocialAccount).where(SocialAccount.platform == platform, SocialAccount.profile_url == profile_url)
    )
    if existing:
        if existing.user_id == user.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="This account is already connected to your profile",
            )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This social account is already connected to another user",
        )

    username = payload.username or (url_username.lower() if url_username else None)
    if username:
        verified_elsewhere = await session.scalar(
            select(SocialAccount.id).where(
                SocialAccount.platform == platform,
                SocialAccount.username == username,
                SocialAccount.user_id != user.id,
                SocialAccount.verification_status == VerificationStatus.verified.value,
            )
        )
        if verified_elsewhere:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="This handle is already verified by another user",
            )

    account = SocialAccount(
        user_id=user.id,
        platform=platform,
        profile_url=profile_url,
        username=username,
        verification_code=generate_verification_code(),
        verification_status=VerificationStatus.pending.value,
        verification_attempts=0,
    )
    session.add(account)
    await session.commit()
    await session.refresh(account)
    logger.info("[accounts] user=%s connected %s %s", user.id, platform, profile_url)
    return account


@router.delete("/{account_id}")
async def delete_connected_account(account_id: int, session: SessionDep, user: CurrentUser) -> dict:
    account = await session.get(SocialAccount, account_id)
    if not account:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    if account.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")
    await session.delete(account)
    await session.commit()
    return {"message": "Account deleted successfully"}


@router.post("/verify")
async def start_verification(payload: VerifyRequest, session: SessionDep, user: CurrentUser) -> dict:
    account = await _get_owned_account(session, payload.account_id, user.id)
    if account.verification_status == VerificationStatus.verified.value:
        return {
            "message": "Account is already verified",
            "account": ConnectedAccountRead.model_validate(account).model_dump(mode="json"),
        }

    account = await verification.trigger_verification(session, account, regenerate_code=payload.regenerate_code)
    return {
        "success": True,
        "message": "Verification initiated. Add the verification code to your bio and wait for confirmation.",
        "verification_code": account.verification_code,
        "snapshot_id": account.snapshot_id,
    }


@router.get("/verify/status", response_model=VerificationStatusRead)
async def verification_status(
    session: SessionDep,
    user: CurrentUser,
    account_id: int = Query(...),
) -> VerificationStatusRead:
    account = await _get_owned_account(session, account_id, user.id)
    account = await verification.check_verification_status(session, account)
    return _status_read(account)


@router.post("/verify/wait", response_model=VerificationStatusRead)
async def wait_for_verification(
    payload: VerifyWaitRequest, session: SessionDep, user: CurrentUser
) -> VerificationStatusRead:
    account = await _get_owned_account(session, payload.account_id, user.id)
    if account.verification_status == VerificationStatus.pending.value and not account.snapshot_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Verification has not been started")
    try:
        account = await verification.wait_for_verification(session, account, deadline=payload.timeout_sec)
    except PollTimeoutError as exc:
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail={"error": "Verification still pending", "attempts": exc.attempts},
        ) from exc
    return _status_read(account)
