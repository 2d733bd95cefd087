from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.campaigns import CampaignGenerationError, create_campaign, generate_campaign_suggestions
from .db import get_session
from .models import Campaign, VideoSubmission
from .routes_auth import CurrentUser
from .schemas import (
    CampaignCreate,
    CampaignGenerateRequest,
    CampaignGenerateResponse,
    CampaignList,
    CampaignRead,
    VideoSubmissionRead,
)

router = APIRouter(prefix="/api/campaigns", tags=["campaigns"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def _get_owned_campaign(session: AsyncSession, campaign_id: int, user_id: int) -> Campaign:
    campaign = await session.scalar(select(Campaign).where(Campaign.id == campaign_id, Campaign.user_id == user_id))
    if not campaign:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")
    return campaign


@router.post("/generate", response_model=CampaignGenerateResponse)
async def generate(payload: CampaignGenerateRequest, user: CurrentUser) -> CampaignGenerateResponse:
    try:
        suggestions = await generate_campaign_suggestions(payload.input_text)
    except CampaignGenerationError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "Failed to generate campaign suggestions", "message": str(exc)},
        ) from exc
    return CampaignGenerateResponse(suggestions=suggestions)


@router.get("", response_model=CampaignList)
async def list_campaigns(
    session: SessionDep,
    user: CurrentUser,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> CampaignList:
    rows = await session.scalars(
        select(Campaign)
        .where(Campaign.user_id == user.id)
        .order_by(Campaign.created_at.desc(), Campaign.id.desc())
        .limit(limit)
        .offset(offset)
    )
    total = await session.scalar(select(func.count()).select_from(Campaign).where(Campaign.user_id == user.id))
    return CampaignList(
        data=[CampaignRead.model_validate(c) for c in rows.all()],
        total=total or 0,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=CampaignRead, status_code=status.HTTP_201_CREATED)
async def save_campaign(payload: CampaignCreate, session: SessionDep, user: CurrentUser) -> Campaign:
    return await create_campaign(session, user, payload.input_text, payload.ai_payload)


@router.get("/{campaign_id}", response_model=CampaignRead)
async def get_campaign(campaign_id: int, session: SessionDep, user: CurrentUser) -> Campaign:
    return await _get_owned_campaign(session, campaign_id, user.id)


@router.get("/{campaign_id}/videos", response_model=list[VideoSubmissionRead])
async def campaign_videos(campaign_id: int, session: SessionDep, user: CurrentUser) -> list[VideoSubmission]:
    campaign = await _get_owned_campaign(session, campaign_id, user.id)
    if not campaign.video_ids:
        return []
    rows = await session.scalars(
        select(VideoSubmission)
        .where(VideoSubmission.id.in_(campaign.video_ids))
        .order_by(VideoSubmission.total_views.desc(), VideoSubmission.id)
    )
    return list(rows.all())
