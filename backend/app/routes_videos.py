from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.video_ingestion import submit_videos
from .db import get_session
from .models import SubmissionStatus, VideoSubmission
from .routes_auth import CurrentUser
from .schemas import VideoSubmissionRead, VideoSubmitRequest

router = APIRouter(prefix="/api/videos", tags=["videos"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]


@router.post("", response_model=list[VideoSubmissionRead], status_code=status.HTTP_201_CREATED)
async def create_submissions(
    payload: VideoSubmitRequest, session: SessionDep, user: CurrentUser
) -> list[VideoSubmission]:
    return await submit_videos(session, user, payload.urls, skip_validation=payload.skip_validation)


@router.get("", response_model=list[VideoSubmissionRead])
async def list_submissions(
    session: SessionDep,
    user: CurrentUser,
    status_filter: SubmissionStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[VideoSubmission]:
    stmt = select(VideoSubmission).where(VideoSubmission.user_id == user.id)
    if status_filter:
        stmt = stmt.where(VideoSubmission.status == status_filter.value)
    stmt = stmt.order_by(VideoSubmission.created_at.desc(), VideoSubmission.id.desc()).limit(limit).offset(offset)
    return list((await session.scalars(stmt)).all())


@router.get("/{submission_id}", response_model=VideoSubmissionRead)
async def get_submission(submission_id: int, session: SessionDep, user: CurrentUser) -> VideoSubmission:
    submission = await session.get(VideoSubmission, submission_id)
    if not submission or submission.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Submission not found")
    return submission
