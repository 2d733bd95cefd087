from __future__ import annotations

import hmac
import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.services import verification, video_ingestion
from .db import get_session
from .settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/brightdata", tags=["brightdata"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]


def require_webhook_secret(request: Request) -> None:
    """BrightData is configured to send ``Authorization: Bearer <secret>`` when a secret is set."""
    secret = get_settings().brightdata_webhook_secret
    if not secret:
        return
    if not hmac.compare_digest(request.headers.get("authorization", "").encode(), f"Bearer {secret}".encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


async def _json_body(request: Request) -> Any:
    raw = await request.body()
    try:
        return json.loads(raw or b"null")
    except ValueError as exc:
        logger.warning("[webhook] invalid JSON body (%d bytes)", len(raw))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON") from exc


@router.post("/profile-webhook", dependencies=[Depends(require_webhook_secret)])
async def profile_webhook(request: Request, session: SessionDep) -> dict:
    payload = await _json_body(request)
    return await verification.handle_profile_webhook(session, payload, request.headers)


@router.post("/webhook", dependencies=[Depends(require_webhook_secret)])
async def video_webhook(request: Request, session: SessionDep) -> dict:
    payload = await _json_body(request)
    snapshot_id, records = video_ingestion.parse_video_webhook(payload, request.headers)
    if not snapshot_id and not records:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing snapshot_id")

    settings = get_settings()
    if settings.celery_enabled:
        from app.worker.tasks import process_snapshot

        process_snapshot.delay(snapshot_id, records)
        logger.info("[webhook] snapshot=%s queued (%s records)", snapshot_id, len(records) if records else "no")
        return {"success": True, "queued": True, "snapshot_id": snapshot_id}

    if records is None:
        result = await video_ingestion.ingest_snapshot(session, snapshot_id)
    else:
        result = await video_ingestion.ingest_snapshot_records(session, snapshot_id, records)
    return {"success": True, "queued": False, **result}
