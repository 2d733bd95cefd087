"""
Worker endpoints for external cron.

POST runs one verification sweep; GET is a health probe for the worker and
the in-process scheduler.
"""
from __future__ import annotations

import hmac
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.scheduler import scheduler_service
from app.services.verification import sweep_pending_verifications
from .db import get_session
from .schemas import SweepResult
from .settings import get_settings

router = APIRouter(prefix="/api/workers", tags=["workers"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]


def require_cron_secret(request: Request) -> None:
    secret = get_settings().cron_secret
    if secret and not hmac.compare_digest(request.headers.get("authorization", "").encode(), f"Bearer {secret}".encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.post("/verify-accounts", response_model=SweepResult, dependencies=[Depends(require_cron_secret)])
async def verify_accounts(session: SessionDep) -> SweepResult:
    return SweepResult(**await sweep_pending_verifications(session))


@router.get("/verify-accounts")
async def verify_accounts_health() -> dict:
    return {
        "status": "ok",
        "worker": "verify-accounts",
        "scheduler_running": scheduler_service.is_running(),
        "jobs": scheduler_service.get_jobs(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
