"""
Celery tasks for BrightData ingestion.

Main task: ingestion.process_snapshot. It runs the async ingestion service
in a synchronous Celery worker context using asyncio.run().
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from app.worker.celery_app import celery_app

logger = logging.getLogger(__name__)


async def _process_snapshot_async(snapshot_id: str | None, records: list[dict[str, Any]] | None) -> dict:
    """Ingest a snapshot with a fresh engine; the worker has no app-level session."""
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from app.services.video_ingestion import ingest_snapshot, ingest_snapshot_records
    from app.settings import get_settings

    engine = create_async_engine(get_settings().async_database_url, echo=False)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with session_factory() as session:
            if records is None:
                return await ingest_snapshot(session, snapshot_id)
            return await ingest_snapshot_records(session, snapshot_id, records)
    finally:
        await engine.dispose()


@celery_app.task(
    bind=True,
    name="ingestion.process_snapshot",
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
    queue="ingestion",
)
def process_snapshot(self, snapshot_id: str | None, records: list[dict[str, Any]] | None = None) -> dict:
    """Celery task: ingest a BrightData video snapshot (download it first when ``records`` is None)."""
    logger.info(
        "[worker] snapshot %s (celery_id=%s, attempt=%d)",
        snapshot_id,
        self.request.id,
        self.request.retries + 1,
    )
    try:
        return asyncio.run(_process_snapshot_async(snapshot_id, records))
    except Exception as e:
        logger.error("[worker] snapshot %s error (attempt %d): %s", snapshot_id, self.request.retries + 1, e)
        raise
