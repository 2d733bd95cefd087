"""
Scheduler Service

Runs the periodic verification sweep: every few minutes, accounts still
waiting on a BrightData profile snapshot are polled and settled.

Single-leader election via Postgres advisory locks:
- Only the instance that acquires the lock executes the tick
- Other instances silently skip
- Controlled by SCHEDULER_ENABLED env (default: true)
"""
from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.settings import get_settings

logger = logging.getLogger("scheduler")

# Advisory lock keys (arbitrary int64, unique per job type)
LOCK_VERIFICATION_SWEEP = 910_001


class SchedulerService:
    """Periodic jobs with one leader per tick.

    On Postgres each tick takes pg_try_advisory_lock so only one backend
    instance runs the job. Other databases have no advisory locks; every
    instance runs the tick.
    """

    _instance: "SchedulerService | None" = None

    def __init__(self):
        self.scheduler = AsyncIOScheduler()
        self._session_factory: async_sessionmaker | None = None
        self._use_advisory_locks = False
        self._running = False

    @classmethod
    def get_instance(cls) -> "SchedulerService":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def configure(self, database_url: str):
        """Configure database connection."""
        engine = create_async_engine(database_url, echo=False)
        self._session_factory = async_sessionmaker(engine, expire_on_commit=False)
        self._use_advisory_locks = database_url.startswith("postgresql")

    async def _get_session(self) -> AsyncSession:
        if not self._session_factory:
            self.configure(get_settings().async_database_url)
        return self._session_factory()

    async def _try_advisory_lock(self, session: AsyncSession, lock_key: int) -> bool:
        """Non-blocking session-level advisory lock; released when the connection closes."""
        if not self._use_advisory_locks:
            return True
        result = await session.execute(text(f"SELECT pg_try_advisory_lock({lock_key})"))
        return bool(result.scalar())

    async def _release_advisory_lock(self, session: AsyncSession, lock_key: int):
        if not self._use_advisory_locks:
            return
        await session.execute(text(f"SELECT pg_advisory_unlock({lock_key})"))

    def start(self):
        """Start the scheduler (respects SCHEDULER_ENABLED env)."""
        settings = get_settings()
        if not settings.scheduler_enabled:
            logger.info("Scheduler DISABLED by SCHEDULER_ENABLED=false, skipping start")
            return

        if self._running:
            return

        self.scheduler.add_job(
            self._run_verification_sweep,
            IntervalTrigger(minutes=settings.verification_sweep_interval_minutes),
            id="verification_sweep",
            name="Poll pending account verifications",
            replace_existing=True,
        )

        self.scheduler.start()
        self._running = True
        logger.info("Scheduler started (single-leader mode via advisory locks)")

    def stop(self):
        """Stop the scheduler."""
        if not self._running:
            return
        self.scheduler.shutdown(wait=False)
        self._running = False
        logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        return self._running

    async def _run_verification_sweep(self):
        """Check pending verifications. Protected by advisory lock."""
        async with await self._get_session() as session:
            acquired = await self._try_advisory_lock(session, LOCK_VERIFICATION_SWEEP)
            if not acquired:
                logger.debug("[sweep] Advisory lock not acquired, another instance is leader, skipping tick")
                return None

            try:
                from app.services.verification import sweep_pending_verifications

                result = await sweep_pending_verifications(session)
                if result["processed"]:
                    logger.info(
                        "[sweep] Completed: %d processed, %d verified, %d failed, %d still pending",
                        result["processed"],
                        result["verified"],
                        result["failed"],
                        result["still_pending"],
                    )
                return result
            finally:
                await self._release_advisory_lock(session, LOCK_VERIFICATION_SWEEP)

    def get_jobs(self) -> list[dict]:
        """Get list of all scheduled jobs."""
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run = job.next_run_time
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": next_run.isoformat() if next_run else None,
                "trigger": str(job.trigger),
            })
        return jobs


# Global instance
scheduler_service = SchedulerService.get_instance()
