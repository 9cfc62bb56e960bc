"""Background scheduler for email delivery and session housekeeping."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import get_settings
from app.db.session import get_session
from app.services.sessions import purge_expired_sessions

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None

SESSION_CLEANUP_JOB_ID = "purge-expired-sessions"


def get_scheduler() -> AsyncIOScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler()
    return _scheduler


def start_scheduler() -> None:
    scheduler = get_scheduler()
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")


def shutdown_scheduler() -> None:
    global _scheduler
    scheduler = get_scheduler()
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    _scheduler = None


def schedule_email_delivery(
    deliver: Callable[..., Awaitable[Any]],
    message: Any,
    attempt: int = 1,
    delay_seconds: int = 0,
) -> str:
    """Queue a one-shot delivery job; returns the job id."""
    scheduler = get_scheduler()
    run_date = datetime.now(timezone.utc) + timedelta(seconds=max(delay_seconds, 0))
    job_id = f"email-{uuid.uuid4().hex}"
    scheduler.add_job(
        deliver,
        trigger=DateTrigger(run_date=run_date),
        id=job_id,
        args=[message, attempt],
        misfire_grace_time=None,
    )
    logger.debug("Scheduled email job %s (attempt %d) for %s", job_id, attempt, run_date.isoformat())
    return job_id


def schedule_session_cleanup_job() -> None:
    """Schedule a periodic job to delete expired sessions."""
    settings = get_settings()
    scheduler = get_scheduler()
    trigger = IntervalTrigger(minutes=settings.session_cleanup_interval_minutes)
    scheduler.add_job(_purge_sessions, trigger=trigger, id=SESSION_CLEANUP_JOB_ID, replace_existing=True)
    logger.info(
        "Scheduled session cleanup every %s minutes", settings.session_cleanup_interval_minutes
    )


async def _purge_sessions() -> None:
    async with get_session() as session:
        removed = await purge_expired_sessions(session)
        await session.commit()
    if removed:
        logger.info("Purged %d expired session(s)", removed)
