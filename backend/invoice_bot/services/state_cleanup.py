"""
Background sweep of abandoned conversations.

Any conversation not touched for STATE_MAX_AGE_HOURS is deleted. A message
arriving for a swept conversation starts again at customer info.
"""
import asyncio
import logging
from datetime import timedelta

from invoice_bot.core.config import settings
from invoice_bot.db.session import SessionLocal
from invoice_bot.services.conversation_store import cleanup

logger = logging.getLogger(__name__)

_cleanup_task: asyncio.Task | None = None


def sweep_stale_states(session_factory=SessionLocal) -> int:
    """Run one sweep. Returns the number of deleted conversations."""
    db = session_factory()
    try:
        return cleanup(db, max_age=timedelta(hours=settings.STATE_MAX_AGE_HOURS))
    finally:
        db.close()


async def _cleanup_loop(interval_seconds: int):
    logger.info(f"[StateCleanup] Scheduler started. Interval: {interval_seconds}s")
    while True:
        try:
            # Blocking DB call, runs in the thread pool
            deleted = await asyncio.to_thread(sweep_stale_states)
            logger.debug(f"[StateCleanup] Sweep done, deleted={deleted}")
        except Exception as e:
            logger.error(f"[StateCleanup] Sweep failed: {e}", exc_info=True)
        await asyncio.sleep(interval_seconds)


def start_cleanup_scheduler(interval_seconds: int | None = None):
    """Start the background sweep. Called from the FastAPI lifespan."""
    global _cleanup_task
    if _cleanup_task and not _cleanup_task.done():
        return
    _cleanup_task = asyncio.create_task(
        _cleanup_loop(interval_seconds or settings.STATE_CLEANUP_INTERVAL_SECONDS)
    )


def stop_cleanup_scheduler():
    global _cleanup_task
    if _cleanup_task:
        _cleanup_task.cancel()
        _cleanup_task = None
        logger.info("[StateCleanup] Scheduler stopped")
