"""In-process periodic expiry sweep, started from the application lifespan."""

import asyncio
import logging

from imtihon.core.config import settings
from imtihon.jobs.expiry_sweeper import expire_overdue_sessions

logger = logging.getLogger(__name__)


async def run_expiry_sweeper(interval_seconds: int | None = None) -> None:
    """Sweep forever; each run happens on a worker thread. Cancel to stop."""
    interval = interval_seconds or settings.EXPIRY_SWEEP_INTERVAL_SECONDS
    logger.info("Expiry sweeper started", extra={"interval_seconds": interval})
    while True:
        try:
            await asyncio.to_thread(expire_overdue_sessions)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Expiry sweep failed", extra={"error": str(e)}, exc_info=True)
        await asyncio.sleep(interval)


def start_expiry_sweeper() -> asyncio.Task | None:
    """Schedule the sweeper on the running loop when enabled."""
    if not settings.EXPIRY_SWEEP_ENABLED or settings.ENV == "test":
        return None
    return asyncio.create_task(run_expiry_sweeper(), name="expiry-sweeper")


async def stop_expiry_sweeper(task: asyncio.Task | None) -> None:
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    logger.info("Expiry sweeper stopped")
