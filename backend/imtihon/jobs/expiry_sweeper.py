"""Expiry sweep: finalize IN_PROGRESS sessions whose deadline has passed.

Each overdue session is graded from its saved answers in its own transaction.
A failure on one session is logged and rolled back; the rest of the batch
still runs. The sweep shares only the conditional status transition with
request handlers, so a session submitted meanwhile is simply skipped.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from imtihon.core import clock
from imtihon.core.config import settings
from imtihon.db.session import SessionLocal
from imtihon.models.session import ExamSession, ExamStatus
from imtihon.services import result_events
from imtihon.services.transitions import finalize_graded, lock_session

logger = logging.getLogger(__name__)

JOB_KEY = "expire_sessions"


def find_overdue_session_ids(db: Session, now: datetime, limit: int) -> list[UUID]:
    stmt = (
        select(ExamSession.id)
        .where(ExamSession.status == ExamStatus.IN_PROGRESS, ExamSession.expires_at < now)
        .order_by(ExamSession.expires_at)
        .limit(limit)
    )
    return [row[0] for row in db.execute(stmt).all()]


def _expire_one(db: Session, session_id: UUID, now: datetime) -> bool:
    session = lock_session(db, session_id)
    if session is None or session.status != ExamStatus.IN_PROGRESS or not session.is_expired(now):
        db.rollback()
        return False

    result = finalize_graded(db, session, ExamStatus.EXPIRED, now)
    if result is None:
        db.rollback()
        return False
    db.commit()

    result_events.publish(result_events.SessionFinalized.from_session(session, trigger="expiry"))
    return True


def expire_overdue_sessions(
    session_factory: Callable[[], Session] = SessionLocal,
    now: datetime | None = None,
    batch_size: int | None = None,
) -> dict[str, Any]:
    """
    Run one sweep.

    Args:
        session_factory: Creates database sessions (one per finalized session)
        now: Sweep time, defaults to the current time
        batch_size: Max sessions per sweep

    Returns:
        Statistics dictionary
    """
    now = now or clock.utcnow()
    batch_size = batch_size or settings.EXPIRY_SWEEP_BATCH_SIZE

    db = session_factory()
    try:
        candidate_ids = find_overdue_session_ids(db, now, batch_size)
    finally:
        db.close()

    expired = 0
    skipped = 0
    failed = 0
    for session_id in candidate_ids:
        db = session_factory()
        try:
            if _expire_one(db, session_id, now):
                expired += 1
            else:
                skipped += 1
        except Exception as e:
            db.rollback()
            failed += 1
            logger.error(
                "Failed to expire exam session",
                extra={"job": JOB_KEY, "session_id": str(session_id), "error": str(e)},
                exc_info=True,
            )
        finally:
            db.close()

    stats = {
        "scanned": len(candidate_ids),
        "expired": expired,
        "skipped": skipped,
        "failed": failed,
    }
    if candidate_ids:
        logger.info("Expiry sweep completed", extra={"job": JOB_KEY, **stats})

    return {"status": "success" if failed == 0 else "partial", **stats}
