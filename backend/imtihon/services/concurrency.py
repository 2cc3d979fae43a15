"""Per-user concurrency policy for starting sessions.

One policy is active per deployment (``EXAM_CONCURRENCY_POLICY``):

- ``single_active``: a user may hold at most one live IN_PROGRESS session.
  The user row is locked while checking so two concurrent starts serialize.
  Stale sessions found during the check are expired first.
- ``multi_session``: no start-time guard. Each operation names its session
  and ownership is enforced per call.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from imtihon.core.app_exceptions import ConflictError, NotFoundError
from imtihon.core.config import settings
from imtihon.models.session import ExamSession, ExamStatus
from imtihon.models.user import User

SINGLE_ACTIVE = "single_active"
MULTI_SESSION = "multi_session"


def lock_user(db: Session, user_id: UUID) -> User:
    stmt = select(User).where(User.id == user_id).with_for_update()
    user = db.execute(stmt).scalar_one_or_none()
    if user is None:
        raise NotFoundError("USER_NOT_FOUND", "User not found", {"user_id": str(user_id)})
    return user


def in_progress_sessions(db: Session, user_id: UUID) -> list[ExamSession]:
    stmt = (
        select(ExamSession)
        .where(ExamSession.user_id == user_id, ExamSession.status == ExamStatus.IN_PROGRESS)
        .order_by(ExamSession.started_at.desc())
    )
    return list(db.execute(stmt).scalars().all())


def guard_new_session(
    db: Session,
    user_id: UUID,
    now: datetime,
    policy: str | None = None,
) -> list[ExamSession]:
    """
    Apply the start policy inside the caller's transaction.

    Returns:
        IN_PROGRESS sessions of the user that are already past their deadline;
        the caller expires them before creating the new session

    Raises:
        ConflictError: ACTIVE_SESSION_EXISTS under ``single_active``
    """
    policy = policy or settings.EXAM_CONCURRENCY_POLICY
    if policy != SINGLE_ACTIVE:
        return []

    lock_user(db, user_id)
    stale: list[ExamSession] = []
    for session in in_progress_sessions(db, user_id):
        if session.is_expired(now):
            stale.append(session)
            continue
        raise ConflictError(
            "ACTIVE_SESSION_EXISTS",
            "An exam session is already in progress",
            {"session_id": str(session.id), "expires_at": session.expires_at.isoformat()},
        )
    return stale
