"""Exam session engine: start, auto-save, submit, abandon, expiry and resume."""

import random
from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from imtihon.core import clock
from imtihon.core.app_exceptions import (
    AlreadyFinalizedError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    SessionExpiredError,
)
from imtihon.core.logging import get_logger
from imtihon.models.content import Language
from imtihon.models.session import ExamAnswer, ExamSession, ExamStatus
from imtihon.services import result_events
from imtihon.services.concurrency import guard_new_session, in_progress_sessions
from imtihon.services.starters import StartCriteria, plan_session
from imtihon.services.transitions import (
    finalize_graded,
    load_answers,
    lock_session,
    mark_abandoned,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class AnswerInput:
    """One answer slot update from auto-save or submit."""

    question_id: int
    selected_option_index: int | None
    time_spent_seconds: int | None = None


# ============================================================================
# Helpers
# ============================================================================


def _publish(session: ExamSession, trigger: str) -> None:
    result_events.publish(result_events.SessionFinalized.from_session(session, trigger))


def _owned(session: ExamSession | None, session_id: UUID, user_id: UUID) -> ExamSession:
    if session is None:
        raise NotFoundError(
            "SESSION_NOT_FOUND", "Exam session not found", {"session_id": str(session_id)}
        )
    if session.user_id != user_id:
        raise ForbiddenError("SESSION_FORBIDDEN", "Not authorized to access this exam session")
    return session


def get_user_session(
    db: Session, session_id: UUID, user_id: UUID, for_update: bool = False
) -> ExamSession:
    """Get session and verify ownership."""
    if for_update:
        session = lock_session(db, session_id)
    else:
        session = db.get(ExamSession, session_id)
    return _owned(session, session_id, user_id)


def _expire_locked(db: Session, session: ExamSession) -> bool:
    """Finalize a locked, overdue session as EXPIRED and commit."""
    now = clock.utcnow()
    result = finalize_graded(db, session, ExamStatus.EXPIRED, now)
    if result is None:
        db.rollback()
        return False
    db.commit()
    logger.info(
        "Exam session expired on read",
        extra={
            "session_id": str(session.id),
            "user_id": str(session.user_id),
            "correct_count": result.correct_count,
            "total_questions": session.total_questions,
        },
    )
    _publish(session, trigger="expiry")
    return True


def _reject_terminal(session: ExamSession) -> None:
    """Raise the conflict matching a session that has left IN_PROGRESS."""
    if session.status == ExamStatus.ABANDONED:
        raise ConflictError(
            "SESSION_ABANDONED",
            "Exam session was abandoned",
            {"session_id": str(session.id)},
        )
    if session.status == ExamStatus.EXPIRED:
        raise SessionExpiredError(session.id, session.expires_at)
    if session.status != ExamStatus.IN_PROGRESS:
        raise AlreadyFinalizedError(session.id, session.status.value)


def _reject_if_not_mutable(db: Session, session: ExamSession) -> None:
    """Raise unless the locked ``session`` still accepts answers."""
    _reject_terminal(session)
    if session.is_expired(clock.utcnow()):
        expires_at = session.expires_at
        _expire_locked(db, session)
        raise SessionExpiredError(session.id, expires_at)


def _apply_answers(
    db: Session, session: ExamSession, entries: list[AnswerInput]
) -> int:
    """
    Overwrite answer slots from ``entries``; last entry per question wins.

    Every entry is validated before anything is written. ``answered_at`` only
    moves when the selection actually changes, so re-applying the same
    payload leaves the records untouched.

    Returns:
        Number of slots whose selection changed
    """
    if not entries:
        return 0

    records = {a.question_id: a for a in load_answers(db, session.id)}
    unknown = sorted({e.question_id for e in entries if e.question_id not in records})
    if unknown:
        raise NotFoundError(
            "QUESTION_NOT_IN_SESSION",
            "Question is not part of this exam session",
            {"session_id": str(session.id), "question_ids": unknown},
        )

    latest: dict[int, AnswerInput] = {}
    for entry in entries:
        latest[entry.question_id] = entry

    now = clock.utcnow()
    changed = 0
    for question_id, entry in latest.items():
        record = records[question_id]
        if record.selected_option_index != entry.selected_option_index:
            record.selected_option_index = entry.selected_option_index
            record.answered_at = now if entry.selected_option_index is not None else None
            changed += 1
        record.time_spent_seconds = entry.time_spent_seconds
    session.answered_count = sum(
        1 for record in records.values() if record.selected_option_index is not None
    )
    db.flush()
    return changed


# ============================================================================
# Start
# ============================================================================


async def start_session(
    db: Session,
    user_id: UUID,
    criteria: StartCriteria,
    language: Language = Language.UZL,
    visible: bool = False,
    rng: random.Random | None = None,
) -> ExamSession:
    """
    Create an IN_PROGRESS session with all of its answer records.

    The session row and every answer record are committed together; any
    failure rolls the whole start back.

    Args:
        db: Database session
        user_id: Owner
        criteria: PackageCriteria, MarathonCriteria or TicketCriteria
        language: Display language captured for rendering
        visible: Disclosure mode captured for rendering
        rng: Random source for marathon draws

    Returns:
        The new session
    """
    now = clock.utcnow()
    try:
        stale = guard_new_session(db, user_id, now)
        expired_stale = []
        for old in stale:
            if finalize_graded(db, old, ExamStatus.EXPIRED, now) is not None:
                expired_stale.append(old)

        plan = plan_session(db, criteria, rng=rng)

        session = ExamSession(
            user_id=user_id,
            source=plan.source,
            package_id=plan.package_id,
            ticket_id=plan.ticket_id,
            topic_id=plan.topic_id,
            status=ExamStatus.IN_PROGRESS,
            language=language,
            visible_mode=visible,
            started_at=now,
            expires_at=now + timedelta(minutes=plan.duration_minutes),
            duration_minutes=plan.duration_minutes,
            passing_score=plan.passing_score,
            total_questions=len(plan.questions),
            answered_count=0,
        )
        session.answers = [
            ExamAnswer(
                question_id=question.id,
                question_order=order,
                correct_option_index=question.correct_index,
            )
            for order, question in enumerate(plan.questions, 1)
        ]
        db.add(session)
        db.commit()
    except Exception:
        db.rollback()
        raise

    for old in expired_stale:
        _publish(old, trigger="expiry")

    logger.info(
        "Exam session started",
        extra={
            "session_id": str(session.id),
            "user_id": str(user_id),
            "source": session.source.value,
            "total_questions": session.total_questions,
            "duration_minutes": session.duration_minutes,
            "visible": visible,
        },
    )
    return session


# ============================================================================
# Reads
# ============================================================================


async def check_and_expire_session(db: Session, session: ExamSession) -> ExamSession:
    """Apply lazy expiry: an overdue IN_PROGRESS session is finalized as EXPIRED."""
    if session.status != ExamStatus.IN_PROGRESS or not session.is_expired(clock.utcnow()):
        return session

    locked = lock_session(db, session.id)
    if locked.status == ExamStatus.IN_PROGRESS and locked.is_expired(clock.utcnow()):
        _expire_locked(db, locked)
    else:
        db.rollback()
    db.refresh(locked)
    return locked


async def get_session(db: Session, session_id: UUID, user_id: UUID) -> ExamSession:
    """Owned session with lazy expiry applied."""
    session = get_user_session(db, session_id, user_id)
    return await check_and_expire_session(db, session)


async def get_active_session(db: Session, user_id: UUID) -> ExamSession | None:
    """Most recent live IN_PROGRESS session of the user, for resume."""
    for session in in_progress_sessions(db, user_id):
        session = await check_and_expire_session(db, session)
        if session.status == ExamStatus.IN_PROGRESS:
            return session
    return None


async def get_result(db: Session, session_id: UUID, user_id: UUID) -> ExamSession:
    """Graded session; fails with Conflict while not yet graded."""
    session = await get_session(db, session_id, user_id)
    if session.status.is_graded:
        return session
    if session.status == ExamStatus.ABANDONED:
        raise ConflictError(
            "SESSION_ABANDONED",
            "Exam session was abandoned and has no result",
            {"session_id": str(session.id)},
        )
    raise ConflictError(
        "SESSION_NOT_FINISHED",
        "Exam session is still in progress",
        {"session_id": str(session.id), "expires_at": session.expires_at.isoformat()},
    )


async def check_answer(
    db: Session,
    session_id: UUID,
    user_id: UUID,
    question_id: int,
    selected_option_index: int,
) -> tuple[ExamSession, ExamAnswer, bool]:
    """
    Instant feedback for one option in a visible-mode session.

    Correctness comes from the index captured at start, never from the live
    question. Nothing is saved; the learner still auto-saves or submits.

    Returns:
        (session, answer record, whether ``selected_option_index`` is correct)
    """
    session = await get_session(db, session_id, user_id)
    if not session.visible_mode:
        raise ForbiddenError(
            "ANSWER_CHECK_NOT_ALLOWED", "Answer checking is only available in visible mode"
        )
    _reject_terminal(session)

    stmt = select(ExamAnswer).where(
        ExamAnswer.session_id == session.id, ExamAnswer.question_id == question_id
    )
    record = db.execute(stmt).scalar_one_or_none()
    if record is None:
        raise NotFoundError(
            "QUESTION_NOT_IN_SESSION",
            "Question is not part of this exam session",
            {"session_id": str(session.id), "question_ids": [question_id]},
        )

    logger.debug(
        "Exam answer checked",
        extra={"session_id": str(session.id), "question_id": question_id},
    )
    return session, record, record.correct_option_index == selected_option_index


async def list_history(
    db: Session,
    user_id: UUID,
    status: ExamStatus | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[ExamSession], int]:
    """The user's sessions, newest first."""
    base = select(ExamSession).where(ExamSession.user_id == user_id)
    if status is not None:
        base = base.where(ExamSession.status == status)

    total = db.execute(select(func.count()).select_from(base.subquery())).scalar_one()
    stmt = base.order_by(ExamSession.started_at.desc()).limit(limit).offset(offset)
    return list(db.execute(stmt).scalars().all()), total


# ============================================================================
# Mutations
# ============================================================================


async def auto_save(
    db: Session, session_id: UUID, user_id: UUID, entries: list[AnswerInput]
) -> ExamSession:
    """Save answers without grading or changing status."""
    session = get_user_session(db, session_id, user_id, for_update=True)
    try:
        _reject_if_not_mutable(db, session)
        changed = _apply_answers(db, session, entries)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.debug(
        "Exam answers auto-saved",
        extra={"session_id": str(session.id), "entries": len(entries), "changed": changed},
    )
    return session


async def submit_session(
    db: Session, session_id: UUID, user_id: UUID, entries: list[AnswerInput]
) -> ExamSession:
    """
    Apply the final answers and grade.

    A session is graded exactly once. Resubmitting a COMPLETED or EXPIRED
    session raises AlreadyFinalizedError; an overdue session is finalized as
    EXPIRED from its saved answers and SessionExpiredError is raised.
    """
    session = get_user_session(db, session_id, user_id, for_update=True)
    if session.status.is_graded:
        db.rollback()
        raise AlreadyFinalizedError(session.id, session.status.value)

    try:
        _reject_if_not_mutable(db, session)
        _apply_answers(db, session, entries)
        result = finalize_graded(db, session, ExamStatus.COMPLETED, clock.utcnow())
        if result is None:
            db.rollback()
            db.refresh(session)
            raise AlreadyFinalizedError(session.id, session.status.value)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Exam session submitted",
        extra={
            "session_id": str(session.id),
            "user_id": str(user_id),
            "correct_count": result.correct_count,
            "total_questions": session.total_questions,
            "percentage": result.percentage,
            "is_passed": result.is_passed,
        },
    )
    _publish(session, trigger="user")
    return session


async def abandon_session(db: Session, session_id: UUID, user_id: UUID) -> ExamSession:
    """Quit an IN_PROGRESS session without grading."""
    session = get_user_session(db, session_id, user_id, for_update=True)
    try:
        _reject_if_not_mutable(db, session)
        if not mark_abandoned(db, session, clock.utcnow()):
            db.rollback()
            db.refresh(session)
            raise AlreadyFinalizedError(session.id, session.status.value)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Exam session abandoned",
        extra={"session_id": str(session.id), "user_id": str(user_id)},
    )
    return session
