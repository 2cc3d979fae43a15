"""Terminal transitions of an exam session.

Every terminal transition is one conditional UPDATE guarded by
``status = IN_PROGRESS``. Request handlers and the expiry sweeper share these
functions and nothing else, so whichever actor commits first wins and the
other observes zero affected rows. Callers own the transaction.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from imtihon.models.session import ExamAnswer, ExamSession, ExamStatus
from imtihon.services.grader import GradeResult, grade


def lock_session(db: Session, session_id: UUID) -> ExamSession | None:
    """Load a session row FOR UPDATE, refreshing any stale identity-map copy."""
    stmt = (
        select(ExamSession)
        .where(ExamSession.id == session_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.execute(stmt).scalar_one_or_none()


def load_answers(db: Session, session_id: UUID) -> list[ExamAnswer]:
    """Answer records of a session in question order."""
    stmt = (
        select(ExamAnswer)
        .where(ExamAnswer.session_id == session_id)
        .order_by(ExamAnswer.question_order)
        .execution_options(populate_existing=True)
    )
    return list(db.execute(stmt).scalars().all())


def _transition(db: Session, session_id: UUID, values: dict) -> bool:
    stmt = (
        update(ExamSession)
        .where(ExamSession.id == session_id, ExamSession.status == ExamStatus.IN_PROGRESS)
        .values(**values)
    )
    return db.execute(stmt).rowcount == 1


def finalize_graded(
    db: Session,
    session: ExamSession,
    terminal_status: ExamStatus,
    now: datetime,
) -> GradeResult | None:
    """
    Grade ``session`` and move it to COMPLETED or EXPIRED.

    Returns:
        The grade, or None when another actor already left IN_PROGRESS
    """
    if terminal_status not in (ExamStatus.COMPLETED, ExamStatus.EXPIRED):
        raise ValueError(f"{terminal_status} is not a graded status")

    answers = load_answers(db, session.id)
    result = grade(
        answers,
        total_questions=session.total_questions,
        passing_score=session.passing_score,
        started_at=session.started_at,
        finished_at=now,
    )

    won = _transition(
        db,
        session.id,
        {
            "status": terminal_status,
            "finished_at": now,
            "answered_count": result.answered_count,
            "correct_count": result.correct_count,
            "wrong_count": result.wrong_count,
            "score": result.score,
            "percentage": result.percentage,
            "is_passed": result.is_passed,
            "duration_seconds": result.duration_seconds,
        },
    )
    if not won:
        return None

    for answer, correct in zip(answers, result.correctness):
        answer.is_correct = correct
    db.flush()
    return result


def mark_abandoned(db: Session, session: ExamSession, now: datetime) -> bool:
    """Move ``session`` to ABANDONED without grading."""
    return _transition(db, session.id, {"status": ExamStatus.ABANDONED, "finished_at": now})
