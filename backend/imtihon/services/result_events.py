"""Hand-off of finalized sessions to statistics consumers.

Listeners run after the terminal transition is committed. A failing listener
is logged and skipped; it never affects the session or the other listeners.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from imtihon.core.logging import get_logger
from imtihon.models.session import ExamSession, ExamSource, ExamStatus

logger = get_logger(__name__)


@dataclass(frozen=True)
class SessionFinalized:
    """Terminal session summary pushed to listeners."""

    session_id: UUID
    user_id: UUID
    source: ExamSource
    status: ExamStatus
    package_id: int | None
    ticket_id: int | None
    topic_id: int | None
    total_questions: int
    answered_count: int
    correct_count: int
    wrong_count: int
    percentage: float
    is_passed: bool
    duration_seconds: int | None
    finished_at: datetime | None
    # "user" for an explicit submit, "expiry" for lazy or swept expiry
    trigger: str

    @classmethod
    def from_session(cls, session: ExamSession, trigger: str) -> "SessionFinalized":
        return cls(
            session_id=session.id,
            user_id=session.user_id,
            source=session.source,
            status=session.status,
            package_id=session.package_id,
            ticket_id=session.ticket_id,
            topic_id=session.topic_id,
            total_questions=session.total_questions,
            answered_count=session.answered_count or 0,
            correct_count=session.correct_count or 0,
            wrong_count=session.wrong_count or 0,
            percentage=session.percentage or 0.0,
            is_passed=bool(session.is_passed),
            duration_seconds=session.duration_seconds,
            finished_at=session.finished_at,
            trigger=trigger,
        )


Listener = Callable[[SessionFinalized], None]

_listeners: list[Listener] = []


def subscribe(listener: Listener) -> Listener:
    """Register a listener. Usable as a decorator."""
    if listener not in _listeners:
        _listeners.append(listener)
    return listener


def unsubscribe(listener: Listener) -> None:
    if listener in _listeners:
        _listeners.remove(listener)


def publish(event: SessionFinalized) -> int:
    """Deliver ``event`` to every listener. Returns the number that succeeded."""
    delivered = 0
    for listener in list(_listeners):
        try:
            listener(event)
            delivered += 1
        except Exception as e:
            logger.warning(
                "Result listener failed",
                extra={
                    "session_id": str(event.session_id),
                    "listener": getattr(listener, "__name__", repr(listener)),
                    "error": str(e),
                },
                exc_info=True,
            )
    return delivered


@subscribe
def log_finalized_session(event: SessionFinalized) -> None:
    """Default consumer: one structured log record per graded session."""
    logger.info(
        "exam_session_finalized",
        extra={
            "event": "exam_session_finalized",
            "session_id": str(event.session_id),
            "user_id": str(event.user_id),
            "source": event.source.value,
            "status": event.status.value,
            "total_questions": event.total_questions,
            "correct_count": event.correct_count,
            "percentage": event.percentage,
            "is_passed": event.is_passed,
            "trigger": event.trigger,
        },
    )
