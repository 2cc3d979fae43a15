"""Session starters: package, marathon and ticket.

Each starter turns its criteria into a ``StartPlan``: the ordered question
snapshots plus the duration and passing score the new session will carry.
``plan_session`` picks the starter from the criteria type. Starters only read;
the engine persists the plan.
"""

import random
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from imtihon.core.app_exceptions import (
    InsufficientQuestionsError,
    InvalidRequestError,
    NotFoundError,
)
from imtihon.core.config import settings
from imtihon.core.logging import get_logger
from imtihon.models.content import ExamPackage, Ticket, Topic
from imtihon.models.session import ExamSource
from imtihon.services.question_pool import (
    PoolQuestion,
    get_package_questions,
    get_questions,
    get_ticket_questions,
)

logger = get_logger(__name__)


# ============================================================================
# Criteria
# ============================================================================


@dataclass(frozen=True)
class PackageCriteria:
    package_id: int
    duration_minutes: int | None = None


@dataclass(frozen=True)
class MarathonCriteria:
    question_count: int
    topic_id: int | None = None
    duration_minutes: int | None = None
    passing_score: int | None = None


@dataclass(frozen=True)
class TicketCriteria:
    ticket_id: int


StartCriteria = PackageCriteria | MarathonCriteria | TicketCriteria


@dataclass(frozen=True)
class StartPlan:
    """Everything needed to create a session and its answer records."""

    source: ExamSource
    questions: list[PoolQuestion]
    duration_minutes: int
    passing_score: int
    package_id: int | None = None
    ticket_id: int | None = None
    topic_id: int | None = None


# ============================================================================
# Bounds
# ============================================================================


def _check_duration_override(duration_minutes: int | None) -> None:
    if duration_minutes is None:
        return
    low, high = settings.EXAM_MIN_DURATION_MINUTES, settings.EXAM_MAX_DURATION_MINUTES
    if not low <= duration_minutes <= high:
        raise InvalidRequestError(
            f"Duration must be between {low} and {high} minutes",
            {"field": "duration_minutes", "min": low, "max": high},
        )


def _check_passing_score(passing_score: int | None) -> None:
    if passing_score is not None and not 0 <= passing_score <= 100:
        raise InvalidRequestError(
            "Passing score must be between 0 and 100",
            {"field": "passing_score", "min": 0, "max": 100},
        )


# ============================================================================
# Starters
# ============================================================================


class PackageStarter:
    """Questions come from the package's stored association, in stored order."""

    def plan(self, db: Session, criteria: PackageCriteria) -> StartPlan:
        _check_duration_override(criteria.duration_minutes)

        package = db.get(ExamPackage, criteria.package_id)
        if package is None or package.deleted or not package.is_active:
            raise NotFoundError(
                "PACKAGE_NOT_FOUND",
                "Exam package not found",
                {"package_id": criteria.package_id},
            )

        questions = get_package_questions(db, package.id)
        required = package.question_count
        if len(questions) < required:
            logger.warning(
                "Package has fewer usable questions than declared",
                extra={
                    "package_id": package.id,
                    "available": len(questions),
                    "required": required,
                },
            )
            raise InsufficientQuestionsError(available=len(questions), required=required)

        return StartPlan(
            source=ExamSource.PACKAGE,
            questions=questions[:required],
            duration_minutes=criteria.duration_minutes or package.duration_minutes,
            passing_score=package.passing_score,
            package_id=package.id,
            topic_id=package.topic_id,
        )


@dataclass
class MarathonStarter:
    """N distinct usable questions drawn at random, optionally from one topic."""

    rng: random.Random | None = field(default=None)

    def plan(self, db: Session, criteria: MarathonCriteria) -> StartPlan:
        low, high = settings.MARATHON_MIN_QUESTIONS, settings.MARATHON_MAX_QUESTIONS
        if not low <= criteria.question_count <= high:
            raise InvalidRequestError(
                f"Question count must be between {low} and {high}",
                {"field": "question_count", "min": low, "max": high},
            )
        _check_duration_override(criteria.duration_minutes)
        _check_passing_score(criteria.passing_score)

        if criteria.topic_id is not None:
            topic = db.get(Topic, criteria.topic_id)
            if topic is None or not topic.is_active:
                raise NotFoundError(
                    "TOPIC_NOT_FOUND", "Topic not found", {"topic_id": criteria.topic_id}
                )

        questions = get_questions(
            db, criteria.topic_id, criteria.question_count, active_only=True, rng=self.rng
        )
        if len(questions) < criteria.question_count:
            raise InsufficientQuestionsError(
                available=len(questions), required=criteria.question_count
            )

        duration = criteria.duration_minutes or max(
            settings.MARATHON_MIN_DURATION_MINUTES, criteria.question_count
        )
        passing_score = (
            criteria.passing_score
            if criteria.passing_score is not None
            else settings.MARATHON_DEFAULT_PASSING_SCORE
        )
        return StartPlan(
            source=ExamSource.MARATHON,
            questions=questions,
            duration_minutes=duration,
            passing_score=passing_score,
            topic_id=criteria.topic_id,
        )


class TicketStarter:
    """The ticket's fixed question set in authored order."""

    def plan(self, db: Session, criteria: TicketCriteria) -> StartPlan:
        ticket = db.get(Ticket, criteria.ticket_id)
        if ticket is None or ticket.deleted or not ticket.is_active:
            raise NotFoundError(
                "TICKET_NOT_FOUND", "Ticket not found", {"ticket_id": criteria.ticket_id}
            )

        questions = get_ticket_questions(db, ticket.id)
        required = max(ticket.target_question_count or 0, settings.TICKET_MIN_QUESTIONS)
        if len(questions) < required:
            raise InsufficientQuestionsError(available=len(questions), required=required)

        return StartPlan(
            source=ExamSource.TICKET,
            questions=questions,
            duration_minutes=ticket.duration_minutes or settings.TICKET_DEFAULT_DURATION_MINUTES,
            passing_score=(
                ticket.passing_score
                if ticket.passing_score is not None
                else settings.TICKET_DEFAULT_PASSING_SCORE
            ),
            package_id=ticket.package_id,
            ticket_id=ticket.id,
            topic_id=ticket.topic_id,
        )


def plan_session(
    db: Session, criteria: StartCriteria, rng: random.Random | None = None
) -> StartPlan:
    """Dispatch ``criteria`` to its starter."""
    if isinstance(criteria, PackageCriteria):
        return PackageStarter().plan(db, criteria)
    if isinstance(criteria, MarathonCriteria):
        return MarathonStarter(rng=rng).plan(db, criteria)
    if isinstance(criteria, TicketCriteria):
        return TicketStarter().plan(db, criteria)
    raise TypeError(f"Unsupported start criteria: {type(criteria).__name__}")
