"""Read-only access to the question bank.

A question is usable when it is active and not soft-deleted. Callers receive
``PoolQuestion`` snapshots; the correct index captured here is what a new
session stores and later grades against.
"""

import random
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from imtihon.models.content import Question, package_questions, ticket_questions


@dataclass(frozen=True)
class PoolQuestion:
    """Question id plus the correct option index at read time."""

    id: int
    topic_id: int | None
    correct_index: int


def _usable(stmt, active_only: bool = True):
    stmt = stmt.where(Question.deleted.is_(False))
    if active_only:
        stmt = stmt.where(Question.is_active.is_(True))
    return stmt


def _snapshot(question: Question) -> PoolQuestion:
    return PoolQuestion(
        id=question.id,
        topic_id=question.topic_id,
        correct_index=question.correct_answer_index,
    )


def get_questions(
    db: Session,
    topic_id: int | None,
    count: int,
    active_only: bool = True,
    rng: random.Random | None = None,
) -> list[PoolQuestion]:
    """
    Draw up to ``count`` distinct questions uniformly at random.

    Args:
        db: Database session
        topic_id: Optional topic filter
        count: Number of questions wanted
        active_only: Skip inactive questions
        rng: Random source (tests pass a seeded one)

    Returns:
        Drawn questions in draw order; shorter than ``count`` when the pool is smaller
    """
    stmt = _usable(select(Question.id), active_only)
    if topic_id is not None:
        stmt = stmt.where(Question.topic_id == topic_id)
    eligible_ids = [row[0] for row in db.execute(stmt.order_by(Question.id)).all()]

    rng = rng or random.SystemRandom()
    drawn_ids = rng.sample(eligible_ids, min(count, len(eligible_ids)))
    by_id = get_questions_by_ids(db, drawn_ids, active_only)
    return [by_id[qid] for qid in drawn_ids if qid in by_id]


def get_questions_by_ids(
    db: Session, question_ids: list[int], active_only: bool = True
) -> dict[int, PoolQuestion]:
    """Usable questions among ``question_ids``, keyed by id."""
    if not question_ids:
        return {}
    stmt = _usable(select(Question).where(Question.id.in_(question_ids)), active_only)
    return {q.id: _snapshot(q) for q in db.execute(stmt).scalars().all()}


def get_package_questions(db: Session, package_id: int) -> list[PoolQuestion]:
    """Usable questions of a package in stored order."""
    stmt = (
        select(package_questions.c.question_id)
        .where(package_questions.c.package_id == package_id)
        .order_by(package_questions.c.position, package_questions.c.question_id)
    )
    ordered_ids = [row[0] for row in db.execute(stmt).all()]
    by_id = get_questions_by_ids(db, ordered_ids)
    return [by_id[qid] for qid in ordered_ids if qid in by_id]


def get_ticket_questions(db: Session, ticket_id: int) -> list[PoolQuestion]:
    """Usable questions of a ticket in stored order."""
    stmt = (
        select(ticket_questions.c.question_id)
        .where(ticket_questions.c.ticket_id == ticket_id)
        .order_by(ticket_questions.c.position, ticket_questions.c.question_id)
    )
    ordered_ids = [row[0] for row in db.execute(stmt).all()]
    by_id = get_questions_by_ids(db, ordered_ids)
    return [by_id[qid] for qid in ordered_ids if qid in by_id]
