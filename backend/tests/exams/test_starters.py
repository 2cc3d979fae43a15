"""Tests for package, marathon and ticket starters."""

import random

import pytest

from imtihon.core.app_exceptions import (
    InsufficientQuestionsError,
    InvalidRequestError,
    NotFoundError,
)
from imtihon.core.config import settings
from imtihon.models.session import ExamSource
from imtihon.services.starters import (
    MarathonCriteria,
    PackageCriteria,
    TicketCriteria,
    plan_session,
)
from tests.helpers.seed import (
    create_package,
    create_questions,
    create_ticket,
    create_topic,
)


# ============================================================================
# Package
# ============================================================================


def test_package_keeps_stored_order(db, published_questions):
    chosen = list(reversed(published_questions[:12]))
    package = create_package(db, chosen, question_count=10, duration_minutes=25, passing_score=80)

    plan = plan_session(db, PackageCriteria(package_id=package.id))

    assert plan.source == ExamSource.PACKAGE
    assert [q.id for q in plan.questions] == [q.id for q in chosen[:10]]
    assert [q.correct_index for q in plan.questions] == [
        q.correct_answer_index for q in chosen[:10]
    ]
    assert plan.duration_minutes == 25
    assert plan.passing_score == 80
    assert plan.package_id == package.id
    assert plan.ticket_id is None


def test_package_duration_override(db, published_questions):
    package = create_package(db, published_questions[:10], duration_minutes=25)

    plan = plan_session(db, PackageCriteria(package_id=package.id, duration_minutes=40))

    assert plan.duration_minutes == 40


def test_package_duration_override_out_of_bounds(db, published_questions):
    package = create_package(db, published_questions[:10])

    with pytest.raises(InvalidRequestError):
        plan_session(db, PackageCriteria(package_id=package.id, duration_minutes=500))


def test_package_with_soft_deleted_question_is_insufficient(db, published_questions):
    package = create_package(db, published_questions[:10])
    published_questions[3].deleted = True
    db.commit()

    with pytest.raises(InsufficientQuestionsError) as exc_info:
        plan_session(db, PackageCriteria(package_id=package.id))

    assert exc_info.value.status_code == 422
    assert exc_info.value.details == {"available": 9, "required": 10}


@pytest.mark.parametrize("flags", [{"is_active": False}, {"deleted": True}])
def test_hidden_package_is_not_found(db, published_questions, flags):
    package = create_package(db, published_questions[:10], **flags)

    with pytest.raises(NotFoundError) as exc_info:
        plan_session(db, PackageCriteria(package_id=package.id))

    assert exc_info.value.code == "PACKAGE_NOT_FOUND"


def test_unknown_package_is_not_found(db):
    with pytest.raises(NotFoundError) as exc_info:
        plan_session(db, PackageCriteria(package_id=9999))

    assert exc_info.value.code == "PACKAGE_NOT_FOUND"


# ============================================================================
# Marathon
# ============================================================================


def test_marathon_draws_distinct_questions_from_topic(db, topic, published_questions):
    other_topic = create_topic(db, code="RULES")
    create_questions(db, other_topic, 10)

    plan = plan_session(
        db, MarathonCriteria(question_count=20, topic_id=topic.id), rng=random.Random(7)
    )

    ids = [q.id for q in plan.questions]
    assert len(ids) == 20
    assert len(set(ids)) == 20
    assert all(q.topic_id == topic.id for q in plan.questions)
    assert plan.source == ExamSource.MARATHON
    assert plan.topic_id == topic.id
    assert plan.package_id is None


def test_marathon_same_seed_same_draw(db, published_questions):
    first = plan_session(db, MarathonCriteria(question_count=10), rng=random.Random(42))
    second = plan_session(db, MarathonCriteria(question_count=10), rng=random.Random(42))

    assert [q.id for q in first.questions] == [q.id for q in second.questions]


def test_marathon_pool_too_small(db):
    small_topic = create_topic(db, code="FIRST_AID")
    create_questions(db, small_topic, 15)

    with pytest.raises(InsufficientQuestionsError) as exc_info:
        plan_session(db, MarathonCriteria(question_count=20, topic_id=small_topic.id))

    assert exc_info.value.details == {"available": 15, "required": 20}


def test_marathon_skips_inactive_and_deleted_questions(db):
    small_topic = create_topic(db, code="PARKING")
    questions = create_questions(db, small_topic, 7)
    questions[0].is_active = False
    questions[1].deleted = True
    db.commit()

    with pytest.raises(InsufficientQuestionsError):
        plan_session(db, MarathonCriteria(question_count=6, topic_id=small_topic.id))

    plan = plan_session(db, MarathonCriteria(question_count=5, topic_id=small_topic.id))
    assert {q.id for q in plan.questions} == {q.id for q in questions[2:]}


@pytest.mark.parametrize("count,expected_minutes", [(5, 10), (30, 30)])
def test_marathon_default_duration(db, published_questions, count, expected_minutes):
    plan = plan_session(db, MarathonCriteria(question_count=count))

    assert plan.duration_minutes == expected_minutes
    assert plan.passing_score == 70


def test_marathon_passing_score_follows_settings(db, published_questions, monkeypatch):
    monkeypatch.setattr(settings, "MARATHON_DEFAULT_PASSING_SCORE", 60)

    plan = plan_session(db, MarathonCriteria(question_count=10))

    assert plan.passing_score == 60


def test_marathon_overrides(db, published_questions):
    plan = plan_session(
        db, MarathonCriteria(question_count=10, duration_minutes=45, passing_score=85)
    )

    assert plan.duration_minutes == 45
    assert plan.passing_score == 85


@pytest.mark.parametrize("count", [0, 4, 101])
def test_marathon_count_out_of_bounds(db, published_questions, count):
    with pytest.raises(InvalidRequestError) as exc_info:
        plan_session(db, MarathonCriteria(question_count=count))

    assert exc_info.value.code == "VALIDATION_ERROR"


def test_marathon_unknown_topic(db, published_questions):
    with pytest.raises(NotFoundError) as exc_info:
        plan_session(db, MarathonCriteria(question_count=10, topic_id=999))

    assert exc_info.value.code == "TOPIC_NOT_FOUND"


# ============================================================================
# Ticket
# ============================================================================


def test_ticket_uses_all_questions_in_order(db, topic, published_questions):
    chosen = published_questions[5:17]
    ticket = create_ticket(db, chosen, ticket_number=3, topic_id=topic.id)

    plan = plan_session(db, TicketCriteria(ticket_id=ticket.id))

    assert plan.source == ExamSource.TICKET
    assert [q.id for q in plan.questions] == [q.id for q in chosen]
    assert plan.duration_minutes == 15
    assert plan.passing_score == 70
    assert plan.ticket_id == ticket.id
    assert plan.topic_id == topic.id


def test_ticket_below_minimum_is_insufficient(db, published_questions):
    ticket = create_ticket(db, published_questions[:8], target_question_count=8)

    with pytest.raises(InsufficientQuestionsError) as exc_info:
        plan_session(db, TicketCriteria(ticket_id=ticket.id))

    assert exc_info.value.details == {"available": 8, "required": 10}


def test_ticket_target_above_minimum(db, published_questions):
    ticket = create_ticket(db, published_questions[:15], target_question_count=20)

    with pytest.raises(InsufficientQuestionsError) as exc_info:
        plan_session(db, TicketCriteria(ticket_id=ticket.id))

    assert exc_info.value.details == {"available": 15, "required": 20}


@pytest.mark.parametrize("flags", [{"is_active": False}, {"deleted": True}])
def test_hidden_ticket_is_not_found(db, published_questions, flags):
    ticket = create_ticket(db, published_questions[:10], **flags)

    with pytest.raises(NotFoundError) as exc_info:
        plan_session(db, TicketCriteria(ticket_id=ticket.id))

    assert exc_info.value.code == "TICKET_NOT_FOUND"
