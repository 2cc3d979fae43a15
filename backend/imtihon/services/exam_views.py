"""Render sessions and results in the session's display language."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from imtihon.core import clock
from imtihon.models.content import Question
from imtihon.models.session import ExamAnswer, ExamSession, ExamSource, ExamStatus
from imtihon.schemas.exam import (
    AnswerCheckOut,
    AnswerResultOut,
    OptionOut,
    ResultView,
    SessionQuestionOut,
    SessionView,
    StatisticsView,
)
from imtihon.services.i18n import localize
from imtihon.services.transitions import load_answers


def _questions_by_id(db: Session, question_ids: list[int]) -> dict[int, Question]:
    if not question_ids:
        return {}
    stmt = select(Question).where(Question.id.in_(question_ids))
    return {q.id: q for q in db.execute(stmt).scalars().all()}


def _options(question: Question | None, language) -> list[OptionOut]:
    if question is None:
        return []
    return [
        OptionOut(index=option.option_index, text=localize(option, "text", language))
        for option in question.options
    ]


def _answer_times(answers: list[ExamAnswer]) -> list[int]:
    """Time spent on answered slots that reported one."""
    return [
        a.time_spent_seconds
        for a in answers
        if a.selected_option_index is not None and a.time_spent_seconds is not None
    ]


def _share(part: int, total: int) -> float:
    return part * 100.0 / total if total > 0 else 0.0


def build_session_view(db: Session, session: ExamSession) -> SessionView:
    """
    Session with questions and saved answers.

    The correct option index and explanation are included only for sessions
    started in visible mode; the index shown is the one captured at start.
    """
    language = session.language
    answers = load_answers(db, session.id)
    questions = _questions_by_id(db, [a.question_id for a in answers])

    items = []
    for answer in answers:
        question = questions.get(answer.question_id)
        item = SessionQuestionOut(
            order=answer.question_order,
            question_id=answer.question_id,
            text=localize(question, "text", language),
            image_url=question.image_url if question is not None else None,
            options=_options(question, language),
            selected_option_index=answer.selected_option_index,
            time_spent_seconds=answer.time_spent_seconds,
        )
        if session.visible_mode:
            item.correct_option_index = answer.correct_option_index
            item.explanation = localize(question, "explanation", language)
        items.append(item)

    remaining = 0
    if session.status == ExamStatus.IN_PROGRESS and session.expires_at is not None:
        remaining = max(0, int((session.expires_at - clock.utcnow()).total_seconds()))

    return SessionView(
        session_id=session.id,
        source=session.source,
        status=session.status,
        language=language,
        visible=session.visible_mode,
        package_id=session.package_id,
        package_name=localize(session.package, "name", language),
        ticket_id=session.ticket_id,
        ticket_number=session.ticket.ticket_number if session.ticket is not None else None,
        ticket_name=localize(session.ticket, "name", language),
        topic_id=session.topic_id,
        topic_name=localize(session.topic, "name", language),
        total_questions=session.total_questions,
        answered_count=sum(1 for a in answers if a.selected_option_index is not None),
        duration_minutes=session.duration_minutes,
        passing_score=session.passing_score,
        started_at=session.started_at,
        expires_at=session.expires_at,
        remaining_seconds=remaining,
        questions=items,
    )


def build_result_view(db: Session, session: ExamSession) -> ResultView:
    """Graded session with full per-question disclosure."""
    language = session.language
    answers = load_answers(db, session.id)
    questions = _questions_by_id(db, [a.question_id for a in answers])

    items = []
    for answer in answers:
        question = questions.get(answer.question_id)
        is_answered = answer.selected_option_index is not None
        items.append(
            AnswerResultOut(
                order=answer.question_order,
                question_id=answer.question_id,
                text=localize(question, "text", language),
                image_url=question.image_url if question is not None else None,
                options=_options(question, language),
                selected_option_index=answer.selected_option_index,
                correct_option_index=answer.correct_option_index,
                is_correct=bool(answer.is_correct),
                is_answered=is_answered,
                explanation=localize(question, "explanation", language),
                time_spent_seconds=answer.time_spent_seconds,
            )
        )

    answered = session.answered_count or 0
    timed = _answer_times(answers)
    return ResultView(
        session_id=session.id,
        source=session.source,
        status=session.status,
        package_id=session.package_id,
        package_name=localize(session.package, "name", language),
        ticket_id=session.ticket_id,
        ticket_number=session.ticket.ticket_number if session.ticket is not None else None,
        topic_id=session.topic_id,
        topic_name=localize(session.topic, "name", language),
        total_questions=session.total_questions,
        answered_count=answered,
        unanswered_count=session.total_questions - answered,
        correct_count=session.correct_count or 0,
        wrong_count=session.wrong_count or 0,
        score=session.score or 0,
        percentage=session.percentage or 0.0,
        is_passed=bool(session.is_passed),
        passing_score=session.passing_score,
        started_at=session.started_at,
        finished_at=session.finished_at,
        duration_seconds=session.duration_seconds,
        average_time_per_question=sum(timed) / len(timed) if timed else None,
        answers=items,
    )


def build_statistics_view(db: Session, session: ExamSession) -> StatisticsView:
    """Counts, shares and answer timings of a graded session."""
    timed = _answer_times(load_answers(db, session.id))
    total = session.total_questions
    answered = session.answered_count or 0
    correct = session.correct_count or 0
    return StatisticsView(
        session_id=session.id,
        source=session.source,
        status=session.status,
        is_marathon=session.source == ExamSource.MARATHON,
        total_questions=total,
        answered_count=answered,
        correct_count=correct,
        wrong_count=session.wrong_count or 0,
        unanswered_count=total - answered,
        score=session.score or 0,
        percentage=session.percentage or 0.0,
        is_passed=bool(session.is_passed),
        passing_score=session.passing_score,
        duration_seconds=session.duration_seconds,
        average_time_per_question=sum(timed) / len(timed) if timed else None,
        fastest_answer_seconds=min(timed, default=None),
        slowest_answer_seconds=max(timed, default=None),
        correct_percentage=_share(correct, total),
        unanswered_percentage=_share(total - answered, total),
    )


def build_answer_check(
    db: Session,
    session: ExamSession,
    answer: ExamAnswer,
    selected_option_index: int,
    is_correct: bool,
) -> AnswerCheckOut:
    question = db.get(Question, answer.question_id)
    return AnswerCheckOut(
        question_id=answer.question_id,
        selected_option_index=selected_option_index,
        is_correct=is_correct,
        correct_option_index=answer.correct_option_index,
        explanation=localize(question, "explanation", session.language),
    )
