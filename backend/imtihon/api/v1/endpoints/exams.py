"""Exam session endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from imtihon.core.dependencies import CurrentUser, DbSession, RequestLanguage
from imtihon.models.session import ExamStatus
from imtihon.schemas.exam import (
    AnswerCheckOut,
    AnswerIn,
    AutoSaveRequest,
    CheckAnswerRequest,
    MarathonStartRequest,
    PackageStartRequest,
    ResultView,
    SessionHistoryResponse,
    SessionSummaryOut,
    SessionView,
    StatisticsView,
    SubmitRequest,
    TicketStartRequest,
)
from imtihon.services.exam_engine import (
    AnswerInput,
    abandon_session,
    auto_save,
    check_answer,
    get_active_session,
    get_result,
    get_session,
    list_history,
    start_session,
    submit_session,
)
from imtihon.services.exam_views import (
    build_answer_check,
    build_result_view,
    build_session_view,
    build_statistics_view,
)
from imtihon.services.starters import MarathonCriteria, PackageCriteria, TicketCriteria

router = APIRouter()


def _to_inputs(answers: list[AnswerIn]) -> list[AnswerInput]:
    return [
        AnswerInput(
            question_id=a.question_id,
            selected_option_index=a.selected_option_index,
            time_spent_seconds=a.time_spent_seconds,
        )
        for a in answers
    ]


# ============================================================================
# Start
# ============================================================================


@router.post("/packages/start", response_model=SessionView, status_code=status.HTTP_201_CREATED)
async def start_package_exam(
    payload: PackageStartRequest,
    db: DbSession,
    current_user: CurrentUser,
    language: RequestLanguage,
):
    """Start a session from a curated package, in stored question order."""
    session = await start_session(
        db,
        current_user.id,
        PackageCriteria(package_id=payload.package_id, duration_minutes=payload.duration_minutes),
        language=language,
        visible=payload.visible,
    )
    return build_session_view(db, session)


@router.post("/marathon/start", response_model=SessionView, status_code=status.HTTP_201_CREATED)
async def start_marathon_exam(
    payload: MarathonStartRequest,
    db: DbSession,
    current_user: CurrentUser,
    language: RequestLanguage,
):
    """Start a marathon: random draw without replacement, optional topic filter."""
    session = await start_session(
        db,
        current_user.id,
        MarathonCriteria(
            question_count=payload.question_count,
            topic_id=payload.topic_id,
            duration_minutes=payload.duration_minutes,
            passing_score=payload.passing_score,
        ),
        language=language,
        visible=payload.visible,
    )
    return build_session_view(db, session)


@router.post("/tickets/start", response_model=SessionView, status_code=status.HTTP_201_CREATED)
async def start_ticket_exam(
    payload: TicketStartRequest,
    db: DbSession,
    current_user: CurrentUser,
    language: RequestLanguage,
):
    """Start a session from a fixed ticket."""
    session = await start_session(
        db,
        current_user.id,
        TicketCriteria(ticket_id=payload.ticket_id),
        language=language,
        visible=payload.visible,
    )
    return build_session_view(db, session)


# ============================================================================
# Reads
# ============================================================================


@router.get("/active", response_model=SessionView | None)
async def get_active_exam(
    db: DbSession,
    current_user: CurrentUser,
):
    """Latest live session for resume, or null."""
    session = await get_active_session(db, current_user.id)
    if session is None:
        return None
    return build_session_view(db, session)


@router.get("/history", response_model=SessionHistoryResponse)
async def get_exam_history(
    db: DbSession,
    current_user: CurrentUser,
    status_filter: Annotated[ExamStatus | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    """The caller's sessions, newest first."""
    sessions, total = await list_history(
        db, current_user.id, status=status_filter, limit=limit, offset=offset
    )
    return SessionHistoryResponse(
        items=[SessionSummaryOut.model_validate(s) for s in sessions],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{session_id}", response_model=SessionView)
async def get_exam_session(
    session_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
):
    """Session state with saved answers. Applies lazy expiry."""
    session = await get_session(db, session_id, current_user.id)
    return build_session_view(db, session)


@router.get("/{session_id}/result", response_model=ResultView)
async def get_exam_result(
    session_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
):
    """Result of a graded session. 409 while the session is not finished."""
    session = await get_result(db, session_id, current_user.id)
    return build_result_view(db, session)


@router.get("/{session_id}/statistics", response_model=StatisticsView)
async def get_exam_statistics(
    session_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
):
    """Timing and share breakdown of a graded session. 409 while not finished."""
    session = await get_result(db, session_id, current_user.id)
    return build_statistics_view(db, session)


# ============================================================================
# Mutations
# ============================================================================


@router.post("/{session_id}/autosave", status_code=status.HTTP_204_NO_CONTENT)
async def autosave_exam(
    session_id: UUID,
    payload: AutoSaveRequest,
    db: DbSession,
    current_user: CurrentUser,
):
    """Save answers; no grading, no status change."""
    await auto_save(db, session_id, current_user.id, _to_inputs(payload.answers))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{session_id}/submit", response_model=ResultView)
async def submit_exam(
    session_id: UUID,
    payload: SubmitRequest,
    db: DbSession,
    current_user: CurrentUser,
):
    """Apply final answers and grade. A session is graded once."""
    session = await submit_session(db, session_id, current_user.id, _to_inputs(payload.answers))
    return build_result_view(db, session)


@router.post("/{session_id}/abandon", status_code=status.HTTP_204_NO_CONTENT)
async def abandon_exam(
    session_id: UUID,
    db: DbSession,
    current_user: CurrentUser,
):
    """Quit without grading."""
    await abandon_session(db, session_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{session_id}/check-answer", response_model=AnswerCheckOut)
async def check_exam_answer(
    session_id: UUID,
    payload: CheckAnswerRequest,
    db: DbSession,
    current_user: CurrentUser,
):
    """Instant right/wrong feedback in a visible-mode session. Nothing is saved."""
    session, answer, is_correct = await check_answer(
        db, session_id, current_user.id, payload.question_id, payload.selected_option_index
    )
    return build_answer_check(db, session, answer, payload.selected_option_index, is_correct)
