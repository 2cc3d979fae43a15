"""Pydantic schemas for exam sessions."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from imtihon.models.content import Language
from imtihon.models.session import ExamSource, ExamStatus

# ============================================================================
# Start Requests
# ============================================================================


class PackageStartRequest(BaseModel):
    """Start a session from a curated package."""

    package_id: int = Field(..., description="Exam package ID")
    duration_minutes: int | None = Field(
        None, ge=1, description="Duration override in minutes (bounded by exam settings)"
    )
    visible: bool = Field(False, description="Disclose correct answers and explanations up front")


class MarathonStartRequest(BaseModel):
    """Start a marathon: random draw, optionally from one topic."""

    question_count: int = Field(..., ge=1, description="Number of questions to draw")
    topic_id: int | None = Field(None, description="Topic filter (optional)")
    duration_minutes: int | None = Field(None, ge=1, description="Duration override in minutes")
    passing_score: int | None = Field(None, ge=0, le=100, description="Passing score override")
    visible: bool = Field(False, description="Disclose correct answers and explanations up front")


class TicketStartRequest(BaseModel):
    """Start a session from a fixed ticket."""

    ticket_id: int = Field(..., description="Ticket ID")
    visible: bool = Field(False, description="Disclose correct answers and explanations up front")


# ============================================================================
# Answer Payloads
# ============================================================================

# selected_option_index is stored as SMALLINT; time spent is capped at one day
MAX_OPTION_INDEX = 32_767
MAX_TIME_SPENT_SECONDS = 86_400


class AnswerIn(BaseModel):
    """One answer slot update."""

    question_id: int
    selected_option_index: int | None = Field(
        None, ge=0, le=MAX_OPTION_INDEX, description="0-based, null clears"
    )
    time_spent_seconds: int | None = Field(None, ge=0, le=MAX_TIME_SPENT_SECONDS)


class AutoSaveRequest(BaseModel):
    """Incremental answer save."""

    answers: list[AnswerIn] = Field(..., max_length=500)


class SubmitRequest(BaseModel):
    """Final submission; answers are applied before grading."""

    answers: list[AnswerIn] = Field(default_factory=list, max_length=500)


class CheckAnswerRequest(BaseModel):
    """One option to check against the session's captured answer key."""

    question_id: int
    selected_option_index: int = Field(..., ge=0, le=MAX_OPTION_INDEX)


class AnswerCheckOut(BaseModel):
    question_id: int
    selected_option_index: int
    is_correct: bool
    correct_option_index: int
    explanation: str | None = None


# ============================================================================
# Session View
# ============================================================================


class OptionOut(BaseModel):
    """Answer option."""

    index: int
    text: str | None


class SessionQuestionOut(BaseModel):
    """Question slot in a running session."""

    order: int
    question_id: int
    text: str | None
    image_url: str | None = None
    options: list[OptionOut]
    selected_option_index: int | None = None
    time_spent_seconds: int | None = None
    # Only in visible mode
    correct_option_index: int | None = None
    explanation: str | None = None


class SessionView(BaseModel):
    """Running session with its questions."""

    session_id: UUID
    source: ExamSource
    status: ExamStatus
    language: Language
    visible: bool
    package_id: int | None = None
    package_name: str | None = None
    ticket_id: int | None = None
    ticket_number: int | None = None
    ticket_name: str | None = None
    topic_id: int | None = None
    topic_name: str | None = None
    total_questions: int
    answered_count: int
    duration_minutes: int
    passing_score: int
    started_at: datetime | None
    expires_at: datetime | None
    remaining_seconds: int
    questions: list[SessionQuestionOut]


# ============================================================================
# Result View
# ============================================================================


class AnswerResultOut(BaseModel):
    """Per-question outcome."""

    order: int
    question_id: int
    text: str | None
    image_url: str | None = None
    options: list[OptionOut]
    selected_option_index: int | None
    correct_option_index: int
    is_correct: bool
    is_answered: bool
    explanation: str | None = None
    time_spent_seconds: int | None = None


class ResultView(BaseModel):
    """Graded session."""

    session_id: UUID
    source: ExamSource
    status: ExamStatus
    package_id: int | None = None
    package_name: str | None = None
    ticket_id: int | None = None
    ticket_number: int | None = None
    topic_id: int | None = None
    topic_name: str | None = None
    total_questions: int
    answered_count: int
    unanswered_count: int
    correct_count: int
    wrong_count: int
    score: int
    percentage: float
    is_passed: bool
    passing_score: int
    started_at: datetime | None
    finished_at: datetime | None
    duration_seconds: int | None
    average_time_per_question: float | None = None
    answers: list[AnswerResultOut]


# ============================================================================
# Statistics
# ============================================================================


class StatisticsView(BaseModel):
    """Timing and share breakdown of a graded session."""

    session_id: UUID
    source: ExamSource
    status: ExamStatus
    is_marathon: bool
    total_questions: int
    answered_count: int
    correct_count: int
    wrong_count: int
    unanswered_count: int
    score: int
    percentage: float
    is_passed: bool
    passing_score: int
    duration_seconds: int | None
    average_time_per_question: float | None = None
    fastest_answer_seconds: int | None = None
    slowest_answer_seconds: int | None = None
    correct_percentage: float
    unanswered_percentage: float


# ============================================================================
# History
# ============================================================================


class SessionSummaryOut(BaseModel):
    """Session row in the caller's history."""

    id: UUID
    source: ExamSource
    status: ExamStatus
    package_id: int | None
    ticket_id: int | None
    topic_id: int | None
    total_questions: int
    answered_count: int | None
    correct_count: int | None
    percentage: float | None
    is_passed: bool | None
    started_at: datetime | None
    expires_at: datetime | None
    finished_at: datetime | None

    class Config:
        from_attributes = True


class SessionHistoryResponse(BaseModel):
    """Paginated history."""

    items: list[SessionSummaryOut]
    total: int
    limit: int
    offset: int
