"""Exam session models for the exam engine."""

import uuid
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from imtihon.db.base import Base
from imtihon.models.content import Language


class ExamStatus(str, PyEnum):
    """Exam session status. Transitions only move forward."""

    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"
    ABANDONED = "ABANDONED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_graded(self) -> bool:
        return self in (ExamStatus.COMPLETED, ExamStatus.EXPIRED)


TERMINAL_STATUSES = frozenset({ExamStatus.COMPLETED, ExamStatus.EXPIRED, ExamStatus.ABANDONED})


class ExamSource(str, PyEnum):
    """Where the session's questions came from."""

    PACKAGE = "PACKAGE"
    TICKET = "TICKET"
    MARATHON = "MARATHON"


class ExamSession(Base):
    """Exam session - a single timed attempt."""

    __tablename__ = "exam_sessions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)

    # Source (immutable after creation)
    source = Column(Enum(ExamSource, name="exam_source"), nullable=False)
    package_id = Column(Integer, ForeignKey("exam_packages.id"), nullable=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id"), nullable=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=True)

    status = Column(
        Enum(ExamStatus, name="exam_status"),
        nullable=False,
        default=ExamStatus.IN_PROGRESS,
    )
    language = Column(Enum(Language, name="exam_language"), nullable=False, default=Language.UZL)
    visible_mode = Column(Boolean, nullable=False, default=False)

    # Timing
    started_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    finished_at = Column(DateTime, nullable=True)
    duration_minutes = Column(Integer, nullable=False)
    passing_score = Column(Integer, nullable=False)

    # Grading (null until COMPLETED/EXPIRED)
    total_questions = Column(Integer, nullable=False)
    answered_count = Column(Integer, nullable=True)
    correct_count = Column(Integer, nullable=True)
    wrong_count = Column(Integer, nullable=True)
    score = Column(Integer, nullable=True)
    percentage = Column(Float, nullable=True)
    is_passed = Column(Boolean, nullable=True)
    duration_seconds = Column(Integer, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    answers = relationship(
        "ExamAnswer",
        order_by="ExamAnswer.question_order",
        cascade="all, delete-orphan",
        back_populates="session",
    )
    package = relationship("ExamPackage")
    ticket = relationship("Ticket")
    topic = relationship("Topic")

    __table_args__ = (
        CheckConstraint(
            "(source = 'PACKAGE' AND package_id IS NOT NULL AND ticket_id IS NULL)"
            " OR (source = 'TICKET' AND ticket_id IS NOT NULL)"
            " OR (source = 'MARATHON' AND package_id IS NULL AND ticket_id IS NULL)",
            name="ck_exam_sessions_source",
        ),
        Index("ix_exam_sessions_user_status", "user_id", "status"),
        Index("ix_exam_sessions_status_expires", "status", "expires_at"),
    )

    def is_expired(self, now) -> bool:
        """True once the time budget has elapsed."""
        return self.expires_at is not None and now > self.expires_at


class ExamAnswer(Base):
    """One question slot within a session."""

    __tablename__ = "exam_answers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(
        Uuid(as_uuid=True), ForeignKey("exam_sessions.id", ondelete="CASCADE"), nullable=False
    )
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False)
    question_order = Column(Integer, nullable=False)  # 1-based

    # Captured from the question bank at session creation, never rewritten
    correct_option_index = Column(SmallInteger, nullable=False)

    selected_option_index = Column(SmallInteger, nullable=True)
    is_correct = Column(Boolean, nullable=True)
    answered_at = Column(DateTime, nullable=True)
    time_spent_seconds = Column(Integer, nullable=True)

    session = relationship("ExamSession", back_populates="answers")
    question = relationship("Question")

    __table_args__ = (
        UniqueConstraint("session_id", "question_order", name="uq_exam_answer_order"),
        UniqueConstraint("session_id", "question_id", name="uq_exam_answer_question"),
        Index("ix_exam_answers_session", "session_id"),
    )
