"""Question bank models: topics, questions, options, packages and tickets.

Content is authored by the CMS; the exam engine only reads these tables.
Every display string is stored once per supported language in a
``<field>_<language>`` column (``text_uzl``, ``text_ru`` ...).
"""

from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Table,
    Text,
    UniqueConstraint,
    false,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from imtihon.db.base import Base


class Language(str, PyEnum):
    """Display language. UZL (Uzbek, Latin script) is the base language."""

    UZL = "UZL"
    UZC = "UZC"
    EN = "EN"
    RU = "RU"

    @property
    def suffix(self) -> str:
        return self.value.lower()

    @classmethod
    def from_header(cls, value: str | None) -> "Language":
        """Map an Accept-Language header value to a language, defaulting to UZL."""
        if not value:
            return cls.UZL
        tag = value.split(",")[0].split(";")[0].strip().lower().replace("_", "-")
        if tag in ("uzc", "uz-cyrl", "uz-cyrl-uz"):
            return cls.UZC
        if tag.startswith("ru"):
            return cls.RU
        if tag.startswith("en"):
            return cls.EN
        return cls.UZL


class Topic(Base):
    """Question topic (road signs, right of way, first aid ...)."""

    __tablename__ = "topics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    name_uzl = Column(String(200), nullable=False)
    name_uzc = Column(String(200), nullable=True)
    name_en = Column(String(200), nullable=True)
    name_ru = Column(String(200), nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)


class Question(Base):
    """Multiple-choice question."""

    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=True)

    text_uzl = Column(Text, nullable=False)
    text_uzc = Column(Text, nullable=True)
    text_en = Column(Text, nullable=True)
    text_ru = Column(Text, nullable=True)

    explanation_uzl = Column(Text, nullable=True)
    explanation_uzc = Column(Text, nullable=True)
    explanation_en = Column(Text, nullable=True)
    explanation_ru = Column(Text, nullable=True)

    # 0-based index into the options ordered by option_index
    correct_answer_index = Column(SmallInteger, nullable=False)
    image_url = Column(String(500), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    deleted = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, onupdate=func.now(), nullable=True)

    topic = relationship("Topic")
    options = relationship(
        "QuestionOption",
        order_by="QuestionOption.option_index",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (Index("ix_questions_topic_usable", "topic_id", "is_active", "deleted"),)


class QuestionOption(Base):
    """Answer option of a question."""

    __tablename__ = "question_options"

    id = Column(Integer, primary_key=True, autoincrement=True)
    question_id = Column(
        Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    option_index = Column(SmallInteger, nullable=False)
    text_uzl = Column(Text, nullable=False)
    text_uzc = Column(Text, nullable=True)
    text_en = Column(Text, nullable=True)
    text_ru = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("question_id", "option_index", name="uq_question_option_index"),
    )


package_questions = Table(
    "package_questions",
    Base.metadata,
    Column("package_id", Integer, ForeignKey("exam_packages.id", ondelete="CASCADE"), primary_key=True),
    Column("question_id", Integer, ForeignKey("questions.id"), primary_key=True),
    Column("position", Integer, nullable=False),
)


class ExamPackage(Base):
    """Admin-curated package with a declared question count, duration and passing score."""

    __tablename__ = "exam_packages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name_uzl = Column(String(200), nullable=False)
    name_uzc = Column(String(200), nullable=True)
    name_en = Column(String(200), nullable=True)
    name_ru = Column(String(200), nullable=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=True)

    question_count = Column(Integer, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    passing_score = Column(Integer, nullable=False, default=70)

    order_index = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    deleted = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    topic = relationship("Topic")


ticket_questions = Table(
    "ticket_questions",
    Base.metadata,
    Column("ticket_id", Integer, ForeignKey("tickets.id", ondelete="CASCADE"), primary_key=True),
    Column("question_id", Integer, ForeignKey("questions.id"), primary_key=True),
    Column("position", Integer, nullable=False),
)


class Ticket(Base):
    """Globally numbered, fixed-form question bundle."""

    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ticket_number = Column(Integer, nullable=False, unique=True)
    name_uzl = Column(String(200), nullable=True)
    name_uzc = Column(String(200), nullable=True)
    name_en = Column(String(200), nullable=True)
    name_ru = Column(String(200), nullable=True)
    package_id = Column(Integer, ForeignKey("exam_packages.id"), nullable=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=True)

    duration_minutes = Column(Integer, nullable=False, default=15)
    passing_score = Column(Integer, nullable=False, default=70)
    target_question_count = Column(Integer, nullable=False, default=10)

    is_active = Column(Boolean, nullable=False, default=True)
    deleted = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    package = relationship("ExamPackage")
    topic = relationship("Topic")
