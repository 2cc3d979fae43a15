"""Database models."""

# Import all models here so metadata.create_all sees them
from imtihon.models.content import (
    ExamPackage,
    Language,
    Question,
    QuestionOption,
    Ticket,
    Topic,
    package_questions,
    ticket_questions,
)
from imtihon.models.platform_settings import PlatformSettings
from imtihon.models.session import ExamAnswer, ExamSession, ExamSource, ExamStatus
from imtihon.models.user import User, UserRole

__all__ = [
    "User",
    "UserRole",
    "Topic",
    "Question",
    "QuestionOption",
    "ExamPackage",
    "Ticket",
    "package_questions",
    "ticket_questions",
    "Language",
    "ExamSession",
    "ExamAnswer",
    "ExamSource",
    "ExamStatus",
    "PlatformSettings",
]
