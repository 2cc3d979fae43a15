"""Application-specific exceptions for consistent error handling.

Every domain failure of the exam engine is an ``AppError`` so the global
HTTP handler can render it with a stable ``error_code``. Service code raises
the narrow subclasses below; endpoint code never builds status codes itself.
"""

from typing import Any

from fastapi import HTTPException, status


class AppError(HTTPException):
    """Application error with standardized error code."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | list[Any] | None = None,
    ):
        """Initialize application error."""
        super().__init__(
            status_code=status_code,
            detail={
                "code": code,
                "message": message,
                "details": details,
            },
        )
        self.code = code
        self.message = message
        self.details = details


class NotFoundError(AppError):
    """Session, package, ticket, topic or user does not exist."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(status.HTTP_404_NOT_FOUND, code, message, details)


class ConflictError(AppError):
    """Operation is not allowed in the current state."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(status.HTTP_409_CONFLICT, code, message, details)


class AlreadyFinalizedError(ConflictError):
    """Session already carries a grading result."""

    def __init__(self, session_id: Any, current_status: str):
        super().__init__(
            "SESSION_ALREADY_FINALIZED",
            "Exam session has already been finalized",
            {"session_id": str(session_id), "status": current_status},
        )


class SessionExpiredError(ConflictError):
    """Session time budget has elapsed."""

    def __init__(self, session_id: Any, expires_at: Any = None):
        super().__init__(
            "SESSION_EXPIRED",
            "Exam session time has expired",
            {
                "session_id": str(session_id),
                "expires_at": expires_at.isoformat() if expires_at is not None else None,
            },
        )


class InsufficientQuestionsError(AppError):
    """Not enough eligible questions to assemble a session."""

    def __init__(self, available: int, required: int, message: str | None = None):
        super().__init__(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "INSUFFICIENT_QUESTIONS",
            message or f"Not enough questions available. Found {available}, need {required}",
            {"available": available, "required": required},
        )


class ForbiddenError(AppError):
    """Caller does not own the addressed resource."""

    def __init__(self, code: str, message: str):
        super().__init__(status.HTTP_403_FORBIDDEN, code, message)


class InvalidRequestError(AppError):
    """Request passed schema validation but violates a business bound."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(status.HTTP_422_UNPROCESSABLE_ENTITY, "VALIDATION_ERROR", message, details)
