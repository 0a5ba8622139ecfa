"""
Custom exception classes for the CSF self-assessment engine.

Provides structured error handling with user-friendly messages and a small
taxonomy: structural problems abort an operation, while per-entry anomalies
during session import are filtered out (see ``ValidationSkip`` in the session
codec) and never raised.
"""

from __future__ import annotations

from typing import Any


class CsfAssessmentError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.user_message = user_message or self._get_default_user_message()

    def _get_default_user_message(self) -> str:
        """Provide a user-friendly version of the error message."""
        return "An unexpected error occurred. Please try again."

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"


class FormatError(CsfAssessmentError):
    """Raised when a session document is malformed or incompatible."""

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            details={"field": field, "value": value},
            user_message=f"Could not load the session file: {message}",
        )


class LoadError(CsfAssessmentError):
    """Raised when the question catalogue cannot be loaded."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.source = source
        super().__init__(
            message=message,
            details=details or {"source": source},
            user_message=(
                f"Failed to load the question catalogue: {message}. "
                "Check the data file name and location, then reload."
            ),
        )


class QuestionNotFoundError(CsfAssessmentError):
    """Raised when a question id is not part of the loaded catalogue."""

    def __init__(self, question_id: str):
        self.question_id = question_id
        super().__init__(
            message=f"Question with ID {question_id!r} not found",
            details={"question_id": question_id},
        )

    def _get_default_user_message(self) -> str:
        return "The selected question could not be found. Please reload the catalogue."


class InvalidAnswerError(CsfAssessmentError):
    """Raised when an answer outside the recognised symbols is recorded."""

    def __init__(self, value: Any, question_id: str | None = None):
        self.value = value
        self.question_id = question_id
        super().__init__(
            message=f"Invalid answer: {value!r}. Must be one of 1-5 or 'na'",
            details={"value": value, "question_id": question_id},
        )

    def _get_default_user_message(self) -> str:
        return "Please select a rating between 1-5 or mark the question as unknown."


class TransitionError(CsfAssessmentError):
    """Raised when a flow transition is not allowed in the current state."""

    def __init__(self, transition: str, state: str, reason: str | None = None):
        self.transition = transition
        self.state = state
        message = f"Cannot {transition} while {state}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            details={"transition": transition, "state": state, "reason": reason},
            user_message="This action is not available right now.",
        )


class ExportError(CsfAssessmentError):
    """Raised when writing an export file fails."""

    def __init__(
        self,
        message: str,
        export_format: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.export_format = export_format
        super().__init__(
            message=message,
            details=details or {"export_format": export_format},
            user_message="Export failed. Please try again or choose a different location.",
        )


def create_user_friendly_error_message(error: Exception) -> str:
    """
    Create a user-friendly error message from any exception.

    Args:
        error: The exception to convert

    Returns:
        User-friendly error message

    Example:
        >>> error = FormatError("unsupported version (1)", field="version")
        >>> create_user_friendly_error_message(error)
        'Could not load the session file: unsupported version (1)'
    """
    if isinstance(error, CsfAssessmentError):
        return error.user_message

    error_type = type(error).__name__
    messages = {
        "ValueError": "Invalid input provided. Please check your data and try again.",
        "KeyError": "Required information is missing. Please check your input.",
        "TypeError": "Incorrect data type provided. Please check your input format.",
    }
    return messages.get(
        error_type, "An unexpected error occurred. Please try again or contact support."
    )


def log_error_details(error: Exception, context: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Create structured error details for logging.

    Args:
        error: The exception to log
        context: Additional context information

    Returns:
        Dictionary with structured error details
    """
    details = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context or {},
    }

    if isinstance(error, CsfAssessmentError):
        details.update({"user_message": error.user_message, "error_details": error.details})

    return details
