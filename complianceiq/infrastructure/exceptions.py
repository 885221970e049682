"""
Custom exception classes for the compliance assessment engine.

Every error carries a technical message, a structured ``details`` dict for
logging, and a ``user_message`` safe to show to participants. The HTTP layer
maps the categories below onto status codes.
"""

from __future__ import annotations

from typing import Any


class ComplianceAssessmentError(Exception):
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


class ValidationError(ComplianceAssessmentError):
    """Raised when input or resolution context validation fails."""

    def __init__(
        self, field: str, message: str, value: Any = None, details: dict[str, Any] | None = None
    ):
        self.field = field
        self.value = value
        self.reason = message
        super().__init__(
            message=f"Validation failed for field '{field}': {message}",
            details=details or {"field": field, "value": value},
            user_message=f"Invalid {field.replace('_', ' ')}: {message}",
        )

    def _get_default_user_message(self) -> str:
        return f"Please check your input for {self.field.replace('_', ' ')} and try again."


class NotFoundError(ComplianceAssessmentError):
    """Raised when a referenced catalog item or record does not exist."""

    def __init__(self, entity: str, entity_id: Any, details: dict[str, Any] | None = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            message=f"{entity} with ID {entity_id!r} not found",
            details=details or {"entity": entity, "entity_id": entity_id},
            user_message=f"The selected {entity.replace('_', ' ')} could not be found.",
        )


class ForbiddenTransitionError(ComplianceAssessmentError):
    """Raised when a collaboration transition is not allowed for the actor."""

    def __init__(
        self,
        from_state: str | None,
        to_state: str,
        actor_role: str,
        reason: str | None = None,
    ):
        self.from_state = from_state
        self.to_state = to_state
        self.actor_role = actor_role
        label = from_state or "none"
        text = f"Transition {label} -> {to_state} not allowed for {actor_role}"
        if reason:
            text = f"{text}: {reason}"
        super().__init__(
            message=text,
            details={
                "from_state": from_state,
                "to_state": to_state,
                "actor_role": actor_role,
                "reason": reason,
            },
            user_message="You are not allowed to move this section to the requested state.",
        )


class ConflictError(ComplianceAssessmentError):
    """Raised when a concurrent update changed a section's state first."""

    def __init__(
        self,
        assessment_id: str,
        section_id: str,
        expected_state: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.assessment_id = assessment_id
        self.section_id = section_id
        self.expected_state = expected_state
        super().__init__(
            message=(
                f"Section {section_id} of assessment {assessment_id} is no longer "
                f"in state {expected_state or 'none'}"
            ),
            details=details
            or {
                "assessment_id": assessment_id,
                "section_id": section_id,
                "expected_state": expected_state,
            },
            user_message="This section was updated by someone else. Please refresh and retry.",
        )


class ComputationError(ComplianceAssessmentError):
    """Raised or recorded when a response cannot be scored."""

    def __init__(
        self, message: str, question_id: str | None = None, details: dict[str, Any] | None = None
    ):
        self.question_id = question_id
        super().__init__(
            message=message,
            details=details or {"question_id": question_id},
            user_message="Some answers could not be scored and were skipped.",
        )


class DatabaseError(ComplianceAssessmentError):
    """Raised when database operations fail."""

    def __init__(self, message: str, operation: str, details: dict[str, Any] | None = None):
        self.operation = operation
        super().__init__(
            message=f"Database error during {operation}: {message}",
            details=details or {"operation": operation},
            user_message="A database error occurred. Please try again in a moment.",
        )


class ConnectionError(DatabaseError):
    """Raised when database connection fails."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, operation="connection", details=details)


class IntegrityError(DatabaseError):
    """Raised when database integrity constraints are violated."""

    def __init__(
        self,
        message: str,
        constraint: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.constraint = constraint
        super().__init__(
            message=message,
            operation="integrity_check",
            details=details or {"constraint": constraint},
        )


class ExportError(ComplianceAssessmentError):
    """Raised when scorecard export fails."""

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
            user_message="Export failed. Please try again or choose a different format.",
        )


def handle_database_error(e: Exception, operation: str = "database operation") -> DatabaseError:
    """
    Convert generic database exceptions to appropriate custom exceptions.

    Example:
        >>> try:
        ...     session.commit()
        >>> except SQLAlchemyError as e:
        ...     raise handle_database_error(e, "commit transaction")
    """
    error_msg = str(e).lower()

    if "connection" in error_msg or "timeout" in error_msg:
        return ConnectionError(str(e))
    elif "unique constraint" in error_msg or "duplicate" in error_msg:
        return IntegrityError(str(e), constraint="unique")
    elif "foreign key" in error_msg or "foreign_key" in error_msg:
        return IntegrityError(str(e), constraint="foreign_key")
    elif "check constraint" in error_msg:
        return IntegrityError(str(e), constraint="check")
    else:
        return DatabaseError(str(e), operation)


def create_user_friendly_error_message(error: Exception) -> str:
    """Create a user-friendly error message from any exception."""
    if isinstance(error, ComplianceAssessmentError):
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

    Example:
        >>> error = NotFoundError("persona", "data-science")
        >>> details = log_error_details(error, {"assessment_id": "a-1"})
        >>> details["error_type"]
        'NotFoundError'
    """
    details = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context or {},
    }

    if isinstance(error, ComplianceAssessmentError):
        details.update({"user_message": error.user_message, "error_details": error.details})

    return details
