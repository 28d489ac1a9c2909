"""
Error taxonomy for the application lifecycle.

Every precondition failure raised by the lifecycle engine is one of these
exceptions. The HTTP layer maps them to status codes in a single handler.
"""
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Structured error codes returned to API clients."""
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    JOB_NOT_ELIGIBLE = "JOB_NOT_ELIGIBLE"
    DUPLICATE_APPLICATION = "DUPLICATE_APPLICATION"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    ALREADY_WITHDRAWN = "ALREADY_WITHDRAWN"
    BUSY = "BUSY"


class ApplicationError(Exception):
    """Base exception for lifecycle errors with structured error information."""

    code: ErrorCode = ErrorCode.NOT_FOUND
    status_code: int = 400
    retryable: bool = False
    default_message: str = "Application error"

    def __init__(self, message: Optional[str] = None, original_error: Optional[Exception] = None):
        """
        Initialize a lifecycle error.

        Args:
            message: Human-readable error message
            original_error: The original exception if this wraps another error
        """
        self.message = message or self.default_message
        self.original_error = original_error
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert error to the API error envelope."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "retryable": self.retryable,
            }
        }


class NotFound(ApplicationError):
    code = ErrorCode.NOT_FOUND
    status_code = 404
    default_message = "Application not found"


class Forbidden(ApplicationError):
    code = ErrorCode.FORBIDDEN
    status_code = 403
    default_message = "You do not have access to this application"


class JobNotEligible(ApplicationError):
    code = ErrorCode.JOB_NOT_ELIGIBLE
    status_code = 422
    default_message = "Job posting is not accepting applications"


class DuplicateApplication(ApplicationError):
    code = ErrorCode.DUPLICATE_APPLICATION
    status_code = 409
    default_message = "An active application for this job already exists"


class InvalidTransition(ApplicationError):
    code = ErrorCode.INVALID_TRANSITION
    status_code = 409
    default_message = "Status transition is not allowed"


class AlreadyWithdrawn(InvalidTransition):
    # Subclass of InvalidTransition: a withdrawn application accepts no transition at all.
    code = ErrorCode.ALREADY_WITHDRAWN
    status_code = 409
    default_message = "Application has already been withdrawn"


class Busy(ApplicationError):
    code = ErrorCode.BUSY
    status_code = 503
    retryable = True
    default_message = "The job posting is busy, please retry"
