"""
Error taxonomy for the Taskboard service.

Every error raised by the service layer carries an ErrorCode, which fixes the
HTTP status and the default human-readable description rendered by the API's
exception handlers.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCode(Enum):
    """Programmatic error codes with their HTTP status and default message."""

    RESOURCE_NOT_FOUND = ("RESOURCE_NOT_FOUND", 404, "The requested resource could not be found")
    USER_ALREADY_EXISTS = ("USER_ALREADY_EXISTS", 409, "A user with this identifier already exists")
    VALIDATION_ERROR = ("VALIDATION_ERROR", 400, "The request contains invalid or missing fields")
    BAD_REQUEST = ("BAD_REQUEST", 400, "The request could not be processed")
    METHOD_NOT_ALLOWED = ("METHOD_NOT_ALLOWED", 405, "The HTTP method is not supported for this endpoint")
    INVALID_FILTER_PARAMETER = ("INVALID_FILTER_PARAMETER", 400, "A filter parameter could not be parsed")
    DATABASE_ERROR = ("DATABASE_ERROR", 500, "A database error occurred")
    INTERNAL_SERVER_ERROR = ("INTERNAL_SERVER_ERROR", 500, "An unexpected error occurred")
    SERVICE_UNAVAILABLE = ("SERVICE_UNAVAILABLE", 503, "The service is temporarily unavailable")

    def __init__(self, code: str, status_code: int, default_message: str):
        self.code = code
        self.status_code = status_code
        self.default_message = default_message


class TaskboardError(Exception):
    """Base class for errors the API renders as an ErrorResponse."""

    code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR

    def __init__(self, message: Optional[str] = None, code: Optional[ErrorCode] = None):
        if code is not None:
            self.code = code
        self.message = message or self.code.default_message
        super().__init__(self.message)


class ResourceNotFoundError(TaskboardError):
    code = ErrorCode.RESOURCE_NOT_FOUND


class UserAlreadyExistsError(TaskboardError):
    code = ErrorCode.USER_ALREADY_EXISTS


class InvalidRequestError(TaskboardError):
    code = ErrorCode.BAD_REQUEST


class InvalidFilterParameterError(TaskboardError):
    """
    Raised when a raw filter, sort or paging parameter cannot be parsed.

    Args:
        field: Name of the offending parameter as the client sent it
        value: The raw value that was rejected
        reason: Short explanation, e.g. the accepted values
    """

    code = ErrorCode.INVALID_FILTER_PARAMETER

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid value {value!r} for '{field}': {reason}")
