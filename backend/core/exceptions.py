"""
Domain exceptions for the accountability payment request service.

All exceptions follow the standard error format:
{
    "error": {
        "code": "ERROR_CODE",
        "message": "Human-readable description",
        "details": {}
    }
"""

from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
import logging

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, code, message, details=None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(DomainError):
    """Validation error - request body or parameters fail validation."""

    def __init__(self, message, details=None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(DomainError):
    """Requested resource does not exist."""

    def __init__(self, message, details=None):
        super().__init__("NOT_FOUND", message, details)


class UnauthorizedError(DomainError):
    """Caller is not a designated approver of the payment request."""

    def __init__(self, message, details=None):
        super().__init__("UNAUTHORIZED", message, details)


class PermissionDeniedError(DomainError):
    """Authenticated user lacks access to the resource or operation."""

    def __init__(self, message, details=None):
        super().__init__("FORBIDDEN", message, details)


class InvalidStateError(DomainError):
    """Entity is not in the required state for the operation."""

    def __init__(self, message, details=None):
        super().__init__("INVALID_STATE", message, details)


class AlreadyTerminalError(DomainError):
    """Payment request is no longer pending."""

    def __init__(self, message, details=None):
        super().__init__("ALREADY_TERMINAL", message, details)


class AlreadyActedError(DomainError):
    """Approver has already recorded a decision on this payment request."""

    def __init__(self, message, details=None):
        super().__init__("ALREADY_ACTED", message, details)


class FundingError(DomainError):
    """Funding provider could not fund the wallet. Recorded, never fatal."""

    def __init__(self, message, details=None):
        super().__init__("FUNDING_ERROR", message, details)


class StorageError(DomainError):
    """Durable store rejected or failed a read/write."""

    def __init__(self, message, details=None):
        super().__init__("STORAGE_ERROR", message, details)


STATUS_CODE_MAP = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "UNAUTHORIZED": status.HTTP_403_FORBIDDEN,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "INVALID_STATE": status.HTTP_409_CONFLICT,
    "ALREADY_TERMINAL": status.HTTP_409_CONFLICT,
    "ALREADY_ACTED": status.HTTP_409_CONFLICT,
    "FUNDING_ERROR": status.HTTP_502_BAD_GATEWAY,
    "STORAGE_ERROR": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(code, message, details=None, status_code=None):
    """Build a Response in the standard error envelope."""
    if status_code is None:
        status_code = STATUS_CODE_MAP.get(code, status.HTTP_400_BAD_REQUEST)
    return Response(
        {
            "error": {
                "code": code,
                "message": message,
                "details": details or {},
            }
        },
        status=status_code,
    )


def domain_exception_handler(exc, context):
    """
    Custom exception handler for domain exceptions.

    Returns standard error format:
    {
        "error": {
            "code": "ERROR_CODE",
            "message": "Human-readable description",
            "details": {}
        }
    }
    """
    if isinstance(exc, DomainError):
        if exc.code == "STORAGE_ERROR":
            logger.error("storage_error", extra={"detail": exc.message})
        return error_response(exc.code, exc.message, exc.details)

    response = exception_handler(exc, context)

    if response is not None:
        if isinstance(exc, drf_exceptions.ValidationError):
            code = "VALIDATION_ERROR"
            message = "Request validation failed"
            details = response.data
        elif isinstance(exc, drf_exceptions.NotAuthenticated) or isinstance(
            exc, drf_exceptions.AuthenticationFailed
        ):
            code = "UNAUTHENTICATED"
            message = str(response.data.get("detail", "Authentication required"))
            details = {}
        elif isinstance(exc, drf_exceptions.PermissionDenied):
            code = "FORBIDDEN"
            message = str(response.data.get("detail", "Permission denied"))
            details = {}
        elif isinstance(exc, drf_exceptions.Throttled):
            code = "RATE_LIMITED"
            message = str(response.data.get("detail", "Request was throttled"))
            details = {"retryAfter": exc.wait}
        elif isinstance(response.data, dict) and "detail" in response.data:
            code = "INTERNAL_ERROR"
            message = str(response.data["detail"])
            details = {}
        else:
            code = "INTERNAL_ERROR"
            message = "An error occurred"
            details = response.data

        response.data = {
            "error": {
                "code": code,
                "message": message,
                "details": details,
            }
        }
        return response

    logger.exception("Unhandled exception", exc_info=exc)
    return error_response(
        "INTERNAL_ERROR",
        "An internal error occurred",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
