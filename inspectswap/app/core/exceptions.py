"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("inspectswap.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class NotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class NotOwnerError(AppException):
    """Raised when a user acts on a resource they do not own."""

    def __init__(self, resource: str, resource_id: Any = None):
        super().__init__(
            message=f"You do not own this {resource}",
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"resource": resource, "id": resource_id}
        )


class DuplicateContentError(AppException):
    """Raised by the report registry when a content hash is already registered."""

    def __init__(self, content_hash: str):
        super().__init__(
            message="A report with identical content already exists",
            error_code="ERR_REPORT_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"content_hash": content_hash}
        )


class DuplicateUploadError(AppException):
    """Raised when an uploaded file has already been uploaded by anyone."""

    def __init__(self, content_hash: str):
        super().__init__(
            message="This report has already been uploaded",
            error_code="ERR_REPORT_002",
            status_code=status.HTTP_409_CONFLICT,
            details={"content_hash": content_hash}
        )


class InvalidUploadError(AppException):
    """Raised when an uploaded file is not an acceptable PDF."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="ERR_REPORT_003",
            status_code=status.HTTP_400_BAD_REQUEST
        )


class InsufficientCreditsError(AppException):
    """Raised when a user's balance cannot cover a debit."""

    def __init__(self, balance: int, required: int):
        super().__init__(
            message="Insufficient credits",
            error_code="ERR_CREDITS_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"balance": balance, "required": required}
        )


class InvalidStakeError(AppException):
    """Raised when a bounty request is malformed."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_BOUNTY_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class SelfFulfillmentError(AppException):
    """Raised when a requester tries to fulfil their own bounty."""

    def __init__(self, bounty_id: int):
        super().__init__(
            message="A bounty cannot be fulfilled by its requester",
            error_code="ERR_BOUNTY_002",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"bounty_id": bounty_id}
        )


class NotOpenError(AppException):
    """Raised when a bounty transition is attempted on a non-open bounty."""

    def __init__(self, bounty_id: int, message: str = "Bounty is not open", error_code: str = "ERR_BOUNTY_003"):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_409_CONFLICT,
            details={"bounty_id": bounty_id}
        )


class AlreadyFulfilledError(NotOpenError):
    """Raised when a bounty was fulfilled (or closed) before this fulfilment."""

    def __init__(self, bounty_id: int):
        super().__init__(
            bounty_id,
            message="Bounty has already been fulfilled or closed",
            error_code="ERR_BOUNTY_004"
        )


class StorageError(AppException):
    """Raised when the persistence layer fails (connection, timeout, constraint)."""

    def __init__(self, message: str = "Storage layer failure", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_STORAGE_001",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details
        )


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    if isinstance(exc, StorageError):
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_errors(exc)
            }
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry exception instances that JSONResponse cannot encode
    return [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s: %s", type(exc).__name__, exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
