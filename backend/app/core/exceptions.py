"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("fleetops.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ResourceNotFoundError(AppException):
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


class ConfigurationError(AppException):
    """Raised when a runtime component is built with invalid settings."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_CONFIG_001",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details
        )


class SourceUnavailableError(AppException):
    """Raised when an upstream collection query fails or drops."""

    def __init__(self, source: str, reason: str):
        super().__init__(
            message=f"Source '{source}' unavailable: {reason}",
            error_code="ERR_SOURCE_001",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"source": source, "reason": reason}
        )


class MalformedRecordError(AppException):
    """Raised when a record in a snapshot is missing required fields."""

    def __init__(self, kind: str, reason: str, record_id: Any = None):
        super().__init__(
            message=f"Malformed {kind} record: {reason}",
            error_code="ERR_RECORD_001",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"kind": kind, "id": record_id}
        )


class InvalidSimulationConfigError(AppException):
    """Raised when a single simulation config cannot be used."""

    def __init__(self, reason: str, entity_id: Any = None):
        super().__init__(
            message=f"Invalid simulation config: {reason}",
            error_code="ERR_SIM_001",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"entity_id": entity_id}
        )


class PlaybackStateError(AppException):
    """Raised when a playback operation is not valid in the current state."""

    def __init__(self, operation: str, state: str):
        super().__init__(
            message=f"Cannot {operation} while playback is {state}",
            error_code="ERR_PLAYBACK_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"operation": operation, "state": state}
        )


class InvalidPlaybackSpeedError(AppException):
    """Raised when a speed outside the allowed set is requested."""

    def __init__(self, speed: Any, allowed: Any):
        super().__init__(
            message=f"Speed {speed} is not one of {list(allowed)}",
            error_code="ERR_PLAYBACK_002",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"speed": speed, "allowed": list(allowed)}
        )


class InvalidPlaybackPathError(AppException):
    """Raised when a playback session has no usable waypoints."""

    def __init__(self, subject_id: Any):
        super().__init__(
            message=f"No recorded path for subject {subject_id}",
            error_code="ERR_PLAYBACK_003",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"subject_id": subject_id}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
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
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": exc.errors()
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
