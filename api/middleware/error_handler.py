"""Global exception handlers for the API."""

from datetime import datetime
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from api.services.exceptions import (
    AIHelpError,
    AssessmentAccessError,
    AssessmentCompletedError,
    AssessmentError,
    AssessmentValidationError,
    InvalidTransitionError,
    RelevanceRejectedError,
    SubmissionFailedError,
)

logger = structlog.get_logger()


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        code: str = "API_ERROR",
        status_code: int = 400,
        details: dict = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class NotFoundError(APIError):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str | int):
        super().__init__(
            message=f"{resource} not found",
            code="NOT_FOUND",
            status_code=404,
            details={"resource": resource, "id": identifier},
        )


class ValidationAPIError(APIError):
    """Validation error."""

    def __init__(self, message: str, field: str = None, question_number: int = None):
        details = {}
        if field:
            details["field"] = field
        if question_number is not None:
            details["questionNumber"] = question_number
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=422,
            details=details,
        )


class ForbiddenError(APIError):
    """Access forbidden."""

    def __init__(self, message: str = "You don't have permission to access this resource"):
        super().__init__(
            message=message,
            code="FORBIDDEN",
            status_code=403,
        )


class ConflictError(APIError):
    """Request conflicts with the current state."""

    def __init__(self, message: str, code: str = "CONFLICT"):
        super().__init__(message=message, code=code, status_code=409)


class GoneError(APIError):
    """Resource is no longer available."""

    def __init__(self, message: str):
        super().__init__(message=message, code="GONE", status_code=410)


class RateLimitedError(APIError):
    """Too many requests for this caller."""

    def __init__(self, reset_at: Optional[datetime] = None):
        super().__init__(
            message="Too many requests. Please wait a moment before trying again.",
            code="RATE_LIMITED",
            status_code=429,
            details={"resetAt": reset_at.isoformat() if reset_at else None},
        )


class ServiceUnavailableError(APIError):
    """A dependency failed; the request can be retried."""

    def __init__(self, message: str, code: str = "SERVICE_UNAVAILABLE"):
        super().__init__(message=message, code=code, status_code=503)


def to_api_error(exc: AssessmentError) -> APIError:
    """Translate a domain error from the assessment services."""
    if isinstance(exc, AssessmentValidationError):
        return ValidationAPIError(exc.message, field=exc.field, question_number=exc.question_number)
    if isinstance(exc, AssessmentCompletedError):
        return GoneError(exc.message)
    if isinstance(exc, AssessmentAccessError):
        return ForbiddenError(exc.message)
    if isinstance(exc, InvalidTransitionError):
        return ConflictError(exc.message, code="INVALID_TRANSITION")
    if isinstance(exc, RelevanceRejectedError):
        return APIError(exc.message, code="RELEVANCE_REJECTED", status_code=422)
    if isinstance(exc, SubmissionFailedError):
        return ServiceUnavailableError(exc.message, code="SUBMISSION_FAILED")
    if isinstance(exc, AIHelpError):
        return ServiceUnavailableError(exc.message, code="AI_HELP_FAILED")
    return APIError(exc.message)


def _error_response(status_code: int, code: str, message: str, details: dict) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "details": details}},
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
        """Handle custom API errors."""
        logger.warning(
            "API error",
            code=exc.code,
            message=exc.message,
            path=request.url.path,
        )
        return _error_response(exc.status_code, exc.code, exc.message, exc.details)

    @app.exception_handler(AssessmentError)
    async def assessment_error_handler(request: Request, exc: AssessmentError) -> JSONResponse:
        """Handle domain errors not translated by the endpoint."""
        api_error = to_api_error(exc)
        logger.warning(
            "Assessment error",
            code=api_error.code,
            message=api_error.message,
            path=request.url.path,
        )
        return _error_response(api_error.status_code, api_error.code, api_error.message, api_error.details)

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        """Handle Pydantic validation errors."""
        errors = exc.errors(include_url=False, include_context=False)
        first_error = errors[0] if errors else {}
        field = ".".join(str(loc) for loc in first_error.get("loc", []))
        message = first_error.get("msg", "Validation error")

        logger.warning(
            "Validation error",
            field=field,
            message=message,
            path=request.url.path,
        )
        return _error_response(422, "VALIDATION_ERROR", message, {"field": field, "errors": errors})

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        """Handle database errors."""
        logger.error(
            "Database error",
            error=str(exc),
            path=request.url.path,
        )
        return _error_response(500, "DATABASE_ERROR", "A database error occurred", {})

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected errors."""
        logger.exception(
            "Unexpected error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return _error_response(500, "INTERNAL_ERROR", "An unexpected error occurred", {})
