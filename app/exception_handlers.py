"""Global exception handlers for the application."""
from typing import Union
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from pydantic import ValidationError
from slowapi.errors import RateLimitExceeded

from app.exceptions import ClaimRelayException
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


def error_body(error_type: str, code: str, message: str, details: dict) -> dict:
    """Build the structured error payload shared by every handler."""
    return {
        "error": {
            "type": error_type,
            "code": code,
            "message": message,
            "details": details,
        }
    }


async def claimrelay_exception_handler(
    request: Request, exc: ClaimRelayException
) -> JSONResponse:
    """
    Handle custom ClaimRelay exceptions.

    Args:
        request: FastAPI request object
        exc: ClaimRelay exception

    Returns:
        JSON response with error details
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"ClaimRelay exception: {exc.message}",
        extra={
            "extra_fields": {
                "exception_type": exc.__class__.__name__,
                "error_code": exc.code,
                "status_code": exc.status_code,
                "details": exc.details,
                "path": request.url.path,
                "method": request.method,
            }
        },
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.__class__.__name__, exc.code, exc.message, exc.details),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """
    Handle standard HTTP exceptions.

    Args:
        request: FastAPI request object
        exc: HTTP exception

    Returns:
        JSON response with error details
    """
    # Log based on status code
    if exc.status_code >= 500:
        logger.error(
            f"HTTP {exc.status_code}: {exc.detail}",
            extra={
                "extra_fields": {
                    "status_code": exc.status_code,
                    "path": request.url.path,
                    "method": request.method,
                }
            },
        )
    elif exc.status_code >= 400:
        logger.warning(
            f"HTTP {exc.status_code}: {exc.detail}",
            extra={
                "extra_fields": {
                    "status_code": exc.status_code,
                    "path": request.url.path,
                    "method": request.method,
                }
            },
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body("HTTPException", f"HTTP_{exc.status_code}", str(exc.detail), {}),
    )


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, ValidationError]
) -> JSONResponse:
    """
    Handle request validation errors from Pydantic.

    Args:
        request: FastAPI request object
        exc: Validation error

    Returns:
        JSON response with validation error details
    """
    errors = [
        {
            "field": ".".join(str(loc) for loc in error.get("loc", [])),
            "message": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]

    logger.warning(
        f"Validation error: {len(errors)} field(s) failed validation",
        extra={
            "extra_fields": {
                "validation_errors": errors,
                "path": request.url.path,
                "method": request.method,
            }
        },
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body(
            "ValidationError",
            "REQUEST_VALIDATION_ERROR",
            "Request validation failed",
            {"validation_errors": errors},
        ),
    )


async def sqlalchemy_exception_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    """
    Handle SQLAlchemy database errors.

    Args:
        request: FastAPI request object
        exc: SQLAlchemy exception

    Returns:
        JSON response with error details
    """
    # Log full exception with stack trace
    logger.error(
        f"Database error: {str(exc)}",
        exc_info=True,
        extra={
            "extra_fields": {
                "exception_type": exc.__class__.__name__,
                "path": request.url.path,
                "method": request.method,
            }
        },
    )

    # Check if it's an integrity error (constraint violation)
    if isinstance(exc, IntegrityError):
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=error_body(
                "DatabaseIntegrityError",
                "DATABASE_CONSTRAINT_VIOLATION",
                "Database constraint violation. Resource may already exist.",
                {},
            ),
        )

    # Generic database error
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            "DatabaseError",
            "DATABASE_ERROR",
            "A database error occurred. Please try again later.",
            {},
        ),
    )


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Handle slowapi rate limit violations.

    Args:
        request: FastAPI request object
        exc: Rate limit exception

    Returns:
        JSON response with status 429
    """
    logger.warning(
        f"Rate limit exceeded: {exc.detail}",
        extra={"extra_fields": {"path": request.url.path, "method": request.method}},
    )
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=error_body(
            "RateLimitExceeded",
            "RATE_LIMIT_EXCEEDED",
            f"Too many requests. Limit: {exc.detail}",
            {"limit": str(exc.detail)},
        ),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle any unhandled exceptions.

    This is the fallback handler for unexpected errors.

    Args:
        request: FastAPI request object
        exc: Any exception

    Returns:
        JSON response with generic error message
    """
    # Log full exception with stack trace
    logger.error(
        f"Unhandled exception: {str(exc)}",
        exc_info=True,
        extra={
            "extra_fields": {
                "exception_type": exc.__class__.__name__,
                "path": request.url.path,
                "method": request.method,
            }
        },
    )

    # Return generic error response (don't expose internal details)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            "InternalServerError",
            "INTERNAL_ERROR",
            "An unexpected error occurred. Please try again later.",
            {},
        ),
    )
