"""FastAPI exception handlers for RFC 7807 responses.

Registers handlers that convert all exceptions to Problem Details format.
Generates request_id for every error for log correlation.
"""

import logging
import uuid
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from relay.errors.exceptions import RelayError
from relay.errors.problem_details import (
    PROBLEM_TYPE_BASE,
    ProblemDetail,
    TimeoutHTTPException,
    TimeoutProblem,
)

logger = logging.getLogger(__name__)

PROBLEM_TYPES = {
    400: f"{PROBLEM_TYPE_BASE}/bad-request",
    401: f"{PROBLEM_TYPE_BASE}/unauthorized",
    403: f"{PROBLEM_TYPE_BASE}/forbidden",
    404: f"{PROBLEM_TYPE_BASE}/not-found",
    422: f"{PROBLEM_TYPE_BASE}/validation-error",
    500: f"{PROBLEM_TYPE_BASE}/internal-error",
    502: f"{PROBLEM_TYPE_BASE}/backend-error",
    503: f"{PROBLEM_TYPE_BASE}/backend-unavailable",
}

PROBLEM_TITLES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    422: "Validation Error",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}


def generate_request_id() -> str:
    """Generate unique request ID for log correlation."""
    return f"req_{uuid.uuid4().hex[:12]}"


def _problem_response(
    problem: ProblemDetail,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(exclude_none=True),
        headers={**(headers or {}), "X-Request-ID": problem.request_id},
    )


async def http_exception_handler(
    request: Request,
    exc: HTTPException,
) -> JSONResponse:
    """Handle HTTPException with Problem Details response."""
    request_id = generate_request_id()

    logger.warning(
        f"HTTP {exc.status_code} error: {exc.detail}",
        extra={"request_id": request_id, "path": request.url.path},
    )

    problem = ProblemDetail(
        type=PROBLEM_TYPES.get(exc.status_code, "about:blank"),
        title=PROBLEM_TITLES.get(exc.status_code, "Error"),
        status=exc.status_code,
        detail=str(exc.detail) if exc.detail else None,
        instance=str(request.url.path),
        request_id=request_id,
    )
    return _problem_response(problem, headers=getattr(exc, "headers", None))


async def timeout_exception_handler(
    request: Request,
    exc: TimeoutHTTPException,
) -> JSONResponse:
    """Handle TimeoutHTTPException with specialized Problem Details."""
    request_id = generate_request_id()

    logger.warning(
        f"Request timeout after {exc.timeout_seconds}s: {request.url.path}",
        extra={"request_id": request_id},
    )

    problem = TimeoutProblem(
        detail=exc.detail,
        instance=str(request.url.path),
        request_id=request_id,
        timeout_seconds=exc.timeout_seconds,
    )
    return _problem_response(problem)


async def relay_error_handler(
    request: Request,
    exc: RelayError,
) -> JSONResponse:
    """Handle translation and backend errors raised by the engine."""
    request_id = generate_request_id()

    logger.warning(
        f"{type(exc).__name__} ({exc.status_code}): {exc.message}",
        extra={"request_id": request_id, "path": request.url.path},
    )

    problem = ProblemDetail(
        type=PROBLEM_TYPES.get(exc.status_code, "about:blank"),
        title=PROBLEM_TITLES.get(exc.status_code, "Error"),
        status=exc.status_code,
        detail=exc.message,
        instance=str(request.url.path),
        request_id=request_id,
    )
    return _problem_response(problem)


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle Pydantic validation errors with Problem Details."""
    request_id = generate_request_id()

    errors: list[dict[str, Any]] = []
    for error in exc.errors():
        errors.append(
            {
                "field": ".".join(str(loc) for loc in error.get("loc", [])),
                "message": error.get("msg", "Validation error"),
                "type": error.get("type", "unknown"),
            }
        )

    logger.warning(
        f"Validation error: {len(errors)} errors",
        extra={"request_id": request_id, "path": request.url.path},
    )

    problem = ProblemDetail(
        type=PROBLEM_TYPES[422],
        title=PROBLEM_TITLES[422],
        status=422,
        detail=f"Request validation failed with {len(errors)} error(s)",
        instance=str(request.url.path),
        request_id=request_id,
        errors=errors,
    )
    return _problem_response(problem)


async def generic_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected exceptions without exposing internals."""
    request_id = generate_request_id()

    logger.exception(
        f"Unhandled exception: {type(exc).__name__}",
        extra={"request_id": request_id, "path": request.url.path},
    )

    problem = ProblemDetail(
        type=PROBLEM_TYPES[500],
        title=PROBLEM_TITLES[500],
        status=500,
        detail="An unexpected error occurred. Please try again later.",
        instance=str(request.url.path),
        request_id=request_id,
    )
    return _problem_response(problem)


def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""
    # FastAPI's stubs expect generic Exception handlers
    app.add_exception_handler(
        TimeoutHTTPException, timeout_exception_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        HTTPException, http_exception_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        RelayError, relay_error_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        RequestValidationError, validation_exception_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, generic_exception_handler)
    logger.info("RFC 7807 error handlers registered")
