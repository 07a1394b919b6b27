import logging
import math
from datetime import datetime, timezone
from typing import Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from devstory.core.exceptions import (
    InvalidInputError,
    RateLimitExceeded,
    ResourceNotFoundError,
    UpstreamError,
    UpstreamErrorKind,
)

logger = logging.getLogger(__name__)

_UPSTREAM_RESPONSES = {
    UpstreamErrorKind.NOT_FOUND: (404, "Repository not found or is private"),
    UpstreamErrorKind.UNAUTHORIZED: (401, "Invalid GitHub token"),
    UpstreamErrorKind.FORBIDDEN: (403, "Access forbidden. The repository may require authentication."),
    UpstreamErrorKind.UNPROCESSABLE: (400, "Invalid or empty repository"),
    UpstreamErrorKind.TIMEOUT: (504, "Request to GitHub timed out. Please try again."),
    UpstreamErrorKind.NETWORK: (502, "Network error while contacting GitHub. Please check connectivity."),
}


def minutes_until(reset_iso: Optional[str], now: Optional[datetime] = None) -> Optional[int]:
    if not reset_iso:
        return None
    try:
        reset = datetime.fromisoformat(reset_iso)
    except ValueError:
        return None
    now = now or datetime.now(timezone.utc)
    return max(1, math.ceil((reset - now).total_seconds() / 60))


def describe_upstream_error(error: UpstreamError, now: Optional[datetime] = None) -> Tuple[int, str]:
    """
    Maps an UpstreamError to the HTTP status and message shown to the user.
    """
    if error.kind == UpstreamErrorKind.RATE_LIMITED:
        minutes = minutes_until(error.rate_limit_reset, now)
        if minutes is None:
            return 403, "GitHub API rate limit exceeded. Try again later or configure a GITHUB_TOKEN."
        return 403, (
            f"GitHub API rate limit exceeded. Resets in {minutes} minutes. "
            "Configure a GITHUB_TOKEN for a higher limit."
        )
    if error.kind in _UPSTREAM_RESPONSES:
        return _UPSTREAM_RESPONSES[error.kind]
    return 502, f"GitHub API error: {error.message}"


def error_body(message: str, status: int, **extra) -> dict:
    body = {"error": message, "status": status}
    body.update(extra)
    return body


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part != "body"]
    field = loc[-1] if loc else "body"
    if field == "url":
        return 'Missing or invalid "url" in request body'
    if field == "body":
        return "Missing or invalid request body"
    return f"Invalid {field}: {first.get('msg', 'invalid value')}"


def register_exception_handlers(app: FastAPI) -> None:
    """
    Installs handlers that turn every failure into an ApiError JSON body.
    """

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError):
        status, message = describe_upstream_error(exc)
        logger.warning("%s %s failed upstream: %r", request.method, request.url.path, exc)
        return JSONResponse(status_code=status, content=error_body(message, status))

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError):
        return JSONResponse(status_code=400, content=error_body(str(exc), 400))

    @app.exception_handler(ResourceNotFoundError)
    async def resource_not_found_handler(request: Request, exc: ResourceNotFoundError):
        return JSONResponse(status_code=404, content=error_body(str(exc), 404))

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        headers = dict(exc.headers)
        headers["Retry-After"] = str(exc.retry_after)
        return JSONResponse(
            status_code=429,
            content=error_body(str(exc), 429, retryAfter=exc.retry_after),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content=error_body(_validation_message(exc), 400))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = str(exc.detail)
        if exc.status_code == 404 and exc.detail == "Not Found":
            message = f"Route {request.method} {request.url.path} not found"
        return JSONResponse(status_code=exc.status_code, content=error_body(message, exc.status_code))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=error_body("Internal server error", 500))
