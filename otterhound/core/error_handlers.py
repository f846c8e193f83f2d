"""Error handlers for the push endpoint.

A rejected delivery is answered with a bare plain-text 500 so that nothing
about the verification failure leaks back to the caller.
"""
from fastapi import Request
from fastapi.responses import PlainTextResponse

from otterhound.core.exceptions import AuthError, OtterhoundError
from otterhound.log.logging import logger

REJECTED_BODY = "Internal Server Error"


async def delivery_rejected_handler(request: Request, exc: OtterhoundError) -> PlainTextResponse:
    """Handle AuthError and ParseError raised while accepting a delivery."""
    logger.warning(
        "Error in request handler",
        event_type="auth_error" if isinstance(exc, AuthError) else "parse_error",
        error_type=type(exc).__name__,
        error=exc.message,
        path=request.url.path,
        error_context=exc.context
    )
    return PlainTextResponse(REJECTED_BODY, status_code=500)


async def generic_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
    """Last-resort handler so unexpected failures keep the same response shape."""
    logger.exception(
        "Unhandled error in request handler",
        event_type="unhandled_error",
        error_type=type(exc).__name__,
        path=request.url.path
    )
    return PlainTextResponse(REJECTED_BODY, status_code=500)
