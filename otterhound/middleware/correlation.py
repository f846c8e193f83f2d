"""Correlation id tracking for log lines.

HTTP requests, poll cycles and detached delivery tasks each run with their
own correlation id so that every log line can be traced back to the
delivery that caused it.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)


def get_correlation_id() -> Optional[str]:
    """Return the correlation id of the current context, if any."""
    return correlation_id_var.get()


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    """Set the correlation id for the duration of the block."""
    token = correlation_id_var.set(correlation_id)
    try:
        yield correlation_id
    finally:
        correlation_id_var.reset(token)


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Tags every inbound request with a correlation id.

    The id is taken from the X-Request-ID header when the caller sends one,
    generated otherwise, and echoed back on the response. Delivery tasks
    spawned while handling the request inherit it as their parent id.
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(self.HEADER_NAME) or generate_correlation_id()

        with correlation_scope(correlation_id):
            response = await call_next(request)
            response.headers[self.HEADER_NAME] = correlation_id
            return response


def setup_correlation_middleware(app):
    app.add_middleware(CorrelationIDMiddleware)
