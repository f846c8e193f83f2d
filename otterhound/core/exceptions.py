"""Exceptions raised while ingesting and applying provider events."""

from typing import Optional, Dict, Any


class OtterhoundError(Exception):
    """Base class for every failure the ingestion pipeline reports."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class AuthError(OtterhoundError):
    """Missing or invalid signature, or a timestamp outside the tolerance window."""
    pass


class ParseError(OtterhoundError):
    """Malformed signature header, request body, event payload or API response."""
    pass


class UpstreamError(OtterhoundError):
    """The Stripe API could not be reached or answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.status_code = status_code


class StorageError(OtterhoundError):
    """Connection, prepare or execute failure against the database."""
    pass


class IdempotencyMiss(OtterhoundError):
    """
    The conditional update matched no row.

    This is the expected outcome when an already activated checkout session
    is delivered again, not a genuine failure.
    """

    def __init__(self, session_id: str):
        super().__init__(
            f"Checkout session {session_id} is unknown or already completed",
            {"session_id": session_id},
        )
        self.session_id = session_id
