"""Database error classification and health probing.

Failures inside the activation transaction are reported as StorageError;
this module turns the underlying driver error into a category and a set
of structured log fields so that operators can tell a dropped connection
from a constraint violation at a glance.
"""

import time
from enum import Enum, auto
from typing import Dict, Any, Tuple

from sqlalchemy.exc import SQLAlchemyError, OperationalError, IntegrityError, DataError, DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.sql import text

from otterhound.log.logging import logger


class DatabaseErrorCode(Enum):
    """Categories of database failures."""

    CONNECTION_REFUSED = auto()  # Cannot establish initial connection
    CONNECTION_LOST = auto()     # Connection lost during operation
    CONNECTION_TIMEOUT = auto()  # Connection attempt or pool checkout timed out
    AUTH_FAILED = auto()
    INSUFFICIENT_RESOURCES = auto()  # Server out of memory/connections
    INTEGRITY_ERROR = auto()     # Constraint violation
    DATA_ERROR = auto()          # Data type mismatch
    SYSTEM_ERROR = auto()
    UNKNOWN_ERROR = auto()


# PostgreSQL SQLSTATE codes
PG_ERROR_CODE_MAP = {
    '08001': DatabaseErrorCode.CONNECTION_REFUSED,
    '08006': DatabaseErrorCode.CONNECTION_LOST,
    '08P01': DatabaseErrorCode.CONNECTION_LOST,
    '28P01': DatabaseErrorCode.AUTH_FAILED,
    '28000': DatabaseErrorCode.AUTH_FAILED,
    '53000': DatabaseErrorCode.INSUFFICIENT_RESOURCES,
    '53100': DatabaseErrorCode.INSUFFICIENT_RESOURCES,  # Disk full
    '53200': DatabaseErrorCode.INSUFFICIENT_RESOURCES,  # Out of memory
    '53300': DatabaseErrorCode.INSUFFICIENT_RESOURCES,  # Too many connections
    '23000': DatabaseErrorCode.INTEGRITY_ERROR,
    '23502': DatabaseErrorCode.INTEGRITY_ERROR,  # Not null violation
    '23503': DatabaseErrorCode.INTEGRITY_ERROR,  # Foreign key violation
    '23505': DatabaseErrorCode.INTEGRITY_ERROR,  # Unique violation
    '22000': DatabaseErrorCode.DATA_ERROR,
    '22001': DatabaseErrorCode.DATA_ERROR,  # String data right truncation
    '22003': DatabaseErrorCode.DATA_ERROR,  # Numeric value out of range
    '22007': DatabaseErrorCode.DATA_ERROR,  # Invalid datetime format
    '22P02': DatabaseErrorCode.DATA_ERROR,  # Invalid text representation
    '57014': DatabaseErrorCode.SYSTEM_ERROR,  # Query canceled
    'XX000': DatabaseErrorCode.SYSTEM_ERROR,
}


def _pg_code(exc: Exception):
    code = getattr(exc, 'pgcode', None)
    if code is None and isinstance(exc, DBAPIError):
        orig = exc.orig
        # asyncpg exposes sqlstate, psycopg exposes pgcode
        code = getattr(orig, 'sqlstate', None) or getattr(orig, 'pgcode', None)
    return code


def classify_exception(exc: Exception) -> Tuple[DatabaseErrorCode, Dict[str, Any]]:
    """Classify a database exception.

    Args:
        exc: The exception to classify

    Returns:
        Tuple containing the error category and log-ready error details
    """
    error_details = {
        "original_error": str(exc),
        "error_type": type(exc).__name__
    }

    pg_code = _pg_code(exc)
    if pg_code:
        error_details["pg_code"] = pg_code
        return PG_ERROR_CODE_MAP.get(pg_code, DatabaseErrorCode.UNKNOWN_ERROR), error_details

    if isinstance(exc, IntegrityError):
        return DatabaseErrorCode.INTEGRITY_ERROR, error_details
    if isinstance(exc, DataError):
        return DatabaseErrorCode.DATA_ERROR, error_details

    error_str = str(exc).lower()
    if "connection refused" in error_str:
        return DatabaseErrorCode.CONNECTION_REFUSED, error_details
    elif "timeout" in error_str or "timed out" in error_str:
        return DatabaseErrorCode.CONNECTION_TIMEOUT, error_details
    elif "lost connection" in error_str or "broken pipe" in error_str or (
        "connection" in error_str and ("reset" in error_str or "closed" in error_str)
    ):
        return DatabaseErrorCode.CONNECTION_LOST, error_details
    elif "authentication" in error_str or "password" in error_str:
        return DatabaseErrorCode.AUTH_FAILED, error_details
    elif "too many connections" in error_str or "out of memory" in error_str:
        return DatabaseErrorCode.INSUFFICIENT_RESOURCES, error_details

    if isinstance(exc, OperationalError):
        return DatabaseErrorCode.SYSTEM_ERROR, error_details
    return DatabaseErrorCode.UNKNOWN_ERROR, error_details


async def healthcheck_database(engine: AsyncEngine) -> Dict[str, Any]:
    """Run ``SELECT 1`` on a pooled connection and report latency."""
    start_time = time.time()
    try:
        async with engine.connect() as conn:
            row = (await conn.execute(text("SELECT 1"))).scalar()

        return {
            "status": "healthy" if row == 1 else "degraded",
            "response_time_ms": round((time.time() - start_time) * 1000, 2),
        }
    except SQLAlchemyError as exc:
        error_code, error_details = classify_exception(exc)
        elapsed_ms = round((time.time() - start_time) * 1000, 2)

        logger.error(
            "Database health check failed",
            event_type="db_healthcheck_failed",
            error_code=error_code.name,
            response_time_ms=elapsed_ms,
            error_details=error_details
        )

        return {
            "status": "unhealthy",
            "response_time_ms": elapsed_ms,
            "error_code": error_code.name,
        }
