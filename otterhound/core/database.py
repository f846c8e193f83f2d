from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncTransaction, create_async_engine

from otterhound.core.config import Settings, settings
from otterhound.core.db_utils import classify_exception
from otterhound.core.exceptions import StorageError
from otterhound.log.logging import logger


def create_engine_from_settings(config: Optional[Settings] = None) -> AsyncEngine:
    """Build the pooled async engine shared by every activation transaction."""
    config = config or settings
    database_url = config.async_database_url

    logger.info(
        "Database initialization",
        event_type="database_init",
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_timeout=config.DB_POOL_TIMEOUT,
        pool_recycle=config.DB_POOL_RECYCLE
    )

    return create_async_engine(
        database_url,
        echo=False,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_timeout=config.DB_POOL_TIMEOUT,
        pool_recycle=config.DB_POOL_RECYCLE,
        pool_pre_ping=True  # Verify connections before usage
    )


async def _rollback(trans: AsyncTransaction, original: BaseException) -> None:
    try:
        await trans.rollback()
        logger.debug("Transaction rolled back", event_type="db_rollback", cause=type(original).__name__)
    except Exception as rollback_exc:
        # The original error is what the caller needs to see.
        logger.warning(
            "Rollback failed",
            event_type="db_rollback_failed",
            cause=type(original).__name__,
            rollback_error=str(rollback_exc)
        )


@asynccontextmanager
async def transaction_scope(engine: AsyncEngine) -> AsyncIterator[AsyncConnection]:
    """
    Check out one pooled connection and run the block inside an explicit transaction.

    The transaction commits only when the block exits cleanly. Any exception
    raised by the block, or by the commit itself, rolls it back before being
    re-raised. SQLAlchemy errors surface as StorageError. The connection is
    returned to the pool on every exit path.

    Usage:
        async with transaction_scope(engine) as conn:
            await conn.execute(...)
    """
    try:
        async with engine.connect() as conn:
            trans = await conn.begin()
            try:
                yield conn
                await trans.commit()
            except BaseException as exc:
                await _rollback(trans, exc)
                raise
    except SQLAlchemyError as exc:
        error_code, error_details = classify_exception(exc)
        raise StorageError(
            f"Database operation failed ({error_code.name})",
            {"error_code": error_code.name, **error_details},
        ) from exc
