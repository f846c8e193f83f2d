"""Create the checkout session and subscription tables.

Usage:
    python -m otterhound.scripts.init_db
"""

import asyncio
import sys

from sqlalchemy.ext.asyncio import AsyncEngine

from otterhound.core.base_model import Base
from otterhound.core.database import create_engine_from_settings
from otterhound.log.logging import logger
import otterhound.models  # noqa: F401  registers the tables on Base.metadata


async def create_tables(engine: AsyncEngine, drop_first: bool = False) -> None:
    """Create every table known to Base.metadata on ``engine``."""
    async with engine.begin() as conn:
        if drop_first:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created", event_type="db_tables_created", tables=sorted(Base.metadata.tables))


async def init_db(drop_first: bool = False) -> None:
    engine = create_engine_from_settings()
    try:
        await create_tables(engine, drop_first=drop_first)
    finally:
        await engine.dispose()


def main():
    drop_first = "--drop" in sys.argv[1:]
    try:
        asyncio.run(init_db(drop_first=drop_first))
    except KeyboardInterrupt:
        logger.info("Database initialization interrupted", event_type="db_init_interrupted")
    except Exception:
        logger.exception("Database initialization error")
        sys.exit(1)


if __name__ == "__main__":
    main()
