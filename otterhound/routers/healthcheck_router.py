from fastapi import APIRouter, Request
from typing import Dict, Any

from otterhound.core.db_utils import healthcheck_database
from otterhound.log.logging import logger

router = APIRouter(tags=["Health"])


@router.get(
    "/healthcheck",
    description="Liveness of both ingress channels",
    responses={200: {"description": "Service status"}}
)
async def health_check(request: Request) -> Dict[str, Any]:
    state = request.app.state
    tracker = getattr(state, "poll_tracker", None)
    executor = getattr(state, "executor", None)

    return {
        "status": "ok",
        "poll_enabled": tracker is not None,
        "poll_cursor": tracker.cursor if tracker is not None else None,
        "inflight": executor.inflight if executor is not None else 0,
    }


@router.get(
    "/healthcheck/db",
    description="Database connectivity through the shared pool",
    responses={200: {"description": "Database health check information"}}
)
async def db_health_check(request: Request) -> Dict[str, Any]:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        logger.warning("Database health requested before startup completed")
        return {"status": "unavailable"}
    return await healthcheck_database(engine)
