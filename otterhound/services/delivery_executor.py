"""Fire-and-forget processing of accepted events.

Both ingress channels hand every accepted event to the executor and move
on. Each event runs in its own asyncio task; its outcome is only ever
reported to the log, never to the channel that accepted it.
"""

import asyncio
import uuid
from typing import Optional, Set

from otterhound.core.exceptions import IdempotencyMiss, OtterhoundError
from otterhound.log.logging import logger
from otterhound.middleware.correlation import correlation_scope, get_correlation_id
from otterhound.schemas.events import Event
from otterhound.services.event_router import EventRouter


class DeliveryExecutor:
    """Spawns one detached task per accepted event.

    Example:
        ```python
        executor = DeliveryExecutor(router)
        executor.submit(event, source="push")
        ...
        await executor.drain(timeout=30)
        ```
    """

    def __init__(self, router: EventRouter):
        self._router = router
        self._tasks: Set[asyncio.Task] = set()

    @property
    def inflight(self) -> int:
        return len(self._tasks)

    def submit(self, event: Event, source: str) -> asyncio.Task:
        """Schedule ``event`` for processing and return without waiting for it."""
        correlation_id = f"{source}:{event.id or uuid.uuid4().hex[:12]}"
        task = asyncio.create_task(
            self._process(event, source, correlation_id, get_correlation_id()),
            name=f"deliver-{correlation_id}",
        )
        # The event loop only keeps weak references to tasks.
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _process(self, event: Event, source: str, correlation_id: str, parent_id: Optional[str]) -> None:
        with correlation_scope(correlation_id):
            try:
                await self._router.route(event)
            except IdempotencyMiss as e:
                logger.warning(
                    "Event already applied, skipping",
                    event_type=event.type,
                    event_id=event.id,
                    source=source,
                    parent_id=parent_id,
                    **e.context
                )
            except OtterhoundError as e:
                logger.error(
                    "Error handling event",
                    error_type=type(e).__name__,
                    error=e.message,
                    event_type=event.type,
                    event_id=event.id,
                    source=source,
                    parent_id=parent_id,
                    error_context=e.context
                )
            except Exception:
                logger.exception(
                    "Unexpected error handling event",
                    event_type=event.type,
                    event_id=event.id,
                    source=source,
                    parent_id=parent_id
                )
            else:
                logger.info("Event handled", event_type=event.type, event_id=event.id, source=source)

    async def drain(self, timeout: Optional[float] = None) -> int:
        """
        Wait for in-flight deliveries to finish without cancelling them.

        Returns:
            Number of deliveries still running when the timeout expired
        """
        if not self._tasks:
            return 0
        logger.info("Waiting for in-flight deliveries", event="shutdown_waiting", inflight=len(self._tasks))
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning(
                "Deliveries still running at shutdown",
                event="shutdown_forced",
                inflight=len(pending)
            )
        return len(pending)
