"""Pull-based fallback channel.

Every few seconds the tracker asks Stripe for the events created after the
newest one it has seen. Events that were also pushed to the webhook are
absorbed by the activation's idempotency guard.

The cursor lives in memory only. After a restart the first non-empty
response merely re-establishes it: nothing from that batch is dispatched,
so the process never replays Stripe's event history.
"""

import asyncio
import uuid
from typing import List, Optional

from otterhound.core.exceptions import OtterhoundError
from otterhound.log.logging import logger
from otterhound.middleware.correlation import correlation_scope
from otterhound.schemas.events import Event
from otterhound.services.delivery_executor import DeliveryExecutor
from otterhound.services.stripe_client import StripeClient

DEFAULT_POLL_INTERVAL_SECONDS = 2.0


class PollCursorTracker:
    """Drives the poll loop and owns its monotonic ``created`` watermark."""

    def __init__(
        self,
        stripe_client: StripeClient,
        executor: DeliveryExecutor,
        interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        cursor: Optional[int] = None,
    ):
        self._stripe_client = stripe_client
        self._executor = executor
        self.interval = interval
        self.cursor = cursor

    async def poll_once(self) -> int:
        """
        Run one poll cycle.

        A failed cycle is logged and leaves the cursor untouched.

        Returns:
            Number of events dispatched to the executor
        """
        previous = self.cursor
        try:
            events = await self._fetch_since(previous)
        except OtterhoundError as e:
            logger.error(
                "Error in poll loop",
                error_type=type(e).__name__,
                error=e.message,
                cursor=previous,
                error_context=e.context
            )
            return 0

        if not events:
            return 0

        # max() keeps the cursor monotonic even if the API ignored the filter.
        candidate = max(event.created for event in events)
        self.cursor = candidate if previous is None else max(previous, candidate)

        if previous is None:
            logger.info("Got first batch, enabling", event="poll_enabled", cursor=self.cursor, skipped=len(events))
            return 0

        for event in events:
            self._executor.submit(event, source="poll")

        logger.debug("Poll cycle dispatched events", cursor=self.cursor, dispatched=len(events))
        return len(events)

    async def _fetch_since(self, cursor: Optional[int]) -> List[Event]:
        """
        Collect every event created after ``cursor``, following ``has_more``.

        The cold-start batch is never dispatched, so only its first page is
        fetched. A failure on any page fails the whole cycle.
        """
        page = await self._stripe_client.list_events(created_gt=cursor)
        events = list(page.data)

        while page.has_more and cursor is not None:
            last_id = events[-1].id if events else None
            if last_id is None:
                logger.warning(
                    "Event page truncated, older events in this interval were not fetched",
                    event="poll_page_truncated",
                    cursor=cursor,
                    fetched=len(events)
                )
                break
            page = await self._stripe_client.list_events(created_gt=cursor, starting_after=last_id)
            events.extend(page.data)

        return events

    async def run(self) -> None:
        """Poll forever; cycles run back to back with ``interval`` seconds between them."""
        logger.info("Starting poll loop", event="poll_start", interval=self.interval)
        while True:
            with correlation_scope(f"poll:{uuid.uuid4().hex[:12]}"):
                try:
                    await self.poll_once()
                except Exception:
                    logger.exception("Unexpected error in poll loop", cursor=self.cursor)
            await asyncio.sleep(self.interval)
