from typing import Awaitable, Callable, Dict

from otterhound.log.logging import logger
from otterhound.schemas.events import CHECKOUT_SESSION_COMPLETED, Event

EventHandler = Callable[[Event], Awaitable[object]]


async def ignore_event(event: Event) -> None:
    """Handler for event types the service does not act on."""
    logger.debug("Ignoring unhandled event type", event_type=event.type, event_id=event.id)


class EventRouter:
    """Maps an event's type tag to the coroutine that handles it."""

    def __init__(self):
        self._handlers: Dict[str, EventHandler] = {}

    def register(self, event_type: str, handler: EventHandler) -> None:
        self._handlers[event_type] = handler

    def resolve(self, event_type: str) -> EventHandler:
        return self._handlers.get(event_type, ignore_event)

    @property
    def event_types(self):
        return sorted(self._handlers)

    async def route(self, event: Event) -> object:
        """Run the handler registered for ``event.type``; unknown types succeed as a no-op."""
        return await self.resolve(event.type)(event)


def build_event_router(activation_service) -> EventRouter:
    router = EventRouter()
    router.register(CHECKOUT_SESSION_COMPLETED, activation_service.activate)
    return router
