"""Async client for the two Stripe REST endpoints the service reads."""

from typing import Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from otterhound.core.config import Settings, settings
from otterhound.core.exceptions import ParseError, UpstreamError
from otterhound.log.logging import logger
from otterhound.schemas.events import EventList, SubscriptionDetail


class StripeClient:
    """
    Thin wrapper over ``httpx.AsyncClient`` for ``GET /events`` and
    ``GET /subscriptions/<id>``.

    Requests carry no timeout: a hung call holds its caller until the
    connection is dropped.

    Example:
        ```python
        async with StripeClient.from_settings() as client:
            page = await client.list_events(created_gt=1700000000)
        ```
    """

    def __init__(self, http_client: httpx.AsyncClient, events_page_limit: Optional[int] = None):
        self._http = http_client
        self._events_page_limit = events_page_limit

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> "StripeClient":
        config = config or settings
        http_client = httpx.AsyncClient(
            base_url=config.STRIPE_API_BASE.rstrip("/") + "/",
            headers={"Authorization": f"Bearer {config.STRIPE_SECRET_KEY}"},
            timeout=None,
            transport=transport,
        )
        return cls(http_client, events_page_limit=config.STRIPE_EVENTS_PAGE_LIMIT)

    async def __aenter__(self) -> "StripeClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _get(self, path: str, params: Optional[dict] = None) -> httpx.Response:
        try:
            response = await self._http.get(path, params=params)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Failed to send request: {type(e).__name__}", context={"path": path}) from e

        if not response.is_success:
            logger.debug(
                "Stripe API returned an error",
                event_type="stripe_api_error",
                path=path,
                status_code=response.status_code,
                body=response.text[:500]
            )
            raise UpstreamError(
                f"Received error from API: HTTP {response.status_code}",
                status_code=response.status_code,
                context={"path": path},
            )
        return response

    async def list_events(self, created_gt: Optional[int] = None, starting_after: Optional[str] = None) -> EventList:
        """
        Fetch the newest page of events, optionally only those created after ``created_gt``.

        Stripe lists events newest first; pass the id of the last event of a
        page as ``starting_after`` to fetch the next, older page.

        Raises:
            UpstreamError: Transport failure or non-2xx status
            ParseError: The response body is not an event list
        """
        params = {}
        if created_gt is not None:
            params["created[gt]"] = str(created_gt)
        if starting_after is not None:
            params["starting_after"] = starting_after
        if self._events_page_limit:
            params["limit"] = str(self._events_page_limit)

        response = await self._get("events", params=params or None)
        try:
            return EventList.model_validate_json(response.content)
        except ValidationError as e:
            raise ParseError("Failed to parse response", {"path": "events", "errors": e.error_count()}) from e

    async def retrieve_subscription(self, subscription_id: str) -> SubscriptionDetail:
        """
        Fetch the period boundaries of a subscription.

        Undecodable bodies count as an upstream failure, as the subscription
        cannot be activated without them.

        Raises:
            UpstreamError: Transport failure, non-2xx status or undecodable body
        """
        path = f"subscriptions/{quote(subscription_id, safe='')}"
        response = await self._get(path)
        try:
            return SubscriptionDetail.model_validate_json(response.content)
        except ValidationError as e:
            raise UpstreamError("Failed to parse response", status_code=response.status_code, context={"path": path}) from e
