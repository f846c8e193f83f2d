"""Stripe payload schemas consumed by both ingress channels."""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from otterhound.core.exceptions import ParseError

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"


class EventData(BaseModel):
    """Wrapper around the object an event describes."""
    model_config = ConfigDict(frozen=True)

    object: Any = Field(..., description="The Stripe object the event describes, left undecoded")


class Event(BaseModel):
    """A Stripe event, as pushed to the webhook or returned by ``GET /events``."""

    id: Optional[str] = Field(None, description="Stripe event ID, used for log correlation only")
    created: int = Field(..., description="Unix timestamp of the event")
    type: str = Field(..., description="Event type tag, e.g. checkout.session.completed")
    data: EventData

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "evt_1234567890",
                "created": 1700000000,
                "type": CHECKOUT_SESSION_COMPLETED,
                "data": {"object": {"id": "cs_1", "subscription": "sub_1"}},
            }
        },
    )


class EventList(BaseModel):
    """One page of ``GET /events``."""

    data: List[Event]
    has_more: bool = False


class CheckoutSessionObject(BaseModel):
    """The fields of a completed checkout session needed for activation."""

    id: str
    subscription: str


class SubscriptionDetail(BaseModel):
    """The fields of ``GET /subscriptions/<id>`` needed for activation."""

    created: int
    current_period_end: int


def parse_event(body: bytes) -> Event:
    """Decode a raw webhook body into an Event, raising ParseError on bad input."""
    try:
        return Event.model_validate_json(body)
    except ValidationError as e:
        raise ParseError("Failed to parse event body", {"errors": e.errors(include_url=False)}) from e


def parse_checkout_session(event: Event) -> CheckoutSessionObject:
    try:
        return CheckoutSessionObject.model_validate(event.data.object)
    except ValidationError as e:
        raise ParseError("Failed to parse checkout session", {"errors": e.errors(include_url=False)}) from e
