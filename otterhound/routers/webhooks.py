from fastapi import APIRouter, Depends, Header, Request, Response
from typing import Optional

from otterhound.core.config import settings
from otterhound.core.security import verify_signature
from otterhound.log.logging import logger
from otterhound.schemas.events import parse_event
from otterhound.services.delivery_executor import DeliveryExecutor

router = APIRouter()


def get_delivery_executor(request: Request) -> DeliveryExecutor:
    """Dependency to provide the executor created by the application lifespan."""
    return request.app.state.executor


@router.post(
    "/",
    summary="Receive Stripe webhook deliveries",
    responses={
        200: {"description": "Delivery accepted; processing continues in the background"},
        500: {"description": "Signature or body rejected (plain text)"},
    },
    tags=["Webhooks"]
)
async def receive_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),  # Stripe-Signature
    executor: DeliveryExecutor = Depends(get_delivery_executor),
):
    """
    Verifies the delivery, parses the event and hands it to the executor.

    The response only reflects whether the envelope was accepted; whether
    the event activates anything is decided afterwards. AuthError and
    ParseError are turned into a plain-text 500 by the exception handlers.
    """
    body = await request.body()
    verify_signature(
        stripe_signature,
        body,
        settings.STRIPE_WEBHOOK_SECRET,
        tolerance=settings.SIGNATURE_TOLERANCE_SECONDS,
    )
    event = parse_event(body)

    logger.info("Received event", event_type=event.type, event_id=event.id, source="push")
    executor.submit(event, source="push")

    return Response(status_code=200)
