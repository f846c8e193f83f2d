from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import insert, update
from sqlalchemy.ext.asyncio import AsyncEngine

from otterhound.core.database import transaction_scope
from otterhound.core.exceptions import IdempotencyMiss
from otterhound.log.logging import logger
from otterhound.models.checkout_session import CheckoutSession
from otterhound.models.user_subscription import UserSubscription
from otterhound.schemas.events import Event, parse_checkout_session
from otterhound.services.stripe_client import StripeClient


def to_timestamp(stamp: int) -> datetime:
    return datetime.fromtimestamp(stamp, timezone.utc)


@dataclass(frozen=True)
class ActivationResult:
    user_id: int
    tier_id: int
    subscription_id: str


class SubscriptionActivationService:
    """
    Activates the subscription bought through a completed checkout session.

    Concurrent or repeated deliveries of the same event are safe: the update
    only matches a session that is not yet completed, so exactly one
    transaction flips the flag and inserts the subscription while every
    other one matches nothing and rolls back.
    """

    def __init__(self, stripe_client: StripeClient, engine: AsyncEngine):
        self.stripe_client = stripe_client
        self.engine = engine

    async def activate(self, event: Event) -> ActivationResult:
        """
        Handles the `checkout.session.completed` event.

        Raises:
            ParseError: The event payload is not a checkout session
            UpstreamError: The subscription could not be fetched from Stripe
            StorageError: The transaction failed and was rolled back
            IdempotencyMiss: The session is unknown or already completed
        """
        session = parse_checkout_session(event)
        logger.info(
            "Processing checkout.session.completed",
            event_id=event.id,
            checkout_session_id=session.id,
            stripe_subscription_id=session.subscription
        )

        detail = await self.stripe_client.retrieve_subscription(session.subscription)

        complete_session = (
            update(CheckoutSession)
            .where(CheckoutSession.external_id == session.id, CheckoutSession.completed.is_(False))
            .values(completed=True)
            .returning(CheckoutSession.user_id, CheckoutSession.tier_id)
        )

        async with transaction_scope(self.engine) as conn:
            row = (await conn.execute(complete_session)).first()
            if row is None:
                raise IdempotencyMiss(session.id)

            user_id, tier_id = row
            await conn.execute(
                insert(UserSubscription).values({
                    UserSubscription.tier: tier_id,
                    UserSubscription.user_id: user_id,
                    UserSubscription.start: to_timestamp(detail.created),
                    UserSubscription.end: to_timestamp(detail.current_period_end),
                    UserSubscription.external_subscription_id: session.subscription,
                })
            )

        logger.info(
            "Subscription activated",
            event_id=event.id,
            checkout_session_id=session.id,
            stripe_subscription_id=session.subscription,
            user_id=user_id,
            tier_id=tier_id
        )
        return ActivationResult(user_id=user_id, tier_id=tier_id, subscription_id=session.subscription)
