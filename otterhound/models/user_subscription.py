from sqlalchemy import Column, DateTime, Integer, String

from otterhound.core.base_model import Base


class UserSubscription(Base):
    """
    An activated subscription, written in the same transaction that completes
    its checkout session.

    Attributes:
        tier (int): Tier copied from the checkout session.
        user_id (int): Subscriber.
        start (datetime): Subscription creation time reported by Stripe.
        end (datetime): End of the current billing period reported by Stripe.
        external_subscription_id (str): The Stripe subscription id (``sub_...``).
    """
    __tablename__ = "user_subscriptions"

    tier = Column(Integer, nullable=False)
    user_id = Column(Integer, nullable=False, index=True)
    start = Column("start_timestamp", DateTime(timezone=True), nullable=False)
    end = Column("end_timestamp", DateTime(timezone=True), nullable=False)
    external_subscription_id = Column("stripe_subscription", String(255), primary_key=True)

    def __repr__(self):
        return f"<UserSubscription(external_subscription_id='{self.external_subscription_id}', user_id={self.user_id})>"
