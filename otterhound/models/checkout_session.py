from sqlalchemy import Boolean, Column, Integer, String, false

from otterhound.core.base_model import Base


class CheckoutSession(Base):
    """
    A purchase flow started by the storefront and awaiting Stripe's confirmation.

    Attributes:
        external_id (str): The Stripe checkout session id (``cs_...``).
        completed (bool): Flipped to True exactly once, by the activation
            that wins the conditional update.
        user_id (int): The purchasing user.
        tier_id (int): The subscription tier being purchased.
    """
    __tablename__ = "subscription_checkout_sessions"

    external_id = Column("stripe_id", String(255), primary_key=True)
    completed = Column(Boolean, nullable=False, default=False, server_default=false())
    user_id = Column(Integer, nullable=False)
    tier_id = Column(Integer, nullable=False)

    def __repr__(self):
        return f"<CheckoutSession(external_id='{self.external_id}', completed={self.completed})>"
