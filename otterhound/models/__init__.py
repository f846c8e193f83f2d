from otterhound.models.checkout_session import CheckoutSession
from otterhound.models.user_subscription import UserSubscription

__all__ = [
    'CheckoutSession',
    'UserSubscription',
]
