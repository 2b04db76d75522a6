"""
Typed payment events

Stripe webhook bodies are decoded into one of these before the ledger sees
them. See awayline.core.validators.decode_stripe_event.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from awayline.models.subscription import SubscriptionStatus


# Stripe subscription status -> ledger status
STRIPE_STATUS_MAP = {
    'active': SubscriptionStatus.ACTIVE,
    'trialing': SubscriptionStatus.ACTIVE,
    'incomplete': SubscriptionStatus.PENDING,
    'past_due': SubscriptionStatus.PENDING,
    'canceled': SubscriptionStatus.CANCELED,
    'unpaid': SubscriptionStatus.INVALID,
    'incomplete_expired': SubscriptionStatus.INVALID,
    'paused': SubscriptionStatus.INVALID,
}


def map_stripe_status(stripe_status: Optional[str]) -> str:
    return STRIPE_STATUS_MAP.get((stripe_status or '').lower(), SubscriptionStatus.INVALID)


@dataclass(frozen=True)
class SubscriptionUpdate:
    """Normalized ledger write produced from any lifecycle event"""
    subscription_id: str
    status: str
    customer_id: Optional[str] = None
    user_id: Optional[str] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None


@dataclass(frozen=True)
class CheckoutCompleted:
    event_id: str
    subscription_id: Optional[str]
    customer_id: Optional[str]
    user_id: Optional[str]

    type = 'checkout.session.completed'

    def to_update(self) -> Optional[SubscriptionUpdate]:
        if not self.subscription_id or not self.customer_id:
            return None
        return SubscriptionUpdate(
            subscription_id=self.subscription_id,
            status=SubscriptionStatus.ACTIVE,
            customer_id=self.customer_id,
            user_id=self.user_id,
        )


@dataclass(frozen=True)
class SubscriptionChanged:
    event_id: str
    type: str
    subscription_id: str
    customer_id: Optional[str]
    status: str
    period_start: Optional[datetime]
    period_end: Optional[datetime]
    user_id: Optional[str]

    def to_update(self) -> Optional[SubscriptionUpdate]:
        return SubscriptionUpdate(
            subscription_id=self.subscription_id,
            status=self.status,
            customer_id=self.customer_id,
            user_id=self.user_id,
            period_start=self.period_start,
            period_end=self.period_end,
        )


@dataclass(frozen=True)
class InvoicePaid:
    event_id: str
    type: str
    subscription_id: Optional[str]
    customer_id: Optional[str]
    period_start: Optional[datetime]
    period_end: Optional[datetime]

    def to_update(self) -> Optional[SubscriptionUpdate]:
        # One-off invoices carry no subscription
        if not self.subscription_id:
            return None
        return SubscriptionUpdate(
            subscription_id=self.subscription_id,
            status=SubscriptionStatus.ACTIVE,
            customer_id=self.customer_id,
            period_start=self.period_start,
            period_end=self.period_end,
        )


@dataclass(frozen=True)
class UnhandledEvent:
    event_id: str
    type: str

    def to_update(self) -> None:
        return None
