"""
Stripe webhook processing

Turns a verified event body into ledger writes. Recording the event id and
upserting the subscription share one transaction, so a failed upsert leaves
the event unrecorded and a Stripe retry processes it again.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from awayline.core.validators import decode_stripe_event
from awayline.extensions import db
from awayline.models import Subscription
from awayline.services.subscription_ledger import SubscriptionLedger


@dataclass
class WebhookOutcome:
    event_id: str
    event_type: str
    duplicate: bool = False
    handled: bool = False
    subscription: Optional[Subscription] = None

    @property
    def should_assign(self) -> bool:
        return self.subscription is not None and self.subscription.is_entitled


class StripeWebhookService:

    def __init__(self, ledger: Optional[SubscriptionLedger] = None):
        self.logger = logging.getLogger(__name__)
        self.ledger = ledger or SubscriptionLedger()

    def process_event(self, payload: dict) -> WebhookOutcome:
        """
        Apply one verified Stripe event to the ledger and commit.

        Raises:
            ValidationError: a handled event type is malformed
            LedgerError: the ledger write failed (transaction rolled back)
        """
        event = decode_stripe_event(payload)
        outcome = WebhookOutcome(event_id=event.event_id, event_type=event.type)

        try:
            if not self.ledger.record_event(event.event_id, event.type):
                self.logger.info(f"Duplicate Stripe event {event.event_id} ({event.type}) ignored")
                outcome.duplicate = True
                return outcome

            update = event.to_update()
            if update is None:
                self.logger.info(f"Stripe event {event.event_id} ({event.type}) acknowledged without changes")
            else:
                outcome.subscription = self.ledger.upsert_subscription(update)
                outcome.handled = True

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        return outcome
