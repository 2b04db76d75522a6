"""
Subscription Ledger

Durable record of each Stripe subscription's status and billing period, plus
the processed-event log that makes webhook side effects at-most-once.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from awayline.core.events import SubscriptionUpdate
from awayline.exceptions import LedgerError
from awayline.extensions import db
from awayline.models import ProcessedEvent, Subscription, SubscriptionStatus
from awayline.utils.helpers import utcnow


class SubscriptionLedger:
    """Upserts lifecycle events and answers "who is entitled right now" """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    # =========================================================================
    # WRITES
    # =========================================================================

    def upsert_subscription(self, update: SubscriptionUpdate) -> Subscription:
        """
        Insert or update the row keyed by the Stripe subscription id.

        Status is last-write-wins. Period bounds keep the non-null/latest
        value so an out-of-order event never clears or shortens the period.
        Flushes but does not commit; the caller owns the transaction.
        """
        subscription = Subscription.query.filter_by(
            stripe_subscription_id=update.subscription_id
        ).first()

        if subscription is None:
            subscription = Subscription(stripe_subscription_id=update.subscription_id)
            db.session.add(subscription)
            self.logger.info(f"New ledger row for subscription {update.subscription_id}")

        previous_status = subscription.status
        subscription.status = update.status

        if update.customer_id:
            subscription.stripe_customer_id = update.customer_id
        if update.user_id:
            subscription.user_id = update.user_id

        current_start = subscription.current_period_start
        current_end = subscription.current_period_end
        end_wins = update.period_end is not None and (current_end is None or update.period_end > current_end)

        # Start and end move together so the stored period is one billing cycle
        if update.period_start is not None and (
            current_start is None or end_wins or update.period_start > current_start
        ):
            subscription.current_period_start = update.period_start
        if end_wins:
            subscription.current_period_end = update.period_end

        subscription.updated_at = utcnow()

        try:
            db.session.flush()
        except SQLAlchemyError as e:
            raise LedgerError(f"Failed to upsert subscription {update.subscription_id}: {e}") from e

        self.logger.info(
            f"Subscription {update.subscription_id}: {previous_status or 'new'} -> {subscription.status}, "
            f"period_end={subscription.current_period_end}, user_id={subscription.user_id}"
        )
        return subscription

    def record_event(self, event_id: str, event_type: Optional[str] = None, source: str = 'stripe') -> bool:
        """
        Append the event id to the processed log.

        Returns False when the id was already recorded. Must be the first
        write of the transaction: a concurrent duplicate rolls it back.
        """
        if db.session.get(ProcessedEvent, event_id) is not None:
            return False

        db.session.add(ProcessedEvent(event_id=event_id, source=source, event_type=event_type))
        try:
            db.session.flush()
        except IntegrityError:
            # Concurrent delivery of the same event won the insert
            db.session.rollback()
            self.logger.info(f"Event {event_id} recorded concurrently, treating as duplicate")
            return False
        return True

    # =========================================================================
    # READS
    # =========================================================================

    def active_subscriptions(self, now: Optional[datetime] = None) -> List[Subscription]:
        """
        Active subscriptions with a future period end and a mapped user.

        When a user has several, only the one ending latest is returned.
        """
        now = now or utcnow()
        rows = (
            Subscription.query
            .filter(
                Subscription.status == SubscriptionStatus.ACTIVE,
                Subscription.current_period_end.isnot(None),
                Subscription.current_period_end > now,
                Subscription.user_id.isnot(None),
                func.trim(Subscription.user_id) != '',
            )
            .order_by(Subscription.current_period_end.desc())
            .all()
        )

        latest = {}
        for row in rows:
            latest.setdefault(row.user_id.strip(), row)
        return list(latest.values())

    def active_subscription_for_user(self, user_id: str, now: Optional[datetime] = None) -> Optional[Subscription]:
        for subscription in self.active_subscriptions(now):
            if subscription.user_id.strip() == user_id:
                return subscription
        return None
