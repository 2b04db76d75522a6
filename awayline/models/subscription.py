from awayline.extensions import db
from awayline.utils.helpers import utcnow, isoformat_utc


class SubscriptionStatus:
    PENDING = 'pending'
    ACTIVE = 'active'
    CANCELED = 'canceled'
    INVALID = 'invalid'


class Subscription(db.Model):
    """Ledger row for one Stripe subscription"""
    __tablename__ = 'subscriptions'

    id = db.Column(db.Integer, primary_key=True)

    # External references
    stripe_subscription_id = db.Column(db.String(100), unique=True, nullable=False)
    stripe_customer_id = db.Column(db.String(100))

    # Owning user, unknown until a checkout carrying it has been seen
    user_id = db.Column(db.String(255), index=True)

    # Status
    status = db.Column(db.String(20), nullable=False, default=SubscriptionStatus.PENDING)

    # Billing period
    current_period_start = db.Column(db.DateTime)
    current_period_end = db.Column(db.DateTime)

    # Timestamps
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    @property
    def is_entitled(self):
        return (
            self.status == SubscriptionStatus.ACTIVE
            and bool((self.user_id or '').strip())
            and self.current_period_end is not None
            and self.current_period_end > utcnow()
        )

    def to_dict(self):
        return {
            'id': self.id,
            'stripe_subscription_id': self.stripe_subscription_id,
            'stripe_customer_id': self.stripe_customer_id,
            'user_id': self.user_id,
            'status': self.status,
            'current_period_start': isoformat_utc(self.current_period_start),
            'current_period_end': isoformat_utc(self.current_period_end),
            'created_at': isoformat_utc(self.created_at),
            'updated_at': isoformat_utc(self.updated_at),
        }

    def __repr__(self):
        return f'<Subscription {self.stripe_subscription_id} {self.status}>'
