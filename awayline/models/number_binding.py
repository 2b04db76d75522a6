from awayline.extensions import db
from awayline.utils.helpers import utcnow, isoformat_utc


class NumberBinding(db.Model):
    """
    A provisioned phone number bound to a subscriber for a validity window.

    At most one row per user_id has is_released = False. Only application
    logic and the per-user advisory lock keep it that way; there is no
    partial unique index behind it.
    """
    __tablename__ = 'call_forward_numbers'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(255), nullable=False, index=True)

    # Provider identifiers
    phone_number = db.Column(db.String(20), nullable=False, index=True)
    phone_number_sid = db.Column(db.String(100))

    # Validity window
    start_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expire_at = db.Column(db.DateTime)

    # Release state
    is_released = db.Column(db.Boolean, nullable=False, default=False)
    released_at = db.Column(db.DateTime)
    release_error = db.Column(db.Text)

    # Timestamps
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.Index('idx_call_forward_numbers_release_scan', 'is_released', 'expire_at'),
    )

    @classmethod
    def active_for_user(cls, user_id):
        return (
            cls.query
            .filter(cls.user_id == user_id, cls.is_released.is_(False))
            .order_by(cls.updated_at.desc(), cls.id.desc())
            .first()
        )

    @classmethod
    def active_for_number(cls, phone_number):
        return (
            cls.query
            .filter(cls.phone_number == phone_number, cls.is_released.is_(False))
            .order_by(cls.updated_at.desc())
            .first()
        )

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'phone_number': self.phone_number,
            'phone_number_sid': self.phone_number_sid,
            'start_at': isoformat_utc(self.start_at),
            'expire_at': isoformat_utc(self.expire_at),
            'is_released': self.is_released,
            'released_at': isoformat_utc(self.released_at),
            'release_error': self.release_error,
        }

    def __repr__(self):
        return f'<NumberBinding {self.phone_number} user={self.user_id}>'
