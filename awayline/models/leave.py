from awayline.extensions import db
from awayline.utils.helpers import utcnow, isoformat_utc


class LeaveLinkStatus:
    ACTIVE = 'active'
    USED = 'used'


class LeaveLink(db.Model):
    """Single-use token texted to a caller so they can leave a message"""
    __tablename__ = 'leave_links'

    token = db.Column(db.String(64), primary_key=True)
    call_sid = db.Column(db.String(100), index=True)
    from_number = db.Column(db.String(20), nullable=False)
    to_number = db.Column(db.String(20), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=LeaveLinkStatus.ACTIVE)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)
    used_at = db.Column(db.DateTime)

    messages = db.relationship('LeaveMessage', backref='link', lazy='dynamic')

    def is_usable(self, now=None):
        now = now or utcnow()
        return self.used_at is None and self.expires_at > now

    def __repr__(self):
        return f'<LeaveLink call={self.call_sid} status={self.status}>'


class LeaveMessage(db.Model):
    """A message a caller left through their leave link"""
    __tablename__ = 'leave_messages'

    id = db.Column(db.Integer, primary_key=True)
    token = db.Column(db.String(64), db.ForeignKey('leave_links.token'), nullable=False, index=True)
    message = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'from_number': self.link.from_number,
            'to_number': self.link.to_number,
            'call_sid': self.link.call_sid,
            'message': self.message,
            'created_at': isoformat_utc(self.created_at),
        }

    def __repr__(self):
        return f'<LeaveMessage {self.id}>'
