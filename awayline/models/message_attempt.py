from awayline.extensions import db
from awayline.utils.helpers import utcnow


class MessageStage:
    CREATED = 'created'
    SENT = 'sent'
    SEND_FAILED = 'send_failed'
    CALLBACK_RECEIVED = 'callback_received'


class MessageAttempt(db.Model):
    """
    One outbound SMS and what the provider last reported about it.

    The row exists before the send so its id can ride on the status
    callback URL.
    """
    __tablename__ = 'message_attempts'

    id = db.Column(db.Integer, primary_key=True)
    purpose = db.Column(db.String(30), nullable=False)
    to_number = db.Column(db.String(20), nullable=False)
    call_sid = db.Column(db.String(100))

    request_stage = db.Column(db.String(30), nullable=False, default=MessageStage.CREATED)
    message_sid = db.Column(db.String(100), index=True)
    provider_status = db.Column(db.String(30))
    error_code = db.Column(db.String(20))
    error_message = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f'<MessageAttempt {self.id} {self.purpose} {self.request_stage}>'
