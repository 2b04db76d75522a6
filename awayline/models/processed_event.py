from awayline.extensions import db
from awayline.utils.helpers import utcnow


class ProcessedEvent(db.Model):
    """Append-only record of upstream webhook event ids already handled"""
    __tablename__ = 'processed_events'

    event_id = db.Column(db.String(255), primary_key=True)
    source = db.Column(db.String(20), nullable=False, default='stripe')
    event_type = db.Column(db.String(100))
    received_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f'<ProcessedEvent {self.source}:{self.event_id}>'
