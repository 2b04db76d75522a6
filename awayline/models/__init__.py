from awayline.models.subscription import Subscription, SubscriptionStatus
from awayline.models.number_binding import NumberBinding
from awayline.models.processed_event import ProcessedEvent
from awayline.models.leave import LeaveLink, LeaveLinkStatus, LeaveMessage
from awayline.models.message_attempt import MessageAttempt, MessageStage

__all__ = [
    'Subscription',
    'SubscriptionStatus',
    'NumberBinding',
    'ProcessedEvent',
    'LeaveLink',
    'LeaveLinkStatus',
    'LeaveMessage',
    'MessageAttempt',
    'MessageStage',
]
