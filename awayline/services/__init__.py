from awayline.services.expiry_sweeper import ExpirySweeper, SweepResult
from awayline.services.leave_service import LeaveLinkService
from awayline.services.number_assignment import AssignmentResult, NumberAssignmentManager
from awayline.services.subscription_ledger import SubscriptionLedger
from awayline.services.webhook_service import StripeWebhookService, WebhookOutcome

__all__ = [
    'AssignmentResult',
    'ExpirySweeper',
    'LeaveLinkService',
    'NumberAssignmentManager',
    'StripeWebhookService',
    'SubscriptionLedger',
    'SweepResult',
    'WebhookOutcome',
]
