"""
VALIDATION SCHEMAS
Stripe webhook decoding and configuration checks
"""
from urllib.parse import urlparse

from marshmallow import Schema, fields, validate, validates, EXCLUDE
from marshmallow import ValidationError as SchemaValidationError

from awayline.core.events import (
    CheckoutCompleted,
    InvoicePaid,
    SubscriptionChanged,
    UnhandledEvent,
    map_stripe_status,
)
from awayline.exceptions import ValidationError
from awayline.models.subscription import SubscriptionStatus
from awayline.utils.helpers import from_unix


# =============================================================================
# CUSTOM VALIDATORS
# =============================================================================

def is_https_url(value) -> bool:
    """Strict absolute https:// URL with a host and no whitespace"""
    if not isinstance(value, str) or not value or value != value.strip():
        return False
    if any(ch.isspace() for ch in value):
        return False
    parsed = urlparse(value)
    return parsed.scheme.lower() == 'https' and bool(parsed.hostname)


# =============================================================================
# CUSTOM FIELDS
# =============================================================================

class ExpandableId(fields.Field):
    """Stripe reference that may arrive as a bare id or an expanded object"""

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, str):
            return value
        if isinstance(value, dict) and isinstance(value.get('id'), str):
            return value['id']
        raise SchemaValidationError('Expected an id string or an expanded object.')


class UnixTimestamp(fields.Field):
    """Unix seconds to naive UTC datetime"""

    def _deserialize(self, value, attr, data, **kwargs):
        try:
            return from_unix(value)
        except (TypeError, ValueError, OverflowError, OSError):
            raise SchemaValidationError('Expected a unix timestamp.')


def _ref():
    return ExpandableId(allow_none=True, load_default=None)


def _ts():
    return UnixTimestamp(allow_none=True, load_default=None)


# =============================================================================
# BASE SCHEMAS
# =============================================================================

class BaseSchema(Schema):
    """Stripe objects carry far more keys than we read"""

    class Meta:
        unknown = EXCLUDE


class PeriodSchema(BaseSchema):
    start = _ts()
    end = _ts()


class EventDataSchema(BaseSchema):
    object = fields.Dict(required=True)


class EventEnvelopeSchema(BaseSchema):
    id = fields.Str(required=True)
    type = fields.Str(required=True)
    data = fields.Nested(EventDataSchema, required=True)


# =============================================================================
# CHECKOUT
# =============================================================================

class CheckoutSessionSchema(BaseSchema):
    id = fields.Str(required=True)
    subscription = _ref()
    customer = _ref()
    client_reference_id = fields.Str(allow_none=True, load_default=None)
    metadata = fields.Dict(allow_none=True, load_default=None)


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

class SubscriptionItemSchema(BaseSchema):
    current_period_start = _ts()
    current_period_end = _ts()


class SubscriptionItemListSchema(BaseSchema):
    data = fields.List(fields.Nested(SubscriptionItemSchema), load_default=list)


class SubscriptionObjectSchema(BaseSchema):
    id = fields.Str(required=True)
    customer = _ref()
    status = fields.Str(required=True)
    current_period_start = _ts()
    current_period_end = _ts()
    metadata = fields.Dict(allow_none=True, load_default=None)
    items = fields.Nested(SubscriptionItemListSchema, allow_none=True, load_default=None)


# =============================================================================
# INVOICES
# =============================================================================

class InvoiceLineParentDetailsSchema(BaseSchema):
    subscription = _ref()


class InvoiceLineParentSchema(BaseSchema):
    subscription_item_details = fields.Nested(
        InvoiceLineParentDetailsSchema, allow_none=True, load_default=None
    )


class InvoiceLineSchema(BaseSchema):
    type = fields.Str(allow_none=True, load_default=None)
    subscription = _ref()
    period = fields.Nested(PeriodSchema, allow_none=True, load_default=None)
    parent = fields.Nested(InvoiceLineParentSchema, allow_none=True, load_default=None)


class InvoiceLineListSchema(BaseSchema):
    data = fields.List(fields.Nested(InvoiceLineSchema), load_default=list)


class InvoiceSubscriptionDetailsSchema(BaseSchema):
    subscription = _ref()


class InvoiceParentSchema(BaseSchema):
    subscription_details = fields.Nested(
        InvoiceSubscriptionDetailsSchema, allow_none=True, load_default=None
    )


class InvoiceObjectSchema(BaseSchema):
    id = fields.Str(required=True)
    customer = _ref()
    subscription = _ref()
    parent = fields.Nested(InvoiceParentSchema, allow_none=True, load_default=None)
    lines = fields.Nested(InvoiceLineListSchema, allow_none=True, load_default=None)


# =============================================================================
# EVENT BUILDERS
# =============================================================================

def _metadata_user_id(metadata):
    if not metadata:
        return None
    user_id = metadata.get('userId') or metadata.get('user_id')
    if isinstance(user_id, str) and user_id.strip():
        return user_id.strip()
    return None


def _build_checkout(event_id, event_type, obj):
    user_id = obj['client_reference_id'] or _metadata_user_id(obj['metadata'])
    return CheckoutCompleted(
        event_id=event_id,
        subscription_id=obj['subscription'],
        customer_id=obj['customer'],
        user_id=user_id.strip() if user_id else None,
    )


def _build_subscription(event_id, event_type, obj):
    period_start = obj['current_period_start']
    period_end = obj['current_period_end']

    # API versions from 2025-03-31 moved the period onto the items
    items = (obj['items'] or {}).get('data') or []
    if items and (period_start is None or period_end is None):
        period_start = period_start or items[0]['current_period_start']
        period_end = period_end or max(
            (item['current_period_end'] for item in items if item['current_period_end']),
            default=None,
        )

    if event_type == 'customer.subscription.deleted':
        status = SubscriptionStatus.CANCELED
    else:
        status = map_stripe_status(obj['status'])

    return SubscriptionChanged(
        event_id=event_id,
        type=event_type,
        subscription_id=obj['id'],
        customer_id=obj['customer'],
        status=status,
        period_start=period_start,
        period_end=period_end,
        user_id=_metadata_user_id(obj['metadata']),
    )


def _line_subscription(line):
    if line['subscription']:
        return line['subscription']
    details = (line['parent'] or {}).get('subscription_item_details') or {}
    return details.get('subscription')


def _build_invoice(event_id, event_type, obj):
    subscription_id = obj['subscription']
    if not subscription_id:
        details = (obj['parent'] or {}).get('subscription_details') or {}
        subscription_id = details.get('subscription')

    lines = (obj['lines'] or {}).get('data') or []
    subscription_lines = [
        line for line in lines
        if line['type'] == 'subscription' or _line_subscription(line)
    ] or lines

    period_start = period_end = None
    for line in subscription_lines:
        period = line['period'] or {}
        if not subscription_id:
            subscription_id = _line_subscription(line)
        if period.get('end') and (period_end is None or period['end'] > period_end):
            period_start, period_end = period.get('start'), period['end']

    return InvoicePaid(
        event_id=event_id,
        type=event_type,
        subscription_id=subscription_id,
        customer_id=obj['customer'],
        period_start=period_start,
        period_end=period_end,
    )


_DECODERS = {
    'checkout.session.completed': (CheckoutSessionSchema(), _build_checkout),
    'customer.subscription.created': (SubscriptionObjectSchema(), _build_subscription),
    'customer.subscription.updated': (SubscriptionObjectSchema(), _build_subscription),
    'customer.subscription.deleted': (SubscriptionObjectSchema(), _build_subscription),
    'invoice.paid': (InvoiceObjectSchema(), _build_invoice),
    'invoice.payment_succeeded': (InvoiceObjectSchema(), _build_invoice),
}


def decode_stripe_event(payload):
    """
    Decode a verified Stripe event body into a typed event.

    Raises ValidationError when a handled event type is malformed.
    Unhandled types come back as UnhandledEvent.
    """
    try:
        envelope = EventEnvelopeSchema().load(payload)
    except SchemaValidationError as e:
        raise ValidationError(f"Malformed event envelope: {e.messages}")

    event_id = envelope['id']
    event_type = envelope['type']

    decoder = _DECODERS.get(event_type)
    if decoder is None:
        return UnhandledEvent(event_id=event_id, type=event_type)

    schema, build = decoder
    try:
        obj = schema.load(envelope['data']['object'])
    except SchemaValidationError as e:
        raise ValidationError(f"Malformed {event_type} payload: {e.messages}")

    return build(event_id, event_type, obj)


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class LeaveMessageSchema(Schema):
    """Body of POST /api/leave"""
    token = fields.Str(required=True, validate=validate.Length(min=1, max=64))
    message = fields.Str(required=True, validate=validate.Length(max=2000))

    @validates('message')
    def validate_message(self, value, **kwargs):
        if not value.strip():
            raise SchemaValidationError('Message must not be blank.')


class CheckoutRequestSchema(Schema):
    """Body of POST /api/stripe/checkout-session"""
    user_id = fields.Str(required=True, validate=validate.Length(min=1, max=255))

    @validates('user_id')
    def validate_user_id(self, value, **kwargs):
        if not value.strip():
            raise SchemaValidationError('user_id must not be blank.')
