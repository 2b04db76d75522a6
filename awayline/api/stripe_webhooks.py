from flask import Blueprint, current_app, jsonify, request

from awayline.core.validators import CheckoutRequestSchema
from awayline.exceptions import ConfigurationError, ValidationError
from awayline.services.webhook_service import StripeWebhookService
from awayline.tasks import assign_number_for_user, dispatch
from awayline.utils.helpers import isoformat_utc
from awayline.utils.stripe_client import StripeClient

stripe_bp = Blueprint('stripe', __name__)


@stripe_bp.route('/webhook', methods=['POST'])
def stripe_webhook():
    """Handle Stripe subscription lifecycle webhooks"""
    payload = request.get_data()
    signature = request.headers.get('Stripe-Signature')

    try:
        event = StripeClient().construct_webhook_event(payload, signature)
    except ConfigurationError as e:
        current_app.logger.error(f"Stripe webhook rejected: {str(e)}")
        return jsonify({'error': 'Webhook not configured'}), 500
    except ValidationError as e:
        current_app.logger.warning(f"Stripe webhook rejected: {str(e)}")
        return jsonify({'error': str(e)}), 400

    # Past this point Stripe always gets a 2xx so it stops retrying
    try:
        outcome = StripeWebhookService().process_event(event)
    except Exception as e:
        current_app.logger.error(f"Stripe webhook {event.get('id')} processing failed: {str(e)}", exc_info=True)
        return jsonify({'received': True, 'warning': 'Event accepted but processing failed'}), 200

    if outcome.duplicate:
        return jsonify({'received': True, 'duplicate': True}), 200

    if outcome.should_assign:
        subscription = outcome.subscription
        dispatch(
            assign_number_for_user,
            subscription.user_id.strip(),
            isoformat_utc(subscription.current_period_end),
        )

    return jsonify({'received': True, 'type': outcome.event_type}), 200


@stripe_bp.route('/checkout-session', methods=['POST'])
def create_checkout_session():
    """Start a subscription checkout that carries the user id"""
    data = CheckoutRequestSchema().load(request.get_json(silent=True) or {})
    user_id = data['user_id'].strip()

    base_url = current_app.config.get('PUBLIC_BASE_URL', '').rstrip('/')
    session = StripeClient().create_checkout_session(
        user_id,
        current_app.config.get('STRIPE_PRICE_ID'),
        current_app.config.get('CHECKOUT_SUCCESS_URL') or f"{base_url}/subscribe?success=true",
        current_app.config.get('CHECKOUT_CANCEL_URL') or f"{base_url}/subscribe?canceled=true",
    )

    return jsonify({'ok': True, 'id': session.id, 'url': session.url}), 200
