from flask import Blueprint, current_app, jsonify, request

from awayline.exceptions import AwaylineError
from awayline.models import NumberBinding, Subscription
from awayline.services.leave_service import LeaveLinkService
from awayline.services.number_assignment import NumberAssignmentManager
from awayline.services.subscription_ledger import SubscriptionLedger
from awayline.utils.helpers import utcnow
from awayline.utils.security import require_shared_secret

numbers_bp = Blueprint('numbers', __name__)


@numbers_bp.route('/assign', methods=['POST'])
@require_shared_secret('ADMIN_TOKEN', 'X-Admin-Token')
def assign_all():
    """Make sure every active subscriber holds a number"""
    summary = NumberAssignmentManager().assign_all_active(utcnow())
    current_app.logger.info(f"Manual assignment run: {summary}")
    return jsonify({'ok': True, **summary}), 200


@numbers_bp.route('/assign/<user_id>', methods=['POST'])
@require_shared_secret('ADMIN_TOKEN', 'X-Admin-Token')
def assign_user(user_id):
    """Assign or extend the number of one subscriber"""
    now = utcnow()
    subscription = SubscriptionLedger().active_subscription_for_user(user_id.strip(), now)
    if subscription is None:
        return jsonify({'ok': False, 'error': 'No active subscription for user'}), 404

    trace_id = request.headers.get('X-Request-Id')
    try:
        result = NumberAssignmentManager().assign(user_id, now, subscription.current_period_end, trace_id=trace_id)
    except AwaylineError as e:
        current_app.logger.error(f"Assignment for user {user_id} failed: {str(e)}")
        return jsonify({'ok': False, 'error': str(e), 'type': type(e).__name__}), 502

    return jsonify({'ok': True, 'user_id': user_id, **result.to_dict()}), 200


@numbers_bp.route('/<user_id>', methods=['GET'])
@require_shared_secret('ADMIN_TOKEN', 'X-Admin-Token')
def number_status(user_id):
    """Subscription, bound number and messages left for one user"""
    user_id = user_id.strip()
    subscription = (
        Subscription.query
        .filter(Subscription.user_id == user_id)
        .order_by(Subscription.current_period_end.desc().nullslast())
        .first()
    )
    binding = NumberBinding.active_for_user(user_id)
    if subscription is None and binding is None:
        return jsonify({'ok': False, 'error': 'Unknown user'}), 404

    messages = LeaveLinkService().messages_for_number(binding.phone_number) if binding else []

    return jsonify({
        'ok': True,
        'user_id': user_id,
        'subscription': subscription.to_dict() if subscription else None,
        'binding': binding.to_dict() if binding else None,
        'messages': [message.to_dict() for message in messages],
    }), 200
