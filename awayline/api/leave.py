from flask import Blueprint, current_app, jsonify, request

from awayline.core.validators import LeaveMessageSchema
from awayline.exceptions import LeaveLinkInvalid
from awayline.services.leave_service import LeaveLinkService
from awayline.utils.helpers import isoformat_utc

leave_bp = Blueprint('leave', __name__)

LEAVE_ERROR_STATUS = {
    'not_found': 404,
    'expired': 410,
    'used': 409,
}


@leave_bp.route('/leave/<token>', methods=['GET'])
def leave_link_status(token):
    """Lets the leave form tell the caller up front whether the link still works"""
    try:
        link = LeaveLinkService().check_token(token)
    except LeaveLinkInvalid as e:
        return jsonify({'ok': True, 'valid': False, 'reason': e.reason}), 200

    return jsonify({'ok': True, 'valid': True, 'expires_at': isoformat_utc(link.expires_at)}), 200


@leave_bp.route('/leave', methods=['POST'])
def leave_message():
    """Store a caller's message and spend their link"""
    data = LeaveMessageSchema().load(request.get_json(silent=True) or {})

    try:
        saved = LeaveLinkService().leave_message(data['token'], data['message'])
    except LeaveLinkInvalid as e:
        current_app.logger.info(f"Leave message rejected: {e.reason}")
        return jsonify({'ok': False, 'error': str(e), 'reason': e.reason}), LEAVE_ERROR_STATUS[e.reason]

    return jsonify({'ok': True, 'id': saved.id}), 201
