from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from awayline.extensions import db
from awayline.models import MessageAttempt, MessageStage, NumberBinding
from awayline.tasks import dispatch, notify_missed_call
from awayline.utils.helpers import mask_phone_number
from awayline.utils.signalwire_validation import (
    create_voice_laml_response,
    laml_response,
    validate_telephony_request,
)

telephony_bp = Blueprint('telephony', __name__)


@telephony_bp.route('/voice', methods=['POST'])
@validate_telephony_request
def voice_webhook():
    """Answer a forwarded call and text the caller a leave-a-message link"""
    caller = request.form.get('From', '').strip()
    called = request.form.get('To', '').strip()
    call_sid = request.form.get('CallSid')

    current_app.logger.info(
        f"Incoming call {call_sid} from {mask_phone_number(caller)} to {mask_phone_number(called)}"
    )

    try:
        if NumberBinding.active_for_number(called) is None:
            current_app.logger.warning(f"Call {call_sid} reached unbound number {mask_phone_number(called)}")
    except Exception as e:
        current_app.logger.error(f"Binding lookup for call {call_sid} failed: {str(e)}")

    if caller:
        dispatch(notify_missed_call, caller, called, call_sid)
    else:
        current_app.logger.warning(f"Call {call_sid} has no caller id, no SMS sent")

    greeting = current_app.config.get('VOICE_GREETING')
    return laml_response(create_voice_laml_response(greeting))


@telephony_bp.route('/sms-status', methods=['POST'])
@validate_telephony_request
def sms_status():
    """Delivery callbacks for the caller SMS, recorded on its message attempt"""
    attempt_id = request.args.get('attemptId', type=int)
    message_sid = request.form.get('MessageSid') or request.form.get('SmsSid')
    status = request.form.get('MessageStatus') or request.form.get('SmsStatus')
    error_code = request.form.get('ErrorCode')

    if error_code:
        current_app.logger.warning(f"SMS {message_sid} status={status} error_code={error_code}")
    else:
        current_app.logger.info(f"SMS {message_sid} status={status}")

    # Always 200 so the provider does not retry
    try:
        attempt = db.session.get(MessageAttempt, attempt_id) if attempt_id else None
        if attempt is None and message_sid:
            attempt = MessageAttempt.query.filter_by(message_sid=message_sid).first()

        if attempt is None:
            current_app.logger.warning(f"Status callback for unknown SMS {message_sid} (attempt={attempt_id})")
        else:
            attempt.request_stage = MessageStage.CALLBACK_RECEIVED
            attempt.message_sid = attempt.message_sid or message_sid
            attempt.provider_status = status
            if error_code:
                attempt.error_code = error_code
            db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Recording status of SMS {message_sid} failed: {str(e)}")

    return jsonify({'ok': True}), 200
