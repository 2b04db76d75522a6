"""
Background tasks for the number lifecycle and missed-call notifications
"""
import logging
from typing import Any, Dict, Optional

from celery import shared_task
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from awayline.exceptions import AwaylineError
from awayline.extensions import db
from awayline.models import MessageAttempt, MessageStage
from awayline.services.expiry_sweeper import ExpirySweeper
from awayline.services.leave_service import LeaveLinkService
from awayline.services.number_assignment import NumberAssignmentManager
from awayline.utils.helpers import mask_phone_number, parse_iso_datetime, utcnow
from awayline.utils.signalwire_client import get_signalwire_client

logger = logging.getLogger(__name__)


def dispatch(task, *args, **kwargs) -> Optional[str]:
    """
    Queue a task without letting broker problems reach the caller.

    Returns the task id, or None when it could not be queued.
    """
    try:
        result = task.delay(*args, **kwargs)
    except Exception:
        logger.exception(f"Could not queue {task.name}")
        return None
    logger.info(f"Queued {task.name} ({result.id})")
    return result.id


# =========================================================================
# NUMBER LIFECYCLE
# =========================================================================

@shared_task(name='awayline.assign_number_for_user')
def assign_number_for_user(user_id: str, expire_at_iso: str) -> Dict[str, Any]:
    """Bind a number to one user whose subscription just became active"""
    expire_at = parse_iso_datetime(expire_at_iso)
    try:
        result = NumberAssignmentManager().assign(user_id, utcnow(), expire_at)
    except AwaylineError as e:
        # The periodic reconciliation picks the user up again
        logger.error(f"Assignment task failed for user {user_id}: {e}")
        return {'success': False, 'user_id': user_id, 'error': str(e)}

    logger.info(f"Assignment task for user {user_id}: reused={result.reused} purchased={result.purchased}")
    return {'success': True, 'user_id': user_id, **result.to_dict()}


@shared_task(name='awayline.assign_active_subscribers')
def assign_active_subscribers() -> Dict[str, Any]:
    return NumberAssignmentManager().assign_all_active()


@shared_task(name='awayline.release_expired_numbers')
def release_expired_numbers() -> Dict[str, Any]:
    return ExpirySweeper().sweep().to_dict()


# =========================================================================
# MISSED-CALL NOTIFICATIONS
# =========================================================================

def build_leave_url(token: str) -> str:
    base_url = current_app.config.get('PUBLIC_BASE_URL', '').rstrip('/')
    return f"{base_url}/leave/{token}"


def build_status_callback_url(attempt_id: int) -> str:
    base_url = current_app.config.get('PUBLIC_BASE_URL', '').rstrip('/')
    return f"{base_url}/api/telephony/sms-status?attemptId={attempt_id}"


def _open_attempt(purpose: str, to_number: str, call_sid: Optional[str]) -> Optional[MessageAttempt]:
    """Tracking row for an outbound SMS; the SMS still goes out if it cannot be stored"""
    attempt = MessageAttempt(purpose=purpose, to_number=to_number, call_sid=call_sid,
                             request_stage=MessageStage.CREATED)
    try:
        db.session.add(attempt)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Could not record {purpose} SMS attempt: {e}")
        return None
    return attempt


def _close_attempt(attempt: Optional[MessageAttempt], message_sid=None, error=None) -> None:
    if attempt is None:
        return
    try:
        if error is None:
            attempt.request_stage = MessageStage.SENT
            attempt.message_sid = message_sid
        else:
            attempt.request_stage = MessageStage.SEND_FAILED
            attempt.error_message = str(error)
            if getattr(error, 'code', None) is not None:
                attempt.error_code = str(error.code)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Could not update SMS attempt {attempt.id}: {e}")


def send_tracked_sms(client, purpose: str, to_number: str, body: str, call_sid: Optional[str] = None) -> str:
    """Send an SMS recorded in message_attempts, with a status callback pointing back at that row"""
    attempt = _open_attempt(purpose, to_number, call_sid)
    status_callback = build_status_callback_url(attempt.id) if attempt is not None else None

    try:
        message_sid = client.send_sms(to_number, body, status_callback=status_callback)
    except AwaylineError as e:
        _close_attempt(attempt, error=e)
        raise

    _close_attempt(attempt, message_sid=message_sid)
    return message_sid


@shared_task(name='awayline.notify_missed_call')
def notify_missed_call(caller: str, called: str, call_sid: Optional[str] = None) -> Dict[str, Any]:
    """
    Text the caller a leave-a-message link and alert the operator.

    Each send is independent; a failed alert does not undo the caller SMS.
    """
    outcome = {'caller_sms': None, 'operator_alert': None}
    client = get_signalwire_client()

    try:
        token = LeaveLinkService().issue_token(caller, called, call_sid)
    except AwaylineError as e:
        logger.error(f"No leave link for call {call_sid}, caller SMS skipped: {e}")
        token = None

    if token is not None:
        body = current_app.config['CALLER_SMS_TEMPLATE'].format(leave_url=build_leave_url(token))
        try:
            outcome['caller_sms'] = send_tracked_sms(client, 'caller_sms', caller, body, call_sid)
            logger.info(f"Missed-call SMS sent to {mask_phone_number(caller)} for {mask_phone_number(called)}")
        except AwaylineError as e:
            logger.error(f"Missed-call SMS to {mask_phone_number(caller)} failed: {e}")

    alert_number = current_app.config.get('OPERATOR_ALERT_NUMBER')
    if alert_number:
        try:
            outcome['operator_alert'] = send_tracked_sms(
                client, 'operator_alert', alert_number, f"[voice] incoming call from {caller} to {called}", call_sid
            )
        except AwaylineError as e:
            logger.error(f"Operator alert failed: {e}")

    return outcome
