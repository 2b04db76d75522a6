"""
SignalWire webhook validation and LaML responses
"""
import logging
from functools import wraps
from xml.sax.saxutils import escape

from flask import Response, current_app, request

from awayline.exceptions import ConfigurationError
from awayline.utils.signalwire_client import get_signalwire_client

logger = logging.getLogger(__name__)

LAML_MIMETYPE = 'application/xml'


# =============================================================================
# WEBHOOK SIGNATURE VALIDATION
# =============================================================================

def telephony_request_is_valid() -> bool:
    """
    Check X-SignalWire-Signature against the current Flask request.

    Validation is skipped when VALIDATE_TELEPHONY_SIGNATURE is off.
    """
    if not current_app.config.get('VALIDATE_TELEPHONY_SIGNATURE', True):
        return True

    signature = request.headers.get('X-SignalWire-Signature') or request.headers.get('X-Twilio-Signature', '')
    if not signature:
        logger.warning(f"Missing telephony signature on {request.path}")
        return False

    try:
        client = get_signalwire_client()
    except ConfigurationError as e:
        logger.error(f"Cannot validate telephony webhook: {e}")
        return False

    is_valid = client.validate_request(request.url, request.form.to_dict(), signature)
    if not is_valid:
        logger.warning(f"Invalid telephony signature on {request.path}")
    return is_valid


def validate_telephony_request(f):
    """Reject telephony webhooks whose signature does not match with 403"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not telephony_request_is_valid():
            return laml_response(create_empty_laml_response(), 403)
        return f(*args, **kwargs)
    return decorated_function


# =============================================================================
# LAML RESPONSE HELPERS
# =============================================================================

def create_empty_laml_response() -> str:
    """Create empty LaML response (no reply)"""
    return '<?xml version="1.0" encoding="UTF-8"?>\n<Response></Response>'


def create_voice_laml_response(message: str, voice: str = "alice", language: str = "en-US",
                               hangup: bool = True) -> str:
    """
    Create LaML response for voice calls

    Args:
        message: Text to speak
        voice: Voice to use
        language: Language code
        hangup: End the call after speaking

    Returns:
        XML string for voice LaML response
    """
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<Response>',
        f'    <Say voice="{voice}" language="{language}">{escape(message)}</Say>',
    ]
    if hangup:
        parts.append('    <Hangup/>')
    parts.append('</Response>')
    return '\n'.join(parts)


def laml_response(body: str, status: int = 200) -> Response:
    return Response(body, status=status, mimetype=LAML_MIMETYPE)
