"""
SignalWire Client
Number search, purchase and release plus caller SMS over the LaML REST API
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from flask import current_app
from requests.exceptions import RequestException
from twilio.base.exceptions import TwilioException, TwilioRestException

from awayline.exceptions import (
    ConfigurationError,
    ProviderError,
    ProviderMessageFailed,
    ProviderPurchaseFailed,
    ProviderReleaseFailed,
)

logger = logging.getLogger(__name__)

# Transport and API failures raised by the SDK
SDK_ERRORS = (TwilioException, RequestException)


@dataclass(frozen=True)
class PurchasedNumber:
    sid: str
    phone_number: str


class SignalWireConfig:
    """SignalWire configuration management"""

    def __init__(self, project_id, auth_token, space_url,
                 messaging_service_sid=None, from_number=None):
        self.project_id = project_id
        self.auth_token = auth_token
        self.space_url = space_url
        self.messaging_service_sid = messaging_service_sid
        self.from_number = from_number

        if not all([self.project_id, self.auth_token, self.space_url]):
            raise ConfigurationError("Missing required SignalWire credentials")

    @classmethod
    def from_mapping(cls, config: Dict[str, Any]) -> 'SignalWireConfig':
        return cls(
            project_id=config.get('SIGNALWIRE_PROJECT_ID'),
            auth_token=config.get('SIGNALWIRE_AUTH_TOKEN'),
            space_url=config.get('SIGNALWIRE_SPACE_URL'),
            messaging_service_sid=config.get('SIGNALWIRE_MESSAGING_SERVICE_SID'),
            from_number=config.get('SIGNALWIRE_FROM_NUMBER'),
        )


class SignalWireErrorHandler:
    """Maps SDK exceptions onto provider errors with readable messages"""

    ERROR_CODES = {
        20003: "Authentication failed - verify Project ID and Auth Token",
        20005: "Account suspended or inactive",
        20404: "Resource not found",
        20429: "Rate limit exceeded",
        21211: "Invalid 'To' phone number format",
        21422: "Phone number is not available for purchase",
        21610: "Recipient has opted out of SMS",
        21614: "'To' number is not a valid mobile number",
    }

    @classmethod
    def describe(cls, e: Exception) -> str:
        if isinstance(e, TwilioRestException):
            known = cls.ERROR_CODES.get(e.code)
            return f"[{e.code}] {known or e.msg}"
        return str(e)

    @classmethod
    def translate(cls, e: Exception, operation: str, error_class=ProviderError) -> ProviderError:
        code = getattr(e, 'code', None)
        message = f"{operation} failed: {cls.describe(e)}"
        logger.error(message)
        return error_class(message, code=code)


class SignalWireClient:
    """Provisioning and messaging client used by the number lifecycle"""

    def __init__(self, config: SignalWireConfig, client=None):
        self.config = config
        if client is None:
            from signalwire.rest import Client
            client = Client(
                config.project_id,
                config.auth_token,
                signalwire_space_url=config.space_url
            )
        self.client = client

    # =========================================================================
    # NUMBER PROVISIONING
    # =========================================================================

    def search_available_number(self, country: str = 'US') -> Optional[str]:
        """Return one available voice-capable local number, or None"""
        try:
            numbers = self.client.available_phone_numbers(country.upper()).local.list(
                voice_enabled=True,
                limit=1
            )
        except SDK_ERRORS as e:
            raise SignalWireErrorHandler.translate(e, 'Number search')

        if not numbers:
            return None
        return numbers[0].phone_number

    def purchase_number(self, phone_number: str, voice_url: str) -> PurchasedNumber:
        """Buy the number and point its voice webhook at voice_url"""
        try:
            purchased = self.client.incoming_phone_numbers.create(
                phone_number=phone_number,
                voice_url=voice_url,
                voice_method='POST'
            )
        except SDK_ERRORS as e:
            raise SignalWireErrorHandler.translate(e, f"Purchase of {phone_number}", ProviderPurchaseFailed)

        logger.info(f"Purchased number {purchased.phone_number} ({purchased.sid})")
        return PurchasedNumber(sid=purchased.sid, phone_number=purchased.phone_number)

    def release_number(self, sid: str) -> bool:
        """
        Release (delete) a number from the account.

        A number the provider no longer knows about counts as released.
        """
        try:
            self.client.incoming_phone_numbers(sid).delete()
        except TwilioRestException as e:
            if e.status == 404:
                logger.info(f"Number {sid} already gone at provider")
                return True
            raise SignalWireErrorHandler.translate(e, f"Release of {sid}", ProviderReleaseFailed)
        except SDK_ERRORS as e:
            raise SignalWireErrorHandler.translate(e, f"Release of {sid}", ProviderReleaseFailed)

        logger.info(f"Released number {sid}")
        return True

    def find_number_sid(self, phone_number: str) -> Optional[str]:
        """Look up the resource sid of an owned number"""
        try:
            numbers = self.client.incoming_phone_numbers.list(phone_number=phone_number, limit=1)
        except SDK_ERRORS as e:
            raise SignalWireErrorHandler.translate(e, f"Lookup of {phone_number}", ProviderReleaseFailed)
        return numbers[0].sid if numbers else None

    # =========================================================================
    # MESSAGING
    # =========================================================================

    def send_sms(self, to_number: str, body: str, status_callback: Optional[str] = None) -> str:
        """Send an SMS via the messaging service, falling back to a from-number"""
        params = {'to': to_number, 'body': body}
        if status_callback:
            params['status_callback'] = status_callback
        if self.config.messaging_service_sid:
            params['messaging_service_sid'] = self.config.messaging_service_sid
        elif self.config.from_number:
            params['from_'] = self.config.from_number
        else:
            raise ConfigurationError(
                "SIGNALWIRE_MESSAGING_SERVICE_SID or SIGNALWIRE_FROM_NUMBER is required to send SMS"
            )

        try:
            message = self.client.messages.create(**params)
        except SDK_ERRORS as e:
            raise SignalWireErrorHandler.translate(e, "SMS send", ProviderMessageFailed)

        logger.info(f"SMS sent successfully: {message.sid}")
        return message.sid

    # =========================================================================
    # WEBHOOK SECURITY
    # =========================================================================

    def validate_request(self, request_url: str, post_vars: dict, signature: str) -> bool:
        """Validate a webhook signature"""
        if not signature:
            return False
        from signalwire.request_validator import RequestValidator
        validator = RequestValidator(self.config.auth_token)
        return validator.validate(request_url, post_vars, signature)


def get_signalwire_client() -> SignalWireClient:
    """Get or create the client for the current app"""
    client = current_app.extensions.get('signalwire_client')
    if client is None:
        client = SignalWireClient(SignalWireConfig.from_mapping(current_app.config))
        current_app.extensions['signalwire_client'] = client
        current_app.logger.info("SignalWire client initialized successfully")
    return client
