"""
Stripe Client - webhook verification and checkout
"""
import json
import logging

import stripe
from flask import current_app

from awayline.exceptions import ConfigurationError, PaymentProviderError, ValidationError


class StripeClient:
    """
    Stripe access for checkout and the payment webhook.
    Billing itself lives in Stripe; this side starts checkouts and verifies events.
    """

    def __init__(self, secret_key=None, webhook_secret=None, api_version=None):
        """Initialize from arguments or the Flask app configuration"""
        self.logger = logging.getLogger(__name__)

        if current_app:
            secret_key = secret_key or current_app.config.get('STRIPE_SECRET_KEY')
            webhook_secret = webhook_secret or current_app.config.get('STRIPE_WEBHOOK_SECRET')
            api_version = api_version or current_app.config.get('STRIPE_API_VERSION')

        self.webhook_secret = webhook_secret
        if secret_key:
            stripe.api_key = secret_key
        if api_version:
            stripe.api_version = api_version

        if not self.webhook_secret:
            self.logger.warning("STRIPE_WEBHOOK_SECRET not set - webhook verification disabled")

    # ===================================
    # WEBHOOK HANDLING
    # ===================================

    def construct_webhook_event(self, payload: bytes, signature: str) -> dict:
        """
        Verify a webhook delivery and return its decoded JSON body.

        Args:
            payload: Raw request body exactly as received
            signature: Stripe-Signature header value

        Raises:
            ConfigurationError: no webhook secret configured
            ValidationError: missing/invalid signature or unparseable body
        """
        if not self.webhook_secret:
            raise ConfigurationError("Webhook secret not configured")
        if not signature:
            raise ValidationError("Missing Stripe-Signature header")

        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            raise ValidationError(f"Invalid payload: {str(e)}")
        except stripe.SignatureVerificationError as e:
            raise ValidationError(f"Invalid signature: {str(e)}")

        # Plain dict so decoding does not depend on StripeObject internals
        try:
            return json.loads(payload)
        except ValueError as e:
            raise ValidationError(f"Invalid payload: {str(e)}")

    # ===================================
    # CHECKOUT
    # ===================================

    def create_checkout_session(self, user_id: str, price_id: str, success_url: str, cancel_url: str):
        """
        Start a subscription checkout for user_id.

        The user id rides on the session and on the subscription so every
        later lifecycle event can be mapped back to it.
        """
        if not price_id:
            raise ConfigurationError("STRIPE_PRICE_ID not configured")

        try:
            session = stripe.checkout.Session.create(
                mode='subscription',
                payment_method_types=['card'],
                line_items=[{
                    'price': price_id,
                    'quantity': 1,
                }],
                client_reference_id=user_id,
                metadata={'userId': user_id},
                subscription_data={'metadata': {'userId': user_id}},
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error creating checkout session for user {user_id}: {e}")
            raise PaymentProviderError(f"Checkout session could not be created: {e}") from e

        self.logger.info(f"Created checkout session for user {user_id}: {session.id}")
        return session
