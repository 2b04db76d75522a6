"""
Testing utilities for the number lifecycle
Provides fake provider objects, ledger rows and signed Stripe payloads
"""
import hashlib
import hmac
import json
import time
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional

from awayline.exceptions import ProviderMessageFailed, ProviderPurchaseFailed, ProviderReleaseFailed
from awayline.extensions import db
from awayline.models import LeaveLink, NumberBinding, Subscription, SubscriptionStatus
from awayline.utils.helpers import utcnow
from awayline.utils.signalwire_client import PurchasedNumber


class FakeProvider:
    """In-memory stand-in for SignalWireClient that records every call"""

    def __init__(self, available: Optional[List[str]] = None):
        self.available = list(available) if available is not None else ['+15550001000', '+15550001001', '+15550001002']
        self.owned: Dict[str, str] = {}
        self.searches = 0
        self.purchases: List[Dict[str, str]] = []
        self.releases: List[str] = []
        self.messages: List[Dict[str, str]] = []

        self.fail_purchase = False
        self.fail_release = False
        self.fail_sms = False
        self.valid_signature = True

    def search_available_number(self, country='US'):
        self.searches += 1
        for number in self.available:
            if number not in self.owned.values():
                return number
        return None

    def purchase_number(self, phone_number, voice_url):
        if self.fail_purchase:
            raise ProviderPurchaseFailed("Purchase of number failed: 21422 - Number not available")
        sid = f"PN{uuid.uuid4().hex}"
        self.owned[sid] = phone_number
        self.purchases.append({'phone_number': phone_number, 'voice_url': voice_url, 'sid': sid})
        return PurchasedNumber(sid=sid, phone_number=phone_number)

    def release_number(self, sid):
        if self.fail_release:
            raise ProviderReleaseFailed(f"Release of {sid} failed: 20003 - Authentication failed")
        self.releases.append(sid)
        self.owned.pop(sid, None)
        return True

    def find_number_sid(self, phone_number):
        for sid, number in self.owned.items():
            if number == phone_number:
                return sid
        return None

    def send_sms(self, to_number, body, status_callback=None):
        if self.fail_sms:
            raise ProviderMessageFailed("SMS send failed: 21610 - Recipient unsubscribed")
        self.messages.append({'to': to_number, 'body': body, 'status_callback': status_callback})
        return f"SM{uuid.uuid4().hex}"

    def validate_request(self, request_url, post_vars, signature):
        return self.valid_signature and bool(signature)


class NumberTestUtils:
    """Utilities for testing subscriptions and number bindings"""

    @staticmethod
    def create_test_subscription(user_id: str = None, **kwargs) -> Subscription:
        """Create an active ledger row ending in 30 days"""
        subscription_data = {
            'stripe_subscription_id': f'sub_{uuid.uuid4().hex[:14]}',
            'stripe_customer_id': f'cus_{uuid.uuid4().hex[:14]}',
            'user_id': user_id or f'user_{uuid.uuid4().hex[:8]}',
            'status': SubscriptionStatus.ACTIVE,
            'current_period_start': utcnow() - timedelta(days=1),
            'current_period_end': utcnow() + timedelta(days=30),
            **kwargs
        }

        subscription = Subscription(**subscription_data)
        db.session.add(subscription)
        db.session.commit()
        return subscription

    @staticmethod
    def create_test_binding(user_id: str = None, provider: FakeProvider = None, **kwargs) -> NumberBinding:
        """Create an unreleased binding, registering it with the fake provider when given"""
        binding_data = {
            'user_id': user_id or f'user_{uuid.uuid4().hex[:8]}',
            'phone_number': f'+1555{uuid.uuid4().int % 10_000_000:07d}',
            'phone_number_sid': f'PN{uuid.uuid4().hex}',
            'start_at': utcnow() - timedelta(days=30),
            'expire_at': utcnow() + timedelta(days=1),
            'is_released': False,
            **kwargs
        }

        binding = NumberBinding(**binding_data)
        db.session.add(binding)
        db.session.commit()

        if provider is not None and binding.phone_number_sid:
            provider.owned[binding.phone_number_sid] = binding.phone_number
        return binding

    @staticmethod
    def create_test_leave_link(call_sid: str = None, **kwargs) -> LeaveLink:
        """Create a usable leave link expiring in two days"""
        link_data = {
            'token': uuid.uuid4().hex,
            'call_sid': call_sid or f'CA{uuid.uuid4().hex}',
            'from_number': '+447700900123',
            'to_number': '+15550001000',
            'created_at': utcnow(),
            'expires_at': utcnow() + timedelta(hours=48),
            **kwargs
        }

        link = LeaveLink(**link_data)
        db.session.add(link)
        db.session.commit()
        return link

    @staticmethod
    def unreleased_bindings(user_id: str) -> List[NumberBinding]:
        return NumberBinding.query.filter_by(user_id=user_id, is_released=False).all()

    # =========================================================================
    # STRIPE PAYLOADS
    # =========================================================================

    @staticmethod
    def stripe_event(event_type: str, obj: Dict[str, Any], event_id: str = None) -> Dict[str, Any]:
        return {
            'id': event_id or f'evt_{uuid.uuid4().hex[:14]}',
            'object': 'event',
            'type': event_type,
            'created': int(time.time()),
            'data': {'object': obj},
        }

    @staticmethod
    def subscription_object(subscription_id: str, status: str = 'active', user_id: str = None,
                            days: int = 30, **kwargs) -> Dict[str, Any]:
        start = int(time.time()) - 3600
        obj = {
            'id': subscription_id,
            'object': 'subscription',
            'customer': 'cus_test123',
            'status': status,
            'current_period_start': start,
            'current_period_end': start + days * 86400,
            'metadata': {'userId': user_id} if user_id else {},
        }
        obj.update(kwargs)
        return obj

    @staticmethod
    def signed_payload(event: Dict[str, Any], secret: str, timestamp: int = None):
        """Serialize the event and build a matching Stripe-Signature header"""
        payload = json.dumps(event)
        timestamp = timestamp or int(time.time())
        signed = f"{timestamp}.{payload}".encode('utf-8')
        signature = hmac.new(secret.encode('utf-8'), signed, hashlib.sha256).hexdigest()
        return payload, f"t={timestamp},v1={signature}"
