"""
GENERAL HELPER FUNCTIONS
Time conversion, environment parsing and shared-secret checks
"""
import hmac
import os
from datetime import datetime, timezone
from typing import List, Optional


# =============================================================================
# TIME HELPERS
# =============================================================================
# All timestamps are stored as naive UTC datetimes.

def utcnow() -> datetime:
    """Current time as a naive UTC datetime"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC"""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def from_unix(timestamp) -> Optional[datetime]:
    """Convert a unix timestamp (as sent by Stripe) to naive UTC"""
    if timestamp is None or timestamp == '':
        return None
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string, accepting a trailing 'Z'"""
    if not value:
        return None
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    return to_naive_utc(datetime.fromisoformat(value))


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.replace(microsecond=0).isoformat() + 'Z'


# =============================================================================
# ENVIRONMENT AND CONFIGURATION HELPERS
# =============================================================================

def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable"""
    value = os.getenv(key)
    if value is None or value == '':
        return default
    return value.lower() in ('true', '1', 'yes', 'on')


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable"""
    try:
        return int(os.getenv(key, default))
    except (ValueError, TypeError):
        return default


def get_env_list(key: str, separator: str = ',', default: List[str] = None) -> List[str]:
    """Get list from environment variable"""
    value = os.getenv(key, '')
    if not value:
        return default or []

    return [item.strip() for item in value.split(separator) if item.strip()]


def secrets_match(expected: Optional[str], provided: Optional[str]) -> bool:
    """Constant-time comparison of a configured secret and a supplied one"""
    if not expected or not provided:
        return False
    return hmac.compare_digest(expected.encode('utf-8'), provided.encode('utf-8'))


def mask_phone_number(phone: Optional[str]) -> Optional[str]:
    """Hide all but the last four digits for log lines"""
    if not phone or len(phone) <= 4:
        return phone
    return '*' * (len(phone) - 4) + phone[-4:]
