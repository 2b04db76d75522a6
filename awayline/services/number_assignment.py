"""
Number Assignment Manager

Guarantees that a subscriber believed active holds exactly one unreleased
phone number: an existing binding is reused (its expiry only ever grows),
otherwise a number is bought and bound. A per-user advisory lock keeps a
webhook retry and a reconciliation run from both buying a number.
"""
import logging
from contextlib import ExitStack, contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Callable, Optional

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from awayline.core.validators import is_https_url
from awayline.exceptions import (
    AwaylineError,
    ConfigurationError,
    LedgerUpdateFailed,
    LedgerWriteFailed,
    LockAcquisitionFailed,
    NoNumbersAvailable,
    ProviderError,
)
from awayline.extensions import db
from awayline.models import NumberBinding
from awayline.services.subscription_ledger import SubscriptionLedger
from awayline.utils.helpers import isoformat_utc, mask_phone_number, to_naive_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssignmentResult:
    reused: bool
    purchased: bool
    phone_number: Optional[str]
    phone_number_sid: Optional[str]
    expire_at: Optional[datetime] = None

    def to_dict(self):
        data = asdict(self)
        data['expire_at'] = isoformat_utc(self.expire_at)
        return data


@contextmanager
def advisory_xact_lock(user_id: str):
    """
    Take pg_advisory_xact_lock(hashtext(user_id)) in the current transaction.

    The lock lives until that transaction commits or rolls back, so leaving
    the context does nothing. Other dialects have no advisory locks and are
    skipped.
    """
    bind = db.session.get_bind()
    if bind.dialect.name != 'postgresql':
        logger.debug(f"Advisory locks unsupported on {bind.dialect.name}, skipping")
        yield False
        return

    try:
        # Savepoint keeps a failed lock call from aborting the transaction
        with db.session.begin_nested():
            db.session.execute(
                text('SELECT pg_advisory_xact_lock(hashtext(:lock_key))'),
                {'lock_key': user_id}
            )
    except SQLAlchemyError as e:
        raise LockAcquisitionFailed(f"Advisory lock for user {user_id} failed: {e}") from e

    yield True


class NumberAssignmentManager:
    """Creates or extends the single number binding of a subscriber"""

    def __init__(self, provider=None, voice_webhook_url: Optional[str] = None,
                 country: Optional[str] = None, lock: Optional[Callable] = None,
                 ledger: Optional[SubscriptionLedger] = None):
        self._provider = provider
        self.voice_webhook_url = voice_webhook_url
        self.country = country
        self.lock = lock or advisory_xact_lock
        self.ledger = ledger or SubscriptionLedger()

        if self.voice_webhook_url is None and current_app:
            self.voice_webhook_url = current_app.config.get('VOICE_WEBHOOK_URL')
        if self.country is None:
            self.country = current_app.config.get('NUMBER_COUNTRY', 'US') if current_app else 'US'

    @property
    def provider(self):
        if self._provider is None:
            from awayline.utils.signalwire_client import get_signalwire_client
            self._provider = get_signalwire_client()
        return self._provider

    # =========================================================================
    # SINGLE USER
    # =========================================================================

    def assign(self, user_id: str, not_before: Optional[datetime], expire_at: datetime,
               trace_id: Optional[str] = None) -> AssignmentResult:
        """
        Bind a number to user_id valid until expire_at.

        The caller has already checked that user_id holds an active
        subscription ending at expire_at.

        Raises:
            ConfigurationError: voice webhook URL is not an absolute https URL
            NoNumbersAvailable: the provider offered no number
            ProviderError: search or purchase failed
            LedgerWriteFailed: the new binding could not be stored
            LedgerUpdateFailed: the expiry extension could not be stored
        """
        if not user_id or not user_id.strip():
            raise ValueError("user_id is required")
        if expire_at is None:
            raise ValueError("expire_at is required")

        user_id = user_id.strip()
        expire_at = to_naive_utc(expire_at)
        not_before = to_naive_utc(not_before) or utcnow()

        with ExitStack() as stack:
            try:
                stack.enter_context(self.lock(user_id))
            except LockAcquisitionFailed as e:
                logger.warning(f"Proceeding without lock for user {user_id} (trace={trace_id}): {e}")

            try:
                existing = NumberBinding.active_for_user(user_id)
                if existing is not None:
                    return self._extend(existing, expire_at, trace_id)
                return self._provision(user_id, not_before, expire_at, trace_id)
            finally:
                # Ends the transaction, which also releases the advisory lock
                db.session.rollback()

    def _extend(self, binding: NumberBinding, expire_at: datetime, trace_id) -> AssignmentResult:
        result_expiry = binding.expire_at
        if binding.expire_at is None or binding.expire_at < expire_at:
            previous = binding.expire_at
            binding.expire_at = expire_at
            binding.updated_at = utcnow()
            try:
                db.session.commit()
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error(f"Failed to extend binding {binding.id} (trace={trace_id}): {e}")
                raise LedgerUpdateFailed(f"Could not extend binding for user {binding.user_id}") from e
            result_expiry = expire_at
            logger.info(
                f"Extended binding {binding.id} for user {binding.user_id}: {previous} -> {expire_at}"
            )

        return AssignmentResult(
            reused=True,
            purchased=False,
            phone_number=binding.phone_number,
            phone_number_sid=binding.phone_number_sid,
            expire_at=result_expiry,
        )

    def _provision(self, user_id: str, not_before: datetime, expire_at: datetime, trace_id) -> AssignmentResult:
        # Checked before any provider call
        if not is_https_url(self.voice_webhook_url):
            raise ConfigurationError("VOICE_WEBHOOK_URL must be an absolute https:// URL")

        phone_number = self.provider.search_available_number(self.country)
        if not phone_number:
            raise NoNumbersAvailable(f"No available {self.country} voice numbers")

        purchased = self.provider.purchase_number(phone_number, self.voice_webhook_url)

        binding = NumberBinding(
            user_id=user_id,
            phone_number=purchased.phone_number,
            phone_number_sid=purchased.sid,
            start_at=not_before,
            expire_at=expire_at,
            is_released=False,
        )
        try:
            db.session.add(binding)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Storing binding failed for user {user_id}, releasing {purchased.sid} (trace={trace_id}): {e}")
            self._compensate(user_id, purchased, trace_id)
            raise LedgerWriteFailed(f"Could not store binding for user {user_id}") from e

        logger.info(
            f"Bound {mask_phone_number(purchased.phone_number)} ({purchased.sid}) to user {user_id} until {expire_at}"
        )
        return AssignmentResult(
            reused=False,
            purchased=True,
            phone_number=purchased.phone_number,
            phone_number_sid=purchased.sid,
            expire_at=expire_at,
        )

    def _compensate(self, user_id: str, purchased, trace_id) -> None:
        """Give back a number whose binding could not be stored"""
        try:
            self.provider.release_number(purchased.sid)
            logger.info(f"Released {purchased.sid} after failed insert for user {user_id}")
        except ProviderError as e:
            logger.error(
                f"RECONCILIATION GAP: number {purchased.phone_number} ({purchased.sid}) is owned at the "
                f"provider but bound to nobody; user={user_id} trace={trace_id}: {e}"
            )

    # =========================================================================
    # ALL ACTIVE SUBSCRIBERS
    # =========================================================================

    def assign_all_active(self, now: Optional[datetime] = None) -> dict:
        """Run assign for every entitled subscriber, isolating failures"""
        now = now or utcnow()
        targets = [
            (subscription.user_id.strip(), subscription.current_period_end)
            for subscription in self.ledger.active_subscriptions(now)
        ]
        db.session.rollback()

        summary = {'processed': len(targets), 'purchased': 0, 'reused': 0, 'failed': 0}
        if not targets:
            logger.info("No active subscribers to assign")
            return summary

        for user_id, period_end in targets:
            try:
                result = self.assign(user_id, now, period_end)
            except AwaylineError as e:
                summary['failed'] += 1
                logger.error(f"Assignment failed for user {user_id}: {e}")
                continue
            except Exception:
                summary['failed'] += 1
                logger.exception(f"Unexpected assignment failure for user {user_id}")
                continue

            if result.reused:
                summary['reused'] += 1
            elif result.purchased:
                summary['purchased'] += 1

        logger.info(f"Assignment run: {summary}")
        return summary
