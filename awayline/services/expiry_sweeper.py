"""
Expiry Sweeper

Releases numbers whose binding has expired. The ledger row is marked
released even when the provider release fails so the number stops being
handed out; the failure is kept on the row for the out-of-band audit.
A binding renewed after the scan is left alone.
"""
import logging
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from awayline.exceptions import (
    LedgerUpdateFailed,
    LockAcquisitionFailed,
    ProviderError,
    ProviderReleaseFailed,
)
from awayline.extensions import db
from awayline.models import NumberBinding
from awayline.services.number_assignment import advisory_xact_lock
from awayline.utils.helpers import utcnow

logger = logging.getLogger(__name__)

MAX_REPORTED_RESULTS = 20


@dataclass
class SweepResult:
    checked: int = 0
    released: int = 0
    skipped: int = 0
    failed: int = 0
    failed_provider: int = 0
    failed_ledger: int = 0
    results: List[dict] = field(default_factory=list)

    def report(self, row_result: dict) -> None:
        if len(self.results) < MAX_REPORTED_RESULTS:
            self.results.append(row_result)

    def to_dict(self):
        return {
            'checked': self.checked,
            'released': self.released,
            'skipped': self.skipped,
            'failed': self.failed,
            'failed_provider': self.failed_provider,
            'failed_ledger': self.failed_ledger,
            'results': list(self.results),
        }


class ExpirySweeper:
    """Scans for expired unreleased bindings and releases them"""

    def __init__(self, provider=None, lock: Optional[Callable] = None):
        self._provider = provider
        self.lock = lock or advisory_xact_lock

    @property
    def provider(self):
        if self._provider is None:
            from awayline.utils.signalwire_client import get_signalwire_client
            self._provider = get_signalwire_client()
        return self._provider

    def expired_bindings(self, now: datetime) -> List[NumberBinding]:
        return (
            NumberBinding.query
            .filter(
                NumberBinding.is_released.is_(False),
                NumberBinding.expire_at.isnot(None),
                NumberBinding.expire_at < now,
            )
            .order_by(NumberBinding.expire_at.asc(), NumberBinding.id.asc())
            .all()
        )

    def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Release every expired binding once.

        Each row is handled under the owner's advisory lock, the same one
        assign takes, and is re-read first: a binding renewed since the scan
        is skipped. Per-row provider or ledger failures are counted and
        logged; they never stop the remaining rows from being processed.
        """
        now = now or utcnow()
        candidates = [(row.id, row.user_id) for row in self.expired_bindings(now)]
        db.session.rollback()

        result = SweepResult(checked=len(candidates))

        for binding_id, user_id in candidates:
            with ExitStack() as stack:
                try:
                    stack.enter_context(self.lock(user_id))
                except LockAcquisitionFailed as e:
                    logger.warning(f"Sweeping binding {binding_id} without lock: {e}")

                try:
                    self._sweep_row(binding_id, now, result)
                finally:
                    # Ends the transaction, which also releases the advisory lock
                    db.session.rollback()

        log = logger.warning if result.failed else logger.info
        log(
            f"Sweep complete: checked={result.checked} released={result.released} "
            f"skipped={result.skipped} failed={result.failed} "
            f"(provider={result.failed_provider}, ledger={result.failed_ledger})"
        )
        return result

    def _sweep_row(self, binding_id, now: datetime, result: SweepResult) -> None:
        try:
            binding = self._reload_if_expired(binding_id, now)
        except LedgerUpdateFailed as e:
            logger.error(str(e))
            result.failed += 1
            result.failed_ledger += 1
            result.report({'id': binding_id, 'phone_number_sid': None, 'status': 'failed_db', 'error': str(e)})
            return

        if binding is None:
            result.skipped += 1
            result.report({'id': binding_id, 'phone_number_sid': None, 'status': 'skipped', 'error': None})
            return

        sid = binding.phone_number_sid
        release_error = self._release_at_provider(binding_id, sid, binding.phone_number)
        if release_error is not None:
            result.failed += 1
            result.failed_provider += 1

        try:
            self._mark_released(binding, now, release_error)
        except LedgerUpdateFailed as e:
            logger.error(str(e))
            if release_error is None:
                result.failed += 1
            result.failed_ledger += 1
            result.report({'id': binding_id, 'phone_number_sid': sid, 'status': 'failed_db', 'error': str(e)})
            return

        result.released += 1
        result.report({
            'id': binding_id,
            'phone_number_sid': sid,
            'status': 'released' if release_error is None else 'failed_provider',
            'error': release_error,
        })

    def _reload_if_expired(self, binding_id, now: datetime) -> Optional[NumberBinding]:
        """The row if it is still unreleased and expired, else None"""
        try:
            binding = (
                NumberBinding.query
                .filter(NumberBinding.id == binding_id)
                .with_for_update()
                .first()
            )
        except SQLAlchemyError as e:
            db.session.rollback()
            raise LedgerUpdateFailed(f"Reloading binding {binding_id} failed: {e}") from e

        if binding is None or binding.is_released:
            logger.info(f"Binding {binding_id} released elsewhere since the scan, skipping")
            return None
        if binding.expire_at is None or binding.expire_at >= now:
            logger.info(f"Binding {binding_id} was extended to {binding.expire_at} since the scan, skipping")
            return None
        return binding

    def _release_at_provider(self, binding_id, sid, phone_number) -> Optional[str]:
        """Returns None on success, otherwise the error text"""
        try:
            if not sid:
                sid = self.provider.find_number_sid(phone_number)
                if not sid:
                    raise ProviderReleaseFailed(f"No provider sid found for binding {binding_id}")
            self.provider.release_number(sid)
        except ProviderError as e:
            logger.error(f"Provider release failed for binding {binding_id}: {e}")
            return str(e) or e.__class__.__name__
        return None

    def _mark_released(self, binding: NumberBinding, now: datetime, release_error: Optional[str]) -> None:
        binding_id = binding.id
        try:
            binding.is_released = True
            binding.released_at = now
            binding.release_error = release_error
            binding.updated_at = utcnow()
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise LedgerUpdateFailed(f"Marking binding {binding_id} released failed: {e}") from e
