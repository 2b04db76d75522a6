"""
Leave-a-message links

A caller who reaches a bound number is texted a link carrying a random
single-use token. Posting a message through it stores the message and
spends the token.
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from awayline.exceptions import LedgerError, LeaveLinkInvalid
from awayline.extensions import db
from awayline.models import LeaveLink, LeaveLinkStatus, LeaveMessage
from awayline.utils.helpers import mask_phone_number, utcnow

DEFAULT_TTL_HOURS = 48


class LeaveLinkService:
    """Issues, checks and spends leave-a-message tokens"""

    def __init__(self, ttl_hours: Optional[int] = None):
        self.logger = logging.getLogger(__name__)
        if ttl_hours is None:
            ttl_hours = current_app.config.get('LEAVE_LINK_TTL_HOURS', DEFAULT_TTL_HOURS) if current_app else DEFAULT_TTL_HOURS
        self.ttl = timedelta(hours=ttl_hours)

    def issue_token(self, from_number: str, to_number: str, call_sid: Optional[str] = None,
                    now: Optional[datetime] = None) -> str:
        """
        Token for this call, reusing a still-usable one for the same CallSid.

        Provider retries of the voice webhook therefore text the same link.
        """
        now = now or utcnow()
        if call_sid:
            existing = (
                LeaveLink.query
                .filter_by(call_sid=call_sid)
                .order_by(LeaveLink.created_at.desc())
                .first()
            )
            if existing is not None and existing.is_usable(now):
                return existing.token

        link = LeaveLink(
            token=secrets.token_hex(16),
            call_sid=call_sid or None,
            from_number=from_number,
            to_number=to_number,
            status=LeaveLinkStatus.ACTIVE,
            created_at=now,
            expires_at=now + self.ttl,
        )
        try:
            db.session.add(link)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise LedgerError(f"Could not store leave link for call {call_sid}: {e}") from e

        self.logger.info(f"Issued leave link for call {call_sid} from {mask_phone_number(from_number)}")
        return link.token

    def check_token(self, token: str, now: Optional[datetime] = None, for_update: bool = False) -> LeaveLink:
        """
        The link behind token if a message may still be left with it.

        Raises:
            LeaveLinkInvalid: reason is 'not_found', 'expired' or 'used'
        """
        now = now or utcnow()
        link = None
        if token:
            query = LeaveLink.query.filter_by(token=token)
            if for_update:
                query = query.with_for_update()
            link = query.first()

        if link is None:
            raise LeaveLinkInvalid("Leave link not found", 'not_found')
        if link.expires_at <= now:
            raise LeaveLinkInvalid("Leave link expired", 'expired')
        if link.used_at is not None:
            raise LeaveLinkInvalid("Leave link already used", 'used')
        return link

    def leave_message(self, token: str, message: str, now: Optional[datetime] = None) -> LeaveMessage:
        """Store the message and spend the token in one transaction"""
        now = now or utcnow()
        try:
            link = self.check_token(token, now, for_update=True)
        except LeaveLinkInvalid:
            db.session.rollback()
            raise

        saved = LeaveMessage(token=link.token, message=message.strip(), created_at=now)
        link.used_at = now
        link.status = LeaveLinkStatus.USED
        try:
            db.session.add(saved)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise LedgerError(f"Could not store leave message: {e}") from e

        self.logger.info(
            f"Message left by {mask_phone_number(link.from_number)} for {mask_phone_number(link.to_number)} "
            f"(call {link.call_sid})"
        )
        return saved

    def messages_for_number(self, phone_number: str, limit: int = 50):
        return (
            LeaveMessage.query
            .join(LeaveLink)
            .filter(LeaveLink.to_number == phone_number)
            .order_by(LeaveMessage.created_at.desc())
            .limit(limit)
            .all()
        )
