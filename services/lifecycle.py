"""
Status transitions and expiry rules shared by orders and rentals.
"""

import re
from datetime import datetime, timedelta
from sqlalchemy import update
from sqlalchemy.orm import Session
from utils.timeutils import utcnow, as_utc, is_past, parse_provider_datetime

PENDING_NUMBER = "Pending..."

PIN_PATTERNS = (
    re.compile(r"\b(\d{4,8})\b"),
    re.compile(r"code[:\s]*(\d+)", re.IGNORECASE),
    re.compile(r"verification[:\s]*(\d+)", re.IGNORECASE),
    re.compile(r"pin[:\s]*(\d+)", re.IGNORECASE),
)


def extract_pin(sms: str | None) -> str | None:
    """Pull a verification code out of an SMS body."""
    if not sms:
        return None
    for pattern in PIN_PATTERNS:
        match = pattern.search(sms)
        if match:
            return match.group(1)
    return None


def has_number(record) -> bool:
    return bool(record.number) and record.number != PENDING_NUMBER


def record_message(record, message: dict):
    """Store the latest inbox message on an order or rental."""
    reply = message.get("reply")
    record.api_response = dict(message)
    record.sms = reply
    record.pin = message.get("pin") or extract_pin(reply)
    record.last_message_time = parse_provider_datetime(message.get("date_time"))


def transition_status(db: Session, record, to_status: str, from_statuses) -> bool:
    """
    Move record to to_status only if it is still in one of from_statuses.

    The check runs in the UPDATE itself, so when two requests race for the
    same record exactly one of them wins. Returns False for the loser.
    """
    model = type(record)
    result = db.execute(
        update(model)
        .where(model.id == record.id, model.status.in_(tuple(from_statuses)))
        .values(status=to_status)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return False
    db.refresh(record, attribute_names=["status"])
    return True


def stacked_expiry(current_expiry: datetime | None, duration: timedelta) -> datetime:
    """Add duration to the later of now and the current expiry."""
    now = utcnow()
    base = as_utc(current_expiry) if current_expiry else now
    return max(base, now) + duration


def expire_if_due(record, live_status: str) -> bool:
    """
    Lazily mark a record expired once expires_at has passed.
    Only records still in live_status are touched.
    """
    if record.status == live_status and is_past(record.expires_at):
        record.status = "expired"
        return True
    return False


def expire_overdue(db: Session, model, user_id: int, live_status: str) -> int:
    """Bulk form of expire_if_due, run before listing a user's records."""
    result = db.execute(
        update(model)
        .where(model.user_id == user_id, model.status == live_status, model.expires_at <= utcnow())
        .values(status="expired")
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
