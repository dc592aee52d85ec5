"""Ticket usage window checks."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

ONE_WAY_WINDOW = timedelta(hours=24)
RETURN_WINDOW = timedelta(hours=48)


@dataclass(frozen=True)
class ExpiryAssessment:
    expired: bool
    issued_at: datetime
    expires_at: datetime
    window: timedelta


def validity_window(validity: str) -> timedelta:
    """
    Usage window for a validity label.

    Any label containing "return" (any case) gets the return window, so
    "Return", "return" and "Return Trip" all match.
    """
    return RETURN_WINDOW if "return" in validity.lower() else ONE_WAY_WINDOW


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def assess_expiry(
    issued_at: datetime | None,
    validity: str | None,
    now: datetime | None = None,
) -> ExpiryAssessment | None:
    """
    Decide whether a ticket's usage window has elapsed.

    Expiry is strict: a ticket checked exactly at ``expires_at`` is still valid.
    Naive timestamps are taken as UTC.

    Args:
        issued_at: When the ticket was issued
        validity: Validity label as printed or stored ("One-Way", "Return", ...)
        now: Reference time (current time when omitted)

    Returns:
        ExpiryAssessment, or None when either input is missing
    """
    if issued_at is None or not validity:
        return None

    issued_at = _as_utc(issued_at)
    window = validity_window(validity)
    expires_at = issued_at + window
    now = _as_utc(now) if now is not None else datetime.now(UTC)

    return ExpiryAssessment(
        expired=now > expires_at,
        issued_at=issued_at,
        expires_at=expires_at,
        window=window,
    )
