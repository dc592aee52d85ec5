"""PII (Personally Identifiable Information) utilities for safe logging."""

import hashlib
import hmac

from ticketing.core.config import settings


def hash_pii(value: str) -> str:
    """
    Hash a phone number for safe logging and tracing using HMAC-SHA256.

    Same input always produces the same output for a given secret, so a
    passenger's bookings, callbacks and challans can be correlated in logs
    without the number itself ever being written.

    Examples (output depends on PII_HASH_SECRET):
        >>> hash_pii("+919876543210")  # doctest: +SKIP
        '...'  # 64-character hex string

    Args:
        value: Phone number to hash

    Returns:
        64-character lowercase hexadecimal hash (full HMAC-SHA256 digest)

    Raises:
        ValueError: If PII_HASH_SECRET is not configured or empty
    """
    if not settings.PII_HASH_SECRET:
        msg = "PII_HASH_SECRET must be configured and non-empty"
        raise ValueError(msg)
    secret = settings.PII_HASH_SECRET.encode()
    return hmac.new(secret, value.encode(), hashlib.sha256).hexdigest()
