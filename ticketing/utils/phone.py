"""Phone number normalization.

Passengers are identified by their phone number, so every entry point
normalizes to E.164 before storing or comparing.
"""

import phonenumbers

DEFAULT_REGION = "IN"


def normalize_phone(value: str, region: str = DEFAULT_REGION) -> str:
    """
    Validate and normalize a phone number to E.164.

    Args:
        value: Phone number in any common format ("98765 43210", "+91-98765-43210")
        region: Region assumed when the number has no "+" prefix

    Returns:
        E.164 formatted number (e.g., +919876543210)

    Raises:
        ValueError: If the number cannot be parsed or is not a valid number
    """
    try:
        parsed = phonenumbers.parse(value, None if value.startswith("+") else region)
    except phonenumbers.NumberParseException as e:
        msg = f"Invalid phone number format: {e}"
        raise ValueError(msg) from e

    if not phonenumbers.is_valid_number(parsed):
        msg = f"Invalid phone number: {value}"
        raise ValueError(msg)

    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
