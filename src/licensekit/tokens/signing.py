"""
Canonical signing string for license tokens.

Format: {productCode}.{licenseKey}.{secretKey}.{expiry|perpetual}

Signer and verifier must produce byte-identical strings, so this module is
the only place either side builds one. The expiry uses the round-trip
ISO-8601 form with seven fractional digits:

    2026-12-31T23:59:59.0000000Z    timezone-aware (normalised to UTC)
    2026-12-31T23:59:59.0000000     naive (no offset information)
"""

import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

PERPETUAL = "perpetual"
FRACTION_DIGITS = 7

_TIMESTAMP_PATTERN = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[T ](?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d{1,7}))?"
    r"(?P<tz>Z|[+-]\d{2}:?\d{2})?$"
)


def format_timestamp(value: datetime) -> str:
    """Render a datetime in the fixed, locale-independent round-trip form."""
    suffix = ""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
        suffix = "Z"
    # microseconds padded to 100ns ticks
    fraction = f"{value.microsecond:06d}".ljust(FRACTION_DIGITS, "0")
    return (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
        f".{fraction}{suffix}"
    )


def parse_timestamp(text: str) -> datetime:
    """
    Parse an ISO-8601 timestamp as written by license servers.

    Accepts up to seven fractional digits (sub-microsecond ticks are
    truncated), a trailing 'Z', a numeric offset, or no offset at all.

    Raises:
        ValueError: if the text is not a recognised timestamp
    """
    if not isinstance(text, str):
        raise ValueError(f"Timestamp must be a string, got {type(text).__name__}")

    match = _TIMESTAMP_PATTERN.match(text.strip())
    if match is None:
        raise ValueError(f"Unrecognised timestamp: {text!r}")

    fraction = (match.group("fraction") or "").ljust(6, "0")[:6]
    parsed = datetime.fromisoformat(f"{match.group('date')}T{match.group('time')}.{fraction}")

    tz = match.group("tz")
    if tz == "Z":
        parsed = parsed.replace(tzinfo=timezone.utc)
    elif tz:
        sign = 1 if tz[0] == "+" else -1
        digits = tz[1:].replace(":", "")
        offset = timedelta(hours=int(digits[:2]), minutes=int(digits[2:]))
        parsed = parsed.replace(tzinfo=timezone(sign * offset))
    return parsed


def build_signing_string(
    product_code: str,
    license_key: uuid.UUID,
    secret_key: str,
    expiry_date: Optional[datetime],
) -> str:
    """
    Build the exact string that is signed by the issuer and verified here.

    Args:
        product_code: Product code, used verbatim
        license_key: License UUID, rendered lowercase and hyphenated
        secret_key: License secret, used verbatim
        expiry_date: Expiry timestamp, or None for a perpetual license

    Returns:
        The canonical signing string
    """
    if not isinstance(license_key, uuid.UUID):
        license_key = uuid.UUID(str(license_key))
    expiry = format_timestamp(expiry_date) if expiry_date is not None else PERPETUAL
    return f"{product_code}.{license_key}.{secret_key}.{expiry}"
