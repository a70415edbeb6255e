"""
Compact heartbeat token codec.

Format: {ACTIVATION}.{EMAIL}.{FINGERPRINT}
- ACTIVATION: the 16 raw bytes of the activation UUID, in the mixed-endian
  field order the license server uses (uuid.bytes_le)
- EMAIL / FINGERPRINT: UTF-8 text, or the placeholder "EMPTY" for ""
- every segment is base64url with the trailing '=' padding stripped

Decoding never raises: anything malformed yields None.
"""

import base64
import binascii
import uuid
from dataclasses import dataclass
from typing import Optional

from licensekit.common.exceptions import TokenFormatError

EMPTY_PLACEHOLDER = "EMPTY"
SEGMENT_SEPARATOR = "."
SEGMENT_COUNT = 3
UUID_BYTES = 16


@dataclass(frozen=True)
class HeartbeatToken:
    """Identity triple re-asserted on every heartbeat."""

    activation_id: uuid.UUID
    customer_email: str = ""
    machine_fingerprint: str = ""

    def to_token(self) -> str:
        return encode_heartbeat_token(
            self.activation_id, self.customer_email, self.machine_fingerprint
        )

    @classmethod
    def from_token(cls, token: str) -> Optional["HeartbeatToken"]:
        return decode_heartbeat_token(token)


def _b64_segment(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _pad(segment: str) -> str:
    remainder = len(segment) % 4
    if remainder:
        segment += "=" * (4 - remainder)
    return segment


def _unb64_segment(segment: str) -> bytes:
    """Strict decode of one segment; accepts url-safe and standard alphabets."""
    normalized = segment.replace("-", "+").replace("_", "/")
    return base64.b64decode(_pad(normalized), validate=True)


def _encode_text(value: str) -> str:
    return _b64_segment((value or EMPTY_PLACEHOLDER).encode("utf-8"))


def _decode_text(segment: str) -> str:
    value = _unb64_segment(segment).decode("utf-8")
    return "" if value == EMPTY_PLACEHOLDER else value


def encode_heartbeat_token(
    activation_id: uuid.UUID,
    customer_email: str,
    machine_fingerprint: str,
) -> str:
    """
    Build the compact heartbeat token.

    Args:
        activation_id: Server-issued activation UUID
        customer_email: Customer email, may be empty
        machine_fingerprint: Machine fingerprint, may be empty

    Returns:
        Three '.'-joined unpadded base64url segments
    """
    if not isinstance(activation_id, uuid.UUID):
        try:
            activation_id = uuid.UUID(str(activation_id))
        except ValueError as exc:
            raise TokenFormatError(f"Invalid activation ID: {activation_id!r}") from exc
    return SEGMENT_SEPARATOR.join((
        _b64_segment(activation_id.bytes_le),
        _encode_text(customer_email),
        _encode_text(machine_fingerprint),
    ))


def decode_heartbeat_token(token: str) -> Optional[HeartbeatToken]:
    """Parse a compact heartbeat token, or return None if it is malformed."""
    if not token or not isinstance(token, str):
        return None

    parts = token.split(SEGMENT_SEPARATOR)
    if len(parts) != SEGMENT_COUNT:
        return None

    try:
        id_bytes = _unb64_segment(parts[0])
        if len(id_bytes) != UUID_BYTES:
            return None
        return HeartbeatToken(
            activation_id=uuid.UUID(bytes_le=id_bytes),
            customer_email=_decode_text(parts[1]),
            machine_fingerprint=_decode_text(parts[2]),
        )
    except (binascii.Error, ValueError):
        # UnicodeDecodeError is a ValueError
        return None
