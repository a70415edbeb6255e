"""
License token decoding.

Wire form: base64 of UTF-8 JSON
    {productCode, licenseKey, secretKey, expiryDate, signature, params}

Field names are matched case-insensitively and unknown fields are ignored.
Whitespace anywhere in the token (line-wrapped license files) is ignored.
"""

import base64
import binascii
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from licensekit.tokens.signing import build_signing_string, format_timestamp, parse_timestamp

_CANONICAL_FIELDS = {
    "productcode": "productCode",
    "licensekey": "licenseKey",
    "secretkey": "secretKey",
    "expirydate": "expiryDate",
    "signature": "signature",
    "params": "params",
}


class LicenseToken(BaseModel):
    """Decoded license terms. Immutable once decoded."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    product_code: str = Field(alias="productCode")
    license_key: uuid.UUID = Field(alias="licenseKey")
    secret_key: str = Field(alias="secretKey")
    signature: str
    expiry_date: Optional[datetime] = Field(default=None, alias="expiryDate")
    params: Optional[str] = None
    # Wire value of expiryDate, only ever derived from it; set without
    # expiry_date when it did not parse.
    expiry_raw: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        normalized: dict[str, Any] = {}
        for key, value in data.items():
            if not isinstance(key, str):
                continue
            canonical = _CANONICAL_FIELDS.get(key.lower().replace("_", ""))
            if canonical is not None:
                normalized[canonical] = value

        expiry = normalized.get("expiryDate")
        if isinstance(expiry, str):
            normalized["expiry_raw"] = expiry
            try:
                normalized["expiryDate"] = parse_timestamp(expiry)
            except ValueError:
                normalized["expiryDate"] = None
        elif expiry is not None and not isinstance(expiry, datetime):
            normalized["expiry_raw"] = str(expiry)
            normalized["expiryDate"] = None
        return normalized

    @property
    def is_perpetual(self) -> bool:
        return self.expiry_date is None and self.expiry_raw is None

    @property
    def has_invalid_expiry(self) -> bool:
        """True when an expiry was supplied but could not be parsed."""
        return self.expiry_date is None and self.expiry_raw is not None

    def signing_string(self) -> str:
        return build_signing_string(
            self.product_code, self.license_key, self.secret_key, self.expiry_date
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check expiry against UTC now. Unparseable expiries count as expired."""
        if self.expiry_date is None:
            return self.has_invalid_expiry

        expiry = self.expiry_date
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return expiry < now


def decode_license_token(token: str) -> Optional[LicenseToken]:
    """
    Decode a base64 license token, ignoring embedded whitespace.

    Returns:
        The LicenseToken, or None for bad base64, bad JSON or missing fields
    """
    try:
        raw = base64.b64decode("".join(token.split()), validate=True)
        data = json.loads(raw.decode("utf-8"))
        if not isinstance(data, dict):
            return None
        return LicenseToken.model_validate(data)
    except (AttributeError, TypeError, RecursionError, binascii.Error, ValueError):
        # pydantic.ValidationError, JSONDecodeError and UnicodeDecodeError are ValueErrors
        return None


def license_token_payload(token: LicenseToken) -> dict[str, Any]:
    """Wire-form JSON object for a token."""
    if token.expiry_raw is not None:
        expiry = token.expiry_raw
    elif token.expiry_date is not None:
        expiry = format_timestamp(token.expiry_date)
    else:
        expiry = None
    return {
        "productCode": token.product_code,
        "licenseKey": str(token.license_key),
        "secretKey": token.secret_key,
        "expiryDate": expiry,
        "signature": token.signature,
        "params": token.params,
    }


def encode_license_token(token: LicenseToken) -> str:
    """Encode a token into its base64 wire form."""
    text = json.dumps(license_token_payload(token), separators=(",", ":"))
    return base64.b64encode(text.encode("utf-8")).decode("ascii")
