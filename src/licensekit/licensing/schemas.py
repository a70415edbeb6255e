"""Pydantic schemas for the license management endpoints (validate, deactivate, duplicate check)."""

import uuid
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import BeforeValidator

from licensekit.common.schemas import Timestamp, WireModel


class LicenseExpiryType(int, Enum):
    PERPETUAL = 0
    DAYS_FROM_ACTIVATION = 1
    FIXED_DATE = 2


def _coerce_expiry_type(value: Any) -> Any:
    # Servers configured with string enums send the member name.
    if isinstance(value, str):
        if value.strip().isdigit():
            return int(value)
        key = "".join(ch for ch in value if ch.isalnum()).lower()
        for member in LicenseExpiryType:
            if member.name.replace("_", "").lower() == key:
                return member
    return value


ExpiryType = Annotated[LicenseExpiryType, BeforeValidator(_coerce_expiry_type)]


# ── Requests ──

class LicenseActivationRequest(WireModel):
    license_key: uuid.UUID
    secret_key: str = ""
    machine_id: str = ""
    application_version: Optional[str] = None
    client_type: Optional[str] = None
    machine_fingerprint: Optional[str] = None
    force_duplicate_activation: bool = False


class LicenseDeactivationRequest(WireModel):
    license_key: uuid.UUID
    secret_key: str = ""
    machine_id: str = ""


class LicenseValidationRequest(WireModel):
    license_key: uuid.UUID
    secret_key: str = ""


# ── Responses ──

class LicenseValidationResponse(WireModel):
    is_valid: bool = False
    license_key: Optional[uuid.UUID] = None
    product_name: Optional[str] = None
    licensed_to: Optional[str] = None
    status: str = ""
    expiry_type: ExpiryType = LicenseExpiryType.PERPETUAL
    expiry_date: Optional[Timestamp] = None
    expiry_days: Optional[int] = None
    max_activations: int = 0
    current_activations: int = 0
    params: Optional[str] = None


class ActivationInfo(WireModel):
    activated_at: Timestamp
    machine_id: Optional[str] = None
    client_type: Optional[str] = None
    app_version: Optional[str] = None


class DuplicateCheckResponse(WireModel):
    has_duplicate: bool = False
    client_type: str = ""
    machine_fingerprint: str = ""
    existing_activation: Optional[ActivationInfo] = None
