"""Pydantic schemas for the heartbeat endpoint."""

import uuid
from typing import Optional

from licensekit.common.schemas import Timestamp, WireModel


class HeartbeatRequest(WireModel):
    token: str


class HeartbeatResponse(WireModel):
    is_valid: bool = False
    is_active_activation: bool = False
    is_valid_license: bool = False
    activation_id: Optional[uuid.UUID] = None
    license_key: Optional[uuid.UUID] = None
    product_name: Optional[str] = None
    licensed_to: Optional[str] = None
    expiry_type: str = ""
    expiry_date: Optional[Timestamp] = None
    expiry_days: Optional[int] = None
    activated_at: Optional[Timestamp] = None
    last_heartbeat: Optional[Timestamp] = None
    params: Optional[str] = None
