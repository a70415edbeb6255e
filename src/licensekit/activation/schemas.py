"""Pydantic schemas for the token activation endpoint."""

import uuid
from typing import Optional

from licensekit.common.schemas import Timestamp, WireModel


class EulaInfo(WireModel):
    id: int
    name: str = ""
    content: str = ""
    version: str = ""
    is_html_content: bool = False


class EulaAcceptance(WireModel):
    eula_id: int
    accepted_by_name: str = ""
    accepted_by_email: str = ""
    is_accepted: bool = False


class TokenActivationRequest(WireModel):
    token: str
    machine_fingerprint: str
    machine_name: Optional[str] = None
    operating_system: Optional[str] = None
    application_version: Optional[str] = None
    eula_acceptance: Optional[EulaAcceptance] = None


class TokenActivationResponse(WireModel):
    success: bool = False
    activation_id: Optional[uuid.UUID] = None
    product_code: Optional[str] = None
    expiry_date: Optional[Timestamp] = None
    params: Optional[str] = None
    error: Optional[str] = None
    activated_at: Optional[Timestamp] = None
    required_eula: Optional[EulaInfo] = None
