"""
Heartbeat protocol.

Builds the compact heartbeat token for an activation and turns whatever the
transport hands back into a typed HeartbeatResult. Error classification is a
pure function of (status code, error text) driven by HEARTBEAT_ERROR_RULES.
"""

import dataclasses
import enum
import uuid
from dataclasses import dataclass
from typing import Optional, Union

from pydantic import ValidationError

from licensekit.client import LicenseTransport, TransportOutcome
from licensekit.common.logging import get_logger
from licensekit.fingerprint import FingerprintSource, current_fingerprint, resolve_fingerprint
from licensekit.heartbeat.schemas import HeartbeatRequest, HeartbeatResponse
from licensekit.tokens.heartbeat import encode_heartbeat_token

logger = get_logger("heartbeat")


class HeartbeatErrorCode(str, enum.Enum):
    CUSTOMER_MISMATCH = "CUSTOMER_MISMATCH"
    MACHINE_MISMATCH = "MACHINE_MISMATCH"
    UNAUTHORIZED = "UNAUTHORIZED"
    ACTIVATION_NOT_FOUND = "ACTIVATION_NOT_FOUND"
    LICENSE_NOT_FOUND = "LICENSE_NOT_FOUND"
    NOT_FOUND = "NOT_FOUND"
    BAD_REQUEST = "BAD_REQUEST"
    NO_RESPONSE = "NO_RESPONSE"
    EXCEPTION = "EXCEPTION"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INVALID_ID = "INVALID_ID"


# Unmapped statuses are reported with the status code itself as the code.
ErrorCode = Union[HeartbeatErrorCode, str]


@dataclass(frozen=True)
class ErrorRule:
    status_code: int
    marker: Optional[str]
    code: HeartbeatErrorCode
    message: str


# First match wins; a rule without a marker matches any text for its status.
HEARTBEAT_ERROR_RULES: tuple[ErrorRule, ...] = (
    ErrorRule(401, "does not belong to this customer", HeartbeatErrorCode.CUSTOMER_MISMATCH,
              "Customer email mismatch - security validation failed"),
    ErrorRule(401, "does not belong to this machine", HeartbeatErrorCode.MACHINE_MISMATCH,
              "Machine fingerprint mismatch - security validation failed"),
    ErrorRule(401, None, HeartbeatErrorCode.UNAUTHORIZED, "Security validation failed"),
    ErrorRule(404, "Activation not found", HeartbeatErrorCode.ACTIVATION_NOT_FOUND,
              "Activation ID not found"),
    ErrorRule(404, "License not found", HeartbeatErrorCode.LICENSE_NOT_FOUND,
              "License not found for this activation"),
    ErrorRule(404, None, HeartbeatErrorCode.NOT_FOUND, "Resource not found"),
    ErrorRule(400, None, HeartbeatErrorCode.BAD_REQUEST, "Bad request - validation failed"),
)


def classify_error(status_code: int, error_text: str = "") -> tuple[ErrorCode, str]:
    """
    Map an HTTP status and error body to an error code and message.

    Returns:
        (code, message); unmapped statuses give (str(status_code), error_text)
    """
    text = error_text or ""
    for rule in HEARTBEAT_ERROR_RULES:
        if rule.status_code != status_code:
            continue
        if rule.marker is None or rule.marker in text:
            return rule.code, rule.message
    return str(status_code), text or f"HTTP {status_code}"


@dataclass
class HeartbeatResult:
    """Outcome of one heartbeat."""

    success: bool
    activation_id: Optional[uuid.UUID] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    error_details: Optional[str] = None
    customer_email: Optional[str] = None
    machine_fingerprint: Optional[str] = None
    security_token: Optional[str] = None
    response: Optional[HeartbeatResponse] = None


class HeartbeatProtocol:
    """
    Re-asserts an activation's identity triple against the license server.

    Args:
        transport: Delivers the heartbeat request
        fingerprint_source: Called when the caller supplies no fingerprint
    """

    def __init__(
        self,
        transport: LicenseTransport,
        fingerprint_source: FingerprintSource = current_fingerprint,
    ):
        self.transport = transport
        self.fingerprint_source = fingerprint_source

    @staticmethod
    def build_request(
        activation_id: uuid.UUID,
        customer_email: str,
        machine_fingerprint: str,
    ) -> HeartbeatRequest:
        token = encode_heartbeat_token(activation_id, customer_email, machine_fingerprint)
        return HeartbeatRequest(token=token)

    @staticmethod
    def interpret(outcome: TransportOutcome) -> HeartbeatResult:
        """Turn a transport outcome into a HeartbeatResult."""
        if outcome.exception is not None:
            return HeartbeatResult(
                success=False,
                error=f"Heartbeat error: {outcome.exception}",
                error_code=HeartbeatErrorCode.EXCEPTION,
            )

        if outcome.status_code is None or (outcome.ok and outcome.body is None):
            return HeartbeatResult(
                success=False,
                error="No response received from server",
                error_code=HeartbeatErrorCode.NO_RESPONSE,
                error_details=outcome.error_text or None,
            )

        if not outcome.ok:
            code, message = classify_error(outcome.status_code, outcome.error_text)
            return HeartbeatResult(
                success=False,
                error=message,
                error_code=code,
                error_details=outcome.error_text or None,
            )

        try:
            response = HeartbeatResponse.model_validate(outcome.body)
        except ValidationError as exc:
            return HeartbeatResult(
                success=False,
                error="No response received from server",
                error_code=HeartbeatErrorCode.NO_RESPONSE,
                error_details=str(exc),
            )

        if not response.is_valid:
            return HeartbeatResult(
                success=False,
                error="License validation failed",
                error_code=HeartbeatErrorCode.VALIDATION_FAILED,
                response=response,
            )
        return HeartbeatResult(success=True, response=response)

    def send(
        self,
        activation_id: uuid.UUID,
        customer_email: Optional[str] = None,
        machine_fingerprint: Optional[str] = None,
    ) -> HeartbeatResult:
        """
        Send one heartbeat for an activation.

        Args:
            activation_id: Activation to revalidate
            customer_email: Customer the license was issued to, may be empty
            machine_fingerprint: Fingerprint bound at activation; generated when blank

        Returns:
            HeartbeatResult with the identity fields filled in
        """
        if activation_id is None or activation_id == uuid.UUID(int=0):
            return HeartbeatResult(
                success=False,
                activation_id=activation_id,
                customer_email=customer_email,
                error="Invalid activation ID",
                error_code=HeartbeatErrorCode.INVALID_ID,
            )

        email = (customer_email or "").strip()
        try:
            fingerprint = resolve_fingerprint(machine_fingerprint, self.fingerprint_source)
            request = self.build_request(activation_id, email, fingerprint)
            outcome = self.transport.send_heartbeat(request)
            result = self.interpret(outcome)
        except Exception as exc:
            logger.exception("Unexpected heartbeat failure", extra={"stage": "heartbeat"})
            return HeartbeatResult(
                success=False,
                activation_id=activation_id,
                customer_email=customer_email,
                error=f"Heartbeat error: {exc}",
                error_code=HeartbeatErrorCode.EXCEPTION,
            )

        if not result.success:
            logger.info("Heartbeat failed: %s", result.error, extra={"stage": "heartbeat"})
        return dataclasses.replace(
            result,
            activation_id=activation_id,
            customer_email=customer_email,
            machine_fingerprint=fingerprint,
            security_token=request.token,
        )
