"""licensekit: signed-token license activation and heartbeat client."""

from licensekit.activation.protocol import ActivationProtocol, ActivationResult, ActivationStage
from licensekit.client import LicenseServerClient, TransportOutcome
from licensekit.crypto.verifier import create_verifier, verify_signature
from licensekit.heartbeat.protocol import (
    HeartbeatErrorCode,
    HeartbeatProtocol,
    HeartbeatResult,
    classify_error,
)
from licensekit.tokens.heartbeat import HeartbeatToken, decode_heartbeat_token, encode_heartbeat_token
from licensekit.tokens.license_token import LicenseToken, decode_license_token
from licensekit.tokens.signing import build_signing_string

__all__ = [
    "ActivationProtocol",
    "ActivationResult",
    "ActivationStage",
    "HeartbeatErrorCode",
    "HeartbeatProtocol",
    "HeartbeatResult",
    "HeartbeatToken",
    "LicenseServerClient",
    "LicenseToken",
    "TransportOutcome",
    "build_signing_string",
    "classify_error",
    "create_verifier",
    "decode_heartbeat_token",
    "decode_license_token",
    "encode_heartbeat_token",
    "verify_signature",
]
__version__ = "0.1.0"
