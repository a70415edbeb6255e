"""Factories wiring settings into protocols. No module-level singletons."""

from typing import Optional

from licensekit.activation.protocol import ActivationProtocol
from licensekit.client import LicenseServerClient, LicenseTransport
from licensekit.common.config import LicenseKitSettings
from licensekit.crypto.verifier import SignatureVerifier, create_verifier
from licensekit.fingerprint import FingerprintSource, current_fingerprint
from licensekit.heartbeat.protocol import HeartbeatProtocol


def create_transport(settings: LicenseKitSettings) -> LicenseServerClient:
    return LicenseServerClient.from_settings(settings)


def create_signature_verifier(settings: LicenseKitSettings) -> SignatureVerifier:
    return create_verifier(settings.verifier_backend)


def create_activation_protocol(
    settings: LicenseKitSettings,
    transport: Optional[LicenseTransport] = None,
    fingerprint_source: FingerprintSource = current_fingerprint,
) -> ActivationProtocol:
    return ActivationProtocol(
        transport or create_transport(settings),
        public_key=settings.public_key,
        verifier=create_signature_verifier(settings),
        fingerprint_source=fingerprint_source,
        application_version=settings.application_version,
    )


def create_heartbeat_protocol(
    settings: LicenseKitSettings,
    transport: Optional[LicenseTransport] = None,
    fingerprint_source: FingerprintSource = current_fingerprint,
) -> HeartbeatProtocol:
    return HeartbeatProtocol(
        transport or create_transport(settings),
        fingerprint_source=fingerprint_source,
    )
