"""
Token activation protocol.

Stages run strictly in order and the first failing check ends the attempt:

    DECODING -> PRODUCT_CHECK -> EXPIRY_CHECK -> SIGNATURE_CHECK -> EULA_CHECK -> BOUND

Every outcome, including unexpected exceptions, comes back as an
ActivationResult; nothing here raises to the caller.
"""

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from licensekit.activation.eula import is_eula_required
from licensekit.activation.schemas import (
    EulaAcceptance,
    EulaInfo,
    TokenActivationRequest,
    TokenActivationResponse,
)
from licensekit.client import LicenseTransport
from licensekit.common.logging import get_logger
from licensekit.crypto.verifier import CryptographyVerifier, SignatureVerifier
from licensekit.fingerprint import FingerprintSource, current_fingerprint, resolve_fingerprint
from licensekit.tokens.license_token import LicenseToken, decode_license_token

logger = get_logger("activation")


class ActivationStage(str, enum.Enum):
    DECODING = "decoding"
    PRODUCT_CHECK = "product_check"
    EXPIRY_CHECK = "expiry_check"
    SIGNATURE_CHECK = "signature_check"
    EULA_CHECK = "eula_check"
    BOUND = "bound"


@dataclass
class ActivationResult:
    """Outcome of one activation attempt. Persisting it is the caller's job."""

    success: bool
    stage: ActivationStage
    activation_id: Optional[uuid.UUID] = None
    error: Optional[str] = None
    requires_eula: bool = False
    required_eula: Optional[EulaInfo] = None
    machine_fingerprint: Optional[str] = None
    token: Optional[LicenseToken] = None
    response: Optional[TokenActivationResponse] = None


def product_matches(token_product_code: str, expected_product_code: str) -> bool:
    """Case-insensitive product code comparison; blanks never match."""
    if not token_product_code or not expected_product_code:
        return False
    return token_product_code.casefold() == expected_product_code.casefold()


def expiry_message(token: LicenseToken) -> str:
    if token.expiry_date is None:
        return "License token has expired"
    return f"License token expired on {token.expiry_date:%Y-%m-%d %H:%M}"


class ActivationProtocol:
    """
    Validates a license token locally, then binds it to this machine.

    Args:
        transport: Submits the activation request to the license server
        public_key: Base64-encoded PEM key; when None, signatures are not checked
        verifier: Signature backend (defaults to the cryptography backend)
        fingerprint_source: Called when the caller supplies no fingerprint
        application_version: Reported with each activation request
    """

    def __init__(
        self,
        transport: LicenseTransport,
        public_key: Optional[str] = None,
        verifier: Optional[SignatureVerifier] = None,
        fingerprint_source: FingerprintSource = current_fingerprint,
        application_version: Optional[str] = None,
        machine_name: Optional[str] = None,
        operating_system: Optional[str] = None,
    ):
        self.transport = transport
        self.public_key = public_key or None
        self.verifier = verifier or CryptographyVerifier()
        self.fingerprint_source = fingerprint_source
        self.application_version = application_version or None
        self.machine_name = machine_name
        self.operating_system = operating_system

    def _reject(self, stage: ActivationStage, error: str, **fields) -> ActivationResult:
        logger.info("Activation rejected at %s: %s", stage.value, error, extra={"stage": stage.value})
        return ActivationResult(success=False, stage=stage, error=error, **fields)

    def validate_token(
        self,
        license_token: str,
        product_code: str,
        now: Optional[datetime] = None,
    ) -> ActivationResult:
        """
        Run the offline checks (decode, product, expiry, signature).

        Returns:
            A successful result at SIGNATURE_CHECK carrying the decoded token,
            or the first rejection
        """
        if not license_token or not license_token.strip():
            return self._reject(ActivationStage.DECODING, "License token is required")
        if not product_code or not product_code.strip():
            return self._reject(ActivationStage.DECODING, "Product code is required")

        token = decode_license_token(license_token)
        if token is None:
            return self._reject(ActivationStage.DECODING, "Invalid token format")

        if not product_matches(token.product_code, product_code):
            return self._reject(
                ActivationStage.PRODUCT_CHECK,
                f"Token is not valid for product '{product_code}'. "
                f"Token is for product '{token.product_code}'",
                token=token,
            )

        if token.is_expired(now):
            return self._reject(ActivationStage.EXPIRY_CHECK, expiry_message(token), token=token)

        if self.public_key:
            if not self.verifier.verify(token.signing_string(), token.signature, self.public_key):
                return self._reject(
                    ActivationStage.SIGNATURE_CHECK, "Invalid token signature", token=token
                )
        else:
            logger.debug("No public key configured, signature check skipped")

        return ActivationResult(success=True, stage=ActivationStage.SIGNATURE_CHECK, token=token)

    def activate(
        self,
        license_token: str,
        product_code: str,
        machine_fingerprint: Optional[str] = None,
        eula_acceptance: Optional[EulaAcceptance] = None,
    ) -> ActivationResult:
        """
        Activate a license token on this machine.

        Args:
            license_token: Base64 license token
            product_code: Product this client expects the token to be for
            machine_fingerprint: Fingerprint to bind; generated when blank
            eula_acceptance: Acceptance to attach when re-invoking after an
                EULA-required outcome

        Returns:
            ActivationResult; on an EULA-required outcome, requires_eula is
            True and required_eula carries the agreement to present
        """
        stage = ActivationStage.DECODING
        try:
            checked = self.validate_token(license_token, product_code)
            if not checked.success:
                return checked
            token = checked.token
            stage = ActivationStage.EULA_CHECK

            fingerprint = resolve_fingerprint(machine_fingerprint, self.fingerprint_source)
            request = TokenActivationRequest(
                token=license_token.strip(),
                machine_fingerprint=fingerprint,
                machine_name=self.machine_name,
                operating_system=self.operating_system,
                application_version=self.application_version,
                eula_acceptance=eula_acceptance,
            )
            response = self.transport.activate_with_token(request)

            if response.success:
                logger.info("License activated for product %s", token.product_code)
                return ActivationResult(
                    success=True,
                    stage=ActivationStage.BOUND,
                    activation_id=response.activation_id,
                    machine_fingerprint=fingerprint,
                    token=token,
                    response=response,
                )

            if is_eula_required(response):
                logger.info("Activation pending EULA acceptance", extra={"stage": ActivationStage.EULA_CHECK.value})
                return ActivationResult(
                    success=False,
                    stage=ActivationStage.EULA_CHECK,
                    error=response.error,
                    requires_eula=True,
                    required_eula=response.required_eula,
                    machine_fingerprint=fingerprint,
                    token=token,
                    response=response,
                )

            return self._reject(
                ActivationStage.EULA_CHECK,
                response.error or "Activation failed",
                token=token,
                response=response,
            )
        except Exception as exc:
            logger.exception("Unexpected activation failure")
            return ActivationResult(
                success=False,
                stage=stage,
                error=f"Activation error: {exc}",
            )
