"""Adversarial tests — forgery, tampering, malformed input."""

import base64
import json
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from licensekit.activation.protocol import ActivationProtocol, ActivationStage
from licensekit.crypto.signer import issue_license_token
from licensekit.tokens.heartbeat import decode_heartbeat_token
from licensekit.tokens.license_token import decode_license_token, encode_license_token

from tests.conftest import PRODUCT_CODE


def _payload(token: str) -> dict:
    return json.loads(base64.b64decode(token))


def _repack(payload: dict) -> str:
    return base64.b64encode(json.dumps(payload).encode()).decode()


@pytest.fixture
def protocol(transport, public_key):
    return ActivationProtocol(transport, public_key=public_key, fingerprint_source=lambda: "fp")


# ── Field Tampering ──


class TestFieldTampering:
    @pytest.mark.parametrize("field,value", [
        ("licenseKey", str(uuid.uuid4())),
        ("secretKey", "guessed-secret"),
        ("expiryDate", "2099-12-31T23:59:59.0000000Z"),
    ])
    def test_tampered_field_rejected(self, protocol, make_token, transport, field, value):
        """Any signed field changed after issue invalidates the signature."""
        payload = _payload(make_token())
        payload[field] = value
        result = protocol.activate(_repack(payload), PRODUCT_CODE)
        assert result.success is False
        assert result.stage == ActivationStage.SIGNATURE_CHECK
        transport.activate_with_token.assert_not_called()

    def test_expiry_removed_to_claim_perpetual(self, protocol, make_token):
        """Dropping expiryDate changes the signing string to 'perpetual'."""
        payload = _payload(make_token())
        payload["expiryDate"] = None
        result = protocol.activate(_repack(payload), PRODUCT_CODE)
        assert result.error == "Invalid token signature"

    def test_expiry_reformatted_same_instant(self, protocol, make_token):
        """A different spelling of the same instant does not change the signing string."""
        expiry = datetime(2099, 1, 1, tzinfo=timezone.utc)
        payload = _payload(make_token(expiry_date=expiry))
        payload["expiryDate"] = "2099-01-01T00:00:00Z"
        assert protocol.activate(_repack(payload), PRODUCT_CODE).success is True

    def test_params_are_not_signed(self, protocol, make_token):
        payload = _payload(make_token(params="seats=1"))
        payload["params"] = "seats=1000"
        assert protocol.activate(_repack(payload), PRODUCT_CODE).success is True

    def test_product_swap_caught_before_signature(self, protocol, make_token):
        payload = _payload(make_token())
        payload["productCode"] = "ENTERPRISE"
        result = protocol.activate(_repack(payload), "ENTERPRISE")
        assert result.stage == ActivationStage.SIGNATURE_CHECK

    def test_duplicate_field_spelling_does_not_help(self, protocol, make_token):
        """A PascalCase duplicate cannot smuggle in a second value."""
        payload = _payload(make_token())
        payload["SecretKey"] = "other"
        assert protocol.activate(_repack(payload), PRODUCT_CODE).success is False


# ── Signature Forgery ──


class TestSignatureForgery:
    def test_signed_by_other_key(self, protocol, transport):
        """Tokens signed by a key the client does not trust are rejected."""
        from cryptography.hazmat.primitives.asymmetric import rsa

        attacker = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        forged = issue_license_token(PRODUCT_CODE, uuid.uuid4(), "s", attacker)
        result = protocol.activate(forged, PRODUCT_CODE)
        assert result.error == "Invalid token signature"

    def test_signature_from_other_token(self, protocol, make_token):
        """A valid signature lifted from another license does not transfer."""
        donor = decode_license_token(make_token(secret_key="donor"))
        target = decode_license_token(make_token(secret_key="target"))
        spliced = encode_license_token(target.model_copy(update={"signature": donor.signature}))
        assert protocol.activate(spliced, PRODUCT_CODE).success is False

    @pytest.mark.parametrize("signature", ["", "AAAA", "====", "not base64 at all", "A" * 344])
    def test_junk_signature(self, protocol, make_token, signature):
        payload = _payload(make_token())
        payload["signature"] = signature
        result = protocol.activate(_repack(payload), PRODUCT_CODE)
        assert result.stage == ActivationStage.SIGNATURE_CHECK


# ── Expiry Boundary ──


class TestExpiryBoundary:
    def test_expired_signed_token_rejected_before_signature(self, protocol, make_token, transport):
        expired = make_token(expiry_date=datetime.now(timezone.utc) - timedelta(days=1))
        result = protocol.activate(expired, PRODUCT_CODE)
        assert result.stage == ActivationStage.EXPIRY_CHECK

    def test_naive_expiry_not_extended_by_local_offset(self, protocol, make_token):
        """A naive expiry is compared as UTC."""
        past = (datetime.now(timezone.utc) - timedelta(minutes=5)).replace(tzinfo=None)
        result = protocol.activate(make_token(expiry_date=past), PRODUCT_CODE)
        assert result.stage == ActivationStage.EXPIRY_CHECK


# ── Malformed Input ──


class TestMalformedInput:
    @pytest.mark.parametrize("token", [
        "null",
        base64.b64encode(b"null").decode(),
        base64.b64encode(b"[]").decode(),
        base64.b64encode(b'{"productCode": null}').decode(),
        base64.b64encode(b"\x00" * 64).decode(),
        "A" * 10_000,
    ])
    def test_garbage_tokens_rejected(self, protocol, token):
        result = protocol.activate(token, PRODUCT_CODE)
        assert result.success is False
        assert result.error == "Invalid token format"

    def test_deeply_nested_json(self, protocol):
        nested = "[" * 5000 + "]" * 5000
        token = base64.b64encode(nested.encode()).decode()
        assert protocol.activate(token, PRODUCT_CODE).error == "Invalid token format"

    @pytest.mark.parametrize("token", [
        "..",
        "A.B.C",
        "AAAAAAAAAAAAAAAAAAAAAA.\x00.\x00",
        "AAAAAAAAAAAAAAAAAAAAAA." + "A" * 5 + ".AA",
    ])
    def test_garbage_heartbeat_tokens(self, token):
        assert decode_heartbeat_token(token) is None
