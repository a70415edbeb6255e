"""Shared test fixtures for licensekit."""

import base64
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from licensekit.activation.schemas import TokenActivationResponse
from licensekit.crypto.signer import issue_license_token, public_key_b64


PRODUCT_CODE = "DEMO"
LICENSE_KEY = uuid.UUID("3f2b8c1e-9a4d-4e6f-8b7a-1c2d3e4f5a6b")
SECRET_KEY = "s3cr3t-license-secret"
ACTIVATION_ID = uuid.UUID("0d9c8b7a-6f5e-4d3c-2b1a-0f9e8d7c6b5a")
FINGERPRINT = "a" * 64


@pytest.fixture(scope="session")
def private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def public_key(private_key) -> str:
    """Base64-encoded SPKI PEM, the way clients are configured."""
    return public_key_b64(private_key)


@pytest.fixture(scope="session")
def other_public_key() -> str:
    other = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return public_key_b64(other)


@pytest.fixture(scope="session")
def pkcs1_public_key(private_key) -> str:
    """Base64 of bare PKCS#1 RSAPublicKey DER."""
    der = private_key.public_key().public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.PKCS1,
    )
    return base64.b64encode(der).decode("ascii")


@pytest.fixture
def make_token(private_key):
    """Issue a signed token; override any field by keyword."""

    def _make(**overrides) -> str:
        fields = {
            "product_code": PRODUCT_CODE,
            "license_key": LICENSE_KEY,
            "secret_key": SECRET_KEY,
            "expiry_date": datetime.now(timezone.utc) + timedelta(days=30),
            "params": None,
        }
        fields.update(overrides)
        return issue_license_token(private_key=private_key, **fields)

    return _make


@pytest.fixture
def transport():
    """Transport double that activates successfully."""
    mock = MagicMock()
    mock.activate_with_token.return_value = TokenActivationResponse(
        success=True,
        activation_id=ACTIVATION_ID,
        product_code=PRODUCT_CODE,
    )
    return mock
