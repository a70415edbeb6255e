"""
Issuer-side license token signing.

Produces tokens that the verifier accepts: the signing string is built by
the same routine the verifier uses, signed with RSA-PKCS1v1.5/SHA-256 and
embedded base64-encoded in the token JSON.
"""

import base64
import uuid
from datetime import datetime
from typing import Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from licensekit.common.exceptions import SignatureError
from licensekit.tokens.license_token import LicenseToken, encode_license_token


def load_private_key(private_key_pem: str | bytes, password: Optional[bytes] = None) -> rsa.RSAPrivateKey:
    """Load an RSA private key from PEM text."""
    if isinstance(private_key_pem, str):
        private_key_pem = private_key_pem.encode("utf-8")
    try:
        key = serialization.load_pem_private_key(private_key_pem, password=password)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise SignatureError(f"Unable to load private key: {exc}") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise SignatureError("Private key is not an RSA key")
    return key


def sign_data(data: str, private_key: rsa.RSAPrivateKey) -> str:
    """Sign a UTF-8 string and return the base64 signature."""
    signature = private_key.sign(data.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256())
    return base64.b64encode(signature).decode("ascii")


def public_key_b64(private_key: rsa.RSAPrivateKey) -> str:
    """Base64-encoded PEM of the matching public key, as clients configure it."""
    pem = private_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return base64.b64encode(pem).decode("ascii")


def issue_license_token(
    product_code: str,
    license_key: uuid.UUID,
    secret_key: str,
    private_key: rsa.RSAPrivateKey,
    expiry_date: Optional[datetime] = None,
    params: Optional[str] = None,
) -> str:
    """
    Build and sign a license token.

    Args:
        product_code: Product the license is valid for
        license_key: License UUID
        secret_key: License secret
        private_key: RSA signing key
        expiry_date: Expiry, or None for a perpetual license
        params: Opaque license parameters

    Returns:
        Base64 wire token
    """
    unsigned = LicenseToken(
        product_code=product_code,
        license_key=license_key,
        secret_key=secret_key,
        signature="",
        expiry_date=expiry_date,
        params=params,
    )
    signed = unsigned.model_copy(update={"signature": sign_data(unsigned.signing_string(), private_key)})
    return encode_license_token(signed)
