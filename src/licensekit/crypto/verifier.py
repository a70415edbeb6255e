"""
RSA signature verification for license tokens.

Signatures are RSASSA-PKCS1-v1_5 over SHA-256 of the UTF-8 signing string.
Public keys arrive as base64-encoded PEM text, but hand-distributed license
files are often re-wrapped by other tools, so key import walks a fixed list
of formats and takes the first that yields an RSA key:

    1. spki-der   SubjectPublicKeyInfo / X.509 DER
    2. pkcs1-der  bare RSAPublicKey DER
    3. pem-spki   SPKI still wrapped in BEGIN/END PUBLIC KEY text

verify() never raises; every failure is a False.
"""

import base64
import binascii
import re
from typing import Callable, Protocol

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from jwt.algorithms import RSAAlgorithm

from licensekit.common.exceptions import ConfigurationError, KeyImportFailure
from licensekit.common.logging import get_logger

logger = get_logger("crypto.verifier")

_WHITESPACE = re.compile(rb"\s+")
_PEM_BLOCK = re.compile(
    rb"-----BEGIN ([A-Z ]*?)PUBLIC KEY-----(?P<body>.*?)-----END \1PUBLIC KEY-----",
    re.DOTALL,
)
_SPKI_BLOCK = re.compile(
    rb"-----BEGIN PUBLIC KEY-----(?P<body>.*?)-----END PUBLIC KEY-----",
    re.DOTALL,
)

_IMPORT_ERRORS = (ValueError, TypeError, UnsupportedAlgorithm, binascii.Error)


def _b64decode_strict(data: bytes | str) -> bytes:
    if isinstance(data, str):
        data = data.encode("ascii")
    return base64.b64decode(_WHITESPACE.sub(b"", data), validate=True)


def decode_key_material(public_key: str) -> bytes:
    """
    Unwrap the configured public key down to key bytes.

    The outer base64 layer is decoded (raw PEM text is accepted as-is). If
    the result is PEM, the body between the markers is whitespace-stripped
    and base64-decoded; otherwise the decoded bytes are returned unchanged.

    Raises:
        ValueError: if the outer layer is neither base64 nor PEM text
    """
    text = public_key.strip()
    if "-----BEGIN" in text:
        material = text.encode("utf-8")
    else:
        material = _b64decode_strict(text)

    block = _PEM_BLOCK.search(material)
    if block is None:
        return material
    try:
        return _b64decode_strict(block.group("body"))
    except _IMPORT_ERRORS:
        # leave the text for the pem-spki importer to reject
        return material


def _import_spki_der(material: bytes):
    return serialization.load_der_public_key(material)


def _import_pkcs1_der(material: bytes):
    pem = (
        b"-----BEGIN RSA PUBLIC KEY-----\n"
        + base64.encodebytes(material)
        + b"-----END RSA PUBLIC KEY-----\n"
    )
    return serialization.load_pem_public_key(pem)


def _import_pem_spki(material: bytes):
    block = _SPKI_BLOCK.search(material)
    if block is None:
        raise ValueError("No BEGIN PUBLIC KEY block")
    return serialization.load_der_public_key(_b64decode_strict(block.group("body")))


KeyImporter = Callable[[bytes], object]

KEY_FORMATS: tuple[tuple[str, KeyImporter], ...] = (
    ("spki-der", _import_spki_der),
    ("pkcs1-der", _import_pkcs1_der),
    ("pem-spki", _import_pem_spki),
)


def import_public_key(
    public_key: str,
    formats: tuple[tuple[str, KeyImporter], ...] = KEY_FORMATS,
) -> rsa.RSAPublicKey:
    """
    Import an RSA public key, trying each format in order.

    Raises:
        KeyImportFailure: if the material cannot be unwrapped or no format
            produces an RSA public key
    """
    try:
        material = decode_key_material(public_key)
    except (AttributeError, *_IMPORT_ERRORS) as exc:
        raise KeyImportFailure("Public key is not base64 or PEM text") from exc

    tried = []
    for name, importer in formats:
        tried.append(name)
        try:
            key = importer(material)
        except _IMPORT_ERRORS:
            continue
        if isinstance(key, rsa.RSAPublicKey):
            logger.debug("Imported public key as %s", name)
            return key
    raise KeyImportFailure(tried=tuple(tried))


def decode_signature(signature: str) -> bytes:
    """Whitespace-strip and base64-decode a signature."""
    return _b64decode_strict(signature)


class SignatureVerifier(Protocol):
    """Verifies a base64 signature over a signing string."""

    backend: str

    def verify(self, data: str, signature: str, public_key: str) -> bool:
        ...


class _RSAVerifier:
    """Shared key handling; subclasses supply the PKCS#1 v1.5 check."""

    backend = ""

    def verify(self, data: str, signature: str, public_key: str) -> bool:
        """
        Verify an RSA-PKCS1v1.5/SHA-256 signature.

        Args:
            data: Signing string, UTF-8 encoded before hashing
            signature: Base64 signature (whitespace tolerated)
            public_key: Base64-encoded PEM public key

        Returns:
            True only if the key imports and the signature matches
        """
        try:
            key = import_public_key(public_key)
            signature_bytes = decode_signature(signature)
            return self._verify(key, data.encode("utf-8"), signature_bytes)
        except KeyImportFailure as exc:
            logger.warning("Signature check failed: %s", exc.message)
            return False
        except (AttributeError, *_IMPORT_ERRORS) as exc:
            logger.info("Signature check failed: %s", exc.__class__.__name__)
            return False

    def _verify(self, key: rsa.RSAPublicKey, message: bytes, signature: bytes) -> bool:
        raise NotImplementedError


class CryptographyVerifier(_RSAVerifier):
    """Verifies with the cryptography package directly."""

    backend = "cryptography"

    def _verify(self, key: rsa.RSAPublicKey, message: bytes, signature: bytes) -> bool:
        try:
            key.verify(signature, message, padding.PKCS1v15(), hashes.SHA256())
        except InvalidSignature:
            return False
        return True


class PyJWTVerifier(_RSAVerifier):
    """Verifies through PyJWT's RS256 algorithm implementation."""

    backend = "pyjwt"

    def __init__(self) -> None:
        self._algorithm = RSAAlgorithm(RSAAlgorithm.SHA256)

    def _verify(self, key: rsa.RSAPublicKey, message: bytes, signature: bytes) -> bool:
        return bool(self._algorithm.verify(message, key, signature))


VERIFIER_BACKENDS: dict[str, type[_RSAVerifier]] = {
    CryptographyVerifier.backend: CryptographyVerifier,
    PyJWTVerifier.backend: PyJWTVerifier,
}


def create_verifier(backend: str = "cryptography") -> SignatureVerifier:
    """Build the verifier for a configured backend name."""
    try:
        verifier_cls = VERIFIER_BACKENDS[backend]
    except KeyError:
        raise ConfigurationError(
            f"Unknown verifier backend {backend!r}; expected one of: "
            f"{', '.join(sorted(VERIFIER_BACKENDS))}"
        ) from None
    return verifier_cls()


def verify_signature(data: str, signature: str, public_key: str) -> bool:
    """Verify with the default backend."""
    return CryptographyVerifier().verify(data, signature, public_key)
