"""Tests for crypto.verifier — key import chain and RSA signature checks."""

import base64

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from licensekit.common.exceptions import ConfigurationError, KeyImportFailure
from licensekit.crypto.signer import sign_data
from licensekit.crypto.verifier import (
    KEY_FORMATS,
    CryptographyVerifier,
    PyJWTVerifier,
    create_verifier,
    decode_key_material,
    import_public_key,
    verify_signature,
)


DATA = "DEMO.3f2b8c1e-9a4d-4e6f-8b7a-1c2d3e4f5a6b.secret.perpetual"


def _flip_byte(raw: bytes, index: int) -> bytes:
    return raw[:index] + bytes([raw[index] ^ 0x01]) + raw[index + 1:]


@pytest.fixture(params=["cryptography", "pyjwt"])
def verifier(request):
    return create_verifier(request.param)


class TestKeyImport:
    def test_format_order(self):
        assert [name for name, _ in KEY_FORMATS] == ["spki-der", "pkcs1-der", "pem-spki"]

    def test_base64_pem_spki(self, public_key):
        assert isinstance(import_public_key(public_key), rsa.RSAPublicKey)

    def test_base64_der_spki(self, private_key):
        der = private_key.public_key().public_bytes(
            serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
        )
        key = import_public_key(base64.b64encode(der).decode())
        assert key.public_numbers() == private_key.public_key().public_numbers()

    def test_pkcs1_der(self, pkcs1_public_key, private_key):
        key = import_public_key(pkcs1_public_key)
        assert key.public_numbers() == private_key.public_key().public_numbers()

    def test_raw_pem_text(self, private_key):
        pem = private_key.public_key().public_bytes(
            serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
        ).decode()
        assert isinstance(import_public_key(pem), rsa.RSAPublicKey)

    def test_pem_with_crlf_and_surrounding_text(self, private_key):
        pem = private_key.public_key().public_bytes(
            serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
        ).decode().replace("\n", "\r\n")
        wrapped = f"license key for ACME\r\n{pem}\r\nend of file"
        encoded = base64.b64encode(wrapped.encode()).decode()
        assert isinstance(import_public_key(encoded), rsa.RSAPublicKey)

    def test_pem_spki_fallback(self, private_key):
        """A PEM block whose body is unusable as-is still reaches the pem-spki importer."""
        pem = private_key.public_key().public_bytes(
            serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
        )
        name, importer = KEY_FORMATS[2]
        assert name == "pem-spki"
        assert isinstance(importer(b"junk before\n" + pem), rsa.RSAPublicKey)

    def test_decode_key_material_unwraps_pem(self, public_key, private_key):
        der = private_key.public_key().public_bytes(
            serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
        )
        assert decode_key_material(public_key) == der

    @pytest.mark.parametrize("bad", [
        "",
        "not base64 at all!",
        base64.b64encode(b"random bytes that are not a key").decode(),
        base64.b64encode(b"-----BEGIN PUBLIC KEY-----\n%%%%\n-----END PUBLIC KEY-----").decode(),
    ])
    def test_unsupported_raises_typed_failure(self, bad):
        with pytest.raises(KeyImportFailure) as exc_info:
            import_public_key(bad)
        assert exc_info.value.code == "KEY_IMPORT_FAILED"

    def test_failure_lists_tried_formats(self):
        with pytest.raises(KeyImportFailure) as exc_info:
            import_public_key(base64.b64encode(b"\x30\x03\x02\x01\x00").decode())
        assert exc_info.value.tried == ("spki-der", "pkcs1-der", "pem-spki")

    def test_non_rsa_key_rejected(self):
        ec_key = ec.generate_private_key(ec.SECP256R1()).public_key()
        pem = ec_key.public_bytes(
            serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
        )
        with pytest.raises(KeyImportFailure):
            import_public_key(base64.b64encode(pem).decode())


class TestVerify:
    def test_valid_signature(self, verifier, private_key, public_key):
        signature = sign_data(DATA, private_key)
        assert verifier.verify(DATA, signature, public_key) is True

    def test_pkcs1_key_verifies(self, verifier, private_key, pkcs1_public_key):
        signature = sign_data(DATA, private_key)
        assert verifier.verify(DATA, signature, pkcs1_public_key) is True

    def test_signature_whitespace_tolerated(self, verifier, private_key, public_key):
        signature = sign_data(DATA, private_key)
        wrapped = "\n".join(signature[i:i + 40] for i in range(0, len(signature), 40))
        assert verifier.verify(DATA, f"  {wrapped}\r\n", public_key) is True

    def test_flipped_signature_byte(self, verifier, private_key, public_key):
        raw = base64.b64decode(sign_data(DATA, private_key))
        for index in (0, len(raw) // 2, len(raw) - 1):
            tampered = base64.b64encode(_flip_byte(raw, index)).decode()
            assert verifier.verify(DATA, tampered, public_key) is False

    def test_flipped_data_byte(self, verifier, private_key, public_key):
        signature = sign_data(DATA, private_key)
        raw = DATA.encode()
        for index in (0, len(raw) // 2, len(raw) - 1):
            tampered = _flip_byte(raw, index).decode()
            assert verifier.verify(tampered, signature, public_key) is False

    def test_wrong_key(self, verifier, private_key, other_public_key):
        signature = sign_data(DATA, private_key)
        assert verifier.verify(DATA, signature, other_public_key) is False

    def test_corrupt_key_returns_false(self, verifier, private_key):
        signature = sign_data(DATA, private_key)
        assert verifier.verify(DATA, signature, "bm90IGEga2V5") is False
        assert verifier.verify(DATA, signature, "%%%") is False

    def test_malformed_signature_returns_false(self, verifier, public_key):
        assert verifier.verify(DATA, "not-base64!!", public_key) is False
        assert verifier.verify(DATA, "", public_key) is False
        assert verifier.verify(DATA, "AAAA", public_key) is False

    def test_non_string_inputs_return_false(self, verifier, public_key):
        assert verifier.verify(None, "AAAA", public_key) is False
        assert verifier.verify(DATA, None, public_key) is False
        assert verifier.verify(DATA, "AAAA", None) is False

    def test_unicode_data(self, verifier, private_key, public_key):
        data = "PRODUKT.äöü.geheim.perpetual"
        assert verifier.verify(data, sign_data(data, private_key), public_key) is True


class TestBackends:
    def test_default_backend(self):
        assert isinstance(create_verifier(), CryptographyVerifier)

    def test_pyjwt_backend(self):
        verifier = create_verifier("pyjwt")
        assert isinstance(verifier, PyJWTVerifier)
        assert verifier.backend == "pyjwt"

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError):
            create_verifier("webcrypto")

    def test_backends_agree(self, private_key, public_key, other_public_key):
        signature = sign_data(DATA, private_key)
        backends = [create_verifier("cryptography"), create_verifier("pyjwt")]
        for key, expected in ((public_key, True), (other_public_key, False)):
            assert [b.verify(DATA, signature, key) for b in backends] == [expected, expected]

    def test_module_helper(self, private_key, public_key):
        assert verify_signature(DATA, sign_data(DATA, private_key), public_key) is True
