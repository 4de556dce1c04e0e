"""
Tests de EnvelopeCrypto: RSA-OAEP, AES-GCM y firma RSA PKCS#1 v1.5
"""

import os

import pytest
from cryptography.exceptions import UnsupportedAlgorithm as BackendUnsupported

from custodia.core.envelope import (
    AUTHENTICATION_FAILED_MESSAGE,
    DECRYPTION_FAILED_MESSAGE,
    EnvelopeCrypto,
)
from custodia.core.errors import (
    AuthenticationFailed,
    DecryptionFailed,
    PlaintextTooLarge,
    ProviderUnavailable,
    SignatureMalformed,
    UnsupportedAlgorithm,
)
from custodia.core.models import Algorithm, KeyKind
from custodia.core.provider import PrimitiveProvider


class NoOAEPProvider(PrimitiveProvider):
    def asymmetric_encrypt(self, handle, algorithm, data):
        raise BackendUnsupported("sin OAEP")


# ==============================
#  TEST: CIFRADO ASIMÉTRICO
# ==============================
def test_hello_rsa_scenario(custody, envelope):
    """Escenario: par ('pub1','priv1'), cifrar 'Hello, RSA!' y recuperarlo."""
    custody.generate_and_store(2048, "pub1", "priv1")
    public = custody.resolve("pub1", KeyKind.PUBLIC)
    private = custody.resolve("priv1", KeyKind.PRIVATE)

    ciphertext = envelope.encrypt_text("Hello, RSA!", public)
    assert len(ciphertext) == 256
    assert envelope.decrypt_text(ciphertext, private) == "Hello, RSA!"


@pytest.mark.parametrize("payload", [b"", b"\x00", os.urandom(64), b"x" * 190])
def test_asymmetric_round_trip(keypair, envelope, payload):
    ciphertext = envelope.asymmetric_encrypt(payload, keypair.public)
    assert envelope.asymmetric_decrypt(ciphertext, keypair.private) == payload


def test_oaep_is_randomized(keypair, envelope):
    assert envelope.asymmetric_encrypt(b"m", keypair.public) != \
        envelope.asymmetric_encrypt(b"m", keypair.public)


def test_plaintext_too_large(keypair, envelope):
    """RSA-2048 con OAEP/SHA-256 admite como máximo 190 bytes."""
    with pytest.raises(PlaintextTooLarge):
        envelope.asymmetric_encrypt(b"x" * 191, keypair.public)


def test_decrypt_with_wrong_key_is_generic(custody, envelope, keypair):
    """Test: clave incorrecta y datos corruptos dan el mismo error."""
    other = custody.generate_and_store(2048, "pub2", "priv2")
    ciphertext = envelope.asymmetric_encrypt(b"secreto", keypair.public)

    with pytest.raises(DecryptionFailed) as wrong_key:
        envelope.asymmetric_decrypt(ciphertext, other.private)

    tampered = bytearray(ciphertext)
    tampered[10] ^= 0x01
    with pytest.raises(DecryptionFailed) as corrupt:
        envelope.asymmetric_decrypt(bytes(tampered), keypair.private)

    with pytest.raises(DecryptionFailed) as short:
        envelope.asymmetric_decrypt(ciphertext[:-1], keypair.private)

    assert str(wrong_key.value) == str(corrupt.value) == str(short.value) == DECRYPTION_FAILED_MESSAGE


def test_wrong_handle_kind_is_rejected(keypair, envelope):
    """Test: usar la mitad equivocada no llega a llamar al proveedor."""
    with pytest.raises(UnsupportedAlgorithm):
        envelope.asymmetric_encrypt(b"x", keypair.private)
    with pytest.raises(UnsupportedAlgorithm):
        envelope.asymmetric_decrypt(b"x" * 256, keypair.public)


def test_provider_unavailable(keypair):
    envelope = EnvelopeCrypto(provider=NoOAEPProvider())
    with pytest.raises(ProviderUnavailable):
        envelope.asymmetric_encrypt(b"x", keypair.public)


def test_requires_resolved_handle(envelope):
    with pytest.raises(TypeError):
        envelope.asymmetric_encrypt(b"x", "pub1")


# ==============================
#  TEST: CIFRADO SIMÉTRICO
# ==============================
def test_sensitive_data_scenario(custody, envelope):
    """Escenario: sellar 'Sensitive data' con una clave de 256 bits nueva."""
    key = custody.generate_symmetric_key(256)
    blob = envelope.symmetric_seal(b"Sensitive data", key)

    assert envelope.symmetric_open(blob, key) == b"Sensitive data"

    other = custody.generate_symmetric_key(256)
    with pytest.raises(AuthenticationFailed):
        envelope.symmetric_open(blob, other)


def test_sealed_blob_layout(custody, envelope):
    """nonce (12) + ciphertext + tag (16)."""
    key = custody.generate_symmetric_key(256)
    blob = envelope.symmetric_seal(b"Sensitive data", key)
    assert len(blob) == 12 + len(b"Sensitive data") + 16


@pytest.mark.parametrize("payload", [b"", b"a", os.urandom(1000)])
def test_symmetric_round_trip(custody, envelope, payload):
    key = custody.generate_symmetric_key(128)
    assert envelope.symmetric_open(envelope.symmetric_seal(payload, key), key) == payload


def test_every_bit_flip_fails_authentication(custody, envelope):
    """Test: invertir cualquier bit del blob da AuthenticationFailed."""
    key = custody.generate_symmetric_key(256)
    blob = envelope.symmetric_seal(b"Sensitive data", key)

    for i in range(len(blob) * 8):
        tampered = bytearray(blob)
        tampered[i // 8] ^= 1 << (i % 8)
        with pytest.raises(AuthenticationFailed):
            envelope.symmetric_open(bytes(tampered), key)


def test_malformed_blob_same_error(custody, envelope):
    """Test: blob corto y tag inválido no se distinguen."""
    key = custody.generate_symmetric_key(256)
    blob = envelope.symmetric_seal(b"datos", key)

    with pytest.raises(AuthenticationFailed) as short:
        envelope.symmetric_open(blob[:20], key)
    with pytest.raises(AuthenticationFailed) as empty:
        envelope.symmetric_open(b"", key)
    with pytest.raises(AuthenticationFailed) as bad_tag:
        envelope.symmetric_open(blob[:-1] + bytes([blob[-1] ^ 1]), key)

    assert str(short.value) == str(empty.value) == str(bad_tag.value) == AUTHENTICATION_FAILED_MESSAGE


def test_associated_data_must_match(custody, envelope):
    key = custody.generate_symmetric_key(256)
    blob = envelope.symmetric_seal(b"datos", key, associated_data=b"cabecera")

    assert envelope.symmetric_open(blob, key, associated_data=b"cabecera") == b"datos"
    with pytest.raises(AuthenticationFailed):
        envelope.symmetric_open(blob, key)


def test_blob_bound_to_algorithm(custody, envelope):
    """Test: un blob AES-GCM sin el identificador de algoritmo no se abre."""
    key = custody.generate_symmetric_key(256)
    raw_blob = PrimitiveProvider().symmetric_seal(key, Algorithm.AES_GCM, b"datos", None)
    with pytest.raises(AuthenticationFailed):
        envelope.symmetric_open(raw_blob, key)


def test_rsa_handle_cannot_seal(keypair, envelope):
    with pytest.raises(UnsupportedAlgorithm):
        envelope.symmetric_seal(b"x", keypair.private)


def test_stored_symmetric_key_round_trip(custody, envelope):
    custody.generate_symmetric_key(256, tag="aes")
    key = custody.resolve("aes", KeyKind.SYMMETRIC)
    blob = envelope.symmetric_seal(b"persistente", key)
    assert envelope.symmetric_open(blob, custody.resolve("aes", KeyKind.SYMMETRIC)) == b"persistente"


# ==============================
#  TEST: FIRMA DIGITAL
# ==============================
def test_sign_verify(keypair, envelope):
    data = b"Wassup, world!"
    signature = envelope.sign(data, keypair.private)

    assert len(signature) == 256
    assert envelope.verify(data, signature, keypair.public) is True


def test_signature_is_deterministic(keypair, envelope):
    assert envelope.sign(b"datos", keypair.private) == envelope.sign(b"datos", keypair.private)


def test_verify_with_other_key_is_false(custody, envelope, keypair):
    other = custody.generate_and_store(2048, "pub2", "priv2")
    signature = envelope.sign(b"datos", keypair.private)

    assert envelope.verify(b"datos", signature, other.public) is False


def test_verify_tampered_data_is_false(keypair, envelope):
    signature = envelope.sign(b"datos", keypair.private)
    assert envelope.verify(b"datoz", signature, keypair.public) is False


def test_verify_tampered_signature_is_false(keypair, envelope):
    signature = bytearray(envelope.sign(b"datos", keypair.private))
    signature[-1] ^= 0x01
    assert envelope.verify(b"datos", bytes(signature), keypair.public) is False


@pytest.mark.parametrize("signature", [b"", b"\x00" * 255, b"\x00" * 512])
def test_malformed_signature(keypair, envelope, signature):
    with pytest.raises(SignatureMalformed):
        envelope.verify(b"datos", signature, keypair.public)


def test_sign_requires_private_handle(keypair, envelope):
    with pytest.raises(UnsupportedAlgorithm):
        envelope.sign(b"datos", keypair.public)
    with pytest.raises(UnsupportedAlgorithm):
        envelope.verify(b"datos", b"\x00" * 256, keypair.private)
