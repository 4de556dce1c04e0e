"""
Tests unitarios para el módulo keystore.py
"""

import pytest
import os

from custodia.core.crypto import generate_rsa_keypair, serialize_private_key, load_private_key_from_pem
from custodia.core.keystore import (
    seal_key_material,
    open_key_material,
    reseal_key_material,
    SALT_SIZE,
    IV_SIZE,
    HMAC_SIZE,
    MIN_BLOB_SIZE,
)

ITERATIONS = 1_000


# ==============================
#  FIXTURES
# ==============================
@pytest.fixture(scope="module")
def private_pem():
    """PEM de una clave RSA-2048 para testing."""
    private_key, _ = generate_rsa_keypair(key_size=2048)
    return serialize_private_key(private_key)


@pytest.fixture
def sample_password():
    """Contraseña de prueba."""
    return "MiContraseñaSegura123!"


# ==============================
#  TEST: SELLADO/APERTURA BÁSICO
# ==============================
def test_seal_open_private_key(private_pem, sample_password):
    """Test básico: sellar y abrir una clave privada serializada."""
    blob = seal_key_material(private_pem, sample_password, ITERATIONS)

    assert isinstance(blob, bytes)
    assert len(blob) > MIN_BLOB_SIZE
    assert private_pem not in blob

    opened = open_key_material(blob, sample_password, ITERATIONS)
    assert opened == private_pem
    # El PEM recuperado sigue siendo una clave válida
    assert load_private_key_from_pem(opened).key_size == 2048


def test_seal_open_symmetric_key(sample_password):
    """Test: sellar una clave AES de 32 bytes (múltiplo exacto del bloque)."""
    material = os.urandom(32)
    blob = seal_key_material(material, sample_password, ITERATIONS)
    assert open_key_material(blob, sample_password, ITERATIONS) == material


def test_open_with_wrong_password(private_pem, sample_password):
    """Test: abrir con contraseña incorrecta debe fallar."""
    blob = seal_key_material(private_pem, sample_password, ITERATIONS)

    with pytest.raises(ValueError, match="HMAC inválido"):
        open_key_material(blob, "ContraseñaIncorrecta", ITERATIONS)


@pytest.mark.parametrize("offset", [0, SALT_SIZE, SALT_SIZE + IV_SIZE, MIN_BLOB_SIZE])
def test_tampered_blob(private_pem, sample_password, offset):
    """Test: modificar salt, IV, HMAC o ciphertext debe ser detectado por HMAC."""
    blob = bytearray(seal_key_material(private_pem, sample_password, ITERATIONS))
    blob[offset] ^= 0xFF

    with pytest.raises(ValueError, match="HMAC inválido"):
        open_key_material(bytes(blob), sample_password, ITERATIONS)


def test_open_truncated_blob(private_pem, sample_password):
    """Test: un blob truncado debe fallar."""
    blob = seal_key_material(private_pem, sample_password, ITERATIONS)

    with pytest.raises(ValueError, match="corrupto"):
        open_key_material(blob[:50], sample_password, ITERATIONS)


def test_open_misaligned_blob(private_pem, sample_password):
    """Test: ciphertext que no es múltiplo del bloque AES."""
    blob = seal_key_material(private_pem, sample_password, ITERATIONS)

    with pytest.raises(ValueError, match="corrupto"):
        open_key_material(blob[:-1], sample_password, ITERATIONS)


def test_seal_rejects_empty_material(sample_password):
    with pytest.raises(ValueError):
        seal_key_material(b"", sample_password, ITERATIONS)


# ==============================
#  TEST: CAMBIO DE CONTRASEÑA
# ==============================
def test_reseal(private_pem, sample_password):
    """Test: cambiar la contraseña de un blob sellado."""
    new_password = "NuevaContraseña456!"
    old_blob = seal_key_material(private_pem, sample_password, ITERATIONS)

    new_blob = reseal_key_material(old_blob, sample_password, new_password, ITERATIONS)
    assert old_blob != new_blob

    with pytest.raises(ValueError):
        open_key_material(new_blob, sample_password, ITERATIONS)
    assert open_key_material(new_blob, new_password, ITERATIONS) == private_pem


def test_reseal_wrong_old_password(private_pem, sample_password):
    blob = seal_key_material(private_pem, sample_password, ITERATIONS)

    with pytest.raises(ValueError):
        reseal_key_material(blob, "wrongpassword", "newpassword", ITERATIONS)


# ==============================
#  TEST: CONTRASEÑAS ESPECIALES
# ==============================
@pytest.mark.parametrize("password", ["contraseña🔐中文español", "", "a" * 1000])
def test_special_passwords(private_pem, password):
    """Test: contraseñas Unicode, vacía y muy larga."""
    blob = seal_key_material(private_pem, password, ITERATIONS)
    assert open_key_material(blob, password, ITERATIONS) == private_pem


# ==============================
#  TEST: ALEATORIEDAD Y FORMATO
# ==============================
def test_sealing_is_non_deterministic(private_pem, sample_password):
    """Test: sellar dos veces produce blobs distintos (sal e IV aleatorios)."""
    blob1 = seal_key_material(private_pem, sample_password, ITERATIONS)
    blob2 = seal_key_material(private_pem, sample_password, ITERATIONS)

    assert blob1 != blob2
    assert open_key_material(blob1, sample_password, ITERATIONS) == \
        open_key_material(blob2, sample_password, ITERATIONS)


def test_blob_layout(sample_password):
    """Test: formato [salt:16][iv:16][hmac:32][ciphertext]."""
    blob = seal_key_material(b"x" * 10, sample_password, ITERATIONS)
    assert len(blob) == SALT_SIZE + IV_SIZE + HMAC_SIZE + 16


# ==============================
#  TEST: RENDIMIENTO (OPCIONAL)
# ==============================
def test_pbkdf2_default_iterations_time(sample_password):
    """Test: con las iteraciones por defecto PBKDF2 no es instantáneo."""
    import time

    start = time.time()
    seal_key_material(b"material", sample_password)
    elapsed = time.time() - start

    assert elapsed > 0.05, f"PBKDF2 muy rápido: {elapsed}s (posible problema de seguridad)"
