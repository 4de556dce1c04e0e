"""
Primitivas de cifrado simétrico y asimétrico sobre `cryptography`.
- AES-GCM: sellado autenticado (nonce + ciphertext + tag concatenados)
- RSA-OAEP: cifrado asimétrico con MGF1/SHA-256
- PBKDF2: derivación de claves a partir de la contraseña del almacén

Estas funciones no traducen errores: las excepciones de `cryptography`
(InvalidTag, ValueError, UnsupportedAlgorithm) llegan tal cual al servicio
que las invoca, que es quien las mapea a la taxonomía de errors.py.
"""
from __future__ import annotations
import os
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.asymmetric import rsa, padding
from cryptography.hazmat.backends import default_backend


#  CONSTANTES

PUBLIC_EXPONENT = 65537
SUPPORTED_RSA_KEY_SIZES = (2048, 3072, 4096)
MIN_RSA_KEY_SIZE = 2048
SUPPORTED_AES_KEY_SIZES = (128, 192, 256)
PBKDF2_ITERATIONS = 600_000
NONCE_SIZE = 12         # 96 bits, recomendado para GCM
TAG_SIZE = 16           # 128 bits
OAEP_HASH_SIZE = 32     # SHA-256


#  DERIVACIÓN DE CLAVES (PBKDF2)
def derive_key_from_password(password: str, salt: bytes, length: int = 32,
                             iterations: int = PBKDF2_ITERATIONS) -> bytes:
    """
    Deriva una clave criptográfica a partir de una contraseña usando PBKDF2-HMAC-SHA256.

    Argumentos:
        password: Contraseña en texto plano
        salt: Sal criptográfica (debe ser única por clave)
        length: Longitud de la clave en bytes (32 = 256 bits por defecto)
        iterations: Número de iteraciones de PBKDF2

    Returns:
        Clave derivada de 'length' bytes
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=length,
        salt=salt,
        iterations=iterations,
        backend=default_backend()
    )
    return kdf.derive(password.encode('utf-8'))


#  CIFRADO SIMÉTRICO (AES-GCM)
def generate_aes_key(bit_length: int = 256) -> bytes:
    """Genera una clave AES aleatoria de 128, 192 o 256 bits."""
    if bit_length not in SUPPORTED_AES_KEY_SIZES:
        raise ValueError(f"Tamaño de clave AES no soportado: {bit_length}")
    return AESGCM.generate_key(bit_length=bit_length)


def seal_aes_gcm(plaintext: bytes, key: bytes, associated_data: bytes | None = None) -> bytes:
    """
    Cifra con AES-GCM y devuelve un blob autocontenido.

    Returns:
        nonce (12 bytes) + ciphertext + tag (16 bytes)
    """
    nonce = os.urandom(NONCE_SIZE)
    ciphertext_with_tag = AESGCM(key).encrypt(nonce, plaintext, associated_data)
    return nonce + ciphertext_with_tag


def open_aes_gcm(blob: bytes, key: bytes, associated_data: bytes | None = None) -> bytes:
    """
    Descifra un blob producido por seal_aes_gcm.

    Raises:
        ValueError: Si el blob es más corto que nonce + tag
        cryptography.exceptions.InvalidTag: Si la autenticación falla
    """
    if len(blob) < NONCE_SIZE + TAG_SIZE:
        raise ValueError("Blob AES-GCM demasiado corto")
    nonce = blob[:NONCE_SIZE]
    ciphertext_with_tag = blob[NONCE_SIZE:]
    return AESGCM(key).decrypt(nonce, ciphertext_with_tag, associated_data)


#  CIFRADO ASIMÉTRICO (RSA-OAEP)
def generate_rsa_keypair(key_size: int = 2048) -> tuple:
    """
    Genera un par de claves RSA (privada y pública).
    """
    private_key = rsa.generate_private_key(
        public_exponent=PUBLIC_EXPONENT,
        key_size=key_size,
        backend=default_backend()
    )
    public_key = private_key.public_key()
    return private_key, public_key


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None
    )


def max_oaep_plaintext(key_size: int) -> int:
    """Longitud máxima de texto en claro para RSA-OAEP/SHA-256: k - 2*hLen - 2."""
    return key_size // 8 - 2 * OAEP_HASH_SIZE - 2


def encrypt_rsa_oaep(plaintext: bytes, public_key) -> bytes:
    """
    Cifra datos con RSA-OAEP (MGF1 y hash SHA-256).
    """
    return public_key.encrypt(plaintext, _oaep())


def decrypt_rsa_oaep(ciphertext: bytes, private_key) -> bytes:
    """
    Descifra datos con RSA-OAEP.

    Raises:
        ValueError: Si el descifrado falla (clave incorrecta o datos corruptos)
    """
    return private_key.decrypt(ciphertext, _oaep())


#  SERIALIZACIÓN DE CLAVES
def serialize_private_key(private_key) -> bytes:
    """
    Convierte la clave privada RSA a PEM sin cifrar.

    Solo la usa el almacén SQLite, que sella el resultado antes de escribirlo.
    """
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


def serialize_public_key(public_key) -> bytes:
    """
    Convierte la clave pública RSA a formato PEM.
    """
    pem = public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    )
    return pem


def load_private_key_from_pem(pem_data: bytes):
    """
    Carga una clave privada desde formato PEM.
    """
    return serialization.load_pem_private_key(
        pem_data,
        password=None,
        backend=default_backend()
    )


def load_public_key_from_pem(pem_data: bytes):
    """
    Carga una clave pública desde formato PEM.
    """
    public_key = serialization.load_pem_public_key(
        pem_data,
        backend=default_backend()
    )
    return public_key
