"""
Sellado en reposo del material secreto del almacén SQLite
- AES-256-CBC: cifrado de claves privadas y simétricas serializadas
- PBKDF2: derivación de clave de cifrado desde la contraseña del almacén
- HMAC-SHA256: verifica la integridad
- Formato: [salt:16][iv:16][hmac:32][ciphertext:variable]
"""

import os
import hmac
import hashlib
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.backends import default_backend

from .crypto import derive_key_from_password, PBKDF2_ITERATIONS



#  CONSTANTES DE SEGURIDAD

SALT_SIZE = 16          # 128 bits para PBKDF2
IV_SIZE = 16            # 128 bits para AES-CBC
HMAC_SIZE = 32          # 256 bits para HMAC-SHA256
KEY_SIZE = 32           # 256 bits para AES
MASTER_KEY_SIZE = 64    # 256 bits AES + 256 bits HMAC
AES_BLOCK_SIZE = 16     # Tamaño de bloque AES
MIN_BLOB_SIZE = SALT_SIZE + IV_SIZE + HMAC_SIZE



#  SELLADO DE MATERIAL DE CLAVE

def seal_key_material(material: bytes, password: str,
                      iterations: int = PBKDF2_ITERATIONS) -> bytes:
    """
    Cifra material de clave serializado con AES-256-CBC usando una contraseña

    Proceso:
        1. PBKDF2 deriva dos claves de 256 bits (cifrado + autenticación)
        2. AES-256-CBC cifra el material con relleno PKCS7
        3. HMAC-SHA256 autentica (salt + iv + ciphertext)

    Argumentos:
        material: bytes de la clave (PEM de la privada o clave AES en bruto)
        password: contraseña del almacén
        iterations: iteraciones de PBKDF2

    Returns:
        bytes: salt + iv + hmac + ciphertext

    Raises:
        ValueError: Si el material o la contraseña son inválidos
    """
    if not material or not isinstance(material, (bytes, bytearray)):
        raise ValueError("El material de clave debe ser bytes no vacíos")
    if not isinstance(password, str):
        raise ValueError("La contraseña debe ser una cadena")

    salt = os.urandom(SALT_SIZE)

    # Derivar dos claves de 32 bytes: una para cifrado, otra para HMAC
    master_key = derive_key_from_password(password, salt, length=MASTER_KEY_SIZE,
                                          iterations=iterations)
    encryption_key = master_key[:KEY_SIZE]
    hmac_key = master_key[KEY_SIZE:]

    iv = os.urandom(IV_SIZE)
    cipher = Cipher(
        algorithms.AES(encryption_key),
        modes.CBC(iv),
        backend=default_backend()
    )
    encryptor = cipher.encryptor()

    # Padding PKCS7
    padding_length = AES_BLOCK_SIZE - (len(material) % AES_BLOCK_SIZE)
    padded_plaintext = bytes(material) + bytes([padding_length] * padding_length)

    ciphertext = encryptor.update(padded_plaintext) + encryptor.finalize()

    # HMAC sobre (salt + iv + ciphertext), orden fijo
    hmac_tag = hmac.new(hmac_key, salt + iv + ciphertext, hashlib.sha256).digest()

    return salt + iv + hmac_tag + ciphertext


def open_key_material(blob: bytes, password: str,
                      iterations: int = PBKDF2_ITERATIONS) -> bytes:
    """
    Descifra material sellado con seal_key_material

    importante: verifica HMAC ANTES de descifrar para prevenir ataques de padding oracle

    Raises:
        ValueError: Si el blob está corrupto, fue manipulado o la contraseña es incorrecta
    """
    if len(blob) < MIN_BLOB_SIZE:
        raise ValueError(
            f"Blob sellado corrupto: tamaño {len(blob)} bytes "
            f"(mínimo: {MIN_BLOB_SIZE} bytes)"
        )

    salt = blob[0:SALT_SIZE]
    iv = blob[SALT_SIZE:SALT_SIZE+IV_SIZE]
    stored_hmac = blob[SALT_SIZE+IV_SIZE:MIN_BLOB_SIZE]
    ciphertext = blob[MIN_BLOB_SIZE:]

    if not ciphertext or len(ciphertext) % AES_BLOCK_SIZE != 0:
        raise ValueError("Blob sellado corrupto: ciphertext vacío o no alineado")

    master_key = derive_key_from_password(password, salt, length=MASTER_KEY_SIZE,
                                          iterations=iterations)
    encryption_key = master_key[:KEY_SIZE]
    hmac_key = master_key[KEY_SIZE:]

    calculated_hmac = hmac.new(hmac_key, salt + iv + ciphertext, hashlib.sha256).digest()
    if not hmac.compare_digest(calculated_hmac, stored_hmac):
        raise ValueError("HMAC inválido: los datos han sido manipulados o la contraseña es incorrecta")

    cipher = Cipher(
        algorithms.AES(encryption_key),
        modes.CBC(iv),
        backend=default_backend()
    )
    decryptor = cipher.decryptor()
    padded_plaintext = decryptor.update(ciphertext) + decryptor.finalize()

    # Quitar padding PKCS7 con validación
    padding_length = padded_plaintext[-1]
    if padding_length > AES_BLOCK_SIZE or padding_length == 0:
        raise ValueError("Padding PKCS7 inválido")
    if not all(b == padding_length for b in padded_plaintext[-padding_length:]):
        raise ValueError("Padding PKCS7 corrupto")

    return padded_plaintext[:-padding_length]



#  UTILIDADES

def reseal_key_material(blob: bytes, old_password: str, new_password: str,
                        iterations: int = PBKDF2_ITERATIONS) -> bytes:
    """
    Cambia la contraseña de un blob sellado.

    Genera nuevos salt, IV y HMAC (no reutiliza los antiguos).

    Raises:
        ValueError: Si la contraseña antigua es incorrecta
    """
    material = open_key_material(blob, old_password, iterations)
    return seal_key_material(material, new_password, iterations)
