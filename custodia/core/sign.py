"""
Módulo de firma digital.
- RSA PKCS#1 v1.5: relleno determinista (misma entrada, misma firma)
- SHA-256: función hash criptográfica
- Verificación de integridad y autenticidad
"""

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.exceptions import InvalidSignature
from typing import Optional



#  FIRMA DIGITAL (RSA PKCS#1 v1.5)

def sign_message(private_key: rsa.RSAPrivateKey, message: bytes) -> bytes:
    """
    Firma un mensaje con RSA PKCS#1 v1.5 y SHA-256

    Argumentos:
        private_key: Clave privada RSA del firmante
        message: Datos a firmar (en bytes)

    Returns:
        Firma digital (bytes)

    Notas técnicas:
        - Algoritmo: RSASSA-PKCS1-v1_5 con SHA-256
        - Determinista: no hay sal aleatoria
        - Tamaño de firma: igual al tamaño de la clave RSA (ej: 256 bytes para RSA-2048)
    """
    return private_key.sign(message, padding.PKCS1v15(), hashes.SHA256())


def verify_signature(public_key: rsa.RSAPublicKey, message: bytes,
                     signature: bytes) -> bool:
    """
    Verifica una firma digital RSA PKCS#1 v1.5

    Argumentos:
        public_key: Clave pública RSA del firmante
        message: Datos originales que fueron firmados
        signature: Firma digital a verificar

    Returns:
        True si la firma es válida, False si no corresponde a los datos o a la clave

    Notas:
        - Solo InvalidSignature se convierte en False; cualquier otro error
          del backend se propaga al llamador
    """
    try:
        public_key.verify(signature, message, padding.PKCS1v15(), hashes.SHA256())
        return True
    except InvalidSignature:
        return False



#  UTILIDADES

def format_signature_for_display(signature: bytes, max_length: int = 32) -> str:
    """
    Formatea una firma para mostrarla de forma legible

    Argumentos:
        signature: Firma digital
        max_length: Número máximo de bytes a mostrar (trunca si es mayor)

    Returns:
        Representación hexadecimal truncada
    """
    sig_hex = signature.hex()
    if len(sig_hex) > max_length * 2:
        return f"{sig_hex[:max_length*2]}... (total: {len(signature)} bytes)"
    return sig_hex



#  FUNCIONES DE VALIDACIÓN

def validate_signature_format(signature: bytes, key_size: int = 2048) -> tuple[bool, Optional[str]]:
    """
    Valida que una firma tenga el formato correcto antes de verificarla

    Argumentos:
        signature: Firma digital a validar
        key_size: Tamaño esperado de la clave RSA en bits

    Returns:
        Tupla (es_válida, mensaje_error)
    """
    expected_size = key_size // 8

    if not signature:
        return False, "La firma está vacía"

    if not isinstance(signature, (bytes, bytearray)):
        return False, "La firma debe ser de tipo bytes"

    if len(signature) != expected_size:
        return False, f"Tamaño incorrecto: esperado {expected_size} bytes, recibido {len(signature)} bytes"

    return True, None
