"""
Proveedor de primitivas: fachada delgada sobre crypto.py y sign.py.

Recibe handles opacos y el identificador de algoritmo, desenvuelve el objeto
de clave y llama a `cryptography`. No traduce errores; si se le pide un
algoritmo que no implementa lanza
`cryptography.exceptions.UnsupportedAlgorithm`, igual que el backend.
"""
from __future__ import annotations

from cryptography.exceptions import UnsupportedAlgorithm as BackendUnsupported
from cryptography.hazmat.primitives import hashes

from . import crypto, sign
from .models import Algorithm, KeyHandle


class PrimitiveProvider:
    supported_rsa_key_sizes = crypto.SUPPORTED_RSA_KEY_SIZES
    supported_aes_key_sizes = crypto.SUPPORTED_AES_KEY_SIZES

    @staticmethod
    def _require(algorithm: Algorithm, expected: Algorithm) -> None:
        if algorithm != expected:
            raise BackendUnsupported(f"Algoritmo no implementado para esta operación: {algorithm}")

    # Generación
    def generate_key_pair(self, algorithm: str, key_size: int) -> tuple:
        """Devuelve (clave_pública, clave_privada) como objetos de `cryptography`."""
        if algorithm != "RSA":
            raise BackendUnsupported(f"Tipo de clave no soportado: {algorithm}")
        private_key, public_key = crypto.generate_rsa_keypair(key_size=key_size)
        return public_key, private_key

    def generate_symmetric_key(self, bits: int) -> bytes:
        return crypto.generate_aes_key(bit_length=bits)

    # Asimétrico
    def asymmetric_encrypt(self, handle: KeyHandle, algorithm: Algorithm, data: bytes) -> bytes:
        self._require(algorithm, Algorithm.RSA_OAEP_SHA256)
        return crypto.encrypt_rsa_oaep(data, handle._key)

    def asymmetric_decrypt(self, handle: KeyHandle, algorithm: Algorithm, data: bytes) -> bytes:
        self._require(algorithm, Algorithm.RSA_OAEP_SHA256)
        return crypto.decrypt_rsa_oaep(data, handle._key)

    def sign(self, handle: KeyHandle, algorithm: Algorithm, data: bytes) -> bytes:
        self._require(algorithm, Algorithm.RSA_PKCS1V15_SHA256)
        return sign.sign_message(handle._key, data)

    def verify(self, handle: KeyHandle, algorithm: Algorithm, data: bytes, signature: bytes) -> bool:
        self._require(algorithm, Algorithm.RSA_PKCS1V15_SHA256)
        return sign.verify_signature(handle._key, data, signature)

    # Simétrico
    def symmetric_seal(self, handle: KeyHandle, algorithm: Algorithm, data: bytes,
                       associated_data: bytes | None = None) -> bytes:
        self._require(algorithm, Algorithm.AES_GCM)
        return crypto.seal_aes_gcm(data, handle._key, associated_data)

    def symmetric_open(self, handle: KeyHandle, algorithm: Algorithm, blob: bytes,
                       associated_data: bytes | None = None) -> bytes:
        self._require(algorithm, Algorithm.AES_GCM)
        return crypto.open_aes_gcm(blob, handle._key, associated_data)

    # Hash
    def hash(self, algorithm: Algorithm, data: bytes) -> bytes:
        self._require(algorithm, Algorithm.SHA256)
        h = hashes.Hash(hashes.SHA256())
        h.update(data)
        return h.finalize()
