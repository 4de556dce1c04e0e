"""
Servicio de cifrado de sobres sobre handles ya resueltos.
- RSA-OAEP/SHA-256: asymmetric_encrypt / asymmetric_decrypt
- AES-GCM: symmetric_seal / symmetric_open (nonce + ciphertext + tag)
- RSA PKCS#1 v1.5/SHA-256: sign / verify

Este servicio no conoce el almacén: solo recibe KeyHandle. Antes de llamar
al proveedor comprueba que el handle está fijado a la operación y al
algoritmo; si no, lanza UnsupportedAlgorithm sin intentar la llamada.

Los fallos de descifrado y de autenticación usan un único mensaje fijo cada
uno, de modo que "clave incorrecta", "datos corruptos" y "longitud
inválida" no se pueden distinguir desde fuera.
"""

from __future__ import annotations

from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.exceptions import UnsupportedAlgorithm as BackendUnsupported

from . import crypto, sign
from .errors import (
    AuthenticationFailed,
    DecryptionFailed,
    PlaintextTooLarge,
    ProviderUnavailable,
    SignatureMalformed,
    UnsupportedAlgorithm,
)
from .logger import get_logger
from .models import Algorithm, KeyHandle, Operation
from .provider import PrimitiveProvider

log = get_logger("custodia.envelope")

DECRYPTION_FAILED_MESSAGE = "No se pudo descifrar el mensaje"
AUTHENTICATION_FAILED_MESSAGE = "No se pudo autenticar el blob"


def _bind_algorithm(associated_data: Optional[bytes]) -> bytes:
    # El identificador de algoritmo forma parte de los datos asociados de GCM
    return Algorithm.AES_GCM.value.encode("ascii") + b"\x00" + (associated_data or b"")


class EnvelopeCrypto:
    def __init__(self, provider: Optional[PrimitiveProvider] = None):
        self.provider = provider or PrimitiveProvider()

    @staticmethod
    def _require(handle: KeyHandle, operation: Operation, algorithm: Algorithm) -> None:
        if not isinstance(handle, KeyHandle):
            raise TypeError("Se esperaba un KeyHandle resuelto")
        if not handle.supports(operation, algorithm):
            raise UnsupportedAlgorithm(
                f"La clave {handle.kind.value} no admite {operation.value} con {algorithm.value}"
            )

    #  ASIMÉTRICO (RSA-OAEP)

    def asymmetric_encrypt(self, plaintext: bytes, public_key: KeyHandle) -> bytes:
        """
        Cifra con la mitad pública de un par

        Raises:
            UnsupportedAlgorithm: el handle no admite cifrado RSA-OAEP
            PlaintextTooLarge: el texto supera k - 2*hLen - 2 bytes
            ProviderUnavailable: el backend no ofrece RSA-OAEP/SHA-256
        """
        self._require(public_key, Operation.ENCRYPT, Algorithm.RSA_OAEP_SHA256)
        limit = crypto.max_oaep_plaintext(public_key.key_size)
        if len(plaintext) > limit:
            raise PlaintextTooLarge(
                f"RSA-{public_key.key_size} con OAEP/SHA-256 admite como máximo {limit} bytes"
            )
        try:
            return self.provider.asymmetric_encrypt(public_key, Algorithm.RSA_OAEP_SHA256, bytes(plaintext))
        except BackendUnsupported as e:
            raise ProviderUnavailable("RSA-OAEP no disponible en el proveedor") from e

    def asymmetric_decrypt(self, ciphertext: bytes, private_key: KeyHandle) -> bytes:
        """
        Descifra con la mitad privada.

        Raises:
            UnsupportedAlgorithm: el handle no admite descifrado RSA-OAEP
            DecryptionFailed: cualquier otro fallo (mismo mensaje siempre)
        """
        self._require(private_key, Operation.DECRYPT, Algorithm.RSA_OAEP_SHA256)
        if len(ciphertext) != private_key.key_size // 8:
            raise DecryptionFailed(DECRYPTION_FAILED_MESSAGE)
        try:
            return self.provider.asymmetric_decrypt(private_key, Algorithm.RSA_OAEP_SHA256, bytes(ciphertext))
        except BackendUnsupported as e:
            raise ProviderUnavailable("RSA-OAEP no disponible en el proveedor") from e
        except ValueError:
            raise DecryptionFailed(DECRYPTION_FAILED_MESSAGE) from None

    def encrypt_text(self, text: str, public_key: KeyHandle) -> bytes:
        return self.asymmetric_encrypt(text.encode("utf-8"), public_key)

    def decrypt_text(self, ciphertext: bytes, private_key: KeyHandle) -> str:
        data = self.asymmetric_decrypt(ciphertext, private_key)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            raise DecryptionFailed(DECRYPTION_FAILED_MESSAGE) from None

    #  SIMÉTRICO (AES-GCM)

    def symmetric_seal(self, plaintext: bytes, key: KeyHandle,
                       associated_data: Optional[bytes] = None) -> bytes:
        """Devuelve nonce (12) + ciphertext + tag (16)."""
        self._require(key, Operation.SEAL, Algorithm.AES_GCM)
        try:
            return self.provider.symmetric_seal(key, Algorithm.AES_GCM, bytes(plaintext),
                                                _bind_algorithm(associated_data))
        except BackendUnsupported as e:
            raise ProviderUnavailable("AES-GCM no disponible en el proveedor") from e

    def symmetric_open(self, blob: bytes, key: KeyHandle,
                       associated_data: Optional[bytes] = None) -> bytes:
        """
        Abre un blob de symmetric_seal.

        Raises:
            AuthenticationFailed: tag inválido, clave distinta o blob malformado
        """
        self._require(key, Operation.OPEN, Algorithm.AES_GCM)
        try:
            return self.provider.symmetric_open(key, Algorithm.AES_GCM, bytes(blob),
                                                _bind_algorithm(associated_data))
        except BackendUnsupported as e:
            raise ProviderUnavailable("AES-GCM no disponible en el proveedor") from e
        except (InvalidTag, ValueError):
            raise AuthenticationFailed(AUTHENTICATION_FAILED_MESSAGE) from None

    #  FIRMA (RSA PKCS#1 v1.5)

    def sign(self, data: bytes, private_key: KeyHandle) -> bytes:
        self._require(private_key, Operation.SIGN, Algorithm.RSA_PKCS1V15_SHA256)
        try:
            return self.provider.sign(private_key, Algorithm.RSA_PKCS1V15_SHA256, bytes(data))
        except BackendUnsupported as e:
            raise ProviderUnavailable("RSA PKCS#1 v1.5 no disponible en el proveedor") from e

    def verify(self, data: bytes, signature: bytes, public_key: KeyHandle) -> bool:
        """
        Verifica una firma

        Returns:
            True si la firma corresponde a los datos y a la clave, False si no

        Raises:
            SignatureMalformed: la longitud de la firma es imposible para la clave
        """
        self._require(public_key, Operation.VERIFY, Algorithm.RSA_PKCS1V15_SHA256)
        ok, reason = sign.validate_signature_format(signature, public_key.key_size)
        if not ok:
            raise SignatureMalformed(reason)
        try:
            valid = self.provider.verify(public_key, Algorithm.RSA_PKCS1V15_SHA256,
                                         bytes(data), bytes(signature))
        except BackendUnsupported as e:
            raise ProviderUnavailable("RSA PKCS#1 v1.5 no disponible en el proveedor") from e
        if not valid:
            log.debug("Firma no válida para la clave %r", public_key.tag)
        return valid
