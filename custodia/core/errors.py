"""
Taxonomía de errores del servicio de custodia.

Todos los errores del proveedor criptográfico y del almacén de claves se
traducen a estas clases en la frontera de cada servicio. El llamador nunca
recibe una excepción de `cryptography` ni de `sqlite3` directamente.

Jerarquía:
    CustodiaError
    ├── KeyCustodyError: GenerationFailed, StorageConflict, StorageFailed,
    │                    NotFound, AccessDenied
    ├── CryptoError:     UnsupportedAlgorithm, DecryptionFailed,
    │                    AuthenticationFailed, SignatureMalformed,
    │                    PlaintextTooLarge
    └── ProviderUnavailable (pertenece a ambas familias)
"""


class CustodiaError(Exception):
    """Error base. `code` es estable y apto para mostrar al usuario."""

    code = "CUSTODIA_ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


#  CUSTODIA DE CLAVES

class KeyCustodyError(CustodiaError):
    code = "KEY_CUSTODY_ERROR"


class GenerationFailed(KeyCustodyError):
    code = "GENERATION_FAILED"


class StorageConflict(KeyCustodyError):
    code = "STORAGE_CONFLICT"


class StorageFailed(KeyCustodyError):
    code = "STORAGE_FAILED"


class NotFound(KeyCustodyError):
    code = "NOT_FOUND"


class AccessDenied(KeyCustodyError):
    code = "ACCESS_DENIED"


#  OPERACIONES CRIPTOGRÁFICAS

class CryptoError(CustodiaError):
    code = "CRYPTO_ERROR"


class UnsupportedAlgorithm(CryptoError):
    code = "UNSUPPORTED_ALGORITHM"


class DecryptionFailed(CryptoError):
    code = "DECRYPTION_FAILED"


class AuthenticationFailed(CryptoError):
    code = "AUTHENTICATION_FAILED"


class SignatureMalformed(CryptoError):
    code = "SIGNATURE_MALFORMED"


class PlaintextTooLarge(CryptoError):
    code = "PLAINTEXT_TOO_LARGE"


class ProviderUnavailable(KeyCustodyError, CryptoError):
    """El backend de `cryptography` no ofrece la primitiva solicitada."""

    code = "PROVIDER_UNAVAILABLE"


#  ERRORES DEL ALMACÉN (internos, se traducen en custody.py)

class StoreError(Exception):
    """Fallo genérico del almacén de claves."""


class StoreConflictError(StoreError):
    """Ya existe una entrada para (kind, tag)."""


class StoreNotFoundError(StoreError):
    """No existe ninguna entrada para (kind, tag)."""


class StoreLockedError(StoreError):
    """La política de acceso rechaza la operación: el almacén está bloqueado."""


class StoreWriteError(StoreError):
    """La escritura falló después de comprobar la unicidad."""
