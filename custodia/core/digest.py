"""
Servicio de resumen: SHA-256 de cualquier secuencia de bytes.

Funciones puras, sin estado. La representación hexadecimal es en minúsculas,
dos caracteres por byte con relleno de ceros, sin separadores ni prefijo.
"""

from __future__ import annotations

from typing import Optional

from .models import Algorithm
from .provider import PrimitiveProvider

DIGEST_SIZE = 32


class DigestService:
    def __init__(self, provider: Optional[PrimitiveProvider] = None):
        self.provider = provider or PrimitiveProvider()

    def digest(self, data: bytes) -> bytes:
        return self.provider.hash(Algorithm.SHA256, bytes(data))

    def digest_to_hex(self, data: bytes) -> str:
        return "".join(f"{b:02x}" for b in self.digest(data))


_default = DigestService()


def digest(data: bytes) -> bytes:
    """Resumen SHA-256 (32 bytes)."""
    return _default.digest(data)


def digest_to_hex(data: bytes) -> str:
    """Resumen SHA-256 en hexadecimal (64 caracteres)."""
    return _default.digest_to_hex(data)
