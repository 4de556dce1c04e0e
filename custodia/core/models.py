"""
Modelo de datos del servicio de custodia.
- KeyKind: espacio de nombres de cada etiqueta (pública, privada, simétrica)
- AccessPolicy: condiciones bajo las que una clave es utilizable
- Algorithm / Operation: capacidades a las que se fija cada clave
- KeyHandle: referencia opaca a material de clave (nunca exporta bytes)
- KeyPairRecord: las dos mitades producidas por una generación
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, FrozenSet, Tuple, Union


class KeyKind(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    SYMMETRIC = "symmetric"


class AccessPolicy(str, Enum):
    ALWAYS = "always"
    # Solo con el almacén desbloqueado y solo para operaciones de clave privada
    WHEN_UNLOCKED_THIS_DEVICE_ONLY = "when_unlocked_this_device_only"


class Algorithm(str, Enum):
    RSA_OAEP_SHA256 = "RSA-OAEP-SHA256"
    RSA_PKCS1V15_SHA256 = "RSA-PKCS1v15-SHA256"
    AES_GCM = "AES-GCM"
    SHA256 = "SHA-256"


class Operation(str, Enum):
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"
    SIGN = "sign"
    VERIFY = "verify"
    SEAL = "seal"
    OPEN = "open"


Capability = Tuple[Operation, Algorithm]
KeyTag = Union[bytes, str]


DEFAULT_CAPABILITIES = {
    KeyKind.PUBLIC: frozenset({
        (Operation.ENCRYPT, Algorithm.RSA_OAEP_SHA256),
        (Operation.VERIFY, Algorithm.RSA_PKCS1V15_SHA256),
    }),
    KeyKind.PRIVATE: frozenset({
        (Operation.DECRYPT, Algorithm.RSA_OAEP_SHA256),
        (Operation.SIGN, Algorithm.RSA_PKCS1V15_SHA256),
    }),
    KeyKind.SYMMETRIC: frozenset({
        (Operation.SEAL, Algorithm.AES_GCM),
        (Operation.OPEN, Algorithm.AES_GCM),
    }),
}


def normalize_tag(tag: KeyTag) -> bytes:
    """
    Convierte una etiqueta a bytes (las cadenas se codifican en UTF-8)

    Raises:
        ValueError: Si la etiqueta está vacía o no es bytes/str
    """
    if isinstance(tag, str):
        tag = tag.encode("utf-8")
    if not isinstance(tag, (bytes, bytearray)):
        raise ValueError("La etiqueta debe ser bytes o str")
    if not tag:
        raise ValueError("La etiqueta no puede estar vacía")
    return bytes(tag)


def encode_capabilities(capabilities: FrozenSet[Capability]) -> str:
    """Serializa las capacidades como 'operación:algoritmo' separadas por comas."""
    return ",".join(sorted(f"{op.value}:{alg.value}" for op, alg in capabilities))


def decode_capabilities(text: str) -> FrozenSet[Capability]:
    caps = set()
    for item in filter(None, text.split(",")):
        op, alg = item.split(":", 1)
        caps.add((Operation(op), Algorithm(alg)))
    return frozenset(caps)


@dataclass(frozen=True, eq=False)
class KeyHandle:
    """
    Referencia opaca a una clave custodiada.

    El objeto de clave del proveedor se guarda en `_key` y solo lo usa
    PrimitiveProvider. No hay ningún método que devuelva bytes de la clave,
    `repr` no muestra el material y el handle no se puede serializar con
    pickle ni copiar: su uso queda confinado al proceso que lo resolvió.
    """
    kind: KeyKind
    tag: bytes
    key_size: int
    policy: AccessPolicy
    capabilities: FrozenSet[Capability]
    _key: Any = field(repr=False)

    def supports(self, operation: Operation, algorithm: Algorithm) -> bool:
        return (operation, algorithm) in self.capabilities

    def __reduce_ex__(self, protocol):
        raise TypeError("KeyHandle no se puede serializar ni copiar fuera del proceso")


@dataclass(frozen=True)
class KeyPairRecord:
    """Par lógico de handles. Cada mitad se almacena con su propia etiqueta."""
    public: KeyHandle
    private: KeyHandle
