"""
Servicio de custodia de claves.
- Genera pares RSA y claves AES a través del proveedor
- Los registra en el almacén inyectado bajo etiquetas elegidas por el llamador
- Resuelve etiquetas a handles opacos (nunca devuelve bytes de clave privada)

Toda excepción del proveedor o del almacén se traduce aquí a la taxonomía de
errors.py. El único fallo que se recupera internamente es la escritura
parcial de un par: si la segunda mitad no se puede guardar, la primera se
borra para no dejar huérfanos.
"""

from __future__ import annotations

from typing import List, Optional

from cryptography.exceptions import UnsupportedAlgorithm as BackendUnsupported

from . import crypto
from .config import CustodyConfig
from .errors import (
    AccessDenied,
    GenerationFailed,
    NotFound,
    ProviderUnavailable,
    StorageConflict,
    StorageFailed,
    StoreConflictError,
    StoreError,
    StoreLockedError,
    StoreNotFoundError,
)
from .logger import get_logger
from .models import (
    DEFAULT_CAPABILITIES,
    AccessPolicy,
    KeyHandle,
    KeyKind,
    KeyPairRecord,
    KeyTag,
    normalize_tag,
)
from .provider import PrimitiveProvider
from .store import KeyStore, make_handle

log = get_logger("custodia.custody")

RESOLVE_ORDER = (KeyKind.PUBLIC, KeyKind.PRIVATE, KeyKind.SYMMETRIC)


def _translate_store_error(e: StoreError, action: str):
    """Mapea un error del almacén a la taxonomía pública."""
    if isinstance(e, StoreConflictError):
        return StorageConflict(f"{action}: la etiqueta ya existe")
    if isinstance(e, StoreNotFoundError):
        return NotFound(f"{action}: etiqueta no encontrada")
    if isinstance(e, StoreLockedError):
        return AccessDenied(f"{action}: la política de acceso rechaza la operación")
    return StorageFailed(f"{action}: fallo del almacén")


class KeyCustody:
    def __init__(self, store: KeyStore, provider: Optional[PrimitiveProvider] = None,
                 config: Optional[CustodyConfig] = None):
        self.store = store
        self.provider = provider or PrimitiveProvider()
        self.config = config or CustodyConfig()

    #  GENERACIÓN

    def generate_and_store(self, key_size: int, public_tag: KeyTag,
                           private_tag: KeyTag) -> KeyPairRecord:
        """
        Genera un par RSA y guarda cada mitad bajo su etiqueta

        Argumentos:
            key_size: tamaño en bits (>= 2048 y soportado por el proveedor)
            public_tag: etiqueta de la mitad pública
            private_tag: etiqueta de la mitad privada

        Returns:
            KeyPairRecord con los dos handles

        Raises:
            GenerationFailed: tamaño no soportado o fallo del proveedor
            StorageConflict: alguna etiqueta ya existe (el almacén queda intacto)
            AccessDenied: el almacén está bloqueado
            StorageFailed: fallo de persistencia (la mitad ya escrita se deshace)
        """
        public_tag = normalize_tag(public_tag)
        private_tag = normalize_tag(private_tag)

        if (not isinstance(key_size, int) or key_size < crypto.MIN_RSA_KEY_SIZE
                or key_size not in self.provider.supported_rsa_key_sizes):
            raise GenerationFailed(f"Tamaño de clave RSA no soportado: {key_size}")

        try:
            public_key, private_key = self.provider.generate_key_pair("RSA", key_size)
        except BackendUnsupported as e:
            raise ProviderUnavailable("El proveedor no soporta RSA") from e
        except (ValueError, TypeError) as e:
            raise GenerationFailed("El proveedor no pudo generar el par de claves") from e

        public_caps = DEFAULT_CAPABILITIES[KeyKind.PUBLIC]
        private_caps = DEFAULT_CAPABILITIES[KeyKind.PRIVATE]

        try:
            self.store.put(KeyKind.PUBLIC, public_tag, public_key,
                           self.config.public_policy, public_caps)
        except StoreError as e:
            raise _translate_store_error(e, "Guardar clave pública") from e

        try:
            self.store.put(KeyKind.PRIVATE, private_tag, private_key,
                           self.config.private_policy, private_caps)
        except StoreError as e:
            self._rollback(KeyKind.PUBLIC, public_tag)
            raise _translate_store_error(e, "Guardar clave privada") from e

        self._audit("GENERATE", KeyKind.PUBLIC, public_tag)
        self._audit("GENERATE", KeyKind.PRIVATE, private_tag)
        log.info("Par RSA-%d generado: public=%r private=%r", key_size, public_tag, private_tag)

        return KeyPairRecord(
            public=make_handle(KeyKind.PUBLIC, public_tag, public_key,
                               self.config.public_policy, public_caps),
            private=make_handle(KeyKind.PRIVATE, private_tag, private_key,
                                self.config.private_policy, private_caps),
        )

    def _audit(self, event_type: str, kind: KeyKind, tag: bytes) -> None:
        """Registra el evento en el almacén (no interrumpe el flujo principal)."""
        try:
            self.store.log_event(event_type, kind, tag)
        except StoreError as e:
            log.warning("No se pudo auditar %s %s %r: %s", event_type, kind.value, tag, e)

    def _rollback(self, kind: KeyKind, tag: bytes) -> None:
        try:
            self.store.delete(kind, tag)
            log.warning("Escritura parcial deshecha: %s %r", kind.value, tag)
        except StoreError as e:
            log.error("No se pudo deshacer la escritura de %s %r: %s", kind.value, tag, e)
            raise StorageFailed("Escritura parcial sin deshacer: clave huérfana en el almacén") from e

    def generate_symmetric_key(self, bits: Optional[int] = None,
                               tag: Optional[KeyTag] = None) -> KeyHandle:
        """
        Genera una clave AES nueva.

        Sin etiqueta devuelve un handle efímero que no se persiste; con
        etiqueta la guarda en el espacio de nombres simétrico.
        """
        bits = bits or self.config.symmetric_bits
        if bits not in self.provider.supported_aes_key_sizes:
            raise GenerationFailed(f"Tamaño de clave AES no soportado: {bits}")
        try:
            key = self.provider.generate_symmetric_key(bits)
        except BackendUnsupported as e:
            raise ProviderUnavailable("El proveedor no soporta AES-GCM") from e

        caps = DEFAULT_CAPABILITIES[KeyKind.SYMMETRIC]
        if tag is None:
            return make_handle(KeyKind.SYMMETRIC, b"", key, AccessPolicy.ALWAYS, caps)

        tag = normalize_tag(tag)
        try:
            self.store.put(KeyKind.SYMMETRIC, tag, key, self.config.private_policy, caps)
        except StoreError as e:
            raise _translate_store_error(e, "Guardar clave simétrica") from e
        self._audit("GENERATE", KeyKind.SYMMETRIC, tag)
        log.info("Clave AES-%d generada: tag=%r", bits, tag)
        return make_handle(KeyKind.SYMMETRIC, tag, key, self.config.private_policy, caps)

    #  RESOLUCIÓN

    def resolve(self, tag: KeyTag, kind: Optional[KeyKind] = None) -> KeyHandle:
        """
        Resuelve una etiqueta a un handle.

        Sin `kind` se busca en el orden pública, privada, simétrica y se usa
        el primer espacio de nombres que contiene la etiqueta.

        Raises:
            NotFound: ninguna entrada coincide
            AccessDenied: la política de acceso rechaza el contexto actual
            StorageFailed: el almacén no pudo leer o abrir la entrada
        """
        tag = normalize_tag(tag)
        kinds = (kind,) if kind is not None else RESOLVE_ORDER
        for k in kinds:
            try:
                return self.store.get(k, tag)
            except StoreNotFoundError:
                continue
            except StoreError as e:
                raise _translate_store_error(e, "Resolver etiqueta") from e
        raise NotFound(f"No existe ninguna clave con la etiqueta {tag!r}")

    def delete(self, tag: KeyTag, kind: KeyKind) -> None:
        tag = normalize_tag(tag)
        try:
            self.store.delete(kind, tag)
        except StoreError as e:
            raise _translate_store_error(e, "Borrar clave") from e
        self._audit("DELETE", kind, tag)
        log.info("Clave borrada: %s %r", kind.value, tag)

    def list_tags(self, kind: KeyKind) -> List[bytes]:
        try:
            return self.store.tags(kind)
        except StoreError as e:
            raise _translate_store_error(e, "Listar etiquetas") from e
