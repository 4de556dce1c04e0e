"""
Almacenes de claves (sustituyen al llavero del sistema).

- KeyStore: interfaz inyectable que usa KeyCustody
- InMemoryKeyStore: almacén en memoria, útil para tests y procesos efímeros
- SQLiteKeyStore: almacén persistente; el material secreto se sella en
  reposo con la contraseña del almacén (ver keystore.py)

Invariantes comunes:
    - (kind, tag) es único; `put` es un insert atómico que nunca sobrescribe
    - las entradas con política WHEN_UNLOCKED_THIS_DEVICE_ONLY solo se
      pueden leer, escribir o borrar con el almacén desbloqueado
    - `get` devuelve siempre un KeyHandle, nunca bytes de clave
"""

from __future__ import annotations

import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, FrozenSet, List, Optional, Tuple

from . import crypto, keystore
from .errors import (
    StoreConflictError,
    StoreError,
    StoreLockedError,
    StoreNotFoundError,
    StoreWriteError,
)
from .logger import get_logger
from .models import (
    AccessPolicy,
    Capability,
    KeyHandle,
    KeyKind,
    decode_capabilities,
    encode_capabilities,
)

log = get_logger("custodia.store")

UNLOCK_CHECK_VALUE = b"custodia-unlock-check"


def key_size_of(material: Any) -> int:
    """Tamaño en bits: RSA expone key_size, las claves AES son bytes."""
    if isinstance(material, (bytes, bytearray)):
        return len(material) * 8
    return material.key_size


def make_handle(kind: KeyKind, tag: bytes, material: Any, policy: AccessPolicy,
                capabilities: FrozenSet[Capability]) -> KeyHandle:
    return KeyHandle(
        kind=kind,
        tag=tag,
        key_size=key_size_of(material),
        policy=policy,
        capabilities=capabilities,
        _key=material,
    )


class KeyStore(ABC):
    """Interfaz del almacén de claves consumida por KeyCustody."""

    @abstractmethod
    def put(self, kind: KeyKind, tag: bytes, material: Any, policy: AccessPolicy,
            capabilities: FrozenSet[Capability]) -> None:
        """
        Inserta una entrada nueva de forma atómica.

        Raises:
            StoreConflictError: Si (kind, tag) ya existe
            StoreLockedError: Si la política exige desbloqueo y el almacén está bloqueado
            StoreWriteError: Si la escritura falla
        """

    @abstractmethod
    def get(self, kind: KeyKind, tag: bytes) -> KeyHandle:
        """
        Raises:
            StoreNotFoundError: Si no existe la entrada
            StoreLockedError: Si la política de la entrada rechaza el contexto actual
        """

    @abstractmethod
    def delete(self, kind: KeyKind, tag: bytes) -> None:
        """
        Raises:
            StoreNotFoundError: Si no existe la entrada
            StoreLockedError: Si la política de la entrada rechaza el contexto actual
        """

    @abstractmethod
    def tags(self, kind: KeyKind) -> List[bytes]:
        ...

    @property
    @abstractmethod
    def is_locked(self) -> bool:
        ...

    @abstractmethod
    def lock(self) -> None:
        ...

    @abstractmethod
    def unlock(self, passphrase: Optional[str] = None) -> None:
        ...

    # auditoría (solo tipo de clave y etiqueta, nunca material)
    @abstractmethod
    def log_event(self, event_type: str, kind: KeyKind, tag: bytes) -> None:
        ...

    @abstractmethod
    def events(self) -> List[Tuple[str, str, bytes]]:
        ...

    def _check_policy(self, policy: AccessPolicy) -> None:
        if policy == AccessPolicy.WHEN_UNLOCKED_THIS_DEVICE_ONLY and self.is_locked:
            raise StoreLockedError("El almacén está bloqueado")


@dataclass
class _Entry:
    material: Any
    policy: AccessPolicy
    capabilities: FrozenSet[Capability]


class InMemoryKeyStore(KeyStore):
    def __init__(self, locked: bool = False):
        self._entries = {}
        self._audit = []
        self._locked = locked
        self._mutex = threading.Lock()

    def put(self, kind, tag, material, policy, capabilities):
        self._check_policy(policy)
        with self._mutex:
            if (kind, tag) in self._entries:
                raise StoreConflictError(f"Ya existe una clave {kind.value} con la etiqueta {tag!r}")
            self._entries[(kind, tag)] = _Entry(material, policy, capabilities)

    def get(self, kind, tag):
        with self._mutex:
            entry = self._entries.get((kind, tag))
        if entry is None:
            raise StoreNotFoundError(f"No existe clave {kind.value} con la etiqueta {tag!r}")
        self._check_policy(entry.policy)
        return make_handle(kind, tag, entry.material, entry.policy, entry.capabilities)

    def delete(self, kind, tag):
        with self._mutex:
            entry = self._entries.get((kind, tag))
            if entry is None:
                raise StoreNotFoundError(f"No existe clave {kind.value} con la etiqueta {tag!r}")
            self._check_policy(entry.policy)
            del self._entries[(kind, tag)]

    def tags(self, kind):
        with self._mutex:
            return sorted(t for k, t in self._entries if k == kind)

    @property
    def is_locked(self):
        return self._locked

    def lock(self):
        self._locked = True

    def unlock(self, passphrase=None):
        self._locked = False

    def log_event(self, event_type, kind, tag):
        self._audit.append((event_type, kind.value, tag))

    def events(self):
        return list(self._audit)


class SQLiteKeyStore(KeyStore):
    """
    Almacén persistente en SQLite.

    Claves públicas en PEM; privadas (PKCS8) y simétricas selladas con
    keystore.seal_key_material. El almacén arranca bloqueado salvo que se
    pase la contraseña; `unlock` verifica la contraseña contra un valor de
    comprobación sellado que se crea en el primer desbloqueo.
    """

    def __init__(self, path: str, passphrase: Optional[str] = None,
                 iterations: int = crypto.PBKDF2_ITERATIONS):
        self.path = str(path)
        self.iterations = iterations
        self._passphrase = None
        self._init()
        if passphrase is not None:
            self.unlock(passphrase)

    @contextmanager
    def _connection(self):
        conn = sqlite3.connect(self.path)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init(self) -> None:
        with self._connection() as conn:
            conn.execute("""CREATE TABLE IF NOT EXISTS keys(
                kind TEXT NOT NULL,
                tag BLOB NOT NULL,
                material BLOB NOT NULL,
                policy TEXT NOT NULL,
                capabilities TEXT NOT NULL,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (kind, tag)
            )""")
            conn.execute("""CREATE TABLE IF NOT EXISTS meta(
                name TEXT PRIMARY KEY,
                value BLOB NOT NULL
            )""")
            conn.execute("""CREATE TABLE IF NOT EXISTS audit(
                ts TEXT DEFAULT CURRENT_TIMESTAMP,
                event_type TEXT NOT NULL,
                kind TEXT NOT NULL,
                tag BLOB NOT NULL
            )""")

    # Bloqueo

    @property
    def is_locked(self):
        return self._passphrase is None

    def lock(self):
        self._passphrase = None

    def unlock(self, passphrase=None):
        if passphrase is None:
            raise StoreLockedError("SQLiteKeyStore requiere contraseña para desbloquear")
        with self._connection() as conn:
            row = conn.execute("SELECT value FROM meta WHERE name='unlock_check'").fetchone()
            if row is None:
                check = keystore.seal_key_material(UNLOCK_CHECK_VALUE, passphrase, self.iterations)
                conn.execute("INSERT INTO meta(name, value) VALUES ('unlock_check', ?)", (check,))
                log.info("Valor de comprobación creado en %s", self.path)
            else:
                try:
                    value = keystore.open_key_material(row[0], passphrase, self.iterations)
                except ValueError as e:
                    raise StoreLockedError("Contraseña del almacén incorrecta") from e
                if value != UNLOCK_CHECK_VALUE:
                    raise StoreLockedError("Contraseña del almacén incorrecta")
        self._passphrase = passphrase

    def change_passphrase(self, old_passphrase: str, new_passphrase: str) -> None:
        """Re-sella todo el material secreto y el valor de comprobación."""
        self.unlock(old_passphrase)
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT kind, tag, material FROM keys WHERE kind != ?", (KeyKind.PUBLIC.value,)
            ).fetchall()
            for kind, tag, blob in rows:
                new_blob = keystore.reseal_key_material(blob, old_passphrase, new_passphrase,
                                                        self.iterations)
                conn.execute("UPDATE keys SET material=? WHERE kind=? AND tag=?",
                             (new_blob, kind, tag))
            check = conn.execute("SELECT value FROM meta WHERE name='unlock_check'").fetchone()[0]
            conn.execute("UPDATE meta SET value=? WHERE name='unlock_check'",
                         (keystore.reseal_key_material(check, old_passphrase, new_passphrase,
                                                       self.iterations),))
        self._passphrase = new_passphrase

    # Serialización

    def _serialize(self, kind: KeyKind, material: Any) -> bytes:
        if kind == KeyKind.PUBLIC:
            return crypto.serialize_public_key(material)
        if self.is_locked:
            raise StoreLockedError("El almacén está bloqueado: no se puede sellar material secreto")
        if kind == KeyKind.PRIVATE:
            raw = crypto.serialize_private_key(material)
        else:
            raw = bytes(material)
        return keystore.seal_key_material(raw, self._passphrase, self.iterations)

    def _deserialize(self, kind: KeyKind, blob: bytes) -> Any:
        if kind == KeyKind.PUBLIC:
            try:
                return crypto.load_public_key_from_pem(blob)
            except (ValueError, TypeError) as e:
                raise StoreError("Clave pública corrupta") from e
        if self.is_locked:
            raise StoreLockedError("El almacén está bloqueado")
        try:
            raw = keystore.open_key_material(blob, self._passphrase, self.iterations)
            if kind == KeyKind.PRIVATE:
                return crypto.load_private_key_from_pem(raw)
        except (ValueError, TypeError) as e:
            raise StoreError("Material sellado corrupto") from e
        return raw

    def _read_row(self, kind: KeyKind, tag: bytes):
        """Devuelve (material, policy, capabilities) o lanza StoreNotFoundError."""
        try:
            with self._connection() as conn:
                row = conn.execute(
                    "SELECT material, policy, capabilities FROM keys WHERE kind=? AND tag=?",
                    (kind.value, tag),
                ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Error al leer de {self.path}: {e}") from e
        if row is None:
            raise StoreNotFoundError(f"No existe clave {kind.value} con la etiqueta {tag!r}")
        blob, policy, capabilities = row
        try:
            return blob, AccessPolicy(policy), decode_capabilities(capabilities)
        except ValueError as e:
            raise StoreError(f"Entrada {kind.value} {tag!r} con metadatos inválidos") from e

    # Operaciones

    def put(self, kind, tag, material, policy, capabilities):
        self._check_policy(policy)
        blob = self._serialize(kind, material)
        try:
            with self._connection() as conn:
                conn.execute(
                    "INSERT INTO keys(kind, tag, material, policy, capabilities) VALUES (?,?,?,?,?)",
                    (kind.value, tag, blob, policy.value, encode_capabilities(capabilities)),
                )
        except sqlite3.IntegrityError as e:
            raise StoreConflictError(f"Ya existe una clave {kind.value} con la etiqueta {tag!r}") from e
        except sqlite3.Error as e:
            raise StoreWriteError(f"Error al escribir en {self.path}: {e}") from e

    def get(self, kind, tag):
        blob, policy, capabilities = self._read_row(kind, tag)
        self._check_policy(policy)
        material = self._deserialize(kind, blob)
        return make_handle(kind, tag, material, policy, capabilities)

    def delete(self, kind, tag):
        _, policy, _ = self._read_row(kind, tag)
        self._check_policy(policy)
        try:
            with self._connection() as conn:
                cur = conn.execute("DELETE FROM keys WHERE kind=? AND tag=?", (kind.value, tag))
                deleted = cur.rowcount
        except sqlite3.Error as e:
            raise StoreWriteError(f"Error al borrar en {self.path}: {e}") from e
        if not deleted:
            raise StoreNotFoundError(f"No existe clave {kind.value} con la etiqueta {tag!r}")

    def tags(self, kind):
        try:
            with self._connection() as conn:
                rows = conn.execute("SELECT tag FROM keys WHERE kind=? ORDER BY tag",
                                    (kind.value,)).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Error al leer de {self.path}: {e}") from e
        return [bytes(r[0]) for r in rows]

    def log_event(self, event_type, kind, tag):
        try:
            with self._connection() as conn:
                conn.execute("INSERT INTO audit(event_type, kind, tag) VALUES (?,?,?)",
                             (event_type, kind.value, tag))
        except sqlite3.Error as e:
            raise StoreWriteError(f"Error al auditar en {self.path}: {e}") from e

    def events(self):
        try:
            with self._connection() as conn:
                rows = conn.execute("SELECT event_type, kind, tag FROM audit ORDER BY rowid").fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Error al leer de {self.path}: {e}") from e
        return [(e, k, bytes(t)) for e, k, t in rows]
