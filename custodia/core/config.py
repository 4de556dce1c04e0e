"""
Configuración del servicio de custodia.

Los valores por defecto son constantes del módulo; cada uno se puede
sobrescribir con una variable de entorno:

    CUSTODIA_STORE              memory | sqlite (por defecto: memory)
    CUSTODIA_DB_PATH            ruta del almacén SQLite
    CUSTODIA_KEY_SIZE           tamaño RSA por defecto en bits
    CUSTODIA_PBKDF2_ITERATIONS  iteraciones para el sellado en reposo
    CUSTODIA_LOG_LEVEL          nivel de logging (leído en logger.py)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .crypto import PBKDF2_ITERATIONS
from .models import AccessPolicy
from .store import InMemoryKeyStore, KeyStore, SQLiteKeyStore


#  CONSTANTES

ROOT = Path.cwd()
DEFAULT_STORE = "memory"
DEFAULT_DB_PATH = ROOT / "custodia.db"
DEFAULT_KEY_SIZE = 2048
DEFAULT_SYMMETRIC_BITS = 256


@dataclass
class CustodyConfig:
    store: str = DEFAULT_STORE
    db_path: str = str(DEFAULT_DB_PATH)
    key_size: int = DEFAULT_KEY_SIZE
    symmetric_bits: int = DEFAULT_SYMMETRIC_BITS
    pbkdf2_iterations: int = PBKDF2_ITERATIONS
    public_policy: AccessPolicy = AccessPolicy.ALWAYS
    private_policy: AccessPolicy = AccessPolicy.WHEN_UNLOCKED_THIS_DEVICE_ONLY


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} debe ser un entero, recibido: {raw!r}")


def load_config() -> CustodyConfig:
    """Construye la configuración a partir del entorno."""
    return CustodyConfig(
        store=os.getenv("CUSTODIA_STORE", DEFAULT_STORE),
        db_path=os.getenv("CUSTODIA_DB_PATH", str(DEFAULT_DB_PATH)),
        key_size=_env_int("CUSTODIA_KEY_SIZE", DEFAULT_KEY_SIZE),
        pbkdf2_iterations=_env_int("CUSTODIA_PBKDF2_ITERATIONS", PBKDF2_ITERATIONS),
    )


def load_key_store(config: Optional[CustodyConfig] = None,
                   passphrase: Optional[str] = None) -> KeyStore:
    """
    Selecciona el almacén según la configuración.

        - memory (por defecto)
        - sqlite
    """
    config = config or load_config()

    if config.store == "memory":
        return InMemoryKeyStore()

    if config.store == "sqlite":
        dir_path = os.path.dirname(config.db_path) or "."
        os.makedirs(dir_path, exist_ok=True)
        return SQLiteKeyStore(config.db_path, passphrase=passphrase,
                              iterations=config.pbkdf2_iterations)

    raise ValueError(f"Almacén desconocido: {config.store}")
