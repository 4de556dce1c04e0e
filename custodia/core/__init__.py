"""
Módulo core con la custodia de claves y las operaciones criptográficas.

Módulos disponibles:
- custody: Generación, registro y resolución de claves (KeyCustody)
- envelope: Cifrado RSA-OAEP, sellado AES-GCM y firma RSA (EnvelopeCrypto)
- digest: Resumen SHA-256 y su representación hexadecimal
- store: Almacenes de claves (memoria y SQLite)
- keystore: Sellado en reposo del material secreto (AES-CBC + PBKDF2 + HMAC)
- crypto / sign / provider: Primitivas sobre `cryptography`
"""

from . import crypto
from . import sign
from . import keystore
from . import digest
from .config import CustodyConfig, load_config, load_key_store
from .custody import KeyCustody
from .envelope import EnvelopeCrypto
from .models import AccessPolicy, Algorithm, KeyHandle, KeyKind, KeyPairRecord, Operation
from .provider import PrimitiveProvider
from .store import InMemoryKeyStore, KeyStore, SQLiteKeyStore

__all__ = [
    'crypto', 'sign', 'keystore', 'digest',
    'CustodyConfig', 'load_config', 'load_key_store',
    'KeyCustody', 'EnvelopeCrypto', 'PrimitiveProvider',
    'AccessPolicy', 'Algorithm', 'KeyHandle', 'KeyKind', 'KeyPairRecord', 'Operation',
    'InMemoryKeyStore', 'KeyStore', 'SQLiteKeyStore',
]
