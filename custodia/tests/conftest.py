import pytest

from custodia.core.custody import KeyCustody
from custodia.core.envelope import EnvelopeCrypto
from custodia.core.store import InMemoryKeyStore, SQLiteKeyStore

# Iteraciones bajas para que los tests de SQLite no tarden segundos
FAST_ITERATIONS = 1_000


@pytest.fixture
def memory_store():
    return InMemoryKeyStore()


@pytest.fixture
def custody(memory_store):
    return KeyCustody(memory_store)


@pytest.fixture
def envelope():
    return EnvelopeCrypto()


@pytest.fixture
def keypair(custody):
    """Par RSA-2048 guardado como ('pub1', 'priv1')."""
    return custody.generate_and_store(2048, "pub1", "priv1")


@pytest.fixture
def store_passphrase():
    return "ContraseñaDelAlmacén123!"


@pytest.fixture
def sqlite_store(tmp_path, store_passphrase):
    return SQLiteKeyStore(str(tmp_path / "keys.db"), passphrase=store_passphrase,
                          iterations=FAST_ITERATIONS)
