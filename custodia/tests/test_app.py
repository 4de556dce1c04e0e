"""
Tests de la CLI (custodia/app.py)
"""

import pytest

from custodia import app


@pytest.fixture
def cli_env(monkeypatch, tmp_path):
    """Almacén SQLite temporal y contraseña fija en lugar de getpass."""
    monkeypatch.delenv("CUSTODIA_STORE", raising=False)
    monkeypatch.setenv("CUSTODIA_DB_PATH", str(tmp_path / "cli.db"))
    monkeypatch.setenv("CUSTODIA_PBKDF2_ITERATIONS", "1000")
    monkeypatch.setattr(app, "getpass", lambda prompt="": "pw-del-almacén")
    return tmp_path / "cli.db"


def last_line(capsys):
    return capsys.readouterr().out.strip().splitlines()[-1]


def test_full_flow(cli_env, capsys):
    assert app.main(["--init-store"]) == 0
    assert cli_env.exists()

    assert app.main(["keygen", "--public-tag", "pub1", "--private-tag", "priv1"]) == 0
    capsys.readouterr()

    assert app.main(["encrypt", "--public-tag", "pub1", "--message", "Hello, RSA!"]) == 0
    ciphertext_hex = last_line(capsys)

    assert app.main(["decrypt", "--private-tag", "priv1", "--hex", ciphertext_hex]) == 0
    assert last_line(capsys) == "Hello, RSA!"

    assert app.main(["sign", "--private-tag", "priv1", "--message", "Wassup, world!"]) == 0
    signature_hex = last_line(capsys)

    assert app.main(["verify", "--public-tag", "pub1", "--message", "Wassup, world!",
                     "--signature", signature_hex]) == 0
    assert app.main(["verify", "--public-tag", "pub1", "--message", "otro",
                     "--signature", signature_hex]) == 1

    assert app.main(["list", "--kind", "public"]) == 0
    assert "pub1" in capsys.readouterr().out

    assert app.main(["delete", "--tag", "pub1", "--kind", "public"]) == 0
    assert app.main(["encrypt", "--public-tag", "pub1", "--message", "x"]) == 1
    assert "[ERR] NOT_FOUND" in capsys.readouterr().out


def test_init_store_password_mismatch(cli_env, monkeypatch, capsys):
    answers = iter(["uno", "dos"])
    monkeypatch.setattr(app, "getpass", lambda prompt="": next(answers))

    assert app.main(["--init-store"]) == 1
    assert "no coinciden" in capsys.readouterr().out


def test_keygen_rejects_small_keys(cli_env, capsys):
    app.main(["--init-store"])
    assert app.main(["keygen", "--public-tag", "p", "--private-tag", "q", "--bits", "1024"]) == 1
    assert "GENERATION_FAILED" in capsys.readouterr().out


def test_hash(capsys):
    assert app.main(["hash", "--message", "abc"]) == 0
    assert last_line(capsys) == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


def test_seal_demo(capsys):
    assert app.main(["seal-demo", "--message", "Sensitive data"]) == 0
    assert last_line(capsys).endswith("Sensitive data")


def test_demo(capsys):
    assert app.main(["demo"]) == 0
    out = capsys.readouterr().out
    assert "Descifrado: Hello, RSA!" in out
    assert "Firma verificada: True" in out
    assert "Sensitive data" in out


def test_no_command_prints_help(capsys):
    assert app.main([]) == 2


def test_wrong_store_password(cli_env, monkeypatch, capsys):
    assert app.main(["--init-store"]) == 0
    monkeypatch.setattr(app, "getpass", lambda prompt="": "otra-contraseña")

    assert app.main(["--init-store"]) == 1
    assert "otra contraseña" in capsys.readouterr().out

    assert app.main(["keygen", "--public-tag", "p", "--private-tag", "q"]) == 1
    assert "[ERR] ACCESS_DENIED" in capsys.readouterr().out


def test_delete_private_unlocks_store(cli_env, monkeypatch, capsys):
    app.main(["--init-store"])
    app.main(["keygen", "--public-tag", "pub1", "--private-tag", "priv1"])
    prompts = []
    monkeypatch.setattr(app, "getpass", lambda prompt="": prompts.append(prompt) or "pw-del-almacén")

    assert app.main(["delete", "--tag", "priv1", "--kind", "private"]) == 0
    assert prompts == ["Contraseña del almacén: "]

    capsys.readouterr()
    assert app.main(["list", "--kind", "private"]) == 0
    assert "No hay claves" in capsys.readouterr().out
