# custodia/app.py
from __future__ import annotations

import argparse
import os
import sys
from getpass import getpass

from custodia.core import digest, sign
from custodia.core.config import CustodyConfig, load_config, load_key_store
from custodia.core.custody import KeyCustody
from custodia.core.envelope import EnvelopeCrypto
from custodia.core.errors import AccessDenied, CustodiaError, StoreLockedError
from custodia.core.models import KeyKind
from custodia.core.store import InMemoryKeyStore


KINDS = {k.value: k for k in KeyKind}


# Utilidades

def open_custody(config: CustodyConfig, need_unlock: bool = True) -> KeyCustody:
    """Abre el almacén configurado; pide la contraseña si hace falta desbloquearlo."""
    passphrase = None
    if config.store == "sqlite" and need_unlock:
        passphrase = getpass("Contraseña del almacén: ")
    try:
        store = load_key_store(config, passphrase=passphrase)
    except StoreLockedError as e:
        raise AccessDenied("Contraseña del almacén incorrecta") from e
    return KeyCustody(store, config=config)


# COMANDOS

def cmd_init_store(config: CustodyConfig) -> int:
    """Crea el almacén SQLite y fija su contraseña."""
    if config.store != "sqlite":
        print("[STORE] El almacén en memoria no necesita inicialización.")
        return 0
    pwd1 = getpass("Introduce una contraseña para el almacén: ")
    pwd2 = getpass("Repite la contraseña: ")
    if pwd1 != pwd2:
        print("[ERR] Las contraseñas no coinciden.")
        return 1
    try:
        load_key_store(config, passphrase=pwd1)
    except StoreLockedError:
        print(f"[ERR] Ya existe un almacén en {config.db_path} con otra contraseña.")
        return 1
    print(f"[STORE] Almacén inicializado en {config.db_path}")
    return 0


def cmd_keygen(args: argparse.Namespace, config: CustodyConfig) -> int:
    custody = open_custody(config)
    bits = args.bits or config.key_size
    print(f"[KEYGEN] Generando par RSA {bits} bits…")
    custody.generate_and_store(bits, args.public_tag, args.private_tag)
    print(f"[OK] Par guardado: pública='{args.public_tag}' privada='{args.private_tag}'")
    return 0


def cmd_encrypt(args: argparse.Namespace, config: CustodyConfig) -> int:
    custody = open_custody(config, need_unlock=False)
    public_key = custody.resolve(args.public_tag, KeyKind.PUBLIC)
    ciphertext = EnvelopeCrypto().encrypt_text(args.message, public_key)
    print(ciphertext.hex())
    return 0


def cmd_decrypt(args: argparse.Namespace, config: CustodyConfig) -> int:
    custody = open_custody(config)
    private_key = custody.resolve(args.private_tag, KeyKind.PRIVATE)
    try:
        ciphertext = bytes.fromhex(args.hex)
    except ValueError:
        print("[ERR] El ciphertext debe estar en hexadecimal.")
        return 1
    print(EnvelopeCrypto().decrypt_text(ciphertext, private_key))
    return 0


def cmd_sign(args: argparse.Namespace, config: CustodyConfig) -> int:
    custody = open_custody(config)
    private_key = custody.resolve(args.private_tag, KeyKind.PRIVATE)
    signature = EnvelopeCrypto().sign(args.message.encode("utf-8"), private_key)
    print(signature.hex())
    return 0


def cmd_verify(args: argparse.Namespace, config: CustodyConfig) -> int:
    custody = open_custody(config, need_unlock=False)
    public_key = custody.resolve(args.public_tag, KeyKind.PUBLIC)
    try:
        signature = bytes.fromhex(args.signature)
    except ValueError:
        print("[ERR] La firma debe estar en hexadecimal.")
        return 1
    ok = EnvelopeCrypto().verify(args.message.encode("utf-8"), signature, public_key)
    print("[OK] ✓ Firma verificada correctamente." if ok else "[ERR] Firma inválida.")
    return 0 if ok else 1


def cmd_hash(args: argparse.Namespace, config: CustodyConfig) -> int:
    print(digest.digest_to_hex(args.message.encode("utf-8")))
    return 0


def cmd_list(args: argparse.Namespace, config: CustodyConfig) -> int:
    custody = open_custody(config, need_unlock=False)
    kind = KINDS[args.kind]
    tags = custody.list_tags(kind)
    if not tags:
        print(f"[STORE] No hay claves de tipo {kind.value}.")
        return 0
    for tag in tags:
        print(f"  - {tag.decode('utf-8', errors='replace')}")
    return 0


def cmd_delete(args: argparse.Namespace, config: CustodyConfig) -> int:
    kind = KINDS[args.kind]
    custody = open_custody(config, need_unlock=kind != KeyKind.PUBLIC)
    custody.delete(args.tag, kind)
    print(f"[OK] Clave {args.kind} '{args.tag}' borrada.")
    return 0


def cmd_seal_demo(args: argparse.Namespace, config: CustodyConfig) -> int:
    """Sella y abre un mensaje con una clave AES efímera."""
    custody = KeyCustody(InMemoryKeyStore(), config=config)
    envelope = EnvelopeCrypto()
    key = custody.generate_symmetric_key(256)
    blob = envelope.symmetric_seal(args.message.encode("utf-8"), key)
    print(f"[AES-GCM] Blob: {blob.hex()}")
    print(f"[AES-GCM] Abierto: {envelope.symmetric_open(blob, key).decode('utf-8')}")
    return 0


def cmd_demo(args: argparse.Namespace, config: CustodyConfig) -> int:
    """Ejecuta los cuatro ejemplos: RSA-OAEP, firma, SHA-256 y AES-GCM."""
    custody = KeyCustody(InMemoryKeyStore(), config=config)
    envelope = EnvelopeCrypto()

    print("[DEMO] Cifrado asimétrico (RSA-OAEP)")
    custody.generate_and_store(2048, "publicKeyTag", "privateKeyTag")
    public_key = custody.resolve("publicKeyTag", KeyKind.PUBLIC)
    private_key = custody.resolve("privateKeyTag", KeyKind.PRIVATE)
    original = "Hello, RSA!"
    ciphertext = envelope.encrypt_text(original, public_key)
    print(f"  Original: {original}")
    print(f"  Cifrado: {len(ciphertext)} bytes")
    print(f"  Descifrado: {envelope.decrypt_text(ciphertext, private_key)}")

    print("[DEMO] Firma digital (RSA PKCS#1 v1.5)")
    pair = custody.generate_and_store(2048, "signPublicTag", "signPrivateTag")
    data = "Wassup, world!".encode("utf-8")
    signature = envelope.sign(data, pair.private)
    print(f"  Firma: {sign.format_signature_for_display(signature)}")
    print(f"  Firma verificada: {envelope.verify(data, signature, pair.public)}")

    print("[DEMO] Resumen (SHA-256)")
    print(f"  {digest.digest_to_hex('Hello, Crypto!'.encode('utf-8'))}")

    print("[DEMO] Cifrado simétrico (AES-GCM)")
    key = custody.generate_symmetric_key(256)
    blob = envelope.symmetric_seal("Sensitive data".encode("utf-8"), key)
    print(f"  {envelope.symmetric_open(blob, key).decode('utf-8')}")
    return 0



# PARSER CLI


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="custodia",
        description="Custodia de claves y cifrado de sobres",
    )

    parser.add_argument("--init-store", action="store_true",
                        help="Crea el almacén SQLite y fija su contraseña")
    parser.add_argument("--store", choices=["memory", "sqlite"],
                        help="Almacén de claves (por defecto: CUSTODIA_STORE o sqlite)")
    parser.add_argument("--db", help="Ruta del almacén SQLite")

    sub = parser.add_subparsers(dest="cmd")

    keygen = sub.add_parser("keygen", help="Genera y guarda un par RSA")
    keygen.add_argument("--public-tag", required=True)
    keygen.add_argument("--private-tag", required=True)
    keygen.add_argument("--bits", type=int)
    keygen.set_defaults(func=cmd_keygen)

    encrypt = sub.add_parser("encrypt", help="Cifra un mensaje con una clave pública")
    encrypt.add_argument("--public-tag", required=True)
    encrypt.add_argument("--message", required=True)
    encrypt.set_defaults(func=cmd_encrypt)

    decrypt = sub.add_parser("decrypt", help="Descifra un ciphertext hexadecimal")
    decrypt.add_argument("--private-tag", required=True)
    decrypt.add_argument("--hex", required=True)
    decrypt.set_defaults(func=cmd_decrypt)

    sign_p = sub.add_parser("sign", help="Firma un mensaje")
    sign_p.add_argument("--private-tag", required=True)
    sign_p.add_argument("--message", required=True)
    sign_p.set_defaults(func=cmd_sign)

    verify = sub.add_parser("verify", help="Verifica una firma hexadecimal")
    verify.add_argument("--public-tag", required=True)
    verify.add_argument("--message", required=True)
    verify.add_argument("--signature", required=True)
    verify.set_defaults(func=cmd_verify)

    hash_p = sub.add_parser("hash", help="Resumen SHA-256 en hexadecimal")
    hash_p.add_argument("--message", required=True)
    hash_p.set_defaults(func=cmd_hash)

    list_p = sub.add_parser("list", help="Lista las etiquetas de un tipo de clave")
    list_p.add_argument("--kind", choices=sorted(KINDS), required=True)
    list_p.set_defaults(func=cmd_list)

    delete = sub.add_parser("delete", help="Borra una clave del almacén")
    delete.add_argument("--tag", required=True)
    delete.add_argument("--kind", choices=sorted(KINDS), required=True)
    delete.set_defaults(func=cmd_delete)

    seal = sub.add_parser("seal-demo", help="Sella y abre un mensaje con AES-GCM")
    seal.add_argument("--message", required=True)
    seal.set_defaults(func=cmd_seal_demo)

    demo = sub.add_parser("demo", help="Ejecuta los ejemplos de RSA, firma, SHA-256 y AES-GCM")
    demo.set_defaults(func=cmd_demo)

    return parser


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config()
    # La CLI persiste entre invocaciones: por defecto usa SQLite
    config.store = args.store or os.getenv("CUSTODIA_STORE", "sqlite")
    if args.db:
        config.db_path = args.db

    if args.init_store:
        rc = cmd_init_store(config)
        if args.cmd is None or rc != 0:
            return rc

    if hasattr(args, "func"):
        try:
            return args.func(args, config)
        except CustodiaError as e:
            print(f"[ERR] {e.code}: {e.message}")
            return 1

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
