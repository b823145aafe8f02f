"""Encryption at rest for tenant credentials.

Each credential is stored as a compact JWE (``dir`` key management with
``A256GCM`` content encryption) under the process-wide
``TENANT_ENCRYPTION_KEY``. GCM authenticates the ciphertext, so a modified
value fails to decrypt instead of producing garbage.
"""
from __future__ import annotations

import secrets

from jose import jwe
from jose.constants import ALGORITHMS
from jose.exceptions import JWEError

from shopbot.core.config import TENANT_ENCRYPTION_KEY
from shopbot.core.errors import ConfigurationError

KEY_HEX_LENGTH = 64


def generate_encryption_key() -> str:
    return secrets.token_hex(KEY_HEX_LENGTH // 2)


def load_encryption_key(key_hex: str | None = None) -> bytes:
    raw = (key_hex if key_hex is not None else TENANT_ENCRYPTION_KEY).strip()
    if len(raw) != KEY_HEX_LENGTH:
        raise ConfigurationError("TENANT_ENCRYPTION_KEY must be 64 hex characters (32 bytes)")
    try:
        return bytes.fromhex(raw)
    except ValueError as exc:
        raise ConfigurationError("TENANT_ENCRYPTION_KEY is not valid hex") from exc


def encrypt_credential(plaintext: str, *, key_hex: str | None = None) -> str:
    key = load_encryption_key(key_hex)
    token = jwe.encrypt(
        plaintext.encode("utf-8"),
        key,
        algorithm=ALGORITHMS.DIR,
        encryption=ALGORITHMS.A256GCM,
    )
    return token.decode("ascii") if isinstance(token, bytes) else token


def decrypt_credential(ciphertext: str, *, key_hex: str | None = None) -> str:
    key = load_encryption_key(key_hex)
    try:
        plaintext = jwe.decrypt(ciphertext, key)
    except JWEError as exc:
        raise ConfigurationError("credential could not be decrypted") from exc
    if plaintext is None:
        raise ConfigurationError("credential could not be decrypted")
    return plaintext.decode("utf-8")


def is_encrypted(value: str | None) -> bool:
    if not value:
        return False
    parts = value.split(".")
    # compact JWE with direct key agreement has an empty encrypted-key segment
    return len(parts) == 5 and parts[1] == ""
