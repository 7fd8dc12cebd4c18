"""
AES-256-GCM encryption for stored Figma credentials.

The key is 32 bytes supplied as 64 hex characters. Each secret gets a fresh
16-byte nonce. Ciphertext is stored as text: ``nonce_hex:tag_hex:cipher_hex``.
"""

from __future__ import annotations

import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from figdigest.errors import AuthError, ConfigError, FormatError

NONCE_BYTES = 16
TAG_BYTES = 16
KEY_HEX_LENGTH = 64


def parse_key(key_hex: str) -> bytes:
    """Decode a 64-hex-character key into 32 raw bytes."""
    if not isinstance(key_hex, str) or len(key_hex) != KEY_HEX_LENGTH:
        raise ConfigError("Encryption key must be 32 bytes (64 hex characters)")
    try:
        return bytes.fromhex(key_hex)
    except ValueError as e:
        raise ConfigError("Encryption key must be hex encoded") from e


def generate_key() -> str:
    """Generate a new random key in the hex form expected by ``parse_key``."""
    return secrets.token_hex(32)


def encrypt(plaintext: str, key: bytes) -> str:
    """Encrypt plaintext. Returns ``nonce_hex:tag_hex:cipher_hex``."""
    nonce = secrets.token_bytes(NONCE_BYTES)
    sealed = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
    return f"{nonce.hex()}:{tag.hex()}:{ciphertext.hex()}"


def decrypt(data: str, key: bytes) -> str:
    """Decrypt ``nonce_hex:tag_hex:cipher_hex`` back to plaintext."""
    parts = data.split(":") if isinstance(data, str) else []
    if len(parts) != 3:
        raise FormatError("Invalid encrypted secret format")

    nonce_hex, tag_hex, cipher_hex = parts
    try:
        nonce = bytes.fromhex(nonce_hex)
        tag = bytes.fromhex(tag_hex)
        ciphertext = bytes.fromhex(cipher_hex)
    except ValueError as e:
        raise FormatError("Encrypted secret is not valid hex") from e
    if not 8 <= len(nonce) <= 128 or len(tag) != TAG_BYTES:
        raise FormatError("Encrypted secret has an invalid nonce or tag")

    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext + tag, None)
    except InvalidTag as e:
        raise AuthError("Encrypted secret failed authentication") from e
    return plaintext.decode("utf-8")
