# encryption abstraction module

import os
import struct

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

# AEAD header format: magic (2 bytes), version (1 byte), packet type (1 byte), sequence (4 bytes), nonce (12 bytes), length (4 bytes)
HEADER_STRUCT = struct.Struct(">HBBI12sI")

# Reject excessively large payloads
MAX_PAYLOAD = 1024 * 1024

_secret_key: bytes | None = None


def enable_encryption(key: bytes) -> None:
    """Set the symmetric key for AEAD operations."""
    global _secret_key
    if len(key) not in (16, 24, 32):
        raise ValueError("AES key must be 16/24/32 bytes")
    _secret_key = key


def disable_encryption() -> None:
    global _secret_key
    _secret_key = None


def is_enabled() -> bool:
    return _secret_key is not None


def pack(magic: int, version: int, ptype: int, seq: int, payload: bytes) -> bytes:
    """AEAD pack: header + ciphertext+tag. The header is authenticated as associated data."""
    if _secret_key is None:
        raise ValueError("Encryption key not set")
    if len(payload) > MAX_PAYLOAD:
        raise ValueError(f"Payload too large: {len(payload)} bytes")
    nonce = os.urandom(12)
    # ciphertext carries a 16-byte tag
    length = len(payload) + 16
    header = HEADER_STRUCT.pack(magic, version, ptype, seq, nonce, length)
    ciphertext = AESGCM(_secret_key).encrypt(nonce, payload, header)
    return header + ciphertext


def unpack(header: bytes, ciphertext: bytes) -> tuple[int, int, int, int, bytes]:
    """AEAD unpack: returns (magic, version, ptype, seq, plaintext); raises InvalidTag on tampering."""
    if _secret_key is None:
        raise ValueError("Encryption key not set")
    magic, version, ptype, seq, nonce, _length = HEADER_STRUCT.unpack(header)
    plaintext = AESGCM(_secret_key).decrypt(nonce, ciphertext, header)
    return magic, version, ptype, seq, plaintext
