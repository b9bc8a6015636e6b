"""Low-level packet framing for the reference transport.

Frame layout (16-byte header + JSON payload):
0-1  : 0x5A1F      magic bytes
2    : version (1)
3    : PacketType (enum)
4-7  : seq u32 (big-endian)
8-11 : len u32 (payload length)
12-15: CRC-32 over header[0:12]+payload
16-  : UTF-8 JSON payload

When encryption is enabled the CRC is replaced by AES-GCM: the header carries
a 12-byte nonce instead and the payload is ciphertext plus tag (see
``encryption.HEADER_STRUCT``).
"""

from __future__ import annotations

import enum
import json
import struct
import zlib
from typing import Any, BinaryIO, Final, Tuple

from cryptography.exceptions import InvalidTag

from . import encryption as _aead

MAGIC: Final[int] = 0x5A1F
VERSION: Final[int] = 1

HEADER = struct.Struct(">HBBII")
HEADER_LEN: Final[int] = HEADER.size + 4
MAX_PAYLOAD: Final[int] = _aead.MAX_PAYLOAD


class PacketType(int, enum.Enum):
    """Enumerate wire-protocol packet categories."""

    HELLO = 0  # identity handshake, both directions
    EVENT = 1  # client command or engine event
    ERROR = 2  # negative acknowledgment, sent to the offending client only


class FrameError(Exception):
    """Base for framing problems."""


class CrcError(FrameError):
    """Raised when a CRC-32 check fails while decoding a frame."""


class IncompleteError(FrameError):
    """Raised when the stream closes before a full frame could be read."""


def enable_encryption(key: bytes) -> None:
    """Switch every subsequent frame to AES-GCM framing."""
    _aead.enable_encryption(key)


def disable_encryption() -> None:
    """Revert to CRC framing."""
    _aead.disable_encryption()


def pack(ptype: PacketType, seq: int, obj: Any) -> bytes:
    """Serialize one packet."""
    payload = json.dumps(obj, separators=(",", ":")).encode()
    if len(payload) > MAX_PAYLOAD:
        raise FrameError(f"payload too large: {len(payload)} bytes")
    if _aead.is_enabled():
        return _aead.pack(MAGIC, VERSION, int(ptype), seq, payload)
    head = HEADER.pack(MAGIC, VERSION, int(ptype), seq, len(payload))
    crc = zlib.crc32(head + payload) & 0xFFFFFFFF
    return head + struct.pack(">I", crc) + payload


def _read_exact(r: BinaryIO, n: int, what: str) -> bytes:
    data = r.read(n)
    if data is None or len(data) < n:
        raise IncompleteError(f"Incomplete {what}")
    return data


def _decode(ptype_val: int, plaintext: bytes) -> Tuple[PacketType, Any]:
    try:
        ptype = PacketType(ptype_val)
    except ValueError:
        raise FrameError(f"unknown packet type {ptype_val}") from None
    try:
        obj = json.loads(plaintext)
    except ValueError as e:
        raise FrameError(f"payload is not JSON: {e}") from None
    return ptype, obj


def unpack(r: BinaryIO) -> Tuple[PacketType, int, Any]:
    """Read one framed packet from *r* and return ``(ptype, seq, obj)``."""
    if _aead.is_enabled():
        header = _read_exact(r, _aead.HEADER_STRUCT.size, "header")
        magic, version, ptype_val, seq, _nonce, length = _aead.HEADER_STRUCT.unpack(header)
        if magic != MAGIC or version != VERSION:
            raise FrameError("magic/version mismatch")
        if length > MAX_PAYLOAD + 16:
            raise FrameError(f"frame too large: {length} bytes")
        ciphertext = _read_exact(r, length, "payload")
        try:
            _, _, _, _, plaintext = _aead.unpack(header, ciphertext)
        except InvalidTag:
            raise FrameError("AEAD authentication failed") from None
        ptype, obj = _decode(ptype_val, plaintext)
        return ptype, seq, obj

    header = _read_exact(r, HEADER_LEN, "header")
    magic, version, ptype_val, seq, length = HEADER.unpack(header[:12])
    if magic != MAGIC or version != VERSION:
        raise FrameError("magic/version mismatch")
    if length > MAX_PAYLOAD:
        raise FrameError(f"frame too large: {length} bytes")
    payload = _read_exact(r, length, "payload")
    (crc_expected,) = struct.unpack(">I", header[12:16])
    if zlib.crc32(header[:12] + payload) & 0xFFFFFFFF != crc_expected:
        raise CrcError("CRC mismatch")
    ptype, obj = _decode(ptype_val, payload)
    return ptype, seq, obj


def send_pkt(w: BinaryIO, ptype: PacketType, seq: int, obj: Any) -> None:
    """Write a single framed packet to *w* and flush."""
    w.write(pack(ptype, seq, obj))
    w.flush()


def recv_pkt(r: BinaryIO) -> Tuple[PacketType, int, Any]:
    """Blocking helper that returns the next ``(ptype, seq, obj)`` tuple from *r*."""
    return unpack(r)


__all__ = [
    "PacketType",
    "FrameError",
    "CrcError",
    "IncompleteError",
    "enable_encryption",
    "disable_encryption",
    "pack",
    "unpack",
    "send_pkt",
    "recv_pkt",
]
