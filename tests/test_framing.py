import struct
import zlib
from io import BytesIO

import pytest

import salvo.common as common
from salvo.common import (
    HEADER_LEN,
    CrcError,
    FrameError,
    IncompleteError,
    PacketType,
    pack,
    recv_pkt,
    send_pkt,
    unpack,
)
from salvo.encryption import HEADER_STRUCT


def test_pack_unpack_roundtrip():
    obj = {"event": "attacked", "data": {"by": "a1", "at": [2, 3], "hit": True, "sunk": None}}
    data = pack(PacketType.EVENT, 12345, obj)
    ptype, seq, obj_out = unpack(BytesIO(data))
    assert ptype is PacketType.EVENT
    assert seq == 12345
    assert obj_out == obj


def test_header_and_crc_fields():
    data = pack(PacketType.HELLO, 1, {"token": None})
    magic, version, ptype_byte, seq, length = struct.unpack(">HBBII", data[:12])
    assert magic == common.MAGIC
    assert version == common.VERSION
    assert ptype_byte == PacketType.HELLO.value
    assert seq == 1
    payload = data[16:]
    assert length == len(payload)
    crc_expected = struct.unpack(">I", data[12:16])[0]
    assert zlib.crc32(data[:12] + payload) & 0xFFFFFFFF == crc_expected


def test_magic_mismatch_raises_FrameError():
    data = pack(PacketType.EVENT, 0, {"x": 1})
    with pytest.raises(FrameError):
        unpack(BytesIO(b"\x00\x00" + data[2:]))


def test_version_mismatch_raises_FrameError():
    data = pack(PacketType.EVENT, 0, {"x": 1})
    with pytest.raises(FrameError):
        unpack(BytesIO(data[:2] + b"\x02" + data[3:]))


def test_unknown_packet_type_raises_FrameError():
    payload = b"{}"
    head = struct.pack(">HBBII", common.MAGIC, common.VERSION, 99, 0, len(payload))
    crc = struct.pack(">I", zlib.crc32(head + payload) & 0xFFFFFFFF)
    with pytest.raises(FrameError):
        unpack(BytesIO(head + crc + payload))


def test_incomplete_header_raises_IncompleteError():
    data = pack(PacketType.EVENT, 0, {"x": 1})
    with pytest.raises(IncompleteError):
        unpack(BytesIO(data[: HEADER_LEN - 1]))


def test_incomplete_payload_raises_IncompleteError():
    data = pack(PacketType.EVENT, 0, {"x": 1})
    cut = HEADER_LEN + (len(data) - HEADER_LEN) // 2
    with pytest.raises(IncompleteError):
        unpack(BytesIO(data[:cut]))


def test_crc_mismatch_raises_CrcError():
    corrupt = bytearray(pack(PacketType.EVENT, 5, {"foo": "bar"}))
    corrupt[16] ^= 0xFF
    with pytest.raises(CrcError):
        unpack(BytesIO(bytes(corrupt)))


def test_multiple_frames_stream():
    buf = BytesIO()
    send_pkt(buf, PacketType.HELLO, 1, {"identity": "abc"})
    send_pkt(buf, PacketType.ERROR, 2, {"event": "attack", "reason": "not your turn"})
    buf.seek(0)
    assert recv_pkt(buf) == (PacketType.HELLO, 1, {"identity": "abc"})
    assert recv_pkt(buf) == (PacketType.ERROR, 2, {"event": "attack", "reason": "not your turn"})


def test_encryption_roundtrip():
    common.enable_encryption(bytes(range(16)))
    data = pack(PacketType.EVENT, 42, {"secret": "data"})
    assert b"secret" not in data
    assert HEADER_STRUCT.unpack(data[: HEADER_STRUCT.size])[5] == len(data) - HEADER_STRUCT.size
    assert unpack(BytesIO(data)) == (PacketType.EVENT, 42, {"secret": "data"})


def test_encrypted_tamper_detected():
    common.enable_encryption(bytes(range(32)))
    corrupt = bytearray(pack(PacketType.EVENT, 7, {"x": 1}))
    corrupt[-1] ^= 0x01
    with pytest.raises(FrameError):
        unpack(BytesIO(bytes(corrupt)))


def test_encrypted_header_is_authenticated():
    common.enable_encryption(bytes(range(16)))
    corrupt = bytearray(pack(PacketType.EVENT, 7, {"x": 1}))
    corrupt[7] ^= 0x01  # low byte of seq
    with pytest.raises(FrameError):
        unpack(BytesIO(bytes(corrupt)))


def test_bad_key_length_rejected():
    with pytest.raises(ValueError):
        common.enable_encryption(b"short")
