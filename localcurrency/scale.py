"""Minimal SCALE encoding helpers used for hashing and storage."""

from __future__ import annotations

from typing import Callable, Iterable, TypeVar

T = TypeVar("T")

_SINGLE_BYTE_LIMIT = 1 << 6
_TWO_BYTE_LIMIT = 1 << 14
_FOUR_BYTE_LIMIT = 1 << 30


def _encode_unsigned(value: int, size: int) -> bytes:
    if not 0 <= value < 1 << (8 * size):
        raise ValueError(f"{value} does not fit in {size * 8} unsigned bits")
    return value.to_bytes(size, "little")


def encode_compact(value: int) -> bytes:
    """Encode a non-negative integer in SCALE compact form."""
    if value < 0:
        raise ValueError("compact encoding needs a non-negative integer")
    if value < _SINGLE_BYTE_LIMIT:
        return bytes([value << 2])
    if value < _TWO_BYTE_LIMIT:
        return ((value << 2) | 0b01).to_bytes(2, "little")
    if value < _FOUR_BYTE_LIMIT:
        return ((value << 2) | 0b10).to_bytes(4, "little")
    length = max(4, (value.bit_length() + 7) // 8)
    if length > 67:
        raise ValueError("integer too large for compact encoding")
    return bytes([((length - 4) << 2) | 0b11]) + value.to_bytes(length, "little")


def decode_compact(data: bytes, offset: int = 0) -> tuple[int, int]:
    """Decode a compact integer at `offset`; return the value and the offset after it."""
    if offset >= len(data):
        raise ValueError("no data to decode a compact integer from")
    mode = data[offset] & 0b11
    if mode == 0b00:
        return data[offset] >> 2, offset + 1
    if mode == 0b11:
        length = (data[offset] >> 2) + 4
        start, end = offset + 1, offset + 1 + length
    else:
        length = 2 if mode == 0b01 else 4
        start, end = offset, offset + length
    if end > len(data):
        raise ValueError("truncated compact integer")
    raw = int.from_bytes(data[start:end], "little")
    return (raw if mode == 0b11 else raw >> 2), end


def encode_u8(value: int) -> bytes:
    """Encode an unsigned 8-bit integer."""
    return _encode_unsigned(value, 1)


def encode_u32(value: int) -> bytes:
    """Encode an unsigned 32-bit integer, little endian."""
    return _encode_unsigned(value, 4)


def encode_u64(value: int) -> bytes:
    """Encode an unsigned 64-bit integer, little endian."""
    return _encode_unsigned(value, 8)


def encode_i128(value: int) -> bytes:
    """Encode a signed 128-bit integer, little endian two's complement."""
    if not -(1 << 127) <= value < 1 << 127:
        raise ValueError(f"{value} does not fit in 128 signed bits")
    return value.to_bytes(16, "little", signed=True)


def encode_bool(value: bool) -> bytes:
    """Encode a boolean as one byte."""
    return b"\x01" if value else b"\x00"


def decode_bool(data: bytes) -> bool:
    """Decode a boolean from the first byte of `data`."""
    if not data:
        raise ValueError("no data to decode a bool from")
    if data[0] not in (0, 1):
        raise ValueError(f"invalid bool byte {data[0]:#04x}")
    return data[0] == 1


def encode_bytes(data: bytes) -> bytes:
    """Encode a byte string with its compact length prefix."""
    data = bytes(data)
    return encode_compact(len(data)) + data


def encode_str(text: str) -> bytes:
    """Encode a string as length-prefixed UTF-8."""
    return encode_bytes(text.encode("utf-8"))


def encode_vec(items: Iterable[T], encode_item: Callable[[T], bytes]) -> bytes:
    """Encode a sequence with a compact length prefix and each item encoded in turn."""
    encoded = [encode_item(item) for item in items]
    return encode_compact(len(encoded)) + b"".join(encoded)