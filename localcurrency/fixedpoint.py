"""Signed 128-bit fixed-point numbers with 64 fractional bits, and JSON shims."""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from decimal import Decimal
from fractions import Fraction

_FRAC_BITS = 64
_ONE = 1 << _FRAC_BITS
_MIN_BITS = -(1 << 127)
_MAX_BITS = (1 << 127) - 1
_NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")


def _checked(bits: int) -> int:
    if not _MIN_BITS <= bits <= _MAX_BITS:
        raise OverflowError("value does not fit in I64F64")
    return bits


@dataclass(frozen=True, order=True)
class I64F64:
    """Fixed-point number stored as a 128-bit two's complement integer of 2**-64 units."""

    bits: int

    def __post_init__(self) -> None:
        _checked(self.bits)

    @classmethod
    def from_num(cls, value: int | float | Fraction | Decimal | I64F64) -> I64F64:
        """Convert a number, rounding to nearest with ties to even."""
        if isinstance(value, I64F64):
            return value
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError("cannot convert a non-finite float")
        if isinstance(value, (int, float, Fraction, Decimal)):
            return cls(_checked(round(Fraction(value) * _ONE)))
        raise TypeError(f"cannot convert {type(value).__name__} to I64F64")

    @classmethod
    def from_bits(cls, bits: int) -> I64F64:
        """Build a value from its raw 128-bit representation."""
        return cls(_checked(bits))

    @classmethod
    def from_str(cls, text: str) -> I64F64:
        """Parse a decimal string, rounding to the nearest representable value."""
        if not _NUMBER.fullmatch(text):
            raise ValueError(f"invalid fixed-point number: {text!r}")
        return cls(_checked(round(Fraction(text) * _ONE)))

    def to_bits(self) -> int:
        return self.bits

    def to_float(self) -> float:
        return self.bits / _ONE

    def __float__(self) -> float:
        return self.to_float()

    def __str__(self) -> str:
        sign = "-" if self.bits < 0 else ""
        integer, frac = divmod(abs(self.bits), _ONE)
        if frac == 0:
            return f"{sign}{integer}"
        for digits in range(1, _FRAC_BITS + 1):
            scale = 10**digits
            candidate = round(Fraction(frac * scale, _ONE))
            if round(Fraction(candidate * _ONE, scale)) == frac:
                return f"{sign}{integer}.{candidate:0{digits}d}"
        raise AssertionError("64 decimal digits always represent the value exactly")

    def __repr__(self) -> str:
        return f"I64F64({self})"

    def __neg__(self) -> I64F64:
        return I64F64(_checked(-self.bits))

    def __abs__(self) -> I64F64:
        return I64F64(_checked(abs(self.bits)))

    def __add__(self, other: object) -> I64F64:
        if not isinstance(other, I64F64):
            return NotImplemented
        return I64F64(_checked(self.bits + other.bits))

    def __sub__(self, other: object) -> I64F64:
        if not isinstance(other, I64F64):
            return NotImplemented
        return I64F64(_checked(self.bits - other.bits))

    def __mul__(self, other: object) -> I64F64:
        if not isinstance(other, I64F64):
            return NotImplemented
        return I64F64(_checked((self.bits * other.bits) >> _FRAC_BITS))


def serialize_fixed(value: I64F64) -> str:
    """Serialize a fixed-point number as a JSON string of its decimal form."""
    return json.dumps(str(value))


def deserialize_fixed(text: str) -> I64F64:
    """Read a fixed-point number from a JSON string."""
    decoded = json.loads(text)
    if not isinstance(decoded, str):
        raise ValueError("expected a JSON string")
    return I64F64.from_str(decoded)


def serialize_array(data: bytes) -> str:
    """Serialize bytes as a JSON string of 0x-prefixed hex."""
    return json.dumps("0x" + bytes(data).hex())


def deserialize_array(text: str, length: int) -> bytes:
    """Read exactly `length` bytes from a JSON hex string."""
    decoded = json.loads(text)
    if not isinstance(decoded, str):
        raise ValueError("expected a JSON string")
    digits = decoded[2:] if decoded.startswith("0x") else decoded
    try:
        data = bytes.fromhex(digits)
    except ValueError as error:
        raise ValueError(f"invalid hex string: {decoded!r}") from error
    if len(data) != length:
        raise ValueError(f"expected {length} bytes, got {len(data)}")
    return data