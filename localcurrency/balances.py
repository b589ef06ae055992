"""Balance entries and conversion between fixed-point balances and 18-decimal integers."""

from __future__ import annotations

from dataclasses import dataclass, field

from .fixedpoint import I64F64

BalanceType = I64F64
Demurrage = I64F64

# I64F64 covers 2**-64 up to about 9.2e18; 18 decimals keep conversions clear of overflow.
ENCOINTER_BALANCE_DECIMALS = 18
ONE_ENCOINTER_BALANCE_UNIT = 10**ENCOINTER_BALANCE_DECIMALS

_U64_MASK = (1 << 64) - 1
_U128_LIMIT = 1 << 128
_I128_MAX = (1 << 127) - 1
_I128_MIN = -(1 << 127)


@dataclass(frozen=True)
class BalanceEntry:
    """The balance of an account after its last adjustment and the block of that adjustment."""

    principal: I64F64 = field(default_factory=lambda: I64F64(0))
    last_update: int = 0


def balance_to_u128(balance: I64F64) -> int:
    """Convert a fixed-point balance into an integer of 18-decimal units, truncating."""
    bits = balance.to_bits()
    if bits < 0:
        raise ValueError(f"cannot convert a negative balance to an unsigned amount: {balance}")
    integer_part = bits >> 64
    fraction_bits = bits & _U64_MASK
    return integer_part * ONE_ENCOINTER_BALANCE_UNIT + (
        (fraction_bits * ONE_ENCOINTER_BALANCE_UNIT) >> 64
    )


def u128_to_balance(value: int) -> I64F64:
    """Convert an integer of 18-decimal units into a fixed-point balance."""
    if not 0 <= value < _U128_LIMIT:
        raise ValueError(f"{value} is not a 128-bit unsigned integer")

    # The low 64 bits, divided by one unit, carry the fractional part.
    low = value & _U64_MASK
    fraction = I64F64.from_bits((low << 64) // ONE_ENCOINTER_BALANCE_UNIT)

    # The high bits are scaled by 2**64 / unit, held with 62 fractional bits.
    conversion_bits = ((1 << 64 << 62) // ONE_ENCOINTER_BALANCE_UNIT) << 2
    high = value >> 64
    product = ((high << 64) * conversion_bits) >> 64
    product = max(_I128_MIN, min(_I128_MAX, product))

    return fraction + I64F64.from_bits(product)