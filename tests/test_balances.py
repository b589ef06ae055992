import pytest

from localcurrency.balances import (
    ONE_ENCOINTER_BALANCE_UNIT,
    BalanceEntry,
    balance_to_u128,
    u128_to_balance,
)
from localcurrency.fixedpoint import I64F64


@pytest.mark.parametrize(
    "balance, expected",
    [
        (100_000_000_000, 0.0000001),
        (1_000_000_000_000_000_000, 1.0),
        (100_000_000_000_000_000, 0.1),
        (12_500_011_800_000_000, 0.0125000118),
    ],
)
def test_u128_to_balance_type_conversion_works(balance, expected):
    assert u128_to_balance(balance).to_float() == pytest.approx(expected, abs=1.0e-12)


def test_u128_to_balance_type_conversion_does_not_overflow():
    result = u128_to_balance(123_456_000_000_000_000_000).to_float()
    assert result == pytest.approx(123.456, abs=1.0e-12)


@pytest.mark.parametrize(
    "balance, expected",
    [
        (1.0, 1_000_000_000_000_000_000),
        (0.1, 100_000_000_000_000_000),
        (123.456, 123_456_000_000_000_000_000),
    ],
)
def test_balance_type_to_u128_conversion_works(balance, expected):
    assert abs(balance_to_u128(I64F64.from_num(balance)) - expected) <= 10000


def test_one_unit_converts_exactly():
    assert balance_to_u128(I64F64.from_num(1)) == ONE_ENCOINTER_BALANCE_UNIT
    assert u128_to_balance(ONE_ENCOINTER_BALANCE_UNIT) == I64F64.from_num(1)


def test_zero_converts_to_zero():
    assert balance_to_u128(I64F64.from_num(0)) == 0
    assert u128_to_balance(0) == I64F64.from_num(0)


@pytest.mark.parametrize("amount", [1, 10**17, 5 * 10**18, 987_654_321_000_000_000_000])
def test_round_trip_stays_close(amount):
    back = balance_to_u128(u128_to_balance(amount))
    assert abs(back - amount) <= 10000


def test_negative_balance_is_rejected():
    with pytest.raises(ValueError):
        balance_to_u128(I64F64.from_num(-1))


@pytest.mark.parametrize("amount", [-1, 1 << 128])
def test_out_of_range_amount_is_rejected(amount):
    with pytest.raises(ValueError):
        u128_to_balance(amount)


def test_balance_entry_default_is_zero():
    entry = BalanceEntry()
    assert entry.principal == I64F64.from_num(0)
    assert entry.last_update == 0
    assert BalanceEntry(I64F64.from_num(3), 7) == BalanceEntry(I64F64.from_num(3), 7)