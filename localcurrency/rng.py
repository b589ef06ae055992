"""Deterministic pseudo-random number stream derived from a seed hash."""

from __future__ import annotations

import hashlib
from typing import Callable, Sequence, TypeVar

T = TypeVar("T")

U32_MAX = (1 << 32) - 1


def blake2_256(data: bytes) -> bytes:
    """Unkeyed BLAKE2b hash with a 32-byte digest."""
    return hashlib.blake2b(bytes(data), digest_size=32).digest()


class RandomNumberGenerator:
    """A stream of random numbers drawn from a seed, rehashing when exhausted."""

    def __init__(self, seed: bytes, hasher: Callable[[bytes], bytes] = blake2_256) -> None:
        self.current = bytes(seed)
        self.offset = 0
        self.hasher = hasher

    def pick_u32(self, max_value: int) -> int:
        """Return a number at least zero, at most `max_value`."""
        if not 0 <= max_value <= U32_MAX:
            raise ValueError(f"{max_value} is not a 32-bit unsigned integer")
        leading_zeros = 32 - max_value.bit_length()
        needed = 4 - leading_zeros // 8
        top = ((1 << (needed * 8)) // (max_value + 1) * (max_value + 1) - 1) & U32_MAX
        while True:
            if self.offset + needed > len(self.current):
                self.current = self.hasher(self.current)
                self.offset = 0
            raw = int.from_bytes(self.current[self.offset : self.offset + needed], "little")
            self.offset += needed
            if raw <= top:
                return raw % (max_value + 1) if max_value < U32_MAX else raw

    def pick_non_zero_u32(self, max_value: int) -> int:
        """Return a number at least 1, at most `max_value`."""
        if max_value < 1:
            raise ValueError("max_value must be at least 1")
        return self.pick_u32(max_value - 1) + 1

    def pick_usize(self, max_value: int) -> int:
        """Return a number at least zero, at most `max_value`, drawn as a 32-bit value."""
        if max_value < 0:
            raise ValueError("max_value must not be negative")
        return self.pick_u32(max_value & U32_MAX)

    def pick_item(self, items: Sequence[T]) -> T | None:
        """Pick a random element of `items`, or None if it is empty."""
        if not items:
            return None
        return items[self.pick_usize(len(items) - 1)]