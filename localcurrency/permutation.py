"""Pseudo-random permutation of sequences driven by a RandomNumberGenerator."""

from __future__ import annotations

from typing import Iterable, TypeVar

from .rng import RandomNumberGenerator

T = TypeVar("T")


def random_permutation(items: Iterable[T], rng: RandomNumberGenerator) -> list[T] | None:
    """Return a random permutation of `items`, or None if there are none."""
    pool = list(items)
    if not pool:
        return None
    result = []
    while pool:
        index = rng.pick_usize(len(pool) - 1)
        last = pool.pop()
        if index < len(pool):
            result.append(pool[index])
            pool[index] = last
        else:
            result.append(last)
    return result