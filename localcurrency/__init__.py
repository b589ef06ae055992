"""Primitives, an in-memory community registry, a cached query layer and a personhood oracle for community currencies."""

__version__ = "1.0.0"

__all__ = [
    "balances",
    "bazaar",
    "bs58",
    "ceremonies",
    "common",
    "community_types",
    "fixedpoint",
    "geo",
    "oracle",
    "permutation",
    "registry",
    "rng",
    "rpc",
    "scale",
    "sybil",
]