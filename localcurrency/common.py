"""Shared validation helpers, error types and the ceremony phase enum."""

from __future__ import annotations

from enum import Enum

from . import bs58
from .bs58 import Bs58Error, NonAsciiCharacter

# Only valid for the current IPFS hashing algorithm (sha256):
# 46 base58 characters, one byte each.
MAX_HASH_SIZE = 46


class IpfsValidationError(ValueError):
    """An IPFS content identifier failed validation."""

    description = "invalid ipfs cid"

    def __init__(self, value: object) -> None:
        super().__init__(f"{self.description}: {value}")
        self.value = value

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.value == other.value  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.value))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value!r})"


class InvalidLength(IpfsValidationError):
    """Invalid length supplied; it should be 46. `value` holds the length."""

    description = f"invalid length, expected {MAX_HASH_SIZE}"


class InvalidBase58(IpfsValidationError):
    """The cid holds a character that is not base58. `value` holds the Bs58Error."""

    description = "invalid base58"


class CommunityIdentifierError(ValueError):
    """The coordinates of a community identifier are out of range."""

    def __init__(self, message: str = "invalid coordinate range") -> None:
        super().__init__(message)

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other)

    def __hash__(self) -> int:
        return hash(type(self).__name__)


class CeremonyPhaseType(Enum):
    """The phases of a ceremony cycle, in order."""

    REGISTERING = 0
    ASSIGNING = 1
    ATTESTING = 2

    @classmethod
    def default(cls) -> CeremonyPhaseType:
        return cls.REGISTERING

    def encode(self) -> bytes:
        """Encode as the one-byte variant index."""
        return bytes([self.value])


def _as_bytes(data: bytes | str) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


def validate_ascii(data: bytes | str) -> None:
    """Raise NonAsciiCharacter with the index of the first byte above 127."""
    for index, byte in enumerate(_as_bytes(data)):
        if byte > 127:
            raise NonAsciiCharacter(index & 0xFF)


def validate_ipfs_cid(cid: bytes | str) -> None:
    """Check an IPFS cid for length and base58 alphabet; raise IpfsValidationError otherwise."""
    raw = _as_bytes(cid)
    if len(raw) != MAX_HASH_SIZE:
        raise InvalidLength(len(raw) & 0xFF)
    try:
        bs58.verify(raw)
    except Bs58Error as error:
        raise InvalidBase58(error) from error