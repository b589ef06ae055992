"""Base58 (Bitcoin alphabet) verification, encoding and decoding."""

from __future__ import annotations

ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"

_DECODE_MAP = {char: value for value, char in enumerate(ALPHABET)}
_ASCII_DECODE_MAP = {ord(char): value for char, value in _DECODE_MAP.items()}


class Bs58Error(ValueError):
    """A character at `index` is not acceptable base58."""

    description = "invalid base58 character"

    def __init__(self, index: int) -> None:
        super().__init__(f"{self.description} at index {index}")
        self.index = index

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.index == other.index  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.index))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.index})"


class NonAsciiCharacter(Bs58Error):
    """Non ascii character at index."""

    description = "non ascii character"


class NonBs58Character(Bs58Error):
    """Non bs58 character at index."""

    description = "non bs58 character"


class Bs58DecodeError(ValueError):
    """Decoding failed because `character` at `index` is not in the alphabet."""

    def __init__(self, character: str, index: int) -> None:
        super().__init__(f"provided string contained invalid character {character!r} at index {index}")
        self.character = character
        self.index = index

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, Bs58DecodeError)
            and self.character == other.character
            and self.index == other.index
        )

    def __hash__(self) -> int:
        return hash((self.character, self.index))


def verify(data: bytes | str) -> None:
    """Check that every byte of `data` is a base58 character; raise Bs58Error otherwise."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    for index, byte in enumerate(data):
        if byte > 127:
            raise NonAsciiCharacter(index & 0xFF)
        if byte not in _ASCII_DECODE_MAP:
            raise NonBs58Character(index & 0xFF)


def encode(data: bytes) -> str:
    """Encode bytes as a base58 string."""
    data = bytes(data)
    zeros = len(data) - len(data.lstrip(b"\x00"))
    value = int.from_bytes(data, "big")
    digits = []
    while value:
        value, remainder = divmod(value, 58)
        digits.append(ALPHABET[remainder])
    return "1" * zeros + "".join(reversed(digits))


def decode(text: str) -> bytes:
    """Decode a base58 string into bytes."""
    value = 0
    for index, char in enumerate(text):
        digit = _DECODE_MAP.get(char)
        if digit is None:
            raise Bs58DecodeError(char, index)
        value = value * 58 + digit
    zeros = len(text) - len(text.lstrip("1"))
    body = value.to_bytes((value.bit_length() + 7) // 8, "big")
    return b"\x00" * zeros + body