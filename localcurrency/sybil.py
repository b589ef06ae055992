"""Personhood uniqueness ratings and the cross-chain calls that request and return them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .fixedpoint import I64F64
from .rng import blake2_256
from .scale import encode_bytes, encode_u32, encode_vec

_HASH_LENGTH = 32


def request_hash(request: bytes) -> bytes:
    """Hash of an opaque request, taken over its length-prefixed encoding."""
    return blake2_256(encode_bytes(bytes(request)))


@dataclass(frozen=True)
class CallMetadata:
    """What is needed to ask for a return message: target pallet, call and weight."""

    pallet_index: int = 0
    call_index: int = 0
    require_weight_at_most: int = 0

    def weight(self) -> int:
        return self.require_weight_at_most


@dataclass(frozen=True)
class IssuePersonhoodUniquenessRatingCall:
    """A call asking the personhood oracle for a rating of the proofs in `request`."""

    personhood_oracle_index: int = 0
    request: bytes = b""
    response_meta: CallMetadata = field(default_factory=CallMetadata)

    @property
    def call_index(self) -> bytes:
        # The rating request is the first call of the oracle pallet.
        return bytes([self.personhood_oracle_index, 0])

    def request_hash(self) -> bytes:
        return request_hash(self.request)


class SybilResponse(Enum):
    """Dispatchables that an oracle response may call."""

    FAUCET = 1

    @classmethod
    def default(cls) -> SybilResponse:
        return cls.FAUCET


@dataclass(frozen=True)
class PersonhoodUniquenessRating:
    """How many of the last ceremonies were attested, with the hashes of the proofs."""

    attested: int = 0
    last_n_ceremonies: int = 0
    proofs: tuple[bytes, ...] = ()

    def __post_init__(self) -> None:
        proofs = tuple(bytes(proof) for proof in self.proofs)
        if any(len(proof) != _HASH_LENGTH for proof in proofs):
            raise ValueError(f"proof hashes must be {_HASH_LENGTH} bytes long")
        object.__setattr__(self, "proofs", proofs)

    def as_ratio(self) -> I64F64:
        """Attested ceremonies divided by considered ceremonies; zero if none were considered."""
        if self.last_n_ceremonies == 0:
            return I64F64(0)
        return I64F64.from_bits((self.attested << 64) // self.last_n_ceremonies)

    def encode(self) -> bytes:
        return (
            encode_u32(self.attested)
            + encode_u32(self.last_n_ceremonies)
            + encode_vec(self.proofs, bytes)
        )


@dataclass(frozen=True)
class SybilResponseCall:
    """The oracle's response: a call to the requesting chain carrying the rating."""

    call_index: bytes = bytes(2)
    request_hash: bytes = bytes(_HASH_LENGTH)
    confidence: PersonhoodUniquenessRating = field(default_factory=PersonhoodUniquenessRating)
    xcm_weight: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "call_index", bytes(self.call_index))
        object.__setattr__(self, "request_hash", bytes(self.request_hash))
        if len(self.call_index) != 2:
            raise ValueError("call index must be 2 bytes long")
        if len(self.request_hash) != _HASH_LENGTH:
            raise ValueError(f"request hash must be {_HASH_LENGTH} bytes long")

    @classmethod
    def from_metadata(
        cls,
        response: CallMetadata,
        request_hash: bytes,
        confidence: PersonhoodUniquenessRating,
    ) -> SybilResponseCall:
        return cls(
            call_index=bytes([response.pallet_index, response.call_index]),
            request_hash=request_hash,
            confidence=confidence,
            xcm_weight=response.require_weight_at_most,
        )

    def weight(self) -> int:
        return self.xcm_weight

    def encode(self) -> bytes:
        """Encode the call; the weight is not part of the encoding."""
        return self.call_index + self.request_hash + self.confidence.encode()


@dataclass(frozen=True)
class MultiLocation:
    """A location relative to this chain: a number of parent hops and interior junctions."""

    parents: int = 0
    interior: tuple[tuple[str, int], ...] = ()


def sibling_junction(para_id: int) -> MultiLocation:
    """The location of the sibling parachain with id `para_id`."""
    return MultiLocation(parents=1, interior=(("Parachain", para_id),))