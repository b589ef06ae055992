"""Ceremony data types: reputations, attendance claims and proofs, assignments."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Optional

from .common import CeremonyPhaseType
from .community_types import CommunityIdentifier, Location
from .rng import blake2_256
from .scale import decode_compact, encode_bytes, encode_u32, encode_u64, encode_vec

ACCOUNT_ID_LENGTH = 32

# Dirty bit key for reputation offchain storage.
REPUTATION_CACHE_DIRTY_KEY = b"reputation_cache_dirty"
STORAGE_PREFIX = b"ceremonies_storage"
STORAGE_REPUTATION_KEY = b"reputation"

# Payload length of each signature variant (ed25519, sr25519, ecdsa).
_SIGNATURE_LENGTHS = {0: 64, 1: 64, 2: 65}

SignatureVerifier = Callable[[bytes, bytes, bytes], bool]


def _encode_account(account: object) -> bytes:
    if isinstance(account, (bytes, bytearray, memoryview)):
        return bytes(account)
    encode = getattr(account, "encode", None)
    if callable(encode):
        return encode()
    raise TypeError(f"cannot encode account of type {type(account).__name__}")


class Reputation(Enum):
    """The standing of a former ceremony attendance."""

    UNVERIFIED = 0
    UNVERIFIED_REPUTABLE = 1
    VERIFIED_UNLINKED = 2
    VERIFIED_LINKED = 3

    @classmethod
    def default(cls) -> Reputation:
        return cls.UNVERIFIED

    def encode(self) -> bytes:
        return bytes([self.value])


class ParticipantType(Enum):
    """How a participant is registered for a ceremony."""

    BOOTSTRAPPER = 0
    REPUTABLE = 1
    ENDORSEE = 2
    NEWBIE = 3

    def encode(self) -> bytes:
        return bytes([self.value])


@dataclass(frozen=True)
class ClaimOfAttendance:
    """A participant's claim to have attended a meetup, optionally signed."""

    claimant_public: bytes
    ceremony_index: int
    community_identifier: CommunityIdentifier = field(default_factory=CommunityIdentifier)
    meetup_index: int = 0
    location: Location = field(default_factory=Location)
    timestamp: int = 0
    number_of_participants_confirmed: int = 0
    claimant_signature: Optional[bytes] = None

    def payload_encoded(self) -> bytes:
        """The bytes a claimant signs: every field except the signature."""
        return b"".join(
            (
                _encode_account(self.claimant_public),
                encode_u32(self.ceremony_index),
                self.community_identifier.encode(),
                encode_u64(self.meetup_index),
                self.location.encode(),
                encode_u64(self.timestamp),
                encode_u32(self.number_of_participants_confirmed),
            )
        )

    def with_claimant(self, claimant: bytes) -> ClaimOfAttendance:
        return replace(self, claimant_public=claimant)

    def with_participant_count(self, count: int) -> ClaimOfAttendance:
        return replace(self, number_of_participants_confirmed=count)

    def verify_signature(self, verifier: SignatureVerifier) -> bool:
        """Check the signature with `verifier(signature, message, account)`; False if unsigned."""
        if self.claimant_signature is None:
            return False
        return bool(verifier(self.claimant_signature, self.payload_encoded(), self.claimant_public))


@dataclass(frozen=True)
class CommunityReputation:
    """Reputation linked to a specific community."""

    community_identifier: CommunityIdentifier = field(default_factory=CommunityIdentifier)
    reputation: Reputation = Reputation.UNVERIFIED


def _take(data: bytes, offset: int, length: int) -> tuple[bytes, int]:
    end = offset + length
    if end > len(data):
        raise ValueError("not enough data to decode a proof of attendance")
    return data[offset:end], end


@dataclass(frozen=True)
class ProofOfAttendance:
    """Proof that an attendee took part in a ceremony, signed by the attendee.

    The signature is held in its encoded form: a variant byte followed by the raw signature.
    """

    prover_public: bytes
    ceremony_index: int
    community_identifier: CommunityIdentifier
    attendee_public: bytes
    attendee_signature: bytes

    def hash(self) -> bytes:
        """Hash of the proof without the signature, which is not deterministic."""
        return blake2_256(
            _encode_account(self.prover_public)
            + encode_u32(self.ceremony_index)
            + self.community_identifier.encode()
            + _encode_account(self.attendee_public)
        )

    def encode(self) -> bytes:
        return b"".join(
            (
                _encode_account(self.prover_public),
                encode_u32(self.ceremony_index),
                self.community_identifier.encode(),
                _encode_account(self.attendee_public),
                bytes(self.attendee_signature),
            )
        )

    @classmethod
    def _decode_at(cls, data: bytes, offset: int) -> tuple[ProofOfAttendance, int]:
        prover, offset = _take(data, offset, ACCOUNT_ID_LENGTH)
        index_bytes, offset = _take(data, offset, 4)
        cid_bytes, offset = _take(data, offset, 9)
        attendee, offset = _take(data, offset, ACCOUNT_ID_LENGTH)
        variant, _ = _take(data, offset, 1)
        length = _SIGNATURE_LENGTHS.get(variant[0])
        if length is None:
            raise ValueError(f"unknown signature variant {variant[0]}")
        signature, offset = _take(data, offset, 1 + length)
        proof = cls(
            prover_public=prover,
            ceremony_index=int.from_bytes(index_bytes, "little"),
            community_identifier=CommunityIdentifier(cid_bytes[:5], cid_bytes[5:]),
            attendee_public=attendee,
            attendee_signature=signature,
        )
        return proof, offset

    @classmethod
    def decode(cls, data: bytes) -> ProofOfAttendance:
        """Decode one proof from the start of `data`."""
        proof, _ = cls._decode_at(bytes(data), 0)
        return proof

    @classmethod
    def decode_list(cls, data: bytes) -> list[ProofOfAttendance]:
        """Decode a length-prefixed sequence of proofs."""
        data = bytes(data)
        count, offset = decode_compact(data, 0)
        proofs = []
        for _ in range(count):
            proof, offset = cls._decode_at(data, offset)
            proofs.append(proof)
        return proofs


@dataclass(frozen=True)
class AssignmentCount:
    """Number of assigned participants per participant type."""

    bootstrappers: int = 0
    reputables: int = 0
    endorsees: int = 0
    newbies: int = 0

    def number_of_participants(self) -> int:
        return self.bootstrappers + self.reputables + self.endorsees + self.newbies


@dataclass(frozen=True)
class AssignmentParams:
    """Parameters of a meetup assignment permutation.

    `m` is a random prime below the number of participants (for locations: the number of
    locations), `s1` and `s2` are random group elements in (0, m).
    """

    m: int = 0
    s1: int = 0
    s2: int = 0


@dataclass(frozen=True)
class Assignment:
    """Assignment parameters for each participant group and for locations."""

    bootstrappers_reputables: AssignmentParams = field(default_factory=AssignmentParams)
    endorsees: AssignmentParams = field(default_factory=AssignmentParams)
    newbies: AssignmentParams = field(default_factory=AssignmentParams)
    locations: AssignmentParams = field(default_factory=AssignmentParams)


@dataclass(frozen=True)
class AggregatedAccountDataPersonal:
    """Per-account ceremony data."""

    participant_type: ParticipantType
    meetup_index: Optional[int] = None
    meetup_location_index: Optional[int] = None
    meetup_time: Optional[int] = None
    meetup_registry: Optional[list[bytes]] = None


@dataclass(frozen=True)
class AggregatedAccountDataGlobal:
    """Ceremony state shared by all accounts."""

    ceremony_phase: CeremonyPhaseType = CeremonyPhaseType.REGISTERING
    ceremony_index: int = 0


@dataclass(frozen=True)
class AggregatedAccountData:
    """Global ceremony state together with optional per-account data."""

    global_: AggregatedAccountDataGlobal = field(default_factory=AggregatedAccountDataGlobal)
    personal: Optional[AggregatedAccountDataPersonal] = None


def reputation_cache_key(account: bytes) -> bytes:
    """Offchain storage key of an account's reputation cache."""
    return STORAGE_REPUTATION_KEY + _encode_account(account)


def reputation_cache_dirty_key(account: bytes) -> bytes:
    """Offchain storage key of an account's reputation cache dirty bit."""
    return encode_bytes(REPUTATION_CACHE_DIRTY_KEY) + _encode_account(account)


def encode_proofs(proofs: list[ProofOfAttendance]) -> bytes:
    """Encode a length-prefixed sequence of proofs."""
    return encode_vec(proofs, ProofOfAttendance.encode)