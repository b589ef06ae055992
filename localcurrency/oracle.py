"""Personhood uniqueness ratings from proofs of ceremony attendance, sent back to sibling chains."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Optional, Protocol

from .ceremonies import ProofOfAttendance, Reputation
from .community_types import CommunityIdentifier
from .scale import encode_u32
from .sybil import (
    CallMetadata,
    MultiLocation,
    PersonhoodUniquenessRating,
    SybilResponseCall,
    request_hash,
    sibling_junction,
)

log = logging.getLogger("localcurrency")

U32_MAX = (1 << 32) - 1


class OracleError(Exception):
    """A proof or request was rejected by the personhood oracle."""


class AttendanceUsed(OracleError):
    """The former attendance is not verified or is already linked to another account."""


class BadSignature(OracleError):
    """The attendee signature does not match."""


class UnableToDecodeRequest(OracleError):
    """The rating request could not be decoded."""


class _CommunityRegistry(Protocol):
    def community_identifiers(self) -> list[CommunityIdentifier]: ...


ReputationLookup = Callable[[tuple[CommunityIdentifier, int], bytes], Reputation]
SignatureVerifier = Callable[[bytes, bytes, bytes], bool]
Sender = Callable[[MultiLocation, dict], None]


@dataclass(frozen=True)
class OracleEvent:
    """Something the oracle did, with the request hash and the parachain involved."""

    REQUEST_RECEIVED: ClassVar[str] = "personhood_uniqueness_rating_request_received"
    SENT_SUCCESS: ClassVar[str] = "personhood_uniqueness_rating_sent_success"
    SENT_FAILURE: ClassVar[str] = "personhood_uniqueness_rating_sent_failure"

    kind: str
    request_hash: bytes
    para_id: int
    error: Optional[Any] = None


class PersonhoodOracle:
    """Rates the uniqueness of a person from their proofs of attendance."""

    def __init__(
        self,
        communities: _CommunityRegistry,
        current_ceremony_index: int,
        reputation_lookup: ReputationLookup,
        signature_verifier: SignatureVerifier,
        sender: Sender,
    ) -> None:
        self.communities = communities
        self.current_ceremony_index = current_ceremony_index
        self.reputation_lookup = reputation_lookup
        self.signature_verifier = signature_verifier
        self.sender = sender
        self.events: list[OracleEvent] = []

    def verify(self, proofs: list[ProofOfAttendance]) -> PersonhoodUniquenessRating:
        """Rate the valid proofs among `proofs`; invalid or foreign proofs are skipped."""
        current = self.current_ceremony_index
        c_index_min = current
        attested = []
        known = self.communities.community_identifiers()

        for proof in proofs:
            if proof.community_identifier not in known:
                log.warning(
                    "Received ProofOfAttendance for unknown cid: %r", proof.community_identifier
                )
                continue
            try:
                self._verify_proof_of_attendance(proof)
            except OracleError as error:
                log.debug("rejected proof of attendance: %s", error)
                continue
            c_index_min = min(proof.ceremony_index, c_index_min)
            attested.append(proof.hash())

        last_n_ceremonies = current - c_index_min
        if last_n_ceremonies < 0:
            raise ValueError("proofs can't be valid with a bogus ceremony index")
        return PersonhoodUniquenessRating(len(attested), last_n_ceremonies, tuple(attested))

    def _verify_proof_of_attendance(self, proof: ProofOfAttendance) -> None:
        reputation = self.reputation_lookup(
            (proof.community_identifier, proof.ceremony_index), proof.attendee_public
        )
        if reputation != Reputation.VERIFIED_UNLINKED:
            raise AttendanceUsed(f"reputation is {reputation.name}")
        self._verify_attendee_signature(proof)

    def _verify_attendee_signature(self, proof: ProofOfAttendance) -> None:
        message = bytes(proof.prover_public) + encode_u32(proof.ceremony_index)
        if not self.signature_verifier(
            bytes(proof.attendee_signature), message, bytes(proof.attendee_public)
        ):
            raise BadSignature("attendee signature does not verify")

    def issue_personhood_uniqueness_rating(
        self, para_id: int, rating_request: bytes, response: CallMetadata
    ) -> None:
        """Rate the encoded proofs in `rating_request` and send the rating to parachain `para_id`."""
        if not 0 <= para_id <= U32_MAX:
            raise UnableToDecodeRequest(f"invalid parachain id {para_id}")
        rating_request = bytes(rating_request)
        try:
            proofs = ProofOfAttendance.decode_list(rating_request)
        except (ValueError, IndexError) as error:
            raise UnableToDecodeRequest(str(error)) from error

        log.debug("received personhood rating request from parachain: %d", para_id)
        log.debug("received personhood rating request: %r", proofs)

        confidence = self.verify(proofs)
        hashed = request_hash(rating_request)
        call = SybilResponseCall.from_metadata(response, hashed, confidence)
        message = {
            "origin_type": "SovereignAccount",
            "require_weight_at_most": response.weight(),
            "call": call.encode(),
        }

        try:
            self.sender(sibling_junction(para_id), message)
        except Exception as error:
            self.events.append(OracleEvent(OracleEvent.SENT_FAILURE, hashed, para_id, error))
        else:
            self.events.append(OracleEvent(OracleEvent.SENT_SUCCESS, hashed, para_id))