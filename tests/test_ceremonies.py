import dataclasses

import pytest

from localcurrency.ceremonies import (
    REPUTATION_CACHE_DIRTY_KEY,
    STORAGE_REPUTATION_KEY,
    AssignmentCount,
    ClaimOfAttendance,
    ProofOfAttendance,
    Reputation,
    encode_proofs,
    reputation_cache_dirty_key,
    reputation_cache_key,
)
from localcurrency.community_types import CommunityIdentifier, Location
from localcurrency.rng import blake2_256
from localcurrency.scale import encode_bytes

PROOF_HEX = (
    "d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d020000002cbd65a5f087b3d60a"
    "d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d0172b56983d1fd9d53043ffd14"
    "06427da13a350b0d81e89a81c3061e9bca09825a4fdfb0a8d5baf0fb901a4e0155195703f3d60c51b5e1a8be16"
    "b166779798e789"
)
ALICE = bytes.fromhex("d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d")
BOB = b"\x02" * 32


def toy_sign(account, message):
    return blake2_256(account + message)


def toy_verify(signature, message, account):
    return signature == blake2_256(account + message)


def make_claim(**overrides):
    claim = ClaimOfAttendance(
        claimant_public=ALICE,
        ceremony_index=1,
        community_identifier=CommunityIdentifier(),
        meetup_index=1,
        location=Location(),
        timestamp=0,
        number_of_participants_confirmed=3,
    )
    return dataclasses.replace(claim, **overrides)


def test_claim_verification_works():
    claim = make_claim()
    signed = dataclasses.replace(
        claim, claimant_signature=toy_sign(ALICE, claim.payload_encoded())
    )
    assert signed.verify_signature(toy_verify) is True


def test_unsigned_claim_does_not_verify():
    assert make_claim().verify_signature(toy_verify) is False


def test_changed_claim_no_longer_verifies():
    claim = make_claim()
    signed = dataclasses.replace(
        claim, claimant_signature=toy_sign(ALICE, claim.payload_encoded())
    )
    assert signed.with_participant_count(4).verify_signature(toy_verify) is False
    assert signed.with_claimant(BOB).verify_signature(toy_verify) is False


def test_with_helpers_replace_fields():
    claim = make_claim()
    assert claim.with_claimant(BOB).claimant_public == BOB
    assert claim.with_participant_count(5).number_of_participants_confirmed == 5
    assert claim.claimant_public == ALICE


def test_payload_starts_with_claimant_and_excludes_signature():
    claim = make_claim()
    payload = claim.payload_encoded()
    assert payload.startswith(ALICE)
    signed = dataclasses.replace(claim, claimant_signature=b"\x00" * 64)
    assert signed.payload_encoded() == payload


def test_proof_decodes_from_client_bytes():
    raw = bytes.fromhex(PROOF_HEX)
    proof = ProofOfAttendance.decode(raw)
    assert proof.prover_public == ALICE
    assert proof.attendee_public == ALICE
    assert proof.ceremony_index == 2
    assert proof.encode() == raw


def test_proof_hash_ignores_signature():
    proof = ProofOfAttendance.decode(bytes.fromhex(PROOF_HEX))
    other = dataclasses.replace(proof, attendee_signature=b"\x01" + b"\x00" * 64)
    assert proof.hash() == other.hash()
    assert len(proof.hash()) == 32


def test_proof_hash_depends_on_ceremony_index():
    proof = ProofOfAttendance.decode(bytes.fromhex(PROOF_HEX))
    later = dataclasses.replace(proof, ceremony_index=proof.ceremony_index + 1)
    assert proof.hash() != later.hash()
    assert proof.hash() == ProofOfAttendance.decode(proof.encode()).hash()


def test_proof_list_round_trip():
    proof = ProofOfAttendance.decode(bytes.fromhex(PROOF_HEX))
    decoded = ProofOfAttendance.decode_list(encode_proofs([proof, proof]))
    assert decoded == [proof, proof]
    assert ProofOfAttendance.decode_list(encode_proofs([])) == []


def test_truncated_proof_raises():
    raw = bytes.fromhex(PROOF_HEX)
    with pytest.raises(ValueError):
        ProofOfAttendance.decode(raw[:-1])


def test_unknown_signature_variant_raises():
    raw = bytearray(bytes.fromhex(PROOF_HEX))
    raw[32 + 4 + 9 + 32] = 9
    with pytest.raises(ValueError):
        ProofOfAttendance.decode(bytes(raw))


def test_reputation_default_and_encoding():
    assert Reputation.default() is Reputation.UNVERIFIED
    assert Reputation.VERIFIED_UNLINKED.encode() == bytes([Reputation.VERIFIED_UNLINKED.value])


def test_assignment_count_sums_participants():
    assert AssignmentCount(1, 2, 3, 4).number_of_participants() == 10
    assert AssignmentCount().number_of_participants() == 0


def test_reputation_cache_keys():
    assert reputation_cache_key(BOB) == STORAGE_REPUTATION_KEY + BOB
    assert reputation_cache_dirty_key(BOB) == encode_bytes(REPUTATION_CACHE_DIRTY_KEY) + BOB