import pytest

from localcurrency.ceremonies import ProofOfAttendance, Reputation, encode_proofs
from localcurrency.oracle import OracleEvent, PersonhoodOracle, UnableToDecodeRequest
from localcurrency.sybil import (
    CallMetadata,
    PersonhoodUniquenessRating,
    SybilResponseCall,
    request_hash,
    sibling_junction,
)

PROOF_HEX = (
    "d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d"
    "02000000"
    "2cbd65a5f087b3d60a"
    "d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d"
    "01"
    "72b56983d1fd9d53043ffd1406427da13a350b0d81e89a81c3061e9bca09825a"
    "4fdfb0a8d5baf0fb901a4e0155195703f3d60c51b5e1a8be16b166779798e789"
)


class FakeRegistry:
    def __init__(self, cids):
        self._cids = list(cids)

    def community_identifiers(self):
        return list(self._cids)


def proof_of_attendance():
    return ProofOfAttendance.decode(bytes.fromhex(PROOF_HEX))


def make_oracle(cids=(), index=1, reputation=None, verifier=None, sender=None):
    return PersonhoodOracle(
        FakeRegistry(cids),
        index,
        reputation or (lambda key, account: Reputation.UNVERIFIED),
        verifier or (lambda signature, message, account: True),
        sender or (lambda destination, message: None),
    )


def unlinked_for(proof):
    expected = ((proof.community_identifier, proof.ceremony_index), proof.attendee_public)

    def lookup(key, account):
        return Reputation.VERIFIED_UNLINKED if (key, account) == expected else Reputation.UNVERIFIED

    return lookup


def test_proof_fixture_decodes():
    proof = proof_of_attendance()
    assert proof.ceremony_index == 2
    assert proof.prover_public == proof.attendee_public
    assert proof.attendee_signature[0] == 1


def test_create_proof_of_personhood_confidence_works():
    proof = proof_of_attendance()
    calls = []

    def verifier(signature, message, account):
        calls.append((signature, message, account))
        return True

    oracle = make_oracle(
        cids=[proof.community_identifier], index=3, reputation=unlinked_for(proof), verifier=verifier
    )
    assert oracle.verify([proof]) == PersonhoodUniquenessRating(1, 1, (proof.hash(),))
    assert calls == [
        (proof.attendee_signature, proof.prover_public + b"\x02\x00\x00\x00", proof.attendee_public)
    ]


def test_unknown_community_is_skipped():
    proof = proof_of_attendance()
    oracle = make_oracle(cids=[], index=3, reputation=unlinked_for(proof))
    assert oracle.verify([proof]) == PersonhoodUniquenessRating(0, 0, ())


def test_used_attendance_is_not_counted():
    proof = proof_of_attendance()
    oracle = make_oracle(cids=[proof.community_identifier], index=3)
    assert oracle.verify([proof]) == PersonhoodUniquenessRating(0, 0, ())


def test_bad_signature_is_not_counted():
    proof = proof_of_attendance()
    oracle = make_oracle(
        cids=[proof.community_identifier],
        index=3,
        reputation=unlinked_for(proof),
        verifier=lambda signature, message, account: False,
    )
    assert oracle.verify([proof]) == PersonhoodUniquenessRating(0, 0, ())


def test_issue_proof_of_personhood_is_ok():
    sent = []
    oracle = make_oracle(sender=lambda destination, message: sent.append((destination, message)))
    request = encode_proofs([proof_of_attendance()])
    meta = CallMetadata(1, 1, 5_000_000)

    oracle.issue_personhood_uniqueness_rating(1863, request, meta)

    hashed = request_hash(request)
    assert oracle.events == [OracleEvent(OracleEvent.SENT_SUCCESS, hashed, 1863)]
    assert len(sent) == 1
    destination, message = sent[0]
    assert destination == sibling_junction(1863)
    assert message["require_weight_at_most"] == 5_000_000
    assert message["call"][:2] == bytes([1, 1])
    assert message["call"] == SybilResponseCall.from_metadata(
        meta, hashed, PersonhoodUniquenessRating()
    ).encode()


def test_send_failure_is_recorded():
    failure = RuntimeError("unroutable")

    def sender(destination, message):
        raise failure

    oracle = make_oracle(sender=sender)
    request = encode_proofs([proof_of_attendance()])
    oracle.issue_personhood_uniqueness_rating(7, request, CallMetadata(1, 1, 10))
    assert oracle.events == [
        OracleEvent(OracleEvent.SENT_FAILURE, request_hash(request), 7, failure)
    ]


def test_undecodable_request_raises():
    oracle = make_oracle()
    with pytest.raises(UnableToDecodeRequest):
        oracle.issue_personhood_uniqueness_rating(1863, b"\x04\x01\x02", CallMetadata(1, 1, 1))
    assert oracle.events == []


def test_invalid_para_id_raises():
    oracle = make_oracle()
    with pytest.raises(UnableToDecodeRequest):
        oracle.issue_personhood_uniqueness_rating(-1, b"\x00", CallMetadata(1, 1, 1))