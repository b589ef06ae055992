import pytest

from localcurrency.fixedpoint import I64F64
from localcurrency.sybil import (
    CallMetadata,
    IssuePersonhoodUniquenessRatingCall,
    MultiLocation,
    PersonhoodUniquenessRating,
    SybilResponse,
    SybilResponseCall,
    request_hash,
    sibling_junction,
)

HASH_A = bytes(range(32))
HASH_B = bytes(range(32, 64))


def test_call_metadata_weight():
    assert CallMetadata(1, 1, 5_000_000).weight() == 5_000_000


def test_issue_call_index_and_hash():
    meta = CallMetadata(3, 4, 10)
    call = IssuePersonhoodUniquenessRatingCall(7, b"request", meta)
    assert call.call_index == bytes([7, 0])
    assert call.request_hash() == request_hash(b"request")


def test_request_hash_distinguishes_requests():
    first = request_hash(b"a")
    second = request_hash(b"b")
    assert len(first) == 32
    assert first != second
    assert request_hash(b"a") == first


def test_response_call_from_metadata():
    rating = PersonhoodUniquenessRating(1, 2, (HASH_A,))
    meta = CallMetadata(9, 2, 5_000_000)
    call = SybilResponseCall.from_metadata(meta, HASH_B, rating)
    assert call.call_index == bytes([9, 2])
    assert call.weight() == 5_000_000
    assert call.request_hash == HASH_B
    assert call.confidence == rating


def test_response_call_encoding_layout():
    rating = PersonhoodUniquenessRating(2, 3, (HASH_A, HASH_B))
    call = SybilResponseCall.from_metadata(CallMetadata(1, 5, 0), HASH_B, rating)
    encoded = call.encode()
    assert encoded[:2] == bytes([1, 5])
    assert encoded[2:34] == HASH_B
    assert encoded[34:] == rating.encode()


def test_weight_is_not_encoded():
    rating = PersonhoodUniquenessRating(1, 1, ())
    light = SybilResponseCall.from_metadata(CallMetadata(1, 1, 1), HASH_A, rating)
    heavy = SybilResponseCall.from_metadata(CallMetadata(1, 1, 999), HASH_A, rating)
    assert light.encode() == heavy.encode()
    assert light != heavy


def test_rating_encoding_pinned():
    assert PersonhoodUniquenessRating(1, 1, ()).encode() == bytes.fromhex("010000000100000000")


def test_rating_encoding_holds_proofs():
    rating = PersonhoodUniquenessRating(1, 1, (HASH_A, HASH_B))
    encoded = rating.encode()
    assert encoded.endswith(HASH_A + HASH_B)
    assert rating.proofs == (HASH_A, HASH_B)


def test_rating_rejects_short_proof():
    with pytest.raises(ValueError):
        PersonhoodUniquenessRating(1, 1, (b"short",))


def test_as_ratio():
    assert PersonhoodUniquenessRating(1, 1, ()).as_ratio() == I64F64.from_num(1)
    assert PersonhoodUniquenessRating(1, 2, ()).as_ratio() == I64F64.from_num(0.5)
    assert PersonhoodUniquenessRating(2, 4, ()).as_ratio() == PersonhoodUniquenessRating(1, 2, ()).as_ratio()


def test_as_ratio_without_ceremonies_is_zero():
    assert PersonhoodUniquenessRating(3, 0, ()).as_ratio() == I64F64.from_num(0)


def test_sibling_junction():
    location = sibling_junction(1863)
    assert location == MultiLocation(parents=1, interior=(("Parachain", 1863),))
    assert location.parents == 1


def test_sybil_response_default():
    assert SybilResponse.default() is SybilResponse.FAUCET
    assert SybilResponse.FAUCET.value == 1