import pytest

from localcurrency.community_types import (
    CACHE_DIRTY_KEY,
    CidName,
    CommunityIdentifier,
    CommunityMetadata,
    Location,
)
from localcurrency.fixedpoint import I64F64
from localcurrency.registry import Communities
from localcurrency.rpc import (
    CIDS_KEY,
    CommunitiesRpc,
    CommunitiesRuntimeApi,
    OffchainIndexingDisabled,
    OffchainStorageNotFound,
    OtherError,
    RuntimeCallError,
)

HEAD = b"\x07" * 32
MASTER = b"\x01" * 32
BOB = b"\x02" * 32
CHARLIE = b"\x03" * 32


class RegistryRuntime(CommunitiesRuntimeApi):
    def __init__(self, registry, head=HEAD):
        self.registry = registry
        self.head = head

    def best_hash(self):
        return self.head

    def _state(self, at):
        if at != self.head:
            raise LookupError(f"unknown block {at!r}")
        return self.registry

    def get_cids(self, at):
        return self._state(at).get_cids()

    def get_name(self, at, cid):
        return self._state(at).get_name(cid)

    def get_locations(self, at, cid):
        return self._state(at).get_locations(cid)

    def get_all_balances(self, at, account):
        return self._state(at).get_all_balances(account)


def make_registry():
    return Communities(MASTER, min_solar_trip_time_s=1, max_speed_mps=83)


def register(registry, lat, lon):
    return registry.new_community(
        MASTER, Location(lat=lat, lon=lon), [MASTER, BOB, CHARLIE], CommunityMetadata()
    )


def make_rpc(registry, offchain_indexing=True, deny_unsafe=True):
    return CommunitiesRpc(
        RegistryRuntime(registry), registry.offchain_index, offchain_indexing, deny_unsafe
    )


def test_caching_works():
    rpc = CommunitiesRpc(None, {}, True, True)
    cid_names = [CidName(CommunityIdentifier(), "hello world")]

    assert rpc.cache_dirty()
    rpc.set_storage(CIDS_KEY, cid_names)
    rpc.set_storage(CACHE_DIRTY_KEY, False)
    assert not rpc.cache_dirty()
    assert rpc.get_storage(CIDS_KEY) == cid_names


def test_get_storage_missing_key_is_none():
    rpc = CommunitiesRpc(None, {}, True, True)
    assert rpc.get_storage(CIDS_KEY) is None


def test_unreadable_dirty_bit_counts_as_dirty():
    rpc = CommunitiesRpc(None, {CACHE_DIRTY_KEY: b"\x05"}, True, True)
    assert rpc.cache_dirty() is True


def test_locations_round_trip_through_storage():
    rpc = CommunitiesRpc(None, {}, True, True)
    cid = CommunityIdentifier(b"u0qjb", b"\x01\x02\x03\x04")
    locations = [Location(lat=1.5, lon=-2.25), Location(lat=-10, lon=20)]
    rpc.set_storage(CIDS_KEY + cid.encode(), locations)
    assert rpc.get_storage(CIDS_KEY + cid.encode()) == locations


def test_get_all_refreshes_dirty_cache():
    registry = make_registry()
    cid = register(registry, 0, 0)
    rpc = make_rpc(registry)

    assert rpc.cache_dirty()
    assert rpc.communities_get_all() == [CidName(cid, "Default")]
    assert not rpc.cache_dirty()


def test_get_all_picks_up_new_communities():
    registry = make_registry()
    cid = register(registry, 0, 0)
    rpc = make_rpc(registry)
    assert len(rpc.communities_get_all()) == 1

    cid2 = register(registry, 1, 1)
    assert rpc.cache_dirty()
    assert rpc.communities_get_all() == [CidName(cid, "Default"), CidName(cid2, "Default")]


def test_get_all_without_communities_is_empty():
    rpc = make_rpc(make_registry())
    assert rpc.communities_get_all() == []


def test_get_locations_from_cache():
    registry = make_registry()
    cid = register(registry, 0, 0)
    rpc = make_rpc(registry)
    assert rpc.communities_get_locations(cid) == [Location(lat=0, lon=0)]


def test_get_locations_of_unknown_cid_fails():
    registry = make_registry()
    register(registry, 0, 0)
    rpc = make_rpc(registry)
    unknown = CommunityIdentifier(b"gbsuv", b"\xff\xff\xff\xff")
    with pytest.raises(OffchainStorageNotFound) as info:
        rpc.communities_get_locations(unknown)
    assert info.value.code == 3


def test_offchain_indexing_disabled():
    rpc = make_rpc(make_registry(), offchain_indexing=False)
    with pytest.raises(OffchainIndexingDisabled) as info:
        rpc.communities_get_all()
    assert info.value.to_error_object() == {
        "code": 2,
        "message": "This rpc is not allowed with offchain-indexing disabled: communities_getAll",
    }
    with pytest.raises(OffchainIndexingDisabled):
        rpc.communities_get_locations(CommunityIdentifier())


def test_unknown_block_is_a_runtime_error():
    rpc = make_rpc(make_registry())
    with pytest.raises(RuntimeCallError) as info:
        rpc.communities_get_all(at=b"\x09" * 32)
    assert info.value.code == 1
    assert str(info.value).startswith("Error while calling into the runtime:")


def test_get_all_balances_denied_when_unsafe():
    rpc = make_rpc(make_registry(), deny_unsafe=True)
    with pytest.raises(PermissionError):
        rpc.communities_get_all_balances(MASTER)


def test_get_all_balances_allowed():
    registry = make_registry()
    cid = register(registry, 0, 0)
    registry.balances.issue(cid, BOB, I64F64.from_num(100))
    rpc = make_rpc(registry, deny_unsafe=False)

    balances = rpc.communities_get_all_balances(BOB)
    assert len(balances) == 1
    assert balances[0][0] == cid
    assert balances[0][1].principal.to_bits() == I64F64.from_num(100).to_bits()
    assert rpc.communities_get_all_balances(CHARLIE) == []


def test_other_error_code_and_message():
    error = OtherError("boom")
    assert error.code == 100
    assert str(error) == "Other error: boom"