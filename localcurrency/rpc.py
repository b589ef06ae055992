"""Cached queries of the community registry for remote clients, and their error types."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import MutableMapping
from typing import Any, Callable, Optional

from .balances import BalanceEntry
from .community_types import CACHE_DIRTY_KEY, CidName, CommunityIdentifier, Location
from .fixedpoint import I64F64
from .scale import decode_compact, encode_bool, encode_str, encode_vec

log = logging.getLogger("localcurrency")

CIDS_KEY = b"cids"

_CID_LENGTH = 9
_I128_LENGTH = 16

RUNTIME_ERROR = 1
OFFCHAIN_INDEXING_DISABLED_ERROR = 2
STORAGE_NOT_FOUND_ERROR = 3
UNKNOWN_ERROR = 100


class RpcError(Exception):
    """An rpc call failed. `code` is the error code reported to the client."""

    code = UNKNOWN_ERROR
    template = "{0}"

    def __init__(self, detail: object) -> None:
        super().__init__(self.template.format(detail))
        self.detail = detail

    def to_error_object(self) -> dict[str, Any]:
        """The error as a JSON-RPC error object."""
        return {"code": self.code, "message": str(self)}


class RuntimeCallError(RpcError):
    """Calling into the runtime failed."""

    code = RUNTIME_ERROR
    template = "Error while calling into the runtime: {0}"


class OffchainIndexingDisabled(RpcError):
    """The call needs offchain indexing, which is disabled."""

    code = OFFCHAIN_INDEXING_DISABLED_ERROR
    template = "This rpc is not allowed with offchain-indexing disabled: {0}"


class OffchainStorageNotFound(RpcError):
    """An expected offchain storage entry is missing."""

    code = STORAGE_NOT_FOUND_ERROR
    template = "Offchain storage not found: {0}"


class OtherError(RpcError):
    """Any other failure."""

    code = UNKNOWN_ERROR
    template = "Other error: {0}"


class CommunitiesRuntimeApi(ABC):
    """Queries the runtime answers about communities, at a given block."""

    @abstractmethod
    def best_hash(self) -> bytes:
        """Hash of the best block, used when no block is given."""

    @abstractmethod
    def get_cids(self, at: bytes) -> list[CommunityIdentifier]:
        """Identifiers of all registered communities."""

    @abstractmethod
    def get_name(self, at: bytes, cid: CommunityIdentifier) -> Optional[str]:
        """Name of a community, or None if it does not exist."""

    @abstractmethod
    def get_locations(self, at: bytes, cid: CommunityIdentifier) -> list[Location]:
        """All meetup locations of a community."""

    @abstractmethod
    def get_all_balances(
        self, at: bytes, account: bytes
    ) -> list[tuple[CommunityIdentifier, BalanceEntry]]:
        """Balances of an account in every community it holds one in."""


# -- value codecs -----------------------------------------------------------------


def _encode_value(value: Any) -> bytes:
    if isinstance(value, bool):
        return encode_bool(value)
    if isinstance(value, str):
        return encode_str(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, (list, tuple)):
        return encode_vec(value, _encode_value)
    encode = getattr(value, "encode", None)
    if callable(encode):
        return encode()
    raise TypeError(f"cannot store a value of type {type(value).__name__}")


def _decode_bool(data: bytes) -> bool:
    if data == b"\x00":
        return False
    if data == b"\x01":
        return True
    raise ValueError(f"not an encoded bool: {data!r}")


def _take(data: bytes, offset: int, length: int) -> tuple[bytes, int]:
    end = offset + length
    if end > len(data):
        raise ValueError("not enough data")
    return data[offset:end], end


def _decode_str_at(data: bytes, offset: int) -> tuple[str, int]:
    length, offset = decode_compact(data, offset)
    raw, offset = _take(data, offset, length)
    return raw.decode("utf-8"), offset


def _decode_cid_at(data: bytes, offset: int) -> tuple[CommunityIdentifier, int]:
    raw, offset = _take(data, offset, _CID_LENGTH)
    return CommunityIdentifier(raw[:5], raw[5:]), offset


def _decode_cid_name_at(data: bytes, offset: int) -> tuple[CidName, int]:
    cid, offset = _decode_cid_at(data, offset)
    name, offset = _decode_str_at(data, offset)
    return CidName(cid=cid, name=name), offset


def _decode_location_at(data: bytes, offset: int) -> tuple[Location, int]:
    lat, offset = _take(data, offset, _I128_LENGTH)
    lon, offset = _take(data, offset, _I128_LENGTH)
    return (
        Location(
            lat=I64F64.from_bits(int.from_bytes(lat, "little", signed=True)),
            lon=I64F64.from_bits(int.from_bytes(lon, "little", signed=True)),
        ),
        offset,
    )


def _whole(decode_at: Callable[[bytes, int], tuple[Any, int]]) -> Callable[[bytes], Any]:
    def decode(data: bytes) -> Any:
        value, offset = decode_at(data, 0)
        if offset != len(data):
            raise ValueError("trailing bytes after value")
        return value

    return decode


def _list_of(decode_at: Callable[[bytes, int], tuple[Any, int]]) -> Callable[[bytes], list]:
    def decode_at_list(data: bytes, offset: int) -> tuple[list, int]:
        count, offset = decode_compact(data, offset)
        items = []
        for _ in range(count):
            item, offset = decode_at(data, offset)
            items.append(item)
        return items, offset

    return _whole(decode_at_list)


def _decoder_for(key: bytes) -> Callable[[bytes], Any]:
    if key == CACHE_DIRTY_KEY:
        return _decode_bool
    if key == CIDS_KEY:
        return _list_of(_decode_cid_name_at)
    if key.startswith(CIDS_KEY) and len(key) == len(CIDS_KEY) + _CID_LENGTH:
        return _list_of(_decode_location_at)
    if len(key) == _CID_LENGTH:
        return _whole(_decode_str_at)
    raise ValueError(f"no value type is known for storage key {key!r}")


def _locations_key(cid: CommunityIdentifier) -> bytes:
    return CIDS_KEY + cid.encode()


def _warn_storage_inconsistency(cid: CommunityIdentifier) -> None:
    log.warning(
        "Storage inconsistency. Could not find cid: %r in offchain storage. "
        "This is a fatal bug in the registry",
        cid,
    )


class CommunitiesRpc:
    """Answers community queries from an offchain cache, refreshing it when marked dirty."""

    def __init__(
        self,
        client: Optional[CommunitiesRuntimeApi],
        storage: MutableMapping[bytes, bytes],
        offchain_indexing: bool,
        deny_unsafe: bool,
    ) -> None:
        self.client = client
        self.storage = storage
        self.offchain_indexing = offchain_indexing
        self.deny_unsafe = deny_unsafe
        self._lock = threading.RLock()

    def cache_dirty(self) -> bool:
        """True if the runtime marked the cache dirty, or the dirty bit is missing or unreadable."""
        with self._lock:
            raw = self.storage.get(CACHE_DIRTY_KEY)
        if raw is None:
            log.warning("Cache dirty bit is none. This is fine if no community is registered.")
            return True
        try:
            return _decode_bool(bytes(raw))
        except ValueError as error:
            log.error("Cache dirty bit: %s", error)
            log.info("Defaulting to dirty == true")
            return True

    def get_storage(self, key: bytes) -> Any:
        """Decoded value stored under `key`, or None; raises ValueError if it cannot be decoded."""
        key = bytes(key)
        with self._lock:
            raw = self.storage.get(key)
        if raw is None:
            return None
        decode = _decoder_for(key)
        try:
            return decode(bytes(raw))
        except (ValueError, IndexError, UnicodeDecodeError) as error:
            raise ValueError(f"cannot decode storage value under {key!r}: {error}") from error

    def set_storage(self, key: bytes, value: Any) -> None:
        """Encode `value` and store it under `key`."""
        encoded = _encode_value(value)
        with self._lock:
            self.storage[bytes(key)] = encoded

    # -- runtime access ---------------------------------------------------------

    def _runtime_client(self) -> CommunitiesRuntimeApi:
        if self.client is None:
            raise RuntimeCallError("no runtime client configured")
        return self.client

    def _block(self, at: Optional[bytes]) -> bytes:
        return at if at is not None else self._runtime_client().best_hash()

    def _call_runtime(self, function: Callable[..., Any], *args: Any) -> Any:
        try:
            return function(*args)
        except RpcError:
            raise
        except Exception as error:
            raise RuntimeCallError(error) from error

    def _refresh_cache(self, at: Optional[bytes]) -> None:
        log.info("refreshing cache.....")
        client = self._runtime_client()
        block = self._block(at)
        cids = self._call_runtime(client.get_cids, block)

        cid_names = []
        for cid in cids:
            name = self.get_storage(cid.as_array())
            if name is None:
                _warn_storage_inconsistency(cid)
            else:
                cid_names.append(CidName(cid=cid, name=name))
        self.set_storage(CIDS_KEY, cid_names)

        for cid in cids:
            locations = self._call_runtime(client.get_locations, block, cid)
            self.set_storage(_locations_key(cid), list(locations))
        self.set_storage(CACHE_DIRTY_KEY, False)

    # -- rpc methods ------------------------------------------------------------

    def communities_get_all(self, at: Optional[bytes] = None) -> list[CidName]:
        """Identifiers and names of all communities."""
        if not self.offchain_indexing:
            raise OffchainIndexingDisabled("communities_getAll")
        if self.cache_dirty():
            self._refresh_cache(at)
        cid_names = self.get_storage(CIDS_KEY)
        if cid_names is None:
            raise OffchainStorageNotFound(list(CIDS_KEY))
        log.info("Using cached community list: %r", cid_names)
        return cid_names

    def communities_get_locations(
        self, cid: CommunityIdentifier, at: Optional[bytes] = None
    ) -> list[Location]:
        """All meetup locations of a community."""
        if not self.offchain_indexing:
            raise OffchainIndexingDisabled("communities_getAll")
        if self.cache_dirty():
            self._refresh_cache(at)
        cache_key = _locations_key(cid)
        locations = self.get_storage(cache_key)
        if locations is None:
            raise OffchainStorageNotFound(list(cache_key))
        log.info("Using cached location list with len %d", len(locations))
        return locations

    def communities_get_all_balances(
        self, account: bytes, at: Optional[bytes] = None
    ) -> list[tuple[CommunityIdentifier, BalanceEntry]]:
        """Balances of `account` in every community; refused when unsafe calls are denied."""
        if self.deny_unsafe:
            raise PermissionError("RPC call is unsafe to be called externally")
        client = self._runtime_client()
        block = self._block(at)
        return list(self._call_runtime(client.get_all_balances, block, account))