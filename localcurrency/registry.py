"""Registry of communities, their meetup locations, metadata and economic parameters."""

from __future__ import annotations

import logging
from bisect import bisect_left
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, TypeVar

from . import geo
from .balances import BalanceEntry
from .common import CeremonyPhaseType, CommunityIdentifierError
from .community_types import (
    CACHE_DIRTY_KEY,
    DATELINE_DISTANCE_M,
    DATELINE_LON,
    CommunityIdentifier,
    CommunityMetadata,
    CommunityMetadataError,
    GeoHash,
    Location,
    validate_demurrage,
    validate_nominal_income,
)
from .fixedpoint import I64F64
from .scale import encode_bool, encode_str

log = logging.getLogger("localcurrency")

MAX_BOOTSTRAPPERS = 1000

T = TypeVar("T")


class ErrorKind(Enum):
    """Reasons a registry call is rejected."""

    INVALID_LOCATION = "location is not a valid geolocation"
    INVALID_AMOUNT_BOOTSTRAPPERS = "invalid amount of bootstrappers supplied"
    MINIMUM_DISTANCE_VIOLATION_TO_OTHER_LOCATION = "minimum distance violation to other location"
    MINIMUM_DISTANCE_VIOLATION_TO_DATE_LINE = "minimum distance violated towards dateline"
    COMMUNITY_ALREADY_REGISTERED = "community already registered"
    COMMUNITY_INEXISTENT = "community does not exist"
    INVALID_COMMUNITY_METADATA = "invalid community metadata"
    INVALID_DEMURRAGE = "invalid demurrage"
    INVALID_NOMINAL_INCOME = "invalid nominal income"
    INVALID_LOCATION_FOR_GEOHASH = "invalid location for geohash"
    INVALID_GEOHASH = "invalid geohash"
    BAD_ORIGIN = "sender is not authorized"
    REGISTRATION_PHASE_REQUIRED = "locations can only be changed in the registering phase"


class CommunitiesError(Exception):
    """A registry call failed; `kind` tells why."""

    def __init__(self, kind: ErrorKind, detail: Optional[str] = None) -> None:
        message = kind.value if detail is None else f"{kind.value}: {detail}"
        super().__init__(message)
        self.kind = kind


class BadOrigin(CommunitiesError):
    """The caller is not the community master."""

    def __init__(self) -> None:
        super().__init__(ErrorKind.BAD_ORIGIN)


class EventKind(Enum):
    COMMUNITY_REGISTERED = "community_registered"
    METADATA_UPDATED = "metadata_updated"
    NOMINAL_INCOME_UPDATED = "nominal_income_updated"
    DEMURRAGE_UPDATED = "demurrage_updated"
    LOCATION_ADDED = "location_added"
    LOCATION_REMOVED = "location_removed"
    MIN_SOLAR_TRIP_TIME_S_UPDATED = "min_solar_trip_time_s_updated"
    MAX_SPEED_MPS_UPDATED = "max_speed_mps_updated"
    COMMUNITY_PURGED = "community_purged"


@dataclass(frozen=True)
class Event:
    """Something that happened in the registry, with its parameters."""

    kind: EventKind
    args: tuple = ()


@dataclass
class BalanceStore:
    """Per-community balances and demurrage rates."""

    default_demurrage: I64F64 = field(default_factory=lambda: I64F64(0))
    demurrages: dict = field(default_factory=dict)
    entries: dict = field(default_factory=dict)

    def set_demurrage(self, cid: CommunityIdentifier, demurrage: I64F64) -> None:
        self.demurrages[cid] = demurrage

    def demurrage_per_block(self, cid: CommunityIdentifier) -> I64F64:
        return self.demurrages.get(cid, self.default_demurrage)

    def issue(self, cid: CommunityIdentifier, account: bytes, amount: I64F64) -> None:
        """Add `amount` to the account's principal in the community."""
        entry = self.entries.get((cid, account), BalanceEntry())
        self.entries[(cid, account)] = BalanceEntry(
            principal=entry.principal + amount, last_update=entry.last_update
        )

    def contains(self, cid: CommunityIdentifier, account: bytes) -> bool:
        return (cid, account) in self.entries

    def balance_entry(self, cid: CommunityIdentifier, account: bytes) -> BalanceEntry:
        return self.entries.get((cid, account), BalanceEntry())

    def purge_balances(self, cid: CommunityIdentifier) -> None:
        """Drop every balance held in the community."""
        self.entries = {key: value for key, value in self.entries.items() if key[0] != cid}


def _insert_sorted(items: list[T], item: T) -> bool:
    index = bisect_left(items, item)  # type: ignore[arg-type]
    if index < len(items) and items[index] == item:
        return False
    items.insert(index, item)
    return True


def _remove_sorted(items: list[T], item: T) -> bool:
    index = bisect_left(items, item)  # type: ignore[arg-type]
    if index < len(items) and items[index] == item:
        del items[index]
        return True
    return False


class Communities:
    """Registers communities and keeps their meetup locations properly spaced."""

    def __init__(
        self,
        master: bytes,
        min_solar_trip_time_s: int = 0,
        max_speed_mps: int = 0,
        phase: CeremonyPhaseType = CeremonyPhaseType.REGISTERING,
        balances: Optional[BalanceStore] = None,
    ) -> None:
        self.master = master
        self.min_solar_trip_time_s = min_solar_trip_time_s
        self.max_speed_mps = max_speed_mps
        self.phase = phase
        self.balances = balances if balances is not None else BalanceStore()
        self.events: list[Event] = []
        self.offchain_index: dict[bytes, bytes] = {}
        self._cids: list[CommunityIdentifier] = []
        self._cids_by_geohash: dict[GeoHash, list[CommunityIdentifier]] = {}
        self._locations: dict[tuple[CommunityIdentifier, GeoHash], list[Location]] = {}
        self._bootstrappers: dict[CommunityIdentifier, list[bytes]] = {}
        self._metadata: dict[CommunityIdentifier, CommunityMetadata] = {}
        self._nominal_income: dict[CommunityIdentifier, I64F64] = {}

    # -- checks -----------------------------------------------------------------

    def _ensure_master(self, origin: bytes) -> None:
        if origin != self.master:
            raise BadOrigin()

    def _ensure_registering(self) -> None:
        if self.phase != CeremonyPhaseType.REGISTERING:
            raise CommunitiesError(ErrorKind.REGISTRATION_PHASE_REQUIRED)

    def _ensure_cid_exists(self, cid: CommunityIdentifier) -> None:
        if cid not in self._cids:
            raise CommunitiesError(ErrorKind.COMMUNITY_INEXISTENT, str(cid))

    @staticmethod
    def _geohash_of(location: Location) -> GeoHash:
        try:
            return GeoHash.from_params(location.lat, location.lon)
        except ValueError as error:
            raise CommunitiesError(ErrorKind.INVALID_LOCATION_FOR_GEOHASH) from error

    @staticmethod
    def _validate_metadata(metadata: CommunityMetadata) -> None:
        try:
            metadata.validate()
        except CommunityMetadataError as error:
            raise CommunitiesError(ErrorKind.INVALID_COMMUNITY_METADATA, str(error)) from error

    @staticmethod
    def _validate_demurrage(demurrage: I64F64) -> None:
        try:
            validate_demurrage(demurrage)
        except ValueError as error:
            raise CommunitiesError(ErrorKind.INVALID_DEMURRAGE) from error

    @staticmethod
    def _validate_nominal_income(nominal_income: I64F64) -> None:
        try:
            validate_nominal_income(nominal_income)
        except ValueError as error:
            raise CommunitiesError(ErrorKind.INVALID_NOMINAL_INCOME) from error

    def _mark_dirty(self) -> None:
        self.offchain_index[CACHE_DIRTY_KEY] = encode_bool(True)

    # -- calls ------------------------------------------------------------------

    def new_community(
        self,
        origin: bytes,
        location: Location,
        bootstrappers: Iterable[bytes],
        metadata: CommunityMetadata,
        demurrage: Optional[I64F64] = None,
        nominal_income: Optional[I64F64] = None,
    ) -> CommunityIdentifier:
        """Register a new community and return its identifier."""
        self._ensure_master(origin)
        bootstrappers = list(bootstrappers)
        if len(bootstrappers) > MAX_BOOTSTRAPPERS:
            raise CommunitiesError(ErrorKind.INVALID_AMOUNT_BOOTSTRAPPERS, str(len(bootstrappers)))
        self._validate_metadata(metadata)
        if demurrage is not None:
            self._validate_demurrage(demurrage)
        if nominal_income is not None:
            self._validate_nominal_income(nominal_income)

        try:
            cid = CommunityIdentifier.new(location, bootstrappers)
        except CommunityIdentifierError as error:
            raise CommunitiesError(ErrorKind.INVALID_LOCATION) from error
        if cid in self._cids:
            raise CommunitiesError(ErrorKind.COMMUNITY_ALREADY_REGISTERED, str(cid))

        self.validate_location(location)
        geo_hash = self._geohash_of(location)

        _insert_sorted(self._cids_by_geohash.setdefault(geo_hash, []), cid)
        self._locations[(cid, geo_hash)] = [location]
        self._cids.append(cid)
        self._bootstrappers[cid] = bootstrappers
        self._metadata[cid] = metadata
        if demurrage is not None:
            self.balances.set_demurrage(cid, demurrage)
        if nominal_income is not None:
            self._nominal_income[cid] = nominal_income

        self.offchain_index[cid.encode()] = encode_str(metadata.name)
        self._mark_dirty()
        self.events.append(Event(EventKind.COMMUNITY_REGISTERED, (cid,)))
        log.info("registered community with cid: %s", cid)
        return cid

    def add_location(self, origin: bytes, cid: CommunityIdentifier, location: Location) -> None:
        """Add a meetup location to a community."""
        self._ensure_master(origin)
        self._ensure_registering()
        self._ensure_cid_exists(cid)
        self.validate_location(location)
        geo_hash = self._geohash_of(location)
        _insert_sorted(self._locations.setdefault((cid, geo_hash), []), location)
        _insert_sorted(self._cids_by_geohash.setdefault(geo_hash, []), cid)
        self._mark_dirty()
        log.info("added location %s to community with cid: %s", location, cid)
        self.events.append(Event(EventKind.LOCATION_ADDED, (cid, location)))

    def remove_location(self, origin: bytes, cid: CommunityIdentifier, location: Location) -> None:
        """Remove a meetup location from a community."""
        self._ensure_master(origin)
        self._ensure_registering()
        self._ensure_cid_exists(cid)
        geo_hash = self._geohash_of(location)
        self._remove_location_intern(cid, location, geo_hash)
        log.info("removed location %s from community with cid: %s", location, cid)
        self.events.append(Event(EventKind.LOCATION_REMOVED, (cid, location)))

    def _remove_location_intern(
        self, cid: CommunityIdentifier, location: Location, geo_hash: GeoHash
    ) -> None:
        locations = self._locations.get((cid, geo_hash), [])
        remaining = 0
        if _remove_sorted(locations, location):
            remaining = len(locations)
            self._locations[(cid, geo_hash)] = locations
        # No location of this community left in the bucket (or none found): unlink the bucket.
        if remaining == 0:
            cids = self._cids_by_geohash.get(geo_hash)
            if cids is not None:
                _remove_sorted(cids, cid)
        self._mark_dirty()

    def update_community_metadata(
        self, origin: bytes, cid: CommunityIdentifier, metadata: CommunityMetadata
    ) -> None:
        self._ensure_master(origin)
        self._ensure_cid_exists(cid)
        self._validate_metadata(metadata)
        self._metadata[cid] = metadata
        self.offchain_index[cid.encode()] = encode_str(metadata.name)
        self._mark_dirty()
        log.info("updated community metadata for cid: %s", cid)
        self.events.append(Event(EventKind.METADATA_UPDATED, (cid,)))

    def update_demurrage(self, origin: bytes, cid: CommunityIdentifier, demurrage: I64F64) -> None:
        self._ensure_master(origin)
        self._ensure_cid_exists(cid)
        self._validate_demurrage(demurrage)
        self.balances.set_demurrage(cid, demurrage)
        log.info("updated demurrage for cid: %s", cid)
        self.events.append(Event(EventKind.DEMURRAGE_UPDATED, (cid, demurrage)))

    def update_nominal_income(
        self, origin: bytes, cid: CommunityIdentifier, nominal_income: I64F64
    ) -> None:
        self._ensure_master(origin)
        self._ensure_cid_exists(cid)
        self._validate_nominal_income(nominal_income)
        self._nominal_income[cid] = nominal_income
        log.info("updated nominal income for cid: %s", cid)
        self.events.append(Event(EventKind.NOMINAL_INCOME_UPDATED, (cid, nominal_income)))

    def set_min_solar_trip_time_s(self, origin: bytes, value: int) -> None:
        self._ensure_master(origin)
        self.min_solar_trip_time_s = value
        self.events.append(Event(EventKind.MIN_SOLAR_TRIP_TIME_S_UPDATED, (value,)))

    def set_max_speed_mps(self, origin: bytes, value: int) -> None:
        self._ensure_master(origin)
        self.max_speed_mps = value
        self.events.append(Event(EventKind.MAX_SPEED_MPS_UPDATED, (value,)))

    def purge_community(self, origin: bytes, cid: CommunityIdentifier) -> None:
        self._ensure_master(origin)
        self.remove_community(cid)

    def remove_community(self, cid: CommunityIdentifier) -> None:
        """Remove a community with all its locations, data and balances."""
        log.info("removing community %s", cid)
        owned = [(key[1], list(locs)) for key, locs in self._locations.items() if key[0] == cid]
        for geo_hash, locations in owned:
            for location in locations:
                self._remove_location_intern(cid, location, geo_hash)
        for geo_hash, _ in owned:
            self._locations.pop((cid, geo_hash), None)
        self._bootstrappers.pop(cid, None)
        self._cids = [other for other in self._cids if other != cid]
        self._metadata.pop(cid, None)
        self._nominal_income.pop(cid, None)
        self.balances.purge_balances(cid)
        self.events.append(Event(EventKind.COMMUNITY_PURGED, (cid,)))

    def insert_bootstrappers(self, cid: CommunityIdentifier, bootstrappers: Iterable[bytes]) -> None:
        self._bootstrappers[cid] = list(bootstrappers)

    # -- location rules ---------------------------------------------------------

    def solar_trip_time(self, origin_location: Location, target_location: Location) -> int:
        return geo.solar_trip_time(origin_location, target_location, self.max_speed_mps)

    def get_relevant_neighbor_buckets(self, geo_hash: GeoHash, location: Location) -> list[GeoHash]:
        try:
            return geo.relevant_neighbor_buckets(
                geo_hash, location, self.min_solar_trip_time_s, self.max_speed_mps
            )
        except ValueError as error:
            raise CommunitiesError(ErrorKind.INVALID_GEOHASH) from error

    def get_nearby_locations(self, location: Location) -> list[Location]:
        """Locations of all communities in the bucket of `location` and its relevant neighbours."""
        geo_hash = self._geohash_of(location)
        buckets = self.get_relevant_neighbor_buckets(geo_hash, location) + [geo_hash]
        return [
            nearby
            for bucket in buckets
            for cid in self.cids_by_geohash(bucket)
            for nearby in self.locations(cid, bucket)
        ]

    def validate_location(self, location: Location) -> None:
        """Raise CommunitiesError if `location` may not hold a meetup."""
        if not geo.is_valid_location(location):
            raise CommunitiesError(ErrorKind.INVALID_LOCATION)
        dateline_proxy = Location(lat=location.lat, lon=DATELINE_LON)
        if geo.haversine_distance(location, dateline_proxy) < DATELINE_DISTANCE_M:
            log.warning("location too close to dateline: %s", location)
            raise CommunitiesError(ErrorKind.MINIMUM_DISTANCE_VIOLATION_TO_DATE_LINE)
        for nearby in self.get_nearby_locations(location):
            if self.solar_trip_time(location, nearby) < self.min_solar_trip_time_s:
                raise CommunitiesError(ErrorKind.MINIMUM_DISTANCE_VIOLATION_TO_OTHER_LOCATION)

    # -- storage views ----------------------------------------------------------

    def locations(self, cid: CommunityIdentifier, geo_hash: GeoHash) -> list[Location]:
        return list(self._locations.get((cid, geo_hash), []))

    def cids_by_geohash(self, geo_hash: GeoHash) -> list[CommunityIdentifier]:
        return list(self._cids_by_geohash.get(geo_hash, []))

    def bootstrappers(self, cid: CommunityIdentifier) -> list[bytes]:
        return list(self._bootstrappers.get(cid, []))

    def community_identifiers(self) -> list[CommunityIdentifier]:
        return list(self._cids)

    def community_metadata(self, cid: CommunityIdentifier) -> CommunityMetadata:
        return self._metadata.get(cid, CommunityMetadata())

    def nominal_income(self, cid: CommunityIdentifier) -> I64F64:
        return self._nominal_income.get(cid, I64F64(0))

    # -- runtime api ------------------------------------------------------------

    def get_cids(self) -> list[CommunityIdentifier]:
        return self.community_identifiers()

    def get_name(self, cid: CommunityIdentifier) -> Optional[str]:
        if cid not in self._cids:
            return None
        return self.community_metadata(cid).name

    def get_locations(self, cid: CommunityIdentifier) -> list[Location]:
        """All locations of a community, bucket by bucket."""
        buckets = sorted(key[1] for key in self._locations if key[0] == cid)
        return [location for bucket in buckets for location in self._locations[(cid, bucket)]]

    def get_all_balances(self, account: bytes) -> list[tuple[CommunityIdentifier, BalanceEntry]]:
        return [
            (cid, self.balances.balance_entry(cid, account))
            for cid in self._cids
            if self.balances.contains(cid, account)
        ]