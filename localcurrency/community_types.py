"""Community identifiers, locations, geohash buckets and community metadata."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Iterable, Optional

from . import bs58
from .bs58 import Bs58DecodeError, NonAsciiCharacter
from .common import (
    CommunityIdentifierError,
    IpfsValidationError,
    validate_ascii,
    validate_ipfs_cid,
)
from .fixedpoint import I64F64, deserialize_array, serialize_array
from .scale import encode_i128, encode_str, encode_vec

Degree = I64F64
NominalIncome = I64F64
Demurrage = I64F64

# Above |78| degrees latitude a person can outrun the sun along a parallel.
MAX_ABS_LATITUDE = I64F64.from_bits(78 << 64)
# Meetups may not be closer to the dateline than this, in metres.
DATELINE_DISTANCE_M = 1_000_000
DATELINE_LON = I64F64.from_bits(180 << 64)
# round(pi/180 * 2**64) as a 64-bit fraction.
RADIANS_PER_DEGREE = I64F64.from_bits(0x0477D1A894A74E40)
MEAN_EARTH_RADIUS = 6_371_000
METERS_PER_DEGREE_AT_EQUATOR = 111_319
# Number of base32 digits of a geohash bucket.
GEO_HASH_BUCKET_RESOLUTION = 5
# Dirty bit key for offchain storage.
CACHE_DIRTY_KEY = b"dirty"

_BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
_BASE32_INDEX = {char: index for index, char in enumerate(_BASE32)}


def validate_demurrage(demurrage: I64F64) -> None:
    """Demurrage must not be negative; zero disables it."""
    if demurrage < I64F64.from_num(0):
        raise ValueError(f"demurrage must not be negative: {demurrage}")


def validate_nominal_income(nominal_income: I64F64) -> None:
    """Nominal income must be positive."""
    if nominal_income <= I64F64.from_num(0):
        raise ValueError(f"nominal income must be positive: {nominal_income}")


@dataclass(frozen=True, order=True)
class Location:
    """A latitude/longitude pair in fixed-point degrees; ordered by latitude first."""

    lat: I64F64 = I64F64(0)
    lon: I64F64 = I64F64(0)

    def __post_init__(self) -> None:
        object.__setattr__(self, "lat", I64F64.from_num(self.lat))
        object.__setattr__(self, "lon", I64F64.from_num(self.lon))

    def encode(self) -> bytes:
        return encode_i128(self.lat.bits) + encode_i128(self.lon.bits)


NORTH_POLE = Location(lat=I64F64.from_bits(90 << 64), lon=I64F64.from_bits(0))
SOUTH_POLE = Location(lat=I64F64.from_bits(-90 << 64), lon=I64F64.from_bits(0))


def _to_fraction(value: I64F64 | int | float) -> Fraction:
    return Fraction(I64F64.from_num(value).bits, 1 << 64)


def _encode_geohash(lat: Fraction, lon: Fraction, length: int) -> str:
    if not (-180 <= lon <= 180 and -90 <= lat <= 90):
        raise ValueError(f"coordinates out of range: lat={float(lat)}, lon={float(lon)}")
    lat_lo, lat_hi = Fraction(-90), Fraction(90)
    lon_lo, lon_hi = Fraction(-180), Fraction(180)
    chars = []
    value = count = 0
    is_lon = True
    while len(chars) < length:
        if is_lon:
            mid = (lon_lo + lon_hi) / 2
            bit = lon > mid
            if bit:
                lon_lo = mid
            else:
                lon_hi = mid
        else:
            mid = (lat_lo + lat_hi) / 2
            bit = lat > mid
            if bit:
                lat_lo = mid
            else:
                lat_hi = mid
        value = (value << 1) | int(bit)
        count += 1
        is_lon = not is_lon
        if count == 5:
            chars.append(_BASE32[value])
            value = count = 0
    return "".join(chars)


def _decode_bbox(text: str) -> tuple[Fraction, Fraction, Fraction, Fraction]:
    lat_lo, lat_hi = Fraction(-90), Fraction(90)
    lon_lo, lon_hi = Fraction(-180), Fraction(180)
    is_lon = True
    for char in text:
        digit = _BASE32_INDEX[char]
        for shift in range(4, -1, -1):
            bit = (digit >> shift) & 1
            if is_lon:
                mid = (lon_lo + lon_hi) / 2
                if bit:
                    lon_lo = mid
                else:
                    lon_hi = mid
            else:
                mid = (lat_lo + lat_hi) / 2
                if bit:
                    lat_lo = mid
                else:
                    lat_hi = mid
            is_lon = not is_lon
    return lon_lo, lon_hi, lat_lo, lat_hi


@dataclass(frozen=True)
class Neighbors:
    """The eight geohash buckets around a bucket."""

    n: GeoHash
    ne: GeoHash
    e: GeoHash
    se: GeoHash
    s: GeoHash
    sw: GeoHash
    w: GeoHash
    nw: GeoHash


_DIRECTIONS = {
    "n": (1, 0),
    "ne": (1, 1),
    "e": (0, 1),
    "se": (-1, 1),
    "s": (-1, 0),
    "sw": (-1, -1),
    "w": (0, -1),
    "nw": (1, -1),
}


@dataclass(frozen=True, order=True)
class GeoHash:
    """A geohash bucket of GEO_HASH_BUCKET_RESOLUTION base32 digits."""

    value: str

    def __post_init__(self) -> None:
        if len(self.value) != GEO_HASH_BUCKET_RESOLUTION:
            raise ValueError(
                f"geohash must have {GEO_HASH_BUCKET_RESOLUTION} characters: {self.value!r}"
            )
        bad = [char for char in self.value if char not in _BASE32_INDEX]
        if bad:
            raise ValueError(f"invalid geohash character {bad[0]!r} in {self.value!r}")

    @classmethod
    def from_params(cls, lat: I64F64 | float, lon: I64F64 | float) -> GeoHash:
        """Bucket containing the coordinates; raises ValueError when out of range."""
        return cls(_encode_geohash(_to_fraction(lat), _to_fraction(lon), GEO_HASH_BUCKET_RESOLUTION))

    @classmethod
    def from_str(cls, text: str) -> GeoHash:
        return cls(text)

    def _center_and_error(self) -> tuple[Fraction, Fraction, Fraction, Fraction]:
        lon_lo, lon_hi, lat_lo, lat_hi = _decode_bbox(self.value)
        return (
            (lon_lo + lon_hi) / 2,
            (lat_lo + lat_hi) / 2,
            (lon_hi - lon_lo) / 2,
            (lat_hi - lat_lo) / 2,
        )

    def as_coordinates(self) -> tuple[I64F64, I64F64, I64F64, I64F64]:
        """Return (center lon, center lat, lon error, lat error) of the bucket."""
        return tuple(I64F64.from_num(part) for part in self._center_and_error())  # type: ignore[return-value]

    def neighbors(self) -> Neighbors:
        """The eight surrounding buckets; raises ValueError past the poles or dateline."""
        lon, lat, lon_err, lat_err = self._center_and_error()
        found = {
            name: GeoHash(
                _encode_geohash(
                    lat + 2 * lat_err * dlat,
                    lon + 2 * lon_err * dlon,
                    GEO_HASH_BUCKET_RESOLUTION,
                )
            )
            for name, (dlat, dlon) in _DIRECTIONS.items()
        }
        return Neighbors(**found)

    def __str__(self) -> str:
        return self.value

    def __bytes__(self) -> bytes:
        return self.value.encode("ascii")


def _build_crc_table() -> list[int]:
    table = []
    for index in range(256):
        crc = index << 24
        for _ in range(8):
            crc = ((crc << 1) ^ 0x04C11DB7) if crc & 0x80000000 else crc << 1
            crc &= 0xFFFFFFFF
        table.append(crc)
    return table


_CRC_TABLE = _build_crc_table()


def _crc32_cksum(data: bytes) -> int:
    crc = 0
    for byte in data:
        crc = ((crc << 8) & 0xFFFFFFFF) ^ _CRC_TABLE[((crc >> 24) ^ byte) & 0xFF]
    return crc ^ 0xFFFFFFFF


def _encode_account(account: object) -> bytes:
    if isinstance(account, (bytes, bytearray, memoryview)):
        return bytes(account)
    encode = getattr(account, "encode", None)
    if callable(encode):
        return encode()
    raise TypeError(f"cannot encode account of type {type(account).__name__}")


@dataclass(frozen=True, order=True)
class CommunityIdentifier:
    """Geohash prefix plus a checksum over the bootstrappers."""

    geohash: bytes = bytes(5)
    digest: bytes = bytes(4)

    def __post_init__(self) -> None:
        object.__setattr__(self, "geohash", bytes(self.geohash))
        object.__setattr__(self, "digest", bytes(self.digest))
        if len(self.geohash) != 5 or len(self.digest) != 4:
            raise ValueError("a community identifier holds 5 geohash bytes and 4 digest bytes")

    @classmethod
    def new(cls, location: Location, bootstrappers: Iterable[object]) -> CommunityIdentifier:
        """Derive the identifier of a community at `location` with encoded account ids."""
        try:
            geohash = GeoHash.from_params(location.lat, location.lon)
        except ValueError as error:
            raise CommunityIdentifierError() from error
        digest = _crc32_cksum(encode_vec(bootstrappers, _encode_account))
        return cls(bytes(geohash), digest.to_bytes(4, "big"))

    @classmethod
    def from_str(cls, text: str) -> CommunityIdentifier:
        """Parse the geohash-plus-base58-digest form."""
        geohash = text[:5].encode("utf-8")
        if len(geohash) != 5:
            raise ValueError(f"community identifier too short: {text!r}")
        try:
            digest = bs58.decode(text[5:])
        except Bs58DecodeError as error:
            raise Bs58DecodeError(error.character, error.index + 5) from error
        if len(digest) != 4:
            raise ValueError(f"digest must decode to 4 bytes: {text!r}")
        return cls(geohash, digest)

    def as_array(self) -> bytes:
        return self.geohash + self.digest

    def encode(self) -> bytes:
        return self.as_array()

    def to_json(self) -> str:
        return f'{{"geohash":{serialize_array(self.geohash)},"digest":{serialize_array(self.digest)}}}'

    @classmethod
    def from_json(cls, text: str) -> CommunityIdentifier:
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")
        try:
            geohash, digest = data["geohash"], data["digest"]
        except KeyError as error:
            raise ValueError(f"missing field {error.args[0]!r}") from error
        return cls(
            deserialize_array(json.dumps(geohash), 5),
            deserialize_array(json.dumps(digest), 4),
        )

    def __str__(self) -> str:
        try:
            prefix = self.geohash.decode("utf-8")
        except UnicodeDecodeError as error:
            raise ValueError(f"geohash bytes are not utf-8: {self.geohash!r}") from error
        return prefix + bs58.encode(self.digest)

    def __repr__(self) -> str:
        try:
            return f"CommunityIdentifier({self})"
        except ValueError:
            return f"CommunityIdentifier(geohash={self.geohash!r}, digest={self.digest!r})"


class CommunityMetadataError(ValueError):
    """Community metadata failed validation."""

    description = "invalid community metadata"

    def __init__(self, value: object) -> None:
        super().__init__(f"{self.description}: {value}")
        self.value = value

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.value == other.value  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.value))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value!r})"


class InvalidAscii(CommunityMetadataError):
    """Invalid ascii character at the index held in `value`."""

    description = "invalid ascii character at index"


class InvalidIpfsCid(CommunityMetadataError):
    """The assets cid is invalid; `value` holds the IpfsValidationError."""

    description = "invalid ipfs cid"


class TooManyCharactersInName(CommunityMetadataError):
    """More than 20 characters in the name."""

    description = "too many characters in name (max 20)"


class InvalidAmountCharactersInSymbol(CommunityMetadataError):
    """The symbol does not have exactly 3 characters."""

    description = "symbol must have 3 characters"


class TooManyCharactersInUrl(CommunityMetadataError):
    """The url has 20 or more characters."""

    description = "too many characters in url (max 19)"


def _check_ascii(text: str) -> None:
    try:
        validate_ascii(text)
    except NonAsciiCharacter as error:
        raise InvalidAscii(error.index) from error


@dataclass(frozen=True)
class CommunityMetadata:
    """Descriptive data of a community. The defaults pass validation."""

    name: str = "Default"
    symbol: str = "DEF"
    assets: str = "Defau1tCidThat1s46Characters1nLength1111111111"
    theme: Optional[str] = None
    url: Optional[str] = "DefaultUrl"

    @classmethod
    def create(
        cls,
        name: str,
        symbol: str,
        assets: str,
        theme: Optional[str],
        url: Optional[str],
    ) -> CommunityMetadata:
        """Build metadata and validate it, raising CommunityMetadataError if invalid."""
        metadata = cls(name=name, symbol=symbol, assets=assets, theme=theme, url=url)
        metadata.validate()
        return metadata

    def validate(self) -> None:
        """Ensure ascii-only fields of bounded length and a valid assets cid."""
        _check_ascii(self.name)
        _check_ascii(self.symbol)
        try:
            validate_ipfs_cid(self.assets)
        except IpfsValidationError as error:
            raise InvalidIpfsCid(error) from error
        name_len = len(self.name.encode("utf-8"))
        if name_len > 20:
            raise TooManyCharactersInName(name_len & 0xFF)
        symbol_len = len(self.symbol.encode("utf-8"))
        if symbol_len != 3:
            raise InvalidAmountCharactersInSymbol(symbol_len & 0xFF)
        if self.url is not None:
            _check_ascii(self.url)
            url_len = len(self.url.encode("utf-8"))
            if url_len >= 20:
                raise TooManyCharactersInUrl(url_len & 0xFF)


@dataclass(frozen=True)
class CidName:
    """A community identifier together with its name."""

    cid: CommunityIdentifier = field(default_factory=CommunityIdentifier)
    name: str = ""

    def encode(self) -> bytes:
        return self.cid.encode() + encode_str(self.name)