"""Geodesic distances and the solar-time spacing rules between meetup locations."""

from __future__ import annotations

import math

from .community_types import (
    DATELINE_LON,
    MAX_ABS_LATITUDE,
    MEAN_EARTH_RADIUS,
    RADIANS_PER_DEGREE,
    GeoHash,
    Location,
)

U32_MAX = (1 << 32) - 1
# The sun travels 360 degrees in 24 hours: 240 seconds per degree.
SUN_SECONDS_PER_DEGREE = 240


def _saturate_u32(value: int) -> int:
    return max(0, min(U32_MAX, value))


def haversine_distance(a: Location, b: Location) -> int:
    """Orthodromic distance between two locations in whole metres."""
    rad = RADIANS_PER_DEGREE.to_float()
    theta1 = a.lat.to_float() * rad
    theta2 = b.lat.to_float() * rad
    delta_theta = theta1 - theta2
    delta_lambda = (a.lon.to_float() - b.lon.to_float()) * rad
    aa = math.sin(delta_theta / 2) ** 2 + math.cos(theta1) * math.cos(theta2) * math.sin(
        delta_lambda / 2
    ) ** 2
    aa = min(1.0, max(0.0, aa))
    c = 2 * math.asin(math.sqrt(aa))
    return _saturate_u32(math.floor(MEAN_EARTH_RADIUS * c))


def solar_trip_time(origin_location: Location, target_location: Location, max_speed_mps: int) -> int:
    """Seconds by which travel at `max_speed_mps` outlasts the sun's own trip; zero if it does not."""
    if max_speed_mps <= 0:
        raise ValueError("max_speed_mps must be positive")
    distance = haversine_distance(origin_location, target_location)
    lon_diff_bits = abs(origin_location.lon.bits - target_location.lon.bits) * SUN_SECONDS_PER_DEGREE
    sun_time = _saturate_u32(lon_diff_bits >> 64)
    travel_time = distance // max_speed_mps
    return max(0, travel_time - sun_time)


def is_valid_location(location: Location) -> bool:
    """True if the location lies strictly within the latitude limit and the dateline."""
    return (
        -MAX_ABS_LATITUDE < location.lat < MAX_ABS_LATITUDE
        and -DATELINE_LON < location.lon < DATELINE_LON
    )


def relevant_neighbor_buckets(
    geo_hash: GeoHash,
    location: Location,
    min_solar_trip_time_s: int,
    max_speed_mps: int,
) -> list[GeoHash]:
    """Neighbouring buckets whose nearest edge is within the minimum solar trip time of `location`.

    Raises ValueError when the bucket has no neighbours on some side.
    """
    neighbors = geo_hash.neighbors()
    center_lon, center_lat, lon_error, lat_error = geo_hash.as_coordinates()
    min_lat = center_lat - lat_error
    max_lat = center_lat + lat_error
    min_lon = center_lon - lon_error
    max_lon = center_lon + lon_error

    candidates = [
        (Location(lat=max_lat, lon=location.lon), neighbors.n),
        (Location(lat=min_lat, lon=location.lon), neighbors.s),
        (Location(lat=max_lat, lon=max_lon), neighbors.ne),
        (Location(lat=location.lat, lon=max_lon), neighbors.e),
        (Location(lat=min_lat, lon=max_lon), neighbors.se),
        (Location(lat=max_lat, lon=min_lon), neighbors.nw),
        (Location(lat=location.lat, lon=min_lon), neighbors.w),
        (Location(lat=min_lat, lon=min_lon), neighbors.sw),
    ]
    return [
        bucket
        for edge, bucket in candidates
        if solar_trip_time(edge, location, max_speed_mps) < min_solar_trip_time_s
    ]