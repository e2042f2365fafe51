"""Shared geometry helpers for GPS positions and compass headings.

All angles are in degrees.  Headings follow the compass convention
(0 = north, 90 = east).
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from sailtrace.tracks.models import is_finite_number

EARTH_RADIUS_M = 6_371_000.0
METERS_PER_NAUTICAL_MILE = 1852.0
KNOTS_PER_MPS = 1.94384
METERS_PER_DEGREE_LAT = 111_111.0


# ---------------------------------------------------------------------------
# Distances and bearings
# ---------------------------------------------------------------------------

def distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle (haversine) distance between two points, in metres.

    Returns 0.0 if any argument is not a finite number.
    """
    if not all(is_finite_number(v) for v in (lat1, lon1, lat2, lon2)):
        return 0.0

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return round(EARTH_RADIUS_M * c, 2)


def initial_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial great-circle bearing from point 1 to point 2, in [0, 360)."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)

    y = math.sin(delta_lambda) * math.cos(phi2)
    x = (math.cos(phi1) * math.sin(phi2) -
         math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda))
    return normalize_degrees(math.degrees(math.atan2(y, x)))


# ---------------------------------------------------------------------------
# Circular arithmetic
# ---------------------------------------------------------------------------

def normalize_degrees(angle: float) -> float:
    """Map *angle* into [0, 360)."""
    result = angle % 360.0
    # float modulo of a tiny negative value can round up to exactly 360.0
    return 0.0 if result >= 360.0 else result


def signed_heading_delta(h1: float, h2: float) -> float:
    """Signed turn from heading *h1* to *h2*, normalized to (-180, 180]."""
    diff = (h2 - h1) % 360.0
    return diff - 360.0 if diff > 180.0 else diff


def circular_mean(angles: Iterable[float]) -> float | None:
    """Vector mean of *angles* in [0, 360), or None for an empty input."""
    sum_sin = 0.0
    sum_cos = 0.0
    n = 0
    for a in angles:
        rad = math.radians(a)
        sum_sin += math.sin(rad)
        sum_cos += math.cos(rad)
        n += 1
    if n == 0:
        return None
    return normalize_degrees(math.degrees(math.atan2(sum_sin, sum_cos)))


def circular_midpoint(a: float, b: float) -> float:
    """Circular midpoint of two angles (the vector mean of the pair)."""
    return circular_mean((a, b))  # type: ignore[return-value]


def round_to_nearest(angle: float, bucket: int) -> int:
    """Round *angle* to the nearest multiple of *bucket*, halves rounding up, mod 360."""
    return int(math.floor(angle / bucket + 0.5)) * bucket % 360


# ---------------------------------------------------------------------------
# Small planar helpers
# ---------------------------------------------------------------------------

def lerp(a: float, b: float, fraction: float) -> float:
    return a + (b - a) * fraction


def meters_to_lat_degrees(meters: float) -> float:
    return meters / METERS_PER_DEGREE_LAT


def meters_to_lon_degrees(meters: float, latitude: float) -> float:
    """Degrees of longitude spanning *meters* at *latitude*."""
    cos_lat = max(abs(math.cos(math.radians(latitude))), 1e-6)
    return meters / (METERS_PER_DEGREE_LAT * cos_lat)
