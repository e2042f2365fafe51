"""Track point data models."""

from __future__ import annotations

import math
from dataclasses import dataclass


def is_finite_number(value: object) -> bool:
    """Return True if *value* is a real, finite number (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


@dataclass(frozen=True)
class RawPoint:
    """A single GPS position report as captured by the device."""

    id: int
    """Storage identifier."""

    latitude: float | None
    """Measured latitude in decimal degrees."""

    longitude: float | None
    """Measured longitude in decimal degrees."""

    accuracy: float | None
    """Reported horizontal accuracy in metres.  ``None``/0 means unknown."""

    captured_at: float
    """Capture time as Unix seconds."""

    def is_valid(self) -> bool:
        """Return True if coordinates, timestamp and accuracy are usable numbers."""
        if self.accuracy is not None and not is_finite_number(self.accuracy):
            return False
        return all(
            is_finite_number(v) for v in (self.latitude, self.longitude, self.captured_at)
        )


@dataclass(frozen=True)
class FilteredPoint(RawPoint):
    """A raw point with its noise-filtered (adjusted) position."""

    adjusted_latitude: float | None = None
    adjusted_longitude: float | None = None

    variance: float | None = None
    """Filter variance after this point.  Internal state, never persisted."""

    @property
    def is_processed(self) -> bool:
        return self.adjusted_latitude is not None and self.adjusted_longitude is not None


@dataclass(frozen=True)
class EnrichedPoint(FilteredPoint):
    """A filtered point with derived velocity and heading.

    The first point of a track (and points whose pair was rejected) carry
    ``None`` for both.
    """

    velocity: float | None = None
    """Smoothed speed over ground in knots."""

    heading: float | None = None
    """Initial bearing from the previous point, degrees in [0, 360)."""

    simplified: bool = False
    """True if the simplifier elided this point from the display polyline."""
