"""Derived sailing event data models."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Literal

ManeuverType = Literal["tack", "jibe", "rounding", "penalty_spin", "unknown"]
MarkType = Literal["windward", "leeward", "offset", "unknown"]


@dataclass(frozen=True)
class Maneuver:
    """One detected turn of a track.

    Position and time are those of the turn's angular midpoint (the moment
    half of the heading change had been completed).
    """

    track_id: int

    cumulative_heading_change: float
    """Signed sum of heading deltas over the turn, degrees [-720, 720].
    Positive = clockwise (turning to starboard)."""

    latitude: float
    longitude: float
    occurred_at: float
    """Unix seconds."""

    maneuver_type: ManeuverType
    confidence: float
    """[0.0, 1.0] — longer, sharper turns score higher."""

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class WindEstimate:
    """Inferred true wind direction for a track (degrees, multiple of 5)."""

    track_id: int
    degrees: int


@dataclass(frozen=True)
class CourseMark:
    """An inferred course mark of a race."""

    race_id: int
    latitude: float
    longitude: float
    confidence: float
    """[0.0, 1.0] — combines track coverage and maneuver confidence."""

    mark_type: MarkType

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class TrackStatistics:
    """Aggregate figures for one track."""

    track_id: int
    distance_nm: float
    average_speed_knots: float
    max_speed_knots: float
    point_count: int

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)
