"""RaceMatcher — decides which race a freshly recorded track belongs to.

A race is a set of tracks recorded at the same time and place.  A track
joins the candidate race whose start lies within ``time_window_s`` of the
track's first valid fix and within ``max_distance_m`` of its position; among
several candidates the closest start wins.  When nothing matches, the caller
creates a new race from the track's own start.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sailtrace.gps.geometry import distance_m


@dataclass(frozen=True)
class RaceStart:
    """Where and when a race started."""

    race_id: int
    started_at: float
    """Unix seconds."""

    latitude: float
    longitude: float


class RaceMatcher:
    """Pick the race a track start belongs to.

    Parameters
    ----------
    time_window_s:
        Maximum difference between the race start and the track start.
    max_distance_m:
        Maximum distance between the race start and the track start.
    """

    def __init__(self, time_window_s: float = 600.0, max_distance_m: float = 750.0) -> None:
        if time_window_s <= 0 or max_distance_m <= 0:
            raise ValueError("time_window_s and max_distance_m must be positive")
        self.time_window_s = time_window_s
        self.max_distance_m = max_distance_m

    def best_match(
        self,
        started_at: float,
        latitude: float,
        longitude: float,
        candidates: Iterable[RaceStart],
    ) -> RaceStart | None:
        """Return the closest eligible race start, or None.

        Ties on distance go to the lower race id.
        """
        best: RaceStart | None = None
        best_key: tuple[float, int] | None = None
        for race in candidates:
            if abs(race.started_at - started_at) > self.time_window_s:
                continue
            gap = distance_m(latitude, longitude, race.latitude, race.longitude)
            if gap > self.max_distance_m:
                continue
            key = (gap, race.race_id)
            if best_key is None or key < best_key:
                best, best_key = race, key
        return best
