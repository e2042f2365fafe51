"""Whole-track figures: sailed distance, average and top speed."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sailtrace.detection.models import TrackStatistics
from sailtrace.gps.geometry import METERS_PER_NAUTICAL_MILE, distance_m
from sailtrace.tracks.models import EnrichedPoint


@dataclass
class StatisticsState:
    """Running totals carried across storage batches."""

    distance_m: float = 0.0
    speed_sum: float = 0.0
    speed_count: int = 0
    max_speed: float = 0.0
    point_count: int = 0
    prev_lat: float | None = None
    prev_lon: float | None = None


class TrackStatisticsCalculator:
    """Accumulate :class:`TrackStatistics` over a stream of points.

    Distance runs over every processed point so simplification does not
    shorten the track; speeds only consider retained points.
    """

    def new_state(self) -> StatisticsState:
        return StatisticsState()

    def feed(self, state: StatisticsState, point: EnrichedPoint) -> None:
        if not point.is_processed:
            return
        state.point_count += 1
        lat, lon = point.adjusted_latitude, point.adjusted_longitude
        if state.prev_lat is not None:
            state.distance_m += distance_m(state.prev_lat, state.prev_lon, lat, lon)  # type: ignore[arg-type]
        state.prev_lat, state.prev_lon = lat, lon

        if point.velocity is not None and not point.simplified:
            state.speed_sum += point.velocity
            state.speed_count += 1
            state.max_speed = max(state.max_speed, point.velocity)

    def finish(self, state: StatisticsState, track_id: int) -> TrackStatistics:
        average = state.speed_sum / state.speed_count if state.speed_count else 0.0
        return TrackStatistics(
            track_id=track_id,
            distance_nm=round(state.distance_m / METERS_PER_NAUTICAL_MILE, 2),
            average_speed_knots=round(average, 2),
            max_speed_knots=round(state.max_speed, 2),
            point_count=state.point_count,
        )

    def compute(self, points: Iterable[EnrichedPoint], track_id: int) -> TrackStatistics:
        state = self.new_state()
        for point in points:
            self.feed(state, point)
        return self.finish(state, track_id)
