"""Maneuver detection — stateful scan over a track's heading stream.

Every incoming point contributes a signed heading delta.  Deltas accumulate
in a rolling time window until the turn either reverses (the delta sign
disagrees with the turn's direction twice in a row) or settles (three
consecutive near-zero deltas).  The finished turn becomes one
:class:`~sailtrace.detection.models.Maneuver` if its cumulative heading
change is large enough.

Classification priority
-----------------------
1. ``penalty_spin``: |change| >= 315° completed within 20 s.  Slower full
   turns are dropped as drift.
2. ``tack``: a wind direction is known and the headings in the turn lie on
   both sides of head-to-wind, within 45°.
3. ``jibe``: same against dead downwind, within 30°.
4. Numeric fallback on |change|: rounding >= 120°, tack >= 70°,
   jibe >= 30°, else unknown.

The order is intentional: the same turn may be a ``tack`` when a wind
estimate is available and a ``rounding`` when it is not.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from sailtrace.detection.models import Maneuver, ManeuverType
from sailtrace.gps.geometry import lerp, signed_heading_delta
from sailtrace.tracks.models import EnrichedPoint

_MAX_CUMULATIVE = 720.0


@dataclass
class TurnEntry:
    """A buffered point and the cumulative heading change up to it."""

    point: EnrichedPoint
    cumulative: float


@dataclass
class TurnState:
    """In-progress turn, carried across storage batches."""

    buffer: list[TurnEntry] = field(default_factory=list)
    sign: int = 0
    """Established turn direction: +1 clockwise, -1 anticlockwise, 0 unknown."""

    sign_flips: int = 0
    stable_count: int = 0
    prev_heading: float | None = None

    def reset(self, seed: EnrichedPoint | None = None) -> None:
        self.buffer = [TurnEntry(seed, 0.0)] if seed is not None else []
        self.sign = 0
        self.sign_flips = 0
        self.stable_count = 0


class ManeuverDetector:
    """Detect tacks, jibes, roundings and penalty spins in a heading stream.

    Args:
        window_s: Rolling buffer length in seconds.
        stability_threshold: |delta| below this (degrees) counts as steady.
        sign_flip_limit: Consecutive opposite-sign deltas that end a turn.
        stable_limit: Consecutive steady deltas that end a turn.
        min_change: Turns with |change| below this are discarded.
        spin_threshold: |change| at or above this is a penalty spin.
        spin_max_duration_s: Longest wall-clock duration of a penalty spin.
        tack_wind_sector: Half-width of the head-to-wind sector for tacks.
        jibe_wind_sector: Half-width of the dead-downwind sector for jibes.
        rounding_threshold: Numeric fallback threshold for roundings.
        tack_threshold: Numeric fallback threshold for tacks.
        jibe_threshold: Numeric fallback threshold for jibes.
    """

    def __init__(
        self,
        window_s: float = 15.0,
        stability_threshold: float = 5.0,
        sign_flip_limit: int = 2,
        stable_limit: int = 3,
        min_change: float = 30.0,
        spin_threshold: float = 315.0,
        spin_max_duration_s: float = 20.0,
        tack_wind_sector: float = 45.0,
        jibe_wind_sector: float = 30.0,
        rounding_threshold: float = 120.0,
        tack_threshold: float = 70.0,
        jibe_threshold: float = 30.0,
    ) -> None:
        self.window_s = window_s
        self.stability_threshold = stability_threshold
        self.sign_flip_limit = sign_flip_limit
        self.stable_limit = stable_limit
        self.min_change = min_change
        self.spin_threshold = spin_threshold
        self.spin_max_duration_s = spin_max_duration_s
        self.tack_wind_sector = tack_wind_sector
        self.jibe_wind_sector = jibe_wind_sector
        self.rounding_threshold = rounding_threshold
        self.tack_threshold = tack_threshold
        self.jibe_threshold = jibe_threshold

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def new_state(self) -> TurnState:
        return TurnState()

    def feed(
        self,
        state: TurnState,
        point: EnrichedPoint,
        track_id: int,
        wind_degrees: float | None = None,
    ) -> list[Maneuver]:
        """Advance *state* by one point; return any maneuver it completes.

        Points without a heading or an adjusted position are ignored.
        """
        if point.heading is None or not point.is_processed:
            return []

        heading = float(point.heading)
        if state.prev_heading is None or not state.buffer:
            state.reset(point)
            state.prev_heading = heading
            return []

        delta = signed_heading_delta(state.prev_heading, heading)
        state.prev_heading = heading
        state.buffer.append(TurnEntry(point, state.buffer[-1].cumulative + delta))
        self._trim(state.buffer, point.captured_at)

        self._track_direction(state, delta)
        if abs(delta) < self.stability_threshold:
            state.stable_count += 1
        else:
            state.stable_count = 0

        if state.sign_flips >= self.sign_flip_limit or state.stable_count >= self.stable_limit:
            return self._finalize(state, track_id, wind_degrees)
        return []

    def finish(
        self,
        state: TurnState,
        track_id: int,
        wind_degrees: float | None = None,
    ) -> list[Maneuver]:
        """Close any turn still open at the end of the stream."""
        if len(state.buffer) < 2:
            state.reset()
            return []
        maneuvers = self._finalize(state, track_id, wind_degrees)
        state.reset()
        state.prev_heading = None
        return maneuvers

    def detect(
        self,
        points: Iterable[EnrichedPoint],
        track_id: int,
        wind_degrees: float | None = None,
    ) -> list[Maneuver]:
        """Run the detector over a complete point sequence."""
        state = self.new_state()
        maneuvers: list[Maneuver] = []
        for point in points:
            maneuvers.extend(self.feed(state, point, track_id, wind_degrees))
        maneuvers.extend(self.finish(state, track_id, wind_degrees))
        return maneuvers

    def classify(
        self,
        total_change: float,
        headings: list[float],
        duration_s: float,
        wind_degrees: float | None = None,
    ) -> ManeuverType | None:
        """Return the maneuver type, or None if the turn should be discarded."""
        magnitude = abs(total_change)
        if magnitude >= self.spin_threshold:
            if duration_s <= self.spin_max_duration_s:
                return "penalty_spin"
            return None

        if wind_degrees is not None:
            if self._straddles(headings, wind_degrees, self.tack_wind_sector):
                return "tack"
            if self._straddles(headings, wind_degrees + 180.0, self.jibe_wind_sector):
                return "jibe"

        if magnitude >= self.rounding_threshold:
            return "rounding"
        if magnitude >= self.tack_threshold:
            return "tack"
        if magnitude >= self.jibe_threshold:
            return "jibe"
        return "unknown"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _trim(self, buffer: list[TurnEntry], now: float) -> None:
        cutoff = now - self.window_s
        drop = 0
        while drop < len(buffer) - 1 and buffer[drop].point.captured_at < cutoff:
            drop += 1
        if drop:
            del buffer[:drop]

    def _track_direction(self, state: TurnState, delta: float) -> None:
        """Count consecutive deltas against the established turn direction."""
        if abs(delta) < self.stability_threshold:
            return
        sign = 1 if delta > 0 else -1
        if state.sign == 0:
            state.sign = sign
            state.sign_flips = 0
        elif sign != state.sign:
            state.sign_flips += 1
        else:
            state.sign_flips = 0

    def _finalize(
        self,
        state: TurnState,
        track_id: int,
        wind_degrees: float | None,
    ) -> list[Maneuver]:
        buffer = state.buffer
        maneuver = self._build(buffer, track_id, wind_degrees) if len(buffer) >= 2 else None
        state.reset(buffer[-1].point if buffer else None)
        return [maneuver] if maneuver is not None else []

    def _build(
        self,
        buffer: list[TurnEntry],
        track_id: int,
        wind_degrees: float | None,
    ) -> Maneuver | None:
        first, last = buffer[0], buffer[-1]
        total = last.cumulative - first.cumulative
        total = max(-_MAX_CUMULATIVE, min(_MAX_CUMULATIVE, total))
        if abs(total) < self.min_change:
            return None

        headings = [e.point.heading for e in buffer if e.point.heading is not None]
        duration = last.point.captured_at - first.point.captured_at
        maneuver_type = self.classify(total, headings, duration, wind_degrees)
        if maneuver_type is None:
            return None

        lat, lon, occurred_at = self._midpoint(buffer, first.cumulative + total / 2.0)
        confidence = min(1.0, len(buffer) / 15.0 + abs(total) / 180.0)

        return Maneuver(
            track_id=track_id,
            cumulative_heading_change=round(total, 2),
            latitude=round(lat, 6),
            longitude=round(lon, 6),
            occurred_at=occurred_at,
            maneuver_type=maneuver_type,
            confidence=round(confidence, 3),
        )

    @staticmethod
    def _midpoint(buffer: list[TurnEntry], half_target: float) -> tuple[float, float, float]:
        """Interpolate position and time where the cumulative change hits *half_target*."""
        rising = buffer[-1].cumulative >= buffer[0].cumulative
        index = len(buffer) - 1
        for i, entry in enumerate(buffer):
            if (rising and entry.cumulative >= half_target) or (
                not rising and entry.cumulative <= half_target
            ):
                index = i
                break

        current = buffer[index]
        if index == 0:
            p = current.point
            return p.adjusted_latitude, p.adjusted_longitude, p.captured_at  # type: ignore[return-value]

        previous = buffer[index - 1]
        span = current.cumulative - previous.cumulative
        if abs(span) < 1e-9:
            p = current.point
            return p.adjusted_latitude, p.adjusted_longitude, p.captured_at  # type: ignore[return-value]

        frac = (half_target - previous.cumulative) / span
        a, b = previous.point, current.point
        return (
            lerp(a.adjusted_latitude, b.adjusted_latitude, frac),  # type: ignore[arg-type]
            lerp(a.adjusted_longitude, b.adjusted_longitude, frac),  # type: ignore[arg-type]
            lerp(a.captured_at, b.captured_at, frac),
        )

    @staticmethod
    def _straddles(headings: list[float], reference: float, sector: float) -> bool:
        """True if *headings* fall on both sides of *reference*, within *sector*.

        A heading exactly on *reference* counts for neither side.
        """
        left = right = False
        for h in headings:
            rel = signed_heading_delta(reference, h)
            if -sector <= rel < 0.0:
                left = True
            elif 0.0 < rel <= sector:
                right = True
        return left and right
