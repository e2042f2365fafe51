"""Position filter for GPS noise smoothing.

A one-dimensional-variance Kalman filter applied to latitude and longitude
together.  The measurement noise comes from the device-reported accuracy and
the process noise from the boat's recent speed: the faster the boat moves,
the more the filter trusts each new fix (less lag at speed, more smoothing
at rest).

The filter keeps no hidden state.  Callers hold a :class:`FilterState` and
pass it to every call, so a long track can be filtered batch by batch.
"""

from __future__ import annotations

from dataclasses import dataclass

from sailtrace.tracks.models import FilteredPoint, RawPoint, is_finite_number


class InvalidInputError(ValueError):
    """Raised when a point (or the filter result for it) is not usable."""


@dataclass
class FilterState:
    """Mutable filter state carried across batches.

    ``variance < 0`` marks an uninitialized filter.
    """

    latitude: float = 0.0
    longitude: float = 0.0
    variance: float = -1.0
    timestamp: float = 0.0
    process_noise: float = 0.0

    @property
    def initialized(self) -> bool:
        return self.variance >= 0.0


class PositionFilter:
    """Recursive noise filter for GPS fixes.

    Args:
        min_accuracy: Floor (metres) applied to reported accuracy so that a
            missing or zero accuracy never divides by zero.
        base_noise_floor: Minimum process noise (m/s) used when the boat is
            (nearly) stationary.
    """

    def __init__(self, min_accuracy: float = 1.0, base_noise_floor: float = 0.5) -> None:
        self.min_accuracy = min_accuracy
        self.base_noise_floor = base_noise_floor

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def new_state(self) -> FilterState:
        return FilterState()

    def process_noise_for(self, speed_mps: float) -> float:
        """Process noise for a step given the instantaneous speed estimate."""
        if not is_finite_number(speed_mps):
            return self.base_noise_floor
        return max(speed_mps, self.base_noise_floor)

    def initialize(self, state: FilterState, point: RawPoint) -> FilteredPoint:
        """Reset *state* to the position of *point*."""
        self._validate(point)
        accuracy = self._accuracy(point)
        state.latitude = float(point.latitude)  # type: ignore[arg-type]
        state.longitude = float(point.longitude)  # type: ignore[arg-type]
        state.variance = accuracy * accuracy
        state.timestamp = float(point.captured_at)
        return self._emit(state, point)

    def update(self, state: FilterState, point: RawPoint, process_noise: float) -> FilteredPoint:
        """Fold *point* into *state* and return the smoothed position.

        Raises:
            InvalidInputError: If the point or *process_noise* is not a finite
                number, or the filter result would not be finite.  *state* is
                left untouched in that case.
        """
        if not state.initialized:
            return self.initialize(state, point)

        self._validate(point)
        if not is_finite_number(process_noise):
            raise InvalidInputError(f"process noise must be finite, got {process_noise!r}")

        accuracy = self._accuracy(point)
        elapsed = max(0.0, point.captured_at - state.timestamp)

        variance = state.variance + elapsed * process_noise * process_noise
        gain = variance / (variance + accuracy * accuracy)
        latitude = state.latitude + gain * (point.latitude - state.latitude)  # type: ignore[operator]
        longitude = state.longitude + gain * (point.longitude - state.longitude)  # type: ignore[operator]
        variance *= 1.0 - gain

        if not all(is_finite_number(v) for v in (latitude, longitude, variance)):
            raise InvalidInputError(f"filter diverged on point {point.id}")

        state.latitude = latitude
        state.longitude = longitude
        state.variance = variance
        state.timestamp = max(state.timestamp, float(point.captured_at))
        state.process_noise = process_noise
        return self._emit(state, point)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _validate(self, point: RawPoint) -> None:
        if not point.is_valid():
            raise InvalidInputError(
                f"point {point.id} has non-numeric or non-finite values: "
                f"lat={point.latitude!r} lon={point.longitude!r} "
                f"accuracy={point.accuracy!r} captured_at={point.captured_at!r}"
            )

    def _accuracy(self, point: RawPoint) -> float:
        if point.accuracy is None:
            return self.min_accuracy
        return max(float(point.accuracy), self.min_accuracy)

    @staticmethod
    def _emit(state: FilterState, point: RawPoint) -> FilteredPoint:
        return FilteredPoint(
            id=point.id,
            latitude=point.latitude,
            longitude=point.longitude,
            accuracy=point.accuracy,
            captured_at=point.captured_at,
            adjusted_latitude=state.latitude,
            adjusted_longitude=state.longitude,
            variance=state.variance,
        )
