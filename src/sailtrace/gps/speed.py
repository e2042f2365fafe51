"""Sliding-window speed smoothing.

Speed is the ratio of total distance to total time over the last *K*
point pairs, which damps the jitter of pairwise GPS speeds.  The window is a
:class:`SpeedWindow` owned by the caller so it can span storage batches.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from sailtrace.gps.geometry import KNOTS_PER_MPS, distance_m
from sailtrace.tracks.models import is_finite_number


@dataclass
class SpeedWindow:
    """Bounded FIFO windows of pair distances (m) and time deltas (s)."""

    capacity: int = 10
    distances: deque[float] = field(default_factory=deque)
    times: deque[float] = field(default_factory=deque)

    def push(self, distance: float, time_diff: float) -> None:
        self.distances.append(distance)
        self.times.append(time_diff)
        while len(self.distances) > self.capacity:
            self.distances.popleft()
            self.times.popleft()

    def __len__(self) -> int:
        return len(self.distances)


class SmoothedSpeedCalculator:
    """Compute a smoothed speed from consecutive GPS positions.

    Args:
        window_size: Number of point pairs averaged (K).
        output_knots: Return knots instead of metres per second.
    """

    def __init__(self, window_size: int = 10, output_knots: bool = False) -> None:
        if window_size < 1:
            raise ValueError("window_size must be >= 1")
        self.window_size = window_size
        self.output_knots = output_knots

    def new_window(self) -> SpeedWindow:
        return SpeedWindow(capacity=self.window_size)

    def add_point(
        self,
        window: SpeedWindow,
        lat1: float,
        lon1: float,
        lat2: float,
        lon2: float,
        time_diff: float,
    ) -> float:
        """Push one point pair into *window* and return the smoothed speed.

        Pairs with invalid coordinates or a zero/negative/non-finite time
        delta are not added; the current window average is returned instead.
        """
        coords_ok = all(is_finite_number(v) for v in (lat1, lon1, lat2, lon2))
        if coords_ok and is_finite_number(time_diff) and time_diff > 0:
            window.push(distance_m(lat1, lon1, lat2, lon2), float(time_diff))
        return self.current(window)

    def current(self, window: SpeedWindow) -> float:
        """Smoothed speed for the pairs currently in *window*."""
        if not window:
            return 0.0
        total_time = sum(window.times)
        if total_time <= 0:
            return 0.0
        speed = sum(window.distances) / total_time
        return speed * KNOTS_PER_MPS if self.output_knots else speed
