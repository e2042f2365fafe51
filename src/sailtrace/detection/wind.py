"""Wind direction inference from a track's headings.

A boat beating upwind sails long, steady legs on two headings roughly 90°
apart, one on each side of the wind.  The inference therefore:

1. collects *stable runs* — stretches where every heading stays within a few
   degrees of the run's vector-mean heading;
2. clusters runs with similar headings;
3. picks the most sailed pair of clusters that are 80–110° apart;
4. turns each side ``close_hauled_angle`` towards the other and takes the
   circular midpoint, rounded to the nearest 5°.

No qualifying pair means no estimate (``None``), never a default of 0.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field

from sailtrace.gps.geometry import (
    circular_mean,
    circular_midpoint,
    normalize_degrees,
    round_to_nearest,
    signed_heading_delta,
)
from sailtrace.tracks.models import EnrichedPoint

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StableRun:
    """A closed run of steady headings."""

    heading: float
    count: int
    start_at: float
    end_at: float


@dataclass
class HeadingCluster:
    """Stable runs sailed on (nearly) the same heading."""

    heading: float
    runs: list[StableRun] = field(default_factory=list)

    @property
    def count(self) -> int:
        """Total number of points across the cluster's runs."""
        return sum(r.count for r in self.runs)


@dataclass
class StableRunState:
    """Open run plus the runs closed so far; carried across batches.

    The open run is kept as vector sums so memory does not grow with its
    length.
    """

    count: int = 0
    sum_sin: float = 0.0
    sum_cos: float = 0.0
    start_at: float = 0.0
    end_at: float = 0.0
    runs: list[StableRun] = field(default_factory=list)

    @property
    def mean_heading(self) -> float | None:
        if self.count == 0:
            return None
        return normalize_degrees(math.degrees(math.atan2(self.sum_sin, self.sum_cos)))

    def start(self, heading: float, at: float) -> None:
        rad = math.radians(heading)
        self.count = 1
        self.sum_sin = math.sin(rad)
        self.sum_cos = math.cos(rad)
        self.start_at = at
        self.end_at = at

    def extend(self, heading: float, at: float) -> None:
        rad = math.radians(heading)
        self.count += 1
        self.sum_sin += math.sin(rad)
        self.sum_cos += math.cos(rad)
        self.end_at = at


class WindInference:
    """Infer the true wind direction of a track from its stable headings.

    Args:
        stable_tolerance: Max deviation (degrees) from the run mean.
        min_run_points: Shorter runs are ignored.
        cluster_tolerance: Runs within this many degrees share a cluster.
        min_pair_diff: Smallest tack-to-tack angle accepted.
        max_pair_diff: Largest tack-to-tack angle accepted.
        close_hauled_angle: Assumed angle between heading and wind when
            sailing upwind.
        round_to: Estimate granularity in degrees.
    """

    def __init__(
        self,
        stable_tolerance: float = 5.0,
        min_run_points: int = 30,
        cluster_tolerance: float = 10.0,
        min_pair_diff: float = 80.0,
        max_pair_diff: float = 110.0,
        close_hauled_angle: float = 45.0,
        round_to: int = 5,
    ) -> None:
        self.stable_tolerance = stable_tolerance
        self.min_run_points = min_run_points
        self.cluster_tolerance = cluster_tolerance
        self.min_pair_diff = min_pair_diff
        self.max_pair_diff = max_pair_diff
        self.close_hauled_angle = close_hauled_angle
        self.round_to = round_to

    # ------------------------------------------------------------------
    # Streaming stable-run extraction
    # ------------------------------------------------------------------

    def new_state(self) -> StableRunState:
        return StableRunState()

    def feed(self, state: StableRunState, point: EnrichedPoint) -> None:
        """Add one point's heading to the open run (points without heading are skipped)."""
        if point.heading is None:
            return
        heading = float(point.heading)
        mean = state.mean_heading
        if mean is None:
            state.start(heading, point.captured_at)
        elif abs(signed_heading_delta(mean, heading)) <= self.stable_tolerance:
            state.extend(heading, point.captured_at)
        else:
            self._close_run(state)
            state.start(heading, point.captured_at)

    def finish(self, state: StableRunState) -> list[StableRun]:
        """Close the open run and return every stable run collected."""
        self._close_run(state)
        state.count = 0
        return list(state.runs)

    # ------------------------------------------------------------------
    # Clustering and estimation
    # ------------------------------------------------------------------

    def cluster_runs(self, runs: Iterable[StableRun]) -> list[HeadingCluster]:
        """Greedy first-fit clustering of runs by heading."""
        clusters: list[HeadingCluster] = []
        for run in runs:
            for cluster in clusters:
                if abs(signed_heading_delta(cluster.heading, run.heading)) <= self.cluster_tolerance:
                    cluster.runs.append(run)
                    cluster.heading = circular_mean(r.heading for r in cluster.runs)  # type: ignore[assignment]
                    break
            else:
                clusters.append(HeadingCluster(heading=run.heading, runs=[run]))
        return clusters

    def best_pair(
        self, clusters: list[HeadingCluster]
    ) -> tuple[HeadingCluster, HeadingCluster] | None:
        """The most sailed cluster pair whose headings look like two tacks."""
        best: tuple[HeadingCluster, HeadingCluster] | None = None
        best_count = 0
        for i, a in enumerate(clusters):
            for b in clusters[i + 1:]:
                diff = abs(signed_heading_delta(a.heading, b.heading))
                if not self.min_pair_diff <= diff <= self.max_pair_diff:
                    continue
                combined = a.count + b.count
                if combined > best_count:
                    best_count = combined
                    best = (a, b)
        return best

    def estimate(self, heading_a: float, heading_b: float) -> int:
        """Wind direction for two tack headings, rounded to ``round_to`` degrees."""
        towards_b = 1.0 if signed_heading_delta(heading_a, heading_b) >= 0 else -1.0
        side_a = heading_a + towards_b * self.close_hauled_angle
        side_b = heading_b - towards_b * self.close_hauled_angle
        return round_to_nearest(circular_midpoint(side_a, side_b), self.round_to)

    def infer_from_runs(self, runs: Iterable[StableRun]) -> int | None:
        clusters = self.cluster_runs(runs)
        pair = self.best_pair(clusters)
        if pair is None:
            _logger.info("No tack pair among %d heading clusters", len(clusters))
            return None
        a, b = pair
        wind = self.estimate(a.heading, b.heading)
        _logger.info(
            "Tack pair %.1f° (%d pts) / %.1f° (%d pts) → wind %d°",
            a.heading, a.count, b.heading, b.count, wind,
        )
        return wind

    def infer(self, points: Iterable[EnrichedPoint]) -> int | None:
        """One-shot inference over a complete point sequence."""
        state = self.new_state()
        for point in points:
            self.feed(state, point)
        return self.infer_from_runs(self.finish(state))

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _close_run(self, state: StableRunState) -> None:
        mean = state.mean_heading
        if mean is None or state.count < self.min_run_points:
            return
        state.runs.append(
            StableRun(heading=mean, count=state.count, start_at=state.start_at, end_at=state.end_at)
        )
