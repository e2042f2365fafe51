"""Course mark inference from the large turns of every boat in a race.

Boats round the same marks, so big turns from many different tracks pile up
around each mark.  Turns are clustered spatially, clusters seen by too few
tracks are dropped, and each survivor becomes one :class:`CourseMark` placed
slightly inside the turn.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from sailtrace.detection.models import CourseMark, Maneuver, MarkType
from sailtrace.gps.geometry import distance_m, meters_to_lat_degrees, meters_to_lon_degrees

_logger = logging.getLogger(__name__)


@dataclass
class MarkCluster:
    """Maneuvers grouped around a running centroid."""

    latitude: float
    longitude: float
    members: list[Maneuver] = field(default_factory=list)

    def add(self, maneuver: Maneuver) -> None:
        self.members.append(maneuver)
        n = len(self.members)
        self.latitude = sum(m.latitude for m in self.members) / n
        self.longitude = sum(m.longitude for m in self.members) / n

    @property
    def track_ids(self) -> set[int]:
        return {m.track_id for m in self.members}

    @property
    def mean_abs_change(self) -> float:
        return sum(abs(m.cumulative_heading_change) for m in self.members) / len(self.members)


class CourseMarkDetector:
    """Cluster a race's large maneuvers into course marks.

    Args:
        min_abs_change: Maneuvers with a smaller |heading change| are ignored.
        cluster_radius_m: Join distance to a cluster centroid.
        min_track_share: Minimum fraction of the race's tracks a cluster must
            contain to become a mark.
        turn_offset_m: How far the mark is placed inside the turn.
        windward_threshold: Mean |change| separating windward from leeward
            roundings.
    """

    def __init__(
        self,
        min_abs_change: float = 80.0,
        cluster_radius_m: float = 20.0,
        min_track_share: float = 0.3,
        turn_offset_m: float = 5.0,
        windward_threshold: float = 135.0,
    ) -> None:
        self.min_abs_change = min_abs_change
        self.cluster_radius_m = cluster_radius_m
        self.min_track_share = min_track_share
        self.turn_offset_m = turn_offset_m
        self.windward_threshold = windward_threshold

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def detect(
        self,
        race_id: int,
        maneuvers: Iterable[Maneuver],
        total_tracks: int,
    ) -> list[CourseMark]:
        """Return the course marks for *race_id*; empty if nothing qualifies."""
        if total_tracks <= 0:
            return []

        candidates = [
            m for m in maneuvers if abs(m.cumulative_heading_change) >= self.min_abs_change
        ]
        clusters = self.cluster(candidates)

        marks: list[CourseMark] = []
        for cluster in clusters:
            coverage = len(cluster.track_ids) / total_tracks
            if coverage < self.min_track_share:
                continue
            marks.append(self._to_mark(race_id, cluster, coverage))

        _logger.info(
            "Race %d: %d candidate maneuvers, %d clusters, %d marks",
            race_id, len(candidates), len(clusters), len(marks),
        )
        return marks

    def cluster(self, maneuvers: Iterable[Maneuver]) -> list[MarkCluster]:
        """Greedy first-fit clustering against running centroids."""
        clusters: list[MarkCluster] = []
        for maneuver in maneuvers:
            for cluster in clusters:
                d = distance_m(maneuver.latitude, maneuver.longitude, cluster.latitude, cluster.longitude)
                if d <= self.cluster_radius_m:
                    cluster.add(maneuver)
                    break
            else:
                new = MarkCluster(maneuver.latitude, maneuver.longitude)
                new.add(maneuver)
                clusters.append(new)
        return clusters

    def guess_mark_type(self, cluster: MarkCluster) -> MarkType:
        types = Counter(m.maneuver_type for m in cluster.members)
        avg_change = cluster.mean_abs_change

        if types["rounding"] >= len(cluster.members) / 2.0:
            return "windward" if avg_change >= self.windward_threshold else "leeward"
        if types["tack"] > types["jibe"]:
            return "windward"
        if types["jibe"] > types["tack"]:
            return "leeward"

        if avg_change >= self.windward_threshold:
            return "windward"
        if avg_change >= self.min_abs_change:
            return "leeward"
        if avg_change >= 60.0:
            return "offset"
        return "unknown"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _to_mark(self, race_id: int, cluster: MarkCluster, coverage: float) -> CourseMark:
        lat, lon = self._offset_position(cluster)
        avg_conf = sum(m.confidence for m in cluster.members) / len(cluster.members)
        confidence = min(1.0, (coverage + avg_conf) * 0.5)
        return CourseMark(
            race_id=race_id,
            latitude=round(lat, 6),
            longitude=round(lon, 6),
            confidence=round(confidence, 3),
            mark_type=self.guess_mark_type(cluster),
        )

    def _offset_position(self, cluster: MarkCluster) -> tuple[float, float]:
        """Shift the centroid inside the turn, half the offset per axis."""
        signs = sum(1 if m.cumulative_heading_change >= 0 else -1 for m in cluster.members)
        sign = 1 if signs >= 0 else -1
        half = self.turn_offset_m / 2.0
        return (
            cluster.latitude + sign * meters_to_lat_degrees(half),
            cluster.longitude + sign * meters_to_lon_degrees(half, cluster.latitude),
        )
