"""TrackPipeline — runs the processing stages for one track or race.

Each entry point reads what it needs from storage in batches, carries the
stage's state across batch boundaries and writes its results back with an
idempotent upsert or a full replace, so any stage can be re-run after a
failure.  Storage failures are logged and re-raised.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager
from itertools import chain

from sailtrace.config import PipelineSettings
from sailtrace.detection.maneuvers import ManeuverDetector
from sailtrace.detection.marks import CourseMarkDetector
from sailtrace.detection.statistics import TrackStatisticsCalculator
from sailtrace.detection.wind import WindInference
from sailtrace.gps.geometry import initial_bearing, normalize_degrees
from sailtrace.gps.kalman import InvalidInputError, PositionFilter
from sailtrace.gps.simplify import PathSimplifier
from sailtrace.gps.speed import SmoothedSpeedCalculator, SpeedWindow
from sailtrace.pipeline.schemas import (
    CourseMarkSummary,
    ManeuverSummary,
    ProcessSummary,
    RaceAssociationSummary,
    RecordingSummary,
    SimplifySummary,
    StatisticsSummary,
    WindSummary,
)
from sailtrace.tracks.models import FilteredPoint, RawPoint
from sailtrace.tracks.races import RaceMatcher
from sailtrace.tracks.storage import StorageError, TrackStorage

_logger = logging.getLogger(__name__)


class TrackPipeline:
    """The pipeline stages, wired from :class:`PipelineSettings`.

    Parameters
    ----------
    storage:
        A :class:`TrackStorage` (or any object with the same methods).
    settings:
        Tunables.  Defaults to ``PipelineSettings()``.
    """

    def __init__(
        self,
        storage: TrackStorage,
        settings: PipelineSettings | None = None,
    ) -> None:
        self._storage = storage
        self._settings = settings or PipelineSettings()
        s = self._settings

        self._filter = PositionFilter(
            min_accuracy=s.min_accuracy_m, base_noise_floor=s.base_noise_floor
        )
        self._raw_speed = SmoothedSpeedCalculator(window_size=s.speed_window)
        self._velocity = SmoothedSpeedCalculator(window_size=s.speed_window, output_knots=True)
        self._simplifier = PathSimplifier(
            chunk_size=s.simplify_chunk_size,
            overlap=s.simplify_overlap,
            removal_fraction=s.simplify_fraction,
        )
        self._maneuvers = ManeuverDetector(
            window_s=s.maneuver_window_s, min_change=s.maneuver_min_change
        )
        self._wind = WindInference(
            min_run_points=s.wind_min_run_points, close_hauled_angle=s.close_hauled_angle
        )
        self._marks = CourseMarkDetector(
            cluster_radius_m=s.mark_cluster_radius_m,
            min_track_share=s.mark_min_track_share,
            turn_offset_m=s.turn_offset_m,
        )
        self._statistics = TrackStatisticsCalculator()
        self._races = RaceMatcher(
            time_window_s=s.race_time_window_s, max_distance_m=s.race_max_distance_m
        )

    @property
    def settings(self) -> PipelineSettings:
        return self._settings

    # ------------------------------------------------------------------
    # Stage entry points
    # ------------------------------------------------------------------

    def process_track(self, track_id: int) -> ProcessSummary:
        """Filter every raw fix and derive velocity and heading."""
        with self._storage_errors("process", track_id):
            self._require_track(track_id)
            state = self._filter.new_state()
            raw_window = self._raw_speed.new_window()
            velocity_window = self._velocity.new_window()
            prev_raw: RawPoint | None = None
            prev: FilteredPoint | None = None
            seen = skipped = enriched = 0

            for batch in self._storage.fetch_points_in_batches(track_id, self._settings.batch_size):
                adjusted: list[tuple[int, float, float]] = []
                motion: list[tuple[int, float | None, float | None]] = []
                for point in batch:
                    seen += 1
                    speed = self._instant_speed(raw_window, prev_raw, point)
                    try:
                        result = self._filter.update(
                            state, point, self._filter.process_noise_for(speed)
                        )
                    except InvalidInputError as exc:
                        skipped += 1
                        _logger.warning("Track %d: skipping point %d: %s", track_id, point.id, exc)
                        continue

                    velocity, heading = self._motion(velocity_window, prev, result)
                    if velocity is not None:
                        enriched += 1
                    adjusted.append((result.id, result.adjusted_latitude, result.adjusted_longitude))  # type: ignore[arg-type]
                    motion.append((result.id, velocity, heading))
                    prev_raw, prev = point, result

                self._storage.bulk_upsert_adjusted_positions(adjusted)
                self._storage.bulk_upsert_velocity_heading(motion)

        summary = ProcessSummary(
            track_id=track_id,
            points_seen=seen,
            points_filtered=seen - skipped,
            points_skipped=skipped,
            points_enriched=enriched,
        )
        _logger.info(
            "Track %d processed: %d points, %d skipped, %d with velocity",
            track_id, seen, skipped, enriched,
        )
        return summary

    def simplify_track(self, track_id: int) -> SimplifySummary:
        """Recompute the simplified flags of a track from full resolution."""
        with self._storage_errors("simplify", track_id):
            self._require_track(track_id)
            self._storage.clear_simplified(track_id)
            total = self._storage.count_points(track_id, processed_only=True)
            points = chain.from_iterable(
                self._storage.fetch_points_in_batches(
                    track_id, self._settings.batch_size, processed_only=True
                )
            )
            removed = 0
            for ids in self._simplifier.simplify(points, total):
                self._storage.mark_simplified(ids)
                removed += len(ids)

        _logger.info("Track %d simplified: %d of %d points elided", track_id, removed, total)
        return SimplifySummary(track_id=track_id, points_total=total, points_removed=removed)

    def infer_wind(self, track_id: int) -> WindSummary:
        """Infer and store the wind direction (``None`` when no tack pair is found)."""
        with self._storage_errors("infer wind", track_id):
            self._require_track(track_id)
            state = self._wind.new_state()
            for batch in self._storage.fetch_points_in_batches(
                track_id, self._settings.batch_size, processed_only=True
            ):
                for point in batch:
                    self._wind.feed(state, point)
            runs = self._wind.finish(state)
            degrees = self._wind.infer_from_runs(runs)
            self._storage.set_wind_estimate(track_id, degrees)

        return WindSummary(track_id=track_id, wind_degrees=degrees, stable_runs=len(runs))

    def detect_maneuvers(
        self,
        track_id: int,
        wind_degrees_hint: float | None = None,
    ) -> ManeuverSummary:
        """Detect and store the track's maneuvers, replacing earlier ones.

        Without a hint the stored wind estimate (if any) drives the
        wind-aware classification.
        """
        with self._storage_errors("detect maneuvers", track_id):
            self._require_track(track_id)
            wind = wind_degrees_hint
            if wind is None:
                stored = self._storage.get_wind_estimate(track_id)
                wind = stored.degrees if stored is not None else None

            state = self._maneuvers.new_state()
            found = []
            for batch in self._storage.fetch_points_in_batches(
                track_id, self._settings.batch_size, processed_only=True
            ):
                for point in batch:
                    found.extend(self._maneuvers.feed(state, point, track_id, wind))
            found.extend(self._maneuvers.finish(state, track_id, wind))
            self._storage.replace_maneuvers(track_id, found)

        by_type = Counter(m.maneuver_type for m in found)
        _logger.info("Track %d: %d maneuvers %s", track_id, len(found), dict(by_type))
        return ManeuverSummary(
            track_id=track_id,
            wind_degrees=wind,
            maneuver_count=len(found),
            by_type=dict(by_type),
        )

    def detect_course_marks(self, race_id: int) -> CourseMarkSummary:
        """Regenerate every course mark of a race from its tracks' maneuvers."""
        with self._storage_errors("detect course marks", race_id):
            track_ids = self._storage.race_track_ids(race_id)
            maneuvers = self._storage.race_maneuvers(race_id)
            marks = self._marks.detect(race_id, maneuvers, len(track_ids))
            self._storage.replace_course_marks(race_id, marks)

        candidates = sum(
            1 for m in maneuvers
            if abs(m.cumulative_heading_change) >= self._marks.min_abs_change
        )
        return CourseMarkSummary(
            race_id=race_id,
            track_count=len(track_ids),
            candidate_maneuvers=candidates,
            mark_count=len(marks),
        )

    def compute_statistics(self, track_id: int) -> StatisticsSummary:
        """Compute and store distance and speed figures for a track."""
        with self._storage_errors("compute statistics", track_id):
            self._require_track(track_id)
            state = self._statistics.new_state()
            for batch in self._storage.fetch_points_in_batches(
                track_id, self._settings.batch_size, processed_only=True
            ):
                for point in batch:
                    self._statistics.feed(state, point)
            stats = self._statistics.finish(state, track_id)
            self._storage.save_statistics(stats)

        return StatisticsSummary(**stats.to_dict())

    def associate_race(self, track_id: int) -> RaceAssociationSummary:
        """Attach the track to the race it was sailed in, creating one if needed.

        A track that already belongs to a race keeps it.  A track without a
        usable fix stays unattached.
        """
        created = False
        with self._storage_errors("associate race", track_id):
            race_id = self._require_track(track_id).get("race_id")
            start = None if race_id is not None else self._storage.track_start(track_id)
            if start is not None:
                started_at, latitude, longitude = start
                window = self._races.time_window_s
                candidates = self._storage.races_started_between(
                    started_at - window, started_at + window
                )
                match = self._races.best_match(started_at, latitude, longitude, candidates)
                if match is None:
                    race_id = self._storage.create_race(
                        started_at=started_at,
                        start_latitude=latitude,
                        start_longitude=longitude,
                    )
                    created = True
                else:
                    race_id = match.race_id
                self._storage.attach_track(track_id, race_id)
                _logger.info(
                    "Track %d joined %s race %d", track_id, "new" if created else "existing", race_id
                )

        return RaceAssociationSummary(track_id=track_id, race_id=race_id, created=created)

    def process_recording(self, track_id: int) -> RecordingSummary:
        """Run every track stage in order, then the race's course marks."""
        process = self.process_track(track_id)
        simplify = self.simplify_track(track_id)
        statistics = self.compute_statistics(track_id)
        wind = self.infer_wind(track_id)
        maneuvers = self.detect_maneuvers(track_id, wind_degrees_hint=wind.wind_degrees)
        race = self.associate_race(track_id)

        course_marks = None
        if race.race_id is not None:
            course_marks = self.detect_course_marks(race.race_id)

        return RecordingSummary(
            track_id=track_id,
            process=process,
            simplify=simplify,
            statistics=statistics,
            wind=wind,
            maneuvers=maneuvers,
            race=race,
            course_marks=course_marks,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    @contextmanager
    def _storage_errors(stage: str, ident: int) -> Iterator[None]:
        try:
            yield
        except StorageError:
            _logger.error("Storage failure during %s (id=%d)", stage, ident, exc_info=True)
            raise

    def _require_track(self, track_id: int) -> dict:
        track = self._storage.get_track(track_id)
        if track is None:
            raise ValueError(f"Unknown track {track_id}")
        return track

    def _instant_speed(
        self, window: SpeedWindow, prev: RawPoint | None, point: RawPoint
    ) -> float:
        """Raw-fix speed estimate (m/s) that sets the filter's process noise."""
        if prev is None or not point.is_valid():
            return self._raw_speed.current(window)
        return self._raw_speed.add_point(
            window,
            prev.latitude,  # type: ignore[arg-type]
            prev.longitude,  # type: ignore[arg-type]
            point.latitude,  # type: ignore[arg-type]
            point.longitude,  # type: ignore[arg-type]
            point.captured_at - prev.captured_at,
        )

    def _motion(
        self,
        window: SpeedWindow,
        prev: FilteredPoint | None,
        current: FilteredPoint,
    ) -> tuple[float | None, float | None]:
        """Smoothed velocity (knots) and heading for *current*, or ``(None, None)``."""
        if prev is None:
            return None, None
        time_diff = current.captured_at - prev.captured_at
        if time_diff < self._settings.min_time_diff_s:
            return None, None

        coords = (
            prev.adjusted_latitude,
            prev.adjusted_longitude,
            current.adjusted_latitude,
            current.adjusted_longitude,
        )
        velocity = self._velocity.add_point(window, *coords, time_diff)  # type: ignore[arg-type]
        if velocity > self._settings.max_velocity_knots:
            return None, None
        heading = normalize_degrees(round(initial_bearing(*coords), 2))  # type: ignore[arg-type]
        return round(velocity, 2), heading
