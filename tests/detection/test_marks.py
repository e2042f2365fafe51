"""Tests for CourseMarkDetector."""

from __future__ import annotations

import pytest

from sailtrace.detection.marks import CourseMarkDetector, MarkCluster
from sailtrace.detection.models import Maneuver
from sailtrace.gps.geometry import distance_m

RACE = 3
MARK = (50.0, -1.0)
FAR = (50.01, -1.02)  # ~1.8 km away


def make_maneuver(
    track_id: int,
    lat: float = MARK[0],
    lon: float = MARK[1],
    change: float = 150.0,
    maneuver_type: str = "rounding",
    confidence: float = 0.8,
) -> Maneuver:
    return Maneuver(
        track_id=track_id,
        cumulative_heading_change=change,
        latitude=lat,
        longitude=lon,
        occurred_at=100.0 + track_id,
        maneuver_type=maneuver_type,  # type: ignore[arg-type]
        confidence=confidence,
    )


def around_mark(track_ids, **kwargs) -> list[Maneuver]:
    """One maneuver per track, scattered a few metres around MARK."""
    return [
        make_maneuver(t, lat=MARK[0] + (k % 3 - 1) * 3e-5, lon=MARK[1] + (k % 2) * 4e-5, **kwargs)
        for k, t in enumerate(track_ids)
    ]


@pytest.fixture
def detector() -> CourseMarkDetector:
    return CourseMarkDetector()


# ---------------------------------------------------------------------------
# detect
# ---------------------------------------------------------------------------

def test_shared_turns_make_one_mark(detector):
    maneuvers = around_mark([1, 2, 3])
    marks = detector.detect(RACE, maneuvers, total_tracks=4)
    assert len(marks) == 1
    mark = marks[0]
    assert mark.race_id == RACE

    centroid_lat = sum(m.latitude for m in maneuvers) / 3
    centroid_lon = sum(m.longitude for m in maneuvers) / 3
    assert distance_m(centroid_lat, centroid_lon, mark.latitude, mark.longitude) <= 5.0
    assert distance_m(centroid_lat, centroid_lon, mark.latitude, mark.longitude) > 0.0


def test_lone_track_makes_no_mark(detector):
    maneuvers = [make_maneuver(1), make_maneuver(1), make_maneuver(1)]
    assert detector.detect(RACE, maneuvers, total_tracks=4) == []


def test_small_turns_are_ignored(detector):
    maneuvers = around_mark([1, 2, 3, 4], change=60.0, maneuver_type="jibe")
    assert detector.detect(RACE, maneuvers, total_tracks=4) == []


def test_separate_locations_make_separate_marks(detector):
    maneuvers = around_mark([1, 2, 3]) + [
        make_maneuver(t, lat=FAR[0], lon=FAR[1], change=-100.0, maneuver_type="jibe")
        for t in (1, 2, 4)
    ]
    marks = detector.detect(RACE, maneuvers, total_tracks=5)
    assert len(marks) == 2
    assert {m.mark_type for m in marks} == {"windward", "leeward"}


def test_no_tracks_no_marks(detector):
    assert detector.detect(RACE, around_mark([1, 2]), total_tracks=0) == []


def test_offset_follows_majority_turn_direction(detector):
    clockwise = detector.detect(RACE, around_mark([1, 2, 3], change=150.0), 3)[0]
    anticlockwise = detector.detect(RACE, around_mark([1, 2, 3], change=-150.0), 3)[0]
    assert clockwise.latitude > anticlockwise.latitude
    assert clockwise.longitude > anticlockwise.longitude


def test_confidence_combines_coverage_and_maneuvers(detector):
    marks = detector.detect(RACE, around_mark([1, 2], confidence=0.8), total_tracks=4)
    assert marks[0].confidence == pytest.approx(0.65)

    full = detector.detect(RACE, around_mark([1, 2], confidence=1.0), total_tracks=2)
    assert full[0].confidence == 1.0


def test_centroid_is_running_mean(detector):
    clusters = detector.cluster(
        [make_maneuver(1, lat=50.0), make_maneuver(2, lat=50.0001), make_maneuver(3, lat=50.0002)]
    )
    assert len(clusters) == 1
    assert clusters[0].latitude == pytest.approx(50.0001)


def test_cluster_radius_is_configurable():
    maneuvers = [make_maneuver(1, lat=50.0), make_maneuver(2, lat=50.0003)]  # ~33 m apart
    assert len(CourseMarkDetector().cluster(maneuvers)) == 2
    assert len(CourseMarkDetector(cluster_radius_m=40.0).cluster(maneuvers)) == 1


# ---------------------------------------------------------------------------
# guess_mark_type
# ---------------------------------------------------------------------------

def cluster_of(*specs: tuple[float, str]) -> MarkCluster:
    cluster = MarkCluster(MARK[0], MARK[1])
    for i, (change, maneuver_type) in enumerate(specs):
        cluster.add(make_maneuver(i, change=change, maneuver_type=maneuver_type))
    return cluster


@pytest.mark.parametrize(
    "specs, expected",
    [
        (((150.0, "rounding"), (160.0, "rounding"), (120.0, "tack")), "windward"),
        (((100.0, "rounding"), (110.0, "rounding"), (90.0, "jibe")), "leeward"),
        (((100.0, "tack"), (100.0, "tack"), (100.0, "jibe")), "windward"),
        (((100.0, "jibe"), (100.0, "jibe"), (100.0, "tack")), "leeward"),
        (((140.0, "unknown"), (140.0, "penalty_spin"), (140.0, "unknown")), "windward"),
        (((90.0, "unknown"), (90.0, "unknown"), (90.0, "unknown")), "leeward"),
        (((65.0, "unknown"), (65.0, "unknown"), (65.0, "unknown")), "offset"),
        (((40.0, "unknown"), (40.0, "unknown"), (40.0, "unknown")), "unknown"),
    ],
)
def test_guess_mark_type(detector, specs, expected):
    assert detector.guess_mark_type(cluster_of(*specs)) == expected
