"""Tests for RaceMatcher."""

from __future__ import annotations

import pytest

from sailtrace.tracks.races import RaceMatcher, RaceStart

T0 = 1_700_000_000.0
LINE = (50.0, -1.0)


def make_start(race_id: int, dt: float = 0.0, dlat_m: float = 0.0) -> RaceStart:
    return RaceStart(
        race_id=race_id,
        started_at=T0 + dt,
        latitude=LINE[0] + dlat_m / 111_111.0,
        longitude=LINE[1],
    )


@pytest.fixture
def matcher() -> RaceMatcher:
    return RaceMatcher()


def test_matches_race_started_nearby_at_the_same_time(matcher):
    race = make_start(1, dt=120.0, dlat_m=200.0)
    assert matcher.best_match(T0, *LINE, [race]) == race


def test_too_far_is_no_match(matcher):
    assert matcher.best_match(T0, *LINE, [make_start(1, dlat_m=900.0)]) is None


def test_too_late_is_no_match(matcher):
    assert matcher.best_match(T0, *LINE, [make_start(1, dt=601.0)]) is None
    assert matcher.best_match(T0, *LINE, [make_start(1, dt=-601.0)]) is None


def test_window_edges_are_inclusive(matcher):
    race = make_start(1, dt=600.0)
    assert matcher.best_match(T0, *LINE, [race]) == race


def test_closest_start_wins(matcher):
    far = make_start(1, dlat_m=600.0)
    near = make_start(2, dt=500.0, dlat_m=100.0)
    middle = make_start(3, dlat_m=300.0)
    assert matcher.best_match(T0, *LINE, [far, near, middle]) == near


def test_distance_tie_goes_to_lower_id(matcher):
    a = make_start(8, dlat_m=100.0)
    b = make_start(4, dlat_m=100.0)
    assert matcher.best_match(T0, *LINE, [a, b]) == b


def test_no_candidates(matcher):
    assert matcher.best_match(T0, *LINE, []) is None


def test_thresholds_are_configurable():
    race = make_start(1, dt=60.0, dlat_m=300.0)
    assert RaceMatcher(max_distance_m=250.0).best_match(T0, *LINE, [race]) is None
    assert RaceMatcher(time_window_s=30.0).best_match(T0, *LINE, [race]) is None


def test_invalid_thresholds():
    with pytest.raises(ValueError):
        RaceMatcher(time_window_s=0.0)
    with pytest.raises(ValueError):
        RaceMatcher(max_distance_m=-1.0)
