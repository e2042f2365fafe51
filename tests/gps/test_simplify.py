"""Tests for the area-based path simplifier."""

from __future__ import annotations

import math

import pytest

from sailtrace.gps.simplify import PathSimplifier, simplify_chunk, triangle_area
from sailtrace.tracks.models import FilteredPoint


def make_point(i: int, lat: float, lon: float) -> FilteredPoint:
    return FilteredPoint(
        id=i,
        latitude=lat,
        longitude=lon,
        accuracy=3.0,
        captured_at=float(i),
        adjusted_latitude=lat,
        adjusted_longitude=lon,
    )


def zigzag(n: int, start_id: int = 0) -> list[FilteredPoint]:
    """A wiggly track: amplitude grows with index so areas are all distinct."""
    return [
        make_point(start_id + i, i * 1e-4, ((-1) ** i) * (1 + i % 7) * 1e-5)
        for i in range(n)
    ]


# ---------------------------------------------------------------------------
# triangle_area
# ---------------------------------------------------------------------------

def test_triangle_area_right_triangle():
    assert triangle_area((0.0, 0.0), (0.0, 2.0), (2.0, 0.0)) == pytest.approx(2.0)


def test_triangle_area_collinear_is_zero():
    assert triangle_area((0.0, 0.0), (1.0, 1.0), (2.0, 2.0)) == 0.0


# ---------------------------------------------------------------------------
# simplify_chunk
# ---------------------------------------------------------------------------

def test_removes_collinear_point_first():
    points = [
        make_point(0, 0.0, 0.0),
        make_point(1, 1.0, 1.0),  # on the line 0 -> 2
        make_point(2, 2.0, 2.0),
        make_point(3, 3.0, 0.0),
    ]
    assert simplify_chunk(points, 1) == [1]


def test_tie_goes_to_first_in_order():
    points = [make_point(i, float(i), 0.0) for i in range(5)]  # all collinear
    assert simplify_chunk(points, 1) == [1]


def test_endpoints_are_never_removed():
    points = zigzag(30)
    removed = simplify_chunk(points, 100)
    assert points[0].id not in removed
    assert points[-1].id not in removed
    assert len(points) - len(removed) == 3


def test_zero_removals_returns_nothing():
    assert simplify_chunk(zigzag(10), 0) == []


@pytest.mark.parametrize("n", [0, 1, 2, 3])
def test_short_input_removes_nothing(n):
    assert simplify_chunk(zigzag(n), 5) == []


def test_output_never_exceeds_input():
    points = zigzag(25)
    removed = simplify_chunk(points, 10)
    assert len(removed) == 10
    assert len(set(removed)) == 10
    assert set(removed) <= {p.id for p in points}


def test_rerun_on_simplified_set_converges():
    points = zigzag(20)
    first = set(simplify_chunk(points, 15))
    remaining = [p for p in points if p.id not in first]
    assert len(remaining) == 5
    second = set(simplify_chunk(remaining, 15))
    assert len(remaining) - len(second) == 3


# ---------------------------------------------------------------------------
# PathSimplifier
# ---------------------------------------------------------------------------

def test_global_budget_is_respected():
    points = zigzag(1000)
    simplifier = PathSimplifier(chunk_size=100, overlap=2, removal_fraction=0.4)
    removed = [i for chunk in simplifier.simplify(points, len(points)) for i in chunk]
    assert len(removed) == 400
    assert len(set(removed)) == 400


def test_track_endpoints_are_kept():
    points = zigzag(500)
    simplifier = PathSimplifier(chunk_size=50, removal_fraction=0.6)
    removed = {i for chunk in simplifier.simplify(points, len(points)) for i in chunk}
    assert points[0].id not in removed
    assert points[-1].id not in removed


def test_zero_fraction_removes_nothing():
    points = zigzag(300)
    simplifier = PathSimplifier(chunk_size=50, removal_fraction=0.0)
    assert all(chunk == [] for chunk in simplifier.simplify(points, len(points)))


def test_single_chunk_matches_simplify_chunk():
    points = zigzag(40)
    simplifier = PathSimplifier(chunk_size=200, removal_fraction=0.5)
    chunks = list(simplifier.simplify(points, len(points)))
    assert chunks == [simplify_chunk(points, 20)]


def test_unprocessed_points_are_ignored():
    points = zigzag(20)
    raw = FilteredPoint(id=999, latitude=0.0, longitude=0.0, accuracy=None, captured_at=math.pi)
    simplifier = PathSimplifier(removal_fraction=0.5)
    removed = [i for chunk in simplifier.simplify(points[:10] + [raw] + points[10:], 20) for i in chunk]
    assert 999 not in removed
    assert len(removed) == 10


@pytest.mark.parametrize(
    "kwargs",
    [
        {"overlap": 0},
        {"chunk_size": 3, "overlap": 2},
        {"removal_fraction": 1.5},
        {"removal_fraction": -0.1},
    ],
)
def test_invalid_arguments(kwargs):
    with pytest.raises(ValueError):
        PathSimplifier(**kwargs)
