"""Tests for SmoothedSpeedCalculator."""

from __future__ import annotations

import math

import pytest

from sailtrace.gps.geometry import KNOTS_PER_MPS, distance_m, meters_to_lat_degrees
from sailtrace.gps.speed import SmoothedSpeedCalculator, SpeedWindow

STEP = meters_to_lat_degrees(10.0)  # ~10 m north per step


def add_steps(calc: SmoothedSpeedCalculator, window: SpeedWindow, n: int, dt: float = 2.0) -> float:
    speed = 0.0
    for i in range(n):
        speed = calc.add_point(window, i * STEP, 0.0, (i + 1) * STEP, 0.0, dt)
    return speed


def test_empty_window_is_zero():
    calc = SmoothedSpeedCalculator()
    assert calc.current(calc.new_window()) == 0.0


def test_constant_speed():
    calc = SmoothedSpeedCalculator()
    window = calc.new_window()
    d = distance_m(0.0, 0.0, STEP, 0.0)
    assert add_steps(calc, window, 5, dt=2.0) == pytest.approx(d / 2.0)


def test_output_knots():
    calc = SmoothedSpeedCalculator(output_knots=True)
    window = calc.new_window()
    d = distance_m(0.0, 0.0, STEP, 0.0)
    assert add_steps(calc, window, 3, dt=1.0) == pytest.approx(d * KNOTS_PER_MPS)


def test_window_evicts_oldest():
    calc = SmoothedSpeedCalculator(window_size=3)
    window = calc.new_window()
    calc.add_point(window, 0.0, 0.0, 100 * STEP, 0.0, 1.0)  # very fast pair
    add_steps(calc, window, 3, dt=1.0)
    assert len(window) == 3
    assert calc.current(window) == pytest.approx(distance_m(0.0, 0.0, STEP, 0.0))


@pytest.mark.parametrize("dt", [0.0, -1.0, math.nan, math.inf])
def test_degenerate_time_delta_is_excluded(dt):
    calc = SmoothedSpeedCalculator()
    window = calc.new_window()
    speed = calc.add_point(window, 0.0, 0.0, STEP, 0.0, dt)
    assert speed == 0.0
    assert not math.isnan(speed)
    assert len(window) == 0


def test_zero_time_delta_after_valid_pairs_keeps_average():
    calc = SmoothedSpeedCalculator()
    window = calc.new_window()
    before = add_steps(calc, window, 2, dt=1.0)
    after = calc.add_point(window, 0.0, 0.0, STEP, 0.0, 0.0)
    assert after == before
    assert len(window) == 2


def test_invalid_coordinates_are_excluded():
    calc = SmoothedSpeedCalculator()
    window = calc.new_window()
    assert calc.add_point(window, None, 0.0, STEP, 0.0, 1.0) == 0.0  # type: ignore[arg-type]
    assert len(window) == 0


def test_window_size_must_be_positive():
    with pytest.raises(ValueError):
        SmoothedSpeedCalculator(window_size=0)
