"""GPS signal processing: filtering, speed/heading and simplification.

Public API
----------
PositionFilter          - recursive noise filter for raw fixes
FilterState             - filter state threaded through batches
InvalidInputError       - raised for unusable points
SmoothedSpeedCalculator - sliding-window speed estimate
SpeedWindow             - speed window state threaded through batches
PathSimplifier          - chunked minimum-area point elimination
"""

from sailtrace.gps.geometry import distance_m, initial_bearing, signed_heading_delta
from sailtrace.gps.kalman import FilterState, InvalidInputError, PositionFilter
from sailtrace.gps.simplify import PathSimplifier, simplify_chunk, triangle_area
from sailtrace.gps.speed import SmoothedSpeedCalculator, SpeedWindow

__all__ = [
    "FilterState",
    "InvalidInputError",
    "PathSimplifier",
    "PositionFilter",
    "SmoothedSpeedCalculator",
    "SpeedWindow",
    "distance_m",
    "initial_bearing",
    "signed_heading_delta",
    "simplify_chunk",
    "triangle_area",
]
