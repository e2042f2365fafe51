"""Sailing event detection over processed tracks.

Public API
----------
ManeuverDetector          - tacks, jibes, roundings and penalty spins
WindInference             - wind direction from tack-pair headings
CourseMarkDetector        - course marks from a race's large turns
TrackStatisticsCalculator - distance and speed figures
Maneuver, WindEstimate, CourseMark, TrackStatistics - result models
"""

from sailtrace.detection.maneuvers import ManeuverDetector, TurnState
from sailtrace.detection.marks import CourseMarkDetector
from sailtrace.detection.models import CourseMark, Maneuver, TrackStatistics, WindEstimate
from sailtrace.detection.statistics import TrackStatisticsCalculator
from sailtrace.detection.wind import StableRun, WindInference

__all__ = [
    "CourseMark",
    "CourseMarkDetector",
    "Maneuver",
    "ManeuverDetector",
    "StableRun",
    "TrackStatistics",
    "TrackStatisticsCalculator",
    "TurnState",
    "WindEstimate",
    "WindInference",
]
