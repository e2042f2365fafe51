"""Track points and their persistence.

Public API
----------
RawPoint       - GPS fix as captured
FilteredPoint  - fix with adjusted (smoothed) position
EnrichedPoint  - filtered fix with velocity and heading

Persistence lives in :mod:`sailtrace.tracks.storage` (``TrackStorage``,
``StorageError``); it is not re-exported here because it depends on the
detection models.
"""

from sailtrace.tracks.models import EnrichedPoint, FilteredPoint, RawPoint

__all__ = [
    "EnrichedPoint",
    "FilteredPoint",
    "RawPoint",
]
