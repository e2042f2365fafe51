"""Path simplification by minimum triangle area (Visvalingam–Whyatt).

Each interior point is scored by the area of the triangle it forms with its
current neighbours.  The point with the smallest area contributes the least
to the shape of the track, so it is removed first; its neighbours are then
re-scored against their new neighbours.

Points live in an arena (a plain list) and link to each other by index, so
unlinking is O(1) without any object graph.  Long tracks are processed in
overlapping chunks to keep memory bounded.  Nothing is deleted: the
simplifier only reports which point ids were elided.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from sailtrace.tracks.models import FilteredPoint

_NONE = -1


def triangle_area(
    p1: tuple[float, float],
    p2: tuple[float, float],
    p3: tuple[float, float],
) -> float:
    """Area of the triangle spanned by three ``(lat, lon)`` pairs (degree units)."""
    lat1, lon1 = p1
    lat2, lon2 = p2
    lat3, lon3 = p3
    return abs((lon2 - lon1) * (lat3 - lat1) - (lon3 - lon1) * (lat2 - lat1)) / 2.0


@dataclass
class _Node:
    point: FilteredPoint
    prev: int
    next: int
    area: float = math.inf
    removed: bool = False

    @property
    def coords(self) -> tuple[float, float]:
        return (self.point.adjusted_latitude, self.point.adjusted_longitude)  # type: ignore[return-value]


class _Arena:
    """Doubly linked list of nodes addressed by list index."""

    def __init__(self, points: list[FilteredPoint]) -> None:
        n = len(points)
        self.nodes = [
            _Node(point=p, prev=i - 1 if i > 0 else _NONE, next=i + 1 if i < n - 1 else _NONE)
            for i, p in enumerate(points)
        ]
        self.head = 0 if n else _NONE
        self.tail = n - 1 if n else _NONE
        self.live = n
        for i in range(1, n - 1):
            self._rescore(i)

    def remove_smallest(self) -> FilteredPoint | None:
        """Unlink the interior node with the smallest area and return its point.

        Ties go to the first node in track order.  Returns None when no
        interior node can go without dropping below three points.
        """
        if self.live <= 3:
            return None

        best = _NONE
        best_area = math.inf
        i = self.nodes[self.head].next
        while i != _NONE and i != self.tail:
            node = self.nodes[i]
            if best == _NONE or node.area < best_area:
                best = i
                best_area = node.area
            i = node.next

        if best == _NONE:
            return None

        node = self.nodes[best]
        self.nodes[node.prev].next = node.next
        self.nodes[node.next].prev = node.prev
        node.removed = True
        self.live -= 1
        self._rescore(node.prev)
        self._rescore(node.next)
        return node.point

    def retained(self) -> list[FilteredPoint]:
        out: list[FilteredPoint] = []
        i = self.head
        while i != _NONE:
            out.append(self.nodes[i].point)
            i = self.nodes[i].next
        return out

    def _rescore(self, i: int) -> None:
        node = self.nodes[i]
        if node.prev == _NONE or node.next == _NONE:
            node.area = math.inf
            return
        node.area = triangle_area(
            self.nodes[node.prev].coords, node.coords, self.nodes[node.next].coords
        )


def simplify_chunk(points: list[FilteredPoint], removals_needed: int) -> list[int]:
    """Remove up to *removals_needed* points from *points*; return their ids.

    The first and last point are never removed and at least 3 points are
    always kept.
    """
    removed, _ = _simplify(points, removals_needed)
    return removed


def _simplify(points: list[FilteredPoint], removals_needed: int) -> tuple[list[int], _Arena]:
    arena = _Arena(points)
    removed: list[int] = []
    for _ in range(max(0, removals_needed)):
        point = arena.remove_smallest()
        if point is None:
            break
        removed.append(point.id)
    return removed, arena


class PathSimplifier:
    """Chunked, budgeted track simplification.

    Args:
        chunk_size: Points per chunk, including the overlap carried over.
        overlap: Number of retained points from the end of one chunk that
            open the next one, so the boundary point is re-scored with its
            real neighbours.
        removal_fraction: Fraction of all points to elide [0, 1].
    """

    def __init__(
        self,
        chunk_size: int = 200,
        overlap: int = 2,
        removal_fraction: float = 0.4,
    ) -> None:
        if overlap < 1:
            raise ValueError("overlap must be >= 1")
        if chunk_size <= overlap + 1:
            raise ValueError("chunk_size must exceed overlap + 1")
        if not 0.0 <= removal_fraction <= 1.0:
            raise ValueError("removal_fraction must be within [0, 1]")
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.removal_fraction = removal_fraction

    def simplify(self, points: Iterable[FilteredPoint], total: int) -> Iterator[list[int]]:
        """Yield the ids removed from each chunk of *points*.

        Args:
            points: Processed points in capture order.  Points without an
                adjusted position are ignored.
            total: Number of processed points, used to size the global budget.
        """
        total = max(total, 0)
        budget = int(total * self.removal_fraction)
        removed_total = 0
        seen = 0
        carry: list[FilteredPoint] = []
        pending: list[FilteredPoint] = []

        for point in points:
            if not point.is_processed:
                continue
            if len(carry) + len(pending) >= self.chunk_size:
                seen += len(pending)
                target = budget * seen // total if total else 0
                quota = max(0, min(target, budget) - removed_total)
                removed, arena = _simplify(carry + pending, quota)
                removed_total += len(removed)
                carry = arena.retained()[-self.overlap:]
                pending = []
                yield removed
            pending.append(point)

        if pending:
            quota = max(0, budget - removed_total)
            removed, _ = _simplify(carry + pending, quota)
            yield removed
