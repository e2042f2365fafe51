"""TrackStorage — persists tracks, points and derived sailing events to SQLite.

Schema design notes:
  - ``points`` keeps every raw fix forever.  Filtering and enrichment only
    fill the ``adjusted_*``/``velocity``/``heading`` columns; simplification
    only flips ``is_simplified``.
  - Points are read with keyset pagination on ``(captured_at, id)`` so a long
    track is streamed in bounded batches without ``OFFSET`` rescans.
  - Maneuvers and course marks are replaced wholesale inside one
    transaction (delete then insert); no diffing.
  - The wind estimate and the track statistics are plain columns on
    ``tracks`` (at most one per track).
  - A race remembers where and when it started so later tracks can be
    matched to it (see :mod:`sailtrace.tracks.races`).

Every ``sqlite3.Error`` leaves this module as :class:`StorageError`.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from sailtrace.detection.models import CourseMark, Maneuver, TrackStatistics, WindEstimate
from sailtrace.tracks.models import EnrichedPoint
from sailtrace.tracks.races import RaceStart

_DDL = """
PRAGMA journal_mode = WAL;
PRAGMA synchronous  = NORMAL;
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS races (
    id              INTEGER PRIMARY KEY,
    name            TEXT    NOT NULL DEFAULT '',
    started_at      REAL,
    start_latitude  REAL,
    start_longitude REAL,
    created_at      TEXT    NOT NULL
                    DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_races_started
    ON races (started_at);

CREATE TABLE IF NOT EXISTS tracks (
    id                     INTEGER PRIMARY KEY,
    race_id                INTEGER REFERENCES races (id),
    name                   TEXT    NOT NULL DEFAULT '',
    wind_direction_degrees INTEGER,
    distance_nm            REAL,
    average_speed_knots    REAL,
    max_speed_knots        REAL,
    point_count            INTEGER,
    last_processed_at      TEXT
);

CREATE INDEX IF NOT EXISTS idx_tracks_race
    ON tracks (race_id);

CREATE TABLE IF NOT EXISTS points (
    id                 INTEGER PRIMARY KEY,
    track_id           INTEGER NOT NULL REFERENCES tracks (id),
    latitude           REAL,
    longitude          REAL,
    accuracy           REAL,
    captured_at        REAL    NOT NULL,
    adjusted_latitude  REAL,
    adjusted_longitude REAL,
    velocity           REAL,
    heading            REAL,
    is_simplified      INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_points_track_time
    ON points (track_id, captured_at, id);

CREATE TABLE IF NOT EXISTS maneuvers (
    id                        INTEGER PRIMARY KEY,
    track_id                  INTEGER NOT NULL REFERENCES tracks (id),
    cumulative_heading_change REAL    NOT NULL,
    latitude                  REAL    NOT NULL,
    longitude                 REAL    NOT NULL,
    occurred_at               REAL    NOT NULL,
    maneuver_type             TEXT    NOT NULL,
    confidence                REAL    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_maneuvers_track
    ON maneuvers (track_id, occurred_at);

CREATE TABLE IF NOT EXISTS course_marks (
    id         INTEGER PRIMARY KEY,
    race_id    INTEGER NOT NULL REFERENCES races (id),
    latitude   REAL    NOT NULL,
    longitude  REAL    NOT NULL,
    confidence REAL    NOT NULL,
    mark_type  TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_course_marks_race
    ON course_marks (race_id)
"""

_INSERT_POINT = """
INSERT INTO points (track_id, latitude, longitude, accuracy, captured_at)
VALUES (?, ?, ?, ?, ?)
"""

_SELECT_POINTS_PAGE = """
SELECT id, latitude, longitude, accuracy, captured_at,
       adjusted_latitude, adjusted_longitude, velocity, heading, is_simplified
FROM   points
WHERE  track_id = ?
  AND  (captured_at > ? OR (captured_at = ? AND id > ?))
  {filters}
ORDER  BY captured_at, id
LIMIT  ?
"""

_UPDATE_ADJUSTED = """
UPDATE points SET adjusted_latitude = ?, adjusted_longitude = ? WHERE id = ?
"""

_UPDATE_VELOCITY_HEADING = """
UPDATE points SET velocity = ?, heading = ? WHERE id = ?
"""

_INSERT_MANEUVER = """
INSERT INTO maneuvers (
    track_id, cumulative_heading_change, latitude, longitude,
    occurred_at, maneuver_type, confidence
) VALUES (?, ?, ?, ?, ?, ?, ?)
"""

_SELECT_MANEUVERS = """
SELECT track_id, cumulative_heading_change, latitude, longitude,
       occurred_at, maneuver_type, confidence
FROM   maneuvers
"""

_INSERT_COURSE_MARK = """
INSERT INTO course_marks (race_id, latitude, longitude, confidence, mark_type)
VALUES (?, ?, ?, ?, ?)
"""


class StorageError(Exception):
    """Raised when the SQLite backend fails."""


class TrackStorage:
    """Stores and retrieves tracks, points and derived events from SQLite.

    Parameters
    ----------
    db_path:
        Path to the SQLite file.  Pass ``":memory:"`` for in-process testing.
    """

    def __init__(self, db_path: str = "sailtrace.db") -> None:
        with self._errors("open database"):
            self._conn = sqlite3.connect(db_path)
            self._conn.row_factory = sqlite3.Row
            for stmt in _DDL.strip().split(";"):
                stmt = stmt.strip()
                if stmt:
                    self._conn.execute(stmt)
            self._conn.commit()

    # ------------------------------------------------------------------
    # Races and tracks
    # ------------------------------------------------------------------

    def create_race(
        self,
        name: str = "",
        *,
        started_at: float | None = None,
        start_latitude: float | None = None,
        start_longitude: float | None = None,
    ) -> int:
        """Insert a race and return its id.

        Races without a start time and position are never matched by
        :meth:`races_started_between`; tracks join them only explicitly.
        """
        with self._errors("create race"), self._conn:
            cursor = self._conn.execute(
                """
                INSERT INTO races (name, started_at, start_latitude, start_longitude)
                VALUES (?, ?, ?, ?)
                """,
                (name, started_at, start_latitude, start_longitude),
            )
        return cursor.lastrowid  # type: ignore[return-value]

    def races_started_between(self, start: float, end: float) -> list[RaceStart]:
        """Return races with a known start position that began in ``[start, end]``."""
        with self._errors("list races by start"):
            rows = self._conn.execute(
                """
                SELECT id, started_at, start_latitude, start_longitude
                FROM   races
                WHERE  started_at BETWEEN ? AND ?
                  AND  start_latitude IS NOT NULL
                  AND  start_longitude IS NOT NULL
                ORDER  BY started_at, id
                """,
                (start, end),
            ).fetchall()
        return [
            RaceStart(
                race_id=row["id"],
                started_at=row["started_at"],
                latitude=row["start_latitude"],
                longitude=row["start_longitude"],
            )
            for row in rows
        ]

    def attach_track(self, track_id: int, race_id: int) -> None:
        with self._errors("attach track"), self._conn:
            self._conn.execute(
                "UPDATE tracks SET race_id = ? WHERE id = ?", (race_id, track_id)
            )

    def create_track(self, race_id: int | None = None, name: str = "") -> int:
        """Insert a track, optionally attached to a race, and return its id."""
        with self._errors("create track"), self._conn:
            cursor = self._conn.execute(
                "INSERT INTO tracks (race_id, name) VALUES (?, ?)", (race_id, name)
            )
        return cursor.lastrowid  # type: ignore[return-value]

    def get_track(self, track_id: int) -> dict | None:
        """Return the track row as a dict, or None if not found."""
        with self._errors("read track"):
            row = self._conn.execute(
                "SELECT * FROM tracks WHERE id = ?", (track_id,)
            ).fetchone()
        return dict(row) if row else None

    def race_track_ids(self, race_id: int) -> list[int]:
        with self._errors("list race tracks"):
            rows = self._conn.execute(
                "SELECT id FROM tracks WHERE race_id = ? ORDER BY id", (race_id,)
            ).fetchall()
        return [row["id"] for row in rows]

    # ------------------------------------------------------------------
    # Points
    # ------------------------------------------------------------------

    def add_points(
        self,
        track_id: int,
        rows: Iterable[tuple[float | None, float | None, float | None, float]],
    ) -> int:
        """Insert raw fixes ``(latitude, longitude, accuracy, captured_at)``.

        Returns the number of rows inserted.
        """
        batch = [(track_id, lat, lon, acc, ts) for lat, lon, acc, ts in rows]
        with self._errors("insert points"), self._conn:
            self._conn.executemany(_INSERT_POINT, batch)
        return len(batch)

    def track_start(self, track_id: int) -> tuple[float, float, float] | None:
        """Return ``(captured_at, latitude, longitude)`` of the first usable fix."""
        with self._errors("read track start"):
            row = self._conn.execute(
                """
                SELECT captured_at, latitude, longitude
                FROM   points
                WHERE  track_id = ?
                  AND  typeof(latitude)    IN ('integer', 'real')
                  AND  typeof(longitude)   IN ('integer', 'real')
                  AND  typeof(captured_at) IN ('integer', 'real')
                ORDER  BY captured_at, id
                LIMIT  1
                """,
                (track_id,),
            ).fetchone()
        if row is None:
            return None
        return float(row["captured_at"]), float(row["latitude"]), float(row["longitude"])

    def count_points(
        self,
        track_id: int,
        *,
        processed_only: bool = False,
        include_simplified: bool = True,
    ) -> int:
        sql = "SELECT COUNT(*) FROM points WHERE track_id = ?"
        if processed_only:
            sql += " AND adjusted_latitude IS NOT NULL AND adjusted_longitude IS NOT NULL"
        if not include_simplified:
            sql += " AND is_simplified = 0"
        with self._errors("count points"):
            return self._conn.execute(sql, (track_id,)).fetchone()[0]

    def fetch_points_in_batches(
        self,
        track_id: int,
        batch_size: int,
        *,
        processed_only: bool = False,
        include_simplified: bool = True,
    ) -> Iterator[list[EnrichedPoint]]:
        """Yield the track's points in capture order, *batch_size* at a time.

        Each call starts from the beginning of the track.  ``processed_only``
        skips points without an adjusted position; ``include_simplified=False``
        skips points elided by the simplifier.
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        filters = []
        if processed_only:
            filters.append("AND adjusted_latitude IS NOT NULL AND adjusted_longitude IS NOT NULL")
        if not include_simplified:
            filters.append("AND is_simplified = 0")
        sql = _SELECT_POINTS_PAGE.format(filters="\n  ".join(filters))

        last_time = float("-inf")
        last_id = -1
        while True:
            with self._errors("fetch points"):
                rows = self._conn.execute(
                    sql, (track_id, last_time, last_time, last_id, batch_size)
                ).fetchall()
            if not rows:
                return
            batch = [self._row_to_point(row) for row in rows]
            last_time = batch[-1].captured_at
            last_id = batch[-1].id
            yield batch
            if len(rows) < batch_size:
                return

    def bulk_upsert_adjusted_positions(
        self, updates: Iterable[tuple[int, float, float]]
    ) -> None:
        """Write ``(id, adjusted_latitude, adjusted_longitude)`` updates."""
        params = [(lat, lon, point_id) for point_id, lat, lon in updates]
        if not params:
            return
        with self._errors("write adjusted positions"), self._conn:
            self._conn.executemany(_UPDATE_ADJUSTED, params)

    def bulk_upsert_velocity_heading(
        self, updates: Iterable[tuple[int, float | None, float | None]]
    ) -> None:
        """Write ``(id, velocity, heading)`` updates."""
        params = [(velocity, heading, point_id) for point_id, velocity, heading in updates]
        if not params:
            return
        with self._errors("write velocity/heading"), self._conn:
            self._conn.executemany(_UPDATE_VELOCITY_HEADING, params)

    def clear_simplified(self, track_id: int) -> None:
        """Un-flag every point of the track so simplification can restart."""
        with self._errors("clear simplified flags"), self._conn:
            self._conn.execute(
                "UPDATE points SET is_simplified = 0 WHERE track_id = ?", (track_id,)
            )

    def mark_simplified(self, ids: Iterable[int]) -> None:
        params = [(point_id,) for point_id in ids]
        if not params:
            return
        with self._errors("mark simplified"), self._conn:
            self._conn.executemany(
                "UPDATE points SET is_simplified = 1 WHERE id = ?", params
            )

    # ------------------------------------------------------------------
    # Derived events
    # ------------------------------------------------------------------

    def replace_maneuvers(self, track_id: int, maneuvers: Iterable[Maneuver]) -> None:
        """Delete the track's maneuvers and insert *maneuvers*, atomically."""
        rows = [
            (
                track_id,
                m.cumulative_heading_change,
                m.latitude,
                m.longitude,
                m.occurred_at,
                m.maneuver_type,
                m.confidence,
            )
            for m in maneuvers
        ]
        with self._errors("replace maneuvers"), self._conn:
            self._conn.execute("DELETE FROM maneuvers WHERE track_id = ?", (track_id,))
            self._conn.executemany(_INSERT_MANEUVER, rows)

    def list_maneuvers(self, track_id: int) -> list[Maneuver]:
        """Return the track's maneuvers ordered by time."""
        with self._errors("list maneuvers"):
            rows = self._conn.execute(
                _SELECT_MANEUVERS + " WHERE track_id = ? ORDER BY occurred_at, id",
                (track_id,),
            ).fetchall()
        return [self._row_to_maneuver(row) for row in rows]

    def race_maneuvers(self, race_id: int) -> list[Maneuver]:
        """Return the maneuvers of every track in the race, track by track."""
        with self._errors("list race maneuvers"):
            rows = self._conn.execute(
                _SELECT_MANEUVERS
                + """
                WHERE track_id IN (SELECT id FROM tracks WHERE race_id = ?)
                ORDER BY track_id, occurred_at, id
                """,
                (race_id,),
            ).fetchall()
        return [self._row_to_maneuver(row) for row in rows]

    def set_wind_estimate(self, track_id: int, degrees: int | None) -> None:
        with self._errors("set wind estimate"), self._conn:
            self._conn.execute(
                "UPDATE tracks SET wind_direction_degrees = ? WHERE id = ?",
                (degrees, track_id),
            )

    def get_wind_estimate(self, track_id: int) -> WindEstimate | None:
        with self._errors("read wind estimate"):
            row = self._conn.execute(
                "SELECT wind_direction_degrees FROM tracks WHERE id = ?", (track_id,)
            ).fetchone()
        if row is None or row[0] is None:
            return None
        return WindEstimate(track_id=track_id, degrees=int(row[0]))

    def replace_course_marks(self, race_id: int, marks: Iterable[CourseMark]) -> None:
        """Delete the race's marks and insert *marks*, atomically."""
        rows = [(race_id, m.latitude, m.longitude, m.confidence, m.mark_type) for m in marks]
        with self._errors("replace course marks"), self._conn:
            self._conn.execute("DELETE FROM course_marks WHERE race_id = ?", (race_id,))
            self._conn.executemany(_INSERT_COURSE_MARK, rows)

    def list_course_marks(self, race_id: int) -> list[CourseMark]:
        with self._errors("list course marks"):
            rows = self._conn.execute(
                """
                SELECT race_id, latitude, longitude, confidence, mark_type
                FROM   course_marks
                WHERE  race_id = ?
                ORDER  BY id
                """,
                (race_id,),
            ).fetchall()
        return [
            CourseMark(
                race_id=row["race_id"],
                latitude=row["latitude"],
                longitude=row["longitude"],
                confidence=row["confidence"],
                mark_type=row["mark_type"],
            )
            for row in rows
        ]

    def save_statistics(self, stats: TrackStatistics) -> None:
        with self._errors("save statistics"), self._conn:
            self._conn.execute(
                """
                UPDATE tracks
                SET    distance_nm = ?, average_speed_knots = ?, max_speed_knots = ?,
                       point_count = ?,
                       last_processed_at = strftime('%Y-%m-%dT%H:%M:%SZ', 'now')
                WHERE  id = ?
                """,
                (
                    stats.distance_nm,
                    stats.average_speed_knots,
                    stats.max_speed_knots,
                    stats.point_count,
                    stats.track_id,
                ),
            )

    def close(self) -> None:
        """Close the database connection."""
        with self._errors("close database"):
            self._conn.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    @contextmanager
    def _errors(action: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to {action}: {exc}") from exc

    @staticmethod
    def _row_to_point(row: sqlite3.Row) -> EnrichedPoint:
        return EnrichedPoint(
            id=row["id"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            accuracy=row["accuracy"],
            captured_at=row["captured_at"],
            adjusted_latitude=row["adjusted_latitude"],
            adjusted_longitude=row["adjusted_longitude"],
            velocity=row["velocity"],
            heading=row["heading"],
            simplified=bool(row["is_simplified"]),
        )

    @staticmethod
    def _row_to_maneuver(row: sqlite3.Row) -> Maneuver:
        return Maneuver(
            track_id=row["track_id"],
            cumulative_heading_change=row["cumulative_heading_change"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            occurred_at=row["occurred_at"],
            maneuver_type=row["maneuver_type"],
            confidence=row["confidence"],
        )
