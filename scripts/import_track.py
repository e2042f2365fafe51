"""Import a CSV of GPS fixes as a new track.

The CSV needs a header row with ``latitude,longitude,accuracy,captured_at``
(``captured_at`` in Unix seconds; ``accuracy`` may be empty).

Usage:
  python scripts/import_track.py --db sailtrace.db --csv fixes.csv --name "Race 1 / GBR 42"
  python scripts/import_track.py --db sailtrace.db --csv fixes.csv --race 1
"""

from __future__ import annotations

import argparse
import csv
import sys
from collections.abc import Iterator

from sailtrace.tracks.storage import StorageError, TrackStorage

_COLUMNS = ("latitude", "longitude", "accuracy", "captured_at")


def _parse_float(value: str | None) -> float | None:
    if value is None or value.strip() == "":
        return None
    return float(value)


def read_fixes(path: str) -> Iterator[tuple[float | None, float | None, float | None, float]]:
    with open(path, newline="", encoding="utf-8") as fh:
        reader = csv.DictReader(fh)
        missing = [c for c in _COLUMNS if c not in (reader.fieldnames or [])]
        if missing:
            raise ValueError(f"CSV is missing columns: {', '.join(missing)}")
        for line_no, row in enumerate(reader, start=2):
            captured_at = _parse_float(row["captured_at"])
            if captured_at is None:
                raise ValueError(f"line {line_no}: captured_at is required")
            yield (
                _parse_float(row["latitude"]),
                _parse_float(row["longitude"]),
                _parse_float(row["accuracy"]),
                captured_at,
            )


def main() -> None:
    ap = argparse.ArgumentParser(description="Import GPS fixes from CSV")
    ap.add_argument("--db", required=True, help="SQLite database path")
    ap.add_argument("--csv", required=True, help="CSV file with GPS fixes")
    ap.add_argument("--name", default="", help="Track name")
    ap.add_argument("--race", type=int, default=None, help="Attach the track to this race id")
    args = ap.parse_args()

    try:
        fixes = list(read_fixes(args.csv))
    except (OSError, ValueError) as exc:
        print(f"  [!] cannot read {args.csv}: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        storage = TrackStorage(args.db)
    except StorageError as exc:
        print(f"  [!] cannot open {args.db}: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        track_id = storage.create_track(race_id=args.race, name=args.name)
        count = storage.add_points(track_id, fixes)
    except StorageError as exc:
        print(f"  [!] import failed: {exc}", file=sys.stderr)
        sys.exit(1)
    finally:
        storage.close()

    print(f"Track {track_id}: {count} fixes imported from {args.csv}")


if __name__ == "__main__":
    main()
