"""Run sailtrace pipeline stages against a SQLite database.

Usage:
  python scripts/process_track.py --db sailtrace.db --track 3
  python scripts/process_track.py --db sailtrace.db --track 3 --stage detect_maneuvers --wind 220
  python scripts/process_track.py --db sailtrace.db --race 1 --stage detect_course_marks

Unset options fall back to the ``SAILTRACE_*`` environment variables
(``.env`` is honoured).
"""

from __future__ import annotations

import argparse
import logging
import sys

from pydantic import ValidationError

from sailtrace.config import load_settings
from sailtrace.pipeline import JobRequest, TrackPipeline, run_job
from sailtrace.tracks.storage import StorageError, TrackStorage

_STAGES = [
    "process_recording",
    "process_track",
    "simplify_track",
    "compute_statistics",
    "infer_wind",
    "detect_maneuvers",
    "associate_race",
    "detect_course_marks",
]


def main() -> None:
    ap = argparse.ArgumentParser(description="Run sailtrace pipeline stages")
    ap.add_argument("--db", default=None, help="SQLite database path (default: $SAILTRACE_DB)")
    ap.add_argument("--track", type=int, default=None, help="Track id")
    ap.add_argument("--race", type=int, default=None, help="Race id (course marks)")
    ap.add_argument("--stage", choices=_STAGES, default="process_recording")
    ap.add_argument("--wind", type=float, default=None, help="Wind direction hint in degrees")
    ap.add_argument("--batch-size", type=int, default=None, help="Points per storage batch")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides: dict[str, object] = {}
    if args.db is not None:
        overrides["db_path"] = args.db
    if args.batch_size is not None:
        overrides["batch_size"] = args.batch_size

    try:
        settings = load_settings(**overrides)
        job = JobRequest(
            stage=args.stage,
            track_id=args.track,
            race_id=args.race,
            wind_degrees_hint=args.wind,
        )
    except ValidationError as exc:
        print(f"  [!] invalid arguments:\n{exc}", file=sys.stderr)
        sys.exit(2)

    print(f"Database : {settings.db_path}")
    print(f"Stage    : {job.stage}")
    print()

    try:
        storage = TrackStorage(settings.db_path)
    except StorageError as exc:
        print(f"  [!] cannot open {settings.db_path}: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        summary = run_job(TrackPipeline(storage, settings), job)
    except (StorageError, ValueError) as exc:
        print(f"  [!] {exc}", file=sys.stderr)
        sys.exit(1)
    finally:
        storage.close()

    print(summary.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
