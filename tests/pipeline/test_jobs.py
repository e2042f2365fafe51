"""Tests for JobRequest validation and run_job dispatch."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from sailtrace.pipeline.jobs import JobRequest, run_job
from sailtrace.pipeline.service import TrackPipeline


@pytest.fixture
def pipeline():
    return MagicMock(spec=TrackPipeline)


# ---------------------------------------------------------------------------
# JobRequest
# ---------------------------------------------------------------------------

def test_track_stage_requires_track_id():
    with pytest.raises(ValidationError, match="requires track_id"):
        JobRequest(stage="process_track")


def test_course_marks_requires_race_id():
    with pytest.raises(ValidationError, match="requires race_id"):
        JobRequest(stage="detect_course_marks", track_id=3)


def test_unknown_stage_rejected():
    with pytest.raises(ValidationError):
        JobRequest.model_validate({"stage": "render_video", "track_id": 1})


def test_wind_hint_only_for_maneuvers():
    with pytest.raises(ValidationError, match="wind_degrees_hint"):
        JobRequest(stage="infer_wind", track_id=1, wind_degrees_hint=90.0)
    assert JobRequest(stage="detect_maneuvers", track_id=1, wind_degrees_hint=90.0).wind_degrees_hint == 90.0


def test_ids_are_coerced_from_strings():
    job = JobRequest.model_validate({"stage": "simplify_track", "track_id": "12"})
    assert job.track_id == 12


# ---------------------------------------------------------------------------
# run_job
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "stage",
    ["process_track", "simplify_track", "infer_wind", "compute_statistics", "associate_race", "process_recording"],
)
def test_track_stages_dispatch(pipeline, stage):
    result = run_job(pipeline, {"stage": stage, "track_id": 7})
    getattr(pipeline, stage).assert_called_once_with(7)
    assert result is getattr(pipeline, stage).return_value


def test_maneuver_job_passes_hint(pipeline):
    run_job(pipeline, {"stage": "detect_maneuvers", "track_id": 7, "wind_degrees_hint": 215})
    pipeline.detect_maneuvers.assert_called_once_with(7, 215.0)


def test_course_mark_job_uses_race(pipeline):
    run_job(pipeline, JobRequest(stage="detect_course_marks", race_id=2))
    pipeline.detect_course_marks.assert_called_once_with(2)


def test_invalid_payload_runs_nothing(pipeline):
    with pytest.raises(ValidationError):
        run_job(pipeline, {"stage": "process_track"})
    pipeline.process_track.assert_not_called()
