"""Job payload validation and dispatch for the scheduling collaborator.

A scheduler hands over plain dicts (for example decoded from a queue
message).  :func:`run_job` validates one into a :class:`JobRequest` and calls
the matching :class:`TrackPipeline` entry point.
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, model_validator

from sailtrace.pipeline.service import TrackPipeline

_logger = logging.getLogger(__name__)

Stage = Literal[
    "process_track",
    "simplify_track",
    "detect_maneuvers",
    "infer_wind",
    "detect_course_marks",
    "compute_statistics",
    "associate_race",
    "process_recording",
]

_RACE_STAGES = {"detect_course_marks"}


class JobRequest(BaseModel):
    stage: Stage
    track_id: int | None = None
    race_id: int | None = None
    wind_degrees_hint: float | None = None

    @model_validator(mode="after")
    def _check_target(self) -> JobRequest:
        if self.stage in _RACE_STAGES:
            if self.race_id is None:
                raise ValueError(f"{self.stage} requires race_id")
        elif self.track_id is None:
            raise ValueError(f"{self.stage} requires track_id")
        if self.wind_degrees_hint is not None and self.stage != "detect_maneuvers":
            raise ValueError("wind_degrees_hint only applies to detect_maneuvers")
        return self


def run_job(pipeline: TrackPipeline, payload: dict | JobRequest) -> BaseModel:
    """Validate *payload* and run the requested stage; return its summary.

    Raises ``pydantic.ValidationError`` for a malformed payload.
    """
    job = payload if isinstance(payload, JobRequest) else JobRequest.model_validate(payload)
    _logger.info("Running job %s", job.model_dump(exclude_none=True))

    if job.stage == "detect_course_marks":
        return pipeline.detect_course_marks(job.race_id)  # type: ignore[arg-type]
    if job.stage == "detect_maneuvers":
        return pipeline.detect_maneuvers(job.track_id, job.wind_degrees_hint)  # type: ignore[arg-type]

    handler = getattr(pipeline, job.stage)
    return handler(job.track_id)
