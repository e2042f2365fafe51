"""Pipeline orchestration over stored tracks.

Public API
----------
TrackPipeline - idempotent stage entry points (process, simplify, wind, ...)
JobRequest    - validated job payload
run_job       - dispatch a job payload to the pipeline
"""

from sailtrace.pipeline.jobs import JobRequest, run_job
from sailtrace.pipeline.service import TrackPipeline

__all__ = [
    "JobRequest",
    "TrackPipeline",
    "run_job",
]
