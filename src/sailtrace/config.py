"""Pipeline settings.

Every tunable constant of the pipeline lives in :class:`PipelineSettings`.
:func:`load_settings` reads overrides from ``SAILTRACE_*`` environment
variables (a ``.env`` file in the working directory is loaded first).
"""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class PipelineSettings(BaseModel):
    db_path: str = "sailtrace.db"
    batch_size: int = Field(200, gt=0)

    # Position filter
    min_accuracy_m: float = Field(1.0, gt=0)
    base_noise_floor: float = Field(0.5, gt=0)

    # Speed / heading
    speed_window: int = Field(10, gt=0)
    min_time_diff_s: float = Field(0.5, ge=0)
    max_velocity_knots: float = Field(15.0, gt=0)

    # Simplifier
    simplify_chunk_size: int = Field(200, ge=4)
    simplify_overlap: int = Field(2, ge=1)
    simplify_fraction: float = Field(0.4, ge=0, le=1)

    # Maneuvers
    maneuver_window_s: float = Field(15.0, gt=0)
    maneuver_min_change: float = Field(30.0, ge=0)

    # Wind
    close_hauled_angle: float = Field(45.0, gt=0, lt=90)
    wind_min_run_points: int = Field(30, gt=0)

    # Course marks
    mark_cluster_radius_m: float = Field(20.0, gt=0)
    mark_min_track_share: float = Field(0.3, gt=0, le=1)
    turn_offset_m: float = Field(5.0, ge=0)

    # Race association
    race_time_window_s: float = Field(600.0, gt=0)
    race_max_distance_m: float = Field(750.0, gt=0)


# Environment variable -> settings field
_ENV_FIELDS = {
    "SAILTRACE_DB": "db_path",
    "SAILTRACE_BATCH_SIZE": "batch_size",
    "SAILTRACE_MIN_ACCURACY_M": "min_accuracy_m",
    "SAILTRACE_BASE_NOISE_FLOOR": "base_noise_floor",
    "SAILTRACE_SPEED_WINDOW": "speed_window",
    "SAILTRACE_MAX_VELOCITY_KNOTS": "max_velocity_knots",
    "SAILTRACE_SIMPLIFY_CHUNK_SIZE": "simplify_chunk_size",
    "SAILTRACE_SIMPLIFY_FRACTION": "simplify_fraction",
    "SAILTRACE_MANEUVER_WINDOW_S": "maneuver_window_s",
    "SAILTRACE_CLOSE_HAULED_ANGLE": "close_hauled_angle",
    "SAILTRACE_MARK_CLUSTER_RADIUS_M": "mark_cluster_radius_m",
    "SAILTRACE_TURN_OFFSET_M": "turn_offset_m",
    "SAILTRACE_RACE_TIME_WINDOW_S": "race_time_window_s",
    "SAILTRACE_RACE_MAX_DISTANCE_M": "race_max_distance_m",
}


def load_settings(**overrides: object) -> PipelineSettings:
    """Build settings from the environment; keyword *overrides* win.

    Raises ``pydantic.ValidationError`` for out-of-range values.
    """
    load_dotenv()
    values: dict[str, object] = {}
    for env_name, field_name in _ENV_FIELDS.items():
        raw = os.environ.get(env_name)
        if raw is not None and raw != "":
            values[field_name] = raw
    values.update(overrides)
    return PipelineSettings(**values)
