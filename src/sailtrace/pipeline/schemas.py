"""Pydantic result schemas returned by the pipeline entry points."""

from __future__ import annotations

from pydantic import BaseModel


class ProcessSummary(BaseModel):
    track_id: int
    points_seen: int
    points_filtered: int
    points_skipped: int
    points_enriched: int


class SimplifySummary(BaseModel):
    track_id: int
    points_total: int
    points_removed: int


class WindSummary(BaseModel):
    track_id: int
    wind_degrees: int | None
    stable_runs: int


class ManeuverSummary(BaseModel):
    track_id: int
    wind_degrees: float | None
    maneuver_count: int
    by_type: dict[str, int]


class CourseMarkSummary(BaseModel):
    race_id: int
    track_count: int
    candidate_maneuvers: int
    mark_count: int


class RaceAssociationSummary(BaseModel):
    track_id: int
    race_id: int | None
    created: bool = False


class StatisticsSummary(BaseModel):
    track_id: int
    distance_nm: float
    average_speed_knots: float
    max_speed_knots: float
    point_count: int


class RecordingSummary(BaseModel):
    track_id: int
    process: ProcessSummary
    simplify: SimplifySummary
    statistics: StatisticsSummary
    wind: WindSummary
    maneuvers: ManeuverSummary
    race: RaceAssociationSummary
    course_marks: CourseMarkSummary | None = None
