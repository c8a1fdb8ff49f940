"""
Primer Analytics Hub — Metrics API Pydantic Models
====================================================

Response models for period metrics, campuses, enrollment, fellows
and sheet sync runs.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ─── Period Metrics ─────────────────────────────────────────

class PeriodChangesModel(BaseModel):
    """Raw and percentage change per period key."""
    raw: Dict[str, float] = Field(default_factory=dict)
    percentage: Dict[str, float] = Field(default_factory=dict)


class TimeSeriesPoint(BaseModel):
    """One chart point: a period with its total and per-campus values."""
    period: str
    formatted_date: str
    total: float = 0
    campuses: Dict[str, float] = Field(default_factory=dict)


class MetricsResponseModel(BaseModel):
    """Aggregated metrics as consumed by the dashboard charts."""
    model_config = ConfigDict(populate_by_name=True)

    metric: Optional[str] = None
    period_type: str = Field(alias="periodType")
    raw: List[dict] = Field(default_factory=list)
    periods: List[str] = Field(default_factory=list)
    campuses: List[str] = Field(default_factory=list)
    totals: Dict[str, float] = Field(default_factory=dict)
    campus_totals: Dict[str, float] = Field(default_factory=dict, alias="campusTotals")
    latest_period: Optional[str] = Field(default=None, alias="latestPeriod")
    latest_total: float = Field(default=0, alias="latestTotal")
    changes: PeriodChangesModel = Field(default_factory=PeriodChangesModel)
    time_series: List[TimeSeriesPoint] = Field(default_factory=list, alias="timeSeriesData")


class MetricsResource(BaseModel):
    """Async-resource envelope around a metrics response."""
    data: Optional[MetricsResponseModel] = None
    loading: bool = False
    error: Optional[str] = None


class MetricInfo(BaseModel):
    name: str
    value_field: str
    mode: str
    description: str = ""


# ─── Campuses / Enrollment / Fellows ────────────────────────

class Campus(BaseModel):
    campus_id: str
    campus_name: str


class CampusList(BaseModel):
    campuses: List[Campus] = Field(default_factory=list)
    count: int = 0


class GradeBandCount(BaseModel):
    grade_band: str
    enrollment_count: int = 0


class GradeBandResource(BaseModel):
    data: List[GradeBandCount] = Field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None


class StatusCount(BaseModel):
    status: str
    count: int


class FellowsStats(BaseModel):
    count: int = 0
    by_status: List[StatusCount] = Field(default_factory=list)


class FellowsStatsResource(BaseModel):
    data: FellowsStats = Field(default_factory=FellowsStats)
    loading: bool = False
    error: Optional[str] = None


# ─── Sheet Sync ─────────────────────────────────────────────

class SyncJobInfo(BaseModel):
    name: str
    table: str
    sheet_range: str
    write_mode: str
    description: str = ""


class SyncResultModel(BaseModel):
    """Outcome of one sheet sync run."""
    job: str
    table: str
    fetched: int = 0
    valid: int = 0
    inserted: int = 0
    success: bool = False
    dry_run: bool = False
    message: str = ""
