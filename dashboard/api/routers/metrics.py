"""
Primer Analytics Hub — Metrics Router
=======================================
Period-over-period admissions metrics computed from the warehouse views.

Endpoints:
  GET /api/metrics                           - Available metric definitions
  GET /api/metrics/campuses                  - Campuses with closed-won opportunities
  GET /api/metrics/enrollment/grade-bands    - Enrollment by K-2 / 3-5 / 6-8 band
  GET /api/metrics/fellows                   - Fellow headcount by FTE status
  GET /api/metrics/{metric}                  - Aggregated period metrics
"""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from models.metrics_models import (
    CampusList,
    FellowsStatsResource,
    GradeBandResource,
    MetricInfo,
    MetricsResource,
)
from scripts.lib import config
from scripts.lib.errors import HubError
from scripts.lib.logger import setup_logger
from scripts.lib.metric_sources import (
    METRICS,
    MetricsOptions,
    fetch_campuses,
    fetch_fellows_stats,
    fetch_grade_band_enrollment,
    fetch_metrics,
)

logger = setup_logger("metrics_router")

router = APIRouter(prefix="/api/metrics", tags=["metrics"])


@router.get("", response_model=List[MetricInfo])
async def list_metrics():
    """Metric definitions served by this API."""
    return [
        MetricInfo(
            name=d.name,
            value_field=d.value_field,
            mode=d.mode.value,
            description=d.description,
        )
        for d in METRICS.values()
    ]


@router.get("/campuses", response_model=CampusList)
async def campuses():
    """Campuses that have closed-won opportunities this school year."""
    try:
        rows = fetch_campuses()
        return {"campuses": rows, "count": len(rows)}
    except HubError as e:
        logger.error("Campus list query failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch campuses")


@router.get("/enrollment/grade-bands", response_model=GradeBandResource)
async def grade_band_enrollment(
    campus_id: Optional[str] = Query(None, description="Campus name, omit for all campuses"),
):
    """Enrollment counts grouped into grade bands."""
    return fetch_grade_band_enrollment(campus_id).to_dict()


@router.get("/fellows", response_model=FellowsStatsResource)
async def fellows_stats(
    campus: Optional[List[str]] = Query(None, description="Campus filter (repeatable)"),
):
    """Fellow headcount and FTE employment status breakdown."""
    return fetch_fellows_stats(campus).to_dict()


@router.get("/{metric}", response_model=MetricsResource)
async def period_metrics(
    metric: str,
    period: str = Query(config.DEFAULT_PERIOD, pattern="^(day|week|month)$",
                        description="Period granularity"),
    lookback_units: int = Query(config.DEFAULT_LOOKBACK_UNITS, ge=1, le=366,
                                description="Number of trailing periods"),
    campus_id: Optional[str] = Query(None, description="Campus name filter"),
    enabled: bool = Query(True, description="Skip the fetch when false"),
    refetch_key: int = Query(0, description="Change to force a fresh fetch"),
):
    """Aggregated period metrics: totals, campus totals, changes and a time series."""
    if metric not in METRICS:
        raise HTTPException(status_code=404, detail=f"Unknown metric: {metric}")

    options = MetricsOptions(
        period=period,
        lookback_units=lookback_units,
        campus_id=campus_id,
        enabled=enabled,
        refetch_key=refetch_key,
    )
    return fetch_metrics(metric, options).to_dict()
