"""
Primer Analytics Hub — Metric Fetchers
========================================
Fetch warehouse rows through the SQL RPC and aggregate them into
period-over-period metrics.

Each fetcher returns a Resource ``{data, loading, error}``. Failures never
raise out of a metric fetch: they are logged, reported in ``error``, and the
data falls back to an empty response so callers can always render.

Usage:
    from scripts.lib.metric_sources import MetricsOptions, fetch_metrics

    resource = fetch_metrics("closed_won", MetricsOptions(period="month", lookback_units=6))
    if resource.error:
        ...
    resource.data.latest_total
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from scripts.lib import config
from scripts.lib.errors import DataFetchError, HubError, MetricsFetchError
from scripts.lib.logger import setup_logger
from scripts.lib.metrics import AggregationMode, MetricsResponse, empty_response, process_metrics
from scripts.lib.periods import lookback_range, validate_period
from scripts.lib.queries import (
    campus_list_query,
    cumulative_arr_query,
    grade_enrollment_query,
    lead_metrics_function_query,
    metric_view_query,
)
from scripts.lib.supabase_client import execute_sql, query_table
from scripts.lib.utils import safe_int

logger = setup_logger(__name__)

GRADE_BANDS = {
    "K-2": ("K", "TK", "0", "1", "2"),
    "3-5": ("3", "4", "5"),
    "6-8": ("6", "7", "8"),
}

FELLOWS_TABLE = "fellows"
UNKNOWN_STATUS = "Unknown"


@dataclass
class MetricsOptions:
    """Parameters of one metrics fetch."""
    period: str = "week"
    lookback_units: int = 12
    campus_id: Optional[str] = None
    enabled: bool = True
    # Opaque; changing it only signals the caller wants a fresh fetch.
    refetch_key: int = 0

    def __post_init__(self):
        validate_period(self.period)
        if isinstance(self.lookback_units, bool) or not isinstance(self.lookback_units, int) \
                or self.lookback_units < 1:
            raise ValueError(
                f"lookback_units must be a positive integer, got {self.lookback_units!r}"
            )


@dataclass
class Resource:
    """Async-resource shape: the data, whether it is still loading, and any error."""
    data: Any = None
    loading: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.data.to_dict() if hasattr(self.data, "to_dict") else self.data
        return {"data": data, "loading": self.loading, "error": self.error}


@dataclass(frozen=True)
class MetricDefinition:
    """How one metric is queried and aggregated."""
    name: str
    value_field: str
    mode: AggregationMode
    build_query: Callable[[MetricsOptions, date], str]
    description: str = ""


def _view_query(view_prefix: str, value_field: str) -> Callable[[MetricsOptions, date], str]:
    def build(options: MetricsOptions, today: date) -> str:
        return metric_view_query(
            view_prefix, value_field, options.period, options.lookback_units,
            campus=options.campus_id,
        )
    return build


def _lead_function(options: MetricsOptions, today: date) -> str:
    return lead_metrics_function_query(
        options.period, options.lookback_units, campus=options.campus_id,
    )


def _cumulative_arr(options: MetricsOptions, today: date) -> str:
    start, end = lookback_range(options.period, options.lookback_units, today=today)
    return cumulative_arr_query(start, end, campus=options.campus_id)


METRICS: Dict[str, MetricDefinition] = {
    d.name: d for d in (
        MetricDefinition(
            "leads", "lead_count", AggregationMode.SUM,
            _view_query("lead_metrics", "lead_count"),
            "Leads created per period",
        ),
        MetricDefinition(
            "leads_created", "lead_count", AggregationMode.SUM,
            _lead_function,
            "Distinct leads created per period, counted by get_lead_metrics()",
        ),
        MetricDefinition(
            "converted_leads", "lead_count", AggregationMode.SUM,
            _view_query("converted_leads", "lead_count"),
            "Leads converted per period",
        ),
        MetricDefinition(
            "closed_won", "opportunity_count", AggregationMode.SUM,
            _view_query("closed_won", "opportunity_count"),
            "Closed-won opportunities per period",
        ),
        MetricDefinition(
            "arr", "arr_amount", AggregationMode.SUM,
            _view_query("arr_metrics", "arr_amount"),
            "New ARR booked per period",
        ),
        MetricDefinition(
            "cumulative_arr", "cumulative_arr", AggregationMode.LATEST,
            _cumulative_arr,
            "Running ARR balance for the school year (weekly)",
        ),
    )
}


def get_metric(name: str) -> MetricDefinition:
    """Look up a metric definition, raising KeyError with the known names."""
    try:
        return METRICS[name]
    except KeyError:
        raise KeyError(
            f"Unknown metric '{name}'. Known metrics: {', '.join(sorted(METRICS))}"
        ) from None


def fetch_metrics(
    metric: str,
    options: MetricsOptions = None,
    client=None,
    today: date = None,
) -> Resource:
    """
    Fetch and aggregate one metric.

    Returns:
        Resource whose data is a MetricsResponse. ``enabled=False`` returns
        no data and runs no query.
    """
    definition = get_metric(metric)
    options = options or MetricsOptions()
    if not options.enabled:
        return Resource(data=None, loading=False, error=None)

    logger.info(
        "Fetching %s: period=%s lookback=%d campus=%s",
        metric, options.period, options.lookback_units, options.campus_id or "all",
    )

    try:
        sql = definition.build_query(options, today or date.today())
        rows = execute_sql(sql, client=client)
    except HubError as e:
        logger.error("Error fetching %s metrics: %s", metric, e)
        return Resource(
            data=empty_response(options.period, metric=metric, value_field=definition.value_field),
            error=str(MetricsFetchError(metric, e.details.get("reason") or str(e))),
        )

    if not rows:
        logger.warning("No data returned from %s metrics query", metric)
        return Resource(
            data=empty_response(options.period, metric=metric, value_field=definition.value_field),
        )

    logger.info("%s query returned %d rows", metric, len(rows))
    response: MetricsResponse = process_metrics(
        rows, definition.value_field, options.period,
        mode=definition.mode, metric=metric,
    )
    return Resource(data=response)


def fetch_campuses(client=None) -> List[Dict[str, str]]:
    """
    Campuses that have a closed-won opportunity for the current school year.

    The campus name doubles as its id for filtering.

    Raises:
        MetricsFetchError: if the campus query fails.
    """
    try:
        rows = execute_sql(campus_list_query(), client=client)
    except DataFetchError as e:
        logger.error("Error fetching campuses: %s", e)
        raise MetricsFetchError("campuses", e.details.get("reason") or str(e)) from e

    campuses = [
        {"campus_id": row["campus_name"], "campus_name": row["campus_name"]}
        for row in rows
        if row.get("campus_name")
    ]
    logger.info(
        "Fetched %d campuses with closed won opportunities for %s",
        len(campuses), config.SCHOOL_YEAR,
    )
    return campuses


def grade_band_for(grade: Any) -> Optional[str]:
    """Map a grade label (K, TK, 0-8) to its band, or None when it fits no band."""
    normalized = str(grade).strip().upper()
    for band, grades in GRADE_BANDS.items():
        if normalized in grades:
            return band
    return None


def group_grade_bands(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Sum enrollment per grade band; every band is present even with no rows."""
    counts = {band: 0 for band in GRADE_BANDS}
    for row in rows:
        band = grade_band_for(row.get("grade"))
        if band is None:
            logger.debug("Grade %r not mapped to any band", row.get("grade"))
            continue
        counts[band] += safe_int(row.get("enrollment_count")) or 0
    return [
        {"grade_band": band, "enrollment_count": count}
        for band, count in counts.items()
    ]


def fetch_grade_band_enrollment(campus_id: Optional[str] = None, client=None) -> Resource:
    """Enrollment grouped into K-2, 3-5 and 6-8 bands for one campus or all."""
    try:
        rows = execute_sql(grade_enrollment_query(campus_id), client=client)
    except HubError as e:
        logger.error("Error fetching grade band enrollment: %s", e)
        return Resource(
            data=[],
            error=f"Failed to fetch grade band enrollment data: {e}",
        )
    return Resource(data=group_grade_bands(rows))


def fetch_fellows_stats(campus_names: Optional[List[str]] = None, client=None) -> Resource:
    """
    Fellow headcount and a breakdown by FTE employment status.

    Status counts are sorted by count, highest first.
    """
    in_filters = {"campus": list(campus_names)} if campus_names else None
    try:
        rows = query_table(
            FELLOWS_TABLE,
            select="fellow_id, campus, fte_employment_status",
            in_filters=in_filters,
            order_by=None,
            client=client,
        )
    except HubError as e:
        logger.error("Error fetching fellows stats: %s", e)
        return Resource(
            data={"count": 0, "by_status": []},
            error=f"Failed to fetch fellows stats: {e}",
        )

    statuses = Counter(
        (row.get("fte_employment_status") or UNKNOWN_STATUS) for row in rows
    )
    by_status = [
        {"status": status, "count": count}
        for status, count in sorted(statuses.items(), key=lambda kv: (-kv[1], kv[0]))
    ]
    return Resource(data={"count": len(rows), "by_status": by_status})
