"""
Primer Analytics Hub — Period Metrics Aggregation
==================================================
Turns raw warehouse rows into chart-ready period-over-period metrics.

Pipeline:
    raw rows → normalize_rows → aggregate (sum | latest) → period changes → time series

Two aggregation modes:
    sum     Flow metrics (leads created, closed-won opportunities). Campus
            totals add up every period.
    latest  Stock metrics (cumulative ARR). A campus total is the campus's
            value at its most recent period; summing would double-count a
            running balance.

Periods are ISO date keys sorted newest first everywhere in this module.

Usage:
    from scripts.lib.metrics import process_metrics

    response = process_metrics(rows, value_field="lead_count", period="week")
    response.to_dict()
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from scripts.lib.logger import setup_logger
from scripts.lib.periods import PERIOD_TYPES, format_period_date, period_key, truncate_period
from scripts.lib.utils import first_present, safe_number

logger = setup_logger(__name__)

ALL_CAMPUSES = "All Campuses"
NO_CAMPUS_MATCH = "No Campus Match"

# Alternate column names seen on older RPC functions
PERIOD_DATE_KEYS = ("period_date", "period_start", "week")


class AggregationMode(str, Enum):
    SUM = "sum"
    LATEST = "latest"


@dataclass
class MetricRow:
    """One observed data point for a period and campus."""
    period_type: str
    period_date: str
    formatted_date: str
    campus_name: str
    value: float

    def to_dict(self, value_field: str = "value") -> Dict[str, Any]:
        return {
            "period_type": self.period_type,
            "period_date": self.period_date,
            "formatted_date": self.formatted_date,
            "campus_name": self.campus_name,
            value_field: self.value,
        }


@dataclass
class PeriodChanges:
    """Raw and percentage change of each period against its predecessor."""
    raw: Dict[str, float] = field(default_factory=dict)
    percentage: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {"raw": dict(self.raw), "percentage": dict(self.percentage)}


@dataclass
class MetricsResponse:
    """Aggregated metrics for one fetch, in the shape the dashboard charts read."""
    period_type: str
    value_field: str = "value"
    metric: Optional[str] = None
    raw: List[MetricRow] = field(default_factory=list)
    periods: List[str] = field(default_factory=list)
    campuses: List[str] = field(default_factory=list)
    totals: Dict[str, float] = field(default_factory=dict)
    campus_totals: Dict[str, float] = field(default_factory=dict)
    latest_period: Optional[str] = None
    latest_total: float = 0
    changes: PeriodChanges = field(default_factory=PeriodChanges)
    time_series: List[Dict[str, Any]] = field(default_factory=list)
    _cells: Dict[tuple, float] = field(default_factory=dict, repr=False)

    def get_value(self, period_date: Any, campus_name: str) -> float:
        """Value for a period/campus pair, 0 when no row exists."""
        return self._cells.get((period_key(period_date), campus_name), 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric,
            "periodType": self.period_type,
            "raw": [row.to_dict(self.value_field) for row in self.raw],
            "periods": list(self.periods),
            "campuses": list(self.campuses),
            "totals": dict(self.totals),
            "campusTotals": dict(self.campus_totals),
            "latestPeriod": self.latest_period,
            "latestTotal": self.latest_total,
            "changes": self.changes.to_dict(),
            "timeSeriesData": [dict(point) for point in self.time_series],
        }


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------

def _default_label(key: str, period_type: str) -> str:
    if period_type not in PERIOD_TYPES:
        return ""
    return format_period_date(key, period_type)


def normalize_rows(
    raw_rows: Optional[Iterable[Dict[str, Any]]],
    value_field: str,
    period: str,
) -> List[MetricRow]:
    """
    Fill defaults on raw query rows.

    - ``period_type`` falls back to the requested *period*.
    - ``campus_name`` falls back to "All Campuses"; other values become strings.
    - The period date is truncated to the start of its day, week or month.
    - ``formatted_date`` falls back to a label built from the period date.
    - The value is parsed leniently; anything unparseable counts as 0.
    - Rows whose period date is missing or unparseable are dropped.
    """
    rows: List[MetricRow] = []
    dropped = 0
    for item in raw_rows or []:
        if not isinstance(item, dict):
            dropped += 1
            continue
        period_type = str(item.get("period_type") or period)
        raw_date = first_present(item, *PERIOD_DATE_KEYS)
        if period_type in PERIOD_TYPES:
            start = truncate_period(raw_date, period_type)
            key = start.isoformat() if start else None
        else:
            key = period_key(raw_date)
        if key is None:
            dropped += 1
            continue
        campus = item.get("campus_name")
        rows.append(MetricRow(
            period_type=period_type,
            period_date=key,
            formatted_date=str(item.get("formatted_date") or _default_label(key, period_type)),
            campus_name=ALL_CAMPUSES if campus in (None, "") else str(campus),
            value=safe_number(item.get(value_field)),
        ))
    if dropped:
        logger.debug("Dropped %d rows without a usable period date", dropped)
    return rows


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------

def sorted_periods(rows: Iterable[MetricRow]) -> List[str]:
    """Distinct period keys, newest first."""
    keys = {row.period_date for row in rows}
    return sorted(keys, key=date.fromisoformat, reverse=True)


def unique_campuses(rows: Iterable[MetricRow]) -> List[str]:
    """Distinct campus names in first-seen order, without "No Campus Match"."""
    seen: Dict[str, None] = {}
    for row in rows:
        if row.campus_name != NO_CAMPUS_MATCH:
            seen.setdefault(row.campus_name, None)
    return list(seen)


def period_totals(rows: Iterable[MetricRow], periods: List[str]) -> Dict[str, float]:
    """
    Sum of every row in each period, across all campuses.

    "No Campus Match" rows are counted here even though that name never
    appears in the campus list.
    """
    totals: Dict[str, float] = {p: 0 for p in periods}
    for row in rows:
        if row.period_date in totals:
            totals[row.period_date] += row.value
    return totals


def campus_totals(
    rows: Iterable[MetricRow],
    campuses: List[str],
    mode: AggregationMode = AggregationMode.SUM,
) -> Dict[str, float]:
    """Per-campus aggregate: a sum over periods, or the value at the latest period."""
    mode = AggregationMode(mode)
    totals: Dict[str, float] = {c: 0 for c in campuses}

    if mode is AggregationMode.SUM:
        for row in rows:
            if row.campus_name in totals:
                totals[row.campus_name] += row.value
        return totals

    latest: Dict[str, MetricRow] = {}
    for row in rows:
        if row.campus_name not in totals:
            continue
        current = latest.get(row.campus_name)
        # ties keep the first row seen
        if current is None or date.fromisoformat(row.period_date) > date.fromisoformat(current.period_date):
            latest[row.campus_name] = row
    for campus, row in latest.items():
        totals[campus] = row.value
    return totals


def _cell_values(rows: Iterable[MetricRow], mode: AggregationMode) -> Dict[tuple, float]:
    """(period, campus) → value. Sums duplicates in sum mode, keeps the first in latest mode."""
    cells: Dict[tuple, float] = {}
    for row in rows:
        key = (row.period_date, row.campus_name)
        if key not in cells:
            cells[key] = row.value
        elif mode is AggregationMode.SUM:
            cells[key] += row.value
    return cells


# ---------------------------------------------------------------------------
# Delta calculator
# ---------------------------------------------------------------------------

def calculate_period_changes(periods: List[str], totals: Dict[str, float]) -> PeriodChanges:
    """
    Change of each period against the chronologically previous one.

    *periods* is sorted newest first, so the previous period of
    ``periods[i]`` is ``periods[i + 1]``. The oldest period has nothing to
    compare against and gets 0/0. A previous total of 0 yields a 0%
    change rather than infinity.
    """
    changes = PeriodChanges()
    for i, current in enumerate(periods):
        if i == len(periods) - 1:
            changes.raw[current] = 0
            changes.percentage[current] = 0
            break
        previous = periods[i + 1]
        current_total = totals.get(current, 0) or 0
        previous_total = totals.get(previous, 0) or 0
        raw_change = current_total - previous_total
        changes.raw[current] = raw_change
        changes.percentage[current] = (
            0 if previous_total == 0 else raw_change / previous_total * 100
        )
    return changes


# ---------------------------------------------------------------------------
# Time-series shaper
# ---------------------------------------------------------------------------

def build_time_series(
    rows: List[MetricRow],
    periods: List[str],
    campuses: List[str],
    totals: Dict[str, float],
    cells: Dict[tuple, float] = None,
) -> List[Dict[str, Any]]:
    """One chart point per period, newest first, with a value for every campus."""
    if cells is None:
        cells = _cell_values(rows, AggregationMode.SUM)

    labels: Dict[str, str] = {}
    for row in rows:
        if row.formatted_date and row.period_date not in labels:
            labels[row.period_date] = row.formatted_date

    return [
        {
            "period": p,
            "formatted_date": labels.get(p, p),
            "total": totals.get(p, 0),
            "campuses": {c: cells.get((p, c), 0) for c in campuses},
        }
        for p in periods
    ]


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def empty_response(period: str, metric: str = None, value_field: str = "value") -> MetricsResponse:
    """Response with every aggregate empty, returned for no data or a failed fetch."""
    return MetricsResponse(period_type=period, metric=metric, value_field=value_field)


def aggregate_metrics(
    rows: List[MetricRow],
    period: str,
    mode: AggregationMode = AggregationMode.SUM,
    metric: str = None,
    value_field: str = "value",
) -> MetricsResponse:
    """Aggregate normalized rows into a full MetricsResponse."""
    mode = AggregationMode(mode)
    if not rows:
        return empty_response(period, metric=metric, value_field=value_field)

    periods = sorted_periods(rows)
    campuses = unique_campuses(rows)
    totals = period_totals(rows, periods)
    cells = _cell_values(rows, mode)
    latest = periods[0] if periods else None

    return MetricsResponse(
        period_type=period,
        value_field=value_field,
        metric=metric,
        raw=list(rows),
        periods=periods,
        campuses=campuses,
        totals=totals,
        campus_totals=campus_totals(rows, campuses, mode),
        latest_period=latest,
        latest_total=totals.get(latest, 0) if latest else 0,
        changes=calculate_period_changes(periods, totals),
        time_series=build_time_series(rows, periods, campuses, totals, cells),
        _cells=cells,
    )


def process_metrics(
    raw_rows: Optional[Iterable[Dict[str, Any]]],
    value_field: str,
    period: str,
    mode: AggregationMode = AggregationMode.SUM,
    metric: str = None,
) -> MetricsResponse:
    """Normalize then aggregate raw query rows."""
    rows = normalize_rows(raw_rows, value_field, period)
    response = aggregate_metrics(
        rows, period, mode=mode, metric=metric, value_field=value_field,
    )
    logger.debug(
        "Processed %s: %d rows, %d periods, %d campuses, latest %s=%s",
        metric or value_field, len(rows), len(response.periods),
        len(response.campuses), response.latest_period, response.latest_total,
    )
    return response
