"""
Primer Analytics Hub — Warehouse SQL Builders
===============================================
SQL text sent to the generic SQL RPC function. All queries read from the
Fivetran-managed views schema; string parameters are escaped as SQL
literals, numeric parameters are validated before being interpolated.

Builders:
  metric_view_query            - per-period metric views (leads, closed won)
  lead_metrics_function_query  - get_lead_metrics() set-returning function
  cumulative_arr_query         - weekly running ARR per campus
  campus_list_query            - campuses with closed-won opportunities
  grade_enrollment_query       - enrollment counts per grade
"""
from __future__ import annotations

import re
from typing import Any, Optional

from scripts.lib import config
from scripts.lib.errors import QueryBuildError
from scripts.lib.periods import (
    interval_unit,
    parse_period_date,
    truncate_period,
    validate_period,
    view_suffix,
)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def escape_literal(value: Any) -> str:
    """Quote *value* as a SQL string literal, doubling embedded single quotes."""
    return "'" + str(value).replace("'", "''") + "'"


def _identifier(name: str) -> str:
    if not _IDENTIFIER.match(name or ""):
        raise QueryBuildError(f"Invalid SQL identifier: {name!r}", identifier=name)
    return name


def _period(period: str) -> str:
    try:
        return validate_period(period)
    except ValueError as e:
        raise QueryBuildError(str(e), period=period) from e


def _lookback(lookback_units: Any) -> int:
    if isinstance(lookback_units, bool) or not isinstance(lookback_units, int) or lookback_units < 1:
        raise QueryBuildError(
            f"lookback_units must be a positive integer, got {lookback_units!r}",
            lookback_units=lookback_units,
        )
    return lookback_units


def _iso_date(value: Any, name: str) -> str:
    parsed = parse_period_date(value)
    if parsed is None:
        raise QueryBuildError(f"{name} is not a valid date: {value!r}", **{name: value})
    return parsed.isoformat()


def period_date_filter(period: str, lookback_units: int) -> str:
    """Lower bound expression: start of the current period minus the lookback."""
    unit = interval_unit(_period(period))
    n = _lookback(lookback_units)
    return f"DATE_TRUNC('{unit}', CURRENT_DATE) - INTERVAL '{n} {unit}'"


def metric_view_query(
    view_prefix: str,
    value_column: str,
    period: str,
    lookback_units: int,
    campus: Optional[str] = None,
    schema: str = None,
) -> str:
    """
    Select one metric from its per-period view, e.g. ``closed_won_weekly``.

    The views already carry ``period_type``, a truncated ``period_date`` and a
    display ``formatted_date``.
    """
    schema = _identifier(schema or config.WAREHOUSE_SCHEMA)
    view = f"{_identifier(view_prefix)}_{view_suffix(_period(period))}"
    value_column = _identifier(value_column)

    sql = (
        "SELECT period_type, period_date, formatted_date, campus_name, "
        f"{value_column}\n"
        f"FROM {schema}.{view}\n"
        "WHERE 1=1"
    )
    if campus:
        sql += f"\n  AND campus_name = {escape_literal(campus)}"
    sql += f"\n  AND period_date >= {period_date_filter(period, lookback_units)}"
    sql += "\nORDER BY period_date DESC"
    return sql


def lead_metrics_function_query(
    period: str,
    lookback_units: int,
    campus: Optional[str] = None,
    schema: str = None,
) -> str:
    """Call the ``get_lead_metrics`` set-returning function."""
    schema = _identifier(schema or config.WAREHOUSE_SCHEMA)
    campus_arg = escape_literal(campus) if campus else "NULL"
    return (
        f"SELECT * FROM {schema}.get_lead_metrics("
        f"{escape_literal(_period(period))}, {_lookback(lookback_units)}, {campus_arg})"
    )


def cumulative_arr_query(
    start_date: Any,
    end_date: Any,
    campus: Optional[str] = None,
    school_year: str = None,
    schema: str = None,
) -> str:
    """
    Weekly cumulative ARR per campus between two dates.

    ARR per closed-won opportunity is the annualized state scholarship plus
    the annualized family contribution plus actualized financial aid from the
    active tuition offer. Each week carries the running sum of everything
    closed on or before that week. The series starts on the Monday of
    *start_date*'s week so every key lines up with a weekly period.
    """
    schema = _identifier(schema or config.WAREHOUSE_SCHEMA)
    start = truncate_period(_iso_date(start_date, "start_date"), "week").isoformat()
    end = _iso_date(end_date, "end_date")
    school_year = escape_literal(school_year or config.SCHOOL_YEAR)
    campus_filter = ""
    if campus:
        campus_filter = (
            f"AND EXISTS (SELECT 1 FROM {schema}.campus_c cf "
            f"WHERE o.preferred_campus_c = cf.id AND cf.name = {escape_literal(campus)})"
        )

    return f"""
WITH period_dates AS (
  SELECT generate_series('{start}'::date, '{end}'::date, '1 week'::interval)::date AS period_date
),
arr_data AS (
  SELECT
    o.close_date,
    c.name AS campus_name,
    SUM(
      COALESCE(toc.state_scholarship_amount_annualized_c, 0) +
      COALESCE(toc.family_contribution_amount_annualized_c, 0) +
      COALESCE(o.actualized_financial_aid_c, 0)
    ) AS arr_amount
  FROM {schema}.opportunity o
  LEFT JOIN {schema}.tuition_offer_c toc ON o.active_tuition_offer_c = toc.id
  LEFT JOIN {schema}.campus_c c ON o.preferred_campus_c = c.id
  WHERE o.is_closed = true
    AND o.is_won = true
    AND o.school_year_c = {school_year}
    AND (toc.status_c = 'Active' OR toc.status_c IS NULL)
    {campus_filter}
  GROUP BY o.close_date, c.name
),
campuses AS (
  SELECT DISTINCT campus_name FROM arr_data
)
SELECT
  'week' AS period_type,
  pd.period_date,
  TO_CHAR(pd.period_date, 'Mon DD, YYYY') AS formatted_date,
  COALESCE(cs.campus_name, 'All Campuses') AS campus_name,
  COALESCE((
    SELECT SUM(ad.arr_amount)
    FROM arr_data ad
    WHERE ad.campus_name IS NOT DISTINCT FROM cs.campus_name
      AND ad.close_date <= pd.period_date
  ), 0) AS cumulative_arr
FROM period_dates pd
CROSS JOIN campuses cs
ORDER BY pd.period_date DESC, campus_name
""".strip()


def campus_list_query(school_year: str = None, schema: str = None) -> str:
    """Distinct preferred campuses that have a closed-won opportunity for the school year."""
    schema = _identifier(schema or config.WAREHOUSE_SCHEMA)
    school_year = escape_literal(school_year or config.SCHOOL_YEAR)
    return (
        "SELECT DISTINCT o.preferred_campus_c AS campus_name\n"
        f"FROM {schema}.opportunity o\n"
        "WHERE o.preferred_campus_c IS NOT NULL\n"
        "  AND o.is_closed = true\n"
        "  AND o.is_won = true\n"
        f"  AND o.school_year_c = {school_year}\n"
        "ORDER BY o.preferred_campus_c"
    )


def grade_enrollment_query(campus: Optional[str] = None, schema: str = None) -> str:
    """Enrollment per grade for one campus, or summed across every campus."""
    schema = _identifier(schema or config.WAREHOUSE_SCHEMA)
    if campus:
        return (
            "SELECT grade, campus, enrollment_count\n"
            f"FROM {schema}.grade_enrollment_summary\n"
            f"WHERE campus = {escape_literal(campus)}"
        )
    return (
        "SELECT grade, SUM(enrollment_count) AS enrollment_count\n"
        f"FROM {schema}.grade_enrollment_summary\n"
        "GROUP BY grade"
    )
