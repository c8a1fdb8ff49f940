"""Tests for the metric fetchers."""

from datetime import date
from unittest.mock import ANY

import pytest

from scripts.lib import config
from scripts.lib.errors import MetricsFetchError
from scripts.lib.metric_sources import (
    METRICS,
    MetricsOptions,
    fetch_campuses,
    fetch_fellows_stats,
    fetch_grade_band_enrollment,
    fetch_metrics,
    get_metric,
    grade_band_for,
    group_grade_bands,
)
from scripts.lib.metrics import AggregationMode


def _rpc_data(client, data):
    client.rpc.return_value.execute.return_value.data = data
    return client


def _sent_sql(client):
    return client.rpc.call_args[0][1]["query_text"]


class TestMetricsOptions:
    def test_defaults(self):
        options = MetricsOptions()
        assert options.period == "week"
        assert options.lookback_units == 12
        assert options.campus_id is None
        assert options.enabled is True

    def test_rejects_bad_period(self):
        with pytest.raises(ValueError):
            MetricsOptions(period="year")

    @pytest.mark.parametrize("lookback", [0, -3, "6"])
    def test_rejects_bad_lookback(self, lookback):
        with pytest.raises(ValueError):
            MetricsOptions(lookback_units=lookback)


class TestRegistry:
    def test_known_metrics(self):
        assert set(METRICS) == {
            "leads", "leads_created", "converted_leads", "closed_won", "arr", "cumulative_arr",
        }

    def test_only_cumulative_arr_uses_latest(self):
        latest = [name for name, d in METRICS.items() if d.mode is AggregationMode.LATEST]
        assert latest == ["cumulative_arr"]

    def test_unknown_metric(self):
        with pytest.raises(KeyError):
            get_metric("churn")


class TestFetchMetrics:
    def test_runs_sql_through_rpc_and_aggregates(self, supabase_client, weekly_rows):
        _rpc_data(supabase_client, weekly_rows)
        resource = fetch_metrics("leads", MetricsOptions(period="week"), client=supabase_client)

        supabase_client.rpc.assert_called_once_with(config.SQL_RPC_FUNCTION, {"query_text": ANY})
        assert "lead_metrics_weekly" in _sent_sql(supabase_client)
        assert resource.error is None
        assert resource.loading is False
        assert resource.data.metric == "leads"
        assert resource.data.latest_total == 100
        assert resource.data.campus_totals == {"Alpha": 140, "Beta": 90}

    def test_campus_filter_reaches_sql(self, supabase_client, weekly_rows):
        _rpc_data(supabase_client, weekly_rows)
        fetch_metrics("closed_won", MetricsOptions(campus_id="Alpha"), client=supabase_client)
        assert "campus_name = 'Alpha'" in _sent_sql(supabase_client)

    def test_leads_created_calls_lead_function(self, supabase_client, weekly_rows):
        _rpc_data(supabase_client, weekly_rows)
        fetch_metrics("leads_created", MetricsOptions(period="month", lookback_units=6),
                      client=supabase_client)
        assert _sent_sql(supabase_client).endswith("get_lead_metrics('month', 6, NULL)")

    def test_wrapped_rows_payload(self, supabase_client, weekly_rows):
        _rpc_data(supabase_client, {"rows": weekly_rows})
        resource = fetch_metrics("leads", client=supabase_client)
        assert resource.data.periods == ["2025-03-17", "2025-03-10", "2025-03-03"]

    def test_disabled_runs_no_query(self, supabase_client):
        resource = fetch_metrics("leads", MetricsOptions(enabled=False), client=supabase_client)
        assert resource.data is None
        assert resource.error is None
        supabase_client.rpc.assert_not_called()

    def test_no_rows_gives_empty_response(self, supabase_client):
        _rpc_data(supabase_client, [])
        resource = fetch_metrics("closed_won", client=supabase_client)
        assert resource.error is None
        assert resource.data.periods == []
        assert resource.data.latest_period is None
        assert resource.data.latest_total == 0

    def test_rpc_failure_sets_error_and_empty_data(self, supabase_client):
        supabase_client.rpc.return_value.execute.side_effect = Exception("connection reset")
        resource = fetch_metrics("closed_won", client=supabase_client)
        assert "connection reset" in resource.error
        assert resource.data is not None
        assert resource.data.to_dict()["periods"] == []
        assert resource.data.to_dict()["latestTotal"] == 0

    def test_rpc_failure_message_is_not_nested(self, supabase_client):
        supabase_client.rpc.return_value.execute.side_effect = Exception("connection reset")
        resource = fetch_metrics("closed_won", client=supabase_client)
        assert resource.error.startswith("[METRICS_FETCH_ERROR] ")
        assert resource.error.count("[") == 1
        assert resource.error.endswith(": connection reset")

    def test_cumulative_arr_uses_date_range_and_latest_value(self, supabase_client):
        _rpc_data(supabase_client, [
            {"period_date": "2025-03-10", "campus_name": "X", "cumulative_arr": "300"},
            {"period_date": "2025-03-17", "campus_name": "X", "cumulative_arr": "500"},
        ])
        resource = fetch_metrics(
            "cumulative_arr", MetricsOptions(period="week", lookback_units=2),
            client=supabase_client, today=date(2025, 3, 15),
        )
        assert "'2025-02-24'::date, '2025-03-15'::date" in _sent_sql(supabase_client)
        assert resource.data.campus_totals == {"X": 500}

    def test_resource_to_dict(self, supabase_client, weekly_rows):
        _rpc_data(supabase_client, weekly_rows)
        data = fetch_metrics("leads", client=supabase_client).to_dict()
        assert set(data) == {"data", "loading", "error"}
        assert data["data"]["periodType"] == "week"


class TestFetchCampuses:
    def test_campus_name_doubles_as_id(self, supabase_client):
        _rpc_data(supabase_client, [{"campus_name": "Alpha"}, {"campus_name": None}])
        assert fetch_campuses(client=supabase_client) == [
            {"campus_id": "Alpha", "campus_name": "Alpha"},
        ]

    def test_failure_raises(self, supabase_client):
        supabase_client.rpc.return_value.execute.side_effect = Exception("timeout")
        with pytest.raises(MetricsFetchError):
            fetch_campuses(client=supabase_client)

    def test_failure_error_code(self, supabase_client):
        supabase_client.rpc.return_value.execute.side_effect = Exception("timeout")
        with pytest.raises(MetricsFetchError) as exc:
            fetch_campuses(client=supabase_client)
        assert exc.value.code == "METRICS_FETCH_ERROR"
        assert exc.value.details["reason"] == "timeout"
        assert str(exc.value).count("[") == 1


class TestGradeBands:
    @pytest.mark.parametrize("grade, band", [
        ("K", "K-2"), ("tk", "K-2"), (0, "K-2"), ("2", "K-2"),
        ("3", "3-5"), (5, "3-5"), ("8", "6-8"), ("9", None), ("Pre-K", None),
    ])
    def test_band_for_grade(self, grade, band):
        assert grade_band_for(grade) == band

    def test_always_three_bands(self):
        rows = [
            {"grade": "K", "enrollment_count": 10},
            {"grade": "1", "enrollment_count": "5"},
            {"grade": "4", "enrollment_count": 3},
            {"grade": "9", "enrollment_count": 7},
            {"grade": "TK", "enrollment_count": None},
        ]
        assert group_grade_bands(rows) == [
            {"grade_band": "K-2", "enrollment_count": 15},
            {"grade_band": "3-5", "enrollment_count": 3},
            {"grade_band": "6-8", "enrollment_count": 0},
        ]

    def test_fetch_for_campus(self, supabase_client):
        _rpc_data(supabase_client, [{"grade": "6", "campus": "Alpha", "enrollment_count": 12}])
        resource = fetch_grade_band_enrollment("Alpha", client=supabase_client)
        assert resource.error is None
        assert resource.data[2] == {"grade_band": "6-8", "enrollment_count": 12}
        assert "WHERE campus = 'Alpha'" in _sent_sql(supabase_client)

    def test_fetch_failure(self, supabase_client):
        supabase_client.rpc.return_value.execute.side_effect = Exception("boom")
        resource = fetch_grade_band_enrollment(client=supabase_client)
        assert resource.data == []
        assert "boom" in resource.error


class TestFellowsStats:
    def test_counts_by_status(self, supabase_client):
        query = supabase_client.table.return_value.select.return_value
        query.execute.return_value.data = [
            {"fellow_id": 1, "fte_employment_status": "Full Time"},
            {"fellow_id": 2, "fte_employment_status": "Part Time"},
            {"fellow_id": 3, "fte_employment_status": "Full Time"},
            {"fellow_id": 4, "fte_employment_status": None},
        ]
        resource = fetch_fellows_stats(client=supabase_client)

        supabase_client.table.assert_called_once_with("fellows")
        assert resource.data == {
            "count": 4,
            "by_status": [
                {"status": "Full Time", "count": 2},
                {"status": "Part Time", "count": 1},
                {"status": "Unknown", "count": 1},
            ],
        }

    def test_campus_filter(self, supabase_client):
        query = supabase_client.table.return_value.select.return_value
        query.in_.return_value.execute.return_value.data = []
        resource = fetch_fellows_stats(["Alpha", "Beta"], client=supabase_client)
        query.in_.assert_called_once_with("campus", ["Alpha", "Beta"])
        assert resource.data == {"count": 0, "by_status": []}

    def test_failure(self, supabase_client):
        supabase_client.table.side_effect = Exception("table missing")
        resource = fetch_fellows_stats(client=supabase_client)
        assert resource.data == {"count": 0, "by_status": []}
        assert "table missing" in resource.error
