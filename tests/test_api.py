"""Tests for the FastAPI routes."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from dashboard.api.main import app
from scripts.lib.errors import ConfigError, MetricsFetchError
from scripts.lib.metric_sources import Resource
from scripts.lib.metrics import empty_response, process_metrics
from scripts.lib.sheet_sync import SyncResult

METRICS_ROUTER = "dashboard.api.routers.metrics"
SYNC_ROUTER = "dashboard.api.routers.sync"


@pytest.fixture
def client():
    return TestClient(app)


class TestHealth:
    def test_reports_supabase_status(self, client):
        with patch("scripts.lib.supabase_client.get_client", side_effect=ConfigError("SUPABASE_URL")):
            resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "healthy"
        assert body["integrations"] == {"supabase": False}


class TestMetricsRoutes:
    def test_catalog(self, client):
        resp = client.get("/api/metrics")
        assert resp.status_code == 200
        names = {m["name"]: m["mode"] for m in resp.json()}
        assert names["cumulative_arr"] == "latest"
        assert names["leads"] == "sum"

    def test_period_metrics(self, client, weekly_rows):
        resource = Resource(data=process_metrics(weekly_rows, "lead_count", "week", metric="leads"))
        with patch(f"{METRICS_ROUTER}.fetch_metrics", return_value=resource) as fetch:
            resp = client.get("/api/metrics/leads?period=week&lookback_units=4&campus_id=Alpha")

        assert resp.status_code == 200
        options = fetch.call_args[0][1]
        assert (options.period, options.lookback_units, options.campus_id) == ("week", 4, "Alpha")

        data = resp.json()["data"]
        assert data["periodType"] == "week"
        assert data["periods"] == ["2025-03-17", "2025-03-10", "2025-03-03"]
        assert data["latestTotal"] == 100
        assert data["campusTotals"] == {"Alpha": 140, "Beta": 90}
        assert data["changes"]["raw"]["2025-03-17"] == 20
        assert data["timeSeriesData"][0]["campuses"] == {"Alpha": 60, "Beta": 40}

    def test_numeric_campus_names(self, client):
        rows = [{"period_date": "2025-03-17", "campus_name": 101, "lead_count": 4}]
        resource = Resource(data=process_metrics(rows, "lead_count", "week", metric="leads"))
        with patch(f"{METRICS_ROUTER}.fetch_metrics", return_value=resource):
            resp = client.get("/api/metrics/leads")
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["campuses"] == ["101"]
        assert data["timeSeriesData"][0]["campuses"] == {"101": 4}

    def test_fetch_error_still_returns_shape(self, client):
        resource = Resource(data=empty_response("week", metric="leads"), error="Failed to fetch")
        with patch(f"{METRICS_ROUTER}.fetch_metrics", return_value=resource):
            resp = client.get("/api/metrics/leads")
        assert resp.status_code == 200
        body = resp.json()
        assert body["error"] == "Failed to fetch"
        assert body["data"]["periods"] == []
        assert body["data"]["latestPeriod"] is None

    def test_disabled(self, client):
        with patch(f"{METRICS_ROUTER}.fetch_metrics", return_value=Resource()):
            resp = client.get("/api/metrics/leads?enabled=false")
        assert resp.json() == {"data": None, "loading": False, "error": None}

    def test_unknown_metric(self, client):
        resp = client.get("/api/metrics/churn")
        assert resp.status_code == 404

    @pytest.mark.parametrize("query", ["period=year", "lookback_units=0"])
    def test_invalid_params(self, client, query):
        resp = client.get(f"/api/metrics/leads?{query}")
        assert resp.status_code == 422

    def test_campuses(self, client):
        campuses = [{"campus_id": "Alpha", "campus_name": "Alpha"}]
        with patch(f"{METRICS_ROUTER}.fetch_campuses", return_value=campuses):
            resp = client.get("/api/metrics/campuses")
        assert resp.status_code == 200
        assert resp.json() == {"campuses": campuses, "count": 1}

    def test_campuses_failure(self, client):
        with patch(f"{METRICS_ROUTER}.fetch_campuses", side_effect=MetricsFetchError("campuses", "down")):
            resp = client.get("/api/metrics/campuses")
        assert resp.status_code == 500

    def test_grade_bands(self, client):
        bands = [
            {"grade_band": "K-2", "enrollment_count": 15},
            {"grade_band": "3-5", "enrollment_count": 3},
            {"grade_band": "6-8", "enrollment_count": 0},
        ]
        with patch(f"{METRICS_ROUTER}.fetch_grade_band_enrollment",
                   return_value=Resource(data=bands)) as fetch:
            resp = client.get("/api/metrics/enrollment/grade-bands?campus_id=Alpha")
        fetch.assert_called_once_with("Alpha")
        assert resp.json()["data"] == bands

    def test_fellows(self, client):
        stats = {"count": 3, "by_status": [{"status": "Full Time", "count": 3}]}
        with patch(f"{METRICS_ROUTER}.fetch_fellows_stats",
                   return_value=Resource(data=stats)) as fetch:
            resp = client.get("/api/metrics/fellows?campus=Alpha&campus=Beta")
        fetch.assert_called_once_with(["Alpha", "Beta"])
        assert resp.json()["data"] == stats


class TestSyncRoutes:
    def test_jobs(self, client):
        resp = client.get("/api/sync/jobs")
        assert resp.status_code == 200
        jobs = {j["name"]: j for j in resp.json()}
        assert jobs["fellows"]["write_mode"] == "upsert"
        assert jobs["real_estate_pipeline"]["table"] == "real_estate_pipeline"

    def test_run_job(self, client):
        result = SyncResult(job="fellows", table="fellows", fetched=2, valid=2,
                            success=True, dry_run=True, message="Dry run")
        with patch(f"{SYNC_ROUTER}.run_sync", return_value=result) as run:
            resp = client.post("/api/sync/fellows?dry_run=true")
        assert run.call_args[1] == {"dry_run": True}
        assert resp.status_code == 200
        assert resp.json()["valid"] == 2

    def test_unknown_job(self, client):
        resp = client.post("/api/sync/payroll")
        assert resp.status_code == 404
