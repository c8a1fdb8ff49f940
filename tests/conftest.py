"""Shared fixtures for the Primer Analytics Hub tests."""

import os

# Keep test runs off the daily log file.
os.environ.setdefault("LOG_TO_FILE", "false")

from unittest.mock import MagicMock

import pytest


@pytest.fixture
def supabase_client():
    """MagicMock standing in for a supabase-py client."""
    return MagicMock()


@pytest.fixture
def weekly_rows():
    return [
        {"period_date": "2025-03-10", "formatted_date": "Mar 10", "campus_name": "Alpha", "lead_count": 30},
        {"period_date": "2025-03-17", "formatted_date": "Mar 17", "campus_name": "Alpha", "lead_count": 60},
        {"period_date": "2025-03-03", "formatted_date": "Mar 3", "campus_name": "Alpha", "lead_count": 50},
        {"period_date": "2025-03-17", "formatted_date": "Mar 17", "campus_name": "Beta", "lead_count": 40},
        {"period_date": "2025-03-10", "formatted_date": "Mar 10", "campus_name": "Beta", "lead_count": 50},
    ]
