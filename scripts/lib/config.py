"""
Environment configuration for Primer Analytics Hub.
Loads .env from the project root and exposes settings as module constants.

Usage:
    from scripts.lib import config
    config.SQL_RPC_FUNCTION
"""
import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(PROJECT_ROOT / ".env")


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


# Supabase
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = (
    os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
    or os.getenv("SUPABASE_KEY", "")
)
SQL_RPC_FUNCTION = os.getenv("SQL_RPC_FUNCTION", "execute_sql_query")
WAREHOUSE_SCHEMA = os.getenv("WAREHOUSE_SCHEMA", "fivetran_views")

# Metrics defaults
DEFAULT_PERIOD = os.getenv("DEFAULT_PERIOD", "week")
DEFAULT_LOOKBACK_UNITS = _int_env("DEFAULT_LOOKBACK_UNITS", 12)
SCHOOL_YEAR = os.getenv("SCHOOL_YEAR", "25/26")

# Google Sheets
GOOGLE_SERVICE_ACCOUNT_JSON = os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON", "").strip()
GOOGLE_SERVICE_ACCOUNT_INFO = os.getenv(
    "GOOGLESHEETS_SERVICE_ACCOUNT_CREDENTIALS", ""
).strip()
REAL_ESTATE_SHEET_ID = os.getenv(
    "REAL_ESTATE_SHEET_ID", "1sNaNYFCYEEPmh8t_uISJ9av2HatheCdce3ssRkgOFYU"
)
FELLOWS_SHEET_ID = os.getenv(
    "FELLOWS_SHEET_ID", "1Lz5_CWhpQ1rJiIhThRoPRC1rgBhXyn2AIUsZO-hvVtA"
)
SYNC_BATCH_SIZE = _int_env("SYNC_BATCH_SIZE", 500)

# API server
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", "http://localhost:5173,http://localhost:8001"
    ).split(",")
    if origin.strip()
]
DASHBOARD_PORT = _int_env("DASHBOARD_PORT", 8001)
