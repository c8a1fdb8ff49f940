"""
Google Sheets reader for the spreadsheet → table sync jobs.

Connects to the Google Sheets API with a service account and reads a fixed
range of cell values.

Credentials:
    - GOOGLE_SERVICE_ACCOUNT_JSON              (path to the service-account key file)
    - OR GOOGLESHEETS_SERVICE_ACCOUNT_CREDENTIALS (the key JSON inline)
"""
import json
from pathlib import Path
from typing import Any, List

from scripts.lib import config
from scripts.lib.errors import ConfigError, SheetFetchError, SyncError
from scripts.lib.logger import setup_logger

logger = setup_logger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]


def build_credentials(json_path: str = None, inline_json: str = None):
    """Build service-account credentials from a key file path or inline key JSON.

    Raises:
        ConfigError: when neither source is configured or the key is unreadable.
    """
    from google.oauth2 import service_account

    json_path = json_path if json_path is not None else config.GOOGLE_SERVICE_ACCOUNT_JSON
    inline_json = inline_json if inline_json is not None else config.GOOGLE_SERVICE_ACCOUNT_INFO

    if json_path:
        path = Path(json_path)
        if not path.exists():
            raise ConfigError(
                "GOOGLE_SERVICE_ACCOUNT_JSON",
                f"Service account JSON file not found: {json_path}",
            )
        logger.info("Loading Google credentials from %s", json_path)
        try:
            return service_account.Credentials.from_service_account_file(
                str(path), scopes=SCOPES,
            )
        except (ValueError, OSError) as e:
            raise ConfigError(
                "GOOGLE_SERVICE_ACCOUNT_JSON",
                f"Unusable service account key file {json_path}: {e}",
            ) from e

    if inline_json:
        try:
            info = json.loads(inline_json)
        except json.JSONDecodeError as e:
            raise ConfigError(
                "GOOGLESHEETS_SERVICE_ACCOUNT_CREDENTIALS",
                f"Invalid service account credentials format: {e}",
            ) from e
        if not isinstance(info, dict):
            raise ConfigError(
                "GOOGLESHEETS_SERVICE_ACCOUNT_CREDENTIALS",
                "Service account credentials must be a JSON object",
            )
        # Handle escaped newlines from .env files
        if isinstance(info.get("private_key"), str):
            info["private_key"] = info["private_key"].replace("\\n", "\n")
        logger.info("Loading inline Google credentials for %s", info.get("client_email"))
        try:
            return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
        except ValueError as e:
            raise ConfigError(
                "GOOGLESHEETS_SERVICE_ACCOUNT_CREDENTIALS",
                f"Unusable service account credentials: {e}",
            ) from e

    raise ConfigError(
        "GOOGLE_SERVICE_ACCOUNT_JSON",
        "No Google credentials found. Set GOOGLE_SERVICE_ACCOUNT_JSON "
        "or GOOGLESHEETS_SERVICE_ACCOUNT_CREDENTIALS in .env",
    )


class GoogleSheetsClient:
    """Thin wrapper over the Sheets v4 values API."""

    def __init__(self, credentials=None, service=None):
        if service is None:
            from googleapiclient.discovery import build

            credentials = credentials or build_credentials()
            try:
                service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
            except Exception as e:
                logger.error("Could not build the Sheets service: %s", e)
                raise SyncError(
                    f"Could not build the Sheets v4 service: {e}", code="SHEETS_SERVICE_ERROR",
                ) from e
        self.sheets_service = service

    def fetch_values(self, spreadsheet_id: str, sheet_range: str) -> List[List[Any]]:
        """Read a range as a list of rows (each a list of cell values).

        Raises:
            SheetFetchError: if the API call fails.
        """
        logger.info("Fetching %s from sheet %s", sheet_range, spreadsheet_id)
        request = self.sheets_service.spreadsheets().values().get(
            spreadsheetId=spreadsheet_id,
            range=sheet_range,
            majorDimension="ROWS",
            valueRenderOption="FORMATTED_VALUE",
        )
        try:
            result = request.execute()
        except Exception as e:
            logger.error("values.get(%s, %s) failed: %s", spreadsheet_id, sheet_range, e)
            raise SheetFetchError(spreadsheet_id, sheet_range, str(e)) from e

        values = result.get("values", [])
        logger.info("Fetched %d rows from %s", len(values), sheet_range)
        return values
