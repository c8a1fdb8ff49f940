"""
Primer Analytics Hub — Google Sheets → Supabase Sync
======================================================
One-way copy of a fixed spreadsheet range into a destination table.

Each job reads its range, maps sheet columns onto table columns (exact
header match first, then case-insensitive), coerces the few known boolean
and numeric columns, drops rows missing required fields, and writes the
result either as a full refresh (delete then insert) or as an upsert on a
key column. There is no retry: a failed run is logged and reported in its
SyncResult, and the next run starts over.

Usage:
    from scripts.lib.sheet_sync import SYNC_JOBS, run_sync

    result = run_sync(SYNC_JOBS["real_estate_pipeline"])
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from scripts.lib import config
from scripts.lib.errors import HubError, SheetSyncError
from scripts.lib.logger import setup_logger
from scripts.lib.utils import parse_bool, safe_float, safe_int

logger = setup_logger(__name__)

REPLACE = "replace"
UPSERT = "upsert"


@dataclass(frozen=True)
class SheetSyncJob:
    """Where a sync reads from, how it maps columns, and where it writes."""
    name: str
    spreadsheet_id: str
    sheet_range: str
    table: str
    # Header mode: sheet header → table column. Positional mode: table column per index.
    column_map: Dict[str, str] = field(default_factory=dict)
    positional_columns: Tuple[str, ...] = ()
    bool_columns: Tuple[str, ...] = ()
    float_columns: Tuple[str, ...] = ()
    int_columns: Tuple[str, ...] = ()
    required_any: Tuple[str, ...] = ()
    required_all: Tuple[str, ...] = ()
    timestamp_column: str = "last_updated"
    write_mode: str = REPLACE
    key_column: str = "id"
    description: str = ""

    @property
    def has_header(self) -> bool:
        return not self.positional_columns


@dataclass
class SyncResult:
    job: str
    table: str
    fetched: int = 0
    valid: int = 0
    inserted: int = 0
    success: bool = False
    dry_run: bool = False
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------

def rows_from_values(values: List[List[Any]], has_header: bool = True) -> List[Dict[str, Any]]:
    """
    Turn raw sheet values into row dicts.

    With a header row, keys are the header cells (blank headers are skipped).
    Without one, keys are the column indexes. Short rows are padded with None.
    """
    if not values:
        return []

    if not has_header:
        width = max(len(r) for r in values)
        return [
            {i: (row[i] if i < len(row) else None) for i in range(width)}
            for row in values
        ]

    headers = values[0]
    rows = []
    for row_values in values[1:]:
        record = {}
        for i, header in enumerate(headers):
            if header is None or str(header).strip() == "":
                continue
            record[header] = row_values[i] if i < len(row_values) else None
        rows.append(record)
    return rows


def _coerce(column: str, value: Any, job: SheetSyncJob) -> Any:
    if value == "":
        value = None
    if value is None:
        return None
    if column in job.bool_columns:
        return parse_bool(value)
    if column in job.float_columns:
        return safe_float(value)
    if column in job.int_columns:
        return safe_int(value)
    return value


def _resolve_column(key: Any, job: SheetSyncJob, lowered: Dict[str, str]) -> Optional[str]:
    if not job.has_header:
        if isinstance(key, int) and key < len(job.positional_columns):
            return job.positional_columns[key]
        return None
    if key in job.column_map:
        return job.column_map[key]
    return lowered.get(str(key).strip().lower())


def map_row(row: Dict[Any, Any], job: SheetSyncJob, synced_at: str = None) -> Dict[str, Any]:
    """Map one sheet row onto table columns; unmapped sheet columns are dropped."""
    lowered = {k.lower(): v for k, v in job.column_map.items()}
    mapped: Dict[str, Any] = {}
    for key, value in row.items():
        column = _resolve_column(key, job, lowered)
        if column is None:
            continue
        mapped[column] = _coerce(column, value, job)
    if job.timestamp_column:
        mapped[job.timestamp_column] = synced_at or datetime.now(timezone.utc).isoformat()
    return mapped


def is_valid_row(row: Dict[str, Any], job: SheetSyncJob) -> bool:
    """A row needs every ``required_all`` column and at least one ``required_any`` column."""
    if any(row.get(c) in (None, "") for c in job.required_all):
        return False
    if job.required_any and all(row.get(c) in (None, "") for c in job.required_any):
        return False
    return True


def prepare_rows(values: List[List[Any]], job: SheetSyncJob) -> Tuple[int, List[Dict[str, Any]]]:
    """Map raw sheet values into table rows. Returns (rows fetched, valid rows)."""
    rows = rows_from_values(values, has_header=job.has_header)
    synced_at = datetime.now(timezone.utc).isoformat()
    mapped = [map_row(r, job, synced_at=synced_at) for r in rows]
    valid = [r for r in mapped if is_valid_row(r, job)]
    logger.info(
        "%s: %d sheet rows, %d valid after mapping", job.name, len(rows), len(valid),
    )
    return len(rows), valid


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

def _write(job: SheetSyncJob, rows: List[Dict[str, Any]], supabase_client) -> int:
    from scripts.lib.supabase_client import replace_table_rows, upsert_rows

    if job.write_mode == UPSERT:
        return upsert_rows(job.table, rows, on_conflict=job.key_column, client=supabase_client)
    return replace_table_rows(job.table, rows, key_column=job.key_column, client=supabase_client)


def run_sync(
    job: SheetSyncJob,
    sheets_client=None,
    supabase_client=None,
    dry_run: bool = False,
) -> SyncResult:
    """Run one sync job end to end. Never raises for fetch or write failures."""
    result = SyncResult(job=job.name, table=job.table, dry_run=dry_run)
    logger.info("Starting sync job %s → %s", job.name, job.table)

    try:
        if sheets_client is None:
            from scripts.lib.google_sheets import GoogleSheetsClient
            sheets_client = GoogleSheetsClient()
        values = sheets_client.fetch_values(job.spreadsheet_id, job.sheet_range)
    except HubError as e:
        logger.error("Sync job %s could not read the sheet: %s", job.name, e)
        result.message = str(e)
        return result

    result.fetched, rows = prepare_rows(values, job)
    result.valid = len(rows)

    if result.fetched == 0:
        logger.warning("No data found in Google Sheet for %s", job.name)
        result.message = "No data found in Google Sheet"
        return result

    if not rows:
        result.success = True
        result.message = f"No valid {job.name} rows to write"
        return result

    if dry_run:
        result.success = True
        result.message = f"Dry run: {len(rows)} {job.name} rows ready for {job.table}"
        return result

    try:
        result.inserted = _write(job, rows, supabase_client)
    except HubError as e:
        error = SheetSyncError(job.name, job.table, str(e))
        logger.error("%s", error)
        result.message = str(error)
        return result

    result.success = True
    result.message = f"Successfully synced {result.inserted} {job.name} records"
    logger.info(result.message)
    return result


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------

REAL_ESTATE_COLUMNS = {
    "Phase": "phase",
    "State": "state",
    "Market": "market",
    "Site Name / Type": "site_name_type",
    "Address": "address",
    "Site Coordinator": "site_coordinator",
    "Coordinator Contact Info": "coordinator_contact_info",
    "SF Available": "sf_available",
    "Questionnaire": "questionnaire",
    "Initial Mock Up": "initial_mock_up",
    "LL POC": "ll_poc",
    "LL Phone": "ll_phone",
    "LL Email": "ll_email",
    "Airtable": "airtable",
    "RE Folder": "re_folder",
    "Floorplan": "floorplan",
    "Fire Sprinklers": "fire_sprinklers",
    "Fiber": "fiber",
    "Fire Inspection / CoO": "fire_inspection_coo",
    "Zoning": "zoning",
    "Permitted Use": "permitted_use",
    "Parking": "parking",
    "AHJ Zoning Confirmation": "ahj_zoning_confirmation",
    "AHJ Building Records": "ahj_building_records",
    "AHJ HB-1285 Intro": "ahj_hb1285_intro",
    "Survey": "survey",
    "AOR Initial Analysis": "aor_initial_analysis",
    "Test Fit": "test_fit",
    "Fire Assessment": "fire_assessment",
    "EDC Contact": "edc_contact",
    "Pre-App": "pre_app",
    "LOI": "loi",
    "Lease": "lease",
    "Status": "status",
    "Property Notes": "property_notes",
    "Deep Research - General": "deep_research_general",
    "Deep Research - Previous School Use": "deep_research_previous_school_use",
    "Status (JB)": "status_jb",
    "Priority (JB)": "priority_jb",
    "fellow": "fellow",
    "Survey time": "survey_time",
    "Lat": "lat",
    "lon": "lon",
    "Confirmed survey time": "confirmed_survey_time",
    "fellow contact poc": "fellow_contact_poc",
}

SYNC_JOBS: Dict[str, SheetSyncJob] = {
    job.name: job for job in (
        SheetSyncJob(
            name="real_estate_pipeline",
            spreadsheet_id=config.REAL_ESTATE_SHEET_ID,
            sheet_range="Sheet1!A1:AZ1000",
            table="real_estate_pipeline",
            column_map=REAL_ESTATE_COLUMNS,
            bool_columns=("floorplan", "fire_sprinklers", "fiber"),
            float_columns=("lat", "lon"),
            required_any=("address", "site_name_type"),
            timestamp_column="last_updated",
            write_mode=REPLACE,
            key_column="id",
            description="Real-estate site pipeline tracker",
        ),
        SheetSyncJob(
            name="fellows",
            spreadsheet_id=config.FELLOWS_SHEET_ID,
            sheet_range="Sheet1!A2:F",
            table="fellows",
            positional_columns=(
                "fellow_id", "fellow_name", "campus", "cohort",
                "grade_band", "fte_employment_status",
            ),
            int_columns=("fellow_id", "cohort"),
            required_all=("fellow_id", "fellow_name"),
            timestamp_column="updated_at",
            write_mode=UPSERT,
            key_column="fellow_id",
            description="Fellows roster with campus, cohort and FTE status",
        ),
    )
}


def get_job(name: str) -> SheetSyncJob:
    try:
        return SYNC_JOBS[name]
    except KeyError:
        raise KeyError(
            f"Unknown sync job '{name}'. Known jobs: {', '.join(sorted(SYNC_JOBS))}"
        ) from None
