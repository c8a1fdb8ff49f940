"""
Google Sheets → Supabase Sync Script
======================================
Copies the configured spreadsheet ranges into their Supabase tables.

Usage:
    python scripts/sync_google_sheets.py                           # run every job
    python scripts/sync_google_sheets.py --job fellows
    python scripts/sync_google_sheets.py --job real_estate_pipeline --dry-run
    python scripts/sync_google_sheets.py --job fellows --dry-run --output data/fellows.json
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List

# ---------------------------------------------------------------------------
# Path setup
# ---------------------------------------------------------------------------
SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT))

from scripts.lib.errors import HubError
from scripts.lib.logger import setup_logger
from scripts.lib.sheet_sync import SYNC_JOBS, SyncResult, get_job, prepare_rows, run_sync
from scripts.lib.utils import atomic_write_json

logger = setup_logger("sync_google_sheets")


def _dump_rows(job_name: str, output: Path) -> bool:
    """Write the mapped rows of one job to a JSON file instead of the table."""
    from scripts.lib.google_sheets import GoogleSheetsClient

    job = get_job(job_name)
    values = GoogleSheetsClient().fetch_values(job.spreadsheet_id, job.sheet_range)
    _, rows = prepare_rows(values, job)
    return atomic_write_json({"job": job.name, "table": job.table, "rows": rows}, output)


def sync_jobs(names: List[str], dry_run: bool = False) -> List[SyncResult]:
    results = []
    for name in names:
        result = run_sync(get_job(name), dry_run=dry_run)
        level = logger.info if result.success else logger.error
        level("  %s: %s", name, result.message)
        results.append(result)
    return results


def main() -> int:
    parser = argparse.ArgumentParser(description="Sync Google Sheets into Supabase tables")
    parser.add_argument("--job", choices=sorted(SYNC_JOBS), action="append",
                        help="Job to run (repeatable, default: all jobs)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Fetch and map rows without writing to Supabase")
    parser.add_argument("--output", type=Path, default=None,
                        help="With --dry-run and a single --job, write mapped rows to this JSON file")
    args = parser.parse_args()

    names = args.job or sorted(SYNC_JOBS)

    logger.info("=== Google Sheets Sync ===")
    if args.dry_run:
        logger.info("DRY RUN — no changes will be made")

    if args.output:
        if not args.dry_run or len(names) != 1:
            parser.error("--output requires --dry-run and exactly one --job")
        try:
            ok = _dump_rows(names[0], args.output)
        except HubError as e:
            logger.error("Dump failed: %s", e)
            return 1
        logger.info("Wrote mapped rows to %s", args.output)
        return 0 if ok else 1

    results = sync_jobs(names, dry_run=args.dry_run)
    failed = [r for r in results if not r.success]
    logger.info("Synced %d/%d jobs", len(results) - len(failed), len(results))
    logger.info("=== Sync complete ===")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
