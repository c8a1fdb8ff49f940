"""
SQL Deploy Script
=================
Pushes SQL files (function and view definitions) to the warehouse through
the generic SQL RPC function. Each file is sent as a single statement batch.

Usage:
    python scripts/deploy_sql.py functions/get_lead_metrics.sql
    python scripts/deploy_sql.py functions/*.sql --dry-run
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT))

from scripts.lib.errors import HubError
from scripts.lib.logger import setup_logger
from scripts.lib.supabase_client import execute_sql

logger = setup_logger("deploy_sql")


def load_sql(path: Path) -> Optional[str]:
    """
    Read a SQL file, dropping full-line ``--`` comments.

    Returns None when nothing but comments and whitespace remains.
    """
    lines = [
        line for line in path.read_text(encoding="utf-8").splitlines()
        if not line.strip().startswith("--")
    ]
    sql = "\n".join(lines).strip()
    return sql or None


def deploy_file(path: Path, dry_run: bool = False, client=None) -> bool:
    """Deploy one SQL file. Returns True on success or when there is nothing to run."""
    if not path.exists():
        logger.warning("File not found, skipping: %s", path)
        return False

    sql = load_sql(path)
    if sql is None:
        logger.info("Nothing to deploy in %s", path)
        return True

    if dry_run:
        logger.info("Would deploy %s (%d chars)", path, len(sql))
        return True

    try:
        execute_sql(sql, client=client)
    except HubError as e:
        logger.error("Deploy failed for %s: %s", path, e)
        return False
    logger.info("Deployed %s", path)
    return True


def deploy_files(paths: List[Path], dry_run: bool = False, client=None) -> int:
    """Deploy every file in order. Returns the number of failures."""
    failures = 0
    for path in paths:
        if not deploy_file(path, dry_run=dry_run, client=client):
            failures += 1
    return failures


def main() -> int:
    parser = argparse.ArgumentParser(description="Deploy SQL files through the SQL RPC")
    parser.add_argument("files", nargs="+", type=Path, help="SQL files to deploy, in order")
    parser.add_argument("--dry-run", action="store_true",
                        help="Show what would be deployed without executing")
    args = parser.parse_args()

    logger.info("=== SQL Deploy ===")
    failures = deploy_files(args.files, dry_run=args.dry_run)
    logger.info("Deployed %d/%d files", len(args.files) - failures, len(args.files))
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
