"""
Primer Analytics Hub — Sheet Sync Router
==========================================
Trigger Google Sheets → Supabase sync jobs.

Endpoints:
  GET  /api/sync/jobs     - Configured sync jobs
  POST /api/sync/{job}    - Run one job (optionally as a dry run)
"""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, HTTPException, Query

from models.metrics_models import SyncJobInfo, SyncResultModel
from scripts.lib.logger import setup_logger
from scripts.lib.sheet_sync import SYNC_JOBS, run_sync

logger = setup_logger("sync_router")

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.get("/jobs", response_model=List[SyncJobInfo])
async def list_jobs():
    """Sync jobs and their destination tables."""
    return [
        SyncJobInfo(
            name=job.name,
            table=job.table,
            sheet_range=job.sheet_range,
            write_mode=job.write_mode,
            description=job.description,
        )
        for job in SYNC_JOBS.values()
    ]


@router.post("/{job}", response_model=SyncResultModel)
async def run_job(
    job: str,
    dry_run: bool = Query(False, description="Fetch and map without writing"),
):
    """Run a sync job. Failures are reported in the result body, not as HTTP errors."""
    if job not in SYNC_JOBS:
        raise HTTPException(status_code=404, detail=f"Unknown sync job: {job}")
    result = run_sync(SYNC_JOBS[job], dry_run=dry_run)
    if not result.success:
        logger.warning("Sync job %s did not succeed: %s", job, result.message)
    return result.to_dict()
