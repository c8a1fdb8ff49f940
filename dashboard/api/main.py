"""
Primer Analytics Hub — API Server
===================================

Serves period-over-period admissions metrics computed from the Supabase
warehouse views, plus Google Sheets sync triggers.

Route groups:
  /api/health              - Health check
  /api/metrics/*           - Period metrics, campuses, enrollment, fellows
  /api/sync/*              - Google Sheets → Supabase sync jobs
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scripts.lib import config
from scripts.lib.errors import ConfigError

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def _supabase_available() -> bool:
    from scripts.lib.supabase_client import get_client
    try:
        get_client()
    except ConfigError as e:
        logger.warning("Supabase not available: %s", e)
        return False
    return True


# ─── Lifespan ─────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app):
    """Application startup and shutdown."""
    logger.info("Starting Primer Analytics Hub...")
    if _supabase_available():
        logger.info("Supabase connected")
    logger.info("Primer Analytics Hub ready")
    yield
    logger.info("Shutting down Primer Analytics Hub...")


# ─── App Setup ────────────────────────────────────────────────

app = FastAPI(
    title="Primer Analytics Hub",
    version=VERSION,
    description="Admissions, revenue and enrollment metrics by period and campus",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Include Routers ──────────────────────────────────────────

from dashboard.api.routers.metrics import router as metrics_router
from dashboard.api.routers.sync import router as sync_router

app.include_router(metrics_router)
app.include_router(sync_router)


# ─── Health ───────────────────────────────────────────────────

@app.get("/api/health", tags=["system"])
async def health():
    """Health check with service status."""
    return {
        "status": "healthy",
        "service": "Primer Analytics Hub",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "integrations": {
            "supabase": _supabase_available(),
        },
    }
