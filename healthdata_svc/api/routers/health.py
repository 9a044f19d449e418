"""
Health and readiness endpoints for operational visibility.

This module provides:
- /health: Liveness probe (is the app running?)
- /ready: Readiness probe (is the database available?)
- /: Service information

No authentication required (internal/infrastructure use).
"""
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Response
from pydantic import BaseModel

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health & Observability"])

SERVICE_VERSION = "1.0.0"


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class HealthResponse(BaseModel):
    """Response model for /health endpoint."""
    status: str  # "healthy"
    version: str
    timestamp: str  # ISO 8601 UTC


class DependencyStatus(BaseModel):
    """Status of a single dependency."""
    name: str
    status: str  # "ok", "unavailable"
    latency_ms: Optional[float] = None
    message: Optional[str] = None


class ReadyResponse(BaseModel):
    """Response model for /ready endpoint."""
    status: str  # "ready", "not_ready"
    dependencies: List[DependencyStatus]
    timestamp: str


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# =============================================================================
# HEALTH ENDPOINT (LIVENESS)
# =============================================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness probe",
    description="Check if the application is running. Returns immediately without checking dependencies."
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="healthy", version=SERVICE_VERSION, timestamp=_timestamp())


# =============================================================================
# READINESS ENDPOINT
# =============================================================================

async def _check_database() -> DependencyStatus:
    """
    Check SQLite database connectivity with a trivial query.
    """
    from core.dependencies import get_database

    start = time.perf_counter()
    try:
        db = get_database()
        conn = db.get_connection()
        try:
            conn.execute("SELECT 1")
        finally:
            conn.close()

        latency_ms = (time.perf_counter() - start) * 1000
        return DependencyStatus(
            name="database",
            status="ok",
            latency_ms=round(latency_ms, 2),
            message="SQLite connection healthy"
        )
    except Exception as e:
        latency_ms = (time.perf_counter() - start) * 1000
        logger.error("Database health check failed", extra={"error": str(e)})
        return DependencyStatus(
            name="database",
            status="unavailable",
            latency_ms=round(latency_ms, 2),
            message=f"Connection failed: {type(e).__name__}"
        )


@router.get(
    "/ready",
    response_model=ReadyResponse,
    summary="Readiness probe",
    description="Check if the application is ready to serve requests. Returns 503 if the database is unavailable."
)
async def readiness_check(response: Response) -> ReadyResponse:
    db_status = await _check_database()

    if db_status.status == "unavailable":
        status = "not_ready"
        response.status_code = 503
    else:
        status = "ready"

    return ReadyResponse(status=status, dependencies=[db_status], timestamp=_timestamp())


# =============================================================================
# ROOT ENDPOINT
# =============================================================================

@router.get(
    "/",
    summary="API root",
    description="Root endpoint with basic API information."
)
async def root() -> Dict[str, Any]:
    """
    Root endpoint - basic API information.

    Returns service name, version, and links to documentation.
    """
    return {
        "service": "Health Data Service API",
        "version": SERVICE_VERSION,
        "docs": "/docs",
        "health": "/health",
        "ready": "/ready",
    }
