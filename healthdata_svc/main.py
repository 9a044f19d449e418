"""
FastAPI application entry point for Health Data Service API.

This module configures and creates the FastAPI application with:
- Structured JSON Logging: Request/response logging for Grafana/Loki
- Request ID Propagation: UUID-based request tracking across logs
- Dependency Injection: Services and repositories injected via Depends()
- Exception Handling: Consistent error responses via setup_exception_handlers()
- CORS Middleware: Allows cross-origin requests from front ends
- Lifespan Management: Database initialization and cleanup

Architecture Overview:
    ┌─────────────────────────────────────────────────────────────┐
    │                     FastAPI Application                      │
    ├─────────────────────────────────────────────────────────────┤
    │  Middleware Stack (order matters!)                          │
    │    ├── LoggingMiddleware  - Request logging & request ids   │
    │    └── CORSMiddleware     - Cross-origin support            │
    ├─────────────────────────────────────────────────────────────┤
    │  Routers (api/routers/)                                     │
    │    ├── health.py     - /, /health, /ready                   │
    │    ├── records.py    - Health record lifecycle & history    │
    │    └── analytics.py  - Vitals trends                        │
    ├─────────────────────────────────────────────────────────────┤
    │  Services (services/)     ← Injected via Depends()          │
    │    ├── HealthRecordService - Record lifecycle               │
    │    ├── HistoryService      - Listings & vitals history      │
    │    ├── AccessControlGate   - Role based access decisions    │
    │    ├── rule_engine         - Reference range evaluation     │
    │    └── trend_service       - Trend computation              │
    ├─────────────────────────────────────────────────────────────┤
    │  Repositories (repositories/)   ← Injected into Services    │
    │    ├── UserRepository           - User directory lookup     │
    │    ├── AppointmentRepository    - Treatment relationships   │
    │    └── HealthRecordRepository   - Record data access        │
    ├─────────────────────────────────────────────────────────────┤
    │  Database (SQLite)              ← Injected into Repositories│
    └─────────────────────────────────────────────────────────────┘

Observability Features:
    - Structured JSON logs for Grafana Loki
    - Request ID in logs and X-Request-ID response header
    - /health endpoint for liveness probes
    - /ready endpoint for readiness probes (checks DB)
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from core.config import API_HOST, API_PORT, API_RELOAD
from core.dependencies import get_database
from core.exceptions import setup_exception_handlers
from core.logging_config import setup_logging
from core.middleware import LoggingMiddleware
from core.reference_ranges import list_reference_ranges
from api.routers import health_router, records_router, analytics_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for FastAPI application.

    Startup:
        - Configures structured JSON logging
        - Initializes database connection (triggers schema creation)
        - Loads the reference range table so a broken table fails at startup

    Shutdown:
        - Logs shutdown message
    """
    # =========================================================================
    # STARTUP
    # =========================================================================

    # Configure structured logging FIRST (before any other logging)
    setup_logging(level="INFO", json_format=True)

    logger = logging.getLogger(__name__)
    logger.info("Starting Health Data Service API...")

    db = get_database()
    logger.info(
        "Database initialized",
        extra={"db_path": db.db_path}
    )

    logger.info(
        "Reference ranges loaded",
        extra={"fields": [reference.field for reference in list_reference_ranges()]}
    )

    yield  # Application runs here

    # =========================================================================
    # SHUTDOWN
    # =========================================================================
    logger.info("Health Data Service API shutting down...")


# Create FastAPI app with lifespan context
app = FastAPI(
    title="Health Data Service API",
    description="REST API for patient health data. Records vitals, body measurements and lab results, "
                "flags values outside medical reference ranges, and serves role-gated history and trends.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)

# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================
# HealthDataError and its subclasses are converted to appropriate HTTP responses.
setup_exception_handlers(app)

# =============================================================================
# MIDDLEWARE
# =============================================================================
# Order matters! Middleware is executed in REVERSE order of registration.
# Last registered = first to handle request, last to handle response.

# 1. CORS Middleware (innermost - closest to routes)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 2. Logging Middleware (outermost - captures all requests)
app.add_middleware(LoggingMiddleware)

# =============================================================================
# ROUTERS
# =============================================================================
app.include_router(health_router)
app.include_router(records_router)
app.include_router(analytics_router)


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=API_HOST,
        port=API_PORT,
        reload=API_RELOAD
    )
