"""
jsonflow - Main FastAPI Application.

Thin HTTP surface over the workflow executor: one endpoint invokes any
registered workflow, the others expose the compliance trail.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import time

from api import dependencies
from api.routes import compliance, health, workflows
from core.infrastructure.logging import configure_logging
from core.settings import get_app_settings


# Setup logging
configure_logging(get_app_settings().workflow.log_level)
logger = logging.getLogger(__name__)


# =============================================================================
# CREATE FASTAPI APP
# =============================================================================

app = FastAPI(
    title="jsonflow - Workflow API",
    description="""
    Schema-validated workflow actions with compliance tracking.

    Features:
    - JSON Schema validation of every workflow input
    - Persistence, ledger submission and aggregate updates per workflow
    - Compliance events mirrored to the ledger
    - Audit trail with one terminal entry per invocation
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# =============================================================================
# CORS MIDDLEWARE
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


# =============================================================================
# REQUEST LOGGING MIDDLEWARE
# =============================================================================

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing."""
    start_time = time.time()

    logger.info(f"→ {request.method} {request.url.path}")

    response = await call_next(request)

    duration = time.time() - start_time
    logger.info(
        f"← {request.method} {request.url.path} "
        f"[{response.status_code}] ({duration:.3f}s)"
    )

    return response


# =============================================================================
# GLOBAL EXCEPTION HANDLER
# =============================================================================

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc),
            "path": request.url.path
        }
    )


# =============================================================================
# STARTUP/SHUTDOWN EVENTS
# =============================================================================

@app.on_event("startup")
async def startup_event():
    """Load schemas and workflows; create tables for the SQL backend."""
    logger.info("jsonflow API starting up...")

    # Critical schema failures abort startup here
    dependencies.get_schema_registry()
    dependencies.get_executor()

    if dependencies.get_settings().workflow.persistence_backend == "sql":
        from core.infrastructure.database.config import init_database
        await init_database(dependencies.get_engine())

    logger.info("Swagger UI available at: /docs")


@app.on_event("shutdown")
async def shutdown_event():
    """Run on application shutdown."""
    if dependencies.engine_started():
        from core.infrastructure.database.config import close_database
        await close_database(dependencies.get_engine())
    logger.info("jsonflow API shutting down...")


# =============================================================================
# INCLUDE ROUTERS
# =============================================================================

app.include_router(
    health.router,
    tags=["Health"]
)

app.include_router(
    workflows.router,
    prefix="/api/v1/workflows",
    tags=["Workflows"]
)

app.include_router(
    compliance.router,
    prefix="/api/v1/compliance",
    tags=["Compliance"]
)


# =============================================================================
# ROOT ENDPOINT
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """API root endpoint."""
    return {
        "message": "jsonflow - Workflow API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
