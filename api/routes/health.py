"""
Health check endpoints.

Used for monitoring and load balancer health checks.
"""
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from datetime import datetime, timezone
import platform

from api.dependencies import get_executor, get_schema_registry, get_settings
from core.validation import SchemaRegistryError


router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    
    Returns system health status.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "jsonflow",
        "version": "1.0.0",
        "python_version": platform.python_version(),
    }


@router.get("/health/ready")
async def readiness_check():
    """
    Readiness check endpoint.
    
    Ready once the schema registry (critical schemas included) and the
    workflow catalog have loaded.
    """
    settings = get_settings()
    checks = {"api": "ok"}
    
    try:
        registry = get_schema_registry()
        checks["schemas"] = f"ok ({len(registry.names())} loaded)"
        checks["workflows"] = f"ok ({len(get_executor().registry)} registered)"
    except SchemaRegistryError as e:
        checks["schemas"] = f"error: {e}"
        return JSONResponse(
            status_code=503,
            content={
                "status": "not_ready",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "checks": checks,
            },
        )
    
    checks["ledger"] = "gateway" if settings.ledger.enabled else "in-memory fallback"
    checks["persistence"] = settings.workflow.persistence_backend
    
    return {
        "status": "ready",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
