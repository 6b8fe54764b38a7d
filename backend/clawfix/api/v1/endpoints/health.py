"""
Health Check Endpoints

Endpoints:
- /health       - Simple status (the collector script checks this)
- /health/live  - Basic liveness (app is running)
- /health/ready - Readiness check (database reachable when persistence is on)
"""

from fastapi import APIRouter, Depends, HTTPException, status
from datetime import datetime, timezone
from typing import Dict, Any
import time

from clawfix.api.v1.dependencies import get_diagnosis_service
from clawfix.core.config import settings
from clawfix.core.logging_config import logger
from clawfix.services.diagnosis import DiagnosisService


router = APIRouter(prefix="/health", tags=["Health Checks"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def check_database(service: DiagnosisService) -> Dict[str, Any]:
    """Check database connectivity (skipped when persistence is disabled)"""
    if service.repository is None:
        return {"status": "disabled", "message": "DATABASE_URL not set - results are memory-only"}

    start = time.time()
    healthy = await service.repository.ping()
    latency = (time.time() - start) * 1000
    if healthy:
        return {
            "status": "healthy",
            "latency_ms": round(latency, 2),
            "message": "Database connection successful"
        }
    return {
        "status": "unhealthy",
        "latency_ms": round(latency, 2),
        "message": "Database connection failed - statistics and feedback unavailable"
    }


def check_ai_config() -> Dict[str, Any]:
    """Check AI configuration (not actual connectivity)"""
    if settings.ai_enabled:
        return {"status": "healthy", "model": settings.CLAUDE_MODEL, "message": "Claude configured"}
    return {"status": "degraded", "message": "AI analysis off - pattern matching only"}


@router.get("")
async def health_check():
    """Simple health check endpoint"""
    return {
        "status": "ok",
        "service": "clawfix",
        "version": settings.APP_VERSION,
        "timestamp": _now(),
    }


@router.get("/live")
async def liveness_check():
    """
    Liveness probe - indicates the application is running.
    Returns 200 if the process is alive.
    """
    return {
        "status": "alive",
        "timestamp": _now(),
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION
    }


@router.get("/ready")
async def readiness_check(service: DiagnosisService = Depends(get_diagnosis_service)):
    """
    Readiness probe - indicates the application can handle requests.

    Diagnosis itself only needs the process; the database is checked
    when persistence is configured, since feedback and stats depend on it.
    """
    db_check = await check_database(service)
    ai_check = check_ai_config()

    is_ready = db_check["status"] in ("healthy", "disabled")

    response = {
        "status": "ready" if is_ready else "not_ready",
        "timestamp": _now(),
        "checks": {
            "database": db_check,
            "ai": ai_check,
            "store": service.store.get_stats(),
        }
    }

    if not is_ready:
        logger.warning(f"[HealthCheck] Readiness check failed: {response}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=response
        )

    return response
