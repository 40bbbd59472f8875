"""Health check endpoints"""
import time
from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from typing_api.database import get_db
from typing_api.utils.logger import logger

router = APIRouter(prefix="/health", tags=["health"])

# Track startup time
STARTUP_TIME = time.time()


@router.get("")
def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint

    Returns 200 while the process is serving requests
    """
    return {
        "status": "OK",
        "timestamp": datetime.utcnow().isoformat(),
        "uptime": round(time.time() - STARTUP_TIME, 3),
    }


@router.get("/ready")
def readiness_check(db: Session = Depends(get_db)):
    """
    Readiness check - verifies the database answers

    Returns 200 when ready to serve traffic, 503 otherwise
    """
    checks = {"database": False, "database_latency_ms": None}

    try:
        start = time.time()
        db.execute(text("SELECT 1"))
        checks["database"] = True
        checks["database_latency_ms"] = round((time.time() - start) * 1000, 2)
    except SQLAlchemyError as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "checks": checks, "message": "Database check failed"},
        )

    return {
        "status": "ready",
        "checks": checks,
        "timestamp": datetime.utcnow().isoformat(),
    }
