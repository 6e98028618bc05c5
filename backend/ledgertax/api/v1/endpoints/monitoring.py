"""
Monitoring and Health Check Endpoints
"""

from fastapi import APIRouter, Depends
from datetime import datetime, timezone
import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ledgertax.core.config import settings
from ledgertax.core.database import get_database
from ledgertax.monitoring.metrics import metrics_collector
from ledgertax.services.rule_cache import rule_cache

router = APIRouter()
logger = structlog.get_logger()


@router.get("/health")
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.VERSION
    }


@router.get("/health/detailed")
async def detailed_health_check(db = Depends(get_database)):
    """Detailed health check with dependency status"""

    health_status = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.VERSION,
        "dependencies": {
            "rule_cache": {"status": "enabled" if rule_cache.enabled else "disabled"}
        }
    }

    # Check database
    try:
        await db.execute(text("SELECT 1"))
        health_status["dependencies"]["database"] = {"status": "ok"}
    except SQLAlchemyError as e:
        logger.warning("Database health check failed", error=str(e))
        health_status["dependencies"]["database"] = {"status": "error", "error": str(e)}
        health_status["status"] = "degraded"

    return health_status


@router.get("/metrics")
async def get_metrics():
    """Get application metrics"""
    return {
        "metrics": metrics_collector.get_metrics_summary(),
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
