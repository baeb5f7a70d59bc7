"""Health checks and monitoring endpoints"""
from fastapi import APIRouter, Depends
from sqlalchemy import func, text
from sqlalchemy.orm import Session

from slotbook.config.database import get_db
from slotbook.config.redis import get_redis
from slotbook.models import Appointment

health_router = APIRouter()


@health_router.get("/")
async def health_check():
    """Basic health check"""
    return {"status": "healthy", "service": "slotbook-api"}


@health_router.get("/detailed")
async def detailed_health_check(db: Session = Depends(get_db)):
    """Detailed health check: database, rate-limit Redis and calendar sync backlog"""
    checks = {
        "api": "healthy",
        "database": "unknown",
        "redis": "unknown",
        "calendar_sync": "unknown",
        "overall": "unknown"
    }

    # Check database
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        checks["database"] = f"unhealthy: {str(e)}"

    # Check Redis
    try:
        redis_client = await get_redis()
        await redis_client.ping()
        checks["redis"] = "healthy"
        await redis_client.aclose()
    except Exception as e:
        checks["redis"] = f"unhealthy: {str(e)}"

    # Appointments whose last calendar push failed after all retries
    if checks["database"] == "healthy":
        failed = db.query(func.count(Appointment.id)).filter(
            Appointment.sync_status == "failed"
        ).scalar()
        checks["calendar_sync"] = "healthy" if not failed else f"degraded: {failed} failed pushes"

    # Overall status
    if all(status == "healthy" for status in checks.values() if status != "unknown"):
        checks["overall"] = "healthy"
    else:
        checks["overall"] = "degraded"

    return checks
