"""
Health probes for orchestrators

/health/live answers as long as the process serves requests.
/health/ready also requires the database and the calendar table, since no
booking can be accepted without them.
"""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import __version__
from ..database import get_db
from ..models.availability import AvailabilityRecord
from ..utils.rate_limiter import limiter

router = APIRouter(prefix="/health", tags=["Health"])

READINESS_QUERIES = (
    ("connection", text("SELECT 1")),
    ("calendar", text(f"SELECT 1 FROM {AvailabilityRecord.__tablename__} LIMIT 1")),
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def check_database(db: Session) -> dict:
    """Run the readiness queries; the first failure marks the database down"""
    started = time.perf_counter()
    for name, query in READINESS_QUERIES:
        try:
            db.execute(query)
        except SQLAlchemyError as e:
            return {"status": "down", "failed_check": name, "error": str(e)[:100]}

    return {
        "status": "up",
        "dialect": db.get_bind().dialect.name,
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
    }


@router.get("/live")
async def liveness_check():
    return {"status": "alive", "version": __version__, "timestamp": _now()}


@router.get("/ready")
async def readiness_check(db: Session = Depends(get_db)):
    database = check_database(db)
    if database["status"] != "up":
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "not_ready", "database": database, "timestamp": _now()},
        )

    return {
        "status": "ready",
        "version": __version__,
        "database": database,
        "rate_limiting": "enabled" if limiter.enabled else "disabled",
        "timestamp": _now(),
    }
