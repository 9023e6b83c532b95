from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from natours.core.database import SessionLocal
from natours.auth.rate_limiter import rate_limiter
from natours.models import Tour
from datetime import datetime
from typing import Dict, Any

router = APIRouter()


def check_database() -> Dict[str, Any]:
    """Check database connectivity and basic operations."""
    try:
        db = SessionLocal()
        try:
            # Test basic connectivity
            result = db.execute(text("SELECT 1"))
            result.fetchone()

            tour_count = db.query(Tour).count()

            return {
                "status": "healthy",
                "tour_count": tour_count,
                "timestamp": datetime.now().isoformat()
            }
        finally:
            db.close()
    except SQLAlchemyError as e:
        return {
            "status": "unhealthy",
            "error": str(e),
            "timestamp": datetime.now().isoformat()
        }


@router.get("/healthz")
def health_check():
    """
    Health check including the database.
    Returns 200 when the database answers, 503 otherwise.
    """
    db_check = check_database()

    response = {
        "status": db_check["status"],
        "timestamp": datetime.now().isoformat(),
        "checks": {
            "database": db_check,
            "rate_limiter": rate_limiter.get_stats()
        },
        "version": "1.0.0"
    }

    if db_check["status"] != "healthy":
        return JSONResponse(status_code=503, content=response)

    return response


@router.get("/health")
async def simple_health_check():
    """Simple health check for load balancers."""
    return {"status": "ok", "timestamp": datetime.now().isoformat()}
