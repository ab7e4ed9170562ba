# ring_history/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + crawler.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from ring_history.database import get_db
from ring_history.services import crawl_service
from ring_history.utils.timeutil import utcnow

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db)):
    result = {
        "status": "ok",
        "timestamp": utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "crawler": "not_configured",
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    crawler = crawl_service.get_crawler()
    if crawler is not None:
        result["crawler"] = "running" if crawler.is_running else "stopped"

    return result
