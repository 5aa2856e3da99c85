# agri_auction/api/v1/health.py
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agri_auction.core.config import Settings, get_settings
from agri_auction.db.session import get_db
from agri_auction.services.expiry_scheduler import scheduler_running

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Liveness plus the two things lot expiry depends on: a reachable database
    and, when enabled, a running sweep scheduler. 503 when either is down.
    """
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        logger.exception("health check: database unreachable")
        database = "unreachable"

    if not settings.scheduler_enabled:
        scheduler = "disabled"
    else:
        scheduler = "running" if scheduler_running() else "stopped"

    healthy = database == "ok" and scheduler != "stopped"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "ok" if healthy else "degraded",
            "database": database,
            "scheduler": scheduler,
            "request_id": getattr(request.state, "request_id", None),
        },
    )
