import logging
import time

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from daycare.core.config import Settings, TodayLocal
from daycare.core.logging import format_frontend_message
from daycare.db import OpenSession

router = APIRouter(prefix="/api", tags=["health"])
logger = logging.getLogger("daycare.health")
frontend_logger = logging.getLogger("frontend")


@router.get("/health")
async def api_health() -> dict:
    logger.debug("health check ok")
    return {"status": "ok", "timezone": Settings.TimeZone, "today": TodayLocal().isoformat()}


@router.get("/health/db")
def api_health_db() -> dict:
    try:
        db = OpenSession()
    except RuntimeError:
        logger.exception("db check failed: missing database configuration")
        return {"status": "error", "detail": "database unavailable"}

    try:
        db.execute(text("SELECT 1")).scalar()
        logger.debug("db check ok")
        return {"status": "ok"}
    except SQLAlchemyError:
        logger.exception("db check failed")
        return {"status": "error", "detail": "database unavailable"}
    finally:
        db.close()


class FrontendLogPayload(BaseModel):
    level: str = Field(default="info", max_length=16)
    message: str = Field(..., max_length=2000)
    context: dict | None = None


_FRONTEND_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@router.post("/logs")
async def api_logs(payload: FrontendLogPayload, request: Request) -> dict:
    metadata = {
        "ip": request.client.host if request.client else "unknown",
        "ua": request.headers.get("user-agent", "unknown"),
    }
    message = format_frontend_message(payload.message, {**metadata, **(payload.context or {})})
    frontend_logger.log(_FRONTEND_LEVELS.get(payload.level.lower(), logging.INFO), message)

    logger.debug("frontend log received")
    return {"status": "ok", "timestamp": time.time()}
