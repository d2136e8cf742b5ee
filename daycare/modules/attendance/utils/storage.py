import logging
from threading import Lock

from fastapi import Depends, HTTPException, status
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import Session

from daycare.core.migrations import RunMigrations
from daycare.db import BuildAdminConnectionUrl, GetDb
from daycare.modules.attendance.models import DailyRecord, RolloverRun, Settlement
from daycare.modules.children.models import Child

_daycare_storage_lock = Lock()
_daycare_storage_ready = False
logger = logging.getLogger("daycare.storage")

# Creation order matters for the repair path: daily records reference children.
_DAYCARE_TABLES = [
    Child,
    DailyRecord,
    Settlement,
    RolloverRun,
]


def _MissingTables(db: Session) -> list[str]:
    inspector = inspect(db.get_bind())
    return [
        table.__tablename__
        for table in _DAYCARE_TABLES
        if not inspector.has_table(table.__tablename__, schema="daycare")
    ]


def EnsureDaycareStorageReady(db: Session = Depends(GetDb)) -> None:
    global _daycare_storage_ready
    if _daycare_storage_ready:
        return

    with _daycare_storage_lock:
        if _daycare_storage_ready:
            return
        missing = _MissingTables(db)
        if not missing:
            _daycare_storage_ready = True
            return

        logger.info("daycare storage missing tables=%s", ",".join(missing))
        try:
            RunMigrations()
        except (RuntimeError, TimeoutError):
            logger.exception("daycare storage migration failed")

        missing = _MissingTables(db)
        if not missing:
            _daycare_storage_ready = True
            return

        logger.warning("daycare storage still missing tables=%s, attempting repair", ",".join(missing))
        try:
            engine = create_engine(BuildAdminConnectionUrl(), pool_pre_ping=True)
            with engine.begin() as connection:
                connection.execute(
                    text(
                        "IF NOT EXISTS (SELECT 1 FROM sys.schemas WHERE name = 'daycare') "
                        "EXEC('CREATE SCHEMA daycare')"
                    )
                )
                for table in _DAYCARE_TABLES:
                    table.__table__.create(bind=connection, checkfirst=True)
        except Exception as exc:
            logger.exception("daycare storage repair failed")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Daycare storage migration failed. Check server logs.",
            ) from exc

        missing = _MissingTables(db)
        if missing:
            logger.error("daycare storage still missing tables=%s", ",".join(missing))
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Daycare storage migration failed. Check server logs.",
            )
        _daycare_storage_ready = True
