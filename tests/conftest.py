import os
import tempfile
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

_LOG_DIR = os.path.join(tempfile.gettempdir(), "daycare-test-logs")
os.environ.setdefault("LOG_FILE_PATH", os.path.join(_LOG_DIR, "daycare.log"))
os.environ.setdefault("FRONTEND_LOG_FILE_PATH", os.path.join(_LOG_DIR, "frontend.log"))
os.environ.setdefault("ROLLOVER_LOG_FILE_PATH", os.path.join(_LOG_DIR, "rollover.log"))

from daycare.db import Base, BuildEngine  # noqa: E402
from daycare.modules.attendance import models as attendance_models  # noqa: E402,F401
from daycare.modules.auth import models as auth_models  # noqa: E402,F401
from daycare.modules.children.models import Child  # noqa: E402

# 2024-05-10 12:00 in Nairobi.
FIXED_NOW = datetime(2024, 5, 10, 9, 0, tzinfo=timezone.utc)
TODAY = date(2024, 5, 10)


@pytest.fixture
def engine():
    engine = BuildEngine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_child(db):
    def _make(name="Amani", daily_fee="150.00", admission_date=date(2024, 1, 8), **extra):
        child = Child(
            Name=name,
            GuardianName=extra.pop("GuardianName", "Grace Wanjiru"),
            ContactNumber=extra.pop("ContactNumber", "0712000000"),
            AdmissionDate=admission_date,
            DailyFee=Decimal(daily_fee),
            CreatedAt=FIXED_NOW,
            UpdatedAt=FIXED_NOW,
            **extra,
        )
        db.add(child)
        db.commit()
        db.refresh(child)
        return child

    return _make
