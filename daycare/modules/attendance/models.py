from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)

from daycare.db import Base

ATTENDANCE_UNSET = "unset"
ATTENDANCE_PRESENT = "present"
ATTENDANCE_ABSENT = "absent"

PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"
PAYMENT_UNPAID = "unpaid"

SETTLEMENT_FULL = "full"
SETTLEMENT_PARTIAL = "partial"


class DailyRecord(Base):
    __tablename__ = "daily_records"
    __table_args__ = (
        UniqueConstraint("ChildId", "RecordDate", name="uq_daycare_daily_records_child_date"),
        CheckConstraint(
            "AttendanceStatus IN ('unset', 'present', 'absent')",
            name="ck_daycare_daily_records_attendance",
        ),
        CheckConstraint(
            "PaymentStatus IN ('pending', 'paid', 'unpaid')",
            name="ck_daycare_daily_records_payment",
        ),
        CheckConstraint(
            "DebtRemaining >= 0 AND DebtRemaining <= AmountDue",
            name="ck_daycare_daily_records_debt",
        ),
        {"schema": "daycare"},
    )

    Id = Column(Integer, primary_key=True, index=True)
    ChildId = Column(
        Integer,
        ForeignKey("daycare.children.Id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    RecordDate = Column(Date, nullable=False, index=True)
    AttendanceStatus = Column(String(10), nullable=False, default=ATTENDANCE_UNSET)
    PaymentStatus = Column(String(10), nullable=False, default=PAYMENT_PENDING)
    AmountDue = Column(Numeric(12, 2), nullable=False, default=0)
    DebtRemaining = Column(Numeric(12, 2), nullable=False, default=0)
    ArrivalAt = Column(DateTime(timezone=True))
    Note = Column(Text)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class Settlement(Base):
    __tablename__ = "settlements"
    __table_args__ = ({"schema": "daycare"},)

    Id = Column(Integer, primary_key=True, index=True)
    ChildId = Column(
        Integer,
        ForeignKey("daycare.children.Id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    Kind = Column(String(10), nullable=False)
    Amount = Column(Numeric(12, 2), nullable=False)
    RecordsTouched = Column(Integer, nullable=False, default=0)
    CreatedByUserId = Column(Integer, nullable=False)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class RolloverRun(Base):
    __tablename__ = "rollover_runs"
    __table_args__ = ({"schema": "daycare"},)

    Id = Column(Integer, primary_key=True, index=True)
    TargetDate = Column(Date, nullable=False, index=True)
    TriggeredBy = Column(String(20), nullable=False)
    Attempted = Column(Integer, nullable=False, default=0)
    Succeeded = Column(Integer, nullable=False, default=0)
    Failed = Column(Integer, nullable=False, default=0)
    MarkedAbsent = Column(Integer, nullable=False, default=0)
    MarkedUnpaid = Column(Integer, nullable=False, default=0)
    Skipped = Column(Integer, nullable=False, default=0)
    ErrorMessage = Column(String(500))
    StartedAt = Column(DateTime(timezone=True), nullable=False)
    FinishedAt = Column(DateTime(timezone=True), nullable=False)
