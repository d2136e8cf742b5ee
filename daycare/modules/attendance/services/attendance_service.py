from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from daycare.core.config import TodayLocal
from daycare.modules.attendance.models import (
    ATTENDANCE_ABSENT,
    ATTENDANCE_PRESENT,
    ATTENDANCE_UNSET,
    PAYMENT_PAID,
    PAYMENT_PENDING,
    PAYMENT_UNPAID,
    DailyRecord,
)
from daycare.modules.attendance.services.errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    PreconditionFailedError,
    StoreGuard,
    StoreGuarded,
    ValidationFailedError,
)
from daycare.modules.attendance.utils.money import ZERO, ToAmount
from daycare.modules.auth.deps import NowUtc
from daycare.modules.children.models import Child

logger = logging.getLogger("daycare.attendance")

ATTENDANCE_MARKS = {ATTENDANCE_PRESENT, ATTENDANCE_ABSENT}
PAYMENT_MARKS = {PAYMENT_PAID, PAYMENT_UNPAID}


@dataclass
class RosterEntry:
    Child: Child
    Record: DailyRecord | None


def _LoadChild(db: Session, child_id: int) -> Child:
    child = db.query(Child).filter(Child.Id == child_id).first()
    if not child:
        raise NotFoundError("Child not found")
    return child


@StoreGuarded
def GetDailyRecord(db: Session, child_id: int, record_date: date) -> DailyRecord | None:
    return (
        db.query(DailyRecord)
        .filter(DailyRecord.ChildId == child_id, DailyRecord.RecordDate == record_date)
        .first()
    )


def ApplyAttendance(record: DailyRecord, status: str, daily_fee, now: datetime) -> None:
    """Move a record off the unset attendance state. Callers check the transition is legal."""
    if status == ATTENDANCE_PRESENT:
        fee = ToAmount(daily_fee)
        record.AttendanceStatus = ATTENDANCE_PRESENT
        record.PaymentStatus = PAYMENT_PENDING
        record.AmountDue = fee
        record.DebtRemaining = fee
        record.ArrivalAt = now
    else:
        # Absence closes the payment axis with nothing owed.
        record.AttendanceStatus = ATTENDANCE_ABSENT
        record.PaymentStatus = PAYMENT_UNPAID
        record.AmountDue = ZERO
        record.DebtRemaining = ZERO
        record.ArrivalAt = None
    record.UpdatedAt = now


def MarkAttendance(
    db: Session,
    child_id: int,
    record_date: date,
    status: str,
    *,
    note: str | None = None,
    now: datetime | None = None,
) -> DailyRecord:
    if status not in ATTENDANCE_MARKS:
        raise ValidationFailedError("Attendance must be present or absent.")
    now = now or NowUtc()
    if record_date > TodayLocal(now):
        raise PreconditionFailedError("Attendance cannot be marked for a future date.")

    with StoreGuard(db):
        child = _LoadChild(db, child_id)
        record = GetDailyRecord(db, child_id, record_date)
        if record and record.AttendanceStatus != ATTENDANCE_UNSET:
            raise InvalidTransitionError(
                f"{child.Name} is already marked {record.AttendanceStatus} for {record_date.isoformat()}."
            )
        if record is None:
            record = DailyRecord(ChildId=child.Id, RecordDate=record_date, CreatedAt=now)
            db.add(record)
        ApplyAttendance(record, status, child.DailyFee, now)
        if note is not None:
            record.Note = note
        try:
            db.commit()
        except IntegrityError as exc:
            # Another request created the (child, date) row first.
            db.rollback()
            raise InvalidTransitionError(
                f"Attendance for {child.Name} on {record_date.isoformat()} was already recorded."
            ) from exc
        db.refresh(record)

    logger.info(
        "attendance marked child_id=%s date=%s status=%s amount_due=%s",
        child_id,
        record_date.isoformat(),
        status,
        record.AmountDue,
    )
    return record


def MarkPayment(
    db: Session,
    child_id: int,
    record_date: date,
    status: str,
    *,
    now: datetime | None = None,
) -> DailyRecord:
    if status not in PAYMENT_MARKS:
        raise ValidationFailedError("Payment must be paid or unpaid.")
    now = now or NowUtc()

    with StoreGuard(db):
        record = GetDailyRecord(db, child_id, record_date)
        if not record or record.AttendanceStatus == ATTENDANCE_UNSET:
            raise PreconditionFailedError("Mark attendance first.")
        if record.AttendanceStatus != ATTENDANCE_PRESENT:
            raise PreconditionFailedError("Child was absent. No payment is due for this day.")
        if record.PaymentStatus != PAYMENT_PENDING:
            raise InvalidTransitionError(f"Payment already marked {record.PaymentStatus} for this day.")

        record.PaymentStatus = status
        # A settlement may already have reduced a pending day; unpaid keeps what is still owed.
        record.DebtRemaining = ZERO if status == PAYMENT_PAID else ToAmount(record.DebtRemaining)
        record.UpdatedAt = now
        db.commit()
        db.refresh(record)

    logger.info(
        "payment marked child_id=%s date=%s status=%s debt=%s",
        child_id,
        record_date.isoformat(),
        status,
        record.DebtRemaining,
    )
    return record


def UndoDailyRecord(
    db: Session,
    child_id: int,
    record_date: date,
    *,
    now: datetime | None = None,
) -> None:
    now = now or NowUtc()
    if record_date != TodayLocal(now):
        raise ForbiddenError("Only today's attendance can be undone.")

    with StoreGuard(db):
        record = GetDailyRecord(db, child_id, record_date)
        if not record:
            raise NotFoundError("No attendance recorded for this child today.")
        db.delete(record)
        db.commit()

    logger.info("daily record undone child_id=%s date=%s", child_id, record_date.isoformat())


@StoreGuarded
def ListDailyRecords(
    db: Session,
    *,
    record_date: date | None = None,
    child_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = 500,
) -> list[DailyRecord]:
    query = db.query(DailyRecord)
    if record_date is not None:
        query = query.filter(DailyRecord.RecordDate == record_date)
    if child_id is not None:
        query = query.filter(DailyRecord.ChildId == child_id)
    if start_date is not None:
        query = query.filter(DailyRecord.RecordDate >= start_date)
    if end_date is not None:
        query = query.filter(DailyRecord.RecordDate <= end_date)
    return (
        query.order_by(DailyRecord.RecordDate.desc(), DailyRecord.ChildId.asc())
        .limit(limit)
        .all()
    )


@StoreGuarded
def ListDailyRoster(db: Session, record_date: date) -> list[RosterEntry]:
    children = (
        db.query(Child)
        .filter(Child.AdmissionDate <= record_date)
        .order_by(Child.Name.asc())
        .all()
    )
    records = db.query(DailyRecord).filter(DailyRecord.RecordDate == record_date).all()
    by_child = {record.ChildId: record for record in records}
    return [RosterEntry(Child=child, Record=by_child.get(child.Id)) for child in children]
