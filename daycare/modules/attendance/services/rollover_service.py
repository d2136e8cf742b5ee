from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from daycare.core.config import Settings, TodayLocal
from daycare.modules.attendance.models import (
    ATTENDANCE_ABSENT,
    ATTENDANCE_PRESENT,
    PAYMENT_PENDING,
    PAYMENT_UNPAID,
    DailyRecord,
    RolloverRun,
)
from daycare.modules.attendance.services.attendance_service import ApplyAttendance, GetDailyRecord
from daycare.modules.attendance.services.errors import (
    PreconditionFailedError,
    StoreGuard,
    StoreGuarded,
    StoreUnavailableError,
)
from daycare.modules.attendance.utils.money import ToAmount
from daycare.modules.auth.deps import NowUtc
from daycare.modules.children.models import Child

logger = logging.getLogger("daycare.rollover")

NOTE_SYNTHETIC_ABSENT = "Marked absent - no attendance recorded"
NOTE_AUTO_UNPAID = "Automatically marked unpaid - no payment status recorded"

TRIGGER_SCHEDULE = "schedule"
TRIGGER_MANUAL = "manual"

OUTCOME_ABSENT = "absent"
OUTCOME_UNPAID = "unpaid"
OUTCOME_SKIPPED = "skipped"


@dataclass
class RolloverResult:
    TargetDate: date
    Attempted: int = 0
    Succeeded: int = 0
    Failed: int = 0
    MarkedAbsent: int = 0
    MarkedUnpaid: int = 0
    Skipped: int = 0
    FailedChildIds: list[int] = field(default_factory=list)
    Retried: list["RolloverResult"] = field(default_factory=list)


def DefaultRolloverDate(now: datetime | None = None) -> date:
    return TodayLocal(now) - timedelta(days=1)


def _ReconcileChild(db: Session, child: Child, target_date: date, now: datetime) -> str:
    record = GetDailyRecord(db, child.Id, target_date)

    if record is None:
        record = DailyRecord(ChildId=child.Id, RecordDate=target_date, CreatedAt=now)
        ApplyAttendance(record, ATTENDANCE_ABSENT, 0, now)
        record.Note = NOTE_SYNTHETIC_ABSENT
        db.add(record)
        try:
            db.commit()
        except IntegrityError:
            # A concurrent run or a late mark created the row; it is already resolved.
            db.rollback()
            return OUTCOME_SKIPPED
        return OUTCOME_ABSENT

    if record.AttendanceStatus == ATTENDANCE_PRESENT and record.PaymentStatus == PAYMENT_PENDING:
        record.PaymentStatus = PAYMENT_UNPAID
        # Keep any partial settlement already applied to the open day.
        record.DebtRemaining = ToAmount(record.DebtRemaining)
        record.Note = NOTE_AUTO_UNPAID
        record.UpdatedAt = now
        db.add(record)
        db.commit()
        return OUTCOME_UNPAID

    return OUTCOME_SKIPPED


def _RecordRun(
    db: Session,
    result: RolloverResult,
    trigger: str,
    started_at: datetime,
    finished_at: datetime,
) -> None:
    error_message = None
    if result.FailedChildIds:
        error_message = f"failed child ids: {','.join(str(child_id) for child_id in result.FailedChildIds)}"
    run = RolloverRun(
        TargetDate=result.TargetDate,
        TriggeredBy=trigger,
        Attempted=result.Attempted,
        Succeeded=result.Succeeded,
        Failed=result.Failed,
        MarkedAbsent=result.MarkedAbsent,
        MarkedUnpaid=result.MarkedUnpaid,
        Skipped=result.Skipped,
        ErrorMessage=(error_message or "")[:500] or None,
        StartedAt=started_at,
        FinishedAt=finished_at,
    )
    try:
        db.add(run)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("rollover run audit failed target_date=%s", result.TargetDate.isoformat())


def _CloseDay(db: Session, target: date, trigger: str, now: datetime) -> RolloverResult:
    result = RolloverResult(TargetDate=target)
    with StoreGuard(db):
        child_ids = [
            row.Id
            for row in db.query(Child.Id)
            .filter(Child.AdmissionDate <= target)
            .order_by(Child.Id.asc())
            .all()
        ]
    logger.info("rollover starting target_date=%s children=%s", target.isoformat(), len(child_ids))

    for child_id in child_ids:
        result.Attempted += 1
        try:
            child = db.query(Child).filter(Child.Id == child_id).first()
            if child is None:
                # Deleted while the batch was running.
                outcome = OUTCOME_SKIPPED
            else:
                outcome = _ReconcileChild(db, child, target, now)
        except (SQLAlchemyError, StoreUnavailableError):
            db.rollback()
            logger.exception(
                "rollover failed for child_id=%s target_date=%s", child_id, target.isoformat()
            )
            result.Failed += 1
            result.FailedChildIds.append(child_id)
            continue

        result.Succeeded += 1
        if outcome == OUTCOME_ABSENT:
            result.MarkedAbsent += 1
        elif outcome == OUTCOME_UNPAID:
            result.MarkedUnpaid += 1
        else:
            result.Skipped += 1

    logger.info(
        "rollover complete target_date=%s attempted=%s absent=%s unpaid=%s skipped=%s failed=%s",
        target.isoformat(),
        result.Attempted,
        result.MarkedAbsent,
        result.MarkedUnpaid,
        result.Skipped,
        result.Failed,
    )
    if Settings.RolloverAuditEnabled:
        _RecordRun(db, result, trigger, now, NowUtc())
    return result


@StoreGuarded
def ListRetryDates(db: Session, before: date) -> list[date]:
    """Earlier days whose most recent run still had failed children, oldest first."""
    earliest = before - timedelta(days=max(Settings.RolloverRetryDays, 0))
    latest_runs = (
        db.query(RolloverRun.TargetDate, func.max(RolloverRun.Id).label("LastRunId"))
        .filter(RolloverRun.TargetDate < before, RolloverRun.TargetDate >= earliest)
        .group_by(RolloverRun.TargetDate)
        .subquery()
    )
    rows = (
        db.query(RolloverRun.TargetDate)
        .join(latest_runs, RolloverRun.Id == latest_runs.c.LastRunId)
        .filter(RolloverRun.Failed > 0)
        .order_by(RolloverRun.TargetDate.asc())
        .all()
    )
    return [row.TargetDate for row in rows]


def RunDailyRollover(
    db: Session,
    *,
    target_date: date | None = None,
    trigger: str = TRIGGER_SCHEDULE,
    now: datetime | None = None,
) -> RolloverResult:
    """Close out one elapsed day for every enrolled child.

    Children without a record are marked absent, present children whose
    payment was never resolved are marked unpaid, and everything else is left
    alone. Each child commits independently, so a failure for one child is
    counted and logged without stopping the batch, and a rerun for the same
    date only picks up what is still open.

    Scheduled runs first re-close earlier days whose last recorded run left
    failed children behind; those results are attached as ``Retried``.
    """
    now = now or NowUtc()
    today = TodayLocal(now)
    target = target_date or DefaultRolloverDate(now)
    if target >= today:
        raise PreconditionFailedError("Rollover can only close out a day that has already ended.")

    retried = []
    if trigger == TRIGGER_SCHEDULE:
        for retry_date in ListRetryDates(db, target):
            logger.info("rollover retrying target_date=%s", retry_date.isoformat())
            retried.append(_CloseDay(db, retry_date, trigger, now))

    result = _CloseDay(db, target, trigger, now)
    result.Retried = retried
    return result


@StoreGuarded
def ListRolloverRuns(db: Session, limit: int = 30) -> list[RolloverRun]:
    return (
        db.query(RolloverRun)
        .order_by(RolloverRun.StartedAt.desc(), RolloverRun.Id.desc())
        .limit(limit)
        .all()
    )
