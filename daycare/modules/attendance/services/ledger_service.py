from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from daycare.modules.attendance.models import (
    PAYMENT_PAID,
    SETTLEMENT_FULL,
    SETTLEMENT_PARTIAL,
    DailyRecord,
    Settlement,
)
from daycare.modules.attendance.services.errors import (
    InvalidAmountError,
    NoDebtError,
    NotFoundError,
    StoreGuard,
    StoreGuarded,
)
from daycare.modules.attendance.utils.money import ZERO, ToAmount, ToExactAmount
from daycare.modules.auth.deps import NowUtc
from daycare.modules.children.models import Child

logger = logging.getLogger("daycare.ledger")


@dataclass(frozen=True)
class SettlementResult:
    ChildId: int
    Kind: str
    AmountSettled: Decimal
    RecordsTouched: int
    RemainingDebt: Decimal


@dataclass(frozen=True)
class DebtOverviewRow:
    ChildId: int
    ChildName: str
    TotalDebt: Decimal
    OldestDebtDate: date
    LatestDebtDate: date


def _EnsureChild(db: Session, child_id: int) -> Child:
    child = db.query(Child).filter(Child.Id == child_id).first()
    if not child:
        raise NotFoundError("Child not found")
    return child


@StoreGuarded
def GetTotalDebt(db: Session, child_id: int) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(DailyRecord.DebtRemaining), 0))
        .filter(DailyRecord.ChildId == child_id)
        .scalar()
    )
    return ToAmount(total)


@StoreGuarded
def GetDebtLedger(db: Session, child_id: int) -> list[DailyRecord]:
    return (
        db.query(DailyRecord)
        .filter(DailyRecord.ChildId == child_id, DailyRecord.DebtRemaining > 0)
        .order_by(DailyRecord.RecordDate.asc(), DailyRecord.Id.asc())
        .all()
    )


def _RecordSettlement(
    db: Session,
    child_id: int,
    kind: str,
    amount: Decimal,
    records_touched: int,
    actor_user_id: int,
    now: datetime,
) -> None:
    db.add(
        Settlement(
            ChildId=child_id,
            Kind=kind,
            Amount=amount,
            RecordsTouched=records_touched,
            CreatedByUserId=actor_user_id,
            CreatedAt=now,
        )
    )


def SettleFull(
    db: Session,
    child_id: int,
    *,
    actor_user_id: int,
    now: datetime | None = None,
) -> SettlementResult:
    now = now or NowUtc()
    with StoreGuard(db):
        _EnsureChild(db, child_id)
        ledger = GetDebtLedger(db, child_id)
        total = sum((ToAmount(record.DebtRemaining) for record in ledger), ZERO)
        if total <= ZERO:
            raise NoDebtError("No outstanding debt for this child.")

        for record in ledger:
            record.DebtRemaining = ZERO
            record.PaymentStatus = PAYMENT_PAID
            record.UpdatedAt = now
            db.add(record)
        _RecordSettlement(db, child_id, SETTLEMENT_FULL, total, len(ledger), actor_user_id, now)
        db.commit()

    logger.info("debt settled in full child_id=%s amount=%s records=%s", child_id, total, len(ledger))
    return SettlementResult(
        ChildId=child_id,
        Kind=SETTLEMENT_FULL,
        AmountSettled=total,
        RecordsTouched=len(ledger),
        RemainingDebt=ZERO,
    )


def SettlePartial(
    db: Session,
    child_id: int,
    amount,
    *,
    actor_user_id: int,
    now: datetime | None = None,
) -> SettlementResult:
    now = now or NowUtc()
    try:
        payment = ToExactAmount(amount)
    except ValueError as exc:
        raise InvalidAmountError("Enter a valid payment amount in whole cents.") from exc
    if payment <= ZERO:
        raise InvalidAmountError("Payment amount must be greater than zero.")

    with StoreGuard(db):
        _EnsureChild(db, child_id)
        ledger = GetDebtLedger(db, child_id)
        total = sum((ToAmount(record.DebtRemaining) for record in ledger), ZERO)
        if payment > total:
            raise InvalidAmountError(f"Payment amount exceeds the outstanding debt of {total}.")

        remaining = payment
        touched = 0
        for record in ledger:
            if remaining <= ZERO:
                break
            debt = ToAmount(record.DebtRemaining)
            applied = min(remaining, debt)
            record.DebtRemaining = debt - applied
            if record.DebtRemaining == ZERO:
                record.PaymentStatus = PAYMENT_PAID
            record.UpdatedAt = now
            db.add(record)
            remaining -= applied
            touched += 1

        _RecordSettlement(db, child_id, SETTLEMENT_PARTIAL, payment, touched, actor_user_id, now)
        db.commit()

    logger.info("debt settled partially child_id=%s amount=%s records=%s", child_id, payment, touched)
    return SettlementResult(
        ChildId=child_id,
        Kind=SETTLEMENT_PARTIAL,
        AmountSettled=payment,
        RecordsTouched=touched,
        RemainingDebt=total - payment,
    )


@StoreGuarded
def ListSettlements(db: Session, child_id: int, limit: int = 50) -> list[Settlement]:
    return (
        db.query(Settlement)
        .filter(Settlement.ChildId == child_id)
        .order_by(Settlement.CreatedAt.desc(), Settlement.Id.desc())
        .limit(limit)
        .all()
    )


@StoreGuarded
def ListDebtOverview(db: Session) -> list[DebtOverviewRow]:
    rows = (
        db.query(
            Child.Id,
            Child.Name,
            func.sum(DailyRecord.DebtRemaining).label("TotalDebt"),
            func.min(DailyRecord.RecordDate).label("OldestDebtDate"),
            func.max(DailyRecord.RecordDate).label("LatestDebtDate"),
        )
        .join(DailyRecord, DailyRecord.ChildId == Child.Id)
        .filter(DailyRecord.DebtRemaining > 0)
        .group_by(Child.Id, Child.Name)
        .all()
    )
    overview = [
        DebtOverviewRow(
            ChildId=row.Id,
            ChildName=row.Name,
            TotalDebt=ToAmount(row.TotalDebt),
            OldestDebtDate=row.OldestDebtDate,
            LatestDebtDate=row.LatestDebtDate,
        )
        for row in rows
    ]
    overview.sort(key=lambda row: (-row.TotalDebt, row.ChildName))
    return overview
