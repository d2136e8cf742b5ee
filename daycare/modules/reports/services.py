from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from daycare.modules.attendance.models import ATTENDANCE_ABSENT, ATTENDANCE_PRESENT, DailyRecord
from daycare.modules.attendance.services.errors import StoreGuarded
from daycare.modules.attendance.utils.money import ZERO, ToAmount
from daycare.modules.children.models import Child

MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


@dataclass(frozen=True)
class DashboardSummary:
    ReportDate: date
    TotalChildren: int
    PresentToday: int
    AbsentToday: int
    ExpectedToday: Decimal
    CollectedToday: Decimal
    CollectedThisMonth: Decimal
    CollectedOverall: Decimal
    TotalDebt: Decimal


@dataclass(frozen=True)
class MonthlyTotals:
    Month: int
    Label: str
    Collected: Decimal
    Debt: Decimal


@dataclass(frozen=True)
class AttendanceOverview:
    StartDate: date
    EndDate: date
    Present: int
    Absent: int


@dataclass(frozen=True)
class TopPayer:
    ChildId: int
    ChildName: str
    Collected: Decimal


def _Collected(record: DailyRecord) -> Decimal:
    return ToAmount(record.AmountDue) - ToAmount(record.DebtRemaining)


def _SumCollected(db: Session, *filters) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(DailyRecord.AmountDue - DailyRecord.DebtRemaining), 0))
        .filter(*filters)
        .scalar()
    )
    return ToAmount(total)


def _MonthBounds(on_date: date) -> tuple[date, date]:
    start = date(on_date.year, on_date.month, 1)
    if on_date.month == 12:
        next_start = date(on_date.year + 1, 1, 1)
    else:
        next_start = date(on_date.year, on_date.month + 1, 1)
    return start, next_start


@StoreGuarded
def BuildDashboardSummary(db: Session, report_date: date) -> DashboardSummary:
    total_children = db.query(func.count(Child.Id)).scalar() or 0
    todays = db.query(DailyRecord).filter(DailyRecord.RecordDate == report_date).all()
    present = [record for record in todays if record.AttendanceStatus == ATTENDANCE_PRESENT]
    absent = [record for record in todays if record.AttendanceStatus == ATTENDANCE_ABSENT]

    month_start, next_month = _MonthBounds(report_date)
    total_debt = db.query(func.coalesce(func.sum(DailyRecord.DebtRemaining), 0)).scalar()

    return DashboardSummary(
        ReportDate=report_date,
        TotalChildren=int(total_children),
        PresentToday=len(present),
        AbsentToday=len(absent),
        ExpectedToday=sum((ToAmount(record.AmountDue) for record in present), ZERO),
        CollectedToday=sum((_Collected(record) for record in present), ZERO),
        CollectedThisMonth=_SumCollected(
            db,
            DailyRecord.RecordDate >= month_start,
            DailyRecord.RecordDate < next_month,
        ),
        CollectedOverall=_SumCollected(db),
        TotalDebt=ToAmount(total_debt),
    )


@StoreGuarded
def BuildYearlyBreakdown(db: Session, year: int) -> list[MonthlyTotals]:
    records = (
        db.query(DailyRecord)
        .filter(DailyRecord.RecordDate >= date(year, 1, 1), DailyRecord.RecordDate <= date(year, 12, 31))
        .all()
    )
    collected = {month: ZERO for month in range(1, 13)}
    debt = {month: ZERO for month in range(1, 13)}
    for record in records:
        month = record.RecordDate.month
        collected[month] += _Collected(record)
        debt[month] += ToAmount(record.DebtRemaining)
    return [
        MonthlyTotals(Month=month, Label=MONTH_LABELS[month - 1], Collected=collected[month], Debt=debt[month])
        for month in range(1, 13)
    ]


@StoreGuarded
def BuildAttendanceOverview(db: Session, start_date: date, end_date: date) -> AttendanceOverview:
    if end_date < start_date:
        raise ValueError("End date must be on or after start date.")
    rows = (
        db.query(DailyRecord.AttendanceStatus, func.count(DailyRecord.Id))
        .filter(DailyRecord.RecordDate >= start_date, DailyRecord.RecordDate <= end_date)
        .group_by(DailyRecord.AttendanceStatus)
        .all()
    )
    counts = {status: int(count) for status, count in rows}
    return AttendanceOverview(
        StartDate=start_date,
        EndDate=end_date,
        Present=counts.get(ATTENDANCE_PRESENT, 0),
        Absent=counts.get(ATTENDANCE_ABSENT, 0),
    )


@StoreGuarded
def ListTopPayers(db: Session, limit: int = 5) -> list[TopPayer]:
    collected = func.sum(DailyRecord.AmountDue - DailyRecord.DebtRemaining)
    rows = (
        db.query(Child.Id, Child.Name, collected.label("Collected"))
        .join(DailyRecord, DailyRecord.ChildId == Child.Id)
        .group_by(Child.Id, Child.Name)
        .all()
    )
    payers = [
        TopPayer(ChildId=row.Id, ChildName=row.Name, Collected=ToAmount(row.Collected))
        for row in rows
        if ToAmount(row.Collected) > ZERO
    ]
    payers.sort(key=lambda payer: (-payer.Collected, payer.ChildName))
    return payers[:limit]
