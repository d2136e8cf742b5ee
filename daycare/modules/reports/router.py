from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from daycare.core.config import Settings, TodayLocal
from daycare.db import GetDb
from daycare.modules.attendance.services.errors import DaycareError
from daycare.modules.attendance.utils.http import _handle_daycare_error, _handle_db_error
from daycare.modules.attendance.utils.money import AmountToFloat
from daycare.modules.attendance.utils.rbac import RequireDaycareAdmin
from daycare.modules.attendance.utils.storage import EnsureDaycareStorageReady
from daycare.modules.auth.deps import UserContext
from daycare.modules.reports.schemas import (
    AttendanceOverviewOut,
    DashboardSummaryOut,
    MonthlyTotalsOut,
    TopPayerOut,
    YearlyBreakdownResponse,
)
from daycare.modules.reports.services import (
    BuildAttendanceOverview,
    BuildDashboardSummary,
    BuildYearlyBreakdown,
    ListTopPayers,
)

router = APIRouter(
    prefix="/api/daycare/reports",
    tags=["daycare"],
    dependencies=[Depends(EnsureDaycareStorageReady)],
)


@router.get("/summary", response_model=DashboardSummaryOut)
def GetSummary(
    report_date: date | None = None,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> DashboardSummaryOut:
    try:
        summary = BuildDashboardSummary(db, report_date or TodayLocal())
        return DashboardSummaryOut(
            ReportDate=summary.ReportDate,
            Currency=Settings.Currency,
            TotalChildren=summary.TotalChildren,
            PresentToday=summary.PresentToday,
            AbsentToday=summary.AbsentToday,
            ExpectedToday=AmountToFloat(summary.ExpectedToday),
            CollectedToday=AmountToFloat(summary.CollectedToday),
            CollectedThisMonth=AmountToFloat(summary.CollectedThisMonth),
            CollectedOverall=AmountToFloat(summary.CollectedOverall),
            TotalDebt=AmountToFloat(summary.TotalDebt),
        )
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/yearly", response_model=YearlyBreakdownResponse)
def GetYearly(
    year: int | None = None,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> YearlyBreakdownResponse:
    target_year = year or TodayLocal().year
    if target_year < 2000 or target_year > 2100:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Year out of range.")
    try:
        months = BuildYearlyBreakdown(db, target_year)
        return YearlyBreakdownResponse(
            Year=target_year,
            Currency=Settings.Currency,
            Months=[
                MonthlyTotalsOut(
                    Month=item.Month,
                    Label=item.Label,
                    Collected=AmountToFloat(item.Collected),
                    Debt=AmountToFloat(item.Debt),
                )
                for item in months
            ],
        )
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/attendance", response_model=AttendanceOverviewOut)
def GetAttendanceOverview(
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> AttendanceOverviewOut:
    end = end_date or TodayLocal()
    start = start_date or date(end.year, end.month, 1)
    try:
        overview = BuildAttendanceOverview(db, start, end)
        return AttendanceOverviewOut(
            StartDate=overview.StartDate,
            EndDate=overview.EndDate,
            Present=overview.Present,
            Absent=overview.Absent,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/top-payers", response_model=list[TopPayerOut])
def GetTopPayers(
    limit: int = 5,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> list[TopPayerOut]:
    try:
        return [
            TopPayerOut(ChildId=payer.ChildId, ChildName=payer.ChildName, Collected=AmountToFloat(payer.Collected))
            for payer in ListTopPayers(db, limit)
        ]
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
