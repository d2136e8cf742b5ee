import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from daycare.core.config import TodayLocal
from daycare.db import GetDb
from daycare.modules.attendance.models import RolloverRun
from daycare.modules.attendance.schemas import (
    AttendanceMarkRequest,
    DailyRecordOut,
    DebtOverviewOut,
    DebtOverviewResponse,
    PaymentMarkRequest,
    RolloverRunOut,
    RolloverRunRequest,
    RolloverRunResponse,
    RosterEntryOut,
    RosterResponse,
)
from daycare.modules.attendance.services.attendance_service import (
    ListDailyRecords,
    ListDailyRoster,
    MarkAttendance,
    MarkPayment,
    UndoDailyRecord,
)
from daycare.modules.attendance.services.errors import DaycareError
from daycare.modules.attendance.services.ledger_service import ListDebtOverview
from daycare.modules.attendance.services.rollover_service import (
    TRIGGER_MANUAL,
    ListRolloverRuns,
    RunDailyRollover,
)
from daycare.modules.attendance.utils.http import _handle_daycare_error, _handle_db_error
from daycare.modules.attendance.utils.money import ZERO, AmountToFloat
from daycare.modules.attendance.utils.rbac import RequireDaycareAdmin
from daycare.modules.attendance.utils.storage import EnsureDaycareStorageReady
from daycare.modules.auth.deps import UserContext
from daycare.modules.children.router import _BuildRecordOut

logger = logging.getLogger("daycare.attendance")

router = APIRouter(
    prefix="/api/daycare",
    tags=["daycare"],
    dependencies=[Depends(EnsureDaycareStorageReady)],
)


def _BuildRolloverRunOut(run: RolloverRun) -> RolloverRunOut:
    return RolloverRunOut(
        Id=run.Id,
        TargetDate=run.TargetDate,
        TriggeredBy=run.TriggeredBy,
        Attempted=run.Attempted,
        Succeeded=run.Succeeded,
        Failed=run.Failed,
        MarkedAbsent=run.MarkedAbsent,
        MarkedUnpaid=run.MarkedUnpaid,
        Skipped=run.Skipped,
        ErrorMessage=run.ErrorMessage,
        StartedAt=run.StartedAt,
        FinishedAt=run.FinishedAt,
    )


@router.get("/attendance", response_model=list[DailyRecordOut])
def GetAttendance(
    record_date: date | None = None,
    child_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = 500,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> list[DailyRecordOut]:
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End date must be on or after start date.")
    try:
        records = ListDailyRecords(
            db,
            record_date=record_date,
            child_id=child_id,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
        )
        return [_BuildRecordOut(record) for record in records]
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/attendance/roster", response_model=RosterResponse)
def GetRoster(
    record_date: date | None = None,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> RosterResponse:
    target = record_date or TodayLocal()
    try:
        entries = ListDailyRoster(db, target)
        return RosterResponse(
            RecordDate=target,
            Entries=[
                RosterEntryOut(
                    ChildId=entry.Child.Id,
                    ChildName=entry.Child.Name,
                    ClassName=entry.Child.ClassName,
                    DailyFee=AmountToFloat(entry.Child.DailyFee),
                    Record=_BuildRecordOut(entry.Record) if entry.Record else None,
                )
                for entry in entries
            ],
        )
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/attendance/mark", response_model=DailyRecordOut)
def PostAttendance(
    payload: AttendanceMarkRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> DailyRecordOut:
    try:
        record = MarkAttendance(
            db,
            payload.ChildId,
            payload.RecordDate or TodayLocal(),
            payload.Status.value,
            note=payload.Note,
        )
        return _BuildRecordOut(record)
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/attendance/payment", response_model=DailyRecordOut)
def PostPayment(
    payload: PaymentMarkRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> DailyRecordOut:
    try:
        record = MarkPayment(
            db,
            payload.ChildId,
            payload.RecordDate or TodayLocal(),
            payload.Status.value,
        )
        return _BuildRecordOut(record)
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.delete("/attendance/{child_id}/{record_date}", status_code=status.HTTP_204_NO_CONTENT)
def DeleteAttendance(
    child_id: int,
    record_date: date,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> None:
    try:
        UndoDailyRecord(db, child_id, record_date)
        logger.info("attendance undone by user_id=%s child_id=%s", user.Id, child_id)
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/ledger/overview", response_model=DebtOverviewResponse)
def GetDebtOverview(
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> DebtOverviewResponse:
    try:
        rows = ListDebtOverview(db)
        return DebtOverviewResponse(
            TotalDebt=AmountToFloat(sum((row.TotalDebt for row in rows), ZERO)),
            Children=[
                DebtOverviewOut(
                    ChildId=row.ChildId,
                    ChildName=row.ChildName,
                    TotalDebt=AmountToFloat(row.TotalDebt),
                    OldestDebtDate=row.OldestDebtDate,
                    LatestDebtDate=row.LatestDebtDate,
                )
                for row in rows
            ],
        )
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/rollover/run", response_model=RolloverRunResponse)
def PostRollover(
    payload: RolloverRunRequest | None = None,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> RolloverRunResponse:
    target_date = payload.TargetDate if payload else None
    try:
        result = RunDailyRollover(db, target_date=target_date, trigger=TRIGGER_MANUAL)
        logger.info(
            "manual rollover by user_id=%s target_date=%s", user.Id, result.TargetDate.isoformat()
        )
        return RolloverRunResponse(
            Date=result.TargetDate,
            Attempted=result.Attempted,
            Succeeded=result.Succeeded,
            Failed=result.Failed,
            MarkedAbsent=result.MarkedAbsent,
            MarkedUnpaid=result.MarkedUnpaid,
            Skipped=result.Skipped,
            FailedChildIds=result.FailedChildIds,
        )
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/rollover/runs", response_model=list[RolloverRunOut])
def GetRolloverRuns(
    limit: int = 30,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> list[RolloverRunOut]:
    try:
        return [_BuildRolloverRunOut(run) for run in ListRolloverRuns(db, limit)]
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
