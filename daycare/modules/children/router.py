import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from daycare.db import GetDb
from daycare.modules.attendance.models import SETTLEMENT_FULL, DailyRecord, Settlement
from daycare.modules.attendance.schemas import (
    DailyRecordOut,
    LedgerResponse,
    PartialSettlementRequest,
    SettlementOut,
    SettlementResponse,
)
from daycare.modules.attendance.services.errors import DaycareError, NoDebtError
from daycare.modules.attendance.services.ledger_service import (
    GetDebtLedger,
    GetTotalDebt,
    ListSettlements,
    SettleFull,
    SettlePartial,
    SettlementResult,
)
from daycare.modules.attendance.utils.http import _handle_daycare_error, _handle_db_error
from daycare.modules.attendance.utils.money import ZERO, AmountToFloat
from daycare.modules.attendance.utils.rbac import RequireDaycareAdmin
from daycare.modules.attendance.utils.storage import EnsureDaycareStorageReady
from daycare.modules.auth.deps import UserContext
from daycare.modules.children.models import Child
from daycare.modules.children.schemas import (
    ChildAgeOut,
    ChildCreate,
    ChildDeleteResponse,
    ChildOut,
    ChildUpdate,
)
from daycare.modules.children.services.age_service import FormatAge
from daycare.modules.children.services.children_service import (
    CreateChild,
    CurrentAgeFor,
    DeleteChild,
    GetChild,
    ListChildren,
    UpdateChild,
)

logger = logging.getLogger("daycare.children")

router = APIRouter(
    prefix="/api/daycare/children",
    tags=["daycare"],
    dependencies=[Depends(EnsureDaycareStorageReady)],
)


def _BuildChildOut(child: Child, total_debt=None) -> ChildOut:
    age = CurrentAgeFor(child)
    return ChildOut(
        Id=child.Id,
        Name=child.Name,
        GuardianName=child.GuardianName,
        ContactNumber=child.ContactNumber,
        AdmissionDate=child.AdmissionDate,
        AdmissionNumber=child.AdmissionNumber,
        ClassName=child.ClassName,
        DailyFee=AmountToFloat(child.DailyFee),
        AgeValue=child.AgeValue,
        AgeUnit=child.AgeUnit,
        AgeDeclaredAt=child.AgeDeclaredAt,
        CurrentAge=ChildAgeOut(Value=age.Value, Unit=age.Unit, Label=FormatAge(age)) if age else None,
        TotalDebt=AmountToFloat(total_debt) if total_debt is not None else None,
        CreatedAt=child.CreatedAt,
        UpdatedAt=child.UpdatedAt,
    )


def _BuildRecordOut(record: DailyRecord) -> DailyRecordOut:
    return DailyRecordOut(
        Id=record.Id,
        ChildId=record.ChildId,
        RecordDate=record.RecordDate,
        AttendanceStatus=record.AttendanceStatus,
        PaymentStatus=record.PaymentStatus,
        AmountDue=AmountToFloat(record.AmountDue),
        DebtRemaining=AmountToFloat(record.DebtRemaining),
        ArrivalAt=record.ArrivalAt,
        Note=record.Note,
        CreatedAt=record.CreatedAt,
        UpdatedAt=record.UpdatedAt,
    )


def _BuildSettlementResponse(result: SettlementResult, detail: str | None = None) -> SettlementResponse:
    return SettlementResponse(
        ChildId=result.ChildId,
        Kind=result.Kind,
        AmountSettled=AmountToFloat(result.AmountSettled),
        RecordsTouched=result.RecordsTouched,
        RemainingDebt=AmountToFloat(result.RemainingDebt),
        Detail=detail,
    )


def _BuildSettlementOut(settlement: Settlement) -> SettlementOut:
    return SettlementOut(
        Id=settlement.Id,
        ChildId=settlement.ChildId,
        Kind=settlement.Kind,
        Amount=AmountToFloat(settlement.Amount),
        RecordsTouched=settlement.RecordsTouched,
        CreatedByUserId=settlement.CreatedByUserId,
        CreatedAt=settlement.CreatedAt,
    )


@router.get("", response_model=list[ChildOut])
def GetChildren(
    search: str | None = None,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> list[ChildOut]:
    try:
        return [_BuildChildOut(child) for child in ListChildren(db, search)]
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("", response_model=ChildOut, status_code=status.HTTP_201_CREATED)
def PostChild(
    payload: ChildCreate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> ChildOut:
    try:
        child = CreateChild(db, payload.model_dump())
        return _BuildChildOut(child, ZERO)
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/{child_id}", response_model=ChildOut)
def GetChildById(
    child_id: int,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> ChildOut:
    try:
        child = GetChild(db, child_id)
        return _BuildChildOut(child, GetTotalDebt(db, child_id))
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.put("/{child_id}", response_model=ChildOut)
def PutChild(
    child_id: int,
    payload: ChildUpdate,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> ChildOut:
    try:
        child = UpdateChild(db, child_id, payload.model_dump(exclude_unset=True))
        return _BuildChildOut(child, GetTotalDebt(db, child_id))
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.delete("/{child_id}", response_model=ChildDeleteResponse)
def RemoveChild(
    child_id: int,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> ChildDeleteResponse:
    try:
        removed = DeleteChild(db, child_id)
        logger.info("child removed by user_id=%s child_id=%s", user.Id, child_id)
        return ChildDeleteResponse(DeletedId=child_id, DailyRecordsRemoved=removed)
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/{child_id}/ledger", response_model=LedgerResponse)
def GetChildLedger(
    child_id: int,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> LedgerResponse:
    try:
        GetChild(db, child_id)
        entries = GetDebtLedger(db, child_id)
        return LedgerResponse(
            ChildId=child_id,
            TotalDebt=AmountToFloat(GetTotalDebt(db, child_id)),
            Entries=[_BuildRecordOut(entry) for entry in entries],
        )
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.get("/{child_id}/settlements", response_model=list[SettlementOut])
def GetChildSettlements(
    child_id: int,
    limit: int = 50,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> list[SettlementOut]:
    try:
        GetChild(db, child_id)
        return [_BuildSettlementOut(item) for item in ListSettlements(db, child_id, limit)]
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/{child_id}/settle", response_model=SettlementResponse)
def PostSettleFull(
    child_id: int,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> SettlementResponse:
    try:
        result = SettleFull(db, child_id, actor_user_id=user.Id)
        return _BuildSettlementResponse(result)
    except NoDebtError as exc:
        return _BuildSettlementResponse(
            SettlementResult(
                ChildId=child_id,
                Kind=SETTLEMENT_FULL,
                AmountSettled=ZERO,
                RecordsTouched=0,
                RemainingDebt=ZERO,
            ),
            detail=exc.message,
        )
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)


@router.post("/{child_id}/settle-partial", response_model=SettlementResponse)
def PostSettlePartial(
    child_id: int,
    payload: PartialSettlementRequest,
    db: Session = Depends(GetDb),
    user: UserContext = Depends(RequireDaycareAdmin()),
) -> SettlementResponse:
    try:
        result = SettlePartial(db, child_id, payload.Amount, actor_user_id=user.Id)
        return _BuildSettlementResponse(result)
    except DaycareError as exc:
        _handle_daycare_error(exc)
    except ProgrammingError as exc:
        _handle_db_error(exc)
