from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from daycare.core.config import Settings, TodayLocal
from daycare.modules.attendance.models import DailyRecord, Settlement
from daycare.modules.attendance.services.errors import (
    NotFoundError,
    StoreGuard,
    StoreGuarded,
    ValidationFailedError,
)
from daycare.modules.attendance.utils.money import ZERO, ToAmount
from daycare.modules.auth.deps import NowUtc
from daycare.modules.children.models import Child
from daycare.modules.children.services.age_service import (
    AGE_UNIT_MONTHS,
    AGE_UNIT_YEARS,
    AgeData,
    CalculateCurrentAge,
)

logger = logging.getLogger("daycare.children")

_REQUIRED_TEXT_FIELDS = ("Name", "GuardianName", "ContactNumber")


def _CleanText(value: Any) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def _ValidateFee(value: Any):
    try:
        fee = ToAmount(value)
    except ValueError as exc:
        raise ValidationFailedError("Daily fee must be a number.") from exc
    if fee < ZERO:
        raise ValidationFailedError("Daily fee cannot be negative.")
    return fee


def _ValidateAge(value: Any, unit: Any) -> tuple[int | None, str | None]:
    if value is None:
        return None, None
    try:
        age_value = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationFailedError("Age must be a whole number.") from exc
    if age_value < 0:
        raise ValidationFailedError("Age cannot be negative.")
    age_unit = getattr(unit, "value", unit) or AGE_UNIT_YEARS
    if age_unit not in {AGE_UNIT_MONTHS, AGE_UNIT_YEARS}:
        raise ValidationFailedError("Age unit must be months or years.")
    return age_value, age_unit


def _EnsureAdmissionNumberFree(db: Session, admission_number: str | None, child_id: int | None = None) -> None:
    if not admission_number:
        return
    query = db.query(Child).filter(Child.AdmissionNumber == admission_number)
    if child_id is not None:
        query = query.filter(Child.Id != child_id)
    if query.first():
        raise ValidationFailedError(f"Admission number {admission_number} is already in use.")


@StoreGuarded
def GetChild(db: Session, child_id: int) -> Child:
    child = db.query(Child).filter(Child.Id == child_id).first()
    if not child:
        raise NotFoundError("Child not found")
    return child


@StoreGuarded
def ListChildren(db: Session, search: str | None = None) -> list[Child]:
    query = db.query(Child)
    term = _CleanText(search)
    if term:
        query = query.filter(func.lower(Child.Name).like(f"%{term.lower()}%"))
    return query.order_by(Child.Name.asc(), Child.Id.asc()).all()


def _Commit(db: Session, record: Child) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationFailedError("Child details conflict with an existing child.") from exc
    db.refresh(record)


def CreateChild(db: Session, input_data: dict[str, Any], *, now: datetime | None = None) -> Child:
    now = now or NowUtc()
    for field_name in _REQUIRED_TEXT_FIELDS:
        if not _CleanText(input_data.get(field_name)):
            raise ValidationFailedError(f"{field_name} is required.")

    fee_input = input_data.get("DailyFee")
    fee = _ValidateFee(Settings.DefaultDailyFee if fee_input is None else fee_input)
    age_value, age_unit = _ValidateAge(input_data.get("AgeValue"), input_data.get("AgeUnit"))
    admission_number = _CleanText(input_data.get("AdmissionNumber"))

    with StoreGuard(db):
        _EnsureAdmissionNumberFree(db, admission_number)
        record = Child(
            Name=_CleanText(input_data["Name"]),
            GuardianName=_CleanText(input_data["GuardianName"]),
            ContactNumber=_CleanText(input_data["ContactNumber"]),
            AdmissionDate=input_data.get("AdmissionDate") or TodayLocal(now),
            AdmissionNumber=admission_number,
            ClassName=_CleanText(input_data.get("ClassName")),
            DailyFee=fee,
            AgeValue=age_value,
            AgeUnit=age_unit,
            AgeDeclaredAt=now if age_value is not None else None,
            CreatedAt=now,
            UpdatedAt=now,
        )
        db.add(record)
        _Commit(db, record)

    logger.info("child created child_id=%s daily_fee=%s", record.Id, record.DailyFee)
    return record


def UpdateChild(
    db: Session,
    child_id: int,
    input_data: dict[str, Any],
    *,
    now: datetime | None = None,
) -> Child:
    now = now or NowUtc()
    with StoreGuard(db):
        record = GetChild(db, child_id)

        for field_name in _REQUIRED_TEXT_FIELDS:
            if field_name in input_data:
                cleaned = _CleanText(input_data.get(field_name))
                if not cleaned:
                    raise ValidationFailedError(f"{field_name} is required.")
                setattr(record, field_name, cleaned)

        if "DailyFee" in input_data and input_data["DailyFee"] is not None:
            record.DailyFee = _ValidateFee(input_data["DailyFee"])
        if "AdmissionDate" in input_data and input_data["AdmissionDate"] is not None:
            record.AdmissionDate = input_data["AdmissionDate"]
        if "ClassName" in input_data:
            record.ClassName = _CleanText(input_data.get("ClassName"))
        if "AdmissionNumber" in input_data:
            admission_number = _CleanText(input_data.get("AdmissionNumber"))
            _EnsureAdmissionNumberFree(db, admission_number, child_id=record.Id)
            record.AdmissionNumber = admission_number

        if "AgeValue" in input_data or "AgeUnit" in input_data:
            age_value, age_unit = _ValidateAge(
                input_data.get("AgeValue", record.AgeValue),
                input_data.get("AgeUnit", record.AgeUnit),
            )
            if (age_value, age_unit) != (record.AgeValue, record.AgeUnit):
                record.AgeValue = age_value
                record.AgeUnit = age_unit
                record.AgeDeclaredAt = now if age_value is not None else None

        record.UpdatedAt = now
        db.add(record)
        _Commit(db, record)

    logger.info("child updated child_id=%s", record.Id)
    return record


def DeleteChild(db: Session, child_id: int) -> int:
    """Hard-delete a child and every attendance and settlement row that belongs to it.

    Returns the number of daily records removed.
    """
    with StoreGuard(db):
        record = GetChild(db, child_id)
        removed = (
            db.query(DailyRecord)
            .filter(DailyRecord.ChildId == record.Id)
            .delete(synchronize_session=False)
        )
        db.query(Settlement).filter(Settlement.ChildId == record.Id).delete(synchronize_session=False)
        db.delete(record)
        db.commit()

    logger.info("child deleted child_id=%s daily_records=%s", child_id, removed)
    return removed


def CurrentAgeFor(child: Child, now: datetime | None = None) -> AgeData | None:
    if child.AgeValue is None or child.AgeDeclaredAt is None:
        return None
    return CalculateCurrentAge(child.AgeValue, child.AgeUnit or AGE_UNIT_YEARS, child.AgeDeclaredAt, now or NowUtc())
