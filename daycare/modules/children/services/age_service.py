from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

AGE_UNIT_MONTHS = "months"
AGE_UNIT_YEARS = "years"


@dataclass(frozen=True)
class AgeData:
    Value: int
    Unit: str


def NormalizeAgeUnit(unit: str | None) -> str:
    if unit in {"month", "months"}:
        return AGE_UNIT_MONTHS
    return AGE_UNIT_YEARS


def WholeMonthsBetween(start: date | datetime, end: date | datetime) -> int:
    """Count completed calendar months from start to end (0 when end precedes start)."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    elif end.day == start.day and isinstance(start, datetime) and isinstance(end, datetime):
        if end.time() < start.time():
            months -= 1
    return max(months, 0)


def CalculateCurrentAge(value: int, unit: str, declared_at: datetime, now: datetime) -> AgeData:
    if declared_at.tzinfo is None and now.tzinfo is not None:
        now = now.replace(tzinfo=None)
    elif declared_at.tzinfo is not None and now.tzinfo is None:
        declared_at = declared_at.replace(tzinfo=None)
    elif declared_at.tzinfo is not None:
        now = now.astimezone(declared_at.tzinfo)

    months_passed = WholeMonthsBetween(declared_at, now)
    if NormalizeAgeUnit(unit) == AGE_UNIT_MONTHS:
        total_months = value + months_passed
        if total_months >= 12:
            return AgeData(Value=total_months // 12, Unit=AGE_UNIT_YEARS)
        return AgeData(Value=total_months, Unit=AGE_UNIT_MONTHS)
    return AgeData(Value=value + months_passed // 12, Unit=AGE_UNIT_YEARS)


def FormatAge(age: AgeData) -> str:
    if age.Value == 1:
        return f"1 {'month' if age.Unit == AGE_UNIT_MONTHS else 'year'}"
    return f"{age.Value} {age.Unit}"
