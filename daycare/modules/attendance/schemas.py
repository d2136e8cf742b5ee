from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field


class AttendanceMark(str, Enum):
    Present = "present"
    Absent = "absent"


class PaymentMark(str, Enum):
    Paid = "paid"
    Unpaid = "unpaid"


class DailyRecordOut(BaseModel):
    Id: int
    ChildId: int
    RecordDate: date
    AttendanceStatus: str
    PaymentStatus: str
    AmountDue: float
    DebtRemaining: float
    ArrivalAt: datetime | None = None
    Note: str | None = None
    CreatedAt: datetime
    UpdatedAt: datetime


class AttendanceMarkRequest(BaseModel):
    ChildId: int
    RecordDate: date | None = None
    Status: AttendanceMark
    Note: str | None = Field(default=None, max_length=500)


class PaymentMarkRequest(BaseModel):
    ChildId: int
    RecordDate: date | None = None
    Status: PaymentMark


class RosterEntryOut(BaseModel):
    ChildId: int
    ChildName: str
    ClassName: str | None = None
    DailyFee: float
    Record: DailyRecordOut | None = None


class RosterResponse(BaseModel):
    RecordDate: date
    Entries: list[RosterEntryOut]


class LedgerResponse(BaseModel):
    ChildId: int
    TotalDebt: float
    Entries: list[DailyRecordOut]


class PartialSettlementRequest(BaseModel):
    Amount: float


class SettlementResponse(BaseModel):
    ChildId: int
    Kind: str
    AmountSettled: float
    RecordsTouched: int
    RemainingDebt: float
    Detail: str | None = None


class SettlementOut(BaseModel):
    Id: int
    ChildId: int
    Kind: str
    Amount: float
    RecordsTouched: int
    CreatedByUserId: int
    CreatedAt: datetime


class DebtOverviewOut(BaseModel):
    ChildId: int
    ChildName: str
    TotalDebt: float
    OldestDebtDate: date
    LatestDebtDate: date


class DebtOverviewResponse(BaseModel):
    TotalDebt: float
    Children: list[DebtOverviewOut]


class RolloverRunRequest(BaseModel):
    TargetDate: date | None = None


class RolloverRunResponse(BaseModel):
    Date: date
    Attempted: int
    Succeeded: int
    Failed: int
    MarkedAbsent: int
    MarkedUnpaid: int
    Skipped: int
    FailedChildIds: list[int]


class RolloverRunOut(BaseModel):
    Id: int
    TargetDate: date
    TriggeredBy: str
    Attempted: int
    Succeeded: int
    Failed: int
    MarkedAbsent: int
    MarkedUnpaid: int
    Skipped: int
    ErrorMessage: str | None = None
    StartedAt: datetime
    FinishedAt: datetime
