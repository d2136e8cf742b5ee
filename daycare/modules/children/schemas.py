from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field


class AgeUnitChoice(str, Enum):
    Months = "months"
    Years = "years"


class ChildAgeOut(BaseModel):
    Value: int
    Unit: AgeUnitChoice
    Label: str


class ChildOut(BaseModel):
    Id: int
    Name: str
    GuardianName: str
    ContactNumber: str
    AdmissionDate: date
    AdmissionNumber: str | None = None
    ClassName: str | None = None
    DailyFee: float
    AgeValue: int | None = None
    AgeUnit: AgeUnitChoice | None = None
    AgeDeclaredAt: datetime | None = None
    CurrentAge: ChildAgeOut | None = None
    TotalDebt: float | None = None
    CreatedAt: datetime
    UpdatedAt: datetime


class ChildCreate(BaseModel):
    Name: str = Field(min_length=1, max_length=200)
    GuardianName: str = Field(min_length=1, max_length=200)
    ContactNumber: str = Field(min_length=1, max_length=40)
    AdmissionDate: date | None = None
    AdmissionNumber: str | None = Field(default=None, max_length=40)
    ClassName: str | None = Field(default=None, max_length=80)
    DailyFee: float | None = Field(default=None, ge=0)
    AgeValue: int | None = Field(default=None, ge=0, le=30)
    AgeUnit: AgeUnitChoice | None = None


class ChildUpdate(BaseModel):
    Name: str | None = Field(default=None, min_length=1, max_length=200)
    GuardianName: str | None = Field(default=None, min_length=1, max_length=200)
    ContactNumber: str | None = Field(default=None, min_length=1, max_length=40)
    AdmissionDate: date | None = None
    AdmissionNumber: str | None = Field(default=None, max_length=40)
    ClassName: str | None = Field(default=None, max_length=80)
    DailyFee: float | None = Field(default=None, ge=0)
    AgeValue: int | None = Field(default=None, ge=0, le=30)
    AgeUnit: AgeUnitChoice | None = None


class ChildDeleteResponse(BaseModel):
    DeletedId: int
    DailyRecordsRemoved: int
