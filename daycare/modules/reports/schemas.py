from datetime import date

from pydantic import BaseModel


class DashboardSummaryOut(BaseModel):
    ReportDate: date
    Currency: str
    TotalChildren: int
    PresentToday: int
    AbsentToday: int
    ExpectedToday: float
    CollectedToday: float
    CollectedThisMonth: float
    CollectedOverall: float
    TotalDebt: float


class MonthlyTotalsOut(BaseModel):
    Month: int
    Label: str
    Collected: float
    Debt: float


class YearlyBreakdownResponse(BaseModel):
    Year: int
    Currency: str
    Months: list[MonthlyTotalsOut]


class AttendanceOverviewOut(BaseModel):
    StartDate: date
    EndDate: date
    Present: int
    Absent: int


class TopPayerOut(BaseModel):
    ChildId: int
    ChildName: str
    Collected: float
