from datetime import date, datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, Index, Integer, Numeric, String, text

from daycare.db import Base


class Child(Base):
    __tablename__ = "children"
    __table_args__ = (
        Index(
            "ux_daycare_children_admission_number",
            "AdmissionNumber",
            unique=True,
            mssql_where=text("AdmissionNumber IS NOT NULL"),
            sqlite_where=text("AdmissionNumber IS NOT NULL"),
        ),
        CheckConstraint("DailyFee >= 0", name="ck_daycare_children_daily_fee"),
        CheckConstraint("AgeUnit IN ('months', 'years')", name="ck_daycare_children_age_unit"),
        {"schema": "daycare"},
    )

    Id = Column(Integer, primary_key=True, index=True)
    Name = Column(String(200), nullable=False, index=True)
    GuardianName = Column(String(200), nullable=False)
    ContactNumber = Column(String(40), nullable=False)
    AdmissionDate = Column(Date, nullable=False, default=date.today, index=True)
    AdmissionNumber = Column(String(40))
    ClassName = Column(String(80))
    DailyFee = Column(Numeric(12, 2), nullable=False, default=0)
    AgeValue = Column(Integer)
    AgeUnit = Column(String(10))
    AgeDeclaredAt = Column(DateTime(timezone=True))
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
