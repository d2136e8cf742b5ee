from datetime import date, timedelta
from decimal import Decimal

import pytest

from daycare.modules.attendance.services.attendance_service import MarkAttendance, MarkPayment
from daycare.modules.attendance.services.ledger_service import SettlePartial
from daycare.modules.reports.services import (
    BuildAttendanceOverview,
    BuildDashboardSummary,
    BuildYearlyBreakdown,
    ListTopPayers,
)
from conftest import FIXED_NOW, TODAY


def _attend(db, child, record_date, payment):
    MarkAttendance(db, child.Id, record_date, "present", now=FIXED_NOW)
    MarkPayment(db, child.Id, record_date, payment, now=FIXED_NOW)


@pytest.fixture
def history(db, make_child):
    amani = make_child(name="Amani", daily_fee="150.00")
    baraka = make_child(name="Baraka", daily_fee="100.00")
    make_child(name="Chege")
    _attend(db, amani, date(2024, 4, 30), "paid")
    _attend(db, amani, TODAY - timedelta(days=1), "unpaid")
    _attend(db, amani, TODAY, "paid")
    _attend(db, baraka, TODAY, "unpaid")
    SettlePartial(db, baraka.Id, 40, actor_user_id=1, now=FIXED_NOW)
    return amani, baraka


def test_dashboard_summary(db, history):
    summary = BuildDashboardSummary(db, TODAY)
    assert summary.TotalChildren == 3
    assert summary.PresentToday == 2
    assert summary.AbsentToday == 0
    assert summary.ExpectedToday == Decimal("250.00")
    assert summary.CollectedToday == Decimal("190.00")
    assert summary.CollectedThisMonth == Decimal("190.00")
    assert summary.CollectedOverall == Decimal("340.00")
    assert summary.TotalDebt == Decimal("210.00")


def test_yearly_breakdown_has_every_month(db, history):
    months = BuildYearlyBreakdown(db, 2024)
    assert len(months) == 12
    by_label = {item.Label: item for item in months}
    assert by_label["Apr"].Collected == Decimal("150.00")
    assert by_label["May"].Collected == Decimal("190.00")
    assert by_label["May"].Debt == Decimal("210.00")
    assert by_label["Jan"].Collected == Decimal("0.00")


def test_attendance_overview_counts(db, history, make_child):
    absent_child = make_child(name="Dalia")
    MarkAttendance(db, absent_child.Id, TODAY, "absent", now=FIXED_NOW)
    overview = BuildAttendanceOverview(db, date(2024, 5, 1), TODAY)
    assert (overview.Present, overview.Absent) == (3, 1)
    with pytest.raises(ValueError):
        BuildAttendanceOverview(db, TODAY, date(2024, 5, 1))


def test_top_payers(db, history):
    payers = ListTopPayers(db)
    assert [(payer.ChildName, payer.Collected) for payer in payers] == [
        ("Amani", Decimal("300.00")),
        ("Baraka", Decimal("40.00")),
    ]
    assert len(ListTopPayers(db, limit=1)) == 1
