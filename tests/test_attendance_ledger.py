from datetime import timedelta
from decimal import Decimal

import pytest

from daycare.modules.attendance.services.attendance_service import (
    GetDailyRecord,
    MarkAttendance,
    MarkPayment,
)
from daycare.modules.attendance.services.errors import InvalidAmountError, NoDebtError, NotFoundError
from daycare.modules.attendance.services.ledger_service import (
    GetDebtLedger,
    GetTotalDebt,
    ListDebtOverview,
    ListSettlements,
    SettleFull,
    SettlePartial,
)
from conftest import FIXED_NOW, TODAY

DAY_ONE = TODAY - timedelta(days=2)
DAY_TWO = TODAY - timedelta(days=1)


def _owe(db, child, record_date):
    MarkAttendance(db, child.Id, record_date, "present", now=FIXED_NOW)
    MarkPayment(db, child.Id, record_date, "unpaid", now=FIXED_NOW)


def test_total_debt_sums_unsettled_days(db, make_child):
    child = make_child(daily_fee="50.00")
    _owe(db, child, DAY_ONE)
    _owe(db, child, DAY_TWO)
    MarkAttendance(db, child.Id, TODAY, "present", now=FIXED_NOW)
    MarkPayment(db, child.Id, TODAY, "paid", now=FIXED_NOW)

    assert GetTotalDebt(db, child.Id) == Decimal("100.00")
    assert [record.RecordDate for record in GetDebtLedger(db, child.Id)] == [DAY_ONE, DAY_TWO]


def test_total_debt_for_child_without_records(db, make_child):
    child = make_child()
    assert GetTotalDebt(db, child.Id) == Decimal("0.00")
    assert GetDebtLedger(db, child.Id) == []


def test_partial_settlement_walks_oldest_first(db, make_child):
    child = make_child(daily_fee="50.00")
    _owe(db, child, DAY_ONE)
    child.DailyFee = Decimal("30.00")
    db.commit()
    _owe(db, child, DAY_TWO)

    result = SettlePartial(db, child.Id, "60", actor_user_id=7, now=FIXED_NOW)

    assert result.AmountSettled == Decimal("60.00")
    assert result.RecordsTouched == 2
    assert result.RemainingDebt == Decimal("20.00")
    first = GetDailyRecord(db, child.Id, DAY_ONE)
    second = GetDailyRecord(db, child.Id, DAY_TWO)
    assert first.DebtRemaining == Decimal("0.00")
    assert first.PaymentStatus == "paid"
    assert second.DebtRemaining == Decimal("20.00")
    assert second.PaymentStatus == "unpaid"
    assert GetTotalDebt(db, child.Id) == Decimal("20.00")


def test_partial_settlement_of_exact_total_clears_everything(db, make_child):
    child = make_child(daily_fee="150.00")
    _owe(db, child, DAY_ONE)
    _owe(db, child, DAY_TWO)

    result = SettlePartial(db, child.Id, 300, actor_user_id=7, now=FIXED_NOW)

    assert result.RemainingDebt == Decimal("0.00")
    assert GetTotalDebt(db, child.Id) == Decimal("0.00")
    assert all(record.PaymentStatus == "paid" for record in [
        GetDailyRecord(db, child.Id, DAY_ONE),
        GetDailyRecord(db, child.Id, DAY_TWO),
    ])


@pytest.mark.parametrize("amount", [0, -5, "abc", "301"])
def test_partial_settlement_rejects_bad_amounts(db, make_child, amount):
    child = make_child(daily_fee="150.00")
    _owe(db, child, DAY_ONE)
    _owe(db, child, DAY_TWO)

    with pytest.raises(InvalidAmountError):
        SettlePartial(db, child.Id, amount, actor_user_id=7, now=FIXED_NOW)
    assert GetTotalDebt(db, child.Id) == Decimal("300.00")


def test_full_settlement_zeroes_every_record(db, make_child):
    child = make_child(daily_fee="150.00")
    _owe(db, child, DAY_ONE)
    _owe(db, child, DAY_TWO)

    result = SettleFull(db, child.Id, actor_user_id=7, now=FIXED_NOW)

    assert result.AmountSettled == Decimal("300.00")
    assert result.RecordsTouched == 2
    assert GetTotalDebt(db, child.Id) == Decimal("0.00")
    settlements = ListSettlements(db, child.Id)
    assert len(settlements) == 1
    assert settlements[0].Kind == "full"
    assert settlements[0].CreatedByUserId == 7


def test_full_settlement_without_debt(db, make_child):
    child = make_child()
    with pytest.raises(NoDebtError):
        SettleFull(db, child.Id, actor_user_id=7, now=FIXED_NOW)
    assert ListSettlements(db, child.Id) == []


def test_settlement_for_unknown_child(db):
    with pytest.raises(NotFoundError):
        SettleFull(db, 404, actor_user_id=7, now=FIXED_NOW)


def test_debt_overview_orders_by_largest_debt(db, make_child):
    small = make_child(name="Small", daily_fee="50.00")
    large = make_child(name="Large", daily_fee="150.00")
    clear = make_child(name="Clear")
    _owe(db, small, DAY_ONE)
    _owe(db, large, DAY_ONE)
    _owe(db, large, DAY_TWO)
    MarkAttendance(db, clear.Id, DAY_ONE, "absent", now=FIXED_NOW)

    overview = ListDebtOverview(db)

    assert [row.ChildName for row in overview] == ["Large", "Small"]
    assert overview[0].TotalDebt == Decimal("300.00")
    assert overview[0].OldestDebtDate == DAY_ONE
    assert overview[0].LatestDebtDate == DAY_TWO


def test_partial_settlement_on_open_day_survives_unpaid_mark(db, make_child):
    child = make_child(daily_fee="150.00")
    MarkAttendance(db, child.Id, TODAY, "present", now=FIXED_NOW)
    SettlePartial(db, child.Id, "100", actor_user_id=7, now=FIXED_NOW)
    assert GetDailyRecord(db, child.Id, TODAY).PaymentStatus == "pending"

    record = MarkPayment(db, child.Id, TODAY, "unpaid", now=FIXED_NOW)

    assert record.PaymentStatus == "unpaid"
    assert record.DebtRemaining == Decimal("50.00")
    assert GetTotalDebt(db, child.Id) == Decimal("50.00")


def test_partial_settlement_on_open_day_then_paid_clears_the_rest(db, make_child):
    child = make_child(daily_fee="150.00")
    MarkAttendance(db, child.Id, TODAY, "present", now=FIXED_NOW)
    SettlePartial(db, child.Id, "100", actor_user_id=7, now=FIXED_NOW)

    MarkPayment(db, child.Id, TODAY, "paid", now=FIXED_NOW)

    assert GetTotalDebt(db, child.Id) == Decimal("0.00")


@pytest.mark.parametrize("amount", ["49.995", 0.001, "10.1234"])
def test_partial_settlement_refuses_fractions_of_a_cent(db, make_child, amount):
    child = make_child(daily_fee="150.00")
    _owe(db, child, DAY_ONE)

    with pytest.raises(InvalidAmountError):
        SettlePartial(db, child.Id, amount, actor_user_id=7, now=FIXED_NOW)
    assert GetTotalDebt(db, child.Id) == Decimal("150.00")
    assert ListSettlements(db, child.Id) == []


def test_partial_settlement_accepts_trailing_zeros(db, make_child):
    child = make_child(daily_fee="150.00")
    _owe(db, child, DAY_ONE)

    result = SettlePartial(db, child.Id, "49.990", actor_user_id=7, now=FIXED_NOW)

    assert result.AmountSettled == Decimal("49.99")
    assert GetTotalDebt(db, child.Id) == Decimal("100.01")
