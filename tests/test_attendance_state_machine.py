from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from daycare.modules.attendance.models import DailyRecord
from daycare.modules.attendance.services import attendance_service
from daycare.modules.attendance.services.attendance_service import (
    GetDailyRecord,
    ListDailyRecords,
    ListDailyRoster,
    MarkAttendance,
    MarkPayment,
    UndoDailyRecord,
)
from daycare.modules.attendance.services.errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    PreconditionFailedError,
    ValidationFailedError,
)
from conftest import FIXED_NOW, TODAY


def test_present_sets_fee_as_pending_debt(db, make_child):
    child = make_child(daily_fee="150.00")
    record = MarkAttendance(db, child.Id, TODAY, "present", now=FIXED_NOW)
    assert record.AttendanceStatus == "present"
    assert record.PaymentStatus == "pending"
    assert record.AmountDue == Decimal("150.00")
    assert record.DebtRemaining == Decimal("150.00")
    assert record.ArrivalAt is not None


def test_absent_owes_nothing(db, make_child):
    child = make_child()
    record = MarkAttendance(db, child.Id, TODAY, "absent", now=FIXED_NOW)
    assert record.AttendanceStatus == "absent"
    assert record.PaymentStatus == "unpaid"
    assert record.AmountDue == Decimal("0.00")
    assert record.DebtRemaining == Decimal("0.00")
    assert record.ArrivalAt is None


def test_attendance_is_set_once_per_day(db, make_child):
    child = make_child()
    MarkAttendance(db, child.Id, TODAY, "present", now=FIXED_NOW)
    with pytest.raises(InvalidTransitionError):
        MarkAttendance(db, child.Id, TODAY, "absent", now=FIXED_NOW)
    record = GetDailyRecord(db, child.Id, TODAY)
    assert record.AttendanceStatus == "present"


def test_attendance_rejects_unknown_status_and_future_dates(db, make_child):
    child = make_child()
    with pytest.raises(ValidationFailedError):
        MarkAttendance(db, child.Id, TODAY, "late", now=FIXED_NOW)
    with pytest.raises(PreconditionFailedError):
        MarkAttendance(db, child.Id, TODAY + timedelta(days=1), "present", now=FIXED_NOW)


def test_attendance_for_unknown_child(db):
    with pytest.raises(NotFoundError):
        MarkAttendance(db, 999, TODAY, "present", now=FIXED_NOW)


def test_today_follows_daycare_timezone(db, make_child):
    child = make_child()
    # 22:30 UTC on the 10th is already the 11th in Nairobi.
    late_evening = datetime(2024, 5, 10, 22, 30, tzinfo=timezone.utc)
    record = MarkAttendance(db, child.Id, date(2024, 5, 11), "present", now=late_evening)
    assert record.RecordDate == date(2024, 5, 11)


def test_payment_paid_clears_debt(db, make_child):
    child = make_child()
    MarkAttendance(db, child.Id, TODAY, "present", now=FIXED_NOW)
    record = MarkPayment(db, child.Id, TODAY, "paid", now=FIXED_NOW)
    assert record.PaymentStatus == "paid"
    assert record.DebtRemaining == Decimal("0.00")
    assert record.AmountDue == Decimal("150.00")


def test_payment_unpaid_keeps_full_debt(db, make_child):
    child = make_child(daily_fee="200.00")
    MarkAttendance(db, child.Id, TODAY, "present", now=FIXED_NOW)
    record = MarkPayment(db, child.Id, TODAY, "unpaid", now=FIXED_NOW)
    assert record.PaymentStatus == "unpaid"
    assert record.DebtRemaining == Decimal("200.00")


def test_payment_requires_attendance_first(db, make_child):
    child = make_child()
    with pytest.raises(PreconditionFailedError) as excinfo:
        MarkPayment(db, child.Id, TODAY, "paid", now=FIXED_NOW)
    assert "attendance" in excinfo.value.message.lower()


def test_payment_rejected_for_absent_child(db, make_child):
    child = make_child()
    MarkAttendance(db, child.Id, TODAY, "absent", now=FIXED_NOW)
    with pytest.raises(PreconditionFailedError):
        MarkPayment(db, child.Id, TODAY, "paid", now=FIXED_NOW)


def test_payment_is_set_once(db, make_child):
    child = make_child()
    MarkAttendance(db, child.Id, TODAY, "present", now=FIXED_NOW)
    MarkPayment(db, child.Id, TODAY, "unpaid", now=FIXED_NOW)
    with pytest.raises(InvalidTransitionError):
        MarkPayment(db, child.Id, TODAY, "paid", now=FIXED_NOW)
    with pytest.raises(ValidationFailedError):
        MarkPayment(db, child.Id, TODAY, "pending", now=FIXED_NOW)


def test_undo_today_returns_child_to_unset(db, make_child):
    child = make_child()
    MarkAttendance(db, child.Id, TODAY, "present", now=FIXED_NOW)
    MarkPayment(db, child.Id, TODAY, "paid", now=FIXED_NOW)
    UndoDailyRecord(db, child.Id, TODAY, now=FIXED_NOW)
    assert GetDailyRecord(db, child.Id, TODAY) is None
    record = MarkAttendance(db, child.Id, TODAY, "absent", now=FIXED_NOW)
    assert record.AttendanceStatus == "absent"


def test_undo_is_limited_to_today(db, make_child):
    child = make_child()
    yesterday = TODAY - timedelta(days=1)
    MarkAttendance(db, child.Id, yesterday, "present", now=FIXED_NOW)
    with pytest.raises(ForbiddenError):
        UndoDailyRecord(db, child.Id, yesterday, now=FIXED_NOW)
    assert GetDailyRecord(db, child.Id, yesterday) is not None


def test_undo_without_record(db, make_child):
    child = make_child()
    with pytest.raises(NotFoundError):
        UndoDailyRecord(db, child.Id, TODAY, now=FIXED_NOW)


def test_roster_lists_admitted_children_with_their_record(db, make_child):
    amani = make_child(name="Amani")
    baraka = make_child(name="Baraka")
    make_child(name="Zawadi", admission_date=TODAY + timedelta(days=3))
    MarkAttendance(db, baraka.Id, TODAY, "present", now=FIXED_NOW)

    roster = ListDailyRoster(db, TODAY)
    assert [entry.Child.Name for entry in roster] == ["Amani", "Baraka"]
    assert roster[0].Child.Id == amani.Id
    assert roster[0].Record is None
    assert roster[1].Record.AttendanceStatus == "present"


def test_list_daily_records_filters_by_range(db, make_child):
    child = make_child()
    for offset in range(4):
        MarkAttendance(db, child.Id, TODAY - timedelta(days=offset), "present", now=FIXED_NOW)
    records = ListDailyRecords(
        db,
        child_id=child.Id,
        start_date=TODAY - timedelta(days=2),
        end_date=TODAY - timedelta(days=1),
    )
    assert [record.RecordDate for record in records] == [
        TODAY - timedelta(days=1),
        TODAY - timedelta(days=2),
    ]


def test_concurrent_marks_leave_a_single_row(db, make_child, monkeypatch):
    child = make_child()
    MarkAttendance(db, child.Id, TODAY, "absent", now=FIXED_NOW)
    # The second request loaded the day before the first one committed.
    monkeypatch.setattr(attendance_service, "GetDailyRecord", lambda *_args, **_kwargs: None)

    with pytest.raises(InvalidTransitionError):
        MarkAttendance(db, child.Id, TODAY, "present", now=FIXED_NOW)

    rows = (
        db.query(DailyRecord)
        .filter(DailyRecord.ChildId == child.Id, DailyRecord.RecordDate == TODAY)
        .all()
    )
    assert len(rows) == 1
    assert rows[0].AttendanceStatus == "absent"
    assert rows[0].DebtRemaining == Decimal("0.00")
