from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from daycare.modules.attendance.models import DailyRecord
from daycare.modules.attendance.services import rollover_service
from daycare.modules.attendance.services.attendance_service import (
    GetDailyRecord,
    MarkAttendance,
    MarkPayment,
)
from daycare.modules.attendance.services.errors import PreconditionFailedError
from daycare.modules.attendance.services.ledger_service import GetTotalDebt, SettlePartial
from daycare.modules.attendance.services.rollover_service import (
    NOTE_AUTO_UNPAID,
    NOTE_SYNTHETIC_ABSENT,
    DefaultRolloverDate,
    ListRolloverRuns,
    RunDailyRollover,
)
from conftest import FIXED_NOW, TODAY

YESTERDAY = TODAY - timedelta(days=1)


def test_default_rollover_date_is_yesterday():
    assert DefaultRolloverDate(FIXED_NOW) == YESTERDAY


def test_rollover_marks_missing_children_absent(db, make_child):
    child = make_child()
    result = RunDailyRollover(db, now=FIXED_NOW)

    assert result.TargetDate == YESTERDAY
    assert result.MarkedAbsent == 1
    record = GetDailyRecord(db, child.Id, YESTERDAY)
    assert record.AttendanceStatus == "absent"
    assert record.PaymentStatus == "unpaid"
    assert record.AmountDue == Decimal("0.00")
    assert record.Note == NOTE_SYNTHETIC_ABSENT


def test_rollover_turns_pending_fee_into_debt(db, make_child):
    child = make_child(daily_fee="150.00")
    MarkAttendance(db, child.Id, YESTERDAY, "present", now=FIXED_NOW)

    result = RunDailyRollover(db, target_date=YESTERDAY, now=FIXED_NOW)

    assert result.MarkedUnpaid == 1
    record = GetDailyRecord(db, child.Id, YESTERDAY)
    assert record.PaymentStatus == "unpaid"
    assert record.DebtRemaining == Decimal("150.00")
    assert record.Note == NOTE_AUTO_UNPAID
    assert GetTotalDebt(db, child.Id) == Decimal("150.00")


def test_rollover_leaves_resolved_days_alone(db, make_child):
    paid = make_child(name="Paid")
    absent = make_child(name="Absent")
    MarkAttendance(db, paid.Id, YESTERDAY, "present", now=FIXED_NOW)
    MarkPayment(db, paid.Id, YESTERDAY, "paid", now=FIXED_NOW)
    MarkAttendance(db, absent.Id, YESTERDAY, "absent", now=FIXED_NOW)

    result = RunDailyRollover(db, target_date=YESTERDAY, now=FIXED_NOW)

    assert result.Skipped == 2
    assert result.MarkedAbsent == 0
    assert result.MarkedUnpaid == 0
    assert GetDailyRecord(db, paid.Id, YESTERDAY).PaymentStatus == "paid"
    assert GetDailyRecord(db, absent.Id, YESTERDAY).Note is None


def test_rollover_is_idempotent(db, make_child):
    first_child = make_child(name="Amani")
    second_child = make_child(name="Baraka")
    MarkAttendance(db, first_child.Id, YESTERDAY, "present", now=FIXED_NOW)

    first = RunDailyRollover(db, target_date=YESTERDAY, now=FIXED_NOW)
    second = RunDailyRollover(db, target_date=YESTERDAY, now=FIXED_NOW)

    assert (first.MarkedAbsent, first.MarkedUnpaid) == (1, 1)
    assert (second.MarkedAbsent, second.MarkedUnpaid, second.Skipped) == (0, 0, 2)
    assert GetTotalDebt(db, first_child.Id) == Decimal("150.00")
    assert GetDailyRecord(db, second_child.Id, YESTERDAY).AttendanceStatus == "absent"


def test_rollover_skips_children_admitted_later(db, make_child):
    make_child(admission_date=TODAY)
    result = RunDailyRollover(db, target_date=YESTERDAY, now=FIXED_NOW)
    assert result.Attempted == 0


def test_rollover_refuses_today_or_later(db, make_child):
    make_child()
    with pytest.raises(PreconditionFailedError):
        RunDailyRollover(db, target_date=TODAY, now=FIXED_NOW)


def test_rollover_failure_for_one_child_does_not_stop_the_batch(db, make_child, monkeypatch):
    broken = make_child(name="Broken")
    healthy = make_child(name="Healthy")
    original = rollover_service._ReconcileChild

    def _flaky(session, child, target_date, now):
        if child.Id == broken.Id:
            raise OperationalError("INSERT INTO daily_records", {}, Exception("connection reset"))
        return original(session, child, target_date, now)

    monkeypatch.setattr(rollover_service, "_ReconcileChild", _flaky)

    result = RunDailyRollover(db, target_date=YESTERDAY, now=FIXED_NOW)

    assert result.Attempted == 2
    assert result.Failed == 1
    assert result.FailedChildIds == [broken.Id]
    assert result.MarkedAbsent == 1
    assert GetDailyRecord(db, healthy.Id, YESTERDAY) is not None
    assert GetDailyRecord(db, broken.Id, YESTERDAY) is None


def test_rollover_records_an_audit_row(db, make_child):
    make_child()
    RunDailyRollover(db, target_date=YESTERDAY, trigger="manual", now=FIXED_NOW)
    runs = ListRolloverRuns(db)
    assert len(runs) == 1
    assert runs[0].TargetDate == YESTERDAY
    assert runs[0].TriggeredBy == "manual"
    assert runs[0].MarkedAbsent == 1
    assert runs[0].ErrorMessage is None


def test_rollover_audit_can_be_disabled(db, make_child, monkeypatch):
    make_child()
    monkeypatch.setattr(rollover_service.Settings, "RolloverAuditEnabled", False)
    RunDailyRollover(db, target_date=YESTERDAY, now=FIXED_NOW)
    assert ListRolloverRuns(db) == []


def test_rollover_keeps_partial_settlement_on_open_day(db, make_child):
    child = make_child(daily_fee="150.00")
    MarkAttendance(db, child.Id, YESTERDAY, "present", now=FIXED_NOW)
    SettlePartial(db, child.Id, "100", actor_user_id=7, now=FIXED_NOW)

    result = RunDailyRollover(db, target_date=YESTERDAY, now=FIXED_NOW)

    assert result.MarkedUnpaid == 1
    record = GetDailyRecord(db, child.Id, YESTERDAY)
    assert record.PaymentStatus == "unpaid"
    assert record.DebtRemaining == Decimal("50.00")
    assert GetTotalDebt(db, child.Id) == Decimal("50.00")


def test_rollover_counts_insert_collision_as_resolved(db, make_child, monkeypatch):
    child = make_child()
    MarkAttendance(db, child.Id, YESTERDAY, "absent", now=FIXED_NOW)
    # The batch read the day before the late mark committed.
    monkeypatch.setattr(rollover_service, "GetDailyRecord", lambda *_args, **_kwargs: None)

    result = RunDailyRollover(db, target_date=YESTERDAY, now=FIXED_NOW)

    assert (result.Succeeded, result.Skipped, result.MarkedAbsent, result.Failed) == (1, 1, 0, 0)
    rows = db.query(DailyRecord).filter(DailyRecord.ChildId == child.Id).all()
    assert len(rows) == 1
    assert rows[0].Note is None


def test_scheduled_rollover_retries_a_day_left_with_failures(db, make_child, monkeypatch):
    broken = make_child(name="Broken")
    healthy = make_child(name="Healthy")
    original = rollover_service._ReconcileChild
    outage = {"active": True}

    def _flaky(session, child, target_date, now):
        if outage["active"] and child.Id == broken.Id:
            raise OperationalError("INSERT INTO daily_records", {}, Exception("connection reset"))
        return original(session, child, target_date, now)

    monkeypatch.setattr(rollover_service, "_ReconcileChild", _flaky)
    first = RunDailyRollover(db, now=FIXED_NOW)
    assert first.FailedChildIds == [broken.Id]
    assert GetDailyRecord(db, broken.Id, YESTERDAY) is None

    outage["active"] = False
    next_night = FIXED_NOW + timedelta(days=1)
    second = RunDailyRollover(db, now=next_night)

    assert second.TargetDate == TODAY
    assert [retry.TargetDate for retry in second.Retried] == [YESTERDAY]
    retry = second.Retried[0]
    assert (retry.MarkedAbsent, retry.Skipped, retry.Failed) == (1, 1, 0)
    assert GetDailyRecord(db, broken.Id, YESTERDAY).Note == NOTE_SYNTHETIC_ABSENT
    assert GetDailyRecord(db, healthy.Id, YESTERDAY).AttendanceStatus == "absent"
    assert second.MarkedAbsent == 2

    third = RunDailyRollover(db, now=next_night)
    assert third.Retried == []


def test_manual_rollover_does_not_retry_earlier_days(db, make_child, monkeypatch):
    broken = make_child(name="Broken")
    original = rollover_service._ReconcileChild

    def _failing(session, child, target_date, now):
        raise OperationalError("INSERT INTO daily_records", {}, Exception("connection reset"))

    monkeypatch.setattr(rollover_service, "_ReconcileChild", _failing)
    RunDailyRollover(db, now=FIXED_NOW)
    monkeypatch.setattr(rollover_service, "_ReconcileChild", original)

    result = RunDailyRollover(db, trigger="manual", now=FIXED_NOW + timedelta(days=1))

    assert result.Retried == []
    assert GetDailyRecord(db, broken.Id, YESTERDAY) is None


def test_retry_ignores_failed_days_outside_the_window(db, make_child, monkeypatch):
    make_child(admission_date=TODAY - timedelta(days=60))

    def _failing(session, child, target_date, now):
        raise OperationalError("INSERT INTO daily_records", {}, Exception("connection reset"))

    original = rollover_service._ReconcileChild
    monkeypatch.setattr(rollover_service, "_ReconcileChild", _failing)
    RunDailyRollover(db, target_date=TODAY - timedelta(days=30), now=FIXED_NOW)
    monkeypatch.setattr(rollover_service, "_ReconcileChild", original)
    monkeypatch.setattr(rollover_service.Settings, "RolloverRetryDays", 7)

    assert rollover_service.ListRetryDates(db, YESTERDAY) == []
