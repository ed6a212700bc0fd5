"""Persistence round-trips and the time-entry service on a temporary SQLite database."""

from dataclasses import replace
from datetime import date, datetime, time
from decimal import Decimal

import pytest
from sqlmodel import Session, select

from domain import ClockStatus, FinancialRecord, Job, PayType, RecordType, Shift, ShiftStatus
from errors import JobHasShiftsError, RecordNotFoundError
from repository import ShiftDB
from services import TimeEntryService


@pytest.fixture
def job(store):
    return store.jobs.add(Job(pay_type=PayType.HOURLY, hourly_rate=Decimal("20"), currency="USD", name="Cafe"))


@pytest.fixture
def service(store):
    return TimeEntryService(store.shifts, store.jobs, clock=lambda: datetime(2024, 3, 3, 20, 0))


class TestShiftRepository:
    def test_round_trip_keeps_every_field(self, store, job):
        shift = Shift(
            work_date=date(2024, 3, 4),
            start_time=time(23, 0),
            end_time=time(7, 0),
            scheduled_hours=Decimal("8"),
            actual_hours=Decimal("7.5"),
            is_overnight=True,
            status=ShiftStatus.COMPLETED,
            job_id=job.id,
            custom_hourly_rate=Decimal("22.50"),
            custom_currency="EUR",
            is_holiday=True,
            holiday_multiplier=Decimal("1.5"),
            actual_earnings=Decimal("253.13"),
            earnings_currency="EUR",
            earnings_manual_override=True,
            notes="night",
        )
        stored = store.shifts.add(shift)
        assert stored.id is not None
        assert store.shifts.get(stored.id) == replace(shift, id=stored.id)

    def test_fractional_multiplier_keeps_its_precision(self, store, service, job):
        stored = store.shifts.add(
            Shift(
                work_date=date(2024, 3, 4), job_id=job.id, actual_hours=Decimal("2"),
                is_holiday=True, holiday_multiplier=Decimal("1.333"),
            )
        )
        assert store.shifts.get(stored.id).holiday_multiplier == Decimal("1.333")
        repriced = service.update_entry(stored.id, {"actual_hours": Decimal("3")})
        assert repriced.actual_earnings == Decimal("79.98")

    def test_override_tag_is_persisted(self, store, job):
        stored = store.shifts.add(Shift(work_date=date(2024, 3, 4), job_id=job.id, custom_daily_rate=Decimal("90")))
        with Session(store.engine) as session:
            assert session.get(ShiftDB, stored.id).pay_override_type == "custom_daily"

    def test_list_between_filters_dates_and_status(self, store, job):
        for d, status in [(4, ShiftStatus.PLANNED), (5, ShiftStatus.COMPLETED), (9, ShiftStatus.PLANNED)]:
            store.shifts.add(Shift(work_date=date(2024, 3, d), status=status, job_id=job.id))
        found = store.shifts.list_between(date(2024, 3, 4), date(2024, 3, 5), statuses=[ShiftStatus.PLANNED])
        assert [s.work_date for s in found] == [date(2024, 3, 4)]
        assert len(store.shifts.list_between(date(2024, 3, 1), date(2024, 3, 31))) == 3

    def test_update_and_delete_missing(self, store):
        with pytest.raises(RecordNotFoundError):
            store.shifts.update(Shift(id=404))
        with pytest.raises(RecordNotFoundError):
            store.shifts.delete(404)


class TestJobRepository:
    def test_delete_refused_while_shifts_exist(self, store, job):
        store.shifts.add(Shift(work_date=date(2024, 3, 4), job_id=job.id))
        with pytest.raises(JobHasShiftsError) as exc:
            store.jobs.delete(job.id)
        assert exc.value.shift_count == 1

        store.jobs.delete(job.id, delete_entries=True)
        assert store.jobs.get(job.id) is None
        assert store.shifts.list_between(date(2024, 3, 1), date(2024, 3, 31)) == []

    def test_archive_hides_from_active(self, store, job):
        store.jobs.archive(job.id)
        assert store.jobs.list_active() == []
        assert store.jobs.unarchive(job.id).is_active

    def test_missing_job(self, store):
        with pytest.raises(RecordNotFoundError):
            store.jobs.archive(99)


def test_financial_records(store):
    store.records.add(FinancialRecord(RecordType.EXPENSE, Decimal("12.30"), "EUR", date(2024, 3, 2), "Food"))
    store.records.add(FinancialRecord(RecordType.INCOME, Decimal("40"), "EUR", date(2024, 3, 9)))
    found = store.records.list_between(date(2024, 3, 1), date(2024, 3, 31))
    assert [r.record_date for r in found] == [date(2024, 3, 9), date(2024, 3, 2)]
    assert found[1].type == RecordType.EXPENSE
    assert found[1].amount == Decimal("12.30")


class TestTimeEntryService:
    def test_create_derives_times_and_snapshots_earnings(self, service, job):
        created = service.create_entry(
            Shift(work_date=date(2024, 3, 3), start_time=time(23, 0), end_time=time(7, 0), job_id=job.id)
        )
        assert created.is_overnight
        assert created.scheduled_hours == Decimal("8")
        assert created.actual_earnings == Decimal("160.00")
        assert created.earnings_currency == "USD"
        assert created.status == ShiftStatus.PLANNED

    def test_past_planned_shift_becomes_completed(self, service, job):
        created = service.create_entry(
            Shift(work_date=date(2024, 3, 1), start_time=time(9), end_time=time(13), job_id=job.id)
        )
        assert created.status == ShiftStatus.COMPLETED

    def test_leave_entry_keeps_markers(self, service, job):
        created = service.create_entry(
            Shift(work_date=date(2024, 3, 3), start_time=time(0), end_time=time(0), shift_type="sick", job_id=job.id)
        )
        assert not created.is_overnight
        assert created.scheduled_hours is None

    def test_update_reprices_or_not(self, service, job):
        created = service.create_entry(
            Shift(work_date=date(2024, 3, 3), start_time=time(9), end_time=time(17), job_id=job.id)
        )
        noted = service.update_entry(created.id, {"notes": "busy"})
        assert noted.actual_earnings == Decimal("160.00")
        assert noted.notes == "busy"

        worked = service.update_entry(created.id, {"actual_hours": Decimal("5")})
        assert worked.actual_earnings == Decimal("100.00")

    def test_manual_earnings_survive_edits(self, service, job):
        created = service.create_entry(
            Shift(work_date=date(2024, 3, 3), start_time=time(9), end_time=time(17), job_id=job.id),
            manual_earnings=Decimal("300"),
        )
        edited = service.update_entry(created.id, {"actual_hours": Decimal("2")})
        assert edited.actual_earnings == Decimal("300.00")
        assert edited.earnings_manual_override

        reset = service.update_entry(created.id, {}, clear_manual_override=True)
        assert reset.actual_earnings == Decimal("40.00")
        assert not reset.earnings_manual_override

    def test_moving_end_time_rederives_hours_and_reprices(self, service, job):
        created = service.create_entry(
            Shift(work_date=date(2024, 3, 3), start_time=time(9), end_time=time(17), job_id=job.id)
        )
        moved = service.update_entry(created.id, {"end_time": time(19)})
        assert moved.scheduled_hours == Decimal("10")
        assert moved.actual_earnings == Decimal("200.00")

    def test_moving_into_overnight(self, service, job):
        created = service.create_entry(
            Shift(work_date=date(2024, 3, 3), start_time=time(9), end_time=time(17), job_id=job.id)
        )
        moved = service.update_entry(created.id, {"start_time": time(22), "end_time": time(6)})
        assert moved.is_overnight
        assert moved.scheduled_hours == Decimal("8")

    def test_explicit_scheduled_hours_win_over_times(self, service, job):
        created = service.create_entry(
            Shift(work_date=date(2024, 3, 3), start_time=time(9), end_time=time(17), job_id=job.id)
        )
        moved = service.update_entry(created.id, {"end_time": time(19), "scheduled_hours": Decimal("9")})
        assert moved.scheduled_hours == Decimal("9")
        assert moved.actual_earnings == Decimal("180.00")

    def test_update_missing_shift(self, service):
        with pytest.raises(RecordNotFoundError):
            service.update_entry(404, {"notes": "x"})

    def test_preview_has_no_side_effects(self, service, store, job):
        preview = service.expected_earnings_preview(Shift(scheduled_hours=Decimal("3"), job_id=job.id))
        assert preview.amount == Decimal("60.00")
        assert store.shifts.list_between(date(2000, 1, 1), date(2100, 1, 1)) == []

    def test_current_shift_finds_overnight_from_yesterday(self, service, job):
        service.create_entry(Shift(work_date=date(2024, 3, 3), start_time=time(22), end_time=time(6), job_id=job.id))
        current = service.current_shift(now=datetime(2024, 3, 4, 5, 0))
        assert current.status == ClockStatus.ACTIVE
        assert current.end_datetime == datetime(2024, 3, 4, 6, 0)
        assert service.current_shift(now=datetime(2024, 3, 4, 7, 0)) is None
