# services.py
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional, Union

from config import DEFAULT_CURRENCY, now_local
from domain import (
    ActiveShift,
    EarningsSnapshot,
    Job,
    PayOverrideType,
    PayType,
    Shift,
    ShiftEditIntent,
    ShiftStatus,
    UNPAID_LEAVE,
)
from errors import InvalidInputError, RecordNotFoundError
from money import ZERO, multiply, round_amount, to_decimal
from shift_clock import derive_scheduled_hours, find_active_shift, is_overnight

logger = logging.getLogger(__name__)

ONE = Decimal(1)


@dataclass(frozen=True)
class PayResolution:
    """Earnings of one shift, the currency they are in and which rule produced them."""
    amount: Decimal
    currency: str
    source: str


def _positive(value) -> Optional[Decimal]:
    """Returns the value as Decimal when it is a positive number, else None."""
    if value is None:
        return None
    d = to_decimal(value)
    return d if d > 0 else None


class PayCalculator:
    """
    Business rules for pricing a single shift.

    Precedence (first match wins):
      fixed-income job -> None
      fixed override amount
      unpaid leave -> 0
      holiday fixed hourly rate (multiplier ignored)
      custom hourly/daily rate (x holiday multiplier)
      job default rate for its pay type (x holiday multiplier)
    """

    def __init__(self, default_currency: str = DEFAULT_CURRENCY):
        self.default_currency = default_currency

    def resolve(self, shift: Shift, job: Optional[Job] = None, hours=None) -> Optional[PayResolution]:
        """Returns None when nothing is calculable yet; never 0 for "unknown"."""
        if job is not None and job.is_fixed_income:
            return None

        override = shift.pay_override
        currency = override.currency or (job.currency if job is not None else None) or self.default_currency
        worked = self._hours(shift, hours)

        if override.kind == PayOverrideType.FIXED_AMOUNT:
            return self._result(override.value, currency, "fixed_amount")

        # rate-based branches pay nothing on unpaid leave
        if shift.shift_type == UNPAID_LEAVE:
            return self._result(ZERO, currency, "unpaid_leave")

        holiday_rate = _positive(shift.holiday_fixed_rate) if shift.is_holiday else None
        if holiday_rate is not None:
            return self._hourly(worked, holiday_rate, ONE, currency, "holiday_fixed_rate")

        multiplier = self._multiplier(shift)
        if override.kind == PayOverrideType.CUSTOM_HOURLY:
            return self._hourly(worked, override.value, multiplier, currency, "custom_hourly")
        if override.kind == PayOverrideType.CUSTOM_DAILY:
            return self._result(multiply(override.value, multiplier), currency, "custom_daily")

        if job is None:
            return None
        if job.pay_type == PayType.HOURLY:
            rate = _positive(job.hourly_rate)
            if rate is None:
                return None
            return self._hourly(worked, rate, multiplier, currency, "job_hourly")
        if job.pay_type == PayType.DAILY:
            rate = _positive(job.daily_rate)
            if rate is None:
                return None
            return self._result(multiply(rate, multiplier), currency, "job_daily")
        # monthly/salary jobs not flagged as fixed income have no per-shift rate
        return None

    @staticmethod
    def _hours(shift: Shift, hours) -> Optional[Decimal]:
        if hours is None:
            hours = shift.actual_hours if shift.actual_hours is not None else shift.scheduled_hours
        return None if hours is None else to_decimal(hours)

    @staticmethod
    def _multiplier(shift: Shift) -> Decimal:
        if shift.is_holiday:
            m = _positive(shift.holiday_multiplier)
            if m is not None:
                return m
        return ONE

    def _hourly(self, hours, rate, multiplier, currency, source) -> Optional[PayResolution]:
        if hours is None or hours <= 0:
            return None
        return self._result(multiply(multiply(hours, rate), multiplier), currency, source)

    @staticmethod
    def _result(amount, currency, source) -> PayResolution:
        logger.debug("Shift priced by %s: %s %s", source, amount, currency)
        return PayResolution(round_amount(amount, 2), currency, source)


_calculator = PayCalculator()


def resolve_pay(shift: Shift, job: Optional[Job] = None, hours=None) -> Optional[PayResolution]:
    return _calculator.resolve(shift, job, hours)


def resolve_earnings(shift: Shift, job: Optional[Job] = None, hours=None) -> Optional[Decimal]:
    """Earnings amount of a shift, or None when not calculable."""
    resolution = _calculator.resolve(shift, job, hours)
    return resolution.amount if resolution is not None else None


class EarningsSnapshotPolicy:
    """
    Decides what goes into actual_earnings / earnings_manual_override.

    Earnings are computed once and stored. A manual value is never repriced
    by later edits until the user clears the override.
    """

    def __init__(self, calculator: Optional[PayCalculator] = None):
        self.calculator = calculator or _calculator

    def on_create(
        self,
        shift: Shift,
        job: Optional[Job],
        manual_earnings=None,
        manual_currency: Optional[str] = None,
    ) -> EarningsSnapshot:
        if manual_earnings is not None:
            return self._manual(shift, job, manual_earnings, manual_currency)
        if job is None:
            return EarningsSnapshot(None, False, None)
        return self._computed(shift, job)

    def on_edit(self, existing: Shift, intent: ShiftEditIntent, job: Optional[Job]) -> EarningsSnapshot:
        if intent.manual_earnings is not None:
            return self._manual(existing, job, intent.manual_earnings, intent.manual_currency)

        recompute = intent.clear_manual_override or (
            intent.pay_relevant_changed and not existing.earnings_manual_override
        )
        if not recompute:
            return EarningsSnapshot(
                existing.actual_earnings,
                existing.earnings_manual_override,
                existing.earnings_currency,
            )

        merged = existing.merged(intent.new_values)
        logger.debug("Repricing shift %s after edit of %s", existing.id, sorted(intent.changed_fields))
        if job is None:
            return EarningsSnapshot(None, False, None)
        return self._computed(merged, job)

    def _computed(self, shift: Shift, job: Job) -> EarningsSnapshot:
        if job.is_fixed_income:
            return EarningsSnapshot(None, False, None)
        resolution = self.calculator.resolve(shift, job)
        if resolution is None:
            return EarningsSnapshot(None, False, None)
        return EarningsSnapshot(resolution.amount, False, resolution.currency)

    def _manual(self, shift: Shift, job: Optional[Job], amount, currency: Optional[str]) -> EarningsSnapshot:
        currency = (
            currency
            or shift.custom_currency
            or (job.currency if job is not None else None)
            or self.calculator.default_currency
        )
        return EarningsSnapshot(round_amount(amount, 2), True, currency)


_policy = EarningsSnapshotPolicy()


def apply_snapshot_policy(
    existing: Optional[Shift],
    payload: Union[Shift, ShiftEditIntent, Mapping[str, Any]],
    job: Optional[Job] = None,
) -> EarningsSnapshot:
    """
    Create when `existing` is None (payload: the new Shift, or an intent whose
    changes are its fields); edit otherwise (payload: an intent or a mapping
    of new field values).
    """
    if existing is None:
        if isinstance(payload, Shift):
            return _policy.on_create(payload, job)
        if isinstance(payload, ShiftEditIntent):
            return _policy.on_create(
                Shift().merged(payload.new_values), job, payload.manual_earnings, payload.manual_currency
            )
        raise InvalidInputError(f"Cannot create a shift from {type(payload).__name__}")

    if isinstance(payload, ShiftEditIntent):
        return _policy.on_edit(existing, payload, job)
    if isinstance(payload, Mapping):
        return _policy.on_edit(existing, ShiftEditIntent.from_payload(existing, payload), job)
    raise InvalidInputError(f"Cannot edit a shift with {type(payload).__name__}")


class TimeEntryService:
    """Creates and edits time entries, snapshotting their earnings on the way in."""

    def __init__(
        self,
        shifts,
        jobs,
        policy: Optional[EarningsSnapshotPolicy] = None,
        clock: Callable[[], datetime] = now_local,
    ):
        self.shifts = shifts
        self.jobs = jobs
        self.policy = policy or _policy
        self.clock = clock

    def _job(self, job_id: Optional[int]) -> Optional[Job]:
        return self.jobs.get(job_id) if job_id is not None else None

    def _with_times(self, shift: Shift) -> Shift:
        if shift.is_leave or shift.start_time is None or shift.end_time is None:
            return shift
        changes = {"is_overnight": is_overnight(shift.start_time, shift.end_time)}
        if shift.scheduled_hours is None:
            changes["scheduled_hours"] = derive_scheduled_hours(shift.start_time, shift.end_time)
        return replace(shift, **changes)

    @staticmethod
    def _with_rescheduled_hours(existing: Shift, changes: Mapping[str, Any]) -> Mapping[str, Any]:
        """Moved start/end times imply new scheduled hours unless the edit sets them."""
        if "scheduled_hours" in changes:
            return changes
        moved = any(
            name in changes and changes[name] != getattr(existing, name)
            for name in ("start_time", "end_time")
        )
        if not moved:
            return changes
        candidate = existing.merged(changes)
        if candidate.is_leave or candidate.start_time is None or candidate.end_time is None:
            return changes
        return {**changes, "scheduled_hours": derive_scheduled_hours(candidate.start_time, candidate.end_time)}

    def create_entry(self, shift: Shift, manual_earnings=None, manual_currency: Optional[str] = None) -> Shift:
        shift = self._with_times(shift)
        today = self.clock().date()
        if shift.status == ShiftStatus.PLANNED and shift.work_date is not None and shift.work_date < today:
            shift = replace(shift, status=ShiftStatus.COMPLETED)  # past shifts default to completed

        snapshot = self.policy.on_create(shift, self._job(shift.job_id), manual_earnings, manual_currency)
        stored = self.shifts.add(replace(shift, **asdict(snapshot)))
        logger.info("Created shift %s on %s (earnings %s)", stored.id, stored.work_date, stored.actual_earnings)
        return stored

    def update_entry(
        self,
        shift_id: int,
        changes: Mapping[str, Any],
        manual_earnings=None,
        manual_currency: Optional[str] = None,
        clear_manual_override: bool = False,
    ) -> Shift:
        existing = self.shifts.get(shift_id)
        if existing is None:
            raise RecordNotFoundError("Shift", shift_id)

        changes = self._with_rescheduled_hours(existing, changes)
        intent = ShiftEditIntent.from_payload(
            existing, changes, manual_earnings, manual_currency, clear_manual_override
        )
        updated = self._with_times(existing.merged(intent.new_values))
        snapshot = self.policy.on_edit(existing, intent, self._job(updated.job_id))
        stored = self.shifts.update(replace(updated, **asdict(snapshot)))
        logger.info("Updated shift %s: %s", shift_id, sorted(intent.changed_fields))
        return stored

    def delete_entry(self, shift_id: int) -> None:
        self.shifts.delete(shift_id)

    def expected_earnings_preview(self, shift: Shift, job: Optional[Job] = None) -> Optional[PayResolution]:
        """Live form preview. No side effects, safe to call on every keystroke."""
        if job is None:
            job = self._job(shift.job_id)
        return self.policy.calculator.resolve(shift, job)

    def current_shift(self, now: Optional[datetime] = None) -> Optional[ActiveShift]:
        """Today's shift to count down (yesterday's overnight shifts included)."""
        now = now or self.clock()
        today = now.date()
        entries = self.shifts.list_between(
            today - timedelta(days=1),
            today,
            statuses=(ShiftStatus.PLANNED, ShiftStatus.IN_PROGRESS),
        )
        return find_active_shift(entries, now)


__all__ = [
    "PayResolution", "PayCalculator", "resolve_pay", "resolve_earnings",
    "EarningsSnapshotPolicy", "apply_snapshot_policy", "TimeEntryService",
]
