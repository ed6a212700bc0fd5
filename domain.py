# domain.py
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional

from errors import InvalidInputError


class PayType(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    MONTHLY = "monthly"
    SALARY = "salary"


class ShiftStatus(str, Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RecordStatus(str, Enum):
    COMPLETED = "completed"
    PLANNED = "planned"
    CANCELLED = "cancelled"


class RecordType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class PayOverrideType(str, Enum):
    """Values of the persisted `pay_override_type` column."""
    DEFAULT = "default"
    CUSTOM_HOURLY = "custom_hourly"
    CUSTOM_DAILY = "custom_daily"
    FIXED_AMOUNT = "fixed_amount"
    HOLIDAY_MULTIPLIER = "holiday_multiplier"


class ClockStatus(str, Enum):
    """Lifecycle of a shift relative to the wall clock."""
    NOT_STARTED = "notStarted"
    ACTIVE = "active"
    ENDED = "ended"


WORK = "work"
LEAVE_TYPES: FrozenSet[str] = frozenset(
    {"pto", "sick", "personal", "unpaid", "bereavement", "maternity", "paternity", "jury_duty"}
)
UNPAID_LEAVE = "unpaid"

FIXED_INCOME_PAY_TYPES = frozenset({PayType.MONTHLY, PayType.SALARY})


@dataclass
class Job:
    """A pay profile. Only the rate matching pay_type is meaningful."""
    pay_type: PayType = PayType.HOURLY
    hourly_rate: Optional[Decimal] = None
    daily_rate: Optional[Decimal] = None
    monthly_salary: Optional[Decimal] = None
    currency: str = "USD"
    show_in_fixed_income: bool = False
    is_active: bool = True
    name: str = ""
    id: Optional[int] = None

    def __post_init__(self):
        self.pay_type = PayType(self.pay_type)

    @property
    def is_fixed_income(self) -> bool:
        """Monthly/salary jobs flagged as fixed income are never priced per shift."""
        return self.pay_type in FIXED_INCOME_PAY_TYPES and self.show_in_fixed_income


@dataclass(frozen=True)
class PayOverride:
    """
    Per-shift pay override. Exactly one variant:
    DEFAULT (use the job), FIXED_AMOUNT, CUSTOM_HOURLY or CUSTOM_DAILY.
    The holiday multiplier is carried separately on the shift.
    """
    kind: PayOverrideType = PayOverrideType.DEFAULT
    value: Optional[Decimal] = None
    currency: Optional[str] = None

    @classmethod
    def none(cls, currency: Optional[str] = None) -> "PayOverride":
        return cls(PayOverrideType.DEFAULT, None, currency)

    @classmethod
    def fixed(cls, amount, currency: Optional[str] = None) -> "PayOverride":
        return cls(PayOverrideType.FIXED_AMOUNT, Decimal(str(amount)), currency)

    @classmethod
    def custom_hourly(cls, rate, currency: Optional[str] = None) -> "PayOverride":
        return cls(PayOverrideType.CUSTOM_HOURLY, Decimal(str(rate)), currency)

    @classmethod
    def custom_daily(cls, rate, currency: Optional[str] = None) -> "PayOverride":
        return cls(PayOverrideType.CUSTOM_DAILY, Decimal(str(rate)), currency)

    @classmethod
    def from_fields(
        cls,
        custom_hourly_rate=None,
        custom_daily_rate=None,
        holiday_fixed_amount=None,
        custom_currency: Optional[str] = None,
    ) -> "PayOverride":
        """Builds the variant from the flat persisted columns; the highest-precedence positive value wins."""
        if _positive(holiday_fixed_amount):
            return cls.fixed(holiday_fixed_amount, custom_currency)
        if _positive(custom_hourly_rate):
            return cls.custom_hourly(custom_hourly_rate, custom_currency)
        if _positive(custom_daily_rate):
            return cls.custom_daily(custom_daily_rate, custom_currency)
        return cls.none(custom_currency)


def _positive(value) -> bool:
    return value is not None and Decimal(str(value)) > 0


@dataclass
class Shift:
    """One logged interval of work or leave (a time entry)."""
    work_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    scheduled_hours: Optional[Decimal] = None
    actual_hours: Optional[Decimal] = None
    is_overnight: bool = False
    status: ShiftStatus = ShiftStatus.PLANNED
    shift_type: str = WORK
    job_id: Optional[int] = None
    # pay overrides
    custom_hourly_rate: Optional[Decimal] = None
    custom_daily_rate: Optional[Decimal] = None
    custom_currency: Optional[str] = None
    is_holiday: bool = False
    holiday_multiplier: Optional[Decimal] = None
    holiday_fixed_rate: Optional[Decimal] = None
    holiday_fixed_amount: Optional[Decimal] = None
    # earnings snapshot
    actual_earnings: Optional[Decimal] = None
    earnings_currency: Optional[str] = None
    earnings_manual_override: bool = False
    notes: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self):
        self.status = ShiftStatus(self.status)

    @property
    def pay_override(self) -> PayOverride:
        return PayOverride.from_fields(
            self.custom_hourly_rate,
            self.custom_daily_rate,
            self.holiday_fixed_amount,
            self.custom_currency,
        )

    @property
    def pay_override_type(self) -> PayOverrideType:
        """Tag persisted in `pay_override_type` for round-trips."""
        kind = self.pay_override.kind
        if kind == PayOverrideType.DEFAULT and self.is_holiday and self.holiday_multiplier:
            return PayOverrideType.HOLIDAY_MULTIPLIER
        return kind

    @property
    def is_leave(self) -> bool:
        return self.shift_type != WORK

    @property
    def iso_year_week(self) -> tuple[int, int]:
        """Returns (ISO year, ISO week number)."""
        iso = self.work_date.isocalendar()
        return (iso[0], iso[1])

    def merged(self, changes: Mapping[str, Any]) -> "Shift":
        """Returns a copy with `changes` applied over the current values."""
        unknown = set(changes) - SHIFT_FIELDS
        if unknown:
            raise InvalidInputError(f"Unknown shift field(s): {', '.join(sorted(unknown))}")
        return replace(self, **dict(changes))


SHIFT_FIELDS: FrozenSet[str] = frozenset(f.name for f in fields(Shift))

# Edits touching any of these re-price a non-manual shift.
PAY_RELEVANT_FIELDS: FrozenSet[str] = frozenset({
    "actual_hours",
    "scheduled_hours",
    "custom_hourly_rate",
    "is_holiday",
    "holiday_multiplier",
    "holiday_fixed_rate",
    "shift_type",
    "custom_daily_rate",
    "custom_currency",
    "holiday_fixed_amount",
    "job_id",
})


@dataclass(frozen=True)
class ShiftEditIntent:
    """
    What an edit changes, built by the caller.

    `changes` maps field name -> (old, new). `manual_earnings` is an explicit
    earnings value typed by the user; `clear_manual_override` is the
    "recalculate automatically" action.
    """
    changes: Mapping[str, tuple] = field(default_factory=dict)
    manual_earnings: Optional[Decimal] = None
    manual_currency: Optional[str] = None
    clear_manual_override: bool = False

    @classmethod
    def from_payload(
        cls,
        existing: Shift,
        payload: Mapping[str, Any],
        manual_earnings=None,
        manual_currency: Optional[str] = None,
        clear_manual_override: bool = False,
    ) -> "ShiftEditIntent":
        """
        Records every pay-relevant field present in `payload`, even when the
        value is unchanged, so re-submitting a form reprices at current rates.
        Other fields are recorded only when they differ from `existing`.
        """
        unknown = set(payload) - SHIFT_FIELDS
        if unknown:
            raise InvalidInputError(f"Unknown shift field(s): {', '.join(sorted(unknown))}")
        changes: Dict[str, tuple] = {}
        for name, new in payload.items():
            old = getattr(existing, name)
            if old != new or name in PAY_RELEVANT_FIELDS:
                changes[name] = (old, new)
        return cls(
            changes=changes,
            manual_earnings=None if manual_earnings is None else Decimal(str(manual_earnings)),
            manual_currency=manual_currency,
            clear_manual_override=clear_manual_override,
        )

    @property
    def changed_fields(self) -> FrozenSet[str]:
        return frozenset(self.changes)

    @property
    def new_values(self) -> Dict[str, Any]:
        return {name: new for name, (_old, new) in self.changes.items()}

    @property
    def pay_relevant_changed(self) -> bool:
        return bool(self.changed_fields & PAY_RELEVANT_FIELDS)


@dataclass(frozen=True)
class EarningsSnapshot:
    """The stored earnings triple of a shift."""
    actual_earnings: Optional[Decimal]
    earnings_manual_override: bool
    earnings_currency: Optional[str] = None


@dataclass
class FinancialRecord:
    """Standalone income/expense entry, independent of shift pricing."""
    type: RecordType
    amount: Decimal
    currency: Optional[str]
    record_date: date
    category: Optional[str] = None
    description: str = ""
    status: RecordStatus = RecordStatus.COMPLETED
    job_id: Optional[int] = None
    id: Optional[int] = None

    def __post_init__(self):
        self.type = RecordType(self.type)
        self.status = RecordStatus(self.status)


@dataclass(frozen=True)
class Period:
    """Inclusive date range used to filter reports."""
    start: date
    end: date

    @classmethod
    def month(cls, year: int, month: int) -> "Period":
        first = date(year, month, 1)
        nxt = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
        return cls(first, nxt - timedelta(days=1))

    def contains(self, d: Optional[date]) -> bool:
        return d is not None and self.start <= d <= self.end

    def months(self) -> list[tuple[int, int]]:
        """Calendar months (year, month) touched by the range."""
        out = []
        y, m = self.start.year, self.start.month
        while (y, m) <= (self.end.year, self.end.month):
            out.append((y, m))
            y, m = (y + 1, 1) if m == 12 else (y, m + 1)
        return out


@dataclass(frozen=True)
class ShiftWindow:
    """Result of classifying a shift against "now"."""
    start_datetime: datetime
    end_datetime: datetime
    status: ClockStatus
    is_overnight: bool


@dataclass(frozen=True)
class ActiveShift:
    """Derived, never persisted."""
    entry: Shift
    start_datetime: datetime
    end_datetime: datetime
    status: ClockStatus


@dataclass(frozen=True)
class Countdown:
    remaining_ms: int
    hours: int
    minutes: int
    seconds: int
