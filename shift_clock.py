# shift_clock.py
"""
Shift-time arithmetic: overnight detection, scheduled hours, lifecycle
status against a wall clock, and the live countdown.

Nothing here keeps state between calls; every function takes "now"
explicitly so callers can re-run it on each timer tick.
"""
from __future__ import annotations

import logging
import time as _time
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, Optional, Union

from config import COUNTDOWN_TICK_SECONDS, DEFAULT_OVERNIGHT_HOURS, HOURS_ROUNDING_STEP, now_local
from domain import ActiveShift, ClockStatus, Countdown, Shift, ShiftStatus, ShiftWindow, WORK
from errors import InvalidInputError

logger = logging.getLogger(__name__)

TimeLike = Union[time, str]
ONE_DAY = timedelta(days=1)
ONE_MS = timedelta(milliseconds=1)


def parse_hhmm(s: str) -> time | None:
    """'07:30' -> time(7, 30); anything else -> None."""
    try:
        hh, mm = s.strip().split(":")[:2]
        return time(int(hh), int(mm))
    except (AttributeError, ValueError):
        return None


def _as_time(value: TimeLike) -> time:
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, time):
        return value
    parsed = parse_hhmm(value) if isinstance(value, str) else None
    if parsed is None:
        raise InvalidInputError(f"Expected a time of day (HH:MM), got {value!r}")
    return parsed


def is_overnight(start: TimeLike, end: TimeLike) -> bool:
    """End at or before start on the same day means the shift ends tomorrow."""
    return _as_time(end) <= _as_time(start)


def round_to_step(hours, step=HOURS_ROUNDING_STEP) -> Decimal:
    """Rounds hours to the nearest step (0.5 h by default), halves rounding up."""
    step = Decimal(str(step))
    units = (Decimal(str(hours)) / step).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return (units * step).quantize(Decimal("0.1"))


def derive_scheduled_hours(start: TimeLike, end: TimeLike) -> Decimal:
    """
    Duration between two times of day, rolled over midnight when needed and
    rounded to the nearest half hour. Equal times are a 24 h shift.
    """
    base = date(2000, 1, 1)
    t0 = datetime.combine(base, _as_time(start))
    t1 = datetime.combine(base, _as_time(end))
    if t1 <= t0:
        t1 += ONE_DAY  # passed midnight
    hours = Decimal(int((t1 - t0).total_seconds())) / Decimal(3600)
    return round_to_step(hours)


def calculate_actual_hours(start: datetime, end: datetime) -> float:
    """Hours elapsed between two timestamps."""
    return (end - start).total_seconds() / 3600.0


def _status(start_dt: datetime, end_dt: datetime, now: datetime) -> ClockStatus:
    if now < start_dt:
        return ClockStatus.NOT_STARTED
    if now >= end_dt:
        return ClockStatus.ENDED
    return ClockStatus.ACTIVE


def _window_on(anchor: date, start: time, end: Optional[time], hours, tz) -> tuple[datetime, datetime]:
    start_dt = datetime.combine(anchor, start, tzinfo=tz)
    if end is None:
        return start_dt, start_dt + timedelta(hours=float(hours or DEFAULT_OVERNIGHT_HOURS))
    end_dt = datetime.combine(anchor, end, tzinfo=tz)
    if end_dt <= start_dt:
        end_dt += ONE_DAY
    return start_dt, end_dt


def classify_shift(
    start: Union[TimeLike, datetime],
    end: Union[TimeLike, datetime, None],
    now: datetime,
    on_date: Optional[date] = None,
    scheduled_hours=None,
) -> ShiftWindow:
    """
    Places a shift on the calendar and derives its status at `now`.

    `start`/`end` are times of day ("HH:MM" or `time`) or full timestamps.
    When `end` is None the end is start + `scheduled_hours`. Without
    `on_date` a time-of-day shift is anchored on today, or on yesterday when
    yesterday's overnight occurrence is still running.
    """
    if isinstance(start, datetime):
        start_dt = start
        if end is None:
            end_dt = start_dt + timedelta(hours=float(scheduled_hours or DEFAULT_OVERNIGHT_HOURS))
        else:
            end_dt = end if isinstance(end, datetime) else datetime.combine(start_dt.date(), _as_time(end), tzinfo=start_dt.tzinfo)
            if end_dt <= start_dt:
                end_dt += ONE_DAY
    else:
        s = _as_time(start)
        e = None if end is None else _as_time(end)
        tz = now.tzinfo
        if on_date is not None:
            start_dt, end_dt = _window_on(on_date, s, e, scheduled_hours, tz)
        else:
            today = now.date()
            start_dt, end_dt = _window_on(today - ONE_DAY, s, e, scheduled_hours, tz)
            if now > end_dt:
                start_dt, end_dt = _window_on(today, s, e, scheduled_hours, tz)

    return ShiftWindow(
        start_datetime=start_dt,
        end_datetime=end_dt,
        status=_status(start_dt, end_dt, now),
        is_overnight=end_dt.date() > start_dt.date(),
    )


def classify_entry(entry: Shift, now: datetime) -> Optional[ActiveShift]:
    """Classifies a stored entry; entries without a start time are skipped."""
    if entry.start_time is None or (entry.end_time is None and not entry.scheduled_hours):
        return None
    window = classify_shift(
        entry.start_time,
        entry.end_time,
        now,
        on_date=entry.work_date,
        scheduled_hours=entry.scheduled_hours,
    )
    return ActiveShift(entry, window.start_datetime, window.end_datetime, window.status)


def find_active_shift(entries: Iterable[Shift], now: datetime) -> Optional[ActiveShift]:
    """
    Picks the shift to show on the countdown among several candidates:
    the first active one by ascending start, else the first not started.
    Only planned/in-progress work entries are candidates.
    """
    candidates = []
    for entry in entries:
        if entry.shift_type != WORK or entry.status not in (ShiftStatus.PLANNED, ShiftStatus.IN_PROGRESS):
            continue
        active = classify_entry(entry, now)
        if active is not None:
            candidates.append(active)
    candidates.sort(key=lambda a: a.start_datetime)

    for status in (ClockStatus.ACTIVE, ClockStatus.NOT_STARTED):
        for c in candidates:
            if c.status == status:
                return c
    return None


# =========================
# Countdown
# =========================
def project_countdown(end_datetime: datetime, now: datetime) -> Countdown:
    """Remaining time until `end_datetime`, clamped at zero."""
    remaining_ms = max(0, (end_datetime - now) // ONE_MS)
    total_seconds = remaining_ms // 1000
    return Countdown(
        remaining_ms=remaining_ms,
        hours=total_seconds // 3600,
        minutes=(total_seconds % 3600) // 60,
        seconds=total_seconds % 60,
    )


class CountdownTicker:
    """
    Drives the once-per-second countdown of an active shift.

    Each tick reads the clock afresh. Reaching zero stops the ticker; it does
    not change the shift's status (the next classification does).
    """

    def __init__(self, shift: ActiveShift | ShiftWindow | None, clock: Callable[[], datetime] = now_local):
        self.clock = clock
        self.end_datetime = shift.end_datetime if shift is not None else None
        self.running = shift is not None and shift.status == ClockStatus.ACTIVE
        self.last = Countdown(0, 0, 0, 0)

    def tick(self) -> Countdown:
        if not self.running:
            return self.last
        self.last = project_countdown(self.end_datetime, self.clock())
        if self.last.remaining_ms == 0:
            logger.debug("Countdown reached zero at %s", self.end_datetime)
            self.running = False
        return self.last

    def run(
        self,
        on_tick: Callable[[Countdown], None],
        sleep: Callable[[float], None] = _time.sleep,
        interval: float = COUNTDOWN_TICK_SECONDS,
    ) -> None:
        while self.running:
            on_tick(self.tick())
            if self.running:
                sleep(interval)


# =========================
# Display helpers
# =========================
def format_countdown(c: Countdown) -> str:
    return f"{c.hours:02d}:{c.minutes:02d}:{c.seconds:02d}"


def format_time(value: datetime, include_seconds: bool = True, use_24_hour: bool = True) -> str:
    """HH:MM[:SS], optionally on a 12 h clock with AM/PM."""
    hours = value.hour if use_24_hour else (value.hour % 12 or 12)
    text = f"{hours:02d}:{value.minute:02d}"
    if include_seconds:
        text += f":{value.second:02d}"
    if not use_24_hour:
        text += " PM" if value.hour >= 12 else " AM"
    return text


def format_minutes(minutes: int) -> str:
    minutes = max(0, int(minutes))
    h, m = divmod(minutes, 60)
    if h == 0:
        return f"{m} min"
    if m == 0:
        return f"{h} h"
    return f"{h} h {m} min"


def format_hours(hours) -> str:
    """7.5 -> '7 h 30 min'"""
    return format_minutes(int(round(float(hours) * 60)))


__all__ = [
    "parse_hhmm", "is_overnight", "round_to_step", "derive_scheduled_hours",
    "calculate_actual_hours", "classify_shift", "classify_entry", "find_active_shift",
    "project_countdown", "CountdownTicker", "format_countdown", "format_time",
    "format_minutes", "format_hours",
]
