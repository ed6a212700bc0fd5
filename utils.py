# utils.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd

from domain import FinancialRecord, Job, Period, PayType, RecordStatus, RecordType, Shift, ShiftStatus
from money import add, divide, multiply, round_amount, subtract, to_decimal
from services import PayCalculator

logger = logging.getLogger(__name__)

COLUMNS = ["bucket", "currency", "amount"]

SHIFT_INCOME = "shift_income"
EXPECTED = "expected"
OTHER_INCOME = "other_income"
EXPENSES = "expenses"
EXPECTED_OTHER_INCOME = "expected_other_income"
EXPECTED_EXPENSES = "expected_expenses"

JobsArg = Union[Mapping[int, Job], Iterable[Job], None]


@dataclass
class CurrencyTotals:
    """Per-currency sums for a period. Amounts in different currencies are never added together."""
    shift_income: Dict[str, Decimal] = field(default_factory=dict)
    fixed_income: Dict[str, Decimal] = field(default_factory=dict)
    other_income: Dict[str, Decimal] = field(default_factory=dict)
    expenses: Dict[str, Decimal] = field(default_factory=dict)
    expected: Dict[str, Decimal] = field(default_factory=dict)
    expected_other_income: Dict[str, Decimal] = field(default_factory=dict)
    expected_expenses: Dict[str, Decimal] = field(default_factory=dict)
    net: Dict[str, Decimal] = field(default_factory=dict)
    fixed_income_by_job: Dict[str, List[dict]] = field(default_factory=dict)

    @property
    def currencies(self) -> set[str]:
        out: set[str] = set()
        for bucket in (
            self.shift_income, self.fixed_income, self.other_income, self.expenses,
            self.expected, self.expected_other_income, self.expected_expenses,
        ):
            out.update(bucket)
        return out

    @property
    def is_multi_currency(self) -> bool:
        """True when the caller should warn that the period mixes currencies."""
        return len(self.currencies) > 1

    def total_expected_income(self) -> Dict[str, Decimal]:
        """Expected shift earnings plus planned financial income, per currency."""
        out = dict(self.expected)
        for currency, amount in self.expected_other_income.items():
            out[currency] = add(out.get(currency, 0), amount)
        return out


def _job_index(jobs: JobsArg) -> Dict[int, Job]:
    if jobs is None:
        return {}
    if isinstance(jobs, Mapping):
        return dict(jobs)
    return {j.id: j for j in jobs}


def _decimal_sum(values: pd.Series) -> Decimal:
    return round_amount(add(*values), 2)


def _group(rows: List[dict]) -> Dict[str, Dict[str, Decimal]]:
    """{bucket: {currency: amount}} from flat rows, summed with Decimal arithmetic."""
    df = pd.DataFrame(rows, columns=COLUMNS)
    out: Dict[str, Dict[str, Decimal]] = {}
    if df.empty:
        return out
    sums = df.groupby(["bucket", "currency"], sort=True)["amount"].agg(_decimal_sum)
    for (bucket, currency), amount in sums.items():
        out.setdefault(bucket, {})[currency] = amount
    return out


def _shift_rows(
    shifts: Iterable[Shift],
    jobs: Dict[int, Job],
    period: Optional[Period],
    calculator: PayCalculator,
) -> List[dict]:
    rows = []
    for s in shifts:
        if period is not None and not period.contains(s.work_date):
            continue
        if s.status == ShiftStatus.CANCELLED:
            continue
        job = jobs.get(s.job_id) if s.job_id is not None else None

        if s.status == ShiftStatus.COMPLETED:
            if s.actual_earnings is None:
                continue  # fixed income or not calculable
            currency = s.earnings_currency or s.custom_currency or (job.currency if job else None)
            if not currency:
                logger.warning("Shift %s has earnings but no currency, skipping", s.id)
                continue
            rows.append({"bucket": SHIFT_INCOME, "currency": currency, "amount": to_decimal(s.actual_earnings)})
            continue

        # planned / in progress
        if s.earnings_manual_override and s.actual_earnings is not None:
            currency = s.earnings_currency or s.custom_currency or (job.currency if job else None)
            if currency:
                rows.append({"bucket": EXPECTED, "currency": currency, "amount": to_decimal(s.actual_earnings)})
            continue
        hours = s.scheduled_hours if s.scheduled_hours is not None else s.actual_hours
        resolution = calculator.resolve(s, job, hours=hours)
        if resolution is not None and resolution.amount > 0:
            rows.append({"bucket": EXPECTED, "currency": resolution.currency, "amount": resolution.amount})
    return rows


def _record_rows(records: Iterable[FinancialRecord], period: Optional[Period]) -> List[dict]:
    buckets = {
        (RecordStatus.COMPLETED, RecordType.INCOME): OTHER_INCOME,
        (RecordStatus.COMPLETED, RecordType.EXPENSE): EXPENSES,
        (RecordStatus.PLANNED, RecordType.INCOME): EXPECTED_OTHER_INCOME,
        (RecordStatus.PLANNED, RecordType.EXPENSE): EXPECTED_EXPENSES,
    }
    rows = []
    for r in records:
        if period is not None and not period.contains(r.record_date):
            continue
        bucket = buckets.get((r.status, r.type))
        if bucket is None:
            continue
        if not r.currency:
            logger.warning("Financial record %s has no currency, skipping", r.id)
            continue
        rows.append({"bucket": bucket, "currency": r.currency, "amount": to_decimal(r.amount)})
    return rows


def monthly_fixed_amount(job: Job) -> Decimal:
    """Monthly income of a fixed-income job; salary jobs store an annual figure."""
    if job.monthly_salary is None:
        return Decimal("0")
    if job.pay_type == PayType.SALARY:
        return round_amount(divide(job.monthly_salary, 12), 2)
    return round_amount(job.monthly_salary, 2)


def fixed_income_by_currency(jobs: Iterable[Job], months: int = 1) -> tuple[Dict[str, Decimal], Dict[str, List[dict]]]:
    """Fixed income of active fixed-income jobs, per currency and per job."""
    totals: Dict[str, Decimal] = {}
    by_job: Dict[str, List[dict]] = {}
    for job in jobs:
        if not (job.is_active and job.is_fixed_income):
            continue
        amount = round_amount(multiply(monthly_fixed_amount(job), months), 2)
        if amount <= 0:
            continue
        currency = job.currency
        totals[currency] = add(totals.get(currency, 0), amount)
        by_job.setdefault(currency, []).append({
            "job_id": job.id,
            "job_name": job.name,
            "amount": amount,
            "pay_type": job.pay_type.value,
        })
    return totals, by_job


def aggregate_by_currency(
    shifts: Iterable[Shift],
    financial_records: Iterable[FinancialRecord] = (),
    period: Optional[Period] = None,
    jobs: JobsArg = None,
    calculator: Optional[PayCalculator] = None,
) -> CurrencyTotals:
    """
    Folds priced shifts and financial records into per-currency totals.

    net = shift income + other income - expenses (fixed income is reported
    on its own). Expected shift earnings price planned/in-progress entries
    against their scheduled hours.
    """
    job_index = _job_index(jobs)
    calculator = calculator or PayCalculator()

    grouped = _group(
        _shift_rows(shifts, job_index, period, calculator) + _record_rows(financial_records, period)
    )
    months = len(period.months()) if period is not None else 1
    fixed, fixed_by_job = fixed_income_by_currency(job_index.values(), months)

    totals = CurrencyTotals(
        shift_income=grouped.get(SHIFT_INCOME, {}),
        fixed_income=fixed,
        other_income=grouped.get(OTHER_INCOME, {}),
        expenses=grouped.get(EXPENSES, {}),
        expected=grouped.get(EXPECTED, {}),
        expected_other_income=grouped.get(EXPECTED_OTHER_INCOME, {}),
        expected_expenses=grouped.get(EXPECTED_EXPENSES, {}),
        fixed_income_by_job=fixed_by_job,
    )
    for currency in set(totals.shift_income) | set(totals.other_income) | set(totals.expenses):
        income = add(totals.shift_income.get(currency, 0), totals.other_income.get(currency, 0))
        totals.net[currency] = round_amount(subtract(income, totals.expenses.get(currency, 0)), 2)

    if totals.is_multi_currency:
        logger.debug("Period mixes currencies: %s", sorted(totals.currencies))
    return totals


def summarize_financial_records(
    records: Iterable[FinancialRecord],
    period: Optional[Period] = None,
) -> Dict[str, dict]:
    """
    Income/expense per currency, with a per-category breakdown.
    Returns {currency: {"income", "expense", "income_by_category", "expense_by_category"}}.
    """
    rows = []
    for r in records:
        if r.status == RecordStatus.CANCELLED:
            continue
        if period is not None and not period.contains(r.record_date):
            continue
        rows.append({
            "currency": r.currency or "USD",
            "type": r.type.value,
            "category": r.category or "Uncategorized",
            "amount": to_decimal(r.amount),
        })
    df = pd.DataFrame(rows, columns=["currency", "type", "category", "amount"])
    summary: Dict[str, dict] = {}
    if df.empty:
        return summary

    for (currency, kind, category), amount in (
        df.groupby(["currency", "type", "category"])["amount"].agg(_decimal_sum).items()
    ):
        entry = summary.setdefault(currency, {
            "income": Decimal("0.00"),
            "expense": Decimal("0.00"),
            "income_by_category": {},
            "expense_by_category": {},
        })
        entry[kind] = add(entry[kind], amount)
        entry[f"{kind}_by_category"][category] = amount
    return summary


def shifts_to_dataframe(shifts: Iterable[Shift], jobs: JobsArg = None) -> pd.DataFrame:
    job_index = _job_index(jobs)
    rows = []
    for s in shifts:
        year, week = s.iso_year_week
        job = job_index.get(s.job_id) if s.job_id is not None else None
        rows.append({
            "Date": s.work_date.isoformat(),
            "ISO Week": f"{year}-W{week:02d}",
            "Job": job.name if job else "",
            "Type": s.shift_type,
            "Status": s.status.value,
            "Start": s.start_time.strftime("%H:%M") if s.start_time else "",
            "End": s.end_time.strftime("%H:%M") if s.end_time else "",
            "Overnight": s.is_overnight,
            "Scheduled Hours": float(s.scheduled_hours) if s.scheduled_hours is not None else None,
            "Actual Hours": float(s.actual_hours) if s.actual_hours is not None else None,
            "Earnings": s.actual_earnings,
            "Currency": s.earnings_currency or "",
            "Manual": s.earnings_manual_override,
            "Notes": s.notes or "",
        })
    df = pd.DataFrame(rows)
    if not df.empty:
        df = df.sort_values(["Date"], ascending=False).reset_index(drop=True)
    return df
