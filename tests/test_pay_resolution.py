"""Tests for shift pricing precedence."""

from decimal import Decimal

import pytest

from domain import Job, PayOverride, PayOverrideType, PayType, Shift
from services import PayCalculator, resolve_earnings, resolve_pay


class TestJobDefaultRate:
    @pytest.mark.parametrize(
        "hours, rate, expected",
        [
            ("8", "20", Decimal("160.00")),
            ("7.25", "13.30", Decimal("96.43")),
            ("0.1", "0.2", Decimal("0.02")),
            ("1", "33.335", Decimal("33.34")),
        ],
    )
    def test_hourly_is_hours_times_rate_rounded(self, hours, rate, expected):
        job = Job(pay_type=PayType.HOURLY, hourly_rate=Decimal(rate))
        assert resolve_earnings(Shift(actual_hours=Decimal(hours)), job) == expected

    def test_daily_is_flat(self, daily_job):
        assert resolve_earnings(Shift(actual_hours=Decimal("3")), daily_job) == Decimal("150.00")

    def test_currency_comes_from_job(self, daily_job):
        assert resolve_pay(Shift(actual_hours=Decimal("3")), daily_job).currency == "EUR"

    def test_holiday_multiplier(self, hourly_job):
        shift = Shift(actual_hours=Decimal("7.5"), is_holiday=True, holiday_multiplier=Decimal("1.5"))
        assert resolve_earnings(shift, hourly_job) == Decimal("225.00")

    def test_multiplier_ignored_when_not_holiday(self, hourly_job):
        shift = Shift(actual_hours=Decimal("7.5"), is_holiday=False, holiday_multiplier=Decimal("1.5"))
        assert resolve_earnings(shift, hourly_job) == Decimal("150.00")

    def test_daily_with_multiplier(self, daily_job):
        shift = Shift(actual_hours=Decimal("8"), is_holiday=True, holiday_multiplier=Decimal("2"))
        assert resolve_earnings(shift, daily_job) == Decimal("300.00")

    def test_falls_back_to_scheduled_hours(self, hourly_job):
        assert resolve_earnings(Shift(scheduled_hours=Decimal("4")), hourly_job) == Decimal("80.00")


class TestUncalculable:
    def test_zero_hours_is_none_not_zero(self, hourly_job):
        assert resolve_earnings(Shift(actual_hours=Decimal("0")), hourly_job) is None

    def test_missing_hours(self, hourly_job):
        assert resolve_earnings(Shift(), hourly_job) is None

    def test_missing_rate(self):
        job = Job(pay_type=PayType.HOURLY, hourly_rate=None)
        assert resolve_earnings(Shift(actual_hours=Decimal("8")), job) is None

    def test_no_job_and_no_override(self):
        assert resolve_earnings(Shift(actual_hours=Decimal("8")), None) is None

    def test_monthly_job_without_fixed_income_flag(self):
        job = Job(pay_type=PayType.MONTHLY, monthly_salary=Decimal("3000"), show_in_fixed_income=False)
        assert resolve_earnings(Shift(actual_hours=Decimal("8")), job) is None


class TestFixedIncome:
    @pytest.mark.parametrize("pay_type", [PayType.MONTHLY, PayType.SALARY])
    @pytest.mark.parametrize(
        "shift",
        [
            Shift(actual_hours=Decimal("8")),
            Shift(actual_hours=Decimal("8"), holiday_fixed_amount=Decimal("500")),
            Shift(actual_hours=Decimal("8"), custom_hourly_rate=Decimal("30")),
            Shift(actual_hours=Decimal("8"), is_holiday=True, holiday_fixed_rate=Decimal("40")),
            Shift(actual_hours=Decimal("8"), shift_type="unpaid"),
        ],
    )
    def test_never_priced_per_shift(self, pay_type, shift):
        job = Job(pay_type=pay_type, monthly_salary=Decimal("3000"), show_in_fixed_income=True)
        assert resolve_earnings(shift, job) is None


class TestPrecedence:
    def test_fixed_amount_beats_everything(self, hourly_job):
        shift = Shift(
            actual_hours=Decimal("8"),
            holiday_fixed_amount=Decimal("99.999"),
            custom_hourly_rate=Decimal("50"),
            is_holiday=True,
            holiday_fixed_rate=Decimal("40"),
            holiday_multiplier=Decimal("2"),
        )
        res = resolve_pay(shift, hourly_job)
        assert res.amount == Decimal("100.00")
        assert res.source == "fixed_amount"

    def test_holiday_fixed_rate_beats_daily_default(self):
        job = Job(pay_type=PayType.DAILY, daily_rate=Decimal("150"))
        shift = Shift(actual_hours=Decimal("6"), is_holiday=True, holiday_fixed_rate=Decimal("30"))
        assert resolve_earnings(shift, job) == Decimal("180.00")

    def test_holiday_fixed_rate_ignores_multiplier(self, hourly_job):
        shift = Shift(
            actual_hours=Decimal("6"),
            is_holiday=True,
            holiday_fixed_rate=Decimal("30"),
            holiday_multiplier=Decimal("2"),
        )
        assert resolve_earnings(shift, hourly_job) == Decimal("180.00")

    def test_holiday_fixed_rate_needs_holiday_flag(self, hourly_job):
        shift = Shift(actual_hours=Decimal("6"), is_holiday=False, holiday_fixed_rate=Decimal("30"))
        assert resolve_earnings(shift, hourly_job) == Decimal("120.00")

    def test_custom_hourly_beats_job_default(self, hourly_job):
        shift = Shift(actual_hours=Decimal("8"), custom_hourly_rate=Decimal("25"))
        res = resolve_pay(shift, hourly_job)
        assert res.amount == Decimal("200.00")
        assert res.source == "custom_hourly"

    def test_custom_hourly_beats_custom_daily(self, hourly_job):
        shift = Shift(actual_hours=Decimal("2"), custom_hourly_rate=Decimal("25"), custom_daily_rate=Decimal("300"))
        assert resolve_earnings(shift, hourly_job) == Decimal("50.00")

    def test_custom_daily_with_multiplier(self, hourly_job):
        shift = Shift(
            actual_hours=Decimal("8"),
            custom_daily_rate=Decimal("100"),
            is_holiday=True,
            holiday_multiplier=Decimal("1.5"),
        )
        assert resolve_earnings(shift, hourly_job) == Decimal("150.00")

    def test_custom_rate_without_job(self):
        shift = Shift(actual_hours=Decimal("3"), custom_hourly_rate=Decimal("10"), custom_currency="GBP")
        res = resolve_pay(shift, None)
        assert res.amount == Decimal("30.00")
        assert res.currency == "GBP"

    def test_override_currency_wins_over_job_currency(self, hourly_job):
        shift = Shift(holiday_fixed_amount=Decimal("50"), custom_currency="EUR")
        assert resolve_pay(shift, hourly_job).currency == "EUR"


class TestLeave:
    def test_unpaid_leave_is_zero(self, hourly_job):
        res = resolve_pay(Shift(actual_hours=Decimal("8"), shift_type="unpaid"), hourly_job)
        assert res.amount == Decimal("0.00")
        assert res.source == "unpaid_leave"

    def test_fixed_amount_still_paid_on_unpaid_leave(self, hourly_job):
        shift = Shift(actual_hours=Decimal("8"), shift_type="unpaid", holiday_fixed_amount=Decimal("50"))
        res = resolve_pay(shift, hourly_job)
        assert res.amount == Decimal("50.00")
        assert res.source == "fixed_amount"

    def test_unpaid_leave_ignores_custom_rate(self, hourly_job):
        shift = Shift(actual_hours=Decimal("8"), shift_type="unpaid", custom_hourly_rate=Decimal("30"))
        assert resolve_earnings(shift, hourly_job) == Decimal("0.00")

    def test_paid_leave_priced_like_work(self, hourly_job):
        assert resolve_earnings(Shift(actual_hours=Decimal("8"), shift_type="pto"), hourly_job) == Decimal("160.00")


class TestPayOverride:
    def test_from_fields_precedence(self):
        o = PayOverride.from_fields(custom_hourly_rate=10, custom_daily_rate=100, holiday_fixed_amount=0)
        assert o.kind == PayOverrideType.CUSTOM_HOURLY
        assert o.value == Decimal("10")

    def test_non_positive_values_are_ignored(self):
        assert PayOverride.from_fields(custom_hourly_rate=0, custom_daily_rate=-5).kind == PayOverrideType.DEFAULT

    def test_persisted_tag(self):
        assert Shift(is_holiday=True, holiday_multiplier=Decimal("2")).pay_override_type == PayOverrideType.HOLIDAY_MULTIPLIER
        assert Shift(custom_daily_rate=Decimal("80")).pay_override_type == PayOverrideType.CUSTOM_DAILY
        assert Shift().pay_override_type == PayOverrideType.DEFAULT


def test_calculator_default_currency():
    calc = PayCalculator(default_currency="CHF")
    res = calc.resolve(Shift(actual_hours=Decimal("1"), custom_hourly_rate=Decimal("10")), None)
    assert res.currency == "CHF"
