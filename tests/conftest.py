from datetime import date, datetime, time
from decimal import Decimal

import pytest

from domain import Job, PayType, Shift, ShiftStatus
from repository import Store


@pytest.fixture
def hourly_job():
    return Job(pay_type=PayType.HOURLY, hourly_rate=Decimal("20"), currency="USD", name="Cafe", id=1)


@pytest.fixture
def daily_job():
    return Job(pay_type=PayType.DAILY, daily_rate=Decimal("150"), currency="EUR", name="Events", id=2)


@pytest.fixture
def salary_job():
    return Job(
        pay_type=PayType.SALARY,
        monthly_salary=Decimal("60000"),
        currency="USD",
        show_in_fixed_income=True,
        name="Office",
        id=3,
    )


@pytest.fixture
def work_shift():
    return Shift(
        work_date=date(2024, 3, 4),
        start_time=time(9, 0),
        end_time=time(17, 0),
        scheduled_hours=Decimal("8"),
        actual_hours=Decimal("8"),
        status=ShiftStatus.COMPLETED,
        job_id=1,
    )


@pytest.fixture
def store(tmp_path):
    return Store(f"sqlite:///{(tmp_path / 'test.db').as_posix()}")


@pytest.fixture
def fixed_now():
    return datetime(2024, 3, 4, 12, 0, 0)
