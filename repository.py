# repository.py
from __future__ import annotations

import logging
from dataclasses import fields
from datetime import date, time
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.pool import NullPool
from sqlalchemy import text
from sqlmodel import SQLModel, Field, Session, create_engine, select

from config import db_url
from domain import FinancialRecord, Job, Shift, ShiftStatus
from errors import JobHasShiftsError, RecordNotFoundError

logger = logging.getLogger(__name__)


class JobDB(SQLModel, table=True):
    __tablename__ = "jobs"

    id: int | None = Field(default=None, primary_key=True)
    name: str = ""
    pay_type: str = "hourly"
    hourly_rate: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    daily_rate: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    monthly_salary: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    currency: str = "USD"
    show_in_fixed_income: bool = False
    is_active: bool = True


class ShiftDB(SQLModel, table=True):
    __tablename__ = "time_entries"

    id: int | None = Field(default=None, primary_key=True)
    job_id: int | None = Field(default=None, foreign_key="jobs.id", index=True)
    work_date: date | None = Field(default=None, index=True)
    start_time: time | None = None
    end_time: time | None = None
    scheduled_hours: Decimal | None = Field(default=None, max_digits=6, decimal_places=2)
    actual_hours: Decimal | None = Field(default=None, max_digits=6, decimal_places=2)
    is_overnight: bool = False
    status: str = ShiftStatus.PLANNED.value
    shift_type: str = "work"
    pay_override_type: str | None = None
    custom_hourly_rate: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    custom_daily_rate: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    custom_currency: str | None = None
    is_holiday: bool = False
    holiday_multiplier: Decimal | None = Field(default=None, max_digits=10, decimal_places=4)
    holiday_fixed_rate: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    holiday_fixed_amount: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    actual_earnings: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    earnings_currency: str | None = None
    earnings_manual_override: bool = False
    notes: str | None = None


class FinancialRecordDB(SQLModel, table=True):
    __tablename__ = "financial_records"

    id: int | None = Field(default=None, primary_key=True)
    type: str
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    currency: str | None = None
    record_date: date = Field(index=True)
    category: str | None = None
    description: str = ""
    status: str = "completed"
    job_id: int | None = Field(default=None, foreign_key="jobs.id")


JOB_COLUMNS = tuple(f.name for f in fields(Job))
SHIFT_COLUMNS = tuple(f.name for f in fields(Shift))
RECORD_COLUMNS = tuple(f.name for f in fields(FinancialRecord))


def _plain(value):
    """Enum members are stored by value."""
    return getattr(value, "value", value)


def _job_row(job: Job) -> dict:
    return {name: _plain(getattr(job, name)) for name in JOB_COLUMNS}


def _shift_row(shift: Shift) -> dict:
    row = {name: _plain(getattr(shift, name)) for name in SHIFT_COLUMNS}
    row["pay_override_type"] = shift.pay_override_type.value
    return row


def _to_job(row: JobDB) -> Job:
    return Job(**{name: getattr(row, name) for name in JOB_COLUMNS})


def _to_shift(row: ShiftDB) -> Shift:
    return Shift(**{name: getattr(row, name) for name in SHIFT_COLUMNS})


def _to_record(row: FinancialRecordDB) -> FinancialRecord:
    return FinancialRecord(**{name: getattr(row, name) for name in RECORD_COLUMNS})


def build_engine(db_url: str, echo: bool = False):
    is_sqlite = db_url.startswith("sqlite")
    kwargs = {
        "echo": echo,
        "pool_pre_ping": True,
        "connect_args": {},
    }
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        # Serverless Postgres: no local pool, bounded connect time
        kwargs["poolclass"] = NullPool
        kwargs["connect_args"] = {"connect_timeout": 10}
        if "sslmode=" not in db_url:
            db_url += ("&" if "?" in db_url else "?") + "sslmode=require"
    return create_engine(db_url, **kwargs)


class JobRepository:
    def __init__(self, engine):
        self.engine = engine

    def add(self, job: Job) -> Job:
        with Session(self.engine) as session:
            row = JobDB(**_job_row(job))
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_job(row)

    def get(self, job_id: int) -> Optional[Job]:
        with Session(self.engine) as session:
            row = session.get(JobDB, job_id)
            return _to_job(row) if row else None

    def list_active(self) -> List[Job]:
        with Session(self.engine) as session:
            rows = session.exec(select(JobDB).where(JobDB.is_active == True).order_by(JobDB.name)).all()  # noqa: E712
            return [_to_job(r) for r in rows]

    def list_all(self) -> List[Job]:
        with Session(self.engine) as session:
            return [_to_job(r) for r in session.exec(select(JobDB).order_by(JobDB.name)).all()]

    def _set_active(self, job_id: int, active: bool) -> Job:
        with Session(self.engine) as session:
            row = session.get(JobDB, job_id)
            if row is None:
                raise RecordNotFoundError("Job", job_id)
            row.is_active = active
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_job(row)

    def archive(self, job_id: int) -> Job:
        return self._set_active(job_id, False)

    def unarchive(self, job_id: int) -> Job:
        return self._set_active(job_id, True)

    def delete(self, job_id: int, delete_entries: bool = False) -> None:
        """Deletes a job; refuses while shifts reference it unless delete_entries is set."""
        with Session(self.engine) as session:
            row = session.get(JobDB, job_id)
            if row is None:
                raise RecordNotFoundError("Job", job_id)
            shifts = session.exec(select(ShiftDB).where(ShiftDB.job_id == job_id)).all()
            if shifts and not delete_entries:
                raise JobHasShiftsError(job_id, len(shifts))
            for s in shifts:
                session.delete(s)
            session.delete(row)
            session.commit()
        logger.info("Deleted job %s (%d shift(s) removed)", job_id, len(shifts))


class ShiftRepository:
    def __init__(self, engine):
        self.engine = engine

    def add(self, shift: Shift) -> Shift:
        with Session(self.engine) as session:
            row = ShiftDB(**_shift_row(shift))
            row.id = None
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_shift(row)

    def get(self, shift_id: int) -> Optional[Shift]:
        with Session(self.engine) as session:
            row = session.get(ShiftDB, shift_id)
            return _to_shift(row) if row else None

    def update(self, shift: Shift) -> Shift:
        with Session(self.engine) as session:
            row = session.get(ShiftDB, shift.id) if shift.id is not None else None
            if row is None:
                raise RecordNotFoundError("Shift", shift.id)
            for name, value in _shift_row(shift).items():
                setattr(row, name, value)
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_shift(row)

    def delete(self, shift_id: int) -> None:
        with Session(self.engine) as session:
            row = session.get(ShiftDB, shift_id)
            if row is None:
                raise RecordNotFoundError("Shift", shift_id)
            session.delete(row)
            session.commit()

    def list_between(
        self,
        d1: date,
        d2: date,
        statuses: Optional[Iterable[ShiftStatus]] = None,
    ) -> List[Shift]:
        with Session(self.engine) as session:
            q = select(ShiftDB).where(ShiftDB.work_date >= d1, ShiftDB.work_date <= d2)
            if statuses is not None:
                q = q.where(ShiftDB.status.in_([_plain(s) for s in statuses]))
            rows = session.exec(q.order_by(ShiftDB.work_date, ShiftDB.start_time, ShiftDB.id)).all()
            return [_to_shift(r) for r in rows]


class FinancialRecordRepository:
    def __init__(self, engine):
        self.engine = engine

    def add(self, record: FinancialRecord) -> FinancialRecord:
        with Session(self.engine) as session:
            row = FinancialRecordDB(**{name: _plain(getattr(record, name)) for name in RECORD_COLUMNS})
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_record(row)

    def list_between(self, d1: date, d2: date) -> List[FinancialRecord]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(FinancialRecordDB)
                .where(FinancialRecordDB.record_date >= d1, FinancialRecordDB.record_date <= d2)
                .order_by(FinancialRecordDB.record_date.desc(), FinancialRecordDB.id.desc())
            ).all()
            return [_to_record(r) for r in rows]


class Store:
    """Jobs, shifts and financial records on one database. In production do NOT fall back to SQLite."""

    def __init__(self, url: str | None = None, echo: bool = False):
        url = url or db_url()
        self.primary_url = url
        self.engine = build_engine(url, echo=echo)

        # Fail fast when Postgres is unreachable
        if not url.startswith("sqlite"):
            try:
                with self.engine.connect() as conn:
                    conn.execute(text("select 1"))
            except Exception as e:
                raise RuntimeError(f"Could not connect to Postgres: {e}") from e

        SQLModel.metadata.create_all(self.engine)

        self.jobs = JobRepository(self.engine)
        self.shifts = ShiftRepository(self.engine)
        self.records = FinancialRecordRepository(self.engine)


__all__ = [
    "JobDB", "ShiftDB", "FinancialRecordDB", "build_engine",
    "JobRepository", "ShiftRepository", "FinancialRecordRepository", "Store",
]
