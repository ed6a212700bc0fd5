# errors.py
from __future__ import annotations


class EngineError(Exception):
    """Base class for errors raised at the engine boundary."""


class InvalidInputError(EngineError, ValueError):
    """A caller passed a value of the wrong type or shape (e.g. '25:99')."""


class RecordNotFoundError(EngineError, LookupError):
    def __init__(self, kind: str, record_id: int):
        super().__init__(f"{kind} {record_id} not found")
        self.kind = kind
        self.record_id = record_id


class JobHasShiftsError(EngineError):
    """Raised when deleting a job that still has shifts attached."""

    def __init__(self, job_id: int, shift_count: int):
        super().__init__(
            f"Job {job_id} still has {shift_count} shift(s); archive it or delete its shifts too"
        )
        self.job_id = job_id
        self.shift_count = shift_count


__all__ = ["EngineError", "InvalidInputError", "RecordNotFoundError", "JobHasShiftsError"]
