from datetime import date
from typing import Optional
from pydantic import BaseModel, model_validator
from .common import Record


def _check_range(start: Optional[date], end: Optional[date]) -> None:
    if start is not None and end is not None and end < start:
        raise ValueError("end_date must not be before start_date")


class VacationIn(BaseModel):
    employee_id: str
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_dates(self):
        _check_range(self.start_date, self.end_date)
        return self


class VacationUpdate(BaseModel):
    employee_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class Vacation(Record):
    employee_id: str
    employee_name: str  # copied from the employee for display
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_dates(self):
        _check_range(self.start_date, self.end_date)
        return self


class VacationOut(Vacation):
    pending: bool = False


class VacationListOut(BaseModel):
    items: list[VacationOut]
    total: int
    page: int = 1
    size: int = 0
