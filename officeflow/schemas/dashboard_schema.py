from datetime import date
from pydantic import BaseModel

from .common import Priority
from .employee_schema import ComplianceOut


class UpcomingDemand(BaseModel):
    id: str
    title: str
    priority: Priority
    due_date: date


class SummaryMetrics(BaseModel):
    open_demands: int
    awaiting_response: int
    done: int
    by_priority: dict[str, int]
    upcoming: list[UpcomingDemand]
    flagged_employees: list[ComplianceOut]
