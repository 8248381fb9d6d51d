from pydantic import BaseModel, Field

from .certificate_schema import Certificate
from .demand_schema import Demand
from .employee_schema import Employee
from .status_schema import WorkflowStatus
from .vacation_schema import Vacation


class BackupDocument(BaseModel):
    demands: list[Demand] = Field(default_factory=list)
    vacations: list[Vacation] = Field(default_factory=list)
    employees: list[Employee] = Field(default_factory=list)
    certificates: list[Certificate] = Field(default_factory=list)
    statuses: list[WorkflowStatus] = Field(default_factory=list)
