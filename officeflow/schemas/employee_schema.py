from typing import Optional
from pydantic import BaseModel, Field
from .common import ContractClass, Escalation, Record


class EmployeeIn(BaseModel):
    name: str = Field(min_length=1)
    contract_class: ContractClass = ContractClass.permanent
    notification_tokens: list[str] = Field(default_factory=list)


class EmployeeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    contract_class: Optional[ContractClass] = None
    notification_tokens: Optional[list[str]] = None


class Employee(Record):
    name: str
    contract_class: ContractClass
    notification_tokens: tuple[str, ...] = ()


class EmployeeOut(Employee):
    pending: bool = False


class EmployeeListOut(BaseModel):
    items: list[EmployeeOut]
    total: int
    page: int = 1
    size: int = 0


class ComplianceOut(BaseModel):
    employee_id: str
    employee_name: str
    contract_class: ContractClass
    accumulated_days: float
    status: Escalation
    limit: int
    groups: dict[str, float]
