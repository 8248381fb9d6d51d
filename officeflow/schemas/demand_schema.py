from datetime import date
from typing import Optional
from pydantic import BaseModel, Field
from .common import Priority, Record


class DemandIn(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    priority: Priority = Priority.medium
    due_date: date
    status: Optional[str] = None  # defaults to the first status
    owner_id: Optional[str] = None


class DemandUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    priority: Optional[Priority] = None
    due_date: Optional[date] = None
    status: Optional[str] = None
    owner_id: Optional[str] = None


class DemandStatusIn(BaseModel):
    status: str


class Demand(Record):
    title: str
    description: str = ""
    priority: Priority
    due_date: date
    status: str
    owner_id: Optional[str] = None


class DemandOut(Demand):
    pending: bool = False


class DemandListOut(BaseModel):
    items: list[DemandOut]
    total: int
    page: int = 1
    size: int = 0
