from typing import Optional
from pydantic import BaseModel, Field
from .common import Record


class StatusIn(BaseModel):
    label: str = Field(min_length=1)
    icon: str = "Inbox"
    color: str = "bg-slate-500"


class StatusUpdate(BaseModel):
    label: Optional[str] = Field(default=None, min_length=1)
    icon: Optional[str] = None
    color: Optional[str] = None


class WorkflowStatus(Record):
    label: str
    order: int
    icon: str = "Inbox"
    color: str = "bg-slate-500"


class StatusOut(WorkflowStatus):
    protected: bool = False
    pending: bool = False


class StatusListOut(BaseModel):
    items: list[StatusOut]
    total: int
    page: int = 1
    size: int = 0
