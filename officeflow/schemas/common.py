from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class Priority(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


class ContractClass(str, Enum):
    permanent = "permanent"
    fixed_term = "fixed-term"
    outsourced = "outsourced"


class Escalation(str, Enum):
    normal = "normal"
    internal_committee = "refer-to-internal-committee"
    external_benefits = "refer-to-external-benefits"


class Record(BaseModel):
    """Immutable base for every record held in a workspace collection."""

    id: str

    model_config = ConfigDict(frozen=True)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})
