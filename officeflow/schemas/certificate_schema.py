from datetime import date
from typing import Any, Optional
from pydantic import BaseModel, field_validator, model_validator
from .common import Record


def _half_day_rule(data: Any) -> Any:
    # A half-day certificate always counts as half a day
    if isinstance(data, dict) and data.get("half_day"):
        return {**data, "days": 0.5}
    return data


def _check_days(value: float) -> float:
    if value <= 0 or (value * 2) != int(value * 2):
        raise ValueError("days must be a positive multiple of 0.5")
    return value


class CertificateIn(BaseModel):
    employee_id: str
    certificate_date: date
    days: float = 1
    half_day: bool = False
    original_received: bool = False
    diagnosis_code: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_half_day(cls, data: Any) -> Any:
        return _half_day_rule(data)

    @field_validator("days")
    @classmethod
    def validate_days(cls, value: float) -> float:
        return _check_days(value)


class CertificateUpdate(BaseModel):
    certificate_date: Optional[date] = None
    days: Optional[float] = None
    half_day: Optional[bool] = None
    original_received: Optional[bool] = None
    diagnosis_code: Optional[str] = None


class Certificate(Record):
    employee_id: str
    certificate_date: date
    days: float
    half_day: bool = False
    original_received: bool = False
    diagnosis_code: Optional[str] = None
    attachment_url: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_half_day(cls, data: Any) -> Any:
        return _half_day_rule(data)

    @field_validator("days")
    @classmethod
    def validate_days(cls, value: float) -> float:
        return _check_days(value)


class CertificateOut(Certificate):
    pending: bool = False


class CertificateListOut(BaseModel):
    items: list[CertificateOut]
    total: int
    page: int = 1
    size: int = 0
