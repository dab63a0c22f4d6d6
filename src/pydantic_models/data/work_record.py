from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, field_validator

from shared_modules.month_period import parse_period
from shared_modules.utils import safe_str

from .activity_rate import ActivityRate


class WorkRecord(BaseModel):
    """
    Erfasste Stunden einer Tätigkeit für einen Abrechnungsmonat.
    Stammt aus der Tabelle work_entries, verbunden mit activities.
    activity ist None, wenn die referenzierte Tätigkeit nicht aufgelöst werden konnte.
    """
    id: str
    user_id: str
    company_id: str
    activity_id: str
    period: date
    hours: Decimal
    created_at: datetime
    activity: Optional[ActivityRate] = None

    @field_validator("id", "user_id", "company_id", "activity_id", mode="before")
    def ids_as_str(cls, v):
        return safe_str(v)

    @field_validator("period", mode="before")
    def normalize_period(cls, v):
        return parse_period(v)

    @field_validator("hours")
    def hours_must_be_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("hours muss größer als 0 sein.")
        return v
