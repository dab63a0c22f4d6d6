from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from shared_modules.month_period import parse_period
from shared_modules.utils import safe_str


class GeneratedArtifactRecord(BaseModel):
    """
    Tracking-Eintrag eines gespeicherten Berichts (Tabelle generated_reports).
    Wird einmal geschrieben und danach nicht mehr verändert.
    """
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    actor_id: str
    company_id: str
    period: date
    report_date: date
    storage_path: Optional[str] = None
    persisted: bool = False
    created_at: Optional[datetime] = None
    company_name: Optional[str] = None

    @field_validator("id", "actor_id", "company_id", mode="before")
    def ids_as_str(cls, v):
        return None if v is None else safe_str(v)

    @field_validator("period", mode="before")
    def normalize_period(cls, v):
        return parse_period(v)
