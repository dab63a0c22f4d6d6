from decimal import Decimal

from pydantic import BaseModel, field_validator

from shared_modules.utils import safe_str


class ActivityRate(BaseModel):
    """
    Abrechenbare Tätigkeit mit Stundensatz.
    """
    id: str
    name: str
    hourly_rate: Decimal

    @field_validator("id", mode="before")
    def id_as_str(cls, v):
        return safe_str(v)

    @field_validator("hourly_rate")
    def rate_not_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("hourly_rate darf nicht negativ sein.")
        return v
