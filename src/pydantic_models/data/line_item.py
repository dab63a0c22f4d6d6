from decimal import Decimal

from pydantic import BaseModel, computed_field, field_validator


class LineItem(BaseModel):
    """
    Berechnete Rechnungsposition. Wird nie eigenständig gespeichert.
    """
    sequence: int
    name: str
    rate: Decimal
    hours: Decimal

    @field_validator("sequence")
    def sequence_starts_at_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("sequence beginnt bei 1.")
        return v

    @computed_field
    @property
    def line_total(self) -> Decimal:
        return self.hours * self.rate
