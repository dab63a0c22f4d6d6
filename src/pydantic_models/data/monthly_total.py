from decimal import Decimal

from pydantic import BaseModel


class MonthlyTotal(BaseModel):
    """Summen über alle Arbeitseinträge eines Monats für eine Firma."""
    total_hours: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    record_count: int = 0
