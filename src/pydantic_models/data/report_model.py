from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List

from pydantic import BaseModel, computed_field

from .actor_identity import ActorIdentity
from .company_profile import CompanyProfile
from .line_item import LineItem
from .report_config import ReportConfig, ReportTemplate


class ReportModel(BaseModel):
    """
    Aggregat für genau eine Berichtserstellung.
    Die Gesamtsumme wird bei jedem Zugriff aus den Positionen berechnet und nie
    separat gehalten. Gerundet wird erst bei der Formatierung.
    """
    config: ReportConfig
    template: ReportTemplate
    company: CompanyProfile
    actor: ActorIdentity
    period: date
    report_date: date
    line_items: List[LineItem]

    @computed_field
    @property
    def total_amount(self) -> Decimal:
        return sum((item.line_total for item in self.line_items), Decimal("0"))

    @property
    def total_hours(self) -> Decimal:
        return sum((item.hours for item in self.line_items), Decimal("0"))
