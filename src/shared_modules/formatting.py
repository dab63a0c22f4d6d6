from datetime import date
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Any, Optional

from babel.dates import format_date
from babel.numbers import format_currency, format_decimal

from pydantic_models.config.formatting_config import FormattingConfig

from .utils import to_date, to_decimal

# Rundungsregel für alle Geldbeträge: zwei Nachkommastellen, Banker's Rounding.
# Angewendet wird sie ausschließlich bei der Formatierung.
MONEY_QUANTUM = Decimal("0.01")
MONEY_ROUNDING = ROUND_HALF_EVEN


def round_money(value: Any) -> Decimal:
    """Rundet einen Betrag nach der festen Rundungsregel auf zwei Stellen."""
    amount = to_decimal(value)
    if amount is None:
        raise ValueError(f"Kein gültiger Betrag: {value!r}")
    return amount.quantize(MONEY_QUANTUM, rounding=MONEY_ROUNDING)


class ValueFormatter:
    """
    Locale-abhängige Formatierung von Beträgen, Stunden und Datumswerten mit Babel.
    Die Vorlagenlogik selbst kennt keine Locale; sie ruft nur diese Methoden auf.
    """

    def __init__(self, config: Optional[FormattingConfig] = None):
        self.config: FormattingConfig = config or FormattingConfig()

    @property
    def currency_code(self) -> str:
        return self.config.currency

    def currency(self, value: Any) -> str:
        if value is None:
            return ""
        return format_currency(
            round_money(value),
            self.config.currency,
            format=self.config.currency_format,
            locale=self.config.locale,
        )

    def hours(self, value: Any) -> str:
        if value is None:
            return ""
        return format_decimal(
            round_money(value), format=self.config.hours_format, locale=self.config.locale
        )

    def date(self, value: Any) -> str:
        d: Optional[date] = to_date(value)
        if d is None:
            return "" if value is None else str(value)
        if not self.config.date_format:
            return d.isoformat()
        return format_date(d, format=self.config.date_format, locale=self.config.locale)

    def month(self, value: Any) -> str:
        """Monat für die Anzeige, z. B. "January 2026"."""
        d = to_date(value)
        if d is None:
            return "" if value is None else str(value)
        return format_date(d, format="MMMM yyyy", locale=self.config.locale)
