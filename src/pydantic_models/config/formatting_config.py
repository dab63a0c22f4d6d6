from typing import Optional

from babel import Locale, UnknownLocaleError
from babel.numbers import is_currency
from pydantic import BaseModel, field_validator, model_validator

class FormattingConfig(BaseModel):
    """
    Formatierung von Beträgen, Stunden und Datumswerten über Babel.
    date_format None bedeutet ISO-Format (YYYY-MM-DD).
    """
    locale: str = "en_US"
    currency: str = "EUR"
    currency_format: Optional[str] = None
    hours_format: Optional[str] = "0.00"
    date_format: Optional[str] = None

    @field_validator("locale")
    def locale_must_be_known(cls, v: str) -> str:
        try:
            Locale.parse(v)
        except (UnknownLocaleError, ValueError) as e:
            raise ValueError(f"Unbekannte Locale '{v}': {e}")
        return v

    @model_validator(mode="after")
    def currency_must_be_known(self) -> "FormattingConfig":
        self.currency = self.currency.upper()
        if not is_currency(self.currency, locale=self.locale):
            raise ValueError(f"Ungültiger Währungscode '{self.currency}'.")
        return self
