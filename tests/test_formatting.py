from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from pydantic_models.config.formatting_config import FormattingConfig
from shared_modules.formatting import ValueFormatter, round_money


@pytest.mark.parametrize(
    "value, expected",
    [
        ("0.125", Decimal("0.12")),
        ("0.135", Decimal("0.14")),
        ("2.675", Decimal("2.68")),
        (Decimal("50.0025"), Decimal("50.00")),
        (1.005, Decimal("1.00")),
    ],
)
def test_round_money_half_even(value, expected):
    assert round_money(value) == expected


def test_currency_and_hours_default_locale():
    formatter = ValueFormatter()
    assert formatter.currency(Decimal("1234.5")) == "€1,234.50"
    assert formatter.hours(Decimal("7.5")) == "7.50"
    assert formatter.currency(None) == ""


def test_german_locale():
    formatter = ValueFormatter(FormattingConfig(locale="de_DE", currency="eur", date_format="dd.MM.yyyy"))
    assert formatter.currency_code == "EUR"
    amount = formatter.currency(Decimal("1234.5"))
    assert amount.startswith("1.234,50")
    assert amount.endswith("€")
    assert formatter.date(date(2025, 4, 2)) == "02.04.2025"


def test_iso_date_when_no_format():
    assert ValueFormatter().date("2025-04-02") == "2025-04-02"


def test_month_label():
    assert ValueFormatter().month("2025-03") == "March 2025"


@pytest.mark.parametrize("config", [{"locale": "xx_YY"}, {"currency": "NOPE"}])
def test_invalid_formatting_config(config):
    with pytest.raises(ValidationError):
        FormattingConfig(**config)
