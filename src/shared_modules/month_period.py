from datetime import date
from typing import Any

from loguru import logger

from .utils import to_date


def parse_period(value: Any) -> date:
    """
    Normalisiert einen Abrechnungsmonat auf den Monatsersten.
    Akzeptiert date/datetime sowie Texte im Format YYYY-MM-01, YYYY-MM oder MM.YYYY.

    Raises:
        ValueError: Wenn sich aus der Eingabe kein Datum ermitteln lässt.
    """
    d = to_date(value)
    if d is None:
        raise ValueError(f"Ungültiger Abrechnungsmonat: {value!r}")
    if d.day != 1:
        logger.debug(f"Abrechnungsmonat {d} wird auf den Monatsersten gesetzt.")
        d = d.replace(day=1)
    return d


def parse_report_date(value: Any) -> date:
    """
    Berichtsdatum (YYYY-MM-DD) als date.

    Raises:
        ValueError: Wenn sich aus der Eingabe kein Datum ermitteln lässt.
    """
    d = to_date(value)
    if d is None:
        raise ValueError(f"Ungültiges Berichtsdatum: {value!r}")
    return d
