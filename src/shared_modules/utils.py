import os
import tempfile
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Dict, Generator, Optional


def safe_str(val) -> str:
    """
    Gibt immer einen String zurück, auch wenn val None oder numerisch ist.
    """
    return "" if val is None else str(val)


@contextmanager
def atomic_write(target: Path) -> Generator[Path, None, None]:
    """
    Context-Manager für atomares Schreiben einer Datei.
    Geschrieben wird in eine temporäre Datei im Zielverzeichnis, die erst nach
    erfolgreichem Block per os.replace an ihren Platz verschoben wird.

    Beispiel:
        with atomic_write(path) as tmp_path:
            tmp_path.write_bytes(data)
    """
    ensure_dir(target.parent)
    with tempfile.NamedTemporaryFile(dir=target.parent, delete=False, suffix=".part") as tmp:
        tmp_path = Path(tmp.name)
    try:
        yield tmp_path
        os.replace(tmp_path, target)
    finally:
        if tmp_path.exists():
            os.remove(tmp_path)


# Datumsformate für freie Texteingaben
DATE_FORMATS: tuple[str, ...] = ("%Y-%m-%d", "%d.%m.%Y", "%Y/%m/%d", "%Y-%m", "%m.%Y", "%m-%Y")
MONTH_ONLY_FORMATS: tuple[str, ...] = ("%Y-%m", "%m.%Y", "%m-%Y")


def _parse_date_str(s: str) -> Optional[date]:
    s = s.strip()
    for fmt in DATE_FORMATS:
        try:
            d = datetime.strptime(s, fmt)
            if fmt in MONTH_ONLY_FORMATS:
                d = d.replace(day=1)
            return d.date()
        except ValueError:
            continue
    return None


def _parse_decimal_str(s: str) -> Optional[Decimal]:
    s = s.strip().replace("’", "").replace("'", "").replace(" ", "").replace(",", ".")
    try:
        return Decimal(s)
    except InvalidOperation:
        return None


_DECIMAL_CONVERTERS: Dict[type, Callable[[Any], Optional[Decimal]]] = {
    type(None): lambda _v: None,
    Decimal: lambda v: v,
    int: lambda v: Decimal(v),
    # über str, damit 0.1 nicht als 0.1000000000000000055511151231257827 ankommt
    float: lambda v: Decimal(str(v)),
    str: _parse_decimal_str,
}

_DATE_CONVERTERS: Dict[type, Callable[[Any], Optional[date]]] = {
    datetime: lambda v: v.date(),
    date: lambda v: v,
    str: _parse_date_str,
    type(None): lambda _v: None,
}


def to_decimal(v: Any) -> Optional[Decimal]:
    """Typbasierte Zahl-Konvertierung (None/str/int/float/Decimal -> Decimal|None)."""
    conv = _DECIMAL_CONVERTERS.get(type(v))
    return conv(v) if conv else None


def to_date(v: Any) -> Optional[date]:
    """Typbasierte Datums-Konvertierung (None/str/date/datetime -> date|None)."""
    conv = _DATE_CONVERTERS.get(type(v))
    return conv(v) if conv else None


def to_year_month_str(v: Any) -> Optional[str]:
    """Konvertiert Eingabe nach YYYY-MM (falls Datum ermittelbar)."""
    d = to_date(v)
    return d.strftime("%Y-%m") if d else None


def ensure_dir(path: Path) -> Path:
    """Erzeugt ein Verzeichnis (rekursiv), falls es fehlt, und gibt den Pfad zurück."""
    path.mkdir(parents=True, exist_ok=True)
    return path
