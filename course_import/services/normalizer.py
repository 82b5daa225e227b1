from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

import pandas as pd

from ..models.entity_spec import EntityTypeSpec, FieldSpec, Transform
from ..models.row_data import MappedRow, NormalizedRow
from ..models.validation_issue import ValidationIssue

"""Field normalizer: raw cell -> canonical value.

Canonical forms: trimmed strings, ISO dates (YYYY-MM-DD), money as integer
minor units (cents), integers for numeric identifiers. A blank cell becomes
None (or the field default). A cell that cannot be converted yields an error
message; the caller records it and the value becomes None.
"""

__all__ = [
    "NormalizationError",
    "is_blank",
    "normalize_value",
    "normalize_row",
    "parse_date",
    "parse_money",
    "serial_to_date",
]

logger = logging.getLogger(__name__)

_DATE_PATTERN = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{2}|\d{4})$")
_ISO_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_WHITESPACE = re.compile(r"\s+")
_NON_DIGITS = re.compile(r"\D+")

# day 0 of each spreadsheet date system
_EPOCH_1900 = date(1899, 12, 30)
_EPOCH_1904 = date(1904, 1, 1)
_PHANTOM_LEAP_DAY = 60  # 1900-02-29 in the 1900 system, never a real date

_VAT_DIGITS = 11
_POSTAL_CODE_DIGITS = 5


class NormalizationError(ValueError):
    """A cell value could not be converted to its canonical form."""


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, float):
        return value != value  # NaN
    return value is pd.NaT


def serial_to_date(serial: float, date_system: int = 1900) -> date:
    """Convert a spreadsheet date serial to a date.

    The 1900 system counts 1900-01-01 as day 1 and (wrongly) treats 1900 as a
    leap year, so serials after 60 are offset from 1899-12-30 and those before
    from 1899-12-31. The 1904 system counts from 1904-01-01 as day 0.
    """
    if not math.isfinite(serial) or serial < 0:
        raise NormalizationError(f"numero seriale di data non valido: {serial}")
    days = int(serial)  # a fractional part is the time of day
    try:
        if date_system == 1904:
            return _EPOCH_1904 + timedelta(days=days)
        if days == 0:
            raise NormalizationError("numero seriale di data non valido: 0")
        if days == _PHANTOM_LEAP_DAY:
            raise NormalizationError("il 29/02/1900 non esiste")
        if days < _PHANTOM_LEAP_DAY:
            return _EPOCH_1900 + timedelta(days=days + 1)
        return _EPOCH_1900 + timedelta(days=days)
    except OverflowError as e:
        raise NormalizationError(f"numero seriale di data fuori intervallo: {serial}") from e


def _expand_year(year_text: str) -> int:
    year = int(year_text)
    if len(year_text) == 2:
        return 1900 + year if year > 50 else 2000 + year
    return year


def parse_date(value: Any, date_system: int = 1900) -> str:
    """Return the ISO form (YYYY-MM-DD) of a date cell.

    Accepts datetime/date cells, spreadsheet serial numbers, and strings in
    D[D]/M[M]/YYYY, D[D]-M[M]-YYYY (2-digit years allowed) or YYYY-MM-DD form.
    """
    if isinstance(value, (datetime, pd.Timestamp)):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        raise NormalizationError(f"data non valida: {value}")
    if isinstance(value, (int, float)):
        return serial_to_date(value, date_system).isoformat()

    text = str(value).strip()
    # date cells exported as text keep a midnight time part
    text = text.split(" ", 1)[0] if " 00:00" in text else text
    if text.isdigit():
        return serial_to_date(int(text), date_system).isoformat()
    try:
        m = _DATE_PATTERN.match(text)
        if m:
            day, month, year = int(m.group(1)), int(m.group(2)), _expand_year(m.group(3))
            return date(year, month, day).isoformat()
        m = _ISO_DATE_PATTERN.match(text)
        if m:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3))).isoformat()
    except ValueError as e:
        raise NormalizationError(f"data inesistente: {text}") from e
    raise NormalizationError(f"formato data non riconosciuto: {text} (usare GG/MM/AAAA)")


def parse_money(value: Any) -> int:
    """Major currency units -> integer minor units ("50.00" -> 5000).

    Italian notation is accepted ("1.234,56", "50,00", "€ 50"). Negative
    amounts are rejected.
    """
    if isinstance(value, bool):
        raise NormalizationError(f"importo non valido: {value}")
    if isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        text = _WHITESPACE.sub("", str(value)).replace("€", "").replace("EUR", "")
        if "," in text and text.rfind(",") > text.rfind("."):
            # 1.234,56 -> 1234.56
            text = text.replace(".", "").replace(",", ".")
        else:
            # 1,234.56 -> 1234.56
            text = text.replace(",", "")
        try:
            amount = Decimal(text)
        except InvalidOperation as e:
            raise NormalizationError(f"importo non numerico: {value}") from e
    if not amount.is_finite():
        raise NormalizationError(f"importo non numerico: {value}")
    if amount < 0:
        raise NormalizationError(f"importo negativo non ammesso: {value}")
    try:
        return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation as e:
        # beyond the decimal context precision (28 digits)
        raise NormalizationError(f"importo fuori scala: {value}") from e


def _text(value: Any) -> str:
    # numeric cells typed without quotes (phone numbers, codes) arrive as int/float
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _digits(value: Any, width: int) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # a number cell lost its leading zeros
        return _text(value).zfill(width)
    return _NON_DIGITS.sub("", str(value))


def _integer(value: Any) -> int:
    if isinstance(value, bool):
        raise NormalizationError(f"numero intero non valido: {value}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise NormalizationError(f"numero intero non valido: {value}")
    text = str(value).strip()
    if re.fullmatch(r"[+-]?\d+", text):
        return int(text)
    raise NormalizationError(f"numero intero non valido: {text}")


def normalize_value(value: Any, field: FieldSpec, date_system: int = 1900) -> Any:
    """Normalize one raw cell for a field.

    Returns None (or the field default) for blanks.

    Raises:
        NormalizationError: if the value cannot be converted
    """
    if is_blank(value):
        return field.default
    t = field.transform
    if t is Transform.TEXT:
        return _text(value)
    if t is Transform.EMAIL:
        return _text(value).lower()
    if t is Transform.FISCAL_CODE:
        return _WHITESPACE.sub("", _text(value)).upper()
    if t is Transform.CODE:
        return _WHITESPACE.sub("", _text(value)).upper()
    if t is Transform.VAT_NUMBER:
        digits = _digits(value, _VAT_DIGITS)
        if not digits:
            raise NormalizationError(f"partita IVA senza cifre: {value}")
        return digits
    if t is Transform.POSTAL_CODE:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return _digits(value, _POSTAL_CODE_DIGITS)
        return _text(value)
    if t is Transform.DATE:
        return parse_date(value, date_system)
    if t is Transform.MONEY:
        return parse_money(value)
    if t is Transform.INTEGER:
        return _integer(value)
    raise NormalizationError(f"trasformazione sconosciuta: {t}")  # pragma: no cover


def normalize_row(
    row: MappedRow, spec: EntityTypeSpec, date_system: int = 1900
) -> tuple[NormalizedRow, list[ValidationIssue]]:
    """Normalize every field of a mapped row.

    Fields without a mapped column are present with None (or their default).
    Transform failures become error issues carrying the raw value.
    """
    values: dict[str, Any] = {}
    issues: list[ValidationIssue] = []
    for f in spec.fields:
        raw = row.cells.get(f.key)
        try:
            values[f.key] = normalize_value(raw, f, date_system)
        except NormalizationError as e:
            values[f.key] = None
            issues.append(
                ValidationIssue.error(row.row_number, f.key, f"{f.display_label}: {e}", raw)
            )
    if issues:
        logger.debug(f"row {row.row_number}: {len(issues)} transform error(s)")
    return NormalizedRow(row.row_number, values), issues
