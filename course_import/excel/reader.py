from __future__ import annotations

import csv
import io
import logging
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
from openpyxl.utils.datetime import CALENDAR_MAC_1904

"""Tabular reader: spreadsheet / CSV bytes -> header + raw rows.

No semantic validation happens here. Cells are passed through as read
(numbers, strings, datetimes or date serials); only pandas' NaN is turned
into None. Only the first sheet of a workbook is read.
"""

__all__ = [
    "FORMATS",
    "ImportAbortedError",
    "ParseError",
    "RowLimitExceededError",
    "TabularData",
    "detect_delimiter",
    "detect_format",
    "read_tabular",
]

logger = logging.getLogger(__name__)

XLSX = "xlsx"
CSV = "csv"
FORMATS = (XLSX, CSV)

_SUFFIX_FORMATS = {
    ".xlsx": XLSX,
    ".xlsm": XLSX,
    ".csv": CSV,
    ".txt": CSV,
}

# pandas' default NA strings minus "NA" (province code of Napoli) and "N/A".
# Blank cells still become NaN.
_NA_VALUES = ["", "#N/A", "#NA", "NaN", "nan", "NULL", "null"]

_CSV_ENCODINGS = ("utf-8-sig", "latin-1")
_CSV_DELIMITERS = ",;\t|"


class ImportAbortedError(Exception):
    """Base for errors that abort an import before any row is processed."""


class ParseError(ImportAbortedError):
    """Raised when the buffer is not a readable spreadsheet/CSV or has no data row."""


class RowLimitExceededError(ImportAbortedError):
    """Raised when a file holds more data rows than the configured maximum."""

    def __init__(self, rows: int, max_rows: int) -> None:
        super().__init__(f"il file contiene {rows} righe, massimo consentito {max_rows}")
        self.rows = rows
        self.max_rows = max_rows


@dataclass(frozen=True)
class TabularData:
    header: list[Any]
    rows: list[list[Any]]  # data rows in file order, header excluded
    date_system: int = 1900  # spreadsheet epoch (1900 or 1904)
    source_format: str = XLSX

    @property
    def row_count(self) -> int:
        return len(self.rows)


def detect_format(filename: str | Path) -> str:
    suffix = Path(filename).suffix.lower()
    try:
        return _SUFFIX_FORMATS[suffix]
    except KeyError:
        raise ParseError(f"formato file non supportato: '{suffix or filename}'") from None


def read_tabular(data: bytes, fmt: str) -> TabularData:
    """Parse a spreadsheet or CSV buffer into a header row and data rows.

    Parameters
    ----------
    data: file contents
    fmt: "xlsx" or "csv"

    Raises
    ------
    ParseError: malformed buffer, unknown format, or fewer than 2 rows
    """
    if fmt == XLSX:
        df, date_system = _read_xlsx(data)
    elif fmt == CSV:
        df, date_system = _read_csv(data), 1900
    else:
        raise ParseError(f"formato file non supportato: '{fmt}'")

    grid = _to_grid(df)
    if len(grid) < 2:
        raise ParseError("il file deve contenere una riga di intestazione e almeno una riga di dati")
    logger.debug(f"read {fmt}: columns={len(grid[0])} data_rows={len(grid) - 1} epoch={date_system}")
    return TabularData(header=grid[0], rows=grid[1:], date_system=date_system, source_format=fmt)


def _read_xlsx(data: bytes) -> tuple[pd.DataFrame, int]:
    try:
        xls = pd.ExcelFile(io.BytesIO(data), engine="openpyxl")
        # 1904 epoch workbooks (old Mac Excel) shift every date serial
        date_system = 1904 if xls.book.epoch == CALENDAR_MAC_1904 else 1900
        if not xls.sheet_names:
            raise ParseError("il file non contiene fogli")
        df = xls.parse(
            xls.sheet_names[0], header=None, keep_default_na=False, na_values=_NA_VALUES
        )
    except ParseError:
        raise
    except (zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
        raise ParseError(f"file Excel non valido: {e}") from e
    return df, date_system


def _read_csv(data: bytes) -> pd.DataFrame:
    text: str | None = None
    for encoding in _CSV_ENCODINGS:
        try:
            text = data.decode(encoding)
            break
        except UnicodeDecodeError:
            continue
    if text is None or not text.strip():
        raise ParseError("file CSV vuoto o non leggibile")
    try:
        # every cell as text: fiscal codes, VAT numbers and CAP keep leading zeros
        return pd.read_csv(
            io.StringIO(text),
            sep=detect_delimiter(text),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
        raise ParseError(f"file CSV non valido: {e}") from e


def detect_delimiter(text: str) -> str:
    """Guess the CSV delimiter among ',', ';', tab and '|' (default ',')."""
    sample = "\n".join(text.splitlines()[:20])
    try:
        delimiter = csv.Sniffer().sniff(sample, delimiters=_CSV_DELIMITERS).delimiter
        if delimiter in _CSV_DELIMITERS:
            return delimiter
    except csv.Error:
        pass
    # Sniffer gives up on single-line or irregular samples: count on the header line
    first_line = sample.split("\n", 1)[0]
    counts = {d: first_line.count(d) for d in _CSV_DELIMITERS}
    best = max(counts, key=lambda d: counts[d])
    return best if counts[best] > 0 else ","


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _to_grid(df: pd.DataFrame) -> list[list[Any]]:
    grid: list[list[Any]] = []
    for raw in df.itertuples(index=False, name=None):
        grid.append([_cell(v) for v in raw])
    # trailing blank rows are spreadsheet artefacts; interior ones keep their position
    while grid and all(_is_blank(v) for v in grid[-1]):
        grid.pop()
    return grid


def _cell(value: Any) -> Any:
    if _is_nan(value):
        return None
    if isinstance(value, np.generic):
        # numpy scalars from numeric columns -> plain int / float / bool
        return value.item()
    return value


def _is_nan(value: Any) -> bool:
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False
