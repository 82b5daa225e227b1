from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

import pandas as pd

"""Row-level findings: validation issues and duplicate matches.

Both carry the 1-based data row number (header excluded) so an operator can
find the offending spreadsheet row.
"""

__all__ = [
    "Severity",
    "ValidationIssue",
    "DuplicateMatch",
    "json_safe",
]


class Severity(Enum):
    ERROR = "error"  # row is excluded from the import
    WARNING = "warning"  # row is imported anyway


def json_safe(value: Any) -> Any:
    """Convert a raw or normalized cell value into something json.dumps accepts."""
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return None if pd.isna(value) else value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    return str(value)


@dataclass(frozen=True)
class ValidationIssue:
    row_number: int
    field: str  # canonical field key ("*" when the whole row is concerned)
    message: str
    severity: Severity
    value: Any = None

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    @staticmethod
    def error(row_number: int, field: str, message: str, value: Any = None) -> ValidationIssue:
        return ValidationIssue(row_number, field, message, Severity.ERROR, value)

    @staticmethod
    def warning(row_number: int, field: str, message: str, value: Any = None) -> ValidationIssue:
        return ValidationIssue(row_number, field, message, Severity.WARNING, value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row_number,
            "field": self.field,
            "message": self.message,
            "value": json_safe(self.value),
        }


@dataclass(frozen=True)
class DuplicateMatch:
    """A row whose natural key collides with a stored record or an earlier row.

    existing_row is set for batch-internal matches (first occurrence in the
    file); existing_id is None for those until the first occurrence is created.
    """
    row_number: int
    field: str  # natural key label, e.g. "fiscalCode"
    value: Any
    existing_id: int | None
    existing_label: str
    existing_row: int | None = None

    @property
    def in_batch(self) -> bool:
        return self.existing_row is not None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "row": self.row_number,
            "field": self.field,
            "value": json_safe(self.value),
            "existingId": self.existing_id,
            "existingLabel": self.existing_label,
        }
        if self.existing_row is not None:
            data["existingRow"] = self.existing_row
        return data
