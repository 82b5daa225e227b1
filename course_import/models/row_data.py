from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""Row models flowing through the import pipeline.

MappedRow is produced by the column mapper (raw cells keyed by field key),
NormalizedRow by the field normalizer (canonical values, None for blanks).
Both keep the original data row number (1 = first row after the header).
"""

__all__ = [
    "MappedRow",
    "NormalizedRow",
]


@dataclass(frozen=True)
class MappedRow:
    row_number: int  # 1-based, header row excluded
    cells: dict[str, Any]  # field key -> raw cell value (mapped columns only)

    @property
    def is_blank(self) -> bool:
        """True when every mapped cell is empty (None / whitespace / NaN)."""
        for v in self.cells.values():
            if v is None:
                continue
            if isinstance(v, str) and v.strip() == "":
                continue
            if isinstance(v, float) and v != v:  # NaN
                continue
            return False
        return True


@dataclass(frozen=True)
class NormalizedRow:
    row_number: int
    values: dict[str, Any]  # field key -> canonical value (str, int minor units, ISO date) or None

    def get(self, key: str) -> Any:
        return self.values.get(key)

    def with_values(self, **updates: Any) -> NormalizedRow:
        """Return a copy with some values replaced or added."""
        return NormalizedRow(self.row_number, {**self.values, **updates})
