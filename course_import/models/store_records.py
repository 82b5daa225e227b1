from __future__ import annotations

from dataclasses import dataclass

"""Read models returned by the record store collaborator."""

__all__ = [
    "ExistingRecord",
    "EditionInfo",
    "RowContext",
]


@dataclass(frozen=True)
class ExistingRecord:
    id: int
    label: str  # e.g. "Mario Rossi", "Edilizia Rossi S.r.l."


@dataclass(frozen=True)
class EditionInfo:
    """Course edition referenced by a registration."""
    id: int
    label: str
    price: int  # listed price, minor units
    start_date: str | None = None  # ISO date
    end_date: str | None = None  # ISO date; stored timestamps are read by their date part


@dataclass(frozen=True)
class RowContext:
    """Store data resolved for one row, consumed by cross-field rules."""
    edition: EditionInfo | None = None
    student: ExistingRecord | None = None
    company: ExistingRecord | None = None
