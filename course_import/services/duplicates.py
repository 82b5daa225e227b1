from __future__ import annotations

import logging
from dataclasses import dataclass, field
from collections.abc import Collection, Mapping
from types import MappingProxyType
from typing import Any

from ..db.store import RecordStore
from ..models.entity_spec import EntityTypeSpec, NaturalKey
from ..models.processing_result import RowDecision
from ..models.row_data import NormalizedRow
from ..models.validation_issue import DuplicateMatch

"""Duplicate detection against the record store and the current batch.

BatchKeys is the accumulator of the row fold: it holds the natural keys of
rows already accepted in this batch and is never mutated. Each accepted row
produces a new BatchKeys via accept(), which the orchestrator threads into
the next row.

For every natural key of a row, the batch is checked first (a hit reports
the first occurrence and skips the store), then the store. At most one match
per key.
"""

__all__ = [
    "BatchEntry",
    "BatchKeys",
    "detect_duplicates",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchEntry:
    row_number: int  # first occurrence in the file
    record_id: int | None = None  # set once created (commit mode)


@dataclass(frozen=True)
class BatchKeys:
    entries: Mapping[tuple[str, tuple[Any, ...]], BatchEntry] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __len__(self) -> int:
        return len(self.entries)

    def lookup(self, key: NaturalKey, values: tuple[Any, ...]) -> BatchEntry | None:
        return self.entries.get((key.label, values))

    def accept(self, decision: RowDecision, spec: EntityTypeSpec) -> BatchKeys:
        """Return a new accumulator that also holds the natural keys of an accepted row."""
        added: dict[tuple[str, tuple[Any, ...]], BatchEntry] = {}
        for key in spec.natural_keys:
            values = key.values_of(decision.values)
            if values is None or (key.label, values) in self.entries:
                continue
            added[(key.label, values)] = BatchEntry(decision.row_number, decision.record_id)
        if not added:
            return self
        return BatchKeys(MappingProxyType({**self.entries, **added}))


def _match_value(values: tuple[Any, ...]) -> Any:
    return values[0] if len(values) == 1 else list(values)


def detect_duplicates(
    row: NormalizedRow,
    spec: EntityTypeSpec,
    store: RecordStore,
    seen: BatchKeys,
    skip_fields: Collection[str] = (),
) -> list[DuplicateMatch]:
    """Return zero or one DuplicateMatch per natural key of the row.

    Keys touching a field in skip_fields (a malformed value) are not compared.

    Raises whatever the store raises on lookup; the caller turns it into a
    row error.
    """
    matches: list[DuplicateMatch] = []
    for key in spec.natural_keys:
        if any(f in skip_fields for f in key.fields):
            continue
        values = key.values_of(row.values)
        if values is None:
            continue
        entry = seen.lookup(key, values)
        if entry is not None:
            matches.append(DuplicateMatch(
                row_number=row.row_number,
                field=key.label,
                value=_match_value(values),
                existing_id=entry.record_id,
                existing_label=f"riga {entry.row_number} del file",
                existing_row=entry.row_number,
            ))
            continue
        existing = store.find_by_natural_key(spec.name, key.fields, values)
        if existing is not None:
            matches.append(DuplicateMatch(
                row_number=row.row_number,
                field=key.label,
                value=_match_value(values),
                existing_id=existing.id,
                existing_label=existing.label,
            ))
    if matches:
        logger.debug(f"row {row.row_number}: {len(matches)} duplicate(s)")
    return matches
