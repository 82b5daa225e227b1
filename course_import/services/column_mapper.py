from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Sequence
from typing import Any

from ..excel.reader import ImportAbortedError
from ..models.entity_spec import EntityTypeSpec, FieldSpec
from ..models.row_data import MappedRow

"""Header -> canonical field key resolution.

Matching is deterministic: headers and synonyms are folded to lowercase ASCII
alphanumerics ("P.IVA" == "piva", "Città" == "citta", "Nome*" == "nome").
Unknown headers are ignored. Every required field must be matched, otherwise
the import is aborted before any row is processed.
"""

__all__ = [
    "ColumnMapping",
    "MissingRequiredColumnsError",
    "normalize_header",
    "build_synonym_index",
    "map_columns",
    "apply_mapping",
]

logger = logging.getLogger(__name__)

ColumnMapping = dict[int, str]  # column index -> field key

_NON_ALNUM = re.compile(r"[^0-9a-z]+")


class MissingRequiredColumnsError(ImportAbortedError):
    """Raised when required fields have no matching header column."""

    def __init__(self, entity_type: str, missing: Sequence[FieldSpec]) -> None:
        self.entity_type = entity_type
        self.missing = tuple(missing)
        labels = ", ".join(f.display_label for f in self.missing)
        super().__init__(f"colonne obbligatorie mancanti: {labels}")

    @property
    def missing_keys(self) -> list[str]:
        return [f.key for f in self.missing]


def normalize_header(label: Any) -> str:
    """Fold a header label for comparison (accents, case, punctuation, spaces)."""
    if label is None:
        return ""
    text = unicodedata.normalize("NFKD", str(label))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return _NON_ALNUM.sub("", text.lower())


def build_synonym_index(spec: EntityTypeSpec) -> dict[str, str]:
    """Folded synonym -> field key. The key and display label always match."""
    index: dict[str, str] = {}
    for f in spec.fields:
        for candidate in (f.key, f.display_label, *f.header_synonyms):
            folded = normalize_header(candidate)
            # the first field declaring a synonym owns it
            if folded and folded not in index:
                index[folded] = f.key
    return index


def map_columns(header: Sequence[Any], spec: EntityTypeSpec) -> ColumnMapping:
    """Resolve each header cell to a field key.

    Raises:
        MissingRequiredColumnsError: listing every required field without a column
    """
    index = build_synonym_index(spec)
    mapping: ColumnMapping = {}
    claimed: dict[str, int] = {}
    for col, label in enumerate(header):
        key = index.get(normalize_header(label))
        if key is None:
            if label not in (None, ""):
                logger.debug(f"{spec.name}: ignoring column {col + 1} '{label}'")
            continue
        if key in claimed:
            logger.warning(
                f"{spec.name}: column {col + 1} '{label}' duplicates field '{key}' "
                f"(already mapped from column {claimed[key] + 1}); ignored"
            )
            continue
        claimed[key] = col
        mapping[col] = key

    missing = [f for f in spec.required_fields if f.key not in claimed]
    if missing:
        raise MissingRequiredColumnsError(spec.name, missing)
    logger.debug(f"{spec.name}: mapped columns {sorted(claimed)}")
    return mapping


def apply_mapping(rows: Sequence[Sequence[Any]], mapping: ColumnMapping) -> list[MappedRow]:
    """Turn raw positional rows into MappedRows numbered from 1 in file order."""
    mapped: list[MappedRow] = []
    for i, raw in enumerate(rows, start=1):
        cells = {key: (raw[col] if col < len(raw) else None) for col, key in mapping.items()}
        mapped.append(MappedRow(row_number=i, cells=cells))
    return mapped
