from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

from ..config.entity_types import get_entity_spec
from ..models.store_records import EditionInfo, ExistingRecord

"""Record store collaborator used by the import pipeline.

The pipeline only needs three operations: look a record up by its natural
key, create a record, and read a course edition. PostgresRecordStore
(course_import.db.postgres_store) implements them against the application
database; InMemoryRecordStore backs tests and the CLI mock mode.
"""

__all__ = [
    "RecordStore",
    "RecordStoreError",
    "InMemoryRecordStore",
]

logger = logging.getLogger(__name__)


class RecordStoreError(Exception):
    """Raised by store adapters when a lookup or create fails."""


class RecordStore(Protocol):
    def find_by_natural_key(
        self, entity_type: str, fields: Sequence[str], values: Sequence[Any]
    ) -> ExistingRecord | None:
        """Return the stored record whose normalized key equals values, if any."""
        ...

    def create(self, entity_type: str, values: dict[str, Any]) -> int:
        """Persist one record and return its identifier."""
        ...

    def get_edition(self, edition_id: int) -> EditionInfo | None:
        ...


class InMemoryRecordStore:
    """Dictionary-backed store with sequential identifiers per entity type.

    Records are kept as the payload dicts handed to create(); natural keys
    are compared on those values, so registrations are matched on
    (studentFiscalCode, editionId) exactly like the database store does
    through its join.
    """

    def __init__(self, editions: Sequence[EditionInfo] = ()) -> None:
        self._records: dict[str, dict[int, dict[str, Any]]] = {}
        self._next_id: dict[str, int] = {}
        self._editions = {e.id: e for e in editions}
        self.create_calls = 0
        self.lookup_calls = 0

    def add_edition(self, edition: EditionInfo) -> None:
        self._editions[edition.id] = edition

    def records(self, entity_type: str) -> dict[int, dict[str, Any]]:
        return dict(self._records.get(entity_type, {}))

    def find_by_natural_key(
        self, entity_type: str, fields: Sequence[str], values: Sequence[Any]
    ) -> ExistingRecord | None:
        self.lookup_calls += 1
        wanted = tuple(values)
        for record_id, record in self._records.get(entity_type, {}).items():
            if tuple(record.get(f) for f in fields) == wanted:
                return ExistingRecord(record_id, get_entity_spec(entity_type).describe(record))
        return None

    def create(self, entity_type: str, values: dict[str, Any]) -> int:
        self.create_calls += 1
        record_id = self._next_id.get(entity_type, 1)
        self._next_id[entity_type] = record_id + 1
        self._records.setdefault(entity_type, {})[record_id] = dict(values)
        logger.debug(f"memory store: created {entity_type} id={record_id}")
        return record_id

    def get_edition(self, edition_id: int) -> EditionInfo | None:
        return self._editions.get(edition_id)

