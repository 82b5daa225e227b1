from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, date, datetime
from typing import Any

import psycopg2

from ..models.store_records import EditionInfo, ExistingRecord
from .store import RecordStoreError

"""PostgreSQL record store (psycopg2 cursor).

Tables follow the application schema: camelCase quoted column names and a
"clientId" tenant column on every table. Each create() is its own
transaction (INSERT ... RETURNING id, then COMMIT), so a commit aborted
midway keeps the rows already written. Failures roll back the current
statement and surface as RecordStoreError for the orchestrator to record
against the row.
"""

__all__ = [
    "PostgresRecordStore",
    "TABLE_COLUMNS",
]

logger = logging.getLogger(__name__)

# field key -> column, per entity type. Fields not listed are not persisted.
TABLE_COLUMNS: dict[str, dict[str, str]] = {
    "companies": {
        "name": "name",
        "vatNumber": "vatNumber",
        "fiscalCode": "taxCode",
        "address": "address",
        "city": "city",
        "province": "province",
        "postalCode": "postalCode",
        "country": "country",
        "phone": "phone",
        "email": "email",
        "pec": "pec",
        "sdiCode": "sdiCode",
        "contactPerson": "contactPerson",
        "notes": "notes",
    },
    "students": {
        "firstName": "firstName",
        "lastName": "lastName",
        "fiscalCode": "fiscalCode",
        "email": "email",
        "phone": "phone",
        "birthDate": "birthDate",
        "birthPlace": "birthPlace",
        "address": "address",
        "city": "city",
        "province": "province",
        "postalCode": "postalCode",
        "companyId": "companyId",
        "notes": "notes",
    },
    "registrations": {
        "studentId": "studentId",
        "editionId": "courseEditionId",
        "companyId": "companyId",
        "registrationDate": "registrationDate",
        "priceApplied": "priceApplied",
        "notes": "notes",
    },
}

_LOOKUP_SQL: dict[tuple[str, tuple[str, ...]], str] = {
    ("companies", ("vatNumber",)): (
        'SELECT id, name FROM companies WHERE "clientId" = %s AND "vatNumber" = %s '
        "ORDER BY id LIMIT 1"
    ),
    ("companies", ("fiscalCode",)): (
        'SELECT id, name FROM companies WHERE "clientId" = %s AND upper("taxCode") = %s '
        "ORDER BY id LIMIT 1"
    ),
    ("companies", ("email",)): (
        'SELECT id, name FROM companies WHERE "clientId" = %s AND lower(email) = %s '
        "ORDER BY id LIMIT 1"
    ),
    ("companies", ("name",)): (
        'SELECT id, name FROM companies WHERE "clientId" = %s AND name = %s '
        "ORDER BY id LIMIT 1"
    ),
    ("students", ("fiscalCode",)): (
        'SELECT id, "firstName" || \' \' || "lastName" FROM students '
        'WHERE "clientId" = %s AND upper("fiscalCode") = %s ORDER BY id LIMIT 1'
    ),
    ("students", ("email",)): (
        'SELECT id, "firstName" || \' \' || "lastName" FROM students '
        'WHERE "clientId" = %s AND lower(email) = %s ORDER BY id LIMIT 1'
    ),
    ("registrations", ("studentFiscalCode", "editionId")): (
        'SELECT r.id, s."firstName" || \' \' || s."lastName" || \' / edizione \' || r."courseEditionId" '
        'FROM registrations r JOIN students s ON s.id = r."studentId" '
        'WHERE r."clientId" = %s AND upper(s."fiscalCode") = %s AND r."courseEditionId" = %s '
        "ORDER BY r.id LIMIT 1"
    ),
}

_EDITION_SQL = (
    'SELECT e.id, c.title, COALESCE(e."customPrice", e.price), e."startDate", e."endDate" '
    'FROM "courseEditions" e JOIN courses c ON c.id = e."courseId" '
    'WHERE e.id = %s AND e."clientId" = %s'
)


class PostgresRecordStore:
    """RecordStore backed by a psycopg2 cursor, scoped to one tenant (clientId)."""

    def __init__(self, cursor: Any, client_id: int) -> None:
        self.cursor = cursor
        self.client_id = client_id

    def _execute(self, sql: str, params: Sequence[Any]) -> None:
        try:
            self.cursor.execute(sql, tuple(params))
        except psycopg2.Error as e:
            self._rollback()
            raise RecordStoreError(str(e).strip()) from e

    def _rollback(self) -> None:
        try:
            self.cursor.execute("ROLLBACK")
        except psycopg2.Error:  # pragma: no cover - connection already broken
            logger.debug("rollback failed", exc_info=True)

    def find_by_natural_key(
        self, entity_type: str, fields: Sequence[str], values: Sequence[Any]
    ) -> ExistingRecord | None:
        sql = _LOOKUP_SQL.get((entity_type, tuple(fields)))
        if sql is None:
            raise RecordStoreError(f"no lookup defined for {entity_type} by {'+'.join(fields)}")
        self._execute(sql, (self.client_id, *values))
        row = self.cursor.fetchone()
        if row is None:
            return None
        return ExistingRecord(id=int(row[0]), label=str(row[1] or ""))

    def create(self, entity_type: str, values: dict[str, Any]) -> int:
        columns = TABLE_COLUMNS.get(entity_type)
        if columns is None:
            raise RecordStoreError(f"unsupported entity type: {entity_type}")
        now = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        row: dict[str, Any] = {"clientId": self.client_id, "createdAt": now, "updatedAt": now}
        for key, column in columns.items():
            # None -> column left to its default
            if values.get(key) is not None:
                row[column] = values[key]
        if entity_type == "registrations":
            row.setdefault("registrationDate", date.today().isoformat())

        cols_sql = ",".join(f'"{c}"' for c in row)
        placeholders = ",".join(["%s"] * len(row))
        sql = f'INSERT INTO "{entity_type}" ({cols_sql}) VALUES ({placeholders}) RETURNING id'
        self._execute(sql, list(row.values()))
        returned = self.cursor.fetchone()
        self._execute("COMMIT", ())
        if returned is None:  # pragma: no cover - RETURNING always yields a row
            raise RecordStoreError(f"insert into {entity_type} returned no id")
        return int(returned[0])

    def get_edition(self, edition_id: int) -> EditionInfo | None:
        self._execute(_EDITION_SQL, (edition_id, self.client_id))
        row = self.cursor.fetchone()
        if row is None:
            return None
        return EditionInfo(
            id=int(row[0]),
            label=str(row[1] or ""),
            price=int(row[2] or 0),
            start_date=row[3],
            end_date=row[4],
        )
