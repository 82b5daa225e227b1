from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any

from ..db.store import RecordStore, RecordStoreError
from ..models.entity_spec import EntityTypeSpec
from ..models.row_data import NormalizedRow
from ..models.store_records import ExistingRecord, RowContext
from ..models.validation_issue import ValidationIssue

"""Reference resolution: natural references in a row -> store identifiers.

Rows refer to other records by their natural key (a student by fiscal code,
a company by VAT number) or by id (course edition). Resolution reads the
record store, adds the resolved identifiers to the row values (studentId,
companyId) and returns the context needed by cross-field rules.

A company is found by VAT number, or failing that by its exact name
(the students "Azienda" column).

- a missing student or edition is an error (a registration cannot exist
  without them)
- a missing company is a warning: the record is imported without it
- a blank registration price takes the edition's listed price
"""

__all__ = [
    "ResolvedReferences",
    "resolve_references",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedReferences:
    row: NormalizedRow
    context: RowContext = field(default_factory=RowContext)
    issues: tuple[ValidationIssue, ...] = ()


def _resolve_company(
    row: NormalizedRow, store: RecordStore
) -> tuple[ExistingRecord | None, list[ValidationIssue]]:
    """Company by VAT number first, then by exact name (companyName, students only)."""
    issues: list[ValidationIssue] = []
    company: ExistingRecord | None = None
    vat = row.get("companyVatNumber")
    name = row.get("companyName")
    if vat is not None:
        company = store.find_by_natural_key("companies", ("vatNumber",), (vat,))
        if company is None:
            issues.append(ValidationIssue.warning(
                row.row_number, "companyVatNumber", f"Azienda con P.IVA {vat} non trovata", vat
            ))
    if company is None and name is not None:
        company = store.find_by_natural_key("companies", ("name",), (name,))
        if company is None:
            issues.append(ValidationIssue.warning(
                row.row_number, "companyName", f'Azienda "{name}" non trovata', name
            ))
    if company is None and issues:
        last = issues[-1]
        issues[-1] = replace(last, message=f"{last.message}: il record verrà importato senza azienda")
    return company, issues


def _resolve_student_refs(row: NormalizedRow, store: RecordStore) -> ResolvedReferences:
    company, issues = _resolve_company(row, store)
    return ResolvedReferences(
        row=row.with_values(companyId=company.id) if company else row,
        context=RowContext(company=company),
        issues=tuple(issues),
    )


def _resolve_registration_refs(row: NormalizedRow, store: RecordStore) -> ResolvedReferences:
    issues: list[ValidationIssue] = []
    updates: dict[str, Any] = {}

    fiscal_code = row.get("studentFiscalCode")
    student = store.find_by_natural_key("students", ("fiscalCode",), (fiscal_code,))
    if student is None:
        issues.append(ValidationIssue.error(
            row.row_number, "studentFiscalCode",
            f"Studente con codice fiscale {fiscal_code} non trovato", fiscal_code,
        ))
    else:
        updates["studentId"] = student.id

    edition_id = row.get("editionId")
    edition = store.get_edition(edition_id)
    if edition is None:
        issues.append(ValidationIssue.error(
            row.row_number, "editionId", f"Edizione del corso {edition_id} non trovata", edition_id,
        ))
    elif row.get("priceApplied") is None:
        updates["priceApplied"] = edition.price

    company, company_issues = _resolve_company(row, store)
    if company is not None:
        updates["companyId"] = company.id
    issues.extend(company_issues)

    return ResolvedReferences(
        row=row.with_values(**updates) if updates else row,
        context=RowContext(edition=edition, student=student, company=company),
        issues=tuple(issues),
    )


_RESOLVERS = {
    "students": _resolve_student_refs,
    "registrations": _resolve_registration_refs,
}


def resolve_references(row: NormalizedRow, spec: EntityTypeSpec, store: RecordStore) -> ResolvedReferences:
    """Resolve the store references of a row that passed field validation.

    Store failures are reported as an error on the row instead of raising.
    """
    resolver = _RESOLVERS.get(spec.name)
    if resolver is None:
        return ResolvedReferences(row=row)
    try:
        return resolver(row, store)
    except RecordStoreError as e:
        logger.warning(f"row {row.row_number}: reference lookup failed: {e}")
        return ResolvedReferences(
            row=row,
            issues=(ValidationIssue.error(row.row_number, "*", f"Errore durante la verifica dei riferimenti: {e}"),),
        )
