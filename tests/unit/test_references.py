from __future__ import annotations

from course_import.config.entity_types import get_entity_spec
from course_import.db.store import InMemoryRecordStore, RecordStoreError
from course_import.models.row_data import NormalizedRow
from course_import.models.validation_issue import Severity
from course_import.services.references import resolve_references


def _seed(store: InMemoryRecordStore) -> tuple[int, int]:
    company_id = store.create("companies", {"name": "Edilizia Rossi S.r.l.", "vatNumber": "12345678903"})
    student_id = store.create(
        "students", {"firstName": "Mario", "lastName": "Rossi", "fiscalCode": "RSSMRA80A01H501Z"}
    )
    return company_id, student_id


def test_registration_references_resolved(store):
    company_id, student_id = _seed(store)
    row = NormalizedRow(1, {
        "studentFiscalCode": "RSSMRA80A01H501Z",
        "editionId": 1,
        "priceApplied": 12000,
        "companyVatNumber": "12345678903",
    })
    resolved = resolve_references(row, get_entity_spec("registrations"), store)
    assert resolved.issues == ()
    assert resolved.row.get("studentId") == student_id
    assert resolved.row.get("companyId") == company_id
    assert resolved.row.get("priceApplied") == 12000
    assert resolved.context.edition.id == 1
    assert resolved.context.student.label == "Mario Rossi"
    assert resolved.context.company.id == company_id


def test_blank_price_takes_edition_price(store):
    _seed(store)
    row = NormalizedRow(1, {"studentFiscalCode": "RSSMRA80A01H501Z", "editionId": 2, "priceApplied": None})
    resolved = resolve_references(row, get_entity_spec("registrations"), store)
    assert resolved.row.get("priceApplied") == 20000


def test_unknown_student_and_edition_are_errors(store):
    row = NormalizedRow(5, {"studentFiscalCode": "BNCLRA85B41F205X", "editionId": 99})
    resolved = resolve_references(row, get_entity_spec("registrations"), store)
    assert [(i.field, i.severity) for i in resolved.issues] == [
        ("studentFiscalCode", Severity.ERROR),
        ("editionId", Severity.ERROR),
    ]
    assert "studentId" not in resolved.row.values


def test_unknown_company_is_warning(store):
    row = NormalizedRow(2, {"firstName": "Mario", "lastName": "Rossi", "companyVatNumber": "98765432103"})
    resolved = resolve_references(row, get_entity_spec("students"), store)
    assert len(resolved.issues) == 1
    issue = resolved.issues[0]
    assert issue.severity is Severity.WARNING
    assert issue.field == "companyVatNumber"
    assert "companyId" not in resolved.row.values


def test_student_company_resolved(store):
    company_id, _ = _seed(store)
    row = NormalizedRow(2, {"firstName": "Luca", "lastName": "Verdi", "companyVatNumber": "12345678903"})
    resolved = resolve_references(row, get_entity_spec("students"), store)
    assert resolved.issues == ()
    assert resolved.row.get("companyId") == company_id
    assert resolved.context.company.id == company_id


def test_student_company_resolved_by_name(store):
    company_id, _ = _seed(store)
    row = NormalizedRow(2, {"firstName": "Luca", "lastName": "Verdi", "companyName": "Edilizia Rossi S.r.l."})
    resolved = resolve_references(row, get_entity_spec("students"), store)
    assert resolved.issues == ()
    assert resolved.row.get("companyId") == company_id
    assert resolved.context.company.label == "Edilizia Rossi S.r.l."


def test_unknown_vat_falls_back_to_name(store):
    company_id, _ = _seed(store)
    row = NormalizedRow(2, {
        "firstName": "Luca", "lastName": "Verdi",
        "companyVatNumber": "98765432103", "companyName": "Edilizia Rossi S.r.l.",
    })
    resolved = resolve_references(row, get_entity_spec("students"), store)
    assert resolved.row.get("companyId") == company_id
    assert [i.field for i in resolved.issues] == ["companyVatNumber"]
    assert resolved.issues[0].message == "Azienda con P.IVA 98765432103 non trovata"


def test_unknown_company_name_is_warning(store):
    row = NormalizedRow(4, {"firstName": "Luca", "lastName": "Verdi", "companyName": "Neri Servizi"})
    resolved = resolve_references(row, get_entity_spec("students"), store)
    assert len(resolved.issues) == 1
    issue = resolved.issues[0]
    assert issue.severity is Severity.WARNING
    assert issue.field == "companyName"
    assert issue.message == 'Azienda "Neri Servizi" non trovata: il record verrà importato senza azienda'
    assert "companyId" not in resolved.row.values
    assert resolved.context.company is None


def test_companies_have_no_references(store):
    row = NormalizedRow(1, {"name": "Edilizia Rossi S.r.l."})
    resolved = resolve_references(row, get_entity_spec("companies"), store)
    assert resolved.row is row
    assert resolved.issues == ()


class FailingStore(InMemoryRecordStore):
    def find_by_natural_key(self, entity_type, fields, values):
        raise RecordStoreError("connection lost")


def test_store_failure_becomes_row_error():
    row = NormalizedRow(3, {"studentFiscalCode": "RSSMRA80A01H501Z", "editionId": 1})
    resolved = resolve_references(row, get_entity_spec("registrations"), FailingStore())
    assert len(resolved.issues) == 1
    assert resolved.issues[0].is_error
    assert resolved.issues[0].field == "*"
    assert "connection lost" in resolved.issues[0].message
