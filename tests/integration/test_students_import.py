from __future__ import annotations

import datetime as dt

import pytest

from course_import.db.store import InMemoryRecordStore
from course_import.models.config_models import DuplicatePolicy, ImportSettings
from course_import.services.column_mapper import MissingRequiredColumnsError
from course_import.services.orchestrator import ImportJob, run_import

"""End-to-end student imports through the in-memory record store."""

HEADER = ["Nome", "Cognome", "Codice Fiscale"]


def test_first_import_then_reimport_reports_duplicate(make_csv):
    store = InMemoryRecordStore()
    data = make_csv([HEADER, ["Mario", "Rossi", "RSSMRA80A01H501Z"]], sep=",")

    first = run_import(data, "csv", "students", store, dry_run=False)
    assert first.total_rows == 1
    assert first.imported_count == 1
    assert first.errors == ()
    assert first.duplicates == ()
    assert first.success

    second = run_import(data, "csv", "students", store, dry_run=False)
    assert [d.to_dict() for d in second.duplicates] == [{
        "row": 1,
        "field": "fiscalCode",
        "value": "RSSMRA80A01H501Z",
        "existingId": 1,
        "existingLabel": "Mario Rossi",
    }]
    assert not second.success


def test_missing_required_column_produces_no_result(make_csv):
    store = InMemoryRecordStore()
    data = make_csv([["Nome", "Codice Fiscale"], ["Mario", "RSSMRA80A01H501Z"]])
    with pytest.raises(MissingRequiredColumnsError):
        run_import(data, "csv", "students", store, dry_run=False)
    assert store.create_calls == 0


def test_blank_required_field_excludes_only_that_row(make_csv):
    store = InMemoryRecordStore()
    data = make_csv([HEADER, ["Mario", "", "RSSMRA80A01H501Z"], ["Laura", "Bianchi", "BNCLRA85B41F205X"]])
    result = run_import(data, "csv", "students", store, dry_run=False)
    assert result.total_rows == 2
    assert result.imported_count == 1
    assert result.skipped_count == 1
    assert [(e.row_number, e.field) for e in result.errors] == [(1, "lastName")]
    assert [e.values["lastName"] for e in result.imported_entities] == ["Bianchi"]
    assert store.create_calls == 1


def test_dry_run_writes_nothing_and_is_repeatable(make_csv):
    store = InMemoryRecordStore()
    data = make_csv([HEADER, ["Mario", "Rossi", "RSSMRA80A01H501Z"], ["Laura", "Bianchi", "ABC"]])
    first = run_import(data, "csv", "students", store)
    second = run_import(data, "csv", "students", store)
    assert store.create_calls == 0
    assert first.to_dict() == second.to_dict()
    assert first.dry_run and first.imported_count == 1
    assert all(e.record_id is None for e in first.imported_entities)


def test_preview_matches_commit_on_a_clean_store(make_csv):
    data = make_csv([
        HEADER,
        ["Mario", "Rossi", "RSSMRA80A01H501Z"],
        ["", "", ""],
        ["Mario", "Rossi", "RSSMRA80A01H501Z"],
        ["Anna", "Neri", "NRENNA90C41L219K"],
    ])
    store = InMemoryRecordStore()
    job = ImportJob("students", store)
    job.load(data, "csv")
    job.map_columns()
    preview = job.preview()
    committed = job.commit()
    assert preview.imported_count == committed.imported_count == 3
    assert [e.row_number for e in preview.imported_entities] == [e.row_number for e in committed.imported_entities]
    # batch duplicate of row 1, with the id assigned in commit mode
    assert preview.duplicates[0].existing_row == 1
    assert preview.duplicates[0].existing_id is None
    assert committed.duplicates[0].existing_id == 1
    assert committed.warnings[0].row_number == 2
    assert committed.total_rows == committed.imported_count + committed.skipped_count


def test_block_policy_skips_batch_duplicate(make_csv):
    data = make_csv([HEADER, ["Mario", "Rossi", "RSSMRA80A01H501Z"], ["Mario", "Rossi", "rssmra80a01h501z"]])
    settings = ImportSettings(duplicate_policy={"students": DuplicatePolicy.BLOCK})
    store = InMemoryRecordStore()
    result = run_import(data, "csv", "students", store, dry_run=False, settings=settings)
    assert result.imported_count == 1
    assert result.skipped_count == 1
    assert result.errors == ()
    assert len(result.duplicates) == 1
    assert len(store.records("students")) == 1


def test_xlsx_with_dates_and_serials(make_xlsx):
    data = make_xlsx([
        ["Nome", "Cognome", "Data di nascita", "CAP", "Provincia"],
        ["Mario", "Rossi", "01/02/1980", 100, "rm"],
        ["Laura", "Bianchi", 29221, "20121", "MI"],
        ["Luca", "Verdi", dt.datetime(1975, 6, 30), "20121", "NA"],
    ])
    result = run_import(data, "xlsx", "students", InMemoryRecordStore())
    values = [e.values for e in result.imported_entities]
    assert [v["birthDate"] for v in values] == ["1980-02-01", "1980-01-01", "1975-06-30"]
    assert values[0]["postalCode"] == "00100"
    assert values[0]["province"] == "RM"
    assert values[2]["province"] == "NA"
    assert result.errors == ()


def test_italian_notation_warnings_do_not_block(make_csv):
    data = make_csv([
        ["Nome", "Cognome", "Provincia", "P.IVA Azienda"],
        ["Mario", "Rossi", "Roma", "12345678903"],
    ])
    result = run_import(data, "csv", "students", InMemoryRecordStore())
    assert result.imported_count == 1
    assert sorted(w.field for w in result.warnings) == ["companyVatNumber", "province"]
    assert result.success


def test_email_identifies_student_without_fiscal_code(make_csv):
    store = InMemoryRecordStore()
    store.create("students", {"firstName": "Mario", "lastName": "Rossi", "email": "mario.rossi@email.it"})
    data = make_csv([
        ["Nome", "Cognome", "Email"],
        ["Mario", "Rossi", "Mario.Rossi@email.it"],
        ["Laura", "Bianchi", "laura.bianchi@email.it"],
        ["L.", "Bianchi", "LAURA.BIANCHI@EMAIL.IT"],
    ])
    result = run_import(data, "csv", "students", store)
    assert [(d.row_number, d.field, d.existing_id, d.existing_row) for d in result.duplicates] == [
        (1, "email", 1, None),
        (3, "email", None, 2),
    ]


def test_company_linked_by_name(make_csv):
    store = InMemoryRecordStore()
    store.create("companies", {"name": "Edilizia Rossi S.r.l.", "vatNumber": "12345678903"})
    data = make_csv([
        ["Nome", "Cognome", "Azienda"],
        ["Mario", "Rossi", "Edilizia Rossi S.r.l."],
        ["Laura", "Bianchi", "Bianchi Logistica"],
    ])
    result = run_import(data, "csv", "students", store, dry_run=False)
    assert result.imported_count == 2
    assert [(w.row_number, w.field) for w in result.warnings] == [(2, "companyName")]
    students = store.records("students")
    assert students[1]["companyId"] == 1
    assert students[2].get("companyId") is None
