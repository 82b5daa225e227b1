from __future__ import annotations

from course_import.models.processing_result import ImportResult
from course_import.models.validation_issue import ValidationIssue
from course_import.services.summary import render_summary_line


def _result(dry_run: bool = True, **overrides) -> ImportResult:
    data = dict(
        entity_type="students",
        dry_run=dry_run,
        total_rows=3,
        imported_count=2,
        skipped_count=1,
        errors=(ValidationIssue.error(2, "lastName", "x"),),
        warnings=(),
        duplicates=(),
        imported_entities=(),
    )
    data.update(overrides)
    return ImportResult(**data)


def test_render_summary_dry_run():
    line = render_summary_line(_result(), 0.84)
    assert line == (
        "SUMMARY entity=students mode=dry-run rows=3 imported=2 skipped=1 "
        "errors=1 warnings=0 duplicates=0 elapsed_sec=0.84"
    )


def test_render_summary_commit_mode():
    assert " mode=commit " in render_summary_line(_result(dry_run=False), 1.0)


def test_elapsed_formatting():
    assert render_summary_line(_result(), 0).endswith("elapsed_sec=0")
    assert render_summary_line(_result(), 2.0).endswith("elapsed_sec=2")
    assert render_summary_line(_result(), 1.5).endswith("elapsed_sec=1.5")
    assert render_summary_line(_result(), 0.004).endswith("elapsed_sec=0.004")
    assert "e-" not in render_summary_line(_result(), 0.0000012)
