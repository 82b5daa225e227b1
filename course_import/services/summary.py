from __future__ import annotations

from ..models.processing_result import ImportResult

"""SUMMARY line rendering for the CLI.

Format:
SUMMARY entity=<type> mode=<dry-run|commit> rows=<n> imported=<n> skipped=<n>
errors=<n> warnings=<n> duplicates=<n> elapsed_sec=<x>
"""


def _format_seconds(elapsed: float) -> str:
    if elapsed <= 0:
        return "0"
    if elapsed == int(elapsed):
        return str(int(elapsed))
    if elapsed < 0.01:
        # avoid scientific notation for very small numbers
        return f"{elapsed:.6f}".rstrip("0").rstrip(".")
    return f"{elapsed:.2f}".rstrip("0").rstrip(".")


def render_summary_line(result: ImportResult, elapsed_seconds: float) -> str:
    """Render the SUMMARY line of one import run.

    Examples:
        >>> result = ImportResult("students", True, 3, 2, 1, (), (), (), ())
        >>> render_summary_line(result, 0.5)
        'SUMMARY entity=students mode=dry-run rows=3 imported=2 skipped=1 errors=0 warnings=0 duplicates=0 elapsed_sec=0.5'
    """
    mode = "dry-run" if result.dry_run else "commit"
    return (
        f"SUMMARY entity={result.entity_type} "
        f"mode={mode} "
        f"rows={result.total_rows} "
        f"imported={result.imported_count} "
        f"skipped={result.skipped_count} "
        f"errors={len(result.errors)} "
        f"warnings={len(result.warnings)} "
        f"duplicates={len(result.duplicates)} "
        f"elapsed_sec={_format_seconds(elapsed_seconds)}"
    )
