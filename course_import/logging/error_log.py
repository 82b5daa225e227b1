from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord
from ..models.processing_result import ImportResult

"""Issue log buffering (JSON Lines).

One file per CLI run: logs/import-issues-YYYYMMDD-HHMMSS.log (UTC), created
on first flush. Records have a fixed key set (see ErrorRecord).
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "records_from_result",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


def records_from_result(file: str, result: ImportResult) -> list[ErrorRecord]:
    """Flatten the errors, warnings and duplicates of a result into log records."""
    records: list[ErrorRecord] = []
    for issue in result.errors:
        records.append(ErrorRecord.create(file, result.entity_type, issue.row_number, issue.field, "error", issue.message))
    for issue in result.warnings:
        records.append(ErrorRecord.create(file, result.entity_type, issue.row_number, issue.field, "warning", issue.message))
    for dup in result.duplicates:
        message = f"{dup.field}={dup.value} già presente: {dup.existing_label}"
        if dup.existing_id is not None:
            message += f" (id {dup.existing_id})"
        records.append(ErrorRecord.create(file, result.entity_type, dup.row_number, dup.field, "duplicate", message))
    return sorted(records, key=lambda r: r.row)


class ErrorLogBuffer:
    """In-memory buffer of issue records; flush() appends them as JSON Lines.

    The file path is fixed on first access. Single-threaded use only.
    """

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir or LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"import-issues-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def extend(self, records: list[ErrorRecord]) -> None:
        self._records.extend(records)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; returns the file path, None when nothing was written."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
