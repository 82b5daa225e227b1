from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines issue log.

Every row-level error, warning and duplicate of an import run becomes one
record. row=-1 is used for file-level failures (unreadable file, missing
columns) where no row can be named.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured issue record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: source file name
        entity: entity type being imported
        row: data row number (1-based). -1 for file-level failures
        field: canonical field key, "*" when not field specific
        severity: error | warning | duplicate | fatal
        message: operator facing description
    """
    timestamp: str  # ISO8601 UTC
    file: str
    entity: str
    row: int
    field: str
    severity: str
    message: str

    @staticmethod
    def create(file: str, entity: str, row: int, field: str, severity: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            entity=entity,
            row=row,
            field=field,
            severity=severity,
            message=message,
        )

    def to_json_line(self) -> str:
        # fixed key set: dataclass -> dict -> json
        return json.dumps(asdict(self), ensure_ascii=False)
