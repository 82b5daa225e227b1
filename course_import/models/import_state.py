from __future__ import annotations

from enum import Enum

"""ImportState enum for the import job lifecycle.

State transitions: idle → parsed → mapped → previewed → committed (→ idle),
with failed reachable from any state on a fatal error (parse failure,
missing required columns, row limit).
"""

__all__ = [
    "ImportState",
    "ALLOWED_TRANSITIONS",
]


class ImportState(Enum):
    IDLE = "idle"
    PARSED = "parsed"
    MAPPED = "mapped"
    PREVIEWED = "previewed"
    COMMITTED = "committed"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[ImportState, frozenset[ImportState]] = {
    # re-upload is allowed after a preview or a failure
    ImportState.PARSED: frozenset({ImportState.IDLE, ImportState.PREVIEWED, ImportState.FAILED}),
    ImportState.MAPPED: frozenset({ImportState.PARSED}),
    ImportState.PREVIEWED: frozenset({ImportState.MAPPED, ImportState.PREVIEWED}),
    ImportState.COMMITTED: frozenset({ImportState.MAPPED, ImportState.PREVIEWED}),
    ImportState.IDLE: frozenset({ImportState.COMMITTED}),
    ImportState.FAILED: frozenset(ImportState),
}
