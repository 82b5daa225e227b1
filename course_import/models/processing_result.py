from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Any

from .validation_issue import DuplicateMatch, Severity, ValidationIssue, json_safe

"""Per-row decisions and the aggregate ImportResult.

RowDecision is the output of the per-row pipeline stage (normalize, validate,
resolve references, detect duplicates). ImportResult folds the decisions of a
whole batch into the JSON-serializable report returned to the caller.
"""

__all__ = [
    "ImportedEntity",
    "RowDecision",
    "ImportResult",
]


@dataclass(frozen=True)
class ImportedEntity:
    row_number: int
    values: dict[str, Any]  # payload handed (or to be handed) to the record store
    record_id: int | None = None  # assigned by the store in commit mode

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row_number,
            "id": self.record_id,
            "values": {k: json_safe(v) for k, v in self.values.items()},
        }


@dataclass(frozen=True)
class RowDecision:
    """Outcome of one row. accepted=True means it is (or would be) created."""
    row_number: int
    values: dict[str, Any]
    issues: tuple[ValidationIssue, ...] = ()
    duplicates: tuple[DuplicateMatch, ...] = ()
    accepted: bool = False
    blank: bool = False
    record_id: int | None = None

    @property
    def has_errors(self) -> bool:
        return any(i.is_error for i in self.issues)

    def persisted(self, record_id: int) -> RowDecision:
        return replace(self, record_id=record_id)

    def rejected(self, issue: ValidationIssue) -> RowDecision:
        """Degrade an accepted row to skipped, appending the reason."""
        return replace(self, issues=self.issues + (issue,), accepted=False, record_id=None)


@dataclass(frozen=True)
class ImportResult:
    """Aggregate outcome of one import invocation (never mutated once built)."""
    entity_type: str
    dry_run: bool
    total_rows: int
    imported_count: int
    skipped_count: int
    errors: tuple[ValidationIssue, ...]
    warnings: tuple[ValidationIssue, ...]
    duplicates: tuple[DuplicateMatch, ...]
    imported_entities: tuple[ImportedEntity, ...]

    @property
    def success(self) -> bool:
        return not self.errors and not self.duplicates

    @property
    def has_issues(self) -> bool:
        return bool(self.errors or self.warnings or self.duplicates)

    @classmethod
    def from_decisions(
        cls, entity_type: str, decisions: Iterable[RowDecision], *, dry_run: bool
    ) -> ImportResult:
        decisions = list(decisions)
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []
        duplicates: list[DuplicateMatch] = []
        imported: list[ImportedEntity] = []
        for d in decisions:
            for issue in d.issues:
                (errors if issue.severity is Severity.ERROR else warnings).append(issue)
            duplicates.extend(d.duplicates)
            if d.accepted:
                imported.append(ImportedEntity(d.row_number, d.values, d.record_id))
        total = len(decisions)
        return cls(
            entity_type=entity_type,
            dry_run=dry_run,
            total_rows=total,
            imported_count=len(imported),
            skipped_count=total - len(imported),
            errors=tuple(errors),
            warnings=tuple(warnings),
            duplicates=tuple(duplicates),
            imported_entities=tuple(imported),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "entityType": self.entity_type,
            "dryRun": self.dry_run,
            "totalRows": self.total_rows,
            "importedCount": self.imported_count,
            "skippedCount": self.skipped_count,
            "errors": [i.to_dict() for i in self.errors],
            "warnings": [i.to_dict() for i in self.warnings],
            "duplicates": [d.to_dict() for d in self.duplicates],
            "importedEntities": [e.to_dict() for e in self.imported_entities],
        }
