from __future__ import annotations

import logging
from collections.abc import Sequence

from ..config.entity_types import get_entity_spec
from ..db.store import RecordStore, RecordStoreError
from ..excel.reader import RowLimitExceededError, TabularData, read_tabular
from ..models.config_models import DuplicatePolicy, ImportSettings
from ..models.entity_spec import EntityTypeSpec
from ..models.import_state import ALLOWED_TRANSITIONS, ImportState
from ..models.processing_result import ImportResult, RowDecision
from ..models.row_data import MappedRow
from ..models.validation_issue import DuplicateMatch, Severity, ValidationIssue
from .column_mapper import ColumnMapping, apply_mapping, map_columns
from .duplicates import BatchKeys, detect_duplicates
from .normalizer import normalize_row
from .progress import ProgressTracker
from .references import resolve_references
from .validator import check_cross_fields, validate_row

"""Import orchestrator: preview (dry-run) and commit of one uploaded file.

Every row goes through the same pure stage, evaluate_row(): normalize ->
validate -> resolve references -> cross-field checks -> duplicates. The run
mode only decides whether accepted rows are handed to store.create(). Rows
are processed sequentially in file order; the batch-key accumulator is
threaded from one row to the next so later rows see earlier accepted ones.

Fatal errors (unreadable file, missing required columns, too many rows) put
the job in FAILED and propagate. Once mapping succeeded nothing propagates:
row level failures, including store failures, become issues on the row.
"""

__all__ = [
    "InvalidStateError",
    "ImportJob",
    "evaluate_row",
    "run_import",
]

logger = logging.getLogger(__name__)

BLANK_ROW_MESSAGE = "Riga vuota ignorata"


class InvalidStateError(RuntimeError):
    """Raised when an ImportJob operation is called in the wrong state."""


def _has_error(issues: Sequence[ValidationIssue]) -> bool:
    return any(i.severity is Severity.ERROR for i in issues)


def evaluate_row(
    row: MappedRow,
    spec: EntityTypeSpec,
    store: RecordStore,
    seen: BatchKeys,
    settings: ImportSettings,
    date_system: int = 1900,
) -> RowDecision:
    """Decide the outcome of one row without persisting anything.

    Only reads the store (reference and duplicate lookups).
    """
    if row.is_blank:
        return RowDecision(
            row_number=row.row_number,
            values={},
            issues=(ValidationIssue.warning(row.row_number, "*", BLANK_ROW_MESSAGE),),
            blank=True,
        )

    normalized, issues = normalize_row(row, spec, date_system)
    issues.extend(validate_row(normalized, spec, skip_fields={i.field for i in issues}))

    if not _has_error(issues):
        resolved = resolve_references(normalized, spec, store)
        normalized = resolved.row
        issues.extend(resolved.issues)
        if not _has_error(issues):
            issues.extend(check_cross_fields(normalized, spec, resolved.context, settings))

    duplicates: list[DuplicateMatch] = []
    # a malformed key cannot be compared; report the format error only
    invalid_fields = {i.field for i in issues if i.is_error}
    try:
        duplicates = detect_duplicates(normalized, spec, store, seen, skip_fields=invalid_fields)
    except RecordStoreError as e:
        logger.warning(f"row {row.row_number}: duplicate lookup failed: {e}")
        issues.append(ValidationIssue.error(
            row.row_number, "*", f"Errore durante la verifica dei duplicati: {e}"
        ))

    blocked = bool(duplicates) and settings.policy_for(spec.name) is DuplicatePolicy.BLOCK
    accepted = not _has_error(issues) and not blocked
    return RowDecision(
        row_number=row.row_number,
        values=normalized.values,
        issues=tuple(issues),
        duplicates=tuple(duplicates),
        accepted=accepted,
    )


class ImportJob:
    """One import of one file for one entity type.

    idle -> parsed (load) -> mapped (map_columns) -> previewed (preview)
    -> committed (commit) -> idle. preview() may be repeated; load() may be
    called again after a preview or a failure to re-upload.
    """

    def __init__(
        self,
        entity_type: str,
        store: RecordStore,
        settings: ImportSettings | None = None,
    ) -> None:
        self.spec = get_entity_spec(entity_type)
        self.store = store
        self.settings = settings or ImportSettings()
        self.state = ImportState.IDLE
        self._table: TabularData | None = None
        self._rows: list[MappedRow] | None = None
        self.mapping: ColumnMapping | None = None

    def _transition(self, target: ImportState) -> None:
        if self.state not in ALLOWED_TRANSITIONS[target]:
            raise InvalidStateError(
                f"cannot move from {self.state.value} to {target.value}"
            )
        logger.debug(f"{self.spec.name}: {self.state.value} -> {target.value}")
        self.state = target

    def _fail(self) -> None:
        self._transition(ImportState.FAILED)
        self._table = None
        self._rows = None
        self.mapping = None

    def load(self, data: bytes, fmt: str) -> TabularData:
        """Parse the uploaded buffer (ParseError / RowLimitExceededError are fatal)."""
        if self.state not in ALLOWED_TRANSITIONS[ImportState.PARSED]:
            raise InvalidStateError(f"cannot load a file while {self.state.value}")
        try:
            table = read_tabular(data, fmt)
            if table.row_count > self.settings.max_rows:
                raise RowLimitExceededError(table.row_count, self.settings.max_rows)
        except Exception:
            self._fail()
            raise
        self._table = table
        self._rows = None
        self.mapping = None
        self._transition(ImportState.PARSED)
        logger.info(f"{self.spec.name}: read {table.row_count} data rows ({fmt})")
        return table

    def map_columns(self) -> ColumnMapping:
        """Resolve headers (MissingRequiredColumnsError is fatal)."""
        if self.state is not ImportState.PARSED or self._table is None:
            raise InvalidStateError(f"cannot map columns while {self.state.value}")
        try:
            mapping = map_columns(self._table.header, self.spec)
        except Exception:
            self._fail()
            raise
        self.mapping = mapping
        self._rows = apply_mapping(self._table.rows, mapping)
        self._transition(ImportState.MAPPED)
        logger.info(f"{self.spec.name}: mapped {len(mapping)} columns")
        return mapping

    def preview(self) -> ImportResult:
        """Evaluate every row without persisting anything."""
        if self.state not in ALLOWED_TRANSITIONS[ImportState.PREVIEWED]:
            raise InvalidStateError(f"cannot preview while {self.state.value}")
        result = self._run(dry_run=True)
        self._transition(ImportState.PREVIEWED)
        return result

    def commit(self) -> ImportResult:
        """Replay every row and persist the accepted ones, one at a time."""
        if self.state not in ALLOWED_TRANSITIONS[ImportState.COMMITTED]:
            raise InvalidStateError(f"cannot commit while {self.state.value}")
        result = self._run(dry_run=False)
        self._transition(ImportState.COMMITTED)
        # the uploaded rows are not kept once committed
        self._table = None
        self._rows = None
        self.mapping = None
        self._transition(ImportState.IDLE)
        return result

    def _run(self, *, dry_run: bool) -> ImportResult:
        assert self._rows is not None and self._table is not None
        date_system = self._table.date_system
        mode = "dry-run" if dry_run else "commit"
        seen = BatchKeys()
        decisions: list[RowDecision] = []
        with ProgressTracker(len(self._rows), description=f"{self.spec.label} ({mode})") as progress:
            for row in self._rows:
                decision = self._evaluate(row, seen, date_system)
                if decision.accepted and not dry_run:
                    decision = self._persist(decision)
                if decision.accepted:
                    seen = seen.accept(decision, self.spec)
                decisions.append(decision)
                progress.advance(decision.accepted)
        result = ImportResult.from_decisions(self.spec.name, decisions, dry_run=dry_run)
        logger.info(
            f"{self.spec.name} {mode}: rows={result.total_rows} imported={result.imported_count} "
            f"skipped={result.skipped_count} errors={len(result.errors)} "
            f"warnings={len(result.warnings)} duplicates={len(result.duplicates)}"
        )
        return result

    def _evaluate(self, row: MappedRow, seen: BatchKeys, date_system: int) -> RowDecision:
        try:
            return evaluate_row(row, self.spec, self.store, seen, self.settings, date_system)
        except Exception as e:
            # a misbehaving store must not abort the batch
            logger.exception(f"row {row.row_number}: unexpected failure")
            return RowDecision(
                row_number=row.row_number,
                values=dict(row.cells),
                issues=(ValidationIssue.error(row.row_number, "*", f"Errore imprevisto: {e}"),),
            )

    def _persist(self, decision: RowDecision) -> RowDecision:
        try:
            record_id = self.store.create(self.spec.name, decision.values)
        except Exception as e:
            logger.error(f"row {decision.row_number}: create failed: {e}")
            return decision.rejected(ValidationIssue.error(
                decision.row_number, "database", f"Errore durante il salvataggio: {e}"
            ))
        logger.debug(f"row {decision.row_number}: created {self.spec.name} id={record_id}")
        return decision.persisted(record_id)


def run_import(
    data: bytes,
    fmt: str,
    entity_type: str,
    store: RecordStore,
    *,
    dry_run: bool = True,
    settings: ImportSettings | None = None,
) -> ImportResult:
    """Parse, map and preview (dry_run=True) or commit one file in a single call."""
    job = ImportJob(entity_type, store, settings)
    job.load(data, fmt)
    job.map_columns()
    return job.preview() if dry_run else job.commit()
