"""Domain models for the course import engine.

This package contains the frozen dataclasses shared by the reader, the
per-row pipeline stages and the orchestrator.
"""

from .config_models import DatabaseConfig, DuplicatePolicy, ImportConfig, ImportSettings
from .entity_spec import EntityTypeSpec, FieldSpec, NaturalKey, Transform
from .import_state import ImportState
from .processing_result import ImportedEntity, ImportResult, RowDecision
from .row_data import MappedRow, NormalizedRow
from .validation_issue import DuplicateMatch, Severity, ValidationIssue

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "DuplicatePolicy",
    "ImportConfig",
    "ImportSettings",
    # Entity dictionaries
    "EntityTypeSpec",
    "FieldSpec",
    "NaturalKey",
    "Transform",
    # Processing models
    "ImportState",
    "ImportedEntity",
    "ImportResult",
    "RowDecision",
    "MappedRow",
    "NormalizedRow",
    "DuplicateMatch",
    "Severity",
    "ValidationIssue",
]
