from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Configuration dataclasses for the import engine.

These are filled by course_import.config.loader from config/import.yml.
ImportSettings carries the business tolerances used by cross-field rules and
the duplicate policy; DatabaseConfig is the fallback for the CLI connection.
"""

__all__ = [
    "DuplicatePolicy",
    "ImportSettings",
    "DatabaseConfig",
    "ImportConfig",
]

DEFAULT_MAX_ROWS = 1000
DEFAULT_PRICE_TOLERANCE = 0.5
DEFAULT_LATE_REGISTRATION_DAYS = 30


class DuplicatePolicy(Enum):
    """What to do with a row whose natural key is already known."""
    REPORT = "report"  # list the duplicate, import the row anyway
    BLOCK = "block"  # list the duplicate, skip the row


@dataclass(frozen=True)
class ImportSettings:
    max_rows: int = DEFAULT_MAX_ROWS  # data rows accepted per file
    price_tolerance: float = DEFAULT_PRICE_TOLERANCE  # |applied - listed| / listed
    late_registration_days: int = DEFAULT_LATE_REGISTRATION_DAYS  # days after edition end
    duplicate_policy: dict[str, DuplicatePolicy] = field(default_factory=dict)  # entity -> policy

    def policy_for(self, entity_type: str) -> DuplicatePolicy:
        return self.duplicate_policy.get(entity_type, DuplicatePolicy.REPORT)


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None
    client_id: int | None = None  # tenant the imported rows belong to


@dataclass(frozen=True)
class ImportConfig:
    settings: ImportSettings
    database: DatabaseConfig
