# Shared pytest fixtures
from __future__ import annotations

import io
import tempfile
from pathlib import Path

import pandas as pd
import pytest

from course_import.db.store import InMemoryRecordStore
from course_import.logging.init import reset_logging
from course_import.models.store_records import EditionInfo


@pytest.fixture(autouse=True)
def _fresh_logging():
    # the application handler binds sys.stdout at setup; capsys swaps it per test
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """max_rows: 1000
price_tolerance: 0.5
late_registration_days: 30
duplicate_policy:
  companies: report
  students: report
  registrations: block
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
  client_id: 1
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore(editions=[
        EditionInfo(id=1, label="Sicurezza generale", price=15000, start_date="2025-01-20", end_date="2025-01-24"),
        EditionInfo(id=2, label="Primo soccorso", price=20000, start_date="2025-03-03", end_date="2025-03-05"),
    ])


def _make_xlsx(rows: list[list[object]]) -> bytes:
    """Workbook bytes with one sheet holding rows as-is (first row is the header)."""
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name="Foglio1", header=False, index=False)
    return buffer.getvalue()


def _make_csv(rows: list[list[object]], sep: str = ";") -> bytes:
    lines = [sep.join("" if v is None else str(v) for v in row) for row in rows]
    return ("\n".join(lines) + "\n").encode("utf-8")


@pytest.fixture()
def make_xlsx():
    return _make_xlsx


@pytest.fixture()
def make_csv():
    return _make_csv
