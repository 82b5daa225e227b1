from __future__ import annotations

import argparse
import json
import os
import sys
import time
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from course_import.config.entity_types import ENTITY_TYPES
from course_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from course_import.db.postgres_store import PostgresRecordStore
from course_import.db.store import InMemoryRecordStore, RecordStore
from course_import.excel.reader import FORMATS, ImportAbortedError, detect_format
from course_import.excel.template import write_template
from course_import.logging.error_log import ErrorLogBuffer, ErrorRecord, records_from_result
from course_import.logging.init import get_logger, log_summary, setup_logging
from course_import.models.config_models import DatabaseConfig, ImportConfig, ImportSettings
from course_import.models.processing_result import ImportResult
from course_import.services.orchestrator import run_import
from course_import.services.summary import render_summary_line

"""CLI entrypoint.

Subcommands:
- import <file> --entity <type>: preview the file (default) or persist the
  accepted rows (--commit), print the SUMMARY line and write the issue log
- template <entity> <out.xlsx>: write the empty import template

Exit codes: 0 no errors and no duplicates, 2 row-level problems, 1 fatal
(config, unreadable file, missing required columns, too many rows).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

CLIENT_ID_ENV = "IMPORT_CLIENT_ID"


@contextmanager
def _db_connection(cfg: ImportConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """Context manager to provide a psycopg2 cursor.

    Connection parameters, first match wins:
        1. DATABASE_URL / PGDSN (the .env file is loaded with override=True)
        2. config database.dsn
        3. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE, each falling
           back to the matching config database key
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if not dsn:
        host = os.getenv("PGHOST", db_cfg.host or "localhost")
        port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
        user = os.getenv("PGUSER", db_cfg.user or "postgres")
        password = os.getenv("PGPASSWORD", db_cfg.password or "")
        database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
        dsn = f"host={host} port={port} user={user} dbname={database}"
        if password:
            dsn += f" password={password}"

    conn = psycopg2.connect(dsn)
    conn.autocommit = False  # the record store commits after every created row
    cur = conn.cursor()
    try:
        yield cur
    finally:
        cur.close()
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True lets the .env values win over the inherited environment,
    so the PostgreSQL settings of the project are always the ones used.
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="course_import", description="Bulk CSV/XLSX import of companies, students and registrations"
    )
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Preview or commit one file")
    imp.add_argument("file", type=Path, help="CSV or XLSX file to import")
    imp.add_argument("--entity", required=True, choices=sorted(ENTITY_TYPES), help="Entity type of the rows")
    imp.add_argument("--commit", action="store_true", help="Persist accepted rows (default: dry-run)")
    imp.add_argument("--format", choices=FORMATS, help="Override the format detected from the file suffix")
    imp.add_argument("--config", type=Path, help=f"YAML config file (default: {DEFAULT_CONFIG_PATH})")
    imp.add_argument("--json", type=Path, metavar="OUT", help="Write the full result as JSON to OUT")
    imp.add_argument("--client-id", type=int, help=f"Tenant of the imported rows (env: {CLIENT_ID_ENV})")
    imp.add_argument("--debug", action="store_true", default=argparse.SUPPRESS, help="Enable debug logging")

    tpl = sub.add_parser("template", help="Write the empty import template of an entity type")
    tpl.add_argument("entity", choices=sorted(ENTITY_TYPES))
    tpl.add_argument("out", type=Path)
    return p.parse_args(argv)


def _load_settings(args: argparse.Namespace) -> ImportConfig:
    """Explicit --config must exist; the default path is optional."""
    if args.config is not None:
        return load_config(args.config)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return ImportConfig(settings=ImportSettings(), database=DatabaseConfig())


def _resolve_client_id(args: argparse.Namespace, cfg: ImportConfig) -> int | None:
    if args.client_id is not None:
        return args.client_id
    env_value = os.getenv(CLIENT_ID_ENV)
    if env_value:
        try:
            return int(env_value)
        except ValueError as e:
            raise ConfigError(f"{CLIENT_ID_ENV} must be an integer: {env_value!r}") from e
    return cfg.database.client_id


def _open_store(cfg: ImportConfig, client_id: int | None, stack: ExitStack) -> tuple[RecordStore, str]:
    """Return (store, mode). DISABLE_DB_CONNECT=1 or a failed connection gives the in-memory store."""
    logger = get_logger()
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
        return InMemoryRecordStore(), "mock"
    if client_id is None:
        raise ConfigError(f"client id required for database mode (--client-id or {CLIENT_ID_ENV})")
    try:
        cursor = stack.enter_context(_db_connection(cfg))
    except psycopg2.Error as e:
        # downgraded to INFO: an unreachable database is expected in local trials
        logger.info(f"DB connection failed -> fallback to mock mode: {e}")
        return InMemoryRecordStore(), "mock"
    return PostgresRecordStore(cursor, client_id), "live"


def _log_issues(result: ImportResult) -> None:
    logger = get_logger()
    for issue in result.errors:
        logger.warning(f"row {issue.row_number} {issue.field}: {issue.message}")
    for issue in result.warnings:
        logger.info(f"row {issue.row_number} {issue.field}: {issue.message}")
    for dup in result.duplicates:
        logger.info(f"row {dup.row_number} {dup.field}: duplicate of {dup.existing_label}")


def _cmd_template(args: argparse.Namespace) -> int:
    logger = get_logger()
    try:
        out = write_template(args.entity, args.out)
    except OSError as e:
        logger.error(f"template: {e}")
        return EXIT_FATAL
    logger.info(f"template written: {out}")
    return EXIT_SUCCESS_ALL


def _cmd_import(args: argparse.Namespace) -> int:
    logger = get_logger()
    error_log = ErrorLogBuffer()
    file_name = args.file.name
    try:
        cfg = _load_settings(args)
        client_id = _resolve_client_id(args, cfg)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        data = args.file.read_bytes()
    except OSError as e:
        logger.error(f"cannot read {args.file}: {e}")
        return EXIT_FATAL

    start = time.perf_counter()
    try:
        fmt = args.format or detect_format(args.file)
        with ExitStack() as stack:
            store, db_mode = _open_store(cfg, client_id, stack)
            logger.info(f"{args.entity}: {'commit' if args.commit else 'dry-run'} of {file_name} (db={db_mode})")
            result = run_import(
                data, fmt, args.entity, store, dry_run=not args.commit, settings=cfg.settings
            )
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    except ImportAbortedError as e:
        logger.error(f"import aborted: {e}")
        error_log.append(ErrorRecord.create(file_name, args.entity, -1, "*", "fatal", str(e)))
        error_log.flush()
        return EXIT_FATAL
    elapsed = time.perf_counter() - start

    _log_issues(result)
    error_log.extend(records_from_result(file_name, result))
    log_path = error_log.flush()
    if log_path is not None:
        logger.info(f"issue log: {log_path}")

    if args.json is not None:
        args.json.write_text(
            json.dumps(result.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8"
        )
        logger.info(f"result written: {args.json}")

    # log_summary adds the "SUMMARY " label itself
    log_summary(render_summary_line(result, elapsed)[len("SUMMARY "):])
    return EXIT_SUCCESS_ALL if result.success else EXIT_PARTIAL_FAILURE


def main(argv: list[str] | None = None) -> int:
    # None means "read sys.argv"; an explicit [] must not pick up pytest's own arguments
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.debug("debug mode enabled")
    _load_env_file(Path(".env"), override=True)

    if args.command == "template":
        return _cmd_template(args)
    return _cmd_import(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
