"""Schema management for the audit_log table.

The table only ever grows: every structural change is a named step that checks
the live store first and does nothing when the change is already there, so
``ensure_schema`` can run on every start against any environment. Steps run in
order inside one transaction, after which the resulting structure is checked
against what the ORM model expects. Anything that does not line up (a column
with the wrong type, an index name pointing at other columns, a step that the
database refuses) is reported as ``SchemaMismatchError`` instead of being
papered over.
"""

from collections import namedtuple
from datetime import datetime

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import Column, Integer, Text, inspect
from sqlalchemy.exc import SQLAlchemyError

from db import get_engine
from errors import SchemaMismatchError, StoreUnavailableError
from log_config import get_logger
from models import AuditLog

logger = get_logger("schema")

TABLE = AuditLog.__tablename__

EXPECTED_COLUMNS = {
    "id": int,
    "domain": str,
    "timestamp": datetime,
    "client_origin": str,
    "results": str,
    "user_agent": str,
    "email": str,
    "score": int,
}

EXPECTED_INDEXES = {
    "idx_domain": ["domain"],
    "idx_timestamp": ["timestamp"],
    "idx_email": ["email"],
}

MigrationStep = namedtuple("MigrationStep", ["name", "apply"])


def _column_names(conn):
    return {c["name"] for c in inspect(conn).get_columns(TABLE)}


def _index_names(conn):
    return {ix["name"] for ix in inspect(conn).get_indexes(TABLE)}


def _create_table(conn, op):
    if inspect(conn).has_table(TABLE):
        return False
    AuditLog.__table__.create(conn)
    return True


def _add_column(name, type_):
    def apply(conn, op):
        if name in _column_names(conn):
            return False
        op.add_column(TABLE, Column(name, type_()))
        return True

    return apply


def _create_index(name, columns):
    def apply(conn, op):
        if name in _index_names(conn):
            return False
        op.create_index(name, TABLE, columns)
        return True

    return apply


STEPS = [
    MigrationStep("create_audit_log", _create_table),
    MigrationStep("add_email_column", _add_column("email", Text)),
    MigrationStep("add_score_column", _add_column("score", Integer)),
    MigrationStep("create_domain_index", _create_index("idx_domain", ["domain"])),
    MigrationStep("create_timestamp_index", _create_index("idx_timestamp", ["timestamp"])),
    MigrationStep("create_email_index", _create_index("idx_email", ["email"])),
]


def _python_type(column_type):
    try:
        return column_type.python_type
    except NotImplementedError:
        return None


def _find_drift(conn):
    """Return a list of human readable problems with the live structure."""
    insp = inspect(conn)
    if not insp.has_table(TABLE):
        return [f"table {TABLE} is missing"]

    problems = []
    columns = {c["name"]: c for c in insp.get_columns(TABLE)}
    for name, expected in EXPECTED_COLUMNS.items():
        if name not in columns:
            problems.append(f"column {name} is missing")
            continue
        actual = _python_type(columns[name]["type"])
        if actual is not None and not issubclass(actual, expected):
            problems.append(f"column {name} has type {columns[name]['type']}, expected {expected.__name__}")

    indexes = {ix["name"]: ix for ix in insp.get_indexes(TABLE)}
    for name, expected_cols in EXPECTED_INDEXES.items():
        if name not in indexes:
            problems.append(f"index {name} is missing")
        elif list(indexes[name]["column_names"]) != expected_cols:
            problems.append(f"index {name} covers {indexes[name]['column_names']}, expected {expected_cols}")
    return problems


def ensure_schema(bind=None):
    """Apply every pending step and return the names of those that changed the store."""
    bind = bind if bind is not None else get_engine()
    applied = []
    try:
        with bind.begin() as conn:
            op = Operations(MigrationContext.configure(conn))
            for step in STEPS:
                try:
                    changed = step.apply(conn, op)
                except SQLAlchemyError as e:
                    raise SchemaMismatchError(f"schema step {step.name} failed: {e}") from e
                if changed:
                    applied.append(step.name)
                    logger.info("schema_step_applied", step=step.name)
                else:
                    logger.debug("schema_step_skipped", step=step.name)

            problems = _find_drift(conn)
            if problems:
                raise SchemaMismatchError("; ".join(problems))
    except SchemaMismatchError as e:
        logger.error("schema_mismatch", error=str(e))
        raise
    except SQLAlchemyError as e:
        raise StoreUnavailableError("store unreachable while ensuring schema") from e

    return applied


def schema_report(bind=None):
    """Describe how far the live store is from the expected shape, without changing it."""
    bind = bind if bind is not None else get_engine()
    try:
        with bind.connect() as conn:
            insp = inspect(conn)
            if not insp.has_table(TABLE):
                return {
                    "table": False,
                    "missing_columns": sorted(EXPECTED_COLUMNS),
                    "missing_indexes": sorted(EXPECTED_INDEXES),
                }
            columns = _column_names(conn)
            indexes = _index_names(conn)
    except SQLAlchemyError as e:
        raise StoreUnavailableError("store unreachable while inspecting schema") from e

    return {
        "table": True,
        "missing_columns": sorted(set(EXPECTED_COLUMNS) - columns),
        "missing_indexes": sorted(set(EXPECTED_INDEXES) - indexes),
    }


def is_current(report):
    return report["table"] and not report["missing_columns"] and not report["missing_indexes"]
