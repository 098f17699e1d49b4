"""SQL dry-run report: what a migration would do, without executing it.

Every statement is classified into an operation type with a human readable
detail and a reversibility flag; the report then aggregates the touched
tables and indexes into an overall risk estimate.
"""
from __future__ import annotations

import logging
import re

from migrascope.models import DryRunOperation, DryRunReport, OperationType, RiskLevel
from migrascope.sql_analysis.splitter import scan_statements_by_line

logger = logging.getLogger(__name__)

_SCHEMA = r'(?:\w+\.)?'
_NAME = r'("?\w+"?)'

_CREATE_TABLE_RE = re.compile(r'^CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?' + _SCHEMA + _NAME, re.IGNORECASE)
_DROP_TABLE_RE = re.compile(r'^DROP\s+TABLE\s+(?:IF\s+EXISTS\s+)?' + _SCHEMA + _NAME, re.IGNORECASE)
_ALTER_TABLE_RE = re.compile(r'^ALTER\s+TABLE\s+(?:ONLY\s+)?' + _SCHEMA + _NAME + r'\s+(.+)', re.IGNORECASE | re.DOTALL)
_CREATE_INDEX_RE = re.compile(
    r'^CREATE\s+(?:UNIQUE\s+)?INDEX\s+(?:CONCURRENTLY\s+)?(?:IF\s+NOT\s+EXISTS\s+)?'
    + _NAME + r'\s+ON\s+' + _SCHEMA + _NAME,
    re.IGNORECASE,
)
_DROP_INDEX_RE = re.compile(r'^DROP\s+INDEX\s+(?:CONCURRENTLY\s+)?(?:IF\s+EXISTS\s+)?' + _NAME, re.IGNORECASE)
_CREATE_VIEW_RE = re.compile(
    r'^CREATE\s+(?:OR\s+REPLACE\s+)?(?:MATERIALIZED\s+)?VIEW\s+' + _SCHEMA + _NAME, re.IGNORECASE
)
_DROP_VIEW_RE = re.compile(r'^DROP\s+(?:MATERIALIZED\s+)?VIEW\s+(?:IF\s+EXISTS\s+)?' + _SCHEMA + _NAME, re.IGNORECASE)
_CREATE_TYPE_RE = re.compile(r'^CREATE\s+TYPE\s+' + _SCHEMA + _NAME, re.IGNORECASE)
_INSERT_RE = re.compile(r'^INSERT\s+INTO\s+' + _SCHEMA + _NAME, re.IGNORECASE)
_UPDATE_RE = re.compile(r'^UPDATE\s+' + _SCHEMA + _NAME + r'\s+SET', re.IGNORECASE)
_DELETE_RE = re.compile(r'^DELETE\s+FROM\s+' + _SCHEMA + _NAME, re.IGNORECASE)
_WHERE_RE = re.compile(r'\bWHERE\b', re.IGNORECASE)

_ADD_COLUMN_RE = re.compile(r'^ADD\s+(?:COLUMN\s+)?(?:IF\s+NOT\s+EXISTS\s+)?' + _NAME, re.IGNORECASE)
_DROP_COLUMN_RE = re.compile(r'^DROP\s+COLUMN\s+(?:IF\s+EXISTS\s+)?' + _NAME, re.IGNORECASE)

# Statement prefixes that are reported as OTHER when nothing more specific matched
_OTHER_PREFIXES = ("CREATE ", "DROP ", "GRANT ", "REVOKE ", "TRUNCATE")

_DATA_TYPES = (OperationType.INSERT, OperationType.UPDATE, OperationType.DELETE)


def _name(raw: str) -> str:
    return raw.replace('"', '').lower()


def _describe_alter(table: str, action: str) -> tuple[str, bool]:
    """Detail text and reversibility for an ALTER TABLE action clause."""
    if re.match(r'^ADD\s+COLUMN', action, re.IGNORECASE):
        col = _ADD_COLUMN_RE.match(action)
        return f'Adds column "{_name(col.group(1)) if col else "?"}" to "{table}"', True
    if re.match(r'^DROP\s+COLUMN', action, re.IGNORECASE):
        col = _DROP_COLUMN_RE.match(action)
        return f'Drops column "{_name(col.group(1)) if col else "?"}" from "{table}"', False
    if re.match(r'^RENAME\s+COLUMN', action, re.IGNORECASE):
        return f'Renames a column in "{table}"', True
    if re.match(r'^RENAME\s+TO', action, re.IGNORECASE):
        return f'Renames table "{table}"', True
    if re.match(r'^ADD\s+CONSTRAINT', action, re.IGNORECASE):
        return f'Adds a constraint on "{table}"', True
    if re.match(r'^DROP\s+CONSTRAINT', action, re.IGNORECASE):
        return f'Drops a constraint from "{table}"', False
    if re.search(r'ALTER\s+COLUMN.*\bTYPE\b', action, re.IGNORECASE):
        return f'Changes a column type in "{table}"', False
    if re.search(r'ALTER\s+COLUMN.*SET\s+NOT\s+NULL', action, re.IGNORECASE):
        return f'Sets column NOT NULL in "{table}"', True
    if re.search(r'ALTER\s+COLUMN.*DROP\s+NOT\s+NULL', action, re.IGNORECASE):
        return f'Drops NOT NULL constraint in "{table}"', True
    if re.search(r'ALTER\s+COLUMN.*SET\s+DEFAULT', action, re.IGNORECASE):
        return f'Sets column default in "{table}"', True
    if re.search(r'ALTER\s+COLUMN.*DROP\s+DEFAULT', action, re.IGNORECASE):
        return f'Drops column default in "{table}"', True
    if re.search(r'ENABLE\s+ROW\s+LEVEL', action, re.IGNORECASE):
        return f'Enables Row Level Security on "{table}"', True
    return f'Alters table "{table}"', True


def classify_statement(stmt: str, line: int) -> DryRunOperation | None:
    """Classify a single statement.

    Returns None for statements that are neither recognized nor one of the
    DDL/permission verbs reported as OTHER (plain SELECTs, SETs, ...).
    """
    match = _CREATE_TABLE_RE.match(stmt)
    if match:
        target = _name(match.group(1))
        return DryRunOperation(OperationType.CREATE_TABLE, target, f'Creates table "{target}"', line, True)

    match = _DROP_TABLE_RE.match(stmt)
    if match:
        target = _name(match.group(1))
        return DryRunOperation(
            OperationType.DROP_TABLE, target, f'Drops table "{target}" and all its data', line, False
        )

    match = _ALTER_TABLE_RE.match(stmt)
    if match:
        table = _name(match.group(1))
        detail, reversible = _describe_alter(table, match.group(2).strip())
        return DryRunOperation(OperationType.ALTER_TABLE, table, detail, line, reversible)

    match = _CREATE_INDEX_RE.match(stmt)
    if match:
        target = _name(match.group(1))
        return DryRunOperation(
            OperationType.CREATE_INDEX, target,
            f'Creates index "{target}" on "{_name(match.group(2))}"', line, True,
        )

    match = _DROP_INDEX_RE.match(stmt)
    if match:
        target = _name(match.group(1))
        return DryRunOperation(OperationType.DROP_INDEX, target, f'Drops index "{target}"', line, False)

    match = _CREATE_VIEW_RE.match(stmt)
    if match:
        target = _name(match.group(1))
        return DryRunOperation(OperationType.CREATE_VIEW, target, f'Creates view "{target}"', line, True)

    match = _DROP_VIEW_RE.match(stmt)
    if match:
        target = _name(match.group(1))
        return DryRunOperation(OperationType.DROP_VIEW, target, f'Drops view "{target}"', line, False)

    match = _CREATE_TYPE_RE.match(stmt)
    if match:
        target = _name(match.group(1))
        return DryRunOperation(OperationType.CREATE_TYPE, target, f'Creates type "{target}"', line, True)

    match = _INSERT_RE.match(stmt)
    if match:
        target = _name(match.group(1))
        return DryRunOperation(OperationType.INSERT, target, f'Inserts data into "{target}"', line, False)

    match = _UPDATE_RE.match(stmt)
    if match:
        target = _name(match.group(1))
        scope = "" if _WHERE_RE.search(stmt) else " (ALL rows)"
        return DryRunOperation(OperationType.UPDATE, target, f'Updates rows in "{target}"{scope}', line, False)

    match = _DELETE_RE.match(stmt)
    if match:
        target = _name(match.group(1))
        scope = "" if _WHERE_RE.search(stmt) else " (ALL rows)"
        return DryRunOperation(OperationType.DELETE, target, f'Deletes rows from "{target}"{scope}', line, False)

    # CREATE FUNCTION, GRANT, TRUNCATE, ...
    upper = re.sub(r'\s+', ' ', stmt.upper()).strip()
    if upper.startswith(_OTHER_PREFIXES):
        detail = stmt[:60] + ("..." if len(stmt) > 60 else "")
        return DryRunOperation(OperationType.OTHER, "", detail, line, False)

    return None


def _add_unique(names: list[str], name: str) -> None:
    if name not in names:
        names.append(name)


def _estimate_risk(report: DryRunReport) -> RiskLevel:
    if report.tables_dropped:
        return RiskLevel.CRITICAL
    if any(op.type in (OperationType.UPDATE, OperationType.DELETE) for op in report.operations):
        return RiskLevel.HIGH
    if any(not op.reversible for op in report.operations):
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def analyze_dry_run(sql: str) -> DryRunReport:
    """Produce a dry-run report for a migration.

    Args:
        sql: Raw SQL text

    Returns:
        DryRunReport; an empty, fully reversible, low-risk report for blank input
    """
    report = DryRunReport()
    if not sql.strip():
        return report

    for statement in scan_statements_by_line(sql):
        op = classify_statement(statement.text, statement.line)
        if op is None:
            continue
        report.operations.append(op)

        if op.type == OperationType.CREATE_TABLE:
            _add_unique(report.tables_created, op.target)
        elif op.type == OperationType.DROP_TABLE:
            _add_unique(report.tables_dropped, op.target)
        elif op.type in (OperationType.ALTER_TABLE, *_DATA_TYPES):
            _add_unique(report.tables_modified, op.target)
        elif op.type == OperationType.CREATE_INDEX:
            _add_unique(report.indexes_created, op.target)
        elif op.type == OperationType.DROP_INDEX:
            _add_unique(report.indexes_dropped, op.target)

        if op.type in _DATA_TYPES:
            report.data_modifications += 1

    report.is_fully_reversible = all(op.reversible for op in report.operations)
    report.estimated_risk = _estimate_risk(report)

    logger.debug(
        f"Dry run: {len(report.operations)} operations, risk {report.estimated_risk.value}, "
        f"reversible={report.is_fully_reversible}"
    )
    return report
