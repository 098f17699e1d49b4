"""Rollback (DOWN) SQL generation from UP migration SQL.

Each UP statement is matched against an ordered table of statement shapes.
The first shape that matches supplies the inverse statement; shapes whose
inverse needs information that is not in the UP SQL (a dropped table's
definition, a column's previous type...) produce a ``-- TODO`` placeholder
instead. Unrecognized statements are echoed back as a commented block.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable

from migrascope.models import ParsedStatement
from migrascope.sql_analysis.splitter import split_statements, strip_comments

logger = logging.getLogger(__name__)

ROLLBACK_HEADER = "-- Auto-generated rollback SQL\n-- Review carefully before executing\n"

_TABLE = r'("?\w+"?(?:\."?\w+"?)?)'
_NAME = r'("?\w+"?)'
_ALTER = r'^ALTER\s+TABLE\s+' + _TABLE + r'\s+'
_ALTER_COLUMN = _ALTER + r'ALTER\s+COLUMN\s+' + _NAME + r'\s+'

# Words that follow ADD when it introduces a table constraint, not a column
_TABLE_CONSTRAINT_WORDS = {"CONSTRAINT", "PRIMARY", "UNIQUE", "CHECK", "FOREIGN", "EXCLUDE"}


def extract_ident(text: str) -> str:
    """Keep a fully quoted identifier as is, otherwise drop stray quotes."""
    trimmed = text.strip()
    if len(trimmed) > 1 and trimmed.startswith('"') and trimmed.endswith('"'):
        return trimmed
    return trimmed.replace('"', '')


@dataclass(frozen=True)
class RollbackPattern:
    """One recognizable statement shape and how to invert it."""
    type: str
    regex: re.Pattern
    render: Callable[[list[str]], str]
    guard: Callable[[str, list[str]], bool] | None = None

    def apply(self, cleaned: str) -> str | None:
        match = self.regex.match(cleaned)
        if not match:
            return None
        names = [extract_ident(g) for g in match.groups()]
        if self.guard is not None and not self.guard(cleaned, names):
            return None
        return self.render(names)


def _is_add_column(cleaned: str, names: list[str]) -> bool:
    upper = cleaned.upper()
    return 'ADD CONSTRAINT' not in upper and names[1].upper() not in _TABLE_CONSTRAINT_WORDS


def _pattern(type_: str, regex: str, render, guard=None) -> RollbackPattern:
    return RollbackPattern(type_, re.compile(regex, re.IGNORECASE), render, guard)


# Earliest matching pattern wins
ROLLBACK_PATTERNS: list[RollbackPattern] = [
    _pattern(
        "CREATE TABLE",
        r'^CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?' + _TABLE + r'\s*\(',
        lambda n: f"DROP TABLE IF EXISTS {n[0]} CASCADE;",
    ),
    _pattern(
        "DROP TABLE",
        r'^DROP\s+TABLE\s+(?:IF\s+EXISTS\s+)?' + _TABLE,
        lambda n: f"-- TODO: Recreate table {n[0]} (original definition needed)",
    ),
    _pattern(
        "ADD COLUMN",
        _ALTER + r'ADD\s+(?:COLUMN\s+)?(?:IF\s+NOT\s+EXISTS\s+)?' + _NAME + r'\s+',
        lambda n: f"ALTER TABLE {n[0]} DROP COLUMN IF EXISTS {n[1]};",
        guard=_is_add_column,
    ),
    _pattern(
        "DROP COLUMN",
        _ALTER + r'DROP\s+COLUMN\s+(?:IF\s+EXISTS\s+)?' + _NAME,
        lambda n: f"-- TODO: Re-add column {n[1]} to {n[0]} (original type needed)",
    ),
    _pattern(
        "RENAME COLUMN",
        _ALTER + r'RENAME\s+COLUMN\s+' + _NAME + r'\s+TO\s+' + _NAME,
        lambda n: f"ALTER TABLE {n[0]} RENAME COLUMN {n[2]} TO {n[1]};",
    ),
    _pattern(
        "RENAME TABLE",
        _ALTER + r'RENAME\s+TO\s+' + _NAME,
        lambda n: f"ALTER TABLE {n[1]} RENAME TO {n[0]};",
    ),
    _pattern(
        "ALTER COLUMN TYPE",
        _ALTER_COLUMN + r'(?:SET\s+DATA\s+)?TYPE\s+\w+',
        lambda n: f"-- TODO: ALTER TABLE {n[0]} ALTER COLUMN {n[1]} TYPE <original_type>;",
    ),
    _pattern(
        "SET NOT NULL",
        _ALTER_COLUMN + r'SET\s+NOT\s+NULL',
        lambda n: f"ALTER TABLE {n[0]} ALTER COLUMN {n[1]} DROP NOT NULL;",
    ),
    _pattern(
        "DROP NOT NULL",
        _ALTER_COLUMN + r'DROP\s+NOT\s+NULL',
        lambda n: f"ALTER TABLE {n[0]} ALTER COLUMN {n[1]} SET NOT NULL;",
    ),
    _pattern(
        "SET DEFAULT",
        _ALTER_COLUMN + r'SET\s+DEFAULT',
        lambda n: f"ALTER TABLE {n[0]} ALTER COLUMN {n[1]} DROP DEFAULT;",
    ),
    # The previous default is not known, so this one can't be inverted
    _pattern(
        "DROP DEFAULT",
        _ALTER_COLUMN + r'DROP\s+DEFAULT',
        lambda n: f"-- TODO: ALTER TABLE {n[0]} ALTER COLUMN {n[1]} SET DEFAULT <original_default>;",
    ),
    _pattern(
        "ADD CONSTRAINT",
        _ALTER + r'ADD\s+CONSTRAINT\s+' + _NAME,
        lambda n: f"ALTER TABLE {n[0]} DROP CONSTRAINT IF EXISTS {n[1]};",
    ),
    _pattern(
        "DROP CONSTRAINT",
        _ALTER + r'DROP\s+CONSTRAINT\s+(?:IF\s+EXISTS\s+)?' + _NAME,
        lambda n: f"-- TODO: Re-add constraint {n[1]} on {n[0]} (original definition needed)",
    ),
    _pattern(
        "CREATE INDEX",
        r'^CREATE\s+(?:UNIQUE\s+)?INDEX\s+(?:CONCURRENTLY\s+)?(?:IF\s+NOT\s+EXISTS\s+)?' + _NAME + r'\s+ON',
        lambda n: f"DROP INDEX IF EXISTS {n[0]};",
    ),
    _pattern(
        "DROP INDEX",
        r'^DROP\s+INDEX\s+(?:CONCURRENTLY\s+)?(?:IF\s+EXISTS\s+)?' + _NAME,
        lambda n: f"-- TODO: Recreate index {n[0]} (original definition needed)",
    ),
    _pattern(
        "CREATE TYPE",
        r'^CREATE\s+TYPE\s+' + _TABLE + r'\s+AS\s+ENUM',
        lambda n: f"DROP TYPE IF EXISTS {n[0]};",
    ),
    _pattern(
        "CREATE VIEW",
        r'^CREATE\s+(?:OR\s+REPLACE\s+)?VIEW\s+' + _TABLE + r'\s+AS',
        lambda n: f"DROP VIEW IF EXISTS {n[0]};",
    ),
    _pattern(
        "DROP VIEW",
        r'^DROP\s+VIEW\s+(?:IF\s+EXISTS\s+)?' + _TABLE,
        lambda n: f"-- TODO: Recreate view {n[0]} (original definition needed)",
    ),
]


def manual_rollback_placeholder(statement: str) -> str:
    """Comment block asking for a hand-written rollback of ``statement``."""
    commented = "\n-- ".join(statement.split("\n"))
    return f"-- TODO: Manually write rollback for:\n-- {commented}"


def generate_rollback_for_statement(statement: str) -> ParsedStatement:
    """Classify one UP statement and produce its rollback."""
    cleaned = strip_comments(statement).strip()

    for pattern in ROLLBACK_PATTERNS:
        rollback = pattern.apply(cleaned)
        if rollback is not None:
            return ParsedStatement(type=pattern.type, original=statement, rollback=rollback)

    return ParsedStatement(
        type="UNKNOWN",
        original=statement,
        rollback=manual_rollback_placeholder(statement),
    )


def parse_rollback_statements(up_sql: str) -> list[ParsedStatement]:
    """Per-statement rollbacks for ``up_sql``, in UP order."""
    return [generate_rollback_for_statement(s.text) for s in split_statements(up_sql)]


def generate_rollback_sql(up_sql: str) -> str:
    """Generate rollback (DOWN) SQL from UP migration SQL.

    Rollbacks run in reverse order, so the last UP statement is undone first.

    Args:
        up_sql: The UP migration SQL

    Returns:
        The header followed by one rollback block per statement, or an empty
        string when ``up_sql`` is blank
    """
    if not up_sql.strip():
        return ""

    parsed = [p for p in parse_rollback_statements(up_sql) if p.rollback]
    parsed.reverse()

    manual = sum(1 for p in parsed if p.rollback.startswith("-- TODO"))
    logger.debug(f"Generated rollback for {len(parsed)} statements ({manual} need manual review)")

    return ROLLBACK_HEADER + "\n\n".join(p.rollback for p in parsed)
