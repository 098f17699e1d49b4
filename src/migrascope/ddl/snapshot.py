"""Schema snapshot models and a DDL-based snapshot reader.

Snapshots normally arrive as JSON from database introspection (camelCase
keys). ``snapshot_from_sql`` builds the same structures from a DDL script
using sqlglot, so two schema versions can be compared without a live
database.
"""
from __future__ import annotations

import logging
import re

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, TokenError
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from migrascope.sql_analysis.splitter import split_statements, strip_comments

logger = logging.getLogger(__name__)


class _SnapshotModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SchemaColumn(_SnapshotModel):
    """A column in a schema snapshot table."""
    name: str
    data_type: str
    is_nullable: bool = True
    column_default: str | None = None
    is_primary_key: bool = False


class SchemaForeignKey(_SnapshotModel):
    """One column pair of a foreign key constraint."""
    constraint_name: str
    column_name: str
    referenced_table: str
    referenced_column: str


class SchemaTable(_SnapshotModel):
    name: str
    columns: list[SchemaColumn] = Field(default_factory=list)
    foreign_keys: list[SchemaForeignKey] = Field(default_factory=list)


class SchemaSnapshot(_SnapshotModel):
    """A captured schema: the tables present at one point in time."""
    tables: list[SchemaTable] = Field(default_factory=list)


_CREATE_TABLE_RE = re.compile(r'^CREATE\s+(?:(?:GLOBAL\s+|LOCAL\s+)?(?:TEMP|TEMPORARY|UNLOGGED)\s+)?TABLE\b', re.IGNORECASE)

# Column name, then the type up to the first column constraint keyword
_FALLBACK_COLUMN_RE = re.compile(
    r'^("?\w+"?)\s+(.+?)(?=\s+(?:NOT\s+NULL|NULL|DEFAULT|PRIMARY|UNIQUE|CHECK|REFERENCES|CONSTRAINT|COLLATE|GENERATED)\b|$)',
    re.IGNORECASE | re.DOTALL
)


def snapshot_from_sql(sql: str) -> list[SchemaTable]:
    """Build schema tables from the CREATE TABLE statements of a DDL script.

    A table defined twice keeps its last definition. Statements other than
    CREATE TABLE are ignored.

    Args:
        sql: DDL script

    Returns:
        Tables in order of first definition
    """
    tables: dict[str, SchemaTable] = {}

    for statement in split_statements(strip_comments(sql)):
        if not _CREATE_TABLE_RE.match(statement.text):
            continue
        table = parse_create_table(statement.text)
        if table is not None:
            tables[table.name] = table

    logger.debug(f"Read {len(tables)} tables from DDL")
    return list(tables.values())


def parse_create_table(statement: str) -> SchemaTable | None:
    """Parse one CREATE TABLE statement.

    Args:
        statement: SQL CREATE TABLE statement

    Returns:
        SchemaTable, or None when not even the fallback reader can find a
        table name
    """
    try:
        parsed = sqlglot.parse_one(statement, dialect="postgres")
    except (ParseError, TokenError) as e:
        logger.debug(f"sqlglot could not parse CREATE TABLE, using fallback: {e}")
        return _parse_create_table_fallback(statement)

    if not isinstance(parsed, exp.Create) or not isinstance(parsed.this, exp.Schema):
        return _parse_create_table_fallback(statement)

    schema_expr = parsed.this
    table_info = schema_expr.this
    if not isinstance(table_info, exp.Table) or not table_info.name:
        return _parse_create_table_fallback(statement)

    table_name = table_info.name
    columns: list[SchemaColumn] = []
    foreign_keys: list[SchemaForeignKey] = []
    pk_columns: set[str] = set()

    for expr in schema_expr.expressions:
        if isinstance(expr, exp.ColumnDef):
            column, column_fk = _parse_column_def(table_name, expr)
            columns.append(column)
            if column_fk:
                foreign_keys.append(column_fk)
            continue

        # CONSTRAINT <name> PRIMARY KEY (...) / FOREIGN KEY (...)
        constraint_name = None
        parts = [expr]
        if isinstance(expr, exp.Constraint):
            constraint_name = expr.name or None
            parts = list(expr.expressions)

        for part in parts:
            if isinstance(part, exp.PrimaryKey):
                pk_columns.update(_identifier_names(part.expressions))
            elif isinstance(part, exp.ForeignKey):
                foreign_keys.extend(_parse_foreign_key(table_name, part, constraint_name))

    for column in columns:
        if column.name in pk_columns:
            column.is_primary_key = True
            column.is_nullable = False

    return SchemaTable(name=table_name, columns=columns, foreign_keys=foreign_keys)


def _identifier_names(expressions) -> list[str]:
    names = []
    for e in expressions:
        ident = e.find(exp.Identifier)
        if ident is not None:
            names.append(ident.name)
    return names


def _reference_target(reference: exp.Expression | None) -> tuple[str | None, list[str]]:
    """Referenced table and columns of a REFERENCES clause."""
    if reference is None:
        return None, []
    table = reference.find(exp.Table)
    target = reference.this
    columns = _identifier_names(target.expressions) if isinstance(target, exp.Schema) else []
    return (table.name if table is not None else None), columns


def _parse_column_def(table_name: str, col_expr: exp.ColumnDef) -> tuple[SchemaColumn, SchemaForeignKey | None]:
    name = col_expr.name
    kind = col_expr.args.get("kind")
    data_type = kind.sql(dialect="postgres").lower() if kind is not None else "unknown"

    nullable = True
    default = None
    is_pk = False
    foreign_key = None

    for constraint in col_expr.constraints:
        constraint_kind = constraint.args.get("kind")
        if isinstance(constraint_kind, exp.NotNullColumnConstraint):
            nullable = bool(constraint_kind.args.get("allow_null"))
        elif isinstance(constraint_kind, exp.PrimaryKeyColumnConstraint):
            is_pk = True
            nullable = False
        elif isinstance(constraint_kind, exp.DefaultColumnConstraint):
            value = constraint_kind.this
            default = value.sql(dialect="postgres") if value is not None else None
        elif isinstance(constraint_kind, exp.Reference):
            ref_table, ref_columns = _reference_target(constraint_kind)
            if ref_table:
                foreign_key = SchemaForeignKey(
                    constraint_name=constraint.name or f"{table_name}_{name}_fkey",
                    column_name=name,
                    referenced_table=ref_table,
                    referenced_column=ref_columns[0] if ref_columns else "id",
                )

    column = SchemaColumn(
        name=name,
        data_type=data_type,
        is_nullable=nullable,
        column_default=default,
        is_primary_key=is_pk,
    )
    return column, foreign_key


def _parse_foreign_key(
    table_name: str,
    fk_expr: exp.ForeignKey,
    constraint_name: str | None,
) -> list[SchemaForeignKey]:
    """Foreign keys from a table-level FOREIGN KEY clause.

    A composite key becomes one entry per column pair, all sharing the
    constraint name; migration synthesis groups them back by that name.
    """
    local_columns = _identifier_names(fk_expr.expressions)
    ref_table, ref_columns = _reference_target(fk_expr.args.get("reference"))
    if not local_columns or not ref_table:
        return []

    keys = []
    for i, column in enumerate(local_columns):
        ref_column = ref_columns[i] if i < len(ref_columns) else "id"
        keys.append(SchemaForeignKey(
            constraint_name=constraint_name or f"{table_name}_{local_columns[0]}_fkey",
            column_name=column,
            referenced_table=ref_table,
            referenced_column=ref_column,
        ))
    return keys


def _parse_create_table_fallback(statement: str) -> SchemaTable | None:
    """Regex-based reader for CREATE TABLE statements sqlglot rejects."""
    name_match = re.search(
        r'CREATE\s+(?:\w+\s+)*?TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?(["\w.]+)',
        statement,
        re.IGNORECASE
    )
    if not name_match:
        return None

    table_name = name_match.group(1).replace('"', '').rsplit('.', 1)[-1]
    if not table_name:
        return None

    columns = []
    pk_columns: set[str] = set()

    col_section_match = re.search(r'\(([\s\S]+)\)', statement)
    if col_section_match:
        for col_def in _split_outside_parens(col_section_match.group(1), ','):
            col_def = col_def.strip()
            if not col_def:
                continue

            pk_match = re.match(r'^\s*(?:CONSTRAINT\s+\S+\s+)?PRIMARY\s+KEY\s*\(([^)]*)\)', col_def, re.IGNORECASE)
            if pk_match:
                pk_columns.update(c.strip().strip('"') for c in pk_match.group(1).split(','))
                continue

            # Skip other table constraints
            if re.match(r'^\s*(PRIMARY|FOREIGN|UNIQUE|CHECK|CONSTRAINT|EXCLUDE)\s', col_def, re.IGNORECASE):
                continue

            col_match = _FALLBACK_COLUMN_RE.match(col_def)
            if not col_match:
                continue

            upper = col_def.upper()
            is_pk = 'PRIMARY KEY' in upper
            default_match = re.search(
                r'\bDEFAULT\s+(.+?)(?:\s+(?:NOT\s+NULL|NULL|PRIMARY|UNIQUE|CHECK|REFERENCES|CONSTRAINT)\b|$)',
                col_def,
                re.IGNORECASE
            )
            columns.append(SchemaColumn(
                name=col_match.group(1).strip('"'),
                data_type=col_match.group(2).strip().lower(),
                is_nullable='NOT NULL' not in upper and not is_pk,
                column_default=default_match.group(1).strip() if default_match else None,
                is_primary_key=is_pk,
            ))

    for column in columns:
        if column.name in pk_columns:
            column.is_primary_key = True
            column.is_nullable = False

    return SchemaTable(name=table_name, columns=columns)


def _split_outside_parens(text: str, delimiter: str) -> list[str]:
    """Split on ``delimiter`` at paren depth 0 and outside string literals."""
    parts = []
    start = 0
    depth = 0
    in_string = False

    for i, char in enumerate(text):
        if char == "'":
            # A doubled quote toggles twice and stays inside the literal
            in_string = not in_string
        elif in_string:
            continue
        elif char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
        elif char == delimiter and depth == 0:
            parts.append(text[start:i])
            start = i + 1

    if start < len(text):
        parts.append(text[start:])

    return parts
