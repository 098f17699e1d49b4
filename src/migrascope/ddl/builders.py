"""Single-statement DDL generators.

One generator per operation. Each takes a config object and returns a SQL
string, or an empty string when a required field is missing (the config is
still being filled in).
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field

_BARE_IDENT_RE = re.compile(r'^[a-z_][a-z0-9_]*$')


def quote_ident(name: str) -> str:
    """Quote an identifier unless it is plain lower-case snake_case."""
    if _BARE_IDENT_RE.match(name):
        return name
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


# ============================================================================
# Column definitions
# ============================================================================

@dataclass
class ColumnDef:
    """Column definition for CREATE TABLE."""
    name: str
    type: str
    nullable: bool = True
    default_value: str = ""
    is_primary_key: bool = False


def column_def_to_sql(col: ColumnDef) -> str:
    parts = [quote_ident(col.name), col.type]
    if not col.nullable:
        parts.append("NOT NULL")
    if col.default_value:
        parts.append(f"DEFAULT {col.default_value}")
    return " ".join(parts)


# ============================================================================
# Tables
# ============================================================================

@dataclass
class CreateTableConfig:
    table_name: str = ""
    columns: list[ColumnDef] = field(default_factory=list)
    if_not_exists: bool = False


def generate_create_table(cfg: CreateTableConfig) -> str:
    """CREATE TABLE with a trailing PRIMARY KEY clause for flagged columns."""
    if not cfg.table_name or not cfg.columns:
        return ""
    lines = ["  " + column_def_to_sql(c) for c in cfg.columns]
    pk_cols = [c for c in cfg.columns if c.is_primary_key]
    if pk_cols:
        lines.append(f"  PRIMARY KEY ({', '.join(quote_ident(c.name) for c in pk_cols)})")
    exists = " IF NOT EXISTS" if cfg.if_not_exists else ""
    body = ",\n".join(lines)
    return f"CREATE TABLE{exists} {quote_ident(cfg.table_name)} (\n{body}\n);"


@dataclass
class DropTableConfig:
    table_name: str = ""
    if_exists: bool = False
    cascade: bool = False


def generate_drop_table(cfg: DropTableConfig) -> str:
    if not cfg.table_name:
        return ""
    exists = " IF EXISTS" if cfg.if_exists else ""
    cascade = " CASCADE" if cfg.cascade else ""
    return f"DROP TABLE{exists} {quote_ident(cfg.table_name)}{cascade};"


@dataclass
class RenameTableConfig:
    old_name: str = ""
    new_name: str = ""


def generate_rename_table(cfg: RenameTableConfig) -> str:
    if not cfg.old_name or not cfg.new_name:
        return ""
    return f"ALTER TABLE {quote_ident(cfg.old_name)} RENAME TO {quote_ident(cfg.new_name)};"


# ============================================================================
# Columns
# ============================================================================

@dataclass
class AddColumnConfig:
    table_name: str = ""
    column_name: str = ""
    type: str = ""
    nullable: bool = True
    default_value: str = ""


def generate_add_column(cfg: AddColumnConfig) -> str:
    if not cfg.table_name or not cfg.column_name or not cfg.type:
        return ""
    parts = [f"ALTER TABLE {quote_ident(cfg.table_name)} ADD COLUMN {quote_ident(cfg.column_name)} {cfg.type}"]
    if not cfg.nullable:
        parts.append("NOT NULL")
    if cfg.default_value:
        parts.append(f"DEFAULT {cfg.default_value}")
    return " ".join(parts) + ";"


@dataclass
class DropColumnConfig:
    table_name: str = ""
    column_name: str = ""
    if_exists: bool = False


def generate_drop_column(cfg: DropColumnConfig) -> str:
    if not cfg.table_name or not cfg.column_name:
        return ""
    exists = " IF EXISTS" if cfg.if_exists else ""
    return f"ALTER TABLE {quote_ident(cfg.table_name)} DROP COLUMN{exists} {quote_ident(cfg.column_name)};"


@dataclass
class RenameColumnConfig:
    table_name: str = ""
    old_name: str = ""
    new_name: str = ""


def generate_rename_column(cfg: RenameColumnConfig) -> str:
    if not cfg.table_name or not cfg.old_name or not cfg.new_name:
        return ""
    return (
        f"ALTER TABLE {quote_ident(cfg.table_name)} "
        f"RENAME COLUMN {quote_ident(cfg.old_name)} TO {quote_ident(cfg.new_name)};"
    )


@dataclass
class AlterColumnTypeConfig:
    table_name: str = ""
    column_name: str = ""
    new_type: str = ""
    using_expression: str = ""


def generate_alter_column_type(cfg: AlterColumnTypeConfig) -> str:
    if not cfg.table_name or not cfg.column_name or not cfg.new_type:
        return ""
    sql = f"ALTER TABLE {quote_ident(cfg.table_name)} ALTER COLUMN {quote_ident(cfg.column_name)} TYPE {cfg.new_type}"
    if cfg.using_expression:
        sql += f" USING {cfg.using_expression}"
    return sql + ";"


@dataclass
class AddNotNullConfig:
    table_name: str = ""
    column_name: str = ""
    default_value: str = ""  # backfill value for existing NULLs


def generate_add_not_null(cfg: AddNotNullConfig) -> str:
    """SET NOT NULL, preceded by a backfill UPDATE when a value is given."""
    if not cfg.table_name or not cfg.column_name:
        return ""
    table = quote_ident(cfg.table_name)
    column = quote_ident(cfg.column_name)
    lines = []
    if cfg.default_value:
        lines.append(f"UPDATE {table} SET {column} = {cfg.default_value} WHERE {column} IS NULL;")
    lines.append(f"ALTER TABLE {table} ALTER COLUMN {column} SET NOT NULL;")
    return "\n".join(lines)


@dataclass
class DropNotNullConfig:
    table_name: str = ""
    column_name: str = ""


def generate_drop_not_null(cfg: DropNotNullConfig) -> str:
    if not cfg.table_name or not cfg.column_name:
        return ""
    return f"ALTER TABLE {quote_ident(cfg.table_name)} ALTER COLUMN {quote_ident(cfg.column_name)} DROP NOT NULL;"


@dataclass
class SetDefaultConfig:
    table_name: str = ""
    column_name: str = ""
    default_value: str = ""  # SQL expression, emitted as is


def generate_set_default(cfg: SetDefaultConfig) -> str:
    if not cfg.table_name or not cfg.column_name or not cfg.default_value:
        return ""
    return (
        f"ALTER TABLE {quote_ident(cfg.table_name)} ALTER COLUMN {quote_ident(cfg.column_name)} "
        f"SET DEFAULT {cfg.default_value};"
    )


@dataclass
class DropDefaultConfig:
    table_name: str = ""
    column_name: str = ""


def generate_drop_default(cfg: DropDefaultConfig) -> str:
    if not cfg.table_name or not cfg.column_name:
        return ""
    return f"ALTER TABLE {quote_ident(cfg.table_name)} ALTER COLUMN {quote_ident(cfg.column_name)} DROP DEFAULT;"


# ============================================================================
# Constraints
# ============================================================================

@dataclass
class AddForeignKeyConfig:
    table_name: str = ""
    column_name: str = ""
    referenced_table: str = ""
    referenced_column: str = ""
    constraint_name: str = ""  # defaults to fk_<table>_<column>
    on_delete: str = ""
    on_update: str = ""


def generate_add_foreign_key(cfg: AddForeignKeyConfig) -> str:
    if not cfg.table_name or not cfg.column_name or not cfg.referenced_table or not cfg.referenced_column:
        return ""
    name = cfg.constraint_name or f"fk_{cfg.table_name}_{cfg.column_name}"
    sql = (
        f"ALTER TABLE {quote_ident(cfg.table_name)} ADD CONSTRAINT {quote_ident(name)} "
        f"FOREIGN KEY ({quote_ident(cfg.column_name)}) "
        f"REFERENCES {quote_ident(cfg.referenced_table)} ({quote_ident(cfg.referenced_column)})"
    )
    if cfg.on_delete and cfg.on_delete != "NO ACTION":
        sql += f" ON DELETE {cfg.on_delete}"
    if cfg.on_update and cfg.on_update != "NO ACTION":
        sql += f" ON UPDATE {cfg.on_update}"
    return sql + ";"


@dataclass
class DropConstraintConfig:
    table_name: str = ""
    constraint_name: str = ""


def generate_drop_constraint(cfg: DropConstraintConfig) -> str:
    if not cfg.table_name or not cfg.constraint_name:
        return ""
    return f"ALTER TABLE {quote_ident(cfg.table_name)} DROP CONSTRAINT {quote_ident(cfg.constraint_name)};"


# ============================================================================
# Indexes, types, views
# ============================================================================

@dataclass
class CreateIndexConfig:
    table_name: str = ""
    columns: list[str] = field(default_factory=list)
    index_name: str = ""  # defaults to idx_<table>_<columns>
    unique: bool = False
    concurrently: bool = False
    where: str = ""  # partial index predicate


def generate_create_index(cfg: CreateIndexConfig) -> str:
    if not cfg.table_name or not cfg.columns:
        return ""
    name = cfg.index_name or f"idx_{cfg.table_name}_{'_'.join(cfg.columns)}"
    unique = " UNIQUE" if cfg.unique else ""
    concurrently = " CONCURRENTLY" if cfg.concurrently else ""
    columns = ", ".join(quote_ident(c) for c in cfg.columns)
    sql = f"CREATE{unique} INDEX{concurrently} {quote_ident(name)} ON {quote_ident(cfg.table_name)} ({columns})"
    if cfg.where:
        sql += f" WHERE {cfg.where}"
    return sql + ";"


@dataclass
class DropIndexConfig:
    index_name: str = ""
    if_exists: bool = False
    concurrently: bool = False


def generate_drop_index(cfg: DropIndexConfig) -> str:
    if not cfg.index_name:
        return ""
    concurrently = " CONCURRENTLY" if cfg.concurrently else ""
    exists = " IF EXISTS" if cfg.if_exists else ""
    return f"DROP INDEX{concurrently}{exists} {quote_ident(cfg.index_name)};"


@dataclass
class CreateEnumConfig:
    type_name: str = ""
    values: list[str] = field(default_factory=list)


def generate_create_enum(cfg: CreateEnumConfig) -> str:
    if not cfg.type_name or not cfg.values:
        return ""
    values = ", ".join(quote_literal(v) for v in cfg.values)
    return f"CREATE TYPE {quote_ident(cfg.type_name)} AS ENUM ({values});"


@dataclass
class CreateViewConfig:
    view_name: str = ""
    query: str = ""
    or_replace: bool = False


def generate_create_view(cfg: CreateViewConfig) -> str:
    if not cfg.view_name or not cfg.query:
        return ""
    replace = " OR REPLACE" if cfg.or_replace else ""
    return f"CREATE{replace} VIEW {quote_ident(cfg.view_name)} AS\n{cfg.query};"


@dataclass
class DropViewConfig:
    view_name: str = ""
    if_exists: bool = False
    cascade: bool = False


def generate_drop_view(cfg: DropViewConfig) -> str:
    if not cfg.view_name:
        return ""
    exists = " IF EXISTS" if cfg.if_exists else ""
    cascade = " CASCADE" if cfg.cascade else ""
    return f"DROP VIEW{exists} {quote_ident(cfg.view_name)}{cascade};"
