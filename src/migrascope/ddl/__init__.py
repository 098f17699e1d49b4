"""DDL generation and schema comparison.

- Single-statement generators with identifier quoting
- PostgreSQL type catalog
- Schema snapshot models and a DDL-to-snapshot reader
- Schema diffing and migration synthesis from a diff
"""
from __future__ import annotations

from .builders import quote_ident, quote_literal

from .pg_types import (
    PgType,
    all_pg_types,
    check_type_spec,
    find_pg_type,
    pg_type_categories,
)

from .snapshot import (
    SchemaColumn,
    SchemaForeignKey,
    SchemaTable,
    SchemaSnapshot,
    snapshot_from_sql,
)

from .diff import (
    ColumnDiff,
    TableDiff,
    SchemaDiff,
    diff_schemas,
    generate_migration_from_diff,
)

__all__ = [
    "quote_ident",
    "quote_literal",
    # Type catalog
    "PgType",
    "all_pg_types",
    "check_type_spec",
    "find_pg_type",
    "pg_type_categories",
    # Snapshots
    "SchemaColumn",
    "SchemaForeignKey",
    "SchemaTable",
    "SchemaSnapshot",
    "snapshot_from_sql",
    # Diff
    "ColumnDiff",
    "TableDiff",
    "SchemaDiff",
    "diff_schemas",
    "generate_migration_from_diff",
]
