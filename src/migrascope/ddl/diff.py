"""Schema diffing and migration synthesis from a diff."""
from __future__ import annotations

import logging

from pydantic import Field

from migrascope.ddl.builders import (
    AddColumnConfig,
    AddForeignKeyConfig,
    AddNotNullConfig,
    AlterColumnTypeConfig,
    ColumnDef,
    CreateTableConfig,
    DropColumnConfig,
    DropConstraintConfig,
    DropDefaultConfig,
    DropNotNullConfig,
    DropTableConfig,
    SetDefaultConfig,
    generate_add_column,
    generate_add_foreign_key,
    generate_add_not_null,
    generate_alter_column_type,
    generate_create_table,
    generate_drop_column,
    generate_drop_constraint,
    generate_drop_default,
    generate_drop_not_null,
    generate_drop_table,
    generate_set_default,
    quote_ident,
)
from migrascope.ddl.snapshot import SchemaColumn, SchemaForeignKey, SchemaTable, _SnapshotModel

logger = logging.getLogger(__name__)


class ColumnDiff(_SnapshotModel):
    column_name: str
    before: SchemaColumn
    after: SchemaColumn


class TableDiff(_SnapshotModel):
    """Changes to a table present in both snapshots."""
    table_name: str
    added_columns: list[SchemaColumn] = Field(default_factory=list)
    removed_columns: list[SchemaColumn] = Field(default_factory=list)
    modified_columns: list[ColumnDiff] = Field(default_factory=list)
    added_foreign_keys: list[SchemaForeignKey] = Field(default_factory=list)
    removed_foreign_keys: list[SchemaForeignKey] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.added_columns
            or self.removed_columns
            or self.modified_columns
            or self.added_foreign_keys
            or self.removed_foreign_keys
        )


class SchemaDiff(_SnapshotModel):
    added_tables: list[SchemaTable] = Field(default_factory=list)
    removed_tables: list[SchemaTable] = Field(default_factory=list)
    modified_tables: list[TableDiff] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.added_tables or self.removed_tables or self.modified_tables)


# ============================================================================
# Diffing
# ============================================================================

def _column_changed(before: SchemaColumn, after: SchemaColumn) -> bool:
    return (
        before.data_type != after.data_type
        or before.is_nullable != after.is_nullable
        or before.column_default != after.column_default
        or before.is_primary_key != after.is_primary_key
    )


def diff_table(table_name: str, before: SchemaTable, after: SchemaTable) -> TableDiff | None:
    """Diff two versions of one table; None when nothing changed."""
    before_cols = {c.name: c for c in before.columns}
    after_cols = {c.name: c for c in after.columns}

    result = TableDiff(table_name=table_name)

    for name, after_col in after_cols.items():
        before_col = before_cols.get(name)
        if before_col is None:
            result.added_columns.append(after_col)
        elif _column_changed(before_col, after_col):
            result.modified_columns.append(ColumnDiff(column_name=name, before=before_col, after=after_col))

    for name, before_col in before_cols.items():
        if name not in after_cols:
            result.removed_columns.append(before_col)

    before_fks = {fk.constraint_name for fk in before.foreign_keys}
    after_fks = {fk.constraint_name for fk in after.foreign_keys}
    result.added_foreign_keys = [fk for fk in after.foreign_keys if fk.constraint_name not in before_fks]
    result.removed_foreign_keys = [fk for fk in before.foreign_keys if fk.constraint_name not in after_fks]

    return None if result.is_empty() else result


def diff_schemas(before: list[SchemaTable], after: list[SchemaTable]) -> SchemaDiff:
    """Compare two schema snapshots.

    Tables are matched by name, columns by name within a table and foreign
    keys by constraint name.

    Args:
        before: Tables of the older snapshot
        after: Tables of the newer snapshot

    Returns:
        SchemaDiff; added and modified tables follow ``after`` order, removed
        tables follow ``before`` order
    """
    before_map = {t.name: t for t in before}
    after_map = {t.name: t for t in after}

    diff = SchemaDiff()

    for name, after_table in after_map.items():
        before_table = before_map.get(name)
        if before_table is None:
            diff.added_tables.append(after_table)
            continue
        table_diff = diff_table(name, before_table, after_table)
        if table_diff is not None:
            diff.modified_tables.append(table_diff)

    for name, before_table in before_map.items():
        if name not in after_map:
            diff.removed_tables.append(before_table)

    logger.debug(
        f"Schema diff: {len(diff.added_tables)} added, {len(diff.removed_tables)} removed, "
        f"{len(diff.modified_tables)} modified"
    )
    return diff


# ============================================================================
# Migration synthesis
# ============================================================================

def _column_def(col: SchemaColumn) -> ColumnDef:
    return ColumnDef(
        name=col.name,
        type=col.data_type.upper(),
        nullable=col.is_nullable,
        default_value=col.column_default or "",
        is_primary_key=col.is_primary_key,
    )


def _group_foreign_keys(fks: list[SchemaForeignKey]) -> list[list[SchemaForeignKey]]:
    """Group column pairs by constraint name, in order of first appearance."""
    groups: dict[str, list[SchemaForeignKey]] = {}
    for fk in fks:
        groups.setdefault(fk.constraint_name, []).append(fk)
    return list(groups.values())


def _add_foreign_key(table_name: str, group: list[SchemaForeignKey]) -> str:
    first = group[0]
    if len(group) == 1:
        return generate_add_foreign_key(AddForeignKeyConfig(
            table_name=table_name,
            column_name=first.column_name,
            referenced_table=first.referenced_table,
            referenced_column=first.referenced_column,
            constraint_name=first.constraint_name,
        ))

    columns = ", ".join(quote_ident(fk.column_name) for fk in group)
    ref_columns = ", ".join(quote_ident(fk.referenced_column) for fk in group)
    return (
        f"ALTER TABLE {quote_ident(table_name)} ADD CONSTRAINT {quote_ident(first.constraint_name)} "
        f"FOREIGN KEY ({columns}) REFERENCES {quote_ident(first.referenced_table)} ({ref_columns});"
    )


def _alter_column(table_name: str, col: ColumnDiff) -> list[str]:
    """Type, then nullability, then default; only what differs."""
    before, after = col.before, col.after
    statements = []

    if before.data_type != after.data_type:
        statements.append(generate_alter_column_type(AlterColumnTypeConfig(
            table_name=table_name,
            column_name=col.column_name,
            new_type=after.data_type.upper(),
        )))

    if before.is_nullable != after.is_nullable:
        if after.is_nullable:
            statements.append(generate_drop_not_null(DropNotNullConfig(table_name, col.column_name)))
        else:
            statements.append(generate_add_not_null(AddNotNullConfig(table_name, col.column_name)))

    if before.column_default != after.column_default:
        if after.column_default:
            statements.append(generate_set_default(SetDefaultConfig(
                table_name, col.column_name, after.column_default
            )))
        else:
            statements.append(generate_drop_default(DropDefaultConfig(table_name, col.column_name)))

    return statements


def generate_migration_from_diff(diff: SchemaDiff) -> str:
    """Generate a migration that turns the ``before`` schema into ``after``.

    Statements are ordered so that nothing is dropped while a foreign key
    still points at it and nothing is referenced before it exists:

    1. drop removed foreign keys on modified tables
    2. drop removed columns
    3. drop removed tables (CASCADE)
    4. create added tables
    5. add new columns
    6. alter modified columns
    7. add foreign keys of added tables
    8. add new foreign keys on modified tables

    Foreign key entries sharing a constraint name are added or dropped as
    one multi-column constraint.

    Returns:
        Statements separated by a blank line, or ``""`` for an empty diff
    """
    statements: list[str] = []

    for table in diff.modified_tables:
        for group in _group_foreign_keys(table.removed_foreign_keys):
            statements.append(generate_drop_constraint(DropConstraintConfig(table.table_name, group[0].constraint_name)))

    for table in diff.modified_tables:
        for col in table.removed_columns:
            statements.append(generate_drop_column(DropColumnConfig(table.table_name, col.name)))

    for removed in diff.removed_tables:
        statements.append(generate_drop_table(DropTableConfig(removed.name, if_exists=True, cascade=True)))

    for added in diff.added_tables:
        statements.append(generate_create_table(CreateTableConfig(
            table_name=added.name,
            columns=[_column_def(c) for c in added.columns],
        )))

    for table in diff.modified_tables:
        for col in table.added_columns:
            statements.append(generate_add_column(AddColumnConfig(
                table_name=table.table_name,
                column_name=col.name,
                type=col.data_type.upper(),
                nullable=col.is_nullable,
                default_value=col.column_default or "",
            )))

    for table in diff.modified_tables:
        for col in table.modified_columns:
            statements.extend(_alter_column(table.table_name, col))

    for added in diff.added_tables:
        for group in _group_foreign_keys(added.foreign_keys):
            statements.append(_add_foreign_key(added.name, group))

    for table in diff.modified_tables:
        for group in _group_foreign_keys(table.added_foreign_keys):
            statements.append(_add_foreign_key(table.table_name, group))

    return "\n\n".join(s for s in statements if s)
