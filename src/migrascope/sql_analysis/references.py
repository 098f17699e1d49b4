"""Table references and the migration dependency graph.

Each migration's SQL is scanned for the tables it creates, drops, alters,
writes or references; migrations are then linked to the earlier migration
that first created each shared table.
"""
from __future__ import annotations

import logging
import re

from migrascope.models import (
    DependencyGraph,
    EdgeType,
    Migration,
    MigrationEdge,
    MigrationNode,
    NodeRisk,
    TableAction,
    TableRef,
)
from migrascope.sql_analysis.splitter import strip_comments_and_strings

logger = logging.getLogger(__name__)

# Optional "schema". prefix followed by the (optionally quoted) table name
_QUALIFIED = r'(?:"?(\w+)"?\.)?("?\w+"?)'

# (pattern, action) pairs; group 2 is the table name
_SINGLE_TABLE_PATTERNS: list[tuple[re.Pattern, TableAction]] = [
    (re.compile(r'\bALTER\s+TABLE\s+(?:ONLY\s+)?' + _QUALIFIED, re.IGNORECASE), "alter"),
    (re.compile(r'\bINSERT\s+INTO\s+' + _QUALIFIED, re.IGNORECASE), "write"),
    (re.compile(r'\bUPDATE\s+' + _QUALIFIED + r'\s+SET\b', re.IGNORECASE), "write"),
    (re.compile(r'\bDELETE\s+FROM\s+' + _QUALIFIED, re.IGNORECASE), "write"),
    (re.compile(r'\bREFERENCES\s+' + _QUALIFIED, re.IGNORECASE), "read"),
]

_CREATE_TABLE_RE = re.compile(r'\bCREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?' + _QUALIFIED, re.IGNORECASE)
_DROP_TABLE_RE = re.compile(
    r'\bDROP\s+TABLE\s+(?:IF\s+EXISTS\s+)?(.+?)(?:;|\bCASCADE\b|\bRESTRICT\b|$)',
    re.IGNORECASE,
)
_BARE_NAME_RE = re.compile(r'\w+')


def normalize_table_name(name: str) -> str:
    return name.lower().replace('"', '')


def extract_table_refs(sql: str) -> list[TableRef]:
    """Extract table references from a migration's SQL.

    Recognizes CREATE TABLE, DROP TABLE (each entry of a comma-separated list),
    ALTER TABLE, INSERT INTO, UPDATE ... SET, DELETE FROM and foreign-key
    REFERENCES targets. Schema prefixes are dropped.

    Args:
        sql: Raw SQL text

    Returns:
        References deduplicated by (table, action), in discovery order
    """
    if not sql:
        return []

    cleaned = strip_comments_and_strings(sql, placeholder="''")
    refs: list[TableRef] = []
    seen: set[tuple[str, str]] = set()

    def add_ref(raw_name: str, action: TableAction) -> None:
        table = normalize_table_name(raw_name)
        if not table or (table, action) in seen:
            return
        seen.add((table, action))
        refs.append(TableRef(table=table, action=action))

    for match in _CREATE_TABLE_RE.finditer(cleaned):
        add_ref(match.group(2), "create")

    for match in _DROP_TABLE_RE.finditer(cleaned):
        for entry in match.group(1).split(','):
            parts = entry.strip().replace('"', '').split()
            if not parts:
                continue
            name = parts[0].rsplit('.', 1)[-1]
            if _BARE_NAME_RE.fullmatch(name):
                add_ref(name, "drop")

    for pattern, action in _SINGLE_TABLE_PATTERNS:
        for match in pattern.finditer(cleaned):
            add_ref(match.group(2), action)

    return refs


def classify_node_risk(refs: list[TableRef]) -> NodeRisk:
    """Derive a migration's graph risk from the actions it performs."""
    if any(r.action == "drop" for r in refs):
        return NodeRisk.DESTRUCTIVE
    if any(r.action in ("alter", "write") for r in refs):
        return NodeRisk.CAUTION
    return NodeRisk.SAFE


def _edge_type(action: TableAction) -> EdgeType:
    if action == "drop":
        return "drops-created"
    if action in ("read", "create"):
        return "creates-for"
    return "modifies-after"


def build_dependency_graph(migrations: list[Migration]) -> DependencyGraph:
    """Build the dependency graph for a set of migrations.

    Migrations are ordered by version. The first migration that creates a
    table owns it; every later migration touching that table gets one edge
    from the owner, typed by what it does to the table.

    Args:
        migrations: Migrations in any order (not modified)

    Returns:
        Nodes in version order, edges, and table -> touching migration ids
    """
    ordered = sorted(migrations, key=lambda m: m.version)

    nodes = []
    for migration in ordered:
        tables = extract_table_refs(migration.up_sql)
        nodes.append(MigrationNode(
            migration_id=migration.id,
            version=migration.version,
            description=migration.description,
            tables=tables,
            risk_level=classify_node_risk(tables),
        ))

    # table -> (position, migration id) of the first creator
    table_creators: dict[str, tuple[int, str]] = {}
    table_owners: dict[str, list[str]] = {}

    for position, node in enumerate(nodes):
        for ref in node.tables:
            if ref.action == "create" and ref.table not in table_creators:
                table_creators[ref.table] = (position, node.migration_id)
            # One entry per reference, so a migration can appear more than once
            table_owners.setdefault(ref.table, []).append(node.migration_id)

    edges = []
    edge_keys: set[tuple[str, str, str]] = set()

    for position, node in enumerate(nodes):
        for ref in node.tables:
            if ref.table not in table_creators:
                continue
            creator_position, creator = table_creators[ref.table]
            # Edges only point forward in version order
            if creator_position >= position:
                continue

            key = (creator, node.migration_id, ref.table)
            if key in edge_keys:
                continue
            edge_keys.add(key)

            edges.append(MigrationEdge(
                from_id=creator,
                to_id=node.migration_id,
                table=ref.table,
                type=_edge_type(ref.action),
            ))

    logger.debug(f"Dependency graph: {len(nodes)} nodes, {len(edges)} edges, {len(table_owners)} tables")

    return DependencyGraph(nodes=nodes, edges=edges, table_owners=table_owners)
