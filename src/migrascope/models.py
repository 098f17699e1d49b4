"""Result types shared by the SQL analysis engine.

Everything here is a transient value: created fresh for each call and never
persisted by the engine.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal


class RiskLevel(str, Enum):
    """Severity of a lint issue or of a whole migration.

    Ordered low < medium < high < critical.
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _RISK_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def highest(cls, levels) -> RiskLevel:
        """Return the maximum of ``levels``, or LOW when empty."""
        return max(levels, default=cls.LOW)


_RISK_ORDER = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]


class NodeRisk(str, Enum):
    """Risk of a migration as seen by the dependency graph."""
    SAFE = "safe"
    CAUTION = "caution"
    DESTRUCTIVE = "destructive"


class OperationType(str, Enum):
    """Closed set of statement kinds reported by the dry-run."""
    CREATE_TABLE = "CREATE TABLE"
    DROP_TABLE = "DROP TABLE"
    ALTER_TABLE = "ALTER TABLE"
    CREATE_INDEX = "CREATE INDEX"
    DROP_INDEX = "DROP INDEX"
    CREATE_VIEW = "CREATE VIEW"
    DROP_VIEW = "DROP VIEW"
    CREATE_TYPE = "CREATE TYPE"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    OTHER = "OTHER"


TableAction = Literal["create", "drop", "alter", "read", "write"]
EdgeType = Literal["creates-for", "modifies-after", "drops-created"]


@dataclass(frozen=True)
class Migration:
    """One versioned migration as handed to the engine."""
    id: str
    version: int
    description: str = ""
    up_sql: str = ""
    down_sql: str = ""


@dataclass(frozen=True)
class SqlStatement:
    """A single statement cut out of a SQL script."""
    text: str
    line: int  # 1-based line where the statement starts


@dataclass
class SqlLintIssue:
    """A risky construct found by the analyzer."""
    rule: str
    severity: RiskLevel
    message: str
    line: int | None
    suggestion: str


@dataclass
class SqlAnalysisResult:
    overall_risk: RiskLevel
    issues: list[SqlLintIssue] = field(default_factory=list)


@dataclass(frozen=True)
class TableRef:
    """A table touched by a migration and how it is touched."""
    table: str
    action: TableAction


@dataclass
class MigrationNode:
    migration_id: str
    version: int
    description: str
    tables: list[TableRef]
    risk_level: NodeRisk


@dataclass(frozen=True)
class MigrationEdge:
    from_id: str
    to_id: str
    table: str
    type: EdgeType


@dataclass
class DependencyGraph:
    nodes: list[MigrationNode] = field(default_factory=list)
    edges: list[MigrationEdge] = field(default_factory=list)
    table_owners: dict[str, list[str]] = field(default_factory=dict)  # table -> migration ids


@dataclass
class ParsedStatement:
    """One UP statement together with its generated rollback."""
    type: str  # "CREATE TABLE", "ADD COLUMN", ..., "UNKNOWN"
    original: str
    rollback: str


@dataclass
class DryRunOperation:
    type: OperationType
    target: str
    detail: str
    line: int
    reversible: bool


@dataclass
class DryRunReport:
    operations: list[DryRunOperation] = field(default_factory=list)
    tables_created: list[str] = field(default_factory=list)
    tables_dropped: list[str] = field(default_factory=list)
    tables_modified: list[str] = field(default_factory=list)
    indexes_created: list[str] = field(default_factory=list)
    indexes_dropped: list[str] = field(default_factory=list)
    data_modifications: int = 0
    is_fully_reversible: bool = True
    estimated_risk: RiskLevel = RiskLevel.LOW
