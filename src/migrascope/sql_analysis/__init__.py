"""SQL migration analysis.

Pure string analysis of migration SQL (no database needed):
- Split scripts into statements with line numbers
- Lint for risky operations and rate overall risk
- Extract table references and build the migration dependency graph
- Generate best-effort rollback SQL
- Produce dry-run reports
"""
from __future__ import annotations

from .splitter import (
    split_statements,
    scan_statements_by_line,
    strip_comments,
    strip_comments_and_strings,
)

from .ruleset import (
    LintRule,
    LintRuleset,
    load_lint_rules,
    default_ruleset,
)

from .risk import analyze_sql

from .references import (
    extract_table_refs,
    build_dependency_graph,
)

from .rollback import (
    generate_rollback_sql,
    parse_rollback_statements,
)

from .dry_run import analyze_dry_run

__all__ = [
    # Splitter
    "split_statements",
    "scan_statements_by_line",
    "strip_comments",
    "strip_comments_and_strings",
    # Lint rules
    "LintRule",
    "LintRuleset",
    "load_lint_rules",
    "default_ruleset",
    # Analyzers
    "analyze_sql",
    "extract_table_refs",
    "build_dependency_graph",
    "generate_rollback_sql",
    "parse_rollback_statements",
    "analyze_dry_run",
]
