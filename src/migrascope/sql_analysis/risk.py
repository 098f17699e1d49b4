"""Migration SQL risk analyzer.

Flags risky operations (destructive DDL, table-locking index builds,
unbounded data changes...) by running the lint rule table over normalized
SQL. Pure string analysis: no database is needed.
"""
from __future__ import annotations

import logging
import re

from migrascope.models import RiskLevel, SqlAnalysisResult, SqlLintIssue
from migrascope.sql_analysis.ruleset import LintRuleset, default_ruleset
from migrascope.sql_analysis.splitter import strip_comments_and_strings

logger = logging.getLogger(__name__)


def find_line_number(sql: str, pattern: re.Pattern) -> int | None:
    """Return the 1-based line of the first match of ``pattern`` in ``sql``."""
    match = pattern.search(sql)
    if not match:
        return None
    return sql.count("\n", 0, match.start()) + 1


def analyze_sql(sql_content: str, ruleset: LintRuleset | None = None) -> SqlAnalysisResult:
    """Analyze migration SQL for safety issues.

    Every rule is checked once against the whole script, so a rule reports a
    single issue no matter how many statements trigger it.

    Args:
        sql_content: Raw SQL text
        ruleset: Rules to apply (defaults to the bundled rules)

    Returns:
        Overall risk (highest issue severity, LOW when clean) and the issues
        in rule order
    """
    if ruleset is None:
        ruleset = default_ruleset()

    normalized = strip_comments_and_strings(sql_content)
    issues = []

    for rule in ruleset.rules:
        if not rule.matches(normalized):
            continue
        issues.append(SqlLintIssue(
            rule=rule.id,
            severity=rule.severity,
            message=rule.message,
            line=find_line_number(sql_content, rule.pattern),
            suggestion=rule.suggestion,
        ))

    overall_risk = RiskLevel.highest(issue.severity for issue in issues)

    if issues:
        logger.debug(f"SQL analysis: {len(issues)} issues, overall risk {overall_risk.value}")

    return SqlAnalysisResult(overall_risk=overall_risk, issues=issues)
