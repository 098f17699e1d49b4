"""Tests for the lint rule table and the risk analyzer."""
import re

import pytest

from migrascope.models import RiskLevel
from migrascope.sql_analysis.risk import analyze_sql, find_line_number
from migrascope.sql_analysis.ruleset import default_ruleset, load_lint_rules


def _rule_ids(sql):
    return [issue.rule for issue in analyze_sql(sql).issues]


# =============================================================================
# Ruleset loading
# =============================================================================

class TestRuleset:
    """Test loading the bundled and custom rule tables."""

    def test_bundled_rules_in_order(self):
        """Should load every bundled rule in evaluation order."""
        ruleset = default_ruleset()

        assert [r.id for r in ruleset.rules] == [
            "drop-table",
            "drop-column",
            "drop-database",
            "truncate-table",
            "not-null-no-default",
            "index-not-concurrent",
            "create-no-if-not-exists",
            "drop-no-if-exists",
            "alter-type",
            "rename-column",
            "rename-table",
            "add-constraint-not-valid",
            "update-without-where",
            "delete-without-where",
            "grant-all",
        ]

    def test_content_hash(self):
        """Should compute a 16 character content hash."""
        assert len(default_ruleset().content_hash) == 16

    def test_get_rule(self):
        """Should look rules up by id."""
        rule = default_ruleset().get_rule("truncate-table")

        assert rule is not None
        assert rule.severity == RiskLevel.CRITICAL
        assert default_ruleset().get_rule("no-such-rule") is None

    def test_without(self):
        """Should drop disabled rules and keep the rest."""
        ruleset = default_ruleset().without(["grant-all", "drop-table"])

        ids = [r.id for r in ruleset.rules]
        assert "grant-all" not in ids
        assert "drop-table" not in ids
        assert len(ids) == 13

    def test_custom_rules_file(self, tmp_path):
        """Should load a custom rules file."""
        path = tmp_path / "rules.yaml"
        path.write_text(
            "version: '2.0'\n"
            "rules:\n"
            "  - id: no-vacuum\n"
            "    severity: medium\n"
            "    pattern: '\\bVACUUM\\b'\n"
            "    message: VACUUM in a migration\n"
        )
        ruleset = load_lint_rules(path)

        assert ruleset.version == "2.0"
        result = analyze_sql("VACUUM users;", ruleset=ruleset)
        assert [i.rule for i in result.issues] == ["no-vacuum"]
        assert result.overall_risk == RiskLevel.MEDIUM

    def test_invalid_severity(self, tmp_path):
        """Should reject a rule with an unknown severity."""
        path = tmp_path / "rules.yaml"
        path.write_text(
            "rules:\n"
            "  - id: bad\n"
            "    severity: extreme\n"
            "    pattern: 'x'\n"
            "    message: bad\n"
        )
        with pytest.raises(ValueError, match="bad"):
            load_lint_rules(path)

    def test_missing_file(self, tmp_path):
        """Should raise FileNotFoundError for a missing file."""
        with pytest.raises(FileNotFoundError):
            load_lint_rules(tmp_path / "missing.yaml")


# =============================================================================
# Risk analysis
# =============================================================================

class TestAnalyzeSql:
    """Test rule evaluation and overall risk."""

    def test_clean_migration(self):
        """Should report no issues and LOW risk for safe SQL."""
        result = analyze_sql("CREATE TABLE IF NOT EXISTS users (id int);")

        assert result.issues == []
        assert result.overall_risk == RiskLevel.LOW

    def test_empty_input(self):
        """Should report LOW risk for empty input."""
        assert analyze_sql("").overall_risk == RiskLevel.LOW

    def test_drop_table(self):
        """Should flag DROP TABLE as critical along with the missing IF EXISTS."""
        result = analyze_sql("DROP TABLE users;")

        assert [i.rule for i in result.issues] == ["drop-table", "drop-no-if-exists"]
        assert result.overall_risk == RiskLevel.CRITICAL
        assert result.issues[0].suggestion

    def test_line_number_from_original_text(self):
        """Should report the line of the first match in the raw SQL."""
        sql = "CREATE TABLE IF NOT EXISTS a (id int);\n\nDROP TABLE IF EXISTS b;"
        result = analyze_sql(sql)

        drop = next(i for i in result.issues if i.rule == "drop-table")
        assert drop.line == 3

    def test_rule_fires_once(self):
        """Should report each rule at most once per analysis."""
        rules = _rule_ids("DROP TABLE IF EXISTS a;\nDROP TABLE IF EXISTS b;")

        assert rules.count("drop-table") == 1

    def test_not_null_without_default(self):
        """Should flag NOT NULL columns added without a DEFAULT."""
        assert "not-null-no-default" in _rule_ids("ALTER TABLE users ADD COLUMN age integer NOT NULL;")
        assert "not-null-no-default" not in _rule_ids(
            "ALTER TABLE users ADD COLUMN age integer NOT NULL DEFAULT 0;"
        )

    def test_index_not_concurrent(self):
        """Should flag index builds without CONCURRENTLY."""
        assert "index-not-concurrent" in _rule_ids("CREATE INDEX idx_a ON a (x);")
        assert "index-not-concurrent" not in _rule_ids("CREATE INDEX CONCURRENTLY idx_a ON a (x);")
        assert "index-not-concurrent" in _rule_ids("CREATE UNIQUE INDEX idx_a ON a (x);")

    def test_alter_type(self):
        """Should flag column type changes as high risk."""
        result = analyze_sql("ALTER TABLE users ALTER COLUMN age TYPE bigint;")

        assert [i.rule for i in result.issues] == ["alter-type"]
        assert result.overall_risk == RiskLevel.HIGH

    def test_renames(self):
        """Should flag column and table renames."""
        assert _rule_ids("ALTER TABLE users RENAME COLUMN name TO full_name;") == ["rename-column"]
        assert _rule_ids("ALTER TABLE users RENAME TO customers;") == ["rename-table"]

    def test_constraint_not_valid(self):
        """Should flag foreign keys added without NOT VALID."""
        sql = "ALTER TABLE orders ADD CONSTRAINT fk_u FOREIGN KEY (user_id) REFERENCES users (id)"
        assert _rule_ids(sql + ";") == ["add-constraint-not-valid"]
        assert _rule_ids(sql + " NOT VALID;") == []

    def test_update_and_delete_without_where(self):
        """Should flag unbounded UPDATE and DELETE."""
        assert _rule_ids("UPDATE users SET active = false;") == ["update-without-where"]
        assert _rule_ids("UPDATE users SET active = false WHERE id = 1;") == []
        assert _rule_ids("DELETE FROM sessions;") == ["delete-without-where"]
        assert _rule_ids("DELETE FROM sessions WHERE expires_at < now();") == []

    def test_truncate_and_grant_all(self):
        """Should flag TRUNCATE and GRANT ALL."""
        assert _rule_ids("TRUNCATE users;") == ["truncate-table"]
        assert _rule_ids("GRANT ALL ON users TO app;") == ["grant-all"]

    def test_ignores_strings_and_comments(self):
        """Should not flag keywords inside literals or comments."""
        assert _rule_ids("INSERT INTO logs (msg) VALUES ('DROP TABLE users');") == []
        assert _rule_ids("-- DROP TABLE users\nSELECT 1;") == []
        assert _rule_ids("/* TRUNCATE users; */ SELECT 1;") == []

    def test_overall_is_highest_severity(self, risky_sql):
        """Should rate overall risk as the highest issue severity."""
        result = analyze_sql(risky_sql)

        assert result.overall_risk == RiskLevel.CRITICAL
        assert result.overall_risk == RiskLevel.highest(i.severity for i in result.issues)
        assert {"drop-table", "update-without-where", "create-no-if-not-exists"} <= {
            i.rule for i in result.issues
        }

    def test_custom_ruleset_applies(self):
        """Should honor a ruleset with rules removed."""
        ruleset = default_ruleset().without(["drop-table"])
        result = analyze_sql("DROP TABLE IF EXISTS a;", ruleset=ruleset)

        assert result.issues == []


class TestHelpers:
    """Test the line lookup and risk ordering."""

    def test_find_line_number(self):
        """Should return 1-based lines, or None when there is no match."""
        pattern = re.compile("DROP")

        assert find_line_number("a\nb\nDROP TABLE x", pattern) == 3
        assert find_line_number("nothing here", pattern) is None

    def test_risk_ordering(self):
        """Should order risk levels low < medium < high < critical."""
        assert RiskLevel.LOW < RiskLevel.MEDIUM < RiskLevel.HIGH < RiskLevel.CRITICAL
        assert RiskLevel.highest([]) == RiskLevel.LOW
        assert RiskLevel.highest([RiskLevel.MEDIUM, RiskLevel.HIGH]) == RiskLevel.HIGH
