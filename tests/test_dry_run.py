"""Tests for the dry-run report."""
from migrascope.models import OperationType, RiskLevel
from migrascope.sql_analysis.dry_run import analyze_dry_run, classify_statement


# =============================================================================
# Report aggregation
# =============================================================================

class TestAnalyzeDryRun:
    """Test report aggregation and risk estimation."""

    def test_empty(self):
        """Should return an empty, reversible, low-risk report."""
        report = analyze_dry_run("")

        assert report.operations == []
        assert report.is_fully_reversible is True
        assert report.estimated_risk == RiskLevel.LOW
        assert report.data_modifications == 0

    def test_create_table_and_index(self):
        """Should list created objects with their starting lines."""
        sql = (
            "CREATE TABLE users (\n"
            "  id serial PRIMARY KEY,\n"
            "  email text\n"
            ");\n"
            "CREATE INDEX idx_users_email ON users (email);"
        )
        report = analyze_dry_run(sql)

        assert [op.type for op in report.operations] == [OperationType.CREATE_TABLE, OperationType.CREATE_INDEX]
        assert [op.line for op in report.operations] == [1, 5]
        assert report.tables_created == ["users"]
        assert report.indexes_created == ["idx_users_email"]
        assert report.is_fully_reversible is True
        assert report.estimated_risk == RiskLevel.LOW

    def test_drop_table_is_critical(self):
        """Should rate any dropped table as critical."""
        report = analyze_dry_run("DROP TABLE IF EXISTS legacy;")

        assert report.tables_dropped == ["legacy"]
        assert report.operations[0].detail == 'Drops table "legacy" and all its data'
        assert report.is_fully_reversible is False
        assert report.estimated_risk == RiskLevel.CRITICAL

    def test_unbounded_update_is_high(self):
        """Should flag UPDATE without WHERE and count the data change."""
        report = analyze_dry_run("UPDATE users SET active = false;")

        op = report.operations[0]
        assert op.type == OperationType.UPDATE
        assert op.detail == 'Updates rows in "users" (ALL rows)'
        assert report.tables_modified == ["users"]
        assert report.data_modifications == 1
        assert report.estimated_risk == RiskLevel.HIGH

    def test_bounded_delete(self):
        """Should omit the ALL rows marker when a WHERE clause is present."""
        report = analyze_dry_run("DELETE FROM sessions WHERE expires_at < now();")

        assert report.operations[0].detail == 'Deletes rows from "sessions"'
        assert report.estimated_risk == RiskLevel.HIGH

    def test_non_reversible_is_medium(self):
        """Should rate non-reversible schema changes as medium."""
        report = analyze_dry_run("ALTER TABLE users DROP COLUMN bio;")

        assert report.operations[0].detail == 'Drops column "bio" from "users"'
        assert report.tables_modified == ["users"]
        assert report.estimated_risk == RiskLevel.MEDIUM

    def test_first_seen_order_without_duplicates(self):
        """Should list each table once, in first-seen order."""
        report = analyze_dry_run(
            "INSERT INTO users (id) VALUES (1);\n"
            "ALTER TABLE orders ADD COLUMN note text;\n"
            "INSERT INTO users (id) VALUES (2);"
        )

        assert report.tables_modified == ["users", "orders"]
        assert report.data_modifications == 2

    def test_ignores_plain_queries(self):
        """Should not report statements outside the recognized set."""
        report = analyze_dry_run("SELECT 1;\nSET search_path TO app;")

        assert report.operations == []

    def test_comments_ignored(self):
        """Should ignore -- comments while keeping line numbers."""
        report = analyze_dry_run("-- migration header\n\nCREATE TABLE a (id int); -- trailing")

        assert len(report.operations) == 1
        assert report.operations[0].line == 3


# =============================================================================
# Statement classification
# =============================================================================

class TestClassifyStatement:
    """Test per-statement classification."""

    def test_schema_and_quotes_dropped(self):
        """Should de-quote, lower-case and drop schema prefixes."""
        op = classify_statement('CREATE TABLE public."Accounts" (id int)', 1)

        assert op.target == "accounts"

    def test_alter_details(self):
        """Should describe ALTER TABLE sub-actions."""
        cases = {
            "ALTER TABLE users ADD COLUMN bio text": ('Adds column "bio" to "users"', True),
            "ALTER TABLE users RENAME COLUMN a TO b": ('Renames a column in "users"', True),
            "ALTER TABLE users RENAME TO people": ('Renames table "users"', True),
            "ALTER TABLE users ADD CONSTRAINT u UNIQUE (email)": ('Adds a constraint on "users"', True),
            "ALTER TABLE users DROP CONSTRAINT u": ('Drops a constraint from "users"', False),
            "ALTER TABLE users ALTER COLUMN age TYPE bigint": ('Changes a column type in "users"', False),
            "ALTER TABLE users ALTER COLUMN age SET NOT NULL": ('Sets column NOT NULL in "users"', True),
            "ALTER TABLE users ALTER COLUMN age DROP NOT NULL": ('Drops NOT NULL constraint in "users"', True),
            "ALTER TABLE users ALTER COLUMN age SET DEFAULT 0": ('Sets column default in "users"', True),
            "ALTER TABLE users ALTER COLUMN age DROP DEFAULT": ('Drops column default in "users"', True),
            "ALTER TABLE users ENABLE ROW LEVEL SECURITY": ('Enables Row Level Security on "users"', True),
        }
        for statement, (detail, reversible) in cases.items():
            op = classify_statement(statement, 1)
            assert op.type == OperationType.ALTER_TABLE
            assert (op.detail, op.reversible) == (detail, reversible), statement

    def test_views_types_and_indexes(self):
        """Should classify views, types and index drops."""
        assert classify_statement("CREATE MATERIALIZED VIEW mv AS SELECT 1", 1).type == OperationType.CREATE_VIEW
        assert classify_statement("DROP VIEW IF EXISTS mv", 1).reversible is False
        assert classify_statement("CREATE TYPE mood AS ENUM ('a')", 1).type == OperationType.CREATE_TYPE
        assert classify_statement("DROP INDEX CONCURRENTLY idx_a", 1).target == "idx_a"

    def test_other_statements(self):
        """Should report other DDL and permission statements as OTHER."""
        op = classify_statement("GRANT SELECT ON users TO reader", 4)

        assert op.type == OperationType.OTHER
        assert op.reversible is False
        assert op.line == 4
        assert op.detail == "GRANT SELECT ON users TO reader"

    def test_other_detail_truncated(self):
        """Should truncate long OTHER details to 60 characters."""
        statement = "CREATE FUNCTION f() RETURNS int LANGUAGE sql AS 'select 1 + 1 + 1 + 1 + 1'"
        op = classify_statement(statement, 1)

        assert op.type == OperationType.OTHER
        assert op.detail == statement[:60] + "..."

    def test_unrecognized(self):
        """Should return None for statements it does not report."""
        assert classify_statement("SELECT 1", 1) is None
        assert classify_statement("VACUUM users", 1) is None
