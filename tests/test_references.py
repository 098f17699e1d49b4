"""Tests for table reference extraction and the migration dependency graph."""
from migrascope.models import Migration, MigrationEdge, NodeRisk, TableRef
from migrascope.sql_analysis.references import (
    build_dependency_graph,
    classify_node_risk,
    extract_table_refs,
)


# =============================================================================
# extract_table_refs
# =============================================================================

class TestExtractTableRefs:
    """Test table reference extraction."""

    def test_create_table(self):
        """Should drop schema prefixes and lower-case names."""
        refs = extract_table_refs("CREATE TABLE IF NOT EXISTS public.Users (id int);")

        assert refs == [TableRef("users", "create")]

    def test_drop_table_list(self):
        """Should record every entry of a DROP TABLE list."""
        refs = extract_table_refs("DROP TABLE IF EXISTS a, b CASCADE;")

        assert refs == [TableRef("a", "drop"), TableRef("b", "drop")]

    def test_drop_schema_qualified(self):
        """Should accept schema-qualified names in DROP TABLE."""
        assert extract_table_refs("DROP TABLE public.old_table;") == [TableRef("old_table", "drop")]

    def test_scan_order(self):
        """Should report creates first, then writes, then references."""
        sql = (
            "CREATE TABLE orders (id int, user_id int REFERENCES users(id));\n"
            "INSERT INTO audit (x) VALUES (1);"
        )
        refs = extract_table_refs(sql)

        assert refs == [
            TableRef("orders", "create"),
            TableRef("audit", "write"),
            TableRef("users", "read"),
        ]

    def test_alter_update_delete(self):
        """Should classify ALTER as alter and UPDATE/DELETE as write."""
        sql = (
            "ALTER TABLE ONLY accounts ADD COLUMN x int;\n"
            "UPDATE accounts SET x = 1;\n"
            "DELETE FROM sessions WHERE x = 1;"
        )
        refs = extract_table_refs(sql)

        assert TableRef("accounts", "alter") in refs
        assert TableRef("accounts", "write") in refs
        assert TableRef("sessions", "write") in refs

    def test_deduplicates(self):
        """Should report each (table, action) pair once."""
        refs = extract_table_refs("INSERT INTO t VALUES (1); INSERT INTO T VALUES (2);")

        assert refs == [TableRef("t", "write")]

    def test_quoted_names(self):
        """Should remove identifier quotes."""
        refs = extract_table_refs('ALTER TABLE "Orders" ADD COLUMN x int;')

        assert refs == [TableRef("orders", "alter")]

    def test_ignores_string_contents(self):
        """Should not pick up table names from string literals."""
        refs = extract_table_refs("INSERT INTO notes VALUES ('DELETE FROM users');")

        assert refs == [TableRef("notes", "write")]

    def test_empty(self):
        """Should return nothing for empty input."""
        assert extract_table_refs("") == []


class TestClassifyNodeRisk:
    """Test node risk derivation."""

    def test_levels(self):
        """Should be destructive on drop, caution on alter/write, else safe."""
        assert classify_node_risk([TableRef("a", "create"), TableRef("a", "drop")]) == NodeRisk.DESTRUCTIVE
        assert classify_node_risk([TableRef("a", "write")]) == NodeRisk.CAUTION
        assert classify_node_risk([TableRef("a", "alter")]) == NodeRisk.CAUTION
        assert classify_node_risk([TableRef("a", "create"), TableRef("b", "read")]) == NodeRisk.SAFE
        assert classify_node_risk([]) == NodeRisk.SAFE


# =============================================================================
# build_dependency_graph
# =============================================================================

class TestBuildDependencyGraph:
    """Test graph construction."""

    def test_nodes_in_version_order(self, migrations):
        """Should sort nodes by version and derive risk."""
        graph = build_dependency_graph(migrations)

        assert [n.migration_id for n in graph.nodes] == ["m1", "m2", "m3", "m4"]
        assert [n.risk_level for n in graph.nodes] == [
            NodeRisk.SAFE,
            NodeRisk.SAFE,
            NodeRisk.CAUTION,
            NodeRisk.DESTRUCTIVE,
        ]

    def test_edges(self, migrations):
        """Should link each migration to the creator of the tables it touches."""
        graph = build_dependency_graph(migrations)

        assert graph.edges == [
            MigrationEdge("m1", "m2", "users", "creates-for"),
            MigrationEdge("m1", "m3", "users", "modifies-after"),
            MigrationEdge("m2", "m4", "orders", "drops-created"),
        ]

    def test_table_owners(self, migrations):
        """Should list touching migrations per table in version order."""
        graph = build_dependency_graph(migrations)

        assert list(graph.table_owners) == ["users", "orders"]
        assert graph.table_owners["users"] == ["m1", "m2", "m3"]
        assert graph.table_owners["orders"] == ["m2", "m4"]

    def test_table_owners_one_entry_per_reference(self):
        """Should list a migration once for each reference to the table."""
        graph = build_dependency_graph([
            Migration(id="m1", version=1, up_sql="CREATE TABLE t (id int); INSERT INTO t VALUES (1);"),
            Migration(id="m2", version=2, up_sql="UPDATE t SET id = 2;"),
        ])

        assert graph.table_owners == {"t": ["m1", "m1", "m2"]}

    def test_one_edge_per_table_pair(self):
        """Should emit a single edge when a migration alters and writes a table."""
        graph = build_dependency_graph([
            Migration(id="a", version=1, up_sql="CREATE TABLE users (id int);"),
            Migration(id="b", version=2, up_sql=(
                "ALTER TABLE users ADD COLUMN z int; INSERT INTO users (z) VALUES (1);"
            )),
        ])

        assert graph.edges == [MigrationEdge("a", "b", "users", "modifies-after")]

    def test_first_creator_wins(self):
        """Should attribute a table to the lowest-version creator."""
        graph = build_dependency_graph([
            Migration(id="late", version=5, up_sql="CREATE TABLE IF NOT EXISTS t (id int);"),
            Migration(id="early", version=1, up_sql="CREATE TABLE t (id int);"),
        ])

        assert graph.edges == [MigrationEdge("early", "late", "t", "creates-for")]

    def test_uncreated_tables_have_no_edges(self):
        """Should not link tables that no migration creates."""
        graph = build_dependency_graph([
            Migration(id="a", version=1, up_sql="ALTER TABLE legacy ADD COLUMN x int;"),
            Migration(id="b", version=2, up_sql="DROP TABLE legacy;"),
        ])

        assert graph.edges == []
        assert graph.table_owners == {"legacy": ["a", "b"]}

    def test_input_not_reordered(self, migrations):
        """Should leave the caller's list untouched."""
        before = list(migrations)
        build_dependency_graph(migrations)

        assert migrations == before

    def test_empty(self):
        """Should build an empty graph for no migrations."""
        graph = build_dependency_graph([])

        assert graph.nodes == []
        assert graph.edges == []
        assert graph.table_owners == {}
