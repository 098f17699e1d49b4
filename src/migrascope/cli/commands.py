from __future__ import annotations
import argparse
import dataclasses
import json
import logging
import sys
from enum import Enum
from pathlib import Path
from dotenv import load_dotenv

from migrascope.config import EngineConfig, load_config
from migrascope.ddl import (
    SchemaSnapshot,
    SchemaTable,
    check_type_spec,
    diff_schemas,
    generate_migration_from_diff,
    pg_type_categories,
    snapshot_from_sql,
)
from migrascope.models import RiskLevel
from migrascope.naming import generate_flyway_file_name, load_migration_directory
from migrascope.sql_analysis import (
    analyze_dry_run,
    analyze_sql,
    build_dependency_graph,
    extract_table_refs,
    generate_rollback_sql,
)
from migrascope.templates import get_template, templates_by_category

logger = logging.getLogger(__name__)

# Exit status when lint.fail_on is reached
LINT_FAILURE_EXIT = 2


def run() -> None:
    """Main CLI entry point."""
    # Load environment variables first
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args()

    try:
        config = load_config(args.config)
        _configure_logging(config)
        if args.format:
            config.output.format = args.format

        if args.cmd == "lint":
            code = lint_cmd(args.file, config)
        elif args.cmd == "refs":
            code = refs_cmd(args.file, config)
        elif args.cmd == "rollback":
            code = rollback_cmd(args.file, config)
        elif args.cmd == "dry-run":
            code = dry_run_cmd(args.file, config)
        elif args.cmd == "graph":
            code = graph_cmd(args.directory, config)
        elif args.cmd == "diff":
            code = diff_cmd(args.before, args.after, config)
        elif args.cmd == "templates":
            if args.templates_cmd == "show":
                code = templates_show_cmd(args.template_id, config)
            else:
                code = templates_list_cmd(config)
        elif args.cmd == "types":
            code = types_cmd(args.type_spec, config)
        elif args.cmd == "name":
            print(generate_flyway_file_name(args.version, args.description))
            code = 0
        else:
            parser.error(f"unknown command: {args.cmd}")
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if code:
        sys.exit(code)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="migrascope",
        description="migrascope - Static analysis and synthesis for SQL migrations"
    )
    parser.add_argument("--config", default=None,
                        help="Path to configuration YAML (default: $MIGRASCOPE_CONFIG or ./migrascope.yaml)")
    parser.add_argument("--format", choices=["text", "json"], default=None,
                        help="Output format (overrides config)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    lint = sub.add_parser("lint", help="Lint a migration for risky operations")
    lint.add_argument("file", help="SQL file, or - for stdin")

    refs = sub.add_parser("refs", help="List tables a migration touches")
    refs.add_argument("file", help="SQL file, or - for stdin")

    rollback = sub.add_parser("rollback", help="Generate rollback SQL for a migration")
    rollback.add_argument("file", help="SQL file, or - for stdin")

    dry_run = sub.add_parser("dry-run", help="Describe what a migration would do")
    dry_run.add_argument("file", help="SQL file, or - for stdin")

    graph = sub.add_parser("graph", help="Build the dependency graph of a migration directory")
    graph.add_argument("directory", help="Directory of V{n}__{description}.sql files")

    diff = sub.add_parser("diff", help="Generate a migration between two schema versions")
    diff.add_argument("before", help="Schema snapshot (.json) or DDL script (.sql)")
    diff.add_argument("after", help="Schema snapshot (.json) or DDL script (.sql)")

    templates = sub.add_parser("templates", help="Browse the migration template library")
    templates_sub = templates.add_subparsers(dest="templates_cmd")
    templates_sub.add_parser("ls", help="List templates by category")
    show = templates_sub.add_parser("show", help="Print a template's SQL")
    show.add_argument("template_id", help="Template id")

    types = sub.add_parser("types", help="List PostgreSQL column types or check one")
    types.add_argument("type_spec", nargs="?", default=None,
                       help="Type to check, e.g. 'varchar(255)'")

    name = sub.add_parser("name", help="Print the Flyway file name for a new migration")
    name.add_argument("version", type=int, help="Migration version")
    name.add_argument("description", help="Human readable description")

    return parser


def _configure_logging(config: EngineConfig) -> None:
    logging.basicConfig(
        level=getattr(logging, config.logging.level.upper()),
        format=config.logging.format,
        handlers=[
            logging.StreamHandler(sys.stderr)
        ]
    )


def _read_sql(file: str) -> str:
    if file == "-":
        return sys.stdin.read()
    path = Path(file)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return path.read_text(encoding="utf-8")


def _jsonable(value):
    """Convert result dataclasses and enums into JSON-ready values."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _print_json(value, config: EngineConfig) -> None:
    print(json.dumps(_jsonable(value), indent=config.output.indent or None))


# ============================================================================
# Commands
# ============================================================================

def lint_cmd(file: str, config: EngineConfig) -> int:
    """Lint a migration file.

    Returns:
        Exit status: LINT_FAILURE_EXIT when the overall risk reaches
        ``lint.fail_on``, else 0
    """
    sql = _read_sql(file)
    result = analyze_sql(sql, ruleset=config.lint.load_ruleset())
    issues = [i for i in result.issues if i.severity >= config.lint.min_severity]

    if config.output.format == "json":
        _print_json({"overall_risk": result.overall_risk, "issues": issues}, config)
    else:
        print(f"Overall risk: {result.overall_risk.value.upper()}")
        if not issues:
            print("No issues found")
        for issue in issues:
            location = f"line {issue.line}" if issue.line is not None else "line ?"
            print(f"  [{issue.severity.value}] {issue.rule} ({location}): {issue.message}")
            if issue.suggestion:
                print(f"      {issue.suggestion}")

    fail_on = config.lint.fail_on
    if fail_on is not None and result.overall_risk >= fail_on:
        logger.info(f"Overall risk {result.overall_risk.value} reaches fail_on={fail_on.value}")
        return LINT_FAILURE_EXIT
    return 0


def refs_cmd(file: str, config: EngineConfig) -> int:
    refs = extract_table_refs(_read_sql(file))

    if config.output.format == "json":
        _print_json(refs, config)
    elif not refs:
        print("No table references found")
    else:
        width = max(len(r.action) for r in refs)
        for ref in refs:
            print(f"  {ref.action:<{width}}  {ref.table}")
    return 0


def rollback_cmd(file: str, config: EngineConfig) -> int:
    rollback = generate_rollback_sql(_read_sql(file))

    if config.output.format == "json":
        _print_json({"rollback_sql": rollback}, config)
    else:
        print(rollback)
    return 0


def dry_run_cmd(file: str, config: EngineConfig) -> int:
    report = analyze_dry_run(_read_sql(file))

    if config.output.format == "json":
        _print_json(report, config)
        return 0

    print(f"Estimated risk: {report.estimated_risk.value.upper()}")
    print(f"Fully reversible: {'yes' if report.is_fully_reversible else 'no'}")
    print(f"Data modifications: {report.data_modifications}")
    for label, names in (
        ("Tables created", report.tables_created),
        ("Tables dropped", report.tables_dropped),
        ("Tables modified", report.tables_modified),
        ("Indexes created", report.indexes_created),
        ("Indexes dropped", report.indexes_dropped),
    ):
        if names:
            print(f"{label}: {', '.join(names)}")

    if report.operations:
        print("\nOperations:")
    for op in report.operations:
        marker = " " if op.reversible else "!"
        print(f"  {marker} line {op.line:>4}  {op.type.value:<12}  {op.detail}")
    return 0


def graph_cmd(directory: str, config: EngineConfig) -> int:
    migrations = load_migration_directory(directory)
    graph = build_dependency_graph(migrations)

    if config.output.format == "json":
        _print_json(graph, config)
        return 0

    print(f"Migrations ({len(graph.nodes)}):")
    for node in graph.nodes:
        tables = ", ".join(sorted({t.table for t in node.tables})) or "-"
        print(f"  V{node.version:<4} [{node.risk_level.value}] {node.description}  ({tables})")

    print(f"\nDependencies ({len(graph.edges)}):")
    for edge in graph.edges:
        print(f"  {edge.from_id} -> {edge.to_id}  {edge.type} {edge.table}")
    return 0


def _load_schema(file: str) -> list[SchemaTable]:
    """Tables from a JSON snapshot (list of tables or {"tables": [...]}) or a DDL script."""
    path = Path(file)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".sql":
        return snapshot_from_sql(text)

    data = json.loads(text)
    if isinstance(data, list):
        data = {"tables": data}
    return SchemaSnapshot.model_validate(data).tables


def diff_cmd(before: str, after: str, config: EngineConfig) -> int:
    diff = diff_schemas(_load_schema(before), _load_schema(after))
    migration = generate_migration_from_diff(diff)

    if config.output.format == "json":
        print(json.dumps(
            {"diff": diff.model_dump(by_alias=True), "migration_sql": migration},
            indent=config.output.indent or None,
        ))
    elif migration:
        print(migration)
    else:
        print("-- No schema changes")
    return 0


def templates_list_cmd(config: EngineConfig) -> int:
    grouped = templates_by_category()

    if config.output.format == "json":
        _print_json(grouped, config)
        return 0

    for category, templates in grouped.items():
        print(f"{category}:")
        for template in templates:
            print(f"  {template.id:<22} {template.name}")
    return 0


def templates_show_cmd(template_id: str, config: EngineConfig) -> int:
    template = get_template(template_id)
    if template is None:
        raise ValueError(f"Unknown template: {template_id}")

    if config.output.format == "json":
        _print_json(template, config)
    else:
        print(f"-- {template.name}: {template.description}")
        print(template.sql)
    return 0


def types_cmd(type_spec: str | None, config: EngineConfig) -> int:
    """List the type catalog, or check ``type_spec`` against it.

    Returns:
        0, or 1 when ``type_spec`` is not a valid type
    """
    if type_spec is not None:
        problem = check_type_spec(type_spec)
        if config.output.format == "json":
            _print_json({"type": type_spec, "valid": problem is None, "problem": problem}, config)
        else:
            print(problem or f"{type_spec}: ok")
        return 1 if problem else 0

    categories = pg_type_categories()
    if config.output.format == "json":
        _print_json(categories, config)
        return 0

    for label, types in categories.items():
        print(f"{label}:")
        for pg_type in types:
            suffix = "(n)" if pg_type.has_length else "(p, s)" if pg_type.has_precision else ""
            print(f"  {pg_type.name}{suffix}")
    return 0
