"""Flyway file-name convention and migration directory loading.

Versioned migrations are named ``V{version}__{description}.sql``, e.g.
``V3__Create_users_table.sql``. An optional undo script
``U{version}__{description}.sql`` supplies the migration's DOWN SQL.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from migrascope.models import Migration

logger = logging.getLogger(__name__)

_VERSIONED_RE = re.compile(r'^V(\d+)__(.+)\.sql$', re.IGNORECASE)
_UNDO_RE = re.compile(r'^U(\d+)__(.+)\.sql$', re.IGNORECASE)


class MigrationFileNameError(ValueError):
    """File name does not follow the ``V{n}__{description}.sql`` convention."""

    def __init__(self, file_name: str):
        super().__init__(
            f'Invalid migration file name "{file_name}": expected V{{version}}__{{description}}.sql'
        )
        self.file_name = file_name


class DuplicateVersionError(ValueError):
    """Two migration files claim the same version."""

    def __init__(self, version: int, first: str, second: str):
        super().__init__(f"Duplicate migration version {version}: {first} and {second}")
        self.version = version


@dataclass(frozen=True)
class FlywayFileName:
    version: int
    description: str


def parse_flyway_file_name(file_name: str) -> FlywayFileName:
    """Parse a Flyway file name into version and description.

    ``V3__Create_users_table.sql`` -> ``FlywayFileName(3, "Create users table")``

    Raises:
        MigrationFileNameError: If the name doesn't match the convention
    """
    match = _VERSIONED_RE.match(file_name)
    if not match:
        raise MigrationFileNameError(file_name)
    return FlywayFileName(version=int(match.group(1)), description=match.group(2).replace('_', ' '))


def generate_flyway_file_name(version: int, description: str) -> str:
    """Build a Flyway file name; whitespace becomes ``_``, other punctuation is dropped."""
    sanitized = re.sub(r'\s+', '_', description)
    sanitized = re.sub(r'[^a-zA-Z0-9_]', '', sanitized)
    return f"V{version}__{sanitized}.sql"


def load_migration_directory(directory: str | Path) -> list[Migration]:
    """Load every versioned migration in a directory.

    Files other than ``*.sql`` are ignored. Undo scripts are attached to the
    migration with the same version.

    Args:
        directory: Directory holding Flyway-named SQL files

    Returns:
        Migrations sorted by version

    Raises:
        FileNotFoundError: If the directory doesn't exist
        MigrationFileNameError: If a ``.sql`` file is not Flyway-named
        DuplicateVersionError: If two files share a version
    """
    root = Path(directory)
    if not root.is_dir():
        raise FileNotFoundError(f"Migration directory not found: {root}")

    versioned: dict[int, tuple[Path, FlywayFileName]] = {}
    undo: dict[int, Path] = {}

    for path in sorted(root.iterdir()):
        if not path.is_file() or path.suffix.lower() != ".sql":
            continue

        undo_match = _UNDO_RE.match(path.name)
        if undo_match:
            undo[int(undo_match.group(1))] = path
            continue

        parsed = parse_flyway_file_name(path.name)
        if parsed.version in versioned:
            raise DuplicateVersionError(parsed.version, versioned[parsed.version][0].name, path.name)
        versioned[parsed.version] = (path, parsed)

    migrations = []
    for version in sorted(versioned):
        path, parsed = versioned[version]
        down_path = undo.get(version)
        migrations.append(Migration(
            id=path.stem,
            version=version,
            description=parsed.description,
            up_sql=path.read_text(encoding="utf-8"),
            down_sql=down_path.read_text(encoding="utf-8") if down_path else "",
        ))

    orphans = sorted(set(undo) - set(versioned))
    if orphans:
        logger.warning(f"Undo scripts without a versioned migration: {orphans}")

    logger.info(f"Loaded {len(migrations)} migrations from {root}")
    return migrations
