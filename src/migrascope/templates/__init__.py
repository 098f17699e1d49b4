"""Library of ready-made migration SQL for common schema patterns."""

from __future__ import annotations
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
import yaml

TEMPLATES_PATH = Path(__file__).parent / "templates.yaml"


@dataclass(frozen=True)
class MigrationTemplate:
    """A named, categorized snippet of migration SQL."""
    id: str
    name: str
    category: str
    description: str
    sql: str


@lru_cache(maxsize=1)
def _load_templates() -> tuple[MigrationTemplate, ...]:
    with open(TEMPLATES_PATH, 'r') as f:
        data = yaml.safe_load(f) or {}

    return tuple(
        MigrationTemplate(
            id=t["id"],
            name=t["name"],
            category=t["category"],
            description=t.get("description", ""),
            sql=t["sql"].rstrip("\n"),
        )
        for t in data.get("templates", [])
    )


def list_templates() -> list[MigrationTemplate]:
    """All templates, in library order."""
    return list(_load_templates())


def get_template(template_id: str) -> MigrationTemplate | None:
    for template in _load_templates():
        if template.id == template_id:
            return template
    return None


def templates_by_category() -> dict[str, list[MigrationTemplate]]:
    """Templates grouped by category; categories in order of first appearance."""
    grouped: dict[str, list[MigrationTemplate]] = {}
    for template in _load_templates():
        grouped.setdefault(template.category, []).append(template)
    return grouped


__all__ = [
    "MigrationTemplate",
    "list_templates",
    "get_template",
    "templates_by_category",
]
