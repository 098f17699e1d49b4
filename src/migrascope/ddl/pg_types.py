"""Catalog of PostgreSQL data types for DDL builders.

The catalog lists the types offered when building columns, grouped by
category, and records which ones take a length (``VARCHAR(255)``) or a
precision/scale (``NUMERIC(10,2)``). ``check_type_spec`` validates a full
type string such as ``varchar(80)[]`` against it.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import yaml

PG_TYPES_PATH = Path(__file__).parent / "pg_types.yaml"

_TYPE_SPEC_RE = re.compile(r'^(?P<base>[A-Za-z][A-Za-z0-9_ ]*?)\s*(?:\((?P<params>[^()]*)\))?$')
_ARRAY_SUFFIX_RE = re.compile(r'(\s*\[\s*\])+$')


@dataclass(frozen=True)
class PgType:
    name: str
    has_length: bool = False
    has_precision: bool = False


@lru_cache(maxsize=1)
def _load_catalog() -> tuple[tuple[str, tuple[PgType, ...]], ...]:
    with open(PG_TYPES_PATH, 'r') as f:
        data = yaml.safe_load(f) or {}

    return tuple(
        (
            category["label"],
            tuple(
                PgType(
                    name=t["name"],
                    has_length=bool(t.get("length", False)),
                    has_precision=bool(t.get("precision", False)),
                )
                for t in category.get("types", [])
            ),
        )
        for category in data.get("categories", [])
    )


def pg_type_categories() -> dict[str, list[PgType]]:
    """Types grouped by category label, in catalog order."""
    return {label: list(types) for label, types in _load_catalog()}


def all_pg_types() -> list[PgType]:
    return [t for _, types in _load_catalog() for t in types]


def _normalize(name: str) -> str:
    return " ".join(name.split()).upper()


def find_pg_type(name: str) -> PgType | None:
    """Look up a type by name, ignoring case and repeated whitespace."""
    wanted = _normalize(name)
    for pg_type in all_pg_types():
        if pg_type.name == wanted:
            return pg_type
    return None


def check_type_spec(type_spec: str) -> str | None:
    """Validate a column type string against the catalog.

    Array suffixes (``[]``) are accepted on any type. Parameters must be
    integers: one for length types, one or two for precision types, none
    for everything else.

    Args:
        type_spec: Type as written in DDL, e.g. ``VARCHAR(255)`` or ``text[]``

    Returns:
        A message describing the problem, or None when the type is valid
    """
    text = _ARRAY_SUFFIX_RE.sub("", type_spec.strip())
    match = _TYPE_SPEC_RE.match(text)
    if not match:
        return f"Malformed type: {type_spec}"

    pg_type = find_pg_type(match.group("base"))
    if pg_type is None:
        return f"Unknown PostgreSQL type: {match.group('base').strip()}"

    params = match.group("params")
    if params is None:
        return None

    values = [p.strip() for p in params.split(",")]
    if not all(v.isdigit() for v in values):
        return f"{pg_type.name} parameters must be integers: {params}"

    if pg_type.has_length:
        allowed = (1,)
    elif pg_type.has_precision:
        allowed = (1, 2)
    else:
        return f"{pg_type.name} does not take parameters"

    if len(values) not in allowed:
        return f"{pg_type.name} takes at most {allowed[-1]} parameter(s), got {len(values)}"
    return None
