"""Loader for the lint rule table."""

from __future__ import annotations
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
import hashlib
import re
import yaml

from migrascope.models import RiskLevel

DEFAULT_RULES_PATH = Path(__file__).parent / "lint_rules.yaml"


@dataclass(frozen=True)
class LintRule:
    """A single lint rule."""
    id: str
    severity: RiskLevel
    pattern: re.Pattern
    message: str
    suggestion: str
    unless: re.Pattern | None = None

    def matches(self, normalized_sql: str) -> bool:
        """True when the rule fires on comment/string-normalized SQL."""
        if not self.pattern.search(normalized_sql):
            return False
        if self.unless is not None and self.unless.search(normalized_sql):
            return False
        return True


@dataclass(frozen=True)
class LintRuleset:
    """Ordered, read-only collection of lint rules."""
    version: str
    rules: tuple[LintRule, ...]
    content_hash: str

    def get_rule(self, rule_id: str) -> LintRule | None:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None

    def without(self, rule_ids) -> LintRuleset:
        """Return a copy of this ruleset with the given rule ids removed."""
        excluded = set(rule_ids)
        if not excluded:
            return self
        return LintRuleset(
            version=self.version,
            rules=tuple(r for r in self.rules if r.id not in excluded),
            content_hash=self.content_hash,
        )


def load_lint_rules(ruleset_path: str | Path | None = None) -> LintRuleset:
    """Load lint rules from a YAML file.

    Args:
        ruleset_path: Path to YAML ruleset file, or None to use the bundled rules

    Returns:
        Parsed LintRuleset

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If a rule is malformed
    """
    path = Path(ruleset_path) if ruleset_path is not None else DEFAULT_RULES_PATH

    with open(path, 'r') as f:
        raw_data = f.read()
        data = yaml.safe_load(raw_data) or {}

    # Calculate content hash for caching
    content_hash = hashlib.sha256(raw_data.encode()).hexdigest()[:16]

    return LintRuleset(
        version=str(data.get("version", "1.0")),
        rules=tuple(_parse_rules(data.get("rules", []), path)),
        content_hash=content_hash,
    )


@lru_cache(maxsize=1)
def default_ruleset() -> LintRuleset:
    """The bundled rules, loaded once per process."""
    return load_lint_rules()


def _parse_rules(rules_data: list[dict], path: Path) -> list[LintRule]:
    """Parse rule dictionaries into LintRule objects."""
    rules = []

    for rule_data in rules_data:
        try:
            unless = rule_data.get("unless")
            rules.append(LintRule(
                id=rule_data["id"],
                severity=RiskLevel(rule_data["severity"]),
                pattern=re.compile(rule_data["pattern"], re.IGNORECASE),
                message=rule_data["message"],
                suggestion=rule_data.get("suggestion", ""),
                unless=re.compile(unless, re.IGNORECASE) if unless else None,
            ))
        except (KeyError, ValueError, re.error) as e:
            raise ValueError(f"Invalid lint rule {rule_data.get('id', '?')} in {path}: {e}") from e

    return rules
