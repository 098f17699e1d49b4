"""Engine configuration loading and validation.

Loads YAML configuration for the migrascope CLI. Every section has defaults,
so running without a config file is the normal case.
"""
from __future__ import annotations
import os
import yaml
from pathlib import Path
from typing import Literal
from pydantic import BaseModel, Field, field_validator

from migrascope.models import RiskLevel
from migrascope.sql_analysis.ruleset import LintRuleset, default_ruleset, load_lint_rules

DEFAULT_CONFIG_PATH = Path("migrascope.yaml")


class LintConfig(BaseModel):
    """Risk analyzer configuration."""
    rules_path: str | None = Field(None, description="Custom lint rules YAML (bundled rules when unset)")
    disabled_rules: list[str] = Field(default_factory=list, description="Rule ids to skip")
    min_severity: RiskLevel = Field(RiskLevel.LOW, description="Issues below this severity are not reported")
    fail_on: RiskLevel | None = Field(None, description="Exit non-zero when overall risk reaches this level")

    @field_validator("disabled_rules")
    @classmethod
    def validate_disabled_rules(cls, v: list[str]) -> list[str]:
        """Normalize rule ids."""
        return [rule_id.strip().lower() for rule_id in v if rule_id.strip()]

    def load_ruleset(self) -> LintRuleset:
        """Ruleset described by this section, with disabled rules removed."""
        ruleset = load_lint_rules(self.rules_path) if self.rules_path else default_ruleset()
        return ruleset.without(self.disabled_rules)


class OutputConfig(BaseModel):
    """CLI output configuration."""
    format: Literal["text", "json"] = Field("text", description="Output format")
    indent: int = Field(2, ge=0, le=8, description="JSON indentation")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field("WARNING", description="Log level")
    format: str = Field("%(asctime)s - %(name)s - %(levelname)s - %(message)s", description="Log format")

    @field_validator("level", mode="before")
    @classmethod
    def validate_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v


class EngineConfig(BaseModel):
    """Complete engine configuration."""
    lint: LintConfig = Field(default_factory=LintConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> EngineConfig:
        """Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Validated EngineConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If configuration is invalid
        """
        config_path = Path(path)

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, 'r') as f:
            data = yaml.safe_load(f)

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"Invalid configuration in {config_path}: expected a mapping")

        try:
            return cls.model_validate(data)
        except Exception as e:
            raise ValueError(f"Invalid configuration in {config_path}: {e}") from e

    @classmethod
    def from_env(cls, env_var: str = "MIGRASCOPE_CONFIG") -> EngineConfig:
        """Load configuration from path in environment variable.

        Falls back to ``migrascope.yaml`` in the working directory, then to
        defaults.

        Args:
            env_var: Environment variable name (default: MIGRASCOPE_CONFIG)

        Returns:
            Validated EngineConfig instance

        Raises:
            FileNotFoundError: If the variable names a missing file
            ValueError: If configuration is invalid
        """
        config_path = os.getenv(env_var)

        if config_path:
            return cls.from_yaml(config_path)

        if DEFAULT_CONFIG_PATH.exists():
            return cls.from_yaml(DEFAULT_CONFIG_PATH)

        return cls()


def load_config(config_path: str | Path | None = None) -> EngineConfig:
    """Load engine configuration from file or environment.

    ``MIGRASCOPE_LOG_LEVEL`` overrides the configured log level.

    Args:
        config_path: Optional explicit path to config file

    Returns:
        Validated EngineConfig instance

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist
        ValueError: If configuration is invalid
    """
    if config_path:
        config = EngineConfig.from_yaml(config_path)
    else:
        config = EngineConfig.from_env()

    log_level = os.getenv("MIGRASCOPE_LOG_LEVEL")
    if log_level:
        try:
            config.logging = LoggingConfig(level=log_level, format=config.logging.format)
        except Exception as e:
            raise ValueError(f"Invalid MIGRASCOPE_LOG_LEVEL: {log_level}") from e

    return config
