"""Configuration management for migrascope."""
from .settings import (
    EngineConfig,
    LintConfig,
    OutputConfig,
    LoggingConfig,
    load_config,
)

__all__ = [
    "EngineConfig",
    "LintConfig",
    "OutputConfig",
    "LoggingConfig",
    "load_config",
]
