"""migrascope - static analysis and synthesis for SQL migrations."""

__version__ = "0.1.0"
