"""Statement splitting and comment/string normalization for migration SQL.

Two scanners live here:

- ``split_statements`` walks the raw text character by character and is used
  by the rollback and snapshot code.
- ``scan_statements_by_line`` strips ``--`` comments line by line before
  scanning and is used by the dry-run report.

Both cut on ``;`` outside single-quoted literals. Neither balances
parentheses nor understands dollar-quoted bodies, so a ``CREATE FUNCTION ...
AS $$ ... ; ... $$`` body is split at its inner semicolons.
"""
from __future__ import annotations

import logging
import re

from migrascope.models import SqlStatement

logger = logging.getLogger(__name__)

STRING_LITERAL_RE = re.compile(r"'(?:[^']|'')*'")
BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
LINE_COMMENT_RE = re.compile(r"--.*$", re.MULTILINE)

# Literal first: whichever opener comes first in the text wins
_LITERAL_OR_COMMENT_RE = re.compile(r"('(?:[^']|'')*')|/\*.*?\*/|--[^\n]*", re.DOTALL)


def _keep_literal(match: re.Match) -> str:
    literal = match.group(1)
    if literal is not None:
        return literal
    return " " if match.group(0).startswith("/*") else ""


def strip_comments(sql: str) -> str:
    """Remove ``/* */`` and ``--`` comments, leaving string literals alone.

    ``'a--b'`` stays intact, and an apostrophe inside a comment does not
    open a literal.
    """
    return _LITERAL_OR_COMMENT_RE.sub(_keep_literal, sql)


def strip_comments_and_strings(sql: str, placeholder: str = "'__STR__'") -> str:
    """Replace string literals with ``placeholder`` and drop comments.

    Literals are replaced first so that ``--`` or ``/*`` inside a string is
    never mistaken for a comment opener.
    """
    result = STRING_LITERAL_RE.sub(placeholder, sql)
    result = BLOCK_COMMENT_RE.sub(" ", result)
    return LINE_COMMENT_RE.sub("", result)


def split_statements(sql: str) -> list[SqlStatement]:
    """Split a SQL script into trimmed, non-empty statements.

    A doubled quote (``''``) inside a literal continues the literal. A
    trailing statement without a terminating semicolon is kept.

    Args:
        sql: Raw SQL text

    Returns:
        Statements in source order, each with the 1-based line of its first
        non-whitespace character
    """
    statements: list[SqlStatement] = []
    current: list[str] = []
    start_line: int | None = None
    line = 1
    in_string = False
    length = len(sql)
    i = 0

    while i < length:
        ch = sql[i]

        if ch == "'":
            if in_string and i + 1 < length and sql[i + 1] == "'":
                current.append("''")
                i += 2
                continue
            in_string = not in_string
            current.append(ch)
            if start_line is None:
                start_line = line
        elif ch == ";" and not in_string:
            text = "".join(current).strip()
            if text:
                statements.append(SqlStatement(text=text, line=start_line or line))
            current = []
            start_line = None
        else:
            current.append(ch)
            if start_line is None and not ch.isspace():
                start_line = line

        if ch == "\n":
            line += 1
        i += 1

    text = "".join(current).strip()
    if text:
        statements.append(SqlStatement(text=text, line=start_line or line))

    logger.debug(f"Split {len(statements)} statements from {line} lines")
    return statements


def scan_statements_by_line(sql: str) -> list[SqlStatement]:
    """Line-oriented scanner used by the dry-run report.

    Each line has its ``--`` comment removed and is trimmed; blank lines are
    skipped and the surviving lines are joined with a single space. String
    state flips on every quote, which treats ``''`` the same way as
    ``split_statements`` does. A statement starts on the first non-blank
    line after the previous terminator.

    Args:
        sql: Raw SQL text

    Returns:
        Statements in source order with their starting line numbers
    """
    statements: list[SqlStatement] = []
    current: list[str] = []
    has_content = False
    start_line = 1
    in_string = False

    for line_num, raw_line in enumerate(sql.split("\n"), start=1):
        line = LINE_COMMENT_RE.sub("", raw_line).strip()
        if not line:
            continue

        if not has_content:
            start_line = line_num

        for ch in line:
            if ch == "'":
                in_string = not in_string
                current.append(ch)
                has_content = True
            elif ch == ";" and not in_string:
                text = "".join(current).strip()
                if text:
                    statements.append(SqlStatement(text=text, line=start_line))
                current = []
                has_content = False
                start_line = line_num
            else:
                current.append(ch)
                if not ch.isspace():
                    has_content = True

        current.append(" ")

    text = "".join(current).strip()
    if text:
        statements.append(SqlStatement(text=text, line=start_line))

    return statements
