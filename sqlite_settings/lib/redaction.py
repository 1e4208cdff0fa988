"""Redaction utilities for logs.

Policies:
- Never log setting values or literal values embedded in statement text
- Never log passwords or tokens that appear in key=value form
"""
from __future__ import annotations

import re
from typing import Pattern

# Single-quoted SQL string literal, '' is an escaped quote inside it
_SQL_STRING: Pattern[str] = re.compile(r"'(?:[^']|'')*'")
_PWD_KV: Pattern[str] = re.compile(r"(?i)\b(password|pwd)\s*=\s*[^;\s]+")
_TOKEN: Pattern[str] = re.compile(r"(?i)\b(token|apikey|api_key)\s*=\s*[^;\s]+")

MAX_STATEMENT_LENGTH = 200


def redact(text: str | None) -> str:
    """Redact sensitive key=value tokens in an arbitrary text string.

    Replacements:
    - password=*** / pwd=*** (key=value)
    - token/apikey=*** (key=value)
    """
    if not text:
        return ""
    s = text
    s = _PWD_KV.sub(lambda m: f"{m.group(0).split('=')[0]}=***", s)
    s = _TOKEN.sub(lambda m: f"{m.group(0).split('=')[0]}=***", s)
    return s


def redact_sql(sql: str | None, *, limit: int = MAX_STATEMENT_LENGTH) -> str:
    """Replace string literals in statement text with '***' and truncate."""
    if not sql:
        return ""
    s = redact(_SQL_STRING.sub("'***'", sql))
    s = " ".join(s.split())
    if len(s) > limit:
        s = s[:limit] + "..."
    return s
