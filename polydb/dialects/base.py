"""
Dialect conversion: canonical (MySQL-flavoured) SQL -> backend SQL.

Conversion is a pure text transformation. DDL that has to run *before* the
rewritten statement (e.g. CREATE TYPE for an ENUM column, a column rename split
out of ALTER TABLE ... CHANGE) is returned as ``prelude``; the engine executes
it on the write connection ahead of the main statement.

Known limitation: this is regex rewriting, best effort. Anything the rules do
not recognise is passed through unmodified.
"""

from __future__ import annotations

import re
from typing import NamedTuple


class ConvertedStatement(NamedTuple):
    sql: str
    prelude: tuple[str, ...] = ()


def phrase(text: str) -> re.Pattern[str]:
    """Case-insensitive pattern for a SQL phrase.

    Words may be separated by any whitespace. The phrase must not be glued to a
    preceding word character or ``%`` so typed placeholders such as ``%blob``
    are never rewritten.
    """
    body = r"\s+".join(re.escape(w) for w in text.split())
    tail = r"(?!\w)" if text[-1].isalnum() else ""
    return re.compile(r"(?<![%\w])" + body + tail, re.IGNORECASE)


_CREATE_TABLE = re.compile(
    r"^\s*create\s+(?:temporary\s+)?table\s+(?:if\s+not\s+exists\s+)?[`\"]?(\w+)",
    re.IGNORECASE,
)
_ALTER_TABLE = re.compile(
    r"^\s*alter\s+table\s+[`\"]?(\w+)[`\"]?\s+(add|drop|change|rename)\s+(.+)$",
    re.IGNORECASE | re.DOTALL,
)
_TABLE_OPTIONS = (
    re.compile(r"\s*engine\s*=\s*\w+", re.IGNORECASE),
    re.compile(r"\s*(?:default\s+)?(?:character\s+set|charset)\s*=?\s*\w+", re.IGNORECASE),
    re.compile(r"\s*(?:default\s+)?collate\s*=?\s*\w+", re.IGNORECASE),
)
_COLUMN_POSITION = re.compile(r"\s+(?:after\s+\w+|before\s+\w+|first)\s*;?\s*$", re.IGNORECASE)
ENUM_COLUMN = re.compile(
    r"(?P<col>\w+)\s+ENUM\s*\((?P<values>[^)]*)\)(?P<rest>[^,)]*)",
    re.IGNORECASE,
)
_CHANGE_SPEC = re.compile(r"^(\w+)\s+(\w+)\s+(.+?)\s*;?\s*$", re.DOTALL)
_NOT_NULL = re.compile(r"^(.+?)\s+NOT\s+NULL\b(.*)$", re.IGNORECASE | re.DOTALL)


class DialectConverter:
    """Identity converter; subclasses override the hooks they need."""

    # (pattern, replacement) pairs applied in order to every statement.
    replacements: tuple[tuple[re.Pattern[str], str], ...] = ()

    def convert(self, sql: str) -> ConvertedStatement:
        for pattern, repl in self.replacements:
            sql = pattern.sub(repl, sql)
        sql = self.rewrite_limit(sql)
        sql = self.rewrite_row_identifier(sql)

        m = _CREATE_TABLE.match(sql)
        if m:
            return self.create_table(sql, m.group(1))
        m = _ALTER_TABLE.match(sql)
        if m:
            return self.alter_table(sql, m.group(1), m.group(2).lower(), m.group(3))
        return ConvertedStatement(sql)

    def rewrite_limit(self, sql: str) -> str:
        return sql

    def rewrite_row_identifier(self, sql: str) -> str:
        return sql

    def create_table(self, sql: str, table_name: str) -> ConvertedStatement:
        return ConvertedStatement(sql)

    def alter_table(
        self, sql: str, table_name: str, action: str, spec: str
    ) -> ConvertedStatement:
        return ConvertedStatement(sql)

    # Shared helpers for subclasses.

    @staticmethod
    def strip_table_options(sql: str) -> str:
        for pattern in _TABLE_OPTIONS:
            sql = pattern.sub("", sql)
        return sql

    @staticmethod
    def strip_column_position(sql: str) -> str:
        return _COLUMN_POSITION.sub("", sql)

    @staticmethod
    def parse_change(spec: str) -> tuple[str, str, str, bool] | None:
        """Split ``old new definition`` of ALTER ... CHANGE.

        Returns (old, new, type, not_null) or None when it does not parse.
        """
        m = _CHANGE_SPEC.match(spec.strip())
        if not m:
            return None
        old, new, definition = m.group(1), m.group(2), m.group(3)
        nn = _NOT_NULL.match(definition)
        if nn:
            return old, new, nn.group(1).strip(), True
        return old, new, definition.strip(), False
