"""Canonical SQL -> SQLite."""

from __future__ import annotations

import re

from polydb.dialects.base import (
    ENUM_COLUMN,
    ConvertedStatement,
    DialectConverter,
    phrase,
)

_ID_EQUALS = re.compile(r"(\s)id(\s*=)", re.IGNORECASE)
_SELECT_ID = re.compile(r"^(\s*SELECT\s+)id\s*,", re.IGNORECASE)
_SELECT_STAR = re.compile(
    r"^(\s*SELECT\s+)\*(\s+FROM\s+[`\"]?\w+\b[`\"]?)(?!\s*[,(])",
    re.IGNORECASE,
)
_JOIN = re.compile(r"\bJOIN\b", re.IGNORECASE)


class SQLiteConverter(DialectConverter):
    replacements = tuple(
        (phrase(src), dst)
        for src, dst in (
            ("BIGINT NOT NULL PRIMARY KEY AUTO_INCREMENT", "INTEGER PRIMARY KEY AUTOINCREMENT"),
            ("INTEGER NOT NULL PRIMARY KEY AUTO_INCREMENT", "INTEGER PRIMARY KEY AUTOINCREMENT"),
            ("INT NOT NULL PRIMARY KEY AUTO_INCREMENT", "INTEGER PRIMARY KEY AUTOINCREMENT"),
            ("rand()", "RANDOM()"),
        )
    )

    def __init__(self, row_identifier: str = "rowid") -> None:
        self.row_identifier = row_identifier

    def rewrite_row_identifier(self, sql: str) -> str:
        """Map the canonical ``id`` column onto SQLite's implicit row identifier."""
        rid = self.row_identifier
        sql = _ID_EQUALS.sub(rf"\g<1>{rid}\g<2>", sql)
        sql = _SELECT_ID.sub(rf"\g<1>{rid} AS id,", sql)
        if not _JOIN.search(sql):
            sql = _SELECT_STAR.sub(rf"\g<1>{rid},*\g<2>", sql)
        return sql

    def create_table(self, sql: str, table_name: str) -> ConvertedStatement:
        sql = self.strip_table_options(sql)
        return ConvertedStatement(self._enum_checks(sql))

    def alter_table(
        self, sql: str, table_name: str, action: str, spec: str
    ) -> ConvertedStatement:
        if action == "add":
            sql = self.strip_column_position(sql)
            return ConvertedStatement(self._enum_checks(sql))
        if action == "change":
            parsed = self.parse_change(self.strip_column_position(spec))
            if parsed is not None and parsed[0] != parsed[1]:
                old, new = parsed[0], parsed[1]
                return ConvertedStatement(
                    f"ALTER TABLE {table_name} RENAME COLUMN {old} TO {new}"
                )
        return ConvertedStatement(sql)

    @staticmethod
    def _enum_checks(sql: str) -> str:
        def _replace(m: re.Match[str]) -> str:
            col = m.group("col")
            return f"{col} TEXT CHECK ({col} IN ({m.group('values').strip()})){m.group('rest')}"

        return ENUM_COLUMN.sub(_replace, sql)
