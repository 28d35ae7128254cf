"""Canonical SQL -> PostgreSQL."""

from __future__ import annotations

import re

from polydb.dialects.base import (
    ENUM_COLUMN,
    ConvertedStatement,
    DialectConverter,
    phrase,
)

_LIMIT_OFFSET = re.compile(
    r"\sLIMIT\s+(\d+|%\w+|\{[^}]+\})\s*,\s*(\d+|%\w+|\{[^}]+\})",
    re.IGNORECASE,
)

# DEFAULT 0/1 on a column that became BOOLEAN; PostgreSQL rejects integer defaults there.
_BOOLEAN_DEFAULT = re.compile(
    r"(\bBOOLEAN\b[^,]*?\bDEFAULT\s+)'?([01])'?(?![\w.])",
    re.IGNORECASE,
)


class PostgresConverter(DialectConverter):
    replacements = tuple(
        (phrase(src), dst)
        for src, dst in (
            ("BIGINT NOT NULL PRIMARY KEY AUTO_INCREMENT", "BIGSERIAL PRIMARY KEY"),
            ("INT NOT NULL PRIMARY KEY AUTO_INCREMENT", "SERIAL PRIMARY KEY"),
            ("INTEGER NOT NULL PRIMARY KEY AUTO_INCREMENT", "SERIAL PRIMARY KEY"),
            ("tinyint(1)", "BOOLEAN"),
            ("tinyint", "SMALLINT"),
            ("datetime", "TIMESTAMP"),
            ("longtext", "TEXT"),
            ("mediumtext", "TEXT"),
            ("longblob", "BYTEA"),
            ("blob", "BYTEA"),
            ("rand()", "RANDOM()"),
        )
    )

    def rewrite_limit(self, sql: str) -> str:
        # MySQL "LIMIT offset,count" -> "OFFSET offset LIMIT count"; keeps the
        # order of placeholders so positional arguments still line up.
        return _LIMIT_OFFSET.sub(r" OFFSET \1 LIMIT \2", sql)

    def create_table(self, sql: str, table_name: str) -> ConvertedStatement:
        sql = self.strip_table_options(sql)
        sql = self._boolean_defaults(sql)
        sql, prelude = self._enum_types(sql, table_name)
        return ConvertedStatement(sql, prelude)

    def alter_table(
        self, sql: str, table_name: str, action: str, spec: str
    ) -> ConvertedStatement:
        if action == "add":
            sql = self.strip_column_position(sql)
            sql = self._boolean_defaults(sql)
            sql, prelude = self._enum_types(sql, table_name)
            return ConvertedStatement(sql, prelude)

        if action != "change":
            return ConvertedStatement(sql)

        parsed = self.parse_change(self.strip_column_position(spec))
        if parsed is None:
            return ConvertedStatement(sql)
        old, new, col_type, not_null = parsed

        prelude: list[str] = []
        if old != new:
            prelude.append(f"ALTER TABLE {table_name} RENAME COLUMN {old} TO {new}")
        if not_null:
            prelude.append(f"ALTER TABLE {table_name} ALTER COLUMN {new} SET NOT NULL")

        m = ENUM_COLUMN.match(f"{new} {col_type}")
        if m:
            type_name = f"enum_{table_name}_{new}"
            prelude[:0] = [
                f"DROP TYPE IF EXISTS {type_name}",
                f"CREATE TYPE {type_name} AS ENUM ({m.group('values').strip()})",
            ]
            col_type = f"{type_name} USING {new}::text::{type_name}"

        main = f"ALTER TABLE {table_name} ALTER COLUMN {new} TYPE {col_type}"
        # Renames and NOT NULL must land before the type change.
        return ConvertedStatement(main, tuple(prelude))

    @staticmethod
    def _enum_types(sql: str, table_name: str) -> tuple[str, tuple[str, ...]]:
        prelude: list[str] = []

        def _replace(m: re.Match[str]) -> str:
            col = m.group("col")
            type_name = f"enum_{table_name}_{col}"
            prelude.append(f"DROP TYPE IF EXISTS {type_name}")
            prelude.append(
                f"CREATE TYPE {type_name} AS ENUM ({m.group('values').strip()})"
            )
            return f"{col} {type_name}{m.group('rest')}"

        sql = ENUM_COLUMN.sub(_replace, sql)
        return sql, tuple(prelude)

    @staticmethod
    def _boolean_defaults(sql: str) -> str:
        return _BOOLEAN_DEFAULT.sub(
            lambda m: m.group(1) + ("true" if m.group(2) == "1" else "false"), sql
        )
