"""
CRUD and extraction helpers on top of the execution engine.

Table names, column types and primary keys are looked up once per instance
and cached; a table missing from the cache triggers one refresh before
TableNotExistsError. DDL run through query() drops the cache.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

from polydb.backends.base import stamp
from polydb.core.errors import (
    ColumnNotExistsError,
    NoInsertDataError,
    ObjectNotExistsError,
    TableNotExistsError,
)
from polydb.mapping import from_row, to_row

from .cursor import ResultCursor
from .executor import SqlExecutor, is_ddl
from .statements import split_statements

_log = logging.getLogger(__name__)

T = TypeVar("T")


def _nonzero_id(value: Any) -> bool:
    if value is None:
        return False
    try:
        return int(value) != 0
    except (TypeError, ValueError):
        return bool(value)


def _id_placeholder(value: Any) -> str:
    if isinstance(value, int) and not isinstance(value, bool):
        return "%i"
    return "%s"


class Database(SqlExecutor):
    """Engine plus table-level helpers (insert/update/delete, row extraction)."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._tables: list[str] | None = None
        self._columns: dict[str, dict[str, str]] = {}
        self._primary_keys: dict[str, str | None] = {}

    def query(self, sql: str, *args: Any) -> ResultCursor:
        result = super().query(sql, *args)
        if is_ddl(sql):
            self.clear_cache()
        return result

    def close(self) -> None:
        super().close()
        self.clear_cache()

    # ------------------------------------------------------------------
    # Schema (cached)
    # ------------------------------------------------------------------

    @contextmanager
    def _schema_lookup(self) -> Iterator[None]:
        # A pending force_write() belongs to the caller's statement, not to these lookups.
        ts = self.transaction_state
        pending, ts.force_write_next = ts.force_write_next, False
        try:
            yield
        finally:
            ts.force_write_next = pending

    def get_table_names(self) -> list[str]:
        if self._tables is None:
            with self._schema_lookup():
                self._tables = self.backend.table_names(self)
        return list(self._tables)

    def check_table(self, table_name: str) -> bool:
        """True when *table_name* exists; refreshes the table cache once on a miss."""
        if table_name in self.get_table_names():
            return True
        self._tables = None
        return table_name in self.get_table_names()

    def get_column_names(
        self, table_name: str, include_types: bool = False
    ) -> list[str] | dict[str, str]:
        if table_name not in self._columns:
            with self._schema_lookup():
                self._columns[table_name] = self.backend.column_types(self, table_name)
        columns = self._columns[table_name]
        return dict(columns) if include_types else list(columns)

    def get_primary_key(self, table_name: str) -> str | None:
        if table_name not in self._primary_keys:
            with self._schema_lookup():
                self._primary_keys[table_name] = self.backend.primary_key(self, table_name)
        return self._primary_keys[table_name]

    def clear_cache(self) -> None:
        self._tables = None
        self._columns.clear()
        self._primary_keys.clear()

    def _require_table(self, table_name: str, action: str) -> dict[str, str]:
        if not self.check_table(table_name):
            raise TableNotExistsError(
                f"Unable to perform {action}, as database table does not exist, {table_name}",
                table=table_name,
            )
        return self.get_column_names(table_name, include_types=True)  # type: ignore[return-value]

    @staticmethod
    def _require_columns(
        table_name: str, columns: Mapping[str, str], names: Iterable[str], action: str
    ) -> None:
        for name in names:
            if name not in columns:
                raise ColumnNotExistsError(
                    f"Unable to perform {action}, as the column '{name}' does not "
                    f"exist in the table '{table_name}'",
                    table=table_name,
                    column=name,
                )

    def _require_primary_key(self, table_name: str, action: str) -> str:
        pk = self.get_primary_key(table_name)
        if not pk:
            raise ObjectNotExistsError(
                f"Unable to perform {action} as table '{table_name}' does not have a primary key."
            )
        return pk

    @staticmethod
    def _require_object_id(record_id: Any, pk: str, action: str) -> Any:
        if not _nonzero_id(record_id):
            raise ObjectNotExistsError(
                f"Unable to perform {action}, as no '{pk}' value exists within the provided object."
            )
        return record_id

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, table_name: str, rows: Any) -> ResultCursor:
        """Insert one row or a batch of rows (dicts or mappable objects).

        The column list comes from the first row. An ``id`` column is dropped
        when no row carries a non-zero id, so auto-increment applies.
        """
        columns = self._require_table(table_name, "insert")
        if isinstance(rows, Mapping) or not isinstance(rows, Sequence):
            rows = [rows]
        row_sets = [to_row(r) for r in rows]
        if not row_sets:
            raise NoInsertDataError(
                "Unable to perform insert, as no values to insert were specified."
            )

        insert_columns = list(row_sets[0])
        self._require_columns(table_name, columns, insert_columns, "insert")
        if "id" in insert_columns and not any(_nonzero_id(r.get("id")) for r in row_sets):
            insert_columns.remove("id")

        placeholders = ", ".join(
            self.backend.placeholder_for_column(columns[c]) for c in insert_columns
        )
        values = [r.get(c) for r in row_sets for c in insert_columns]
        sql = (
            f"INSERT INTO {table_name} ({', '.join(insert_columns)}) VALUES "
            + ", ".join(f"({placeholders})" for _ in row_sets)
        )
        return self.query(sql, *values)

    def insert_or_update(self, table_name: str, row: Any) -> ResultCursor:
        """Insert *row*, or update the existing row with the same primary key."""
        values = to_row(row)
        if "id" in values and not _nonzero_id(values["id"]):
            return self.insert(table_name, [values])

        columns = self._require_table(table_name, "insert_or_update")
        self._require_columns(table_name, columns, values, "insert_or_update")
        pk = self.get_primary_key(table_name)
        if not pk:
            _log.warning("Table %s has no primary key, upserting on 'id'", table_name)
            pk = "id"

        names = list(values)
        placeholders = ", ".join(self.backend.placeholder_for_column(columns[c]) for c in names)
        sql = (
            f"INSERT INTO {table_name} ({', '.join(names)}) VALUES ({placeholders}) "
            + self.backend.upsert_clause(pk, names)
        )
        return self.query(sql, *values.values())

    def update(self, table_name: str, updates: Any, where: str = "", *args: Any) -> ResultCursor:
        """UPDATE *table_name* SET *updates* [WHERE *where*].

        *updates* may be a mapping or an object; an object is matched on the
        table's primary key and *where* is ignored.
        """
        columns = self._require_table(table_name, "update")

        if not isinstance(updates, Mapping):
            pk = self._require_primary_key(table_name, "update")
            values = to_row(updates)
            record_id = self._require_object_id(values.pop(pk, None), pk, "update")
            where, args = f"{pk} = {_id_placeholder(record_id)}", (record_id,)
            updates = values

        self._require_columns(table_name, columns, updates, "update")
        assignments = ", ".join(
            f"{c} = {self.backend.placeholder_for_column(columns[c])}" for c in updates
        )
        sql = f"UPDATE {table_name} SET {assignments}"
        if where:
            sql += f" WHERE {where}"
        return self.query(sql, *updates.values(), *args)

    def delete(self, table_name: str, where: Any = "", *args: Any) -> ResultCursor:
        """DELETE FROM *table_name* [WHERE *where*]; *where* may be an object."""
        self._require_table(table_name, "delete")
        if where and not isinstance(where, str):
            pk = self._require_primary_key(table_name, "delete")
            record_id = self._require_object_id(to_row(where).get(pk), pk, "delete")
            where, args = f"{pk} = {_id_placeholder(record_id)}", (record_id,)

        sql = f"DELETE FROM {table_name}"
        if where:
            sql += f" WHERE {where}"
        return self.query(sql, *args)

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def get_row(self, sql: str, *args: Any) -> dict[str, Any] | None:
        with self.query(sql, *args) as result:
            return result.fetch_assoc()

    def get_id_row(self, table_name: str, row_id: Any, id_col: str = "") -> dict[str, Any] | None:
        self._require_table(table_name, "get_id_row")
        if not id_col:
            id_col = self._require_primary_key(table_name, "get_id_row")
        return self.get_row(
            f"SELECT * FROM {table_name} WHERE {id_col} = {_id_placeholder(row_id)} "
            f"ORDER BY {id_col} LIMIT 1",
            row_id,
        )

    def get_column(self, sql: str, *args: Any) -> list[Any]:
        with self.query(sql, *args) as result:
            return [row[0] for row in iter(result.fetch_array, None)]

    def get_hash(self, sql: str, *args: Any) -> dict[Any, Any]:
        """First column -> second column for every row."""
        with self.query(sql, *args) as result:
            return {row[0]: row[1] for row in iter(result.fetch_array, None)}

    def get_field(self, sql: str, *args: Any) -> Any:
        with self.query(sql, *args) as result:
            row = result.fetch_array()
        return row[0] if row else None

    def eval(self, expression: str) -> Any:
        """Evaluate a SQL expression, e.g. ``db.eval("NOW()")``."""
        return self.get_field(f"SELECT {expression}")

    def get_select_count(self, table_name: str, where: str = "", *args: Any) -> int:
        sql = f"SELECT COUNT(*) FROM {table_name}"
        if where:
            sql += f" WHERE {where}"
        return int(self.get_field(sql, *args) or 0)

    def get_object(self, cls: type[T], sql: str, *args: Any) -> T | None:
        row = self.get_row(sql, *args)
        return from_row(cls, row) if row is not None else None

    def get_id_object(self, cls: type[T], table_name: str, row_id: Any, id_col: str = "") -> T | None:
        row = self.get_id_row(table_name, row_id, id_col)
        return from_row(cls, row) if row is not None else None

    # Cursor helpers, kept on the engine for callers that pass cursors around.

    @staticmethod
    def fetch_array(result: ResultCursor, position: int | None = None) -> tuple[Any, ...] | None:
        return result.fetch_array(position)

    @staticmethod
    def fetch_assoc(result: ResultCursor, position: int | None = None) -> dict[str, Any] | None:
        return result.fetch_assoc(position)

    @staticmethod
    def fetch_object(result: ResultCursor, cls: type[T], position: int | None = None) -> T | None:
        row = result.fetch_assoc(position)
        return from_row(cls, row) if row is not None else None

    @staticmethod
    def num_rows(result: ResultCursor) -> int:
        return result.num_rows()

    def insert_id(self) -> int | None:
        """Id generated by the last INSERT on this engine."""
        if self._insert_cursor is None:
            return None
        return self.backend.last_insert_id(self, self._insert_cursor)

    # ------------------------------------------------------------------
    # Misc
    # ------------------------------------------------------------------

    def get_database_size(self) -> float:
        """Database size in MB."""
        return self.backend.database_size(self)

    def add_time(
        self,
        period: str,
        length: int,
        from_date: str | date | None = None,
        return_datestamp: bool = True,
    ) -> str | int:
        """Date arithmetic done by the database, e.g. ``add_time("day", 3)``.

        *from_date* defaults to now (UTC). Returns a ``YYYY-MM-DD HH:MM:SS``
        stamp, or a unix timestamp when *return_datestamp* is False.
        """
        return self.backend.add_time(
            self, period, length, self._from_date(from_date), return_datestamp
        )

    def subtract_time(
        self,
        period: str,
        length: int,
        from_date: str | date | None = None,
        return_datestamp: bool = True,
    ) -> str | int:
        return self.backend.subtract_time(
            self, period, length, self._from_date(from_date), return_datestamp
        )

    @staticmethod
    def _from_date(value: str | date | None) -> str:
        if value is None:
            return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        if isinstance(value, date):
            return stamp(value)
        return value

    def execute_statements(self, statements: Iterable[str]) -> int:
        """Run each statement through query(); returns how many ran."""
        count = 0
        for sql in statements:
            self.query(sql).close()
            count += 1
        return count

    def execute_sql_file(self, path: str | Path) -> int:
        text = Path(path).read_text(encoding="utf-8")
        statements = split_statements(text)
        _log.info("Executing %d statements from %s", len(statements), path)
        return self.execute_statements(statements)
