from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import pymysql

from polydb.dialects import MySQLConverter
from polydb.models import BackendEnum

from .base import Backend, check_period, megabytes, stamp

if TYPE_CHECKING:
    from polydb.engines.sql.database import Database


class MySQLBackend(Backend):
    tag = BackendEnum.MYSQL
    default_port = 3306
    param_marker = "%s"
    begin_sql = "START TRANSACTION"
    driver_errors = (pymysql.err.Error,)
    converter = MySQLConverter()

    def bind_value(self, kind: str, value: Any) -> Any:
        if value is not None and kind == "d":
            return Decimal(value)
        return super().bind_value(kind, value)

    def upsert_clause(self, primary_key: str, columns: Sequence[str]) -> str:
        updates = ", ".join(f"{c} = VALUES({c})" for c in columns if c != primary_key)
        # Nothing besides the key: a no-op assignment keeps the statement valid.
        updates = updates or f"{primary_key} = {primary_key}"
        return f"ON DUPLICATE KEY UPDATE {updates}"

    def table_names(self, db: Database) -> list[str]:
        return [str(name) for name in db.get_column("SHOW TABLES")]

    def column_types(self, db: Database, table_name: str) -> dict[str, str]:
        with db.query(f"DESCRIBE {table_name}") as result:
            return {row["Field"]: str(row["Type"]) for row in result}

    def primary_key(self, db: Database, table_name: str) -> str | None:
        row = db.get_row(f"SHOW KEYS FROM {table_name} WHERE Key_name = 'PRIMARY'")
        return row["Column_name"] if row else None

    def database_size(self, db: Database) -> float:
        size = db.get_field(
            "SELECT SUM(data_length + index_length) FROM information_schema.TABLES "
            "WHERE table_schema = DATABASE()"
        )
        return megabytes(size)

    def add_time(
        self,
        db: Database,
        period: str,
        length: int,
        from_date: str,
        return_datestamp: bool = True,
    ) -> str | int:
        return self._date_math(db, "DATE_ADD", period, length, from_date, return_datestamp)

    def subtract_time(
        self,
        db: Database,
        period: str,
        length: int,
        from_date: str,
        return_datestamp: bool = True,
    ) -> str | int:
        return self._date_math(db, "DATE_SUB", period, length, from_date, return_datestamp)

    @staticmethod
    def _date_math(
        db: Database,
        func: str,
        period: str,
        length: int,
        from_date: str,
        return_datestamp: bool,
    ) -> str | int:
        unit = check_period(period).upper()
        expr = f"{func}(%s, INTERVAL %i {unit})"
        if not return_datestamp:
            return int(db.get_field(f"SELECT UNIX_TIMESTAMP({expr})", from_date, length))
        return stamp(db.get_field(f"SELECT {expr}", from_date, length))

    def session_statements(self, settings: Any) -> list[tuple[str, tuple[Any, ...]]]:
        stmts: list[tuple[str, tuple[Any, ...]]] = [
            ("SET time_zone = %s", (settings.DB_TIMEZONE,)),
        ]
        timeout = settings.DB_STATEMENT_TIMEOUT
        if timeout is not None and timeout > 0:
            stmts.append(("SET SESSION max_execution_time = %s", (int(timeout * 1000),)))
        return stmts
