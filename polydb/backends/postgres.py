from __future__ import annotations

import re
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import psycopg

from polydb.dialects import PostgresConverter
from polydb.models import BackendEnum

from .base import Backend, check_period, megabytes, stamp

if TYPE_CHECKING:
    from polydb.engines.sql.database import Database

_PREPARABLE = re.compile(r"^\s*(select|insert|update|delete|with|values)\b", re.IGNORECASE)


class PostgresBackend(Backend):
    tag = BackendEnum.POSTGRES
    default_port = 5432
    param_marker = "%s"
    driver_errors = (psycopg.Error,)
    converter = PostgresConverter()

    def bind_value(self, kind: str, value: Any) -> Any:
        if value is None:
            return None
        if kind == "d":
            return Decimal(value)
        if kind == "b":
            return bool(int(value))
        if kind == "blob" and isinstance(value, str):
            return value.encode("utf-8")
        return super().bind_value(kind, value)

    def execute(self, cursor: Any, sql: str, params: list[Any], prepare: bool = False) -> None:
        # psycopg names and evicts the server-side statement (prepared_max) per connection.
        cursor.execute(sql, params, prepare=prepare and bool(_PREPARABLE.match(sql)))

    def table_names(self, db: Database) -> list[str]:
        return list(
            db.get_column(
                "SELECT table_name FROM information_schema.tables "
                "WHERE table_schema = current_schema() AND table_type = 'BASE TABLE' "
                "ORDER BY table_name"
            )
        )

    def column_types(self, db: Database, table_name: str) -> dict[str, str]:
        return db.get_hash(
            "SELECT column_name, data_type FROM information_schema.columns "
            "WHERE table_schema = current_schema() AND table_name = %s "
            "ORDER BY ordinal_position",
            table_name,
        )

    def primary_key(self, db: Database, table_name: str) -> str | None:
        return db.get_field(
            "SELECT a.attname FROM pg_index i "
            "JOIN pg_attribute a ON a.attrelid = i.indrelid AND a.attnum = ANY(i.indkey) "
            "WHERE i.indrelid = %s::regclass AND i.indisprimary",
            table_name,
        )

    def database_size(self, db: Database) -> float:
        return megabytes(db.get_field("SELECT pg_database_size(current_database())"))

    def last_insert_id(self, db: Database, cursor: Any) -> int | None:
        # LASTVAL() is per session: it has to run on the write connection.
        db.force_write()
        return db.get_field("SELECT LASTVAL()")

    def add_time(
        self,
        db: Database,
        period: str,
        length: int,
        from_date: str,
        return_datestamp: bool = True,
    ) -> str | int:
        interval = f"{int(length)} {check_period(period)}"
        expr = "CAST(%s AS TIMESTAMP) + JUSTIFY_INTERVAL(CAST(%s AS INTERVAL))"
        if not return_datestamp:
            return int(db.get_field(f"SELECT CAST(EXTRACT(EPOCH FROM {expr}) AS BIGINT)", from_date, interval))
        return stamp(db.get_field(f"SELECT {expr}", from_date, interval))

    def session_statements(self, settings: Any) -> list[tuple[str, tuple[Any, ...]]]:
        # SET does not take bind parameters; set_config() does.
        stmts: list[tuple[str, tuple[Any, ...]]] = [
            ("SELECT set_config('client_min_messages', 'warning', false)", ()),
            ("SELECT set_config('TimeZone', %s, false)", (settings.DB_TIMEZONE,)),
            ("SELECT set_config('client_encoding', %s, false)", (settings.DB_CHARSET or "UTF8",)),
        ]
        timeout = settings.DB_STATEMENT_TIMEOUT
        if timeout is not None and timeout > 0:
            stmts.append(
                ("SELECT set_config('statement_timeout', %s, false)", (str(int(timeout * 1000)),))
            )
        return stmts
