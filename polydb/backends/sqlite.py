from __future__ import annotations

import calendar
import sqlite3
from datetime import datetime
from typing import TYPE_CHECKING, Any

from polydb.dialects import SQLiteConverter
from polydb.models import BackendEnum

from .base import Backend, check_period, megabytes

if TYPE_CHECKING:
    from polydb.engines.sql.database import Database

# SQLite date modifiers only know these units.
_MODIFIER_UNITS = {
    "second": ("seconds", 1),
    "minute": ("minutes", 1),
    "hour": ("hours", 1),
    "day": ("days", 1),
    "week": ("days", 7),
    "month": ("months", 1),
    "quarter": ("months", 3),
    "year": ("years", 1),
}


class SQLiteBackend(Backend):
    tag = BackendEnum.SQLITE
    default_port = 0
    param_marker = "?"
    supports_scroll = False
    row_identifier = "rowid"
    requires_user = False
    driver_errors = (sqlite3.Error,)
    converter = SQLiteConverter(row_identifier)

    def bind_value(self, kind: str, value: Any) -> Any:
        if value is not None and kind == "d":
            return float(value)
        return super().bind_value(kind, value)

    def table_names(self, db: Database) -> list[str]:
        return list(
            db.get_column(
                "SELECT name FROM sqlite_master "
                "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
            )
        )

    def column_types(self, db: Database, table_name: str) -> dict[str, str]:
        with db.query(f"PRAGMA table_info({table_name})") as result:
            return {row["name"]: row["type"] for row in result}

    def primary_key(self, db: Database, table_name: str) -> str | None:
        with db.query(f"PRAGMA table_info({table_name})") as result:
            for row in result:
                if row["pk"] == 1:
                    return row["name"]
        return None

    def database_size(self, db: Database) -> float:
        page_count = db.get_field("PRAGMA page_count")
        page_size = db.get_field("PRAGMA page_size")
        return megabytes((page_count or 0) * (page_size or 0))

    def add_time(
        self,
        db: Database,
        period: str,
        length: int,
        from_date: str,
        return_datestamp: bool = True,
    ) -> str | int:
        unit, factor = _MODIFIER_UNITS[check_period(period)]
        modifier = f"{int(length) * factor} {unit}"
        result = db.get_field("SELECT datetime(%s, %s)", from_date, modifier)
        if return_datestamp:
            return result
        parsed = datetime.strptime(result, "%Y-%m-%d %H:%M:%S")
        return calendar.timegm(parsed.timetuple())

    def session_statements(self, settings: Any) -> list[tuple[str, tuple[Any, ...]]]:
        return [("PRAGMA foreign_keys = ON", ())]
