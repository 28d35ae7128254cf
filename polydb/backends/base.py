"""
Backend capability objects.

One class per supported backend. Everything that differs between MySQL,
PostgreSQL and SQLite and is not pure SQL text rewriting (that lives in
``polydb.dialects``) is expressed here: parameter marker, typed binding,
transaction statements, schema introspection and date arithmetic.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from polydb.core.errors import BindParamsError, ConnectError, InvalidArgumentError
from polydb.dialects import DialectConverter
from polydb.models import BackendEnum, ConnectionConfig

if TYPE_CHECKING:
    from polydb.engines.sql.database import Database

_log = logging.getLogger(__name__)

PERIODS = ("second", "minute", "hour", "day", "week", "month", "quarter", "year")

_BOOL_TYPE = re.compile(r"^(bool|boolean|tinyint\(1\))(?!\w)", re.IGNORECASE)
_INT_TYPE = re.compile(r"^(tiny|small|medium|big)?int(eger)?\b|^(big)?serial\b", re.IGNORECASE)
_DECIMAL_TYPE = re.compile(r"^(decimal|numeric|float|double|real)\b", re.IGNORECASE)
_BLOB_TYPE = re.compile(r"^(tiny|medium|long)?blob\b|^bytea\b", re.IGNORECASE)


class Backend:
    """Capabilities shared by every backend; subclasses fill in the rest."""

    tag: BackendEnum
    default_port: int = 0
    # Driver paramstyle marker emitted by the formatter for every bound value.
    param_marker: str = "%s"
    supports_scroll: bool = True
    requires_user: bool = True
    begin_sql: str = "BEGIN"
    commit_sql: str = "COMMIT"
    rollback_sql: str = "ROLLBACK"
    driver_errors: tuple[type[BaseException], ...] = ()
    converter: DialectConverter = DialectConverter()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.tag.value}>"

    # ------------------------------------------------------------------
    # Connection parameters
    # ------------------------------------------------------------------

    def validate_params(self, params: Mapping[str, Any] | ConnectionConfig) -> ConnectionConfig:
        """Build an immutable ConnectionConfig, filling backend defaults."""
        if isinstance(params, ConnectionConfig):
            data = params.model_dump()
        else:
            data = {k: v for k, v in params.items() if v is not None}
        if self.requires_user and not data.get("user"):
            raise ConnectError(
                f"Missing 'user' in connection parameters for {self.tag.value}"
            )
        if not data.get("port"):
            data["port"] = self.default_port
        try:
            return ConnectionConfig.model_validate(data)
        except ValidationError as e:
            raise ConnectError(
                f"Invalid connection parameters for {self.tag.value}: {e}"
            ) from e

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------

    @property
    def escape_percent(self) -> bool:
        """True when a literal ``%`` must be doubled in driver SQL."""
        return self.param_marker == "%s"

    def bind_value(self, kind: str, value: Any) -> Any:
        if value is None or kind in ("s", "ls"):
            return value
        if kind in ("i", "b"):
            return int(value)
        return value

    def bind_params(self, kinds: Sequence[str], values: Sequence[Any]) -> list[Any]:
        """Turn validated values into driver-native parameters."""
        try:
            return [self.bind_value(k, v) for k, v in zip(kinds, values, strict=True)]
        except (TypeError, ValueError) as e:
            _log.error("Parameter binding failed", exc_info=True)
            raise BindParamsError(f"Unable to bind parameters: {e}") from e

    def execute(self, cursor: Any, sql: str, params: list[Any], prepare: bool = False) -> None:
        """Run one bound statement on a driver cursor.

        *prepare* is set when the statement is already cached on this
        connection; backends without server-side preparation ignore it.
        """
        cursor.execute(sql, params)

    def placeholder_for_column(self, col_type: str | None) -> str:
        """Typed placeholder used by insert/update helpers for a column type."""
        t = (col_type or "").strip()
        if _BOOL_TYPE.match(t):
            return "%b"
        if _INT_TYPE.match(t):
            return "%i"
        if _DECIMAL_TYPE.match(t):
            return "%d"
        if _BLOB_TYPE.match(t):
            return "%blob"
        return "%s"

    def upsert_clause(self, primary_key: str, columns: Sequence[str]) -> str:
        updates = ", ".join(f"{c} = excluded.{c}" for c in columns if c != primary_key)
        if not updates:
            return f"ON CONFLICT ({primary_key}) DO NOTHING"
        return f"ON CONFLICT ({primary_key}) DO UPDATE SET {updates}"

    # ------------------------------------------------------------------
    # Introspection; ``db`` is the Database issuing the queries.
    # ------------------------------------------------------------------

    def table_names(self, db: Database) -> list[str]:
        raise NotImplementedError

    def column_types(self, db: Database, table_name: str) -> dict[str, str]:
        raise NotImplementedError

    def primary_key(self, db: Database, table_name: str) -> str | None:
        raise NotImplementedError

    def database_size(self, db: Database) -> float:
        """Size in MB, rounded to two places."""
        raise NotImplementedError

    def last_insert_id(self, db: Database, cursor: Any) -> int | None:
        return getattr(cursor, "lastrowid", None)

    # ------------------------------------------------------------------
    # Date arithmetic
    # ------------------------------------------------------------------

    def add_time(
        self,
        db: Database,
        period: str,
        length: int,
        from_date: str,
        return_datestamp: bool = True,
    ) -> str | int:
        raise NotImplementedError

    def subtract_time(
        self,
        db: Database,
        period: str,
        length: int,
        from_date: str,
        return_datestamp: bool = True,
    ) -> str | int:
        return self.add_time(db, period, -length, from_date, return_datestamp)

    # ------------------------------------------------------------------
    # Session setup run right after connect()
    # ------------------------------------------------------------------

    def session_statements(self, settings: Any) -> list[tuple[str, tuple[Any, ...]]]:
        return []


def check_period(period: str) -> str:
    p = period.lower()
    if p not in PERIODS:
        raise InvalidArgumentError(
            f"Invalid time period '{period}', expected one of {', '.join(PERIODS)}",
            kind="period",
            value=period,
        )
    return p


def megabytes(size_bytes: Any) -> float:
    return round(float(size_bytes or 0) / 1024 / 1024, 2)


def stamp(value: Any) -> str:
    """Render a driver date/datetime result as a canonical stamp."""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    return str(value)
