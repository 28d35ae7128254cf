"""
Error taxonomy for the SQL execution layer.

One class per failure category. Statement-level errors carry the diagnostic
(literal-substituted) SQL and the backend's own message; they are always raised
``from`` the driver exception so the original traceback is kept.
"""

from __future__ import annotations

from typing import Any


class DbError(Exception):
    """Base class for every error raised by polydb."""

    def __init__(
        self,
        message: str,
        *,
        sql: str | None = None,
        backend_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.sql = sql
        self.backend_message = backend_message


class ConnectError(DbError):
    """Opening a backend connection (or its session setup) failed."""


class InvalidArgumentError(DbError, ValueError):
    """A placeholder value failed validation; nothing was bound."""

    def __init__(
        self,
        message: str,
        *,
        kind: str | None = None,
        value: Any = None,
        sql: str | None = None,
    ) -> None:
        super().__init__(message, sql=sql)
        self.kind = kind
        self.value = value


class PrepareError(DbError):
    """The backend rejected statement preparation."""


class QueryError(DbError):
    """The backend rejected statement execution."""


class BindParamsError(DbError):
    """Converting validated values into driver parameters failed."""


class BeginTransactionError(DbError):
    pass


class CommitError(DbError):
    pass


class RollbackError(DbError):
    pass


class TableNotExistsError(DbError):
    def __init__(self, message: str, *, table: str) -> None:
        super().__init__(message)
        self.table = table


class ColumnNotExistsError(DbError):
    def __init__(self, message: str, *, table: str, column: str) -> None:
        super().__init__(message)
        self.table = table
        self.column = column


class ObjectNotExistsError(DbError):
    """A required primary key (or object id) is missing."""


class NoInsertDataError(DbError):
    pass


class CursorNotScrollableError(DbError):
    """A forward-only cursor was asked to move back to an already-read row."""


class ConfigStoreError(DbError):
    """Invalid request against the external connection config store."""
