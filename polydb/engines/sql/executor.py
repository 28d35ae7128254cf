"""
SQL execution engine.

query() is the single entry point. It converts the canonical SQL to the backend
dialect, formats, validates and binds the placeholders, then picks the
connection role (read/write, overridden by force-write flags and transactions).
The prepared statement is looked up by md5 of the backend SQL, executed, and
the driver cursor is wrapped in a ResultCursor.

Transactions nest: only the outermost begin/commit/rollback reaches the backend.
"""

from __future__ import annotations

import hashlib
import logging
import re
import weakref
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from polydb.backends import Backend, get_backend
from polydb.core.config import Settings
from polydb.core.config import settings as default_settings
from polydb.core.errors import (
    BeginTransactionError,
    CommitError,
    DbError,
    PrepareError,
    QueryError,
    RollbackError,
)
from polydb.core.router import ConnectionRouter, classify
from polydb.core.router.router import ConfigStore, ConnectionParams
from polydb.models import BackendEnum, ConnectionRole, TransactionState

from .cursor import ResultCursor
from .formatter import PlaceholderFormatter

_log = logging.getLogger(__name__)

_DDL = re.compile(r"^\s*(create|alter|drop|truncate)\s", re.IGNORECASE)
_INSERT = re.compile(r"^\s*(insert|replace)\s", re.IGNORECASE)


def is_ddl(sql: str) -> bool:
    return bool(_DDL.match(sql))


def statement_key(sql: str) -> str:
    """Cache key for backend SQL (not security-sensitive)."""
    return hashlib.md5(sql.encode("utf-8"), usedforsecurity=False).hexdigest()


@dataclass
class PreparedStatement:
    """Cache entry for backend SQL on one connection.

    Backends that support it prepare the statement server-side once the entry
    has run before. A fresh entry, including one rebuilt after
    clear_statement_cache(), executes unprepared.
    """

    key: str
    sql: str
    connection: Any
    executions: int = 0

    @property
    def reuse(self) -> bool:
        return self.executions > 0


class SqlExecutor:
    def __init__(
        self,
        backend: Backend | BackendEnum | str,
        params: ConnectionParams | None = None,
        readonly_params: Iterable[ConnectionParams] = (),
        *,
        router: ConnectionRouter | None = None,
        config_store: ConfigStore | None = None,
        on_connect_fail: Callable[[], Any] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.backend = get_backend(backend)
        self.settings = settings or default_settings
        self.router = router or ConnectionRouter(
            self.backend,
            params,
            readonly_params,
            config_store=config_store,
            on_connect_fail=on_connect_fail,
            settings=self.settings,
        )
        self.formatter = PlaceholderFormatter(self.backend)
        self.transaction_state = TransactionState()
        self._statements: dict[str, PreparedStatement] = {}
        self._cursors: weakref.WeakSet[ResultCursor] = weakref.WeakSet()
        # Driver cursor of the last INSERT; insert_id() reads from it.
        self._insert_cursor: Any = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.backend.tag.value}>"

    # ------------------------------------------------------------------
    # Role selection
    # ------------------------------------------------------------------

    def force_write(self, always: bool = False) -> None:
        """Send the next query (or, with *always*, every query) to the write connection."""
        self.transaction_state.force_write_next = True
        if always:
            self.transaction_state.force_write_always = True

    def reset_force_write(self) -> None:
        self.transaction_state.force_write_next = False
        self.transaction_state.force_write_always = False

    def _role_for(self, sql: str) -> ConnectionRole:
        ts = self.transaction_state
        if ts.force_write_next:
            ts.force_write_next = False
            return ConnectionRole.WRITE
        if ts.force_write_always or ts.force_write_transaction:
            return ConnectionRole.WRITE
        return classify(sql)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @property
    def in_transaction(self) -> bool:
        return self.transaction_state.active

    @property
    def transaction_depth(self) -> int:
        return self.transaction_state.depth

    def begin_transaction(self, force_write: bool = False) -> None:
        """Open a transaction; nested calls only increase the depth.

        With *force_write* every query of the (outermost) transaction goes to
        the write connection, SELECTs included.
        """
        ts = self.transaction_state
        if ts.depth > 0:
            ts.depth += 1
            return
        self._control(self.backend.begin_sql, BeginTransactionError)
        ts.depth = 1
        ts.force_write_transaction = force_write

    def commit(self) -> None:
        self._end_transaction(self.backend.commit_sql, CommitError)

    def rollback(self) -> None:
        self._end_transaction(self.backend.rollback_sql, RollbackError)

    def _end_transaction(self, sql: str, error_cls: type[DbError]) -> None:
        ts = self.transaction_state
        if ts.depth == 0:
            return
        if ts.depth > 1:
            ts.depth -= 1
            return
        self._control(sql, error_cls)
        ts.depth = 0
        ts.force_write_transaction = False

    @contextmanager
    def transaction(self, force_write: bool = False) -> Iterator[SqlExecutor]:
        """``with db.transaction(): ...`` commits on success, rolls back on error."""
        self.begin_transaction(force_write)
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        self.commit()

    def _control(self, sql: str, error_cls: type[DbError]) -> None:
        conn = self.router.get_connection(ConnectionRole.WRITE)
        _log.debug("Transaction: %s", sql)
        try:
            cur = conn.cursor()
            try:
                cur.execute(sql)
            finally:
                cur.close()
        except self.backend.driver_errors as e:
            _log.error("Transaction statement failed: %s", sql, exc_info=True)
            raise error_cls(
                f"Unable to execute {sql}: {e}", sql=sql, backend_message=str(e)
            ) from e

    # ------------------------------------------------------------------
    # Query pipeline
    # ------------------------------------------------------------------

    def query(self, sql: str, *args: Any) -> ResultCursor:
        """Execute *sql* with placeholder *args* and return a ResultCursor."""
        converted = self.backend.converter.convert(sql)
        formatted = self.formatter.format(converted.sql, args)
        params = self.backend.bind_params(formatted.kinds, formatted.values)
        # Picked only after the arguments bind, so a pending force_write() survives a bad call.
        role = self._role_for(sql)
        conn = self.router.get_connection(role)

        if is_ddl(converted.sql):
            self.close_cursors()
        for ddl in converted.prelude:
            self._execute_prelude(ddl)

        stmt = self._prepare(conn, formatted.sql)

        _log.debug("SQL (%s): %s", role.value, formatted.diagnostic_sql)
        cur = self._cursor(conn, formatted.diagnostic_sql)
        try:
            self.backend.execute(cur, stmt.sql, params, prepare=stmt.reuse)
        except self.backend.driver_errors as e:
            _log.error("Query failed: %s", formatted.diagnostic_sql, exc_info=True)
            cur.close()
            raise QueryError(
                f"Unable to execute SQL statement, {formatted.diagnostic_sql}: {e}",
                sql=formatted.diagnostic_sql,
                backend_message=str(e),
            ) from e
        stmt.executions += 1

        if _INSERT.match(stmt.sql):
            self._insert_cursor = cur
        result = ResultCursor(cur, scrollable=self.backend.supports_scroll, sql=formatted.diagnostic_sql)
        self._cursors.add(result)
        return result

    def _prepare(self, conn: Any, sql: str) -> PreparedStatement:
        key = statement_key(sql)
        stmt = self._statements.get(key)
        if stmt is not None and stmt.connection is conn:
            return stmt
        if stmt is not None:
            _log.debug("Re-preparing statement %s on a new connection", key)
        stmt = PreparedStatement(key=key, sql=sql, connection=conn)
        self._statements[key] = stmt
        return stmt

    def _cursor(self, conn: Any, diagnostic_sql: str) -> Any:
        try:
            return conn.cursor()
        except self.backend.driver_errors as e:
            _log.error("Unable to prepare: %s", diagnostic_sql, exc_info=True)
            raise PrepareError(
                f"Unable to prepare SQL statement, {diagnostic_sql}: {e}",
                sql=diagnostic_sql,
                backend_message=str(e),
            ) from e

    def _execute_prelude(self, sql: str) -> None:
        conn = self.router.get_connection(ConnectionRole.WRITE)
        cur = self._cursor(conn, sql)
        try:
            _log.debug("SQL (prelude): %s", sql)
            cur.execute(sql)
        except self.backend.driver_errors as e:
            _log.error("Query failed: %s", sql, exc_info=True)
            raise QueryError(
                f"Unable to execute SQL statement, {sql}: {e}",
                sql=sql,
                backend_message=str(e),
            ) from e
        finally:
            cur.close()

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    @property
    def statement_cache(self) -> dict[str, PreparedStatement]:
        return self._statements

    def clear_statement_cache(self) -> None:
        self._statements.clear()

    def close_cursors(self) -> None:
        """Close every ResultCursor still open on this engine."""
        for cursor in list(self._cursors):
            cursor.close()
        self._cursors.clear()

    def ping(self) -> bool:
        return self.router.ping(ConnectionRole.WRITE)

    def close(self) -> None:
        """Close cursors and connections; the engine reconnects lazily if reused."""
        self.close_cursors()
        self.router.close_all()
        self.clear_statement_cache()
        self._insert_cursor = None
        self.transaction_state = TransactionState()
