"""
Uniform, position-based access to a driver result set.

psycopg and pymysql (client-side cursors) can scroll to an absolute row;
sqlite3 cursors are forward-only, so rows are read through a lookahead buffer
and moving back to an already-released row raises CursorNotScrollableError.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from polydb.core.errors import CursorNotScrollableError


class ResultCursor:
    """Wraps one executed driver cursor.

    ``current()`` returns the row at ``key()`` as a dict (or None past the end),
    ``next()`` advances, ``rewind()`` goes back to the first row.
    """

    def __init__(self, cursor: Any, *, scrollable: bool, sql: str = "") -> None:
        self._cursor = cursor
        self._scrollable = scrollable
        self.sql = sql
        desc = cursor.description
        self.columns: list[str] = [d[0] for d in desc] if desc else []
        self.rowcount: int = cursor.rowcount if cursor.rowcount is not None else -1
        self.closed = False

        self._position = 0
        # Scrollable: index of the row the driver returns on the next fetchone().
        self._driver_pos = 0
        self._cached: tuple[int, tuple[Any, ...] | None] | None = None
        # Forward-only: rows read but not yet released; _buffer[0] is row _base.
        self._buffer: list[tuple[Any, ...]] = []
        self._base = 0
        self._exhausted = False

    def __repr__(self) -> str:
        return f"<ResultCursor columns={self.columns!r} position={self._position}>"

    @property
    def has_result_set(self) -> bool:
        return bool(self.columns)

    @property
    def raw(self) -> Any:
        """The underlying driver cursor."""
        return self._cursor

    # ------------------------------------------------------------------
    # Row access
    # ------------------------------------------------------------------

    def _row_at(self, pos: int) -> tuple[Any, ...] | None:
        if self.closed or not self.has_result_set or pos < 0:
            return None
        if self._scrollable:
            return self._scroll_to(pos)
        return self._read_to(pos)

    def _scroll_to(self, pos: int) -> tuple[Any, ...] | None:
        if self._cached is not None and self._cached[0] == pos:
            return self._cached[1]
        if self.rowcount >= 0 and pos >= self.rowcount:
            return None
        if pos != self._driver_pos:
            try:
                self._cursor.scroll(pos, mode="absolute")
            except IndexError:
                return None
        row = self._cursor.fetchone()
        self._driver_pos = pos + 1 if row is not None else pos
        self._cached = (pos, tuple(row) if row is not None else None)
        return self._cached[1]

    def _read_to(self, pos: int) -> tuple[Any, ...] | None:
        if pos < self._base:
            raise CursorNotScrollableError(
                f"Cannot move back to row {pos}: cursor is forward-only", sql=self.sql
            )
        while not self._exhausted and pos - self._base >= len(self._buffer):
            row = self._cursor.fetchone()
            if row is None:
                self._exhausted = True
            else:
                self._buffer.append(tuple(row))
        idx = pos - self._base
        return self._buffer[idx] if idx < len(self._buffer) else None

    def _release_before(self, pos: int) -> None:
        if self._scrollable or pos <= self._base:
            return
        drop = min(pos - self._base, len(self._buffer))
        del self._buffer[:drop]
        self._base += drop

    def _as_dict(self, row: tuple[Any, ...] | None) -> dict[str, Any] | None:
        if row is None:
            return None
        return dict(zip(self.columns, row))

    # ------------------------------------------------------------------
    # Iterator protocol (explicit)
    # ------------------------------------------------------------------

    def rewind(self) -> None:
        if not self._scrollable and self._base > 0:
            raise CursorNotScrollableError(
                "Cannot rewind: cursor is forward-only", sql=self.sql
            )
        self._position = 0

    def current(self) -> dict[str, Any] | None:
        return self._as_dict(self._row_at(self._position))

    def key(self) -> int:
        return self._position

    def next(self) -> None:
        self._position += 1
        self._release_before(self._position)

    def valid(self) -> bool:
        return self._row_at(self._position) is not None

    def seek(self, position: int) -> None:
        if not self._scrollable and position < self._base:
            raise CursorNotScrollableError(
                f"Cannot move back to row {position}: cursor is forward-only", sql=self.sql
            )
        self._position = position

    def __iter__(self) -> Iterator[dict[str, Any]]:
        while True:
            row = self.fetch_assoc()
            if row is None:
                return
            yield row

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def fetch_array(self, position: int | None = None) -> tuple[Any, ...] | None:
        """Row at *position* (default: current) as a tuple, then advance."""
        if position is not None:
            self.seek(position)
        row = self._row_at(self._position)
        if row is not None:
            self.next()
        return row

    def fetch_assoc(self, position: int | None = None) -> dict[str, Any] | None:
        """Row at *position* (default: current) as a dict, then advance."""
        return self._as_dict(self.fetch_array(position))

    def fetch_all(self) -> list[dict[str, Any]]:
        return list(self)

    def num_rows(self) -> int:
        """Result-set size for queries, affected rows otherwise."""
        if not self.has_result_set:
            return max(self.rowcount, 0)
        if self._scrollable and self.rowcount >= 0:
            return self.rowcount
        if self.closed:
            return self._base + len(self._buffer)
        while not self._exhausted:
            row = self._cursor.fetchone()
            if row is None:
                self._exhausted = True
            else:
                self._buffer.append(tuple(row))
        return self._base + len(self._buffer)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._cursor.close()

    def __enter__(self) -> ResultCursor:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
