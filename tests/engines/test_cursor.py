"""Unit tests for engines.sql.cursor.ResultCursor."""

import sqlite3

import pytest

from polydb.core.errors import CursorNotScrollableError
from polydb.engines.sql.cursor import ResultCursor


class ScrollCursor:
    """Buffered driver cursor with absolute scrolling (psycopg / pymysql style)."""

    def __init__(self, rows, columns=("id", "name")):
        self._rows = list(rows)
        self._pos = 0
        self.description = [(c,) for c in columns]
        self.rowcount = len(self._rows)
        self.scrolls = []
        self.closed = False

    def fetchone(self):
        if self._pos >= len(self._rows):
            return None
        row = self._rows[self._pos]
        self._pos += 1
        return row

    def scroll(self, value, mode="relative"):
        assert mode == "absolute"
        if not 0 <= value < len(self._rows):
            raise IndexError("out of range")
        self.scrolls.append(value)
        self._pos = value

    def close(self):
        self.closed = True


@pytest.fixture
def lite_cursor():
    conn = sqlite3.connect(":memory:")
    conn.execute("CREATE TABLE t (id INTEGER, name TEXT)")
    conn.executemany("INSERT INTO t VALUES (?, ?)", [(1, "a"), (2, "b"), (3, "c")])
    cur = conn.cursor()
    cur.execute("SELECT id, name FROM t ORDER BY id")
    yield cur
    conn.close()


ROWS = [(1, "a"), (2, "b"), (3, "c")]


class TestScrollable:
    def test_iteration_protocol(self):
        rc = ResultCursor(ScrollCursor(ROWS), scrollable=True)
        seen = []
        rc.rewind()
        while rc.valid():
            seen.append((rc.key(), rc.current()["name"]))
            rc.next()
        assert seen == [(0, "a"), (1, "b"), (2, "c")]
        assert rc.current() is None

    def test_rewind_after_end(self):
        rc = ResultCursor(ScrollCursor(ROWS), scrollable=True)
        assert [r["id"] for r in rc] == [1, 2, 3]
        rc.rewind()
        assert rc.fetch_assoc() == {"id": 1, "name": "a"}

    def test_fetch_at_position(self):
        drv = ScrollCursor(ROWS)
        rc = ResultCursor(drv, scrollable=True)
        assert rc.fetch_array(2) == (3, "c")
        assert rc.fetch_assoc(0) == {"id": 1, "name": "a"}
        assert drv.scrolls == [2, 0]

    def test_num_rows(self):
        rc = ResultCursor(ScrollCursor(ROWS), scrollable=True)
        assert rc.num_rows() == 3
        assert rc.has_result_set

    def test_fetch_all_from_current(self):
        rc = ResultCursor(ScrollCursor(ROWS), scrollable=True)
        rc.fetch_assoc()
        assert rc.fetch_all() == [{"id": 2, "name": "b"}, {"id": 3, "name": "c"}]


class TestForwardOnly:
    def test_iterate(self, lite_cursor):
        rc = ResultCursor(lite_cursor, scrollable=False)
        assert rc.columns == ["id", "name"]
        assert rc.fetch_all() == [
            {"id": 1, "name": "a"},
            {"id": 2, "name": "b"},
            {"id": 3, "name": "c"},
        ]

    def test_current_is_repeatable(self, lite_cursor):
        rc = ResultCursor(lite_cursor, scrollable=False)
        assert rc.current() == rc.current() == {"id": 1, "name": "a"}
        assert rc.key() == 0

    def test_rewind_before_reading(self, lite_cursor):
        rc = ResultCursor(lite_cursor, scrollable=False)
        rc.rewind()
        assert rc.fetch_array() == (1, "a")

    def test_move_back_raises(self, lite_cursor):
        rc = ResultCursor(lite_cursor, scrollable=False)
        rc.fetch_assoc()
        rc.fetch_assoc()
        with pytest.raises(CursorNotScrollableError):
            rc.rewind()
        with pytest.raises(CursorNotScrollableError):
            rc.fetch_assoc(0)

    def test_skip_forward(self, lite_cursor):
        rc = ResultCursor(lite_cursor, scrollable=False)
        assert rc.fetch_assoc(2) == {"id": 3, "name": "c"}
        assert rc.fetch_assoc() is None

    def test_num_rows_buffers_remaining(self, lite_cursor):
        rc = ResultCursor(lite_cursor, scrollable=False)
        assert rc.fetch_assoc()["id"] == 1
        assert rc.num_rows() == 3
        assert [r["id"] for r in rc] == [2, 3]


def test_no_result_set_uses_rowcount() -> None:
    conn = sqlite3.connect(":memory:")
    try:
        conn.execute("CREATE TABLE t (id INTEGER)")
        cur = conn.cursor()
        cur.execute("INSERT INTO t VALUES (1), (2)")
        rc = ResultCursor(cur, scrollable=False)
        assert not rc.has_result_set
        assert rc.num_rows() == 2
        assert not rc.valid()
        assert rc.fetch_assoc() is None
        assert list(rc) == []
    finally:
        conn.close()


def test_close_and_context_manager() -> None:
    drv = ScrollCursor(ROWS)
    with ResultCursor(drv, scrollable=True) as rc:
        assert rc.fetch_array() == (1, "a")
    assert drv.closed
    assert rc.closed
    assert rc.current() is None
