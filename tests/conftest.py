from collections.abc import Iterator
from unittest.mock import MagicMock

import pytest

from polydb.engines.sql import Database, SqlExecutor


USERS_DDL = (
    "CREATE TABLE users ("
    "id INT NOT NULL PRIMARY KEY AUTO_INCREMENT, "
    "name VARCHAR(100) NOT NULL, "
    "email VARCHAR(100), "
    "status VARCHAR(20) DEFAULT 'active', "
    "balance DECIMAL(10,2) DEFAULT 0, "
    "is_admin tinyint(1) NOT NULL DEFAULT 0"
    ") ENGINE=InnoDB DEFAULT CHARSET=utf8mb4"
)


@pytest.fixture
def sqlite_db() -> Iterator[Database]:
    """In-memory SQLite database with an empty ``users`` table."""
    db = Database("sqlite", {"dbname": ":memory:"})
    db.query(USERS_DDL)
    yield db
    db.close()


def mock_connection(description=None, rowcount: int = 0) -> MagicMock:
    """Driver connection whose cursor() always returns the same mock cursor."""
    conn = MagicMock()
    cur = conn.cursor.return_value
    cur.description = description
    cur.rowcount = rowcount
    return conn


@pytest.fixture
def make_conn():
    return mock_connection


@pytest.fixture
def mysql_engine() -> tuple[SqlExecutor, MagicMock]:
    engine = SqlExecutor("mysql")
    conn = mock_connection()
    engine.router.import_connection(conn)
    return engine, conn
