"""Unit tests for core.router (connect, health check, role routing)."""

import sqlite3
from unittest.mock import MagicMock, patch

import pytest

from polydb.core.errors import ConnectError
from polydb.core.router import ConnectionRouter, classify, connect, health_check
from polydb.models import ConnectionConfig, ConnectionRole


@pytest.mark.parametrize(
    "sql,role",
    [
        ("SELECT * FROM t", ConnectionRole.READ),
        ("   select 1", ConnectionRole.READ),
        ("SHOW TABLES", ConnectionRole.READ),
        ("describe users", ConnectionRole.READ),
        ("INSERT INTO t VALUES (1)", ConnectionRole.WRITE),
        ("UPDATE t SET a = 1", ConnectionRole.WRITE),
        ("selectx FROM t", ConnectionRole.WRITE),
        ("WITH x AS (SELECT 1) SELECT * FROM x", ConnectionRole.WRITE),
    ],
)
def test_classify(sql, role) -> None:
    assert classify(sql) == role


def _params(dbname: str) -> dict:
    return {"dbname": dbname, "user": "app", "password": "secret", "host": "db"}


@patch("polydb.core.router.router.setup_session")
@patch("polydb.core.router.router.connect")
def test_read_falls_back_to_write(mock_connect: MagicMock, mock_setup: MagicMock) -> None:
    """Without read configs READ returns the (single) write connection."""
    conn = MagicMock()
    mock_connect.return_value = conn
    router = ConnectionRouter("mysql", _params("main"))

    assert router.get_connection(ConnectionRole.READ) is conn
    assert router.get_connection(ConnectionRole.WRITE) is conn
    mock_connect.assert_called_once()
    mock_setup.assert_called_once()


@patch("polydb.core.router.router.setup_session")
@patch("polydb.core.router.router.connect")
def test_connections_opened_lazily(mock_connect: MagicMock, _setup: MagicMock) -> None:
    ConnectionRouter("mysql", _params("main"))
    mock_connect.assert_not_called()


@patch("polydb.core.router.router.setup_session")
@patch("polydb.core.router.router.connect")
def test_read_configs_rotate(mock_connect: MagicMock, _setup: MagicMock) -> None:
    mock_connect.side_effect = lambda backend, config, settings=None: MagicMock(name=config.dbname)
    router = ConnectionRouter(
        "postgres", _params("main"), [_params("replica1"), _params("replica2")]
    )

    router.get_connection(ConnectionRole.READ)
    router.get_connection(ConnectionRole.READ)
    router.close_all()
    router.get_connection(ConnectionRole.READ)

    opened = [c.args[1].dbname for c in mock_connect.call_args_list]
    assert opened == ["replica1", "replica2"]


@patch("polydb.core.router.router.setup_session")
@patch("polydb.core.router.router.connect")
def test_close_all_closes_and_reopens(mock_connect: MagicMock, _setup: MagicMock) -> None:
    first, second = MagicMock(), MagicMock()
    mock_connect.side_effect = [first, second]
    router = ConnectionRouter("mysql", _params("main"))

    assert router.get_connection() is first
    router.close_all()
    first.close.assert_called_once()
    assert router.get_connection() is second


@patch("polydb.core.router.router.setup_session")
@patch("polydb.core.router.router.connect")
def test_connect_failure_calls_hook(mock_connect: MagicMock, _setup: MagicMock) -> None:
    mock_connect.side_effect = OSError("connection refused")
    hook = MagicMock()
    router = ConnectionRouter("mysql", _params("main"), on_connect_fail=hook)

    with pytest.raises(ConnectError) as exc:
        router.get_connection()
    hook.assert_called_once_with()
    assert "connection refused" in exc.value.backend_message
    assert isinstance(exc.value.__cause__, OSError)


def test_no_write_config() -> None:
    router = ConnectionRouter("mysql")
    assert not router.has_config(ConnectionRole.WRITE)
    with pytest.raises(ConnectError):
        router.get_connection()


def test_import_connection() -> None:
    router = ConnectionRouter("sqlite")
    conn = MagicMock()
    router.import_connection(conn)
    assert router.has_config(ConnectionRole.WRITE)
    assert router.get_connection(ConnectionRole.READ) is conn


def test_add_connection() -> None:
    router = ConnectionRouter("mysql", _params("main"))
    assert not router.has_config("read")
    router.add_connection("read", _params("replica"))
    assert router.has_config("read")


def test_config_store_used_when_no_params() -> None:
    store = MagicMock()
    store.get_role_config.side_effect = lambda role, alias=None: ConnectionConfig(
        dbname="main" if role == ConnectionRole.WRITE else "replica", user="app"
    )
    router = ConnectionRouter("mysql", config_store=store)

    assert router.has_config(ConnectionRole.WRITE)
    assert router.has_config(ConnectionRole.READ)
    assert store.get_role_config.call_count == 2


def test_sqlite_connect_real() -> None:
    """sqlite3 opens in autocommit mode and passes the health check."""
    conn = connect("sqlite", ConnectionConfig(dbname=":memory:"))
    try:
        assert isinstance(conn, sqlite3.Connection)
        assert conn.isolation_level is None
        assert health_check(conn) is True
    finally:
        conn.close()


@patch("psycopg.connect")
def test_postgres_connect_autocommit(mock_pg: MagicMock) -> None:
    config = ConnectionConfig(dbname="app", user="u", password="p", host="h", port=5432)
    connect("postgres", config)
    kwargs = mock_pg.call_args.kwargs
    assert kwargs["dbname"] == "app"
    assert kwargs["autocommit"] is True


@patch("pymysql.connect")
def test_mysql_connect_charset(mock_mysql: MagicMock) -> None:
    config = ConnectionConfig(dbname="app", user="u", host="h", port=3306)
    connect("mysql", config)
    kwargs = mock_mysql.call_args.kwargs
    assert kwargs["database"] == "app"
    assert kwargs["charset"] == "utf8mb4"
    assert kwargs["autocommit"] is True


def test_health_check_failure() -> None:
    conn = MagicMock()
    conn.cursor.return_value.execute.side_effect = RuntimeError("gone")
    assert health_check(conn) is False
    conn.cursor.return_value.close.assert_called_once()
