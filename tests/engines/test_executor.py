"""Unit tests for engines.sql.executor (routing, transactions, statement cache)."""

from unittest.mock import MagicMock, call

import pymysql
import pytest

from polydb.core.errors import (
    BeginTransactionError,
    CommitError,
    InvalidArgumentError,
    QueryError,
)
from polydb.engines.sql import SqlExecutor, statement_key
from polydb.models import ConnectionRole


def _executed(conn: MagicMock) -> list:
    return [c.args[0] for c in conn.cursor.return_value.execute.call_args_list]


class TestTransactions:
    def test_nested_commit_issues_one_physical_transaction(self, mysql_engine):
        engine, conn = mysql_engine
        engine.begin_transaction()
        engine.begin_transaction()
        assert engine.transaction_depth == 2
        engine.commit()
        assert engine.transaction_depth == 1
        engine.commit()
        assert engine.transaction_depth == 0
        assert _executed(conn) == ["START TRANSACTION", "COMMIT"]

    def test_inner_rollback_only_decrements(self, mysql_engine):
        engine, conn = mysql_engine
        engine.begin_transaction()
        engine.begin_transaction()
        engine.rollback()
        assert engine.transaction_depth == 1
        assert engine.in_transaction
        assert _executed(conn) == ["START TRANSACTION"]
        engine.rollback()
        assert _executed(conn) == ["START TRANSACTION", "ROLLBACK"]
        assert not engine.in_transaction

    def test_commit_without_transaction_is_noop(self, mysql_engine):
        engine, conn = mysql_engine
        engine.commit()
        engine.rollback()
        assert engine.transaction_depth == 0
        conn.cursor.assert_not_called()

    def test_begin_failure(self, mysql_engine):
        engine, conn = mysql_engine
        conn.cursor.return_value.execute.side_effect = pymysql.err.OperationalError(2006, "gone away")
        with pytest.raises(BeginTransactionError) as exc:
            engine.begin_transaction()
        assert engine.transaction_depth == 0
        assert exc.value.sql == "START TRANSACTION"
        assert "gone away" in exc.value.backend_message

    def test_commit_failure_keeps_depth(self, mysql_engine):
        engine, conn = mysql_engine
        engine.begin_transaction()
        conn.cursor.return_value.execute.side_effect = pymysql.err.OperationalError(2006, "gone away")
        with pytest.raises(CommitError):
            engine.commit()
        assert engine.transaction_depth == 1

    def test_context_manager_commits(self, mysql_engine):
        engine, conn = mysql_engine
        with engine.transaction():
            assert engine.in_transaction
        assert _executed(conn) == ["START TRANSACTION", "COMMIT"]

    def test_context_manager_rolls_back(self, mysql_engine):
        engine, conn = mysql_engine
        with pytest.raises(RuntimeError):
            with engine.transaction():
                raise RuntimeError("boom")
        assert _executed(conn) == ["START TRANSACTION", "ROLLBACK"]
        assert engine.transaction_depth == 0


class TestQuery:
    def test_bind_and_execute(self, mysql_engine):
        engine, conn = mysql_engine
        conn.cursor.return_value.rowcount = 1
        result = engine.query("UPDATE users SET status = %s WHERE id = %i", "active", 5)
        conn.cursor.return_value.execute.assert_called_once_with(
            "UPDATE users SET status = %s WHERE id = %s", ["active", 5]
        )
        assert result.num_rows() == 1
        assert result.sql == "UPDATE users SET status = 'active' WHERE id = '5'"

    def test_invalid_argument_before_connect(self):
        engine = SqlExecutor("mysql")
        with pytest.raises(InvalidArgumentError):
            engine.query("SELECT * FROM users WHERE id = %i", "abc")

    def test_query_error_carries_diagnostic_sql(self, mysql_engine):
        engine, conn = mysql_engine
        conn.cursor.return_value.execute.side_effect = pymysql.err.ProgrammingError(
            1064, "You have an error in your SQL syntax"
        )
        with pytest.raises(QueryError) as exc:
            engine.query("SELEC * FROM users WHERE name = %s", "jane")
        assert exc.value.sql == "SELEC * FROM users WHERE name = 'jane'"
        assert "SQL syntax" in exc.value.backend_message
        assert isinstance(exc.value.__cause__, pymysql.err.ProgrammingError)

    def test_statement_cache_reuse(self, mysql_engine):
        engine, conn = mysql_engine
        engine.query("SELECT * FROM users WHERE id = %i", 1)
        engine.query("SELECT * FROM users WHERE id = %i", 2)
        key = statement_key("SELECT * FROM users WHERE id = %s")
        assert list(engine.statement_cache) == [key]
        assert engine.statement_cache[key].executions == 2

    def test_statement_reprepared_on_new_connection(self, mysql_engine, make_conn):
        engine, conn = mysql_engine
        engine.query("SELECT 1")
        other = make_conn()
        engine.router.import_connection(other)
        engine.query("SELECT 1")
        (entry,) = engine.statement_cache.values()
        assert entry.connection is other
        assert entry.executions == 1

    def test_clear_statement_cache(self, mysql_engine):
        engine, _ = mysql_engine
        engine.query("SELECT 1")
        engine.clear_statement_cache()
        assert engine.statement_cache == {}

    def test_postgres_prepares_cached_dml_and_runs_prelude(self, make_conn):
        engine = SqlExecutor("postgres")
        conn = make_conn()
        engine.router.import_connection(conn)

        engine.query("SELECT * FROM users WHERE id = %i", 7)
        engine.query("SELECT * FROM users WHERE id = %i", 8)
        assert conn.cursor.return_value.execute.call_args_list == [
            call("SELECT * FROM users WHERE id = %s", [7], prepare=False),
            call("SELECT * FROM users WHERE id = %s", [8], prepare=True),
        ]

        engine.query("CREATE TABLE o (id INT NOT NULL PRIMARY KEY AUTO_INCREMENT, status ENUM('a','b'))")
        calls = conn.cursor.return_value.execute.call_args_list[-3:]
        assert calls[0] == call("DROP TYPE IF EXISTS enum_o_status")
        assert calls[1] == call("CREATE TYPE enum_o_status AS ENUM ('a','b')")
        assert calls[2] == call(
            "CREATE TABLE o (id SERIAL PRIMARY KEY, status enum_o_status)", [], prepare=False
        )

    def test_postgres_clear_statement_cache_drops_preparation(self, make_conn):
        engine = SqlExecutor("postgres")
        conn = make_conn()
        engine.router.import_connection(conn)
        execute = conn.cursor.return_value.execute

        engine.query("UPDATE users SET status = %s WHERE id = %i", "a", 1)
        engine.query("UPDATE users SET status = %s WHERE id = %i", "b", 2)
        assert execute.call_args.kwargs == {"prepare": True}

        engine.clear_statement_cache()
        engine.query("UPDATE users SET status = %s WHERE id = %i", "c", 3)
        assert execute.call_args == call(
            "UPDATE users SET status = %s WHERE id = %s", ["c", 3], prepare=False
        )
        (entry,) = engine.statement_cache.values()
        assert entry.executions == 1


class TestRouting:
    @pytest.fixture
    def engine(self, make_conn):
        engine = SqlExecutor("mysql")
        self.write, self.read = make_conn(), make_conn()
        engine.router.import_connection(self.write, ConnectionRole.WRITE)
        engine.router.import_connection(self.read, ConnectionRole.READ)
        return engine

    def test_select_goes_to_read(self, engine):
        engine.query("SELECT 1")
        engine.query("INSERT INTO t VALUES (1)")
        assert _executed(self.read) == ["SELECT 1"]
        assert _executed(self.write) == ["INSERT INTO t VALUES (1)"]

    def test_force_write_next_only(self, engine):
        engine.force_write()
        engine.query("SELECT 1")
        engine.query("SELECT 2")
        assert _executed(self.write) == ["SELECT 1"]
        assert _executed(self.read) == ["SELECT 2"]

    def test_force_write_always(self, engine):
        engine.force_write(always=True)
        engine.query("SELECT 1")
        engine.query("SELECT 2")
        assert _executed(self.write) == ["SELECT 1", "SELECT 2"]
        engine.reset_force_write()
        engine.query("SELECT 3")
        assert _executed(self.read) == ["SELECT 3"]

    def test_force_write_transaction(self, engine):
        engine.begin_transaction(force_write=True)
        engine.query("SELECT 1")
        engine.commit()
        engine.query("SELECT 2")
        assert _executed(self.write) == ["START TRANSACTION", "SELECT 1", "COMMIT"]
        assert _executed(self.read) == ["SELECT 2"]

    def test_force_write_survives_invalid_arguments(self, engine):
        engine.force_write()
        with pytest.raises(InvalidArgumentError):
            engine.query("SELECT * FROM t WHERE id = %i", "abc")
        engine.query("SELECT 1")
        assert _executed(self.write) == ["SELECT 1"]
        assert _executed(self.read) == []

    def test_plain_transaction_reads_from_replica(self, engine):
        engine.begin_transaction()
        engine.query("SELECT 1")
        engine.rollback()
        assert _executed(self.read) == ["SELECT 1"]


def test_close_resets_state(mysql_engine):
    engine, conn = mysql_engine
    engine.begin_transaction()
    result = engine.query("SELECT 1")
    engine.close()
    conn.close.assert_called_once()
    assert result.closed
    assert engine.statement_cache == {}
    assert engine.transaction_depth == 0
