"""
polydb: one SQL API over MySQL, PostgreSQL and SQLite.

    from polydb import Database

    db = Database("sqlite", {"dbname": "app.db"})
    db.insert("users", [{"name": "jane", "status": "active"}])
    row = db.get_row("SELECT * FROM users WHERE status = %s", "active")
"""

from polydb.core.config_store import RedisConfigStore
from polydb.core.router import ConnectionRouter
from polydb.engines.sql import Database, ResultCursor, SqlExecutor
from polydb.mapping import RowMappable
from polydb.models import BackendEnum, ConnectionConfig, ConnectionRole

__all__ = [
    "BackendEnum",
    "ConnectionConfig",
    "ConnectionRole",
    "ConnectionRouter",
    "Database",
    "RedisConfigStore",
    "ResultCursor",
    "RowMappable",
    "SqlExecutor",
]
