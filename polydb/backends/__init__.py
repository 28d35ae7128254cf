"""
Backend capability objects, one per BackendEnum member.

Drivers: psycopg (PostgreSQL), pymysql (MySQL), sqlite3 (SQLite).
"""

from polydb.models import BackendEnum

from .base import Backend
from .mysql import MySQLBackend
from .postgres import PostgresBackend
from .sqlite import SQLiteBackend

_BACKENDS: dict[BackendEnum, Backend] = {
    BackendEnum.MYSQL: MySQLBackend(),
    BackendEnum.POSTGRES: PostgresBackend(),
    BackendEnum.SQLITE: SQLiteBackend(),
}


def get_backend(tag: BackendEnum | str) -> Backend:
    """Return the capability object for *tag* (enum member or its value)."""
    if isinstance(tag, Backend):
        return tag
    try:
        return _BACKENDS[BackendEnum(tag)]
    except ValueError:
        raise ValueError(f"Unsupported backend: {tag}") from None


__all__ = [
    "Backend",
    "MySQLBackend",
    "PostgresBackend",
    "SQLiteBackend",
    "get_backend",
]
