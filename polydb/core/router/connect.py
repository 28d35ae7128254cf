"""
Open physical connections for a backend and prepare the session.

psycopg (PostgreSQL), pymysql (MySQL) or sqlite3 (SQLite), picked from the
backend tag. Every connection runs in autocommit mode; transactions are opened
explicitly by the engine.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

import psycopg
import pymysql

from polydb.backends import Backend, get_backend
from polydb.core.config import Settings
from polydb.core.config import settings as default_settings
from polydb.models import BackendEnum, ConnectionConfig

_log = logging.getLogger(__name__)


def connect(
    backend: Backend | BackendEnum | str,
    config: ConnectionConfig,
    *,
    settings: Settings | None = None,
) -> Any:
    """Open a driver connection for *config*; driver errors propagate."""
    be = get_backend(backend)
    s = settings or default_settings
    timeout = s.DB_CONNECT_TIMEOUT

    if be.tag == BackendEnum.POSTGRES:
        return psycopg.connect(
            host=config.host,
            port=int(config.port),
            dbname=config.dbname,
            user=config.user,
            password=config.password,
            connect_timeout=timeout,
            autocommit=True,
        )
    if be.tag == BackendEnum.MYSQL:
        return pymysql.connect(
            host=config.host,
            port=int(config.port),
            database=config.dbname,
            user=config.user,
            password=config.password,
            connect_timeout=timeout,
            charset=s.DB_CHARSET or "utf8mb4",
            autocommit=True,
        )
    if be.tag == BackendEnum.SQLITE:
        return sqlite3.connect(config.dbname, timeout=timeout, isolation_level=None)
    raise ValueError(f"Unsupported backend: {be.tag}")


def setup_session(conn: Any, backend: Backend, *, settings: Settings | None = None) -> None:
    """Apply time zone, encoding and timeout settings to a fresh connection."""
    s = settings or default_settings
    cur = conn.cursor()
    try:
        for sql, params in backend.session_statements(s):
            _log.debug("Session setup (%s): %s", backend.tag.value, sql)
            if params:
                cur.execute(sql, params)
            else:
                cur.execute(sql)
    finally:
        cur.close()
