"""
Role-based connection routing.

One logical write target, zero or more read targets. Connections are opened
lazily on first use and kept per role until close_all(). Reads without a read
target fall back to the write connection. A single read connection is kept at
a time; each time the read slot is (re)opened the next read config is used,
round-robin.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Protocol

from polydb.backends import Backend, get_backend
from polydb.core.config import Settings
from polydb.core.config import settings as default_settings
from polydb.core.errors import ConnectError
from polydb.models import BackendEnum, ConnectionConfig, ConnectionRole

from .connect import connect, setup_session
from .health import health_check

_log = logging.getLogger(__name__)

_READ_SQL = re.compile(r"^(select|show|describe)\s", re.IGNORECASE)

ConnectionParams = Mapping[str, Any] | ConnectionConfig


class ConfigStore(Protocol):
    def get_role_config(
        self, role: ConnectionRole, alias: str | None = None
    ) -> ConnectionConfig | None: ...


def classify(sql: str) -> ConnectionRole:
    """READ for SELECT/SHOW/DESCRIBE statements, WRITE for everything else."""
    if _READ_SQL.match(sql.lstrip()):
        return ConnectionRole.READ
    return ConnectionRole.WRITE


class ConnectionRouter:
    def __init__(
        self,
        backend: Backend | BackendEnum | str,
        params: ConnectionParams | None = None,
        readonly_params: Iterable[ConnectionParams] = (),
        *,
        config_store: ConfigStore | None = None,
        on_connect_fail: Callable[[], Any] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.backend = get_backend(backend)
        self.settings = settings or default_settings
        self.on_connect_fail = on_connect_fail
        self._write_config: ConnectionConfig | None = None
        self._read_configs: list[ConnectionConfig] = []
        self._read_index = 0
        self._connections: dict[ConnectionRole, Any] = {}

        if params:
            self._write_config = self.backend.validate_params(params)
        for p in readonly_params:
            self._read_configs.append(self.backend.validate_params(p))

        if not params and config_store is not None:
            write = config_store.get_role_config(ConnectionRole.WRITE)
            if write is not None:
                self._write_config = self.backend.validate_params(write)
            read = config_store.get_role_config(ConnectionRole.READ)
            if read is not None:
                self._read_configs.append(self.backend.validate_params(read))

    classify = staticmethod(classify)

    def add_connection(self, role: ConnectionRole | str, params: ConnectionParams) -> None:
        """Register connection parameters for *role* (opened lazily)."""
        role = ConnectionRole(role)
        config = self.backend.validate_params(params)
        if role == ConnectionRole.WRITE:
            self._write_config = config
        else:
            self._read_configs.append(config)

    def import_connection(self, conn: Any, role: ConnectionRole | str = ConnectionRole.WRITE) -> None:
        """Adopt an already-open driver connection for *role*."""
        self._connections[ConnectionRole(role)] = conn

    def has_config(self, role: ConnectionRole | str) -> bool:
        role = ConnectionRole(role)
        if role in self._connections:
            return True
        if role == ConnectionRole.WRITE:
            return self._write_config is not None
        return bool(self._read_configs)

    def get_connection(self, role: ConnectionRole | str = ConnectionRole.WRITE) -> Any:
        role = ConnectionRole(role)
        if role == ConnectionRole.READ and not self.has_config(ConnectionRole.READ):
            role = ConnectionRole.WRITE

        conn = self._connections.get(role)
        if conn is not None:
            return conn

        config = self._next_config(role)
        conn = self._open(config, role)
        self._connections[role] = conn
        return conn

    def ping(self, role: ConnectionRole | str = ConnectionRole.WRITE) -> bool:
        return health_check(self.get_connection(role))

    def close_all(self) -> None:
        """Close every open connection; later calls reconnect lazily."""
        conns = list(self._connections.items())
        self._connections.clear()
        closed: set[int] = set()
        for role, conn in conns:
            if id(conn) in closed:
                continue
            closed.add(id(conn))
            _log.debug("Closing %s connection (%s)", role.value, self.backend.tag.value)
            self._close_quiet(conn)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _next_config(self, role: ConnectionRole) -> ConnectionConfig:
        if role == ConnectionRole.READ:
            config = self._read_configs[self._read_index % len(self._read_configs)]
            self._read_index += 1
            return config
        if self._write_config is None:
            raise ConnectError(
                f"No write connection configured for {self.backend.tag.value}"
            )
        return self._write_config

    def _open(self, config: ConnectionConfig, role: ConnectionRole) -> Any:
        _log.debug(
            "Opening %s connection to %s (%s)",
            role.value,
            config.describe(),
            self.backend.tag.value,
        )
        conn = None
        try:
            conn = connect(self.backend, config, settings=self.settings)
            setup_session(conn, self.backend, settings=self.settings)
        except (*self.backend.driver_errors, OSError) as e:
            _log.error(
                "Unable to connect to %s database %s",
                self.backend.tag.value,
                config.describe(),
                exc_info=True,
            )
            if conn is not None:
                self._close_quiet(conn)
            if callable(self.on_connect_fail):
                self.on_connect_fail()
            raise ConnectError(
                f"Unable to connect to {self.backend.tag.value} database "
                f"{config.describe()}: {e}",
                backend_message=str(e),
            ) from e
        return conn

    @staticmethod
    def _close_quiet(conn: Any) -> None:
        try:
            conn.close()
        except Exception:
            _log.debug("Error while closing connection", exc_info=True)
