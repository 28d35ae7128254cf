"""
External connection config store backed by Redis.

Layout (string values, client created with decode_responses=True):

- ``config:db.master``            hash with the write connection params
- ``config:db.readonly``          list of read-only aliases
- ``config:db.readonly.<alias>``  hash with the params of one read target

Read targets rotate: every lookup without an alias moves the last alias of the
list to its head (RPOPLPUSH on the same key) and uses it.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

import redis
from pydantic import ValidationError

from polydb.core.config import settings
from polydb.core.errors import ConfigStoreError
from polydb.models import ConnectionConfig, ConnectionRole

_log = logging.getLogger(__name__)

MASTER_KEY = "config:db.master"
READONLY_KEY = "config:db.readonly"
_ALIAS = re.compile(r"^\w+$")


def _readonly_key(alias: str) -> str:
    return f"{READONLY_KEY}.{alias}"


def _role(role: ConnectionRole | str) -> ConnectionRole:
    try:
        return ConnectionRole(role)
    except ValueError:
        raise ConfigStoreError(
            f"Invalid type of database, {role}.  Must be either 'write' or 'read'"
        ) from None


def _to_config(data: Mapping[str, Any]) -> ConnectionConfig:
    try:
        return ConnectionConfig.model_validate(dict(data))
    except ValidationError as e:
        raise ConfigStoreError(f"Invalid database connection info: {e}") from e


class RedisConfigStore:
    def __init__(self, client: redis.Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str | None = None) -> RedisConfigStore:
        return cls(redis.Redis.from_url(url or settings.redis_url, decode_responses=True))

    def add_database(
        self,
        role: ConnectionRole | str,
        params: Mapping[str, Any] | ConnectionConfig,
        alias: str = "",
    ) -> None:
        """Save connection params for the write target or a read alias."""
        role = _role(role)
        if role == ConnectionRole.READ and not _ALIAS.match(alias or ""):
            raise ConfigStoreError(
                "When adding a read-only database connection you must specify an "
                "alpha-numeric alias with no spaces or special characters."
            )
        alias = alias.lower()
        config = params if isinstance(params, ConnectionConfig) else _to_config(params)
        mapping = {k: str(v) for k, v in config.model_dump().items()}

        if role == ConnectionRole.WRITE:
            self.client.hset(MASTER_KEY, mapping=mapping)
            _log.info("Saved write database %s", config.describe())
            return

        if alias not in self.client.lrange(READONLY_KEY, 0, -1):
            self.client.lpush(READONLY_KEY, alias)
        self.client.hset(_readonly_key(alias), mapping=mapping)
        _log.info("Saved read-only database %s as %s", config.describe(), alias)

    def delete_database(self, alias: str) -> None:
        if not self.client.exists(_readonly_key(alias)):
            raise ConfigStoreError(f"No read-only database exists at {alias}")
        self.client.lrem(READONLY_KEY, 1, alias)
        self.client.delete(_readonly_key(alias))

    def get_database(self, role: ConnectionRole | str, alias: str = "") -> ConnectionConfig:
        role = _role(role)
        key = MASTER_KEY if role == ConnectionRole.WRITE else _readonly_key(alias)
        data = self.client.hgetall(key)
        if not data:
            raise ConfigStoreError(
                f"No database connection info exists at type {role.value} with index {alias}"
            )
        return _to_config(data)

    def get_role_config(
        self, role: ConnectionRole | str, alias: str | None = None
    ) -> ConnectionConfig | None:
        """Config for *role*, or None when nothing is stored.

        READ without *alias* rotates through the stored read aliases.
        """
        role = _role(role)
        if role == ConnectionRole.WRITE:
            data = self.client.hgetall(MASTER_KEY)
            return _to_config(data) if data else None

        if alias is None:
            alias = self.client.rpoplpush(READONLY_KEY, READONLY_KEY)
            if not alias:
                return None
        data = self.client.hgetall(_readonly_key(alias))
        return _to_config(data) if data else None

    def list_readonly(self) -> dict[str, str]:
        """alias -> user@host:port/dbname for every read target."""
        dbs: dict[str, str] = {}
        for alias in self.client.lrange(READONLY_KEY, 0, -1):
            data = self.client.hgetall(_readonly_key(alias))
            if data:
                dbs[alias] = _to_config(data).describe()
        return dbs

    def delete_all(self) -> None:
        keys = list(self.client.scan_iter(match="config:db.*"))
        if keys:
            self.client.delete(*keys)
