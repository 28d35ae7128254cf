"""
Core data model: backend tags, connection roles and configs, transaction state.

ConnectionConfig is immutable once validated; Backend.validate_params() is the
usual way to build one from a raw mapping.
"""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class BackendEnum(str, Enum):
    """Supported database backends (mysql, postgres, sqlite)."""

    MYSQL = "mysql"
    POSTGRES = "postgres"
    SQLITE = "sqlite"


class ConnectionRole(str, Enum):
    """Role of a physical connection: the write primary or a read replica."""

    WRITE = "write"
    READ = "read"


class ConnectionConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    dbname: str = Field(min_length=1)
    user: str = ""
    password: str = ""
    host: str = "localhost"
    port: int = 0

    def describe(self) -> str:
        """user@host:port/dbname, without the password (for logs and listings)."""
        return f"{self.user}@{self.host}:{self.port}/{self.dbname}"


@dataclass
class TransactionState:
    """Session-wide transaction nesting and force-write flags."""

    depth: int = 0
    force_write_next: bool = False
    force_write_transaction: bool = False
    force_write_always: bool = False

    @property
    def active(self) -> bool:
        return self.depth > 0
