"""
Runtime settings (pydantic-settings).

Values come from the environment or a local .env file. Engines and routers
read the module-level ``settings`` unless an explicit Settings is passed in.
"""

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    # Seconds to wait when opening a MySQL/PostgreSQL connection.
    DB_CONNECT_TIMEOUT: int = 10
    # Per-session statement timeout in seconds; None or 0 disables it.
    DB_STATEMENT_TIMEOUT: float | None = None
    DB_TIMEZONE: str = "+00:00"
    # None = backend default (utf8mb4 for MySQL, UTF8 for PostgreSQL).
    DB_CHARSET: str | None = None

    # External connection config store (Redis).
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def redis_url(self) -> str:
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


settings = Settings()
