from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DbSettings(BaseSettings):
    """
    Connection and profiling settings.

    Every field can be overridden through the environment with the
    ``DB_SQL_`` prefix, e.g. ``DB_SQL_HOST=db.internal``.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_SQL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Connection settings
    HOST: str = "localhost"
    PORT: int = 3306
    DATABASE: str = ""
    SOCKET: str = ""
    USER: str = ""
    PASSWORD: str = ""
    CONNECTION_CHARSET: str = "utf8mb4"

    # Shared connection renewal, negative disables it
    MAX_LIFETIME: int = -1

    # Query profiling settings
    ENABLE_PROFILING: bool = False  # Defaults to off, profiling keeps every query in memory
    SLOW_QUERY_THRESHOLD_MS: int = Field(
        default=100,
        description="Finished queries slower than this are logged, negative disables logging",
    )
    MAX_QUERY_LENGTH: int = 1000  # Truncate long queries in logs

    # Prometheus settings
    ENABLE_PROMETHEUS: bool = False
    QUERY_DURATION_BUCKETS: list[float] = Field(
        default=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5],
        description="Histogram buckets for query duration in seconds",
    )

    @property
    def slow_query_threshold_secs(self):
        if self.SLOW_QUERY_THRESHOLD_MS < 0:
            return None
        return self.SLOW_QUERY_THRESHOLD_MS / 1000


@lru_cache()
def get_settings() -> DbSettings:
    return DbSettings()
