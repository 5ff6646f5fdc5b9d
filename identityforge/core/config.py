"""
Configuration management for IdentityForge.

Loads settings from environment variables.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Application configuration."""

    # Database
    database_path: str = "data/identityforge.db"
    busy_timeout_seconds: float = 15.0
    sql_echo: bool = False

    # Reads
    history_limit: int = 200

    # Display timezone (never used for dashboard windows)
    timezone: str = "UTC"

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, database_path: Optional[str] = None) -> "Config":
        """Load configuration from environment variables."""
        path = (
            database_path
            or os.getenv("IDENTITYFORGE_DB_PATH")
            or os.getenv("DB_PATH")
            or "data/identityforge.db"
        )

        config = cls(
            database_path=path,
            busy_timeout_seconds=float(os.getenv("IDENTITYFORGE_BUSY_TIMEOUT", "15.0")),
            sql_echo=_env_bool("IDENTITYFORGE_SQL_ECHO", False),
            history_limit=int(os.getenv("IDENTITYFORGE_HISTORY_LIMIT", "200")),
            timezone=os.getenv("TIMEZONE", "UTC"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

        if config.history_limit <= 0:
            raise ValueError(
                f"IDENTITYFORGE_HISTORY_LIMIT must be positive, got {config.history_limit}"
            )

        return config

    def get_summary(self) -> str:
        """Get a summary of current settings."""
        return f"""Database: {self.database_path}
Busy Timeout: {self.busy_timeout_seconds:.1f}s
SQL Echo: {'on' if self.sql_echo else 'off'}

History Limit: {self.history_limit}
Display Timezone: {self.timezone}
Log Level: {self.log_level}
"""
