"""Application configuration using Pydantic Settings.

These are process-level settings read from the environment. The repository
rules live in the hot-reloadable hook file handled by
:mod:`hook_runner.services.config_store`.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="HOOK_RUNNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["dev", "staging", "prod"] = "dev"
    debug: bool = False

    # Hook file (Logfile / Address / Port / Repositories)
    config_path: str = "config.json"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_to_stdout: bool = True

    # Command execution
    command_timeout_seconds: float = 900.0  # 0 disables the timeout
    command_shell: bool = False
    command_working_dir: str | None = None
    max_concurrent_dispatches: int = 8  # pushes running commands at the same time

    # Reload
    enable_reload_signal: bool = True
    admin_token: str = ""

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "prod"

    @property
    def command_timeout(self) -> float | None:
        """Command timeout in seconds, or None when disabled."""
        if self.command_timeout_seconds <= 0:
            return None
        return self.command_timeout_seconds


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
