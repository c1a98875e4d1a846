"""
Centralized configuration for the Tanzu CLI.

Uses Pydantic BaseSettings for environment variable integration
and validation.

Configuration sources (in order of precedence):
1. Explicit constructor arguments
2. Environment variables (TANZU_CLI_*)
3. Default values

Example:
    from tanzucli.config import get_config

    config = get_config()
    print(config.telemetry_dir)  # From TANZU_CLI_TELEMETRY_DIR or default
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tanzucli.constants import (
    COMMAND_TREE_FILE_NAME,
    METRICS_DB_LOCK_FILE_NAME,
    METRICS_DB_LOCK_TIMEOUT_S,
    PLUGIN_DOCS_DIR_NAME,
    PLUGINS_COMMAND_TREE_DIR,
    SQLITE_DB_FILE_NAME,
    TEST_CUSTOM_PLUGIN_COMMAND_TREE_CACHE_DIR,
)


class TanzuCLIConfig(BaseSettings):
    """
    Central configuration for the CLI.

    All settings can be overridden via environment variables
    prefixed with TANZU_CLI_.

    Example:
        export TANZU_CLI_TELEMETRY_DIR=/tmp/telemetry
        export TANZU_CLI_SHOW_TELEMETRY_CONSOLE_LOGS=true
    """

    model_config = SettingsConfigDict(
        env_prefix="TANZU_CLI_",
        extra="ignore",
    )

    config_dir: str = Field(
        default="~/.config/tanzu",
        description="Directory holding the client config and plugin catalog",
    )
    cache_dir: str = Field(
        default="~/.cache/tanzu",
        description="Directory for rebuildable caches",
    )
    telemetry_dir: str = Field(
        default="~/.config/tanzu-cli-telemetry",
        description="Directory for the local metrics DB and its lock file",
    )

    show_telemetry_console_logs: bool = Field(
        default=False,
        description="Print telemetry errors and warnings to the console",
    )
    supercollider_environment: str = Field(
        default="",
        description="Telemetry environment; 'staging' marks metrics as internal",
    )
    metrics_db_lock_timeout_s: float = Field(
        default=METRICS_DB_LOCK_TIMEOUT_S,
        gt=0,
        description="Bounded wait when acquiring the metrics DB lock",
    )

    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="warning",
        description="Logging level for the CLI process",
    )

    @field_validator("config_dir", "cache_dir", "telemetry_dir")
    @classmethod
    def expand_path(cls, v: str) -> str:
        """Expand ~ and environment variables in paths."""
        return os.path.expanduser(os.path.expandvars(v))

    @property
    def client_config_path(self) -> Path:
        return Path(self.config_dir) / "config.yaml"

    @property
    def plugin_catalog_path(self) -> Path:
        return Path(self.config_dir) / "plugins.yaml"

    @property
    def command_tree_cache_dir(self) -> Path:
        custom = os.environ.get(TEST_CUSTOM_PLUGIN_COMMAND_TREE_CACHE_DIR)
        if custom:
            return Path(custom)
        return Path(self.cache_dir) / PLUGINS_COMMAND_TREE_DIR

    @property
    def command_tree_cache_path(self) -> Path:
        return self.command_tree_cache_dir / COMMAND_TREE_FILE_NAME

    @property
    def plugin_docs_dir(self) -> Path:
        return self.command_tree_cache_dir / PLUGIN_DOCS_DIR_NAME

    @property
    def metrics_db_path(self) -> Path:
        return Path(self.telemetry_dir) / SQLITE_DB_FILE_NAME

    @property
    def metrics_db_lock_path(self) -> Path:
        return Path(self.telemetry_dir) / METRICS_DB_LOCK_FILE_NAME


# Global singleton
_config: Optional[TanzuCLIConfig] = None


def get_config(**overrides) -> TanzuCLIConfig:
    """
    Get the global configuration instance.

    Creates a singleton on first call. Subsequent calls return
    the same instance unless overrides are provided.
    """
    global _config

    if overrides or _config is None:
        _config = TanzuCLIConfig(**overrides)

    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
