# === NAVMAP v1 ===
# {
#   "module": "SafeArchive.Unarchive.settings",
#   "purpose": "Default configuration, logging settings, and environment overrides",
#   "sections": [
#     {"id": "logging-settings", "name": "LoggingSettings", "anchor": "LOG", "kind": "pydantic"},
#     {"id": "resolved-config", "name": "ResolvedConfig", "anchor": "CFG", "kind": "pydantic"},
#     {"id": "environment", "name": "EnvironmentOverrides", "anchor": "ENV", "kind": "settings"},
#     {"id": "defaults", "name": "Default Config Cache", "anchor": "DEF", "kind": "helpers"}
#   ]
# }
# === /NAVMAP ===

"""Configuration for the unarchive subsystem.

Defaults come from :class:`ExtractionSettings` and :class:`LoggingSettings`;
``UNARCHIVE_*`` environment variables override individual fields.  The
resolved configuration is cached process-wide and only read after creation.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .io.extraction_policy import ExtractionSettings

__all__ = [
    "LoggingSettings",
    "ResolvedConfig",
    "EnvironmentOverrides",
    "get_env_overrides",
    "get_default_config",
    "reset_default_config",
]


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(validate_assignment=True)

    level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_dir: Optional[Path] = Field(
        default=None,
        description="Directory for rotating JSONL logs; console only when unset",
    )
    max_log_size_mb: int = Field(default=100, ge=1, description="Rotate log files at this size")
    retention_days: int = Field(default=30, ge=1, description="Days before logs are compressed")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Normalize and validate logging level."""
        upper = v.upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {sorted(valid_levels)}, got '{v}'")
        return upper

    def level_int(self) -> int:
        """Convert level string to logging module integer."""
        return getattr(logging, self.level)


class ResolvedConfig(BaseModel):
    """Extraction and logging settings resolved for this process."""

    model_config = ConfigDict(validate_assignment=True)

    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_defaults(cls) -> "ResolvedConfig":
        return cls()


class EnvironmentOverrides(BaseSettings):
    """Pydantic settings model exposing ``UNARCHIVE_*`` environment overrides."""

    strip_components: Optional[int] = None
    inspect_first: Optional[bool] = None
    allow_symlinks: Optional[bool] = None
    allow_hardlinks: Optional[bool] = None
    preserve_permissions: Optional[bool] = None
    max_entries: Optional[int] = None
    max_file_size_bytes: Optional[int] = None
    log_level: Optional[str] = None
    log_dir: Optional[Path] = None

    model_config = SettingsConfigDict(env_prefix="UNARCHIVE_", case_sensitive=False, extra="ignore")


_EXTRACTION_FIELDS = (
    "strip_components",
    "inspect_first",
    "allow_symlinks",
    "allow_hardlinks",
    "preserve_permissions",
    "max_entries",
    "max_file_size_bytes",
)

_DEFAULT_CONFIG_LOCK = threading.RLock()
_DEFAULT_CONFIG_CACHE: Optional[ResolvedConfig] = None


def get_env_overrides() -> Dict[str, str]:
    """Return environment-derived overrides as stringified key/value pairs."""

    env = EnvironmentOverrides()
    return {key: str(value) for key, value in env.model_dump(exclude_none=True).items()}


def _apply_env_overrides(config: ResolvedConfig) -> None:
    """Mutate ``config`` in-place using values from :class:`EnvironmentOverrides`."""

    env = EnvironmentOverrides()
    logger = logging.getLogger("SafeArchive.Unarchive")

    for name in _EXTRACTION_FIELDS:
        value = getattr(env, name)
        if value is None:
            continue
        setattr(config.extraction, name, value)
        logger.info("Config overridden: %s=%s", name, value, extra={"stage": "config"})
    if env.log_level is not None:
        config.logging.level = env.log_level
        logger.info("Config overridden: log_level=%s", env.log_level, extra={"stage": "config"})
    if env.log_dir is not None:
        config.logging.log_dir = env.log_dir
        logger.info("Config overridden: log_dir=%s", env.log_dir, extra={"stage": "config"})


def get_default_config(*, copy: bool = False) -> ResolvedConfig:
    """Return the cached default configuration with environment overrides applied."""

    global _DEFAULT_CONFIG_CACHE  # noqa: PLW0603

    with _DEFAULT_CONFIG_LOCK:
        if _DEFAULT_CONFIG_CACHE is None:
            config = ResolvedConfig.from_defaults()
            _apply_env_overrides(config)
            _DEFAULT_CONFIG_CACHE = config
        cached = _DEFAULT_CONFIG_CACHE
    return cached.model_copy(deep=True) if copy else cached


def reset_default_config() -> None:
    """Invalidate the cached default configuration."""

    global _DEFAULT_CONFIG_CACHE  # noqa: PLW0603

    with _DEFAULT_CONFIG_LOCK:
        _DEFAULT_CONFIG_CACHE = None
