"""
Centralized settings for persistent enumerations.

All fields can be set via ``PERSISTENT_ENUM_*`` environment variables (e.g.
``PERSISTENT_ENUM_MAINTENANCE_MODE=true``) or through a ``.env`` file.

Fields
──────
database_url          : Default database for the CLI
database_echo         : Log all SQL emitted by engines built from settings
log_level / log_format: structlog configuration used by the CLI
maintenance_mode      : Force the dummy fallback to be allowed
maintenance_commands  : Program names treated as maintenance runners
dummy_ordinal_start   : First synthetic ordinal handed out by the dummy store
enum_type_lock_key    : PostgreSQL advisory lock key guarding ``ALTER TYPE``

Tags:
    settings, configuration, pydantic, environment, persistent-enum

Doc-Types:
    api-reference
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PersistentEnumSettings(BaseSettings):
    """Persistent enumeration configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PERSISTENT_ENUM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Database ─────────────────────────────────────────────────
    database_url: str = Field(default="sqlite:///enums.db")
    database_echo: bool = Field(default=False)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console", description="console or json")

    # ── Fallback ─────────────────────────────────────────────────
    maintenance_mode: bool = Field(
        default=False,
        description="Allow dummy members when the enum table is invalid",
    )
    maintenance_commands: list[str] = Field(
        default=["alembic"],
        description="Program basenames whose presence marks a maintenance run",
    )
    dummy_ordinal_start: int = Field(default=1_000_000_000)

    # ── Native enum types ────────────────────────────────────────
    enum_type_lock_key: int = Field(default=0x757A6CAFEDC6084D)


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, PersistentEnumSettings] = {}


def get_settings(*, _force_reload: bool = False) -> PersistentEnumSettings:
    """Load, validate and cache a :class:`PersistentEnumSettings` instance."""
    if _force_reload or "default" not in _settings_cache:
        _settings_cache["default"] = PersistentEnumSettings()
    return _settings_cache["default"]


def clear_settings_cache() -> None:
    """Drop the cached settings (for testing)."""
    _settings_cache.clear()


__all__ = ["PersistentEnumSettings", "get_settings", "clear_settings_cache"]
