"""
Connector settings for db-spine.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.
    The operator configures a traversal with a handful of values (where
    the database is, which query to page through, which columns form the
    primary key); everything else is derived.

    - **Pydantic validation:** Type-checked at startup, not mid-crawl
    - **Environment-driven:** ``DBSPINE_*`` env vars and ``.env`` files
    - **Sensible defaults:** Works out of the box against a local SQLite file

Examples:
    >>> settings = ConnectorSettings(primary_keys="id,last_name", db_name="hr")
    >>> settings.primary_keys
    ['id', 'last_name']
    >>> settings.fetch_limit
    300

Tags:
    settings, configuration, pydantic, environment, db-spine

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class ConnectorSettings(BaseSettings):
    """Traversal configuration.

    All fields can be set via ``DBSPINE_*`` environment variables (e.g.
    ``DBSPINE_PRIMARY_KEYS=id,version``) or through a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="DBSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Source ───────────────────────────────────────────────────
    database_url: str = Field(default="sqlite:///data/source.db")
    sql_query: str = Field(default="SELECT * FROM documents ORDER BY id")
    db_name: str = Field(default="db", description="Logical name used in display URLs")
    hostname: str = Field(default="localhost", description="Host part of display URLs")
    primary_keys: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["id"])

    # ── Feed shaping ─────────────────────────────────────────────
    base_url: str | None = Field(default=None, description="Prefix for dbconn_url values")

    # ── Traversal ────────────────────────────────────────────────
    batch_hint: int = Field(default=100, gt=0)

    # ── Storage ──────────────────────────────────────────────────
    work_dir: Path = Field(default=Path("data"))
    state_file: str = Field(default="dbspine_state.json")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")

    @field_validator("primary_keys", mode="before")
    @classmethod
    def _split_primary_keys(cls, value: object) -> object:
        if isinstance(value, str):
            return [key.strip() for key in value.split(",") if key.strip()]
        return value

    @property
    def state_path(self) -> Path:
        return self.work_dir / self.state_file

    @property
    def fetch_limit(self) -> int:
        """Rows requested per fetch (three batches ahead of the consumer)."""
        return 3 * self.batch_hint


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, ConnectorSettings] = {}


def get_settings(*, _force_reload: bool = False) -> ConnectorSettings:
    """Load, validate, and cache a :class:`ConnectorSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = ConnectorSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the cached settings (tests, config reload)."""
    _settings_cache.clear()
