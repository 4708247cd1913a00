"""Application settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``COUCHFEED_``, nested via ``__``)
2. YAML config file (``config_path`` or ``COUCHFEED_CONFIG_PATH`` env var)
3. Defaults defined here
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from couchfeed.changes.parameters import FeedStyle, NotificationParameters
from couchfeed.http.models import ClientContext


# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class CouchServerConfig(BaseSettings):
    """CouchDB server connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="COUCHFEED_COUCH__",
        case_sensitive=False,
    )

    host: str = "localhost"
    port: int = 5984
    use_ssl: bool = False
    user: str = ""
    password: str = ""
    database: str = ""
    connect_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds allowed for establishing a connection",
    )

    def to_context(self) -> ClientContext:
        """Build the immutable client context for these settings."""
        return ClientContext(
            host=self.host,
            port=self.port,
            scheme="https" if self.use_ssl else "http",
            db=self.database or None,
            user=self.user or None,
            password=self.password or None,
        )


class ChangesConfig(BaseSettings):
    """Change notification defaults."""

    model_config = SettingsConfigDict(
        env_prefix="COUCHFEED_CHANGES__",
        case_sensitive=False,
    )

    heartbeat: int = Field(default=1000, gt=0, description="Long-poll heartbeat in ms")
    style: FeedStyle = FeedStyle.MAIN_ONLY
    include_docs: bool = False
    descending: bool = False
    filter: str = ""
    emit_last_sequence: bool = False
    max_consecutive_failures: int | None = Field(
        default=None,
        gt=0,
        description="Stop notifying after this many failed polls in a row (unset = never)",
    )

    def to_parameters(self) -> NotificationParameters:
        """Build a ``NotificationParameters`` from these settings."""
        return NotificationParameters(
            heartbeat=self.heartbeat,
            style=self.style,
            filter=self.filter or None,
            include_docs=self.include_docs,
            descending=self.descending,
            emit_last_sequence=self.emit_last_sequence,
        )


class MetricsConfig(BaseSettings):
    """Prometheus metrics settings."""

    model_config = SettingsConfigDict(
        env_prefix="COUCHFEED_METRICS__",
        case_sensitive=False,
    )

    enabled: bool = True


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Read a YAML settings file; a missing, empty or non-mapping file yields ``{}``."""
    source = Path(path)
    if not source.is_file():
        return {}
    data = yaml.safe_load(source.read_text(encoding="utf-8"))
    return data if isinstance(data, dict) else {}


def _fill_missing(overrides: dict[str, Any], defaults: dict[str, Any]) -> dict[str, Any]:
    """Return *overrides* with gaps filled from *defaults*, one level of sections deep."""
    merged = dict(overrides)
    for key, default in defaults.items():
        current = merged.get(key)
        if current is None:
            merged[key] = default
        elif isinstance(current, dict) and isinstance(default, dict):
            merged[key] = {**default, **current}
    return merged


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Loads settings from environment variables (``COUCHFEED_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="COUCHFEED_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    debug: bool = False
    config_path: str = ""

    couch: CouchServerConfig = Field(default_factory=CouchServerConfig)
    changes: ChangesConfig = Field(default_factory=ChangesConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Use the file named by ``config_path`` for settings not given otherwise."""
        path = values.get("config_path")
        if not path:
            return values
        return _fill_missing(values, _load_yaml(path))

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Load settings from *path*; ``COUCHFEED_*`` variables take precedence."""
        return cls(config_path=str(path))
