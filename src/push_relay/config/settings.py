"""Application settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``PUSHRELAY_``, nested via ``__``)
2. YAML config file (``PUSHRELAY_CONFIG_PATH`` env var or ``AppConfig.from_yaml``)
3. Defaults defined here
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class ServerConfig(BaseSettings):
    """HTTP server settings."""

    model_config = SettingsConfigDict(
        env_prefix="PUSHRELAY_SERVER__",
        case_sensitive=False,
    )

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 4701
    log_level: str = "info"


class StreamConfig(BaseSettings):
    """Upstream event-stream (collector) connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="PUSHRELAY_STREAM__",
        case_sensitive=False,
    )

    host: str = "localhost"
    port: int = 4444
    path: str = "/"
    reconnect_delay: float = Field(default=3.0, ge=0, description="Seconds between attempts")
    max_reconnect_attempts: int = Field(default=5, ge=0)
    open_timeout: float = 10.0
    verbose: bool = False

    @property
    def url(self) -> str:
        """Return the websocket URL of the event source."""
        path = self.path if self.path.startswith("/") else f"/{self.path}"
        return f"ws://{self.host}:{self.port}{path}"


class StoreConfig(BaseSettings):
    """Subscription snapshot storage settings."""

    model_config = SettingsConfigDict(
        env_prefix="PUSHRELAY_STORE__",
        case_sensitive=False,
    )

    path: str = "subscriptions.json"
    write_timeout: float = 5.0


class PushConfig(BaseSettings):
    """Expo push delivery settings."""

    model_config = SettingsConfigDict(
        env_prefix="PUSHRELAY_PUSH__",
        case_sensitive=False,
    )

    url: str = "https://exp.host/--/api/v2/push/send"
    access_token: str = ""
    timeout: float = 10.0


class MetricsConfig(BaseSettings):
    """Prometheus metrics settings."""

    model_config = SettingsConfigDict(
        env_prefix="PUSHRELAY_METRICS__",
        case_sensitive=False,
    )

    enabled: bool = True


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file and return its contents as a dict.

    Returns an empty dict if the file doesn't exist or is empty.
    """
    p = Path(path)
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Loads settings from environment variables (``PUSHRELAY_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="PUSHRELAY_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    debug: bool = False
    config_path: str = ""
    enable_stream: bool = True

    server: ServerConfig = Field(default_factory=ServerConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    push: PushConfig = Field(default_factory=PushConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge YAML config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        yaml_data = _load_yaml(config_path)
        # YAML values serve as defaults; env vars (already in *values*) win.
        for key, val in yaml_data.items():
            if key not in values or values[key] is None:
                values[key] = val
            elif isinstance(val, dict) and isinstance(values.get(key), dict):
                merged = {**val, **values[key]}
                values[key] = merged
        return values

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Construct ``AppConfig`` loading defaults from a YAML file.

        Environment variables still override YAML values.
        """
        return cls(config_path=str(path))
