"""GPIO Bridge — Configuration.

Configuration is loaded from (in order of increasing priority):
    1. Built-in defaults (this file)
    2. System config: /etc/gpio-bridge/config.yaml
    3. User config:   ~/.gpio-bridge/config.yaml
    4. The file named by GPIO_BRIDGE_CONFIG, or the one passed to ``Settings.load()``
    5. Environment variables prefixed with GPIO_BRIDGE_

YAML files are merged key by key, so a user file can override ``daemon.port``
and keep the system file's ``daemon.host``.  Nested keys use ``__`` in
environment variables, e.g. ``GPIO_BRIDGE_DAEMON__HOST=raspberrypi.local``.
Environment variables only reach blocks that no YAML file sets.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gpio_bridge.constants import ControllerLimits

CONFIG_ENV_VAR = "GPIO_BRIDGE_CONFIG"
SYSTEM_CONFIG = Path("/etc/gpio-bridge/config.yaml")
USER_CONFIG = Path("~/.gpio-bridge/config.yaml")


class DaemonConfig(BaseModel):
    host: str = Field(
        default="localhost",
        description="pigpiod host used when connect() is called with an empty host.",
    )
    port: int = Field(default=8888, ge=1, le=65535)
    timeout_seconds: Annotated[float, Field(gt=0)] | None = Field(
        default=None,
        description="Socket timeout applied to every new session. None = block.",
    )

    @field_validator("host")
    @classmethod
    def _blank_host_is_localhost(cls, value: str) -> str:
        return value.strip() or "localhost"


class DirectConfig(BaseModel):
    controller: Literal["auto", "rpi", "mock"] = Field(
        default="auto",
        description=(
            "Local controller: 'rpi' (RPi.GPIO/spidev/smbus2), 'mock' (in-memory), "
            "or 'auto' (rpi on a Raspberry Pi, mock elsewhere)."
        ),
    )


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: Literal["json", "console"] = "console"
    file: Path | None = None


def _read_yaml(path: Path) -> dict[str, Any]:
    with path.open() as f:
        loaded = yaml.safe_load(f)
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return loaded


def _deep_merge(base: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GPIO_BRIDGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    backend: Literal["direct", "daemon"] = "direct"
    daemon: DaemonConfig = Field(default_factory=DaemonConfig)
    direct: DirectConfig = Field(default_factory=DirectConfig)
    limits: ControllerLimits = Field(default_factory=ControllerLimits)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_file: Path | None = None) -> "Settings":
        """Merge the YAML files that exist, then let the environment fill the rest."""
        candidates = [SYSTEM_CONFIG, USER_CONFIG.expanduser()]
        explicit = config_file or os.environ.get(CONFIG_ENV_VAR)
        if explicit:
            candidates.append(Path(explicit).expanduser())

        data: dict[str, Any] = {}
        for path in candidates:
            if path.exists():
                _deep_merge(data, _read_yaml(path))
        return cls(**data)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def override_settings(settings: Settings | None) -> None:
    """Replace the process-wide settings; ``None`` forces a reload. Used in tests."""
    global _settings
    _settings = settings
