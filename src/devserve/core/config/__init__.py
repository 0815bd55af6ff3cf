"""Configuration loading for devserve."""
from __future__ import annotations

from .server import (
    CONFIG_DIRNAME,
    CONFIG_FILENAME,
    DEFAULTS,
    ServerSettings,
    env_overrides,
    load_server_settings,
)

__all__ = [
    "CONFIG_DIRNAME",
    "CONFIG_FILENAME",
    "DEFAULTS",
    "ServerSettings",
    "env_overrides",
    "load_server_settings",
]
