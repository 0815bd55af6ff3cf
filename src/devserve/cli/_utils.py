"""Shared CLI utilities."""
from __future__ import annotations

import argparse
from typing import Any

from devserve.core.config import CONFIG_DIRNAME, ServerSettings, load_server_settings
from devserve.core.stdlib_logging import configure_stdlib_logging

_OVERRIDE_ARGS = ("address", "process_name", "state_file")


def resolve_settings(args: argparse.Namespace, **overrides: Any) -> ServerSettings:
    """Resolve settings for a command without touching the filesystem."""
    values = {key: getattr(args, key, None) for key in _OVERRIDE_ARGS}
    values.update(overrides)
    return load_server_settings(overrides=values, config_path=getattr(args, "config", None))


def setup_logging(args: argparse.Namespace, settings: ServerSettings) -> None:
    configure_stdlib_logging(
        log_path=settings.project_root / CONFIG_DIRNAME / "logs" / "devserve.log",
        verbose=bool(getattr(args, "verbose", False)),
    )


def load_settings(args: argparse.Namespace, **overrides: Any) -> ServerSettings:
    """Resolve settings for a command and set up logging for the invocation."""
    settings = resolve_settings(args, **overrides)
    setup_logging(args, settings)
    return settings


__all__ = ["load_settings", "resolve_settings", "setup_logging"]
