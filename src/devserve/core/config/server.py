"""Server settings resolved from flags, environment, config file and defaults.

Precedence (highest first):
    1. Explicit overrides (CLI flags)
    2. Environment variables: DEVSERVE_<KEY> (e.g. DEVSERVE_GRACE_SECONDS);
       DEVSERVE_SITE_ADDR is accepted for ``address``
    3. ``server:`` section of the YAML config file
       (``.devserve/config.yml``, or DEVSERVE_CONFIG / ``--config``)
    4. Built-in defaults
"""
from __future__ import annotations

import json
import os
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from devserve.core.exceptions import ConfigurationError
from devserve.core.schemas import validate_payload_safe
from devserve.core.server.models import ServerAddress
from devserve.core.utils.io import read_yaml

CONFIG_DIRNAME = ".devserve"
CONFIG_FILENAME = "config.yml"
CONFIG_SCHEMA = "config"
ENV_PREFIX = "DEVSERVE_"

DEFAULTS: Dict[str, Any] = {
    "address_env": "DEVSERVE_SITE_ADDR",
    "startup_timeout_seconds": 30.0,
    "grace_seconds": 1.0,
    "kill_wait_seconds": 1.0,
    "poll_interval_seconds": 0.1,
    "probe_timeout_seconds": 0.75,
    "state_file": f"{CONFIG_DIRNAME}/state/server.json",
    "log_file": f"{CONFIG_DIRNAME}/logs/server.log",
}

# Keys whose environment value is taken verbatim (never coerced).
_STRING_KEYS = frozenset(
    {"address", "process_name", "cwd", "address_env", "readiness_pattern", "readiness_url", "state_file", "log_file"}
)
_ENV_KEYS = _STRING_KEYS | frozenset(
    {
        "command",
        "startup_timeout_seconds",
        "grace_seconds",
        "kill_wait_seconds",
        "poll_interval_seconds",
        "probe_timeout_seconds",
        "progress",
    }
)
_ENV_ALIASES = {"DEVSERVE_SITE_ADDR": "address"}


def _as_bool(v: str) -> Optional[bool]:
    low = v.strip().lower()
    if low in {"true", "1", "yes", "on"}:
        return True
    if low in {"false", "0", "no", "off"}:
        return False
    return None


def _coerce_type(key: str, value: str) -> Any:
    if key in _STRING_KEYS:
        return value
    if key == "progress":
        parsed = _as_bool(value)
        return value if parsed is None else parsed
    s = value.strip()
    if key == "command":
        if s.startswith("["):
            try:
                return json.loads(s)
            except ValueError:
                return value
        return value
    if re.fullmatch(r"[-+]?\d+", s):
        return int(s)
    if re.fullmatch(r"[-+]?\d*\.\d+", s) or re.fullmatch(r"[-+]?\d+\.\d*", s):
        return float(s)
    return value


def env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    """Collect DEVSERVE_<KEY> overrides for known server keys."""
    found: Dict[str, Any] = {}
    for var, key in _ENV_ALIASES.items():
        if environ.get(var, "").strip():
            found[key] = environ[var]
    for key in sorted(_ENV_KEYS):
        var = ENV_PREFIX + key.upper()
        raw = environ.get(var)
        if raw is None or not raw.strip():
            continue
        found[key] = _coerce_type(key, raw)
    return found


def _locate_config(
    config_path: Path | str | None, cwd: Path, environ: Mapping[str, str]
) -> tuple[Path, bool]:
    explicit = config_path or environ.get(ENV_PREFIX + "CONFIG")
    if explicit:
        path = Path(explicit).expanduser()
        return (path if path.is_absolute() else cwd / path), True
    return cwd / CONFIG_DIRNAME / CONFIG_FILENAME, False


def _project_root(config_file: Optional[Path], cwd: Path) -> Path:
    if config_file is None:
        return cwd
    parent = config_file.resolve().parent
    return parent.parent if parent.name == CONFIG_DIRNAME else parent


def _load_file(path: Path, *, required: bool) -> Dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"config file not found: {path}", context={"path": str(path)})
        return {}
    try:
        data = read_yaml(path, default={}, raise_on_error=True)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"cannot read config file {path}: {exc}", context={"path": str(path)}) from exc
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"config file {path} must contain a mapping, got {type(data).__name__}",
            context={"path": str(path)},
        )
    errors = validate_payload_safe(data, CONFIG_SCHEMA)
    if errors:
        raise ConfigurationError(
            f"invalid config file {path}: {'; '.join(errors)}",
            context={"path": str(path), "errors": errors},
        )
    return dict(data.get("server") or {})


@dataclass
class ServerSettings:
    """Fully resolved settings for one managed server."""

    address: ServerAddress
    project_root: Path
    state_file: Path
    log_file: Path
    process_name: Optional[str] = None
    command: List[str] = field(default_factory=list)
    cwd: Optional[Path] = None
    env: Dict[str, str] = field(default_factory=dict)
    address_env: Optional[str] = DEFAULTS["address_env"]
    readiness_pattern: Optional[str] = None
    readiness_url: Optional[str] = None
    startup_timeout_seconds: float = DEFAULTS["startup_timeout_seconds"]
    grace_seconds: float = DEFAULTS["grace_seconds"]
    kill_wait_seconds: float = DEFAULTS["kill_wait_seconds"]
    poll_interval_seconds: float = DEFAULTS["poll_interval_seconds"]
    probe_timeout_seconds: float = DEFAULTS["probe_timeout_seconds"]
    progress: Optional[bool] = None
    config_file: Optional[Path] = None

    def require_process_name(self) -> str:
        name = (self.process_name or "").strip()
        if not name:
            raise ConfigurationError(
                "expected process name is missing: pass --process-name, set DEVSERVE_PROCESS_NAME "
                "or server.process_name in the config file",
                context={"address": str(self.address)},
            )
        return name

    def require_command(self) -> List[str]:
        if not self.command:
            raise ConfigurationError(
                "no server command: pass it after 'start' or set server.command in the config file",
                context={"address": str(self.address)},
            )
        return list(self.command)

    def require_readiness(self) -> None:
        if not self.readiness_pattern and not self.readiness_url:
            raise ConfigurationError(
                "no readiness criterion: set --pattern / server.readiness_pattern or --readiness-url",
                context={"address": str(self.address)},
            )


def load_server_settings(
    *,
    overrides: Mapping[str, Any] | None = None,
    config_path: Path | str | None = None,
    cwd: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> ServerSettings:
    """Resolve ``ServerSettings``; raises ``ConfigurationError`` before any side effect."""
    environ = os.environ if environ is None else environ
    cwd = Path(cwd or Path.cwd())
    path, required = _locate_config(config_path, cwd, environ)
    file_values = _load_file(path, required=required)
    config_file = path if path.exists() else None
    root = _project_root(config_file, cwd)

    merged: Dict[str, Any] = dict(DEFAULTS)
    merged.update(file_values)
    merged.update(env_overrides(environ))
    merged.update({k: v for k, v in (overrides or {}).items() if v is not None})

    errors = validate_payload_safe({"server": merged}, CONFIG_SCHEMA)
    if errors:
        raise ConfigurationError(f"invalid server settings: {'; '.join(errors)}", context={"errors": errors})

    address = ServerAddress.parse(merged.get("address"))

    command = merged.get("command") or []
    if isinstance(command, str):
        command = shlex.split(command)

    def _resolve(value: Any) -> Path:
        p = Path(str(value)).expanduser()
        return p if p.is_absolute() else root / p

    return ServerSettings(
        address=address,
        project_root=root,
        state_file=_resolve(merged["state_file"]),
        log_file=_resolve(merged["log_file"]),
        process_name=(str(merged["process_name"]).strip() or None) if merged.get("process_name") else None,
        command=[str(part) for part in command],
        cwd=_resolve(merged["cwd"]) if merged.get("cwd") else root,
        env={str(k): str(v) for k, v in (merged.get("env") or {}).items()},
        address_env=merged.get("address_env") or None,
        readiness_pattern=merged.get("readiness_pattern") or None,
        readiness_url=merged.get("readiness_url") or None,
        startup_timeout_seconds=float(merged["startup_timeout_seconds"]),
        grace_seconds=float(merged["grace_seconds"]),
        kill_wait_seconds=float(merged["kill_wait_seconds"]),
        poll_interval_seconds=float(merged["poll_interval_seconds"]),
        probe_timeout_seconds=float(merged["probe_timeout_seconds"]),
        progress=merged.get("progress"),
        config_file=config_file,
    )


__all__ = [
    "CONFIG_DIRNAME",
    "CONFIG_FILENAME",
    "DEFAULTS",
    "ServerSettings",
    "env_overrides",
    "load_server_settings",
]
