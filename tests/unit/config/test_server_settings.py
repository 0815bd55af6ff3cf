"""
Tests for server settings resolution: flags > environment > file > defaults.
"""
from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from devserve.core.config import load_server_settings
from devserve.core.exceptions import ConfigurationError
from devserve.core.server import ServerAddress


def _write_config(root: Path, server: dict, name: str = "config.yml") -> Path:
    path = root / ".devserve" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump({"server": server}), encoding="utf-8")
    return path


def test_defaults_with_address_from_flag(tmp_path):
    settings = load_server_settings(overrides={"address": "127.0.0.1:3000"}, cwd=tmp_path, environ={})

    assert settings.address == ServerAddress("127.0.0.1", 3000)
    assert settings.state_file == tmp_path / ".devserve" / "state" / "server.json"
    assert settings.log_file == tmp_path / ".devserve" / "logs" / "server.log"
    assert settings.grace_seconds == 1.0
    assert settings.startup_timeout_seconds == 30.0
    assert settings.address_env == "DEVSERVE_SITE_ADDR"
    assert settings.process_name is None
    assert settings.readiness_pattern is None
    assert settings.config_file is None


def test_missing_address_is_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError):
        load_server_settings(cwd=tmp_path, environ={})


def test_empty_address_is_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError):
        load_server_settings(cwd=tmp_path, environ={"DEVSERVE_SITE_ADDR": "   "})


def test_config_file_values(tmp_path):
    _write_config(
        tmp_path,
        {
            "address": "localhost:8080",
            "process_name": "server-bin",
            "command": "cargo leptos serve --release",
            "readiness_pattern": "listening on",
            "grace_seconds": 2,
            "env": {"RUST_LOG": "info", "WORKERS": 2},
        },
    )

    settings = load_server_settings(cwd=tmp_path, environ={})

    assert settings.address == ServerAddress("localhost", 8080)
    assert settings.require_process_name() == "server-bin"
    assert settings.command == ["cargo", "leptos", "serve", "--release"]
    assert settings.readiness_pattern == "listening on"
    assert settings.grace_seconds == 2.0
    assert settings.env == {"RUST_LOG": "info", "WORKERS": "2"}
    assert settings.config_file == tmp_path / ".devserve" / "config.yml"


def test_environment_overrides_file_and_flags_override_environment(tmp_path):
    _write_config(tmp_path, {"address": "localhost:8080", "process_name": "from-file", "grace_seconds": 2})
    environ = {
        "DEVSERVE_SITE_ADDR": "127.0.0.1:9000",
        "DEVSERVE_PROCESS_NAME": "from-env",
        "DEVSERVE_GRACE_SECONDS": "0.5",
        "DEVSERVE_PROGRESS": "off",
    }

    from_env = load_server_settings(cwd=tmp_path, environ=environ)
    from_flag = load_server_settings(
        overrides={"address": "127.0.0.1:9100", "process_name": None}, cwd=tmp_path, environ=environ
    )

    assert from_env.address.port == 9000
    assert from_env.process_name == "from-env"
    assert from_env.grace_seconds == 0.5
    assert from_env.progress is False
    assert from_flag.address.port == 9100
    # None overrides mean "flag not given".
    assert from_flag.process_name == "from-env"


def test_numeric_process_name_from_environment_stays_a_string(tmp_path):
    settings = load_server_settings(
        cwd=tmp_path, environ={"DEVSERVE_SITE_ADDR": "h:1", "DEVSERVE_PROCESS_NAME": "42"}
    )
    assert settings.process_name == "42"


def test_command_from_environment_as_json_list(tmp_path):
    settings = load_server_settings(
        cwd=tmp_path,
        environ={"DEVSERVE_SITE_ADDR": "h:1", "DEVSERVE_COMMAND": '["python", "-m", "http.server"]'},
    )
    assert settings.command == ["python", "-m", "http.server"]


def test_unknown_key_in_file_is_rejected(tmp_path):
    _write_config(tmp_path, {"address": "h:1", "grace": 3})
    with pytest.raises(ConfigurationError, match="grace"):
        load_server_settings(cwd=tmp_path, environ={})


def test_wrong_type_from_environment_is_rejected(tmp_path):
    with pytest.raises(ConfigurationError):
        load_server_settings(cwd=tmp_path, environ={"DEVSERVE_SITE_ADDR": "h:1", "DEVSERVE_GRACE_SECONDS": "soon"})


def test_invalid_yaml_is_configuration_error(tmp_path):
    path = tmp_path / ".devserve" / "config.yml"
    path.parent.mkdir()
    path.write_text("server: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_server_settings(cwd=tmp_path, environ={"DEVSERVE_SITE_ADDR": "h:1"})


def test_explicit_config_must_exist(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_server_settings(config_path="missing.yml", cwd=tmp_path, environ={"DEVSERVE_SITE_ADDR": "h:1"})


def test_relative_paths_resolve_against_project_root(tmp_path):
    project = tmp_path / "project"
    config = _write_config(project, {"address": "h:1", "state_file": "run/state.json", "cwd": "app"}, "custom.yml")
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()

    settings = load_server_settings(cwd=elsewhere, environ={"DEVSERVE_CONFIG": str(config)})

    assert settings.project_root == project.resolve()
    assert settings.state_file == project.resolve() / "run" / "state.json"
    assert settings.cwd == project.resolve() / "app"


def test_require_helpers_raise_configuration_error(tmp_path):
    settings = load_server_settings(cwd=tmp_path, environ={"DEVSERVE_SITE_ADDR": "h:1"})
    with pytest.raises(ConfigurationError):
        settings.require_process_name()
    with pytest.raises(ConfigurationError):
        settings.require_command()
    with pytest.raises(ConfigurationError):
        settings.require_readiness()
