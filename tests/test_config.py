from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from app_shell import backend_runner
from app_shell import main as shell_main
from app_shell.backend_supervisor import child_command
from app_shell.config import (
    BACKEND_MODE_CHILD,
    BACKEND_MODE_DIRECT,
    DEFAULT_HANDSHAKE_TIMEOUT_MS,
    AppConfig,
)


def test_from_env_reads_cli_options(tmp_path: Path) -> None:
    argv = [
        "app-shell",
        "--backend",
        "server.main:serve",
        "--backend-mode",
        "child",
        "--state",
        str(tmp_path / "s.json"),
        "--handshake-timeout",
        "500",
        "--qt-flag",
    ]

    config, rest = AppConfig.from_env(argv, environ={"HOME": str(tmp_path)})

    assert config.backend_main == "server.main:serve"
    assert config.backend_mode == BACKEND_MODE_CHILD
    assert config.is_child_mode
    assert config.state_path == str((tmp_path / "s.json").resolve())
    assert config.handshake_timeout_ms == 500
    assert config.environment == {"HOME": str(tmp_path)}
    # Unknown options are left for Qt.
    assert rest == ["app-shell", "--qt-flag"]


def test_from_env_falls_back_to_environment(tmp_path: Path) -> None:
    environ = {
        "APP_SHELL_BACKEND": "svc:run",
        "APP_SHELL_BACKEND_MODE": "direct",
        "APP_SHELL_HANDSHAKE_TIMEOUT_MS": "1500",
        "APP_SHELL_NAME": "Demo",
        "APP_SHELL_INDEX": str(tmp_path / "index.html"),
        "APP_SHELL_STATE": str(tmp_path / "state.json"),
    }

    config, _ = AppConfig.from_env(["app"], environ=environ)

    assert config.application_name == "Demo"
    assert config.backend_main == "svc:run"
    assert config.backend_mode == BACKEND_MODE_DIRECT
    assert config.handshake_timeout_ms == 1500
    assert Path(config.index_html) == (tmp_path / "index.html").resolve()


def test_defaults_depend_on_frozen_build(monkeypatch, tmp_path: Path) -> None:
    config, _ = AppConfig.from_env(["app"], environ={"APP_SHELL_STATE": str(tmp_path / "s.json")})
    assert config.backend_mode == BACKEND_MODE_DIRECT
    assert config.handshake_timeout_ms == DEFAULT_HANDSHAKE_TIMEOUT_MS

    monkeypatch.setattr(sys, "frozen", True, raising=False)
    config, _ = AppConfig.from_env(["app"], environ={"APP_SHELL_STATE": str(tmp_path / "s.json")})
    assert config.backend_mode == BACKEND_MODE_CHILD


def test_log_options_are_reflected_into_environment(monkeypatch) -> None:
    monkeypatch.setenv("APP_SHELL_LOG_LEVEL", "info")
    monkeypatch.setenv("APP_SHELL_LOG_CATS", "")

    AppConfig.from_env(["app", "--log-level", "debug", "--log-cats", "supervisor"], environ={})

    assert os.environ["APP_SHELL_LOG_LEVEL"] == "debug"
    assert os.environ["APP_SHELL_LOG_CATS"] == "supervisor"


def test_default_state_path_uses_application_name(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

    config = AppConfig(application_name="My App")

    assert Path(config.state_path) == (tmp_path / "my-app" / "state.json").resolve()


@pytest.mark.parametrize(
    "kwargs",
    [{"backend_mode": "thread"}, {"handshake_timeout_ms": -1}, {"save_delay_ms": -5}],
)
def test_invalid_values_are_rejected(kwargs, tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        AppConfig(state_path=str(tmp_path / "s.json"), **kwargs)


def test_child_command_for_module_entry(tmp_path: Path) -> None:
    config = AppConfig(backend_main="server.main:serve", state_path=str(tmp_path / "s.json"), python_executable="py")

    assert child_command(config) == ("py", ["-m", "app_shell.backend_runner", "server.main:serve"])


def test_child_command_for_script(tmp_path: Path) -> None:
    script = tmp_path / "backend.py"
    script.write_text("", encoding="utf-8")
    config = AppConfig(backend_main=str(script), state_path=str(tmp_path / "s.json"), python_executable="py")

    assert child_command(config) == ("py", [str(script.resolve())])


def test_frozen_shell_hosts_the_backend_itself(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(sys, "frozen", True, raising=False)
    monkeypatch.setattr(sys, "executable", "/opt/App Shell/app-shell")

    config, _ = AppConfig.from_env(
        ["app-shell", "--backend", "mybackend.server:main", "--state", str(tmp_path / "s.json")],
        environ={},
    )

    assert config.is_child_mode
    assert child_command(config) == ("/opt/App Shell/app-shell", ["--backend-runner", "mybackend.server:main"])


def test_frozen_shell_uses_configured_interpreter(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(sys, "frozen", True, raising=False)

    config, _ = AppConfig.from_env(
        ["app-shell", "--backend", "svc:run", "--state", str(tmp_path / "s.json")],
        environ={"APP_SHELL_PYTHON": "/usr/bin/python3"},
    )

    assert child_command(config) == ("/usr/bin/python3", ["-m", "app_shell.backend_runner", "svc:run"])


def test_python_option_overrides_environment(tmp_path: Path) -> None:
    config, rest = AppConfig.from_env(
        ["app", "--python", "/venv/bin/python", "--state", str(tmp_path / "s.json")],
        environ={"APP_SHELL_PYTHON": "/usr/bin/python3"},
    )

    assert config.python_executable == "/venv/bin/python"
    assert rest == ["app"]


def test_unfrozen_default_interpreter_is_the_current_one(tmp_path: Path) -> None:
    config = AppConfig(backend_main="svc:run", state_path=str(tmp_path / "s.json"))

    assert child_command(config) == (sys.executable, ["-m", "app_shell.backend_runner", "svc:run"])


def test_runner_flag_is_dispatched_before_qt_setup(monkeypatch) -> None:
    calls: list[list[str]] = []

    def _runner(argv):
        calls.append(argv)
        return 0

    monkeypatch.setattr(backend_runner, "main", _runner)
    monkeypatch.setattr(shell_main, "QApplication", None)

    assert shell_main.run(["app-shell", "--backend-runner", "svc:run"]) == 0
    assert calls == [["svc:run"]]
