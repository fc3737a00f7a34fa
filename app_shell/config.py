"""Startup configuration.

Everything the supervisor and controller would otherwise read from the
process globals (environment, paths, frozen/dev mode) is resolved once here
and injected as an `AppConfig`.
"""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from .path_utils import abs_path_str

BACKEND_MODE_DIRECT = "direct"
BACKEND_MODE_CHILD = "child"
_BACKEND_MODES = (BACKEND_MODE_DIRECT, BACKEND_MODE_CHILD)

DEFAULT_APPLICATION_NAME = "App Shell"
DEFAULT_BACKEND_MAIN = ""
DEFAULT_HANDSHAKE_TIMEOUT_MS = 30_000
DEFAULT_SAVE_DELAY_MS = 1000
DEFAULT_WINDOW_STATE_KEY = "windowstate"

_BASE_DIR = Path(getattr(sys, "_MEIPASS", Path(__file__).resolve().parent))


def is_frozen() -> bool:
    return bool(getattr(sys, "frozen", False))


def default_state_path(application_name: str) -> str:
    base = os.getenv("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    folder = application_name.strip().lower().replace(" ", "-") or "app-shell"
    return abs_path_str(os.path.join(base, folder, "state.json"))


@dataclass
class AppConfig:
    application_name: str = DEFAULT_APPLICATION_NAME
    backend_main: str = DEFAULT_BACKEND_MAIN
    backend_mode: str = BACKEND_MODE_DIRECT
    index_html: str = field(default_factory=lambda: (_BASE_DIR / "index.html").as_posix())
    state_path: str = ""
    # Empty means "this interpreter", or the shell executable itself in frozen builds.
    python_executable: str = ""
    environment: dict[str, str] = field(default_factory=dict)
    handshake_timeout_ms: int = DEFAULT_HANDSHAKE_TIMEOUT_MS
    save_delay_ms: int = DEFAULT_SAVE_DELAY_MS
    window_state_key: str = DEFAULT_WINDOW_STATE_KEY

    def __post_init__(self) -> None:
        if self.backend_mode not in _BACKEND_MODES:
            raise ValueError(f"unknown backend mode: {self.backend_mode!r}")
        if self.handshake_timeout_ms < 0:
            raise ValueError("handshake_timeout_ms must be >= 0")
        if self.save_delay_ms < 0:
            raise ValueError("save_delay_ms must be >= 0")
        if not self.state_path:
            self.state_path = default_state_path(self.application_name)

    @property
    def is_child_mode(self) -> bool:
        return self.backend_mode == BACKEND_MODE_CHILD

    @classmethod
    def from_env(
        cls,
        argv: list[str] | None = None,
        environ: dict[str, str] | None = None,
    ) -> tuple[AppConfig, list[str]]:
        """Build a config from `APP_SHELL_*` variables and CLI options.

        Returns the config and the remaining argv (unknown options are left
        for Qt). Logging options are reflected into the environment so the
        logger picks them up on its next setup call.
        """
        if argv is None:
            argv = sys.argv
        env = dict(os.environ if environ is None else environ)

        parser = argparse.ArgumentParser(description="App Shell", add_help=False)
        parser.add_argument("--backend", help="Backend entry point (module:function or script path)")
        parser.add_argument("--backend-mode", choices=_BACKEND_MODES, help="direct (in-process) or child")
        parser.add_argument("--index", help="Path to the index.html loaded into windows")
        parser.add_argument("--state", help="Path of the persisted state file")
        parser.add_argument("--handshake-timeout", type=int, help="Backend readiness timeout in ms (0 disables)")
        parser.add_argument("--python", help="Interpreter used to run the backend child")
        parser.add_argument("--log-level", help="Set log level")
        parser.add_argument("--log-cats", help="Set log categories")
        args, remaining = parser.parse_known_args(argv[1:])

        if args.log_level:
            os.environ["APP_SHELL_LOG_LEVEL"] = args.log_level
        if args.log_cats:
            os.environ["APP_SHELL_LOG_CATS"] = args.log_cats

        name = env.get("APP_SHELL_NAME") or DEFAULT_APPLICATION_NAME
        mode = args.backend_mode or env.get("APP_SHELL_BACKEND_MODE") or (
            BACKEND_MODE_CHILD if is_frozen() else BACKEND_MODE_DIRECT
        )
        timeout = args.handshake_timeout
        if timeout is None:
            timeout = int(env.get("APP_SHELL_HANDSHAKE_TIMEOUT_MS") or DEFAULT_HANDSHAKE_TIMEOUT_MS)

        state = args.state or env.get("APP_SHELL_STATE")
        config = cls(
            application_name=name,
            backend_main=args.backend or env.get("APP_SHELL_BACKEND") or DEFAULT_BACKEND_MAIN,
            backend_mode=mode,
            state_path=abs_path_str(state) if state else "",
            python_executable=args.python or env.get("APP_SHELL_PYTHON") or "",
            environment=env,
            handshake_timeout_ms=timeout,
        )
        index = args.index or env.get("APP_SHELL_INDEX")
        if index:
            config.index_html = abs_path_str(index)
        return config, [argv[0], *remaining]
