import sys

from PySide6.QtWidgets import QApplication

from . import backend_runner
from .config import AppConfig
from .content import prepare_web_engine
from .controller import ApplicationController
from .logger import get_logger, setup_logger


def run(argv: list[str] | None = None) -> int:
    """Application entrypoint (packaging-friendly)."""
    if argv is None:
        argv = sys.argv

    # A frozen shell is also the backend host: see `child_command`.
    if len(argv) > 1 and argv[1] == backend_runner.RUNNER_FLAG:
        return backend_runner.main(argv[2:])

    # Parse our own options first so Qt never sees them; logging options are
    # reflected into the environment before the logger is configured.
    config, qt_argv = AppConfig.from_env(argv)
    setup_logger()
    logger = get_logger("main")
    if not config.backend_main:
        logger.error("no backend configured (use --backend or APP_SHELL_BACKEND)")
        return 2

    prepare_web_engine()
    app = QApplication(qt_argv)
    app.setApplicationName(config.application_name)

    controller = ApplicationController(app, config)
    controller.start()
    code = app.exec()
    logger.debug("event loop finished: %s", code)
    return controller.exit_code or code


if __name__ == "__main__":
    sys.exit(run())
