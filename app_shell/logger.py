import logging
import os
import sys

LEVEL_ENV = "APP_SHELL_LOG_LEVEL"
CATEGORIES_ENV = "APP_SHELL_LOG_CATS"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class _CategoryFilter(logging.Filter):
    """Keeps records whose last logger-name component is an allowed category.

    `app_shell.supervisor` has the category `supervisor`; the backend's
    forwarded stderr arrives under that category too.
    """

    def __init__(self, categories: set[str]) -> None:
        super().__init__()
        self.categories = categories

    def filter(self, record: logging.LogRecord) -> bool:
        return (record.name or "").rsplit(".", 1)[-1] in self.categories


def setup_logger(level: int = logging.INFO, name: str = "app_shell") -> logging.Logger:
    """Configure the shell's logger and return it.

    Safe to call repeatedly. Level and categories are re-read from the
    environment each time, so `--log-level`/`--log-cats` handled after the
    first call still apply.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_LEVELS.get((os.getenv(LEVEL_ENV) or "").strip().lower(), level))

    handler = next(
        (h for h in logger.handlers if isinstance(h, logging.StreamHandler) and h.stream is sys.stderr),
        None,
    )
    if handler is None:
        handler = logging.StreamHandler(stream=sys.stderr)
        logger.addHandler(handler)
    handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s", "%H:%M:%S"))

    handler.filters.clear()
    categories = {c.strip() for c in (os.getenv(CATEGORIES_ENV) or "").split(",") if c.strip()}
    if categories:
        handler.addFilter(_CategoryFilter(categories))

    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    base = setup_logger()
    return base if not name else base.getChild(name)
