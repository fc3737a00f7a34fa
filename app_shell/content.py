"""Window content plumbing: the bridge exposed to page scripts and the
action channel that carries page requests back to the controller.

Page scripts reach the shell through `QWebChannel` as the `shell` object:

    shell.createNewWindow(url)
    shell.openExternal(url)
    shell.message.connect((channel, payload) => ...)

Content widgets (see `web_view.WebContentView`) provide `open_url(url)`,
`send(channel, payload)`, `toggle_dev_tools()` and the signals
`ready_to_show()` / `new_window_requested(str)`.
"""

from __future__ import annotations

from collections.abc import Callable

from PySide6.QtCore import QObject, Qt, QUrl, Signal, Slot
from PySide6.QtGui import QDesktopServices
from PySide6.QtWidgets import QApplication, QWidget

from .logger import get_logger

_logger = get_logger("content")

BRIDGE_OBJECT_NAME = "shell"


class ActionChannel(QObject):
    """Requests coming from window content, consumed by the controller."""

    create_new_window = Signal(str)
    open_external = Signal(str)


class ContentBridge(QObject):
    """Per-window object published to page scripts."""

    message = Signal(str, "QVariant")  # channel, payload

    def __init__(self, actions: ActionChannel, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._actions = actions

    @Slot(str)
    def createNewWindow(self, url: str) -> None:
        self._actions.create_new_window.emit(url)

    @Slot(str)
    def openExternal(self, url: str) -> None:
        self._actions.open_external.emit(url)


ContentFactory = Callable[[ActionChannel], QWidget]


def open_external_url(url: str) -> bool:
    """Hand a URL to the OS default handler (usually the browser)."""
    ok = QDesktopServices.openUrl(QUrl(url))
    if not ok:
        _logger.warning("no handler accepted external url: %s", url)
    return ok


def prepare_web_engine() -> None:
    """QtWebEngine must be loaded before the QApplication exists."""
    if QApplication.instance() is None:
        QApplication.setAttribute(Qt.ApplicationAttribute.AA_ShareOpenGLContexts)
    from PySide6 import QtWebEngineWidgets  # noqa: F401


def create_web_content(actions: ActionChannel) -> QWidget:
    """Default content factory used by the window manager."""
    # Imported lazily: QtWebEngine is heavy and only needed for real windows.
    from .web_view import WebContentView

    return WebContentView(actions)
