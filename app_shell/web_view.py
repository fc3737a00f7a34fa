from __future__ import annotations

from typing import Any

from PySide6.QtCore import Qt, QUrl, Signal, Slot
from PySide6.QtWebChannel import QWebChannel
from PySide6.QtWebEngineCore import QWebEngineNewWindowRequest
from PySide6.QtWebEngineWidgets import QWebEngineView
from PySide6.QtWidgets import QWidget

from .content import BRIDGE_OBJECT_NAME, ActionChannel, ContentBridge
from .logger import get_logger

_logger = get_logger("web_view")


class WebContentView(QWebEngineView):
    """`QWebEngineView` wired for the shell.

    - `ready_to_show` fires once, after the first load finishes.
    - `new_window_requested(url)` replaces in-app popups.
    - `send(channel, payload)` pushes a message to page scripts.
    """

    ready_to_show = Signal()
    new_window_requested = Signal(str)

    def __init__(self, actions: ActionChannel, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._bridge = ContentBridge(actions, self)
        self._channel = QWebChannel(self)
        self._channel.registerObject(BRIDGE_OBJECT_NAME, self._bridge)
        self.page().setWebChannel(self._channel)
        self.page().newWindowRequested.connect(self._on_new_window_requested)
        self.loadFinished.connect(self._on_load_finished)
        self._ready_emitted = False
        self._devtools: QWebEngineView | None = None

    def open_url(self, url: str) -> None:
        _logger.debug("loading %s", url)
        self.load(QUrl(url))

    def send(self, channel: str, payload: Any) -> None:
        self._bridge.message.emit(channel, payload)

    def toggle_dev_tools(self) -> None:
        if self._devtools is None:
            # A separate window, but owned by this view so it closes with it.
            self._devtools = QWebEngineView(self)
            self._devtools.setWindowFlags(Qt.WindowType.Window)
            self._devtools.setWindowTitle("Developer Tools")
            self.page().setDevToolsPage(self._devtools.page())
        self._devtools.setVisible(not self._devtools.isVisible())

    @Slot(bool)
    def _on_load_finished(self, ok: bool) -> None:
        if not ok:
            _logger.warning("page load failed: %s", self.url().toString())
        if not self._ready_emitted:
            self._ready_emitted = True
            self.ready_to_show.emit()

    @Slot(QWebEngineNewWindowRequest)
    def _on_new_window_requested(self, request: QWebEngineNewWindowRequest) -> None:
        # Leaving the request unopened means no in-app window is created.
        self.new_window_requested.emit(request.requestedUrl().toString())
