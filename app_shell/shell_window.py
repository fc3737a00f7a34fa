from __future__ import annotations

from PySide6.QtCore import QEvent, Qt, Signal
from PySide6.QtGui import QCloseEvent
from PySide6.QtWidgets import QMainWindow, QWidget

from .geometry import GeometrySnapshot, Rect

MIN_WIDTH = 200
MIN_HEIGHT = 120


class ShellWindow(QMainWindow):
    """Top-level window hosting one content widget.

    Re-emits the toolkit events the window manager persists geometry on.
    The window deletes itself when closed.
    """

    bounds_changed = Signal()
    maximized_changed = Signal(bool)
    closing = Signal()

    def __init__(self, content: QWidget, title: str, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setAttribute(Qt.WidgetAttribute.WA_DeleteOnClose, True)
        self.setWindowTitle(title)
        self.setMinimumSize(MIN_WIDTH, MIN_HEIGHT)
        self._content = content
        self.setCentralWidget(content)
        self.devtools_action = None

    @property
    def content(self) -> QWidget:
        return self._content

    # ---- geometry --------------------------------------------------
    def bounds(self) -> Rect:
        g = self.geometry()
        return Rect(g.x(), g.y(), g.width(), g.height())

    def is_maximized(self) -> bool:
        return self.isMaximized()

    def apply_geometry(self, snapshot: GeometrySnapshot) -> None:
        """Set the restored bounds, then maximize on top of them if flagged."""
        self.setGeometry(snapshot.x, snapshot.y, snapshot.width, snapshot.height)
        if snapshot.is_maximized:
            self.setWindowState(self.windowState() | Qt.WindowState.WindowMaximized)

    # ---- content ---------------------------------------------------
    def open_url(self, url: str) -> None:
        self._content.open_url(url)

    def send(self, channel: str, payload: object) -> None:
        self._content.send(channel, payload)

    def toggle_dev_tools(self) -> None:
        self._content.toggle_dev_tools()

    # ---- events ----------------------------------------------------
    def resizeEvent(self, event) -> None:
        super().resizeEvent(event)
        self.bounds_changed.emit()

    def moveEvent(self, event) -> None:
        super().moveEvent(event)
        self.bounds_changed.emit()

    def changeEvent(self, event: QEvent) -> None:
        super().changeEvent(event)
        if event.type() == QEvent.Type.WindowStateChange:
            self.maximized_changed.emit(self.isMaximized())

    def closeEvent(self, event: QCloseEvent) -> None:
        self.closing.emit()
        super().closeEvent(event)
