"""Pytest configuration.

The suite drives real PySide6 widgets and timers. A single `QApplication`
is created for the whole session, as early as possible, in offscreen mode so
no window manager is involved.
"""

from __future__ import annotations

import os
from typing import Any

_APP: Any | None = None


def pytest_configure(config) -> None:  # noqa: ARG001
    """Ensure a QApplication exists before collecting/running tests."""

    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

    # Import lazily so non-Qt environments can still import this conftest.
    try:
        from PySide6.QtWidgets import QApplication
    except ImportError:
        return

    global _APP

    app = QApplication.instance()
    if app is None:
        # Keep a strong ref so it isn't GC'd mid-session.
        _APP = QApplication([])
    else:
        _APP = app
    # Tests open and close shell windows freely; the session app must outlive them.
    _APP.setQuitOnLastWindowClosed(False)


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    """Attempt a clean Qt shutdown to avoid lingering threads at interpreter exit."""

    try:
        from PySide6.QtWidgets import QApplication
    except ImportError:
        return

    app = QApplication.instance()
    if app is None:
        return

    # Request shutdown and pump events once so timers/posted events can settle.
    app.quit()
    app.processEvents()
