from typing import TYPE_CHECKING

from PySide6.QtGui import QAction, QKeySequence

from .logger import get_logger

if TYPE_CHECKING:
    from .shell_window import ShellWindow

_logger = get_logger("ui_menus")


def build_placeholder_menu(window: "ShellWindow") -> None:
    """Replace the window's menu bar with a minimal Help menu.

    Only developer tooling is offered until the application defines its own
    menus, so nothing destructive can be triggered from the menu bar.
    """
    menu_bar = window.menuBar()
    menu_bar.clear()

    help_menu = menu_bar.addMenu("Help(&H)")
    devtools_action = QAction("Toggle Developer Tools", window)
    devtools_action.setShortcut(QKeySequence("Ctrl+Shift+I"))
    devtools_action.triggered.connect(window.toggle_dev_tools)
    help_menu.addAction(devtools_action)
    window.devtools_action = devtools_action
    _logger.debug("placeholder menu installed")
