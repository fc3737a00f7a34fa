"""Top-level orchestration.

`BOOTSTRAPPING -> RUNNING -> SHUTTING_DOWN`, never re-entered. Shutdown runs
exactly once, whether it comes from the last window closing, an explicit
quit, or a fatal backend failure (exit status 1).
"""

from __future__ import annotations

from collections.abc import Iterable
from contextlib import suppress
from enum import Enum

from PySide6.QtCore import QObject, QTimer, Slot

from .backend_ipc import Endpoint
from .backend_supervisor import ProcessSupervisor
from .config import AppConfig
from .content import ActionChannel, ContentFactory, open_external_url
from .contribution import ApplicationContribution, Subscription
from .geometry import GeometrySource, QtGeometrySource
from .keyboard_layout import KeyboardLayoutRelay
from .logger import get_logger
from .path_utils import file_url
from .settings_manager import SettingsManager
from .ui_menus import build_placeholder_menu
from .window_manager import WindowLifecycleManager, WindowRecord

_logger = get_logger("controller")

EXIT_OK = 0
EXIT_BACKEND_FAILURE = 1


class LifecycleState(Enum):
    BOOTSTRAPPING = "bootstrapping"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"


def default_contributions() -> list[ApplicationContribution]:
    return [KeyboardLayoutRelay()]


class ApplicationController(QObject):
    def __init__(
        self,
        app,
        config: AppConfig,
        store: SettingsManager | None = None,
        supervisor: ProcessSupervisor | None = None,
        contributions: Iterable[ApplicationContribution] | None = None,
        geometry_source: GeometrySource | None = None,
        content_factory: ContentFactory | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._app = app
        self._config = config
        # "All windows closed" is decided from the shell windows alone.
        app.setQuitOnLastWindowClosed(False)

        self.actions = ActionChannel(self)
        self.store = store if store is not None else SettingsManager(config.state_path)
        self.windows = WindowLifecycleManager(
            config,
            self.store,
            geometry_source or QtGeometrySource(),
            self.actions,
            content_factory=content_factory,
            parent=self,
        )
        self.supervisor = supervisor if supervisor is not None else ProcessSupervisor(config, self)
        self._contributions = list(contributions) if contributions is not None else default_contributions()
        self._started: list[ApplicationContribution] = []
        self._subscriptions: list[Subscription] = []
        self._state = LifecycleState.BOOTSTRAPPING
        self._primary: WindowRecord | None = None
        self._exit_code = EXIT_OK

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def exit_code(self) -> int:
        return self._exit_code

    @property
    def primary_window(self) -> WindowRecord | None:
        return self._primary

    @property
    def contributions(self) -> list[ApplicationContribution]:
        return list(self._contributions)

    # ---- startup ---------------------------------------------------
    def start(self) -> None:
        """Run `on_platform_ready` on the first event-loop turn."""
        QTimer.singleShot(0, self.on_platform_ready)

    @Slot()
    def on_platform_ready(self) -> None:
        if self._state is not LifecycleState.BOOTSTRAPPING:
            return
        self._state = LifecycleState.RUNNING
        _logger.info("starting %s (backend mode: %s)", self._config.application_name, self._config.backend_mode)

        self.windows.set_menu_builder(build_placeholder_menu)
        self._connect(self.windows.window_closed, self._on_window_closed)
        self._connect(self._app.aboutToQuit, self._on_about_to_quit)
        self._connect(self.actions.create_new_window, self._on_create_new_window)
        self._connect(self.actions.open_external, self._on_open_external)
        self._connect(self.supervisor.ready, self._on_backend_ready)
        self._connect(self.supervisor.failed, self._on_backend_failed)

        for contribution in self._contributions:
            try:
                contribution.on_start(self)
            except Exception as e:
                _logger.error("contribution %s failed to start: %s", type(contribution).__name__, e)
                continue
            self._started.append(contribution)

        self._primary = self.windows.create_window()
        self.supervisor.start()

    def _connect(self, signal, slot) -> None:
        signal.connect(slot)

        def _release() -> None:
            with suppress(RuntimeError, TypeError):
                signal.disconnect(slot)

        self._subscriptions.append(Subscription(_release))

    # ---- backend ---------------------------------------------------
    @Slot(object)
    def _on_backend_ready(self, endpoint: Endpoint) -> None:
        if self._state is not LifecycleState.RUNNING:
            return
        record = self._primary
        if record is None or record.destroyed:
            _logger.warning("backend ready but the primary window is gone")
            return
        self.windows.load(record, file_url(self._config.index_html, port=endpoint.port))

    @Slot(str)
    def _on_backend_failed(self, message: str) -> None:
        _logger.error("fatal: backend could not be started: %s", message)
        self.shutdown(EXIT_BACKEND_FAILURE)

    # ---- actions ---------------------------------------------------
    @Slot(str)
    def _on_create_new_window(self, url: str) -> None:
        if self._state is LifecycleState.RUNNING:
            self.windows.create_window(url or None)

    @Slot(str)
    def _on_open_external(self, url: str) -> None:
        open_external_url(url)

    # ---- shutdown --------------------------------------------------
    @Slot(object)
    def _on_window_closed(self, record: WindowRecord) -> None:
        # Only shell windows count; devtools and other top-levels do not.
        if self.windows.live_records():
            return
        _logger.info("all windows closed (last: %s)", record.key)
        self.shutdown(EXIT_OK)

    @Slot()
    def _on_about_to_quit(self) -> None:
        self.shutdown(self._exit_code)

    def shutdown(self, exit_code: int = EXIT_OK) -> None:
        if self._state is LifecycleState.SHUTTING_DOWN:
            return
        self._state = LifecycleState.SHUTTING_DOWN
        self._exit_code = exit_code
        _logger.info("shutting down (exit code %d)", exit_code)

        # Closing flushes each window's geometry.
        self.windows.close_all()
        for contribution in reversed(self._started):
            try:
                contribution.on_stop(self)
            except Exception as e:
                _logger.error("contribution %s failed to stop: %s", type(contribution).__name__, e)
        self._started.clear()
        self.supervisor.terminate()
        for subscription in self._subscriptions:
            subscription.dispose()
        self._subscriptions.clear()
        self._app.exit(exit_code)
