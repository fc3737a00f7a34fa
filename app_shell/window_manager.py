"""Window creation, placement and geometry persistence.

Geometry is stored under a per-window key (default "windowstate") as
`{"isMaximized", "width", "height", "x", "y"}`. While a window is maximized
the stored bounds keep the last *restored* geometry, so un-maximizing on the
next run lands the window where the user left it.
"""

from __future__ import annotations

from collections.abc import Callable

from PySide6.QtCore import QObject, QTimer, Signal, Slot

from .config import AppConfig
from .content import ActionChannel, ContentFactory, create_web_content, open_external_url
from .geometry import GeometrySnapshot, GeometrySource, default_geometry
from .logger import get_logger
from .settings_manager import SettingsManager
from .shell_window import ShellWindow

_logger = get_logger("windows")


class WindowRecord:
    """Bookkeeping for one open window."""

    def __init__(self, window: ShellWindow, key: str, restored: GeometrySnapshot, save_timer: QTimer) -> None:
        self.window = window
        self.key = key
        self.restored = restored
        self.save_timer = save_timer
        self.destroyed = False

    def __repr__(self) -> str:
        return f"WindowRecord(key={self.key!r}, restored={self.restored!r}, destroyed={self.destroyed})"


class WindowLifecycleManager(QObject):
    window_closed = Signal(object)  # WindowRecord

    def __init__(
        self,
        config: AppConfig,
        store: SettingsManager,
        geometry_source: GeometrySource,
        actions: ActionChannel,
        content_factory: ContentFactory | None = None,
        open_external: Callable[[str], object] | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._config = config
        self._store = store
        self._geometry_source = geometry_source
        self._actions = actions
        self._content_factory = content_factory or create_web_content
        self._open_external = open_external or open_external_url
        self._menu_builder: Callable[[ShellWindow], None] | None = None
        self._records: list[WindowRecord] = []

    # ---- queries ---------------------------------------------------
    def records(self) -> list[WindowRecord]:
        return list(self._records)

    def live_records(self) -> list[WindowRecord]:
        return [r for r in self._records if not r.destroyed]

    def set_menu_builder(self, builder: Callable[[ShellWindow], None] | None) -> None:
        """Menu installer applied to every window created from now on."""
        self._menu_builder = builder

    # ---- creation --------------------------------------------------
    def initial_geometry(self, key: str) -> GeometrySnapshot:
        persisted = GeometrySnapshot.from_dict(self._store.get(key))
        if persisted is not None:
            return persisted
        return default_geometry(self._geometry_source.display_bounds_at_cursor())

    def create_window(self, url: str | None = None, key: str | None = None) -> WindowRecord:
        key = key or self._config.window_state_key
        snapshot = self.initial_geometry(key)

        content = self._content_factory(self._actions)
        # Always created hidden; shown once the content is ready to render.
        window = ShellWindow(content, title=self._config.application_name)
        window.apply_geometry(snapshot)
        if self._menu_builder is not None:
            self._menu_builder(window)

        timer = QTimer(window)
        timer.setSingleShot(True)
        timer.setInterval(self._config.save_delay_ms)

        record = WindowRecord(window, key, snapshot.with_maximized(False), timer)
        timer.timeout.connect(lambda: self.save_now(record))
        content.ready_to_show.connect(window.show)
        content.new_window_requested.connect(self._on_new_window_requested)
        window.bounds_changed.connect(lambda: self.schedule_save(record))
        window.maximized_changed.connect(lambda _maximized: self.schedule_save(record))
        window.closing.connect(lambda: self._on_closing(record))
        window.destroyed.connect(lambda *_: self._on_destroyed(record))

        self._records.append(record)
        _logger.debug("window created: key=%s geometry=%s", key, snapshot)

        if url:
            window.open_url(url)
        return record

    def load(self, record: WindowRecord, url: str) -> bool:
        if record.destroyed:
            _logger.debug("not loading %s into a destroyed window", url)
            return False
        record.window.open_url(url)
        return True

    # ---- persistence -----------------------------------------------
    def capture_snapshot(self, record: WindowRecord) -> GeometrySnapshot:
        window = record.window
        if window.is_maximized():
            # Maximized bounds are not restored geometry: keep what is stored.
            stored = GeometrySnapshot.from_dict(self._store.get(record.key))
            base = stored if stored is not None else record.restored
            return base.with_maximized(True)
        b = window.bounds()
        record.restored = GeometrySnapshot(b.x, b.y, b.width, b.height)
        return record.restored

    def schedule_save(self, record: WindowRecord) -> None:
        if record.destroyed:
            return
        # start() on an active single-shot timer restarts it.
        record.save_timer.start()

    def save_now(self, record: WindowRecord) -> bool:
        try:
            snapshot = self.capture_snapshot(record)
            self._store.set(record.key, snapshot.to_dict())
        except Exception as e:
            _logger.error("error while saving window state: key=%s error=%s", record.key, e)
            return False
        _logger.debug("window state saved: key=%s %s", record.key, snapshot)
        return True

    # ---- dispatch --------------------------------------------------
    def send_to_all(self, channel: str, payload: object) -> int:
        """Send a message to every live window; returns how many received it."""
        delivered = 0
        for record in self.records():
            if record.destroyed:
                continue
            try:
                record.window.send(channel, payload)
            except RuntimeError as e:
                # The Qt object can already be gone before `destroyed` is delivered.
                record.destroyed = True
                _logger.warning("dropping message %s for a dead window: %s", channel, e)
                continue
            except Exception as e:
                _logger.error("failed to send %s to window %s: %s", channel, record.key, e)
                continue
            delivered += 1
        return delivered

    def close_all(self) -> None:
        for record in self.live_records():
            record.window.close()

    # ---- window events ---------------------------------------------
    @Slot(str)
    def _on_new_window_requested(self, url: str) -> None:
        _logger.info("opening new-window request externally: %s", url)
        self._open_external(url)

    def _on_closing(self, record: WindowRecord) -> None:
        if record.destroyed:
            return
        record.save_timer.stop()
        self.save_now(record)
        record.destroyed = True
        self.window_closed.emit(record)

    def _on_destroyed(self, record: WindowRecord) -> None:
        record.destroyed = True
        if record in self._records:
            self._records.remove(record)
