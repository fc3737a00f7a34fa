"""Window geometry values and the display lookup used to place new windows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from PySide6.QtGui import QCursor, QGuiApplication

from .logger import get_logger

_logger = get_logger("geometry")

_DEFAULT_FRACTION_NUM = 2
_DEFAULT_FRACTION_DEN = 3


@dataclass(frozen=True)
class Rect:
    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class GeometrySnapshot:
    """Position/size of a window plus its maximized flag.

    The bounds are always the *restored* geometry; while a window is maximized
    they hold whatever it had before maximizing.
    """

    x: int
    y: int
    width: int
    height: int
    is_maximized: bool = False

    @property
    def bounds(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    def with_maximized(self, is_maximized: bool) -> GeometrySnapshot:
        return GeometrySnapshot(self.x, self.y, self.width, self.height, bool(is_maximized))

    def to_dict(self) -> dict[str, Any]:
        return {
            "isMaximized": self.is_maximized,
            "width": self.width,
            "height": self.height,
            "x": self.x,
            "y": self.y,
        }

    @classmethod
    def from_dict(cls, data: Any) -> GeometrySnapshot | None:
        """Parse a persisted record; None when it is missing or malformed."""
        if not isinstance(data, dict):
            return None
        try:
            values = [data[k] for k in ("x", "y", "width", "height")]
        except KeyError:
            return None
        if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in values):
            return None
        x, y, width, height = (int(v) for v in values)
        return cls(x, y, width, height, bool(data.get("isMaximized", False)))


def default_geometry(display: Rect) -> GeometrySnapshot:
    """Two thirds of the display, centred on it.

    Centring is done by hand (floor division) because toolkit-level centring
    picks the primary screen on multi-display setups.
    """
    width = display.width * _DEFAULT_FRACTION_NUM // _DEFAULT_FRACTION_DEN
    height = display.height * _DEFAULT_FRACTION_NUM // _DEFAULT_FRACTION_DEN
    x = display.x + (display.width - width) // 2
    y = display.y + (display.height - height) // 2
    return GeometrySnapshot(x, y, width, height)


class GeometrySource(Protocol):
    def display_bounds_at_cursor(self) -> Rect: ...


class QtGeometrySource:
    """Reads display bounds from Qt's screen list."""

    def display_bounds_at_cursor(self) -> Rect:
        pos = QCursor.pos()
        screen = QGuiApplication.screenAt(pos)
        if screen is None:
            # Cursor outside every screen (or an offscreen platform): nearest wins.
            screens = QGuiApplication.screens()
            if not screens:
                raise RuntimeError("no screens available")
            screen = min(screens, key=lambda s: _distance_sq(s.geometry(), pos.x(), pos.y()))
            _logger.debug("cursor not on any screen, using nearest: %s", screen.name())
        g = screen.geometry()
        return Rect(g.x(), g.y(), g.width(), g.height())


def _distance_sq(rect, px: int, py: int) -> int:
    dx = max(rect.left() - px, 0, px - rect.right())
    dy = max(rect.top() - py, 0, py - rect.bottom())
    return dx * dx + dy * dy
