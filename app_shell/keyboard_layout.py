from __future__ import annotations

from collections.abc import Callable
from contextlib import suppress
from typing import TYPE_CHECKING, Any, Protocol

from PySide6.QtGui import QGuiApplication, QInputMethod

from .contribution import ApplicationContribution, Subscription
from .logger import get_logger

if TYPE_CHECKING:
    from .controller import ApplicationController

_logger = get_logger("keyboard")

KEYBOARD_LAYOUT_CHANNEL = "keyboardLayoutChanged"


class KeyboardLayoutSource(Protocol):
    def on_did_change(self, callback: Callable[[], None]) -> Subscription: ...

    def current_layout(self) -> dict[str, Any]: ...

    def key_map(self) -> dict[str, Any]: ...


class QtKeyboardLayoutSource:
    """Layout changes as seen by Qt's input method (`localeChanged`)."""

    def __init__(self, input_method: QInputMethod | None = None) -> None:
        self._input_method = input_method or QGuiApplication.inputMethod()

    def on_did_change(self, callback: Callable[[], None]) -> Subscription:
        def _slot() -> None:
            callback()

        signal = self._input_method.localeChanged
        signal.connect(_slot)

        def _release() -> None:
            with suppress(RuntimeError, TypeError):
                signal.disconnect(_slot)

        return Subscription(_release)

    def current_layout(self) -> dict[str, Any]:
        locale = self._input_method.locale()
        return {
            "id": locale.name(),
            "lang": locale.bcp47Name(),
            "localizedName": locale.nativeLanguageName(),
        }

    def key_map(self) -> dict[str, Any]:
        # Qt does not expose the native scan-code map.
        return {}


class KeyboardLayoutRelay(ApplicationContribution):
    """Pushes `keyboardLayoutChanged({info, mapping})` to every live window."""

    def __init__(self, source: KeyboardLayoutSource | None = None) -> None:
        self._source = source
        self._controller: ApplicationController | None = None
        self._subscription: Subscription | None = None

    def on_start(self, controller: ApplicationController) -> None:
        if self._subscription is not None:
            return
        if self._source is None:
            self._source = QtKeyboardLayoutSource()
        self._controller = controller
        self._subscription = self._source.on_did_change(self._on_layout_changed)
        _logger.debug("subscribed to keyboard layout changes")

    def on_stop(self, controller: ApplicationController) -> None:
        if self._subscription is not None:
            self._subscription.dispose()
            self._subscription = None
        self._controller = None

    def build_descriptor(self) -> dict[str, Any]:
        return {"info": self._source.current_layout(), "mapping": self._source.key_map()}

    def _on_layout_changed(self) -> None:
        if self._controller is None:
            return
        try:
            descriptor = self.build_descriptor()
        except Exception as e:
            _logger.error("failed to read keyboard layout: %s", e)
            return
        delivered = self._controller.windows.send_to_all(KEYBOARD_LAYOUT_CHANNEL, descriptor)
        _logger.debug("keyboard layout %s sent to %d window(s)", descriptor["info"].get("id"), delivered)
