"""Extension points invoked by the application controller.

Contributions are registered as an explicit ordered sequence and called
uniformly: `on_start` in registration order once the platform is ready,
`on_stop` in reverse order during shutdown.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .controller import ApplicationController


class Subscription:
    """Handle returned by `subscribe`-style calls; `dispose()` releases it."""

    def __init__(self, release: Callable[[], None]) -> None:
        self._release: Callable[[], None] | None = release

    @property
    def disposed(self) -> bool:
        return self._release is None

    def dispose(self) -> None:
        release, self._release = self._release, None
        if release is not None:
            release()


class ApplicationContribution:
    def on_start(self, controller: ApplicationController) -> None:
        pass

    def on_stop(self, controller: ApplicationController) -> None:
        pass
