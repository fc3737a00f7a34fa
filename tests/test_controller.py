from __future__ import annotations

from pathlib import Path

import pytest
from fakes import ContentRecorder, FakeApp, FakeSupervisor, FixedGeometrySource, RecordingContribution
from PySide6.QtWidgets import QWidget

import app_shell.controller as controller_module
from app_shell.config import AppConfig
from app_shell.contribution import ApplicationContribution
from app_shell.controller import ApplicationController, LifecycleState
from app_shell.geometry import Rect
from app_shell.settings_manager import SettingsManager


@pytest.fixture
def app() -> FakeApp:
    return FakeApp()


@pytest.fixture
def supervisor() -> FakeSupervisor:
    return FakeSupervisor()


@pytest.fixture
def contents() -> ContentRecorder:
    return ContentRecorder()


@pytest.fixture
def journal() -> list[str]:
    return []


@pytest.fixture
def make_controller(tmp_path: Path, app, supervisor, contents, journal):
    created: list[ApplicationController] = []

    def _make(contributions=None) -> ApplicationController:
        config = AppConfig(state_path=str(tmp_path / "state.json"), index_html=str(tmp_path / "index.html"))
        if contributions is None:
            contributions = [RecordingContribution("a", journal), RecordingContribution("b", journal)]
        ctl = ApplicationController(
            app,
            config,
            store=SettingsManager(config.state_path),
            supervisor=supervisor,
            contributions=contributions,
            geometry_source=FixedGeometrySource(Rect(0, 0, 1920, 1080)),
            content_factory=contents,
        )
        created.append(ctl)
        return ctl

    yield _make
    for ctl in created:
        ctl.shutdown()


def test_platform_ready_creates_hidden_primary_and_starts_backend(make_controller, app, supervisor) -> None:
    ctl = make_controller()
    assert app.quit_on_last_window_closed is False
    assert ctl.state is LifecycleState.BOOTSTRAPPING

    ctl.on_platform_ready()

    assert ctl.state is LifecycleState.RUNNING
    assert supervisor.started == 1
    assert ctl.primary_window is not None
    assert not ctl.primary_window.window.isVisible()


def test_start_defers_to_the_event_loop(make_controller, qtbot) -> None:
    ctl = make_controller()

    ctl.start()
    assert ctl.state is LifecycleState.BOOTSTRAPPING

    qtbot.waitUntil(lambda: ctl.state is LifecycleState.RUNNING, timeout=2000)


def test_platform_ready_runs_once(make_controller, supervisor, contents) -> None:
    ctl = make_controller()

    ctl.on_platform_ready()
    ctl.on_platform_ready()

    assert supervisor.started == 1
    assert len(contents.created) == 1


def test_backend_ready_loads_primary_with_port(make_controller, supervisor, contents, tmp_path: Path) -> None:
    ctl = make_controller()
    ctl.on_platform_ready()

    supervisor.signal_ready(7777)

    (url,) = contents.created[0].loaded
    assert url.startswith("file://")
    assert url.endswith("index.html?port=7777")
    assert "port=7777" in url


def test_backend_failure_exits_with_status_one_without_loading(make_controller, app, supervisor, contents) -> None:
    ctl = make_controller()
    ctl.on_platform_ready()

    supervisor.failed.emit("backend exited before signaling readiness (exit code 3)")

    assert app.exit_codes == [1]
    assert ctl.exit_code == 1
    assert ctl.state is LifecycleState.SHUTTING_DOWN
    assert contents.created[0].loaded == []
    assert supervisor.terminated == 1

    # A late readiness message after the failure is ignored.
    supervisor.signal_ready(7777)
    assert contents.created[0].loaded == []


def test_last_window_closed_shuts_down_once(make_controller, app, supervisor, journal) -> None:
    ctl = make_controller()
    ctl.on_platform_ready()

    ctl.primary_window.window.close()
    app.aboutToQuit.emit()
    ctl.shutdown()

    assert app.exit_codes == [0]
    assert supervisor.terminated == 1
    assert journal == ["start:a", "start:b", "stop:b", "stop:a"]


def test_closing_one_of_two_windows_keeps_running(make_controller, app, supervisor) -> None:
    ctl = make_controller()
    ctl.on_platform_ready()
    second = ctl.windows.create_window()

    ctl.primary_window.window.close()

    assert ctl.state is LifecycleState.RUNNING
    assert supervisor.terminated == 0

    second.window.close()

    assert ctl.state is LifecycleState.SHUTTING_DOWN
    assert app.exit_codes == [0]


def test_other_top_level_windows_do_not_keep_the_app_alive(make_controller, app, supervisor, qtbot) -> None:
    ctl = make_controller()
    ctl.on_platform_ready()
    window = ctl.primary_window.window
    window.show()
    devtools = QWidget()
    devtools.setWindowTitle("Developer Tools")
    devtools.show()
    qtbot.addWidget(devtools)

    window.close()

    assert devtools.isVisible()
    assert ctl.state is LifecycleState.SHUTTING_DOWN
    assert supervisor.terminated == 1
    assert app.exit_codes == [0]


def test_explicit_quit_shuts_down(make_controller, app, supervisor) -> None:
    ctl = make_controller()
    ctl.on_platform_ready()

    app.aboutToQuit.emit()

    assert ctl.state is LifecycleState.SHUTTING_DOWN
    assert supervisor.terminated == 1
    assert app.exit_codes == [0]


def test_shutdown_flushes_window_geometry(make_controller, tmp_path: Path) -> None:
    ctl = make_controller()
    ctl.on_platform_ready()

    ctl.shutdown()

    stored = SettingsManager(str(tmp_path / "state.json")).get("windowstate")
    assert stored is not None
    assert stored["isMaximized"] is False
    assert ctl.primary_window.destroyed


def test_failing_contribution_does_not_abort_startup(make_controller, supervisor, journal) -> None:
    class Broken(ApplicationContribution):
        def on_start(self, controller) -> None:
            raise RuntimeError("nope")

    ctl = make_controller([Broken(), RecordingContribution("ok", journal)])

    ctl.on_platform_ready()
    ctl.shutdown()

    assert supervisor.started == 1
    assert journal == ["start:ok", "stop:ok"]


def test_create_new_window_action_opens_another_window(make_controller, contents) -> None:
    ctl = make_controller()
    ctl.on_platform_ready()

    ctl.actions.create_new_window.emit("file:///tmp/other.html")

    assert len(ctl.windows.records()) == 2
    assert contents.created[1].loaded == ["file:///tmp/other.html"]


def test_open_external_action_uses_os_handler(make_controller, monkeypatch) -> None:
    opened: list[str] = []
    monkeypatch.setattr(controller_module, "open_external_url", opened.append)
    ctl = make_controller()
    ctl.on_platform_ready()

    ctl.actions.open_external.emit("https://example.org")

    assert opened == ["https://example.org"]


def test_actions_are_ignored_after_shutdown(make_controller, monkeypatch) -> None:
    opened: list[str] = []
    monkeypatch.setattr(controller_module, "open_external_url", opened.append)
    ctl = make_controller()
    ctl.on_platform_ready()
    ctl.shutdown()

    ctl.actions.open_external.emit("https://example.org")
    ctl.actions.create_new_window.emit("file:///x")

    assert opened == []
    assert ctl.windows.live_records() == []


def test_placeholder_menu_only_offers_devtools(make_controller, contents) -> None:
    ctl = make_controller()
    ctl.on_platform_ready()
    window = ctl.primary_window.window

    menus = [a.text() for a in window.menuBar().actions()]
    assert menus == ["Help(&H)"]

    window.devtools_action.trigger()

    assert contents.created[0].devtools_toggles == 1
