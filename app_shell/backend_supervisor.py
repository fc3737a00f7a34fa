"""Backend process supervision.

Two ways to bring the backend up:

- direct: import the entry point and call it on a daemon worker thread
  (development).
- child: run it in a separate `QProcess` that reports its endpoint on stdout
  (packaged builds).

Either way the outcome is reported once, through `ready(Endpoint)` or
`failed(str)`. A failed start is fatal for the run; nothing is retried.
"""

from __future__ import annotations

import asyncio
import inspect
import sys
import threading
from contextlib import suppress
from enum import Enum

from PySide6.QtCore import QObject, QProcess, QProcessEnvironment, QTimer, Signal, Slot

from .backend_ipc import Endpoint, HandshakeError, resolve_entry_point
from .backend_runner import RUNNER_FLAG, is_script
from .config import AppConfig, is_frozen
from .logger import get_logger
from .path_utils import abs_path_str

_logger = get_logger("supervisor")

_KILL_WAIT_MS = 3000


class BackendState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    READY = "ready"
    FAILED = "failed"
    TERMINATED = "terminated"


class BackendStartError(RuntimeError):
    """The in-process backend entry point could not be started."""


def child_command(config: AppConfig) -> tuple[str, list[str]]:
    """Program and arguments used to spawn the backend child.

    A frozen shell has no interpreter of its own to hand out, so unless one is
    configured it re-runs its own executable in runner mode.
    """
    main = config.backend_main
    target = abs_path_str(main) if is_script(main) else main
    if not config.python_executable and is_frozen():
        return sys.executable, [RUNNER_FLAG, target]

    python = config.python_executable or sys.executable
    if is_script(main):
        return python, [target]
    return python, ["-m", "app_shell.backend_runner", main]


class _DirectStartWorker(QObject):
    """Runs the backend entry point off the GUI thread.

    `run()` is the target of a daemon `threading.Thread`: an entry point that
    never returns cannot hold the process open at exit. Signals are queued to
    the supervisor's thread.
    """

    started_ok = Signal(object)  # Endpoint
    start_failed = Signal(str)

    def __init__(self, entry: str) -> None:
        super().__init__()
        self._entry = entry
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_requested = False

    def run(self) -> None:
        try:
            result = resolve_entry_point(self._entry)()
            if inspect.isawaitable(result):
                self._loop = asyncio.new_event_loop()
                asyncio.set_event_loop(self._loop)
                result = self._loop.run_until_complete(result)
            endpoint = Endpoint.parse(result)
        except Exception as e:
            err = e if isinstance(e, HandshakeError) else BackendStartError(f"{type(e).__name__}: {e}")
            self.start_failed.emit(str(err))
            self._close_loop()
            return

        self.started_ok.emit(endpoint)
        if self._loop is not None:
            # Async backends keep serving on this thread until stop().
            if not self._stop_requested:
                self._loop.run_forever()
            self._close_loop()

    def stop(self) -> None:
        self._stop_requested = True
        loop = self._loop
        if loop is not None:
            # A stop queued before run_forever() starts still ends it.
            with suppress(RuntimeError):
                loop.call_soon_threadsafe(loop.stop)

    def _close_loop(self) -> None:
        if self._loop is not None and not self._loop.is_closed():
            self._loop.close()


class ProcessSupervisor(QObject):
    """Starts the backend, waits for its handshake and kills it on quit."""

    ready = Signal(object)  # Endpoint
    failed = Signal(str)

    def __init__(self, config: AppConfig, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._config = config
        self._state = BackendState.IDLE
        self._endpoint: Endpoint | None = None
        self._error: str | None = None

        self._process: QProcess | None = None
        self._stdout_buffer = b""
        self._thread: threading.Thread | None = None
        self._worker: _DirectStartWorker | None = None

        self._handshake_timer = QTimer(self)
        self._handshake_timer.setSingleShot(True)
        self._handshake_timer.timeout.connect(self._on_handshake_timeout)

    # ---- state -----------------------------------------------------
    @property
    def state(self) -> BackendState:
        return self._state

    @property
    def endpoint(self) -> Endpoint | None:
        return self._endpoint

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def pid(self) -> int | None:
        if self._process is None:
            return None
        pid = int(self._process.processId())
        return pid or None

    @property
    def pending_output(self) -> int:
        """Bytes of child stdout held while waiting for a complete line."""
        return len(self._stdout_buffer)

    # ---- lifecycle -------------------------------------------------
    def start(self) -> None:
        if self._state is not BackendState.IDLE:
            raise RuntimeError(f"backend already started (state={self._state.value})")
        self._state = BackendState.STARTING

        timeout = self._config.handshake_timeout_ms
        if timeout > 0:
            self._handshake_timer.start(timeout)

        if self._config.is_child_mode:
            self._start_child()
        else:
            self._start_direct()

    def terminate(self) -> None:
        """Stop the backend. Safe to call more than once."""
        if self._state is BackendState.TERMINATED:
            return
        self._state = BackendState.TERMINATED
        self._handshake_timer.stop()

        if self._process is not None:
            self._kill_child(wait=True)
        if self._thread is not None:
            self._stop_direct()

    # ---- child mode ------------------------------------------------
    def _start_child(self) -> None:
        program, args = child_command(self._config)

        env = QProcessEnvironment.systemEnvironment()
        if self._config.environment:
            env = QProcessEnvironment()
            for key, value in self._config.environment.items():
                env.insert(key, value)

        proc = QProcess(self)
        proc.setProcessEnvironment(env)
        proc.readyReadStandardOutput.connect(self._on_child_stdout)
        proc.readyReadStandardError.connect(self._on_child_stderr)
        proc.errorOccurred.connect(self._on_child_error)
        proc.finished.connect(self._on_child_finished)
        self._process = proc

        _logger.info("starting backend child: %s %s", program, " ".join(args))
        proc.start(program, args)

    @Slot()
    def _on_child_stdout(self) -> None:
        if self._process is None:
            return
        data = bytes(self._process.readAllStandardOutput().data())
        if self._state is not BackendState.STARTING:
            # Only the first line is protocol; later output is not kept.
            _logger.debug("discarding %d byte(s) of backend output", len(data))
            return
        self._stdout_buffer += data
        while b"\n" in self._stdout_buffer:
            line, self._stdout_buffer = self._stdout_buffer.split(b"\n", 1)
            if not line.strip():
                continue
            try:
                endpoint = Endpoint.parse(line)
            except HandshakeError as e:
                self._stdout_buffer = b""
                self._fail(str(e))
                return
            if self._stdout_buffer.strip():
                _logger.debug("ignoring backend output after handshake: %r", self._stdout_buffer[:200])
            self._stdout_buffer = b""
            self._succeed(endpoint)
            return

    @Slot()
    def _on_child_stderr(self) -> None:
        if self._process is None:
            return
        text = bytes(self._process.readAllStandardError().data()).decode("utf-8", errors="replace")
        for line in text.splitlines():
            if line.strip():
                _logger.info("[backend] %s", line)

    @Slot(QProcess.ProcessError)
    def _on_child_error(self, error: QProcess.ProcessError) -> None:
        if self._state is BackendState.TERMINATED:
            return
        message = self._process.errorString() if self._process is not None else str(error)
        if self._state is BackendState.STARTING:
            self._fail(f"backend process error: {message}")
        elif self._state is BackendState.READY:
            _logger.error("backend process error after startup: %s", message)

    @Slot(int, QProcess.ExitStatus)
    def _on_child_finished(self, exit_code: int, exit_status: QProcess.ExitStatus) -> None:
        if self._state is BackendState.STARTING:
            # Drain output that arrived together with the exit.
            self._on_child_stdout()
        if self._state is BackendState.STARTING:
            self._fail(f"backend exited before signaling readiness (exit code {exit_code})")
        elif self._state is BackendState.READY:
            _logger.warning("backend exited: code=%s status=%s", exit_code, exit_status)
        else:
            _logger.debug("backend child reaped: code=%s", exit_code)

    def _kill_child(self, wait: bool) -> None:
        proc = self._process
        if proc is None or proc.state() == QProcess.ProcessState.NotRunning:
            return
        _logger.info("killing backend pid=%s", self.pid)
        proc.kill()
        # Without waiting, the exit is picked up by `finished` on the event loop.
        if wait and not proc.waitForFinished(_KILL_WAIT_MS):
            _logger.warning("backend pid=%s did not exit after kill", self.pid)

    # ---- direct mode -----------------------------------------------
    def _start_direct(self) -> None:
        _logger.info("starting backend in-process: %s", self._config.backend_main)
        worker = _DirectStartWorker(self._config.backend_main)
        worker.started_ok.connect(self._on_direct_ready)
        worker.start_failed.connect(self._on_direct_failed)
        thread = threading.Thread(target=worker.run, name="backend-direct", daemon=True)
        self._worker = worker
        self._thread = thread
        thread.start()

    @Slot(object)
    def _on_direct_ready(self, endpoint: Endpoint) -> None:
        if self._state is BackendState.STARTING:
            self._succeed(endpoint)

    @Slot(str)
    def _on_direct_failed(self, message: str) -> None:
        self._fail(message)

    def _stop_direct(self) -> None:
        if self._worker is not None:
            self._worker.stop()
        thread = self._thread
        if thread is not None and thread.is_alive():
            _logger.warning("in-process backend still running; it ends with the process")

    # ---- outcome ---------------------------------------------------
    @Slot()
    def _on_handshake_timeout(self) -> None:
        self._fail(f"backend did not signal readiness within {self._config.handshake_timeout_ms} ms")

    def _succeed(self, endpoint: Endpoint) -> None:
        self._handshake_timer.stop()
        self._state = BackendState.READY
        self._endpoint = endpoint
        _logger.info("backend ready on %s:%s", endpoint.host, endpoint.port)
        self.ready.emit(endpoint)

    def _fail(self, message: str) -> None:
        if self._state is not BackendState.STARTING:
            return
        self._handshake_timer.stop()
        self._state = BackendState.FAILED
        self._error = message
        _logger.error("backend failed to start: %s", message)
        if self._process is not None:
            self._kill_child(wait=False)
        self.failed.emit(message)
