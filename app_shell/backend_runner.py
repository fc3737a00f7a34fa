"""Child-process host for a backend entry point.

Usage:
  python -m app_shell.backend_runner package.module:function
  app-shell --backend-runner package.module:function   (frozen builds)

Calls the entry point, reports the endpoint it returns on stdout and then
keeps the process alive until the shell kills it. A script path is executed
as `__main__` instead and is expected to report readiness itself.
"""

from __future__ import annotations

import asyncio
import inspect
import os
import runpy
import sys
import threading

from .backend_ipc import Endpoint, report_ready, resolve_entry_point

RUNNER_FLAG = "--backend-runner"


def is_script(target: str) -> bool:
    return target.endswith(".py") or os.path.isfile(target)


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        sys.stderr.write("usage: python -m app_shell.backend_runner module:function\n")
        return 2

    if is_script(args[0]):
        runpy.run_path(args[0], run_name="__main__")
        return 0

    result = resolve_entry_point(args[0])()
    if inspect.isawaitable(result):
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        report_ready(Endpoint.parse(loop.run_until_complete(result)))
        loop.run_forever()
    else:
        report_ready(Endpoint.parse(result))
        threading.Event().wait()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
