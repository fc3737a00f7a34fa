#!/usr/bin/env python3
"""Run the app_shell test suite with the Qt offscreen platform.

Usage:
  python scripts/run_tests_offscreen.py [--timeout SECONDS] [--] [pytest args...]

Examples:
  python scripts/run_tests_offscreen.py tests/test_backend_supervisor.py
  python scripts/run_tests_offscreen.py -- -k handshake -q
"""

from __future__ import annotations

import argparse
import os
import shlex
import subprocess
import sys


def main() -> int:
    p = argparse.ArgumentParser(description="Run pytest with Qt offscreen mode")
    p.add_argument("--timeout", type=int, default=300, help="Maximum seconds to allow the whole pytest run")
    p.add_argument("--verbose", action="store_true", help="Don't use -q (quiet)")
    p.add_argument("--log-level", default="WARNING", help="APP_SHELL_LOG_LEVEL for the run")
    p.add_argument("pytest_args", nargs=argparse.REMAINDER, help="Additional pytest args")
    args = p.parse_args()

    env = os.environ.copy()
    env.setdefault("QT_QPA_PLATFORM", "offscreen")
    env.setdefault("APP_SHELL_LOG_LEVEL", args.log_level)
    # Web engine sandboxing does not work in most CI containers.
    env.setdefault("QTWEBENGINE_DISABLE_SANDBOX", "1")

    cmd = [sys.executable, "-m", "pytest"]
    if not args.verbose:
        cmd += ["-q", "-x", "--maxfail=1"]
    cmd.append(f"--timeout={min(120, args.timeout)}")
    cmd += [a for a in args.pytest_args if a != "--"]

    print("Running:", " ".join(shlex.quote(c) for c in cmd))
    try:
        completed = subprocess.run(cmd, env=env, check=False, timeout=args.timeout)
    except subprocess.TimeoutExpired:
        print(f"pytest run timed out after {args.timeout} seconds", file=sys.stderr)
        return 124
    return completed.returncode


if __name__ == "__main__":
    raise SystemExit(main())
