"""Readiness handshake between the shell and its backend.

The backend sends exactly one line on stdout once it accepts connections;
the shell parses it into an `Endpoint`. Keep this module free of Qt
dependencies so backend processes can import it cheaply.
"""

from __future__ import annotations

import importlib
import json
import sys
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TextIO

DEFAULT_HOST = "127.0.0.1"
_MAX_PORT = 65535


class HandshakeError(ValueError):
    """The backend's readiness message could not be understood."""


@dataclass(frozen=True)
class Endpoint:
    port: int
    host: str = DEFAULT_HOST

    def __post_init__(self) -> None:
        if not 0 < self.port <= _MAX_PORT:
            raise HandshakeError(f"port out of range: {self.port}")

    @classmethod
    def parse(cls, message: Any) -> Endpoint:
        """Accept an int, a numeric string, a JSON object (text or dict),
        or any object with a `port` attribute."""
        if isinstance(message, Endpoint):
            return message
        if isinstance(message, bytes):
            message = message.decode("utf-8", errors="replace")
        if isinstance(message, str):
            text = message.strip()
            if not text:
                raise HandshakeError("empty handshake message")
            try:
                message = json.loads(text)
            except ValueError as e:
                raise HandshakeError(f"unparsable handshake message: {text!r}") from e
        if isinstance(message, bool):
            raise HandshakeError(f"invalid handshake message: {message!r}")
        if isinstance(message, int):
            return cls(message)
        if isinstance(message, dict):
            port = message.get("port")
            host = message.get("host") or DEFAULT_HOST
        else:
            port = getattr(message, "port", None)
            host = getattr(message, "host", None) or DEFAULT_HOST
        if isinstance(port, str) and port.strip().isdigit():
            port = int(port)
        if not isinstance(port, int) or isinstance(port, bool):
            raise HandshakeError(f"handshake message has no port: {message!r}")
        return cls(port, str(host))


def format_message(endpoint: Endpoint | int) -> str:
    if isinstance(endpoint, int):
        endpoint = Endpoint(endpoint)
    return json.dumps({"port": endpoint.port, "host": endpoint.host}) + "\n"


def report_ready(endpoint: Endpoint | int, stream: TextIO | None = None) -> None:
    """Tell the shell the backend is ready. Call once per backend lifetime."""
    out = sys.stdout if stream is None else stream
    out.write(format_message(endpoint))
    out.flush()


def resolve_entry_point(spec: str) -> Callable[[], Any]:
    """Import `package.module:function` (function defaults to `main`)."""
    module_name, _, attr = spec.partition(":")
    if not module_name:
        raise ValueError(f"invalid backend entry point: {spec!r}")
    target: Any = importlib.import_module(module_name)
    for part in (attr or "main").split("."):
        target = getattr(target, part)
    if not callable(target):
        raise TypeError(f"backend entry point is not callable: {spec!r}")
    return target
