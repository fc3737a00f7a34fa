"""Path normalization utilities.

- Use absolute paths when handing files to Qt or to the backend child.
- Build `file://` load targets with the backend endpoint in the query.

Keep this module free of Qt dependencies.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import urlencode

_DRIVE_PREFIX_LEN = 2


def _normalize_drive_letter(path_str: str) -> str:
    # Normalize drive letter casing on Windows ("c:\\" -> "C:\\").
    if len(path_str) >= _DRIVE_PREFIX_LEN and path_str[1] == ":":
        return path_str[0].upper() + path_str[1:]
    return path_str


def abs_path(path: str | Path) -> Path:
    """Return an absolute path without requiring that it exists."""
    p = Path(path).expanduser()
    try:
        # strict=False avoids exceptions for non-existent paths.
        return p.resolve(strict=False)
    except OSError:
        return p.absolute()


def abs_path_str(path: str | Path) -> str:
    """Absolute, OS-native path string (Windows uses backslashes)."""
    return _normalize_drive_letter(str(abs_path(path)))


def file_url(path: str | Path, **query: object) -> str:
    """`file://` URL for a local file, with optional query parameters.

    >>> file_url("/srv/app/index.html", port=7777)
    'file:///srv/app/index.html?port=7777'
    """
    url = abs_path(path).as_uri()
    if query:
        url += "?" + urlencode({k: str(v) for k, v in query.items()})
    return url
