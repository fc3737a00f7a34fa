from __future__ import annotations

import json
import os
from typing import Any

from .logger import get_logger

_logger = get_logger("settings")


class SettingsManager:
    """Durable key/value store backed by a single JSON file.

    Reads never raise: a missing key or an unreadable file yields the caller's
    default. Writes go straight to disk and raise on failure so callers can
    decide how to degrade.
    """

    def __init__(self, settings_path: str):
        self.settings_path = settings_path
        self._settings: dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        try:
            if os.path.exists(self.settings_path):
                with open(self.settings_path, encoding="utf-8") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        self._settings = data
                        _logger.debug("settings loaded: %s", self.settings_path)
                        return
                    _logger.warning("settings file is not an object, ignoring: %s", self.settings_path)
        except (OSError, ValueError) as e:
            _logger.warning("settings load failed: %s", e)
        self._settings = {}

    def save(self) -> None:
        directory = os.path.dirname(self.settings_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        # Serialize first so a bad value never truncates the file on disk.
        text = json.dumps(self._settings, ensure_ascii=False, indent=2)
        tmp_path = self.settings_path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_path, self.settings_path)
        _logger.debug("settings saved: %s", self.settings_path)

    def get(self, key: str, default: Any = None) -> Any:
        return self._settings.get(key, default)

    def has(self, key: str) -> bool:
        return key in self._settings

    def set(self, key: str, value: Any) -> None:
        previous = self._settings.get(key)
        had_key = key in self._settings
        self._settings[key] = value
        try:
            self.save()
        except Exception:
            # Keep memory consistent with what is actually on disk.
            if had_key:
                self._settings[key] = previous
            else:
                self._settings.pop(key, None)
            raise

    @property
    def data(self) -> dict[str, Any]:
        return self._settings
