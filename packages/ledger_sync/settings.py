"""Small persisted settings blob for the sync subsystem.

Holds the configured sync URL (a spreadsheet link or a push webhook) and the
change-watcher's enabled flag. Both must survive process restarts, so they are
kept in a JSON file under the state directory:

  ``<state_dir>/settings.json``

Default state directory: ``./.ledger_sync`` under the current working
directory. Override: ``LEDGER_SYNC_STATE_DIR`` environment variable.

Atomicity: writes target ``.tmp`` first and then ``os.replace`` into place.
A missing or unreadable file yields defaults (watcher disabled, no URL).
"""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .logging_setup import get_logger

_FILE_NAME = "settings.json"

_logger = get_logger("ledger_sync.settings")


def get_state_dir() -> Path:
    """Return the state directory (not created until something is written)."""

    root = os.getenv("LEDGER_SYNC_STATE_DIR")
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return (Path.cwd() / ".ledger_sync").resolve()


class SyncSettings(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    sync_url: str | None = None
    watcher_enabled: bool = False

    @field_validator("sync_url")
    @classmethod
    def _blank_url_is_none(cls, v: str | None) -> str | None:
        return v or None


class SettingsStore:
    """Load and save :class:`SyncSettings` at a fixed path."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path or (get_state_dir() / _FILE_NAME)

    def load(self) -> SyncSettings:
        path = self.path
        if not path.exists():
            return SyncSettings()
        try:
            return SyncSettings.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            _logger.warning("settings:read_failed; using defaults path=%s error=%s", path, e)
            return SyncSettings()

    def save(self, settings: SyncSettings) -> None:
        path = self.path
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        data = json.dumps(settings.model_dump(mode="json"), indent=2, sort_keys=True)
        with self._lock:
            tmp.write_text(data + "\n", encoding="utf-8")
            os.replace(tmp, path)

    def update(self, **changes: Any) -> SyncSettings:
        """Load, apply ``changes``, validate, save and return the result."""

        current = self.load().model_dump()
        current.update(changes)
        settings = SyncSettings.model_validate(current)
        self.save(settings)
        return settings


__all__ = ["SettingsStore", "SyncSettings", "get_state_dir"]
