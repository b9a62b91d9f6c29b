"""Pytest configuration for test isolation.

The sync settings (linked URL and the watcher's enabled flag) persist under a
default project-relative directory (``./.ledger_sync``). When tests run in the
same working tree, a settings file written by one test would leak into later
tests, so the state root is redirected to a unique temporary directory for
each test via an autouse fixture.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Make the workspace packages importable without an editable install.
_ROOT = Path(__file__).resolve().parents[1]
sys.path[:0] = [
    p
    for p in [str(_ROOT / "packages"), str(_ROOT / "libs/db/src"), str(_ROOT)]
    if p not in sys.path
]


@pytest.fixture(autouse=True)
def _isolate_state_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Force a per-test state root so tests don't share on-disk settings."""

    state_root = tmp_path / "state"
    state_root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("LEDGER_SYNC_STATE_DIR", os.fspath(state_root))
    monkeypatch.delenv("LEDGER_SYNC_POLL_INTERVAL", raising=False)


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    from tests.helpers.db import bootstrap_sqlite_db

    return bootstrap_sqlite_db(tmp_path / "ledger.db")


@pytest.fixture
def store(db_url: str):
    from ledger_sync.store import LedgerStore

    return LedgerStore(database_url=db_url)
