from pathlib import Path

from ledger_sync.settings import SettingsStore, SyncSettings, get_state_dir


def test_defaults_when_nothing_saved():
    settings = SettingsStore().load()
    assert settings == SyncSettings(sync_url=None, watcher_enabled=False)


def test_state_dir_follows_env(tmp_path: Path):
    assert get_state_dir() == (tmp_path / "state").resolve()
    assert SettingsStore().path == (tmp_path / "state" / "settings.json").resolve()


def test_update_persists_across_instances():
    SettingsStore().update(sync_url=" https://example.com/hook ", watcher_enabled=True)

    loaded = SettingsStore().load()
    assert loaded.sync_url == "https://example.com/hook"
    assert loaded.watcher_enabled is True

    SettingsStore().update(sync_url="")
    assert SettingsStore().load().sync_url is None
    assert SettingsStore().load().watcher_enabled is True


def test_writes_leave_no_temp_file():
    store = SettingsStore()
    store.update(watcher_enabled=True)
    assert sorted(p.name for p in store.path.parent.iterdir()) == ["settings.json"]


def test_corrupt_file_falls_back_to_defaults():
    store = SettingsStore()
    store.path.parent.mkdir(parents=True, exist_ok=True)
    store.path.write_text("{not json", encoding="utf-8")
    assert store.load() == SyncSettings()
