import textwrap
from pathlib import Path

import pytest
from typer.testing import CliRunner

import ledger_sync.cli as cli_mod
import ledger_sync.outbound as outbound_mod
from ledger_sync.errors import ImportCancelled, TransportError
from ledger_sync.settings import SettingsStore

SHEET_URL = "https://docs.google.com/spreadsheets/d/abc123/edit#gid=0"
WEBHOOK_URL = "https://script.google.com/macros/s/abc/exec"

runner = CliRunner()


@pytest.fixture(autouse=True)
def _no_global_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    # Keep the package logger unconfigured so other tests can still use caplog.
    monkeypatch.setattr(cli_mod, "configure_logging", lambda *a, **k: None)


def _invoke(db_url: str, *args: str):
    return runner.invoke(cli_mod.app, ["--database-url", db_url, *args])


def test_add_then_view(db_url: str):
    result = _invoke(
        db_url, "add", "--user", "alice", "-d", "Coffee", "--out", "$4.50", "--date", "2024-01-05"
    )
    assert result.exit_code == 0, result.output
    assert "Added record" in result.output

    result = _invoke(db_url, "view", "--user", "alice")
    assert result.exit_code == 0, result.output
    assert "Coffee" in result.output
    assert "01/05/2024" in result.output


def test_add_requires_exactly_one_amount(db_url: str):
    result = _invoke(db_url, "add", "--user", "alice", "-d", "Nothing")
    assert result.exit_code == 1


def test_edit_remove_and_missing_record(db_url: str):
    _invoke(db_url, "add", "--user", "alice", "-d", "Coffee", "--out", "4")

    assert _invoke(db_url, "edit", "1", "--user", "alice", "-c", "Food").exit_code == 0
    bad = _invoke(db_url, "edit", "1", "--user", "alice", "--out=-4")
    assert bad.exit_code == 1
    assert "invalid record" in bad.output

    assert _invoke(db_url, "remove", "1", "--user", "alice").exit_code == 0
    missing = _invoke(db_url, "remove", "1", "--user", "alice")
    assert missing.exit_code == 1
    assert "not found" in missing.output


def test_import_csv_reports_counts(db_url: str, tmp_path: Path):
    csv_path = tmp_path / "export.csv"
    csv_path.write_text(
        textwrap.dedent(
            """\
            Date,Description,Category,In,Out
            01/05/2024,Groceries,Food,,$50.00
            01/06/2024,Nothing here,Misc,,
            01/07/2024,Also nothing,Misc,,
            """
        ),
        encoding="utf-8",
    )

    result = _invoke(db_url, "import-csv", str(csv_path), "--user", "alice")

    assert result.exit_code == 0, result.output
    assert "skipped 2 of 3" in result.output


def test_import_sheet_requires_a_sheet_url(db_url: str):
    assert _invoke(db_url, "import-sheet", "--user", "alice").exit_code == 1


def test_import_sheet_uses_configured_url(db_url: str, monkeypatch: pytest.MonkeyPatch):
    seen: list[str] = []

    def _fake_import(source_ref, ledger_id, *, store, on_progress, cancel_token):
        seen.append(source_ref)
        on_progress(1, 1)
        return 1

    monkeypatch.setattr(cli_mod, "import_from_spreadsheet", _fake_import)
    SettingsStore().update(sync_url=SHEET_URL)

    result = _invoke(db_url, "import-sheet", "--user", "alice")

    assert result.exit_code == 0, result.output
    assert seen == [SHEET_URL]
    assert "Imported 1" in result.output


def test_cancelled_import_exits_130(db_url: str, monkeypatch: pytest.MonkeyPatch):
    def _cancelled(*args, **kwargs):
        raise ImportCancelled(imported=2, total=5)

    monkeypatch.setattr(cli_mod, "import_from_spreadsheet", _cancelled)

    result = _invoke(db_url, "import-sheet", "--user", "alice", "--url", SHEET_URL)

    assert result.exit_code == 130
    assert "cancelled" in result.output


def test_transport_failure_exits_1(db_url: str, monkeypatch: pytest.MonkeyPatch):
    def _unreachable(*args, **kwargs):
        raise TransportError("HTTP 404", status_code=404)

    monkeypatch.setattr(cli_mod, "import_from_spreadsheet", _unreachable)

    result = _invoke(db_url, "import-sheet", "--user", "alice", "--url", SHEET_URL)

    assert result.exit_code == 1
    assert "could not reach the spreadsheet" in result.output


def test_settings_commands():
    assert runner.invoke(cli_mod.app, ["set-url", SHEET_URL]).exit_code == 0
    assert runner.invoke(cli_mod.app, ["watch-enable"]).exit_code == 0

    settings = SettingsStore().load()
    assert settings.sync_url == SHEET_URL
    assert settings.watcher_enabled is True

    assert runner.invoke(cli_mod.app, ["watch-disable"]).exit_code == 0
    assert SettingsStore().load().watcher_enabled is False

    shown = runner.invoke(cli_mod.app, ["show-config"])
    assert shown.exit_code == 0
    assert "watcher_enabled" in shown.output


def test_push_without_webhook_is_a_no_op(db_url: str):
    result = _invoke(db_url, "push", "--user", "alice")
    assert result.exit_code == 0
    assert "nothing to push" in result.output


def test_sharing_commands(db_url: str):
    assert _invoke(db_url, "share-create", "--user", "alice").exit_code == 0
    assert _invoke(db_url, "share-add", "bob", "--user", "alice").exit_code == 0
    _invoke(db_url, "add", "--user", "bob", "-d", "Dinner", "--out", "30")

    view = _invoke(db_url, "view", "--user", "alice")
    assert "Dinner" in view.output

    members = _invoke(db_url, "share-members", "--user", "bob")
    assert "alice (owner)" in members.output
    assert "bob" in members.output

    assert _invoke(db_url, "share-remove", "alice", "--user", "alice").exit_code == 1


def test_import_pushes_to_the_webhook_once(
    db_url: str, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
):
    posts: list[dict] = []

    class _Ack:
        status_code = 200

        def json(self) -> dict:
            return {"success": True}

    def _post(url: str, **kwargs):
        posts.append(kwargs["json"])
        return _Ack()

    monkeypatch.setattr(outbound_mod.requests, "post", _post)
    SettingsStore().update(sync_url=WEBHOOK_URL)
    csv_path = tmp_path / "export.csv"
    csv_path.write_text(
        "Date,Description,Out\n"
        + "".join(f"01/{day:02d}/2024,Row {day},{day}\n" for day in range(1, 21)),
        encoding="utf-8",
    )

    result = _invoke(db_url, "import-csv", str(csv_path), "--user", "alice")

    assert result.exit_code == 0, result.output
    assert len(posts) == 1
    assert len(posts[0]["expenses"]) == 20


def test_declined_clear_aborts_and_keeps_records(db_url: str):
    _invoke(db_url, "add", "--user", "alice", "-d", "Coffee", "--out", "4")

    result = runner.invoke(
        cli_mod.app, ["--database-url", db_url, "clear", "--user", "alice"], input="n\n"
    )

    assert result.exit_code == 1
    assert "Aborted" in result.output
    assert "Error:" not in result.output
    assert "Coffee" in _invoke(db_url, "view", "--user", "alice").output
