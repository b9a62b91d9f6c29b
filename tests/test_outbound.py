import logging
import threading
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
import requests

from ledger_sync.importer import import_csv_text
from ledger_sync.outbound import OutboundSyncClient, build_payload
from ledger_sync.settings import SettingsStore
from ledger_sync.store import LedgerStore

HOOK = "https://script.google.com/macros/s/abc/exec"


class _Response:
    def __init__(self, status_code: int = 200, body: Any = None) -> None:
        self.status_code = status_code
        self._body = {"success": True} if body is None else body

    def json(self) -> Any:
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class _Session:
    def __init__(self, outcome: _Response | Exception | None = None) -> None:
        self._outcome = outcome or _Response()
        self.posts: list[dict[str, Any]] = []

    def post(self, url: str, **kwargs: Any) -> _Response:
        self.posts.append({"url": url, **kwargs})
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return self._outcome


def _seed(store: LedgerStore) -> None:
    store.append(
        "alice",
        {"occurred_on": date(2024, 1, 6), "description": "Lunch", "amount_out": Decimal("12.5")},
    )
    store.append(
        "alice",
        {
            "occurred_on": date(2024, 1, 5),
            "description": "Salary",
            "category": "Income",
            "amount_in": Decimal("100"),
        },
    )


def test_build_payload_shape(store: LedgerStore):
    _seed(store)
    body = build_payload(store.view("alice")).to_json_body()

    assert body["action"] == "batch"
    assert [list(row) for row in body["expenses"]] == [
        ["ref", "date", "description", "category", "in", "out", "balance"]
    ] * 2
    assert body["expenses"][0] == {
        "ref": 1,
        "date": "01/05/2024",
        "description": "Salary",
        "category": "Income",
        "in": 100.0,
        "out": 0.0,
        "balance": 100.0,
    }
    assert body["expenses"][1]["ref"] == 2
    assert body["expenses"][1]["balance"] == 87.5


@pytest.mark.parametrize("url", [None, "https://docs.google.com/spreadsheets/d/abc/edit"])
def test_push_without_endpoint_is_a_successful_no_op(store: LedgerStore, url):
    SettingsStore().update(sync_url=url)
    session = _Session()

    result = OutboundSyncClient(store=store, session=session).push("alice")

    assert result.success and result.skipped
    assert session.posts == []


def test_push_posts_the_full_batch(store: LedgerStore):
    _seed(store)
    session = _Session(_Response(200, {"success": True, "count": 2}))

    result = OutboundSyncClient(store=store, url=HOOK, session=session).push("alice")

    assert result.success and not result.skipped and result.count == 2
    (post,) = session.posts
    assert post["url"] == HOOK
    assert post["timeout"] == 10.0
    assert len(post["json"]["expenses"]) == 2


def test_push_reads_the_endpoint_from_settings(store: LedgerStore):
    SettingsStore().update(sync_url=HOOK)
    session = _Session()
    assert OutboundSyncClient(store=store, session=session).push("alice").success
    assert session.posts[0]["url"] == HOOK


@pytest.mark.parametrize(
    "outcome",
    [
        _Response(500),
        _Response(200, ValueError("not json")),
        _Response(200, {"success": False, "message": "sheet locked"}),
        _Response(200, ["unexpected"]),
        requests.ConnectionError("down"),
        requests.Timeout("slow"),
    ],
)
def test_push_failures_are_results_not_exceptions(store: LedgerStore, outcome):
    result = OutboundSyncClient(store=store, url=HOOK, session=_Session(outcome)).push("alice")
    assert not result.success
    assert result.error


def test_push_with_unreachable_store_fails_softly(tmp_path: Path):
    broken = LedgerStore(database_url=f"sqlite+pysqlite:///{tmp_path / 'missing' / 'x.db'}")
    result = OutboundSyncClient(store=broken, url=HOOK, session=_Session()).push("alice")
    assert not result.success


def test_attach_pushes_after_local_mutations(store: LedgerStore):
    session = _Session()
    client = OutboundSyncClient(store=store, url=HOOK, session=session)
    unsubscribe = client.attach("alice")

    _seed(store)
    client.close(wait=True)
    unsubscribe()
    store.clear("alice")
    client.close(wait=True)

    assert 1 <= len(session.posts) <= 2
    assert all(p["url"] == HOOK for p in session.posts)
    assert len(session.posts[-1]["json"]["expenses"]) == 2


class _BlockingSession(_Session):
    """Holds every POST until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def post(self, url: str, **kwargs: Any) -> _Response:
        self.started.set()
        self.release.wait(5)
        return super().post(url, **kwargs)


def test_many_writes_while_a_push_is_running_queue_one_more(store: LedgerStore):
    session = _BlockingSession()
    client = OutboundSyncClient(store=store, url=HOOK, session=session)
    client.attach("alice")

    report = import_csv_text(
        "Date,Description,Out\n"
        + "".join(f"01/{day:02d}/2024,Row {day},{day}\n" for day in range(1, 26)),
        "alice",
        store=store,
    )
    assert report.imported == 25
    assert session.started.wait(5)
    session.release.set()
    client.close(wait=True)

    assert 1 <= len(session.posts) <= 2
    assert len(session.posts[-1]["json"]["expenses"]) == 25


def test_push_async_reuses_the_queued_future(store: LedgerStore):
    session = _BlockingSession()
    client = OutboundSyncClient(store=store, url=HOOK, session=session)

    running = client.push_async("alice")
    assert session.started.wait(5)
    queued = client.push_async("alice")
    assert client.push_async("alice") is queued
    assert queued is not running
    assert client.push_async("bob") is not queued

    session.release.set()
    client.close(wait=True)
    assert len(session.posts) == 3


def test_push_without_database_url_fails_softly(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    client = OutboundSyncClient(store=LedgerStore(), url=HOOK, session=_Session())

    result = client.push("alice")

    assert not result.success
    assert "DATABASE_URL" in result.error


def test_failing_webhook_never_fails_the_write(store: LedgerStore):
    client = OutboundSyncClient(
        store=store, url=HOOK, session=_Session(requests.ConnectionError("down"))
    )
    client.attach("alice")

    _seed(store)
    client.close(wait=True)

    assert len(store.records("alice")) == 2


def test_crashing_push_is_drained_into_the_log(store: LedgerStore, caplog):
    caplog.set_level(logging.ERROR, logger="ledger_sync")
    client = OutboundSyncClient(store=store, url=HOOK, session=_Session(RuntimeError("bug")))

    future = client.push_async("alice")
    client.close(wait=True)

    assert isinstance(future.exception(), RuntimeError)
    assert "outbound:push_crashed" in caplog.text
