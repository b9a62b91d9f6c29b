# ruff: noqa: I001
"""CLI for the ``ledger_sync`` package.

A Typer console interface over the ledger store, the spreadsheet importer,
the change-watcher and shared-ledger membership. Environment variables
(notably ``DATABASE_URL``) are loaded from a local ``.env`` using
``python-dotenv`` before any command runs. Business logic lives in
``ledger_sync.api`` and the component modules; this module only parses
options, renders output with ``rich`` and maps failures to exit codes:

- ``0``: success
- ``1``: failure (validation, transport, unavailable store, bad reference)
- ``130``: import cancelled with Ctrl-C
"""

from __future__ import annotations

import signal
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from db.client import DatabaseNotConfiguredError

from .errors import (
    ImportCancelled,
    InvalidSourceError,
    LedgerSyncError,
    MembershipError,
    RecordNotFoundError,
    RecordValidationError,
    StoreUnavailableError,
    TransportError,
)
from .importer import CancelToken, import_csv_text, import_from_spreadsheet
from .ledger import LedgerView
from .logging_setup import configure_logging
from .models import RecordPatch
from .outbound import OutboundSyncClient
from .parsing import parse_amount
from .resolver import LedgerResolver
from .settings import SettingsStore
from .sheets import is_spreadsheet_url
from .store import LedgerStore
from .watcher import SheetWatcher

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Expense ledger synced with a Google spreadsheet. "
        "Loads DATABASE_URL from a local .env before running."
    ),
)


# ---- Small module-level helpers used by CLI commands -------------------------


def _database_url(ctx: typer.Context) -> str | None:
    return (ctx.obj or {}).get("database_url")


def _ledger_for(ctx: typer.Context, user: str) -> tuple[LedgerStore, str]:
    database_url = _database_url(ctx)
    store = LedgerStore(database_url=database_url)
    return store, LedgerResolver(database_url=database_url).resolve(user)


@contextmanager
def _exit_on_error() -> Iterator[None]:
    """Translate package failures into a message and an exit code."""

    try:
        yield
    except ImportCancelled as e:
        err_console.print(
            f"[yellow]Import cancelled[/yellow] after {e.imported} of {e.total} rows; "
            "rows already imported were kept."
        )
        raise typer.Exit(EXIT_CANCELLED) from e
    except TransportError as e:
        err_console.print(f"[red]Error:[/red] could not reach the spreadsheet: {e}")
        raise typer.Exit(EXIT_FAILURE) from e
    except InvalidSourceError as e:
        err_console.print(f"[red]Error:[/red] invalid spreadsheet reference: {e}")
        raise typer.Exit(EXIT_FAILURE) from e
    except RecordValidationError as e:
        err_console.print(f"[red]Error:[/red] invalid record: {e}")
        raise typer.Exit(EXIT_FAILURE) from e
    except RecordNotFoundError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_FAILURE) from e
    except StoreUnavailableError as e:
        err_console.print(f"[red]Error:[/red] ledger unavailable: {e}")
        raise typer.Exit(EXIT_FAILURE) from e
    except MembershipError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_FAILURE) from e
    except LedgerSyncError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_FAILURE) from e
    except DatabaseNotConfiguredError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_FAILURE) from e


@contextmanager
def _cancel_on_interrupt(token: CancelToken) -> Iterator[None]:
    """Route Ctrl-C to ``token`` so the import stops at the next row."""

    def _handler(signum, frame):  # noqa: ARG001
        token.cancel()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


@contextmanager
def _pushing(
    store: LedgerStore,
    ledger_id: str,
    settings: SettingsStore,
    *,
    once: bool = False,
) -> Iterator[None]:
    """Push the ledger to the configured webhook after local mutations.

    With ``once`` (bulk imports) nothing is pushed per change; a single push
    follows the block, including when it was cancelled part-way.
    """

    client = OutboundSyncClient(store=store, settings=settings)
    if client.endpoint() is None:
        yield
        return

    unsubscribe = None if once else client.attach(ledger_id)
    try:
        yield
    finally:
        if unsubscribe is not None:
            unsubscribe()
        else:
            client.push_async(ledger_id)
        # Let the pending push finish before the process exits.
        client.close(wait=True)


def _render_view(view: LedgerView) -> Table:
    table = Table(title=f"Ledger {view.ledger_id}", show_lines=False)
    table.add_column("Ref", justify="right")
    table.add_column("Id", justify="right", style="dim")
    table.add_column("Date")
    table.add_column("Description")
    table.add_column("Category")
    table.add_column("In", justify="right", style="green")
    table.add_column("Out", justify="right", style="red")
    table.add_column("Balance", justify="right", style="bold")
    for entry in view.newest_first():
        r = entry.record
        table.add_row(
            str(entry.ref),
            str(r.id),
            r.occurred_on.strftime("%m/%d/%Y"),
            r.description,
            r.category,
            f"{r.amount_in:,.2f}" if r.amount_in else "",
            f"{r.amount_out:,.2f}" if r.amount_out else "",
            f"{entry.balance:,.2f}",
        )
    return table


def _run_import(fn, *args, **kwargs):
    """Run an import with a progress bar and Ctrl-C cancellation."""

    token = CancelToken()
    with Progress(
        TextColumn("[cyan]Importing"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("import", total=None)

        def _on_progress(done: int, total: int) -> None:
            progress.update(task, completed=done, total=total)

        with _cancel_on_interrupt(token):
            return fn(*args, on_progress=_on_progress, cancel_token=token, **kwargs)


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults).
USER_OPTION = typer.Option("--user", "-u", help="User id whose ledger to use.")
DATE_OPTION = typer.Option(
    "--date", formats=["%Y-%m-%d", "%m/%d/%Y"], help="Transaction date."
)


# ---- Ledger commands ---------------------------------------------------------


@app.command("view")
def view_cmd(ctx: typer.Context, user: Annotated[str, USER_OPTION]) -> None:
    """Show the ledger newest first with refs and running balances."""

    with _exit_on_error():
        store, ledger_id = _ledger_for(ctx, user)
        view = store.view(ledger_id)
    if not len(view):
        console.print(f"Ledger [bold]{ledger_id}[/bold] has no records.")
        return
    console.print(_render_view(view))
    console.print(f"Closing balance: [bold]{view.balance:,.2f}[/bold]")


@app.command("add")
def add_cmd(
    ctx: typer.Context,
    user: Annotated[str, USER_OPTION],
    description: Annotated[str, typer.Option("--description", "-d")],
    occurred_on: Annotated[datetime | None, DATE_OPTION] = None,
    category: Annotated[str, typer.Option("--category", "-c")] = "",
    amount_in: Annotated[str, typer.Option("--in", help="Income amount.")] = "",
    amount_out: Annotated[str, typer.Option("--out", help="Expense amount.")] = "",
) -> None:
    """Add one record (exactly one of --in/--out)."""

    money_in = parse_amount(amount_in)
    money_out = parse_amount(amount_out)
    if bool(money_in) == bool(money_out):
        err_console.print("[red]Error:[/red] give exactly one non-zero amount via --in or --out")
        raise typer.Exit(EXIT_FAILURE)

    with _exit_on_error():
        store, ledger_id = _ledger_for(ctx, user)
        with _pushing(store, ledger_id, SettingsStore()):
            record_id = store.append(
                ledger_id,
                {
                    "occurred_on": (occurred_on or datetime.now()).date(),
                    "description": description,
                    "category": category,
                    "amount_in": money_in,
                    "amount_out": money_out,
                },
            )
    console.print(f"Added record [bold]{record_id}[/bold] to ledger {ledger_id}.")


@app.command("edit")
def edit_cmd(
    ctx: typer.Context,
    record_id: Annotated[int, typer.Argument(help="Record id (see `view`).")],
    user: Annotated[str, USER_OPTION],
    occurred_on: Annotated[datetime | None, DATE_OPTION] = None,
    description: Annotated[str | None, typer.Option("--description", "-d")] = None,
    category: Annotated[str | None, typer.Option("--category", "-c")] = None,
    amount_in: Annotated[str | None, typer.Option("--in")] = None,
    amount_out: Annotated[str | None, typer.Option("--out")] = None,
) -> None:
    """Change fields of one record; omitted fields keep their values."""

    patch = RecordPatch(
        occurred_on=occurred_on.date() if occurred_on else None,
        description=description,
        category=category,
        amount_in=parse_amount(amount_in) if amount_in is not None else None,
        amount_out=parse_amount(amount_out) if amount_out is not None else None,
    )
    with _exit_on_error():
        store, ledger_id = _ledger_for(ctx, user)
        with _pushing(store, ledger_id, SettingsStore()):
            updated = store.update(ledger_id, record_id, patch)
    console.print(f"Updated record [bold]{updated.id}[/bold].")


@app.command("remove")
def remove_cmd(
    ctx: typer.Context,
    record_id: Annotated[int, typer.Argument(help="Record id (see `view`).")],
    user: Annotated[str, USER_OPTION],
) -> None:
    """Delete one record."""

    with _exit_on_error():
        store, ledger_id = _ledger_for(ctx, user)
        with _pushing(store, ledger_id, SettingsStore()):
            store.remove(ledger_id, record_id)
    console.print(f"Removed record [bold]{record_id}[/bold].")


@app.command("clear")
def clear_cmd(
    ctx: typer.Context,
    user: Annotated[str, USER_OPTION],
    yes: Annotated[bool, typer.Option("--yes", help="Skip the confirmation prompt.")] = False,
) -> None:
    """Delete every record of the ledger."""

    with _exit_on_error():
        store, ledger_id = _ledger_for(ctx, user)
        if not yes:
            typer.confirm(f"Delete all records of ledger {ledger_id}?", abort=True)
        with _pushing(store, ledger_id, SettingsStore()):
            removed = store.clear(ledger_id)
    console.print(f"Removed {removed} record(s) from ledger {ledger_id}.")


# ---- Import / sync commands --------------------------------------------------


@app.command("import-sheet")
def import_sheet_cmd(
    ctx: typer.Context,
    user: Annotated[str, USER_OPTION],
    url: Annotated[
        str | None,
        typer.Option("--url", help="Spreadsheet link (defaults to the configured sync URL)."),
    ] = None,
) -> None:
    """Import every row of a shared Google spreadsheet into the ledger."""

    settings = SettingsStore()
    source = url or settings.load().sync_url
    if not source or not is_spreadsheet_url(source):
        err_console.print("[red]Error:[/red] no spreadsheet URL given or configured (see set-url)")
        raise typer.Exit(EXIT_FAILURE)

    with _exit_on_error():
        store, ledger_id = _ledger_for(ctx, user)
        with _pushing(store, ledger_id, settings, once=True):
            count = _run_import(import_from_spreadsheet, source, ledger_id, store=store)
    console.print(f"Imported [bold]{count}[/bold] record(s) into ledger {ledger_id}.")


@app.command("import-csv")
def import_csv_cmd(
    ctx: typer.Context,
    csv_path: Annotated[
        Path, typer.Argument(dir_okay=False, file_okay=True, help="Exported CSV file.")
    ],
    user: Annotated[str, USER_OPTION],
) -> None:
    """Import a locally saved spreadsheet export."""

    try:
        text = csv_path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        err_console.print(f"[red]Error:[/red] failed to read CSV: {e}")
        raise typer.Exit(EXIT_FAILURE) from e

    with _exit_on_error():
        store, ledger_id = _ledger_for(ctx, user)
        with _pushing(store, ledger_id, SettingsStore(), once=True):
            report = _run_import(import_csv_text, text, ledger_id, store=store)
    console.print(
        f"Imported [bold]{report.imported}[/bold] record(s), "
        f"skipped {report.skipped} of {report.total} row(s)."
    )


@app.command("push")
def push_cmd(ctx: typer.Context, user: Annotated[str, USER_OPTION]) -> None:
    """Send the full ledger to the configured webhook now."""

    with _exit_on_error():
        store, ledger_id = _ledger_for(ctx, user)
    result = OutboundSyncClient(store=store).push(ledger_id)
    if result.skipped:
        console.print("No webhook configured; nothing to push.")
    elif result.success:
        console.print(f"Pushed {result.count} record(s).")
    else:
        err_console.print(f"[red]Error:[/red] push failed: {result.error}")
        raise typer.Exit(EXIT_FAILURE)


@app.command("watch")
def watch_cmd(
    ctx: typer.Context,
    user: Annotated[str, USER_OPTION],
    interval: Annotated[
        float | None, typer.Option(help="Seconds between polls (LEDGER_SYNC_POLL_INTERVAL).")
    ] = None,
    enable: Annotated[bool, typer.Option("--enable", help="Persist the enabled flag first.")] = False,
) -> None:
    """Poll the linked spreadsheet in the foreground until Ctrl-C."""

    database_url = _database_url(ctx)
    watcher = SheetWatcher(
        user,
        store=LedgerStore(database_url=database_url),
        resolver=LedgerResolver(database_url=database_url),
        interval=interval,
    )
    if enable:
        watcher.enable()
    elif not watcher.enabled:
        err_console.print("[yellow]Watcher is disabled[/yellow]; run watch-enable or pass --enable.")
        raise typer.Exit(EXIT_FAILURE)
    else:
        watcher.start()

    console.print(f"Watching every {watcher.interval:g}s. Press Ctrl-C to stop.")
    try:
        while not watcher.wait(1.0):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        watcher.stop(timeout=30)


@app.command("watch-enable")
def watch_enable_cmd() -> None:
    """Enable the change-watcher (persisted across restarts)."""

    SettingsStore().update(watcher_enabled=True)
    console.print("Watcher enabled.")


@app.command("watch-disable")
def watch_disable_cmd() -> None:
    """Disable the change-watcher (persisted across restarts)."""

    SettingsStore().update(watcher_enabled=False)
    console.print("Watcher disabled.")


@app.command("set-url")
def set_url_cmd(
    url: Annotated[str, typer.Argument(help="Spreadsheet link or webhook URL; '' to unset.")],
) -> None:
    """Configure the sync URL (a spreadsheet to import or a webhook to push to)."""

    settings = SettingsStore().update(sync_url=url)
    if settings.sync_url is None:
        console.print("Sync URL cleared.")
    elif is_spreadsheet_url(settings.sync_url):
        console.print("Linked spreadsheet set; imports and the watcher will read from it.")
    else:
        console.print("Webhook set; local changes will be pushed to it.")


@app.command("show-config")
def show_config_cmd() -> None:
    """Print the persisted sync settings."""

    store = SettingsStore()
    settings = store.load()
    table = Table(show_header=False)
    table.add_row("settings file", str(store.path))
    table.add_row("sync_url", settings.sync_url or "-")
    table.add_row("watcher_enabled", str(settings.watcher_enabled).lower())
    console.print(table)


# ---- Shared ledgers ----------------------------------------------------------


@app.command("share-create")
def share_create_cmd(ctx: typer.Context, user: Annotated[str, USER_OPTION]) -> None:
    """Turn the user's ledger into a shared ledger they own."""

    from .sharing import create_shared_ledger

    with _exit_on_error():
        ledger_id = create_shared_ledger(user, database_url=_database_url(ctx))
    console.print(f"Shared ledger [bold]{ledger_id}[/bold] ready.")


@app.command("share-add")
def share_add_cmd(
    ctx: typer.Context,
    member: Annotated[str, typer.Argument(help="User id to add.")],
    user: Annotated[str, USER_OPTION],
) -> None:
    """Add a member to the shared ledger the user belongs to."""

    from .sharing import add_member

    with _exit_on_error():
        _, ledger_id = _ledger_for(ctx, user)
        added = add_member(ledger_id, member, database_url=_database_url(ctx))
    console.print(
        f"Added {member} to {ledger_id}." if added else f"{member} is already a member."
    )


@app.command("share-remove")
def share_remove_cmd(
    ctx: typer.Context,
    member: Annotated[str, typer.Argument(help="User id to remove.")],
    user: Annotated[str, USER_OPTION],
) -> None:
    """Remove a member (or leave, with your own id) from the shared ledger."""

    from .sharing import remove_member

    with _exit_on_error():
        _, ledger_id = _ledger_for(ctx, user)
        removed = remove_member(ledger_id, member, database_url=_database_url(ctx))
    console.print(f"Removed {member}." if removed else f"{member} is not a member.")


@app.command("share-members")
def share_members_cmd(ctx: typer.Context, user: Annotated[str, USER_OPTION]) -> None:
    """List the members of the user's shared ledger."""

    from .sharing import list_members

    with _exit_on_error():
        _, ledger_id = _ledger_for(ctx, user)
        members = list_members(ledger_id, database_url=_database_url(ctx))
    if not members:
        console.print(f"Ledger {ledger_id} is not shared.")
        return
    for i, member in enumerate(members):
        console.print(f"{member} (owner)" if i == 0 else member)


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    *,
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
    log_level: str | None = typer.Option(
        None, help="Log level (falls back to LEDGER_SYNC_LOG_LEVEL, then INFO)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging(log_level)

    ctx.obj = {"database_url": database_url}

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(EXIT_FAILURE)


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m ledger_sync.cli`
    app()
