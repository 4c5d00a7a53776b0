from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from accountapi.client import AccountClient
from accountapi.config import (
    ClientConfig,
    ConfigError,
    discover_config_path,
    load_config,
    write_default_config,
)
from accountapi.errors import AccountApiError
from accountapi.logging.events import EventBus, EventContext
from accountapi.logging.jsonl_sink import JsonlSink
from accountapi.runtime.context import Context
from accountapi.runtime.signals import cancel_on_signals
from accountapi.storage.run_store import (
    create_run_dir,
    events_path_for,
    generate_run_id,
    list_runs,
)
from accountapi.types import AccountData, EventRecord

app = typer.Typer(help="Client for the organisation accounts API")
accounts_app = typer.Typer(help="Create, fetch and delete accounts")
config_app = typer.Typer(help="Initialize and validate configuration")
app.add_typer(accounts_app, name="accounts")
app.add_typer(config_app, name="config")
console = Console()

ResultT = TypeVar("ResultT")


def _load_config_or_exit(config_path: Path | None) -> ClientConfig:
    try:
        return load_config(config_path)
    except ConfigError as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        raise typer.Exit(code=1) from exc


def _render_progress(event: EventRecord) -> None:
    payload = event.payload
    et = event.event_type
    if et == "request_sent":
        console.print(
            f"[cyan]request[/cyan] {payload.get('method')} {payload.get('url')} "
            f"attempt={payload.get('attempt')}"
        )
    elif et == "response_received":
        console.print(
            f"[cyan]response[/cyan] status={payload.get('status_code')} "
            f"latency_ms={payload.get('latency_ms')}"
        )
    elif et == "retry_scheduled":
        console.print(
            f"[yellow]retry[/yellow] status={payload.get('status_code')} "
            f"attempt={payload.get('attempt')} delay_ms={payload.get('delay_ms')}"
        )
    elif et == "request_failed":
        console.print(f"[red]failed[/red] kind={payload.get('kind')}")


@contextmanager
def _open_client(cfg: ClientConfig, show_progress: bool) -> Iterator[tuple[AccountClient, str]]:
    run_id = generate_run_id()
    sink: JsonlSink | None = None
    if cfg.logging.enabled:
        sink = JsonlSink.for_run_dir(create_run_dir(Path(cfg.logging.jsonl_dir), run_id))
    bus = EventBus(
        sink,
        EventContext(run_id=run_id),
        redact=cfg.logging.redact_secrets,
        sanitize=cfg.logging.sanitize_control_chars,
        on_emit=_render_progress if show_progress else None,
    )
    with AccountClient(cfg, events=bus) as client:
        yield client, run_id


def _run_operation(
    cfg: ClientConfig,
    timeout: float | None,
    show_progress: bool,
    operation: Callable[[AccountClient, Context], ResultT],
) -> ResultT:
    ctx = Context(timeout=timeout)
    with _open_client(cfg, show_progress) as (client, run_id), cancel_on_signals(ctx) as signals:
        try:
            result = operation(client, ctx)
        except AccountApiError as exc:
            if signals.stop_requested:
                console.print(f"[yellow]interrupted[/yellow] by {signals.signal_name}")
            console.print(f"[red]Request failed ({exc.kind}):[/red] {exc}")
            raise typer.Exit(code=1) from exc
    if cfg.logging.enabled:
        console.print(f"Events: {events_path_for(Path(cfg.logging.jsonl_dir), run_id)}")
    return result


def _print_account(account: AccountData) -> None:
    console.print_json(account.model_dump_json(exclude_none=True, indent=2))


def _read_account_file(path: Path) -> AccountData:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        console.print(f"[red]Cannot read account file:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    if isinstance(raw, dict) and isinstance(raw.get("data"), dict):
        raw = raw["data"]
    try:
        return AccountData.model_validate(raw)
    except ValidationError as exc:
        console.print(f"[red]Invalid account file:[/red] {exc}")
        raise typer.Exit(code=1) from exc


@accounts_app.command("create")
def accounts_create(
    file: Annotated[Path, typer.Argument(help="JSON file with the account data")],
    timeout: Annotated[float | None, typer.Option(help="Overall deadline in seconds")] = None,
    show_progress: Annotated[bool, typer.Option(help="Print request/retry progress")] = True,
    config: Annotated[Path | None, typer.Option(help="Path to config file")] = None,
) -> None:
    cfg = _load_config_or_exit(config)
    data = _read_account_file(file)
    account = _run_operation(cfg, timeout, show_progress, lambda c, ctx: c.create(data, ctx))
    _print_account(account)


@accounts_app.command("fetch")
def accounts_fetch(
    account_id: Annotated[str, typer.Argument(help="Account ID")],
    timeout: Annotated[float | None, typer.Option(help="Overall deadline in seconds")] = None,
    show_progress: Annotated[bool, typer.Option(help="Print request/retry progress")] = True,
    config: Annotated[Path | None, typer.Option(help="Path to config file")] = None,
) -> None:
    cfg = _load_config_or_exit(config)
    account = _run_operation(
        cfg, timeout, show_progress, lambda c, ctx: c.fetch(account_id, ctx)
    )
    _print_account(account)


@accounts_app.command("delete")
def accounts_delete(
    account_id: Annotated[str, typer.Argument(help="Account ID")],
    version: Annotated[int, typer.Option(help="Current account version")],
    timeout: Annotated[float | None, typer.Option(help="Overall deadline in seconds")] = None,
    show_progress: Annotated[bool, typer.Option(help="Print request/retry progress")] = True,
    config: Annotated[Path | None, typer.Option(help="Path to config file")] = None,
) -> None:
    cfg = _load_config_or_exit(config)
    _run_operation(
        cfg, timeout, show_progress, lambda c, ctx: c.delete(account_id, version, ctx)
    )
    console.print(f"[green]Deleted[/green] {account_id}")


@app.command("runs")
def runs_command(
    config: Annotated[Path | None, typer.Option(help="Path to config file")] = None,
) -> None:
    cfg = _load_config_or_exit(config)
    run_ids = list_runs(Path(cfg.logging.jsonl_dir))
    if not run_ids:
        console.print("No runs found")
        return

    table = Table(title="Runs")
    table.add_column("Run ID")
    table.add_column("Events")
    for run_id in run_ids:
        sink = JsonlSink(events_path_for(Path(cfg.logging.jsonl_dir), run_id))
        table.add_row(run_id, str(len(sink.replay())))
    console.print(table)


@app.command("replay")
def replay_command(
    run_id: Annotated[str, typer.Argument(help="Run ID")],
    event_stream: Annotated[bool, typer.Option(help="Replay events as a stream")] = True,
    config: Annotated[Path | None, typer.Option(help="Path to config file")] = None,
) -> None:
    cfg = _load_config_or_exit(config)
    events_path = events_path_for(Path(cfg.logging.jsonl_dir), run_id)
    if not events_path.exists():
        console.print(f"Events file not found: {events_path}")
        raise typer.Exit(code=1)

    for data in JsonlSink(events_path).replay():
        if event_stream:
            console.print(
                f"[{data['timestamp']}] {data['event_type']} "
                f"run={data['run_id']} trace={data['trace_id']} payload={data['payload']}"
            )
        else:
            console.print_json(json.dumps(data))


@config_app.command("init")
def config_init(
    output: Annotated[Path, typer.Option(help="Output config path")] = Path("./accountapi.yaml"),
    force: Annotated[bool, typer.Option(help="Overwrite existing config file")] = False,
) -> None:
    try:
        write_default_config(output, overwrite=force)
    except ConfigError as exc:
        console.print(f"[red]Config init failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    console.print(f"Wrote config file: {output}")


@config_app.command("validate")
def config_validate(
    file: Annotated[Path, typer.Option(help="Config file path")] = Path("accountapi.yaml"),
) -> None:
    try:
        _ = load_config(file)
    except ConfigError as exc:
        console.print(f"[red]Invalid config:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    console.print(f"Config valid: {file}")


@app.command("config-path")
def config_path() -> None:
    path = discover_config_path(None)
    if path is None:
        console.print("No config discovered; using built-in defaults")
        return
    console.print(str(path))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
