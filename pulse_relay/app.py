"""Typer CLI entrypoint for Pulse-Relay."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigLocator, ConfigRepository, RelayConfig, TopicConfig
from .engine import SearchClient
from .errors import ConfigurationError
from .logging_conf import available_topic_logs, configure_logging, tail_log
from .poller import PollLoop, TickOutcome

app = typer.Typer(
    help="Pulse-Relay command line tool",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Inspect relay logs.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
app.add_typer(log_app)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    config: RelayConfig


def build_state(verbose: bool, config_path: Path | None = None) -> AppState:
    repository = ConfigRepository(ConfigLocator(), config_path=config_path)
    config = repository.load_config()
    configure_logging(verbose=verbose)
    return AppState(repository=repository, config=config)


def build_poll_loop(state: AppState) -> PollLoop:
    api_key = state.repository.resolve_api_key(state.config)
    client = SearchClient(state.config.upstream, api_key)
    return PollLoop(state.config, client)


def _fail(exc: ConfigurationError) -> None:
    console.print(f"[bold red]Configuration error:[/bold red] {exc}")
    raise typer.Exit(code=1)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        try:
            state = build_state(verbose=False)
        except ConfigurationError as exc:
            _fail(exc)
        ctx.obj = state
    return state


def _render_topics_table(topics: Sequence[TopicConfig]) -> Table:
    table = Table(title="Configured topics", box=box.SIMPLE_HEAVY)
    table.add_column("Name", style="bold cyan")
    table.add_column("Query")
    table.add_column("URL pattern", style="magenta")
    for topic in topics:
        table.add_row(topic.name, topic.query, topic.url_pattern or "-")
    return table


def _render_outcomes_table(outcomes: Iterable[TickOutcome]) -> Table:
    table = Table(title="Poll results", box=box.SIMPLE_HEAVY)
    table.add_column("Topic", style="bold cyan")
    table.add_column("Status")
    table.add_column("New", justify="right")
    table.add_column("Invalid", justify="right")
    table.add_column("Cursor", style="dim")
    table.add_column("Error", style="red")
    for outcome in outcomes:
        cursor = outcome.cursor.last_seen_id if outcome.cursor else None
        table.add_row(
            outcome.topic,
            outcome.status,
            str(len(outcome.delta)),
            str(outcome.invalid),
            cursor or "-",
            outcome.error or "",
        )
    return table


def _render_items_table(outcome: TickOutcome, width: int = 80) -> Table:
    table = Table(title=f"{outcome.topic}: new items", box=box.MINIMAL)
    table.add_column("ID", style="dim")
    table.add_column("Author", style="green")
    table.add_column("Text")
    for item in outcome.delta:
        text = item.text.replace("\n", " ")
        if len(text) > width:
            text = text[: width - 1] + "…"
        table.add_row(item.id, f"@{item.author.screen_name}" if item.author.screen_name else "-", text)
    return table


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to a relay config file."),
) -> None:
    ctx.meta["config_path"] = config
    if ctx.invoked_subcommand == "init-config":
        # init-config has to work on a missing or broken file, so nothing is loaded here
        configure_logging(verbose=verbose)
        return
    try:
        ctx.obj = build_state(verbose, config)
    except ConfigurationError as exc:
        _fail(exc)


@app.command("topics", help="List configured topics.")
def topics(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    console.print(_render_topics_table(state.config.topics))


@app.command("init-config", help="Write the default configuration file.")
def init_config(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    repository = ConfigRepository(ConfigLocator(), config_path=ctx.meta.get("config_path"))
    path = repository.config_path
    if path.exists() and not force:
        console.print(f"[yellow]Configuration already exists:[/yellow] {path}")
        return
    saved = repository.save_config(RelayConfig())
    console.print(f"[green]Wrote default configuration:[/green] {saved}")


@app.command("poll", help="Run one poll tick synchronously and print the new items.")
def poll(
    ctx: typer.Context,
    topic: Optional[list[str]] = typer.Option(None, "--topic", "-t", help="Restrict to these topics."),
    show_items: bool = typer.Option(True, "--items/--no-items", help="Print new items per topic."),
) -> None:
    state = _get_state(ctx)
    known = {entry.name for entry in state.config.topics}
    unknown = sorted(set(topic or []) - known)
    if unknown:
        console.print(f"[red]Unknown topic(s):[/red] {', '.join(unknown)}")
        raise typer.Exit(code=2)
    try:
        loop = build_poll_loop(state)
    except ConfigurationError as exc:
        _fail(exc)
    outcomes = loop.run_once(topic or None)
    console.print(_render_outcomes_table(outcomes))
    if show_items:
        for outcome in outcomes:
            if outcome.delta:
                console.print(_render_items_table(outcome))
    if any(outcome.status == "failed" for outcome in outcomes):
        raise typer.Exit(code=1)


@app.command("serve", help="Start the poll loop and the WebSocket/REST server.")
def serve(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", help="Override the bind host."),
    port: Optional[int] = typer.Option(None, "--port", help="Override the bind port."),
) -> None:
    import uvicorn

    from .web import create_app

    state = _get_state(ctx)
    try:
        loop = build_poll_loop(state)
    except ConfigurationError as exc:
        _fail(exc)
    bind_host = host or state.config.server.host
    bind_port = port or state.config.server.port
    console.print(
        f"[green]Relaying {len(state.config.topics)} topic(s) on {bind_host}:{bind_port} "
        f"every {state.config.poll_interval_s:g}s[/green]"
    )
    uvicorn.run(create_app(loop), host=bind_host, port=bind_port, log_config=None)


@log_app.command("list", help="List available per-topic logs.")
def log_list() -> None:
    logs = list(available_topic_logs())
    if not logs:
        console.print("[yellow]No topic logs yet.[/yellow]")
        return
    table = Table(title="Topic logs", box=box.SIMPLE)
    table.add_column("Topic", style="cyan")
    table.add_column("Path", style="dim")
    for path in logs:
        table.add_row(path.stem, str(path))
    console.print(table)


@log_app.command("show", help="Show the tail of a topic log.")
def log_show(
    name: str = typer.Argument(..., help="Topic name."),
    lines: int = typer.Option(50, "--lines", "-n", min=1, help="Number of lines."),
) -> None:
    matches = [path for path in available_topic_logs() if path.stem == name]
    if not matches:
        console.print(f"[red]No log for topic:[/red] {name}")
        raise typer.Exit(code=1)
    for line in tail_log(matches[0], lines):
        console.print(line.rstrip("\n"), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
