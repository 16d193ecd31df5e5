"""
hashdeck — command-line entry point.

``hashdeck`` with no subcommand (or ``hashdeck ui``) runs the Textual shell.
The other commands drive the same command bridge headlessly and exit 1 when
the bridge call they perform fails.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
from rich.console import Console
from rich.table import Table

from hashdeck import __version__
from hashdeck.cli._config_cmd import config_group
from hashdeck.core.bridge import BridgeResult
from hashdeck.core.config import HashdeckConfig
from hashdeck.core.exceptions import ConfigError
from hashdeck.core.models import MAX_DIFFICULTY, MIN_DIFFICULTY, RelayPhase

if TYPE_CHECKING:
    from hashdeck.core.orchestrator import Orchestrator

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _config(ctx: click.Context) -> HashdeckConfig:
    """Load the configuration once per invocation; exit 1 if it is invalid."""
    from hashdeck.core.config import load_config

    obj = ctx.ensure_object(dict)
    if "config" not in obj:
        try:
            obj["config"] = load_config(obj.get("config_path"))
        except ConfigError as exc:
            console.print(f"[red]Config error:[/red] {exc}")
            sys.exit(1)
    return obj["config"]


def _setup_logging(ctx: click.Context, config: HashdeckConfig) -> None:
    from hashdeck.core.logging import configure_logging

    verbose = ctx.ensure_object(dict).get("verbose", False)
    configure_logging(config.log_level if verbose else "WARNING")


def _orchestrator(ctx: click.Context) -> Orchestrator:
    from hashdeck.core.orchestrator import Orchestrator

    config = _config(ctx)
    _setup_logging(ctx, config)
    return Orchestrator(config, **ctx.ensure_object(dict).get("orchestrator_options", {}))


def _invoke(ctx: click.Context, operation: str, *args: Any) -> BridgeResult:
    """Run one bridge operation against a headless orchestrator."""

    async def _call() -> BridgeResult:
        async with _orchestrator(ctx) as orchestrator:
            return await orchestrator.bridge.invoke(operation, *args)

    return asyncio.run(_call())


def _fail(result: BridgeResult, as_json: bool = False) -> None:
    if as_json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        kind = result.error.value if result.error else "error"
        console.print(f"[red]Error ({kind}):[/red] {result.message}")
    sys.exit(1)


# ---------------------------------------------------------------------------
# Group
# ---------------------------------------------------------------------------


@click.group(invoke_without_command=True)
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Config file (default: $HASHDECK_CONFIG or ~/.hashdeck/config.toml)",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log to stderr at config level")
@click.version_option(__version__, prog_name="hashdeck")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Hashdeck — terminal control shell for the local mining engine."""
    obj = ctx.ensure_object(dict)
    obj["config_path"] = config_path
    obj["verbose"] = verbose
    if ctx.invoked_subcommand is None:
        ctx.invoke(ui_cmd)


cli.add_command(config_group)


@cli.command("ui")
@click.pass_context
def ui_cmd(ctx: click.Context) -> None:
    """Run the interactive launcher and dashboard."""
    from hashdeck.core.logging import configure_logging
    from hashdeck.ui.app import run

    config = _config(ctx)
    configure_logging(config.log_level, config.resolved_log_file)
    sys.exit(run(config, **ctx.ensure_object(dict).get("orchestrator_options", {})))


# ---------------------------------------------------------------------------
# Headless bridge commands
# ---------------------------------------------------------------------------


@cli.command("status")
@click.option("--json", "as_json", is_flag=True, default=False, help="Output as JSON")
@click.pass_context
def status_cmd(ctx: click.Context, as_json: bool) -> None:
    """Probe the backend and show engine / API / relay readiness."""
    from hashdeck.ui.state import ENGINE_HINT, launch_label, readiness_lines

    result = _invoke(ctx, "check-status")
    if not result.success:
        _fail(result, as_json)

    readiness = result.data
    if as_json:
        print(json.dumps(result.to_dict(), indent=2))
        return

    table = Table(title="Backend readiness", show_lines=False)
    table.add_column("Component", style="cyan")
    table.add_column("Status", justify="center")
    for line in readiness_lines(readiness):
        colour = "green" if line.ready else "red"
        table.add_row(line.label, f"[{colour}]{line.text}[/{colour}]")
    console.print(table)
    if not readiness.engine_up:
        console.print(f"[yellow]{ENGINE_HINT}[/yellow]")
    console.print(f"[dim]{launch_label(readiness)}[/dim]")


@cli.command("mine")
@click.argument("difficulty", type=click.IntRange(MIN_DIFFICULTY, MAX_DIFFICULTY))
@click.option("--json", "as_json", is_flag=True, default=False, help="Output as JSON")
@click.pass_context
def mine_cmd(ctx: click.Context, difficulty: int, as_json: bool) -> None:
    """Run one mining job at DIFFICULTY leading zero bits (blocks until done)."""
    from hashdeck.ui.state import job_result_lines

    if not as_json:
        console.print(f"Starting mining with difficulty {difficulty}...")
    result = _invoke(ctx, "start-job", difficulty)
    if not result.success:
        _fail(result, as_json)

    if as_json:
        print(json.dumps(result.to_dict(), indent=2))
        return
    for line in job_result_lines(result.data):
        console.print(f"[green]{line}[/green]")
    if not result.data.has_digest:
        console.print("[yellow]No valid hash found within the search space.[/yellow]")


@cli.command("stop")
@click.pass_context
def stop_cmd(ctx: click.Context) -> None:
    """Ask the backend to stop mining."""
    result = _invoke(ctx, "stop-job")
    if not result.success:
        _fail(result)
    console.print("Mining stopped")
    if result.data is not None:
        console.print(f"[dim]{json.dumps(result.data)}[/dim]")


@cli.command("stats")
@click.option("--json", "as_json", is_flag=True, default=False, help="Output as JSON")
@click.pass_context
def stats_cmd(ctx: click.Context, as_json: bool) -> None:
    """Fetch one stats snapshot."""
    from hashdeck.ui.state import format_count, format_hash_rate

    result = _invoke(ctx, "fetch-stats")
    if not result.success:
        _fail(result, as_json)

    if as_json:
        print(json.dumps(result.to_dict(), indent=2))
        return
    stats = result.data
    table = Table(title="Mining stats", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Hash rate", format_hash_rate(stats.hash_rate))
    table.add_row("Total hashes", format_count(stats.total_hashes))
    table.add_row("Difficulty", str(stats.current_difficulty))
    table.add_row("Status", "Mining" if stats.is_mining else "Idle")
    console.print(table)


@cli.command("watch")
@click.option("--url", default=None, help="Relay address (default: configured relay_url)")
@click.option("--count", default=0, type=click.IntRange(min=0), help="Stop after N snapshots")
@click.pass_context
def watch_cmd(ctx: click.Context, url: str | None, count: int) -> None:
    """Stream live stats from the relay until it closes (or Ctrl+C)."""
    exit_code = asyncio.run(_watch(ctx, url, count))
    sys.exit(exit_code)


async def _watch(ctx: click.Context, url: str | None, count: int) -> int:
    from hashdeck.core.models import RelayStateChanged, StatsReceived
    from hashdeck.ui.state import format_count, format_hash_rate

    async with _orchestrator(ctx) as orchestrator:
        events = orchestrator.subscribe()
        args = (url,) if url else ()
        result = await orchestrator.bridge.invoke("connect-relay", *args)
        if not result.success:
            _fail(result)
        if result.data.phase is not RelayPhase.CONNECTED:
            console.print(f"[red]Connection failed:[/red] {result.data.reason}")
            return 1

        console.print("[green]Connected to mining engine[/green]")
        received = 0
        async for event in events:
            if isinstance(event, StatsReceived):
                stats = event.stats
                received += 1
                console.print(
                    f"{format_hash_rate(stats.hash_rate):>12}  "
                    f"total={format_count(stats.total_hashes)}  "
                    f"difficulty={stats.current_difficulty}  "
                    f"{'Mining' if stats.is_mining else 'Idle'}"
                )
                if count and received >= count:
                    break
            elif isinstance(event, RelayStateChanged) and not event.state.is_open:
                reason = f": {event.state.reason}" if event.state.reason else ""
                console.print(f"[yellow]Disconnected from mining engine{reason}[/yellow]")
                return 1 if event.state.phase is RelayPhase.FAILED else 0
    return 0


def main() -> None:
    cli()
