"""hashdeck config — inspect and initialise the configuration file."""

from __future__ import annotations

import json
import sys

import click
from rich.console import Console
from rich.table import Table

console = Console()


@click.group("config")
def config_group() -> None:
    """Configuration file management."""


@config_group.command("show")
@click.option("--json", "as_json", is_flag=True, default=False, help="Output as JSON")
@click.pass_context
def config_show(ctx: click.Context, as_json: bool) -> None:
    """Show the effective configuration (file + environment overrides)."""
    from hashdeck.core.config import default_config_path, load_config
    from hashdeck.core.exceptions import ConfigError

    config_path = ctx.ensure_object(dict).get("config_path")
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        sys.exit(1)

    data = config.to_toml_dict()
    if as_json:
        print(json.dumps(data, indent=2))
        return

    source = config_path or default_config_path()
    table = Table(title=f"Configuration ({source})", show_lines=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for section, values in data.items():
        for key, value in values.items():
            table.add_row(f"{section}.{key}", str(value))
    console.print(table)


@config_group.command("init")
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing file")
@click.pass_context
def config_init(ctx: click.Context, force: bool) -> None:
    """Write a config file with default values."""
    from hashdeck.core.config import HashdeckConfig, default_config_path, save_config

    path = ctx.ensure_object(dict).get("config_path") or default_config_path()
    if path.exists() and not force:
        console.print(f"[yellow]Config already exists:[/yellow] {path} (use --force to overwrite)")
        sys.exit(1)

    written = save_config(HashdeckConfig(), path)
    console.print(f"[green]Wrote:[/green] {written}")
