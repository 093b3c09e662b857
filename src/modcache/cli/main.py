"""Main CLI entry point for modcache.

Provides commands to cache mods, install them into a game directory, and
inspect or clear the local cache.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from modcache.cache.config import CacheConfig
from modcache.errors import ConfigError, ModCacheError
from modcache.http import ProgressCallback, create_http_client
from modcache.install import install_mod
from modcache.resolvers.registry import ResolverRegistry, build_registry
from modcache.utils import format_timestamp

# Global console for Rich output
console = Console()


def load_config(config_path: Optional[str] = None) -> CacheConfig:
    """Load configuration from multiple sources.

    Priority:
    1. Explicit --config/-c file
    2. ~/.modcache/config.toml when present
    3. Defaults

    Environment variables (MODCACHE_*) override values from either file.
    """
    return CacheConfig.load(Path(config_path) if config_path else None).apply_env()


def get_registry(ctx: click.Context) -> ResolverRegistry:
    """Build the resolver registry once per CLI invocation."""
    if "registry" not in ctx.obj:
        config = ctx.obj["config"]
        client = create_http_client(config)
        ctx.call_on_close(client.close)
        ctx.obj["registry"] = build_registry(config, client=client)
    return ctx.obj["registry"]


def _fail(error: Exception) -> None:
    console.print(f"[red]✗[/red] Error: {error}", style="red")
    sys.exit(1)


def _progress_callback(progress: Progress, description: str) -> ProgressCallback:
    task_id = None

    def update(downloaded: int, total: Optional[int]) -> None:
        nonlocal task_id
        if task_id is None:
            task_id = progress.add_task(description, total=total)
        progress.update(task_id, completed=downloaded, total=total)

    return update


def _cache_with_progress(registry: ResolverRegistry, locator: str):
    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        console=console,
        transient=True,
    ) as progress:
        return registry.cache(locator, progress=_progress_callback(progress, locator))


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(dir_okay=False),
    help="Path to config file (default: ~/.modcache/config.toml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, config, verbose):
    """modcache - Download, cache and install mods.

    Locators are http(s) URLs of zip archives or kmf:<mod>[@<version>] ids.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config(config)
    except ConfigError as e:
        _fail(e)


@cli.command("cache")
@click.argument("locators", nargs=-1, required=True)
@click.pass_context
def cache_command(ctx, locators):
    """Cache mods and print their cache directories.

    Example:
        modcache cache kmf:abc@1.2 https://example.com/mod.zip
    """
    try:
        registry = get_registry(ctx)
        for locator in locators:
            path, mod_id = _cache_with_progress(registry, locator)
            console.print(f"[green]✓[/green] {mod_id} -> {path}")
    except ModCacheError as e:
        _fail(e)


@cli.command("install")
@click.argument("locators", nargs=-1, required=True)
@click.option(
    "--game",
    "-g",
    help="Game locator, e.g. file:///games/wows?version=8765 (default: config default_game)",
)
@click.pass_context
def install_command(ctx, locators, game):
    """Cache mods and copy them into a game installation.

    Example:
        modcache install kmf:abc --game "file:///games/wows?version=8765"
    """
    game = game or ctx.obj["config"].default_game
    if not game:
        _fail(ConfigError("Game not specified: pass --game or set default_game"))

    try:
        registry = get_registry(ctx)
        for locator in locators:
            with console.status(f"Caching {locator}..."):
                path, mod_id = registry.cache(locator)
            destination = install_mod(path, game)
            console.print(f"[green]✓[/green] Installed {mod_id} into {destination}")
    except ModCacheError as e:
        _fail(e)


@cli.command("status")
@click.argument("locator")
@click.pass_context
def status_command(ctx, locator):
    """Check whether a cached mod matches its origin."""
    try:
        registry = get_registry(ctx)
        if registry.is_up_to_date(locator):
            console.print(f"[green]✓[/green] {locator} is up to date")
        else:
            console.print(f"[yellow]![/yellow] {locator} is not cached or outdated")
    except ModCacheError as e:
        _fail(e)


@cli.command("path")
@click.argument("locator")
@click.pass_context
def path_command(ctx, locator):
    """Print the cache directory of a locator without network access."""
    try:
        path = get_registry(ctx).find_cached(locator)
    except ModCacheError as e:
        _fail(e)
    if path is None:
        _fail(ModCacheError(f"Not cached: {locator}"))
    click.echo(str(path))


@cli.command("records")
@click.pass_context
def records_command(ctx):
    """List everything recorded in the cache ledgers."""
    try:
        all_records = get_registry(ctx).records()
    except ModCacheError as e:
        _fail(e)

    if not any(all_records.values()):
        console.print("[dim]Cache is empty[/dim]")
        return

    table = Table(title=f"Cache ({ctx.obj['config'].cache_dir})")
    table.add_column("Resolver", style="cyan")
    table.add_column("Id")
    table.add_column("Specifier")
    table.add_column("Source")
    table.add_column("Last update")
    for namespace, records in all_records.items():
        for record_id, record in sorted(records.items()):
            table.add_row(
                namespace,
                record_id[:16],
                record.specifier,
                record.source,
                format_timestamp(record.last_update),
            )
    console.print(table)


@cli.command("clear")
@click.option("--yes", "-y", is_flag=True, help="Don't ask for confirmation")
@click.pass_context
def clear_command(ctx, yes):
    """Remove every cached mod and ledger."""
    cache_dir = ctx.obj["config"].cache_dir
    if not yes:
        click.confirm(f"Remove all cached mods under {cache_dir}?", abort=True)
    try:
        get_registry(ctx).clear_cache()
    except ModCacheError as e:
        _fail(e)
    console.print(f"[green]✓[/green] Cleared cache at {cache_dir}")


@cli.command("config")
@click.pass_context
def config_command(ctx):
    """Show the effective configuration."""
    config = ctx.obj["config"]
    table = Table(show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_row("cache_dir", str(config.cache_dir))
    table.add_row("station_url", config.station_url)
    table.add_row("default_game", config.default_game or "-")
    table.add_row("http_timeout", f"{config.http_timeout}s")
    table.add_row("lock_timeout", f"{config.lock_timeout}s")
    table.add_row("missing_last_modified", config.missing_last_modified)
    console.print(table)


def main():
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
