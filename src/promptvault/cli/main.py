"""Main CLI entry point for promptvault.

Provides the ``pv`` command for listing, reading and syncing prompts.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from promptvault.cache import CacheManager, CachedStore, ReadSource
from promptvault.config import VaultConfig
from promptvault.errors import (
    CacheUnavailableError,
    ContentNotCachedError,
    EmptyIndexError,
    ErrorType,
    IndexNotFoundError,
    IndexSyncError,
    PromptVaultError,
)
from promptvault.service import PromptService
from promptvault.store import GistStore, Store
from promptvault.store.base import matches_keyword
from promptvault.sync import SyncOrchestrator, SyncOutcome
from promptvault.utils import format_timestamp

# Global console for Rich output
console = Console()


def get_config(ctx: click.Context) -> VaultConfig:
    """Resolve configuration once per invocation.

    A config object placed in ``ctx.obj["config"]`` takes precedence over
    the config file and environment.
    """
    if ctx.obj.get("config") is None:
        config_path = ctx.obj.get("config_path")
        ctx.obj["config"] = VaultConfig.resolve(
            Path(config_path) if config_path else None
        )
    return ctx.obj["config"]


def build_store(ctx: click.Context, force_remote: bool = False) -> CachedStore:
    """Compose the remote store and the cache for a command.

    Args:
        ctx: Click context; ``ctx.obj["remote"]`` may hold a pre-built Store
        force_remote: Bypass the cache fallback on reads

    Returns:
        CachedStore wrapping the remote store
    """
    config = get_config(ctx)
    remote: Optional[Store] = ctx.obj.get("remote")
    if remote is None:
        remote = GistStore(config)
        ctx.call_on_close(remote.close)
    return CachedStore(remote, CacheManager(config.cache_dir), config, force_remote)


def print_first_run() -> None:
    console.print("Welcome to Prompt Vault!")
    console.print()
    console.print("It looks like this is your first time using pv. Your collection is empty.")
    console.print()
    console.print("To get started:")
    console.print("  • Create prompts directly in GitHub Gists")
    console.print("  • Use 'pv add <file>' to create a new prompt")
    console.print("  • Run 'pv list' again to see your prompts")


def print_empty_collection() -> None:
    console.print("Your prompt collection is currently empty.")
    console.print()
    console.print("To add prompts:")
    console.print("  • Create prompts directly in GitHub Gists")
    console.print("  • Use 'pv add <file>' to create a new prompt")


def print_cache_unavailable(error: CacheUnavailableError) -> None:
    console.print("[red]✗[/red] Could not reach the remote and no local cache is available.")
    console.print(f"  Remote error: {escape(str(error.remote_error))}")
    console.print(f"  Cache error:  {escape(str(error.cache_error))}")
    console.print()
    console.print("Check your network connection, then run 'pv sync' to build the cache.")


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Path to config.json (default: ~/.config/pv/config.json or PV_CONFIG_DIR)",
)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, config_path, debug):
    """pv - Manage prompts stored in GitHub Gists.

    Prompts are read from GitHub first and served from the local cache when
    GitHub cannot be reached. Run 'pv sync' to prepare for offline use.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True))],
        )


# ==================== Prompt Commands ====================


@cli.command("list")
@click.option(
    "--remote", "-r", is_flag=True, help="Fetch from GitHub only, never from the cache"
)
@click.pass_context
def list_prompts(ctx, remote):
    """List all prompts in your collection.

    The remote is always tried first; the cached index is used only if
    GitHub cannot be reached. Use --remote to disable the cache fallback.
    """
    store = build_store(ctx, force_remote=remote)
    try:
        prompts = store.list()
    except IndexNotFoundError:
        print_first_run()
        return
    except EmptyIndexError:
        print_empty_collection()
        return
    except CacheUnavailableError as e:
        print_cache_unavailable(e)
        sys.exit(1)
    except PromptVaultError as e:
        console.print(f"[red]✗[/red] Error listing prompts: {escape(str(e))}")
        sys.exit(1)

    if not prompts:
        print_empty_collection()
        return

    exported = set()
    if store.last_source is ReadSource.REMOTE:
        try:
            exported = {e.parent for e in store.get_exports() if e.parent}
        except PromptVaultError:
            exported = set()

    table = Table(title=f"Found {len(prompts)} prompt(s)")
    table.add_column("Name", style="cyan")
    table.add_column("Author")
    table.add_column("Gist URL", style="dim")
    table.add_column("Shared")
    for prompt in prompts:
        table.add_row(
            escape(prompt.name),
            escape(prompt.author),
            escape(prompt.gist_url),
            "public" if prompt.gist_url in exported else "",
        )
    console.print(table)

    if store.last_source is ReadSource.CACHE:
        console.print(
            "\n[yellow]⚠[/yellow] GitHub could not be reached; showing cached prompts."
        )
        info = store.cache.get_cache_info()
        if not info.never_synced:
            console.print(f"Cache last updated: {format_timestamp(info.last_updated)}")


@cli.command("get")
@click.argument("keyword")
@click.option(
    "--remote", "-r", is_flag=True, help="Fetch from GitHub only, never from the cache"
)
@click.pass_context
def get_prompt(ctx, keyword, remote):
    """Print the content of the prompt matching KEYWORD.

    KEYWORD is matched against prompt names, authors and gist ids.
    """
    store = build_store(ctx, force_remote=remote)
    service = PromptService(store)
    try:
        try:
            prompts = service.list_prompts()
        except (IndexNotFoundError, EmptyIndexError):
            prompts = []
        matches = [p for p in prompts if matches_keyword(p, keyword)]

        if not matches:
            console.print(f"No prompt matches '{escape(keyword)}'.")
            sys.exit(1)
        if len(matches) > 1:
            console.print(f"{len(matches)} prompts match '{escape(keyword)}':")
            for prompt in matches:
                console.print(f"  • {escape(prompt.name)} ({escape(prompt.gist_url)})")
            console.print("Use a more specific keyword or the gist id.")
            sys.exit(1)

        content = service.get_prompt_content(matches[0])
    except ContentNotCachedError as e:
        console.print(f"[red]✗[/red] Prompt is not available: {escape(str(e))}")
        console.print("Run 'pv sync' while online to make prompts available offline.")
        sys.exit(1)
    except PromptVaultError as e:
        console.print(f"[red]✗[/red] Error: {escape(str(e))}")
        sys.exit(1)

    click.echo(content, nl=False)


@cli.command("sync")
@click.option(
    "--verbose", "-v", is_flag=True, help="Show per-prompt progress and error details"
)
@click.pass_context
def sync(ctx, verbose):
    """Sync the local cache with GitHub.

    Downloads the index and then every prompt, one at a time. A failing
    prompt does not stop the others.

    Example:
        pv sync
        pv sync --verbose
    """
    store = build_store(ctx)
    orchestrator = SyncOrchestrator(
        PromptService(store), cache_manager=store.cache, console=console, verbose=verbose
    )
    try:
        stats = orchestrator.run()
    except IndexSyncError as e:
        if e.kind is ErrorType.AUTH:
            console.print(f"[red]✗[/red] Authentication error: {escape(str(e))}")
            console.print("Check your GitHub token (PV_GITHUB_TOKEN or config.json).")
        elif e.kind is ErrorType.NETWORK:
            console.print(f"[red]✗[/red] Network error: {escape(str(e))}")
            console.print("Check your network connection and try again.")
        else:
            console.print(f"[red]✗[/red] Index sync failed: {escape(str(e))}")
            console.print("Check your network connection and GitHub authentication.")
        sys.exit(1)
    except PromptVaultError as e:
        console.print(f"[red]✗[/red] Error: {escape(str(e))}")
        sys.exit(1)

    if stats.outcome is SyncOutcome.FAILED:
        sys.exit(1)


# ==================== Cache Commands ====================


@cli.group()
def cache():
    """Inspect or clear the local cache."""
    pass


@cache.command("info")
@click.pass_context
def cache_info(ctx):
    """Show cache location, size and last update."""
    manager = CacheManager(get_config(ctx).cache_dir)
    info = manager.get_cache_info()

    table = Table(title="Cache")
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    table.add_row("Location", str(manager.cache_dir))
    table.add_row(
        "Last updated",
        "never" if info.never_synced else format_timestamp(info.last_updated),
    )
    table.add_row("Prompts", str(info.total_prompts))
    table.add_row("Size", f"{info.cache_size_bytes} bytes")
    console.print(table)


@cache.command("clear")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def cache_clear(ctx, yes):
    """Delete the local cache."""
    manager = CacheManager(get_config(ctx).cache_dir)
    if not yes and not click.confirm(f"Delete cache at {manager.cache_dir}?"):
        console.print("[yellow]Cancelled[/yellow]")
        return
    try:
        manager.clear()
    except PromptVaultError as e:
        console.print(f"[red]✗[/red] Error: {escape(str(e))}")
        sys.exit(1)
    console.print("[green]✓[/green] Cache cleared")


if __name__ == "__main__":
    cli()
