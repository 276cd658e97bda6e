"""Main entry point for the certcache CLI.

Provides a Typer-based CLI for preparing the certificate bucket and for
inspecting, uploading, or removing individual cache entries.
"""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from certcache import __version__
from certcache.cache import StorageCache, init_from_config, retry_policy
from certcache.config import CacheConfig, ensure_config_exists, get_config_path
from certcache.errors import BackendUnavailableError, CacheMiss, ObjectNotFoundError
from certcache.logging_config import setup_logging
from certcache.storage.s3 import S3Bucket

console = Console()

app = typer.Typer(
    name="certcache",
    help="ACME certificate cache in S3-compatible object storage",
    rich_markup_mode="rich",
)

CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to config file",
)


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"certcache version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Echo log output to stderr",
    ),
) -> None:
    """certcache: ACME certificate cache in S3-compatible object storage.

    ## Commands

    * [bold cyan]init[/bold cyan] - Create the certificate bucket (safe to repeat)
    * [bold cyan]get[/bold cyan] / [bold cyan]put[/bold cyan] / [bold cyan]delete[/bold cyan] - Work with one cache entry
    * [bold cyan]config[/bold cyan] - Show or change configuration

    Credentials are read from CERTCACHE_ACCESS_KEY_ID and
    CERTCACHE_SECRET_ACCESS_KEY, falling back to the AWS default chain.
    """
    ctx.obj = {"verbose": verbose}


def load_config(ctx: typer.Context, config_path: Path = None) -> CacheConfig:
    """Load configuration and set up logging for a command."""
    try:
        config = CacheConfig.load(config_path) if config_path else ensure_config_exists()
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except ValueError as e:
        # tomllib.TOMLDecodeError is a ValueError
        console.print(f"[red]Error loading config: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    setup_logging(config.log_dir, config.log_level, console=verbose)
    return config


def open_cache(config: CacheConfig) -> StorageCache:
    """Build a cache for an existing bucket without trying to create it."""
    try:
        bucket = S3Bucket.connect(
            config.bucket, endpoint_url=config.endpoint_url, region=config.region
        )
    except (BackendUnavailableError, ValueError) as e:
        console.print(f"[red]Error creating storage client: {e}[/red]")
        raise typer.Exit(1)
    return StorageCache(bucket, retry=retry_policy(config))


@app.command("init")
def init_bucket(
    ctx: typer.Context,
    config_path: Path = CONFIG_OPTION,
) -> None:
    """Create the certificate bucket.

    Succeeds without changes when the bucket already exists and belongs to
    the configured owner.
    """
    config = load_config(ctx, config_path)

    try:
        init_from_config(config)
    except Exception as e:
        console.print(f"[red]Error creating bucket {config.bucket}: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Bucket {config.bucket} is ready[/green]")


@app.command("get")
def get_entry(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Cache key"),
    output: Path = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the value to this file instead of stdout",
    ),
    config_path: Path = CONFIG_OPTION,
) -> None:
    """Fetch one cache entry."""
    config = load_config(ctx, config_path)
    cache = open_cache(config)

    try:
        data = asyncio.run(cache.get(key))
    except CacheMiss:
        console.print(f"[yellow]No cache entry for {key}[/yellow]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]Error fetching {key}: {e}[/red]")
        raise typer.Exit(1)

    if output:
        output.write_bytes(data)
        console.print(f"[green]Wrote {len(data)} bytes to {output}[/green]")
    else:
        typer.echo(data, nl=False)


@app.command("put")
def put_entry(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Cache key"),
    file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="File whose contents become the value",
    ),
    config_path: Path = CONFIG_OPTION,
) -> None:
    """Store a file's contents under a cache key."""
    config = load_config(ctx, config_path)
    cache = open_cache(config)
    data = file.read_bytes()

    try:
        asyncio.run(cache.put(key, data))
    except Exception as e:
        console.print(f"[red]Error storing {key}: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Stored {len(data)} bytes under {key}[/green]")


@app.command("delete")
def delete_entry(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Cache key"),
    config_path: Path = CONFIG_OPTION,
) -> None:
    """Remove one cache entry."""
    config = load_config(ctx, config_path)
    cache = open_cache(config)

    try:
        asyncio.run(cache.delete(key))
    except ObjectNotFoundError:
        console.print(f"[yellow]No cache entry for {key}[/yellow]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]Error deleting {key}: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Deleted {key}[/green]")


@app.command("config")
def config(
    action: str = typer.Argument(
        ...,
        help="Action to perform (show, set, path)",
    ),
    key: str = typer.Argument(
        None,
        help="Configuration key (for set action)",
    ),
    value: str = typer.Argument(
        None,
        help="Configuration value (for set action)",
    ),
) -> None:
    """Manage configuration.

    Examples:
        certcache config show          # Show all configuration
        certcache config set bucket my-certs
        certcache config path          # Show config file path
    """
    if action == "show":
        try:
            cfg = ensure_config_exists()
        except ValueError as e:
            console.print(f"[red]Error loading config: {escape(str(e))}[/red]")
            raise typer.Exit(1)

        not_set = "\\[not set]"
        panel = Panel.fit(
            f"[cyan]Bucket:[/cyan] {cfg.bucket}\n"
            f"[cyan]Owner:[/cyan] {cfg.owner or not_set}\n"
            f"[cyan]Endpoint:[/cyan] {cfg.endpoint_url or not_set}\n"
            f"[cyan]Region:[/cyan] {cfg.region or not_set}\n"
            f"[cyan]Max attempts:[/cyan] {cfg.max_attempts}\n"
            f"[cyan]Log dir:[/cyan] {cfg.log_dir}",
            title="Configuration",
            border_style="green",
        )
        console.print(panel)

    elif action == "set":
        if not key or value is None:
            console.print("[red]Usage: certcache config set KEY VALUE[/red]")
            raise typer.Exit(1)

        # Environment overrides must not end up in the file
        try:
            cfg = ensure_config_exists(env=False)
        except ValueError as e:
            console.print(f"[red]Error loading config: {escape(str(e))}[/red]")
            raise typer.Exit(1)

        try:
            cfg.set(key, value)
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)

        cfg.save()
        console.print(f"[green]Set {key} = {value}[/green]")

    elif action == "path":
        console.print(str(get_config_path()))

    else:
        console.print(f"[red]Unknown action: {action}[/red]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
