"""Command-line interface for query-cache."""

import click
import requests
from rich.console import Console
from rich.table import Table

from .cache import Cache
from .hasher import derive_key
from .logging import setup_logging
from .proxy import DEFAULT_TARGET_URL, CacheProxy

console = Console()

DEFAULT_PROXY_URL = "http://127.0.0.1:8080"


@click.group()
@click.version_option(package_name="query-cache")
@click.option("--verbose", "-v", is_flag=True, help="Log cache hits and upstream calls")
def cli(verbose):
    """Query Cache - Memoizing cache in front of a query engine."""
    setup_logging("DEBUG" if verbose else "INFO")


@cli.command()
@click.option("--port", "-p", default=8080, help="Port to listen on")
@click.option("--host", "-h", default="127.0.0.1", help="Host to bind to")
@click.option("--target-url", default=DEFAULT_TARGET_URL, show_default=True, help="Query engine URL")
@click.option("--max-entries", type=click.IntRange(min=1), default=1000, show_default=True,
              help="Maximum number of cached results")
@click.option("--persist/--no-persist", default=False,
              help="Cache results for requests that don't set 'persist'")
def serve(port, host, target_url, max_entries, persist):
    """Start the cache proxy server."""
    cache = Cache(max_entries=max_entries)
    proxy = CacheProxy(cache=cache, target_url=target_url, persist=persist)

    console.print(f"[green]Starting cache proxy on {host}:{port}[/green]")
    console.print(f"Query engine: {proxy.target_url}")
    console.print(f"Capacity: {max_entries} entries")
    console.print(f"Persist by default: {'yes' if persist else 'no'}")
    console.print()

    proxy.run(host=host, port=port)


@cli.command()
@click.argument("sql")
@click.argument("command")
def key(sql, command):
    """Print the cache key for SQL and COMMAND."""
    click.echo(derive_key(sql, command))


@cli.command()
@click.option("--url", default=DEFAULT_PROXY_URL, show_default=True, help="Proxy URL")
def stats(url):
    """Show cache statistics of a running proxy."""
    try:
        resp = requests.get(f"{url.rstrip('/')}/cache/stats", timeout=10)
        resp.raise_for_status()
    except requests.RequestException as e:
        console.print(f"[red]Error: could not reach proxy at {url}: {e}[/red]")
        raise SystemExit(1)

    s = resp.json()

    table = Table(title="Cache Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Proxy", url)
    table.add_row("Entries", f"{s['entries']} / {s['max_entries']}")
    table.add_row("Size", f"{s['size_bytes']} bytes")
    table.add_row("Hits", str(s["hits"]))
    table.add_row("Misses", str(s["misses"]))
    table.add_row("Hit Rate", f"{s['hit_rate']:.1%}")

    console.print(table)


@cli.command()
@click.option("--url", default=DEFAULT_PROXY_URL, show_default=True, help="Proxy URL")
@click.confirmation_option(prompt="Are you sure you want to clear the cache?")
def clear(url):
    """Clear the cache of a running proxy."""
    try:
        resp = requests.post(f"{url.rstrip('/')}/cache/clear", timeout=10)
        resp.raise_for_status()
    except requests.RequestException as e:
        console.print(f"[red]Error: could not reach proxy at {url}: {e}[/red]")
        raise SystemExit(1)

    console.print("[green]Cache cleared[/green]")


def main():
    cli()


if __name__ == "__main__":
    main()
