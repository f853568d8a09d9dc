"""Pressograph CLI — operate on stored preferences from the terminal.

Commands:
    pressograph serve       — Run the HTTP API (uvicorn)
    pressograph get         — Effective value of a preference for a user
    pressograph set         — Write a value to cache + database
    pressograph clear       — Remove a value from cache + database
    pressograph sync        — Refresh the cache from the database
    pressograph health      — Ping Redis and Postgres
    pressograph db migrate  — Apply schema migrations
    pressograph db status   — Show migration state and row counts
    pressograph version     — Show version

There is no cookie tier on the command line: every command starts from an
empty RequestContext, so reads go straight to the cache and database.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

import typer
from rich.console import Console
from rich.table import Table

from pressograph.utils import setup_logging

# Initialize logging on import
setup_logging()

app = typer.Typer(
    name="pressograph",
    help="Pressograph — cookie / cache / database preference sync",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
db_app = typer.Typer(help="Database schema management", no_args_is_help=True)
app.add_typer(db_app, name="db")
console = Console()


@asynccontextmanager
async def _open_manager():
    """PreferenceManager over fresh Redis/Postgres clients, closed on exit."""
    from pressograph.preferences.cache import PreferenceCache
    from pressograph.preferences.repository import PreferenceRepository
    from pressograph.preferences.sync import PreferenceManager
    from pressograph.tools.pg_client import PgClient
    from pressograph.tools.redis_client import RedisClient

    redis = RedisClient()
    pg = PgClient()
    await pg.connect()
    try:
        yield PreferenceManager(PreferenceCache(redis), PreferenceRepository(pg))
    finally:
        await redis.close()
        await pg.close()


def _sync_for(manager, kind: str):
    from pressograph.errors import UnknownPreferenceKindError
    try:
        return manager.for_kind(kind)
    except UnknownPreferenceKindError as exc:
        console.print(f"[red]{exc}[/]")
        raise typer.Exit(1)


def _print_write(result) -> None:
    if result.success:
        console.print(f"[green]✓[/] {result.kind} = [bold]{result.value}[/]")
    else:
        console.print(
            f"[yellow]⚠ {result.kind} = {result.value} "
            f"(failed tiers: {', '.join(result.failed_tiers)})[/]"
        )
        console.print(f"[dim]{result.error}[/]")
        raise typer.Exit(2)


# ── pressograph serve ─────────────────────────────────────────


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind address (default: settings.api_host)"),
    port: int = typer.Option(None, "--port", "-p", help="Port (default: settings.api_port)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
):
    """🌐 Run the preference HTTP API."""
    import uvicorn

    from pressograph.config import settings

    uvicorn.run(
        "pressograph.api.app:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


# ── pressograph get / set / clear / sync ──────────────────────


@app.command()
def get(
    kind: str = typer.Argument(..., help="Preference kind, e.g. theme, locale, date_format"),
    user_id: str = typer.Option(..., "--user", "-u", help="User ID"),
):
    """🔎 Show the effective value for a user (cache → database → default)."""
    asyncio.run(_get(kind, user_id))


async def _get(kind: str, user_id: str):
    from pressograph.preferences.context import RequestContext

    async with _open_manager() as manager:
        sync = _sync_for(manager, kind)
        value = await sync.get(RequestContext(), user_id)
    console.print(f"{sync.kind.name} = [bold]{value}[/]")


@app.command("set")
def set_(
    kind: str = typer.Argument(..., help="Preference kind, e.g. theme, locale, date_format"),
    value: str = typer.Argument(..., help="New value"),
    user_id: str = typer.Option(..., "--user", "-u", help="User ID"),
):
    """✏️  Write a value to cache and database."""
    asyncio.run(_set(kind, value, user_id))


async def _set(kind: str, value: str, user_id: str):
    from pressograph.errors import InvalidPreferenceError
    from pressograph.preferences.context import RequestContext

    async with _open_manager() as manager:
        sync = _sync_for(manager, kind)
        try:
            result = await sync.set(RequestContext(), value, user_id)
        except InvalidPreferenceError as exc:
            console.print(f"[red]{exc}[/]")
            raise typer.Exit(1)
    _print_write(result)


@app.command()
def clear(
    kind: str = typer.Argument(..., help="Preference kind, e.g. theme, locale, date_format"),
    user_id: str = typer.Option(..., "--user", "-u", help="User ID"),
):
    """🧹 Remove a stored value; the default applies afterwards."""
    asyncio.run(_clear(kind, user_id))


async def _clear(kind: str, user_id: str):
    from pressograph.preferences.context import RequestContext

    async with _open_manager() as manager:
        sync = _sync_for(manager, kind)
        result = await sync.clear(RequestContext(), user_id)
    _print_write(result)


@app.command()
def sync(
    kind: str = typer.Argument(..., help="Preference kind, e.g. theme, locale, date_format"),
    user_id: str = typer.Option(..., "--user", "-u", help="User ID"),
):
    """🔄 Refresh the cache from the database value."""
    asyncio.run(_sync(kind, user_id))


async def _sync(kind: str, user_id: str):
    from pressograph.preferences.context import RequestContext

    async with _open_manager() as manager:
        pref = _sync_for(manager, kind)
        value = await pref.sync(RequestContext(), user_id)
    console.print(f"[green]✓[/] {pref.kind.name} synced = [bold]{value}[/]")


# ── pressograph health ────────────────────────────────────────


@app.command()
def health():
    """🩺 Ping Redis and Postgres."""
    ok = asyncio.run(_health())
    if not ok:
        raise typer.Exit(1)


async def _health() -> bool:
    from pressograph.tools.pg_client import PgClient
    from pressograph.tools.redis_client import RedisClient

    redis = RedisClient()
    pg = PgClient()
    try:
        cache_ok = await redis.ping()
        db_ok = await pg.ping()
    finally:
        await redis.close()
        await pg.close()

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Tier", style="cyan")
    table.add_column("Status")
    table.add_row("cache", "[green]✅ up[/]" if cache_ok else "[red]❌ down[/]")
    table.add_row("database", "[green]✅ up[/]" if db_ok else "[red]❌ down[/]")
    console.print(table)
    return cache_ok and db_ok


# ── pressograph db ────────────────────────────────────────────


@db_app.command("migrate")
def db_migrate():
    """📐 Apply pending schema migrations."""
    asyncio.run(_db_migrate())


async def _db_migrate():
    from pressograph.tools.migrations import MigrationRunner

    result = await MigrationRunner().migrate()
    if result.error:
        console.print(f"[red]Migration failed: {result.error}[/]")
        raise typer.Exit(1)
    if result.applied:
        console.print(f"[green]✓ Applied migration {result.version}[/]")
    else:
        console.print(f"[dim]Schema already at {result.version}[/]")
    console.print(f"[dim]Tables: {', '.join(result.tables)}[/]")


@db_app.command("status")
def db_status():
    """📊 Show applied/pending migrations and table row counts."""
    asyncio.run(_db_status())


async def _db_status():
    from pressograph.tools.migrations import MigrationRunner

    status = await MigrationRunner().status()
    if not status.pg_available:
        console.print("[red]Postgres unavailable[/]")
        raise typer.Exit(1)

    console.print(f"Applied: {', '.join(status.applied_versions) or '—'}")
    console.print(f"Pending: {', '.join(status.pending_versions) or '—'}")

    table = Table(title="Tables")
    table.add_column("Table", style="cyan")
    table.add_column("Rows", justify="right")
    for name, count in status.table_counts.items():
        table.add_row(name, str(count) if count >= 0 else "[red]error[/]")
    console.print(table)


# ── pressograph version ───────────────────────────────────────


@app.command()
def version():
    """📦 Show Pressograph version."""
    from pressograph import __version__
    console.print(f"[bold cyan]Pressograph[/] v{__version__}")


# ── Entry point ───────────────────────────────────────────────

if __name__ == "__main__":
    app()
