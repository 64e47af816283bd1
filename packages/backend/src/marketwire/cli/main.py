"""Marketwire CLI — run the server and mint dev credentials.

Usage:
    marketwire serve                       # uvicorn on MARKETWIRE_HOST:PORT
    marketwire init-db                     # create tables (dev databases)
    marketwire issue-token 42 --role admin # Bearer JWT for REST / ?token=
    marketwire issue-ticket 42             # short-lived ?ticket= for /ws/*
"""

from __future__ import annotations

import asyncio
import concurrent.futures
from typing import Optional

import click


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Offloads to a thread when a loop is already running (CliRunner
    inside an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


@click.group()
def cli():
    """Marketwire — real-time chat, likes and live analytics."""


@cli.command()
@click.option("--host", default=None, help="Bind address (default: MARKETWIRE_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: MARKETWIRE_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the HTTP + WebSocket server."""
    import uvicorn

    from marketwire.config import settings

    uvicorn.run(
        "marketwire.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        ws_per_message_deflate=False,
    )


@cli.command("init-db")
def init_db():
    """Create all tables that don't exist yet."""
    from marketwire.db.engine import engine
    from marketwire.db.models import Base

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await engine.dispose()

    _run(_create())
    click.secho("✓ Tables created", fg="green")


@cli.command("issue-token")
@click.argument("user_id", type=int)
@click.option("--role", default="user", type=click.Choice(["user", "admin"]))
@click.option("--minutes", default=None, type=int, help="Lifetime in minutes")
def issue_token(user_id: int, role: str, minutes: Optional[int]):
    """Print a signed JWT for USER_ID."""
    from marketwire.auth.jwt import create_access_token

    click.echo(create_access_token(user_id, role=role, expires_minutes=minutes))


@cli.command("issue-ticket")
@click.argument("user_id", type=int)
def issue_ticket(user_id: int):
    """Print a WebSocket ticket for USER_ID."""
    from marketwire.auth.tickets import create_ticket

    if user_id <= 0:
        raise click.BadParameter("user id must be positive", param_hint="USER_ID")
    click.echo(create_ticket(user_id))


if __name__ == "__main__":
    cli()
