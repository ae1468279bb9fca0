# src/naev_relay/apps/cli/app.py
from __future__ import annotations

import json
import time
from typing import Optional

from dotenv import load_dotenv, find_dotenv
import typer
from rich import print
from rich.table import Table

# .env is loaded once, before Settings reads the environment
load_dotenv(find_dotenv(usecwd=True))

from naev_relay.apps.bootstrap import build_relay
from naev_relay.config import const
from naev_relay.sdk.errors import RelayUnavailable, TransportCreationFailure
from naev_relay.services.client import RelayClient
from naev_relay.services.logging import setup_logging
from naev_relay.services.settings import Settings

app = typer.Typer(help="Naev multiplayer root relay: who hosts which system.")


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj if isinstance(ctx.obj, Settings) else Settings.from_sources()


def _server(ctx: typer.Context, server: Optional[str]) -> str:
    return server or f"127.0.0.1:{_settings(ctx).port}"


# -------- root callback (composition root) --------


@app.callback()
def main(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", help="Listen address (default 0.0.0.0 or RELAY_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="UDP port (default 60939 or PORT)"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG | INFO | WARNING | ERROR"),
):
    """
    Runs before every subcommand: reads settings (constants, .env, ENV) and applies CLI overrides.
    """
    ctx.obj = Settings.from_sources().with_overrides(host=host, port=port, log_level=log_level)


# -------- server --------


@app.command("serve")
def serve(ctx: typer.Context):
    """Run the relay until the process is killed."""
    settings = _settings(ctx)
    log = setup_logging(settings.log_level)
    log.info("relay.starting", extra={"extra": {"host": settings.host, "port": settings.port}})

    try:
        relay = build_relay(settings)
    except TransportCreationFailure as e:
        log.critical("relay.transport_failed", extra={"extra": {"error": str(e)}})
        raise typer.Exit(1)

    log.info(
        "relay.waiting",
        extra={"extra": {"heartbeat_timeout": settings.heartbeat_timeout, "cleanup_interval": settings.cleanup_interval}},
    )
    try:
        relay.run_forever()
    except KeyboardInterrupt:
        log.info("relay.interrupted")
        raise typer.Exit(130)
    except Exception:
        # already logged as relay.fatal by the loop
        raise typer.Exit(1)
    finally:
        relay.transport.close()


# -------- client commands --------


@app.command("find")
def find_cmd(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="System name"),
    server: Optional[str] = typer.Option(None, "--server", "-s", help="Relay host:port"),
    timeout: float = typer.Option(const.CLIENT_TIMEOUT, "--timeout"),
):
    """Ask the relay who hosts NAME."""
    server = _server(ctx, server)
    try:
        with RelayClient(server, timeout=timeout) as client:
            address = client.find(name)
    except RelayUnavailable as e:
        print(f"[red]{e}[/red]")
        raise typer.Exit(2)
    if address is None:
        print(f"[yellow]not found:[/yellow] {name}")
        raise typer.Exit(1)
    typer.echo(address)


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    server: Optional[str] = typer.Option(None, "--server", "-s", help="Relay host:port"),
    timeout: float = typer.Option(const.CLIENT_TIMEOUT, "--timeout"),
    json_output: bool = typer.Option(False, "--json", help="Print JSON"),
):
    """Raw directory dump, stale entries included."""
    server = _server(ctx, server)
    try:
        with RelayClient(server, timeout=timeout) as client:
            rows = client.list_systems()
    except RelayUnavailable as e:
        print(f"[red]{e}[/red]")
        raise typer.Exit(2)

    if json_output:
        typer.echo(json.dumps([{"name": r.name, "address": r.address, "age": r.age} for r in rows], ensure_ascii=False))
        return

    table = Table(title=f"active systems @ {server} ({len(rows)})")
    table.add_column("system")
    table.add_column("address")
    table.add_column("age, s", justify="right")
    for r in rows:
        table.add_row(r.name, r.address, str(r.age))
    print(table)


@app.command("advertise")
def advertise_cmd(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="System name to host"),
    server: Optional[str] = typer.Option(None, "--server", "-s", help="Relay host:port"),
    interval: float = typer.Option(const.CLIENT_HEARTBEAT_INTERVAL, "--interval", help="Seconds between heartbeats"),
    duration: Optional[float] = typer.Option(None, "--duration", help="Stop after this many seconds (default: until Ctrl-C)"),
    timeout: float = typer.Option(const.CLIENT_TIMEOUT, "--timeout"),
):
    """Advertise NAME, keep it alive with heartbeats, deadvertise on exit."""
    server = _server(ctx, server)
    try:
        with RelayClient(server, timeout=timeout) as client:
            if not client.advertise(name):
                print(f"[red]advertise rejected by {server}[/red]")
                raise typer.Exit(1)
            print(f"[green]advertising[/green] {name} via {server}")
            started = time.monotonic()
            try:
                while duration is None or time.monotonic() - started < duration:
                    left = interval if duration is None else min(interval, duration - (time.monotonic() - started))
                    client.pump(max(0.0, left))
                    if duration is not None and time.monotonic() - started >= duration:
                        break
                    if not client.heartbeat(name):
                        print(f"[yellow]heartbeat for {name} not acknowledged[/yellow]")
            except KeyboardInterrupt:
                pass
            if client.deadvertise(name):
                print(f"[cyan]deadvertised[/cyan] {name}")
    except RelayUnavailable as e:
        print(f"[red]{e}[/red]")
        raise typer.Exit(2)


@app.command("where")
def where(ctx: typer.Context):
    """Print the effective settings."""
    s = _settings(ctx)
    print(f"host: {s.host}\nport: {s.port}\nheartbeat_timeout: {s.heartbeat_timeout}\ncleanup_interval: {s.cleanup_interval}")


if __name__ == "__main__":
    app()
