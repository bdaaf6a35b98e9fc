"""
Top-level CLI commands: start, status.
"""

import os
from typing import Optional

import typer

from tabkeeper.cli._http import _http_get


def configure_logging(verbose: bool = False):
    """Configure logging for the CLI."""
    from tabkeeper.logger import setup_logging

    log_level = "DEBUG" if verbose else "WARNING"
    setup_logging(level=log_level)

    if not verbose:
        os.environ["LOGURU_LEVEL"] = "WARNING"


def start(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to listen on"),
):
    """Start the tabkeeper server."""
    from tabkeeper.server import main as serve

    serve(host=host, port=port)


def status():
    """Show browser connection and the active session."""
    data = _http_get("/status")

    icon = "🟢" if data.get("browserConnected") else "🔴"
    typer.echo(f"{icon} Browser {'connected' if data.get('browserConnected') else 'not connected'}")

    active = data.get("activeSession")
    if active:
        typer.echo(f"   Active session: {active['folder']}/{active['session']}")
    else:
        typer.echo("   No active session")

    typer.echo(f"   Last active tab: {data.get('lastActiveTabIndex', 0)}")
    if data.get("restoring"):
        typer.echo("   ⏳ Restore in progress")
    if data.get("pendingEvents"):
        typer.echo(f"   Pending events: {data['pendingEvents']}")


def register_commands(app: typer.Typer):
    app.command()(start)
    app.command()(status)
