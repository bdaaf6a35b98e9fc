"""
Shared HTTP helpers for CLI commands that talk to the running server.
"""

import os

import typer


def get_server_url() -> str:
    """Get the server URL from environment or config."""
    from tabkeeper.config import CONFIG

    host = os.getenv("TABKEEPER_HOST", CONFIG.host)
    port = os.getenv("TABKEEPER_PORT", str(CONFIG.port))
    return os.getenv("TABKEEPER_SERVER_URL", f"http://{host}:{port}")


def _timeout() -> float:
    from tabkeeper.config import CONFIG

    return CONFIG.command_timeout_seconds


def _http_get(path: str) -> dict:
    """Make a GET request to the running server."""
    import httpx

    url = f"{get_server_url()}{path}"
    try:
        resp = httpx.get(url, timeout=_timeout())
        resp.raise_for_status()
        return resp.json()
    except httpx.TimeoutException:
        typer.echo("❌ Timed out waiting for tabkeeper.")
        raise typer.Exit(code=1)
    except httpx.ConnectError:
        typer.echo("❌ Cannot connect to tabkeeper server. Is it running?")
        raise typer.Exit(code=1)
    except httpx.HTTPStatusError as e:
        typer.echo(f"❌ Server error: {e.response.status_code}")
        raise typer.Exit(code=1)


def _http_post(path: str, data: dict = None) -> dict:
    """Make a POST request to the running server."""
    import httpx

    url = f"{get_server_url()}{path}"
    try:
        resp = httpx.post(url, json=data or {}, timeout=_timeout())
        resp.raise_for_status()
        return resp.json()
    except httpx.TimeoutException:
        typer.echo("❌ Timed out waiting for tabkeeper.")
        raise typer.Exit(code=1)
    except httpx.ConnectError:
        typer.echo("❌ Cannot connect to tabkeeper server. Is it running?")
        raise typer.Exit(code=1)
    except httpx.HTTPStatusError as e:
        try:
            detail = e.response.json().get("error", str(e))
        except ValueError:
            detail = str(e)
        typer.echo(f"❌ Server error: {detail}")
        raise typer.Exit(code=1)
