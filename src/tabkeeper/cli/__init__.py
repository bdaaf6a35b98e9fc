"""
Tabkeeper CLI.

This package splits CLI commands into focused modules:
- runtime:  start, status
- sessions: folders, sessions, save, restore, activate, new-folder,
            switch, delete-folder, delete-session
"""

import typer

from tabkeeper.cli._http import _http_get, _http_post  # noqa: F401 re-export for test patching
from tabkeeper.cli.runtime import configure_logging
from tabkeeper.cli.runtime import register_commands as register_main_commands
from tabkeeper.cli.sessions import register_commands as register_session_commands

app = typer.Typer(help="Tabkeeper - browser tab sessions by folder")


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging (DEBUG level)"
    ),
):
    """
    Tabkeeper - browser tab sessions by folder.
    """
    configure_logging(verbose)


register_main_commands(app)
register_session_commands(app)

if __name__ == "__main__":
    app()
