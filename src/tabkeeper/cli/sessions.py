"""
CLI commands for folders and sessions.

Usage:
    tabkeeper folders
    tabkeeper sessions <folder>
    tabkeeper save <folder> <session> [--set-active]
    tabkeeper restore <folder> <session> [--force]
    tabkeeper activate <folder> <session>
    tabkeeper new-folder <folder>
    tabkeeper switch <folder> <session>
    tabkeeper delete-folder <folder>
    tabkeeper delete-session <folder> <session>
"""

import typer

from tabkeeper.cli._http import _http_get, _http_post


def _send(command_type: str, **fields) -> dict:
    """POST one command and exit non-zero when it fails."""
    data = _http_post("/commands", {"type": command_type, **fields})
    if not data.get("success"):
        typer.echo(f"❌ {data.get('error', 'Unknown error')}")
        if data.get("message"):
            typer.echo(f"   {data['message']}")
        raise typer.Exit(code=1)
    return data


def folders():
    """List folders and the number of sessions in each."""
    data = _http_get("/folders")
    items = data.get("folders", {})

    if not items:
        typer.echo("No folders yet.")
        return

    typer.echo(f"📁 Folders ({len(items)}):\n")
    for name, folder in items.items():
        sessions = folder.get("sessions", {})
        typer.echo(f"  {name} ({len(sessions)} sessions)")


def sessions(folder: str = typer.Argument(help="Folder name")):
    """List the sessions in a folder."""
    data = _http_get(f"/folders/{folder}")
    items = data.get("sessions", {})

    if not items:
        typer.echo(f"No sessions in '{folder}'.")
        return

    typer.echo(f"📁 {folder}:\n")
    for name, records in items.items():
        typer.echo(f"  {name} ({len(records)} tabs)")
        for record in records:
            marker = "*" if record.get("active") else " "
            typer.echo(f"    {marker} {record.get('title') or record.get('url')}")


def save(
    folder: str = typer.Argument(help="Folder name"),
    session: str = typer.Argument(help="Session name"),
    set_active: bool = typer.Option(
        False, "--set-active", help="Make the saved session the active one"
    ),
):
    """Save the current window's tabs as a session."""
    data = _send("SAVE_SESSION", folderName=folder, sessionName=session, setActive=set_active)
    typer.echo(f"✅ Saved {data.get('tabCount', 0)} tabs to '{folder}/{session}'")


def restore(
    folder: str = typer.Argument(help="Folder name"),
    session: str = typer.Argument(help="Session name"),
    force: bool = typer.Option(False, "--force", "-f", help="Restore even if already active"),
):
    """Replace the current window's tabs with a stored session."""
    data = _send("RESTORE_SESSION", folderName=folder, sessionName=session, force=force)

    if data.get("skipped"):
        typer.echo(f"'{folder}/{session}' is already active.")
        return

    typer.echo(f"✅ Restored '{folder}/{session}' ({len(data.get('tabIds', []))} tabs)")
    for error in data.get("errors", []):
        typer.echo(f"   ⚠️  {error}")


def activate(
    folder: str = typer.Argument(help="Folder name"),
    session: str = typer.Argument(help="Session name"),
):
    """Point the active session at a stored session without touching tabs."""
    _send("SET_ACTIVE_SESSION", folderName=folder, sessionName=session)
    typer.echo(f"✅ Active session is now '{folder}/{session}'")


def new_folder(folder: str = typer.Argument(help="Folder name")):
    """Create an empty folder."""
    data = _send("CREATE_FOLDER", folderName=folder)
    if data.get("created"):
        typer.echo(f"✅ Created folder '{folder}'")
    else:
        typer.echo(f"Folder '{folder}' already exists.")


def switch(
    folder: str = typer.Argument(help="Folder name"),
    session: str = typer.Argument(help="Session name"),
):
    """Start a new empty session and switch the window to it."""
    data = _send("CREATE_AND_SWITCH_SESSION", folderName=folder, sessionName=session)
    typer.echo(f"✅ Switched to new session '{folder}/{session}'")
    for error in data.get("errors", []):
        typer.echo(f"   ⚠️  {error}")


def delete_folder(folder: str = typer.Argument(help="Folder name")):
    """Delete a folder and all of its sessions."""
    data = _send("DELETE_FOLDER", folderName=folder)
    if data.get("removed"):
        typer.echo(f"🗑️  Deleted folder '{folder}'")
    else:
        typer.echo(f"Folder '{folder}' not found.")


def delete_session(
    folder: str = typer.Argument(help="Folder name"),
    session: str = typer.Argument(help="Session name"),
):
    """Delete one session."""
    data = _send("DELETE_SESSION", folderName=folder, sessionName=session)
    if data.get("removed"):
        typer.echo(f"🗑️  Deleted session '{folder}/{session}'")
    else:
        typer.echo(f"Session '{folder}/{session}' not found.")


def register_commands(app: typer.Typer):
    app.command()(folders)
    app.command()(sessions)
    app.command()(save)
    app.command()(restore)
    app.command()(activate)
    app.command("new-folder")(new_folder)
    app.command()(switch)
    app.command("delete-folder")(delete_folder)
    app.command("delete-session")(delete_session)
