"""
Session command and query routes.

Provides:
- POST /commands: run one command (SAVE_SESSION, RESTORE_SESSION, ...)
- GET /folders, GET /folders/{folder}: stored folders and sessions
- GET /status: active session and engine state
"""

from starlette.requests import Request
from starlette.responses import JSONResponse

from tabkeeper.commands import describe_session
from tabkeeper.logger import get_logger

logger = get_logger(__name__)


def _get_service(request: Request):
    """Get TabSyncService from app state."""
    return getattr(request.app.state, "tab_sync", None)


async def run_command(request: Request) -> JSONResponse:
    """
    POST /commands: Run a session command.

    Body: {"type": "RESTORE_SESSION", "folderName": "work", "sessionName": "monday"}
    """
    service = _get_service(request)
    if not service:
        return JSONResponse({"success": False, "error": "Service not initialized"}, status_code=503)

    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"success": False, "error": "Invalid JSON body"}, status_code=400)

    response = await service.dispatch(body)
    logger.info(f"{body.get('type') if isinstance(body, dict) else body!r} -> {response}")
    return JSONResponse(response)


async def list_folders(request: Request) -> JSONResponse:
    """GET /folders: Every folder with its sessions."""
    service = _get_service(request)
    if not service:
        return JSONResponse({"error": "Service not initialized"}, status_code=503)

    folders = await service.store.get_folders()
    return JSONResponse(
        {
            "folders": {
                name: {"sessions": {s: describe_session(r) for s, r in sessions.items()}}
                for name, sessions in folders.items()
            }
        }
    )


async def get_folder(request: Request) -> JSONResponse:
    """GET /folders/{folder}: Sessions in one folder."""
    service = _get_service(request)
    if not service:
        return JSONResponse({"error": "Service not initialized"}, status_code=503)

    folder = request.path_params.get("folder", "")
    sessions = await service.store.get_sessions_in_folder(folder)
    return JSONResponse(
        {
            "folder": folder,
            "sessions": {name: describe_session(r) for name, r in sessions.items()},
        }
    )


async def get_status(request: Request) -> JSONResponse:
    """GET /status: Browser connection, active session, restore state."""
    service = _get_service(request)
    if not service:
        return JSONResponse({"error": "Service not initialized"}, status_code=503)
    return JSONResponse(await service.status())
