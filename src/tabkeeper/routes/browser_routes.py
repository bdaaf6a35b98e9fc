"""
WebSocket endpoint for the browser extension (/ws/browser).

Handshake protocol:
    1. Extension connects to /ws/browser
    2. Extension sends: {"type": "connect", "browser": "chrome", "windowId": 1}
    3. Server responds: {"type": "connected", "connection_id": "..."}
    4. Bidirectional loop: tab invocations/results, tab events, relayed commands
"""

import asyncio
import uuid

from pydantic import ValidationError
from starlette.websockets import WebSocket, WebSocketDisconnect

from tabkeeper.logger import get_logger
from tabkeeper.tabs.models import ConnectedResponse, ConnectMessage, ErrorResponse
from tabkeeper.tabs.ws_platform import WebSocketTabPlatform

logger = get_logger(__name__)


def _log_attach_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Attaching browser failed: {exc}")


async def browser_websocket_endpoint(websocket: WebSocket):
    service = getattr(websocket.app.state, "tab_sync", None)
    if not service:
        await websocket.close(code=1011, reason="Service not initialized")
        return

    await websocket.accept()
    platform = None
    attach_task = None

    try:
        data = await websocket.receive_json()

        if data.get("type") != "connect":
            err = ErrorResponse(message="Expected 'connect' message")
            await websocket.send_json(err.model_dump())
            await websocket.close(code=1002, reason="Invalid handshake")
            return

        try:
            connect_msg = ConnectMessage.model_validate(data)
        except ValidationError as e:
            err = ErrorResponse(message=f"Invalid connect message: {e}")
            await websocket.send_json(err.model_dump())
            await websocket.close(code=1002, reason="Invalid handshake")
            return

        platform = WebSocketTabPlatform(
            websocket=websocket,
            connection_id=str(uuid.uuid4()),
            browser=connect_msg.browser,
            window_id=connect_msg.window_id,
            invoke_timeout=service.config.invoke_timeout_seconds,
        )
        platform.set_command_handler(service.dispatch)

        await websocket.send_json(
            ConnectedResponse(connection_id=platform.connection_id).model_dump()
        )
        logger.info(f"Browser '{connect_msg.browser}' connected")

        # Attaching issues tab calls whose results arrive through the loop below.
        attach_task = asyncio.create_task(service.attach_platform(platform))
        attach_task.add_done_callback(_log_attach_failure)

        while True:
            data = await websocket.receive_json()
            platform.handle_message(data)

    except WebSocketDisconnect:
        logger.info(
            f"Browser WebSocket disconnected: {platform.browser if platform else 'unknown'}"
        )
    except Exception as e:
        logger.error(f"Browser WebSocket error: {e}")
    finally:
        if attach_task and not attach_task.done():
            attach_task.cancel()
        if platform:
            service.detach_platform(platform)
            await platform.close()
