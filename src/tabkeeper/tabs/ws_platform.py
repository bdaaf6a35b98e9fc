"""
WebSocket-based tab platform.

The browser extension's background worker connects to ``/ws/browser`` and
exposes the tab API. Tab commands are dispatched as request/response
messages and awaited; tab events and relayed UI commands arrive unsolicited.
"""

import asyncio
import uuid
from typing import Any, Awaitable, Callable, Iterable, Optional

from pydantic import ValidationError
from starlette.websockets import WebSocket, WebSocketDisconnect

from tabkeeper.errors import TabPlatformError
from tabkeeper.logger import get_logger
from tabkeeper.tabs.base import Tab, TabPlatform
from tabkeeper.tabs.models import (
    CommandMessage,
    CommandResultMessage,
    EventMessage,
    InvokeMessage,
    ResultMessage,
    TabModel,
)

logger = get_logger(__name__)

# Default timeout for waiting on browser responses (seconds)
DEFAULT_INVOKE_TIMEOUT = 30.0

CommandHandler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


class WebSocketTabPlatform(TabPlatform):
    """
    A browser connected via WebSocket.

    Protocol:
        Server -> Browser (invoke):
            {"type": "invoke", "request_id": "uuid", "command": "tabs.create",
             "params": {"url": "...", "windowId": 1, "active": false}}

        Browser -> Server (result):
            {"type": "result", "request_id": "uuid", "success": true, "result": {...}}

        Browser -> Server (event):
            {"type": "event", "event": "updated", "tabId": 7,
             "changeInfo": {"status": "complete"}, "tab": {...}}

        Browser -> Server (command):
            {"type": "command", "request_id": "uuid",
             "command": {"type": "RESTORE_SESSION", "folderName": "...", "sessionName": "..."}}
    """

    def __init__(
        self,
        websocket: WebSocket,
        connection_id: str,
        browser: str = "unknown",
        window_id: Optional[int] = None,
        invoke_timeout: float = DEFAULT_INVOKE_TIMEOUT,
    ):
        super().__init__()
        self._ws = websocket
        self.connection_id = connection_id
        self.browser = browser
        self.window_id = window_id
        self.invoke_timeout = invoke_timeout
        self.status = "connected"
        self._pending: dict[str, asyncio.Future] = {}
        self._command_handler: Optional[CommandHandler] = None
        self._command_tasks: set[asyncio.Task] = set()

    def set_command_handler(self, handler: Optional[CommandHandler]) -> None:
        self._command_handler = handler

    # ─── Request/response ────────────────────────────────────────────

    async def invoke(self, command: str, params: Optional[dict[str, Any]] = None) -> Any:
        """
        Send a tab command to the browser and wait for the response.

        Args:
            command: The API name (e.g. "tabs.create").
            params: Optional parameters, camelCase as the browser expects.

        Returns:
            The ``result`` payload of a successful response.

        Raises:
            TimeoutError: If the browser doesn't respond within the timeout.
            ConnectionError: If the WebSocket is disconnected.
            TabPlatformError: If the browser reports the call failed.
        """
        if self.status != "connected":
            raise ConnectionError(f"Browser '{self.browser}' is {self.status}")

        request_id = str(uuid.uuid4())
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        try:
            msg = InvokeMessage(
                request_id=request_id,
                command=command,
                params=params or {},
            )
            await self._ws.send_json(msg.model_dump())

            response = await asyncio.wait_for(future, timeout=self.invoke_timeout)
        except asyncio.TimeoutError:
            logger.error(f"Timeout invoking '{command}' on browser '{self.browser}'")
            raise TimeoutError(
                f"Browser '{self.browser}' did not respond to '{command}' "
                f"within {self.invoke_timeout}s"
            ) from None
        except WebSocketDisconnect:
            self.status = "disconnected"
            raise ConnectionError(
                f"Browser '{self.browser}' disconnected during '{command}'"
            )
        finally:
            self._pending.pop(request_id, None)

        if not response.success:
            raise TabPlatformError(response.error or f"'{command}' failed")
        return response.result

    async def _invoke_tab(self, command: str, params: dict[str, Any]) -> Tab:
        result = await self.invoke(command, params)
        try:
            return TabModel.model_validate(result or {}).to_tab()
        except ValidationError as e:
            raise TabPlatformError(f"Malformed tab in '{command}' result: {e}")

    # ─── TabPlatform ─────────────────────────────────────────────────

    async def query_tabs(
        self,
        window_id: Optional[int] = None,
        active: Optional[bool] = None,
        pinned: Optional[bool] = None,
    ) -> list[Tab]:
        query = {
            key: value
            for key, value in (("windowId", window_id), ("active", active), ("pinned", pinned))
            if value is not None
        }
        result = await self.invoke("tabs.query", query)
        try:
            return [TabModel.model_validate(t).to_tab() for t in result or []]
        except ValidationError as e:
            raise TabPlatformError(f"Malformed tab list from browser: {e}")

    async def get_tab(self, tab_id: int) -> Optional[Tab]:
        try:
            return await self._invoke_tab("tabs.get", {"tabId": tab_id})
        except TabPlatformError:
            return None

    async def create_tab(
        self,
        url: str,
        window_id: Optional[int] = None,
        active: bool = False,
        index: Optional[int] = None,
        pinned: bool = False,
    ) -> Tab:
        params: dict[str, Any] = {"url": url, "active": active, "pinned": pinned}
        if window_id is not None:
            params["windowId"] = window_id
        if index is not None:
            params["index"] = index
        return await self._invoke_tab("tabs.create", params)

    async def update_tab(
        self,
        tab_id: int,
        url: Optional[str] = None,
        active: Optional[bool] = None,
        pinned: Optional[bool] = None,
    ) -> Tab:
        props = {
            key: value
            for key, value in (("url", url), ("active", active), ("pinned", pinned))
            if value is not None
        }
        return await self._invoke_tab(
            "tabs.update", {"tabId": tab_id, "updateProperties": props}
        )

    async def move_tab(self, tab_id: int, index: int) -> Tab:
        return await self._invoke_tab("tabs.move", {"tabId": tab_id, "index": index})

    async def remove_tabs(self, tab_ids: Iterable[int]) -> None:
        await self.invoke("tabs.remove", {"tabIds": list(tab_ids)})

    async def get_current_window(self) -> int:
        result = await self.invoke("windows.getCurrent", {})
        window_id = result.get("id") if isinstance(result, dict) else None
        if window_id is None:
            raise TabPlatformError("Browser did not report a current window id")
        self.window_id = window_id
        return window_id

    # ─── Incoming messages ───────────────────────────────────────────

    def handle_message(self, data: dict[str, Any]) -> None:
        """Process an incoming message from the browser WebSocket."""
        msg_type = data.get("type")

        if msg_type == "result":
            try:
                result = ResultMessage.model_validate(data)
            except ValidationError:
                logger.warning(f"Malformed result message from '{self.browser}'")
                return

            future = self._pending.get(result.request_id)
            if future is None:
                logger.warning(
                    f"Received result for unknown request_id: {result.request_id}"
                )
            elif not future.done():
                future.set_result(result)

        elif msg_type == "event":
            try:
                event = EventMessage.model_validate(data).to_event()
            except (ValidationError, ValueError) as e:
                logger.warning(f"Malformed event from '{self.browser}': {e}")
                return
            self.emit(event)

        elif msg_type == "command":
            try:
                command = CommandMessage.model_validate(data)
            except ValidationError:
                logger.warning(f"Malformed command message from '{self.browser}'")
                return
            task = asyncio.create_task(self._run_command(command))
            self._command_tasks.add(task)
            task.add_done_callback(self._command_tasks.discard)

        else:
            logger.warning(
                f"Unknown message type '{msg_type}' from browser '{self.browser}'"
            )

    async def _run_command(self, command: CommandMessage) -> None:
        if self._command_handler is None:
            response = {"success": False, "error": "Command handling not available"}
        else:
            response = await self._command_handler(command.command)

        reply = CommandResultMessage(request_id=command.request_id, response=response)
        try:
            await self._ws.send_json(reply.model_dump())
        except Exception as e:
            logger.error(f"Failed to reply to command {command.request_id}: {e}")

    async def close(self) -> None:
        """Fail pending calls and close the WebSocket."""
        self.status = "disconnected"
        for future in self._pending.values():
            if not future.done():
                future.set_exception(ConnectionError("Browser connection closing"))
        self._pending.clear()

        try:
            await self._ws.close()
        except Exception as e:
            logger.debug(f"Closing browser socket failed: {e}")
