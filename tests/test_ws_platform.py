"""
Unit tests for the WebSocket tab platform and its wire models.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from tabkeeper.errors import TabPlatformError
from tabkeeper.tabs.base import TabActivated, TabCreated, TabRemoved, TabUpdated
from tabkeeper.tabs.models import EventMessage, TabModel
from tabkeeper.tabs.ws_platform import WebSocketTabPlatform


def _platform(timeout=1.0):
    ws = AsyncMock()
    return WebSocketTabPlatform(ws, "conn-1", browser="chrome", invoke_timeout=timeout), ws


async def _answer(platform, ws, result=None, success=True, error=None):
    """Wait for the next invoke and reply to it."""
    while not ws.send_json.call_args_list:
        await asyncio.sleep(0)
    sent = ws.send_json.call_args_list[-1].args[0]
    platform.handle_message(
        {
            "type": "result",
            "request_id": sent["request_id"],
            "success": success,
            "result": result,
            "error": error,
        }
    )
    return sent


class TestWireModels:
    def test_tab_model_camel_case(self):
        tab = TabModel.model_validate(
            {"id": 4, "windowId": 2, "pendingUrl": "https://a.com", "favIconUrl": "f.png"}
        ).to_tab()
        assert tab.window_id == 2
        assert tab.url == "https://a.com"
        assert tab.fav_icon_url == "f.png"

    def test_event_conversion(self):
        created = EventMessage.model_validate(
            {"event": "created", "tab": {"id": 1, "url": "https://a.com"}}
        ).to_event()
        activated = EventMessage.model_validate(
            {"event": "activated", "tabId": 1, "windowId": 2}
        ).to_event()
        updated = EventMessage.model_validate(
            {"event": "updated", "tabId": 1, "changeInfo": {"status": "complete"}}
        ).to_event()
        removed = EventMessage.model_validate({"event": "removed", "tabId": 1}).to_event()

        assert isinstance(created, TabCreated)
        assert isinstance(activated, TabActivated) and activated.window_id == 2
        assert isinstance(updated, TabUpdated) and updated.change.is_complete
        assert isinstance(removed, TabRemoved)

    def test_event_without_tab_id_rejected(self):
        with pytest.raises(ValueError):
            EventMessage.model_validate({"event": "removed"}).to_event()


class TestInvoke:
    @pytest.mark.asyncio
    async def test_create_tab_round_trip(self):
        platform, ws = _platform()

        task = asyncio.create_task(platform.create_tab("https://a.com", window_id=1))
        sent = await _answer(platform, ws, {"id": 9, "windowId": 1, "url": "https://a.com"})
        tab = await task

        assert sent["type"] == "invoke"
        assert sent["command"] == "tabs.create"
        assert sent["params"] == {"url": "https://a.com", "active": False, "pinned": False, "windowId": 1}
        assert tab.id == 9

    @pytest.mark.asyncio
    async def test_update_sends_only_given_properties(self):
        platform, ws = _platform()

        task = asyncio.create_task(platform.update_tab(3, active=True))
        sent = await _answer(platform, ws, {"id": 3, "url": "https://a.com"})
        await task

        assert sent["params"] == {"tabId": 3, "updateProperties": {"active": True}}

    @pytest.mark.asyncio
    async def test_failure_raises_platform_error(self):
        platform, ws = _platform()

        task = asyncio.create_task(platform.remove_tabs([1, 2]))
        await _answer(platform, ws, success=False, error="No tab with id: 1")

        with pytest.raises(TabPlatformError, match="No tab with id"):
            await task

    @pytest.mark.asyncio
    async def test_get_tab_failure_is_none(self):
        platform, ws = _platform()

        task = asyncio.create_task(platform.get_tab(1))
        await _answer(platform, ws, success=False, error="gone")

        assert await task is None

    @pytest.mark.asyncio
    async def test_timeout(self):
        platform, _ = _platform(timeout=0.05)

        with pytest.raises(TimeoutError):
            await platform.query_tabs()
        assert platform._pending == {}

    @pytest.mark.asyncio
    async def test_current_window(self):
        platform, ws = _platform()

        task = asyncio.create_task(platform.get_current_window())
        await _answer(platform, ws, {"id": 42})

        assert await task == 42
        assert platform.window_id == 42

    @pytest.mark.asyncio
    async def test_close_fails_pending(self):
        platform, ws = _platform()

        task = asyncio.create_task(platform.query_tabs())
        while not ws.send_json.call_args_list:
            await asyncio.sleep(0)
        await platform.close()

        with pytest.raises(ConnectionError):
            await task
        ws.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_invoke_after_close(self):
        platform, _ = _platform()
        await platform.close()

        with pytest.raises(ConnectionError):
            await platform.get_current_window()


class TestIncoming:
    def test_event_is_emitted(self):
        platform, _ = _platform()
        events = []
        platform.set_event_callback(events.append)

        platform.handle_message({"type": "event", "event": "removed", "tabId": 5, "windowId": 1})

        assert events == [TabRemoved(tab_id=5, window_id=1)]

    def test_malformed_event_is_dropped(self):
        platform, _ = _platform()
        events = []
        platform.set_event_callback(events.append)

        platform.handle_message({"type": "event", "event": "exploded"})
        platform.handle_message({"type": "event", "event": "activated"})

        assert events == []

    def test_unsupported_message_type_is_reported(self):
        platform, ws = _platform()
        events = []
        platform.set_event_callback(events.append)

        with patch("tabkeeper.tabs.ws_platform.logger") as mock_logger:
            platform.handle_message({"type": "pong"})

        mock_logger.warning.assert_called_once()
        assert "pong" in mock_logger.warning.call_args.args[0]
        assert events == []
        ws.send_json.assert_not_called()

    @pytest.mark.asyncio
    async def test_command_is_answered(self):
        platform, ws = _platform()
        handler = AsyncMock(return_value={"success": True, "created": True})
        platform.set_command_handler(handler)

        platform.handle_message(
            {"type": "command", "requestId": "r1", "command": {"type": "CREATE_FOLDER", "folderName": "w"}}
        )
        await asyncio.gather(*platform._command_tasks)

        handler.assert_awaited_once_with({"type": "CREATE_FOLDER", "folderName": "w"})
        ws.send_json.assert_awaited_once_with(
            {"type": "command_result", "request_id": "r1", "response": {"success": True, "created": True}}
        )
