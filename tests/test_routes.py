"""
Tests for the HTTP and WebSocket routes.
"""

from unittest.mock import AsyncMock, patch

import pytest
from starlette.testclient import TestClient

from tabkeeper.server import create_app


@pytest.fixture
def client(service):
    with TestClient(create_app(service)) as client:
        yield client


class TestSessionRoutes:
    def test_status(self, client):
        resp = client.get("/status")
        assert resp.status_code == 200
        assert resp.json()["browserConnected"] is False

    def test_run_command(self, client):
        resp = client.post("/commands", json={"type": "CREATE_FOLDER", "folderName": "work"})
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "created": True}

    def test_invalid_command(self, client):
        resp = client.post("/commands", json={"type": "DANCE"})
        assert resp.json()["error"] == "INVALID_COMMAND"

    def test_invalid_json(self, client):
        resp = client.post(
            "/commands", content=b"{nope", headers={"content-type": "application/json"}
        )
        assert resp.status_code == 400

    def test_folders(self, client):
        client.post("/commands", json={"type": "CREATE_FOLDER", "folderName": "work"})
        client.post("/commands", json={"type": "CREATE_FOLDER", "folderName": "home"})

        resp = client.get("/folders")
        assert resp.json() == {"folders": {"work": {"sessions": {}}, "home": {"sessions": {}}}}

    def test_folder_sessions(self, client):
        client.post("/commands", json={"type": "CREATE_FOLDER", "folderName": "work"})

        resp = client.get("/folders/work")
        assert resp.json() == {"folder": "work", "sessions": {}}

    def test_service_missing(self, service):
        app = create_app(service)
        app.state.tab_sync = None
        with TestClient(app) as client:
            assert client.get("/status").status_code == 503
            assert client.post("/commands", json={}).status_code == 503


class TestBrowserWebSocket:
    def test_handshake_and_relayed_command(self, client, service):
        with client.websocket_connect("/ws/browser") as ws:
            ws.send_json({"type": "connect", "browser": "chrome", "windowId": 1})
            connected = ws.receive_json()
            assert connected["type"] == "connected"
            assert connected["connection_id"]

            invoke = ws.receive_json()
            assert invoke["type"] == "invoke"
            assert invoke["command"] == "windows.getCurrent"
            ws.send_json(
                {
                    "type": "result",
                    "request_id": invoke["request_id"],
                    "success": True,
                    "result": {"id": 1},
                }
            )

            ws.send_json(
                {
                    "type": "command",
                    "requestId": "r1",
                    "command": {"type": "CREATE_FOLDER", "folderName": "work"},
                }
            )
            reply = ws.receive_json()
            assert reply == {
                "type": "command_result",
                "request_id": "r1",
                "response": {"success": True, "created": True},
            }

        assert service.engine.window_id in (1, None)

    def test_bad_handshake(self, client):
        with client.websocket_connect("/ws/browser") as ws:
            ws.send_json({"type": "hello"})
            err = ws.receive_json()
            assert err["type"] == "error"
            assert "connect" in err["message"]

    def test_attach_failure_is_logged(self, client, service):
        attach = AsyncMock(side_effect=RuntimeError("window lookup exploded"))
        with patch.object(service, "attach_platform", attach), patch(
            "tabkeeper.routes.browser_routes.logger"
        ) as mock_logger:
            with client.websocket_connect("/ws/browser") as ws:
                ws.send_json({"type": "connect", "browser": "chrome", "windowId": 1})
                assert ws.receive_json()["type"] == "connected"

                ws.send_json(
                    {
                        "type": "command",
                        "requestId": "r1",
                        "command": {"type": "CREATE_FOLDER", "folderName": "work"},
                    }
                )
                assert ws.receive_json()["request_id"] == "r1"

        attach.assert_awaited_once()
        errors = [c.args[0] for c in mock_logger.error.call_args_list]
        assert any("window lookup exploded" in msg for msg in errors)
