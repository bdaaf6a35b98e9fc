"""
Pydantic models for the browser WebSocket protocol.

Covers:
- Handshake (connect / connected)
- Tab commands sent to the browser and their results
- Tab events and relayed commands sent by the browser
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from tabkeeper.tabs.base import (
    ChangeInfo,
    Tab,
    TabActivated,
    TabCreated,
    TabEvent,
    TabRemoved,
    TabUpdated,
)


class _CamelModel(BaseModel):
    """Accepts the browser's camelCase keys as well as snake_case."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ─── Tab payloads ────────────────────────────────────────────────────


class TabModel(_CamelModel):
    id: Optional[int] = None
    window_id: Optional[int] = Field(default=None, alias="windowId")
    index: int = 0
    url: Optional[str] = None
    pending_url: Optional[str] = Field(default=None, alias="pendingUrl")
    title: Optional[str] = None
    fav_icon_url: Optional[str] = Field(default=None, alias="favIconUrl")
    active: bool = False
    pinned: bool = False
    status: Optional[str] = None

    def to_tab(self) -> Tab:
        return Tab(
            id=self.id,
            window_id=self.window_id,
            index=self.index,
            url=self.url or self.pending_url or "",
            title=self.title or "",
            fav_icon_url=self.fav_icon_url or "",
            active=self.active,
            pinned=self.pinned,
            status=self.status or "complete",
        )


class ChangeInfoModel(_CamelModel):
    status: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None
    fav_icon_url: Optional[str] = Field(default=None, alias="favIconUrl")
    pinned: Optional[bool] = None

    def to_change(self) -> ChangeInfo:
        return ChangeInfo(
            status=self.status,
            url=self.url,
            title=self.title,
            fav_icon_url=self.fav_icon_url,
            pinned=self.pinned,
        )


# ─── Handshake ───────────────────────────────────────────────────────


class ConnectMessage(_CamelModel):
    """Browser → Server: initial handshake on WebSocket connect."""

    type: str = "connect"
    browser: str = "unknown"
    window_id: Optional[int] = Field(default=None, alias="windowId")


class ConnectedResponse(BaseModel):
    """Server → Browser: acknowledgment after the platform is attached."""

    type: str = "connected"
    connection_id: str


class ErrorResponse(BaseModel):
    """Server → Browser: protocol error."""

    type: str = "error"
    message: str


# ─── Tab commands ────────────────────────────────────────────────────


class InvokeMessage(BaseModel):
    """Server → Browser: call a tab/window API."""

    type: str = "invoke"
    request_id: str
    command: str
    params: dict[str, Any] = Field(default_factory=dict)


class ResultMessage(_CamelModel):
    """Browser → Server: response to an invoked command."""

    type: str = "result"
    request_id: str = Field(alias="requestId")
    success: bool = False
    result: Any = None
    error: Optional[str] = None


# ─── Browser-initiated messages ──────────────────────────────────────


class EventMessage(_CamelModel):
    """Browser → Server: a tab lifecycle event."""

    type: str = "event"
    event: Literal["created", "activated", "updated", "removed"]
    tab_id: Optional[int] = Field(default=None, alias="tabId")
    window_id: Optional[int] = Field(default=None, alias="windowId")
    tab: Optional[TabModel] = None
    change_info: Optional[ChangeInfoModel] = Field(default=None, alias="changeInfo")

    def to_event(self) -> TabEvent:
        """Convert to an engine event. Raises ValueError when required fields are missing."""
        tab = self.tab.to_tab() if self.tab else None
        tab_id = self.tab_id if self.tab_id is not None else (tab.id if tab else None)

        if self.event == "created":
            if tab is None:
                raise ValueError("created event requires 'tab'")
            return TabCreated(tab=tab)

        if tab_id is None:
            raise ValueError(f"{self.event} event requires 'tabId'")

        if self.event == "activated":
            return TabActivated(tab_id=tab_id, window_id=self.window_id)
        if self.event == "updated":
            change = self.change_info.to_change() if self.change_info else ChangeInfo()
            return TabUpdated(tab_id=tab_id, change=change, tab=tab)
        return TabRemoved(tab_id=tab_id, window_id=self.window_id)


class CommandMessage(_CamelModel):
    """Browser → Server: a session command relayed from the extension UI."""

    type: str = "command"
    request_id: str = Field(alias="requestId")
    command: dict[str, Any]


class CommandResultMessage(BaseModel):
    """Server → Browser: response to a relayed command."""

    type: str = "command_result"
    request_id: str
    response: dict[str, Any]
