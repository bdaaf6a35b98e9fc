"""
Base classes and data models for the tab platform.

A tab platform is whatever owns the live tabs: a browser extension talking
to us over a socket, or the in-memory model used offline and in tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Optional, Union

STATUS_LOADING = "loading"
STATUS_COMPLETE = "complete"


@dataclass
class Tab:
    """A live tab as reported by the platform. ``id`` is only valid while the tab exists."""

    id: Optional[int]
    window_id: Optional[int] = None
    index: int = 0
    url: str = ""
    title: str = ""
    fav_icon_url: str = ""
    active: bool = False
    pinned: bool = False
    status: str = STATUS_COMPLETE

    def copy(self) -> "Tab":
        return replace(self)


@dataclass
class ChangeInfo:
    """The subset of tab properties an update event says changed."""

    status: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None
    fav_icon_url: Optional[str] = None
    pinned: Optional[bool] = None

    @property
    def is_complete(self) -> bool:
        return self.status == STATUS_COMPLETE

    @property
    def is_meaningful(self) -> bool:
        """A finished load or a new url/title/favicon; interim updates are not."""
        return bool(self.is_complete or self.title or self.fav_icon_url or self.url)


# ─── Tab events ──────────────────────────────────────────────────────


@dataclass
class TabCreated:
    tab: Tab

    @property
    def window_id(self) -> Optional[int]:
        return self.tab.window_id


@dataclass
class TabActivated:
    tab_id: int
    window_id: Optional[int] = None


@dataclass
class TabUpdated:
    tab_id: int
    change: ChangeInfo = field(default_factory=ChangeInfo)
    tab: Optional[Tab] = None

    @property
    def window_id(self) -> Optional[int]:
        return self.tab.window_id if self.tab else None


@dataclass
class TabRemoved:
    tab_id: int
    window_id: Optional[int] = None


TabEvent = Union[TabCreated, TabActivated, TabUpdated, TabRemoved]
TabEventCallback = Callable[[TabEvent], None]


class TabPlatform(ABC):
    """
    Abstract base class for tab platforms.

    Implementations report tab lifecycle events through the callback set
    with ``set_event_callback``; the callback must not block.
    """

    def __init__(self):
        self._event_callback: Optional[TabEventCallback] = None

    def set_event_callback(self, callback: Optional[TabEventCallback]) -> None:
        self._event_callback = callback

    def emit(self, event: TabEvent) -> None:
        """Deliver an event to the registered callback, if any."""
        if self._event_callback is not None:
            self._event_callback(event)

    @abstractmethod
    async def query_tabs(
        self,
        window_id: Optional[int] = None,
        active: Optional[bool] = None,
        pinned: Optional[bool] = None,
    ) -> list[Tab]:
        """List tabs matching the filter, ordered by window then index."""
        pass

    @abstractmethod
    async def get_tab(self, tab_id: int) -> Optional[Tab]:
        """Fetch one tab, or None if it no longer exists."""
        pass

    @abstractmethod
    async def create_tab(
        self,
        url: str,
        window_id: Optional[int] = None,
        active: bool = False,
        index: Optional[int] = None,
        pinned: bool = False,
    ) -> Tab:
        """Open a tab. Raises TabPlatformError if the host rejects it."""
        pass

    @abstractmethod
    async def update_tab(
        self,
        tab_id: int,
        url: Optional[str] = None,
        active: Optional[bool] = None,
        pinned: Optional[bool] = None,
    ) -> Tab:
        """Navigate, focus or pin a tab."""
        pass

    @abstractmethod
    async def move_tab(self, tab_id: int, index: int) -> Tab:
        pass

    @abstractmethod
    async def remove_tabs(self, tab_ids: Iterable[int]) -> None:
        pass

    @abstractmethod
    async def get_current_window(self) -> int:
        """Id of the window commands and restores apply to."""
        pass
