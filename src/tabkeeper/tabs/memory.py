"""
In-memory tab platform.

Models a browser closely enough to drive the engine offline: windows hold
ordered tabs, ids are assigned monotonically and never reused, each window
has at most one active tab, and the event sequence for an operation follows
what a browser reports (created → activated → updated(complete), removal
followed by activation of a neighbour).
"""

from typing import Iterable, Optional, Sequence

from tabkeeper.errors import TabPlatformError
from tabkeeper.logger import get_logger
from tabkeeper.tabs.base import (
    STATUS_COMPLETE,
    STATUS_LOADING,
    ChangeInfo,
    Tab,
    TabActivated,
    TabCreated,
    TabPlatform,
    TabRemoved,
    TabUpdated,
)
from tabkeeper.tabs.favicon import favicon_for

logger = get_logger(__name__)


class MemoryTabPlatform(TabPlatform):
    """
    Args:
        window_ids: Windows to create up front; the first is current.
        emit_load_events: Follow navigations with an ``updated`` event
            carrying ``status=complete``, like a page finishing its load.
        fail_urls: Urls whose ``create_tab`` is rejected, for failure tests.
    """

    def __init__(
        self,
        window_ids: Sequence[int] = (1,),
        emit_load_events: bool = True,
        fail_urls: Optional[Iterable[str]] = None,
    ):
        super().__init__()
        if not window_ids:
            raise ValueError("At least one window is required")
        self._windows: dict[int, list[Tab]] = {wid: [] for wid in window_ids}
        self.current_window_id = window_ids[0]
        self.emit_load_events = emit_load_events
        self.fail_urls: set[str] = set(fail_urls or ())
        self._next_id = 1
        self.removed_ids: list[int] = []
        self.created_urls: list[str] = []

    # ─── Helpers ─────────────────────────────────────────────────────

    def _window(self, window_id: Optional[int]) -> list[Tab]:
        wid = self.current_window_id if window_id is None else window_id
        if wid not in self._windows:
            raise TabPlatformError(f"No window with id: {wid}")
        return self._windows[wid]

    def _find(self, tab_id: int) -> Tab:
        for tabs in self._windows.values():
            for tab in tabs:
                if tab.id == tab_id:
                    return tab
        raise TabPlatformError(f"No tab with id: {tab_id}")

    @staticmethod
    def _reindex(tabs: list[Tab]) -> None:
        for i, tab in enumerate(tabs):
            tab.index = i

    def _activate(self, tab: Tab) -> None:
        for other in self._windows[tab.window_id]:
            other.active = other is tab
        self.emit(TabActivated(tab_id=tab.id, window_id=tab.window_id))

    def _finish_load(self, tab: Tab) -> None:
        tab.status = STATUS_COMPLETE
        tab.title = tab.title or tab.url
        tab.fav_icon_url = favicon_for(tab.url)
        if self.emit_load_events:
            change = ChangeInfo(
                status=STATUS_COMPLETE,
                title=tab.title,
                fav_icon_url=tab.fav_icon_url or None,
            )
            self.emit(TabUpdated(tab_id=tab.id, change=change, tab=tab.copy()))

    def add_window(self, window_id: int) -> None:
        self._windows.setdefault(window_id, [])

    def tabs_in(self, window_id: Optional[int] = None) -> list[Tab]:
        """Copies of a window's tabs in order."""
        return [t.copy() for t in self._window(window_id)]

    # ─── TabPlatform ─────────────────────────────────────────────────

    async def query_tabs(
        self,
        window_id: Optional[int] = None,
        active: Optional[bool] = None,
        pinned: Optional[bool] = None,
    ) -> list[Tab]:
        windows = [window_id] if window_id is not None else list(self._windows)
        result = []
        for wid in windows:
            for tab in self._window(wid):
                if active is not None and tab.active != active:
                    continue
                if pinned is not None and tab.pinned != pinned:
                    continue
                result.append(tab.copy())
        return result

    async def get_tab(self, tab_id: int) -> Optional[Tab]:
        try:
            return self._find(tab_id).copy()
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
        if url in self.fail_urls:
            raise TabPlatformError(f"Cannot open url: {url}")

        wid = self.current_window_id if window_id is None else window_id
        tabs = self._window(wid)

        tab = Tab(
            id=self._next_id,
            window_id=wid,
            url=url,
            pinned=pinned,
            status=STATUS_LOADING,
        )
        self._next_id += 1

        position = len(tabs) if index is None else max(0, min(index, len(tabs)))
        tabs.insert(position, tab)
        self._reindex(tabs)
        self.created_urls.append(url)

        self.emit(TabCreated(tab=tab.copy()))
        # A window's first tab is focused whether asked or not.
        if active or len(tabs) == 1:
            self._activate(tab)
        self._finish_load(tab)

        return tab.copy()

    async def update_tab(
        self,
        tab_id: int,
        url: Optional[str] = None,
        active: Optional[bool] = None,
        pinned: Optional[bool] = None,
    ) -> Tab:
        tab = self._find(tab_id)

        if pinned is not None and pinned != tab.pinned:
            tab.pinned = pinned
            self.emit(
                TabUpdated(tab_id=tab.id, change=ChangeInfo(pinned=pinned), tab=tab.copy())
            )

        if url is not None:
            tab.url = url
            tab.title = ""
            tab.status = STATUS_LOADING
            self.emit(
                TabUpdated(
                    tab_id=tab.id,
                    change=ChangeInfo(status=STATUS_LOADING, url=url),
                    tab=tab.copy(),
                )
            )

        if active:
            self._activate(tab)

        if url is not None:
            self._finish_load(tab)

        return tab.copy()

    async def move_tab(self, tab_id: int, index: int) -> Tab:
        tab = self._find(tab_id)
        tabs = self._windows[tab.window_id]
        tabs.remove(tab)
        tabs.insert(max(0, min(index, len(tabs))), tab)
        self._reindex(tabs)
        return tab.copy()

    async def remove_tabs(self, tab_ids: Iterable[int]) -> None:
        targets = [self._find(tab_id) for tab_id in tab_ids]

        for tab in targets:
            tabs = self._windows[tab.window_id]
            position = tabs.index(tab)
            tabs.remove(tab)
            self._reindex(tabs)
            self.removed_ids.append(tab.id)
            self.emit(TabRemoved(tab_id=tab.id, window_id=tab.window_id))

            if tab.active and tabs:
                self._activate(tabs[min(position, len(tabs) - 1)])

    async def get_current_window(self) -> int:
        return self.current_window_id
