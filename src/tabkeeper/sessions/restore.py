"""
Restore orchestration.

A restore tears down the current window's tabs and recreates them from a
stored session. While it runs, the RestoreGuard is held and the
reconciliation engine ignores every tab event, so the churn the restore
causes is not mistaken for user activity. The guard is released on every
exit path, after a short settle delay that absorbs trailing events.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Awaitable, Optional, TypeVar

from tabkeeper.config import CONFIG, Config
from tabkeeper.errors import HOST_CALL_ERRORS, BrowserNotConnected, RestoreInProgress
from tabkeeper.logger import get_logger
from tabkeeper.sessions.matcher import EventSource, mark_active, merge_observation
from tabkeeper.sessions.models import TabRecord
from tabkeeper.sessions.store import SessionStore
from tabkeeper.tabs.base import Tab, TabPlatform

logger = get_logger(__name__)

T = TypeVar("T")


class RestoreGuard:
    """
    Mutual exclusion between restores, and the signal the engine checks.

    ``held`` stays true for ``settle_delay`` seconds after a restore exits.
    ``hold()`` is non-reentrant: a second restore while one is running fails
    with RestoreInProgress instead of waiting; one started during the settle
    window takes the guard over.
    """

    def __init__(self, settle_delay: float = 0.5):
        self.settle_delay = settle_delay
        self._held = False
        self._busy = False
        self._generation = 0
        self._release_handle: Optional[asyncio.TimerHandle] = None

    @property
    def held(self) -> bool:
        return self._held

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def generation(self) -> int:
        """Bumped by every hold; events observed under an older value are stale."""
        return self._generation

    @asynccontextmanager
    async def hold(self):
        if self._busy:
            raise RestoreInProgress("A restore is already in progress")

        if self._release_handle is not None:
            self._release_handle.cancel()
            self._release_handle = None

        self._busy = True
        self._held = True
        self._generation += 1
        generation = self._generation
        try:
            yield self
        finally:
            self._busy = False
            self._schedule_release(generation)

    def _schedule_release(self, generation: int) -> None:
        if self.settle_delay <= 0:
            self._release(generation)
            return
        loop = asyncio.get_running_loop()
        self._release_handle = loop.call_later(
            self.settle_delay, self._release, generation
        )

    def _release(self, generation: int) -> None:
        if generation == self._generation and not self._busy:
            self._held = False
            self._release_handle = None


@dataclass
class RestoreResult:
    folder: str
    session: str
    skipped: bool = False
    tab_ids: list[int] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.errors)


@dataclass
class SwitchResult:
    folder: str
    session: str
    tab_id: Optional[int] = None
    errors: list[str] = field(default_factory=list)


class RestoreOrchestrator:
    """
    Replaces a window's tabs with a stored session.

    Args:
        store: Session store to read records from and write the pointer to.
        guard: Shared with the reconciliation engine.
        platform: Tab platform; attached later when the browser connects.
        config: Anchor mode, placeholder urls and the new tab url.
    """

    def __init__(
        self,
        store: SessionStore,
        guard: RestoreGuard,
        platform: Optional[TabPlatform] = None,
        config: Config = CONFIG,
    ):
        self.store = store
        self.guard = guard
        self.platform = platform
        self.config = config
        self._startup_restore_done = False

    def _require_platform(self) -> TabPlatform:
        if self.platform is None:
            raise BrowserNotConnected("No browser is connected")
        return self.platform

    # ─── Public flows ────────────────────────────────────────────────

    async def restore(
        self, folder: str, session: str, force: bool = False
    ) -> RestoreResult:
        """
        Restore ``folder/session`` into the current window.

        Host-call failures do not abort the flow; they are collected in
        ``RestoreResult.errors`` and the remaining steps still run.

        Raises:
            RestoreInProgress: If another restore holds the guard.
            BrowserNotConnected: If no tab platform is attached.
        """
        result = RestoreResult(folder=folder, session=session)

        if not force and await self.store.is_active(folder, session):
            logger.info(f"'{folder}/{session}' is already active, nothing to restore")
            result.skipped = True
            return result

        platform = self._require_platform()
        errors = result.errors

        try:
            async with self.guard.hold():
                logger.info(f"Restoring '{folder}/{session}'")
                records = await self.store.get_session(folder, session)
                window_id = await self._current_window(platform, errors)

                anchor = await self._establish_anchor(platform, window_id, errors)
                await self._remove_others(platform, window_id, anchor, errors)
                reuse = anchor if self.config.anchor_mode == "first" else None

                # Stored ids belong to tabs that are about to disappear.
                restorable = [
                    TabRecord(url=r.url, title=r.title, favicon=r.favicon)
                    for r in records
                    if self.config.is_restorable_url(r.url)
                ]

                created: list[Tab] = []
                if not restorable:
                    tab = await self._open(
                        platform, window_id, self.config.new_tab_url, reuse, errors
                    )
                    if tab is not None:
                        created.append(tab)
                else:
                    for record in restorable:
                        tab = await self._open(platform, window_id, record.url, reuse, errors)
                        reuse = None
                        if tab is None:
                            continue
                        created.append(tab)
                        if record.id is None and tab.url == record.url:
                            record.id = tab.id
                            continue
                        index, _ = merge_observation(
                            restorable, tab, EventSource.RESTORE_REBIND
                        )
                        # The host may report a normalized url; creation order still holds.
                        if index is None and record.id is None:
                            record.id = tab.id

                result.tab_ids = [t.id for t in created if t.id is not None]

                if created:
                    focused = created[await self._focus_position(len(created))]
                    await self._call(
                        errors,
                        f"focus tab {focused.id}",
                        platform.update_tab(focused.id, active=True),
                    )
                    for i, record in enumerate(restorable):
                        if record.id is not None and record.id == focused.id:
                            mark_active(restorable, i)

                await self.store.save_session(folder, session, restorable)
                await self.store.set_active_session(folder, session)
        except RestoreInProgress:
            logger.warning(f"Restore of '{folder}/{session}' rejected: restore in progress")
            raise

        if result.partial:
            logger.warning(
                f"Restored '{folder}/{session}' partially "
                f"({len(result.tab_ids)} tabs, {len(errors)} errors)"
            )
        else:
            logger.info(f"Restored '{folder}/{session}' ({len(result.tab_ids)} tabs)")
        return result

    async def create_and_switch(self, folder: str, session: str) -> SwitchResult:
        """Clear the window down to one new tab and make a new empty session active."""
        platform = self._require_platform()
        result = SwitchResult(folder=folder, session=session)
        errors = result.errors

        try:
            async with self.guard.hold():
                window_id = await self._current_window(platform, errors)
                anchor = await self._establish_anchor(platform, window_id, errors)
                await self._remove_others(platform, window_id, anchor, errors)

                reuse = anchor if self.config.anchor_mode == "first" else None
                tab = await self._open(
                    platform, window_id, self.config.new_tab_url, reuse, errors, active=True
                )
                result.tab_id = tab.id if tab else None

                await self.store.create_folder(folder)
                await self.store.save_session(folder, session, [])
                await self.store.set_active_session(folder, session)
        except RestoreInProgress:
            logger.warning(f"Switch to '{folder}/{session}' rejected: restore in progress")
            raise

        logger.info(f"Switched to new session '{folder}/{session}'")
        return result

    async def restore_last_session(self) -> Optional[RestoreResult]:
        """Restore the active session once per process, when the browser first connects."""
        if self._startup_restore_done:
            return None
        self._startup_restore_done = True

        active = await self.store.get_active_session()
        if not active:
            return None

        logger.info(f"Restoring last session: {active.folder}/{active.session}")
        return await self.restore(active.folder, active.session, force=True)

    # ─── Steps ───────────────────────────────────────────────────────

    async def _call(self, errors: list[str], what: str, coro: Awaitable[T]) -> Optional[T]:
        """Await one host call; a failure is logged and recorded, not raised."""
        try:
            return await coro
        except HOST_CALL_ERRORS as e:
            logger.error(f"Restore step failed ({what}): {e}")
            errors.append(f"{what}: {e}")
            return None

    async def _current_window(
        self, platform: TabPlatform, errors: list[str]
    ) -> Optional[int]:
        return await self._call(errors, "get current window", platform.get_current_window())

    async def _establish_anchor(
        self, platform: TabPlatform, window_id: Optional[int], errors: list[str]
    ) -> Optional[Tab]:
        """Find or create the one tab that survives the teardown."""
        tabs = await self._call(errors, "query tabs", platform.query_tabs(window_id=window_id))
        tabs = tabs or []

        if self.config.anchor_mode == "first":
            return tabs[0] if tabs else None

        home = next((t for t in tabs if t.url.startswith(self.config.home_tab_url)), None)
        if home is None:
            return await self._call(
                errors,
                "create home tab",
                platform.create_tab(
                    self.config.home_tab_url, window_id=window_id, index=0, pinned=True
                ),
            )

        if not home.pinned:
            await self._call(errors, "pin home tab", platform.update_tab(home.id, pinned=True))
        if home.index != 0:
            await self._call(errors, "move home tab", platform.move_tab(home.id, 0))
        return home

    async def _remove_others(
        self,
        platform: TabPlatform,
        window_id: Optional[int],
        anchor: Optional[Tab],
        errors: list[str],
    ) -> None:
        tabs = await self._call(errors, "query tabs", platform.query_tabs(window_id=window_id))
        anchor_id = anchor.id if anchor else None
        to_remove = [t.id for t in tabs or [] if t.id is not None and t.id != anchor_id]
        if to_remove:
            await self._call(
                errors, f"remove {len(to_remove)} tabs", platform.remove_tabs(to_remove)
            )

    async def _open(
        self,
        platform: TabPlatform,
        window_id: Optional[int],
        url: str,
        reuse: Optional[Tab],
        errors: list[str],
        active: bool = False,
    ) -> Optional[Tab]:
        """Open ``url`` in a new tab, or by navigating ``reuse`` when given."""
        if reuse is not None and reuse.id is not None:
            return await self._call(
                errors,
                f"navigate anchor to {url}",
                platform.update_tab(reuse.id, url=url, active=active or None),
            )
        return await self._call(
            errors,
            f"open {url}",
            platform.create_tab(url, window_id=window_id, active=active),
        )

    async def _focus_position(self, created: int) -> int:
        last_active = await self.store.get_last_active_index()
        return min(max(last_active, 0), created - 1)
