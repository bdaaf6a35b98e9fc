"""
Reconciliation engine: mirrors live tab events into the active session.

Events from the platform callback are funneled through one queue and
applied by a single worker, so the active session's record list is never
mutated by two events at once. Events are dropped while a restore holds
the guard, both when they arrive and when they are processed, and events
queued before a restore are discarded once it has run.
"""

import asyncio
from typing import Callable, Optional, TypeVar

from tabkeeper.config import CONFIG, Config
from tabkeeper.logger import get_logger
from tabkeeper.sessions.matcher import EventSource, merge_observation
from tabkeeper.sessions.models import TabRecord
from tabkeeper.sessions.restore import RestoreGuard
from tabkeeper.sessions.store import SessionStore
from tabkeeper.tabs.base import (
    TabActivated,
    TabCreated,
    TabEvent,
    TabPlatform,
    TabRemoved,
    TabUpdated,
)

logger = get_logger(__name__)

T = TypeVar("T")


class _Superseded(Exception):
    """A restore took over while the event was being applied."""


class ReconciliationEngine:
    """
    Applies tab events to the active session.

    Args:
        store: Session store holding the active pointer and records.
        guard: Restore guard; while held every event is ignored.
        platform: Tab platform used to look up activated tabs.
        config: Supplies the placeholder url prefixes.
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
        self.window_id: Optional[int] = None
        self.queue: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._running = False

    # ─── Lifecycle ───────────────────────────────────────────────────

    def bind_window(self, window_id: Optional[int]) -> None:
        """Only accept events from this window (None accepts all)."""
        self.window_id = window_id
        logger.debug(f"Reconciliation bound to window {window_id}")

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Reconciliation engine started")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Reconciliation engine stopped")

    @property
    def running(self) -> bool:
        return self._running

    # ─── Intake ──────────────────────────────────────────────────────

    def submit(self, event: TabEvent) -> None:
        """Platform callback: queue an event unless a restore is in progress."""
        if self.guard.held:
            logger.debug(f"Restore in progress, dropping {type(event).__name__}")
            return
        self.queue.put_nowait((self.guard.generation, event))

    async def _apply(self, generation: int, event: TabEvent) -> None:
        if generation != self.guard.generation:
            logger.debug(f"Dropping {type(event).__name__} observed before the last restore")
            return
        try:
            await self.handle(event, generation)
        except Exception as e:
            logger.error(f"Failed to apply {type(event).__name__}: {e}")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                generation, event = await self.queue.get()
            except asyncio.CancelledError:
                break
            try:
                await self._apply(generation, event)
            finally:
                self.queue.task_done()

    async def process_pending(self) -> int:
        """Apply every queued event inline. Returns how many were taken."""
        count = 0
        while True:
            try:
                generation, event = self.queue.get_nowait()
            except asyncio.QueueEmpty:
                return count
            try:
                await self._apply(generation, event)
            finally:
                self.queue.task_done()
            count += 1

    # ─── Handling ────────────────────────────────────────────────────

    async def handle(self, event: TabEvent, generation: Optional[int] = None) -> bool:
        """
        Apply one event to the active session.

        Args:
            event: The tab event.
            generation: Guard generation the event was observed in. Defaults
                to the current one. The event is discarded if a restore
                starts before its write lands.

        Returns:
            True if the active session was written.
        """
        if self.guard.held:
            logger.debug(f"Restore in progress, ignoring {type(event).__name__}")
            return False
        if generation is None:
            generation = self.guard.generation

        if isinstance(event, TabCreated):
            return await self._on_created(event, generation)
        if isinstance(event, TabActivated):
            return await self._on_activated(event, generation)
        if isinstance(event, TabUpdated):
            return await self._on_updated(event, generation)
        if isinstance(event, TabRemoved):
            return await self._on_removed(event, generation)

        logger.warning(f"Unknown tab event: {event!r}")
        return False

    def _foreign_window(self, window_id: Optional[int]) -> bool:
        return (
            self.window_id is not None
            and window_id is not None
            and window_id != self.window_id
        )

    def _current(self, generation: int) -> bool:
        return not self.guard.held and self.guard.generation == generation

    async def _mutate(
        self, generation: int, fn: Callable[[list[TabRecord]], T]
    ) -> Optional[T]:
        # Checked again under the store lock; the handler may have awaited
        # the platform while a restore replaced the active session.
        def apply(records: list[TabRecord]) -> T:
            if not self._current(generation):
                raise _Superseded()
            return fn(records)

        try:
            return await self.store.mutate_active_session(apply)
        except _Superseded:
            logger.debug("Restore started while applying event, discarding it")
            return None

    async def _on_created(self, event: TabCreated, generation: int) -> bool:
        tab = event.tab
        if self.config.is_placeholder_url(tab.url) or self._foreign_window(tab.window_id):
            return False

        result = await self._mutate(
            generation,
            lambda records: merge_observation(records, tab, EventSource.CREATED),
        )
        return result is not None

    async def _on_activated(self, event: TabActivated, generation: int) -> bool:
        if self._foreign_window(event.window_id):
            return False
        if self.platform is None:
            logger.debug("No tab platform attached, cannot resolve activated tab")
            return False

        tab = await self.platform.get_tab(event.tab_id)
        if tab is None or self.config.is_placeholder_url(tab.url):
            return False
        if self._foreign_window(tab.window_id):
            return False

        result = await self._mutate(
            generation,
            lambda records: merge_observation(records, tab, EventSource.ACTIVATED),
        )
        if result is None:
            return False

        index, _ = result
        if not self._current(generation):
            return False
        await self.store.set_last_active_index(index)
        return True

    async def _on_updated(self, event: TabUpdated, generation: int) -> bool:
        tab = event.tab
        if tab is None or not event.change.is_meaningful:
            return False
        if self.config.is_placeholder_url(tab.url) or self._foreign_window(tab.window_id):
            return False
        if tab.id is None:
            tab.id = event.tab_id

        result = await self._mutate(
            generation,
            lambda records: merge_observation(
                records, tab, EventSource.UPDATED, event.change
            ),
        )
        return result is not None

    async def _on_removed(self, event: TabRemoved, generation: int) -> bool:
        def remove(records: list[TabRecord]) -> int:
            before = len(records)
            records[:] = [r for r in records if r.id != event.tab_id]
            return before - len(records)

        removed = await self._mutate(generation, remove)
        return bool(removed)
