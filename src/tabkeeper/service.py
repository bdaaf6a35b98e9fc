"""
Service wiring: one object owning the store, restore guard, engine,
orchestrator and command dispatcher, plus the attached browser.
"""

from typing import Any, Optional

from tabkeeper.commands import CommandDispatcher
from tabkeeper.config import CONFIG, DATA_DIR, Config
from tabkeeper.errors import HOST_CALL_ERRORS, BrowserNotConnected, RestoreInProgress
from tabkeeper.logger import get_logger
from tabkeeper.sessions.reconciler import ReconciliationEngine
from tabkeeper.sessions.restore import RestoreGuard, RestoreOrchestrator, RestoreResult
from tabkeeper.sessions.store import SessionStore
from tabkeeper.storage import JsonFileStore, KeyValueStore, MemoryKeyValueStore, StorageChange
from tabkeeper.tabs.base import TabPlatform

logger = get_logger(__name__)


def build_kv_store(config: Config = CONFIG) -> KeyValueStore:
    """The persistence substrate selected by ``storage_backend``."""
    if config.storage_backend == "memory":
        return MemoryKeyValueStore()
    return JsonFileStore.in_dir(DATA_DIR)


class TabSyncService:
    """
    Central coordinator between the browser, the engine and the store.

    Only one tab platform is attached at a time; attaching a new one
    replaces the previous connection.
    """

    def __init__(self, kv: Optional[KeyValueStore] = None, config: Config = CONFIG):
        self.config = config
        self.kv = kv or build_kv_store(config)
        self.store = SessionStore(self.kv)
        self.guard = RestoreGuard(settle_delay=config.restore_settle_seconds)
        self.engine = ReconciliationEngine(self.store, self.guard, config=config)
        self.orchestrator = RestoreOrchestrator(self.store, self.guard, config=config)
        self.commands = CommandDispatcher(self)
        self.platform: Optional[TabPlatform] = None
        self._unsubscribe = self.kv.subscribe(self._log_change)

    @staticmethod
    def _log_change(change: StorageChange) -> None:
        logger.debug(f"Storage key '{change.key}' changed")

    async def start(self) -> None:
        await self.engine.start()

    async def stop(self) -> None:
        await self.engine.stop()
        self._unsubscribe()

    def require_platform(self) -> TabPlatform:
        if self.platform is None:
            raise BrowserNotConnected("No browser is connected")
        return self.platform

    async def attach_platform(self, platform: TabPlatform) -> Optional[RestoreResult]:
        """
        Route a browser's events into the engine and make it the restore target.

        Binds the engine to the browser's current window and, on the first
        attach of the process, restores the last active session when
        ``restore_on_startup`` is set.
        """
        if self.platform is not None and self.platform is not platform:
            self.platform.set_event_callback(None)

        self.platform = platform
        self.engine.platform = platform
        self.orchestrator.platform = platform
        platform.set_event_callback(self.engine.submit)

        try:
            self.engine.bind_window(await platform.get_current_window())
        except HOST_CALL_ERRORS as e:
            logger.warning(f"Could not read the current window: {e}")
            self.engine.bind_window(None)

        if not self.config.restore_on_startup:
            return None
        try:
            return await self.orchestrator.restore_last_session()
        except RestoreInProgress:
            return None

    def detach_platform(self, platform: TabPlatform) -> None:
        if self.platform is not platform:
            return
        platform.set_event_callback(None)
        self.platform = None
        self.engine.platform = None
        self.orchestrator.platform = None
        self.engine.bind_window(None)
        logger.info("Browser detached")

    async def dispatch(self, command: dict[str, Any]) -> dict[str, Any]:
        return await self.commands.dispatch(command)

    async def status(self) -> dict[str, Any]:
        active = await self.store.get_active_session()
        return {
            "browserConnected": self.platform is not None,
            "restoring": self.guard.busy,
            "suppressingEvents": self.guard.held,
            "activeSession": active.to_dict() if active else None,
            "lastActiveTabIndex": await self.store.get_last_active_index(),
            "pendingEvents": self.engine.queue.qsize(),
        }
