"""
Unit tests for service wiring.
"""

import pytest

from tabkeeper.config import Config
from tabkeeper.service import TabSyncService, build_kv_store
from tabkeeper.storage import MemoryKeyValueStore
from tabkeeper.tabs.memory import MemoryTabPlatform


class TestBuildKvStore:
    def test_memory_backend(self):
        assert isinstance(build_kv_store(Config(storage_backend="memory")), MemoryKeyValueStore)


class TestAttach:
    @pytest.mark.asyncio
    async def test_attach_binds_window_and_events(self, service):
        platform = MemoryTabPlatform(window_ids=(3,))
        await service.attach_platform(platform)

        assert service.engine.window_id == 3
        await platform.create_tab("https://a.com")
        assert service.engine.queue.qsize() > 0

    @pytest.mark.asyncio
    async def test_detach(self, service):
        platform = MemoryTabPlatform()
        await service.attach_platform(platform)
        service.detach_platform(platform)

        assert service.platform is None
        await platform.create_tab("https://a.com")
        assert service.engine.queue.qsize() == 0

    @pytest.mark.asyncio
    async def test_detach_of_replaced_platform_is_ignored(self, service):
        old, new = MemoryTabPlatform(), MemoryTabPlatform()
        await service.attach_platform(old)
        await service.attach_platform(new)

        service.detach_platform(old)
        assert service.platform is new

    @pytest.mark.asyncio
    async def test_startup_restore(self, kv):
        config = Config(restore_settle_seconds=0, restore_on_startup=True, storage_backend="memory")
        service = TabSyncService(kv=kv, config=config)
        await service.store.save_session("work", "mon", [{"url": "https://a.com"}])
        await service.store.set_active_session("work", "mon")
        platform = MemoryTabPlatform()

        result = await service.attach_platform(platform)

        assert result is not None
        assert [t.url for t in platform.tabs_in()] == ["https://a.com"]
        assert await service.attach_platform(platform) is None


class TestStatus:
    @pytest.mark.asyncio
    async def test_status_without_browser(self, service):
        status = await service.status()
        assert status == {
            "browserConnected": False,
            "restoring": False,
            "suppressingEvents": False,
            "activeSession": None,
            "lastActiveTabIndex": 0,
            "pendingEvents": 0,
        }

    @pytest.mark.asyncio
    async def test_status_with_session(self, service):
        await service.attach_platform(MemoryTabPlatform())
        await service.store.set_active_session("work", "mon")

        status = await service.status()
        assert status["browserConnected"] is True
        assert status["activeSession"] == {"folder": "work", "session": "mon"}


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_stop(self, service):
        await service.start()
        assert service.engine.running
        await service.stop()
        assert not service.engine.running
