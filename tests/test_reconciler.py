"""
Unit tests for the reconciliation engine.
"""

import asyncio

import pytest

from tabkeeper.sessions.models import TabRecord
from tabkeeper.sessions.reconciler import ReconciliationEngine
from tabkeeper.sessions.restore import RestoreGuard, RestoreOrchestrator
from tabkeeper.tabs.base import ChangeInfo, Tab, TabActivated, TabRemoved, TabUpdated
from tabkeeper.tabs.memory import MemoryTabPlatform


async def _activate(store, folder="work", session="mon", tabs=None):
    await store.save_session(folder, session, tabs or [])
    await store.set_active_session(folder, session)


class TestMirroring:
    @pytest.mark.asyncio
    async def test_new_tab_becomes_one_record(self, engine, store, platform):
        await _activate(store)

        await platform.create_tab("https://a.com")
        await engine.process_pending()

        saved = await store.get_session("work", "mon")
        assert len(saved) == 1
        assert saved[0].id == 1
        assert saved[0].url == "https://a.com"
        assert saved[0].title == "https://a.com"
        assert saved[0].active is True

    @pytest.mark.asyncio
    async def test_placeholder_tabs_are_ignored(self, engine, store, platform):
        await _activate(store)

        await platform.create_tab("chrome://newtab/")
        await engine.process_pending()

        assert await store.get_session("work", "mon") == []

    @pytest.mark.asyncio
    async def test_navigation_away_from_placeholder_adds_record(self, engine, store, platform):
        await _activate(store)

        tab = await platform.create_tab("chrome://newtab/")
        await platform.update_tab(tab.id, url="https://a.com")
        await engine.process_pending()

        saved = await store.get_session("work", "mon")
        assert [(r.id, r.url) for r in saved] == [(tab.id, "https://a.com")]

    @pytest.mark.asyncio
    async def test_navigation_updates_existing_record(self, engine, store, platform):
        await _activate(store)
        tab = await platform.create_tab("https://a.com")
        await engine.process_pending()

        await platform.update_tab(tab.id, url="https://b.com")
        await engine.process_pending()

        saved = await store.get_session("work", "mon")
        assert [(r.id, r.url) for r in saved] == [(tab.id, "https://b.com")]

    @pytest.mark.asyncio
    async def test_interim_update_is_ignored(self, engine, store):
        await _activate(store, tabs=[TabRecord(id=1, url="https://a.com", title="A")])
        tab = Tab(id=1, window_id=1, url="https://a.com", title="B", status="loading")

        written = await engine.handle(
            TabUpdated(tab_id=1, change=ChangeInfo(status="loading"), tab=tab)
        )

        assert written is False
        assert (await store.get_session("work", "mon"))[0].title == "A"

    @pytest.mark.asyncio
    async def test_no_active_session_writes_nothing(self, engine, kv, platform):
        await platform.create_tab("https://a.com")
        await engine.process_pending()

        assert "folders" not in kv.snapshot()

    @pytest.mark.asyncio
    async def test_foreign_window_ignored(self, store, guard, config):
        platform = MemoryTabPlatform(window_ids=(1, 2))
        engine = ReconciliationEngine(store, guard, platform=platform, config=config)
        platform.set_event_callback(engine.submit)
        engine.bind_window(1)
        await _activate(store)

        await platform.create_tab("https://a.com", window_id=2)
        await engine.process_pending()

        assert await store.get_session("work", "mon") == []


class TestActivation:
    @pytest.mark.asyncio
    async def test_activation_records_index(self, engine, store, platform):
        await _activate(store)
        first = await platform.create_tab("https://a.com")
        second = await platform.create_tab("https://b.com", active=True)
        await engine.process_pending()
        assert await store.get_last_active_index() == 1

        await platform.update_tab(first.id, active=True)
        await engine.process_pending()

        saved = await store.get_session("work", "mon")
        assert await store.get_last_active_index() == 0
        assert [r.active for r in saved] == [True, False]
        assert saved[1].id == second.id


class TestRemoval:
    @pytest.mark.asyncio
    async def test_removes_only_matching_id(self, engine, store):
        await _activate(
            store,
            tabs=[
                TabRecord(id=5, url="https://a.com"),
                TabRecord(id=None, url="https://b.com"),
                TabRecord(id=6, url="https://a.com"),
            ],
        )

        assert await engine.handle(TabRemoved(tab_id=5)) is True

        saved = await store.get_session("work", "mon")
        assert [(r.id, r.url) for r in saved] == [(None, "https://b.com"), (6, "https://a.com")]

    @pytest.mark.asyncio
    async def test_unknown_id_removes_nothing(self, engine, store):
        await _activate(store, tabs=[TabRecord(id=5, url="https://a.com")])

        assert await engine.handle(TabRemoved(tab_id=99)) is False
        assert len(await store.get_session("work", "mon")) == 1


class TestSuppression:
    @pytest.mark.asyncio
    async def test_events_dropped_while_guard_held(self, engine, store, guard, platform):
        await _activate(store)

        async with guard.hold():
            await platform.create_tab("https://a.com")
            assert engine.queue.qsize() == 0

        assert await engine.process_pending() == 0
        assert await store.get_session("work", "mon") == []

    @pytest.mark.asyncio
    async def test_queued_events_ignored_once_guard_taken(self, engine, store, guard, platform):
        await _activate(store)
        await platform.create_tab("https://a.com")
        assert engine.queue.qsize() > 0

        async with guard.hold():
            await engine.process_pending()

        assert await store.get_session("work", "mon") == []

    @pytest.mark.asyncio
    async def test_settle_window_keeps_suppressing(self, store, platform, config):
        guard = RestoreGuard(settle_delay=60)
        engine = ReconciliationEngine(store, guard, platform=platform, config=config)
        platform.set_event_callback(engine.submit)

        async with guard.hold():
            pass
        await platform.create_tab("https://a.com")

        assert guard.held
        assert engine.queue.qsize() == 0


class TestRunLoop:
    @pytest.mark.asyncio
    async def test_background_worker_applies_events(self, engine, store, platform):
        await _activate(store)
        await engine.start()
        try:
            await platform.create_tab("https://a.com")
            await engine.queue.join()
        finally:
            await engine.stop()

        assert [r.url for r in await store.get_session("work", "mon")] == ["https://a.com"]
        assert not engine.running


class TestStaleEvents:
    @pytest.mark.asyncio
    async def test_events_queued_before_restore_are_discarded(self, engine, store, guard, platform):
        await platform.create_tab("https://old.com")
        assert engine.queue.qsize() > 0

        async with guard.hold():
            await _activate(store)

        await engine.process_pending()
        assert await store.get_session("work", "mon") == []

    @pytest.mark.asyncio
    async def test_in_flight_activation_does_not_leak_into_restored_session(
        self, store, guard, config
    ):
        class SlowLookupPlatform(MemoryTabPlatform):
            def __init__(self):
                super().__init__()
                self.lookup_started = asyncio.Event()
                self.release = asyncio.Event()

            async def get_tab(self, tab_id):
                tab = await super().get_tab(tab_id)
                self.lookup_started.set()
                await self.release.wait()
                return tab

        platform = SlowLookupPlatform()
        engine = ReconciliationEngine(store, guard, platform=platform, config=config)
        orchestrator = RestoreOrchestrator(store, guard, platform=platform, config=config)
        await _activate(store, session="one")
        await store.save_session("work", "two", [{"url": "https://c.example/"}])
        await platform.create_tab("https://a.example/")
        old = await platform.create_tab("https://b.example/")
        await store.set_last_active_index(0)

        pending = asyncio.create_task(engine.handle(TabActivated(tab_id=old.id, window_id=1)))
        await platform.lookup_started.wait()
        await orchestrator.restore("work", "two")
        platform.release.set()

        assert await pending is False
        saved = await store.get_session("work", "two")
        assert [r.url for r in saved] == ["https://c.example/"]
        assert await store.get_last_active_index() == 0


class TestIdentityRebind:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["https://a.com", "https://a.com/?q=1#frag", "file:///tmp/x.html"])
    async def test_updated_event_rebinds_unbound_record(self, engine, store, url):
        await _activate(store, tabs=[TabRecord(id=None, url=url, title="Kept")])
        tab = Tab(id=77, window_id=1, url=url, status="complete")

        await engine.handle(TabUpdated(tab_id=77, change=ChangeInfo(status="complete"), tab=tab))

        saved = await store.get_session("work", "mon")
        assert [(r.id, r.url, r.title) for r in saved] == [(77, url, "Kept")]

    @pytest.mark.asyncio
    async def test_rebound_record_moves_to_new_id(self, engine, store):
        await _activate(store, tabs=[TabRecord(id=3, url="https://a.com")])
        tab = Tab(id=8, window_id=1, url="https://a.com", status="complete")

        await engine.handle(TabUpdated(tab_id=8, change=ChangeInfo(status="complete"), tab=tab))

        assert [r.id for r in await store.get_session("work", "mon")] == [8]
