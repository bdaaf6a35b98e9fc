"""
Unit tests for tab record matching.
"""

from tabkeeper.sessions.matcher import (
    ById,
    ByUrl,
    EventSource,
    Unbound,
    find_record_index,
    identity_of,
    mark_active,
    merge_observation,
)
from tabkeeper.sessions.models import TabRecord
from tabkeeper.tabs.base import ChangeInfo, Tab


def _tab(tab_id, url, **kwargs):
    return Tab(id=tab_id, window_id=1, url=url, **kwargs)


class TestIdentity:
    def test_identity_kinds(self):
        assert identity_of(TabRecord(id=4, url="https://a.com")) == ById(4)
        assert identity_of(TabRecord(url="https://a.com")) == ByUrl("https://a.com")
        assert identity_of(TabRecord()) == Unbound()


class TestFindRecordIndex:
    def test_id_match_wins_over_url(self):
        records = [TabRecord(url="https://a.com"), TabRecord(id=7, url="https://b.com")]
        tab = _tab(7, "https://a.com")
        assert find_record_index(records, tab, EventSource.UPDATED) == 1

    def test_created_never_matches_by_url(self):
        records = [TabRecord(url="https://a.com")]
        assert find_record_index(records, _tab(1, "https://a.com"), EventSource.CREATED) is None

    def test_activated_never_matches_by_url(self):
        records = [TabRecord(url="https://a.com")]
        assert find_record_index(records, _tab(1, "https://a.com"), EventSource.ACTIVATED) is None

    def test_url_fallback_prefers_unbound(self):
        records = [
            TabRecord(id=1, url="https://a.com"),
            TabRecord(url="https://a.com"),
        ]
        assert find_record_index(records, _tab(9, "https://a.com"), EventSource.RESTORE_REBIND) == 1

    def test_url_fallback_uses_bound_when_nothing_else(self):
        records = [TabRecord(id=1, url="https://a.com")]
        assert find_record_index(records, _tab(9, "https://a.com"), EventSource.UPDATED) == 0


class TestMergeObservation:
    def test_unmatched_created_is_appended(self):
        records = []
        index, appended = merge_observation(records, _tab(3, "https://a.com/x"), EventSource.CREATED)

        assert (index, appended) == (0, True)
        assert records[0].id == 3
        assert records[0].favicon.endswith("domain_url=https://a.com")

    def test_unmatched_rebind_is_not_appended(self):
        records = [TabRecord(url="https://other.com")]
        result = merge_observation(records, _tab(3, "https://a.com"), EventSource.RESTORE_REBIND)

        assert result == (None, False)
        assert len(records) == 1

    def test_rebind_binds_fresh_id(self):
        records = [TabRecord(url="https://a.com"), TabRecord(url="https://b.com")]
        index, appended = merge_observation(
            records, _tab(42, "https://b.com"), EventSource.RESTORE_REBIND
        )

        assert (index, appended) == (1, False)
        assert records[1].id == 42
        assert records[0].id is None

    def test_update_copies_changed_fields_only(self):
        records = [TabRecord(id=5, url="https://a.com", title="Old", favicon="old.png")]
        tab = _tab(5, "https://a.com", title="New", fav_icon_url="new.png")

        merge_observation(records, tab, EventSource.UPDATED, ChangeInfo(title="New"))

        assert records[0].title == "New"
        assert records[0].favicon == "old.png"

    def test_update_complete_moves_active_flag(self):
        records = [
            TabRecord(id=1, url="https://a.com", active=True),
            TabRecord(id=2, url="https://b.com"),
        ]
        tab = _tab(2, "https://b.com", active=True)

        merge_observation(records, tab, EventSource.UPDATED, ChangeInfo(status="complete"))

        assert [r.active for r in records] == [False, True]

    def test_activation_marks_single_active(self):
        records = [
            TabRecord(id=1, url="https://a.com", active=True),
            TabRecord(id=2, url="https://b.com"),
        ]
        merge_observation(records, _tab(2, "https://b.com", active=True), EventSource.ACTIVATED)

        assert sum(r.active for r in records) == 1
        assert records[1].active

    def test_appended_active_tab_clears_others(self):
        records = [TabRecord(id=1, url="https://a.com", active=True)]
        merge_observation(records, _tab(2, "https://b.com", active=True), EventSource.CREATED)

        assert [r.active for r in records] == [False, True]


def test_mark_active():
    records = [TabRecord(active=True), TabRecord(), TabRecord(active=True)]
    mark_active(records, 1)
    assert [r.active for r in records] == [False, True, False]
