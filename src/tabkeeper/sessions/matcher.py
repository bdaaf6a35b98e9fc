"""
Tab record matching.

Maps one observed tab onto an ordered list of stored records. Tab ids are
authoritative while they are bound; urls are only consulted for update and
restore-rebind observations, where a freshly recreated tab may be seen
before its stored record knows the new id.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from tabkeeper.sessions.models import TabRecord
from tabkeeper.tabs.base import ChangeInfo, Tab
from tabkeeper.tabs.favicon import favicon_for


class EventSource(str, Enum):
    CREATED = "created"
    ACTIVATED = "activated"
    UPDATED = "updated"
    RESTORE_REBIND = "restore-rebind"


URL_FALLBACK_SOURCES = frozenset({EventSource.UPDATED, EventSource.RESTORE_REBIND})


@dataclass(frozen=True)
class ById:
    handle: int


@dataclass(frozen=True)
class ByUrl:
    url: str


@dataclass(frozen=True)
class Unbound:
    pass


Identity = Union[ById, ByUrl, Unbound]


def identity_of(record: TabRecord) -> Identity:
    """How a stored record can currently be recognised."""
    if record.id is not None:
        return ById(record.id)
    if record.url:
        return ByUrl(record.url)
    return Unbound()


def find_record_index(
    records: list[TabRecord], tab: Tab, source: EventSource
) -> Optional[int]:
    """
    Locate the record an observed tab corresponds to.

    Priority:
        1. A record bound to the tab's id.
        2. For updated/restore-rebind only: a record with the tab's url,
           preferring records that are not bound to any tab.

    Returns:
        The record's position, or None when the tab should be appended.
    """
    if tab.id is not None:
        for i, record in enumerate(records):
            if identity_of(record) == ById(tab.id):
                return i

    if source not in URL_FALLBACK_SOURCES or not tab.url:
        return None

    bound_match = None
    for i, record in enumerate(records):
        if record.url != tab.url:
            continue
        if not isinstance(identity_of(record), ById):
            return i
        if bound_match is None:
            bound_match = i
    return bound_match


def mark_active(records: list[TabRecord], index: int) -> None:
    """Make ``records[index]`` the only active record."""
    for i, record in enumerate(records):
        record.active = i == index


def merge_observation(
    records: list[TabRecord],
    tab: Tab,
    source: EventSource,
    change: Optional[ChangeInfo] = None,
) -> tuple[Optional[int], bool]:
    """
    Apply an observed tab to ``records`` in place.

    On a match only the fields named in ``change`` are copied, the id is
    always rebound, and the active flag moves on activation or on a finished
    load. Without a match a new record is appended, except for
    restore-rebind observations which never append.

    Returns:
        ``(index, appended)``; index is None only for an unmatched rebind.
    """
    index = find_record_index(records, tab, source)

    if index is None:
        if source == EventSource.RESTORE_REBIND:
            return None, False
        records.append(
            TabRecord(
                id=tab.id,
                url=tab.url or "",
                title=tab.title or "",
                favicon=tab.fav_icon_url or favicon_for(tab.url),
                active=bool(tab.active),
            )
        )
        index = len(records) - 1
        if tab.active:
            mark_active(records, index)
        return index, True

    existing = records[index]
    if change is not None:
        if change.url:
            existing.url = tab.url or change.url
        if change.title:
            existing.title = tab.title or change.title
        if change.fav_icon_url:
            existing.favicon = tab.fav_icon_url or change.fav_icon_url

    if tab.id is not None:
        existing.id = tab.id

    if source == EventSource.ACTIVATED:
        mark_active(records, index)
    elif change is not None and change.is_complete:
        if tab.active:
            mark_active(records, index)
        else:
            existing.active = False

    return index, False
