"""
Interface for the asynchronous key-value substrate sessions are persisted in.

Behaves like a browser extension's local storage area: ``get`` returns a
partial record for the requested keys, ``set`` merges a partial record, and
observers are told about every key whose value changed.
"""

import asyncio
import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from tabkeeper.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StorageChange:
    """One changed key, as delivered to change listeners."""

    key: str
    old_value: Any
    new_value: Any


ChangeListener = Callable[[StorageChange], None]


class KeyValueStore(ABC):
    """
    Abstract base class for persistence substrates.

    Subclasses implement ``_read`` and ``_write``; change detection, copying
    and listener fan-out live here.
    """

    def __init__(self):
        self._listeners: list[ChangeListener] = []
        self._write_lock = asyncio.Lock()

    @abstractmethod
    async def _read(self) -> dict[str, Any]:
        """Return the full stored dictionary (may be the live object)."""
        pass

    @abstractmethod
    async def _write(self, data: dict[str, Any]) -> None:
        """Persist the full dictionary. Must be durable when it returns."""
        pass

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        """
        Read a partial record.

        Args:
            keys: Keys to fetch. Absent keys are omitted from the result.

        Returns:
            Deep copies of the stored values, safe to mutate.
        """
        data = await self._read()
        return {key: copy.deepcopy(data[key]) for key in keys if key in data}

    async def set(self, items: dict[str, Any]) -> None:
        """Merge ``items`` into the store and notify listeners of changed keys."""
        # Read-merge-write must not interleave or concurrent merges drop keys.
        async with self._write_lock:
            data = dict(await self._read())
            changes = []
            for key, value in items.items():
                old = data.get(key)
                if old != value:
                    changes.append(StorageChange(key, old, copy.deepcopy(value)))
                data[key] = copy.deepcopy(value)

            await self._write(data)

        for change in changes:
            self._notify(change)

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            A callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, change: StorageChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as e:
                logger.error(f"Storage change listener failed for '{change.key}': {e}")
