"""In-process key-value store."""

from typing import Any, Optional

from tabkeeper.storage.base import KeyValueStore


class MemoryKeyValueStore(KeyValueStore):
    """Keeps everything in a dict. Nothing survives the process."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        super().__init__()
        self._data: dict[str, Any] = dict(initial or {})

    async def _read(self) -> dict[str, Any]:
        return self._data

    async def _write(self, data: dict[str, Any]) -> None:
        self._data = data

    def snapshot(self) -> dict[str, Any]:
        """Shallow view of the stored data, for inspection."""
        return dict(self._data)
