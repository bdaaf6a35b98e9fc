"""
JSON file backed key-value store.

The whole dictionary lives in one file. Writes go to a sibling temp file
and are moved into place, so a crash mid-write leaves the previous state.
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Any, Optional

from tabkeeper.logger import get_logger
from tabkeeper.storage.base import KeyValueStore

logger = get_logger(__name__)

DEFAULT_FILENAME = "storage.json"


class JsonFileStore(KeyValueStore):
    """Persists the store as a single JSON document."""

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self._cache: Optional[dict[str, Any]] = None

    @classmethod
    def in_dir(cls, data_dir: Path) -> "JsonFileStore":
        return cls(Path(data_dir) / DEFAULT_FILENAME)

    async def _read(self) -> dict[str, Any]:
        if self._cache is None:
            self._cache = await asyncio.to_thread(self._load)
        return self._cache

    async def _write(self, data: dict[str, Any]) -> None:
        await asyncio.to_thread(self._dump, data)
        self._cache = data

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            logger.warning(f"Could not read {self.path}, starting empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring {self.path}: top level is not an object")
            return {}
        return data

    def _dump(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(
            json.dumps(data, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        os.replace(tmp, self.path)
