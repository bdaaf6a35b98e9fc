"""
Session store: typed accessors over the key-value substrate.

Every mutation is a full read-modify-write of the ``folders`` value. Inside
one process those cycles are serialized by a lock; writers in other
processes sharing the substrate can still interleave.
"""

import asyncio
from typing import Any, Callable, Iterable, Optional, TypeVar

from tabkeeper.errors import ActiveTargetBlocked
from tabkeeper.logger import get_logger
from tabkeeper.sessions.models import ActiveSession, TabRecord
from tabkeeper.storage.base import KeyValueStore

logger = get_logger(__name__)

FOLDERS_KEY = "folders"
ACTIVE_SESSION_KEY = "activeSession"
LAST_ACTIVE_INDEX_KEY = "lastActiveTabIndex"

ACTIVE_SESSION_DELETE_BLOCKED = "ACTIVE_SESSION_DELETE_BLOCKED"
ACTIVE_FOLDER_DELETE_BLOCKED = "ACTIVE_FOLDER_DELETE_BLOCKED"

T = TypeVar("T")


class SessionStore:
    """Folders of named sessions plus the active session pointer."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv
        self._lock = asyncio.Lock()

    # ─── Raw folder structure ────────────────────────────────────────

    async def get_all_folders(self) -> dict[str, dict[str, Any]]:
        """Load the raw ``folders`` value, guaranteeing a ``sessions`` map per folder."""
        data = await self.kv.get([FOLDERS_KEY])
        folders = data.get(FOLDERS_KEY)
        if not isinstance(folders, dict):
            folders = {}

        for name, folder in list(folders.items()):
            if not isinstance(folder, dict):
                folder = folders[name] = {}
            if not isinstance(folder.get("sessions"), dict):
                folder["sessions"] = {}

        return folders

    async def save_folders(self, folders: dict[str, dict[str, Any]]) -> None:
        await self.kv.set({FOLDERS_KEY: folders})

    # ─── Folders and sessions ────────────────────────────────────────

    async def get_folders(self) -> dict[str, dict[str, list[TabRecord]]]:
        """All folders as ``{folder: {session: [TabRecord]}}``."""
        folders = await self.get_all_folders()
        return {
            name: _records_by_session(folder["sessions"])
            for name, folder in folders.items()
        }

    async def create_folder(self, folder: str) -> bool:
        """Create an empty folder. Returns False if it already existed."""
        async with self._lock:
            folders = await self.get_all_folders()
            if folder in folders:
                return False
            folders[folder] = {"sessions": {}}
            await self.save_folders(folders)

        logger.info(f"Created folder '{folder}'")
        return True

    async def save_session(
        self, folder: str, session: str, tabs: Optional[Iterable[Any]]
    ) -> list[TabRecord]:
        """
        Upsert a session's full record list, creating the folder if needed.

        Args:
            folder: Folder name.
            session: Session name.
            tabs: Dicts, TabRecords or live Tabs; normalized to TabRecords.

        Returns:
            The records as stored.
        """
        records = [TabRecord.normalize(t) for t in (tabs or [])]

        async with self._lock:
            folders = await self.get_all_folders()
            target = folders.setdefault(folder, {"sessions": {}})
            target["sessions"][session] = [r.to_dict() for r in records]
            await self.save_folders(folders)

        logger.debug(f"Saved session '{folder}/{session}' ({len(records)} tabs)")
        return records

    async def get_sessions_in_folder(self, folder: str) -> dict[str, list[TabRecord]]:
        folders = await self.get_all_folders()
        if folder not in folders:
            return {}
        return _records_by_session(folders[folder]["sessions"])

    async def get_session(self, folder: str, session: str) -> list[TabRecord]:
        """A session's records; empty when the folder or session is missing."""
        sessions = await self.get_sessions_in_folder(folder)
        return sessions.get(session, [])

    async def session_exists(self, folder: str, session: str) -> bool:
        folders = await self.get_all_folders()
        return session in folders.get(folder, {}).get("sessions", {})

    async def delete_session(self, folder: str, session: str) -> bool:
        """
        Delete one session.

        Returns:
            True if the session existed and was removed.

        Raises:
            ActiveTargetBlocked: If it is the active session. Nothing is changed.
        """
        async with self._lock:
            active = await self.get_active_session()
            if active and active.folder == folder and active.session == session:
                raise ActiveTargetBlocked(ACTIVE_SESSION_DELETE_BLOCKED, folder, session)

            folders = await self.get_all_folders()
            sessions = folders.get(folder, {}).get("sessions", {})
            if session not in sessions:
                return False
            del sessions[session]
            await self.save_folders(folders)

        logger.info(f"Deleted session '{folder}/{session}'")
        return True

    async def delete_folder(self, folder: str) -> bool:
        """
        Delete a folder and every session in it.

        Raises:
            ActiveTargetBlocked: If the active session lives in this folder.
        """
        async with self._lock:
            active = await self.get_active_session()
            if active and active.folder == folder:
                raise ActiveTargetBlocked(ACTIVE_FOLDER_DELETE_BLOCKED, folder)

            folders = await self.get_all_folders()
            if folder not in folders:
                return False
            del folders[folder]
            await self.save_folders(folders)

        logger.info(f"Deleted folder '{folder}'")
        return True

    # ─── Active session pointer ──────────────────────────────────────

    async def set_active_session(self, folder: str, session: str) -> None:
        async with self._lock:
            await self.kv.set(
                {ACTIVE_SESSION_KEY: {"folder": folder, "session": session}}
            )
        logger.info(f"Active session is now '{folder}/{session}'")

    async def get_active_session(self) -> Optional[ActiveSession]:
        """The pointer, or None unless both folder and session are non-empty."""
        data = await self.kv.get([ACTIVE_SESSION_KEY])
        pointer = data.get(ACTIVE_SESSION_KEY)
        if not isinstance(pointer, dict):
            return None

        folder = pointer.get("folder")
        session = pointer.get("session")
        if not folder or not session:
            return None
        return ActiveSession(folder=folder, session=session)

    async def is_active(self, folder: str, session: str) -> bool:
        return await self.get_active_session() == ActiveSession(folder, session)

    async def get_last_active_index(self) -> int:
        data = await self.kv.get([LAST_ACTIVE_INDEX_KEY])
        value = data.get(LAST_ACTIVE_INDEX_KEY)
        return value if isinstance(value, int) and not isinstance(value, bool) else 0

    async def set_last_active_index(self, index: int) -> None:
        await self.kv.set({LAST_ACTIVE_INDEX_KEY: index})

    async def mutate_active_session(
        self, fn: Callable[[list[TabRecord]], T]
    ) -> Optional[T]:
        """
        Apply ``fn`` to the active session's records and persist the result.

        Returns:
            ``fn``'s return value, or None without writing when there is no
            active session or the pointer names a session that does not exist.
        """
        async with self._lock:
            active = await self.get_active_session()
            if not active:
                return None

            folders = await self.get_all_folders()
            sessions = folders.get(active.folder, {}).get("sessions", {})
            if active.session not in sessions:
                logger.debug(
                    f"Active session '{active.folder}/{active.session}' is missing"
                )
                return None

            records = _to_records(sessions[active.session])
            result = fn(records)
            sessions[active.session] = [r.to_dict() for r in records]
            await self.save_folders(folders)

        return result


def _to_records(raw: Any) -> list[TabRecord]:
    if not isinstance(raw, list):
        return []
    return [TabRecord.normalize(item) for item in raw]


def _records_by_session(sessions: dict[str, Any]) -> dict[str, list[TabRecord]]:
    return {name: _to_records(raw) for name, raw in sessions.items()}
