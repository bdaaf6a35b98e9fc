"""
Command surface consumed by presentation layers.

Every command is a request/response pair. Requests are validated with
pydantic (discriminated by ``type``); responses always carry ``success``
and, on failure, an ``error`` code or message.
"""

from typing import TYPE_CHECKING, Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from tabkeeper.errors import BrowserNotConnected, TabKeeperError
from tabkeeper.logger import get_logger
from tabkeeper.sessions.models import TabRecord
from tabkeeper.tabs.favicon import favicon_for

if TYPE_CHECKING:
    from tabkeeper.service import TabSyncService

logger = get_logger(__name__)

INVALID_COMMAND = "INVALID_COMMAND"
BROWSER_TIMEOUT = "BROWSER_TIMEOUT"


class _Command(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class _FolderCommand(_Command):
    folder_name: str = Field(alias="folderName", min_length=1)


class _SessionCommand(_FolderCommand):
    session_name: str = Field(alias="sessionName", min_length=1)


class SaveSession(_SessionCommand):
    type: Literal["SAVE_SESSION"] = "SAVE_SESSION"
    set_active: bool = Field(default=False, alias="setActive")


class RestoreSession(_SessionCommand):
    type: Literal["RESTORE_SESSION"] = "RESTORE_SESSION"
    force: bool = False


class SetActiveSession(_SessionCommand):
    type: Literal["SET_ACTIVE_SESSION"] = "SET_ACTIVE_SESSION"


class CreateFolder(_FolderCommand):
    type: Literal["CREATE_FOLDER"] = "CREATE_FOLDER"


class CreateAndSwitchSession(_SessionCommand):
    type: Literal["CREATE_AND_SWITCH_SESSION"] = "CREATE_AND_SWITCH_SESSION"


class DeleteFolder(_FolderCommand):
    type: Literal["DELETE_FOLDER"] = "DELETE_FOLDER"


class DeleteSession(_SessionCommand):
    type: Literal["DELETE_SESSION"] = "DELETE_SESSION"


Command = Annotated[
    Union[
        SaveSession,
        RestoreSession,
        SetActiveSession,
        CreateFolder,
        CreateAndSwitchSession,
        DeleteFolder,
        DeleteSession,
    ],
    Field(discriminator="type"),
]

_command_adapter = TypeAdapter(Command)


def parse_command(data: dict[str, Any]) -> Command:
    """Validate a raw command dict. Raises pydantic.ValidationError."""
    return _command_adapter.validate_python(data)


def ok(**extra: Any) -> dict[str, Any]:
    return {"success": True, **extra}


def fail(error: str, **extra: Any) -> dict[str, Any]:
    return {"success": False, "error": error, **extra}


class CommandDispatcher:
    """Routes validated commands to the session store and restore orchestrator."""

    def __init__(self, service: "TabSyncService"):
        self.service = service

    async def dispatch(self, data: dict[str, Any]) -> dict[str, Any]:
        """
        Handle one raw command.

        Returns:
            The response dict; never raises for domain errors.
        """
        if not isinstance(data, dict):
            return fail(INVALID_COMMAND, detail="Command must be an object")

        try:
            command = parse_command(data)
        except ValidationError as e:
            logger.warning(f"Rejected command {data.get('type')!r}: {e.error_count()} errors")
            return fail(INVALID_COMMAND, detail=str(e))

        try:
            return await self.execute(command)
        except TabKeeperError as e:
            logger.warning(f"{command.type} failed: {e.code} ({e})")
            return fail(e.code, message=str(e))
        except TimeoutError as e:
            logger.error(f"{command.type} timed out waiting for the browser: {e}")
            return fail(BROWSER_TIMEOUT, message=str(e))
        except ConnectionError as e:
            logger.error(f"{command.type} lost the browser connection: {e}")
            return fail(BrowserNotConnected.code, message=str(e))

    async def execute(self, command: Command) -> dict[str, Any]:
        store = self.service.store
        orchestrator = self.service.orchestrator

        if isinstance(command, SaveSession):
            records = await self.snapshot_current_window()
            await store.create_folder(command.folder_name)
            await store.save_session(command.folder_name, command.session_name, records)
            if command.set_active:
                await store.set_active_session(command.folder_name, command.session_name)
            return ok(tabCount=len(records))

        if isinstance(command, RestoreSession):
            result = await orchestrator.restore(
                command.folder_name, command.session_name, force=command.force
            )
            return ok(skipped=result.skipped, tabIds=result.tab_ids, errors=result.errors)

        if isinstance(command, SetActiveSession):
            await store.set_active_session(command.folder_name, command.session_name)
            return ok()

        if isinstance(command, CreateFolder):
            created = await store.create_folder(command.folder_name)
            return ok(created=created)

        if isinstance(command, CreateAndSwitchSession):
            result = await orchestrator.create_and_switch(
                command.folder_name, command.session_name
            )
            return ok(tabId=result.tab_id, errors=result.errors)

        if isinstance(command, DeleteFolder):
            removed = await store.delete_folder(command.folder_name)
            return ok(removed=removed)

        if isinstance(command, DeleteSession):
            removed = await store.delete_session(command.folder_name, command.session_name)
            return ok(removed=removed)

        return fail(INVALID_COMMAND)

    async def snapshot_current_window(self) -> list[TabRecord]:
        """Records for every tab in the current window, in tab order."""
        platform = self.service.require_platform()
        window_id = await platform.get_current_window()
        tabs = await platform.query_tabs(window_id=window_id)

        records = []
        for tab in tabs:
            record = TabRecord.normalize(tab)
            record.favicon = record.favicon or favicon_for(record.url)
            records.append(record)
        return records


def describe_session(records: Optional[list[TabRecord]]) -> list[dict[str, Any]]:
    return [r.to_dict() for r in records or []]
