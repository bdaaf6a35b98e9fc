"""
Exception types shared across tabkeeper.

Command handlers translate these into ``{"success": false, "error": code}``
responses; nothing here is retried automatically.
"""


class TabKeeperError(Exception):
    """Base class for tabkeeper errors. ``code`` is the wire error string."""

    code = "TABKEEPER_ERROR"


class ActiveTargetBlocked(TabKeeperError):
    """Deleting the folder or session the active pointer currently targets."""

    code = "ACTIVE_TARGET_DELETE_BLOCKED"

    def __init__(self, code: str, folder: str, session: str | None = None):
        self.code = code
        self.folder = folder
        self.session = session
        target = f"{folder}/{session}" if session is not None else folder
        super().__init__(f"'{target}' is the active session target")


class RestoreInProgress(TabKeeperError):
    """A restore was requested while another one still holds the guard."""

    code = "RESTORE_IN_PROGRESS"


class TabPlatformError(TabKeeperError):
    """A tab platform call was rejected by the host (e.g. tab already closed)."""

    code = "TAB_PLATFORM_ERROR"


class BrowserNotConnected(TabKeeperError):
    """No tab platform is attached to the service."""

    code = "BROWSER_NOT_CONNECTED"


# Host-call failures the restore flow absorbs step by step.
HOST_CALL_ERRORS = (TabPlatformError, TimeoutError, ConnectionError)
