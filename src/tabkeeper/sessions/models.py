"""
Persisted session data.

Layout in the key-value store::

    folders:            {folderName: {sessions: {sessionName: [TabRecord]}}}
    activeSession:      {folder, session}
    lastActiveTabIndex: int
"""

from dataclasses import asdict, dataclass
from typing import Any, Optional

from tabkeeper.tabs.base import Tab


@dataclass
class TabRecord:
    """
    Stored descriptor of one tab.

    ``id`` is a weak reference to a live tab handle. It is rebound as tabs
    are recreated; ``url`` and ``title`` identify the record once it cannot
    be trusted.
    """

    id: Optional[int] = None
    url: str = ""
    title: str = ""
    favicon: str = ""
    active: bool = False

    @classmethod
    def normalize(cls, value: Any) -> "TabRecord":
        """Coerce a dict, TabRecord or live Tab into a TabRecord with defaults filled."""
        if isinstance(value, TabRecord):
            return cls(**asdict(value))
        if isinstance(value, Tab):
            return cls(
                id=value.id,
                url=value.url or "",
                title=value.title or "",
                favicon=value.fav_icon_url or "",
                active=bool(value.active),
            )
        data = value if isinstance(value, dict) else {}
        tab_id = data.get("id")
        return cls(
            id=tab_id if isinstance(tab_id, int) and not isinstance(tab_id, bool) else None,
            url=data.get("url") or "",
            title=data.get("title") or "",
            favicon=(
                data.get("favicon")
                or data.get("favIconUrl")
                or data.get("fav_icon_url")
                or ""
            ),
            active=bool(data.get("active")),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ActiveSession:
    """The one session the reconciliation engine mirrors."""

    folder: str
    session: str

    def to_dict(self) -> dict[str, str]:
        return {"folder": self.folder, "session": self.session}
