"""Item models shared by the remote client adapter and the local tree.

``RemoteItem`` and ``LocalItem`` are snapshots taken at the start of a run;
neither is written back directly.  Both are frozen.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel


def parse_api_datetime(value: Any) -> datetime:
    """Parse a linkding ISO 8601 timestamp into an aware UTC datetime.

    Missing or unparseable values map to the Unix epoch so that comparisons
    treat the item as "not recently modified".
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value:
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return datetime.fromtimestamp(0, tz=timezone.utc)
    else:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class RemoteItem(BaseModel):
    """A bookmark as stored on the linkding server.

    Attributes:
        id: linkding bookmark id.
        url: Bookmark URL (the content key).
        title: Display title; empty API titles fall back to the website
            title, then to the URL.
        tags: Tag names in server order.
        modified_at: ``date_modified`` reported by the server.
    """

    id: int
    url: str
    title: str
    tags: list[str] = []
    modified_at: datetime

    model_config = {"frozen": True}

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> RemoteItem:
        """Build a ``RemoteItem`` from a linkding ``/api/bookmarks/`` result."""
        url = data["url"]
        title = data.get("title") or data.get("website_title") or url
        return cls(
            id=int(data["id"]),
            url=url,
            title=title,
            tags=list(data.get("tag_names") or []),
            modified_at=parse_api_datetime(
                data.get("date_modified") or data.get("date_added")
            ),
        )


class LocalItem(BaseModel):
    """A bookmark in the local tree, annotated with its folder path.

    Attributes:
        id: Local node id.
        url: Bookmark URL (the content key).
        title: Display title.
        path: Folder names from the sync root down to the parent folder.
        added_at: Creation time of the node.
        modified_at: Last title/URL edit, when the tree recorded one.
    """

    id: str
    url: str
    title: str
    path: list[str] = []
    added_at: datetime
    modified_at: datetime | None = None

    model_config = {"frozen": True}
