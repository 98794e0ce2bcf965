"""Pydantic models for the bidirectional sync engine.

Defines the core data contracts used across all sync modules:

- ``SyncAction``: Enum of possible per-key sync operations.
- ``InitialSyncMode``: Push / Pull / Merge bootstrap strategies.
- ``MappingEntry``: Last reconciled state of one URL across both stores.
- ``SyncResult``: Outcome of syncing one key.
- ``ReconcileReport``: Aggregate results for an incremental run.
- ``InitialSyncReport``: Aggregate results for an initial sync.
- ``MirrorReport``: Result of a one-directional mirror download.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class SyncAction(str, Enum):
    """Possible sync operations for one content key."""

    SKIP = "skip"
    CREATE_REMOTE = "create_remote"
    CREATE_LOCAL = "create_local"
    LINK = "link"
    UPDATE_REMOTE = "update_remote"
    UPDATE_LOCAL = "update_local"
    UPDATE_BOTH = "update_both"
    DELETE_REMOTE = "delete_remote"
    DELETE_LOCAL = "delete_local"
    DROP_STALE = "drop_stale"


class InitialSyncMode(str, Enum):
    """Strategy used to bootstrap the mapping."""

    PUSH = "push"
    PULL = "pull"
    MERGE = "merge"


_ADDED = frozenset(
    {SyncAction.CREATE_REMOTE, SyncAction.CREATE_LOCAL, SyncAction.LINK}
)
_REMOVED = frozenset(
    {
        SyncAction.DELETE_REMOTE,
        SyncAction.DELETE_LOCAL,
        SyncAction.DROP_STALE,
    }
)
_UPDATED = frozenset(
    {
        SyncAction.UPDATE_REMOTE,
        SyncAction.UPDATE_LOCAL,
        SyncAction.UPDATE_BOTH,
    }
)


class MappingEntry(BaseModel):
    """Last reconciled state of one URL.

    Attributes:
        remote_id: linkding bookmark id.
        local_id: Local tree node id.
        title: Title both sides agreed on.
        key: The content key (bookmark URL).
        path: Folder location below the sync root.
        last_synced_at: When this entry was last reconciled.
    """

    remote_id: int
    local_id: str
    title: str
    key: str
    path: list[str] = []
    last_synced_at: datetime

    model_config = {"frozen": True}


class SyncResult(BaseModel):
    """Result of syncing one content key.

    Attributes:
        key: Bookmark URL.
        action: Sync action that was performed (or attempted).
        success: Whether the action succeeded.
        error: Error message if the action failed.
    """

    key: str
    action: SyncAction
    success: bool = True
    error: str | None = None

    model_config = {"frozen": True}


class _RunReport(BaseModel):
    """Fields and helpers shared by reconciliation and initial-sync reports."""

    results: list[SyncResult] = []
    total: int = 0
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _count(self, actions: frozenset[SyncAction]) -> int:
        return sum(
            1 for r in self.results if r.success and r.action in actions
        )

    @property
    def errors(self) -> list[SyncResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]


class ReconcileReport(_RunReport):
    """Aggregate report for one incremental reconciliation run."""

    @property
    def added(self) -> int:
        """Keys newly linked or created on either side."""
        return self._count(_ADDED)

    @property
    def removed(self) -> int:
        """Keys dropped from the mapping (deleted or stale)."""
        return self._count(_REMOVED)

    @property
    def updated(self) -> int:
        """Mapped keys that needed a corrective write."""
        return self._count(_UPDATED)

    def counts(self) -> dict[str, int]:
        """Return the caller-facing summary counts."""
        return {
            "added": self.added,
            "removed": self.removed,
            "updated": self.updated,
            "total": self.total,
            "errors": len(self.errors),
        }

    def summary(self) -> str:
        """Format a one-line summary in ``+added -removed ~updated`` form."""
        return (
            f"+{self.added} -{self.removed} ~{self.updated} "
            f"({self.total} total, {len(self.errors)} errors)"
        )


class InitialSyncReport(_RunReport):
    """Aggregate report for one initial sync."""

    mode: InitialSyncMode

    @property
    def added(self) -> int:
        """Bookmarks created on the server."""
        return self._count(frozenset({SyncAction.CREATE_REMOTE}))

    @property
    def updated(self) -> int:
        """Existing server bookmarks merged with a local one."""
        return self._count(
            frozenset({SyncAction.LINK, SyncAction.UPDATE_REMOTE})
        )

    @property
    def downloaded(self) -> int:
        """Bookmarks created in the local tree."""
        return self._count(frozenset({SyncAction.CREATE_LOCAL}))

    def counts(self) -> dict[str, int]:
        """Return the caller-facing summary counts."""
        return {
            "added": self.added,
            "updated": self.updated,
            "downloaded": self.downloaded,
            "total": self.total,
            "errors": len(self.errors),
        }


class MirrorReport(BaseModel):
    """Result of a one-directional mirror download.

    Attributes:
        bookmarks: Number of server bookmarks fetched.
        tags: Number of tag folders created (including ``Untagged``).
        entries: Number of local bookmarks created.
        completed_at: ISO 8601 timestamp when the mirror finished.
    """

    bookmarks: int
    tags: int
    entries: int
    completed_at: str

    model_config = {"frozen": True}
