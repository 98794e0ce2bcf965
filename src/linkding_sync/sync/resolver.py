"""Conflict resolution rules shared by initial Merge and the reconciler.

The resolver compares each side's current value against the value the two
stores last agreed on (the mapping entry) and picks exactly one of the
observed values.  It never invents a third value.

Rules:

- **Title** -- a side that changed wins over one that did not.  When both
  changed, modification timestamps decide, but only if the local tree
  recorded a modification newer than the last sync; otherwise local wins.
- **Path** -- a side that moved wins over one that did not.  When both moved
  to different folders, local always wins.
- **Initial title** (no remembered value) -- the more recently modified
  side wins, using the local creation time as its timestamp (ties go to
  local).
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel

from linkding_sync.models import LocalItem, RemoteItem
from linkding_sync.sync.models import MappingEntry

logger = logging.getLogger(__name__)


class Side(str, Enum):
    """Which store supplied a resolved value."""

    NONE = "none"
    LOCAL = "local"
    REMOTE = "remote"


class FieldResolution(BaseModel):
    """Resolved value of one field.

    Attributes:
        value: The agreed value.
        winner: The side whose value was taken; ``NONE`` when neither side
            diverged from the remembered value.
    """

    value: Any
    winner: Side

    model_config = {"frozen": True}

    @property
    def local_stale(self) -> bool:
        """``True`` if the local side must be rewritten to ``value``."""
        return self.winner == Side.REMOTE

    @property
    def remote_stale(self) -> bool:
        """``True`` if the remote side must be rewritten to ``value``."""
        return self.winner == Side.LOCAL


class EntryResolution(BaseModel):
    """Title and path resolution for one mapped key."""

    title: FieldResolution
    path: FieldResolution

    model_config = {"frozen": True}


class ConflictResolver:
    """Apply the fixed last-writer-wins / local-preferred rules."""

    def resolve_title(
        self,
        remembered: str,
        local_title: str,
        remote_title: str,
        *,
        last_synced_at: datetime,
        remote_modified_at: datetime,
        local_modified_at: datetime | None = None,
    ) -> FieldResolution:
        """Resolve a title against the last agreed value."""
        local_changed = local_title != remembered
        remote_changed = remote_title != remembered

        if local_title == remote_title:
            # Both sides already agree (possibly both edited identically).
            return FieldResolution(value=local_title, winner=Side.NONE)
        if local_changed and not remote_changed:
            return FieldResolution(value=local_title, winner=Side.LOCAL)
        if remote_changed and not local_changed:
            return FieldResolution(value=remote_title, winner=Side.REMOTE)

        if (
            local_modified_at is not None
            and local_modified_at > last_synced_at
            and remote_modified_at > local_modified_at
        ):
            logger.debug(
                "Title conflict: remote edit is newer (%s > %s)",
                remote_modified_at,
                local_modified_at,
            )
            return FieldResolution(value=remote_title, winner=Side.REMOTE)

        logger.debug(
            "Title conflict resolved in favour of local: %r vs %r",
            local_title,
            remote_title,
        )
        return FieldResolution(value=local_title, winner=Side.LOCAL)

    def resolve_path(
        self,
        remembered: list[str],
        local_path: list[str],
        remote_path: list[str],
    ) -> FieldResolution:
        """Resolve a folder path against the last agreed value."""
        if local_path == remote_path:
            return FieldResolution(value=list(local_path), winner=Side.NONE)
        if remote_path != remembered and local_path == remembered:
            return FieldResolution(
                value=list(remote_path), winner=Side.REMOTE
            )
        # Local moved alone, or both moved to different places.
        return FieldResolution(value=list(local_path), winner=Side.LOCAL)

    def resolve_entry(
        self,
        entry: MappingEntry,
        local: LocalItem,
        remote: RemoteItem,
        remote_path: list[str],
    ) -> EntryResolution:
        """Resolve title and path of a key present on both sides."""
        return EntryResolution(
            title=self.resolve_title(
                entry.title,
                local.title,
                remote.title,
                last_synced_at=entry.last_synced_at,
                remote_modified_at=remote.modified_at,
                local_modified_at=local.modified_at,
            ),
            path=self.resolve_path(entry.path, local.path, remote_path),
        )

    def resolve_initial_title(
        self, local: LocalItem, remote: RemoteItem
    ) -> FieldResolution:
        """Resolve a title for a key seen on both sides with no history."""
        if local.title == remote.title:
            return FieldResolution(value=local.title, winner=Side.NONE)
        if remote.modified_at > local.added_at:
            return FieldResolution(value=remote.title, winner=Side.REMOTE)
        return FieldResolution(value=local.title, winner=Side.LOCAL)
