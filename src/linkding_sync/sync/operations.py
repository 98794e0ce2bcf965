"""Corrective writes shared by the initial strategies and the reconciler.

Each method performs the store calls for one content key and returns the
resulting ``MappingEntry`` (or ``None`` when the key leaves the mapping).
Errors propagate; callers decide whether a failure is per-item or fatal.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from linkding_sync.core.client import LinkdingClient
from linkding_sync.exceptions import (
    ConfigurationError,
    LinkdingSyncError,
    LocalNodeNotFoundError,
    RemoteNotFoundError,
)
from linkding_sync.local.tree import BookmarkTree
from linkding_sync.models import LocalItem, RemoteItem
from linkding_sync.sync.codec import path_to_tags, replace_path_tags, tags_to_path
from linkding_sync.sync.models import MappingEntry, SyncAction, SyncResult
from linkding_sync.sync.resolver import FieldResolution

logger = logging.getLogger(__name__)

# Failures that skip one item.  ConfigurationError is a LinkdingSyncError
# too but always aborts the run.
ITEM_ERRORS = (LinkdingSyncError, OSError, ValueError)


def attempt(
    key: str, action: SyncAction, func: Callable[[], SyncAction]
) -> SyncResult:
    """Run *func* for one key and turn a per-item failure into a result.

    *func* returns the action actually performed, which may differ from the
    planned *action* (for instance a link instead of a create).
    """
    try:
        performed = func()
    except ConfigurationError:
        raise
    except ITEM_ERRORS as exc:
        logger.error("Failed to %s %s: %s", action.value, key, exc)
        return SyncResult(key=key, action=action, success=False, error=str(exc))
    return SyncResult(key=key, action=performed)


class SyncOperations:
    """Store calls for one run.

    Args:
        client: Remote store.
        tree: Local store.
        sync_tag: Tag marking synced remote bookmarks.
        root_id: Local folder id of the sync root.
        now: Timestamp recorded as ``last_synced_at`` on new entries.
    """

    def __init__(
        self,
        client: LinkdingClient,
        tree: BookmarkTree,
        sync_tag: str,
        root_id: str,
        now: datetime,
    ) -> None:
        self.client = client
        self.tree = tree
        self.sync_tag = sync_tag
        self.root_id = root_id
        self.now = now

    def entry(
        self, remote_id: int, local_id: str, key: str, title: str, path: list[str]
    ) -> MappingEntry:
        return MappingEntry(
            remote_id=remote_id,
            local_id=local_id,
            title=title,
            key=key,
            path=list(path),
            last_synced_at=self.now,
        )

    def remote_path(self, remote: RemoteItem) -> list[str]:
        return tags_to_path(self.sync_tag, remote.tags)

    # ------------------------------------------------------------------
    # Creates
    # ------------------------------------------------------------------

    def create_remote(self, local: LocalItem) -> MappingEntry:
        """Create the remote counterpart of a local bookmark.

        A bookmark linkding already holds for the URL outside the sync tag
        is adopted: its other tags stay and the sync and path tags are
        added.
        """
        existing = self.client.check_bookmark(local.url)
        if existing is None:
            data = self.client.create_bookmark(
                local.url, local.title, path_to_tags(self.sync_tag, local.path)
            )
            remote = RemoteItem.from_api(data)
            logger.info("Created remote bookmark %s (id %s)", local.url, remote.id)
        else:
            remote = RemoteItem.from_api(existing)
            self.client.update_bookmark(
                remote.id,
                title=local.title if local.title != remote.title else None,
                tag_names=replace_path_tags(self.sync_tag, remote.tags, local.path),
            )
            logger.info(
                "Adopted existing remote bookmark %s (id %s)", local.url, remote.id
            )
        return self.entry(remote.id, local.id, local.url, local.title, local.path)

    def create_local(self, remote: RemoteItem) -> MappingEntry:
        """Create the local counterpart of a remote bookmark at its path."""
        path = self.remote_path(remote)
        folder_id = self.tree.ensure_folder_path(self.root_id, path)
        local_id = self.tree.create(folder_id, remote.title, remote.url)
        logger.info(
            "Created local bookmark %s in /%s", remote.url, "/".join(path)
        )
        return self.entry(remote.id, local_id, remote.url, remote.title, path)

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def write_remote(
        self,
        remote: RemoteItem,
        *,
        title: str | None = None,
        path: list[str] | None = None,
    ) -> bool:
        """Patch the remote title and/or location; skip no-op writes.

        Returns:
            ``True`` if a call was made.
        """
        new_title = title if title is not None and title != remote.title else None
        new_tags = None
        if path is not None:
            tags = replace_path_tags(self.sync_tag, remote.tags, path)
            if tags != remote.tags:
                new_tags = tags
        if new_title is None and new_tags is None:
            return False
        self.client.update_bookmark(remote.id, title=new_title, tag_names=new_tags)
        return True

    def write_local(
        self,
        local: LocalItem,
        *,
        title: str | None = None,
        path: list[str] | None = None,
    ) -> bool:
        """Retitle and/or move a local bookmark; skip no-op writes.

        Returns:
            ``True`` if the tree was changed.
        """
        changed = False
        if title is not None and title != local.title:
            self.tree.update(local.id, title=title, modified_at=self.now)
            changed = True
        if path is not None and path != local.path:
            folder_id = self.tree.ensure_folder_path(self.root_id, path)
            self.tree.move(local.id, folder_id)
            changed = True
        return changed

    def link(
        self, local: LocalItem, remote: RemoteItem, title: FieldResolution
    ) -> tuple[MappingEntry, bool]:
        """Join a key found on both sides with no mapping entry.

        The local path is written onto the remote item; the title follows
        *title*.  Returns the new entry and whether any write was made.
        """
        wrote = self.write_remote(
            remote,
            title=title.value if title.remote_stale else None,
            path=local.path,
        )
        if title.local_stale:
            wrote = self.write_local(local, title=title.value) or wrote
        entry = self.entry(remote.id, local.id, local.url, title.value, local.path)
        return entry, wrote

    # ------------------------------------------------------------------
    # Deletes
    # ------------------------------------------------------------------

    def delete_remote(self, remote_id: int, key: str) -> None:
        """Delete a remote bookmark; an already missing one is fine."""
        try:
            self.client.delete_bookmark(remote_id)
        except RemoteNotFoundError:
            logger.debug("Remote bookmark %s already gone", remote_id)
            return
        logger.info("Deleted remote bookmark %s (id %s)", key, remote_id)

    def delete_local(self, local_id: str, key: str) -> None:
        """Delete a local bookmark; an already missing one is fine."""
        try:
            self.tree.remove(local_id)
        except LocalNodeNotFoundError:
            logger.debug("Local bookmark %s already gone", local_id)
            return
        logger.info("Deleted local bookmark %s", key)
