"""Incremental reconciler: the steady-state two-way sync run.

The ``Reconciler`` compares both stores against the mapping left by the
previous run and applies the corrective writes.  It:

1. Loads the previous mapping.
2. Reads both stores (a failure here aborts before any mutation).
3. Handles keys new on the local side: creates them remotely, or links
   them to a remote bookmark with the same URL.
4. Handles keys new on the remote side only: creates them locally.
5. Walks the previous mapping: drops stale entries, propagates deletions
   and resolves title/path changes through the ``ConflictResolver``.
6. Saves the new mapping once and returns a ``ReconcileReport``.

Error handling is per key: a failed write keeps the previous mapping entry
(so the next run retries) and a failed create leaves the key unmapped (so
the next run links it instead of creating a duplicate).  An id that
vanished mid-run is treated as a deletion on that side.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from linkding_sync.core.client import LinkdingClient
from linkding_sync.exceptions import LocalNodeNotFoundError, RemoteNotFoundError
from linkding_sync.local.tree import BookmarkTree
from linkding_sync.models import LocalItem, RemoteItem
from linkding_sync.sync.models import (
    MappingEntry,
    ReconcileReport,
    SyncAction,
    SyncResult,
)
from linkding_sync.sync.operations import SyncOperations, attempt
from linkding_sync.sync.resolver import ConflictResolver
from linkding_sync.sync.snapshot import Snapshot, take_snapshot
from linkding_sync.sync.state import MappingStore

logger = logging.getLogger(__name__)


class Reconciler:
    """Run one incremental reconciliation.

    Args:
        client: Remote store.
        tree: Local store.
        store: Mapping persistence; loaded and saved exactly once per run.
        sync_tag: Tag marking synced remote bookmarks.
        root_id: Local folder id of the sync root.
        resolver: Conflict resolver (a default one is created if omitted).
    """

    def __init__(
        self,
        client: LinkdingClient,
        tree: BookmarkTree,
        store: MappingStore,
        sync_tag: str,
        root_id: str,
        resolver: ConflictResolver | None = None,
    ) -> None:
        self.client = client
        self.tree = tree
        self.store = store
        self.sync_tag = sync_tag
        self.root_id = root_id
        self.resolver = resolver or ConflictResolver()

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self) -> ReconcileReport:
        """Reconcile both stores and persist the new mapping.

        Raises:
            ConfigurationError: If the server rejects the credentials.
            TransientAPIError: If listing the remote store fails.
            ConsistencyError: If the persisted mapping is unreadable.
        """
        started_at = datetime.now(timezone.utc)
        previous = self.store.load()
        snapshot = take_snapshot(self.client, self.tree, self.sync_tag, self.root_id)
        ops = SyncOperations(
            self.client, self.tree, self.sync_tag, self.root_id, started_at
        )
        mapping: dict[str, MappingEntry] = {}
        results: list[SyncResult] = []

        with self.tree.batch():
            # Step 1: new on the local side
            for key, local in snapshot.local.items():
                if key not in previous:
                    results.append(
                        self._add_local(
                            ops, local, snapshot.remote.get(key), mapping
                        )
                    )

            # Step 2: new on the remote side only
            for key, remote in snapshot.remote.items():
                if key not in previous and key not in snapshot.local:
                    results.append(self._add_remote(ops, remote, mapping))

            # Step 3: previously mapped keys
            for entry in previous.values():
                result = self._reconcile_entry(ops, entry, snapshot, mapping)
                if result.action != SyncAction.SKIP or not result.success:
                    results.append(result)

        self.store.save(mapping)
        report = ReconcileReport(
            results=results,
            total=len(mapping),
            started_at=started_at.isoformat(),
            completed_at=datetime.now(timezone.utc).isoformat(),
        )
        logger.info("Reconciliation finished: %s", report.summary())
        return report

    # ------------------------------------------------------------------
    # New keys
    # ------------------------------------------------------------------

    def _add_local(
        self,
        ops: SyncOperations,
        local: LocalItem,
        remote: RemoteItem | None,
        mapping: dict[str, MappingEntry],
    ) -> SyncResult:
        if remote is None:

            def create() -> SyncAction:
                mapping[local.url] = ops.create_remote(local)
                return SyncAction.CREATE_REMOTE

            return attempt(local.url, SyncAction.CREATE_REMOTE, create)

        def link() -> SyncAction:
            # Added independently on both sides: join without duplicating.
            title = self.resolver.resolve_initial_title(local, remote)
            entry, _ = ops.link(local, remote, title)
            mapping[local.url] = entry
            logger.info("Linked %s to remote bookmark %s", local.url, remote.id)
            return SyncAction.LINK

        return attempt(local.url, SyncAction.LINK, link)

    def _add_remote(
        self,
        ops: SyncOperations,
        remote: RemoteItem,
        mapping: dict[str, MappingEntry],
    ) -> SyncResult:
        def create() -> SyncAction:
            mapping[remote.url] = ops.create_local(remote)
            return SyncAction.CREATE_LOCAL

        return attempt(remote.url, SyncAction.CREATE_LOCAL, create)

    # ------------------------------------------------------------------
    # Mapped keys
    # ------------------------------------------------------------------

    def _reconcile_entry(
        self,
        ops: SyncOperations,
        entry: MappingEntry,
        snapshot: Snapshot,
        mapping: dict[str, MappingEntry],
    ) -> SyncResult:
        key = entry.key
        local = snapshot.local.get(key)
        remote = snapshot.remote.get(key)

        if local is None and remote is None:
            logger.debug("Dropping stale entry %s", key)
            return SyncResult(key=key, action=SyncAction.DROP_STALE)

        if local is None:

            def delete_remote() -> SyncAction:
                ops.delete_remote(remote.id, key)
                return SyncAction.DELETE_REMOTE

            result = attempt(key, SyncAction.DELETE_REMOTE, delete_remote)
        elif remote is None:

            def delete_local() -> SyncAction:
                ops.delete_local(local.id, key)
                return SyncAction.DELETE_LOCAL

            result = attempt(key, SyncAction.DELETE_LOCAL, delete_local)
        else:

            def update() -> SyncAction:
                return self._update_entry(ops, entry, local, remote, mapping)

            result = attempt(key, SyncAction.UPDATE_BOTH, update)

        if not result.success:
            # Keep the last agreed state so the next run retries.
            mapping[key] = entry
        return result

    def _update_entry(
        self,
        ops: SyncOperations,
        entry: MappingEntry,
        local: LocalItem,
        remote: RemoteItem,
        mapping: dict[str, MappingEntry],
    ) -> SyncAction:
        resolution = self.resolver.resolve_entry(
            entry, local, remote, ops.remote_path(remote)
        )
        title, path = resolution.title, resolution.path

        try:
            wrote_remote = ops.write_remote(
                remote,
                title=title.value if title.remote_stale else None,
                path=path.value if path.remote_stale else None,
            )
        except RemoteNotFoundError:
            logger.info("Remote bookmark %s vanished during sync", remote.id)
            ops.delete_local(local.id, entry.key)
            return SyncAction.DELETE_LOCAL

        try:
            wrote_local = ops.write_local(
                local,
                title=title.value if title.local_stale else None,
                path=path.value if path.local_stale else None,
            )
        except LocalNodeNotFoundError:
            logger.info("Local bookmark %s vanished during sync", local.id)
            ops.delete_remote(remote.id, entry.key)
            return SyncAction.DELETE_REMOTE

        mapping[entry.key] = ops.entry(
            remote.id, local.id, entry.key, title.value, path.value
        )
        if wrote_remote and wrote_local:
            return SyncAction.UPDATE_BOTH
        if wrote_remote:
            return SyncAction.UPDATE_REMOTE
        if wrote_local:
            return SyncAction.UPDATE_LOCAL
        return SyncAction.SKIP
