"""Initial sync strategies: Push, Pull and Merge.

Used once, when no mapping exists yet (or when the user asks to start
over).  Each strategy reads both stores, makes them agree in its own way and
then persists a mapping covering every URL now present on both sides.

- **Push** -- every local bookmark is created on the server, or, if the URL
  already exists there, the server copy takes the local title and path.
  Nothing local changes; nothing is deleted.
- **Pull** -- the sync root is emptied and rebuilt from the server, one
  bookmark per remote item, in the folder its path tag names.
- **Merge** -- local-only keys are pushed, remote-only keys pulled, and keys
  on both sides joined: the more recently modified title wins and the
  local path is written onto the server.

Per-item failures are logged, counted in the report and skipped.  Creates
are never retried within a run; a key whose create failed stays unmapped
and the next run links it by URL if the create did land.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from linkding_sync.core.client import LinkdingClient
from linkding_sync.local.tree import BookmarkTree
from linkding_sync.models import LocalItem, RemoteItem
from linkding_sync.sync.models import (
    InitialSyncMode,
    InitialSyncReport,
    MappingEntry,
    SyncAction,
    SyncResult,
)
from linkding_sync.sync.operations import SyncOperations, attempt
from linkding_sync.sync.resolver import ConflictResolver, FieldResolution, Side
from linkding_sync.sync.snapshot import Snapshot, take_snapshot
from linkding_sync.sync.state import MappingStore

logger = logging.getLogger(__name__)


class InitialSync:
    """Bootstrap the mapping with one of the three strategies.

    Args:
        client: Remote store.
        tree: Local store.
        store: Mapping persistence.
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

    def run(self, mode: InitialSyncMode) -> InitialSyncReport:
        """Execute *mode* and persist the resulting mapping.

        Raises:
            ConfigurationError: If the server rejects the credentials.
            TransientAPIError: If the remote listing fails (nothing has
                been changed at that point).
        """
        started_at = datetime.now(timezone.utc)
        snapshot = take_snapshot(self.client, self.tree, self.sync_tag, self.root_id)
        ops = SyncOperations(
            self.client, self.tree, self.sync_tag, self.root_id, started_at
        )
        mapping: dict[str, MappingEntry] = {}

        logger.info(
            "Initial sync (%s): %d remote, %d local bookmarks",
            mode.value,
            len(snapshot.remote),
            len(snapshot.local),
        )

        with self.tree.batch():
            if mode == InitialSyncMode.PUSH:
                results = self._push(ops, snapshot, mapping)
            elif mode == InitialSyncMode.PULL:
                results = self._pull(ops, snapshot, mapping)
            else:
                results = self._merge(ops, snapshot, mapping)

        self.store.save(mapping)
        report = InitialSyncReport(
            mode=mode,
            results=results,
            total=len(mapping),
            started_at=started_at.isoformat(),
            completed_at=datetime.now(timezone.utc).isoformat(),
        )
        logger.info("Initial sync (%s) finished: %s", mode.value, report.counts())
        return report

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _push(
        self,
        ops: SyncOperations,
        snapshot: Snapshot,
        mapping: dict[str, MappingEntry],
    ) -> list[SyncResult]:
        results = []
        for key, local in snapshot.local.items():
            remote = snapshot.remote.get(key)
            if remote is None:
                results.append(self._upload(ops, local, mapping))
            else:
                # Local is authoritative for both title and path.
                title = FieldResolution(
                    value=local.title,
                    winner=Side.NONE if local.title == remote.title else Side.LOCAL,
                )
                results.append(self._join(ops, local, remote, title, mapping))
        return results

    def _pull(
        self,
        ops: SyncOperations,
        snapshot: Snapshot,
        mapping: dict[str, MappingEntry],
    ) -> list[SyncResult]:
        removed = self.tree.remove_children(self.root_id)
        logger.info("Cleared %d items from the sync folder", removed)
        return [
            self._download(ops, remote, mapping)
            for remote in snapshot.remote.values()
        ]

    def _merge(
        self,
        ops: SyncOperations,
        snapshot: Snapshot,
        mapping: dict[str, MappingEntry],
    ) -> list[SyncResult]:
        results = []
        for key in snapshot.keys():
            local = snapshot.local.get(key)
            remote = snapshot.remote.get(key)
            if remote is None:
                results.append(self._upload(ops, local, mapping))
            elif local is None:
                results.append(self._download(ops, remote, mapping))
            else:
                title = self.resolver.resolve_initial_title(local, remote)
                results.append(self._join(ops, local, remote, title, mapping))
        return results

    # ------------------------------------------------------------------
    # Per-key steps
    # ------------------------------------------------------------------

    def _upload(
        self,
        ops: SyncOperations,
        local: LocalItem,
        mapping: dict[str, MappingEntry],
    ) -> SyncResult:
        def step() -> SyncAction:
            mapping[local.url] = ops.create_remote(local)
            return SyncAction.CREATE_REMOTE

        return attempt(local.url, SyncAction.CREATE_REMOTE, step)

    def _download(
        self,
        ops: SyncOperations,
        remote: RemoteItem,
        mapping: dict[str, MappingEntry],
    ) -> SyncResult:
        def step() -> SyncAction:
            mapping[remote.url] = ops.create_local(remote)
            return SyncAction.CREATE_LOCAL

        return attempt(remote.url, SyncAction.CREATE_LOCAL, step)

    def _join(
        self,
        ops: SyncOperations,
        local: LocalItem,
        remote: RemoteItem,
        title: FieldResolution,
        mapping: dict[str, MappingEntry],
    ) -> SyncResult:
        def step() -> SyncAction:
            entry, wrote = ops.link(local, remote, title)
            mapping[local.url] = entry
            return SyncAction.UPDATE_REMOTE if wrote else SyncAction.LINK

        return attempt(local.url, SyncAction.LINK, step)
