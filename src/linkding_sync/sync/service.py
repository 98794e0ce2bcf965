"""Service facade tying configuration, stores and sync runs together.

``BookmarkSyncService`` resolves the configured folders, guards the
preconditions of each run (credentials, sync root, initialisation) and
records run metadata in the state file.  Its methods are blocking; the
``SyncScheduler`` calls them through ``run_sync`` and serialises them.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from linkding_sync.config import Config
from linkding_sync.config_schema import BookmarksConfig, SyncConfig, UnifiedConfig
from linkding_sync.core.client import LinkdingClient
from linkding_sync.exceptions import ConfigurationError
from linkding_sync.local.tree import ROOT_ID, BookmarkFile, BookmarkTree, TreeEvent
from linkding_sync.sync.engine import Reconciler
from linkding_sync.sync.initial import InitialSync
from linkding_sync.sync.mirror import ProgressCallback, run_mirror
from linkding_sync.sync.models import (
    InitialSyncMode,
    InitialSyncReport,
    MirrorReport,
    ReconcileReport,
)
from linkding_sync.sync.resolver import ConflictResolver
from linkding_sync.sync.state import MappingStore

logger = logging.getLogger(__name__)


def _segments(path: str | None) -> list[str]:
    return [seg for seg in (path or "").split("/") if seg]


class BookmarkSyncService:
    """Entry points for initial sync, reconciliation and mirror runs.

    Args:
        client: Remote store.
        tree: Local store.
        store: Mapping persistence.
        sync: ``sync`` config section.
        bookmarks: ``bookmarks`` config section.
    """

    def __init__(
        self,
        client: LinkdingClient,
        tree: BookmarkTree,
        store: MappingStore,
        sync: SyncConfig,
        bookmarks: BookmarksConfig,
    ) -> None:
        self.client = client
        self.tree = tree
        self.store = store
        self.sync = sync
        self.bookmarks = bookmarks
        self.resolver = ConflictResolver()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def is_initialized(self) -> bool:
        """``True`` once an initial sync has run for the configured tag."""
        meta = self.store.read_meta()
        return bool(meta.get("initial_sync_done")) and (
            meta.get("sync_tag") == self.sync.sync_tag
        )

    def is_two_way_ready(self) -> bool:
        """Whether timer and change triggers may run a reconciliation."""
        return (
            self.sync.two_way_enabled
            and self.bookmarks.sync_folder is not None
            and self.is_initialized()
        )

    @property
    def mirror_enabled(self) -> bool:
        return self.sync.one_way_enabled

    # ------------------------------------------------------------------
    # Folder resolution
    # ------------------------------------------------------------------

    def _require_sync_folder(self) -> str:
        if not self.bookmarks.sync_folder:
            raise ConfigurationError(
                "No sync folder configured. Set bookmarks.sync_folder."
            )
        return self.bookmarks.sync_folder

    def find_sync_root(self) -> str | None:
        """Id of the sync root folder, or ``None`` if unset or missing."""
        if not self.bookmarks.sync_folder:
            return None
        return self.tree.find_folder_path(self.bookmarks.sync_folder)

    def _existing_sync_root(self) -> str:
        folder = self._require_sync_folder()
        root_id = self.tree.find_folder_path(folder)
        if root_id is None:
            raise ConfigurationError(
                f"Sync folder '{folder}' no longer exists. "
                "Run an initial sync to recreate it."
            )
        return root_id

    def _mirror_folder(self) -> str:
        mirror = _segments(self.bookmarks.mirror_folder)
        if not mirror:
            raise ConfigurationError("No mirror folder configured.")
        sync = _segments(self.bookmarks.sync_folder)
        if sync:
            shorter = min(len(mirror), len(sync))
            if mirror[:shorter] == sync[:shorter]:
                raise ConfigurationError(
                    "The mirror folder and the sync folder must not contain "
                    "each other."
                )
        return self.tree.ensure_folder_path(ROOT_ID, mirror)

    def _refresh(self) -> None:
        if isinstance(self.tree, BookmarkFile):
            self.tree.reload_if_changed()

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def run_initial_sync(
        self, mode: InitialSyncMode | str
    ) -> InitialSyncReport:
        """Bootstrap the mapping with Push, Pull or Merge.

        Raises:
            ValueError: If *mode* is not a known strategy.
            ConfigurationError: If no sync folder is configured.
        """
        mode = InitialSyncMode(mode)
        self._refresh()
        root_id = self.tree.ensure_folder_path(
            ROOT_ID, _segments(self._require_sync_folder())
        )
        report = InitialSync(
            self.client,
            self.tree,
            self.store,
            self.sync.sync_tag,
            root_id,
            resolver=self.resolver,
        ).run(mode)
        self.store.update_meta(
            initial_sync_done=True,
            initial_sync_mode=mode.value,
            sync_tag=self.sync.sync_tag,
        )
        return report

    def run_reconciliation(self) -> ReconcileReport:
        """Run one incremental two-way reconciliation.

        Raises:
            ConfigurationError: If no initial sync has been run for the
                configured sync tag, or the sync folder is missing.
        """
        if not self.is_initialized():
            raise ConfigurationError(
                "Two-way sync is not initialised for tag "
                f"'{self.sync.sync_tag}'. Run an initial sync first."
            )
        self._refresh()
        return Reconciler(
            self.client,
            self.tree,
            self.store,
            self.sync.sync_tag,
            self._existing_sync_root(),
            resolver=self.resolver,
        ).run()

    def run_mirror(
        self, on_progress: ProgressCallback | None = None
    ) -> MirrorReport:
        """Replace the mirror folder with a tag-folder view of linkding."""
        self._refresh()
        report = run_mirror(
            self.client, self.tree, self._mirror_folder(), on_progress
        )
        self.store.update_meta(
            last_mirror_time=report.completed_at,
            last_mirror_count=report.bookmarks,
            last_mirror_tags=report.tags,
        )
        return report

    def status(self) -> dict[str, Any]:
        """Summarise configuration and persisted run metadata."""
        meta = self.store.read_meta()
        return {
            "sync_tag": self.sync.sync_tag,
            "sync_folder": self.bookmarks.sync_folder,
            "mirror_folder": self.bookmarks.mirror_folder,
            "one_way_enabled": self.sync.one_way_enabled,
            "two_way_enabled": self.sync.two_way_enabled,
            "initialized": self.is_initialized(),
            "mapped": len(self.store.load()),
            "last_sync": meta.get("last_sync"),
            "last_mirror_time": meta.get("last_mirror_time"),
            "last_mirror_count": meta.get("last_mirror_count"),
            "last_mirror_tags": meta.get("last_mirror_tags"),
            "checked_at": datetime.now(timezone.utc).isoformat(),
        }

    # ------------------------------------------------------------------
    # Change events
    # ------------------------------------------------------------------

    def is_in_sync_scope(self, event: TreeEvent) -> bool:
        """Return ``True`` if *event* touched the two-way sync subtree."""
        root_id = self.find_sync_root()
        if root_id is None:
            return False
        if event.kind == "reloaded":
            return True
        return any(
            self._within(folder_id, root_id)
            for folder_id in (event.parent_id, event.old_parent_id)
            if folder_id is not None
        )

    def _within(self, folder_id: str, root_id: str) -> bool:
        if folder_id == root_id:
            return True
        return self.tree.exists(folder_id) and self.tree.is_descendant(
            folder_id, root_id
        )


def build_service(config: Config, unified: UnifiedConfig) -> BookmarkSyncService:
    """Create the client, bookmarks file and state store from config.

    Raises:
        ConfigurationError: If no bookmarks file is configured or it
            cannot be read.
    """
    if not unified.bookmarks.file:
        raise ConfigurationError(
            "No bookmarks file configured. Set bookmarks.file."
        )
    tree = BookmarkFile(Path(unified.bookmarks.file).expanduser())
    store = MappingStore(Path(unified.sync.state_dir).expanduser())
    return BookmarkSyncService(
        LinkdingClient(config), tree, store, unified.sync, unified.bookmarks
    )
