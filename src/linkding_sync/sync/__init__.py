"""Bidirectional bookmark sync between linkding and a local folder tree.

Architecture
------------
A designated *sync tag* ``T`` marks the linkding bookmarks that take part
in two-way sync; a second tag ``T/a/b`` records the folder ``a/b`` the
bookmark lives in below the local sync root.  A persisted mapping keyed by
URL remembers the state both sides last agreed on, so each run can tell
additions, deletions, renames and moves apart.

Modules:

- ``codec``      -- folder path <-> path tag conversion.
- ``state``      -- ``MappingStore``: atomic JSON mapping persistence.
- ``models``     -- ``MappingEntry``, ``SyncAction``, report models.
- ``snapshot``   -- one-shot read of both stores keyed by URL.
- ``operations`` -- corrective store writes shared by all runs.
- ``initial``    -- ``InitialSync``: Push / Pull / Merge bootstrap.
- ``engine``     -- ``Reconciler``: steady-state incremental sync.
- ``resolver``   -- ``ConflictResolver``: title and path conflict rules.
- ``mirror``     -- one-way tag-folder download.
- ``service``    -- ``BookmarkSyncService``: run preconditions and metadata.
- ``scheduler``  -- ``SyncScheduler``: single-flight, queueing, debounce.
- ``reporter``   -- human-readable and JSON report formatting.

Usage example
-------------
::

    from linkding_sync.sync import SyncScheduler, build_service

    service = build_service(config, unified)
    scheduler = SyncScheduler(service)
    report = await scheduler.run_initial_sync("merge")
    report = await scheduler.run_reconciliation()
    print(report.summary())
"""

from .codec import path_to_tags, replace_path_tags, tags_to_path
from .engine import Reconciler
from .initial import InitialSync
from .models import (
    InitialSyncMode,
    InitialSyncReport,
    MappingEntry,
    MirrorReport,
    ReconcileReport,
    SyncAction,
    SyncResult,
)
from .reporter import (
    format_initial_report,
    format_mirror_report,
    format_reconcile_report,
    format_status,
    report_to_json,
)
from .resolver import ConflictResolver
from .scheduler import RunKind, SchedulerState, SyncScheduler
from .service import BookmarkSyncService, build_service
from .state import MappingStore

__all__ = [
    "BookmarkSyncService",
    "ConflictResolver",
    "InitialSync",
    "InitialSyncMode",
    "InitialSyncReport",
    "MappingEntry",
    "MappingStore",
    "MirrorReport",
    "Reconciler",
    "ReconcileReport",
    "RunKind",
    "SchedulerState",
    "SyncAction",
    "SyncResult",
    "SyncScheduler",
    "build_service",
    "format_initial_report",
    "format_mirror_report",
    "format_reconcile_report",
    "format_status",
    "path_to_tags",
    "replace_path_tags",
    "report_to_json",
    "tags_to_path",
]
