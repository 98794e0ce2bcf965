"""One-way "mirror and replace" download.

Rebuilds a local folder from the whole linkding collection.  Once the
download succeeds the folder is emptied, then one sub-folder per tag is
created (``Untagged`` for bookmarks without tags) holding one bookmark per
(bookmark, tag) pair.  No mapping is kept; every run starts from scratch.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from linkding_sync.core.client import LinkdingClient
from linkding_sync.local.tree import BookmarkTree
from linkding_sync.models import RemoteItem
from linkding_sync.sync.models import MirrorReport

logger = logging.getLogger(__name__)

UNTAGGED_FOLDER = "Untagged"

ProgressCallback = Callable[[str, str], None]


def _noop(stage: str, message: str) -> None:
    pass


def run_mirror(
    client: LinkdingClient,
    tree: BookmarkTree,
    folder_id: str,
    on_progress: ProgressCallback | None = None,
) -> MirrorReport:
    """Replace the contents of *folder_id* with a tag-folder view.

    Args:
        client: Remote store.
        tree: Local store.
        folder_id: Mirror folder; its children are removed first.
        on_progress: Optional ``(stage, message)`` callback.

    Raises:
        ConfigurationError: If the server rejects the credentials.
        TransientAPIError: If fetching bookmarks fails; the folder is left
            untouched.
    """
    progress = on_progress or _noop

    progress("fetching", "Fetching from linkding...")
    bookmarks = [RemoteItem.from_api(raw) for raw in client.list_bookmarks()]

    tag_names = list(
        dict.fromkeys(
            tag for bm in bookmarks for tag in bm.tags or [UNTAGGED_FOLDER]
        )
    )

    created = 0
    with tree.batch():
        progress("preparing", "Preparing folders...")
        removed = tree.remove_children(folder_id)
        logger.debug("Mirror: removed %d previous entries", removed)

        progress("folders", f"Creating {len(tag_names)} tag folders...")
        tag_folders = {
            tag: tree.create_folder(folder_id, tag) for tag in tag_names
        }

        progress("saving", f"Saving {len(bookmarks)} bookmarks...")
        for bm in bookmarks:
            for tag in bm.tags or [UNTAGGED_FOLDER]:
                tree.create(tag_folders[tag], bm.title, bm.url)
                created += 1
                if created % 100 == 0:
                    progress("saving", f"Saved {created} entries...")

    report = MirrorReport(
        bookmarks=len(bookmarks),
        tags=len(tag_names),
        entries=created,
        completed_at=datetime.now(timezone.utc).isoformat(),
    )
    logger.info(
        "Mirror finished: %d bookmarks, %d tags, %d entries",
        report.bookmarks,
        report.tags,
        report.entries,
    )
    return report
