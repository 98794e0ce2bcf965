"""Point-in-time view of both stores, keyed by bookmark URL.

A run reads both sides once, up front.  If either listing fails the
exception propagates and the run aborts before any mutation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from linkding_sync.core.client import LinkdingClient
from linkding_sync.local.tree import BookmarkTree
from linkding_sync.models import LocalItem, RemoteItem

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    """Items of both stores keyed by URL, in listing order."""

    remote: dict[str, RemoteItem] = field(default_factory=dict)
    local: dict[str, LocalItem] = field(default_factory=dict)

    def keys(self) -> list[str]:
        """Union of keys, local order first."""
        return list(self.local) + [k for k in self.remote if k not in self.local]


def fetch_remote(client: LinkdingClient, sync_tag: str) -> dict[str, RemoteItem]:
    """List remote bookmarks carrying *sync_tag*, one per URL."""
    items: dict[str, RemoteItem] = {}
    for raw in client.list_bookmarks_by_tag(sync_tag):
        item = RemoteItem.from_api(raw)
        if item.url in items:
            logger.warning(
                "Duplicate remote bookmark for %s (ids %s, %s); keeping the first",
                item.url,
                items[item.url].id,
                item.id,
            )
            continue
        items[item.url] = item
    return items


def fetch_local(tree: BookmarkTree, root_id: str) -> dict[str, LocalItem]:
    """List local bookmarks below *root_id*, one per URL."""
    items: dict[str, LocalItem] = {}
    for item in tree.list_children_recursive(root_id):
        if item.url in items:
            logger.warning(
                "Duplicate local bookmark for %s at %s; keeping %s",
                item.url,
                "/".join(item.path) or "<root>",
                "/".join(items[item.url].path) or "<root>",
            )
            continue
        items[item.url] = item
    return items


def take_snapshot(
    client: LinkdingClient,
    tree: BookmarkTree,
    sync_tag: str,
    root_id: str,
) -> Snapshot:
    """Read both stores.  Remote first, since it is the call likely to fail."""
    remote = fetch_remote(client, sync_tag)
    local = fetch_local(tree, root_id)
    logger.debug(
        "Snapshot: %d remote, %d local bookmarks", len(remote), len(local)
    )
    return Snapshot(remote=remote, local=local)
