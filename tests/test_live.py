"""Smoke tests against a real linkding instance.

Run with ``pytest --run-live`` and LINKDING_URL / LINKDING_TOKEN set.
Every bookmark created here carries a throwaway sync tag and is deleted
again at the end.
"""

from __future__ import annotations

import uuid

import pytest

from linkding_sync.config import load_config
from linkding_sync.core.client import LinkdingClient
from linkding_sync.local.tree import BookmarkTree
from linkding_sync.sync.engine import Reconciler
from linkding_sync.sync.initial import InitialSync
from linkding_sync.sync.models import InitialSyncMode
from linkding_sync.sync.state import MappingStore

pytestmark = pytest.mark.live


@pytest.fixture
def live_client() -> LinkdingClient:
    return LinkdingClient(load_config())


@pytest.fixture
def live_tag(live_client):
    tag = f"ld-sync-test-{uuid.uuid4().hex[:8]}"
    yield tag
    for bm in live_client.list_bookmarks_by_tag(tag):
        live_client.delete_bookmark(bm["id"])


def test_validate_connection(live_client):
    assert live_client.validate_connection() >= 0


def test_push_then_reconcile_round_trip(live_client, live_tag, tmp_path):
    tree = BookmarkTree()
    root = tree.ensure_folder_path("0", ["Bookmarks bar", "Live"])
    work = tree.create_folder(root, "Work")
    url = f"https://example.com/{live_tag}"
    bookmark = tree.create(work, "Live test", url)
    store = MappingStore(tmp_path)

    InitialSync(live_client, tree, store, live_tag, root).run(InitialSyncMode.PUSH)
    remote = live_client.list_bookmarks_by_tag(live_tag)
    assert [bm["url"] for bm in remote] == [url]
    assert f"{live_tag}/Work" in remote[0]["tag_names"]

    tree.remove(bookmark)
    report = Reconciler(live_client, tree, store, live_tag, root).run()
    assert report.removed == 1
    assert live_client.list_bookmarks_by_tag(live_tag) == []
