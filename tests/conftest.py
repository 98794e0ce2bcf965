"""Shared pytest fixtures for linkding-bookmark-sync tests."""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Any
from unittest.mock import MagicMock

import pytest

from linkding_sync.config import Config
from linkding_sync.config_schema import BookmarksConfig, SyncConfig
from linkding_sync.exceptions import RemoteNotFoundError, TransientAPIError
from linkding_sync.local.tree import BookmarkTree
from linkding_sync.sync.state import MappingStore

SYNC_TAG = "bookmark-sync"
SYNC_FOLDER = "Bookmarks bar/Sync"


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live linkding instance",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live linkding instance"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


class FakeLinkdingClient:
    """In-memory stand-in for ``LinkdingClient``.

    Bookmarks are stored as API-shaped dicts.  ``fail_on`` maps a method
    name to a URL (or ``"*"``) for which that call raises
    ``TransientAPIError``.
    """

    def __init__(self) -> None:
        self.bookmarks: dict[int, dict[str, Any]] = {}
        self.calls: list[tuple[str, Any]] = []
        self.fail_on: dict[str, str] = {}
        self._ids = itertools.count(1)

    # -- helpers -----------------------------------------------------------

    def add(
        self,
        url: str,
        title: str,
        tags: list[str] | None = None,
        modified: datetime | None = None,
    ) -> int:
        """Seed a bookmark without recording a call."""
        bookmark_id = next(self._ids)
        stamp = (modified or datetime(2024, 1, 1, tzinfo=timezone.utc)).isoformat()
        self.bookmarks[bookmark_id] = {
            "id": bookmark_id,
            "url": url,
            "title": title,
            "website_title": None,
            "tag_names": list(tags or []),
            "date_added": stamp,
            "date_modified": stamp,
        }
        return bookmark_id

    def by_url(self, url: str) -> dict[str, Any] | None:
        for bm in self.bookmarks.values():
            if bm["url"] == url:
                return bm
        return None

    def writes(self) -> list[tuple[str, Any]]:
        return [c for c in self.calls if c[0] in ("create", "update", "delete")]

    def _check(self, method: str, url: str | None = None) -> None:
        target = self.fail_on.get(method)
        if target is not None and (target == "*" or target == url):
            raise TransientAPIError(f"{method} failed")

    def _touch(self, bm: dict[str, Any]) -> None:
        bm["date_modified"] = datetime.now(timezone.utc).isoformat()

    # -- client API --------------------------------------------------------

    def validate_connection(self) -> int:
        return len(self.bookmarks)

    def list_bookmarks(self, query: str | None = None) -> list[dict[str, Any]]:
        self.calls.append(("list", query))
        self._check("list")
        return [dict(bm, tag_names=list(bm["tag_names"])) for bm in self.bookmarks.values()]

    def list_bookmarks_by_tag(self, tag: str) -> list[dict[str, Any]]:
        return [bm for bm in self.list_bookmarks(f"#{tag}") if tag in bm["tag_names"]]

    def create_bookmark(
        self, url: str, title: str, tag_names: list[str]
    ) -> dict[str, Any]:
        self.calls.append(("create", url))
        self._check("create", url)
        # linkding updates the stored bookmark for a known URL in place.
        bm = self.by_url(url)
        if bm is None:
            bm = self.bookmarks[self.add(url, title, tag_names)]
        else:
            bm.update(title=title, tag_names=list(tag_names))
        self._touch(bm)
        return dict(bm)

    def check_bookmark(self, url: str) -> dict[str, Any] | None:
        self.calls.append(("check", url))
        self._check("check", url)
        bm = self.by_url(url)
        return dict(bm, tag_names=list(bm["tag_names"])) if bm else None

    def update_bookmark(
        self,
        bookmark_id: int,
        *,
        url: str | None = None,
        title: str | None = None,
        tag_names: list[str] | None = None,
    ) -> dict[str, Any]:
        bm = self.bookmarks.get(bookmark_id)
        self.calls.append(("update", bookmark_id))
        self._check("update", bm["url"] if bm else None)
        if bm is None:
            raise RemoteNotFoundError(f"bookmark {bookmark_id} not found")
        if url is not None:
            bm["url"] = url
        if title is not None:
            bm["title"] = title
        if tag_names is not None:
            bm["tag_names"] = list(tag_names)
        self._touch(bm)
        return dict(bm)

    def delete_bookmark(self, bookmark_id: int) -> None:
        bm = self.bookmarks.get(bookmark_id)
        self.calls.append(("delete", bookmark_id))
        self._check("delete", bm["url"] if bm else None)
        if bm is None:
            raise RemoteNotFoundError(f"bookmark {bookmark_id} not found")
        del self.bookmarks[bookmark_id]


@pytest.fixture
def mock_config():
    """Create a Config instance for testing."""
    return Config(
        linkding_url="https://links.example.com",
        token="test-token",
        insecure=False,
        write_delay=0,
    )


@pytest.fixture
def mock_linkding_client(mock_config):
    """Create a MagicMock constrained to the LinkdingClient API."""
    from linkding_sync.core.client import LinkdingClient

    client = MagicMock(spec=LinkdingClient)
    client.config = mock_config
    return client


@pytest.fixture
def fake_client() -> FakeLinkdingClient:
    return FakeLinkdingClient()


@pytest.fixture
def tree() -> BookmarkTree:
    return BookmarkTree()


@pytest.fixture
def sync_root(tree: BookmarkTree) -> str:
    """Id of ``Bookmarks bar/Sync`` in the ``tree`` fixture."""
    return tree.ensure_folder_path("0", SYNC_FOLDER.split("/"))


@pytest.fixture
def store(tmp_path) -> MappingStore:
    return MappingStore(tmp_path / "state")


@pytest.fixture
def sync_config() -> SyncConfig:
    return SyncConfig(
        sync_tag=SYNC_TAG,
        two_way_enabled=True,
        debounce_seconds=0.05,
        interval_minutes=1,
        poll_seconds=0,
    )


@pytest.fixture
def bookmarks_config() -> BookmarksConfig:
    return BookmarksConfig(
        sync_folder=SYNC_FOLDER, mirror_folder="Other bookmarks/Linkding"
    )
