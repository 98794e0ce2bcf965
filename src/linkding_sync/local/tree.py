"""Hierarchical local bookmark store.

``BookmarkTree`` is an in-memory folder tree keyed by stable string ids.
``BookmarkFile`` persists the same tree as a Chromium ``Bookmarks`` JSON
file, so the synced folder shows up in any Chromium-based browser profile.

Chromium file layout::

    {
      "checksum": "<md5>",
      "roots": {
        "bookmark_bar": {"type": "folder", "name": "Bookmarks bar", ...},
        "other":        {"type": "folder", "name": "Other bookmarks", ...},
        "synced":       {"type": "folder", "name": "Mobile bookmarks", ...}
      },
      "version": 1
    }

Timestamps are WebKit microseconds since 1601-01-01 UTC, stored as strings.
Keys this module does not understand (``guid``, ``meta_info``,
``date_last_used``, top-level ``sync_metadata`` ...) are carried through a
load/save cycle untouched.

Every mutation notifies subscribers with a ``TreeEvent`` after the change
has been applied.  ``BookmarkFile`` writes the file after each mutation, or
once at the end of a ``batch()`` block.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
import uuid
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from linkding_sync.exceptions import ConfigurationError, LocalNodeNotFoundError
from linkding_sync.models import LocalItem

logger = logging.getLogger(__name__)

ROOT_ID = "0"

# Chromium root key -> default display name.
CHROMIUM_ROOTS: dict[str, str] = {
    "bookmark_bar": "Bookmarks bar",
    "other": "Other bookmarks",
    "synced": "Mobile bookmarks",
}

WEBKIT_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)

_NODE_KEYS = frozenset(
    {"children", "date_added", "date_modified", "id", "name", "type", "url"}
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def to_webkit(dt: datetime) -> str:
    """Convert an aware datetime to a WebKit timestamp string."""
    return str((dt - WEBKIT_EPOCH) // timedelta(microseconds=1))


def from_webkit(value: Any) -> datetime | None:
    """Convert a WebKit timestamp string to an aware UTC datetime.

    ``"0"``, empty and malformed values map to ``None``.
    """
    try:
        micros = int(value)
    except (TypeError, ValueError):
        return None
    if micros <= 0:
        return None
    return WEBKIT_EPOCH + timedelta(microseconds=micros)


@dataclass
class BookmarkNode:
    """One node of the tree.  ``url is None`` marks a folder."""

    id: str
    title: str
    url: str | None = None
    parent_id: str | None = None
    children: list[str] = field(default_factory=list)
    date_added: datetime = field(default_factory=_now)
    date_modified: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_folder(self) -> bool:
        return self.url is None


@dataclass(frozen=True)
class TreeEvent:
    """Change notification emitted after a tree mutation.

    Attributes:
        kind: ``created``, ``removed``, ``changed``, ``moved`` or
            ``reloaded`` (the whole tree was re-read from disk).
        node_id: The affected node.
        parent_id: Parent after the change (before it, for ``removed``).
        old_parent_id: Previous parent, for ``moved``.
    """

    kind: str
    node_id: str
    parent_id: str | None = None
    old_parent_id: str | None = None


TreeListener = Callable[[TreeEvent], None]


class BookmarkTree:
    """In-memory bookmark folder tree.

    The invisible root (``ROOT_ID``) holds one folder per top-level root
    (bookmark bar, other bookmarks ...).  Top-level roots cannot be created,
    moved or removed.  All public methods are thread safe.

    Args:
        roots: Display names of the top-level root folders.
    """

    def __init__(self, roots: Iterable[str] = CHROMIUM_ROOTS.values()) -> None:
        self._lock = threading.RLock()
        self._listeners: list[TreeListener] = []
        self._batch_depth = 0
        self._dirty = False
        self._nodes: dict[str, BookmarkNode] = {}
        self._next_id = 1
        self._reset(roots)

    def _reset(self, roots: Iterable[str]) -> None:
        self._nodes = {ROOT_ID: BookmarkNode(id=ROOT_ID, title="")}
        self._next_id = 1
        for name in roots:
            self._insert(ROOT_ID, name, None)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, node_id: str) -> BookmarkNode:
        """Return the node with *node_id*.

        Raises:
            LocalNodeNotFoundError: If no such node exists.
        """
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                raise LocalNodeNotFoundError(
                    f"No local bookmark node with id {node_id}"
                )
            return node

    def exists(self, node_id: str) -> bool:
        with self._lock:
            return node_id in self._nodes

    def children(self, node_id: str) -> list[BookmarkNode]:
        with self._lock:
            return [self._nodes[cid] for cid in self.get(node_id).children]

    def roots(self) -> list[BookmarkNode]:
        """Top-level root folders, in order."""
        return self.children(ROOT_ID)

    def find_child_folder(self, parent_id: str, title: str) -> str | None:
        """Return the id of the first folder named *title* under *parent_id*."""
        with self._lock:
            for child in self.children(parent_id):
                if child.is_folder and child.title == title:
                    return child.id
        return None

    def find_folder_path(
        self, path: str | Sequence[str], root_id: str = ROOT_ID
    ) -> str | None:
        """Resolve a folder path below *root_id* without creating anything.

        Args:
            path: ``/``-separated string or list of folder names.  Below
                ``ROOT_ID`` the first name is a top-level root folder.

        Returns:
            The folder id, or ``None`` if any segment is missing.
        """
        segments = _split_path(path)
        with self._lock:
            current = root_id
            for segment in segments:
                found = self.find_child_folder(current, segment)
                if found is None:
                    return None
                current = found
            return current

    def is_descendant(self, node_id: str, ancestor_id: str) -> bool:
        """Return ``True`` if *node_id* lies strictly below *ancestor_id*."""
        with self._lock:
            current = self.get(node_id).parent_id
            while current is not None:
                if current == ancestor_id:
                    return True
                current = self._nodes[current].parent_id
            return False

    def list_children_recursive(self, root_id: str) -> list[LocalItem]:
        """List every bookmark below *root_id*, depth first.

        Each item carries its folder path relative to *root_id*.  Folders
        themselves are not listed.
        """
        items: list[LocalItem] = []

        def walk(folder_id: str, path: list[str]) -> None:
            for child in self.children(folder_id):
                if child.is_folder:
                    walk(child.id, path + [child.title])
                else:
                    items.append(self._to_item(child, path))

        with self._lock:
            self.get(root_id)
            walk(root_id, [])
        return items

    @staticmethod
    def _to_item(node: BookmarkNode, path: list[str]) -> LocalItem:
        return LocalItem(
            id=node.id,
            url=node.url or "",
            title=node.title,
            path=path,
            added_at=node.date_added,
            modified_at=node.date_modified,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, parent_id: str, title: str, url: str) -> str:
        """Create a bookmark under *parent_id* and return its id."""
        with self._lock:
            self._require_folder(parent_id)
            node = self._insert(parent_id, title, url)
            self._changed()
        self._emit(TreeEvent("created", node.id, parent_id))
        return node.id

    def create_folder(self, parent_id: str, title: str) -> str:
        """Create a folder under *parent_id* and return its id."""
        with self._lock:
            self._require_folder(parent_id)
            if parent_id == ROOT_ID:
                raise ValueError("Top-level root folders cannot be created")
            node = self._insert(parent_id, title, None)
            self._changed()
        self._emit(TreeEvent("created", node.id, parent_id))
        return node.id

    def ensure_folder_path(self, root_id: str, path: Sequence[str]) -> str:
        """Return the folder at *path* below *root_id*, creating missing ones.

        Idempotent: existing folders are reused, so repeated calls within
        one run never produce duplicates.

        Raises:
            ConfigurationError: If *root_id* is ``ROOT_ID`` and the first
                segment does not name an existing top-level root folder.
        """
        segments = _split_path(path)
        with self._lock:
            current = root_id
            for index, segment in enumerate(segments):
                found = self.find_child_folder(current, segment)
                if found is None:
                    if current == ROOT_ID:
                        names = [r.title for r in self.roots()]
                        raise ConfigurationError(
                            f"Unknown bookmark root '{segment}' "
                            f"(expected one of {names})"
                        )
                    logger.debug(
                        "Creating folder %s",
                        "/".join(segments[: index + 1]),
                    )
                    found = self.create_folder(current, segment)
                current = found
            return current

    def move(self, node_id: str, new_parent_id: str) -> None:
        """Move a node to the end of *new_parent_id*'s children."""
        with self._lock:
            node = self._require_movable(node_id)
            self._require_folder(new_parent_id)
            if new_parent_id == ROOT_ID:
                raise ValueError("Nodes cannot be moved to the invisible root")
            if new_parent_id == node_id or self.is_descendant(
                new_parent_id, node_id
            ):
                raise ValueError("Cannot move a folder into itself")
            old_parent_id = node.parent_id
            if old_parent_id == new_parent_id:
                return
            self._nodes[old_parent_id].children.remove(node_id)
            self._nodes[new_parent_id].children.append(node_id)
            node.parent_id = new_parent_id
            self._changed()
        self._emit(TreeEvent("moved", node_id, new_parent_id, old_parent_id))

    def update(
        self,
        node_id: str,
        *,
        title: str | None = None,
        url: str | None = None,
        modified_at: datetime | None = None,
    ) -> None:
        """Change the title and/or URL of a node and stamp ``date_modified``.

        *modified_at* overrides the stamp, which defaults to the current time.
        """
        with self._lock:
            node = self.get(node_id)
            if url is not None and node.is_folder:
                raise ValueError("Folders have no URL")
            changed = False
            if title is not None and title != node.title:
                node.title = title
                changed = True
            if url is not None and url != node.url:
                node.url = url
                changed = True
            if not changed:
                return
            node.date_modified = modified_at or _now()
            self._changed()
        self._emit(TreeEvent("changed", node_id, node.parent_id))

    def remove(self, node_id: str) -> None:
        """Remove a bookmark or an empty folder.

        Raises:
            ValueError: If the node is a non-empty folder.
        """
        with self._lock:
            node = self._require_movable(node_id)
            if node.children:
                raise ValueError(
                    f"Folder {node_id} is not empty; use remove_subtree()"
                )
            parent_id = node.parent_id
            self._detach(node)
            self._changed()
        self._emit(TreeEvent("removed", node_id, parent_id))

    def remove_subtree(self, folder_id: str) -> None:
        """Remove a folder together with everything below it."""
        with self._lock:
            node = self._require_movable(folder_id)
            parent_id = node.parent_id
            self._detach(node)
            self._changed()
        self._emit(TreeEvent("removed", folder_id, parent_id))

    def remove_children(self, folder_id: str) -> int:
        """Remove everything below *folder_id*, keeping the folder itself.

        Returns:
            Number of direct children removed.
        """
        with self._lock:
            folder = self._require_folder(folder_id)
            removed = list(folder.children)
            for child_id in removed:
                self._detach(self._nodes[child_id])
            if removed:
                self._changed()
        for child_id in removed:
            self._emit(TreeEvent("removed", child_id, folder_id))
        return len(removed)

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def subscribe(self, listener: TreeListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: TreeEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Tree listener failed for %s", event)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Defer persistence until the outermost ``batch()`` block exits.

        Events are still emitted per mutation.  Changes made before an
        exception are persisted on exit as well.
        """
        with self._lock:
            self._batch_depth += 1
        try:
            yield
        finally:
            with self._lock:
                self._batch_depth -= 1
                if self._batch_depth == 0 and self._dirty:
                    self._dirty = False
                    self._commit()

    def _changed(self) -> None:
        if self._batch_depth:
            self._dirty = True
        else:
            self._commit()

    def _commit(self) -> None:
        """Persistence hook; called with the lock held."""

    def _allocate_id(self) -> str:
        while str(self._next_id) in self._nodes:
            self._next_id += 1
        node_id = str(self._next_id)
        self._next_id += 1
        return node_id

    def _insert(
        self, parent_id: str, title: str, url: str | None
    ) -> BookmarkNode:
        node = BookmarkNode(
            id=self._allocate_id(), title=title, url=url, parent_id=parent_id
        )
        self._nodes[node.id] = node
        self._nodes[parent_id].children.append(node.id)
        return node

    def _detach(self, node: BookmarkNode) -> None:
        self._nodes[node.parent_id].children.remove(node.id)
        stack = [node.id]
        while stack:
            current = self._nodes.pop(stack.pop())
            stack.extend(current.children)

    def _require_folder(self, node_id: str) -> BookmarkNode:
        node = self.get(node_id)
        if not node.is_folder:
            raise ValueError(f"Node {node_id} is not a folder")
        return node

    def _require_movable(self, node_id: str) -> BookmarkNode:
        node = self.get(node_id)
        if node.parent_id is None or node.parent_id == ROOT_ID:
            raise ValueError(f"Root folder {node_id} cannot be changed")
        return node


def _split_path(path: str | Sequence[str]) -> list[str]:
    if isinstance(path, str):
        return [seg for seg in path.strip("/").split("/") if seg]
    return list(path)


# ---------------------------------------------------------------------------
# Chromium Bookmarks file
# ---------------------------------------------------------------------------


class BookmarkFile(BookmarkTree):
    """A ``BookmarkTree`` backed by a Chromium ``Bookmarks`` JSON file.

    Every mutation rewrites the file atomically (temp file +
    ``os.replace``); inside ``batch()`` the rewrite happens once, when the
    block exits.  Edits made by another process are picked up by
    ``reload_if_changed()``.

    Close the browser before syncing into its live profile: Chromium
    overwrites the file from memory on its next save.

    Args:
        path: Location of the ``Bookmarks`` file.
        create: Write an empty file when *path* does not exist.

    Raises:
        ConfigurationError: If the file is missing (and *create* is
            false) or is not a Chromium bookmarks file.
    """

    def __init__(self, path: Path, create: bool = False) -> None:
        self.path = Path(path).expanduser()
        self._root_keys: dict[str, str] = {}
        self._top_extra: dict[str, Any] = {}
        self._roots_extra: dict[str, Any] = {}
        self._mtime_ns: int | None = None
        super().__init__(roots=())
        if self.path.exists():
            self._load()
        elif create:
            with self._lock:
                self._reset(CHROMIUM_ROOTS.values())
                self._root_keys = {
                    node_id: key
                    for node_id, key in zip(
                        self._nodes[ROOT_ID].children, CHROMIUM_ROOTS
                    )
                }
                self._commit()
        else:
            raise ConfigurationError(
                f"Bookmarks file not found: {self.path}"
            )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load(self) -> None:
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(
                f"{self.path} is not valid JSON: {exc}"
            ) from exc
        if not isinstance(data, dict) or not isinstance(
            data.get("roots"), dict
        ):
            raise ConfigurationError(
                f"{self.path} is not a Chromium bookmarks file"
            )

        with self._lock:
            self._nodes = {ROOT_ID: BookmarkNode(id=ROOT_ID, title="")}
            self._root_keys = {}
            self._roots_extra = {}
            self._top_extra = {
                k: v for k, v in data.items() if k not in ("roots", "checksum")
            }
            for key, raw in data["roots"].items():
                if not isinstance(raw, dict) or raw.get("type") != "folder":
                    # e.g. legacy "sync_transaction_version" entries
                    self._roots_extra[key] = raw
                    continue
                node_id = self._load_node(raw, ROOT_ID)
                self._root_keys[node_id] = key
            self._next_id = 1 + max(
                (int(i) for i in self._nodes if i.isdigit()), default=0
            )
            self._mtime_ns = self.path.stat().st_mtime_ns

        checksum = data.get("checksum")
        if checksum and checksum != self.checksum():
            logger.warning(
                "Checksum mismatch in %s; file was edited by hand", self.path
            )
        logger.debug(
            "Loaded %d nodes from %s", len(self._nodes) - 1, self.path
        )

    def _load_node(self, raw: dict[str, Any], parent_id: str) -> str:
        node_id = str(raw.get("id") or self._allocate_id())
        if node_id in self._nodes:
            node_id = self._allocate_id()
        url = raw.get("url") if raw.get("type") == "url" else None
        node = BookmarkNode(
            id=node_id,
            title=raw.get("name", ""),
            url=url,
            parent_id=parent_id,
            date_added=from_webkit(raw.get("date_added")) or _now(),
            date_modified=from_webkit(raw.get("date_modified")),
            extra={k: v for k, v in raw.items() if k not in _NODE_KEYS},
        )
        self._nodes[node_id] = node
        self._nodes[parent_id].children.append(node_id)
        if node.is_folder:
            for child in raw.get("children", []):
                self._load_node(child, node_id)
        return node_id

    def reload_if_changed(self) -> bool:
        """Re-read the file if another process modified it.

        Returns:
            ``True`` when the tree was reloaded (a ``reloaded`` event is
            emitted to subscribers).
        """
        with self._lock:
            try:
                mtime = self.path.stat().st_mtime_ns
            except FileNotFoundError:
                logger.warning("Bookmarks file %s disappeared", self.path)
                return False
            if mtime == self._mtime_ns:
                return False
            logger.info("Bookmarks file changed on disk, reloading")
            self._load()
        self._emit(TreeEvent("reloaded", ROOT_ID))
        return True

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialise the tree in Chromium's on-disk layout."""
        with self._lock:
            roots: dict[str, Any] = dict(self._roots_extra)
            for node_id in self._nodes[ROOT_ID].children:
                key = self._root_keys.get(node_id) or f"root_{node_id}"
                roots[key] = self._dump_node(self._nodes[node_id])
            data = dict(self._top_extra)
            data["checksum"] = self.checksum()
            data["roots"] = roots
            data.setdefault("version", 1)
            return data

    def _dump_node(self, node: BookmarkNode) -> dict[str, Any]:
        out = dict(node.extra)
        out.setdefault("guid", str(uuid.uuid4()))
        node.extra.setdefault("guid", out["guid"])
        out["id"] = node.id
        out["name"] = node.title
        out["date_added"] = to_webkit(node.date_added)
        if node.date_modified is not None:
            out["date_modified"] = to_webkit(node.date_modified)
        if node.is_folder:
            out["type"] = "folder"
            out.setdefault("date_modified", "0")
            out["children"] = [
                self._dump_node(self._nodes[cid]) for cid in node.children
            ]
        else:
            out["type"] = "url"
            out["url"] = node.url
        return out

    def checksum(self) -> str:
        """MD5 checksum computed the way Chromium's bookmark codec does."""
        digest = hashlib.md5()
        with self._lock:
            stack = list(reversed(self._nodes[ROOT_ID].children))
            while stack:
                node = self._nodes[stack.pop()]
                digest.update(node.id.encode("utf-8"))
                digest.update(node.title.encode("utf-16-le"))
                if node.is_folder:
                    digest.update(b"folder")
                    stack.extend(reversed(node.children))
                else:
                    digest.update(b"url")
                    digest.update((node.url or "").encode("utf-8"))
        return digest.hexdigest()

    def _commit(self) -> None:
        data = self.to_dict()
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(directory), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=3, sort_keys=True, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        self._mtime_ns = self.path.stat().st_mtime_ns
