"""Conversion between local folder paths and linkding path tags.

An item that takes part in two-way sync carries the *sync tag* ``T``.  Its
folder location relative to the sync root is encoded in a second tag,
``T/seg1/seg2``; root-level items carry ``T`` alone.

All functions here are pure.  Folder names must not contain ``/``; that is
a precondition on the local tree, not checked here.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

PATH_DELIMITER = "/"


def path_to_tags(sync_tag: str, path: Sequence[str]) -> list[str]:
    """Encode *path* as the sync tag plus at most one path tag.

    Args:
        sync_tag: The sync tag ``T``.
        path: Folder names below the sync root; empty for the root itself.

    Returns:
        ``[T]`` for the root, otherwise ``[T, "T/seg1/.../segN"]``.
    """
    if not path:
        return [sync_tag]
    return [sync_tag, sync_tag + PATH_DELIMITER + PATH_DELIMITER.join(path)]


def tags_to_path(sync_tag: str, tags: Iterable[str]) -> list[str]:
    """Decode the folder path carried by *tags*.

    The longest tag starting with ``T/`` wins; on equal length the first
    one encountered is kept.  No matching tag means the root.
    """
    prefix = sync_tag + PATH_DELIMITER
    best: str | None = None
    for tag in tags:
        if not tag.startswith(prefix) or len(tag) == len(prefix):
            continue
        if best is None or len(tag) > len(best):
            best = tag
    if best is None:
        return []
    return best[len(prefix) :].split(PATH_DELIMITER)


def is_sync_tag(sync_tag: str, tag: str) -> bool:
    """Return ``True`` for ``T`` itself and for any ``T/...`` path tag."""
    return tag == sync_tag or tag.startswith(sync_tag + PATH_DELIMITER)


def replace_path_tags(
    sync_tag: str, tags: Iterable[str], path: Sequence[str]
) -> list[str]:
    """Rewrite the sync and path tags of *tags* to encode *path*.

    Tags unrelated to sync keep their order; ``T`` and every ``T/...`` tag
    are dropped and the encoding of *path* is appended, so the result never
    carries more than one path tag.
    """
    kept = [tag for tag in tags if not is_sync_tag(sync_tag, tag)]
    return kept + path_to_tags(sync_tag, path)
