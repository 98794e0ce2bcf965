"""Local hierarchical bookmark store."""

from .tree import (
    ROOT_ID,
    BookmarkFile,
    BookmarkNode,
    BookmarkTree,
    TreeEvent,
)

__all__ = [
    "ROOT_ID",
    "BookmarkFile",
    "BookmarkNode",
    "BookmarkTree",
    "TreeEvent",
]
