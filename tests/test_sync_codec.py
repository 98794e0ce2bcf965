"""Tests for the path <-> tag codec."""

from __future__ import annotations

import pytest

from linkding_sync.sync.codec import (
    is_sync_tag,
    path_to_tags,
    replace_path_tags,
    tags_to_path,
)

T = "bookmark-sync"


class TestPathToTags:
    def test_root_is_sync_tag_only(self):
        assert path_to_tags(T, []) == [T]

    def test_nested_path(self):
        assert path_to_tags(T, ["Work", "Docs"]) == [T, f"{T}/Work/Docs"]

    @pytest.mark.parametrize(
        "path", [[], ["Work"], ["Work", "Docs"], ["a b", "c-d", "Ünïcode"]]
    )
    def test_round_trip(self, path):
        assert tags_to_path(T, path_to_tags(T, path)) == path


class TestTagsToPath:
    def test_no_path_tag_means_root(self):
        assert tags_to_path(T, [T, "news"]) == []

    def test_empty_tags(self):
        assert tags_to_path(T, []) == []

    def test_longest_path_tag_wins(self):
        tags = [T, f"{T}/Work", f"{T}/Work/Docs", "misc"]
        assert tags_to_path(T, tags) == ["Work", "Docs"]

    def test_equal_length_keeps_first(self):
        assert tags_to_path(T, [f"{T}/Aaaa", f"{T}/Bbbb"]) == ["Aaaa"]

    def test_ignores_similar_prefix(self):
        assert tags_to_path(T, [f"{T}-other/Work"]) == []

    def test_bare_delimiter_is_not_a_path(self):
        assert tags_to_path(T, [f"{T}/"]) == []

    def test_example_from_pull(self):
        assert tags_to_path("sync", ["sync", "sync/Work"]) == ["Work"]


class TestIsSyncTag:
    def test_matches_tag_and_path_tags(self):
        assert is_sync_tag(T, T)
        assert is_sync_tag(T, f"{T}/Work")

    def test_rejects_other_tags(self):
        assert not is_sync_tag(T, "news")
        assert not is_sync_tag(T, f"{T}x")


class TestReplacePathTags:
    def test_keeps_unrelated_tags_in_order(self):
        tags = ["b", T, "a", f"{T}/Old"]
        assert replace_path_tags(T, tags, ["New"]) == ["b", "a", T, f"{T}/New"]

    def test_collapses_multiple_path_tags(self):
        tags = [T, f"{T}/One", f"{T}/Two"]
        assert replace_path_tags(T, tags, []) == [T]

    def test_adds_sync_tag_when_missing(self):
        assert replace_path_tags(T, ["x"], ["Work"]) == ["x", T, f"{T}/Work"]
