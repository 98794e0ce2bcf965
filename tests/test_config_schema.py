"""Tests for linkding_sync.config_schema - Pydantic config models."""

import pytest
from pydantic import ValidationError

from linkding_sync.config_schema import (
    BookmarksConfig,
    LinkdingConfig,
    LoggingConfig,
    SyncConfig,
    UnifiedConfig,
    build_config,
)

# -------------------------------------------------------------------------
# UnifiedConfig
# -------------------------------------------------------------------------


class TestUnifiedConfig:
    def test_zero_config_is_valid(self):
        config = UnifiedConfig()
        assert config.linkding.url is None
        assert config.bookmarks.file is None
        assert config.sync.sync_tag == "bookmark-sync"
        assert config.logging.level == "INFO"

    def test_full_config(self):
        config = UnifiedConfig(
            linkding={"url": "https://links.example.com", "token": "t"},
            bookmarks={
                "file": "/profile/Bookmarks",
                "sync_folder": "Bookmarks bar/Sync",
                "mirror_folder": "Other bookmarks/Linkding",
            },
            sync={"two_way_enabled": True, "interval_minutes": 15},
            logging={"level": "DEBUG", "file": "/tmp/x.log"},
        )
        assert config.linkding.token == "t"
        assert config.bookmarks.sync_folder == "Bookmarks bar/Sync"
        assert config.sync.interval_minutes == 15
        assert config.logging.file == "/tmp/x.log"

    def test_unknown_sections_ignored(self):
        config = UnifiedConfig(browser={"profile": "x"})
        assert not hasattr(config, "browser")

    def test_frozen(self):
        config = UnifiedConfig()
        with pytest.raises(ValidationError):
            config.sync = SyncConfig()


# -------------------------------------------------------------------------
# Sections
# -------------------------------------------------------------------------


class TestLinkdingConfig:
    def test_defaults(self):
        config = LinkdingConfig()
        assert config.insecure is False
        assert config.write_delay == 0.25

    @pytest.mark.parametrize("delay", [-0.1, 61])
    def test_write_delay_bounds(self, delay):
        with pytest.raises(ValidationError):
            LinkdingConfig(write_delay=delay)

    def test_model_dump_for_fallbacks(self):
        dumped = LinkdingConfig(url="https://l.example").model_dump(exclude_none=True)
        assert dumped["url"] == "https://l.example"
        assert "token" not in dumped


class TestBookmarksConfig:
    def test_defaults(self):
        config = BookmarksConfig()
        assert config.sync_folder is None
        assert config.mirror_folder == "Bookmarks bar/Linkding"

    def test_folder_slashes_stripped(self):
        config = BookmarksConfig(
            sync_folder="/Bookmarks bar/Sync/ ", mirror_folder=" Other bookmarks/M/"
        )
        assert config.sync_folder == "Bookmarks bar/Sync"
        assert config.mirror_folder == "Other bookmarks/M"


class TestSyncConfig:
    def test_defaults(self):
        config = SyncConfig()
        assert config.one_way_enabled is True
        assert config.two_way_enabled is False
        assert config.auto_sync is False
        assert config.interval_minutes == 60
        assert config.debounce_seconds == 2.0

    def test_sync_tag_trimmed(self):
        assert SyncConfig(sync_tag="  mine ").sync_tag == "mine"

    @pytest.mark.parametrize("tag", ["", "  ", "a/b", "two words"])
    def test_invalid_sync_tag(self, tag):
        with pytest.raises(ValidationError):
            SyncConfig(sync_tag=tag)

    @pytest.mark.parametrize("minutes", [0, 24 * 60 + 1])
    def test_interval_bounds(self, minutes):
        with pytest.raises(ValidationError):
            SyncConfig(interval_minutes=minutes)

    def test_negative_debounce(self):
        with pytest.raises(ValidationError):
            SyncConfig(debounce_seconds=-1)


def test_logging_defaults():
    config = LoggingConfig()
    assert (config.level, config.file) == ("INFO", None)


# -------------------------------------------------------------------------
# build_config()
# -------------------------------------------------------------------------


class TestBuildConfig:
    @pytest.mark.parametrize("raw", [{}, None])
    def test_empty_returns_defaults(self, raw):
        assert build_config(raw) == UnifiedConfig()

    def test_partial_sections(self):
        config = build_config({"sync": {"sync_tag": "mine"}})
        assert config.sync.sync_tag == "mine"
        assert config.sync.two_way_enabled is False
        assert config.bookmarks == BookmarksConfig()

    def test_invalid_section_raises(self):
        with pytest.raises(ValidationError):
            build_config({"sync": {"interval_minutes": "often"}})
