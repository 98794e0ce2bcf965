"""Unified configuration schema for linkding_sync.

Defines Pydantic models for the unified config structure with dedicated
sections for the linkding connection, the local bookmarks file, sync
behaviour and logging.

Usage:
    from linkding_sync.config_schema import UnifiedConfig, build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    fallbacks = unified.linkding.model_dump(exclude_none=True)
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class LinkdingConfig(BaseModel):
    """linkding server connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    url: str | None = Field(default=None, description="linkding server URL")
    token: str | None = Field(default=None, description="REST API token")
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    write_delay: float = Field(
        default=0.25,
        ge=0,
        le=60,
        description="Minimum seconds between write calls (0-60)",
    )

    model_config = {"frozen": True}


class BookmarksConfig(BaseModel):
    """Local bookmark tree settings.

    Folder paths are ``/``-separated and start with a root folder name of
    the bookmarks file (e.g. ``"Bookmarks bar/Linkding Sync"``).

    Attributes:
        file: Path to a Chromium ``Bookmarks`` JSON file.
        sync_folder: Root of the two-way synced subtree.
        mirror_folder: Folder replaced by the one-way mirror download.
    """

    file: str | None = Field(
        default=None, description="Chromium Bookmarks JSON file"
    )
    sync_folder: str | None = Field(
        default=None, description="Two-way sync root folder path"
    )
    mirror_folder: str = Field(
        default="Bookmarks bar/Linkding",
        description="One-way mirror folder path",
    )

    model_config = {"frozen": True}

    @field_validator("sync_folder", "mirror_folder")
    @classmethod
    def _strip_slashes(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip().strip("/")


class SyncConfig(BaseModel):
    """Sync behaviour settings.

    Attributes:
        sync_tag: Tag marking bookmarks that take part in two-way sync.
        one_way_enabled: Run the mirror download on the periodic timer.
        two_way_enabled: Run two-way reconciliation on timer and changes.
        auto_sync: Enable the periodic timer.
        interval_minutes: Periodic timer interval.
        debounce_seconds: Quiet period before a local change triggers sync.
        poll_seconds: How often the bookmarks file is checked for
            external edits (0 disables polling).
        state_dir: Directory holding the mapping state file.
    """

    sync_tag: str = Field(default="bookmark-sync", min_length=1)
    one_way_enabled: bool = True
    two_way_enabled: bool = False
    auto_sync: bool = False
    interval_minutes: int = Field(default=60, ge=1, le=24 * 60)
    debounce_seconds: float = Field(default=2.0, ge=0)
    poll_seconds: float = Field(default=5.0, ge=0)
    state_dir: str = ".linkding_sync"

    model_config = {"frozen": True}

    @field_validator("sync_tag")
    @classmethod
    def _validate_sync_tag(cls, value: str) -> str:
        value = value.strip()
        if not value or "/" in value or any(ch.isspace() for ch in value):
            raise ValueError(
                "sync_tag must be a single tag without '/' or whitespace"
            )
        return value


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    linkding: LinkdingConfig = Field(default_factory=LinkdingConfig)
    bookmarks: BookmarksConfig = Field(default_factory=BookmarksConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully - anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
