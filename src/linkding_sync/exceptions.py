"""Exception hierarchy for linkding_sync.

The sync core distinguishes four failure classes:

- ``ConfigurationError`` -- fatal to a run, raised before any mutation.
- ``TransientAPIError`` -- one remote call failed; per-item callers log,
  count and skip it.
- ``ConsistencyError`` -- a referenced id no longer exists; callers fold
  it into the matching deletion branch.
- ``SyncBusyError`` -- a manual request arrived while a run is active.
"""

from __future__ import annotations


class LinkdingSyncError(Exception):
    """Base class for all linkding_sync errors."""


class ConfigurationError(LinkdingSyncError):
    """Missing credentials, unset sync root, or otherwise unusable config."""


class TransientAPIError(LinkdingSyncError):
    """A remote API call failed (HTTP error, timeout, malformed response).

    Attributes:
        status_code: HTTP status code when a response was received.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConsistencyError(LinkdingSyncError):
    """A referenced item no longer exists, or persisted state is unreadable."""


class RemoteNotFoundError(ConsistencyError):
    """The remote bookmark id does not exist (HTTP 404)."""


class LocalNodeNotFoundError(ConsistencyError):
    """The local bookmark tree has no node with the given id."""


class SyncBusyError(LinkdingSyncError):
    """A manual sync was requested while another run is in progress."""

    def __init__(self, message: str = "Sync is already in progress.") -> None:
        super().__init__(message)
