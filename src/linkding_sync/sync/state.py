"""Mapping persistence layer.

Manages the JSON state file that records, per bookmark URL, the last state
both stores agreed on.  The file lives in the configured state directory
(``.linkding_sync/`` by default) as ``{name}.json``.

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Whole-table replace** -- a reconciliation run builds a fresh mapping
  and saves it once; entries are never patched in place on disk.
* **Metadata alongside entries** -- ``initial_sync_done``, the sync tag the
  mapping was built for, and mirror statistics share the same file so one
  atomic write covers them.
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from linkding_sync.exceptions import ConsistencyError
from linkding_sync.sync.models import MappingEntry

STATE_VERSION = 1


class MappingStore:
    """Load and save the persisted URL -> ``MappingEntry`` table.

    Args:
        state_dir: Directory holding state files.
        name: State file stem (one file per sync configuration).
    """

    def __init__(self, state_dir: Path, name: str = "bookmarks") -> None:
        self._state_dir = state_dir
        self._name = name

    @property
    def path(self) -> Path:
        """Path of the state file."""
        return self._state_dir / f"{self._name}.json"

    def exists(self) -> bool:
        """Return ``True`` if a state file has been written."""
        return self.path.exists()

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def load(self) -> dict[str, MappingEntry]:
        """Load the mapping.

        Returns:
            URL -> ``MappingEntry``.  Empty if no state file exists.

        Raises:
            ConsistencyError: If the file exists but cannot be parsed.
        """
        state = self._read()
        try:
            return {
                key: MappingEntry(**raw)
                for key, raw in state.get("entries", {}).items()
            }
        except (TypeError, ValidationError) as exc:
            raise ConsistencyError(
                f"Invalid mapping entry in {self.path}: {exc}"
            ) from exc

    def save(self, mapping: dict[str, MappingEntry]) -> None:
        """Replace the persisted mapping with *mapping*.

        Metadata fields already on disk are preserved; ``last_sync`` is set
        to the current UTC time.
        """
        state = self._read()
        state["entries"] = {
            key: entry.model_dump(mode="json")
            for key, entry in sorted(mapping.items())
        }
        state["last_sync"] = datetime.now(timezone.utc).isoformat()
        self._write(state)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def read_meta(self) -> dict[str, Any]:
        """Return every top-level field except ``entries``."""
        state = self._read()
        state.pop("entries", None)
        return state

    def update_meta(self, **fields: Any) -> None:
        """Set top-level metadata fields and persist atomically."""
        if "entries" in fields:
            raise ValueError("Use save() to replace mapping entries")
        state = self._read()
        state.update(fields)
        self._write(state)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _empty_state(self) -> dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "last_sync": None,
            "sync_tag": None,
            "initial_sync_done": False,
            "entries": {},
        }

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return self._empty_state()
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise ConsistencyError(
                f"State file {self.path} is corrupt: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise ConsistencyError(
                f"State file {self.path} has non-object root"
            )
        return data

    def _write(self, state: dict[str, Any]) -> None:
        self._state_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._state_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
