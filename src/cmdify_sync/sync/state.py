"""Sync state persistence layer.

Manages the JSON state file (``sync_state.json`` in the data directory)
that survives process restarts: the id of the gist holding the synced
collection, the last successful sync time and the last pushed
``syncVersion``.

Key design choices:

* **Atomic writes** -- ``save()`` goes through ``write_json_atomic`` so
  readers never see partial data.
* **Explicit injection** -- the gist client receives a ``SyncState`` at
  construction instead of reading a global; tests use a ``tmp_path``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from cmdify_sync.file_handler import write_json_atomic
from cmdify_sync.sync.models import now_iso

logger = logging.getLogger(__name__)

STATE_FILENAME = "sync_state.json"


class SyncState:
    """Load, save, and query persisted sync state.

    Args:
        state_dir: Directory where the state file is stored (typically the
            configured data directory).
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir

    @property
    def path(self) -> Path:
        """Location of the state file."""
        return self._state_dir / STATE_FILENAME

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> dict:
        """Load sync state from disk.

        Returns:
            The state dict.  A missing or unreadable file yields an empty
            state with ``version=1``.
        """
        if not self.path.exists():
            return self._empty()
        try:
            with open(self.path, encoding="utf-8") as fh:
                state = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable sync state %s: %s", self.path, exc)
            return self._empty()
        if not isinstance(state, dict):
            logger.warning("Ignoring sync state with non-dict root: %s", self.path)
            return self._empty()
        return state

    def save(self, state: dict) -> None:
        """Persist sync state to disk atomically."""
        write_json_atomic(self.path, state)

    # ------------------------------------------------------------------
    # Gist id
    # ------------------------------------------------------------------

    def get_gist_id(self) -> str | None:
        """Return the persisted gist id, or ``None``."""
        return self.load().get("gist_id") or None

    def set_gist_id(self, gist_id: str | None) -> None:
        """Persist *gist_id* (``None`` clears it)."""
        state = self.load()
        state["gist_id"] = gist_id
        self.save(state)
        logger.debug("Stored gist id: %s", gist_id)

    # ------------------------------------------------------------------
    # Sync bookkeeping
    # ------------------------------------------------------------------

    def record_sync(self, sync_version: int | None = None) -> None:
        """Stamp ``last_sync`` and, when given, the pushed ``sync_version``."""
        state = self.load()
        state["last_sync"] = now_iso()
        if sync_version is not None:
            state["sync_version"] = sync_version
        self.save(state)

    @staticmethod
    def _empty() -> dict:
        return {
            "version": 1,
            "gist_id": None,
            "last_sync": None,
            "sync_version": None,
        }
