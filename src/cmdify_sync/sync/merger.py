"""Conflict detection and record merging for command collections.

All functions are pure: they never perform I/O and only read the clock
for the "now" stamp (which callers may pass explicitly).  Both inputs are
keyed by ``sync_id or id``.

Key design choices:

* **Explicit iteration order** -- results follow the order keys are first
  seen in ``local``, then keys only present in ``remote``.  Output is
  therefore deterministic for a given input.
* **Content hashing** -- ``content_hash()`` covers the user-visible
  fields only; sync bookkeeping (ids, timestamps, tombstones) never makes
  two copies "different".
* **Change baseline** -- a side counts as changed when its ``updated_at``
  is later than the *local* ``last_synced_at``, the last time this device
  reconciled the record.  A missing ``last_synced_at`` means both sides
  changed.
* **Tombstones last** -- soft-deleted records take part in "latest wins"
  and are only dropped from the returned collection at the very end.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Iterable, Mapping

from cmdify_sync.sync.models import (
    Command,
    ConflictResolution,
    SyncConflict,
    SyncConflictType,
    now_iso,
)

logger = logging.getLogger(__name__)

KEEP_BOTH_MARKER = " (from sync)"

# Fields compared when deciding whether two copies differ.
CONTENT_FIELDS: tuple[str, ...] = (
    "prompt",
    "command",
    "tags",
    "shell",
    "working_directory",
    "variables",
    "usage_count",
    "is_favorite",
    "skip_destructive_warning",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def content_hash(cmd: Command) -> str:
    """SHA-256 hex digest of the record's content fields."""
    data = cmd.model_dump(mode="json", include=set(CONTENT_FIELDS))
    raw = json.dumps(data, ensure_ascii=False, sort_keys=True)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def parse_timestamp(value: str | None) -> float:
    """Convert an ISO 8601 string to epoch seconds.

    Accepts date-only values and a trailing ``Z``.  Naive values are read
    as UTC.  ``None``, empty and unparseable values map to ``0.0``.
    """
    if not value:
        return 0.0
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring unparseable timestamp %r", value)
        return 0.0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def index_by_key(commands: Iterable[Command]) -> dict[str, Command]:
    """Map ``sync key -> record`` preserving first-seen key order.

    A later duplicate of a key replaces the earlier record in place.
    """
    indexed: dict[str, Command] = {}
    for cmd in commands:
        indexed[cmd.key] = cmd
    return indexed


def _stamp(cmd: Command, key: str, now: str) -> Command:
    return cmd.model_copy(update={"sync_id": key, "last_synced_at": now})


def _visible(commands: Iterable[Command]) -> list[Command]:
    return [cmd for cmd in commands if not cmd.is_deleted]


# ---------------------------------------------------------------------------
# Conflict detection
# ---------------------------------------------------------------------------


def detect_conflicts(
    local: list[Command], remote: list[Command]
) -> list[SyncConflict]:
    """Find records that cannot be merged automatically.

    For every key present on both sides:

    * both sides tombstoned -> nothing, the deletion already agrees;
    * exactly one side tombstoned -> ``deleted_local`` / ``deleted_remote``;
    * otherwise, differing content where both sides changed since the
      last sync -> ``modified``.

    Args:
        local: The local collection, tombstones included.
        remote: The remote collection, tombstones included.

    Returns:
        Conflicts in local key order.
    """
    local_map = index_by_key(local)
    remote_map = index_by_key(remote)
    conflicts: list[SyncConflict] = []

    for key, local_cmd in local_map.items():
        remote_cmd = remote_map.get(key)
        if remote_cmd is None:
            continue

        if local_cmd.is_deleted and remote_cmd.is_deleted:
            continue
        if local_cmd.is_deleted:
            conflict_type = SyncConflictType.DELETED_LOCAL
        elif remote_cmd.is_deleted:
            conflict_type = SyncConflictType.DELETED_REMOTE
        elif content_hash(local_cmd) != content_hash(remote_cmd):
            baseline = parse_timestamp(local_cmd.last_synced_at)
            local_changed = parse_timestamp(local_cmd.updated_at) > baseline
            remote_changed = (
                parse_timestamp(remote_cmd.updated_at) > baseline
            )
            if not (local_changed and remote_changed):
                continue
            conflict_type = SyncConflictType.MODIFIED
        else:
            continue

        logger.debug("Conflict %s for %s", conflict_type.value, key)
        conflicts.append(
            SyncConflict(
                command_id=key,
                local=local_cmd,
                remote=remote_cmd,
                type=conflict_type,
            )
        )

    return conflicts


# ---------------------------------------------------------------------------
# Conflict-free merge
# ---------------------------------------------------------------------------


def merge_commands(
    local: list[Command],
    remote: list[Command],
    *,
    now: str | None = None,
    stamp: bool = True,
    purge_tombstones: bool = True,
) -> list[Command]:
    """Union two collections, keeping the later ``updated_at`` per key.

    Ties keep the local copy.  Every kept record gets ``sync_id`` set to
    its key and, when *stamp* is true, ``last_synced_at = now``.
    Tombstoned winners are dropped unless *purge_tombstones* is false.

    Args:
        local: The local collection.
        remote: The remote (or imported) collection.
        now: Timestamp to stamp; defaults to the current time.
        stamp: Set ``last_synced_at`` on kept records.  File imports pass
            ``False`` because nothing was reconciled with the gist.
        purge_tombstones: Drop tombstoned winners.  File imports pass
            ``False`` so unsynced local deletions still reach the gist.

    Returns:
        The merged collection, visible records only unless
        *purge_tombstones* is false.
    """
    stamp_at = now or now_iso()
    merged = index_by_key(local)

    for key, remote_cmd in index_by_key(remote).items():
        existing = merged.get(key)
        if existing is None or parse_timestamp(
            remote_cmd.updated_at
        ) > parse_timestamp(existing.updated_at):
            merged[key] = remote_cmd

    result: list[Command] = []
    for key, cmd in merged.items():
        if stamp:
            result.append(_stamp(cmd, key, stamp_at))
        else:
            result.append(cmd.model_copy(update={"sync_id": key}))
    return _visible(result) if purge_tombstones else result


# ---------------------------------------------------------------------------
# Resolution application
# ---------------------------------------------------------------------------


def apply_resolutions(
    conflicts: list[SyncConflict],
    resolutions: Mapping[str, ConflictResolution],
    local: list[Command],
    remote: list[Command],
    *,
    now: str | None = None,
) -> list[Command]:
    """Build the final collection once conflicts have been resolved.

    The result is seeded with every local record, then remote-only keys.
    Each resolved conflict then replaces its key:

    * ``keep_local``  -- the local copy, stamped.
    * ``keep_remote`` -- the remote copy, stamped.
    * ``keep_both``   -- the local copy, stamped, plus the remote copy under
      a new key with a provenance marker on its prompt.  Neither copy is
      left tombstoned so both contents survive.

    Conflicts missing from *resolutions* keep the seeded (local) copy.
    Tombstoned records are dropped from the returned list.

    Args:
        conflicts: Output of ``detect_conflicts``.
        resolutions: ``command_id -> ConflictResolution``; may be partial.
        local: The local collection.
        remote: The remote collection.
        now: Timestamp to stamp; defaults to the current time.

    Returns:
        The resolved visible collection.
    """
    stamp_at = now or now_iso()
    merged: dict[str, Command] = {
        key: cmd.model_copy(update={"sync_id": key})
        for key, cmd in index_by_key(local).items()
    }
    for key, cmd in index_by_key(remote).items():
        if key not in merged:
            merged[key] = cmd.model_copy(update={"sync_id": key})

    for conflict in conflicts:
        resolution = resolutions.get(conflict.command_id)
        if resolution is None:
            continue
        key = conflict.command_id
        resolution = ConflictResolution(resolution)

        if resolution is ConflictResolution.KEEP_LOCAL:
            merged[key] = _stamp(conflict.local, key, stamp_at)
        elif resolution is ConflictResolution.KEEP_REMOTE:
            merged[key] = _stamp(conflict.remote, key, stamp_at)
        else:
            merged[key] = _stamp(conflict.local, key, stamp_at).model_copy(
                update={"deleted_at": None}
            )
            new_key = _duplicate_key(key, merged)
            merged[new_key] = conflict.remote.model_copy(
                update={
                    "id": new_key,
                    "sync_id": new_key,
                    "prompt": f"{conflict.remote.prompt}{KEEP_BOTH_MARKER}",
                    "last_synced_at": stamp_at,
                    "deleted_at": None,
                }
            )
            logger.info("Kept both copies of %s (remote as %s)", key, new_key)

    return _visible(merged.values())


def _duplicate_key(key: str, taken: Mapping[str, Command]) -> str:
    """Synthesize an unused key for the remote half of a keep_both."""
    base = f"{key}_remote_{int(datetime.now(timezone.utc).timestamp() * 1000)}"
    candidate = base
    suffix = 1
    while candidate in taken:
        candidate = f"{base}_{suffix}"
        suffix += 1
    return candidate
