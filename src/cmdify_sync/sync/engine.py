"""Sync engine that runs one full sync of the local collection with the gist.

The ``SyncEngine`` ties together the store, the gist client, the merge
functions and the resolver into a complete sync run.  It:

1. Fetches the remote payload (discovering the gist on first use).
2. Detects conflicts between the local and remote collections.
3. Asks the resolver about every conflict, or merges automatically when
   there are none.
4. Replaces the local collection with the result.
5. Pushes the result back to the gist (bidirectional runs only).
6. Builds and returns a ``SyncReport``.

Nothing is written until step 4: a ``CancelledError`` from the resolver or
a ``TransportError`` while fetching leaves both sides untouched.  Runs are
sequential; callers must not start a second run while one is in flight.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cmdify_sync.sync.merger import (
    apply_resolutions,
    detect_conflicts,
    index_by_key,
    merge_commands,
)
from cmdify_sync.sync.models import (
    Command,
    ConflictRecord,
    SyncPayload,
    SyncReport,
    now_iso,
)
from cmdify_sync.sync.resolver import ConflictResolver, resolve_conflicts

if TYPE_CHECKING:
    from cmdify_sync.core.client import GistClient
    from cmdify_sync.storage import CommandStore

logger = logging.getLogger(__name__)

DIRECTIONS: tuple[str, ...] = ("bidirectional", "pull", "push")


class SyncEngine:
    """Orchestrate a sync run between the local store and the gist.

    Args:
        store: The local command store.
        client: Gist client (remote transport).
        resolver: Conflict resolver used when conflicts are found.
    """

    def __init__(
        self,
        store: CommandStore,
        client: GistClient,
        resolver: ConflictResolver,
    ) -> None:
        self.store = store
        self.client = client
        self.resolver = resolver

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(
        self, direction: str = "bidirectional", dry_run: bool = False
    ) -> SyncReport:
        """Execute a sync run.

        Args:
            direction: ``bidirectional`` (fetch, merge, write, push),
                ``pull`` (fetch, merge, write) or ``push`` (upload the
                local collection as-is).
            dry_run: Compute the result without writing anything.

        Returns:
            A ``SyncReport`` summarising what was (or would be) done.

        Raises:
            ValueError: If *direction* is unknown.
            TransportError: If the gist cannot be read or written.
            CancelledError: If the user aborted conflict resolution.
        """
        if direction not in DIRECTIONS:
            raise ValueError(
                f"Unknown sync direction: '{direction}'. Valid directions: {list(DIRECTIONS)}"
            )
        started_at = now_iso()

        if direction == "push":
            return self._push_only(started_at, dry_run)

        local = self.store.all_records()
        remote_payload = self._fetch_remote()
        remote = remote_payload.commands if remote_payload else []
        logger.info(
            "Syncing %d local / %d remote commands", len(local), len(remote)
        )

        conflicts = detect_conflicts(local, remote)
        conflict_records: list[ConflictRecord] = []
        if conflicts:
            logger.info("Found %d conflicts", len(conflicts))
            resolutions = resolve_conflicts(conflicts, self.resolver)
            result = apply_resolutions(conflicts, resolutions, local, remote)
            conflict_records = [
                ConflictRecord(
                    command_id=c.command_id,
                    type=c.type,
                    resolution=resolutions.get(c.command_id),
                )
                for c in conflicts
            ]
        else:
            result = merge_commands(local, remote)

        changes = self._diff(local, remote, result)

        pushed = False
        sync_version: int | None = None
        if not dry_run:
            self.store.replace_all(result)
            if direction == "bidirectional":
                previous = remote_payload.sync_version if remote_payload else None
                sync_version = (previous or 0) + 1
                self.client.update(
                    SyncPayload(commands=result, sync_version=sync_version)
                )
                pushed = True
            self.client.state.record_sync(sync_version)

        return SyncReport(
            direction=direction,
            dry_run=dry_run,
            started_at=started_at,
            completed_at=now_iso(),
            local_count=len(self._visible(local)),
            remote_count=len(remote),
            result_count=len(result),
            conflicts=conflict_records,
            pushed=pushed,
            gist_id=self.client.gist_id,
            sync_version=sync_version,
            **changes,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _fetch_remote(self) -> SyncPayload | None:
        """Fetch the remote payload, discovering the gist when unknown."""
        if not self.client.has_known_blob():
            if self.client.discover():
                logger.info("Linked to existing gist %s", self.client.gist_id)
            else:
                logger.info("No gist found; the first push will create one")
                return None
        return self.client.fetch()

    def _push_only(self, started_at: str, dry_run: bool) -> SyncReport:
        """Upload the visible local collection without merging."""
        local = self.store.visible()
        pushed = False
        if not dry_run:
            self.client.update(SyncPayload(commands=local))
            self.client.state.record_sync()
            pushed = True
        return SyncReport(
            direction="push",
            dry_run=dry_run,
            started_at=started_at,
            completed_at=now_iso(),
            local_count=len(local),
            result_count=len(local),
            pushed=pushed,
            gist_id=self.client.gist_id,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _visible(commands: list[Command]) -> list[Command]:
        return [cmd for cmd in commands if not cmd.is_deleted]

    def _diff(
        self,
        local: list[Command],
        remote: list[Command],
        result: list[Command],
    ) -> dict[str, list[str]]:
        """Classify result keys against the local collection.

        A key that was a local tombstone and is live again (``keep_both`` on
        a deletion conflict) counts as restored rather than added.
        """
        local_map = index_by_key(self._visible(local))
        tombstones = {cmd.key for cmd in local if cmd.is_deleted}
        remote_map = index_by_key(remote)
        result_map = index_by_key(result)

        added: list[str] = []
        updated: list[str] = []
        duplicated: list[str] = []
        restored: list[str] = []
        for key, cmd in result_map.items():
            before = local_map.get(key)
            if before is None:
                if key in tombstones:
                    restored.append(key)
                elif key in remote_map:
                    added.append(key)
                else:
                    duplicated.append(key)
            elif cmd.model_dump(
                exclude={"sync_id", "last_synced_at"}
            ) != before.model_dump(exclude={"sync_id", "last_synced_at"}):
                updated.append(key)

        removed = [key for key in local_map if key not in result_map]
        return {
            "added": added,
            "updated": updated,
            "removed": removed,
            "duplicated": duplicated,
            "restored": restored,
        }
