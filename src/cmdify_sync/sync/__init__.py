"""Command collection sync.

Public API for keeping the local command collection in sync with a
private GitHub gist, or exchanging it through a plain JSON file.

Architecture
------------
Records are matched across devices by their sync key (``sync_id`` when
set, else ``id``).  A side counts as changed when its ``updated_at`` is
later than the local ``last_synced_at``; records changed on both sides
with different content become conflicts, everything else is merged by
"latest ``updated_at`` wins".  Deletions travel as tombstones
(``deleted_at``) and are dropped from the collection only after merging.

Modules:

- ``models``    -- ``Command``, ``SyncPayload``, ``SyncConflict``,
  ``SyncReport`` and the enums: core data contracts.
- ``merger``    -- ``detect_conflicts``, ``merge_commands``,
  ``apply_resolutions``: pure merge functions.
- ``resolver``  -- Conflict resolution strategies (interactive, standing
  policy).
- ``state``     -- ``SyncState``: the persisted gist id and sync marks.
- ``engine``    -- ``SyncEngine``: orchestrates a full gist sync run.
- ``file_sync`` -- ``FileSync``: export/import through a local file.
- ``reporter``  -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from cmdify_sync.core.client import GistClient
    from cmdify_sync.storage import CommandStore
    from cmdify_sync.sync import SyncEngine, SyncState, create_resolver

    state = SyncState(config.data_path)
    engine = SyncEngine(
        store=CommandStore(config.data_path),
        client=GistClient(config, state),
        resolver=create_resolver("keep_both"),
    )

    preview = engine.run(dry_run=True)
    print(format_sync_report(preview))

    report = engine.run()
    print(format_sync_report(report))
"""

from .engine import SyncEngine
from .file_sync import FileSync, parse_payload
from .merger import apply_resolutions, detect_conflicts, merge_commands
from .models import (
    Command,
    ConflictResolution,
    SyncConflict,
    SyncConflictType,
    SyncPayload,
    SyncReport,
    create_command,
)
from .reporter import format_conflict, format_sync_report, report_to_json
from .resolver import (
    InteractiveResolver,
    PolicyResolver,
    create_resolver,
    resolve_conflicts,
)
from .state import SyncState

__all__ = [
    "Command",
    "ConflictResolution",
    "FileSync",
    "InteractiveResolver",
    "PolicyResolver",
    "SyncConflict",
    "SyncConflictType",
    "SyncEngine",
    "SyncPayload",
    "SyncReport",
    "SyncState",
    "apply_resolutions",
    "create_command",
    "create_resolver",
    "detect_conflicts",
    "format_conflict",
    "format_sync_report",
    "merge_commands",
    "parse_payload",
    "report_to_json",
    "resolve_conflicts",
]
