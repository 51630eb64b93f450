"""Pydantic models for command records and the sync subsystem.

Defines the data contracts shared by the transports, the merge engine and
the orchestrator:

- ``Command``: a saved CLI command plus its sync metadata.
- ``SyncConflictType`` / ``SyncConflict``: a derived conflict between the
  local and remote copy of one record.
- ``ConflictResolution``: the per-conflict choice made by the user.
- ``SyncPayload``: the JSON document stored in the gist or an export file.
- ``ConflictRecord`` / ``SyncReport``: outcome of a sync run.

Wire names are camelCase (``syncId``, ``updatedAt``, ...) to stay
compatible with payloads written by the editor extension; Python code uses
the snake_case attribute names.  All models are frozen (immutable); use
``model_copy(update=...)`` to derive a modified record.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PAYLOAD_VERSION = "1.0"

ShellType = Literal["bash", "zsh", "powershell", "pwsh", "cmd", "fish", "auto"]
CommandSource = Literal["ai", "manual", "imported", "shared"]

_WIRE_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
)


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class CommandVariable(BaseModel):
    """A ``{{name}}`` placeholder extracted from the command text."""

    name: str
    default_value: str | None = None
    description: str | None = None

    model_config = _WIRE_CONFIG


class WorkingDirectory(BaseModel):
    """Where the command runs: the workspace, a fixed path, or ask."""

    type: Literal["workspace", "custom", "ask"] = "workspace"
    path: str | None = None

    model_config = _WIRE_CONFIG


class Command(BaseModel):
    """A saved CLI command.

    Attributes:
        id: Locally generated identifier, assigned once.
        prompt: What the user asked for (natural language description).
        command: The CLI command text.
        tags: Free-form tags.
        shell: Shell to run the command in (auto-detect when ``None``).
        working_directory: Execution directory settings.
        variables: Placeholders found in the command text.
        created_at: Creation timestamp.
        updated_at: Set on every local content mutation.
        source: How the record was created.
        usage_count: Number of times the command was run.
        last_used_at: Last run timestamp.
        skip_destructive_warning: Suppress the destructive-command prompt.
        is_favorite: Pinned as favorite.
        sync_id: Cross-device matching key; defaults to ``id`` on first
            sync and never changes afterwards.
        sync_hash: Content hash recorded by older clients (informational).
        last_synced_at: Set when a sync reconciles this record.
        deleted_at: Tombstone timestamp; the record is soft-deleted.
    """

    id: str
    prompt: str = ""
    command: str
    tags: list[str] = Field(default_factory=list)
    shell: ShellType | None = None
    working_directory: WorkingDirectory | None = None
    variables: list[CommandVariable] | None = None
    created_at: str = ""
    updated_at: str = ""
    source: CommandSource = "manual"
    usage_count: int = 0
    last_used_at: str | None = None
    skip_destructive_warning: bool | None = None
    is_favorite: bool = False
    sync_id: str | None = None
    sync_hash: str | None = None
    last_synced_at: str | None = None
    deleted_at: str | None = None

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    @property
    def key(self) -> str:
        """Sync matching key: ``sync_id`` when set, else ``id``."""
        return self.sync_id or self.id

    @property
    def is_deleted(self) -> bool:
        """True when the record carries a tombstone."""
        return bool(self.deleted_at)

    def to_wire(self) -> dict[str, Any]:
        """Serialize using camelCase names, omitting unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def generate_command_id() -> str:
    """Return a fresh local id (``cmd_<epoch-ms>_<random>``)."""
    return f"cmd_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def create_command(
    prompt: str,
    command: str,
    source: CommandSource = "manual",
    **options: Any,
) -> Command:
    """Create a new command record with defaults.

    Args:
        prompt: Natural language description.
        command: The CLI command text.
        source: Record origin.
        **options: Any other ``Command`` field (snake_case names).

    Returns:
        A new ``Command`` with a fresh id and ``created_at == updated_at``.
    """
    now = now_iso()
    fields: dict[str, Any] = {
        "id": generate_command_id(),
        "prompt": prompt,
        "command": command,
        "tags": [],
        "source": source,
        "usage_count": 0,
        "is_favorite": False,
        "created_at": now,
        "updated_at": now,
    }
    fields.update(options)
    return Command(**fields)


class SyncConflictType(str, Enum):
    """Kinds of conflict between a local and a remote record."""

    MODIFIED = "modified"
    DELETED_LOCAL = "deleted_local"
    DELETED_REMOTE = "deleted_remote"


class ConflictResolution(str, Enum):
    """Per-conflict choice."""

    KEEP_LOCAL = "keep_local"
    KEEP_REMOTE = "keep_remote"
    KEEP_BOTH = "keep_both"


class SyncConflict(BaseModel):
    """A record changed incompatibly on both sides.

    Attributes:
        command_id: The sync key shared by both copies.
        local: The local copy.
        remote: The remote copy.
        type: Kind of conflict.
    """

    command_id: str
    local: Command
    remote: Command
    type: SyncConflictType

    model_config = {"frozen": True}


class SyncPayload(BaseModel):
    """The JSON document written to the gist or an export file.

    ``commands`` holds at most one record per sync key.
    """

    version: str = PAYLOAD_VERSION
    commands: list[Command] = Field(default_factory=list)
    exported_at: str = Field(default_factory=now_iso)
    sync_version: int | None = None

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase wire layout."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ConflictRecord(BaseModel):
    """How one conflict was settled during a sync run."""

    command_id: str
    type: SyncConflictType
    resolution: ConflictResolution | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for one sync run.

    Attributes:
        direction: ``bidirectional``, ``pull`` or ``push``.
        dry_run: Whether this was a dry-run (nothing written).
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run completed.
        local_count: Visible local records before the run.
        remote_count: Records in the remote payload (tombstones included).
        result_count: Records in the resulting collection.
        added: Keys that arrived from the remote.
        updated: Keys whose content was replaced by the remote copy.
        removed: Keys that disappeared from the visible collection.
        duplicated: Keys created by ``keep_both`` resolutions.
        restored: Local tombstones that are live again after resolution.
        conflicts: Conflicts found and their resolutions.
        pushed: Whether the result was uploaded.
        gist_id: Gist id after the run, if known.
        sync_version: ``syncVersion`` of the pushed payload.
    """

    direction: str = "bidirectional"
    dry_run: bool = False
    started_at: str
    completed_at: str | None = None
    local_count: int = 0
    remote_count: int = 0
    result_count: int = 0
    added: list[str] = []
    updated: list[str] = []
    removed: list[str] = []
    duplicated: list[str] = []
    restored: list[str] = []
    conflicts: list[ConflictRecord] = []
    pushed: bool = False
    gist_id: str | None = None
    sync_version: int | None = None

    model_config = {"frozen": True}

    @property
    def changed(self) -> bool:
        """True when the local collection was (or would be) modified."""
        return bool(
            self.added
            or self.updated
            or self.removed
            or self.duplicated
            or self.restored
        )

    def summary(self) -> str:
        """Format a short human-readable summary of the run."""
        lines = [
            f"Sync ({self.direction})"
            + (" (dry run)" if self.dry_run else ""),
            f"  Added:      {len(self.added)}",
            f"  Updated:    {len(self.updated)}",
            f"  Removed:    {len(self.removed)}",
            f"  Duplicated: {len(self.duplicated)}",
            f"  Restored:   {len(self.restored)}",
            f"  Conflicts:  {len(self.conflicts)}",
            f"  Total:      {self.result_count}",
        ]
        return "\n".join(lines)
