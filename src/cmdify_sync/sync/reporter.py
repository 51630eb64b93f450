"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``format_sync_report`` -- full post-sync summary.
- ``format_command_summary`` -- one-line "Updated | Uses" summary.
- ``format_conflict`` -- side-by-side description for conflict review.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

import difflib
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from .models import SyncConflictType

if TYPE_CHECKING:
    from .models import Command, SyncConflict, SyncReport

_CONFLICT_LABELS: dict[SyncConflictType, str] = {
    SyncConflictType.MODIFIED: "Modified on both sides",
    SyncConflictType.DELETED_LOCAL: "Deleted locally, modified remotely",
    SyncConflictType.DELETED_REMOTE: "Deleted remotely, modified locally",
}

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Sections are only included when they contain at least one key.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"Sync report ({report.direction})"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(
        f"{report.result_count} commands: "
        f"{len(report.added)} added, {len(report.updated)} updated, "
        f"{len(report.removed)} removed, "
        f"{len(report.conflicts)} conflicts"
    )
    lines.append("")

    sections = (
        ("Added from remote:", report.added),
        ("Updated from remote:", report.updated),
        ("Removed:", report.removed),
        ("Kept both (new keys):", report.duplicated),
        ("Restored:", report.restored),
    )
    for title, keys in sections:
        if keys:
            lines.append(title)
            for key in keys:
                lines.append(f"  {key}")
            lines.append("")

    if report.conflicts:
        lines.append("Conflicts:")
        for c in report.conflicts:
            resolution = c.resolution.value if c.resolution else "unresolved"
            lines.append(f"  {c.command_id} ({c.type.value}): {resolution}")
        lines.append("")

    if report.pushed:
        target = f" to gist {report.gist_id}" if report.gist_id else ""
        version = (
            f" (syncVersion {report.sync_version})"
            if report.sync_version is not None
            else ""
        )
        lines.append(f"Pushed{target}{version}")
    elif not report.changed:
        lines.append("No changes needed.")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Conflict review
# ------------------------------------------------------------------


def format_command_summary(cmd: Command) -> str:
    """Return ``"Updated: <date> | Uses: <n>"`` for *cmd*."""
    updated = cmd.updated_at or "unknown"
    try:
        dt = datetime.fromisoformat(updated.replace("Z", "+00:00"))
    except ValueError:
        pass
    else:
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        updated = dt.strftime("%Y-%m-%d %H:%M")
    return f"Updated: {updated} | Uses: {cmd.usage_count}"


def format_conflict(conflict: SyncConflict) -> str:
    """Format a single conflict for interactive review.

    Shows the conflict type, both summaries and a unified diff of the
    command text when it differs.

    Args:
        conflict: The conflict details.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    title = conflict.local.prompt or conflict.local.command
    lines.append(
        f'Conflict: "{title}" - {_CONFLICT_LABELS[conflict.type]}'
    )
    lines.append(f"  Local:  {format_command_summary(conflict.local)}")
    lines.append(f"          {conflict.local.command}")
    lines.append(f"  Remote: {format_command_summary(conflict.remote)}")
    lines.append(f"          {conflict.remote.command}")

    if conflict.local.command != conflict.remote.command:
        diff = difflib.unified_diff(
            conflict.local.command.splitlines(),
            conflict.remote.command.splitlines(),
            fromfile="local",
            tofile="remote",
            lineterm="",
        )
        lines.append("")
        lines.extend(diff)

    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation.

    Args:
        report: The sync report.

    Returns:
        Dict with run info, counts, and per-key details.
    """
    return {
        "direction": report.direction,
        "dry_run": report.dry_run,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "local": report.local_count,
            "remote": report.remote_count,
            "result": report.result_count,
            "added": len(report.added),
            "updated": len(report.updated),
            "removed": len(report.removed),
            "duplicated": len(report.duplicated),
            "restored": len(report.restored),
            "conflicts": len(report.conflicts),
        },
        "added": list(report.added),
        "updated": list(report.updated),
        "removed": list(report.removed),
        "duplicated": list(report.duplicated),
        "restored": list(report.restored),
        "conflicts": [
            {
                "command_id": c.command_id,
                "type": c.type.value,
                "resolution": c.resolution.value if c.resolution else None,
            }
            for c in report.conflicts
        ],
        "pushed": report.pushed,
        "gist_id": report.gist_id,
        "sync_version": report.sync_version,
    }
