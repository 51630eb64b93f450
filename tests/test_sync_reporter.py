"""Tests for sync report formatting."""

from __future__ import annotations

import json

from cmdify_sync.sync.models import (
    ConflictRecord,
    ConflictResolution,
    SyncConflict,
    SyncConflictType,
    SyncReport,
)
from cmdify_sync.sync.reporter import (
    format_command_summary,
    format_conflict,
    format_sync_report,
    report_to_json,
)


def _report(**overrides):
    fields = dict(
        direction="bidirectional",
        started_at="2024-06-01T12:00:00+00:00",
        completed_at="2024-06-01T12:00:01+00:00",
        local_count=3,
        remote_count=4,
        result_count=5,
    )
    fields.update(overrides)
    return SyncReport(**fields)


class TestFormatSyncReport:
    """Tests for format_sync_report()."""

    def test_no_changes(self):
        text = format_sync_report(_report())
        assert "Sync report (bidirectional)" in text
        assert "No changes needed." in text

    def test_dry_run_header(self):
        assert "(DRY RUN)" in format_sync_report(_report(dry_run=True))

    def test_lists_keys_by_section(self):
        text = format_sync_report(
            _report(added=["a1"], updated=["u1"], removed=["r1"], duplicated=["d1"])
        )
        assert "Added from remote:\n  a1" in text
        assert "Updated from remote:\n  u1" in text
        assert "Removed:\n  r1" in text
        assert "Kept both (new keys):\n  d1" in text
        assert "1 added, 1 updated, 1 removed, 0 conflicts" in text

    def test_conflicts_and_push(self):
        text = format_sync_report(
            _report(
                conflicts=[
                    ConflictRecord(
                        command_id="c1",
                        type=SyncConflictType.MODIFIED,
                        resolution=ConflictResolution.KEEP_REMOTE,
                    )
                ],
                pushed=True,
                gist_id="g1",
                sync_version=4,
            )
        )
        assert "c1 (modified): keep_remote" in text
        assert "Pushed to gist g1 (syncVersion 4)" in text


class TestFormatConflict:
    """Tests for conflict review output."""

    def test_command_summary(self, make_command):
        cmd = make_command(updated_at="2024-03-05T14:30:00Z", usage_count=7)
        assert format_command_summary(cmd) == "Updated: 2024-03-05 14:30 | Uses: 7"

    def test_summary_with_unparseable_date(self, make_command):
        cmd = make_command(updated_at="yesterday")
        assert format_command_summary(cmd) == "Updated: yesterday | Uses: 0"

    def test_shows_both_sides_and_diff(self, make_command):
        conflict = SyncConflict(
            command_id="x",
            local=make_command(id="x", command="ls -la", prompt="list"),
            remote=make_command(id="x", command="ls -la -h", prompt="list"),
            type=SyncConflictType.MODIFIED,
        )
        text = format_conflict(conflict)
        assert 'Conflict: "list" - Modified on both sides' in text
        assert "Local:  Updated:" in text
        assert "Remote: Updated:" in text
        assert "-ls -la" in text
        assert "+ls -la -h" in text

    def test_no_diff_when_command_equal(self, make_command):
        conflict = SyncConflict(
            command_id="x",
            local=make_command(id="x", deleted_at="2024-01-02"),
            remote=make_command(id="x"),
            type=SyncConflictType.DELETED_LOCAL,
        )
        text = format_conflict(conflict)
        assert "Deleted locally, modified remotely" in text
        assert "---" not in text


class TestReportToJson:
    """Tests for report_to_json()."""

    def test_is_json_serializable(self):
        data = report_to_json(
            _report(
                added=["a"],
                conflicts=[
                    ConflictRecord(
                        command_id="c", type=SyncConflictType.DELETED_REMOTE
                    )
                ],
            )
        )
        json.dumps(data)
        assert data["counts"]["added"] == 1
        assert data["counts"]["result"] == 5
        assert data["conflicts"] == [
            {"command_id": "c", "type": "deleted_remote", "resolution": None}
        ]
