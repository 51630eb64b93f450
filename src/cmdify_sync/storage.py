"""Local persistent command collection.

``CommandStore`` keeps the user's commands in ``commands.json`` inside the
data directory::

    {"version": "1.0", "commands": [Command, ...]}

Deletions are soft: ``delete()`` stamps ``deleted_at`` so the deletion can
reach the other machine on the next sync.  ``visible()`` hides tombstones;
``all_records()`` is what the sync engine works with.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from cmdify_sync.file_handler import write_json_atomic
from cmdify_sync.sync.merger import merge_commands
from cmdify_sync.sync.models import PAYLOAD_VERSION, Command, now_iso
from cmdify_sync.validators import validate_command_text

logger = logging.getLogger(__name__)

STORAGE_FILENAME = "commands.json"


class CommandStore:
    """Load, mutate and persist the local command collection.

    Args:
        data_dir: Directory holding ``commands.json``.
    """

    def __init__(self, data_dir: Path) -> None:
        self.path = data_dir / STORAGE_FILENAME
        self._commands: dict[str, Command] = {}
        self.load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """(Re)load the collection from disk.

        A missing file yields an empty collection.  A corrupt file is
        logged and also yields an empty collection; it is left on disk
        until the next save.
        """
        self._commands = {}
        if not self.path.exists():
            return
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
            commands = [
                Command.model_validate(item)
                for item in data.get("commands", [])
            ]
        except (OSError, ValueError, AttributeError, ValidationError) as exc:
            logger.error("Failed to load commands from %s: %s", self.path, exc)
            return
        for cmd in commands:
            self._commands[cmd.id] = cmd

    def save(self) -> None:
        """Write the collection to disk atomically."""
        write_json_atomic(
            self.path,
            {
                "version": PAYLOAD_VERSION,
                "commands": [cmd.to_wire() for cmd in self._commands.values()],
            },
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def all_records(self) -> list[Command]:
        """Every record, tombstones included."""
        return list(self._commands.values())

    def visible(self) -> list[Command]:
        """Records that are not soft-deleted."""
        return [cmd for cmd in self._commands.values() if not cmd.is_deleted]

    def get(self, command_id: str) -> Command | None:
        return self._commands.get(command_id)

    def favorites(self) -> list[Command]:
        """Visible favorites sorted by prompt."""
        return sorted(
            (cmd for cmd in self.visible() if cmd.is_favorite),
            key=lambda cmd: cmd.prompt.lower(),
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, command: Command) -> Command:
        """Add a new record.

        Raises:
            ValueError: If the command text is invalid or the id exists.
        """
        is_valid, message = validate_command_text(command.command)
        if not is_valid:
            raise ValueError(message)
        if command.id in self._commands:
            raise ValueError(f"Command already exists: {command.id}")
        self._commands[command.id] = command
        self.save()
        return command

    def update(self, command: Command) -> Command:
        """Replace an existing record, bumping ``updated_at``.

        Raises:
            KeyError: If no record has this id.
        """
        if command.id not in self._commands:
            raise KeyError(f"Command not found: {command.id}")
        updated = command.model_copy(update={"updated_at": now_iso()})
        self._commands[command.id] = updated
        self.save()
        return updated

    def delete(self, command_id: str) -> Command:
        """Soft-delete a record so the deletion can propagate.

        Raises:
            KeyError: If no visible record has this id.
        """
        existing = self._commands.get(command_id)
        if existing is None or existing.is_deleted:
            raise KeyError(f"Command not found: {command_id}")
        now = now_iso()
        tombstone = existing.model_copy(
            update={"deleted_at": now, "updated_at": now}
        )
        self._commands[command_id] = tombstone
        self.save()
        return tombstone

    def record_usage(self, command_id: str) -> Command | None:
        """Increment the usage counter of a record."""
        existing = self._commands.get(command_id)
        if existing is None:
            return None
        now = now_iso()
        used = existing.model_copy(
            update={
                "usage_count": existing.usage_count + 1,
                "last_used_at": now,
                "updated_at": now,
            }
        )
        self._commands[command_id] = used
        self.save()
        return used

    def toggle_favorite(self, command_id: str) -> bool:
        """Flip the favorite flag; returns the new value."""
        existing = self._commands.get(command_id)
        if existing is None:
            return False
        toggled = existing.model_copy(
            update={
                "is_favorite": not existing.is_favorite,
                "updated_at": now_iso(),
            }
        )
        self._commands[command_id] = toggled
        self.save()
        return toggled.is_favorite

    def replace_all(self, commands: list[Command]) -> None:
        """Make *commands* the whole collection (after a sync or import)."""
        self._commands = {cmd.id: cmd for cmd in commands}
        self.save()

    def import_commands(self, commands: list[Command], merge: bool = True) -> int:
        """Bring in records from an import.

        Args:
            commands: Imported records.
            merge: Union with the existing collection (later
                ``updated_at`` wins per key) instead of replacing it.
                Tombstones are kept so the deletions still sync.

        Returns:
            Number of records imported.
        """
        if merge:
            self.replace_all(
                merge_commands(
                    self.all_records(),
                    commands,
                    stamp=False,
                    purge_tombstones=False,
                )
            )
        else:
            self.replace_all(commands)
        logger.info(
            "Imported %d commands (%s)",
            len(commands),
            "merged" if merge else "replaced",
        )
        return len(commands)

    def export_commands(self) -> list[Command]:
        """Records to write to an export file."""
        return self.all_records()
