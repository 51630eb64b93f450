"""File transport: export and import the sync payload through a local file.

Writes the same ``SyncPayload`` JSON used by the gist, so an export from
one machine can be imported on another without network access.

The file picker and the merge/replace choice are supplied by the caller
as callables (a CLI argument, an editor dialog, a test double).  Either
returning ``None`` cancels the operation with ``CancelledError`` before
anything is written.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Literal

from pydantic import ValidationError

from cmdify_sync.errors import CancelledError, FormatError
from cmdify_sync.file_handler import (
    read_text_detected,
    resolve_input_file,
    resolve_output_file,
    write_text,
)
from cmdify_sync.sync.models import SyncPayload
from cmdify_sync.validators import validate_payload

if TYPE_CHECKING:
    from cmdify_sync.storage import CommandStore

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_NAME = "cmdify-commands.json"

ImportMode = Literal["merge", "replace"]
PathPicker = Callable[[], "str | Path | None"]
ModePicker = Callable[[SyncPayload], "ImportMode | None"]


def parse_payload(text: str) -> SyncPayload:
    """Parse and validate payload JSON.

    Raises:
        FormatError: On invalid JSON or a payload of the wrong shape.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise FormatError(f"Invalid command file format: {e}") from e

    is_valid, message = validate_payload(data)
    if not is_valid:
        raise FormatError(f"Invalid command file format: {message}")

    try:
        return SyncPayload.model_validate(data)
    except ValidationError as e:
        raise FormatError(f"Invalid command file format: {e}") from e


class FileSync:
    """Import/export the local collection to a user-chosen file.

    Args:
        store: The local command store.
    """

    def __init__(self, store: CommandStore) -> None:
        self.store = store

    def export_to_file(self, pick_path: PathPicker) -> int:
        """Write every local record (tombstones included) to a file.

        Args:
            pick_path: Returns the destination, or ``None`` to cancel.

        Returns:
            Number of records written.  Zero when there is nothing to
            export, in which case no file is written.

        Raises:
            CancelledError: If the picker returned ``None``.
            ValueError: If the destination is not writable.
        """
        commands = self.store.export_commands()
        if not commands:
            logger.info("No commands to export")
            return 0

        chosen = pick_path()
        if chosen is None:
            raise CancelledError("Export cancelled")
        target = resolve_output_file(str(chosen))

        payload = SyncPayload(commands=commands)
        write_text(target, json.dumps(payload.to_wire(), indent=2, ensure_ascii=False))
        logger.info("Exported %d commands to %s", len(commands), target)
        return len(commands)

    def import_from_file(
        self, pick_path: PathPicker, pick_mode: ModePicker
    ) -> int:
        """Read a payload file and merge it into, or replace, the collection.

        Args:
            pick_path: Returns the source file, or ``None`` to cancel.
            pick_mode: Given the parsed payload, returns ``"merge"`` or
                ``"replace"``, or ``None`` to cancel.

        Returns:
            Number of records imported.

        Raises:
            CancelledError: If either picker returned ``None``.
            FormatError: If the file is not a valid payload.  The local
                collection is left untouched.
            ValueError: If the source file does not exist.
        """
        chosen = pick_path()
        if chosen is None:
            raise CancelledError("Import cancelled")
        source = resolve_input_file(str(chosen))

        content, encoding = read_text_detected(source)
        logger.debug("Read %s (%s)", source, encoding)
        payload = parse_payload(content)

        mode = pick_mode(payload)
        if mode is None:
            raise CancelledError("Import cancelled")
        if mode not in ("merge", "replace"):
            raise ValueError(f"Unknown import mode: '{mode}'")

        return self.store.import_commands(
            payload.commands, merge=(mode == "merge")
        )
