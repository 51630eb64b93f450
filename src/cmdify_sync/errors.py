"""Error taxonomy shared by the transports, the merge flow and the CLI.

- ``TransportError``: the remote store could not be reached or answered
  with a non-2xx status (after the single "gist vanished" retry).
- ``FormatError``: a payload read from a file or the remote does not have
  the expected shape.
- ``CancelledError``: the user aborted a file dialog or the conflict
  resolution flow.  This is a normal termination, not a failure.
"""

from __future__ import annotations


class CmdifySyncError(Exception):
    """Base class for all cmdify-sync errors."""


class TransportError(CmdifySyncError):
    """Remote store request failed.

    Attributes:
        status: HTTP status code, or ``None`` for network-level failures
            (connection refused, timeout, ...).
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class FormatError(CmdifySyncError):
    """Payload is malformed or does not match the sync payload schema."""


class CancelledError(CmdifySyncError):
    """User aborted the operation; nothing was written."""
