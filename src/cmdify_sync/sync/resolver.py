"""Conflict resolution strategies for the sync engine.

Provides the conflict resolution approaches a caller can plug in:

- ``InteractiveResolver``: asks a prompt callable supplied by the caller
  (the CLI, an editor dialog, a test double).  The resolver itself does
  no I/O.
- ``PolicyResolver``: applies a standing ``keep_local`` / ``keep_remote``
  / ``keep_both`` policy without prompting.

The ``create_resolver()`` factory maps config policy strings to resolver
instances, and ``resolve_conflicts()`` collects a complete resolution map
or aborts with ``CancelledError``.
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from cmdify_sync.config_schema import CONFLICT_POLICIES
from cmdify_sync.errors import CancelledError
from cmdify_sync.sync.models import ConflictResolution, SyncConflict

logger = logging.getLogger(__name__)

ConflictPrompt = Callable[[SyncConflict], "ConflictResolution | None"]


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ConflictResolver(Protocol):
    """Protocol that all conflict resolvers must satisfy."""

    def resolve(self, conflict: SyncConflict) -> ConflictResolution | None:
        """Choose a resolution for *conflict*.

        Returns:
            The chosen ``ConflictResolution``, or ``None`` when the user
            aborted the resolution flow.
        """
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Implementations
# ---------------------------------------------------------------------------


class InteractiveResolver:
    """Resolve each conflict by asking the user through *prompt*."""

    def __init__(self, prompt: ConflictPrompt) -> None:
        self._prompt = prompt

    def resolve(self, conflict: SyncConflict) -> ConflictResolution | None:
        choice = self._prompt(conflict)
        if choice is None:
            logger.info("Resolution aborted at %s", conflict.command_id)
            return None
        return ConflictResolution(choice)


class PolicyResolver:
    """Resolve every conflict with the same standing policy."""

    def __init__(self, policy: ConflictResolution) -> None:
        self.policy = ConflictResolution(policy)

    def resolve(self, conflict: SyncConflict) -> ConflictResolution:
        """Always return the configured policy."""
        return self.policy


# ---------------------------------------------------------------------------
# Factory and driver
# ---------------------------------------------------------------------------

POLICIES = CONFLICT_POLICIES


def create_resolver(
    policy: str, prompt: ConflictPrompt | None = None
) -> ConflictResolver:
    """Create a conflict resolver for a config policy string.

    Args:
        policy: One of ``"ask"``, ``"keep_local"``, ``"keep_remote"``,
            ``"keep_both"``.
        prompt: Callable used by ``"ask"``.

    Returns:
        A ``ConflictResolver`` implementation instance.

    Raises:
        ValueError: If the policy is unknown, or ``"ask"`` is requested
            without a prompt.
    """
    if policy == "ask":
        if prompt is None:
            raise ValueError("Policy 'ask' requires a prompt callable")
        return InteractiveResolver(prompt)
    if policy in POLICIES:
        return PolicyResolver(ConflictResolution(policy))
    raise ValueError(
        f"Unknown conflict policy: '{policy}'. Valid policies: {sorted(POLICIES)}"
    )


def resolve_conflicts(
    conflicts: list[SyncConflict], resolver: ConflictResolver
) -> dict[str, ConflictResolution]:
    """Collect a resolution for every conflict.

    Raises:
        CancelledError: As soon as the resolver returns ``None``.  No
            partial map is returned, so nothing can be applied.
    """
    resolutions: dict[str, ConflictResolution] = {}
    for conflict in conflicts:
        resolution = resolver.resolve(conflict)
        if resolution is None:
            raise CancelledError(
                f"Conflict resolution cancelled at '{conflict.command_id}'"
            )
        resolutions[conflict.command_id] = resolution
    return resolutions
