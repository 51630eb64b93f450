"""
Input validation functions for cmdify-sync.

Provides validation for sync payloads read from files or the gist and for
command text entered by the user, before anything touches the local
collection.
"""

from typing import Any

# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Command")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_payload(payload: Any) -> tuple[bool, str]:
    """
    Validate the top-level shape of a sync payload.

    Args:
        payload: Parsed JSON value

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Must be a JSON object
        - 'version' must be a string
        - 'commands' must be an array of objects
        - 'exportedAt' must be a string
    """
    if not isinstance(payload, dict):
        return (
            False,
            format_validation_error("Payload", "must be a JSON object"),
        )

    if not isinstance(payload.get("version"), str):
        return (
            False,
            format_validation_error("'version'", "must be a string"),
        )

    commands = payload.get("commands")
    if not isinstance(commands, list):
        return (
            False,
            format_validation_error("'commands'", "must be an array"),
        )

    if not isinstance(payload.get("exportedAt"), str):
        return (
            False,
            format_validation_error("'exportedAt'", "must be a string"),
        )

    for index, item in enumerate(commands):
        if not isinstance(item, dict):
            return (
                False,
                format_validation_error(
                    f"Command #{index + 1}", "must be a JSON object"
                ),
            )

    return (True, "")


def validate_command_text(
    command: str, max_size: int = 100_000
) -> tuple[bool, str]:
    """
    Validate the text of a CLI command.

    Args:
        command: The command text to validate
        max_size: Maximum size in bytes (default: 100,000)

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot exceed max_size bytes
    """
    if not command or not command.strip():
        return (
            False,
            format_validation_error("Command", "cannot be empty"),
        )

    command_bytes = len(command.encode("utf-8"))
    if command_bytes > max_size:
        return (
            False,
            format_validation_error(
                "Command", f"exceeds maximum size of {max_size} bytes"
            ),
        )

    return (True, "")
