"""Tests for input validation helpers."""

import pytest

from cmdify_sync.validators import (
    format_validation_error,
    validate_command_text,
    validate_payload,
)


def test_format_validation_error():
    assert format_validation_error("Command", "cannot be empty") == (
        "Command cannot be empty"
    )


class TestValidatePayload:
    """Tests for validate_payload()."""

    def test_valid(self):
        assert validate_payload(
            {"version": "1.0", "commands": [], "exportedAt": "2024-01-01"}
        ) == (True, "")

    def test_extra_keys_allowed(self):
        ok, _ = validate_payload(
            {
                "version": "1.0",
                "commands": [{}],
                "exportedAt": "x",
                "syncVersion": 3,
            }
        )
        assert ok

    @pytest.mark.parametrize(
        "payload,fragment",
        [
            ("text", "Payload"),
            ({"commands": [], "exportedAt": "x"}, "'version'"),
            ({"version": "1", "exportedAt": "x"}, "'commands'"),
            ({"version": "1", "commands": "[]", "exportedAt": "x"}, "'commands'"),
            ({"version": "1", "commands": [], "exportedAt": 0}, "'exportedAt'"),
            ({"version": "1", "commands": [{}, 2], "exportedAt": "x"}, "Command #2"),
        ],
    )
    def test_invalid(self, payload, fragment):
        ok, message = validate_payload(payload)
        assert not ok
        assert fragment in message


class TestValidateCommandText:
    """Tests for validate_command_text()."""

    def test_valid(self):
        assert validate_command_text("ls -la") == (True, "")

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_empty(self, text):
        ok, message = validate_command_text(text)
        assert not ok
        assert "cannot be empty" in message

    def test_too_large(self):
        ok, message = validate_command_text("é" * 6, max_size=10)
        assert not ok
        assert "10 bytes" in message

    def test_at_limit(self):
        assert validate_command_text("x" * 10, max_size=10)[0]
