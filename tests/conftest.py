"""Shared pytest fixtures for cmdify-sync tests."""

from unittest.mock import Mock

import pytest
from dotenv import load_dotenv

from cmdify_sync.config import Config
from cmdify_sync.sync.models import Command

load_dotenv()


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that talk to the real GitHub API",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring the real GitHub API"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture
def mock_config(tmp_path):
    """Create a Config pointing at a temporary data directory."""
    return Config(
        github_token="ghp_test_token",
        api_url="https://api.github.com",
        data_dir=str(tmp_path / "data"),
    )


@pytest.fixture
def make_command():
    """Factory fixture for command records with fixed timestamps."""

    def _make(
        id="cmd_1",
        command="git status",
        prompt="show status",
        updated_at="2024-01-01T00:00:00.000Z",
        **fields,
    ):
        fields.setdefault("created_at", "2024-01-01T00:00:00.000Z")
        return Command(
            id=id,
            command=command,
            prompt=prompt,
            updated_at=updated_at,
            **fields,
        )

    return _make


@pytest.fixture
def mock_response():
    """Factory fixture for ``requests.Response`` mocks."""

    def _create(status_code=200, json_data=None, text=""):
        response = Mock()
        response.status_code = status_code
        response.ok = 200 <= status_code < 300
        response.json.return_value = json_data
        response.text = text
        return response

    return _create
