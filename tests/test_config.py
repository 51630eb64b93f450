"""Tests for cmdify_sync.config: env-var config loading and validation.

NOT to be confused with test_config_loader.py (YAML discovery) or
test_config_schema.py (Pydantic models).
"""

import logging

import pytest

from cmdify_sync.config import Config, load_config, validate_config
from cmdify_sync.config_schema import build_config

_ENV_VARS = (
    "CMDIFY_GITHUB_TOKEN",
    "GITHUB_TOKEN",
    "CMDIFY_API_URL",
    "CMDIFY_DATA_DIR",
    "CMDIFY_CONFLICT_RESOLUTION",
    "CMDIFY_HTTP_TIMEOUT",
    "CMDIFY_CONNECT_TIMEOUT",
    "CMDIFY_DEBUG",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    """Tests for validate_config()."""

    def test_defaults_are_valid(self):
        validate_config(Config())

    def test_trailing_slash_removed(self):
        config = Config(api_url="https://github.example.com/api/v3/")
        validate_config(config)
        assert config.api_url == "https://github.example.com/api/v3"

    def test_bad_scheme(self):
        with pytest.raises(ValueError, match="must start with http"):
            validate_config(Config(api_url="ftp://example.com"))

    def test_missing_hostname(self):
        with pytest.raises(ValueError, match="hostname"):
            validate_config(Config(api_url="https://"))

    def test_unknown_policy(self):
        with pytest.raises(ValueError, match="conflict resolution"):
            validate_config(Config(conflict_resolution="newest"))

    @pytest.mark.parametrize("timeout", [0, -1, 601])
    def test_timeout_out_of_range(self, timeout):
        with pytest.raises(ValueError, match="timeout"):
            validate_config(Config(http_timeout=timeout))

    def test_token_required_only_when_asked(self):
        validate_config(Config())
        with pytest.raises(ValueError, match="GitHub token not found"):
            validate_config(Config(), require_token=True)

    def test_plain_http_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            validate_config(Config(api_url="http://localhost:8080"))
        assert "plain HTTP" in caplog.text


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for load_config() precedence."""

    def test_zero_config_defaults(self):
        config = load_config()
        assert config.github_token == ""
        assert config.api_url == "https://api.github.com"
        assert config.conflict_resolution == "ask"
        assert config.http_timeout == 60.0
        assert config.data_path.name == ".cmdify"

    def test_env_token(self, monkeypatch):
        monkeypatch.setenv("CMDIFY_GITHUB_TOKEN", "env-token")
        assert load_config().github_token == "env-token"

    def test_github_token_fallback(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "gh-token")
        assert load_config().github_token == "gh-token"

    def test_cli_beats_env(self, monkeypatch):
        monkeypatch.setenv("CMDIFY_GITHUB_TOKEN", "env-token")
        monkeypatch.setenv("CMDIFY_CONFLICT_RESOLUTION", "keep_local")
        config = load_config(token="cli-token", conflict_resolution="keep_both")
        assert config.github_token == "cli-token"
        assert config.conflict_resolution == "keep_both"

    def test_env_beats_yaml(self, monkeypatch):
        monkeypatch.setenv("CMDIFY_DATA_DIR", "/env/dir")
        unified = build_config(
            {"storage": {"data_dir": "/yaml/dir"}, "gist": {"token": "yaml"}}
        )
        config = load_config(unified=unified)
        assert config.data_dir == "/env/dir"
        assert config.github_token == "yaml"

    def test_yaml_values_used(self):
        unified = build_config(
            {
                "gist": {"timeout": 15, "filename": "mine.json"},
                "sync": {"conflict_resolution": "keep_remote"},
            }
        )
        config = load_config(unified=unified)
        assert config.http_timeout == 15
        assert config.gist_filename == "mine.json"
        assert config.conflict_resolution == "keep_remote"

    def test_env_timeout(self, monkeypatch):
        monkeypatch.setenv("CMDIFY_HTTP_TIMEOUT", "5.5")
        assert load_config().http_timeout == 5.5

    def test_env_timeout_not_a_number(self, monkeypatch):
        monkeypatch.setenv("CMDIFY_HTTP_TIMEOUT", "soon")
        with pytest.raises(ValueError, match="CMDIFY_HTTP_TIMEOUT"):
            load_config()

    def test_connect_timeout_from_yaml(self):
        config = load_config(
            unified=build_config({"gist": {"connect_timeout": 3}})
        )
        assert config.connect_timeout == 3
        assert config.http_timeout == 60.0

    def test_env_connect_timeout_beats_yaml(self, monkeypatch):
        monkeypatch.setenv("CMDIFY_CONNECT_TIMEOUT", "2.5")
        config = load_config(
            unified=build_config({"gist": {"connect_timeout": 3}})
        )
        assert config.connect_timeout == 2.5

    def test_env_connect_timeout_out_of_range(self, monkeypatch):
        monkeypatch.setenv("CMDIFY_CONNECT_TIMEOUT", "0")
        with pytest.raises(ValueError, match="connect timeout"):
            load_config()

    def test_env_debug(self, monkeypatch):
        monkeypatch.setenv("CMDIFY_DEBUG", "yes")
        assert load_config().debug is True

    def test_require_token(self):
        with pytest.raises(ValueError, match="GitHub token"):
            load_config(require_token=True)

    def test_token_whitespace_stripped(self):
        assert load_config(token="  abc \n").github_token == "abc"
