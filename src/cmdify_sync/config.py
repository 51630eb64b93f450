"""Runtime configuration for cmdify-sync.

Reads settings from CLI args, environment variables, .env files, and the
YAML config file.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    CMDIFY_GITHUB_TOKEN: GitHub token with the gist scope (GITHUB_TOKEN is
        accepted as a fallback). Only required for remote operations.
    CMDIFY_API_URL: GitHub API base URL (default: https://api.github.com)
    CMDIFY_DATA_DIR: Directory for commands.json and sync_state.json
        (default: ~/.cmdify)
    CMDIFY_CONFLICT_RESOLUTION: ask, keep_local, keep_remote or keep_both
    CMDIFY_HTTP_TIMEOUT: HTTP read timeout in seconds (default: 60)
    CMDIFY_CONNECT_TIMEOUT: HTTP connect timeout in seconds (default: 10)
    CMDIFY_DEBUG: Enable debug logging (true, 1, yes or on)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from .config_schema import (
    CONFLICT_POLICIES,
    DEFAULT_API_URL,
    DEFAULT_GIST_FILENAME,
    UnifiedConfig,
)

logger = logging.getLogger(__name__)


def _default_data_dir() -> str:
    return str(Path.home() / ".cmdify")


@dataclass
class Config:
    github_token: str = ""
    api_url: str = DEFAULT_API_URL
    gist_filename: str = DEFAULT_GIST_FILENAME
    data_dir: str = field(default_factory=_default_data_dir)
    conflict_resolution: str = "ask"
    http_timeout: float = 60.0
    connect_timeout: float = 10.0
    debug: bool = False

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()


def _env_seconds(name: str, fallback: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return fallback
    try:
        return float(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {name} '{raw}': must be a number of seconds"
        ) from None


def validate_config(config: Config, require_token: bool = False) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.
        require_token: Also require a GitHub token (remote operations).

    Raises:
        ValueError: If the API URL is malformed, the policy is unknown, the
            timeout is out of range, or a required token is missing.
    """
    config.api_url = config.api_url.strip()

    if not config.api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid API URL '{config.api_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.api_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid API URL '{config.api_url}': URL must include a hostname"
        )

    config.api_url = config.api_url.removesuffix("/")

    if config.conflict_resolution not in CONFLICT_POLICIES:
        raise ValueError(
            f"Invalid conflict resolution '{config.conflict_resolution}': "
            f"must be one of {', '.join(CONFLICT_POLICIES)}"
        )

    for label, value in (
        ("HTTP timeout", config.http_timeout),
        ("connect timeout", config.connect_timeout),
    ):
        if not (0 < value <= 600):
            raise ValueError(
                f"Invalid {label} '{value}': must be between 0 and 600 seconds"
            )

    if require_token and not config.github_token.strip():
        raise ValueError(
            "GitHub token not found. Set CMDIFY_GITHUB_TOKEN environment variable, "
            "pass --token, or add 'token' to the gist section of config.yml."
        )

    if config.api_url.startswith("http://"):
        logger.warning(
            "WARNING: API URL uses plain HTTP; the token is sent unencrypted."
        )


def load_config(
    token: str | None = None,
    api_url: str | None = None,
    data_dir: str | None = None,
    conflict_resolution: str | None = None,
    debug: bool = False,
    unified: UnifiedConfig | None = None,
    require_token: bool = False,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > YAML (``unified``) > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        token: Override GitHub token.
        api_url: Override API base URL.
        data_dir: Override data directory.
        conflict_resolution: Override conflict policy.
        debug: Enable debug logging (CLI flag).
        unified: Values from the YAML config file, used as fallback.
        require_token: Fail when no token is found.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a value is invalid or a required token is missing.
    """
    yaml_cfg = unified or UnifiedConfig()

    final_token = (
        token
        or os.getenv("CMDIFY_GITHUB_TOKEN")
        or os.getenv("GITHUB_TOKEN")
        or yaml_cfg.gist.token
        or ""
    )

    final_api_url = (
        api_url or os.getenv("CMDIFY_API_URL") or yaml_cfg.gist.api_url
    )

    final_data_dir = (
        data_dir
        or os.getenv("CMDIFY_DATA_DIR")
        or yaml_cfg.storage.data_dir
        or _default_data_dir()
    )

    final_policy = (
        conflict_resolution
        or os.getenv("CMDIFY_CONFLICT_RESOLUTION")
        or yaml_cfg.sync.conflict_resolution
    )

    final_timeout = _env_seconds("CMDIFY_HTTP_TIMEOUT", yaml_cfg.gist.timeout)
    final_connect_timeout = _env_seconds(
        "CMDIFY_CONNECT_TIMEOUT", yaml_cfg.gist.connect_timeout
    )

    if debug:
        final_debug = True
    else:
        env_debug = os.getenv("CMDIFY_DEBUG")
        final_debug = (
            env_debug is not None
            and env_debug.lower() in ("true", "1", "yes", "on")
        )

    config = Config(
        github_token=final_token.strip(),
        api_url=final_api_url,
        gist_filename=yaml_cfg.gist.filename,
        data_dir=final_data_dir,
        conflict_resolution=final_policy,
        http_timeout=final_timeout,
        connect_timeout=final_connect_timeout,
        debug=final_debug,
    )

    validate_config(config, require_token=require_token)

    return config
