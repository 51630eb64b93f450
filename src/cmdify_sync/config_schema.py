"""Unified configuration schema for cmdify_sync.

Defines Pydantic models for the YAML config structure with dedicated
sections for the gist transport, sync behaviour, local storage and
logging.

Usage:
    from cmdify_sync.config_schema import UnifiedConfig, build_config

    raw = load_config_files()
    unified = build_config(raw)
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_GIST_FILENAME = "cmdify-commands.json"
CONFLICT_POLICIES: tuple[str, ...] = ("ask", "keep_local", "keep_remote", "keep_both")


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class GistConfig(BaseModel):
    """GitHub gist transport settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    token: str | None = Field(
        default=None, description="GitHub token with the 'gist' scope"
    )
    api_url: str = Field(
        default=DEFAULT_API_URL, description="GitHub API base URL"
    )
    filename: str = Field(
        default=DEFAULT_GIST_FILENAME,
        description="File name of the payload inside the gist",
    )
    timeout: float = Field(
        default=60.0,
        gt=0,
        le=600,
        description="HTTP read timeout in seconds",
    )
    connect_timeout: float = Field(
        default=10.0,
        gt=0,
        le=600,
        description="HTTP connect timeout in seconds",
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Sync behaviour.

    Attributes:
        conflict_resolution: ``ask`` prompts per conflict; the other values
            are standing policies applied without prompting.
        direction: Default direction for ``cmdify-sync sync``.
    """

    conflict_resolution: Literal[
        "ask", "keep_local", "keep_remote", "keep_both"
    ] = Field(default="ask", description="Conflict policy")
    direction: Literal["bidirectional", "pull", "push"] = Field(
        default="bidirectional", description="Default sync direction"
    )

    model_config = {"frozen": True}


class StorageConfig(BaseModel):
    """Local storage settings."""

    data_dir: str | None = Field(
        default=None,
        description="Directory holding commands.json and sync_state.json",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    gist: GistConfig = Field(default_factory=GistConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_config_files()``.

    Handles missing sections gracefully; anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
