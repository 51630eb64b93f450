"""
YAML config file discovery and loading.

cmdify-sync reads at most three YAML files: an explicit ``$CMDIFY_CONFIG``
path, a project file under ``./.cmdify/`` and a per-user file under
``~/.config/cmdify/``.  Top-level sections from the more specific file win.
Values may reference the environment as ``${NAME}`` or ``${NAME:-fallback}``
and may pull in other files with ``!include``.

Usage:
    from cmdify_sync.config_loader import load_config_files

    raw = load_config_files()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CMDIFY_CONFIG"

PROJECT_CONFIG_NAMES = ("config.yml", "config.yaml")
PROJECT_CONFIG_DIR = ".cmdify"
USER_CONFIG_PATH = Path(".config") / "cmdify" / "config.yml"

_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<fallback>.*?))?\}")


# ---------------------------------------------------------------------------
# Environment references
# ---------------------------------------------------------------------------


def expand_env_vars(text: str) -> str:
    """Substitute ``${NAME}`` / ``${NAME:-fallback}`` references in *text*.

    An unset or empty variable yields its fallback, or ``""`` without one.
    An unterminated ``${`` is kept as written.
    """
    return _ENV_REF.sub(
        lambda m: os.environ.get(m["name"]) or m["fallback"] or "", text
    )


def _expand_tree(node: Any) -> Any:
    if isinstance(node, dict):
        return {key: _expand_tree(value) for key, value in node.items()}
    if isinstance(node, list):
        return [_expand_tree(item) for item in node]
    if isinstance(node, str):
        return expand_env_vars(node)
    return node


# ---------------------------------------------------------------------------
# YAML with !include
# ---------------------------------------------------------------------------


class IncludeLoader(yaml.SafeLoader):
    """SafeLoader that understands ``!include <path>``.

    Relative include paths resolve against the including file.  Each loader
    carries the chain of files currently being read so a cycle raises
    ``ValueError`` instead of recursing forever.
    """

    chain: tuple[Path, ...] = ()

    def include(self, node: yaml.ScalarNode) -> Any:
        source = Path(self.name).resolve()
        target = Path(self.construct_scalar(node)).expanduser()
        if not target.is_absolute():
            target = source.parent / target
        target = target.resolve()

        if target in self.chain:
            cycle = " -> ".join(str(p) for p in (*self.chain, target))
            raise ValueError(f"Circular include detected: {cycle}")
        if not target.is_file():
            raise FileNotFoundError(
                f"Include file not found: {target} (referenced from {source})"
            )
        return read_yaml(target, chain=self.chain)


IncludeLoader.add_constructor("!include", IncludeLoader.include)


def read_yaml(path: Path, chain: tuple[Path, ...] = ()) -> Any:
    """Parse one YAML file, following ``!include`` directives."""
    path = path.resolve()
    with path.open(encoding="utf-8") as stream:
        loader = IncludeLoader(stream)
        loader.chain = (*chain, path)
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def find_config_files() -> list[Path]:
    """Existing config files, most specific first.

    1. ``$CMDIFY_CONFIG``
    2. ``./.cmdify/config.yml``, then ``./.cmdify/config.yaml``
    3. ``~/.config/cmdify/config.yml``
    """
    candidates = []
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())
    project_dir = Path.cwd() / PROJECT_CONFIG_DIR
    candidates.extend(project_dir / name for name in PROJECT_CONFIG_NAMES)
    candidates.append(Path.home() / USER_CONFIG_PATH)
    return [path for path in candidates if path.exists()]


def default_config_path() -> Path:
    """The file settings would be read from, even if it does not exist yet."""
    found = find_config_files()
    if found:
        return found[0]
    return Path.cwd() / PROJECT_CONFIG_DIR / PROJECT_CONFIG_NAMES[0]


_STARTER_CONFIG = """\
# cmdify-sync configuration
#
# Every setting can also come from the environment:
#   CMDIFY_GITHUB_TOKEN (or GITHUB_TOKEN), CMDIFY_API_URL, CMDIFY_DATA_DIR,
#   CMDIFY_CONFLICT_RESOLUTION, CMDIFY_HTTP_TIMEOUT, CMDIFY_CONNECT_TIMEOUT,
#   CMDIFY_DEBUG, LOG_LEVEL, LOG_FILE
#
# gist:
#   token: ${GITHUB_TOKEN}
#   api_url: https://api.github.com
#   filename: cmdify-commands.json
#   timeout: 60
#   connect_timeout: 10
#
# sync:
#   conflict_resolution: ask     # ask | keep_local | keep_remote | keep_both
#   direction: bidirectional     # bidirectional | pull | push
#
# storage:
#   data_dir: ~/.cmdify
#
# logging:
#   level: INFO
#   file: null
"""


def write_starter_config(target: Path | None = None) -> Path:
    """Create a fully commented config file unless one is already in use.

    Args:
        target: Where to write; defaults to ``default_config_path()``.

    Returns:
        The config file in use afterwards.
    """
    found = find_config_files()
    if found:
        return found[0]

    path = target or default_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Wrote starter config to %s", path)
    return path


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_config_files() -> dict[str, Any]:
    """Read every discovered file and combine their top-level sections.

    A section from a more specific file replaces the whole section from a
    less specific one.  Environment references are expanded afterwards.
    Without any config file the result is ``{}``.
    """
    combined: dict[str, Any] = {}
    for path in reversed(find_config_files()):
        logger.debug("Reading config %s", path)
        try:
            data = read_yaml(path)
        except (OSError, ValueError, yaml.YAMLError):
            logger.exception("Cannot read config %s", path)
            raise

        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring %s: top level is a %s, not a mapping",
                path,
                type(data).__name__,
            )
            continue
        combined.update(data)

    return _expand_tree(combined)
