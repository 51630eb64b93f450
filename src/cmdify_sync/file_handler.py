"""Filesystem helpers for export/import files, the command store and state.

Import files may come from other machines, so they are decoded with
charset-normalizer instead of assuming UTF-8.  Everything this package
writes is UTF-8.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from charset_normalizer import from_bytes

# =============================================================================
# Paths
# =============================================================================


def resolve_input_file(path_str: str) -> Path:
    """Expand ``~`` and resolve *path_str*, which must name an existing file.

    Raises:
        ValueError: The path is missing or is not a regular file.
    """
    path = Path(path_str).expanduser().resolve()
    if not path.exists():
        raise ValueError(f"File not found: {path_str}")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {path_str}")
    return path


def resolve_output_file(path_str: str, base_dir: str | None = None) -> Path:
    """Expand and resolve a destination path.

    The file itself may be new, but its directory must already exist.

    Args:
        path_str: Destination chosen by the user.
        base_dir: When given, the destination must lie inside it.

    Raises:
        ValueError: The directory is missing, the path is a directory, or
            it escapes *base_dir*.
    """
    path = Path(path_str).expanduser().resolve()
    if path.is_dir():
        raise ValueError(f"Output path is a directory: {path}")
    if not path.parent.is_dir():
        raise ValueError(f"Output parent directory not found: {path.parent}")
    if base_dir is not None:
        root = Path(base_dir).expanduser().resolve()
        if not path.is_relative_to(root):
            raise ValueError(
                f"Output path is outside base directory: {path} not under {root}"
            )
    return path


# =============================================================================
# Reading and writing
# =============================================================================


def read_text_detected(path: Path) -> tuple[str, str]:
    """Return ``(text, encoding)`` for *path*.

    Pure ASCII is reported as ``utf-8``; undetectable bytes are decoded as
    UTF-8 with replacement characters.  A leading BOM is dropped.
    """
    data = path.read_bytes()
    if not data:
        return "", "utf-8"

    match = from_bytes(data).best()
    if match is None:
        text, encoding = data.decode("utf-8", errors="replace"), "utf-8"
    else:
        text = str(match)
        encoding = "utf-8" if match.encoding == "ascii" else match.encoding
    return text.lstrip("\ufeff"), encoding


def write_text(path: Path, text: str) -> int:
    """Write *text* as UTF-8, creating missing directories.

    Returns:
        Size of the written file in bytes.
    """
    data = text.encode("utf-8")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return len(data)


def write_json_atomic(path: Path, data: Any) -> None:
    """Replace *path* with indented JSON for *data* in a single rename.

    The JSON goes to a sibling temp file first; on any failure the temp
    file is removed and the previous content of *path* is untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, ensure_ascii=False)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
