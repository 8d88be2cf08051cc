"""Local filesystem helpers for the upload tools."""

from __future__ import annotations

from pathlib import Path


def find_newest_file(directory: str | Path, extension: str = ".sfc") -> Path:
    """Return the most recently modified file in ``directory`` ending in ``extension``.

    Raises:
        FileNotFoundError: If the directory holds no matching file.
    """
    directory = Path(directory)
    candidates = [
        p for p in directory.iterdir()
        if p.is_file() and p.name.lower().endswith(extension.lower())
    ]
    if not candidates:
        raise FileNotFoundError(f"No {extension} file found in {directory}")
    return max(candidates, key=lambda p: p.stat().st_mtime)


def remote_join(directory: str, name: str) -> str:
    """Join a device directory and an entry name with ``/``."""
    return f"{directory.rstrip('/')}/{name}"


def remote_basename(path: str) -> str:
    """Last component of a device path."""
    return path.rstrip("/").split("/")[-1]
