"""Filesystem helpers."""

from pathlib import Path


def ensure_dir(path: Path) -> Path:
    """Create a directory (and parents) if missing; return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_path() -> Path:
    """Get the mail-journal data directory (~/.mail-journal)."""
    return ensure_dir(Path.home() / ".mail-journal")
