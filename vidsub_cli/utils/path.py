"""
Utilities for configuration locations and safe output filenames.
"""

import os
from pathlib import Path

from pathvalidate import sanitize_filename


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "vidsub-cli"


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def subtitle_filename(title: str, extension: str) -> str:
    """Builds a filesystem-safe `<title>.<extension>` name."""
    stem = sanitize_filename(title, platform="universal").strip() or "subtitles"
    return f"{stem}.{extension}"
