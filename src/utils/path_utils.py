"""
Path Utility Functions
===================

Filesystem helpers for output locations.

Functions:
    ensure_dirs_exist: Create directories if they don't exist.
    safe_file_name: Turn a free-form label (a place name) into a file name stem.

Typical Usage:
    >>> from src.utils.path_utils import ensure_dirs_exist, safe_file_name
    >>> ensure_dirs_exist([output_dir])
    >>> stem = safe_file_name("Culver City")  # "culver_city"
"""

# Standard library imports
import os
import re
from pathlib import Path
from typing import List, Union


def ensure_dirs_exist(paths: List[Union[str, Path]]) -> None:
    """Ensure that directories exist, creating them if needed.

    Args:
        paths: List of path objects or strings to check/create
    """
    for path in paths:
        os.makedirs(path, exist_ok=True)


def safe_file_name(label: str) -> str:
    """Lower-case ``label`` and collapse anything but letters and digits to '_'."""
    stem = re.sub(r"[^a-zA-Z0-9]+", "_", label or "").strip("_").lower()
    return stem or "output"
