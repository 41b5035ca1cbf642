"""Environment helper utilities.

Loads a `.env` file from the project root so that optimizer settings
(``OPTIMIZER_CONFIG_DIR``, ``OPTIMIZER_LOG_LEVEL``) defined there become
available via ``os.getenv``. Variables already set in the environment win.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

__all__ = ["load_project_dotenv", "get_config_dir"]

CONFIG_DIR_ENV_VAR = "OPTIMIZER_CONFIG_DIR"
PROJECT_MARKER = "pyproject.toml"
MAX_SEARCH_DEPTH = 10


def _find_project_root(start: Path | None = None) -> Path:
    """Closest directory at or above ``start`` holding `pyproject.toml`."""
    here = Path(__file__).resolve().parent
    start = start or here
    for candidate in [start, *start.parents][:MAX_SEARCH_DEPTH]:
        if (candidate / PROJECT_MARKER).exists():
            return candidate
    return here


def load_project_dotenv() -> Path | None:
    """Load the project-level `.env`; returns its path, or None when absent."""
    dotenv_path = _find_project_root() / ".env"
    if not dotenv_path.exists():
        return None
    load_dotenv(dotenv_path=dotenv_path, override=False)
    return dotenv_path


def get_config_dir(default: Path) -> Path:
    """Directory holding the YAML config layers, overridable from the environment."""
    configured = os.getenv(CONFIG_DIR_ENV_VAR)
    if configured:
        return Path(configured).expanduser()
    return default
