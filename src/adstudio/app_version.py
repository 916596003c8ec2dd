"""Version lookup for the running AdStudio build."""

from __future__ import annotations

from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

import tomllib

DISTRIBUTION = "adstudio"
UNKNOWN_VERSION = "0.0.0+local"

_PYPROJECT = Path(__file__).resolve().parents[2] / "pyproject.toml"


def _source_tree_version() -> str:
    if not _PYPROJECT.is_file():
        return UNKNOWN_VERSION
    with _PYPROJECT.open("rb") as fh:
        project = tomllib.load(fh).get("project", {})
    return str(project.get("version") or UNKNOWN_VERSION)


@lru_cache(maxsize=None)
def get_app_version() -> str:
    """Installed distribution version, else the version in the source tree's pyproject."""
    try:
        return version(DISTRIBUTION)
    except PackageNotFoundError:
        return _source_tree_version()
