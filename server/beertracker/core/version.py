from __future__ import annotations

import os
import re
import tomllib
from importlib import metadata
from pathlib import Path


DIST_NAME = "beer-tracker-server"
VERSION_ENV_VAR = "BEERTRACKER_VERSION"
FALLBACK_VERSION = "0.0.0"

_SEMVER_RE = re.compile(r"^\d+\.\d+\.\d+$")
_PYPROJECT = Path(__file__).resolve().parents[3] / "pyproject.toml"


def _installed_version() -> str | None:
    try:
        return metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        return None


def _source_tree_version(pyproject: Path = _PYPROJECT) -> str | None:
    """Version from the checkout's pyproject.toml, for runs without an install."""
    if not pyproject.is_file():
        return None
    try:
        data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError):
        return None
    project = data.get("project")
    if not isinstance(project, dict):
        return None
    v = project.get("version")
    return v if isinstance(v, str) else None


def get_app_version() -> str:
    """Resolve the served version: env override, then source tree, then installed dist."""
    candidates = (os.getenv(VERSION_ENV_VAR), _source_tree_version(), _installed_version())
    for candidate in candidates:
        if candidate and _SEMVER_RE.match(candidate.strip()):
            return candidate.strip()
    return FALLBACK_VERSION
