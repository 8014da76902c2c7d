"""vimmentor package."""

from __future__ import annotations

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

__all__ = ["__version__"]

DISTRIBUTION = "vim-mentor"


def _checkout_version() -> str | None:
    """Version from pyproject.toml when imported from a source checkout."""
    pyproject = Path(__file__).resolve().parents[2] / "pyproject.toml"
    if not pyproject.is_file():
        return None
    with pyproject.open("rb") as handle:
        project = tomllib.load(handle).get("project", {})
    if project.get("name") != DISTRIBUTION:
        return None
    return project.get("version")


def _resolve_version() -> str:
    checkout = _checkout_version()
    if checkout is not None:
        return checkout
    try:
        return version(DISTRIBUTION)
    except PackageNotFoundError:
        return "0+unknown"


__version__ = _resolve_version()
