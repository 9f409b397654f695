"""
Idea Archiver - Version info.

Version is read from package metadata when installed, else pyproject.toml.
"""

from __future__ import annotations

from pathlib import Path

_FALLBACK_VERSION = "0.1.0"


def _version_from_pyproject() -> str | None:
    try:
        import tomllib
    except ImportError:
        return None
    pyproject = Path(__file__).resolve().parent.parent / "pyproject.toml"
    if not pyproject.exists():
        return None
    try:
        with open(pyproject, "rb") as fh:
            data = tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError):
        return None
    return data.get("project", {}).get("version")


def _get_version() -> str:
    """Return package version from metadata, pyproject, or fallback."""
    from importlib.metadata import PackageNotFoundError, version

    try:
        return version("idea-archiver")
    except PackageNotFoundError:
        pass
    return _version_from_pyproject() or _FALLBACK_VERSION


VERSION = _get_version()
