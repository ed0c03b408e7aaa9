"""Path expansion and well-known locations.

Provides: expand_path, config/cache roots, harness detection
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

from skiller.core.errors import InvalidPathError


APP_NAME = "skiller"
CONFIG_FILE_NAME = "config.yaml"

# Well-known harness locations, checked for existence at runtime
KNOWN_HARNESS_CANDIDATES: tuple[str, ...] = (
    "~/.config/opencode/skills",
    "~/.claude/skills",
    "~/.agents/skills",
)


def clean_path(path: Path | str) -> Path:
    """Lexically clean a path without touching the filesystem."""
    return Path(os.path.normpath(str(path)))


def expand_path(path: Path | str) -> Path:
    """
    Expand environment variables and ``~`` and make the path absolute.

    Symlinks are not resolved; the result is only cleaned lexically.

    Args:
        path: Path as typed by a user or stored in config

    Returns:
        Absolute, cleaned path

    Raises:
        InvalidPathError: If the path is empty
    """
    trimmed = str(path).strip()
    if not trimmed:
        raise InvalidPathError("path is empty")

    expanded = os.path.expanduser(os.path.expandvars(trimmed))
    return Path(os.path.abspath(expanded))


def _root_from_env(variable: str, default: Path) -> Path:
    override = os.environ.get(variable, "").strip()
    if override:
        return expand_path(override)
    return default


def config_root() -> Path:
    """Base config directory ($XDG_CONFIG_HOME or ~/.config)."""
    return _root_from_env("XDG_CONFIG_HOME", Path.home() / ".config")


def config_path() -> Path:
    """Location of the skiller config file."""
    return config_root() / APP_NAME / CONFIG_FILE_NAME


def cache_root() -> Path:
    """Base cache directory ($XDG_CACHE_HOME or ~/.cache)."""
    return _root_from_env("XDG_CACHE_HOME", Path.home() / ".cache")


def registry_cache_dir(registry_id: str, root: Path | None = None) -> Path:
    """Directory owning everything cached for one registry."""
    base = root if root is not None else cache_root()
    return base / APP_NAME / "registries" / registry_id


def registry_cache_path(registry_id: str, root: Path | None = None) -> Path:
    """Working copy location for one git registry."""
    return registry_cache_dir(registry_id, root) / "repo"


def dedupe_paths(paths: Iterable[Path | str]) -> list[Path]:
    """Clean paths and drop repeats, keeping first occurrence order."""
    seen: set[Path] = set()
    out: list[Path] = []
    for path in paths:
        clean = clean_path(path)
        if clean in seen:
            continue
        seen.add(clean)
        out.append(clean)
    return out


def merge_unique(*groups: Iterable[Path | str]) -> list[Path]:
    """Order-preserving union of several path lists."""
    merged: list[Path | str] = []
    for group in groups:
        merged.extend(p for p in group if str(p).strip() and str(p) != ".")
    return dedupe_paths(merged)


def detect_known_harnesses(
    candidates: Iterable[str] = KNOWN_HARNESS_CANDIDATES,
) -> list[Path]:
    """
    Return the candidate harness directories that exist on this machine.

    Args:
        candidates: Candidate paths (may use ``~`` and env vars)

    Returns:
        Existing directories, cleaned and de-duplicated
    """
    found: list[Path] = []
    for candidate in candidates:
        try:
            expanded = expand_path(candidate)
        except InvalidPathError:
            continue
        if expanded.is_dir():
            found.append(expanded)
    return dedupe_paths(found)
