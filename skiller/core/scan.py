"""Skill discovery.

A skill is a directory with a ``SKILL.md`` regular file directly inside it.
Registries are walked recursively; harnesses are listed one level deep.
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

from skiller.core.errors import MissingPathError, NotDirectoryError
from skiller.core.types import Skill


logger = logging.getLogger(__name__)

# Marker file that qualifies a directory as a skill
SKILL_FILE_NAME = "SKILL.md"


def has_skill_marker(path: Path | str) -> bool:
    """Check for a non-directory SKILL.md directly inside ``path``."""
    marker = Path(path) / SKILL_FILE_NAME
    try:
        info = marker.stat()
    except (FileNotFoundError, NotADirectoryError):
        return False
    return not stat.S_ISDIR(info.st_mode)


def scan_registry(root: Path | str) -> list[Skill]:
    """
    Find every skill below a registry root.

    Symlinks are never followed or reported, and a matched skill is treated as
    a leaf: nothing beneath it is scanned.

    Args:
        root: Registry directory to walk

    Returns:
        Skills sorted by (name, path)

    Raises:
        MissingPathError: If the root does not exist
        NotDirectoryError: If the root is not a directory
    """
    clean_root = Path(os.path.abspath(root))
    if not clean_root.exists():
        raise MissingPathError(clean_root, "registry path")
    if not clean_root.is_dir():
        raise NotDirectoryError(clean_root, "registry path")

    skills: list[Skill] = []
    pending: list[Path] = [clean_root]

    while pending:
        current = pending.pop()
        with os.scandir(current) as entries:
            for entry in entries:
                if entry.is_symlink():
                    continue
                if not entry.is_dir(follow_symlinks=False):
                    continue

                path = Path(entry.path)
                if has_skill_marker(path):
                    skills.append(
                        Skill(name=entry.name, path=str(path), parent=str(clean_root))
                    )
                    continue

                pending.append(path)

    logger.debug("Found %d skill(s) in registry %s", len(skills), clean_root)
    return sorted(skills, key=lambda s: (s.name, s.path))


def scan_harness(root: Path | str) -> list[Skill]:
    """
    List the skills installed directly inside a harness directory.

    A harness that does not exist yet has no skills.

    Raises:
        NotDirectoryError: If the harness path exists but is not a directory
    """
    clean_root = Path(os.path.abspath(root))
    if not clean_root.exists():
        return []
    if not clean_root.is_dir():
        raise NotDirectoryError(clean_root, "harness path")

    skills: list[Skill] = []
    with os.scandir(clean_root) as entries:
        for entry in entries:
            if entry.is_symlink() or not entry.is_dir(follow_symlinks=False):
                continue
            if not has_skill_marker(entry.path):
                continue
            skills.append(
                Skill(name=entry.name, path=entry.path, parent=str(clean_root))
            )

    return sorted(skills, key=lambda s: s.name)
