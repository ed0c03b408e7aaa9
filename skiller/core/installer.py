"""Skill installer module.

Provides functionality to install skill folders into a harness directory and
to uninstall them again.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from dataclasses import dataclass
from pathlib import Path

from skiller.core.errors import (
    InvalidSkillMarkerError,
    MissingPathError,
    NotDirectoryError,
    UnknownConflictActionError,
)
from skiller.core.fsutil import copy_tree
from skiller.core.scan import SKILL_FILE_NAME
from skiller.core.types import ConflictAction


logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    """Result of an install operation.

    ``conflict`` reports that the destination was occupied; it is an outcome
    to branch on, not a failure.
    """
    installed: bool
    conflict: bool
    renamed: bool
    name: str
    destination: str

    @property
    def message(self) -> str:
        if not self.installed:
            return f"Skipped '{self.name}': already installed at {self.destination}"
        if self.renamed:
            return f"Installed as '{self.name}' at {self.destination}"
        if self.conflict:
            return f"Replaced '{self.name}' at {self.destination}"
        return f"Installed '{self.name}' at {self.destination}"


def _occupied(path: Path) -> bool:
    return os.path.lexists(path)


def _remove_entry(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def next_available_destination(harness: Path, skill_name: str) -> tuple[Path, str]:
    """Find the first free ``<name>-N`` (N >= 2) inside ``harness``."""
    suffix = 2
    while True:
        candidate_name = f"{skill_name}-{suffix}"
        candidate = harness / candidate_name
        if not _occupied(candidate):
            return candidate, candidate_name
        suffix += 1


def install_skill(
    source: Path | str,
    harness: Path | str,
    conflict_action: ConflictAction | str = ConflictAction.SKIP,
) -> InstallResult:
    """
    Copy a skill folder into a harness.

    Args:
        source: Skill directory to copy
        harness: Harness directory (created if missing)
        conflict_action: What to do if ``harness/<name>`` already exists

    Returns:
        InstallResult describing what happened

    Raises:
        MissingPathError: If the source does not exist
        NotDirectoryError: If the source is not a directory
        UnknownConflictActionError: If there is a conflict and the action is unknown
    """
    source_path = Path(os.path.abspath(source))
    harness_path = Path(harness)

    if not source_path.exists():
        raise MissingPathError(source_path, "skill source")
    if not source_path.is_dir():
        raise NotDirectoryError(source_path, "skill source")

    harness_path.mkdir(parents=True, exist_ok=True)

    skill_name = source_path.name
    destination = harness_path / skill_name
    result = InstallResult(
        installed=False,
        conflict=False,
        renamed=False,
        name=skill_name,
        destination=str(destination),
    )

    if _occupied(destination):
        result.conflict = True
        try:
            action = ConflictAction(conflict_action)
        except ValueError:
            raise UnknownConflictActionError(
                f"unknown conflict action: {conflict_action!r}"
            ) from None

        logger.debug("Conflict at %s, resolving with %s", destination, action.value)
        if action is ConflictAction.SKIP:
            return result
        if action is ConflictAction.OVERWRITE:
            _remove_entry(destination)
        elif action is ConflictAction.RENAME:
            destination, renamed_to = next_available_destination(harness_path, skill_name)
            result.name = renamed_to
            result.destination = str(destination)
            result.renamed = True

    copy_tree(source_path, destination)
    result.installed = True
    logger.debug("Installed %s -> %s", source_path, destination)
    return result


def uninstall_skill(harness: Path | str, skill_name: str) -> None:
    """
    Remove an installed skill from a harness.

    The target must be a directory holding a SKILL.md file; anything else is
    refused so arbitrary directories are never deleted.

    Raises:
        MissingPathError: If the skill directory does not exist
        NotDirectoryError: If the target is not a directory
        InvalidSkillMarkerError: If the name is not a plain folder name or the
            target has no valid SKILL.md
    """
    if skill_name in ("", ".", "..") or "/" in skill_name or os.sep in skill_name:
        raise InvalidSkillMarkerError(Path(harness) / skill_name, "not a skill folder name")

    target = Path(harness) / skill_name
    if not target.exists():
        raise MissingPathError(target, "skill")
    if not target.is_dir():
        raise NotDirectoryError(target, "skill")

    marker = target / SKILL_FILE_NAME
    try:
        marker_info = marker.stat()
    except FileNotFoundError:
        raise InvalidSkillMarkerError(target, f"{SKILL_FILE_NAME} missing") from None
    if stat.S_ISDIR(marker_info.st_mode):
        raise InvalidSkillMarkerError(target, f"{SKILL_FILE_NAME} is a directory")

    if target.is_symlink():
        target.unlink()
    else:
        shutil.rmtree(target)
    logger.debug("Uninstalled %s", target)
