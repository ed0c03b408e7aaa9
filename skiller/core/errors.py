"""Exception types raised by skiller core modules."""

from __future__ import annotations

from pathlib import Path


class SkillerError(Exception):
    """Base class for all skiller errors."""


class InvalidPathError(SkillerError, ValueError):
    """A path argument was empty or could not be expanded."""


class MissingPathError(SkillerError):
    """A required file or directory does not exist."""

    def __init__(self, path: Path | str, what: str = "path") -> None:
        self.path = Path(path)
        super().__init__(f"{what} not found: {self.path}")


class NotDirectoryError(SkillerError):
    """An entry exists where a directory was expected, but is not one."""

    def __init__(self, path: Path | str, what: str = "path") -> None:
        self.path = Path(path)
        super().__init__(f"{what} is not a directory: {self.path}")


class InvalidRegistryError(SkillerError):
    """A registry definition is malformed or its source is not usable."""


class InvalidSkillMarkerError(SkillerError):
    """A directory was expected to be a skill but lacks a valid SKILL.md."""

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = Path(path)
        super().__init__(f"not a valid installed skill: {self.path} ({reason})")


class UnknownConflictActionError(SkillerError, ValueError):
    """An install was attempted with a conflict action that is not supported."""


class ConfigError(SkillerError):
    """The configuration file exists but could not be decoded."""

    def __init__(self, path: Path | str, message: str) -> None:
        self.path = Path(path)
        super().__init__(f"invalid config {self.path}: {message}")


class SyncError(SkillerError):
    """A git step failed while syncing a registry cache.

    Attributes:
        step: Name of the failing step (clone, fetch, reset, origin-url)
        output: Combined stdout/stderr captured from git, if any
    """

    def __init__(self, step: str, message: str, output: str = "") -> None:
        self.step = step
        self.output = output
        self.message = message
        super().__init__(self._format())

    def _format(self) -> str:
        output = self.output.strip()
        if not output:
            return f"{self.step}: {self.message}"
        return f"{self.step}: {self.message} ({output})"


class SyncTimeoutError(SyncError):
    """A git step exceeded the sync timeout and was terminated."""
