"""Core type definitions for skiller."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class RegistryType(str, Enum):
    """Kind of skill source a registry points at."""

    LOCAL = "local"
    GIT = "git"


class ConflictAction(str, Enum):
    """What to do when an install destination is already occupied."""

    SKIP = "skip"
    OVERWRITE = "overwrite"
    RENAME = "rename"


class Registry(BaseModel):
    """A configured skill source.

    ``type`` is left empty when it should be inferred from ``source`` during
    normalization. ``id`` is derived from ``(type, source, ref, subdir)`` when
    blank, never from ``name``.
    """

    id: str = ""
    name: str = ""
    type: str = ""
    source: str = ""
    ref: str = ""
    subdir: str = ""

    @property
    def is_remote(self) -> bool:
        """Whether the registry is backed by a git repository."""
        return self.type == RegistryType.GIT

    @property
    def display_name(self) -> str:
        """Human label: explicit name, repo basename for git, else the source."""
        name = self.name.strip()
        if name:
            return name

        source = self.source.strip()
        if self.type == RegistryType.GIT:
            trimmed = source.removesuffix(".git")
            for separator in ("/", ":"):
                idx = trimmed.rfind(separator)
                if 0 <= idx < len(trimmed) - 1:
                    return trimmed[idx + 1 :]
        return source

    def __str__(self) -> str:
        """Format registry info for listing."""
        label = f"[{self.id}] {self.display_name} ({self.type}: {self.source}"
        if self.ref:
            label += f"#{self.ref}"
        if self.subdir:
            label += f", subdir={self.subdir}"
        return label + ")"


class Skill(BaseModel):
    """A folder carrying a SKILL.md marker, as found by a scan.

    Skills are scan results only and are never persisted.
    """

    name: str
    path: str
    parent: str

    def __str__(self) -> str:
        return f"{self.name}  {self.path}"


class HarnessPath(BaseModel):
    """A destination directory skills are installed into.

    Custom harnesses come from the config file; the others are auto-detected
    from well-known locations on every run.
    """

    path: str
    custom: bool = False

    @property
    def deletable(self) -> bool:
        return self.custom

    def __str__(self) -> str:
        suffix = "" if self.custom else " [detected]"
        return f"{self.path}{suffix}"
