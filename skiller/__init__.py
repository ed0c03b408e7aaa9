"""Skiller - install skill folders from registries into agent harnesses."""

from skiller.core.types import (
    ConflictAction,
    HarnessPath,
    Registry,
    RegistryType,
    Skill,
)

__version__ = "0.1.0"

__all__ = [
    "ConflictAction",
    "HarnessPath",
    "Registry",
    "RegistryType",
    "Skill",
]
