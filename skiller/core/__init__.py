"""Core modules for skiller.

Primary modules:
- config: Registry normalization, identity and the persisted configuration
- scan: Skill discovery in registries and harnesses
- installer: Install/uninstall of skill folders into harnesses
- registry_sync: Git-backed registry cache
- types: Type definitions (Registry, Skill, HarnessPath, ...)
"""

from skiller.core.config import Config, load_config, normalize_registry
from skiller.core.errors import (
    ConfigError,
    InvalidPathError,
    InvalidRegistryError,
    InvalidSkillMarkerError,
    MissingPathError,
    NotDirectoryError,
    SkillerError,
    SyncError,
    SyncTimeoutError,
    UnknownConflictActionError,
)
from skiller.core.installer import InstallResult, install_skill, uninstall_skill
from skiller.core.registry_sync import (
    SyncResult,
    is_auth_error,
    remove_registry_cache,
    sync_registry,
)
from skiller.core.scan import scan_harness, scan_registry
from skiller.core.types import (
    ConflictAction,
    HarnessPath,
    Registry,
    RegistryType,
    Skill,
)

__all__ = [
    # Types
    "ConflictAction",
    "HarnessPath",
    "Registry",
    "RegistryType",
    "Skill",
    # Errors
    "ConfigError",
    "InvalidPathError",
    "InvalidRegistryError",
    "InvalidSkillMarkerError",
    "MissingPathError",
    "NotDirectoryError",
    "SkillerError",
    "SyncError",
    "SyncTimeoutError",
    "UnknownConflictActionError",
    # Operations
    "Config",
    "InstallResult",
    "SyncResult",
    "install_skill",
    "is_auth_error",
    "load_config",
    "normalize_registry",
    "remove_registry_cache",
    "scan_harness",
    "scan_registry",
    "sync_registry",
    "uninstall_skill",
]
