"""Catalog-wide operations over every registry and harness.

Each registry or harness is processed on its own; a failure is recorded on its
outcome and never stops the others.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from skiller.core.config import Config
from skiller.core.errors import SkillerError
from skiller.core.paths import (
    KNOWN_HARNESS_CANDIDATES,
    clean_path,
    detect_known_harnesses,
    merge_unique,
    registry_cache_path,
)
from skiller.core.registry_sync import SyncResult, sync_registry
from skiller.core.scan import scan_harness, scan_registry
from skiller.core.types import HarnessPath, Registry, Skill


logger = logging.getLogger(__name__)


@dataclass
class RegistryScan:
    """Skills found in one registry, or the error that prevented scanning it."""
    registry: Registry
    root: Path
    skills: list[Skill] = field(default_factory=list)
    error: Exception | None = None


@dataclass
class HarnessScan:
    """Skills installed in one harness, or the error that prevented listing it."""
    harness: HarnessPath
    skills: list[Skill] = field(default_factory=list)
    error: Exception | None = None


@dataclass
class RegistrySyncOutcome:
    registry: Registry
    result: SyncResult | None = None
    error: Exception | None = None


def registry_scan_root(registry: Registry, cache_root: Path | None = None) -> Path:
    """Directory to scan for a registry: its source or cache, plus ``subdir``."""
    if registry.is_remote:
        base = registry_cache_path(registry.id, cache_root)
    else:
        base = Path(registry.source)
    if registry.subdir:
        return clean_path(base / registry.subdir)
    return base


def scan_registries(
    registries: Iterable[Registry], cache_root: Path | None = None
) -> list[RegistryScan]:
    """Scan every registry, attributing failures to the registry that raised them."""
    scans: list[RegistryScan] = []
    for registry in registries:
        root = registry_scan_root(registry, cache_root)
        scan = RegistryScan(registry=registry, root=root)
        try:
            scan.skills = scan_registry(root)
        except (SkillerError, OSError) as e:
            logger.debug("Scan of registry %s failed: %s", registry.id, e)
            scan.error = e
        scans.append(scan)
    return scans


def sync_registries(
    registries: Iterable[Registry],
    interactive: bool = False,
    timeout: float | None = None,
    cache_root: Path | None = None,
) -> list[RegistrySyncOutcome]:
    """Sync every git registry; local registries are ignored."""
    outcomes: list[RegistrySyncOutcome] = []
    for registry in registries:
        if not registry.is_remote:
            continue
        outcome = RegistrySyncOutcome(registry=registry)
        try:
            outcome.result = sync_registry(
                registry, interactive=interactive, timeout=timeout, cache_root=cache_root
            )
        except (SkillerError, OSError) as e:
            logger.debug("Sync of registry %s failed: %s", registry.id, e)
            outcome.error = e
        outcomes.append(outcome)
    return outcomes


def harness_paths(
    config: Config, candidates: Iterable[str] = KNOWN_HARNESS_CANDIDATES
) -> list[HarnessPath]:
    """Custom harnesses from config followed by detected well-known ones."""
    detected = detect_known_harnesses(candidates)
    return [
        HarnessPath(path=str(path), custom=config.is_custom_harness(str(path)))
        for path in merge_unique(config.harnesses, detected)
    ]


def scan_harnesses(harnesses: Iterable[HarnessPath]) -> list[HarnessScan]:
    """List installed skills in every harness."""
    scans: list[HarnessScan] = []
    for harness in harnesses:
        scan = HarnessScan(harness=harness)
        try:
            scan.skills = scan_harness(harness.path)
        except (SkillerError, OSError) as e:
            logger.debug("Scan of harness %s failed: %s", harness.path, e)
            scan.error = e
        scans.append(scan)
    return scans


def find_skills(scans: Iterable[RegistryScan], name: str) -> list[tuple[Registry, Skill]]:
    """All scanned skills called ``name``, with the registry they came from."""
    return [
        (scan.registry, skill)
        for scan in scans
        for skill in scan.skills
        if skill.name == name
    ]
