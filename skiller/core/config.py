"""Registry identity and the persisted skiller configuration.

The config file is YAML with two top-level collections, ``registries`` and
``harnesses``. Older files stored registries as bare path strings; those are
still read and migrated into local registries, but only the typed form is ever
written back.
"""

from __future__ import annotations

import hashlib
import logging
import posixpath
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from skiller.core.errors import (
    ConfigError,
    InvalidPathError,
    InvalidRegistryError,
)
from skiller.core.paths import clean_path, config_path, dedupe_paths, expand_path
from skiller.core.types import Registry, RegistryType


logger = logging.getLogger(__name__)

# Length of the hex digest prefix used as registry id
REGISTRY_ID_LENGTH = 12

GIT_SOURCE_PREFIXES = ("git@", "ssh://", "git://")
GIT_URL_SCHEMES = frozenset({"http", "https", "ssh"})


def is_git_source(source: str) -> bool:
    """
    Check whether a source string looks like a git remote.

    Examples:
        git@github.com:user/skills.git -> True
        https://github.com/user/skills -> True
        /home/me/skills -> False
    """
    trimmed = source.strip()
    if not trimmed:
        return False

    if trimmed.startswith(GIT_SOURCE_PREFIXES):
        return True

    try:
        parsed = urlparse(trimmed)
    except ValueError:
        return False

    if not parsed.netloc:
        return False
    return parsed.scheme in GIT_URL_SCHEMES and parsed.path != ""


def split_git_ref(text: str) -> tuple[str, str]:
    """Split ``source#ref`` into its parts; ``#`` must not be first or last."""
    idx = text.rfind("#")
    if idx <= 0 or idx >= len(text) - 1:
        return text, ""
    return text[:idx].strip(), text[idx + 1 :].strip()


def registry_id(registry: Registry) -> str:
    """Stable id for a normalized registry, independent of its display name."""
    key = "|".join([registry.type, registry.source, registry.ref, registry.subdir])
    return hashlib.sha1(key.encode("utf-8")).hexdigest()[:REGISTRY_ID_LENGTH]


def _clean_subdir(subdir: str) -> str:
    trimmed = subdir.strip().strip("/")
    if not trimmed:
        return ""
    cleaned = posixpath.normpath(trimmed)
    return "" if cleaned == "." else cleaned


def normalize_registry(registry: Registry) -> Registry:
    """
    Return a canonical copy of a registry with its id assigned.

    Args:
        registry: Registry as entered by a user or read from config

    Returns:
        Normalized registry

    Raises:
        InvalidRegistryError: If the source is empty, the type is unsupported,
            or a git registry does not have a git-looking source
    """
    source = registry.source.strip()
    ref = registry.ref.strip()
    registry_type = registry.type.strip()

    if not registry_type:
        registry_type = (
            RegistryType.GIT.value if is_git_source(source) else RegistryType.LOCAL.value
        )

    if not source:
        raise InvalidRegistryError("registry source is empty")

    if registry_type == RegistryType.LOCAL:
        try:
            source = str(expand_path(source))
        except InvalidPathError as e:
            raise InvalidRegistryError(f"invalid local registry source: {e}") from e
        ref = ""
    elif registry_type == RegistryType.GIT:
        if not is_git_source(source):
            raise InvalidRegistryError(f"invalid git registry source: {source!r}")
    else:
        raise InvalidRegistryError(f"unsupported registry type: {registry_type!r}")

    normalized = Registry(
        id=registry.id.strip(),
        name=registry.name.strip(),
        type=RegistryType(registry_type).value,
        source=source,
        ref=ref,
        subdir=_clean_subdir(registry.subdir),
    )
    if not normalized.id:
        normalized.id = registry_id(normalized)
    return normalized


def normalize_registries(registries: list[Registry]) -> list[Registry]:
    """Normalize each registry, dropping those that fail."""
    out: list[Registry] = []
    for registry in registries:
        try:
            out.append(normalize_registry(registry))
        except InvalidRegistryError as e:
            logger.debug("Dropping registry %r: %s", registry.source, e)
    return out


def _sort_key(registry: Registry) -> tuple[str, str, str]:
    return (registry.type, registry.display_name, registry.source)


def dedupe_registries(registries: list[Registry]) -> list[Registry]:
    """Normalize, keep the first registry per id, and sort for stable output."""
    seen: set[str] = set()
    out: list[Registry] = []
    for registry in normalize_registries(registries):
        if registry.id in seen:
            continue
        seen.add(registry.id)
        out.append(registry)
    return sorted(out, key=_sort_key)


def _same_location(a: Registry, b: Registry) -> bool:
    return (a.type, a.source, a.ref, a.subdir) == (b.type, b.source, b.ref, b.subdir)


def _none_as_empty(value: Any) -> Any:
    return [] if value is None else value


class ConfigDocument(BaseModel):
    """Current on-disk schema: typed registry records."""

    registries: list[Registry] = Field(default_factory=list)
    harnesses: list[str] = Field(default_factory=list)

    @field_validator("registries", "harnesses", mode="before")
    @classmethod
    def empty_list_for_null(cls, value: Any) -> Any:
        return _none_as_empty(value)


class LegacyConfigDocument(BaseModel):
    """Legacy on-disk schema: registries as bare local paths."""

    registries: list[str] = Field(default_factory=list)
    harnesses: list[str] = Field(default_factory=list)

    @field_validator("registries", "harnesses", mode="before")
    @classmethod
    def empty_list_for_null(cls, value: Any) -> Any:
        return _none_as_empty(value)


class Config(BaseModel):
    """Configured registries and custom harness paths."""

    registries: list[Registry] = Field(default_factory=list)
    harnesses: list[str] = Field(default_factory=list)

    def add_registry(self, text: str) -> bool:
        """
        Add a registry from user input.

        ``source#ref`` selects a git branch or tag. Git-looking sources become
        git registries, everything else a local directory. Adding a registry
        that is already present does nothing.

        Returns:
            False if an equivalent registry was already configured

        Raises:
            InvalidRegistryError: If the input is empty or invalid
        """
        trimmed = text.strip()
        if not trimmed:
            raise InvalidRegistryError("registry source is empty")

        source, ref = split_git_ref(trimmed)
        if is_git_source(source):
            return self.add_git_registry(source, ref)
        return self.add_local_registry(trimmed)

    def add_local_registry(self, path: str) -> bool:
        """Add a local directory registry."""
        return self._append_unique(
            normalize_registry(Registry(type=RegistryType.LOCAL.value, source=path))
        )

    def add_git_registry(self, source: str, ref: str = "") -> bool:
        """Add a git registry, optionally pinned to a branch or tag."""
        trimmed = source.strip()
        if not is_git_source(trimmed):
            raise InvalidRegistryError(f"invalid git registry source: {trimmed!r}")
        return self._append_unique(
            normalize_registry(
                Registry(type=RegistryType.GIT.value, source=trimmed, ref=ref.strip())
            )
        )

    def _append_unique(self, registry: Registry) -> bool:
        for existing in self.registries:
            if existing.id == registry.id or _same_location(existing, registry):
                logger.debug("Registry %s already configured", registry.source)
                return False
        self.registries.append(registry)
        return True

    def remove_registry(self, identifier: str) -> list[Registry]:
        """
        Remove registries whose id or source equals ``identifier``.

        Returns:
            The removed registries (possibly empty)
        """
        trimmed = identifier.strip()
        if not trimmed:
            return []

        removed = [r for r in self.registries if r.id == trimmed or r.source == trimmed]
        self.registries = [
            r for r in self.registries if not (r.id == trimmed or r.source == trimmed)
        ]
        return removed

    def find_registry(self, identifier: str) -> Registry | None:
        """Find a registry by id or source."""
        trimmed = identifier.strip()
        for registry in self.registries:
            if registry.id == trimmed or registry.source == trimmed:
                return registry
        return None

    def add_harness(self, path: str) -> None:
        """Add a custom harness directory."""
        normalized = str(expand_path(path))
        if not self.is_custom_harness(normalized):
            self.harnesses.append(normalized)

    def remove_harness(self, path: str) -> None:
        """Remove a custom harness directory."""
        target = clean_path(path)
        self.harnesses = [h for h in self.harnesses if clean_path(h) != target]

    def is_custom_harness(self, path: str) -> bool:
        """Whether ``path`` is a harness stored in the config file."""
        target = clean_path(path)
        return any(clean_path(h) == target for h in self.harnesses)

    def save(self, path: Path | str) -> None:
        """
        Normalize both collections and write the config in the current schema.

        Args:
            path: Config file location; parent directories are created
        """
        self.registries = dedupe_registries(self.registries)
        self.harnesses = [str(p) for p in dedupe_paths(self.harnesses)]

        document = ConfigDocument(registries=self.registries, harnesses=self.harnesses)
        config_file = Path(path)
        config_file.parent.mkdir(parents=True, exist_ok=True)
        config_file.write_text(
            yaml.safe_dump(
                document.model_dump(mode="json"),
                sort_keys=False,
                default_flow_style=False,
                allow_unicode=True,
            ),
            encoding="utf-8",
        )
        logger.debug("Saved config to %s", config_file)


def _normalize_harnesses(paths: list[str]) -> list[str]:
    expanded: list[Path] = []
    for path in paths:
        try:
            expanded.append(expand_path(path))
        except InvalidPathError:
            continue
    return [str(p) for p in dedupe_paths(expanded)]


def _from_current(document: ConfigDocument) -> Config:
    return Config(
        registries=dedupe_registries(document.registries),
        harnesses=_normalize_harnesses(document.harnesses),
    )


def _from_legacy(document: LegacyConfigDocument) -> Config:
    config = Config(harnesses=_normalize_harnesses(document.harnesses))
    for registry_path in document.registries:
        try:
            config.add_local_registry(registry_path)
        except InvalidRegistryError as e:
            logger.warning("Dropping legacy registry %r: %s", registry_path, e)
    config.registries = dedupe_registries(config.registries)
    return config


def load_config(path: Path | str | None = None) -> tuple[Config, Path]:
    """
    Load the config file, migrating the legacy schema in memory.

    A missing file yields an empty config. Migration results are not written
    until :meth:`Config.save` is called.

    Args:
        path: Config file location (defaults to :func:`config_path`)

    Returns:
        Tuple of (config, path it was loaded from)

    Raises:
        ConfigError: If the file cannot be parsed as either schema
    """
    config_file = Path(path) if path is not None else config_path()
    if not config_file.exists():
        return Config(), config_file

    try:
        raw = yaml.safe_load(config_file.read_text(encoding="utf-8"))
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        raise ConfigError(config_file, str(e)) from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(config_file, "top level must be a mapping")

    try:
        return _from_current(ConfigDocument.model_validate(raw)), config_file
    except ValidationError as current_error:
        try:
            legacy = LegacyConfigDocument.model_validate(raw)
        except ValidationError:
            raise ConfigError(config_file, str(current_error)) from current_error

    logger.debug("Migrating legacy config %s", config_file)
    return _from_legacy(legacy), config_file
