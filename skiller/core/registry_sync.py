"""Git-backed registry cache.

Each git registry is mirrored into ``<cache root>/skiller/registries/<id>/repo``
with a shallow clone. The cache location depends only on the registry id, so
renaming a registry keeps its cache. The ``git`` executable is the only source
of truth for remote state.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from skiller.core.config import normalize_registry
from skiller.core.errors import InvalidRegistryError, SyncError, SyncTimeoutError
from skiller.core.paths import registry_cache_dir, registry_cache_path
from skiller.core.types import Registry


logger = logging.getLogger(__name__)

# Substrings (lowercase) of git failures caused by missing or rejected credentials
AUTH_ERROR_MARKERS = (
    "terminal prompts disabled",
    "authentication failed",
    "could not read username",
    "permission denied (publickey)",
    "publickey",
    "passphrase",
    "repository not found",
)


@dataclass
class SyncResult:
    """Result of a registry sync.

    ``action`` is ``clone`` for a fresh cache, ``reclone`` when the cached
    origin no longer matched the registry source, and ``update`` otherwise.
    """
    repo_path: Path
    action: str
    output: str = ""


def is_auth_error(error: BaseException | str | None) -> bool:
    """Whether a failure looks like a credential or authorization problem."""
    if error is None:
        return False
    message = str(error).lower()
    return any(marker in message for marker in AUTH_ERROR_MARKERS)


def _as_text(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


class _Deadline:
    """Shared time budget for all git steps of one sync."""

    def __init__(self, timeout: float | None) -> None:
        self.timeout = timeout
        self._expires = time.monotonic() + timeout if timeout else None

    def remaining(self, step: str) -> float | None:
        if self._expires is None:
            return None
        left = self._expires - time.monotonic()
        if left <= 0:
            raise SyncTimeoutError(step, f"timed out after {self.timeout:g}s")
        return left


def run_git(
    args: list[str],
    step: str,
    cwd: Path | None = None,
    interactive: bool = False,
    timeout: float | None = None,
) -> str:
    """
    Run a git command.

    Non-interactive runs disable credential prompts and capture combined
    stdout/stderr. Interactive runs inherit the terminal so the user can type
    credentials; nothing is captured.

    Args:
        args: Git command arguments (without 'git' prefix)
        step: Step name used in errors
        cwd: Working directory
        interactive: Whether git may prompt on the terminal
        timeout: Seconds before git is killed

    Returns:
        Captured output (empty in interactive mode)

    Raises:
        SyncTimeoutError: If git ran longer than ``timeout``
        SyncError: If git could not be started or exited non-zero
    """
    cmd = ["git", *args]
    env = os.environ.copy()
    if not interactive:
        env["GIT_TERMINAL_PROMPT"] = "0"

    logger.debug("Running %s (cwd=%s)", " ".join(cmd), cwd)
    try:
        if interactive:
            completed = subprocess.run(cmd, cwd=cwd, env=env, timeout=timeout, check=False)
            output = ""
        else:
            completed = subprocess.run(
                cmd,
                cwd=cwd,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=timeout,
                check=False,
            )
            output = completed.stdout or ""
    except subprocess.TimeoutExpired as e:
        raise SyncTimeoutError(
            step, f"git {args[0]} timed out after {timeout:g}s", _as_text(e.output)
        ) from e
    except OSError as e:
        raise SyncError(step, f"could not run git: {e}") from e

    if completed.returncode != 0:
        raise SyncError(step, f"git {args[0]} exited with status {completed.returncode}", output)
    return output


def _is_git_repo(path: Path) -> bool:
    return (path / ".git").is_dir()


def _clone(
    registry: Registry, repo_path: Path, interactive: bool, deadline: _Deadline
) -> str:
    if repo_path.exists():
        # leftover from an interrupted clone
        shutil.rmtree(repo_path)

    args = ["clone", "--depth=1"]
    if registry.ref:
        args.extend(["--branch", registry.ref])
    args.extend([registry.source, str(repo_path)])
    return run_git(args, "clone", interactive=interactive, timeout=deadline.remaining("clone"))


def _fetch_and_reset(
    registry: Registry, repo_path: Path, interactive: bool, deadline: _Deadline
) -> str:
    fetch_args = ["fetch", "--depth=1", "origin"]
    if registry.ref:
        fetch_args.append(registry.ref)
    output = run_git(
        fetch_args,
        "fetch",
        cwd=repo_path,
        interactive=interactive,
        timeout=deadline.remaining("fetch"),
    )
    output += run_git(
        ["reset", "--hard", "FETCH_HEAD"],
        "reset",
        cwd=repo_path,
        interactive=interactive,
        timeout=deadline.remaining("reset"),
    )

    try:
        output += run_git(
            ["clean", "-fd"],
            "clean",
            cwd=repo_path,
            interactive=interactive,
            timeout=deadline.remaining("clean"),
        )
    except SyncError as e:
        logger.warning("Ignoring failed cleanup of %s: %s", repo_path, e)
    return output


def sync_registry(
    registry: Registry,
    interactive: bool = False,
    timeout: float | None = None,
    cache_root: Path | None = None,
) -> SyncResult:
    """
    Bring the local cache of a git registry up to date.

    A missing cache is cloned; a cache whose origin differs from the registry
    source is discarded and cloned again; otherwise the configured ref is
    fetched and the working tree hard-reset to it.

    Args:
        registry: Git registry to sync
        interactive: Let git prompt for credentials on the terminal
        timeout: Overall time budget in seconds (None for no limit)
        cache_root: Base cache directory (defaults to the user cache dir)

    Returns:
        SyncResult with the working copy location

    Raises:
        InvalidRegistryError: If the registry is not a git registry
        SyncError: If any git step fails (SyncTimeoutError on timeout)
    """
    normalized = normalize_registry(registry)
    if not normalized.is_remote:
        raise InvalidRegistryError(f"registry is not remote: {normalized.source}")

    repo_path = registry_cache_path(normalized.id, cache_root)
    repo_path.parent.mkdir(parents=True, exist_ok=True)
    deadline = _Deadline(timeout)

    if not _is_git_repo(repo_path):
        logger.debug("Cloning %s into %s", normalized.source, repo_path)
        output = _clone(normalized, repo_path, interactive, deadline)
        return SyncResult(repo_path=repo_path, action="clone", output=output)

    origin = run_git(
        ["config", "--get", "remote.origin.url"],
        "origin-url",
        cwd=repo_path,
        timeout=deadline.remaining("origin-url"),
    ).strip()

    if origin != normalized.source:
        logger.debug(
            "Cache origin %s differs from %s, re-cloning", origin, normalized.source
        )
        shutil.rmtree(repo_path)
        output = _clone(normalized, repo_path, interactive, deadline)
        return SyncResult(repo_path=repo_path, action="reclone", output=output)

    logger.debug("Updating %s", repo_path)
    output = _fetch_and_reset(normalized, repo_path, interactive, deadline)
    return SyncResult(repo_path=repo_path, action="update", output=output)


def remove_registry_cache(registry: Registry, cache_root: Path | None = None) -> None:
    """Delete everything cached for a registry; a missing cache is fine."""
    normalized = normalize_registry(registry)
    cache_dir = registry_cache_dir(normalized.id, cache_root)
    if not os.path.lexists(cache_dir):
        return
    logger.debug("Removing registry cache %s", cache_dir)
    shutil.rmtree(cache_dir)
