"""Tests for the git-backed registry cache."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from skiller.core.config import normalize_registry
from skiller.core.errors import InvalidRegistryError, SyncError, SyncTimeoutError
from skiller.core.paths import registry_cache_dir, registry_cache_path
from skiller.core.registry_sync import (
    SyncResult,
    is_auth_error,
    remove_registry_cache,
    sync_registry,
)
from skiller.core.types import Registry

SOURCE = "https://github.com/acme/skills.git"


class FakeGit:
    """Stand-in for ``subprocess.run`` that records git invocations."""

    def __init__(
        self,
        origin: str = SOURCE,
        failures: dict[str, str] | None = None,
        timeouts: tuple[str, ...] = (),
    ) -> None:
        self.origin = origin
        self.failures = failures or {}
        self.timeouts = timeouts
        self.calls: list[tuple[list[str], dict[str, Any]]] = []

    @property
    def subcommands(self) -> list[str]:
        return [cmd[1] for cmd, _ in self.calls]

    def __call__(self, cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.calls.append((cmd, kwargs))
        sub = cmd[1]
        if sub in self.timeouts:
            raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout") or 0, output=b"partial")
        if sub in self.failures:
            return subprocess.CompletedProcess(cmd, 128, stdout=self.failures[sub])
        if sub == "clone":
            (Path(cmd[-1]) / ".git").mkdir(parents=True)
        if sub == "config":
            return subprocess.CompletedProcess(cmd, 0, stdout=f"{self.origin}\n")
        return subprocess.CompletedProcess(cmd, 0, stdout=f"{sub} ok\n")


def _git_registry(**kwargs: str) -> Registry:
    return normalize_registry(Registry(source=SOURCE, **kwargs))


def _seed_cache(registry: Registry, cache_root: Path) -> Path:
    repo = registry_cache_path(registry.id, cache_root)
    (repo / ".git").mkdir(parents=True)
    (repo / "old.txt").write_text("old")
    return repo


class TestIsAuthError:
    """Tests for is_auth_error."""

    def test_auth_messages(self) -> None:
        """Test known credential failures."""
        assert is_auth_error(
            SyncError(
                "clone",
                "git clone exited with status 128",
                "fatal: could not read Username for 'https://github.com': terminal prompts disabled",
            )
        )
        assert is_auth_error("git@github.com: Permission denied (publickey).")
        assert is_auth_error(RuntimeError("ERROR: Repository not found."))
        assert is_auth_error("Enter passphrase for key")

    def test_generic_failures(self) -> None:
        """Test that ordinary failures are not auth errors."""
        assert not is_auth_error(RuntimeError("some generic failure"))
        assert not is_auth_error(None)


class TestSyncRegistry:
    """Tests for sync_registry."""

    def test_first_sync_clones_shallow(self, tmp_path: Path) -> None:
        """Test that a missing cache is cloned with depth 1 and the ref as branch."""
        registry = _git_registry(ref="main")
        fake = FakeGit()

        with patch("skiller.core.registry_sync.subprocess.run", side_effect=fake):
            result = sync_registry(registry, cache_root=tmp_path)

        repo = registry_cache_path(registry.id, tmp_path)
        assert result == SyncResult(repo_path=repo, action="clone", output="clone ok\n")
        cmd, kwargs = fake.calls[0]
        assert cmd == ["git", "clone", "--depth=1", "--branch", "main", SOURCE, str(repo)]
        assert kwargs["env"]["GIT_TERMINAL_PROMPT"] == "0"
        assert kwargs["stdin"] == subprocess.DEVNULL
        assert kwargs["stderr"] == subprocess.STDOUT

    def test_clone_without_ref(self, tmp_path: Path) -> None:
        """Test that no --branch is passed when the ref is empty."""
        fake = FakeGit()
        with patch("skiller.core.registry_sync.subprocess.run", side_effect=fake):
            sync_registry(_git_registry(), cache_root=tmp_path)
        assert "--branch" not in fake.calls[0][0]

    def test_update_fetches_and_resets(self, tmp_path: Path) -> None:
        """Test that an existing cache is fetched, reset and cleaned."""
        registry = _git_registry(ref="v2")
        repo = _seed_cache(registry, tmp_path)
        fake = FakeGit()

        with patch("skiller.core.registry_sync.subprocess.run", side_effect=fake):
            result = sync_registry(registry, cache_root=tmp_path)

        assert result.action == "update"
        assert fake.subcommands == ["config", "fetch", "reset", "clean"]
        assert fake.calls[1][0] == ["git", "fetch", "--depth=1", "origin", "v2"]
        assert fake.calls[2][0] == ["git", "reset", "--hard", "FETCH_HEAD"]
        assert fake.calls[3][0] == ["git", "clean", "-fd"]
        assert all(kwargs["cwd"] == repo for _, kwargs in fake.calls)

    def test_origin_mismatch_reclones(self, tmp_path: Path) -> None:
        """Test that a cache pointing elsewhere is discarded and cloned again."""
        registry = _git_registry()
        repo = _seed_cache(registry, tmp_path)
        fake = FakeGit(origin="https://github.com/other/skills.git")

        with patch("skiller.core.registry_sync.subprocess.run", side_effect=fake):
            result = sync_registry(registry, cache_root=tmp_path)

        assert result.action == "reclone"
        assert fake.subcommands == ["config", "clone"]
        assert not (repo / "old.txt").exists()

    def test_clean_failure_tolerated(self, tmp_path: Path) -> None:
        """Test that a failing git clean does not fail the sync."""
        registry = _git_registry()
        _seed_cache(registry, tmp_path)
        fake = FakeGit(failures={"clean": "error: cannot remove"})

        with patch("skiller.core.registry_sync.subprocess.run", side_effect=fake):
            result = sync_registry(registry, cache_root=tmp_path)

        assert result.action == "update"

    def test_fetch_failure_wrapped(self, tmp_path: Path) -> None:
        """Test that failures carry the step and git output."""
        registry = _git_registry()
        _seed_cache(registry, tmp_path)
        fake = FakeGit(failures={"fetch": "fatal: couldn't find remote ref nope"})

        with patch("skiller.core.registry_sync.subprocess.run", side_effect=fake):
            with pytest.raises(SyncError) as exc_info:
                sync_registry(registry, cache_root=tmp_path)

        error = exc_info.value
        assert error.step == "fetch"
        assert "couldn't find remote ref" in error.output
        assert "fetch" in str(error) and "couldn't find remote ref" in str(error)
        assert "reset" not in fake.subcommands

    def test_clone_auth_failure_classified(self, tmp_path: Path) -> None:
        """Test that a credential failure during clone is recognisable."""
        fake = FakeGit(failures={"clone": "fatal: could not read Username: terminal prompts disabled"})

        with patch("skiller.core.registry_sync.subprocess.run", side_effect=fake):
            with pytest.raises(SyncError) as exc_info:
                sync_registry(_git_registry(), cache_root=tmp_path)

        assert exc_info.value.step == "clone"
        assert is_auth_error(exc_info.value)

    def test_timeout(self, tmp_path: Path) -> None:
        """Test that an expired subprocess surfaces as SyncTimeoutError."""
        fake = FakeGit(timeouts=("clone",))

        with patch("skiller.core.registry_sync.subprocess.run", side_effect=fake):
            with pytest.raises(SyncTimeoutError) as exc_info:
                sync_registry(_git_registry(), timeout=5, cache_root=tmp_path)

        assert exc_info.value.step == "clone"
        assert exc_info.value.output == "partial"
        assert 0 < fake.calls[0][1]["timeout"] <= 5

    def test_missing_git_binary(self, tmp_path: Path) -> None:
        """Test that a missing git executable is a SyncError."""
        with patch(
            "skiller.core.registry_sync.subprocess.run",
            side_effect=FileNotFoundError("git"),
        ):
            with pytest.raises(SyncError) as exc_info:
                sync_registry(_git_registry(), cache_root=tmp_path)
        assert exc_info.value.step == "clone"

    def test_interactive_inherits_terminal(self, tmp_path: Path) -> None:
        """Test that interactive mode neither captures output nor disables prompts."""
        fake = FakeGit()

        with patch("skiller.core.registry_sync.subprocess.run", side_effect=fake):
            result = sync_registry(_git_registry(), interactive=True, cache_root=tmp_path)

        _, kwargs = fake.calls[0]
        assert "GIT_TERMINAL_PROMPT" not in kwargs["env"] or kwargs["env"]["GIT_TERMINAL_PROMPT"] != "0"
        assert "stdout" not in kwargs
        assert result.output == ""

    def test_local_registry_rejected(self, tmp_path: Path) -> None:
        """Test that only git registries can be synced."""
        with pytest.raises(InvalidRegistryError):
            sync_registry(Registry(source=str(tmp_path)), cache_root=tmp_path)

    def test_cache_location_ignores_name(self, tmp_path: Path) -> None:
        """Test that renaming a registry keeps its cache path."""
        fake = FakeGit()
        with patch("skiller.core.registry_sync.subprocess.run", side_effect=fake):
            first = sync_registry(_git_registry(name="one"), cache_root=tmp_path)
            second = sync_registry(_git_registry(name="two"), cache_root=tmp_path)

        assert first.repo_path == second.repo_path
        assert second.action == "update"

    def test_default_cache_root(self, isolated_dirs: dict[str, Path]) -> None:
        """Test that the cache lives under XDG_CACHE_HOME by default."""
        registry = _git_registry()
        fake = FakeGit()
        with patch("skiller.core.registry_sync.subprocess.run", side_effect=fake):
            result = sync_registry(registry)
        assert result.repo_path == (
            isolated_dirs["cache"] / "skiller" / "registries" / registry.id / "repo"
        )


class TestRemoveRegistryCache:
    """Tests for remove_registry_cache."""

    def test_removes_whole_subtree(self, tmp_path: Path) -> None:
        """Test that the registry's cache directory is deleted."""
        registry = _git_registry()
        _seed_cache(registry, tmp_path)
        cache_dir = registry_cache_dir(registry.id, tmp_path)
        (cache_dir / "placeholder").write_text("x")

        remove_registry_cache(registry, cache_root=tmp_path)

        assert not cache_dir.exists()

    def test_missing_cache_is_fine(self, tmp_path: Path) -> None:
        """Test that removing an absent cache does nothing."""
        remove_registry_cache(_git_registry(), cache_root=tmp_path)

    def test_other_registries_untouched(self, tmp_path: Path) -> None:
        """Test that only the owning registry's cache is removed."""
        first = _git_registry()
        second = _git_registry(ref="dev")
        _seed_cache(first, tmp_path)
        other_repo = _seed_cache(second, tmp_path)

        remove_registry_cache(first, cache_root=tmp_path)

        assert other_repo.exists()
