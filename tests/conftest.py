"""Pytest configuration and fixtures for skiller tests."""

from __future__ import annotations

import tempfile
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from skiller.core.scan import SKILL_FILE_NAME


@pytest.fixture
def temp_workspace() -> Generator[Path, None, None]:
    """Create a temporary workspace directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        workspace = Path(tmpdir)
        yield workspace


@pytest.fixture(autouse=True)
def isolated_dirs(
    tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
) -> dict[str, Path]:
    """Point config and cache roots at throwaway directories."""
    config_home = tmp_path_factory.mktemp("config-home")
    cache_home = tmp_path_factory.mktemp("cache-home")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.setenv("XDG_CACHE_HOME", str(cache_home))
    return {"config": config_home, "cache": cache_home}


@pytest.fixture
def make_skill() -> Callable[..., Path]:
    """Return a helper that creates a skill folder with a SKILL.md marker."""

    def _make(parent: Path, name: str, body: str = "# Skill\n") -> Path:
        skill_dir = parent / name
        skill_dir.mkdir(parents=True, exist_ok=True)
        (skill_dir / SKILL_FILE_NAME).write_text(
            f"---\nname: {name}\n---\n\n{body}", encoding="utf-8"
        )
        return skill_dir

    return _make


@pytest.fixture
def sample_skill(temp_workspace: Path, make_skill: Callable[..., Path]) -> Path:
    """Create a skill with nested files, an executable script and a symlink."""
    skill = make_skill(temp_workspace / "registry", "alpha")
    scripts = skill / "scripts"
    scripts.mkdir()
    script = scripts / "run.sh"
    script.write_text("#!/bin/sh\necho alpha\n")
    script.chmod(0o750)
    (skill / "docs").mkdir()
    (skill / "docs" / "notes.txt").write_text("notes")
    (skill / "docs" / "latest").symlink_to("notes.txt")
    return skill
