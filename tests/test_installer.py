"""Tests for installing and uninstalling skills."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from skiller.core.errors import (
    InvalidSkillMarkerError,
    MissingPathError,
    NotDirectoryError,
    UnknownConflictActionError,
)
from skiller.core.installer import InstallResult, install_skill, uninstall_skill
from skiller.core.scan import SKILL_FILE_NAME
from skiller.core.types import ConflictAction


def _snapshot(root: Path) -> dict[str, bytes]:
    return {
        str(p.relative_to(root)): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file() and not p.is_symlink()
    }


class TestInstallSkill:
    """Tests for install_skill."""

    def test_fresh_install(self, sample_skill: Path, tmp_path: Path) -> None:
        """Test installing into a harness that does not exist yet."""
        harness = tmp_path / "harness"

        result = install_skill(sample_skill, harness, ConflictAction.SKIP)

        assert result == InstallResult(
            installed=True,
            conflict=False,
            renamed=False,
            name="alpha",
            destination=str(harness / "alpha"),
        )
        assert _snapshot(harness / "alpha") == _snapshot(sample_skill)

    def test_skip_leaves_destination_untouched(self, sample_skill: Path, tmp_path: Path) -> None:
        """Test that skip reports the conflict and changes nothing."""
        harness = tmp_path / "harness"
        existing = harness / "alpha"
        existing.mkdir(parents=True)
        (existing / SKILL_FILE_NAME).write_text("old version")
        before = _snapshot(harness)

        result = install_skill(sample_skill, harness, "skip")

        assert result.installed is False
        assert result.conflict is True
        assert _snapshot(harness) == before

    def test_overwrite_replaces(self, sample_skill: Path, tmp_path: Path) -> None:
        """Test that overwrite removes the old copy first."""
        harness = tmp_path / "harness"
        existing = harness / "alpha"
        existing.mkdir(parents=True)
        (existing / "stale.txt").write_text("stale")

        result = install_skill(sample_skill, harness, ConflictAction.OVERWRITE)

        assert result.installed is True
        assert result.conflict is True
        assert result.renamed is False
        assert not (existing / "stale.txt").exists()
        assert _snapshot(existing) == _snapshot(sample_skill)

    def test_overwrite_replaces_file(self, sample_skill: Path, tmp_path: Path) -> None:
        """Test that overwrite also handles a plain file in the way."""
        harness = tmp_path / "harness"
        harness.mkdir()
        (harness / "alpha").write_text("not a directory")

        result = install_skill(sample_skill, harness, ConflictAction.OVERWRITE)

        assert result.installed is True
        assert (harness / "alpha" / SKILL_FILE_NAME).is_file()

    def test_rename_probes_suffixes(self, sample_skill: Path, tmp_path: Path) -> None:
        """Test that rename picks alpha-2, then alpha-3."""
        harness = tmp_path / "harness"
        (harness / "alpha").mkdir(parents=True)

        first = install_skill(sample_skill, harness, ConflictAction.RENAME)
        assert first.installed is True
        assert first.conflict is True
        assert first.renamed is True
        assert first.name == "alpha-2"
        assert first.destination == str(harness / "alpha-2")
        assert (harness / "alpha-2" / SKILL_FILE_NAME).is_file()

        second = install_skill(sample_skill, harness, ConflictAction.RENAME)
        assert second.name == "alpha-3"
        assert (harness / "alpha-3" / SKILL_FILE_NAME).is_file()

    def test_unknown_action_on_conflict(self, sample_skill: Path, tmp_path: Path) -> None:
        """Test that an unsupported action fails when it is needed."""
        harness = tmp_path / "harness"
        (harness / "alpha").mkdir(parents=True)

        with pytest.raises(UnknownConflictActionError):
            install_skill(sample_skill, harness, "merge")

    def test_missing_source(self, tmp_path: Path) -> None:
        """Test that a missing source is an error."""
        with pytest.raises(MissingPathError):
            install_skill(tmp_path / "missing", tmp_path / "harness")

    def test_source_not_a_directory(self, tmp_path: Path) -> None:
        """Test that a file source is an error."""
        source = tmp_path / "file"
        source.write_text("x")
        with pytest.raises(NotDirectoryError):
            install_skill(source, tmp_path / "harness")

    def test_message(self) -> None:
        """Test the human readable summary."""
        result = InstallResult(
            installed=True, conflict=True, renamed=True, name="alpha-2", destination="/h/alpha-2"
        )
        assert "alpha-2" in result.message


class TestUninstallSkill:
    """Tests for uninstall_skill."""

    def test_uninstall_requires_marker(self, tmp_path: Path) -> None:
        """Test that a directory without SKILL.md is refused, then removed once marked."""
        target = tmp_path / "not-yet"
        target.mkdir()
        (target / "data.txt").write_text("keep me")

        with pytest.raises(InvalidSkillMarkerError):
            uninstall_skill(tmp_path, "not-yet")
        assert (target / "data.txt").read_text() == "keep me"

        (target / SKILL_FILE_NAME).write_text("---\nname: not-yet\n---\n")
        uninstall_skill(tmp_path, "not-yet")
        assert not target.exists()

    def test_marker_directory_refused(self, tmp_path: Path) -> None:
        """Test that a SKILL.md directory is not a valid marker."""
        target = tmp_path / "fake"
        (target / SKILL_FILE_NAME).mkdir(parents=True)

        with pytest.raises(InvalidSkillMarkerError):
            uninstall_skill(tmp_path, "fake")
        assert target.exists()

    def test_missing_skill(self, tmp_path: Path) -> None:
        """Test uninstalling a skill that doesn't exist."""
        with pytest.raises(MissingPathError):
            uninstall_skill(tmp_path, "nonexistent-skill")

    def test_not_a_directory(self, tmp_path: Path) -> None:
        """Test uninstalling a plain file."""
        (tmp_path / "file").write_text("x")
        with pytest.raises(NotDirectoryError):
            uninstall_skill(tmp_path, "file")

    @pytest.mark.parametrize("name", ["", ".", "..", "a/b"])
    def test_rejects_paths(
        self, tmp_path: Path, make_skill: Callable[..., Path], name: str
    ) -> None:
        """Test that only plain folder names are accepted."""
        make_skill(tmp_path / "a", "b")
        with pytest.raises(InvalidSkillMarkerError):
            uninstall_skill(tmp_path / "harness", name)
        assert (tmp_path / "a" / "b").exists()
