"""Tests for gitops module."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from git.exc import GitCommandError, InvalidGitRepositoryError

from skill_knife.errors import MarketFetchError
from skill_knife.gitops import CACHE_DIR, GitOps, sanitize_reference, to_clone_url


@pytest.fixture
def temp_gitops(tmp_path: Path) -> GitOps:
    """Create a GitOps instance with temporary cache."""
    return GitOps(cache_dir=tmp_path / "cache")


class TestReferences:
    """Tests for reference helpers."""

    def test_sanitize_shorthand(self) -> None:
        """Test owner/repo becomes a flat directory name."""
        assert sanitize_reference("anthropics/skills") == "anthropics_skills"

    def test_sanitize_url(self) -> None:
        """Test URL separators are replaced."""
        assert sanitize_reference("https://host/a/b") == "https___host_a_b"

    def test_clone_url_shorthand(self) -> None:
        """Test shorthand expands to GitHub."""
        assert to_clone_url("obra/superpowers") == "https://github.com/obra/superpowers.git"

    def test_clone_url_full(self) -> None:
        """Test full URLs pass through."""
        assert to_clone_url("git@example.com:a/b.git") == "git@example.com:a/b.git"
        assert to_clone_url("https://gitlab.com/a/b") == "https://gitlab.com/a/b"


class TestGitOps:
    """Tests for GitOps class."""

    def test_default_cache_dir(self) -> None:
        """Test default cache directory."""
        gitops = GitOps()
        assert gitops.cache_dir == CACHE_DIR

    def test_create(self, tmp_path: Path) -> None:
        """Test factory with a custom cache directory."""
        assert GitOps.create(tmp_path).cache_dir == tmp_path

    def test_get_repo_path(self, temp_gitops: GitOps) -> None:
        """Test getting repository path."""
        path = temp_gitops.get_repo_path("anthropics/skills")
        assert path == temp_gitops.cache_dir / "anthropics_skills"

    def test_is_cached(self, temp_gitops: GitOps) -> None:
        """Test is_cached reflects the mirror directory."""
        assert temp_gitops.is_cached("a/b") is False
        temp_gitops.get_repo_path("a/b").mkdir(parents=True)
        assert temp_gitops.is_cached("a/b") is True

    def test_remove_cached(self, temp_gitops: GitOps) -> None:
        """Test removing a mirror."""
        repo_path = temp_gitops.get_repo_path("a/b")
        repo_path.mkdir(parents=True)
        (repo_path / "file.txt").write_text("x")

        assert temp_gitops.remove_cached("a/b") is True
        assert not repo_path.exists()
        assert temp_gitops.remove_cached("a/b") is False

    @patch("skill_knife.gitops.Repo")
    def test_sync_clones_when_absent(self, mock_repo: MagicMock, temp_gitops: GitOps) -> None:
        """Test a missing mirror is shallow-cloned."""
        result = temp_gitops.sync("anthropics/skills")

        expected = temp_gitops.get_repo_path("anthropics/skills")
        mock_repo.clone_from.assert_called_once_with(
            "https://github.com/anthropics/skills.git", expected, depth=1
        )
        assert result == expected

    @patch("skill_knife.gitops.Repo")
    def test_sync_pulls_when_present(self, mock_repo: MagicMock, temp_gitops: GitOps) -> None:
        """Test an existing mirror is pulled."""
        repo_path = temp_gitops.get_repo_path("anthropics/skills")
        repo_path.mkdir(parents=True)

        temp_gitops.sync("anthropics/skills")

        mock_repo.assert_called_once_with(repo_path)
        mock_repo.return_value.remotes.origin.pull.assert_called_once()
        mock_repo.clone_from.assert_not_called()

    @patch("skill_knife.gitops.Repo")
    def test_sync_clone_error(self, mock_repo: MagicMock, temp_gitops: GitOps) -> None:
        """Test clone failures become MarketFetchError and leave no partial mirror."""
        repo_path = temp_gitops.get_repo_path("a/b")

        def fail_clone(url: str, path: Path, depth: int) -> None:
            path.mkdir(parents=True)
            raise GitCommandError("clone", 128, stderr="repository not found")

        mock_repo.clone_from.side_effect = fail_clone

        with pytest.raises(MarketFetchError) as exc_info:
            temp_gitops.sync("a/b")

        assert exc_info.value.market == "a/b"
        assert "repository not found" in exc_info.value.message
        assert not repo_path.exists()

    @patch("skill_knife.gitops.Repo")
    def test_sync_corrupt_mirror(self, mock_repo: MagicMock, temp_gitops: GitOps) -> None:
        """Test a non-repository mirror directory is reported."""
        temp_gitops.get_repo_path("a/b").mkdir(parents=True)
        mock_repo.side_effect = InvalidGitRepositoryError("nope")

        with pytest.raises(MarketFetchError, match="Not a git repository"):
            temp_gitops.sync("a/b")


class TestFolderHash:
    """Tests for get_folder_hash."""

    @patch("skill_knife.gitops.Repo")
    def test_subfolder(self, mock_repo: MagicMock, tmp_path: Path) -> None:
        """Test the tree SHA of a subfolder at HEAD."""
        tree = MagicMock()
        tree.__truediv__.return_value.hexsha = "f00d"
        mock_repo.return_value.head.commit.tree = tree

        assert GitOps(tmp_path).get_folder_hash(tmp_path, "skills/pdf") == "f00d"
        tree.__truediv__.assert_called_once_with("skills/pdf")

    @patch("skill_knife.gitops.Repo")
    def test_missing_folder(self, mock_repo: MagicMock, tmp_path: Path) -> None:
        """Test an unknown path gives None."""
        tree = MagicMock()
        tree.__truediv__.side_effect = KeyError("skills/none")
        mock_repo.return_value.head.commit.tree = tree

        assert GitOps(tmp_path).get_folder_hash(tmp_path, "skills/none") is None

    def test_not_a_repository(self, tmp_path: Path) -> None:
        """Test a plain directory gives None."""
        assert GitOps(tmp_path).get_folder_hash(tmp_path, "x") is None
