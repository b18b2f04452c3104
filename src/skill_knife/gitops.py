"""Git operations for market mirrors."""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path

from git import Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from skill_knife.errors import MarketFetchError

logger = logging.getLogger(__name__)

# Default cache location for market mirrors
CACHE_DIR = Path.home() / ".skill-manager" / "cache"

_SANITIZE_RE = re.compile(r"[/\\:]")


def sanitize_reference(git_ref: str) -> str:
    """Turn a git reference into a cache directory name.

    Example:
        >>> sanitize_reference("anthropics/skills")
        'anthropics_skills'
    """
    return _SANITIZE_RE.sub("_", git_ref)


def to_clone_url(git_ref: str) -> str:
    """Expand an ``owner/repo`` shorthand into a GitHub clone URL.

    Full URLs (``https://...``, ``git@...``) are returned unchanged.
    """
    if "://" in git_ref or git_ref.startswith("git@"):
        return git_ref
    return f"https://github.com/{git_ref}.git"


def _git_error_text(error: GitCommandError) -> str:
    stderr = error.stderr if isinstance(error.stderr, str) else ""
    return stderr.strip() or str(error)


class GitOps:
    """Manages local mirrors of git-backed markets."""

    def __init__(self, cache_dir: Path | None = None) -> None:
        """Initialize git operations manager.

        Args:
            cache_dir: Directory for mirrors. Defaults to ~/.skill-manager/cache.

        Note:
            Prefer using factory methods `create()` or `create_default()` for construction.
        """
        self.cache_dir = cache_dir or CACHE_DIR

    @classmethod
    def create(cls, cache_dir: Path) -> GitOps:
        """Create a git operations manager with a custom cache directory."""
        return cls(cache_dir=cache_dir)

    @classmethod
    def create_default(cls) -> GitOps:
        """Create a git operations manager with the default cache directory."""
        return cls()

    def ensure_cache_dir(self) -> None:
        """Create cache directory if it doesn't exist."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def get_repo_path(self, git_ref: str) -> Path:
        """Get the mirror directory for a git reference.

        Args:
            git_ref: ``owner/repo`` shorthand or full URL.

        Returns:
            Path under the cache directory keyed by the sanitized reference.
        """
        return self.cache_dir / sanitize_reference(git_ref)

    def is_cached(self, git_ref: str) -> bool:
        """Check if a mirror exists."""
        return self.get_repo_path(git_ref).exists()

    def sync(self, git_ref: str) -> Path:
        """Clone a mirror if absent, otherwise pull it.

        Args:
            git_ref: ``owner/repo`` shorthand or full URL.

        Returns:
            Path to the mirror.

        Raises:
            MarketFetchError: If clone or pull fails.
        """
        self.ensure_cache_dir()
        repo_path = self.get_repo_path(git_ref)

        try:
            if repo_path.exists():
                self._pull(repo_path)
            else:
                self._clone(to_clone_url(git_ref), repo_path)
        except GitCommandError as e:
            raise MarketFetchError(git_ref, _git_error_text(e)) from e
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise MarketFetchError(git_ref, f"Not a git repository: {repo_path}") from e
        return repo_path

    def _clone(self, url: str, path: Path) -> None:
        logger.debug("Cloning %s into %s", url, path)
        try:
            Repo.clone_from(url, path, depth=1)
        except GitCommandError:
            self._cleanup_failed_clone(path)
            raise

    def _pull(self, path: Path) -> None:
        logger.debug("Pulling %s", path)
        repo = Repo(path)
        repo.remotes.origin.pull()

    def _cleanup_failed_clone(self, path: Path) -> None:
        """Remove partial clone directory after failed attempt."""
        if path.exists():
            shutil.rmtree(path, ignore_errors=True)

    def get_folder_hash(self, repo_path: Path, subpath: str) -> str | None:
        """Get the git tree SHA of a folder at HEAD.

        This is the same value the ``skills`` CLI records as
        ``skillFolderHash``, so the two can be compared directly.

        Args:
            repo_path: Mirror directory.
            subpath: Folder path relative to the repository root.

        Returns:
            Hex tree SHA, or None if it cannot be determined.
        """
        try:
            tree = Repo(repo_path).head.commit.tree
            return (tree / subpath).hexsha if subpath else tree.hexsha
        except (InvalidGitRepositoryError, NoSuchPathError, KeyError, ValueError) as e:
            logger.debug("No tree hash for %s in %s: %s", subpath, repo_path, e)
            return None

    def remove_cached(self, git_ref: str) -> bool:
        """Remove a mirror.

        Returns:
            True if removed, False if not found.
        """
        repo_path = self.get_repo_path(git_ref)
        if repo_path.exists():
            shutil.rmtree(repo_path)
            return True
        return False
