"""Protocol definitions for core abstractions.

Services depend on these interfaces rather than on concrete classes, so
tests can substitute doubles without inheritance. All concrete
implementations satisfy these protocols structurally.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Callable, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from skill_knife.markets import CatalogResult, Market, MarketSkill
    from skill_knife.readers import Reader
    from skill_knife.scanner import Installation, Skill
    from skill_knife.sources import InstallSubject
    from skill_knife.types import (
        BatchReport,
        CancellationToken,
        OperationResult,
        ProgressEvent,
        Scope,
    )


@runtime_checkable
class SourceRepository(Protocol):
    """Protocol for git mirror operations.

    Implementations keep a local shallow mirror per market reference.
    """

    def sync(self, git_ref: str) -> Path:
        """Clone the market repository, or pull it if already mirrored.

        Args:
            git_ref: ``owner/repo`` shorthand or full git URL.

        Returns:
            Path to the local mirror.

        Raises:
            MarketFetchError: If git fails.
        """
        ...

    def get_repo_path(self, git_ref: str) -> Path:
        """Get the local mirror path for a reference."""
        ...

    def get_folder_hash(self, repo_path: Path, subpath: str) -> str | None:
        """Get the git tree hash of a folder at HEAD.

        Args:
            repo_path: Mirror root.
            subpath: Folder relative to the mirror root.

        Returns:
            Tree SHA, or None if unavailable.
        """
        ...

    def remove_cached(self, git_ref: str) -> bool:
        """Remove a mirror. Returns True if it existed."""
        ...

    def is_cached(self, git_ref: str) -> bool:
        ...


@runtime_checkable
class FileSystem(Protocol):
    """Protocol for filesystem operations.

    Abstracts filesystem access to enable testing without real I/O.
    """

    def exists(self, path: Path) -> bool:
        ...

    def is_dir(self, path: Path) -> bool:
        ...

    def is_file(self, path: Path) -> bool:
        ...

    def list_dir(self, path: Path) -> list[Path]:
        """List directory entries.

        Raises:
            OSError: If the directory cannot be read.
        """
        ...

    def mkdir(self, path: Path, parents: bool = False, exist_ok: bool = False) -> None:
        ...

    def copytree(self, src: Path, dst: Path) -> None:
        """Copy a directory tree, creating parents of dst."""
        ...

    def force_remove(self, path: Path) -> bool:
        """Remove a file, directory or symlink, including a broken symlink.

        Returns:
            True if something was removed, False if nothing was there.
        """
        ...


@runtime_checkable
class MarketFetcher(Protocol):
    """Protocol for loading market catalogs."""

    def fetch(self, market: Market) -> list[MarketSkill]:
        """Load one market's skills.

        Raises:
            MarketFetchError: If the market cannot be fetched.
        """
        ...

    def fetch_all(self, markets: list[Market], max_workers: int = 4) -> CatalogResult:
        """Load several markets; a failing market does not affect the others."""
        ...

    def get_skill_source_dir(self, skill: MarketSkill) -> Path:
        ...


@runtime_checkable
class SkillInstaller(Protocol):
    """Protocol for install, update and uninstall operations."""

    def install(
        self,
        subject: InstallSubject,
        scope: Scope,
        readers: Sequence[Reader] = (),
        project_root: Path | None = None,
        sink: Callable[[str], None] | None = None,
        cancel: CancellationToken | None = None,
    ) -> list[OperationResult]:
        ...

    def uninstall(self, installation: Installation) -> OperationResult:
        ...

    def remove(
        self,
        skill: Skill,
        scope: Scope,
        project_root: Path | None = None,
        sink: Callable[[str], None] | None = None,
        cancel: CancellationToken | None = None,
    ) -> list[OperationResult]:
        ...

    def install_all(
        self,
        subjects: Sequence[InstallSubject],
        scope: Scope,
        readers: Sequence[Reader] = (),
        project_root: Path | None = None,
        on_progress: Callable[[ProgressEvent], None] | None = None,
        cancel: CancellationToken | None = None,
        sink: Callable[[str], None] | None = None,
    ) -> BatchReport:
        ...

    def uninstall_all(
        self,
        skills: Sequence[Skill],
        scope: Scope,
        project_root: Path | None = None,
        on_progress: Callable[[ProgressEvent], None] | None = None,
        cancel: CancellationToken | None = None,
        sink: Callable[[str], None] | None = None,
    ) -> BatchReport:
        ...

    def update_all(
        self,
        markets: list[Market] | None = None,
        project_roots: list[Path] | None = None,
        on_progress: Callable[[ProgressEvent], None] | None = None,
        cancel: CancellationToken | None = None,
        sink: Callable[[str], None] | None = None,
    ) -> BatchReport:
        ...
