"""Application context for dependency injection.

This module separates object creation from object use, enabling testability
and reducing coupling in CLI commands.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from skill_knife.config import AppConfig, load_config
from skill_knife.protocols import FileSystem, MarketFetcher, SkillInstaller, SourceRepository

if TYPE_CHECKING:
    from skill_knife.persistence import PersistenceStore
    from skill_knife.readers import Reader
    from skill_knife.scanner import SkillScanner
    from skill_knife.skillsh import SkillShClient


def _default_filesystem() -> FileSystem:
    """Create the default filesystem implementation."""
    from skill_knife.filesystem import RealFileSystem
    return RealFileSystem()


@dataclass
class AppContext:
    """Container for application dependencies.

    Provides a single injection point for all services used by CLI commands.
    Services are typed by Protocol where one exists, so tests can inject
    doubles without inheritance.
    """

    config: AppConfig
    store: PersistenceStore
    gitops: SourceRepository
    catalog: MarketFetcher
    skillsh: SkillShClient
    scanner: SkillScanner
    installer: SkillInstaller
    filesystem: FileSystem = field(default_factory=_default_filesystem)

    @property
    def readers(self) -> list[Reader]:
        return self.scanner.readers


def create_context(config: AppConfig | None = None) -> AppContext:
    """Factory for application dependencies.

    Creates all services with proper wiring. Use this in production code.
    For tests, construct AppContext directly with test doubles.

    Args:
        config: Configuration. Defaults to load_config().

    Returns:
        Configured AppContext with all dependencies.
    """
    from skill_knife.filesystem import RealFileSystem
    from skill_knife.gitops import GitOps
    from skill_knife.install import Installer
    from skill_knife.markets import MarketCatalog
    from skill_knife.metadata import LockFileCache, MetadataReader
    from skill_knife.packaging import SkillsCli
    from skill_knife.persistence import PersistenceStore
    from skill_knife.readers import get_readers
    from skill_knife.scanner import SkillScanner
    from skill_knife.skillsh import SkillShClient

    config = config or load_config()
    filesystem = RealFileSystem()
    store = PersistenceStore.create(config.data_dir)
    gitops = GitOps.create(config.cache_dir)
    catalog = MarketCatalog(gitops, filesystem)
    metadata_reader = MetadataReader(LockFileCache(config.lock_file, ttl=config.lock_ttl))
    scanner = SkillScanner(get_readers(config.readers), metadata_reader, filesystem)
    installer = Installer.create(
        catalog=catalog,
        scanner=scanner,
        cli=SkillsCli(config.cli_command),
        store=store,
        mode=config.mode,
        filesystem=filesystem,
    )

    return AppContext(
        config=config,
        store=store,
        gitops=gitops,
        catalog=catalog,
        skillsh=SkillShClient(timeout_s=config.http_timeout),
        scanner=scanner,
        installer=installer,
        filesystem=filesystem,
    )
