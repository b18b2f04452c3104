"""Local inventory scanning of installed skills."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from skill_knife.errors import ScanIOError
from skill_knife.filesystem import RealFileSystem
from skill_knife.frontmatter import SKILL_FILE, read_description
from skill_knife.types import Scope

if TYPE_CHECKING:
    from skill_knife.metadata import MetadataReader, SkillMetadata
    from skill_knife.protocols import FileSystem
    from skill_knife.readers import Reader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Installation:
    """One location where a skill bundle exists."""

    scope: Scope
    reader_id: str
    path: Path


@dataclass
class Skill:
    """An installed skill, merged across all of its installations.

    The description and metadata come from the first installation found:
    readers in configured order, global scope before project scope, project
    roots in the order given to the scan.
    """

    name: str
    installations: list[Installation] = field(default_factory=list)
    description: str | None = None
    metadata: SkillMetadata | None = None

    def installations_in(self, scope: Scope) -> list[Installation]:
        return [i for i in self.installations if i.scope == scope]

    @property
    def content_hash(self) -> str | None:
        return self.metadata.content_hash if self.metadata else None


def is_skill_dir(path: Path, fs: FileSystem) -> bool:
    """Check whether a path is a skill bundle.

    A bundle is a directory (or symlink to one) whose name does not start
    with a dot and which directly contains SKILL.md.
    """
    if path.name.startswith("."):
        return False
    return fs.is_dir(path) and fs.is_file(path / SKILL_FILE)


def list_skill_dirs(directory: Path, fs: FileSystem) -> list[Path]:
    """List skill bundles directly under a directory.

    Args:
        directory: Directory to list.
        fs: Filesystem abstraction.

    Returns:
        Skill directories sorted by name. Empty if the directory is missing.

    Raises:
        ScanIOError: If the directory cannot be checked or read.
    """
    try:
        if not fs.is_dir(directory):
            return []
        entries = fs.list_dir(directory)
        return sorted((e for e in entries if is_skill_dir(e, fs)), key=lambda p: p.name)
    except OSError as e:
        raise ScanIOError(f"Cannot scan {directory}: {e}") from e


class SkillScanner:
    """Discovers installed skills across readers and scopes."""

    def __init__(
        self,
        readers: list[Reader],
        metadata_reader: MetadataReader,
        filesystem: FileSystem | None = None,
    ) -> None:
        """Initialize the scanner.

        Args:
            readers: Readers to scan, in priority order.
            metadata_reader: Reader for provenance metadata.
            filesystem: Filesystem abstraction.
        """
        self.readers = readers
        self.metadata_reader = metadata_reader
        self.fs = filesystem or RealFileSystem()

    def _scan_directory(self, directory: Path, scope: Scope, reader_id: str) -> list[Installation]:
        try:
            paths = list_skill_dirs(directory, self.fs)
        except ScanIOError as e:
            logger.debug("%s", e)
            return []
        return [Installation(scope=scope, reader_id=reader_id, path=p) for p in paths]

    def scan_installations(self, project_roots: list[Path] | None = None) -> list[Installation]:
        """Collect every installation in deterministic order."""
        installations: list[Installation] = []
        for reader in self.readers:
            installations.extend(
                self._scan_directory(reader.global_dir(), Scope.GLOBAL, reader.id)
            )
            for root in project_roots or []:
                installations.extend(
                    self._scan_directory(reader.project_dir(root), Scope.PROJECT, reader.id)
                )
        return installations

    def scan(self, project_roots: list[Path] | None = None) -> list[Skill]:
        """Scan all configured locations for installed skills.

        Args:
            project_roots: Workspace roots for project-scope scanning.

        Returns:
            Skills sorted by name, each with at least one installation.
        """
        by_name: dict[str, Skill] = {}
        for installation in self.scan_installations(project_roots):
            name = installation.path.name
            by_name.setdefault(name, Skill(name=name)).installations.append(installation)

        for skill in by_name.values():
            first = skill.installations[0].path
            skill.description = read_description(first)
            skill.metadata = self.metadata_reader.read(first, skill.name)

        return sorted(by_name.values(), key=lambda s: (s.name.lower(), s.name))


def find_skill(name: str, skills: list[Skill]) -> Skill | None:
    """Find a skill by name."""
    for skill in skills:
        if skill.name == name:
            return skill
    return None


def filter_skills(skills: list[Skill], text: str | None) -> list[Skill]:
    """Keep skills whose name or description contains text, case-insensitively.

    An empty filter keeps everything. Order is preserved.
    """
    needle = (text or "").strip().lower()
    if not needle:
        return list(skills)
    return [
        skill
        for skill in skills
        if needle in skill.name.lower() or needle in (skill.description or "").lower()
    ]
