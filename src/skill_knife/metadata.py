"""Provenance metadata for installed skills.

Two on-disk shapes exist:

* a per-installation ``.openskills.json`` inside the skill directory
  (``source, sourceType, repoUrl, subpath, installedAt[, commitHash]``);
* a global lock file written by the ``skills`` CLI, keyed by skill name
  (``source, sourceType, sourceUrl, skillPath, skillFolderHash, installedAt,
  updatedAt``).

Both are normalized into one SkillMetadata record at the read boundary.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from skill_knife.errors import ParseError

logger = logging.getLogger(__name__)

METADATA_FILE = ".openskills.json"
LOCK_FILE = Path.home() / ".agents" / ".skill-lock.json"

# Lock file is re-read at most once per this many seconds
DEFAULT_LOCK_TTL = 1.0


class SkillMetadata(BaseModel):
    """Canonical provenance record."""

    model_config = ConfigDict(populate_by_name=True)

    source: str | None = None
    source_type: str | None = Field(default=None, alias="sourceType")
    repo_url: str | None = Field(default=None, alias="repoUrl")
    subpath: str | None = None
    content_hash: str | None = Field(default=None, alias="contentHash")
    installed_at: str | None = Field(default=None, alias="installedAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")

    def to_install_file(self) -> dict[str, Any]:
        """Serialize to the per-installation ``.openskills.json`` shape."""
        data: dict[str, Any] = {
            "source": self.source,
            "sourceType": self.source_type,
            "repoUrl": self.repo_url,
            "subpath": self.subpath,
            "installedAt": self.installed_at,
        }
        if self.content_hash:
            data["commitHash"] = self.content_hash
        if self.updated_at:
            data["updatedAt"] = self.updated_at
        return {key: value for key, value in data.items() if value is not None}


def _strip_manifest(skill_path: str) -> str:
    path = skill_path.replace("\\", "/")
    if path.endswith("/SKILL.md"):
        path = path[: -len("/SKILL.md")]
    elif path == "SKILL.md":
        path = ""
    return path


def normalize_metadata(raw: Any) -> SkillMetadata:
    """Map either metadata schema to a SkillMetadata record.

    Args:
        raw: Parsed JSON object from a per-install file or a lock entry.

    Returns:
        Normalized metadata.

    Raises:
        ParseError: If raw is not an object or has wrongly-typed fields.
    """
    if not isinstance(raw, dict):
        raise ParseError(f"Metadata must be an object, got {type(raw).__name__}")

    subpath = raw.get("subpath")
    if subpath is None and isinstance(raw.get("skillPath"), str):
        subpath = _strip_manifest(raw["skillPath"])

    try:
        return SkillMetadata(
            source=raw.get("source"),
            source_type=raw.get("sourceType"),
            repo_url=raw.get("repoUrl") or raw.get("sourceUrl"),
            subpath=subpath,
            content_hash=raw.get("commitHash") or raw.get("skillFolderHash") or raw.get("contentHash"),
            installed_at=raw.get("installedAt"),
            updated_at=raw.get("updatedAt"),
        )
    except PydanticValidationError as e:
        raise ParseError(str(e)) from e


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON in {path}: {e}") from e


class LockFileCache:
    """Time-boxed read-through cache for the global lock file.

    Writes to the lock file happen out of process, so the cache expires by
    age only.
    """

    def __init__(
        self,
        path: Path | None = None,
        ttl: float = DEFAULT_LOCK_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            path: Lock file location. Defaults to ~/.agents/.skill-lock.json.
            ttl: Maximum age in seconds of a cached read.
            clock: Monotonic time source (injectable for tests).
        """
        self.path = path or LOCK_FILE
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, Any] = {}
        self._loaded_at: float | None = None

    def invalidate(self) -> None:
        """Drop the cached copy; the next access re-reads the file."""
        self._loaded_at = None

    def entries(self) -> dict[str, Any]:
        """Get lock entries keyed by skill name, re-reading if stale."""
        now = self._clock()
        if self._loaded_at is None or now - self._loaded_at >= self.ttl:
            self._entries = self._load()
            self._loaded_at = now
        return self._entries

    def get(self, name: str) -> SkillMetadata | None:
        """Get normalized metadata for a skill from the lock file."""
        raw = self.entries().get(name)
        if raw is None:
            return None
        try:
            return normalize_metadata(raw)
        except ParseError as e:
            logger.debug("Ignoring malformed lock entry for %s: %s", name, e)
            return None

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = _read_json(self.path)
        except (OSError, ParseError) as e:
            logger.debug("Cannot read lock file %s: %s", self.path, e)
            return {}
        skills = data.get("skills") if isinstance(data, dict) else None
        return skills if isinstance(skills, dict) else {}


class MetadataReader:
    """Reads provenance for installed skills."""

    def __init__(self, lock_cache: LockFileCache) -> None:
        """Initialize the reader.

        Args:
            lock_cache: Cache for the global lock file.
        """
        self.lock_cache = lock_cache

    def read_install_file(self, skill_dir: Path) -> SkillMetadata | None:
        """Read the per-installation metadata file of a skill directory.

        Args:
            skill_dir: Installed skill directory.

        Returns:
            Normalized metadata, or None when absent or malformed.
        """
        meta_path = skill_dir / METADATA_FILE
        if not meta_path.is_file():
            return None
        try:
            return normalize_metadata(_read_json(meta_path))
        except (OSError, ParseError) as e:
            logger.debug("Ignoring metadata in %s: %s", skill_dir, e)
            return None

    def read(self, skill_dir: Path, name: str) -> SkillMetadata | None:
        """Read metadata, preferring the per-install file over the lock file.

        Args:
            skill_dir: Installed skill directory.
            name: Skill name, the lock file key.

        Returns:
            Normalized metadata, or None.
        """
        return self.read_install_file(skill_dir) or self.lock_cache.get(name)


def write_install_metadata(skill_dir: Path, metadata: SkillMetadata) -> Path:
    """Write a per-installation metadata file.

    Args:
        skill_dir: Installed skill directory.
        metadata: Provenance to record.

    Returns:
        Path of the written file.
    """
    meta_path = skill_dir / METADATA_FILE
    meta_path.write_text(json.dumps(metadata.to_install_file(), indent=2))
    return meta_path


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()
