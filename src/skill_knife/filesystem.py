"""Filesystem abstraction for testability.

This module provides a filesystem abstraction that enables testing
without real I/O operations. The RealFileSystem implementation
wraps standard library operations.
"""

from __future__ import annotations

import shutil
from pathlib import Path


class RealFileSystem:
    """Production filesystem implementation.

    Wraps standard library Path and shutil operations.
    Satisfies the FileSystem protocol structurally.
    """

    def exists(self, path: Path) -> bool:
        """Check if a path exists (follows symlinks)."""
        return path.exists()

    def is_dir(self, path: Path) -> bool:
        """Check if a path is a directory (follows symlinks)."""
        return path.is_dir()

    def is_file(self, path: Path) -> bool:
        """Check if a path is a regular file (follows symlinks)."""
        return path.is_file()

    def list_dir(self, path: Path) -> list[Path]:
        """List directory entries.

        Raises:
            OSError: If the directory cannot be read.
        """
        return list(path.iterdir())

    def mkdir(self, path: Path, parents: bool = False, exist_ok: bool = False) -> None:
        """Create a directory."""
        path.mkdir(parents=parents, exist_ok=exist_ok)

    def copytree(self, src: Path, dst: Path) -> None:
        """Copy a directory tree, merging into an existing destination."""
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copytree(src, dst, dirs_exist_ok=True)

    def force_remove(self, path: Path) -> bool:
        """Remove a file, directory tree or symlink, ignoring missing targets.

        Broken symlinks are unlinked rather than followed.

        Returns:
            True if something was removed, False if nothing was there.
        """
        if path.is_symlink():
            path.unlink()
            return True
        if not path.exists():
            return False
        if path.is_dir():
            shutil.rmtree(path)
        else:
            path.unlink(missing_ok=True)
        return True
