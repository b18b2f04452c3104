"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from skill_knife.readers import Reader


@pytest.fixture
def temp_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Override home directory for testing."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setattr(Path, "home", lambda: home)
    return home


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Create a temporary project with a .git marker."""
    root = tmp_path / "project"
    (root / ".git").mkdir(parents=True)
    return root


@pytest.fixture
def two_readers() -> list[Reader]:
    """Two readers with home-relative global dirs."""
    return [
        Reader(
            id="claude-code",
            name="Claude Code",
            short_name="Claude",
            global_path="~/.claude/skills",
            project_path=".claude/skills",
        ),
        Reader(
            id="cursor",
            name="Cursor",
            short_name="Cursor",
            global_path="~/.cursor/skills",
            project_path=".cursor/skills",
        ),
    ]


def _make_skill(parent: Path, name: str, description: str = "A test skill") -> Path:
    skill_dir = parent / name
    skill_dir.mkdir(parents=True, exist_ok=True)
    (skill_dir / "SKILL.md").write_text(
        f"---\nname: {name}\ndescription: {description}\n---\n\n# {name}\n"
    )
    return skill_dir


@pytest.fixture
def make_skill():
    """Factory creating a skill bundle directory with a SKILL.md manifest."""
    return _make_skill


@pytest.fixture
def sample_skill_content() -> str:
    """Sample skill SKILL.md content."""
    return """---
name: github
description: GitHub operations skill
---

# GitHub Skill

Provides GitHub operations like creating PRs, issues, and comments.
"""


# ============================================================================
# Mock FileSystem Fixture
# ============================================================================


@pytest.fixture
def mock_filesystem() -> MagicMock:
    """Create a mock FileSystem for testing.

    The mock tracks all filesystem operations without touching real files.
    """
    fs = MagicMock()
    fs.exists.return_value = False
    fs.is_dir.return_value = False
    fs.list_dir.return_value = []
    return fs
