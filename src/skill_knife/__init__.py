"""Skill inventory manager for AI coding agents."""

__version__ = "0.1.0"

# Export protocol interfaces for type hints and dependency injection
from skill_knife.protocols import (
    FileSystem,
    MarketFetcher,
    SkillInstaller,
    SourceRepository,
)

__all__ = [
    "__version__",
    "FileSystem",
    "MarketFetcher",
    "SkillInstaller",
    "SourceRepository",
]
