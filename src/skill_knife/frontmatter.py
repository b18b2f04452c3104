"""Frontmatter parsing for SKILL.md manifests.

Manifests may start with a YAML block delimited by ``---`` lines. Only the
``description`` key matters to skill-knife; a missing or malformed block
yields no description and is never an error.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

SKILL_FILE = "SKILL.md"

_BLOCK_RE = re.compile(r"\A---\r?\n(.*?)\r?\n---", re.DOTALL)
_DESCRIPTION_RE = re.compile(r"""^description:\s*["']?(.+?)["']?\s*$""", re.MULTILINE)


def extract_block(content: str) -> str | None:
    """Return the raw frontmatter text, or None when there is no block.

    Example:
        >>> extract_block("---\\nname: test\\n---\\nBody")
        'name: test'
    """
    match = _BLOCK_RE.match(content)
    return match.group(1) if match else None


def parse_frontmatter(content: str) -> dict:
    """Parse YAML frontmatter from content.

    Args:
        content: File content with optional frontmatter.

    Returns:
        Parsed frontmatter dict, empty if none found or invalid.
    """
    block = extract_block(content)
    if block is None:
        return {}
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as e:
        logger.debug("Invalid YAML frontmatter: %s", e)
        return {}
    return data if isinstance(data, dict) else {}


def parse_description(content: str) -> str | None:
    """Extract the ``description`` value from frontmatter.

    YAML is tried first. Frontmatter that is not valid YAML (unquoted colons
    are common in hand-written manifests) falls back to a line match with
    optional surrounding quotes.

    Args:
        content: Full SKILL.md content.

    Returns:
        Description text, or None if absent.
    """
    block = extract_block(content)
    if block is None:
        return None

    data = parse_frontmatter(content)
    value = data.get("description")
    if value is not None and not isinstance(value, (dict, list)):
        text = str(value).strip()
        return text or None

    match = _DESCRIPTION_RE.search(block)
    if match:
        return match.group(1).strip() or None
    return None


def read_description(skill_dir: Path) -> str | None:
    """Read the description of a skill directory's manifest.

    Args:
        skill_dir: Directory containing SKILL.md.

    Returns:
        Description text, or None if the manifest is missing or unreadable.
    """
    try:
        content = (skill_dir / SKILL_FILE).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Cannot read manifest in %s: %s", skill_dir, e)
        return None
    return parse_description(content)


def strip_frontmatter(content: str) -> str:
    """Return the manifest body without its frontmatter block."""
    match = _BLOCK_RE.match(content)
    if match is None:
        return content.strip()
    return content[match.end():].strip()


def read_body(skill_dir: Path) -> str | None:
    """Read the Markdown body of a skill directory's manifest.

    Returns:
        Body text, or None if the manifest is missing or unreadable.
    """
    try:
        content = (skill_dir / SKILL_FILE).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Cannot read manifest in %s: %s", skill_dir, e)
        return None
    return strip_frontmatter(content)
