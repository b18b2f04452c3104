"""Reader definitions: agents that consume skills and where they look for them."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

__all__ = [
    "DEFAULT_READERS",
    "UNIVERSAL_READER_ID",
    "Reader",
    "expand_path",
    "get_reader",
    "get_readers",
]

logger = logging.getLogger(__name__)

# Internal id for the universal ~/.agents/skills location; not a valid CLI agent id
UNIVERSAL_READER_ID = "skills-cli"


def expand_path(path: str | Path) -> Path:
    """Expand a leading ``~`` to the user's home directory.

    Args:
        path: Path string, possibly home-relative.

    Returns:
        Expanded path. Paths without a leading ``~`` are returned unchanged.
    """
    text = str(path)
    if text == "~":
        return Path.home()
    if text.startswith("~/"):
        return Path.home() / text[2:]
    return Path(text)


class Reader(BaseModel):
    """An agent/tool that reads skills from a global and a project directory."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    name: str
    short_name: str = Field(alias="shortName")
    global_path: str = Field(alias="globalPath")
    project_path: str = Field(alias="projectPath")
    version: str | None = None

    def global_dir(self) -> Path:
        """Get the resolved global skills directory."""
        return expand_path(self.global_path)

    def project_dir(self, project_root: Path) -> Path:
        """Get the skills directory for a project root."""
        return project_root / self.project_path

    def scope_dir(self, scope: str, project_root: Path | None = None) -> Path:
        """Get the skills directory for a scope.

        Args:
            scope: "global" or "project".
            project_root: Project root, required for project scope.

        Returns:
            Resolved skills directory.

        Raises:
            ValueError: If scope is "project" and no project root is given.
        """
        if scope == "global":
            return self.global_dir()
        if project_root is None:
            raise ValueError("project_root is required for project scope")
        return self.project_dir(project_root)


def _reader(id: str, name: str, short: str, global_path: str, project_path: str) -> Reader:
    return Reader(
        id=id,
        name=name,
        short_name=short,
        global_path=global_path,
        project_path=project_path,
    )


DEFAULT_READERS: list[Reader] = [
    _reader("amp", "Amp, Kimi Code CLI", "AMP", "~/.config/agents/skills", ".agents/skills"),
    _reader("antigravity", "Antigravity", "AG", "~/.gemini/antigravity/global_skills", ".agent/skills"),
    _reader("claude-code", "Claude Code", "CC", "~/.claude/skills", ".claude/skills"),
    _reader("moltbot", "Moltbot", "MOLT", "~/.moltbot/skills", "skills"),
    _reader("cline", "Cline", "CLINE", "~/.cline/skills", ".cline/skills"),
    _reader("codebuddy", "CodeBuddy", "CB", "~/.codebuddy/skills", ".codebuddy/skills"),
    _reader("codex", "Codex", "CX", "~/.codex/skills", ".codex/skills"),
    _reader("command-code", "Command Code", "CMD", "~/.commandcode/skills", ".commandcode/skills"),
    _reader("continue", "Continue", "CONT", "~/.continue/skills", ".continue/skills"),
    _reader("crush", "Crush", "CRUSH", "~/.config/crush/skills", ".crush/skills"),
    _reader("cursor", "Cursor", "CUR", "~/.cursor/skills", ".cursor/skills"),
    _reader("droid", "Droid", "DROID", "~/.factory/skills", ".factory/skills"),
    _reader("gemini-cli", "Gemini CLI", "GM", "~/.gemini/skills", ".gemini/skills"),
    _reader("github-copilot", "GitHub Copilot", "COPILOT", "~/.copilot/skills", ".github/skills"),
    _reader("goose", "Goose", "GOOSE", "~/.config/goose/skills", ".goose/skills"),
    _reader("junie", "Junie", "JUNIE", "~/.junie/skills", ".junie/skills"),
    _reader("kilo", "Kilo Code", "KILO", "~/.kilocode/skills", ".kilocode/skills"),
    _reader("kiro-cli", "Kiro CLI", "KIRO", "~/.kiro/skills", ".kiro/skills"),
    _reader("kode", "Kode", "KODE", "~/.kode/skills", ".kode/skills"),
    _reader("mcpjam", "MCPJam", "MCP", "~/.mcpjam/skills", ".mcpjam/skills"),
    _reader("mux", "Mux", "MUX", "~/.mux/skills", ".mux/skills"),
    _reader("opencode", "OpenCode", "OPEN", "~/.config/opencode/skills", ".opencode/skills"),
    _reader("openhands", "OpenHands", "HANDS", "~/.openhands/skills", ".openhands/skills"),
    _reader("pi", "Pi", "PI", "~/.pi/agent/skills", ".pi/skills"),
    _reader("qoder", "Qoder", "QODER", "~/.qoder/skills", ".qoder/skills"),
    _reader("qwen-code", "Qwen Code", "QWEN", "~/.qwen/skills", ".qwen/skills"),
    _reader("roo", "Roo Code", "ROO", "~/.roo/skills", ".roo/skills"),
    _reader("trae", "Trae", "TRAE", "~/.trae/skills", ".trae/skills"),
    _reader("windsurf", "Windsurf", "WIND", "~/.codeium/windsurf/skills", ".windsurf/skills"),
    _reader("zencoder", "Zencoder", "ZEN", "~/.zencoder/skills", ".zencoder/skills"),
    _reader("neovate", "Neovate", "NEO", "~/.neovate/skills", ".neovate/skills"),
    _reader("pochi", "Pochi", "POCHI", "~/.pochi/skills", ".pochi/skills"),
    _reader(UNIVERSAL_READER_ID, "Agents (Universal)", "UN", "~/.agents/skills", ".agents/skills"),
]


def _to_aliases(data: dict[str, Any]) -> dict[str, Any]:
    """Rewrite snake_case field names to their camelCase aliases."""
    result = dict(data)
    for field_name, info in Reader.model_fields.items():
        if info.alias and field_name in result:
            result[info.alias] = result.pop(field_name)
    return result


def get_readers(overrides: list[dict[str, Any]] | None = None) -> list[Reader]:
    """Get built-in readers merged with user overrides.

    Overrides are merged field by field onto the built-in with the same id.
    Entries with an unknown id are appended and must define every field.
    Overrides that do not validate are logged and skipped.

    Args:
        overrides: Reader dicts using either camelCase or snake_case keys.

    Returns:
        Readers in built-in order followed by new user readers.
    """
    readers: dict[str, Reader] = {reader.id: reader for reader in DEFAULT_READERS}

    for override in overrides or []:
        reader_id = override.get("id")
        if not reader_id:
            continue
        base = readers.get(reader_id)
        merged = base.model_dump(by_alias=True) if base else {}
        merged.update(_to_aliases(override))
        try:
            readers[reader_id] = Reader.model_validate(merged)
        except PydanticValidationError as e:
            logger.warning("Ignoring invalid reader override '%s': %s", reader_id, e)

    return list(readers.values())


def get_reader(reader_id: str, readers: list[Reader] | None = None) -> Reader | None:
    """Get a reader by id.

    Args:
        reader_id: Reader identifier.
        readers: Reader list to search. Defaults to the built-ins.

    Returns:
        Matching Reader or None.
    """
    for reader in readers if readers is not None else DEFAULT_READERS:
        if reader.id == reader_id:
            return reader
    return None
