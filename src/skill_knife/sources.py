"""Install-source resolution for local and market skills."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from skill_knife.markets import MarketSkill
    from skill_knife.scanner import Skill

_DEEP_LINK_RE = re.compile(r"^(.*)/tree/.*$")


@dataclass(frozen=True)
class LocalSubject:
    """An installed skill used as an install source (reinstall, profiles)."""

    skill: Skill

    @property
    def name(self) -> str:
        return self.skill.name


@dataclass(frozen=True)
class MarketSubject:
    """A market skill used as an install source."""

    skill: MarketSkill

    @property
    def name(self) -> str:
        return self.skill.name


InstallSubject = Union[LocalSubject, MarketSubject]


def normalize_repo_url(repo: str) -> str:
    """Turn ``owner/repo`` shorthand into a GitHub URL and drop a ``.git`` suffix."""
    url = repo
    if not url.startswith(("http", "git@")):
        url = f"https://github.com/{url}"
    if url.endswith(".git"):
        url = url[:-4]
    return url


def resolve_install_args(subject: InstallSubject) -> list[str]:
    """Build the source arguments for the packaging CLI.

    Returns:
        ``[locator]`` or ``[locator, "--skill", name]``.
    """
    if isinstance(subject, MarketSubject):
        skill = subject.skill
        locator = normalize_repo_url(skill.repo_path)
        skill_name = skill.subpath.rstrip("/").split("/")[-1] if skill.subpath else ""
    else:
        skill = subject.skill
        metadata = skill.metadata
        locator = (metadata.repo_url or metadata.source) if metadata else None
        locator = locator or skill.name
        deep = _DEEP_LINK_RE.match(locator)
        if deep:
            locator = deep.group(1)
        skill_name = skill.name

    args = [locator]
    if skill_name:
        args.extend(["--skill", skill_name])
    return args


def resolve_install_source(subject: InstallSubject) -> str:
    """Get the repository locator of a subject, as stored in profiles."""
    return resolve_install_args(subject)[0]
