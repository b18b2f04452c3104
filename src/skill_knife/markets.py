"""Market definitions and git-backed catalog fetching."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from skill_knife.errors import MarketFetchError, ScanIOError, ValidationError
from skill_knife.filesystem import RealFileSystem
from skill_knife.frontmatter import read_description
from skill_knife.scanner import list_skill_dirs

if TYPE_CHECKING:
    from skill_knife.protocols import FileSystem, SourceRepository

logger = logging.getLogger(__name__)

SKILLS_SUBDIR = "skills"
SKILLS_SH_REF = "skills.sh"


class Market(BaseModel):
    """A named remote catalog of skills."""

    model_config = ConfigDict(frozen=True)

    name: str
    git: str

    @property
    def virtual(self) -> bool:
        """True for the scraped skills.sh search, which has no git mirror."""
        return self.git == SKILLS_SH_REF


DEFAULT_MARKETS: list[Market] = [
    Market(name="Anthropic Official", git="anthropics/skills"),
    Market(name="Superpowers", git="obra/superpowers"),
    Market(name="Vercel Labs", git="vercel-labs/agent-browser"),
    Market(name="ComposioHQ Awesome", git="ComposioHQ/awesome-claude-skills"),
]

SKILLS_SH_MARKET = Market(name="skills.sh", git=SKILLS_SH_REF)


@dataclass
class MarketSkill:
    """A skill available from a market. Never persisted."""

    name: str
    market: Market
    repo_path: str
    subpath: str
    description: str | None = None
    content_hash: str | None = None
    installs: int | None = None
    install_command: str | None = None


@dataclass
class CatalogResult:
    """Outcome of fetching several markets independently."""

    skills: dict[str, list[MarketSkill]] = field(default_factory=dict)
    errors: dict[str, MarketFetchError] = field(default_factory=dict)

    def all_skills(self) -> list[MarketSkill]:
        return [skill for skills in self.skills.values() for skill in skills]


class MarketCatalog:
    """Fetches skill catalogs from git-backed markets."""

    def __init__(self, gitops: SourceRepository, filesystem: FileSystem | None = None) -> None:
        """Initialize the catalog.

        Args:
            gitops: Mirror manager used to clone/pull markets.
            filesystem: Filesystem abstraction.
        """
        self.gitops = gitops
        self.fs = filesystem or RealFileSystem()

    def _search_root(self, repo_dir: Path) -> Path:
        skills_dir = repo_dir / SKILLS_SUBDIR
        return skills_dir if self.fs.is_dir(skills_dir) else repo_dir

    def scan_mirror(self, market: Market, repo_dir: Path) -> list[MarketSkill]:
        """Scan a market mirror for skill directories.

        Only ``skills/`` is scanned when it exists, otherwise the repository root.

        Args:
            market: Market the mirror belongs to.
            repo_dir: Mirror directory.

        Returns:
            Market skills sorted by name.
        """
        try:
            skill_dirs = list_skill_dirs(self._search_root(repo_dir), self.fs)
        except ScanIOError as e:
            raise MarketFetchError(market.name, str(e)) from e

        skills = []
        for skill_dir in skill_dirs:
            subpath = skill_dir.relative_to(repo_dir).as_posix()
            skills.append(
                MarketSkill(
                    name=skill_dir.name,
                    market=market,
                    repo_path=market.git,
                    subpath=subpath,
                    description=read_description(skill_dir),
                    content_hash=self.gitops.get_folder_hash(repo_dir, subpath),
                )
            )
        return skills

    def fetch(self, market: Market) -> list[MarketSkill]:
        """Fetch the skill list of a git-backed market.

        Args:
            market: Market to fetch.

        Returns:
            Market skills sorted by name.

        Raises:
            ValidationError: If the market is the virtual skills.sh market.
            MarketFetchError: If the mirror cannot be cloned or updated.
        """
        if market.virtual:
            raise ValidationError("skills.sh is searched, not fetched")
        repo_dir = self.gitops.sync(market.git)
        skills = self.scan_mirror(market, repo_dir)
        logger.debug("Fetched %d skills from %s", len(skills), market.name)
        return skills

    def fetch_all(self, markets: list[Market], max_workers: int = 4) -> CatalogResult:
        """Fetch several markets concurrently.

        Each market has its own mirror directory, so fetches do not contend.
        A failure in one market is recorded and leaves the others unaffected.

        Args:
            markets: Markets to fetch; virtual markets are skipped.
            max_workers: Thread pool size.

        Returns:
            CatalogResult with per-market skills and errors.
        """
        result = CatalogResult()
        git_markets = [m for m in markets if not m.virtual]
        if not git_markets:
            return result

        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = {m.name: pool.submit(self.fetch, m) for m in git_markets}
            for name, future in futures.items():
                try:
                    result.skills[name] = future.result()
                except MarketFetchError as e:
                    logger.warning("Failed to fetch market %s: %s", name, e)
                    result.errors[name] = e
        return result

    def get_skill_source_dir(self, skill: MarketSkill) -> Path:
        """Get the cached source directory of a market skill."""
        return self.gitops.get_repo_path(skill.repo_path) / skill.subpath


def find_market(name: str, markets: list[Market]) -> Market | None:
    """Find a market by name."""
    for market in markets:
        if market.name == name:
            return market
    return None
