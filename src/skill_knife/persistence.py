"""Persistence of user markets, profiles and settings."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Iterable, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from skill_knife.markets import DEFAULT_MARKETS, SKILLS_SH_MARKET, Market
from skill_knife.sources import LocalSubject, resolve_install_source
from skill_knife.types import Scope

if TYPE_CHECKING:
    from skill_knife.scanner import Skill

logger = logging.getLogger(__name__)

# Default data location
DATA_DIR = Path.home() / ".cache" / "skill-knife"

DocT = TypeVar("DocT", bound=BaseModel)


class ProfileSkill(BaseModel):
    """A skill recorded in a profile, with where to reinstall it from."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    install_source: str = Field(alias="installSource")


class Profile(BaseModel):
    """A named, frozen list of project skills."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    created_at: datetime = Field(alias="createdAt")
    skills: list[ProfileSkill] = Field(default_factory=list)


class MarketsDocument(BaseModel):
    markets: list[Market] = Field(default_factory=list)


class ProfilesDocument(BaseModel):
    profiles: dict[str, Profile] = Field(default_factory=dict)


class SettingsDocument(BaseModel):
    """User settings. Reader overrides are free-form dicts merged by id."""

    model_config = ConfigDict(populate_by_name=True)

    preferred_agents: list[str] = Field(default_factory=list, alias="preferredAgents")
    readers: list[dict[str, Any]] = Field(default_factory=list)


def merge_markets(builtin: Iterable[Market], user: Iterable[Market]) -> list[Market]:
    """Merge user markets over the built-in list by name.

    A user market with a built-in name replaces it in place; other user
    markets are appended. The virtual skills.sh market always comes last.
    """
    merged = [m for m in builtin if not m.virtual]
    positions = {m.name: i for i, m in enumerate(merged)}
    for market in user:
        if market.virtual:
            continue
        if market.name in positions:
            merged[positions[market.name]] = market
        else:
            positions[market.name] = len(merged)
            merged.append(market)
    merged.append(SKILLS_SH_MARKET)
    return merged


class PersistenceStore:
    """Reads and writes the JSON documents under the data directory."""

    def __init__(self, data_dir: Path | None = None) -> None:
        """Initialize the store.

        Args:
            data_dir: Directory for documents. Defaults to ~/.cache/skill-knife.

        Note:
            Prefer using factory methods `create()` or `create_default()` for construction.
        """
        self.data_dir = data_dir or DATA_DIR
        self.markets_file = self.data_dir / "markets.json"
        self.profiles_file = self.data_dir / "profiles.json"
        self.settings_file = self.data_dir / "settings.json"

    @classmethod
    def create(cls, data_dir: Path) -> PersistenceStore:
        return cls(data_dir=data_dir)

    @classmethod
    def create_default(cls) -> PersistenceStore:
        return cls()

    def ensure_data_dir(self) -> None:
        """Create data directory if it doesn't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _load(self, path: Path, model: type[DocT]) -> DocT:
        if not path.exists():
            return model()
        try:
            return model.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, PydanticValidationError) as e:
            logger.warning("Ignoring unreadable %s: %s", path, e)
            return model()

    def _save(self, path: Path, document: BaseModel) -> None:
        self.ensure_data_dir()
        data = document.model_dump(mode="json", by_alias=True, exclude_none=True)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    # Markets

    def get_user_markets(self) -> list[Market]:
        return self._load(self.markets_file, MarketsDocument).markets

    def save_user_markets(self, markets: list[Market]) -> None:
        self._save(self.markets_file, MarketsDocument(markets=markets))

    def get_all_markets(self) -> list[Market]:
        """Get built-in and user markets merged, skills.sh last."""
        return merge_markets(DEFAULT_MARKETS, self.get_user_markets())

    def add_market(self, market: Market) -> None:
        """Add or replace a user market by name."""
        markets = [m for m in self.get_user_markets() if m.name != market.name]
        markets.append(market)
        self.save_user_markets(markets)

    def remove_market(self, name: str) -> bool:
        """Remove a user market by name.

        Returns:
            True if a user market was removed. Built-in markets cannot be removed.
        """
        markets = self.get_user_markets()
        remaining = [m for m in markets if m.name != name]
        if len(remaining) == len(markets):
            return False
        self.save_user_markets(remaining)
        return True

    # Profiles

    def get_profiles(self) -> dict[str, Profile]:
        return self._load(self.profiles_file, ProfilesDocument).profiles

    def get_profile(self, name: str) -> Profile | None:
        return self.get_profiles().get(name)

    def save_profile(self, profile: Profile) -> None:
        """Save a profile, replacing any profile with the same name."""
        profiles = self.get_profiles()
        profiles[profile.name] = profile
        self._save(self.profiles_file, ProfilesDocument(profiles=profiles))

    def delete_profile(self, name: str) -> bool:
        profiles = self.get_profiles()
        if profiles.pop(name, None) is None:
            return False
        self._save(self.profiles_file, ProfilesDocument(profiles=profiles))
        return True

    # Settings

    def get_settings(self) -> SettingsDocument:
        return self._load(self.settings_file, SettingsDocument)

    def get_preferred_agents(self) -> list[str]:
        return self.get_settings().preferred_agents

    def save_preferred_agents(self, agents: list[str]) -> None:
        settings = self.get_settings()
        settings.preferred_agents = list(agents)
        self._save(self.settings_file, settings)

    def get_reader_overrides(self) -> list[dict[str, Any]]:
        return self.get_settings().readers


def _default_resolver(skill: Skill) -> str:
    return resolve_install_source(LocalSubject(skill))


def create_profile(
    name: str,
    skills: Iterable[Skill],
    resolver: Callable[[Skill], str] = _default_resolver,
) -> Profile:
    """Snapshot the project-scope skills into a profile.

    Args:
        name: Profile name.
        skills: Scanned inventory; only skills with a project installation are kept.
        resolver: Maps a skill to its install source.

    Returns:
        New, unsaved Profile.
    """
    entries = [
        ProfileSkill(name=skill.name, install_source=resolver(skill))
        for skill in skills
        if skill.installations_in(Scope.PROJECT)
    ]
    return Profile(name=name, created_at=datetime.now(timezone.utc), skills=entries)
