"""Reconciliation of local inventory against market catalogs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterable, TypeVar

if TYPE_CHECKING:
    from skill_knife.markets import MarketSkill
    from skill_knife.scanner import Skill

T = TypeVar("T")


class SkillStatus(str, Enum):
    """Install state of a market skill relative to local inventory."""

    NOT_INSTALLED = "not-installed"
    INSTALLED_CURRENT = "installed"
    INSTALLED_STALE = "update-available"


@dataclass
class UpdateInfo:
    """Comparison of an installed skill with its market counterpart."""

    skill: Skill
    market_skill: MarketSkill
    has_update: bool
    installed_hash: str | None = None
    latest_hash: str | None = None


@dataclass
class SyncPlan:
    """Actions needed to bring the current inventory in line with a target list."""

    to_install: list[str] = field(default_factory=list)
    to_remove: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.to_install and not self.to_remove


def has_update(installed_hash: str | None, latest_hash: str | None) -> bool:
    """True iff both hashes are present and differ.

    A missing hash on either side never counts as an update, so skills
    without provenance do not all show up as stale.
    """
    return bool(installed_hash and latest_hash and installed_hash != latest_hash)


def _name_of(item: object) -> str:
    return item if isinstance(item, str) else item.name  # type: ignore[attr-defined]


def index_by_name(skills: Iterable[Skill]) -> dict[str, Skill]:
    return {skill.name: skill for skill in skills}


def classify(market_skill: MarketSkill, local_index: dict[str, Skill]) -> SkillStatus:
    """Classify a market skill against an index of installed skills."""
    skill = local_index.get(market_skill.name)
    if skill is None:
        return SkillStatus.NOT_INSTALLED
    if has_update(skill.content_hash, market_skill.content_hash):
        return SkillStatus.INSTALLED_STALE
    return SkillStatus.INSTALLED_CURRENT


def reconcile(local_skills: list[Skill], market_skills: list[MarketSkill]) -> list[UpdateInfo]:
    """Join installed skills with a market catalog by name.

    Market skills that are not installed are left out; they are install
    candidates, not updates.

    Args:
        local_skills: Scanned local inventory.
        market_skills: Catalog of one or more markets.

    Returns:
        One UpdateInfo per installed market skill, in catalog order. When a
        name appears in several markets, the first occurrence wins.
    """
    local_index = index_by_name(local_skills)
    seen: set[str] = set()
    updates: list[UpdateInfo] = []

    for market_skill in market_skills:
        skill = local_index.get(market_skill.name)
        if skill is None or market_skill.name in seen:
            continue
        seen.add(market_skill.name)
        installed_hash = skill.content_hash
        latest_hash = market_skill.content_hash
        updates.append(
            UpdateInfo(
                skill=skill,
                market_skill=market_skill,
                has_update=has_update(installed_hash, latest_hash),
                installed_hash=installed_hash,
                latest_hash=latest_hash,
            )
        )
    return updates


def install_candidates(visible: Iterable[T], installed: Iterable[object]) -> list[T]:
    """Visible items whose name is not installed, in visible order."""
    installed_names = {_name_of(i) for i in installed}
    return [item for item in visible if _name_of(item) not in installed_names]


def uninstall_candidates(visible: Iterable[T], installed: Iterable[object]) -> list[T]:
    """Visible items whose name is installed, in visible order."""
    installed_names = {_name_of(i) for i in installed}
    return [item for item in visible if _name_of(item) in installed_names]


def plan_profile_sync(profile_skills: Iterable[object], current_skills: Iterable[object]) -> SyncPlan:
    """Compute what to install and remove to match a profile's frozen list.

    Example:
        Profile {a, b} against current {b, c} gives to_install=[a], to_remove=[c].
    """
    target = [_name_of(s) for s in profile_skills]
    current = [_name_of(s) for s in current_skills]
    return SyncPlan(
        to_install=install_candidates(target, current),
        to_remove=install_candidates(current, target),
    )
