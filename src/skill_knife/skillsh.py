"""Client for the skills.sh global search market."""

from __future__ import annotations

import html as html_lib
import logging
import re
import threading
import time
from dataclasses import replace
from typing import Any, Callable

import httpx

from skill_knife.errors import MarketFetchError
from skill_knife.markets import SKILLS_SH_MARKET, MarketSkill

logger = logging.getLogger(__name__)

BASE_URL = "https://skills.sh"
SEARCH_PATH = "/api/search"
DEFAULT_TIMEOUT_S = 15.0
DEFAULT_LIMIT = 50
DESCRIPTION_MAX = 500

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

_LINK_RE = re.compile(r'<a[^>]+href="([^"]+)"[^>]*>([\s\S]*?)</a>')
_INSTALLS_RE = re.compile(r">([\d.]+[KkMm]?)<")
_INSTALL_CMD_RE = re.compile(r"npx skills add\s+([^<]+)")
_PROSE_RE = re.compile(r'class="prose[^"]*">([\s\S]*?)</div>')
_TAG_RE = re.compile(r"<[^>]*>")


def parse_installs(raw: str) -> int:
    """Decode an install counter such as ``9.2K`` or ``1.5M``.

    Example:
        >>> parse_installs("9.2K")
        9200
    """
    text = raw.strip().upper()
    multiplier = 1
    if text.endswith("K"):
        multiplier, text = 1_000, text[:-1]
    elif text.endswith("M"):
        multiplier, text = 1_000_000, text[:-1]
    try:
        # round() first so 9.2 * 1000 does not truncate to 9199
        return int(round(float(text) * multiplier, 6))
    except ValueError:
        return 0


def parse_featured(page: str, limit: int = DEFAULT_LIMIT) -> list[MarketSkill]:
    """Extract skills from the skills.sh listing page.

    Skill links have three path segments: ``/owner/repo/skill``. The install
    count is the last numeric token in the link's inner HTML.

    Args:
        page: Listing page HTML.
        limit: Maximum number of results.

    Returns:
        Market skills in page order.
    """
    results: list[MarketSkill] = []
    for match in _LINK_RE.finditer(page):
        href, content = match.group(1), match.group(2)
        parts = [p for p in href.split("/") if p]
        if not href.startswith("/") or len(parts) != 3:
            continue

        tokens = _INSTALLS_RE.findall(content)
        installs = parse_installs(tokens[-1]) if tokens else 0
        repo_path = f"{parts[0]}/{parts[1]}"
        results.append(
            MarketSkill(
                name=parts[2],
                market=SKILLS_SH_MARKET,
                repo_path=repo_path,
                subpath=parts[2],
                installs=installs,
            )
        )
        if len(results) >= limit:
            break
    return results


def parse_details(page: str) -> tuple[str | None, str | None]:
    """Extract the long description and install command from a detail page.

    Returns:
        Tuple of (description, install_command); either may be None.
    """
    install_command = None
    cmd_match = _INSTALL_CMD_RE.search(page)
    if cmd_match:
        install_command = f"npx skills add {html_lib.unescape(cmd_match.group(1)).strip()}"

    description = None
    prose_match = _PROSE_RE.search(page)
    if prose_match:
        text = html_lib.unescape(_TAG_RE.sub("", prose_match.group(1))).strip()
        if len(text) > DESCRIPTION_MAX:
            text = text[:DESCRIPTION_MAX] + "..."
        description = text or None

    return description, install_command


def _search_result_to_skill(item: dict[str, Any]) -> MarketSkill | None:
    name = item.get("name") or item.get("id")
    top_source = item.get("topSource")
    if not name or not top_source:
        return None
    skill_id = item.get("id") or name
    installs = item.get("installs")
    return MarketSkill(
        name=str(name),
        market=SKILLS_SH_MARKET,
        repo_path=str(top_source),
        subpath=str(skill_id),
        installs=int(installs) if isinstance(installs, (int, float)) else None,
    )


class SkillShClient:
    """Searches and scrapes skills.sh."""

    def __init__(
        self,
        *,
        base_url: str = BASE_URL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        http: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = http or httpx.Client(
            timeout=timeout_s,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )
        self._sleep = sleep

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> SkillShClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self._http.get(url, params=params)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise MarketFetchError(SKILLS_SH_MARKET.name, f"GET {url} failed: {e}") from e
        return response

    def search(self, query: str, limit: int = DEFAULT_LIMIT) -> list[MarketSkill]:
        """Search skills.sh.

        Args:
            query: Search text. Blank queries return no results.
            limit: Maximum number of results.

        Returns:
            Matching market skills.

        Raises:
            MarketFetchError: If the request fails or returns invalid JSON.
        """
        if not query or not query.strip():
            return []

        response = self._get(SEARCH_PATH, params={"q": query.strip(), "limit": limit})
        try:
            data = response.json()
        except ValueError as e:
            raise MarketFetchError(SKILLS_SH_MARKET.name, f"Invalid search response: {e}") from e

        items = data.get("skills") if isinstance(data, dict) else data
        results = []
        for item in items or []:
            if isinstance(item, dict):
                skill = _search_result_to_skill(item)
                if skill:
                    results.append(skill)
        return results

    def featured(self, limit: int = DEFAULT_LIMIT) -> list[MarketSkill]:
        """Get featured skills by scraping the skills.sh home page.

        Raises:
            MarketFetchError: If the page cannot be fetched.
        """
        return parse_featured(self._get("/").text, limit=limit)

    def get_details(self, skill: MarketSkill) -> MarketSkill:
        """Fetch a skill's detail page and return a hydrated copy.

        Raises:
            MarketFetchError: If the page cannot be fetched.
        """
        page = self._get(f"/{skill.repo_path}/{skill.subpath}").text
        description, install_command = parse_details(page)
        return replace(
            skill,
            description=description or skill.description,
            install_command=install_command or skill.install_command,
        )

    def hydrate(
        self,
        skills: list[MarketSkill],
        on_update: Callable[[MarketSkill], None],
        is_relevant: Callable[[], bool] = lambda: True,
        delay: float = 0.3,
    ) -> list[MarketSkill]:
        """Fetch detail pages one by one, best effort.

        The relevance predicate is checked before each item and again after
        the pause between requests; once it turns False (the user switched
        market or query) the pass stops. A failed detail fetch is logged and
        skipped.

        Args:
            skills: Results to hydrate, in display order.
            on_update: Called with each hydrated skill.
            is_relevant: Returns False when the results are no longer shown.
            delay: Pause between requests in seconds.

        Returns:
            Hydrated skills that were delivered to on_update.
        """
        hydrated: list[MarketSkill] = []
        for index, skill in enumerate(skills):
            if index and delay > 0 and is_relevant():
                self._sleep(delay)
            if not is_relevant():
                logger.debug("Hydration stopped after %d of %d items", index, len(skills))
                break
            try:
                updated = self.get_details(skill)
            except MarketFetchError as e:
                logger.debug("Skipping details for %s: %s", skill.name, e)
                continue
            hydrated.append(updated)
            on_update(updated)
        return hydrated

    def hydrate_in_background(
        self,
        skills: list[MarketSkill],
        on_update: Callable[[MarketSkill], None],
        is_relevant: Callable[[], bool] = lambda: True,
        delay: float = 0.3,
    ) -> threading.Thread:
        """Run hydrate() on a daemon thread and return the started thread."""
        thread = threading.Thread(
            target=self.hydrate,
            args=(skills, on_update, is_relevant, delay),
            name="skillsh-hydrate",
            daemon=True,
        )
        thread.start()
        return thread
