"""CLI commands using Typer."""

from __future__ import annotations

import logging
import signal
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Iterator

if TYPE_CHECKING:
    from skill_knife.context import AppContext
    from skill_knife.markets import MarketSkill
    from skill_knife.scanner import Skill

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn

from skill_knife import __version__
from skill_knife.console import Output
from skill_knife.context import create_context
from skill_knife.errors import MarketFetchError, SkillKnifeError
from skill_knife.frontmatter import read_body
from skill_knife.install import get_project_root
from skill_knife.markets import SKILLS_SH_MARKET, Market, find_market
from skill_knife.persistence import create_profile
from skill_knife.readers import get_reader
from skill_knife.reconcile import install_candidates
from skill_knife.scanner import filter_skills, find_skill
from skill_knife.sources import LocalSubject, MarketSubject
from skill_knife.types import CancellationToken, Scope

app = typer.Typer(
    name="skill-knife",
    help="Manage agent skills across AI coding tools",
    no_args_is_help=True,
)

market_app = typer.Typer(help="Manage skill markets")
profile_app = typer.Typer(help="Save and restore project skill sets")
agents_app = typer.Typer(help="Preferred agents for installs")
config_app = typer.Typer(help="Configuration commands")

app.add_typer(market_app, name="market")
app.add_typer(profile_app, name="profile")
app.add_typer(agents_app, name="agents")
app.add_typer(config_app, name="config")

console = Console()
out = Output(console)

ProjectOption = Annotated[
    Path | None,
    typer.Option("--project", "-P", help="Project root (defaults to the enclosing git repo)"),
]
GlobalOption = Annotated[
    bool, typer.Option("--global", "-g", help="Use global scope instead of the project")
]


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"skill-knife v{__version__}")
        raise typer.Exit()


def setup_logging(verbose: bool) -> None:
    """Route log records through Rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=verbose, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-V", help="Enable debug logging")] = False,
) -> None:
    """Manage agent skills across AI coding tools."""
    setup_logging(verbose)


# ============================================================================
# Helpers
# ============================================================================


def _project_root(project: Path | None) -> Path | None:
    return project.resolve() if project else get_project_root()


def _scope(use_global: bool) -> Scope:
    return Scope.GLOBAL if use_global else Scope.PROJECT


def _scan(ctx: AppContext, project_root: Path | None) -> list[Skill]:
    return ctx.scanner.scan([project_root] if project_root else [])


def _fail(message: str) -> typer.Exit:
    out.show_error(message)
    return typer.Exit(1)


@contextmanager
def _cancel_on_interrupt() -> Iterator[CancellationToken]:
    """Turn Ctrl+C into a cancellation request for the running operation."""
    token = CancellationToken()
    previous = signal.signal(signal.SIGINT, lambda *_: token.cancel())
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, previous)


def _spinner(message: str) -> Progress:
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    )
    progress.add_task(message, total=None)
    return progress


def _fetch_market(ctx: AppContext, market: Market) -> list[MarketSkill]:
    with _spinner(f"Syncing {market.name}..."):
        return ctx.catalog.fetch(market)


def _hydrate(ctx: AppContext, skills: list[MarketSkill]) -> list[MarketSkill]:
    """Fetch detail pages for skills.sh results, keeping order.

    Ctrl+C stops the pass; skills fetched so far keep their details.
    """
    by_key = {(s.repo_path, s.subpath): s for s in skills}

    def on_update(skill: MarketSkill) -> None:
        by_key[(skill.repo_path, skill.subpath)] = skill

    with _cancel_on_interrupt() as token, _spinner("Fetching details..."):
        thread = ctx.skillsh.hydrate_in_background(
            skills,
            on_update,
            is_relevant=lambda: not token.cancelled,
            delay=ctx.config.hydrate_delay,
        )
        while thread.is_alive():
            thread.join(0.1)
    return [by_key[(s.repo_path, s.subpath)] for s in skills]


def _resolve_subject(
    ctx: AppContext, name: str, market_name: str | None, local: list[Skill]
) -> MarketSubject | LocalSubject:
    """Find what to install for a skill name.

    Looks in the named market, or every git market in order, then falls back
    to reinstalling a known local skill from its recorded source.
    """
    markets = ctx.store.get_all_markets()
    if market_name:
        market = find_market(market_name, markets)
        if market is None:
            raise _fail(f"Market '{market_name}' not found")
        if market.virtual:
            candidates = ctx.skillsh.search(name)
        else:
            candidates = _fetch_market(ctx, market)
    else:
        with _spinner("Syncing markets..."):
            result = ctx.catalog.fetch_all(markets)
        for failed, error in result.errors.items():
            out.show_warning(f"Skipped {failed}: {error.message}")
        candidates = result.all_skills()

    for candidate in candidates:
        if candidate.name == name:
            return MarketSubject(candidate)

    skill = find_skill(name, local)
    if skill is not None:
        return LocalSubject(skill)
    raise _fail(f"Skill '{name}' not found")


def _delete_everywhere(ctx: AppContext, names: list[str], local: list[Skill], yes: bool) -> None:
    """Remove every installation of each named skill after confirmation."""
    failed = False
    for name in names:
        skill = find_skill(name, local)
        if skill is None:
            out.show_warning(f"Skill '{name}' is not installed")
            continue
        count = len(skill.installations)
        if not yes and not out.confirm(f"Delete {name} from all {count} locations?"):
            out.show_info(f"Kept {name}")
            continue
        errors = [r.error or "" for r in ctx.installer.delete_skill(skill) if not r.success]
        if errors:
            failed = True
            out.show_error(f"Failed to delete {name}: {'; '.join(errors)}")
        else:
            out.show_success(f"Deleted {name} from {count} locations")
    if failed:
        raise typer.Exit(1)


# ============================================================================
# Inventory Commands
# ============================================================================


@app.command("list")
def list_skills(
    filter_text: Annotated[
        str | None, typer.Option("--filter", "-f", help="Only skills whose name or description contains TEXT")
    ] = None,
    project: ProjectOption = None,
    _context=None,
) -> None:
    """List installed skills across all agents."""
    ctx = _context or create_context()
    skills = filter_skills(_scan(ctx, _project_root(project)), filter_text)
    out.show_skills(skills, ctx.readers)


@app.command()
def show(
    name: Annotated[str, typer.Argument(help="Skill name")],
    project: ProjectOption = None,
    _context=None,
) -> None:
    """Show details and the SKILL.md of an installed skill."""
    ctx = _context or create_context()
    skill = find_skill(name, _scan(ctx, _project_root(project)))
    if skill is None:
        raise _fail(f"Skill '{name}' is not installed")
    out.show_skill_detail(skill, ctx.readers, read_body(skill.installations[0].path))


@app.command()
def install(
    names: Annotated[list[str], typer.Argument(help="Skill names")],
    market: Annotated[str | None, typer.Option("--market", "-m", help="Market to install from")] = None,
    agent: Annotated[
        list[str] | None, typer.Option("--agent", "-a", help="Target agent id (repeatable)")
    ] = None,
    use_global: GlobalOption = False,
    project: ProjectOption = None,
    _context=None,
) -> None:
    """Install skills from a market."""
    ctx = _context or create_context()
    project_root = _project_root(project)
    scope = _scope(use_global)

    readers = []
    for agent_id in agent or []:
        reader = get_reader(agent_id, ctx.readers)
        if reader is None:
            raise _fail(f"Unknown agent '{agent_id}'")
        readers.append(reader)

    local = _scan(ctx, project_root)
    try:
        subjects = [_resolve_subject(ctx, name, market, local) for name in names]
        if len(subjects) == 1:
            with _cancel_on_interrupt() as token:
                results = ctx.installer.install(
                    subjects[0], scope, readers, project_root, sink=out.show_line, cancel=token
                )
            for result in results:
                out.show_success(f"Installed {result.name} ({result.target})")
            return

        with _cancel_on_interrupt() as token:
            report = ctx.installer.install_all(
                subjects, scope, readers, project_root, on_progress=out.show_progress, cancel=token
            )
    except SkillKnifeError as e:
        raise _fail(str(e)) from e

    out.show_report(report, "Install")
    if not report.ok:
        raise typer.Exit(1)


@app.command()
def uninstall(
    names: Annotated[list[str], typer.Argument(help="Skill names")],
    use_global: GlobalOption = False,
    all_locations: Annotated[
        bool, typer.Option("--all-locations", help="Delete from every agent and scope")
    ] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
    project: ProjectOption = None,
    _context=None,
) -> None:
    """Uninstall skills from a scope, or from everywhere with --all-locations."""
    ctx = _context or create_context()
    project_root = _project_root(project)
    if all_locations:
        _delete_everywhere(ctx, names, _scan(ctx, project_root), yes)
        return
    scope = _scope(use_global)
    local = [s for s in _scan(ctx, project_root) if s.installations_in(scope)]

    skills = []
    for name in names:
        skill = find_skill(name, local)
        if skill is None:
            out.show_warning(f"Skill '{name}' is not installed ({scope.value})")
            continue
        skills.append(skill)
    if not skills:
        return

    try:
        if len(skills) == 1:
            with _cancel_on_interrupt() as token:
                ctx.installer.remove(skills[0], scope, project_root, sink=out.show_line, cancel=token)
            out.show_success(f"Uninstalled {skills[0].name}")
            return

        with _cancel_on_interrupt() as token:
            report = ctx.installer.uninstall_all(
                skills, scope, project_root, on_progress=out.show_progress, cancel=token
            )
    except SkillKnifeError as e:
        raise _fail(str(e)) from e

    out.show_report(report, "Uninstall")
    if not report.ok:
        raise typer.Exit(1)


@app.command()
def update(
    market: Annotated[str | None, typer.Option("--market", "-m", help="Only check this market")] = None,
    project: ProjectOption = None,
    _context=None,
) -> None:
    """Update installed skills whose market copy changed."""
    ctx = _context or create_context()
    project_root = _project_root(project)
    markets = ctx.store.get_all_markets()
    if market:
        selected = find_market(market, markets)
        if selected is None:
            raise _fail(f"Market '{market}' not found")
        markets = [selected]

    with _cancel_on_interrupt() as token:
        report = ctx.installer.update_all(
            markets,
            [project_root] if project_root else [],
            on_progress=out.show_progress,
            cancel=token,
        )

    if report.total == 0:
        out.show_info("All skills are up to date")
        return
    out.show_report(report, "Update")
    if not report.ok:
        raise typer.Exit(1)


# ============================================================================
# Market Commands
# ============================================================================


@market_app.command("list")
def market_list(
    _context=None,
) -> None:
    """List configured markets."""
    ctx = _context or create_context()
    user_names = {m.name for m in ctx.store.get_user_markets()}
    out.show_markets(ctx.store.get_all_markets(), user_names)


@market_app.command("add")
def market_add(
    name: Annotated[str, typer.Argument(help="Market name")],
    git: Annotated[str, typer.Argument(help="owner/repo or git URL")],
    _context=None,
) -> None:
    """Add a market, or override a built-in one with the same name."""
    ctx = _context or create_context()
    market = Market(name=name, git=git)
    if market.virtual:
        raise _fail("skills.sh is built in and cannot be added")
    ctx.store.add_market(market)
    out.show_success(f"Added market '{name}'")


@market_app.command("remove")
def market_remove(
    name: Annotated[str, typer.Argument(help="Market name")],
    _context=None,
) -> None:
    """Remove a user market."""
    ctx = _context or create_context()
    market = find_market(name, ctx.store.get_user_markets())
    if market is None or not ctx.store.remove_market(name):
        raise _fail(f"User market '{name}' not found")
    ctx.gitops.remove_cached(market.git)
    out.show_success(f"Removed market '{name}'")


@market_app.command("browse")
def market_browse(
    name: Annotated[str | None, typer.Argument(help="Market name (all if not specified)")] = None,
    missing: Annotated[bool, typer.Option("--missing", help="Only skills not installed")] = False,
    project: ProjectOption = None,
    _context=None,
) -> None:
    """Browse skills in a market with their install status."""
    ctx = _context or create_context()
    markets = ctx.store.get_all_markets()
    local = _scan(ctx, _project_root(project))

    if name:
        market = find_market(name, markets)
        if market is None:
            raise _fail(f"Market '{name}' not found")
        if market.virtual:
            featured(_context=ctx)
            return
        try:
            skills = _fetch_market(ctx, market)
        except MarketFetchError as e:
            raise _fail(f"Failed to fetch {e.market}: {e.message}") from e
        if missing:
            skills = install_candidates(skills, local)
        out.show_market_skills(market.name, skills, local)
        return

    with _spinner("Syncing markets..."):
        result = ctx.catalog.fetch_all(markets)
    for market_name, skills in result.skills.items():
        shown = install_candidates(skills, local) if missing else skills
        out.show_market_skills(market_name, shown, local)
    for market_name, error in result.errors.items():
        out.show_error(f"Failed to fetch {market_name}: {error.message}")


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Search text")],
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum results")] = 50,
    details: Annotated[bool, typer.Option("--details", "-d", help="Fetch descriptions")] = False,
    project: ProjectOption = None,
    _context=None,
) -> None:
    """Search skills.sh."""
    ctx = _context or create_context()
    try:
        with _spinner(f"Searching skills.sh for '{query}'..."):
            skills = ctx.skillsh.search(query, limit=limit)
    except MarketFetchError as e:
        raise _fail(f"Search failed: {e.message}") from e

    if details:
        skills = _hydrate(ctx, skills)
    out.show_market_skills(f"skills.sh: {query}", skills, _scan(ctx, _project_root(project)))


@app.command()
def featured(
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum results")] = 50,
    details: Annotated[bool, typer.Option("--details", "-d", help="Fetch descriptions")] = False,
    project: ProjectOption = None,
    _context=None,
) -> None:
    """Show featured skills from skills.sh."""
    ctx = _context or create_context()
    try:
        with _spinner("Loading skills.sh..."):
            skills = ctx.skillsh.featured(limit=limit)
    except MarketFetchError as e:
        raise _fail(f"Failed to load skills.sh: {e.message}") from e

    if details:
        skills = _hydrate(ctx, skills)
    out.show_market_skills(SKILLS_SH_MARKET.name, skills, _scan(ctx, _project_root(project)))


# ============================================================================
# Profile Commands
# ============================================================================


@profile_app.command("save")
def profile_save(
    name: Annotated[str, typer.Argument(help="Profile name")],
    project: ProjectOption = None,
    _context=None,
) -> None:
    """Save the project's skills as a profile."""
    ctx = _context or create_context()
    project_root = _project_root(project)
    if project_root is None:
        raise _fail("No project folder found")

    profile = create_profile(name, _scan(ctx, project_root))
    if not profile.skills:
        out.show_warning("No project skills to save")
        return
    ctx.store.save_profile(profile)
    out.show_success(f"Saved profile '{name}' with {len(profile.skills)} skills")


@profile_app.command("load")
def profile_load(
    name: Annotated[str, typer.Argument(help="Profile name")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Remove extra skills without asking")] = False,
    project: ProjectOption = None,
    _context=None,
) -> None:
    """Make the project's skills match a profile."""
    ctx = _context or create_context()
    profile = ctx.store.get_profile(name)
    if profile is None:
        raise _fail(f"Profile '{name}' not found")

    def confirm(to_remove: list[str]) -> bool:
        return yes or out.confirm(f"Remove {', '.join(to_remove)} from this project?")

    try:
        with _cancel_on_interrupt() as token:
            report = ctx.installer.sync_profile(
                profile,
                _project_root(project),
                confirm,
                on_progress=out.show_progress,
                cancel=token,
            )
    except SkillKnifeError as e:
        raise _fail(str(e)) from e

    if report.total == 0:
        out.show_info(f"Project already matches '{name}'")
        return
    out.show_report(report, f"Profile '{name}'")
    if not report.ok:
        raise typer.Exit(1)


@profile_app.command("list")
def profile_list(
    _context=None,
) -> None:
    """List saved profiles."""
    ctx = _context or create_context()
    out.show_profiles(list(ctx.store.get_profiles().values()))


@profile_app.command("delete")
def profile_delete(
    name: Annotated[str, typer.Argument(help="Profile name")],
    _context=None,
) -> None:
    """Delete a saved profile."""
    ctx = _context or create_context()
    if not ctx.store.delete_profile(name):
        raise _fail(f"Profile '{name}' not found")
    out.show_success(f"Deleted profile '{name}'")


# ============================================================================
# Agent and Config Commands
# ============================================================================


@agents_app.command("show")
def agents_show(
    _context=None,
) -> None:
    """Show known agents and which are preferred."""
    ctx = _context or create_context()
    out.show_readers(ctx.readers, ctx.store.get_preferred_agents())


@agents_app.command("set")
def agents_set(
    ids: Annotated[list[str] | None, typer.Argument(help="Agent ids (none to target all)")] = None,
    _context=None,
) -> None:
    """Set the preferred agents used by installs."""
    ctx = _context or create_context()
    ids = ids or []
    unknown = [i for i in ids if get_reader(i, ctx.readers) is None]
    if unknown:
        raise _fail(f"Unknown agents: {', '.join(unknown)}")
    ctx.store.save_preferred_agents(ids)
    out.show_success(f"Preferred agents: {', '.join(ids) or 'all'}")


@config_app.command("show")
def config_show(
    _context=None,
) -> None:
    """Show current configuration."""
    ctx = _context or create_context()
    config = ctx.config

    console.print("\n[bold]Configuration[/bold]")
    console.print(f"  Data directory: {config.data_dir}")
    console.print(f"  Market cache: {config.cache_dir}")
    console.print(f"  Lock file: {config.lock_file}")
    console.print(f"  Mode: {config.mode.value}")
    console.print(f"  Packaging CLI: {config.cli_command}")
    console.print(f"  Reader overrides: {len(config.readers)}")


if __name__ == "__main__":
    app()
