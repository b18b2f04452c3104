"""Rich output helpers for the CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from skill_knife.reconcile import SkillStatus, classify, index_by_name
from skill_knife.types import Scope

if TYPE_CHECKING:
    from skill_knife.markets import Market, MarketSkill
    from skill_knife.persistence import Profile
    from skill_knife.readers import Reader
    from skill_knife.scanner import Skill
    from skill_knife.types import BatchReport, ProgressEvent

_STATUS_LABELS = {
    SkillStatus.NOT_INSTALLED: "[dim]○ not installed[/dim]",
    SkillStatus.INSTALLED_CURRENT: "[green]✓ installed[/green]",
    SkillStatus.INSTALLED_STALE: "[yellow]↑ update available[/yellow]",
}


def _format_installs(count: int | None) -> str:
    if count is None:
        return ""
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1_000:
        return f"{count / 1_000:.1f}K"
    return str(count)


class Output:
    """Tables, prompts and status lines for skill-knife."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def confirm(self, message: str, default: bool = False) -> bool:
        """Show confirmation prompt.

        Args:
            message: Confirmation message.
            default: Default response.

        Returns:
            User's response.
        """
        return Confirm.ask(message, default=default, console=self.console)

    def show_skills(self, skills: list[Skill], readers: list[Reader]) -> None:
        """Display the local inventory.

        Args:
            skills: Scanned skills.
            readers: Readers, used for short display names.
        """
        if not skills:
            self.console.print("[yellow]No skills installed[/yellow]")
            return

        short_names = {r.id: r.short_name for r in readers}
        table = Table(title="Installed Skills")
        table.add_column("Name", style="cyan")
        table.add_column("Global")
        table.add_column("Project")
        table.add_column("Source")
        table.add_column("Description", overflow="fold")

        for skill in skills:
            scopes = {}
            for scope in (Scope.GLOBAL, Scope.PROJECT):
                ids = dict.fromkeys(i.reader_id for i in skill.installations_in(scope))
                scopes[scope] = ", ".join(short_names.get(i, i) for i in ids)
            source = ""
            if skill.metadata:
                source = skill.metadata.repo_url or skill.metadata.source or ""
            table.add_row(
                skill.name,
                scopes[Scope.GLOBAL],
                scopes[Scope.PROJECT],
                source,
                skill.description or "",
            )

        self.console.print(table)

    def show_skill_detail(self, skill: Skill, readers: list[Reader], body: str | None) -> None:
        """Display one installed skill with its installations and manifest body.

        Args:
            skill: Scanned skill.
            readers: Readers, used for display names.
            body: SKILL.md body without frontmatter, if readable.
        """
        names = {r.id: r.name for r in readers}
        header = f"[bold cyan]{skill.name}[/bold cyan]"
        if skill.description:
            header += f"\n{skill.description}"
        metadata = skill.metadata
        if metadata:
            header += f"\n\n[dim]Source:[/dim] {metadata.repo_url or metadata.source or 'unknown'}"
            if metadata.installed_at:
                header += f"\n[dim]Installed:[/dim] {metadata.installed_at}"
            if metadata.content_hash:
                header += f"\n[dim]Hash:[/dim] {metadata.content_hash}"
        self.console.print(Panel(header, expand=False))

        table = Table(title="Installations")
        table.add_column("Scope")
        table.add_column("Agent", style="cyan")
        table.add_column("Path", overflow="fold")
        for installation in skill.installations:
            table.add_row(
                installation.scope.value,
                names.get(installation.reader_id, installation.reader_id),
                str(installation.path),
            )
        self.console.print(table)

        if body is None:
            self.console.print("[yellow]SKILL.md could not be read[/yellow]")
        elif body:
            self.console.print(Panel(Markdown(body), title="SKILL.md"))

    def show_market_skills(self, title: str, skills: list[MarketSkill], local: list[Skill]) -> None:
        """Display market skills with their install status."""
        if not skills:
            self.console.print(f"[yellow]No skills found in {title}[/yellow]")
            return

        local_index = index_by_name(local)
        table = Table(title=title)
        table.add_column("Name", style="cyan")
        table.add_column("Repository")
        table.add_column("Installs", justify="right")
        table.add_column("Status")
        table.add_column("Description", overflow="fold")

        for skill in skills:
            table.add_row(
                skill.name,
                skill.repo_path,
                _format_installs(skill.installs),
                _STATUS_LABELS[classify(skill, local_index)],
                skill.description or "",
            )

        self.console.print(table)

    def show_markets(self, markets: list[Market], user_names: set[str]) -> None:
        table = Table(title="Markets")
        table.add_column("Name", style="cyan")
        table.add_column("Repository")
        table.add_column("Origin")
        for market in markets:
            origin = "user" if market.name in user_names else "built-in"
            table.add_row(market.name, market.git, origin)
        self.console.print(table)

    def show_profiles(self, profiles: list[Profile]) -> None:
        if not profiles:
            self.console.print("[yellow]No profiles saved[/yellow]")
            return

        table = Table(title="Profiles")
        table.add_column("Name", style="cyan")
        table.add_column("Skills")
        table.add_column("Created")
        for profile in profiles:
            table.add_row(
                profile.name,
                ", ".join(s.name for s in profile.skills),
                profile.created_at.strftime("%Y-%m-%d %H:%M"),
            )
        self.console.print(table)

    def show_readers(self, readers: list[Reader], preferred: list[str]) -> None:
        table = Table(title="Agents")
        table.add_column("Id", style="cyan")
        table.add_column("Name")
        table.add_column("Global path")
        table.add_column("Project path")
        table.add_column("Preferred")
        for reader in readers:
            table.add_row(
                reader.id,
                reader.name,
                reader.global_path,
                reader.project_path,
                "✓" if reader.id in preferred else "",
            )
        self.console.print(table)

    def show_progress(self, event: ProgressEvent) -> None:
        self.console.print(f"[dim][{event.index + 1}/{event.total}][/dim] {event.message}")

    def show_line(self, line: str) -> None:
        """Echo one line of packaging CLI output."""
        self.console.print(line, markup=False, highlight=False)

    def show_report(self, report: BatchReport, verb: str) -> None:
        """Summarize a batch run."""
        if report.ok:
            self.show_success(f"{verb}: {report.summary()}")
        else:
            self.show_warning(f"{verb}: {report.summary()}")
            for name in report.failed:
                self.console.print(f"  [red]✗[/red] {name}: {report.errors.get(name, '')}")

    def show_success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def show_error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}")

    def show_warning(self, message: str) -> None:
        self.console.print(f"[yellow]![/yellow] {message}")

    def show_info(self, message: str) -> None:
        self.console.print(f"[blue]i[/blue] {message}")
