"""Tests for CLI commands using context injection.

Commands accept a _context parameter for dependency injection, enabling unit
tests without mocking module-level imports.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
import typer

from skill_knife import cli
from skill_knife.config import AppConfig
from skill_knife.context import AppContext
from skill_knife.errors import MarketFetchError, SubprocessError
from skill_knife.markets import CatalogResult, Market, MarketSkill
from skill_knife.metadata import SkillMetadata
from skill_knife.persistence import Profile
from skill_knife.readers import DEFAULT_READERS
from skill_knife.scanner import Installation, Skill
from skill_knife.sources import LocalSubject, MarketSubject
from skill_knife.types import BatchReport, OperationResult, Scope

MARKET = Market(name="Anthropic Official", git="anthropics/skills")


def pdf() -> MarketSkill:
    return MarketSkill(name="pdf", market=MARKET, repo_path="anthropics/skills", subpath="skills/pdf")


def project_skill(name: str, root: Path) -> Skill:
    return Skill(
        name=name,
        installations=[Installation(Scope.PROJECT, "claude-code", root / ".claude" / "skills" / name)],
    )


@pytest.fixture
def mock_context(tmp_path: Path) -> AppContext:
    """Create an AppContext with mocked services."""
    scanner = MagicMock()
    scanner.readers = DEFAULT_READERS
    scanner.scan.return_value = []
    store = MagicMock()
    store.get_all_markets.return_value = [MARKET]
    store.get_preferred_agents.return_value = []
    return AppContext(
        config=AppConfig(data_dir=tmp_path / "data", cache_dir=tmp_path / "cache"),
        store=store,
        gitops=MagicMock(),
        catalog=MagicMock(),
        skillsh=MagicMock(),
        scanner=scanner,
        installer=MagicMock(),
    )


class TestListCommand:
    """Tests for the list command."""

    def test_scans_project(self, mock_context: AppContext, project_root: Path) -> None:
        """Test the given project root is scanned."""
        cli.list_skills(project=project_root, _context=mock_context)
        mock_context.scanner.scan.assert_called_once_with([project_root.resolve()])

    def test_filter(
        self, mock_context: AppContext, project_root: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test --filter narrows the listing by name or description."""
        mock_context.scanner.scan.return_value = [
            project_skill("pdf", project_root),
            project_skill("docx", project_root),
        ]
        output = MagicMock()
        monkeypatch.setattr(cli, "out", output)

        cli.list_skills(filter_text="DOC", project=project_root, _context=mock_context)

        shown = output.show_skills.call_args.args[0]
        assert [s.name for s in shown] == ["docx"]


class TestShowCommand:
    """Tests for the show command."""

    def test_shows_manifest_body(
        self, mock_context: AppContext, project_root: Path, make_skill, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test the first installation's SKILL.md body is displayed."""
        skill_dir = make_skill(project_root / ".claude" / "skills", "pdf", "PDF tools")
        skill = Skill(name="pdf", installations=[Installation(Scope.PROJECT, "claude-code", skill_dir)])
        mock_context.scanner.scan.return_value = [skill]
        output = MagicMock()
        monkeypatch.setattr(cli, "out", output)

        cli.show(name="pdf", project=project_root, _context=mock_context)

        shown, readers, body = output.show_skill_detail.call_args.args
        assert shown is skill
        assert readers is mock_context.readers
        assert body == "# pdf"

    def test_not_installed(self, mock_context: AppContext, project_root: Path) -> None:
        """Test an unknown skill fails."""
        with pytest.raises(typer.Exit) as exc_info:
            cli.show(name="ghost", project=project_root, _context=mock_context)
        assert exc_info.value.exit_code == 1

    def test_renders(self, mock_context: AppContext, project_root: Path) -> None:
        """Test the detail view renders with metadata and a missing manifest."""
        skill = Skill(
            name="pdf",
            installations=[Installation(Scope.GLOBAL, "cursor", project_root / "nowhere")],
            metadata=SkillMetadata(repo_url="https://github.com/anthropics/skills", content_hash="abc"),
        )
        mock_context.scanner.scan.return_value = [skill]
        cli.show(name="pdf", project=project_root, _context=mock_context)


class TestInstallCommand:
    """Tests for the install command."""

    def test_single_install_streams(self, mock_context: AppContext, project_root: Path) -> None:
        """Test a single skill is installed with streamed output."""
        mock_context.catalog.fetch_all.return_value = CatalogResult(skills={MARKET.name: [pdf()]})
        mock_context.installer.install.return_value = [
            OperationResult(success=True, name="pdf", target="all")
        ]

        cli.install(names=["pdf"], project=project_root, _context=mock_context)

        call = mock_context.installer.install.call_args
        assert call.args[0] == MarketSubject(pdf())
        assert call.args[1] == Scope.PROJECT
        assert call.args[3] == project_root.resolve()
        assert call.kwargs["sink"] is not None
        assert call.kwargs["cancel"] is not None

    def test_global_flag(self, mock_context: AppContext, project_root: Path) -> None:
        """Test --global selects global scope."""
        mock_context.catalog.fetch_all.return_value = CatalogResult(skills={MARKET.name: [pdf()]})
        mock_context.installer.install.return_value = []

        cli.install(names=["pdf"], use_global=True, project=project_root, _context=mock_context)

        assert mock_context.installer.install.call_args.args[1] == Scope.GLOBAL

    def test_agent_option(self, mock_context: AppContext, project_root: Path) -> None:
        """Test --agent selects readers."""
        mock_context.catalog.fetch_all.return_value = CatalogResult(skills={MARKET.name: [pdf()]})
        mock_context.installer.install.return_value = []

        cli.install(names=["pdf"], agent=["cursor"], project=project_root, _context=mock_context)

        readers = mock_context.installer.install.call_args.args[2]
        assert [r.id for r in readers] == ["cursor"]

    def test_unknown_agent(self, mock_context: AppContext, project_root: Path) -> None:
        """Test an unknown agent id fails."""
        with pytest.raises(typer.Exit) as exc_info:
            cli.install(names=["pdf"], agent=["nope"], project=project_root, _context=mock_context)
        assert exc_info.value.exit_code == 1

    def test_local_fallback(self, mock_context: AppContext, project_root: Path) -> None:
        """Test an installed skill missing from markets is reinstalled from its source."""
        local = project_skill("custom", project_root)
        mock_context.scanner.scan.return_value = [local]
        mock_context.catalog.fetch_all.return_value = CatalogResult()
        mock_context.installer.install.return_value = []

        cli.install(names=["custom"], project=project_root, _context=mock_context)

        assert mock_context.installer.install.call_args.args[0] == LocalSubject(local)

    def test_not_found(self, mock_context: AppContext, project_root: Path) -> None:
        """Test an unknown skill fails."""
        mock_context.catalog.fetch_all.return_value = CatalogResult()
        with pytest.raises(typer.Exit) as exc_info:
            cli.install(names=["ghost"], project=project_root, _context=mock_context)
        assert exc_info.value.exit_code == 1
        mock_context.installer.install.assert_not_called()

    def test_named_market(self, mock_context: AppContext, project_root: Path) -> None:
        """Test --market fetches only that market."""
        mock_context.catalog.fetch.return_value = [pdf()]
        mock_context.installer.install.return_value = []

        cli.install(names=["pdf"], market=MARKET.name, project=project_root, _context=mock_context)

        mock_context.catalog.fetch.assert_called_once_with(MARKET)
        mock_context.catalog.fetch_all.assert_not_called()

    def test_install_failure(self, mock_context: AppContext, project_root: Path) -> None:
        """Test a failed single install exits with an error."""
        mock_context.catalog.fetch_all.return_value = CatalogResult(skills={MARKET.name: [pdf()]})
        mock_context.installer.install.side_effect = SubprocessError(["npx"], 1, "denied")

        with pytest.raises(typer.Exit) as exc_info:
            cli.install(names=["pdf"], project=project_root, _context=mock_context)
        assert exc_info.value.exit_code == 1

    def test_batch_install(self, mock_context: AppContext, project_root: Path) -> None:
        """Test several names run as a batch and failures set the exit code."""
        docx = MarketSkill(name="docx", market=MARKET, repo_path="anthropics/skills", subpath="skills/docx")
        mock_context.catalog.fetch_all.return_value = CatalogResult(skills={MARKET.name: [pdf(), docx]})
        report = BatchReport(total=2)
        report.record_success("pdf")
        report.record_failure("docx", "boom")
        mock_context.installer.install_all.return_value = report

        with pytest.raises(typer.Exit):
            cli.install(names=["pdf", "docx"], project=project_root, _context=mock_context)

        subjects = mock_context.installer.install_all.call_args.args[0]
        assert [s.name for s in subjects] == ["pdf", "docx"]


class TestUninstallCommand:
    """Tests for the uninstall command."""

    def test_single(self, mock_context: AppContext, project_root: Path) -> None:
        """Test a single skill is removed from the project."""
        skill = project_skill("pdf", project_root)
        mock_context.scanner.scan.return_value = [skill]

        cli.uninstall(names=["pdf"], project=project_root, _context=mock_context)

        call = mock_context.installer.remove.call_args
        assert call.args[:3] == (skill, Scope.PROJECT, project_root.resolve())

    def test_not_installed(self, mock_context: AppContext, project_root: Path) -> None:
        """Test unknown names are skipped with a warning."""
        cli.uninstall(names=["pdf"], project=project_root, _context=mock_context)
        mock_context.installer.remove.assert_not_called()
        mock_context.installer.uninstall_all.assert_not_called()

    def test_wrong_scope_ignored(self, mock_context: AppContext, project_root: Path) -> None:
        """Test a project skill is not removed by a global uninstall."""
        mock_context.scanner.scan.return_value = [project_skill("pdf", project_root)]
        cli.uninstall(names=["pdf"], use_global=True, project=project_root, _context=mock_context)
        mock_context.installer.remove.assert_not_called()

    def test_batch(self, mock_context: AppContext, project_root: Path) -> None:
        """Test several names run as a batch."""
        mock_context.scanner.scan.return_value = [
            project_skill("a", project_root),
            project_skill("b", project_root),
        ]
        mock_context.installer.uninstall_all.return_value = BatchReport(total=2, succeeded=2)

        cli.uninstall(names=["a", "b"], project=project_root, _context=mock_context)

        skills = mock_context.installer.uninstall_all.call_args.args[0]
        assert [s.name for s in skills] == ["a", "b"]


class TestDeleteEverywhere:
    """Tests for uninstall --all-locations."""

    @pytest.fixture
    def everywhere(self, project_root: Path) -> Skill:
        return Skill(
            name="pdf",
            installations=[
                Installation(Scope.GLOBAL, "cursor", Path("/home/u/.cursor/skills/pdf")),
                Installation(Scope.PROJECT, "claude-code", project_root / ".claude" / "skills" / "pdf"),
            ],
        )

    def test_confirmed(
        self, mock_context: AppContext, project_root: Path, everywhere: Skill
    ) -> None:
        """Test --yes deletes every installation without prompting."""
        mock_context.scanner.scan.return_value = [everywhere]
        mock_context.installer.delete_skill.return_value = [
            OperationResult(success=True, name="pdf", target="cursor"),
            OperationResult(success=True, name="pdf", target="claude-code"),
        ]

        cli.uninstall(names=["pdf"], all_locations=True, yes=True, project=project_root, _context=mock_context)

        mock_context.installer.delete_skill.assert_called_once_with(everywhere)
        mock_context.installer.remove.assert_not_called()

    def test_declined(
        self,
        mock_context: AppContext,
        project_root: Path,
        everywhere: Skill,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test nothing is deleted when the prompt is declined."""
        mock_context.scanner.scan.return_value = [everywhere]
        output = MagicMock()
        output.confirm.return_value = False
        monkeypatch.setattr(cli, "out", output)

        cli.uninstall(names=["pdf"], all_locations=True, project=project_root, _context=mock_context)

        assert "2 locations" in output.confirm.call_args.args[0]
        mock_context.installer.delete_skill.assert_not_called()

    def test_failure_exits(
        self, mock_context: AppContext, project_root: Path, everywhere: Skill
    ) -> None:
        """Test a failed removal sets the exit code."""
        mock_context.scanner.scan.return_value = [everywhere]
        mock_context.installer.delete_skill.return_value = [
            OperationResult(success=False, name="pdf", target="cursor", error="busy"),
        ]

        with pytest.raises(typer.Exit) as exc_info:
            cli.uninstall(
                names=["pdf"], all_locations=True, yes=True, project=project_root, _context=mock_context
            )
        assert exc_info.value.exit_code == 1


class TestUpdateCommand:
    """Tests for the update command."""

    def test_up_to_date(self, mock_context: AppContext, project_root: Path) -> None:
        """Test an empty report is not an error."""
        mock_context.installer.update_all.return_value = BatchReport()
        cli.update(project=project_root, _context=mock_context)
        markets = mock_context.installer.update_all.call_args.args[0]
        assert markets == [MARKET]

    def test_unknown_market(self, mock_context: AppContext, project_root: Path) -> None:
        """Test --market must name a configured market."""
        with pytest.raises(typer.Exit):
            cli.update(market="nope", project=project_root, _context=mock_context)

    def test_partial_failure(self, mock_context: AppContext, project_root: Path) -> None:
        """Test failures set the exit code."""
        report = BatchReport(total=1)
        report.record_failure("pdf", "boom")
        mock_context.installer.update_all.return_value = report
        with pytest.raises(typer.Exit) as exc_info:
            cli.update(project=project_root, _context=mock_context)
        assert exc_info.value.exit_code == 1


class TestMarketCommands:
    """Tests for market management commands."""

    def test_add(self, mock_context: AppContext) -> None:
        """Test adding a market."""
        cli.market_add(name="Mine", git="me/skills", _context=mock_context)
        mock_context.store.add_market.assert_called_once_with(Market(name="Mine", git="me/skills"))

    def test_add_skillsh_rejected(self, mock_context: AppContext) -> None:
        """Test the virtual market cannot be added."""
        with pytest.raises(typer.Exit):
            cli.market_add(name="x", git="skills.sh", _context=mock_context)

    def test_remove(self, mock_context: AppContext) -> None:
        """Test removing a user market also drops its mirror."""
        mine = Market(name="Mine", git="me/skills")
        mock_context.store.get_user_markets.return_value = [mine]
        mock_context.store.remove_market.return_value = True

        cli.market_remove(name="Mine", _context=mock_context)

        mock_context.gitops.remove_cached.assert_called_once_with("me/skills")

    def test_remove_builtin(self, mock_context: AppContext) -> None:
        """Test built-in markets cannot be removed."""
        mock_context.store.get_user_markets.return_value = []
        with pytest.raises(typer.Exit):
            cli.market_remove(name=MARKET.name, _context=mock_context)

    def test_browse_fetch_error(self, mock_context: AppContext, project_root: Path) -> None:
        """Test a failing market reports an error."""
        mock_context.catalog.fetch.side_effect = MarketFetchError(MARKET.name, "offline")
        with pytest.raises(typer.Exit):
            cli.market_browse(name=MARKET.name, project=project_root, _context=mock_context)

    def test_browse_all(self, mock_context: AppContext, project_root: Path) -> None:
        """Test browsing every market tolerates individual failures."""
        mock_context.catalog.fetch_all.return_value = CatalogResult(
            skills={MARKET.name: [pdf()]},
            errors={"Broken": MarketFetchError("Broken", "offline")},
        )
        cli.market_browse(project=project_root, _context=mock_context)
        mock_context.catalog.fetch_all.assert_called_once_with([MARKET])


class TestSkillShCommands:
    """Tests for search and featured."""

    def test_search(self, mock_context: AppContext, project_root: Path) -> None:
        """Test search passes the query and limit."""
        mock_context.skillsh.search.return_value = []
        cli.search(query="pdf", limit=5, project=project_root, _context=mock_context)
        mock_context.skillsh.search.assert_called_once_with("pdf", limit=5)
        mock_context.skillsh.hydrate_in_background.assert_not_called()

    def test_search_failure(self, mock_context: AppContext, project_root: Path) -> None:
        """Test network failures exit with an error."""
        mock_context.skillsh.search.side_effect = MarketFetchError("skills.sh", "timeout")
        with pytest.raises(typer.Exit):
            cli.search(query="pdf", project=project_root, _context=mock_context)

    def test_featured_with_details(self, mock_context: AppContext, project_root: Path) -> None:
        """Test --details hydrates results."""
        mock_context.skillsh.featured.return_value = [pdf()]
        mock_context.skillsh.hydrate_in_background.return_value.is_alive.return_value = False

        cli.featured(details=True, project=project_root, _context=mock_context)

        call = mock_context.skillsh.hydrate_in_background.call_args
        assert call.args[0] == [pdf()]
        assert call.kwargs["is_relevant"]() is True


class TestProfileCommands:
    """Tests for profile commands."""

    def test_save(self, mock_context: AppContext, project_root: Path) -> None:
        """Test project skills are saved."""
        mock_context.scanner.scan.return_value = [project_skill("pdf", project_root)]

        cli.profile_save(name="web", project=project_root, _context=mock_context)

        profile = mock_context.store.save_profile.call_args.args[0]
        assert profile.name == "web"
        assert [s.name for s in profile.skills] == ["pdf"]

    def test_save_empty(self, mock_context: AppContext, project_root: Path) -> None:
        """Test an empty project saves nothing."""
        cli.profile_save(name="web", project=project_root, _context=mock_context)
        mock_context.store.save_profile.assert_not_called()

    def test_load(self, mock_context: AppContext, project_root: Path) -> None:
        """Test loading syncs the project with --yes auto-confirming removals."""
        profile = Profile.model_validate({"name": "web", "createdAt": "2026-01-01T00:00:00Z"})
        mock_context.store.get_profile.return_value = profile
        mock_context.installer.sync_profile.return_value = BatchReport()

        cli.profile_load(name="web", yes=True, project=project_root, _context=mock_context)

        call = mock_context.installer.sync_profile.call_args
        assert call.args[0] is profile
        assert call.args[1] == project_root.resolve()
        confirm = call.args[2]
        assert confirm(["x"]) is True

    def test_load_missing(self, mock_context: AppContext) -> None:
        """Test loading an unknown profile fails."""
        mock_context.store.get_profile.return_value = None
        with pytest.raises(typer.Exit):
            cli.profile_load(name="web", _context=mock_context)

    def test_delete_missing(self, mock_context: AppContext) -> None:
        """Test deleting an unknown profile fails."""
        mock_context.store.delete_profile.return_value = False
        with pytest.raises(typer.Exit):
            cli.profile_delete(name="web", _context=mock_context)


class TestAgentCommands:
    """Tests for preferred agent commands."""

    def test_set(self, mock_context: AppContext) -> None:
        """Test known ids are saved."""
        cli.agents_set(ids=["cursor", "codex"], _context=mock_context)
        mock_context.store.save_preferred_agents.assert_called_once_with(["cursor", "codex"])

    def test_set_none_means_all(self, mock_context: AppContext) -> None:
        """Test clearing the preference."""
        cli.agents_set(ids=None, _context=mock_context)
        mock_context.store.save_preferred_agents.assert_called_once_with([])

    def test_set_unknown(self, mock_context: AppContext) -> None:
        """Test unknown ids are rejected."""
        with pytest.raises(typer.Exit):
            cli.agents_set(ids=["nope"], _context=mock_context)
        mock_context.store.save_preferred_agents.assert_not_called()


class TestConfigCommands:
    """Tests for config commands."""

    def test_show(self, mock_context: AppContext) -> None:
        """Test showing configuration does not fail."""
        cli.config_show(_context=mock_context)
