"""Install, update and uninstall operations for skills."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable, Sequence, TypeVar

from skill_knife.errors import OperationCancelled, SkillKnifeError, ValidationError
from skill_knife.filesystem import RealFileSystem
from skill_knife.metadata import SkillMetadata, utc_now_iso, write_install_metadata
from skill_knife.packaging import build_add_args, build_remove_args
from skill_knife.readers import get_reader
from skill_knife.reconcile import plan_profile_sync, reconcile
from skill_knife.sources import (
    InstallSubject,
    LocalSubject,
    MarketSubject,
    normalize_repo_url,
    resolve_install_args,
)
from skill_knife.types import (
    BatchReport,
    CancellationToken,
    InstallMode,
    OperationResult,
    ProgressEvent,
    Scope,
)

if TYPE_CHECKING:
    from skill_knife.markets import Market, MarketCatalog, MarketSkill
    from skill_knife.packaging import SkillsCli
    from skill_knife.persistence import PersistenceStore, Profile
    from skill_knife.protocols import FileSystem
    from skill_knife.readers import Reader
    from skill_knife.scanner import Installation, Skill, SkillScanner

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[ProgressEvent], None]
OutputSink = Callable[[str], None]


def get_project_root(start_path: Path | None = None) -> Path | None:
    """Find nearest parent directory containing .git.

    Args:
        start_path: Starting directory. Defaults to cwd.

    Returns:
        Path to project root or None if not in a git repo.
    """
    path = (start_path or Path.cwd()).resolve()
    while path != path.parent:
        if (path / ".git").exists():
            return path
        path = path.parent
    if (path / ".git").exists():
        return path
    return None


class Installer:
    """Executes skill operations by direct copy or through the packaging CLI.

    Follows Separate Use from Creation: constructor requires all dependencies.
    Use factory method `create()` for production instantiation with defaults.
    """

    def __init__(
        self,
        mode: InstallMode,
        catalog: MarketCatalog,
        scanner: SkillScanner,
        cli: SkillsCli,
        store: PersistenceStore,
        filesystem: FileSystem,
    ) -> None:
        """Initialize installer with required dependencies.

        Args:
            mode: Execution strategy.
            catalog: Market catalog (source trees and update checks).
            scanner: Local inventory scanner.
            cli: Packaging CLI runner (delegated mode).
            store: Persistence store (preferred agents, markets).
            filesystem: Filesystem abstraction.
        """
        self.mode = mode
        self.catalog = catalog
        self.scanner = scanner
        self.cli = cli
        self.store = store
        self.fs = filesystem

    @classmethod
    def create(
        cls,
        catalog: MarketCatalog,
        scanner: SkillScanner,
        cli: SkillsCli,
        store: PersistenceStore,
        mode: InstallMode = InstallMode.DELEGATED,
        filesystem: FileSystem | None = None,
    ) -> Installer:
        """Factory method for production instantiation."""
        return cls(
            mode=mode,
            catalog=catalog,
            scanner=scanner,
            cli=cli,
            store=store,
            filesystem=filesystem or RealFileSystem(),
        )

    # ------------------------------------------------------------------
    # Single-item operations
    # ------------------------------------------------------------------

    def install(
        self,
        subject: InstallSubject,
        scope: Scope,
        readers: Sequence[Reader] = (),
        project_root: Path | None = None,
        sink: OutputSink | None = None,
        cancel: CancellationToken | None = None,
    ) -> list[OperationResult]:
        """Install a skill to a scope.

        Reinstalling over an existing installation overwrites it.

        Args:
            subject: Market or local skill to install.
            scope: Target scope.
            readers: Target readers. Empty means the preferred agents.
            project_root: Project root, required for project scope.
            sink: Streams packaging CLI output when given (delegated mode).
            cancel: Cancellation token for a streaming run.

        Returns:
            One result per written location.

        Raises:
            ValidationError: Missing project root or missing source bundle.
            SubprocessError: The packaging CLI failed.
            OperationCancelled: The user cancelled a streaming run.
        """
        if scope == Scope.PROJECT and project_root is None:
            raise ValidationError("No project folder open for project installation")

        if self.mode == InstallMode.DIRECT:
            if not isinstance(subject, MarketSubject):
                raise ValidationError(f"Direct install of '{subject.name}' needs a market source")
            return self._copy_install(subject.skill, scope, self._target_readers(readers), project_root)

        agents = [r.id for r in readers] or self.store.get_preferred_agents()
        args = build_add_args(resolve_install_args(subject), agents, scope)
        self._run_cli(args, scope, project_root, sink, cancel)
        return [
            OperationResult(
                success=True,
                name=subject.name,
                target=",".join(agents) or "all",
                path=None,
            )
        ]

    def uninstall(self, installation: Installation) -> OperationResult:
        """Remove one installation.

        Missing targets and broken symlinks are tolerated. Failures are
        logged and reported in the result, never raised.
        """
        path = installation.path
        try:
            removed = self.fs.force_remove(path)
            if not removed:
                logger.debug("Installation already gone: %s", path)
            return OperationResult(
                success=True, name=path.name, target=installation.reader_id, path=path
            )
        except OSError as e:
            logger.error("Failed to delete %s: %s", path, e)
            return OperationResult(
                success=False, name=path.name, target=installation.reader_id, error=str(e)
            )

    def delete_skill(self, skill: Skill, scope: Scope | None = None) -> list[OperationResult]:
        """Remove every installation of a skill, optionally limited to one scope."""
        installations = skill.installations_in(scope) if scope else skill.installations
        return [self.uninstall(installation) for installation in installations]

    def remove(
        self,
        skill: Skill,
        scope: Scope,
        project_root: Path | None = None,
        sink: OutputSink | None = None,
        cancel: CancellationToken | None = None,
    ) -> list[OperationResult]:
        """Uninstall a skill from a scope using the configured strategy.

        Raises:
            ValidationError: Project scope without a project root.
            SubprocessError: The packaging CLI failed.
        """
        if scope == Scope.PROJECT and project_root is None:
            raise ValidationError("No project folder open for project uninstall")

        if self.mode == InstallMode.DIRECT:
            results = self.delete_skill(skill, scope)
            failures = [r.error for r in results if not r.success]
            if failures:
                raise SkillKnifeError("; ".join(e for e in failures if e))
            return results

        agents = self.store.get_preferred_agents()
        self._run_cli(build_remove_args(skill.name, agents, scope), scope, project_root, sink, cancel)
        return [OperationResult(success=True, name=skill.name, target=",".join(agents) or "all")]

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    def install_all(
        self,
        subjects: Iterable[InstallSubject],
        scope: Scope,
        readers: Sequence[Reader] = (),
        project_root: Path | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
        sink: OutputSink | None = None,
    ) -> BatchReport:
        """Install several skills one after another."""
        return self._run_batch(
            list(subjects),
            lambda s: s.name,
            "Installing",
            lambda s: self.install(s, scope, readers, project_root, sink, cancel),
            on_progress,
            cancel,
        )

    def uninstall_all(
        self,
        skills: Iterable[Skill],
        scope: Scope,
        project_root: Path | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
        sink: OutputSink | None = None,
    ) -> BatchReport:
        """Uninstall several skills one after another."""
        return self._run_batch(
            list(skills),
            lambda s: s.name,
            "Uninstalling",
            lambda s: self.remove(s, scope, project_root, sink, cancel),
            on_progress,
            cancel,
        )

    def update_all(
        self,
        markets: list[Market] | None = None,
        project_roots: list[Path] | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
        sink: OutputSink | None = None,
    ) -> BatchReport:
        """Reinstall every installed skill whose market copy has changed.

        Markets that fail to fetch are skipped; their skills are not checked.

        Args:
            markets: Markets to check. Defaults to all configured markets.
            project_roots: Project roots to scan.
            on_progress: Receives an event before each update.
            cancel: Checked between items.
            sink: Streams packaging CLI output.

        Returns:
            BatchReport whose updated_names lists the updated skills.
        """
        roots = project_roots or []
        local_skills = self.scanner.scan(roots)
        catalog = self.catalog.fetch_all(markets if markets is not None else self.store.get_all_markets())
        stale = [u for u in reconcile(local_skills, catalog.all_skills()) if u.has_update]

        project_root = roots[0] if roots else None
        return self._run_batch(
            stale,
            lambda u: u.skill.name,
            "Updating",
            lambda u: self._update_one(u.skill, u.market_skill, project_root, sink, cancel),
            on_progress,
            cancel,
        )

    def sync_profile(
        self,
        profile: Profile,
        project_root: Path | None,
        confirm: Callable[[list[str]], bool],
        on_progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
        sink: OutputSink | None = None,
    ) -> BatchReport:
        """Make the project scope match a saved profile.

        Missing skills are installed from their recorded source. Extra
        project skills are removed only after ``confirm`` approves the list.

        Raises:
            ValidationError: If no project root is given.
        """
        if project_root is None:
            raise ValidationError("No project folder open to load a profile into")

        current = [s for s in self.scanner.scan([project_root]) if s.installations_in(Scope.PROJECT)]
        plan = plan_profile_sync(profile.skills, current)
        sources = {entry.name: entry.install_source for entry in profile.skills}
        by_name = {skill.name: skill for skill in current}

        removals = plan.to_remove if plan.to_remove and confirm(plan.to_remove) else []
        agents = self.store.get_preferred_agents()

        def apply(action: tuple[str, str]) -> None:
            kind, name = action
            if kind == "install":
                args = build_add_args([sources[name], "--skill", name], agents, Scope.PROJECT)
                self._run_cli(args, Scope.PROJECT, project_root, sink, cancel)
            else:
                self.remove(by_name[name], Scope.PROJECT, project_root, sink, cancel)

        actions = [("install", n) for n in plan.to_install] + [("remove", n) for n in removals]
        return self._run_batch(
            actions,
            lambda a: a[1],
            "Syncing",
            apply,
            on_progress,
            cancel,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _run_batch(
        self,
        items: list[T],
        name_of: Callable[[T], str],
        verb: str,
        action: Callable[[T], object],
        on_progress: ProgressCallback | None,
        cancel: CancellationToken | None,
    ) -> BatchReport:
        report = BatchReport(total=len(items))
        for index, item in enumerate(items):
            if cancel is not None and cancel.cancelled:
                report.cancelled = True
                break
            name = name_of(item)
            if on_progress:
                on_progress(ProgressEvent(index=index, total=len(items), name=name,
                                          message=f"{verb} {name}..."))
            try:
                action(item)
            except OperationCancelled:
                report.record_failure(name, "cancelled")
                report.cancelled = True
                break
            except (SkillKnifeError, OSError) as e:
                logger.warning("%s %s failed: %s", verb, name, e)
                report.record_failure(name, str(e))
                continue
            report.record_success(name)
        return report

    def _update_one(
        self,
        skill: Skill,
        market_skill: MarketSkill,
        project_root: Path | None,
        sink: OutputSink | None,
        cancel: CancellationToken | None,
    ) -> None:
        if self.mode == InstallMode.DIRECT:
            for installation in skill.installations:
                self._copy_to(market_skill, installation.path)
            return

        agents = self.store.get_preferred_agents()
        source_args = resolve_install_args(MarketSubject(market_skill))
        scopes = {i.scope for i in skill.installations}
        for scope in (Scope.GLOBAL, Scope.PROJECT):
            if scope not in scopes:
                continue
            if scope == Scope.PROJECT and project_root is None:
                raise ValidationError(f"No project folder open to update '{skill.name}'")
            self._run_cli(build_add_args(source_args, agents, scope), scope, project_root, sink, cancel)

    def _target_readers(self, readers: Sequence[Reader]) -> list[Reader]:
        if readers:
            return list(readers)
        available = self.scanner.readers
        selected = [get_reader(agent_id, available) for agent_id in self.store.get_preferred_agents()]
        chosen = [r for r in selected if r is not None]
        if not chosen:
            raise ValidationError("No target readers selected")
        return chosen

    def _copy_install(
        self,
        skill: MarketSkill,
        scope: Scope,
        readers: list[Reader],
        project_root: Path | None,
    ) -> list[OperationResult]:
        results = []
        for reader in readers:
            target = reader.scope_dir(scope.value, project_root) / skill.name
            self._copy_to(skill, target)
            results.append(OperationResult(success=True, name=skill.name, target=reader.id, path=target))
        return results

    def _copy_to(self, skill: MarketSkill, target: Path) -> None:
        source_dir = self.catalog.get_skill_source_dir(skill)
        if not self.fs.is_dir(source_dir):
            raise ValidationError(f"Skill source not found: {source_dir}")

        self.fs.force_remove(target)
        self.fs.copytree(source_dir, target)

        repo_url = normalize_repo_url(skill.repo_path)
        write_install_metadata(
            target,
            SkillMetadata(
                source=repo_url,
                source_type="git",
                repo_url=repo_url,
                subpath=skill.subpath,
                content_hash=skill.content_hash,
                installed_at=utc_now_iso(),
            ),
        )
        logger.debug("Copied %s to %s", source_dir, target)

    def _run_cli(
        self,
        args: list[str],
        scope: Scope,
        project_root: Path | None,
        sink: OutputSink | None,
        cancel: CancellationToken | None,
    ) -> None:
        cwd = project_root if scope == Scope.PROJECT else None
        if sink is not None:
            self.cli.run_streaming(args, sink, cancel=cancel, cwd=cwd)
        else:
            output = self.cli.run_capture(args, cwd=cwd)
            logger.debug("%s", output)


__all__ = ["Installer", "LocalSubject", "MarketSubject", "get_project_root"]
