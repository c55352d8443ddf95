# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Session context shared by every screen.

The session owns the active project and the active drush Target; handlers
receive it explicitly instead of reading globals. build_session() wires
the real terminal, executor and stores.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from . import config
from .config import Settings
from .errors import ConfigError, ResolutionError
from .executor import CaptureResult, CommandSpec, SubprocessExecutor
from .favorites import FavoritesRegistry
from .history import HistoryStore
from .interfaces import ConfigModel, Executor, Prompter
from .keys import TerminalKeyReader
from .log import Logger
from .menu import AnsiMenuRenderer, SelectionMenu
from .project import (
    DEFAULT_WEBROOTS,
    Project,
    find_project_root,
    load_project,
    scan_projects,
)
from .prompts import PromptToolkitPrompter
from .report import ReportWriter
from .restore import RestorePipeline
from .targets import DEFAULT_IGNORED_SITE_DIRS, Target, TargetResolver


@dataclass
class Session:
    """DrupalOps session context."""

    config: ConfigModel
    settings: Settings
    logger: Logger
    executor: Executor
    prompter: Prompter
    menu: SelectionMenu
    history: HistoryStore
    favorites: FavoritesRegistry
    config_dir: Path
    scratch_root: Path
    reporter: ReportWriter | None = None
    project: Project | None = None
    target: Target | None = None
    namespace: str | None = None
    cwd: Path = field(default_factory=Path.cwd)
    running: bool = True

    resolver: TargetResolver = field(init=False)
    restores: RestorePipeline = field(init=False)

    def __post_init__(self) -> None:
        self.resolver = TargetResolver(
            self.executor,
            self.menu,
            self.logger,
            self.config.get_path("drush.ignored_site_dirs", DEFAULT_IGNORED_SITE_DIRS),
        )
        self.restores = RestorePipeline(self)

    # ----------------------------------------------------------------
    # Display
    # ----------------------------------------------------------------

    def context_lines(self) -> list[str]:
        lines = []
        if self.project is None:
            lines.append("Project: (none selected)")
        else:
            lines.append(f"Project: {self.project.name} ({self.project.root})")
        if self.target is not None:
            lines.append(f"Drush target: {self.target.label}")
        if self.namespace:
            lines.append(f"Namespace: {self.namespace}")
        return lines

    # ----------------------------------------------------------------
    # Project
    # ----------------------------------------------------------------

    @property
    def webroots(self) -> Sequence[str]:
        return self.config.get_path("project.webroot_candidates", DEFAULT_WEBROOTS)

    def set_project(self, root: Path) -> Project:
        project = load_project(root, self.executor, self.webroots)
        if self.project is None or self.project.root != project.root:
            self.target = None
        self.project = project
        self.logger.success(f"Current project: {project.name} ({project.root})")
        if project.drupal_root is None:
            self.logger.warn(f"No Drupal webroot found in {project.root}")
        return project

    def detect_project(self) -> Project | None:
        root = find_project_root(
            self.cwd, int(self.config.get_path("project.max_depth", 5))
        )
        if root is None:
            self.logger.debug(f"No project found above {self.cwd}")
            return None
        return self.set_project(root)

    def choose_project(self) -> Project | None:
        """Pick a checkout under PROJECTS_ROOT_DIR; None when cancelled."""
        projects_root = self.settings.projects_root
        found = scan_projects(
            projects_root, int(self.config.get_path("project.scan_depth", 2))
        )
        if not found:
            self.logger.warn(f"No git projects found under {projects_root}")
            return None
        labels = [str(p.relative_to(projects_root)) for p in found]
        choice = self.menu.choose("Select a project", labels, self.context_lines())
        if choice is None:
            return None
        return self.set_project(projects_root / choice)

    def require_project(self) -> Project:
        if self.project is None and self.detect_project() is None:
            self.choose_project()
        if self.project is None:
            raise ResolutionError("No project selected.")
        return self.project

    def require_drupal_root(self) -> Path:
        project = self.require_project()
        if project.drupal_root is None:
            raise ResolutionError(
                f"{project.root} is not a Drupal project "
                f"(no core/ and index.php under {', '.join(self.webroots)})."
            )
        return project.drupal_root

    def require_tool(self, program: str) -> None:
        if self.executor.which(program) is None:
            raise ResolutionError(f"Required tool '{program}' was not found on PATH.")

    # ----------------------------------------------------------------
    # Target
    # ----------------------------------------------------------------

    def choose_target(self, title: str = "Select Drush target") -> Target | None:
        """Select and store a Target; a cancel keeps the previous one."""
        drupal_root = self.require_drupal_root()
        candidates = self.resolver.candidates(drupal_root)
        chosen = self.resolver.select(candidates, title, self.context_lines())
        if chosen is None:
            self.logger.warn("Drush target not changed.")
            return None
        self.target = chosen
        self.logger.success(f"Drush target set to: {chosen.label}")
        return chosen

    def ensure_target(self) -> Target:
        if self.target is None:
            self.choose_target()
        if self.target is None:
            raise ResolutionError("No Drush target selected.")
        return self.target

    def reset_target(self) -> None:
        self.target = None

    @contextmanager
    def preserving_target(self) -> Iterator[Target | None]:
        """Restore the active Target after a sub-flow that changes it."""
        saved = self.target
        try:
            yield saved
        finally:
            self.target = saved

    # ----------------------------------------------------------------
    # Execution
    # ----------------------------------------------------------------

    def record(self, description: str, command: CommandSpec | Sequence[str]) -> None:
        context = self.project.root if self.project is not None else None
        self.history.record(description, command, context)

    def run(
        self,
        command: CommandSpec,
        cwd: Path | None = None,
        target: Target | None = None,
        stdin_path: Path | None = None,
        description: str | None = None,
    ) -> int:
        """Run attached; a description marks a state-changing action for history.

        Only successful runs are recorded.
        """
        exit_code = self.executor.run(
            command, cwd=cwd, target=target, stdin_path=stdin_path
        )
        if exit_code == 0:
            if description:
                self.record(description, command.argv(target))
            self.logger.success(f"{command.program} finished successfully.")
        return exit_code

    def drush(self, *args: str, description: str | None = None) -> int:
        self.require_tool("drush")
        drupal_root = self.require_drupal_root()
        target = self.ensure_target()
        return self.run(
            CommandSpec.of("drush", *args),
            cwd=drupal_root,
            target=target,
            description=description,
        )

    def drush_capture(self, *args: str) -> CaptureResult:
        self.require_tool("drush")
        drupal_root = self.require_drupal_root()
        target = self.ensure_target()
        return self.executor.capture(
            CommandSpec.of("drush", *args), cwd=drupal_root, target=target
        )

    def git(self, *args: str, description: str | None = None) -> int:
        self.require_tool("git")
        project = self.require_project()
        if not (project.root / ".git").exists():
            raise ResolutionError(f"{project.root} is not a git repository.")
        return self.run(
            CommandSpec.of("git", *args), cwd=project.root, description=description
        )

    def git_capture(self, *args: str) -> CaptureResult:
        self.require_tool("git")
        project = self.require_project()
        return self.executor.capture(CommandSpec.of("git", *args), cwd=project.root)

    def composer(self, *args: str, description: str | None = None) -> int:
        self.require_tool("composer")
        project = self.require_project()
        return self.run(
            CommandSpec.of("composer", *args),
            cwd=project.composer_dir,
            description=description,
        )

    def tool(self, program: str, *args: str, description: str | None = None) -> int:
        """Run a project-independent CLI (kubectl, ibmcloud)."""
        self.require_tool(program)
        return self.run(CommandSpec.of(program, *args), description=description)

    def tool_capture(self, program: str, *args: str) -> CaptureResult:
        self.require_tool(program)
        return self.executor.capture(CommandSpec.of(program, *args))

    def offer_report(self, argv: list[str], exit_code: int) -> None:
        """Executor failure hook: offer a diagnostic report."""
        if self.reporter is None:
            return
        if not self.settings.get_bool("ENABLE_ERROR_REPORTING", True):
            return
        if not self.prompter.confirm(
            "Do you want to generate a detailed error report for debugging?"
        ):
            return
        path = self.reporter.write(
            "External command failed",
            argv=argv,
            exit_code=exit_code,
            project_root=self.project.root if self.project else None,
        )
        self.logger.info(f"Error report written to {path}")


def build_session(cwd: Path | None = None) -> Session:
    """Wire the real terminal, executor and stores into a Session."""
    cfg = config.load_system_config()
    config_dir = config.get_config_dir()
    scratch_root = config.get_scratch_root()
    logger = Logger(scratch_root / config.LOG_FILENAME)

    settings_file = config.settings_path(config_dir)
    try:
        settings = Settings.load(settings_file, cfg.settings)
    except ConfigError as e:
        logger.warn(f"Ignoring unreadable {settings_file}: {e}")
        settings = Settings(settings_file, cfg.settings)
    try:
        logger.set_level(settings.log_level)
    except ConfigError as e:
        logger.warn(f"{e}; using INFO")

    executor = SubprocessExecutor(
        logger,
        timeout=int(cfg.get_path("execution.timeout", 30)),
        force_color=bool(cfg.get_path("execution.force_color", True)),
    )
    reader = TerminalKeyReader(
        escape_timeout=float(cfg.get_path("keys.escape_timeout", 0.1))
    )
    reporter = ReportWriter(
        config.reports_dir(config_dir),
        logger,
        executor,
        settings_file=settings_file,
        tools=cfg.get_path("report.tools"),
        env_pattern=cfg.get_path("report.env_pattern", r"^(HOME|PATH|DRUPAL_OPS)"),
        log_tail_lines=int(cfg.get_path("report.log_tail_lines", 50)),
    )
    session = Session(
        config=cfg,
        settings=settings,
        logger=logger,
        executor=executor,
        prompter=PromptToolkitPrompter(),
        menu=SelectionMenu(reader, AnsiMenuRenderer()),
        history=HistoryStore(
            config_dir / config.HISTORY_FILENAME,
            enabled=settings.get_bool("ENABLE_HISTORY", True),
        ),
        favorites=FavoritesRegistry(config_dir / config.FAVORITES_FILENAME, logger),
        config_dir=config_dir,
        scratch_root=scratch_root,
        reporter=reporter,
        cwd=cwd or Path.cwd(),
    )
    executor.on_failure = session.offer_report
    session.detect_project()
    return session
