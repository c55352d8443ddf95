# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Diagnostic reports written after a failed command, when the user agrees.

Files land in <config_dir>/reports/drupal-ops_error_report_<timestamp>.log
and collect what is needed to reproduce a failure: the failing invocation,
platform details, settings, selected environment variables, external tool
versions, the tail of the log file and the project directory listing.
"""

from __future__ import annotations

import os
import platform
import re
import shlex
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from pathlib import Path

from .executor import CommandSpec
from .interfaces import Executor
from .log import Logger

DEFAULT_ENV_PATTERN = (
    r"^(HOME|PATH|LANG|LC_|TERM|DRUSH|COMPOSER|KUBECONFIG|IBMCLOUD|DRUPAL_OPS)"
)

DEFAULT_TOOLS: dict[str, list[str]] = {
    "git": ["git", "--version"],
    "composer": ["composer", "--version"],
    "drush": ["drush", "--version"],
    "kubectl": ["kubectl", "version", "--client"],
    "ibmcloud": ["ibmcloud", "--version"],
    "jq": ["jq", "--version"],
    "php": ["php", "--version"],
}


class ReportWriter:
    """Collects diagnostics into a timestamped report file."""

    def __init__(
        self,
        reports_dir: Path,
        logger: Logger,
        executor: Executor,
        settings_file: Path | None = None,
        tools: Mapping[str, Sequence[str]] | None = None,
        env_pattern: str = DEFAULT_ENV_PATTERN,
        log_tail_lines: int = 50,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.reports_dir = reports_dir
        self.logger = logger
        self.executor = executor
        self.settings_file = settings_file
        self.tools = dict(DEFAULT_TOOLS if tools is None else tools)
        self.env_re = re.compile(env_pattern)
        self.log_tail_lines = log_tail_lines
        self._clock = clock

    def write(
        self,
        reason: str,
        argv: Sequence[str] | None = None,
        exit_code: int | None = None,
        project_root: Path | None = None,
    ) -> Path:
        now = self._clock()
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        path = self.reports_dir / (
            f"drupal-ops_error_report_{now.strftime('%Y%m%d_%H%M%S')}.log"
        )

        sections: list[tuple[str, list[str]]] = []
        summary = [f"Generated: {now.isoformat(timespec='seconds')}", f"Reason: {reason}"]
        if argv:
            summary.append(f"Command: {shlex.join(argv)}")
        if exit_code is not None:
            summary.append(f"Exit code: {exit_code}")
        sections.append(("Summary", summary))
        sections.append(("System", self._system_info()))
        sections.append(("Settings", self._settings()))
        sections.append(("Environment", self._environment()))
        sections.append(("Tool versions", self._tool_versions()))
        sections.append(
            (f"Last {self.log_tail_lines} log lines", self.logger.tail(self.log_tail_lines))
        )
        sections.append(("Project directory", self._listing(project_root)))

        with path.open("w", encoding="utf-8") as f:
            for title, lines in sections:
                f.write(f"--- {title} ---\n")
                for line in lines:
                    f.write(f"{line}\n")
                f.write("\n")
        return path

    def _system_info(self) -> list[str]:
        uname = platform.uname()
        return [
            f"Hostname: {uname.node}",
            f"System: {uname.system} {uname.release} {uname.version}",
            f"Machine: {uname.machine}",
            f"Python: {platform.python_version()}",
        ]

    def _settings(self) -> list[str]:
        if self.settings_file is None or not self.settings_file.exists():
            return ["(no settings file)"]
        return self.settings_file.read_text(encoding="utf-8", errors="replace").splitlines()

    def _environment(self) -> list[str]:
        return [
            f"{key}={value}"
            for key, value in sorted(os.environ.items())
            if self.env_re.match(key)
        ]

    def _tool_versions(self) -> list[str]:
        lines = []
        for name, argv in self.tools.items():
            if not argv or self.executor.which(argv[0]) is None:
                lines.append(f"{name}: not found")
                continue
            result = self.executor.capture(CommandSpec.from_argv(argv))
            output = (result.stdout or result.stderr).strip().splitlines()
            lines.append(f"{name}: {output[0] if output else f'exit {result.exit_code}'}")
        return lines

    def _listing(self, project_root: Path | None) -> list[str]:
        if project_root is None:
            return ["(no project selected)"]
        try:
            entries = sorted(project_root.iterdir())
        except OSError as e:
            return [f"(cannot list {project_root}: {e})"]
        return [f"{p.name}/" if p.is_dir() else p.name for p in entries]
