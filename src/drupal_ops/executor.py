# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Subprocess-backed executor implementation for DrupalOps.

This module provides:
- CommandSpec: a structured command (program + argument list). Nothing is
  ever passed through a shell.
- run(): attached execution with passthrough stdio (drush, git, kubectl
  logs -f, psql shells). No timeout; returns the exit code.
- capture(): buffered execution with a timeout for structured queries
  (drush sa --format=json, kubectl get -o json, ...).

A failing run() is logged at ERROR with the exact invocation and handed to
the on_failure hook, which the session uses to offer a diagnostic report.
"""

from __future__ import annotations

import os
import shlex
import shutil
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from .log import Logger

if TYPE_CHECKING:
    from .targets import Target

FailureHook = Callable[[list[str], int], None]


@dataclass(frozen=True)
class CommandSpec:
    """Program plus arguments; the only command form the executor accepts."""

    program: str
    args: tuple[str, ...] = ()

    @classmethod
    def of(cls, program: str, *args: str) -> CommandSpec:
        return cls(program, tuple(str(a) for a in args))

    @classmethod
    def from_argv(cls, argv: Sequence[str]) -> CommandSpec:
        if not argv or not str(argv[0]).strip():
            raise ValueError("command needs at least a program name")
        return cls(str(argv[0]), tuple(str(a) for a in argv[1:]))

    @classmethod
    def parse(cls, text: str) -> CommandSpec:
        """Split a shell-quoted command line into a CommandSpec."""
        return cls.from_argv(shlex.split(text))

    def with_args(self, *args: str) -> CommandSpec:
        return CommandSpec(self.program, self.args + tuple(str(a) for a in args))

    def argv(self, target: Target | None = None) -> list[str]:
        scope = list(target.invocation()) if target is not None else []
        return [self.program, *scope, *self.args]

    def __str__(self) -> str:
        return shlex.join(self.argv())


@dataclass(frozen=True)
class CaptureResult:
    exit_code: int
    stdout: str
    stderr: str
    started_at: str
    duration_ms: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class SubprocessExecutor:
    """Subprocess implementation of Executor protocol."""

    def __init__(
        self,
        logger: Logger,
        timeout: int = 30,
        force_color: bool = True,
        on_failure: FailureHook | None = None,
    ):
        """Initialize executor with configuration.

        Args:
            logger: destination for RUN/ERROR lines
            timeout: capture() timeout in seconds (run() has none)
            force_color: If True, set color-forcing env variables for
                attached runs
            on_failure: called with (argv, exit_code) after a failed run()
        """
        self.logger = logger
        self.timeout = timeout
        self.force_color = force_color
        self.on_failure = on_failure

    def _build_env(self, color: bool) -> dict:
        env = os.environ.copy()
        if color and self.force_color:
            env["FORCE_COLOR"] = "1"
            env["CLICOLOR_FORCE"] = "1"
        return env

    def run(
        self,
        command: CommandSpec,
        cwd: Path | str | None = None,
        target: Target | None = None,
        stdin_path: Path | str | None = None,
    ) -> int:
        """Run a command attached to the terminal.

        Args:
            command: the command to execute
            cwd: working directory (default: current directory)
            target: optional drush target; its invocation tokens go right
                after the program name
            stdin_path: optional file fed to the command's stdin

        Returns:
            exit code (127 is normalized to 1)
        """
        argv = command.argv(target)
        where = f" (in {cwd})" if cwd else ""
        self.logger.info(f"Running: {shlex.join(argv)}{where}")

        try:
            if stdin_path is not None:
                with open(stdin_path, "rb") as stdin:
                    result = subprocess.run(
                        argv, cwd=cwd, env=self._build_env(True), stdin=stdin
                    )
            else:
                result = subprocess.run(
                    argv, cwd=cwd, env=self._build_env(True)
                )
            exit_code = 1 if result.returncode == 127 else result.returncode
        except KeyboardInterrupt:
            self.logger.warn(f"Interrupted: {shlex.join(argv)}")
            return 130
        except FileNotFoundError as e:
            self.logger.error(f"Cannot execute {argv[0]}: {e.strerror or e}")
            exit_code = 1
        except OSError as e:
            self.logger.error(f"Error executing command: {e}")
            exit_code = 1

        if exit_code != 0:
            self.logger.error(
                f"Command failed (exit {exit_code}): {shlex.join(argv)}"
            )
            if self.on_failure is not None:
                self.on_failure(argv, exit_code)
        else:
            self.logger.debug(f"Command succeeded: {shlex.join(argv)}")
        return exit_code

    def capture(
        self,
        command: CommandSpec,
        cwd: Path | str | None = None,
        target: Target | None = None,
    ) -> CaptureResult:
        """Run a command and return buffered results.

        Failures are logged at DEBUG only; callers decide how loud to be.
        """
        argv = command.argv(target)
        started_at = datetime.now().isoformat()
        start_time = datetime.now()

        def _elapsed() -> int:
            return int((datetime.now() - start_time).total_seconds() * 1000)

        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=self._build_env(False),
                cwd=cwd,
            )
        except subprocess.TimeoutExpired:
            msg = f"Command timed out after {self.timeout} seconds"
            self.logger.debug(f"{msg}: {shlex.join(argv)}")
            return CaptureResult(1, "", msg, started_at, _elapsed())
        except OSError as e:
            msg = f"Error executing command: {e}"
            self.logger.debug(f"{msg}: {shlex.join(argv)}")
            return CaptureResult(1, "", msg, started_at, _elapsed())

        exit_code = 1 if result.returncode == 127 else result.returncode
        if exit_code != 0:
            self.logger.debug(
                f"Query failed (exit {exit_code}): {shlex.join(argv)}"
            )
        return CaptureResult(
            exit_code, result.stdout, result.stderr, started_at, _elapsed()
        )

    def which(self, program: str) -> str | None:
        return shutil.which(program)
