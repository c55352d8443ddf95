# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Protocol definitions for dependency injection.

These interfaces keep the menu engine, the screens and the restore
pipeline independent of the real terminal and of real subprocesses.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .executor import CaptureResult, CommandSpec
    from .keys import KeyEvent
    from .targets import Target


class KeyReader(Protocol):
    """Protocol for reading one logical key press."""

    def read_key(self) -> KeyEvent:
        """Block until a key is available and return it."""
        ...


class MenuRenderer(Protocol):
    """Protocol for drawing a selection menu."""

    def render(
        self,
        title: str,
        labels: Sequence[str],
        index: int,
        context: Sequence[str] = (),
    ) -> None:
        """Redraw the whole menu with the item at index highlighted."""
        ...


class Prompter(Protocol):
    """Line-oriented questions asked outside the menus."""

    def write(self, text: str) -> None: ...

    def ask(self, prompt: str, default: str = "") -> str: ...

    def confirm(self, prompt: str) -> bool: ...

    def pause(self) -> None: ...


class Executor(Protocol):
    """Protocol for command execution."""

    def run(
        self,
        command: CommandSpec,
        cwd: Path | str | None = None,
        target: Target | None = None,
        stdin_path: Path | str | None = None,
    ) -> int:
        """Run attached to the terminal and return the exit code."""
        ...

    def capture(
        self,
        command: CommandSpec,
        cwd: Path | str | None = None,
        target: Target | None = None,
    ) -> CaptureResult:
        """Run with buffered output for structured queries."""
        ...

    def which(self, program: str) -> str | None:
        """Return the resolved path of program, or None."""
        ...


class ConfigModel(Protocol):
    """Protocol for packaged configuration access."""

    @property
    def system(self) -> dict[str, Any]:
        """System configuration."""
        ...

    @property
    def settings(self) -> dict[str, Any]:
        """Default values for user settings."""
        ...

    def get_path(self, path: str, default: Any = None) -> Any:
        """Nested dotted-path lookup."""
        ...
