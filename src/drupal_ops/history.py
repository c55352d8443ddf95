# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Append-only action history.

One line per recorded action:

    [2025-06-01 14:03:11] [/home/me/projects/site] "Git push" "git push"

The last field is the shell-quoted argv of a CommandSpec. It is only ever
split back with shlex and executed without a shell.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from .executor import CommandSpec
from .interfaces import Executor

GLOBAL = "GLOBAL"

_LINE_RE = re.compile(
    r'^\[(?P<ts>[^\]]*)\] \[(?P<ctx>[^\]]*)\] '
    r'"(?P<desc>(?:[^"\\]|\\.)*)" "(?P<cmd>(?:[^"\\]|\\.)*)"$'
)
_UNESCAPE_RE = re.compile(r"\\(.)")
_ESCAPES = {"n": "\n", "r": "\r"}


def _quote(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


def _unquote(text: str) -> str:
    return _UNESCAPE_RE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), text)


@dataclass(frozen=True)
class HistoryEntry:
    timestamp: str
    context: str
    description: str
    command: CommandSpec

    def format(self) -> str:
        return (
            f"[{self.timestamp}] [{self.context}] "
            f'"{_quote(self.description)}" "{_quote(str(self.command))}"'
        )

    @classmethod
    def parse(cls, line: str) -> HistoryEntry | None:
        match = _LINE_RE.match(line.rstrip("\n"))
        if match is None:
            return None
        try:
            command = CommandSpec.parse(_unquote(match.group("cmd")))
        except ValueError:
            return None
        return cls(
            timestamp=match.group("ts"),
            context=match.group("ctx"),
            description=_unquote(match.group("desc")),
            command=command,
        )


class HistoryStore:
    """File-backed history; disabled stores accept record() and do nothing."""

    def __init__(
        self,
        path: Path,
        enabled: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.path = path
        self.enabled = enabled
        self._clock = clock

    def record(
        self,
        description: str,
        command: CommandSpec | Sequence[str],
        context: Path | str | None = None,
    ) -> HistoryEntry | None:
        if not self.enabled:
            return None
        if not isinstance(command, CommandSpec):
            command = CommandSpec.from_argv(command)
        entry = HistoryEntry(
            timestamp=self._clock().strftime("%Y-%m-%d %H:%M:%S"),
            context=str(context) if context else GLOBAL,
            description=description,
            command=command,
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(entry.format() + "\n")
        return entry

    def entries(self) -> list[HistoryEntry]:
        """All parseable entries, oldest first."""
        if not self.path.exists():
            return []
        parsed = []
        with self.path.open("r", encoding="utf-8", errors="replace") as f:
            for line in f:
                entry = HistoryEntry.parse(line)
                if entry is not None:
                    parsed.append(entry)
        return parsed

    def recent(self, limit: int = 100) -> list[HistoryEntry]:
        """Newest first."""
        items = self.entries()
        return list(reversed(items[-limit:])) if limit > 0 else []

    def clear(self) -> None:
        if self.path.exists():
            self.path.write_text("", encoding="utf-8")

    @staticmethod
    def replay_cwd(entry: HistoryEntry, fallback: Path) -> Path:
        """Recorded context if it is still a directory, else fallback."""
        if entry.context != GLOBAL:
            ctx = Path(entry.context)
            if ctx.is_dir():
                return ctx
        return fallback

    def replay(
        self, entry: HistoryEntry, executor: Executor, fallback: Path | None = None
    ) -> int:
        cwd = self.replay_cwd(entry, fallback or Path.cwd())
        return executor.run(entry.command, cwd=cwd)
