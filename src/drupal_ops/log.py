# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Leveled, tag-colored console logging plus an append-only log file.

Console lines look like "[INFO] message" with the tag colored through
TAG_COLORS. Every message, regardless of the console threshold, is also
appended to the log file as "[LEVEL] [YYYY-mm-dd HH:MM:SS] message" so
diagnostic reports can include a tail of recent activity.
"""

from __future__ import annotations

import traceback
from collections import deque
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from prompt_toolkit.formatted_text import ANSI
from prompt_toolkit.shortcuts import print_formatted_text

from . import config as cfg_module
from .errors import ConfigError

LEVELS: dict[str, int] = {
    "DEBUG": 0,
    "INFO": 1,
    "WARN": 2,
    "ERROR": 3,
    "SUCCESS": 4,
}


def normalize_level(level: str) -> str:
    name = (level or "").strip().upper()
    if name == "WARNING":
        name = "WARN"
    if name not in LEVELS:
        raise ConfigError(
            f"Unknown log level {level!r} (expected one of {', '.join(LEVELS)})"
        )
    return name


def _default_write(text: str) -> None:
    print_formatted_text(ANSI(text))


class Logger:
    """Console + file logger with a DEBUG < INFO < WARN < ERROR < SUCCESS order."""

    def __init__(
        self,
        log_file: Path | None = None,
        level: str = "INFO",
        write: Callable[[str], None] | None = None,
    ):
        self.log_file = log_file
        self.level = normalize_level(level)
        self._write = write or _default_write

    def set_level(self, level: str) -> None:
        self.level = normalize_level(level)

    def log(self, level: str, message: str) -> None:
        level = normalize_level(level)
        self._append(level, message)
        if LEVELS[level] >= LEVELS[self.level]:
            color = cfg_module.TAG_COLORS.get(level, "reset")
            self._write(f"{cfg_module.colorize(color, f'[{level}]')} {message}")

    def debug(self, message: str) -> None:
        self.log("DEBUG", message)

    def info(self, message: str) -> None:
        self.log("INFO", message)

    def warn(self, message: str) -> None:
        self.log("WARN", message)

    def error(self, message: str) -> None:
        self.log("ERROR", message)

    def success(self, message: str) -> None:
        self.log("SUCCESS", message)

    def tail(self, lines: int = 50) -> list[str]:
        """Return the last `lines` lines of the log file."""
        if self.log_file is None or not self.log_file.exists():
            return []
        with self.log_file.open("r", encoding="utf-8", errors="replace") as f:
            return [line.rstrip("\n") for line in deque(f, maxlen=lines)]

    def _append(self, level: str, message: str) -> None:
        if self.log_file is None:
            return
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        try:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            with self.log_file.open("a", encoding="utf-8") as f:
                f.write(f"[{level}] [{timestamp}] {message}\n")
        except OSError:
            # Console output still happens; a read-only tmp must not break menus.
            pass


def write_crash_log(
    error: BaseException,
    screen: str = "",
    action: str = "",
    project: Path | None = None,
) -> Path | None:
    """Write an entry to the crash log.

    Logs unhandled exceptions raised by menu handlers.
    Only creates the log directory when actually needed.
    Appends to crash.log (never overwrites).
    """
    try:
        logs_dir = cfg_module.get_config_dir() / "logs"
        logs_dir.mkdir(parents=True, exist_ok=True)
        crash_log_path = logs_dir / "crash.log"

        lines = [
            f"{datetime.now().isoformat()}",
            f"screen={screen}",
        ]
        if action:
            lines.append(f"action={action}")
        if project:
            lines.append(f"project={project}")

        lines.append(f"error={type(error).__name__}: {error}")
        lines.append("traceback:")
        lines.append(
            "".join(
                traceback.format_exception(
                    type(error), error, error.__traceback__
                )
            )
        )
        lines.append("----")

        with crash_log_path.open("a", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")
        return crash_log_path

    except Exception:
        # Already in an error state; the caller still reports to the console.
        return None
