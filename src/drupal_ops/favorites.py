# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Favorites: named commands registered in favorites.yaml.

The registry is plain data. Every entry is validated when the file is
loaded; bad entries are reported and skipped, never guessed at.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError
from .executor import CommandSpec
from .log import Logger

TEMPLATE = """\
# DrupalOps favorites
#
# Each entry needs a unique name and a command, given either as a list of
# arguments or as one string (split like a shell would, but never run by one).
# An optional cwd sets the working directory.
#
# favorites:
#   - name: nightly-cron
#     command: [drush, "@self", cron]
#   - name: prod-build
#     command: "composer install --no-dev"
#     cwd: ~/projects/site
favorites: []
"""


@dataclass(frozen=True)
class FavoriteDefinition:
    name: str
    command: CommandSpec
    cwd: Path | None = None


def _parse_command(raw: Any) -> CommandSpec:
    if isinstance(raw, str):
        try:
            argv = shlex.split(raw)
        except ValueError as e:
            raise ValueError(f"command cannot be split: {e}") from e
    elif isinstance(raw, list) and all(isinstance(a, (str, int, float)) for a in raw):
        argv = [str(a) for a in raw]
    else:
        raise ValueError("command must be a string or a list of strings")
    if not argv:
        raise ValueError("command is empty")
    return CommandSpec.from_argv(argv)


def parse_favorites(data: Any) -> tuple[list[FavoriteDefinition], list[str]]:
    """Validate loaded YAML.

    Returns:
        (valid definitions in file order, problem descriptions)
    """
    if data is None:
        return [], []
    if not isinstance(data, dict):
        return [], ["top level must be a mapping with a 'favorites' list"]
    raw_items = data.get("favorites") or []
    if not isinstance(raw_items, list):
        return [], ["'favorites' must be a list"]

    favorites: list[FavoriteDefinition] = []
    problems: list[str] = []
    seen: set[str] = set()
    for i, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            problems.append(f"entry {i}: must be a mapping")
            continue
        name = raw.get("name")
        if not isinstance(name, str) or not name.strip():
            problems.append(f"entry {i}: missing name")
            continue
        name = name.strip()
        if name in seen:
            problems.append(f"entry {i}: duplicate name '{name}'")
            continue
        try:
            command = _parse_command(raw.get("command"))
        except ValueError as e:
            problems.append(f"entry {i} ({name}): {e}")
            continue
        cwd = raw.get("cwd")
        if cwd is not None and not isinstance(cwd, str):
            problems.append(f"entry {i} ({name}): cwd must be a string")
            continue
        seen.add(name)
        favorites.append(
            FavoriteDefinition(
                name=name,
                command=command,
                cwd=Path(cwd).expanduser() if cwd else None,
            )
        )
    return favorites, problems


class FavoritesRegistry:
    """Loads favorites.yaml from the config directory."""

    def __init__(self, path: Path, logger: Logger | None = None):
        self.path = path
        self.logger = logger
        self.favorites: list[FavoriteDefinition] = []

    def ensure_file(self) -> None:
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(TEMPLATE, encoding="utf-8")

    def load(self) -> list[FavoriteDefinition]:
        self.ensure_file()
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Cannot parse {self.path}: {e}") from e

        favorites, problems = parse_favorites(data)
        if self.logger is not None:
            for problem in problems:
                self.logger.warn(f"favorites.yaml {problem}; skipped")
        self.favorites = favorites
        return favorites

    def get(self, name: str) -> FavoriteDefinition | None:
        for fav in self.favorites:
            if fav.name == name:
                return fav
        return None
