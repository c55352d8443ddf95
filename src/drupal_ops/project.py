# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Project discovery: which checkout we operate on and where its Drupal
webroot lives.

A project root is a directory holding .git or src/composer.json. It is
found by walking up from the working directory, or chosen from the git
checkouts under PROJECTS_ROOT_DIR.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from .executor import CommandSpec
from .interfaces import Executor

DEFAULT_WEBROOTS = (
    "src/web",
    "src/docroot",
    "src/public",
    "src/html",
    "src",
    "web",
    "docroot",
)

ENV_TEMPLATES = ("src/.env.dist", ".env.dist", "src/.env.example", ".env.example")

_ENV_LINE_RE = re.compile(r"^\s*(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)=(.*)$")


@dataclass(frozen=True)
class Project:
    root: Path
    name: str
    drupal_root: Path | None = None

    @property
    def is_drupal(self) -> bool:
        return self.drupal_root is not None

    @property
    def composer_dir(self) -> Path:
        if (self.root / "composer.json").is_file():
            return self.root
        if (self.root / "src" / "composer.json").is_file():
            return self.root / "src"
        return self.root


def is_project_dir(path: Path) -> bool:
    return (path / ".git").exists() or (path / "src" / "composer.json").is_file()


def find_project_root(cwd: Path, max_depth: int = 5) -> Path | None:
    """Walk up from cwd (at most max_depth parents) looking for a project."""
    current = cwd.resolve()
    for _ in range(max_depth + 1):
        if is_project_dir(current):
            return current
        parent = current.parent
        if parent == current:
            return None
        current = parent
    return None


def scan_projects(projects_root: Path, depth: int = 2) -> list[Path]:
    """Git checkouts under projects_root, at most `depth` levels down."""
    if not projects_root.is_dir():
        return []
    found: list[Path] = []

    def _walk(directory: Path, level: int) -> None:
        if level > depth:
            return
        try:
            children = sorted(p for p in directory.iterdir() if p.is_dir())
        except OSError:
            return
        for child in children:
            if child.name.startswith("."):
                continue
            if (child / ".git").exists():
                found.append(child)
                continue
            _walk(child, level + 1)

    _walk(projects_root, 1)
    return found


def find_drupal_root(
    project_root: Path, candidates: Sequence[str] = DEFAULT_WEBROOTS
) -> Path | None:
    for rel in candidates:
        path = project_root / rel
        if (path / "core").is_dir() and (path / "index.php").is_file():
            return path
    return None


def repo_name_from_url(url: str) -> str:
    """git@host:group/site.git -> site"""
    tail = re.split(r"[/:]", url.strip().rstrip("/"))[-1]
    return tail[:-4] if tail.endswith(".git") else tail


def project_name(root: Path, executor: Executor) -> str:
    result = executor.capture(
        CommandSpec.of("git", "config", "--get", "remote.origin.url"), cwd=root
    )
    if result.ok and result.stdout.strip():
        name = repo_name_from_url(result.stdout)
        if name:
            return name
    return root.name


def load_project(
    root: Path,
    executor: Executor,
    webroots: Sequence[str] = DEFAULT_WEBROOTS,
) -> Project:
    return Project(
        root=root,
        name=project_name(root, executor),
        drupal_root=find_drupal_root(root, webroots),
    )


# ----------------------------------------------------------------
# .env generation
# ----------------------------------------------------------------


def find_env_template(project_root: Path) -> Path | None:
    for rel in ENV_TEMPLATES:
        path = project_root / rel
        if path.is_file():
            return path
    return None


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def generate_env(
    template: Path, ask: Callable[[str, str], str], target: Path | None = None
) -> Path:
    """Write <template dir>/.env, asking for every variable in template.

    Comments and blank lines are copied through; the template's value is
    offered as the default answer.
    """
    target = target or template.with_name(".env")
    out_lines: list[str] = []
    for line in template.read_text(encoding="utf-8").splitlines():
        match = _ENV_LINE_RE.match(line)
        if match is None:
            out_lines.append(line)
            continue
        key, default = match.group(1), _strip_quotes(match.group(2))
        value = ask(key, default)
        if any(ch.isspace() for ch in value) or "#" in value:
            value = '"' + value.replace('"', '\\"') + '"'
        out_lines.append(f"{key}={value}")
    target.write_text("\n".join(out_lines) + "\n", encoding="utf-8")
    return target
