# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Drush target discovery and selection.

A Target says which site a drush command runs against:
- AliasTarget("@name")  -> drush @name ...
- UriTarget("host")     -> drush --uri=host ...
- AllSitesTarget()      -> drush @sites ...

Candidates come from `drush sa --format=json`, from sites/sites.php, and,
when sites.php yields nothing, from `drush status` and a scan of the sites
directory. The directory scan only proves that a settings.php exists, so
it is a fallback and never preferred over the configured sources.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Union
from urllib.parse import urlparse

from .executor import CommandSpec
from .interfaces import Executor
from .log import Logger
from .menu import MenuItem, SelectionMenu

DEFAULT_IGNORED_SITE_DIRS = ("default", "all", "simpletest")

_SITES_PHP_RE = re.compile(r"""\$sites\s*\[\s*['"]([^'"]+)['"]\s*\]\s*=""")
_DEFAULT_URIS = frozenset({"", "default", "http://default", "https://default"})


@dataclass(frozen=True)
class AliasTarget:
    name: str

    def __post_init__(self) -> None:
        if not self.name.startswith("@"):
            object.__setattr__(self, "name", f"@{self.name}")

    @property
    def label(self) -> str:
        return self.name

    def invocation(self) -> tuple[str, ...]:
        return (self.name,)


@dataclass(frozen=True)
class UriTarget:
    uri: str

    @property
    def label(self) -> str:
        return self.uri

    def invocation(self) -> tuple[str, ...]:
        return (f"--uri={self.uri}",)


@dataclass(frozen=True)
class AllSitesTarget:
    @property
    def label(self) -> str:
        return "All sites (@sites)"

    def invocation(self) -> tuple[str, ...]:
        return ("@sites",)


Target = Union[AliasTarget, UriTarget, AllSitesTarget]

SELF = AliasTarget("@self")
ALL_SITES = AllSitesTarget()


def scoped(target: Target, args: Iterable[str]) -> list[str]:
    """Full drush argv for args run against target."""
    return ["drush", *target.invocation(), *args]


# ----------------------------------------------------------------
# Parsers
# ----------------------------------------------------------------


def parse_alias_json(text: str) -> list[str]:
    """Alias names from `drush sa --format=json` output.

    Raises:
        ValueError: if the output is not JSON
    """
    data = json.loads(text or "{}")
    if isinstance(data, dict):
        names = list(data.keys())
    elif isinstance(data, list):
        names = [n for n in data if isinstance(n, str)]
    else:
        names = []

    aliases: list[str] = []
    for name in names:
        alias = name if name.startswith("@") else f"@{name}"
        if alias in ("@self", "@none") or alias in aliases:
            continue
        aliases.append(alias)
    return aliases


def parse_sites_php(text: str) -> list[str]:
    """Keys of $sites['...'] assignments, skipping commented-out lines."""
    uris: list[str] = []
    for raw in text.splitlines():
        line = raw.strip()
        if line.startswith(("#", "//", "*", "/*")):
            continue
        for match in _SITES_PHP_RE.finditer(line):
            uri = match.group(1)
            if uri not in uris:
                uris.append(uri)
    return uris


def scan_site_dirs(
    drupal_root: Path, ignored: Sequence[str] = DEFAULT_IGNORED_SITE_DIRS
) -> list[str]:
    """Sub-directories of sites/ holding a settings.php (heuristic)."""
    sites_dir = drupal_root / "sites"
    if not sites_dir.is_dir():
        return []
    found = []
    for child in sorted(sites_dir.iterdir()):
        if child.name in ignored or not child.is_dir():
            continue
        if (child / "settings.php").is_file():
            found.append(child.name)
    return found


def _normalize(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "", text.lower())


def _target_key(target: Target) -> str:
    if isinstance(target, AliasTarget):
        return _normalize(target.name.lstrip("@"))
    if isinstance(target, UriTarget):
        parsed = urlparse(target.uri if "://" in target.uri else f"//{target.uri}")
        return _normalize(parsed.hostname or target.uri)
    return ""


def match_targets(stem: str, candidates: Sequence[Target]) -> list[Target]:
    """Site candidates whose alias or host matches a dump's file stem.

    "site_a" matches "@sitea", "@sitea.prod" and "sitea.example.com";
    @self and @sites never match.
    """
    key = _normalize(stem)
    if len(key) < 3:
        return []
    matches = []
    for target in candidates:
        if target == SELF or isinstance(target, AllSitesTarget):
            continue
        tkey = _target_key(target)
        if tkey and (tkey.startswith(key) or key.startswith(tkey)):
            matches.append(target)
    return matches


# ----------------------------------------------------------------
# Resolver
# ----------------------------------------------------------------


class TargetResolver:
    """Enumerates and presents drush targets for one Drupal root."""

    def __init__(
        self,
        executor: Executor,
        menu: SelectionMenu,
        logger: Logger,
        ignored_site_dirs: Sequence[str] = DEFAULT_IGNORED_SITE_DIRS,
    ):
        self.executor = executor
        self.menu = menu
        self.logger = logger
        self.ignored_site_dirs = tuple(ignored_site_dirs)

    def aliases(self, drupal_root: Path) -> list[str]:
        result = self.executor.capture(
            CommandSpec.of("drush", "sa", "--format=json"), cwd=drupal_root
        )
        if not result.ok:
            self.logger.debug("drush sa returned no aliases")
            return []
        try:
            return parse_alias_json(result.stdout)
        except ValueError:
            self.logger.warn("Could not parse drush alias list as JSON")
            return []

    def status_uri(self, drupal_root: Path) -> str | None:
        result = self.executor.capture(
            CommandSpec.of("drush", "status", "--format=json"), cwd=drupal_root
        )
        if not result.ok:
            return None
        try:
            data = json.loads(result.stdout or "{}")
        except ValueError:
            return None
        uri = data.get("uri") if isinstance(data, dict) else None
        if not isinstance(uri, str) or uri.strip() in _DEFAULT_URIS:
            return None
        return uri.strip()

    def site_uris(self, drupal_root: Path) -> list[str]:
        sites_php = drupal_root / "sites" / "sites.php"
        if sites_php.is_file():
            uris = parse_sites_php(
                sites_php.read_text(encoding="utf-8", errors="replace")
            )
            if uris:
                return uris

        uris = []
        status = self.status_uri(drupal_root)
        if status:
            uris.append(status)
        scanned = scan_site_dirs(drupal_root, self.ignored_site_dirs)
        if scanned:
            self.logger.debug(
                "No sites.php entries; guessing sites from directories: "
                + ", ".join(scanned)
            )
        uris.extend(s for s in scanned if s not in uris)
        return uris

    def candidates(self, drupal_root: Path) -> list[Target]:
        self.logger.info("Detecting Drush targets...")
        targets: list[Target] = [SELF]
        targets.extend(AliasTarget(a) for a in self.aliases(drupal_root))
        targets.extend(UriTarget(u) for u in self.site_uris(drupal_root))
        targets.append(ALL_SITES)

        unique: list[Target] = []
        for t in targets:
            if t not in unique:
                unique.append(t)
        return unique

    def select(
        self,
        candidates: Sequence[Target],
        title: str = "Select Drush target",
        context: Sequence[str] = (),
    ) -> Target | None:
        items = [MenuItem(t.label, value=t) for t in candidates]
        result = self.menu.select(title, items, context)
        if result.cancelled or result.value is None:
            return None
        return result.value.value

    def resolve_scoped(
        self,
        candidates: Sequence[Target],
        title: str = "Select Drush target",
        context: Sequence[str] = (),
    ) -> Target | None:
        """Like select(), but a single candidate is taken without asking."""
        if not candidates:
            return None
        if len(candidates) == 1:
            self.logger.info(f"Using the only matching target: {candidates[0].label}")
            return candidates[0]
        return self.select(candidates, title, context)
