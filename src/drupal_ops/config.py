# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Filesystem discovery and configuration for DrupalOps.

Handles:
- Config dir resolution (DRUPAL_OPS_HOME, ~/.config/drupal-ops)
- Scratch root resolution (DRUPAL_OPS_TMP, <tempdir>/drupal-ops)
- Packaged YAML defaults loading (drupal_ops.defaults/system.yaml)
- User settings in a key=value file (drupal-ops.conf)
- ANSI coloring constants for tagged console output
"""

from __future__ import annotations

import os
import re
import tempfile
from importlib import resources as importlib_resources
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

# -----------------------
# UI + branding constants
# -----------------------

ANSI_COLORS: dict[str, str] = {
    "cyan": "\033[38;5;69;1m",
    "yellow": "\033[38;5;226;1m",
    "reset": "\033[0m",
    "dim": "\033[2m",
    "green": "\033[32m",
    "red": "\033[31m",
    "blue": "\033[34m",
}

TAG_COLORS: dict[str, str] = {
    "DEBUG": "dim",
    "INFO": "blue",
    "WARN": "yellow",
    "ERROR": "red",
    "SUCCESS": "green",
}

CONFIG_FILENAME = "drupal-ops.conf"
HISTORY_FILENAME = "history.log"
FAVORITES_FILENAME = "favorites.yaml"
LOG_FILENAME = "drupal-ops.log"

TRUE_VALUES = frozenset({"1", "true", "yes", "on"})

_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def colorize(color: str, text: str) -> str:
    return f"{ANSI_COLORS.get(color, '')}{text}{ANSI_COLORS['reset']}"


# -----------------------
# Config model wrapper
# -----------------------


class YAMLConfig:
    """Simple config wrapper that implements ConfigModel protocol."""

    def __init__(self, config_dict: dict[str, Any]):
        self._config = config_dict

    @property
    def system(self) -> dict[str, Any]:
        return self._config.get("system", {})

    @property
    def settings(self) -> dict[str, Any]:
        val = self._config.get("settings", {})
        return val if isinstance(val, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    def get_path(self, path: str, default: Any = None) -> Any:
        """
        Nested lookup using dot-separated path.
        Example: get_path("keys.escape_timeout", 0.1)
        """
        if not path:
            return default

        cur: Any = self._config
        for part in path.split("."):
            if not isinstance(cur, dict):
                return default
            if part not in cur:
                return default
            cur = cur[part]
        return cur


# -----------------------
# Directories
# -----------------------


def get_config_dir() -> Path:
    """Get the user configuration directory for DrupalOps.

    Resolution order:
    1. DRUPAL_OPS_HOME environment variable (if set)
    2. ~/.config/drupal-ops (default)
    """
    home = os.getenv("DRUPAL_OPS_HOME")
    if home:
        root = Path(home).expanduser()
    else:
        root = Path.home() / ".config" / "drupal-ops"

    root.mkdir(parents=True, exist_ok=True)
    return root


def get_scratch_root() -> Path:
    """Get the scratch root used for the log file and decompressed dumps.

    Resolution order:
    1. DRUPAL_OPS_TMP environment variable (if set)
    2. <system tempdir>/drupal-ops
    """
    tmp = os.getenv("DRUPAL_OPS_TMP")
    if tmp:
        root = Path(tmp).expanduser()
    else:
        root = Path(tempfile.gettempdir()) / "drupal-ops"

    root.mkdir(parents=True, exist_ok=True)
    return root


def settings_path(config_dir: Path) -> Path:
    """<config_dir>/drupal-ops.conf"""
    return config_dir / CONFIG_FILENAME


def reports_dir(config_dir: Path) -> Path:
    """<config_dir>/reports"""
    return config_dir / "reports"


# -----------------------
# Key=value settings file
# -----------------------


def parse_settings_text(text: str) -> dict[str, str]:
    """Parse key=value lines. Blank lines and '#' comments are ignored.

    Values may be wrapped in single or double quotes.

    Raises:
        ConfigError: on a line without '=' or with an invalid key
    """
    values: dict[str, str] = {}
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            raise ConfigError(f"line {lineno}: expected KEY=value, got {raw!r}")
        key, _, value = line.partition("=")
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export "):].strip()
        if not _KEY_RE.match(key):
            raise ConfigError(f"line {lineno}: invalid key {key!r}")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        values[key] = value
    return values


def format_settings_text(values: dict[str, str]) -> str:
    lines = [
        "# DrupalOps settings",
        "# Edited from the Settings menu; manual edits are kept.",
    ]
    for key in sorted(values):
        lines.append(f'{key}="{values[key]}"')
    return "\n".join(lines) + "\n"


class Settings:
    """User settings backed by drupal-ops.conf, layered over packaged defaults."""

    def __init__(self, path: Path, defaults: dict[str, Any] | None = None):
        self.path = path
        self._defaults = {
            k: "" if v is None else str(v) for k, v in (defaults or {}).items()
        }
        self._values: dict[str, str] = {}

    @classmethod
    def load(cls, path: Path, defaults: dict[str, Any] | None = None) -> Settings:
        settings = cls(path, defaults)
        if path.exists():
            settings._values = parse_settings_text(
                path.read_text(encoding="utf-8")
            )
        return settings

    def get(self, key: str, default: str | None = None) -> str | None:
        if key in self._values:
            return self._values[key]
        if key in self._defaults:
            return self._defaults[key]
        return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        val = self.get(key)
        if val is None or val == "":
            return default
        return val.strip().lower() in TRUE_VALUES

    def set(self, key: str, value: str) -> None:
        """Update one key and persist immediately."""
        if not _KEY_RE.match(key):
            raise ConfigError(f"invalid key {key!r}")
        self._values[key] = value
        self.save()

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            format_settings_text(self.as_dict()), encoding="utf-8"
        )

    def as_dict(self) -> dict[str, str]:
        merged = dict(self._defaults)
        merged.update(self._values)
        return merged

    def keys(self) -> list[str]:
        return sorted(self.as_dict())

    @property
    def projects_root(self) -> Path:
        return Path(self.get("PROJECTS_ROOT_DIR") or "~/projects").expanduser()

    @property
    def log_level(self) -> str:
        return (self.get("LOG_LEVEL") or "INFO").upper()


# -----------------------
# Packaged defaults loading
# -----------------------


def _defaults_dir() -> Path:
    """Return the installed path to the packaged defaults directory."""
    return Path(
        importlib_resources.files("drupal_ops.defaults")
    )  # type: ignore[arg-type]


def load_defaults_yaml(filename: str) -> dict[str, Any]:
    """
    Load a YAML file from drupal_ops/defaults/.
    """
    defaults_dir = _defaults_dir()
    path = defaults_dir / filename
    if not path.exists():
        raise FileNotFoundError(
            f"Missing defaults YAML: {filename} "
            f"(looked in {defaults_dir})"
        )

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(
            f"Defaults YAML {filename} must load to a mapping/dict."
        )
    return data


def load_system_config() -> YAMLConfig:
    """
    Load system.yaml from packaged defaults and return a YAMLConfig wrapper.
    """
    return YAMLConfig(load_defaults_yaml("system.yaml"))
