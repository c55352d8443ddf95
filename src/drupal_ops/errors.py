# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Exception hierarchy for DrupalOps.

Screens catch DrupalOpsError at the menu loop and return control to the
previous menu; nothing here is fatal to the process.
"""

from __future__ import annotations


class DrupalOpsError(Exception):
    """Base class for expected, user-facing failures."""


class ConfigError(DrupalOpsError):
    """Settings file or registry file could not be parsed."""


class ValidationError(DrupalOpsError):
    """User input failed validation; the flow aborts with a warning."""


class ResolutionError(DrupalOpsError):
    """A prerequisite could not be resolved (project, webroot, target, tool)."""


class ArchiveError(DrupalOpsError):
    """Base class for dump classification and decompression failures."""


class UnsupportedDumpError(ArchiveError):
    """The dump filename suffix maps to no known format."""


class DecompressionError(ArchiveError):
    """Inflating or extracting a dump failed."""


class AmbiguousArchiveError(DecompressionError):
    """An archive holds zero or several .sql files."""

    def __init__(self, archive: str, matches: list[str]):
        self.archive = archive
        self.matches = matches
        if matches:
            detail = f"{len(matches)} .sql files: {', '.join(sorted(matches))}"
        else:
            detail = "no .sql file"
        super().__init__(f"Ambiguous archive contents in {archive}: {detail}")


class RestoreInProgressError(DrupalOpsError):
    """A second restore was started while one is still active."""
