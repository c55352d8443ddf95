# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Database restore pipeline.

PENDING -> CONFIRMED -> RUNNING -> SUCCEEDED | FAILED
PENDING -> CANCELLED (no target, or the confirmation gate said no)

A restore drops the target database and imports the dump through
`drush sql:cli`. Decompressed files live in a ScratchSpace that is gone
before the pipeline returns. updatedb and cache:rebuild follow a successful
import; their failures are logged and do not change the outcome.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from .archive import DumpFile, DumpFormat, ScratchSpace, decompress, dump_stem
from .errors import ArchiveError, RestoreInProgressError
from .executor import CommandSpec
from .targets import AllSitesTarget, Target, match_targets, scoped

if TYPE_CHECKING:
    from .session import Session

# Formats drush sql:query --file can replay directly.
_REPLAYABLE = (DumpFormat.SQL, DumpFormat.GZIP, DumpFormat.PG_DUMP)


class RestoreStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class RestoreSession:
    dump: DumpFile
    target: Target | None = None
    decompressed_path: Path | None = None
    status: RestoreStatus = RestoreStatus.PENDING
    error: str | None = None

    @property
    def finished(self) -> bool:
        return self.status in (
            RestoreStatus.SUCCEEDED,
            RestoreStatus.FAILED,
            RestoreStatus.CANCELLED,
        )

    def fail(self, message: str) -> RestoreSession:
        self.status = RestoreStatus.FAILED
        self.error = message
        return self


class RestorePipeline:
    """Runs one restore at a time against the session's drupal root."""

    def __init__(self, session: Session, scratch_root: Path | None = None):
        self.session = session
        self.scratch_root = scratch_root or session.scratch_root
        self.active: RestoreSession | None = None

    def run(self, dump_path: Path | str) -> RestoreSession:
        if self.active is not None:
            raise RestoreInProgressError(
                f"A restore of {self.active.dump.name} is already running"
            )
        restore = RestoreSession(DumpFile.from_path(dump_path))
        self.active = restore
        try:
            return self._run(restore)
        finally:
            self.active = None

    def _run(self, restore: RestoreSession) -> RestoreSession:
        s = self.session
        dump = restore.dump

        if dump.detected_format is DumpFormat.UNKNOWN:
            msg = f"Unsupported dump file format: {dump.name}"
            s.logger.error(msg)
            return restore.fail(msg)
        if not dump.path.is_file():
            msg = f"Dump file not found: {dump.path}"
            s.logger.error(msg)
            return restore.fail(msg)

        drupal_root = s.require_drupal_root()

        target = self._resolve_target(dump, drupal_root)
        if target is None:
            s.logger.warn("No Drush target selected for restore.")
            restore.status = RestoreStatus.CANCELLED
            return restore
        restore.target = target

        if not s.prompter.confirm(
            f"Restore {dump.name} into {target.label}? "
            "This will DROP the current database."
        ):
            s.logger.warn("Restore cancelled.")
            restore.status = RestoreStatus.CANCELLED
            return restore
        restore.status = RestoreStatus.CONFIRMED

        with ScratchSpace(self.scratch_root) as scratch:
            s.logger.info(
                f"Processing dump file '{dump.name}' for target '{target.label}'..."
            )
            try:
                restore.decompressed_path = decompress(dump, scratch.path)
            except ArchiveError as e:
                s.logger.error(str(e))
                return restore.fail(str(e))

            restore.status = RestoreStatus.RUNNING
            s.logger.info(f"Executing database restore to target '{target.label}'...")
            if s.run(
                CommandSpec.of("drush", "sql:drop", "-y"),
                cwd=drupal_root,
                target=target,
            ) != 0:
                return restore.fail(f"Dropping the database of {target.label} failed")
            if s.run(
                CommandSpec.of("drush", "sql:cli"),
                cwd=drupal_root,
                target=target,
                stdin_path=restore.decompressed_path,
            ) != 0:
                return restore.fail(
                    f"Database restore failed from '{dump.name}' to '{target.label}'"
                )

        restore.status = RestoreStatus.SUCCEEDED
        s.logger.success(
            f"Database restored successfully from '{dump.name}' to '{target.label}'."
        )
        self._record(restore, target)
        self._hygiene(target, drupal_root)
        return restore

    def _resolve_target(self, dump: DumpFile, drupal_root: Path) -> Target | None:
        s = self.session
        if isinstance(s.target, AllSitesTarget):
            s.logger.warn("A dump restores into one site; @sites cannot be used.")
        elif s.target is not None:
            return s.target

        candidates = [
            t for t in s.resolver.candidates(drupal_root)
            if not isinstance(t, AllSitesTarget)
        ]
        matches = match_targets(dump_stem(dump.path), candidates)
        chosen = s.resolver.resolve_scoped(
            matches or candidates,
            title=f"Select target for {dump.name}",
            context=s.context_lines(),
        )
        if chosen is not None:
            s.target = chosen
        return chosen

    def _record(self, restore: RestoreSession, target: Target) -> None:
        dump = restore.dump
        if dump.detected_format not in _REPLAYABLE:
            self.session.logger.debug(
                f"{dump.name} is an archive; restore not added to history"
            )
            return
        self.session.record(
            f"Restore database from {dump.name} into {target.label}",
            scoped(target, ["sql:query", f"--file={dump.path.resolve()}"]),
        )

    def _hygiene(self, target: Target, drupal_root: Path) -> None:
        s = self.session
        s.logger.info("Running 'drush updatedb' and 'drush cache:rebuild' after restore.")
        for args in (("updatedb", "-y"), ("cache:rebuild",)):
            if s.run(CommandSpec.of("drush", *args), cwd=drupal_root, target=target) != 0:
                s.logger.warn(
                    f"Post-restore step 'drush {args[0]}' failed; "
                    "the restored database is left in place."
                )
