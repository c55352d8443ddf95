# DrupalOps™ — Interactive Drupal Project Operations Console
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Database dump classification and decompression.

Classification looks at the filename suffix only. Decompression always
writes into a ScratchSpace, a temporary directory that is removed when the
`with` block exits, whatever the outcome.
"""

from __future__ import annotations

import gzip
import os
import shutil
import tarfile
import tempfile
import zipfile
import zlib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .errors import AmbiguousArchiveError, DecompressionError, UnsupportedDumpError


class DumpFormat(Enum):
    SQL = "sql"
    GZIP = "gzip"
    ZIP = "zip"
    TAR = "tar"
    PG_DUMP = "pg_dump"
    UNKNOWN = "unknown"


# Order matters: longest suffix first.
_SUFFIXES: tuple[tuple[str, DumpFormat], ...] = (
    (".sql.gz", DumpFormat.GZIP),
    (".sql", DumpFormat.SQL),
    (".gz", DumpFormat.GZIP),
    (".zip", DumpFormat.ZIP),
    (".tar", DumpFormat.TAR),
    (".dump", DumpFormat.PG_DUMP),
    (".dmp", DumpFormat.PG_DUMP),
)

_STEM_SUFFIXES = (".gz", ".zip", ".tar", ".sql", ".dump", ".dmp")


def classify(path: Path | str) -> DumpFormat:
    name = Path(path).name.lower()
    for suffix, fmt in _SUFFIXES:
        if name.endswith(suffix):
            return fmt
    return DumpFormat.UNKNOWN


def dump_stem(path: Path | str) -> str:
    """Filename without any dump/archive suffixes: site_a.sql.gz -> site_a."""
    name = Path(path).name
    changed = True
    while changed:
        changed = False
        for suffix in _STEM_SUFFIXES:
            if name.lower().endswith(suffix) and len(name) > len(suffix):
                name = name[: -len(suffix)]
                changed = True
    return name


@dataclass(frozen=True)
class DumpFile:
    path: Path
    detected_format: DumpFormat

    @classmethod
    def from_path(cls, path: Path | str) -> DumpFile:
        return cls(Path(path), classify(path))

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def is_canonical(self) -> bool:
        """SQL and PG_DUMP are fed to the database client as-is."""
        return self.detected_format in (DumpFormat.SQL, DumpFormat.PG_DUMP)


def find_dumps(project_root: Path, dump_dir: str = "data") -> list[DumpFile]:
    """Recognized dump files in <project>/<dump_dir>, newest first."""
    directory = project_root / dump_dir
    if not directory.is_dir():
        return []
    dumps = [
        DumpFile.from_path(p)
        for p in directory.iterdir()
        if p.is_file() and classify(p) is not DumpFormat.UNKNOWN
    ]
    dumps.sort(key=lambda d: d.path.stat().st_mtime, reverse=True)
    return dumps


# ----------------------------------------------------------------
# Scratch storage
# ----------------------------------------------------------------


class ScratchSpace:
    """Temporary directory for one restore; removed on every exit path."""

    def __init__(self, root: Path | None = None, prefix: str = "restore-"):
        self.root = root
        self.prefix = prefix
        self.path: Path | None = None

    def __enter__(self) -> ScratchSpace:
        if self.root is not None:
            self.root.mkdir(parents=True, exist_ok=True)
        self.path = Path(tempfile.mkdtemp(prefix=self.prefix, dir=self.root))
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        if self.path is not None:
            shutil.rmtree(self.path, ignore_errors=True)
            self.path = None


# ----------------------------------------------------------------
# Decompression
# ----------------------------------------------------------------


def decompress(dump: DumpFile, scratch: Path) -> Path:
    """Return a path to plain SQL for dump, writing into scratch if needed.

    Raises:
        UnsupportedDumpError: UNKNOWN format
        DecompressionError: corrupt or unreadable input
        AmbiguousArchiveError: ZIP/TAR without exactly one .sql file
    """
    fmt = dump.detected_format
    if fmt is DumpFormat.UNKNOWN:
        raise UnsupportedDumpError(f"Unsupported dump file format: {dump.name}")
    if dump.is_canonical:
        return dump.path
    if fmt is DumpFormat.GZIP:
        return _gunzip(dump.path, scratch)

    dest = scratch / "extract"
    dest.mkdir(parents=True, exist_ok=True)
    if fmt is DumpFormat.ZIP:
        _unzip(dump.path, dest)
    else:
        _untar(dump.path, dest)
    return _single_sql(dest, dump.name)


def _gunzip(path: Path, scratch: Path) -> Path:
    name = path.name[:-3] if path.name.lower().endswith(".gz") else path.name
    out = scratch / (name or "dump.sql")
    try:
        with gzip.open(path, "rb") as src, out.open("wb") as dst:
            shutil.copyfileobj(src, dst)
    except (OSError, EOFError, zlib.error) as e:
        out.unlink(missing_ok=True)
        raise DecompressionError(f"Failed to inflate {path.name}: {e}") from e
    return out


def _check_member(dest: Path, name: str) -> None:
    target = dest.resolve()
    if os.path.isabs(name) or ".." in Path(name).parts:
        raise DecompressionError(
            f"Archive member '{name}' would extract outside target directory"
        )
    member_path = (target / name).resolve()
    if member_path != target and not str(member_path).startswith(
        str(target) + os.sep
    ):
        raise DecompressionError(
            f"Archive member '{name}' would extract outside target directory"
        )


def _unzip(path: Path, dest: Path) -> None:
    try:
        with zipfile.ZipFile(path) as zf:
            for name in zf.namelist():
                _check_member(dest, name)
            zf.extractall(dest)
    except (zipfile.BadZipFile, OSError) as e:
        raise DecompressionError(f"Failed to extract ZIP file {path.name}: {e}") from e


def _untar(path: Path, dest: Path) -> None:
    try:
        with tarfile.open(path, "r:*") as tar:
            members = tar.getmembers()
            for member in members:
                _check_member(dest, member.name)
                if member.issym() or member.islnk():
                    raise DecompressionError(
                        f"Archive member '{member.name}' is a link; refusing to extract"
                    )
            if hasattr(tarfile, "data_filter"):
                tar.extractall(dest, members=members, filter="data")
            else:
                tar.extractall(dest, members=members)
    except (tarfile.TarError, OSError) as e:
        raise DecompressionError(f"Failed to extract TAR file {path.name}: {e}") from e


def _single_sql(dest: Path, archive_name: str) -> Path:
    matches = sorted(
        p
        for p in dest.rglob("*")
        if p.name.lower().endswith(".sql") and not p.is_symlink() and p.is_file()
    )
    if len(matches) != 1:
        raise AmbiguousArchiveError(
            archive_name, [str(p.relative_to(dest)) for p in matches]
        )
    return matches[0]
