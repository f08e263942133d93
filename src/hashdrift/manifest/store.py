"""Persistence of manifest generations and the drift log for one directory."""

import os
import re
import stat
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Protocol, Set

from loguru import logger

from hashdrift.config import LOG_NAME, MANIFEST_NAME, PREVIOUS_NAME
from hashdrift.manifest.models import DiffReport, Manifest, ManifestEntry
from hashdrift.services.exceptions import FormatError, StoreError
from hashdrift.utils.file_utils import (
    append_file,
    copy_file_atomic,
    ENCODING_ERRORS,
    temp_path_for,
    write_file_atomic,
)

HEX_DIGEST = re.compile(r"^[0-9a-f]+$")
RECORD_SEPARATOR = "  "
WRITE_BITS = stat.S_IWUSR | stat.S_IWGRP | stat.S_IWOTH


def serialize_manifest(manifest: Manifest) -> str:
    """Render `<hash>  <path>` lines in path order (sha256sum compatible)."""
    return "".join(f"{entry.hash}{RECORD_SEPARATOR}{entry.path}\n" for entry in manifest)


def parse_manifest(text: str, source: str = "<manifest>") -> Manifest:
    """
    Parse the serialized form produced by serialize_manifest.

    Any malformed line aborts the parse; a partially read manifest would turn
    its unread paths into false missing/new records.

    Raises:
        FormatError: On the first line that is not a valid record
    """
    entries: List[ManifestEntry] = []
    for line_number, line in enumerate(text.split("\n"), start=1):
        if not line:
            # only the terminating newline may produce an empty line
            if line_number == text.count("\n") + 1:
                continue
            raise FormatError(source, line_number, line)
        hash_, sep, path = line.partition(RECORD_SEPARATOR)
        if not sep or not path or not HEX_DIGEST.match(hash_):
            raise FormatError(source, line_number, line)
        entries.append(ManifestEntry(path=path, hash=hash_))
    return Manifest.from_entries(entries)


def render_log_block(report: DiffReport) -> str:
    """Render one run's drift as a block for the cumulative log."""
    stamp = report.timestamp.isoformat(timespec="seconds")
    label = f" {report.run_label}" if report.run_label else ""
    lines = [f"==== hashdrift {report.tool_version} start {stamp}{label} ===="]

    for changed in report.changed:
        lines.append(f"Changed: {changed.path} ({changed.old_hash} -> {changed.new_hash})")
    for new_file in report.new_files:
        lines.append(f"NewFile: {new_file.path} ({new_file.hash})")
    for missing in report.missing:
        line = f"Missing: {missing.path} ({missing.hash})"
        if missing.moved_hint:
            line += f" possibly moved to: {', '.join(missing.moved_hint)}"
        lines.append(line)

    counts = report.counts
    lines.append(
        f"==== hashdrift end {stamp} missing={counts.missing} "
        f"changed={counts.changed} newfile={counts.new_file} ===="
    )
    return "\n".join(lines) + "\n"


class Lock(Protocol):
    """Capability that guards store files between runs."""

    def lock_for_write(self, paths: Iterable[Path]) -> None: ...

    def unlock_read_only(self, paths: Iterable[Path]) -> None: ...


class NullLock:
    """Lock that leaves file permissions alone."""

    def lock_for_write(self, paths: Iterable[Path]) -> None:
        pass

    def unlock_read_only(self, paths: Iterable[Path]) -> None:
        pass


class PermissionLock:
    """Keeps store files read-only between runs by toggling write bits."""

    def lock_for_write(self, paths: Iterable[Path]) -> None:
        for path in paths:
            self._chmod(path, lambda mode: mode | stat.S_IWUSR)

    def unlock_read_only(self, paths: Iterable[Path]) -> None:
        for path in paths:
            self._chmod(path, lambda mode: mode & ~WRITE_BITS)

    @staticmethod
    def _chmod(path: Path, update) -> None:
        try:
            mode = stat.S_IMODE(path.stat().st_mode)
        except FileNotFoundError:
            return
        except OSError as e:
            raise StoreError(f"Cannot stat {path}: {e}") from e
        try:
            os.chmod(path, update(mode))
        except OSError as e:
            raise StoreError(f"Cannot change permissions of {path}: {e}") from e


@dataclass(frozen=True)
class StoreLayout:
    """File names of the store, relative to the checked directory."""

    manifest_name: str = MANIFEST_NAME
    previous_name: str = PREVIOUS_NAME
    log_name: str = LOG_NAME


class GenerationHandle:
    """
    Current and previous manifest generations plus the drift log of one directory.

    Features:
    - current is replaced atomically, never left partial
    - the previous generation is a copy of the replaced current
    - the log only ever grows
    """

    def __init__(
        self,
        root: Path,
        layout: Optional[StoreLayout] = None,
        lock: Optional[Lock] = None,
    ):
        self.root = root
        self.layout = layout or StoreLayout()
        self.lock = lock or NullLock()

    @property
    def manifest_path(self) -> Path:
        return self.root / self.layout.manifest_name

    @property
    def previous_path(self) -> Path:
        return self.root / self.layout.previous_name

    @property
    def log_path(self) -> Path:
        return self.root / self.layout.log_name

    @property
    def store_paths(self) -> List[Path]:
        return [self.manifest_path, self.previous_path, self.log_path]

    def reserved_names(self) -> Set[str]:
        """Names the scanner must skip in every directory of the tree."""
        return {p.name for p in self.store_paths} | {
            temp_path_for(p).name for p in self.store_paths
        }

    def read_manifest(self, path: Path) -> Optional[Manifest]:
        """
        Read a persisted manifest; None if the file does not exist.

        Raises:
            StoreError: If the file exists but cannot be read
            FormatError: If a record is malformed
        """
        try:
            text = path.read_text(encoding="utf-8", errors=ENCODING_ERRORS)
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StoreError(f"Cannot read manifest {path}: {e}") from e
        return parse_manifest(text, source=str(path))

    def load_current(self) -> Optional[Manifest]:
        return self.read_manifest(self.manifest_path)

    def load_previous(self) -> Optional[Manifest]:
        return self.read_manifest(self.previous_path)

    def commit(self, manifest: Manifest) -> None:
        """
        Make `manifest` the current generation, keeping the old one as previous.

        The previous copy and the new current are each written to a temp file
        and renamed into place, so an interruption leaves current either old or
        new, never partial.
        """
        if self.manifest_path.exists():
            copy_file_atomic(self.manifest_path, self.previous_path)
        write_file_atomic(self.manifest_path, serialize_manifest(manifest))
        logger.debug(f"Committed {len(manifest)} entries to {self.manifest_path}")

    def append_log(self, report: DiffReport) -> None:
        append_file(self.log_path, render_log_block(report))

    def cleanup(self) -> None:
        """Remove temp files left by an interrupted run and restore the idle lock state."""
        for path in self.store_paths:
            staged = temp_path_for(path)
            if staged.exists():
                logger.warning(f"Removing stale temp file {staged}")
                try:
                    staged.unlink()
                except OSError as e:
                    raise StoreError(f"Cannot remove stale temp file {staged}: {e}") from e
        self.lock.unlock_read_only(self.store_paths)

    @contextmanager
    def writable(self) -> Iterator["GenerationHandle"]:
        """Unlock the store for the duration of a run; relock even on error."""
        self.lock.lock_for_write(self.store_paths)
        try:
            yield self
        finally:
            self.lock.unlock_read_only(self.store_paths)
