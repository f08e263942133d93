"""Service that checks directories for drift and records new generations."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from loguru import logger

from hashdrift import __version__
from hashdrift.config import RunConfig
from hashdrift.manifest.differ import diff
from hashdrift.manifest.models import DiffReport
from hashdrift.manifest.scanner import ManifestScanner
from hashdrift.manifest.store import GenerationHandle, Lock, NullLock, PermissionLock, StoreLayout
from hashdrift.services.exceptions import ConfigError
from hashdrift.utils import notify


@dataclass
class DirectoryResult:
    """Outcome of checking one directory.

    Attributes:
        directory: The checked directory
        report: Drift against the stored generation (all files are new on a first run)
        first_run: True when no generation existed before this run
        committed: True when the new generation and log block were written
        errors: Relative path -> error for files that could not be hashed
    """

    directory: Path
    report: DiffReport
    first_run: bool = False
    committed: bool = False
    errors: Dict[str, str] = field(default_factory=dict)


def validate_directories(directories: Sequence[Path]) -> List[Path]:
    """
    Resolve directory arguments, failing on the first one that is unusable.

    Raises:
        ConfigError: If no directory is given, or one is missing or not a directory
    """
    if not directories:
        raise ConfigError("No directory given")

    resolved = []
    for directory in directories:
        if not directory.exists():
            raise ConfigError(f"Directory does not exist: {directory}")
        if not directory.is_dir():
            raise ConfigError(f"Not a directory: {directory}")
        resolved.append(directory.resolve())
    return resolved


def check_privileges(config: RunConfig) -> None:
    """Raises ConfigError when root is required and the process is not root."""
    if config.require_root and hasattr(os, "geteuid") and os.geteuid() != 0:
        raise ConfigError("hashdrift must be run as root (require_root is set)")


def apply_niceness(config: RunConfig) -> None:
    """Lower the process priority by the configured increment."""
    if config.nice is None:
        return
    try:
        os.nice(config.nice)
    except (AttributeError, OSError) as e:
        raise ConfigError(f"Cannot set niceness {config.nice}: {e}") from e
    logger.debug(f"Niceness incremented by {config.nice}")


class CheckService:
    """
    Checks directories against their stored manifest generation.

    Each directory gets its own GenerationHandle; nothing is shared between
    directories except the read-only RunConfig.
    """

    def __init__(self, config: RunConfig, lock: Optional[Lock] = None):
        self.config = config
        if lock is None:
            lock = PermissionLock() if config.use_lock else NullLock()
        self.lock = lock

    def handle_for(self, directory: Path) -> GenerationHandle:
        layout = StoreLayout(
            manifest_name=self.config.manifest_name,
            previous_name=self.config.previous_name,
            log_name=self.config.log_name,
        )
        return GenerationHandle(directory, layout=layout, lock=self.lock)

    def scanner_for(self, handle: GenerationHandle) -> ManifestScanner:
        return ManifestScanner(
            exclude=self.config.exclude_pattern,
            reserved_names=handle.reserved_names(),
            algorithm=self.config.algorithm,
            workers=self.config.workers,
        )

    async def check_directory(self, directory: Path) -> DirectoryResult:
        """
        Hash `directory`, diff it against the stored generation and rotate.

        Args:
            directory: Directory to check

        Returns:
            DirectoryResult for the run

        Raises:
            ConfigError: If directory is not a directory
            StoreError: If store files cannot be read, written or locked
            FormatError: If the stored manifest is malformed
        """
        (directory,) = validate_directories([directory])
        handle = self.handle_for(directory)
        scanner = self.scanner_for(handle)

        if self.config.dry_run:
            old = handle.load_current()
            scan = await scanner.scan(directory)
            report = self._diff(old, scan.manifest, directory)
            return DirectoryResult(
                directory=directory, report=report, first_run=old is None, errors=scan.errors
            )

        handle.cleanup()
        with handle.writable():
            old = handle.load_current()
            scan = await scanner.scan(directory)
            report = self._diff(old, scan.manifest, directory)

            if old is not None or self.config.log_first_run:
                handle.append_log(report)
            handle.commit(scan.manifest)

        return DirectoryResult(
            directory=directory,
            report=report,
            first_run=old is None,
            committed=True,
            errors=scan.errors,
        )

    def _diff(self, old, new, directory: Path) -> DiffReport:
        return diff(old, new, tool_version=__version__, run_label=str(directory))

    async def run(self, directories: Sequence[Path]) -> List[DirectoryResult]:
        """Check each directory in turn; the first fatal error stops the run."""
        check_privileges(self.config)
        resolved = validate_directories(directories)
        apply_niceness(self.config)

        notify(f"hashdrift {__version__} starting on {len(resolved)} directories")
        results = []
        for directory in resolved:
            notify(f"Checking {directory}")
            result = await self.check_directory(directory)
            notify(summary_line(result))
            results.append(result)
        notify(f"hashdrift finished, {sum(r.report.total_changes for r in results)} changes")
        return results


def summary_line(result: DirectoryResult) -> str:
    """One-line description of a directory result for notifications."""
    if result.first_run:
        return f"Initialized {result.directory}: {len(result.report.new_files)} files"
    counts = result.report.counts
    return (
        f"Checked {result.directory}: missing={counts.missing} "
        f"changed={counts.changed} newfile={counts.new_file}"
    )
