"""Build manifests by walking and hashing a directory tree."""

import asyncio
import os
import re
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from loguru import logger

from hashdrift.manifest.models import Manifest, ManifestEntry
from hashdrift.services.exceptions import StoreError
from hashdrift.utils.file_utils import FileError, compute_checksum


@dataclass
class ScanResult:
    """Result of scanning a directory.

    Attributes:
        manifest: Hashes of every regular file that could be read
        errors: Relative path -> error for entries that could not be read
        excluded: Number of files skipped by the exclusion pattern or naming rules
        vanished: Number of files that disappeared between listing and hashing
    """

    manifest: Manifest = field(default_factory=Manifest.empty)
    errors: Dict[str, str] = field(default_factory=dict)
    excluded: int = 0
    vanished: int = 0


class ManifestScanner:
    """
    Walks a directory and hashes every regular file into a Manifest.
    Hashing runs in worker threads, at most `workers` files at a time.
    """

    def __init__(
        self,
        exclude: Optional[re.Pattern] = None,
        reserved_names: Optional[Set[str]] = None,
        algorithm: str = "sha256",
        workers: int = 4,
    ):
        self.exclude = exclude
        self.reserved_names = reserved_names or set()
        self.algorithm = algorithm
        self.workers = workers

    def is_excluded(self, rel_path: str) -> bool:
        """True if the relative path matches the exclusion pattern."""
        return bool(self.exclude and self.exclude.search(rel_path))

    def list_files(self, root: Path, result: ScanResult) -> List[Tuple[str, Path]]:
        """
        List (relative path, absolute path) for regular files under root.

        Symlinks are neither followed nor listed. Unreadable subdirectories are
        recorded in result.errors.

        Raises:
            StoreError: If root itself cannot be listed
        """
        try:
            with os.scandir(root):
                pass
        except OSError as e:
            raise StoreError(f"Cannot read directory {root}: {e}") from e

        def on_error(err: OSError) -> None:
            rel_path = Path(err.filename).relative_to(root).as_posix()
            result.errors[rel_path] = str(err)
            logger.warning(f"Cannot read directory {rel_path}: {err}")

        files: List[Tuple[str, Path]] = []
        for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
            dirnames.sort()
            for name in sorted(filenames):
                path = Path(dirpath) / name
                rel_path = path.relative_to(root).as_posix()

                if name in self.reserved_names:
                    continue
                if self.is_excluded(rel_path):
                    result.excluded += 1
                    continue
                if "\n" in rel_path:
                    logger.warning(f"Skipping path with newline: {rel_path!r}")
                    result.excluded += 1
                    continue

                try:
                    mode = path.lstat().st_mode
                except FileNotFoundError:
                    result.vanished += 1
                    continue
                if stat.S_ISREG(mode):
                    files.append((rel_path, path))

        return files

    async def hash_entry(
        self, rel_path: str, path: Path, semaphore: asyncio.Semaphore, result: ScanResult
    ) -> Optional[ManifestEntry]:
        """Hash one file; a vanished file yields None without an error."""
        async with semaphore:
            try:
                checksum = await compute_checksum(path, self.algorithm)
            except FileNotFoundError:
                logger.debug(f"File vanished before hashing: {rel_path}")
                result.vanished += 1
                return None
            except FileError:
                raise
            except OSError as e:
                result.errors[rel_path] = str(e)
                logger.warning(f"Failed to read {rel_path}: {e}")
                return None
        return ManifestEntry(path=rel_path, hash=checksum)

    async def scan(self, root: Path) -> ScanResult:
        """
        Scan directory for regular files and their checksums.

        Args:
            root: Directory to scan

        Returns:
            ScanResult whose manifest is sorted by path

        Raises:
            StoreError: If root is missing or unreadable
        """
        logger.debug(f"Scanning directory: {root}")
        result = ScanResult()

        files = await asyncio.to_thread(self.list_files, root, result)
        logger.debug(f"Hashing {len(files)} files with {self.workers} workers")

        semaphore = asyncio.Semaphore(self.workers)
        entries = await asyncio.gather(
            *(self.hash_entry(rel_path, path, semaphore, result) for rel_path, path in files)
        )
        result.manifest = Manifest.from_entries(e for e in entries if e is not None)

        logger.debug(f"Found {len(result.manifest)} files")
        if result.errors:
            logger.warning(f"Encountered {len(result.errors)} errors while scanning")

        return result
