"""Utilities for file operations."""

import asyncio
import hashlib
import shutil
from pathlib import Path

from loguru import logger

from hashdrift.services.exceptions import StoreError

CHUNK_SIZE = 1024 * 1024
TEMP_SUFFIX = ".tmp"
# file names are arbitrary bytes on POSIX; os.fsdecode maps undecodable bytes to
# surrogates, which this handler writes back unchanged
ENCODING_ERRORS = "surrogateescape"


class FileError(StoreError):
    """Base exception for file operations."""

    pass


class FileWriteError(FileError):
    """Raised when file operations fail."""

    pass


def temp_path_for(path: Path) -> Path:
    """Sibling temp file used while replacing `path` atomically."""
    return path.with_name(path.name + TEMP_SUFFIX)


def hash_file(path: Path, algorithm: str = "sha256") -> str:
    """
    Compute the hex digest of a file's bytes, reading in chunks.

    OSError (including FileNotFoundError for a file that vanished) is left to
    the caller, which decides whether the failure is a race or an error.

    Raises:
        FileError: If the algorithm is not supported by hashlib
    """
    try:
        digest = hashlib.new(algorithm)
    except ValueError as e:
        raise FileError(f"Unsupported hash algorithm: {algorithm}") from e

    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


async def compute_checksum(path: Path, algorithm: str = "sha256") -> str:
    """
    Compute the checksum of a file in a worker thread.

    Args:
        path: File to hash
        algorithm: Any name accepted by hashlib.new

    Returns:
        Hex digest of the file content
    """
    return await asyncio.to_thread(hash_file, path, algorithm)


def write_file_atomic(path: Path, content: str) -> None:
    """
    Write file with atomic operation using temporary file.

    Args:
        path: Target file path
        content: Content to write

    Raises:
        FileWriteError: If write operation fails
    """
    temp_path = temp_path_for(path)
    try:
        temp_path.write_text(content, encoding="utf-8", errors=ENCODING_ERRORS)
        temp_path.replace(path)
    except Exception as e:
        temp_path.unlink(missing_ok=True)
        logger.error(f"Failed to write file: {path}: {e}")
        raise FileWriteError(f"Failed to write file {path}: {e}") from e


def copy_file_atomic(source: Path, target: Path) -> None:
    """
    Copy `source` over `target` so that `target` is never partially written.

    Raises:
        FileWriteError: If the copy or rename fails
    """
    temp_path = temp_path_for(target)
    try:
        shutil.copyfile(source, temp_path)
        temp_path.replace(target)
    except Exception as e:
        temp_path.unlink(missing_ok=True)
        logger.error(f"Failed to copy {source} to {target}: {e}")
        raise FileWriteError(f"Failed to copy {source} to {target}: {e}") from e


def append_file(path: Path, content: str) -> None:
    """
    Append text to a file, creating it if necessary.

    Raises:
        FileWriteError: If the file cannot be opened or written
    """
    try:
        with path.open("a", encoding="utf-8", errors=ENCODING_ERRORS) as f:
            f.write(content)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to append to file: {path}: {e}")
        raise FileWriteError(f"Failed to append to file {path}: {e}") from e
