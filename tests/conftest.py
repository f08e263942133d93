"""Common test fixtures."""

import os
import sys
from datetime import datetime
from pathlib import Path

import pytest
from loguru import logger

from hashdrift.config import RunConfig
from hashdrift.manifest.store import GenerationHandle, NullLock

FIXED_TIME = datetime(2026, 10, 18, 12, 0, 0)

running_as_root = pytest.mark.skipif(
    hasattr(os, "geteuid") and os.geteuid() == 0,
    reason="permission bits are not enforced for root",
)


def create_test_file(path: Path, content: str = "test content") -> Path:
    """Create a test file with given content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


@pytest.fixture(autouse=True)
def test_env(tmp_path_factory, monkeypatch):
    """Keep tests away from syslog, log files and any .env in the working directory."""
    monkeypatch.setenv("HASHDRIFT_ENV", "test")
    monkeypatch.setenv("HASHDRIFT_SYSLOG", "false")
    for name in list(os.environ):
        if name.startswith("HASHDRIFT_") and name not in ("HASHDRIFT_ENV", "HASHDRIFT_SYSLOG"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path_factory.mktemp("cwd"))
    yield
    # the CLI rebinds loguru to streams that are closed after each invocation
    logger.remove()
    logger.add(lambda message: sys.stderr.write(message), level="DEBUG")


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    """A small directory tree to hash."""
    root = tmp_path / "tree"
    create_test_file(root / "a.txt", "alpha")
    create_test_file(root / "b.txt", "bravo")
    create_test_file(root / "docs/readme.md", "read me")
    create_test_file(root / "docs/deep/notes.md", "notes")
    return root


@pytest.fixture
def config() -> RunConfig:
    return RunConfig(syslog=False, workers=2)


@pytest.fixture
def handle(tree: Path) -> GenerationHandle:
    return GenerationHandle(tree, lock=NullLock())
