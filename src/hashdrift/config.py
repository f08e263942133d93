"""Configuration management for hashdrift."""

import hashlib
import re
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hashdrift.utils.file_utils import TEMP_SUFFIX

MANIFEST_NAME = ".hashdrift.manifest"
PREVIOUS_NAME = ".hashdrift.manifest.prev"
LOG_NAME = ".hashdrift.log"


class RunConfig(BaseSettings):
    """Settings for one hashdrift run.

    Values come from HASHDRIFT_* environment variables or a `.env` file and
    are overridden by command line options. A RunConfig is passed explicitly
    to every directory check; nothing here is process-global.
    """

    quiet: bool = Field(default=False, description="Suppress the console summary")
    nice: Optional[int] = Field(
        default=None, ge=-20, le=19, description="Niceness increment applied before hashing"
    )
    exclude: Optional[str] = Field(
        default=None, description="Regular expression matched against relative paths to skip"
    )
    algorithm: str = Field(default="sha256", description="hashlib algorithm for file content")
    workers: int = Field(default=4, ge=1, description="Files hashed concurrently")

    manifest_name: str = MANIFEST_NAME
    previous_name: str = PREVIOUS_NAME
    log_name: str = LOG_NAME

    use_lock: bool = Field(
        default=True, description="Keep manifest and log read-only between runs"
    )
    require_root: bool = Field(default=False, description="Refuse to run unless euid is 0")
    dry_run: bool = Field(default=False, description="Compute drift without writing anything")
    log_first_run: bool = Field(
        default=False, description="Write a log block for the initial generation too"
    )

    syslog: bool = Field(default=True, description="Send run events to the system log")
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    model_config = SettingsConfigDict(
        env_prefix="HASHDRIFT_",
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @field_validator("exclude")
    @classmethod
    def validate_exclude(cls, v: Optional[str]) -> Optional[str]:
        """Reject patterns that do not compile."""
        if v:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"invalid exclude pattern {v!r}: {e}") from e
        return v or None

    @field_validator("algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        v = v.lower()
        # shake digests need an explicit length
        if v not in hashlib.algorithms_available or v.startswith("shake_"):
            raise ValueError(f"unsupported hash algorithm: {v}")
        return v

    @property
    def exclude_pattern(self) -> Optional[re.Pattern]:
        """Compiled exclusion pattern, if any."""
        return re.compile(self.exclude) if self.exclude else None

    @property
    def reserved_names(self) -> set[str]:
        """Names of this tool's own files, relative to a checked directory."""
        names = {self.manifest_name, self.previous_name, self.log_name}
        return names | {name + TEMP_SUFFIX for name in names}
