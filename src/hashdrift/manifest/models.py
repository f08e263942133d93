"""Types for manifests and drift reports."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Mapping, Optional


@dataclass(frozen=True)
class ManifestEntry:
    """One hashed file: relative '/'-separated path and content digest."""

    path: str
    hash: str


class Manifest:
    """Snapshot of a directory tree as path -> hash, ordered by path.

    Iteration always yields entries sorted by path, so two manifests of an
    unchanged tree serialize to identical bytes.
    """

    def __init__(self, entries: Optional[Mapping[str, str]] = None):
        self._by_path: Dict[str, str] = {
            path: entries[path] for path in sorted(entries or {})
        }

    @classmethod
    def from_entries(cls, entries: Iterable[ManifestEntry]) -> "Manifest":
        """Build from entries in any order; a repeated path keeps its last hash."""
        return cls({entry.path: entry.hash for entry in entries})

    @classmethod
    def empty(cls) -> "Manifest":
        return cls()

    def __iter__(self) -> Iterator[ManifestEntry]:
        for path, hash_ in self._by_path.items():
            yield ManifestEntry(path=path, hash=hash_)

    def __len__(self) -> int:
        return len(self._by_path)

    def __contains__(self, path: object) -> bool:
        return path in self._by_path

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Manifest):
            return NotImplemented
        return list(self._by_path.items()) == list(other._by_path.items())

    def __repr__(self) -> str:
        return f"Manifest({len(self)} entries)"

    def get(self, path: str) -> Optional[str]:
        return self._by_path.get(path)

    def paths(self) -> List[str]:
        return list(self._by_path)

    def as_dict(self) -> Dict[str, str]:
        """Copy of the path -> hash mapping, in path order."""
        return dict(self._by_path)


@dataclass(frozen=True)
class ChangedRecord:
    """Path present in both manifests with different hashes."""

    path: str
    old_hash: str
    new_hash: str


@dataclass(frozen=True)
class NewFileRecord:
    """Path only present in the new manifest."""

    path: str
    hash: str


@dataclass(frozen=True)
class MissingRecord:
    """Path only present in the old manifest.

    moved_hint lists new-manifest paths holding the same content hash. It is
    a heuristic: duplicates produce hints too, and a moved file that was also
    edited produces none.
    """

    path: str
    hash: str
    moved_hint: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DiffCounts:
    missing: int = 0
    changed: int = 0
    new_file: int = 0


@dataclass
class DiffReport:
    """Result of comparing two manifest generations.

    Attributes:
        changed: Paths in both manifests whose hash differs, in new path order
        new_files: Paths only in the new manifest, in new path order
        missing: Paths only in the old manifest, in old path order
        unchanged: Number of paths present in both with the same hash
        timestamp: When the report was produced
        tool_version: hashdrift version that produced the report
        run_label: Free-form label for the audit trail, usually the directory
    """

    changed: List[ChangedRecord] = field(default_factory=list)
    new_files: List[NewFileRecord] = field(default_factory=list)
    missing: List[MissingRecord] = field(default_factory=list)
    unchanged: int = 0
    timestamp: datetime = field(default_factory=datetime.now)
    tool_version: str = ""
    run_label: str = ""

    @property
    def counts(self) -> DiffCounts:
        return DiffCounts(
            missing=len(self.missing),
            changed=len(self.changed),
            new_file=len(self.new_files),
        )

    @property
    def total_changes(self) -> int:
        """Total number of paths that drifted."""
        return len(self.changed) + len(self.new_files) + len(self.missing)

    @property
    def has_drift(self) -> bool:
        return self.total_changes > 0

    @property
    def moved(self) -> List[MissingRecord]:
        """Missing records that carry a move hint."""
        return [record for record in self.missing if record.moved_hint]

    def to_dict(self) -> dict:
        """Plain, deterministic rendering of the report."""
        counts = self.counts
        return {
            "timestamp": self.timestamp.isoformat(timespec="seconds"),
            "tool_version": self.tool_version,
            "run_label": self.run_label,
            "counts": {
                "missing": counts.missing,
                "changed": counts.changed,
                "new_file": counts.new_file,
            },
            "unchanged": self.unchanged,
            "changed": [
                {"path": r.path, "old_hash": r.old_hash, "new_hash": r.new_hash}
                for r in self.changed
            ],
            "new_files": [{"path": r.path, "hash": r.hash} for r in self.new_files],
            "missing": [
                {"path": r.path, "hash": r.hash, "moved_hint": list(r.moved_hint)}
                for r in self.missing
            ],
        }
