"""Classify drift between two manifest generations."""

from datetime import datetime
from typing import Dict, List, Optional

from loguru import logger

from hashdrift import __version__
from hashdrift.manifest.models import (
    ChangedRecord,
    DiffReport,
    Manifest,
    MissingRecord,
    NewFileRecord,
)


def diff(
    old: Optional[Manifest],
    new: Optional[Manifest],
    *,
    timestamp: Optional[datetime] = None,
    tool_version: str = __version__,
    run_label: str = "",
) -> DiffReport:
    """
    Compare an old manifest with a new one.

    Every path of old and new lands in exactly one of changed, new_files,
    missing, or the unchanged count. A missing path gets a move hint listing
    every new path that holds the same hash, whatever that path's own
    classification.

    An absent or empty `old` is a first run: everything in `new` is new.
    Neither input is modified.

    Args:
        old: Previous generation, or None
        new: Freshly computed generation, or None
        timestamp: Report time; defaults to now
        tool_version: Version stamped on the report
        run_label: Label stamped on the report

    Returns:
        DiffReport with records ordered by path
    """
    old = old if old is not None else Manifest.empty()
    new = new if new is not None else Manifest.empty()

    old_by_path: Dict[str, str] = old.as_dict()
    hash_to_new_paths: Dict[str, List[str]] = {}

    report = DiffReport(
        timestamp=timestamp or datetime.now(),
        tool_version=tool_version,
        run_label=run_label,
    )

    for entry in new:
        hash_to_new_paths.setdefault(entry.hash, []).append(entry.path)

        old_hash = old_by_path.pop(entry.path, None)
        if old_hash is None:
            report.new_files.append(NewFileRecord(path=entry.path, hash=entry.hash))
        elif old_hash != entry.hash:
            report.changed.append(
                ChangedRecord(path=entry.path, old_hash=old_hash, new_hash=entry.hash)
            )
        else:
            report.unchanged += 1

    # leftovers are missing; sorted so the missing order is deterministic
    for path, hash_ in sorted(old_by_path.items()):
        report.missing.append(
            MissingRecord(path=path, hash=hash_, moved_hint=list(hash_to_new_paths.get(hash_, [])))
        )

    logger.debug(
        f"Diff {run_label or '<unlabelled>'}: "
        f"changed={len(report.changed)} new={len(report.new_files)} "
        f"missing={len(report.missing)} unchanged={report.unchanged}"
    )
    return report
