from .models import (
    ChangedRecord,
    DiffCounts,
    DiffReport,
    Manifest,
    ManifestEntry,
    MissingRecord,
    NewFileRecord,
)
from .differ import diff
from .scanner import ManifestScanner, ScanResult
from .store import GenerationHandle, NullLock, PermissionLock, StoreLayout

__all__ = [
    "ChangedRecord",
    "DiffCounts",
    "DiffReport",
    "Manifest",
    "ManifestEntry",
    "MissingRecord",
    "NewFileRecord",
    "diff",
    "ManifestScanner",
    "ScanResult",
    "GenerationHandle",
    "NullLock",
    "PermissionLock",
    "StoreLayout",
]
