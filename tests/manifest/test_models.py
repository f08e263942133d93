"""Test manifest and report types."""

from conftest import FIXED_TIME
from hashdrift.manifest.models import (
    ChangedRecord,
    DiffReport,
    Manifest,
    ManifestEntry,
    MissingRecord,
    NewFileRecord,
)


def test_manifest_iterates_in_path_order():
    manifest = Manifest({"b/x": "02", "a": "01", "B": "03", "b": "04"})
    assert manifest.paths() == ["B", "a", "b", "b/x"]
    assert list(manifest)[0] == ManifestEntry(path="B", hash="03")


def test_manifest_from_entries():
    manifest = Manifest.from_entries(
        [ManifestEntry("z", "01"), ManifestEntry("a", "02"), ManifestEntry("z", "03")]
    )
    assert len(manifest) == 2
    assert manifest.get("z") == "03"
    assert "a" in manifest
    assert "missing" not in manifest
    assert manifest.get("missing") is None


def test_manifest_equality():
    assert Manifest({"a": "01", "b": "02"}) == Manifest({"b": "02", "a": "01"})
    assert Manifest({"a": "01"}) != Manifest({"a": "02"})
    assert Manifest.empty() == Manifest()


def test_as_dict_is_a_copy():
    manifest = Manifest({"a": "01"})
    mapping = manifest.as_dict()
    mapping["b"] = "02"
    assert "b" not in manifest


def test_report_counts_and_totals():
    report = DiffReport(
        changed=[ChangedRecord("c", "01", "02")],
        new_files=[NewFileRecord("n1", "03"), NewFileRecord("n2", "04")],
        missing=[MissingRecord("m", "04", moved_hint=["n2"]), MissingRecord("m2", "05")],
    )
    assert report.counts.changed == 1
    assert report.counts.new_file == 2
    assert report.counts.missing == 2
    assert report.total_changes == 5
    assert report.has_drift
    assert [r.path for r in report.moved] == ["m"]


def test_empty_report_has_no_drift():
    report = DiffReport(unchanged=10)
    assert not report.has_drift
    assert report.total_changes == 0


def test_report_to_dict():
    report = DiffReport(
        changed=[ChangedRecord("c", "01", "02")],
        missing=[MissingRecord("m", "04", moved_hint=["n"])],
        timestamp=FIXED_TIME,
        tool_version="0.1.0",
        run_label="/data",
    )
    assert report.to_dict() == {
        "timestamp": "2026-10-18T12:00:00",
        "tool_version": "0.1.0",
        "run_label": "/data",
        "counts": {"missing": 1, "changed": 1, "new_file": 0},
        "unchanged": 0,
        "changed": [{"path": "c", "old_hash": "01", "new_hash": "02"}],
        "new_files": [],
        "missing": [{"path": "m", "hash": "04", "moved_hint": ["n"]}],
    }
