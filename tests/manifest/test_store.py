"""Test manifest generations, log and locking."""

import os
import stat
from pathlib import Path

import pytest

from conftest import FIXED_TIME, create_test_file
from hashdrift.manifest.models import (
    ChangedRecord,
    DiffReport,
    Manifest,
    MissingRecord,
    NewFileRecord,
)
from hashdrift.manifest.store import (
    GenerationHandle,
    PermissionLock,
    StoreLayout,
    parse_manifest,
    render_log_block,
    serialize_manifest,
)
from hashdrift.services.exceptions import FormatError, StoreError

H1, H2 = "a1" * 32, "b2" * 32


def test_serialize_manifest():
    manifest = Manifest({"sub dir/b.txt": H2, "a.txt": H1})
    assert serialize_manifest(manifest) == f"{H1}  a.txt\n{H2}  sub dir/b.txt\n"


def test_serialize_empty_manifest():
    assert serialize_manifest(Manifest.empty()) == ""
    assert parse_manifest("") == Manifest.empty()


def test_parse_manifest():
    manifest = parse_manifest(f"{H2}  b  with  spaces\n{H1}  a\n")
    assert manifest.as_dict() == {"a": H1, "b  with  spaces": H2}


def test_serialized_form_is_order_independent():
    first = Manifest({"a": H1, "b": H2})
    second = Manifest.from_entries(reversed(list(first)))
    assert serialize_manifest(first) == serialize_manifest(second)


@pytest.mark.parametrize(
    "text,line_number",
    [
        ("not-a-record\n", 1),
        (f"{H1} single-space\n", 1),
        (f"{H1}  \n", 1),
        (f"{H1}  a\nXYZ  b\n", 2),
        (f"{H1}  a\n\n{H2}  b\n", 2),
    ],
)
def test_parse_malformed_manifest(text, line_number):
    with pytest.raises(FormatError) as exc_info:
        parse_manifest(text, source="m")
    assert exc_info.value.line_number == line_number
    assert "m:" in str(exc_info.value)


def test_render_log_block():
    report = DiffReport(
        changed=[ChangedRecord("c.txt", H1, H2)],
        new_files=[NewFileRecord("new.txt", H1)],
        missing=[
            MissingRecord("gone.txt", H2),
            MissingRecord("old.txt", H1, moved_hint=["c.txt", "new.txt"]),
        ],
        timestamp=FIXED_TIME,
        tool_version="0.1.0",
        run_label="/data",
    )

    assert render_log_block(report).splitlines() == [
        "==== hashdrift 0.1.0 start 2026-10-18T12:00:00 /data ====",
        f"Changed: c.txt ({H1} -> {H2})",
        f"NewFile: new.txt ({H1})",
        f"Missing: gone.txt ({H2})",
        f"Missing: old.txt ({H1}) possibly moved to: c.txt, new.txt",
        "==== hashdrift end 2026-10-18T12:00:00 missing=2 changed=1 newfile=1 ====",
    ]


def test_render_empty_log_block():
    report = DiffReport(timestamp=FIXED_TIME, tool_version="0.1.0")
    assert render_log_block(report) == (
        "==== hashdrift 0.1.0 start 2026-10-18T12:00:00 ====\n"
        "==== hashdrift end 2026-10-18T12:00:00 missing=0 changed=0 newfile=0 ====\n"
    )


def test_load_without_generations(handle: GenerationHandle):
    assert handle.load_current() is None
    assert handle.load_previous() is None


def test_commit_rotates_generations(handle: GenerationHandle):
    first = Manifest({"a": H1})
    second = Manifest({"a": H2, "b": H1})

    handle.commit(first)
    assert handle.load_current() == first
    assert handle.load_previous() is None

    handle.commit(second)
    assert handle.load_current() == second
    assert handle.load_previous() == first

    third = Manifest.empty()
    handle.commit(third)
    assert handle.load_current() == third
    assert handle.load_previous() == second


def test_failed_commit_keeps_current(handle: GenerationHandle, monkeypatch):
    first = Manifest({"a": H1})
    handle.commit(first)

    def fail(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(Path, "replace", fail)

    with pytest.raises(StoreError):
        handle.commit(Manifest({"a": H2}))

    monkeypatch.undo()
    assert handle.load_current() == first
    assert not (handle.root / ".hashdrift.manifest.tmp").exists()


def test_commit_round_trips_undecodable_name(handle: GenerationHandle):
    name = os.fsdecode(b"caf\xe9.txt")
    manifest = Manifest({name: H1, "plain.txt": H2})

    handle.commit(manifest)
    handle.commit(manifest)

    assert b"caf\xe9.txt\n" in handle.manifest_path.read_bytes()
    assert handle.load_current() == manifest
    assert handle.load_previous() == manifest


def test_append_log_accumulates(handle: GenerationHandle):
    report = DiffReport(timestamp=FIXED_TIME, tool_version="0.1.0")
    handle.append_log(report)
    handle.append_log(report)

    lines = handle.log_path.read_text().splitlines()
    assert len(lines) == 4
    assert lines[0].startswith("==== hashdrift 0.1.0 start")
    assert lines[3].startswith("==== hashdrift end")


def test_malformed_current_raises(handle: GenerationHandle):
    create_test_file(handle.manifest_path, "garbage\n")
    with pytest.raises(FormatError):
        handle.load_current()


def test_reserved_names_follow_layout(tree: Path):
    handle = GenerationHandle(tree, layout=StoreLayout("m", "m.old", "log"))
    assert handle.reserved_names() == {"m", "m.old", "log", "m.tmp", "m.old.tmp", "log.tmp"}
    assert handle.manifest_path == tree / "m"


def test_cleanup_removes_stale_temp_files(handle: GenerationHandle):
    handle.commit(Manifest({"a": H1}))
    stale = create_test_file(handle.root / ".hashdrift.manifest.tmp", "partial")

    handle.cleanup()

    assert not stale.exists()
    assert handle.load_current() == Manifest({"a": H1})


def is_writable(path: Path) -> bool:
    return bool(path.stat().st_mode & stat.S_IWUSR)


def test_permission_lock_toggles_write_bits(tree: Path):
    handle = GenerationHandle(tree, lock=PermissionLock())
    handle.commit(Manifest({"a": H1}))
    handle.append_log(DiffReport(timestamp=FIXED_TIME))

    handle.cleanup()
    assert not is_writable(handle.manifest_path)
    assert not is_writable(handle.log_path)

    with handle.writable():
        assert is_writable(handle.manifest_path)
        assert is_writable(handle.log_path)
        handle.append_log(DiffReport(timestamp=FIXED_TIME))
        handle.commit(Manifest({"a": H2}))

    assert not is_writable(handle.manifest_path)
    assert not is_writable(handle.previous_path)
    assert not is_writable(handle.log_path)


def test_writable_relocks_on_error(tree: Path):
    handle = GenerationHandle(tree, lock=PermissionLock())
    handle.commit(Manifest({"a": H1}))

    with pytest.raises(RuntimeError):
        with handle.writable():
            raise RuntimeError("interrupted")

    assert not is_writable(handle.manifest_path)
