# === NAVMAP v1 ===
# {
#   "module": "tests.unarchive.test_producers",
#   "purpose": "Tests for format detection and the zip/tar entry producers",
#   "sections": [
#     {"id": "detect", "name": "Format Detection", "anchor": "DET", "kind": "tests"},
#     {"id": "zip", "name": "Zip Producer", "anchor": "ZIP", "kind": "tests"},
#     {"id": "tar", "name": "Tar Producer", "anchor": "TAR", "kind": "tests"}
#   ]
# }
# === /NAVMAP ===

"""Tests for :mod:`SafeArchive.Unarchive.io.producers`."""

from __future__ import annotations

import random
import stat
import zipfile

import pytest

from SafeArchive.Unarchive import unarchive
from SafeArchive.Unarchive.errors import (
    ArchiveIOError,
    ExtractionErrorCode,
    ExtractionLimitError,
    UnsupportedEntryError,
)
from SafeArchive.Unarchive.io.producers import (
    MAX_LINK_TARGET_BYTES,
    ArchiveFormat,
    EntryKind,
    detect_format,
    iter_entries,
)
from tests.unarchive.archive_builders import (
    directory,
    fifo,
    file,
    hardlink,
    symlink,
    write_tar,
    write_windows_zip,
    write_zip,
)


def _collect(path, archive_format):
    """Drain entries, reading file content while it is still valid."""
    collected = []
    for entry in iter_entries(path, archive_format):
        data = entry.content.read() if entry.content is not None else None
        collected.append((entry.raw_path, entry.kind, entry.link_target, entry.mode, data))
    return collected


# --- Format detection ----------------------------------------------------------


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("a.zip", ArchiveFormat.ZIP),
        ("a.tar", ArchiveFormat.TAR),
        ("a.tar.gz", ArchiveFormat.TAR_GZ),
        ("A.TAR.GZ", ArchiveFormat.TAR_GZ),
        ("a.gz", None),
        ("a.tgz", None),
        ("a.zipx", None),
    ],
)
def test_detect_format(name, expected) -> None:
    assert detect_format(name) is expected


def test_format_labels() -> None:
    assert [fmt.label for fmt in ArchiveFormat] == ["zip", "tar", "tar.gz"]


# --- Zip ---------------------------------------------------------------------


def test_zip_entries_in_archive_order(tmp_path) -> None:
    archive = write_zip(
        tmp_path / "a.zip",
        [
            directory("dir", mode=0o750),
            file("dir/file.txt", "payload", mode=0o640),
            symlink("dir/link", "file.txt"),
        ],
    )

    entries = _collect(archive, ArchiveFormat.ZIP)

    assert entries == [
        ("dir/", EntryKind.DIRECTORY, None, 0o750, None),
        ("dir/file.txt", EntryKind.REGULAR_FILE, None, 0o640, b"payload"),
        ("dir/link", EntryKind.SYMBOLIC_LINK, "file.txt", 0o777, None),
    ]


def test_windows_zip_keeps_backslashes_and_has_no_mode(tmp_path) -> None:
    archive = write_windows_zip(
        tmp_path / "win.zip", [directory("dir"), file("dir/file.txt", "x")]
    )

    entries = _collect(archive, ArchiveFormat.ZIP)

    assert entries == [
        ("dir\\", EntryKind.DIRECTORY, None, 0, None),
        ("dir\\file.txt", EntryKind.REGULAR_FILE, None, 0, b"x"),
    ]


def test_zip_declared_size(tmp_path) -> None:
    archive = write_zip(tmp_path / "a.zip", [file("big.bin", b"\0" * 4096)])

    (entry,) = list(iter_entries(archive, ArchiveFormat.ZIP))

    assert entry.size == 4096


def test_zip_entry_without_unix_attributes_is_a_file(tmp_path) -> None:
    archive = tmp_path / "plain.zip"
    with zipfile.ZipFile(archive, "w") as zipf:
        zipf.writestr("notes.txt", "plain")

    entries = _collect(archive, ArchiveFormat.ZIP)

    assert entries[0][1] is EntryKind.REGULAR_FILE
    assert entries[0][4] == b"plain"


def test_unix_mode_bits_ignored_for_non_unix_creators(tmp_path) -> None:
    archive = tmp_path / "dos.zip"
    info = zipfile.ZipInfo("looks-like-link")
    info.create_system = 0
    info.external_attr = (stat.S_IFLNK | 0o777) << 16
    with zipfile.ZipFile(archive, "w") as zipf:
        zipf.writestr(info, "../../etc/passwd")

    entries = _collect(archive, ArchiveFormat.ZIP)

    assert entries == [
        ("looks-like-link", EntryKind.REGULAR_FILE, None, 0, b"../../etc/passwd")
    ]


def test_macos_zip_symlink_is_recognised(tmp_path) -> None:
    archive = tmp_path / "mac.zip"
    info = zipfile.ZipInfo("link")
    info.create_system = 19
    info.external_attr = (stat.S_IFLNK | 0o755) << 16
    with zipfile.ZipFile(archive, "w") as zipf:
        zipf.writestr(info, "target")

    entries = _collect(archive, ArchiveFormat.ZIP)

    assert entries == [("link", EntryKind.SYMBOLIC_LINK, "target", 0o755, None)]


def test_oversized_zip_symlink_target_is_rejected_before_inflating(tmp_path) -> None:
    archive = tmp_path / "bomb.zip"
    info = zipfile.ZipInfo("link")
    info.create_system = 3
    info.external_attr = (stat.S_IFLNK | 0o777) << 16
    info.compress_type = zipfile.ZIP_DEFLATED
    with zipfile.ZipFile(archive, "w") as zipf:
        zipf.writestr(info, b"a" * (8 * 1024 * 1024))

    with pytest.raises(ExtractionLimitError, match="symlink target of 'link'") as excinfo:
        list(iter_entries(archive, ArchiveFormat.ZIP))

    assert excinfo.value.code is ExtractionErrorCode.FILE_SIZE
    assert archive.stat().st_size < 64 * 1024


def test_zip_symlink_target_at_bound_is_accepted(tmp_path) -> None:
    target = "a/" * (MAX_LINK_TARGET_BYTES // 2)
    archive = write_zip(tmp_path / "a.zip", [symlink("link", target)])

    (entry,) = _collect(archive, ArchiveFormat.ZIP)

    assert entry[2] == target


def test_corrupt_zip_raises_archive_io_error(tmp_path) -> None:
    archive = tmp_path / "bad.zip"
    archive.write_bytes(b"PK\x03\x04 truncated")

    with pytest.raises(ArchiveIOError, match="failed to read zip archive") as excinfo:
        list(iter_entries(archive, ArchiveFormat.ZIP))

    assert isinstance(excinfo.value.__cause__, zipfile.BadZipFile)


# --- Tar ---------------------------------------------------------------------


@pytest.mark.parametrize(
    ("compression", "archive_format"),
    [("", ArchiveFormat.TAR), ("gz", ArchiveFormat.TAR_GZ)],
)
def test_tar_entries_in_archive_order(tmp_path, compression, archive_format) -> None:
    archive = write_tar(
        tmp_path / f"a.{archive_format.label}",
        [
            directory("dir", mode=0o700),
            file("dir/file.txt", "payload", mode=0o600),
            symlink("dir/soft", "file.txt"),
            hardlink("dir/hard", "dir/file.txt"),
        ],
        compression=compression,
    )

    entries = _collect(archive, archive_format)

    assert entries == [
        ("dir", EntryKind.DIRECTORY, None, 0o700, None),
        ("dir/file.txt", EntryKind.REGULAR_FILE, None, 0o600, b"payload"),
        ("dir/soft", EntryKind.SYMBOLIC_LINK, "file.txt", 0o777, None),
        ("dir/hard", EntryKind.HARD_LINK, "dir/file.txt", 0o644, None),
    ]


def test_tar_fifo_raises_unsupported_entry(tmp_path) -> None:
    archive = write_tar(tmp_path / "a.tar", [fifo("pipe")])

    with pytest.raises(UnsupportedEntryError, match=r"'pipe' \(FIFO\)"):
        list(iter_entries(archive, ArchiveFormat.TAR))


def test_plain_tar_read_as_gzip_raises_archive_io_error(tmp_path) -> None:
    archive = write_tar(tmp_path / "a.tar", [file("x", "x")])

    with pytest.raises(ArchiveIOError, match="failed to read tar.gz archive"):
        list(iter_entries(archive, ArchiveFormat.TAR_GZ))


def test_truncated_tar_gz_raises_archive_io_error(tmp_path) -> None:
    """Truncation surfaces either while decoding headers or while streaming content."""
    payload = random.Random(0).randbytes(20_000)
    archive = write_tar(tmp_path / "a.tar.gz", [file("x", payload)], compression="gz")
    data = archive.read_bytes()
    archive.write_bytes(data[: len(data) // 2])

    with pytest.raises(ArchiveIOError):
        unarchive(archive, archive.name, tmp_path / "out")


def test_missing_file_raises_archive_io_error(tmp_path) -> None:
    with pytest.raises(ArchiveIOError, match="failed to open archive"):
        list(iter_entries(tmp_path / "missing.tar", ArchiveFormat.TAR))
