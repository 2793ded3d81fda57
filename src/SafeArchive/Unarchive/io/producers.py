# === NAVMAP v1 ===
# {
#   "module": "SafeArchive.Unarchive.io.producers",
#   "purpose": "Decode zip and tar containers into a forward-only stream of normalized entries",
#   "sections": [
#     {"id": "types", "name": "Entry & Format Types", "anchor": "TYP", "kind": "dataclass"},
#     {"id": "zip", "name": "Zip Producer", "anchor": "ZIP", "kind": "helpers"},
#     {"id": "tar", "name": "Tar Producer", "anchor": "TAR", "kind": "helpers"},
#     {"id": "dispatch", "name": "Format Dispatch", "anchor": "DSP", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Entry producers for the supported container formats.

Each producer yields :class:`ArchiveEntry` values in archive order and owns
the open container for the lifetime of the generator.  ``content`` streams are
only valid until the next entry is requested; tar archives are read in
streaming mode so members cannot be revisited.
"""

from __future__ import annotations

import os
import stat
import tarfile
import zipfile
import zlib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Iterator, Optional, Union

from ..errors import (
    ArchiveIOError,
    ExtractionErrorCode,
    ExtractionLimitError,
    UnsupportedEntryError,
)
from .extraction_telemetry import error_message

__all__ = [
    "DECODE_ERRORS",
    "MAX_LINK_TARGET_BYTES",
    "EntryKind",
    "ArchiveEntry",
    "ArchiveFormat",
    "detect_format",
    "iter_entries",
]

DECODE_ERRORS = (zipfile.BadZipFile, tarfile.TarError, zlib.error, EOFError, UnicodeDecodeError)

# PATH_MAX on Linux; a zip symlink body longer than this cannot be a usable target.
MAX_LINK_TARGET_BYTES = 4096

# ZipInfo.create_system values whose external_attr high word holds a Unix mode.
_UNIX_CREATORS = frozenset({3, 19})  # Unix, macOS

_TAR_TYPE_LABELS = {
    tarfile.CHRTYPE: "character device",
    tarfile.BLKTYPE: "block device",
    tarfile.FIFOTYPE: "FIFO",
}


class EntryKind(Enum):
    """The four entry kinds the orchestrator knows how to materialize."""

    DIRECTORY = "directory"
    REGULAR_FILE = "file"
    SYMBOLIC_LINK = "symlink"
    HARD_LINK = "hardlink"


@dataclass(frozen=True)
class ArchiveEntry:
    """One normalized archive member.

    ``mode`` holds only permission bits (``0`` when the archive recorded none).
    ``content`` is set for regular files and must be read before advancing.
    """

    raw_path: str
    kind: EntryKind
    link_target: Optional[str] = None
    mode: int = 0
    size: int = 0
    content: Optional[BinaryIO] = None


class ArchiveFormat(Enum):
    """Supported container formats keyed by file-name suffix."""

    ZIP = ".zip"
    TAR = ".tar"
    TAR_GZ = ".tar.gz"

    @property
    def label(self) -> str:
        return self.value.lstrip(".")


def detect_format(name: Union[str, os.PathLike]) -> Optional[ArchiveFormat]:
    """Return the format whose suffix matches ``name``, longest suffix first."""

    lowered = os.fspath(name).lower()
    for archive_format in sorted(ArchiveFormat, key=lambda fmt: len(fmt.value), reverse=True):
        if lowered.endswith(archive_format.value):
            return archive_format
    return None


# --- Zip -------------------------------------------------------------------


def _unix_mode(info: zipfile.ZipInfo) -> int:
    """Return the Unix mode stored in ``external_attr``, or ``0`` for other creators."""

    if info.create_system not in _UNIX_CREATORS:
        return 0
    return (info.external_attr >> 16) & 0xFFFF


def _read_link_target(archive: zipfile.ZipFile, info: zipfile.ZipInfo) -> str:
    # Declared sizes can lie; the read itself is bounded too.
    if info.file_size > MAX_LINK_TARGET_BYTES:
        raise _link_target_error(info.filename)
    with archive.open(info) as stream:
        data = stream.read(MAX_LINK_TARGET_BYTES + 1)
    if len(data) > MAX_LINK_TARGET_BYTES:
        raise _link_target_error(info.filename)
    return data.decode("utf-8")


def _link_target_error(name: str) -> ExtractionLimitError:
    return ExtractionLimitError(
        ExtractionErrorCode.FILE_SIZE,
        error_message(
            ExtractionErrorCode.FILE_SIZE,
            f"symlink target of '{name}' exceeds {MAX_LINK_TARGET_BYTES} bytes",
        ),
    )


def _iter_zip(archive_path: Path) -> Iterator[ArchiveEntry]:
    with zipfile.ZipFile(archive_path) as archive:
        for info in archive.infolist():
            name = info.filename
            unix_mode = _unix_mode(info)
            permissions = stat.S_IMODE(unix_mode)
            if info.is_dir() or name.endswith("\\") or stat.S_ISDIR(unix_mode):
                yield ArchiveEntry(name, EntryKind.DIRECTORY, mode=permissions)
            elif stat.S_ISLNK(unix_mode):
                target = _read_link_target(archive, info)
                yield ArchiveEntry(
                    name, EntryKind.SYMBOLIC_LINK, link_target=target, mode=permissions
                )
            else:
                with archive.open(info) as stream:
                    yield ArchiveEntry(
                        name,
                        EntryKind.REGULAR_FILE,
                        mode=permissions,
                        size=info.file_size,
                        content=stream,
                    )


# --- Tar -------------------------------------------------------------------


def _iter_tar(archive_path: Path, mode: str) -> Iterator[ArchiveEntry]:
    with tarfile.open(archive_path, mode=mode) as archive:
        for member in archive:
            permissions = stat.S_IMODE(member.mode)
            if member.isdir():
                yield ArchiveEntry(member.name, EntryKind.DIRECTORY, mode=permissions)
            elif member.isreg():
                stream = archive.extractfile(member)
                yield ArchiveEntry(
                    member.name,
                    EntryKind.REGULAR_FILE,
                    mode=permissions,
                    size=member.size,
                    content=stream,
                )
            elif member.issym():
                yield ArchiveEntry(
                    member.name,
                    EntryKind.SYMBOLIC_LINK,
                    link_target=member.linkname,
                    mode=permissions,
                )
            elif member.islnk():
                yield ArchiveEntry(
                    member.name,
                    EntryKind.HARD_LINK,
                    link_target=member.linkname,
                    mode=permissions,
                )
            else:
                detail = _TAR_TYPE_LABELS.get(member.type, f"type flag {member.type!r}")
                raise UnsupportedEntryError(member.name, detail)


_PRODUCERS: Dict[ArchiveFormat, Callable[[Path], Iterator[ArchiveEntry]]] = {
    ArchiveFormat.ZIP: _iter_zip,
    ArchiveFormat.TAR: lambda path: _iter_tar(path, "r|"),
    ArchiveFormat.TAR_GZ: lambda path: _iter_tar(path, "r|gz"),
}


def iter_entries(archive_path: Path, archive_format: ArchiveFormat) -> Iterator[ArchiveEntry]:
    """Yield the entries of ``archive_path`` decoded as ``archive_format``.

    Raises:
        ArchiveIOError: The container could not be opened or decoded.
        UnsupportedEntryError: The archive holds a device, FIFO, or unknown member.
    """

    producer = _PRODUCERS[archive_format]
    try:
        yield from producer(archive_path)
    except DECODE_ERRORS as exc:
        raise ArchiveIOError(
            f"failed to read {archive_format.label} archive '{archive_path}': {exc}"
        ) from exc
    except OSError as exc:
        raise ArchiveIOError(f"failed to open archive '{archive_path}': {exc}") from exc
