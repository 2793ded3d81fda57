# === NAVMAP v1 ===
# {
#   "module": "SafeArchive.Unarchive.errors",
#   "purpose": "Define the exception hierarchy raised while validating and extracting archives",
#   "sections": [
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "paths", "name": "Path & Link Violations", "anchor": "PTH", "kind": "api"},
#     {"id": "entries", "name": "Entry & Budget Violations", "anchor": "ENT", "kind": "api"},
#     {"id": "io", "name": "I/O Failures", "anchor": "IOF", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Exception hierarchy shared by the path guard, link model, and orchestrator.

Every failure raised during an extraction call derives from
:class:`UnarchiveError`, so callers can catch one type and still branch on the
specialised subclasses (or on the ``code`` attribute) when they need to tell a
zip-slip attempt apart from a full disk.  Message texts are stable: tooling
matches on substrings such as ``illegal path in archive: '<path>'``.
"""

from __future__ import annotations

from enum import Enum

__all__ = [
    "ExtractionErrorCode",
    "UnarchiveError",
    "UnsupportedFormatError",
    "IllegalPathError",
    "IllegalLinkPathError",
    "AncestorLinkError",
    "EntryTypeError",
    "UnsupportedEntryError",
    "ExtractionLimitError",
    "ArchiveIOError",
]

HARDLINK_CONTEXT = "walking hardlink"


class ExtractionErrorCode(str, Enum):
    """Canonical error codes attached to every extraction failure."""

    UNSUPPORTED_FORMAT = "E_UNSUPPORTED_FORMAT"  # Unknown archive extension
    TRAVERSAL = "E_TRAVERSAL"  # Entry path escapes root
    LINK_TRAVERSAL = "E_LINK_TRAVERSAL"  # Link target escapes root
    ANCESTOR_LINK = "E_ANCESTOR_LINK"  # Symlink loops back to an ancestor
    LINK_TYPE = "E_LINK_TYPE"  # Link kind disabled by policy
    SPECIAL_TYPE = "E_SPECIAL_TYPE"  # Device/FIFO/unknown member
    ENTRY_BUDGET = "E_ENTRY_BUDGET"  # Too many entries
    FILE_SIZE = "E_FILE_SIZE"  # Declared or streamed size over limit
    EXTRACT_IO = "E_EXTRACT_IO"  # Decode or filesystem failure


class UnarchiveError(RuntimeError):
    """Base exception for archive validation or extraction failures."""

    code: ExtractionErrorCode = ExtractionErrorCode.EXTRACT_IO


class UnsupportedFormatError(UnarchiveError):
    """Raised when an archive name does not map to a supported container format."""

    code = ExtractionErrorCode.UNSUPPORTED_FORMAT

    def __init__(self, archive_name: str) -> None:
        super().__init__(f"unsupported archive format: '{archive_name}'")
        self.archive_name = archive_name


class IllegalPathError(UnarchiveError):
    """Raised when an entry path is absolute or climbs above the extraction root."""

    code = ExtractionErrorCode.TRAVERSAL

    def __init__(self, path: str) -> None:
        super().__init__(f"illegal path in archive: '{path}'")
        self.path = path


class IllegalLinkPathError(UnarchiveError):
    """Raised when a symlink or hardlink target escapes the extraction root.

    Hardlink violations carry an extra ``walking hardlink:`` prefix so reports
    can tell the two link kinds apart.
    """

    code = ExtractionErrorCode.LINK_TRAVERSAL

    def __init__(self, path: str, *, hardlink: bool = False) -> None:
        message = f"illegal link path in archive: '{path}'"
        if hardlink:
            message = f"{HARDLINK_CONTEXT}: {message}"
        super().__init__(message)
        self.path = path
        self.hardlink = hardlink


class AncestorLinkError(UnarchiveError):
    """Raised when a symlink, once followed, leads back to itself or an ancestor."""

    code = ExtractionErrorCode.ANCESTOR_LINK

    def __init__(self, link_path: str, target: str, *, hardlink: bool = False) -> None:
        message = f"a link can't lead to an ancestor directory: '{link_path}' -> '{target}'"
        if hardlink:
            message = f"{HARDLINK_CONTEXT}: {message}"
        super().__init__(message)
        self.link_path = link_path
        self.target = target
        self.hardlink = hardlink


class EntryTypeError(UnarchiveError):
    """Raised when the extraction policy forbids an entry's link kind."""

    code = ExtractionErrorCode.LINK_TYPE

    def __init__(self, kind_label: str, path: str) -> None:
        super().__init__(f"{kind_label} entries are not permitted in archive: '{path}'")
        self.path = path


class UnsupportedEntryError(UnarchiveError):
    """Raised by entry producers for devices, FIFOs, and other special members."""

    code = ExtractionErrorCode.SPECIAL_TYPE

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"unsupported entry type in archive: '{path}' ({detail})")
        self.path = path


class ExtractionLimitError(UnarchiveError):
    """Raised when an archive exceeds the configured entry or size budget."""

    def __init__(self, code: ExtractionErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code


class ArchiveIOError(UnarchiveError):
    """Raised when decoding the container or writing to disk fails."""

    code = ExtractionErrorCode.EXTRACT_IO
