# === NAVMAP v1 ===
# {
#   "module": "SafeArchive.Unarchive",
#   "purpose": "Package initialization for SafeArchive.Unarchive",
#   "sections": [
#     {"id": "exports", "name": "Public API", "anchor": "API", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Public API for safe extraction of untrusted zip, tar, and tar.gz archives.

Typical use::

    from SafeArchive.Unarchive import is_supported_archive, unarchive

    if is_supported_archive(name):
        unarchive(path, name, target_dir)

Every entry is checked before it is written: absolute paths, ``..`` escapes,
and links whose targets leave the target directory or loop back onto an
ancestor abort the call with an :class:`UnarchiveError` subclass.
"""

from __future__ import annotations

from .errors import (
    AncestorLinkError,
    ArchiveIOError,
    EntryTypeError,
    ExtractionErrorCode,
    ExtractionLimitError,
    IllegalLinkPathError,
    IllegalPathError,
    UnarchiveError,
    UnsupportedEntryError,
    UnsupportedFormatError,
)
from .io import (
    ExtractionMetrics,
    ExtractionSettings,
    Unarchiver,
    inspect_archive,
    is_supported_archive,
    lenient_defaults,
    safe_defaults,
    strict_defaults,
    unarchive,
)
from .logging_utils import setup_logging, setup_logging_from_config
from .settings import get_default_config, reset_default_config

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "AncestorLinkError",
    "ArchiveIOError",
    "EntryTypeError",
    "ExtractionErrorCode",
    "ExtractionLimitError",
    "IllegalLinkPathError",
    "IllegalPathError",
    "UnarchiveError",
    "UnsupportedEntryError",
    "UnsupportedFormatError",
    "ExtractionMetrics",
    "ExtractionSettings",
    "Unarchiver",
    "inspect_archive",
    "is_supported_archive",
    "lenient_defaults",
    "safe_defaults",
    "strict_defaults",
    "unarchive",
    "setup_logging",
    "setup_logging_from_config",
    "get_default_config",
    "reset_default_config",
]
