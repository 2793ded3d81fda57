"""Aggregated IO helpers for safe archive extraction.

This subpackage bundles the path guard, the per-call link model, the zip and
tar entry producers, and the orchestrator that writes entries to disk.
Re-exporting the common symbols keeps imports short for callers and tests.
"""

from .extraction_policy import (
    ExtractionSettings,
    PolicyPreset,
    lenient_defaults,
    safe_defaults,
    settings_for_preset,
    strict_defaults,
)
from .extraction_telemetry import (
    ExtractionMetrics,
    TelemetryKey,
    error_message,
)
from .filesystem import (
    ExtractionContext,
    Unarchiver,
    inspect_archive,
    is_supported_archive,
    unarchive,
)
from .link_model import LinkRecord, LinkResolutionModel
from .path_guard import (
    MAX_LINK_HOPS,
    PathGuard,
    PathRole,
    ValidatedPath,
    normalize_separators,
    split_components,
)
from .producers import (
    ArchiveEntry,
    ArchiveFormat,
    EntryKind,
    detect_format,
    iter_entries,
)

__all__ = [
    "ExtractionSettings",
    "PolicyPreset",
    "lenient_defaults",
    "safe_defaults",
    "settings_for_preset",
    "strict_defaults",
    "ExtractionMetrics",
    "TelemetryKey",
    "error_message",
    "ExtractionContext",
    "Unarchiver",
    "inspect_archive",
    "is_supported_archive",
    "unarchive",
    "LinkRecord",
    "LinkResolutionModel",
    "MAX_LINK_HOPS",
    "PathGuard",
    "PathRole",
    "ValidatedPath",
    "normalize_separators",
    "split_components",
    "ArchiveEntry",
    "ArchiveFormat",
    "EntryKind",
    "detect_format",
    "iter_entries",
]
