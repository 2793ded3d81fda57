# === NAVMAP v1 ===
# {
#   "module": "SafeArchive.Unarchive.io.extraction_telemetry",
#   "purpose": "Telemetry keys and per-call metrics for archive extraction",
#   "sections": [
#     {"id": "telemetry", "name": "Telemetry Keys", "anchor": "TEL", "kind": "constants"},
#     {"id": "metrics", "name": "Extraction Metrics", "anchor": "MET", "kind": "dataclass"},
#     {"id": "messages", "name": "Error Message Helpers", "anchor": "MSG", "kind": "helpers"}
#   ]
# }
# === /NAVMAP ===

"""Telemetry keys and metrics captured for every extraction call.

The orchestrator fills one :class:`ExtractionMetrics` per call and logs it as
structured ``extra`` fields once the call finishes (or fails).
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..errors import ExtractionErrorCode


def generate_correlation_id() -> str:
    """Return a short-lived identifier that links related log entries."""

    return uuid.uuid4().hex[:12]


class TelemetryKey(str, Enum):
    """Standard structured-logging keys for extraction operations."""

    CORRELATION_ID = "correlation_id"  # One id per unarchive/inspect call
    STAGE = "stage"  # "extract" or "inspect"
    ARCHIVE = "archive"  # Archive path
    FORMAT = "format"  # zip, tar, tar.gz
    ENTRY = "entry"  # Raw entry path
    ENTRIES_TOTAL = "entries_total"
    BYTES_WRITTEN = "bytes_written"
    ERROR_CODE = "error_code"
    DURATION_MS = "duration_ms"


@dataclass
class ExtractionMetrics:
    """Aggregated counters for one extraction or inspection pass."""

    archive: str = ""
    format: str = ""
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None
    entries_total: int = 0
    directories: int = 0
    files: int = 0
    symlinks: int = 0
    hardlinks: int = 0
    entries_skipped: int = 0
    bytes_written: int = 0
    error_code: Optional[str] = None

    @property
    def duration_ms(self) -> float:
        """Duration in milliseconds."""
        end = self.end_time or time.time()
        return (end - self.start_time) * 1000

    def record(self, kind_name: str) -> None:
        """Bump the counter matching an ``EntryKind`` name."""
        self.entries_total += 1
        if kind_name == "DIRECTORY":
            self.directories += 1
        elif kind_name == "REGULAR_FILE":
            self.files += 1
        elif kind_name == "SYMBOLIC_LINK":
            self.symlinks += 1
        elif kind_name == "HARD_LINK":
            self.hardlinks += 1

    def finalize(self) -> None:
        """Mark metrics as complete."""
        self.end_time = time.time()

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics into logging ``extra`` fields."""
        return {
            TelemetryKey.ARCHIVE.value: self.archive,
            TelemetryKey.FORMAT.value: self.format,
            TelemetryKey.ENTRIES_TOTAL.value: self.entries_total,
            "directories": self.directories,
            "files": self.files,
            "symlinks": self.symlinks,
            "hardlinks": self.hardlinks,
            "entries_skipped": self.entries_skipped,
            TelemetryKey.BYTES_WRITTEN.value: self.bytes_written,
            TelemetryKey.DURATION_MS.value: round(self.duration_ms, 2),
        }


def error_message(code: ExtractionErrorCode, detail: str = "") -> str:
    """Generate a descriptive error message for an error code.

    Args:
        code: The error code
        detail: Additional detail to append

    Returns:
        Human-readable error message
    """
    messages = {
        ExtractionErrorCode.UNSUPPORTED_FORMAT: "Archive format not supported",
        ExtractionErrorCode.TRAVERSAL: "Path traversal detected",
        ExtractionErrorCode.LINK_TRAVERSAL: "Link target escapes extraction root",
        ExtractionErrorCode.ANCESTOR_LINK: "Link leads to an ancestor directory",
        ExtractionErrorCode.LINK_TYPE: "Link entry not permitted",
        ExtractionErrorCode.SPECIAL_TYPE: "Device, FIFO, or unknown entry not permitted",
        ExtractionErrorCode.ENTRY_BUDGET: "Entry count exceeds maximum",
        ExtractionErrorCode.FILE_SIZE: "File size exceeds limit",
        ExtractionErrorCode.EXTRACT_IO: "I/O error during extraction",
    }
    msg = messages.get(code, str(code))
    if detail:
        msg += f": {detail}"
    return msg
