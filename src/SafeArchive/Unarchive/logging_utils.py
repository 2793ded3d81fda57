"""Structured logging helpers shared across unarchive components."""

from __future__ import annotations

import gzip
import json
import logging
import os
import sys
from datetime import datetime, timedelta, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from .io.extraction_telemetry import TelemetryKey, generate_correlation_id

if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from .settings import LoggingSettings

__all__ = ["JSONFormatter", "generate_correlation_id", "setup_logging", "setup_logging_from_config"]

LOGGER_NAME = "SafeArchive.Unarchive"

# Structured fields copied from ``extra=`` onto the JSON payload when present.
_STRUCTURED_FIELDS = tuple(key.value for key in TelemetryKey) + (
    "target",
    "kind",
    "path",
    "link",
    "error",
    "directories",
    "files",
    "symlinks",
    "hardlinks",
    "entries_skipped",
)


class JSONFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        """Render ``record`` as a JSON string with extraction-specific fields."""

        now = datetime.now(timezone.utc)
        payload = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
        }
        for key in _STRUCTURED_FIELDS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if hasattr(record, "extra_fields") and isinstance(record.extra_fields, dict):
            payload.update(record.extra_fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _compress_old_log(path: Path) -> None:
    """Compress ``path`` into a ``.gz`` file and remove the original."""

    compressed_path = path.with_suffix(path.suffix + ".gz")
    with path.open("rb") as source, gzip.open(compressed_path, "wb") as target:
        target.write(source.read())
    path.unlink(missing_ok=True)


def _cleanup_logs(log_dir: Path, retention_days: int) -> List[str]:
    """Rotate or purge log files in ``log_dir`` based on retention policy."""

    actions: List[str] = []
    now = datetime.now(timezone.utc)
    retention_delta = timedelta(days=retention_days)
    for file in log_dir.glob("*.jsonl"):
        mtime = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
        if now - mtime > retention_delta:
            target = file.with_suffix(file.suffix + ".gz")
            _compress_old_log(file)
            actions.append(f"Compressed {file.name} -> {target.name}")
    for file in log_dir.glob("*.jsonl.gz"):
        mtime = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
        if now - mtime > retention_delta * 2:
            file.unlink(missing_ok=True)
            actions.append(f"Deleted expired archive {file.name}")
    return actions


def setup_logging(
    *,
    level: str = "INFO",
    retention_days: int = 30,
    max_log_size_mb: int = 100,
    log_dir: Optional[Path] = None,
    propagate: bool = False,
) -> logging.Logger:
    """Configure unarchive logging: console output plus optional JSONL files.

    The file handler is only installed when ``log_dir`` (or the
    ``UNARCHIVE_LOG_DIR`` environment variable) names a directory.
    """

    resolved_dir = log_dir
    if resolved_dir is None:
        env_value = os.environ.get("UNARCHIVE_LOG_DIR", "").strip()
        if env_value:
            resolved_dir = Path(env_value)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_unarchive_managed", False):
            logger.removeHandler(handler)
            if isinstance(handler, logging.StreamHandler):
                stream = getattr(handler, "stream", None)
                if stream in (sys.stdout, sys.stderr):
                    continue
            handler.close()

    console_formatter = logging.Formatter("%(levelname)s: %(message)s")
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(console_formatter)
    stream_handler._unarchive_managed = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    if resolved_dir is not None:
        resolved_dir.mkdir(parents=True, exist_ok=True)
        _cleanup_logs(resolved_dir, retention_days)
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        file_handler = RotatingFileHandler(
            resolved_dir / f"unarchive-{today}.jsonl",
            maxBytes=int(max_log_size_mb * 1024 * 1024),
            backupCount=5,
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler._unarchive_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    logger.propagate = propagate
    return logger


def setup_logging_from_config(config: Optional["LoggingSettings"] = None) -> logging.Logger:
    """Configure logging from :class:`LoggingSettings` (the resolved default when omitted)."""

    if config is None:
        from .settings import get_default_config  # Local import to avoid circular dependency

        config = get_default_config().logging
    return setup_logging(
        level=config.level,
        retention_days=config.retention_days,
        max_log_size_mb=config.max_log_size_mb,
        log_dir=config.log_dir,
    )
