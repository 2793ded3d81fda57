# === NAVMAP v1 ===
# {
#   "module": "SafeArchive.Unarchive.io.filesystem",
#   "purpose": "Drive entry producers through the path guard and link model onto disk",
#   "sections": [
#     {"id": "context", "name": "Extraction Context", "anchor": "CTX", "kind": "dataclass"},
#     {"id": "unarchiver", "name": "Unarchiver", "anchor": "UNA", "kind": "api"},
#     {"id": "materialize", "name": "Entry Materialization", "anchor": "MAT", "kind": "helpers"},
#     {"id": "functions", "name": "Module-level API", "anchor": "API", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Safe extraction of zip and tar archives under a single target directory.

Entries are consumed in archive order, in one forward pass:

1. The entry path is validated by the :class:`PathGuard` (absolute paths and
   ``..`` escapes are rejected, separators from any origin OS are normalized).
2. Symlinks are registered with the :class:`LinkResolutionModel` before they
   are created, which rejects targets outside the root and link loops.
   Hardlink targets go through the same target validation.
3. Directories, files, and links are materialized at the validated location.

The first violation aborts the call.  Entries already written stay on disk;
cleaning up ``target_dir`` after a failure is the caller's job.  When
``inspect_first`` is enabled a validation-only pass runs before anything is
written, so a rejected archive leaves the target untouched.
"""

from __future__ import annotations

import logging
import os
from contextlib import closing
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from ..errors import (
    ArchiveIOError,
    EntryTypeError,
    ExtractionErrorCode,
    ExtractionLimitError,
    IllegalLinkPathError,
    IllegalPathError,
    UnarchiveError,
    UnsupportedFormatError,
)
from .extraction_policy import ExtractionSettings
from .extraction_telemetry import (
    ExtractionMetrics,
    TelemetryKey,
    error_message,
    generate_correlation_id,
)
from .link_model import LinkResolutionModel
from .path_guard import PathGuard, ValidatedPath, normalize_separators
from .producers import (
    DECODE_ERRORS,
    ArchiveEntry,
    ArchiveFormat,
    EntryKind,
    detect_format,
    iter_entries,
)

__all__ = [
    "ExtractionContext",
    "Unarchiver",
    "is_supported_archive",
    "unarchive",
    "inspect_archive",
]

PathLike = Union[str, "os.PathLike[str]"]

LOGGER_NAME = "SafeArchive.Unarchive"


@dataclass
class ExtractionContext:
    """State scoped to one extraction (or inspection) pass.

    A fresh context, and therefore a fresh link model, is built for every
    pass; nothing survives from one call to the next.
    """

    root: Path
    settings: ExtractionSettings
    links: LinkResolutionModel
    metrics: ExtractionMetrics
    dry_run: bool = False
    correlation_id: str = field(default_factory=generate_correlation_id)
    pending_dir_modes: List[Tuple[Path, int]] = field(default_factory=list)

    @property
    def guard(self) -> PathGuard:
        return self.links.guard

    @property
    def stage(self) -> str:
        return "inspect" if self.dry_run else "extract"

    def log_fields(self) -> Dict[str, str]:
        return {
            TelemetryKey.STAGE.value: self.stage,
            TelemetryKey.CORRELATION_ID.value: self.correlation_id,
        }


class Unarchiver:
    """Extract untrusted zip, tar, and tar.gz archives into a target directory.

    Args:
        settings: Extraction policy; defaults to the environment-aware
            configuration from :func:`SafeArchive.Unarchive.settings.get_default_config`.
        logger: Logger for structured events; defaults to ``SafeArchive.Unarchive``.
    """

    def __init__(
        self,
        settings: Optional[ExtractionSettings] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if settings is None:
            from ..settings import get_default_config  # Local import to avoid circular dependency

            settings = get_default_config(copy=True).extraction
        self.settings = settings
        self._logger = logger or logging.getLogger(LOGGER_NAME)

    def is_supported_archive(self, path: PathLike) -> bool:
        """Return ``True`` when ``path`` ends with a supported archive suffix."""

        return detect_format(path) is not None

    def unarchive(
        self,
        archive_path: PathLike,
        archive_name: str,
        target_dir: PathLike,
    ) -> ExtractionMetrics:
        """Extract ``archive_path`` into ``target_dir``.

        Args:
            archive_path: Location of the archive on disk.
            archive_name: Name used to pick the container format (``.zip``,
                ``.tar``, ``.tar.gz``).
            target_dir: Extraction root; created when missing.

        Returns:
            Metrics describing the entries written.

        Raises:
            UnsupportedFormatError: ``archive_name`` has no supported suffix.
            IllegalPathError: An entry path escapes the target directory.
            IllegalLinkPathError: A link target escapes the target directory.
            AncestorLinkError: A symlink leads back to itself or an ancestor.
            ArchiveIOError: Decoding or writing failed.
        """

        correlation_id = generate_correlation_id()
        archive_format = self._resolve_format(archive_name, archive_path, correlation_id)
        root = Path(target_dir).resolve()
        if self.settings.inspect_first:
            self._run(
                Path(archive_path), archive_format, root, dry_run=True, correlation_id=correlation_id
            )
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ArchiveIOError(f"failed to create target directory '{root}': {exc}") from exc

        metrics = self._run(
            Path(archive_path), archive_format, root, dry_run=False, correlation_id=correlation_id
        )
        self._logger.info(
            "extracted archive",
            extra={
                TelemetryKey.STAGE.value: "extract",
                TelemetryKey.CORRELATION_ID.value: correlation_id,
                "target": str(root),
                **metrics.to_dict(),
            },
        )
        return metrics

    def inspect(self, archive_path: PathLike, archive_name: str) -> ExtractionMetrics:
        """Validate every entry of ``archive_path`` without writing anything.

        The target directory is irrelevant to a lexical check, so a virtual
        root is used.  Raises the same violations as :meth:`unarchive`.
        """

        correlation_id = generate_correlation_id()
        archive_format = self._resolve_format(archive_name, archive_path, correlation_id)
        root = Path(os.path.abspath(os.sep))
        metrics = self._run(
            Path(archive_path), archive_format, root, dry_run=True, correlation_id=correlation_id
        )
        self._logger.info(
            "inspected archive",
            extra={
                TelemetryKey.STAGE.value: "inspect",
                TelemetryKey.CORRELATION_ID.value: correlation_id,
                **metrics.to_dict(),
            },
        )
        return metrics

    # --- Orchestration ------------------------------------------------------

    def _resolve_format(
        self, archive_name: str, archive_path: PathLike, correlation_id: str
    ) -> ArchiveFormat:
        archive_format = detect_format(archive_name)
        if archive_format is None:
            error = UnsupportedFormatError(archive_name)
            self._logger.error(
                "unsupported archive format",
                extra={
                    TelemetryKey.STAGE.value: "extract",
                    TelemetryKey.CORRELATION_ID.value: correlation_id,
                    TelemetryKey.ARCHIVE.value: str(archive_path),
                    TelemetryKey.ERROR_CODE.value: error.code.value,
                },
            )
            raise error
        return archive_format

    def _run(
        self,
        archive_path: Path,
        archive_format: ArchiveFormat,
        root: Path,
        *,
        dry_run: bool,
        correlation_id: str,
    ) -> ExtractionMetrics:
        context = ExtractionContext(
            root=root,
            settings=self.settings,
            links=LinkResolutionModel(root),
            metrics=ExtractionMetrics(archive=str(archive_path), format=archive_format.label),
            dry_run=dry_run,
            correlation_id=correlation_id,
        )
        entry: Optional[ArchiveEntry] = None
        try:
            with closing(iter_entries(archive_path, archive_format)) as entries:
                for entry in entries:
                    self._process(entry, context)
            if not dry_run:
                self._apply_directory_modes(context)
        except UnarchiveError as exc:
            context.metrics.error_code = exc.code.value
            context.metrics.finalize()
            self._logger.error(
                "archive rejected",
                extra={
                    **context.log_fields(),
                    TelemetryKey.ARCHIVE.value: str(archive_path),
                    TelemetryKey.ENTRY.value: entry.raw_path if entry is not None else None,
                    TelemetryKey.ERROR_CODE.value: exc.code.value,
                    "error": str(exc),
                },
            )
            raise
        context.metrics.finalize()
        return context.metrics

    def _process(self, entry: ArchiveEntry, context: ExtractionContext) -> None:
        metrics = context.metrics
        if metrics.entries_total + metrics.entries_skipped >= self.settings.max_entries:
            raise ExtractionLimitError(
                ExtractionErrorCode.ENTRY_BUDGET,
                error_message(
                    ExtractionErrorCode.ENTRY_BUDGET,
                    f"archive holds more than {self.settings.max_entries} entries",
                ),
            )

        raw_path = self._strip(entry.raw_path)
        if raw_path is None:
            metrics.entries_skipped += 1
            self._logger.debug(
                "skipped entry consumed by strip_components",
                extra={**context.log_fields(), TelemetryKey.ENTRY.value: entry.raw_path},
            )
            return

        if entry.kind is EntryKind.DIRECTORY:
            target = context.guard.validate(raw_path)
            self._materialize_directory(entry, target, context)
        elif entry.kind is EntryKind.REGULAR_FILE:
            target = context.guard.validate(raw_path)
            self._materialize_file(entry, target, context)
        elif entry.kind is EntryKind.SYMBOLIC_LINK:
            if not self.settings.allow_symlinks:
                raise EntryTypeError("symlink", entry.raw_path)
            target = context.guard.validate(raw_path)
            self._materialize_symlink(entry, target, context)
        elif entry.kind is EntryKind.HARD_LINK:
            if not self.settings.allow_hardlinks:
                raise EntryTypeError("hardlink", entry.raw_path)
            target = context.guard.validate(raw_path)
            self._materialize_hardlink(entry, target, context)
        else:  # pragma: no cover - EntryKind is closed
            raise AssertionError(f"unhandled entry kind: {entry.kind!r}")

        metrics.record(entry.kind.name)
        self._logger.debug(
            "materialized entry" if not context.dry_run else "validated entry",
            extra={
                **context.log_fields(),
                TelemetryKey.ENTRY.value: entry.raw_path,
                "kind": entry.kind.value,
                "path": target.relative,
            },
        )

    def _strip(self, raw_path: str) -> Optional[str]:
        """Drop ``strip_components`` leading components; ``None`` when nothing is left.

        Components are counted like ``tar --strip-components``: a leading ``./``
        is a component of its own, only empty segments are ignored.
        """

        count = self.settings.strip_components
        if count == 0:
            return raw_path
        components = [part for part in normalize_separators(raw_path).split("/") if part]
        if len(components) <= count:
            return None
        return "/".join(components[count:])

    # --- Materialization ----------------------------------------------------

    def _materialize_directory(
        self, entry: ArchiveEntry, target: ValidatedPath, context: ExtractionContext
    ) -> None:
        if context.dry_run:
            return
        self._ensure_directory(target, entry)
        mode = self.settings.effective_mode(entry.mode, is_dir=True)
        if mode is not None:
            context.pending_dir_modes.append((target.absolute, mode))

    def _materialize_file(
        self, entry: ArchiveEntry, target: ValidatedPath, context: ExtractionContext
    ) -> None:
        limit = self.settings.max_file_size_bytes
        if entry.size > limit:
            raise self._size_error(entry, limit)
        if context.dry_run:
            return

        self._ensure_directory(target.parent, entry)
        written = 0
        try:
            with open(target.absolute, "xb") as destination:
                if entry.content is not None:
                    while True:
                        chunk = entry.content.read(self.settings.copy_buffer_size)
                        if not chunk:
                            break
                        written += len(chunk)
                        if written > limit:
                            raise self._size_error(entry, limit)
                        destination.write(chunk)
            mode = self.settings.effective_mode(entry.mode, is_dir=False)
            if mode is not None:
                os.chmod(target.absolute, mode)
        except DECODE_ERRORS as exc:
            raise ArchiveIOError(f"failed to decode '{entry.raw_path}': {exc}") from exc
        except OSError as exc:
            raise ArchiveIOError(f"failed to write '{entry.raw_path}': {exc}") from exc
        context.metrics.bytes_written += written

    def _materialize_symlink(
        self, entry: ArchiveEntry, link_path: ValidatedPath, context: ExtractionContext
    ) -> None:
        if link_path.is_root:
            raise IllegalPathError(entry.raw_path)
        if entry.link_target is None:
            raise IllegalLinkPathError("")
        record = context.links.register_symlink(link_path, entry.link_target)
        if context.dry_run:
            return
        self._ensure_directory(link_path.parent, entry)
        try:
            os.symlink(record.target, link_path.absolute)
        except OSError as exc:
            raise ArchiveIOError(f"failed to create symlink '{entry.raw_path}': {exc}") from exc

    def _materialize_hardlink(
        self, entry: ArchiveEntry, link_path: ValidatedPath, context: ExtractionContext
    ) -> None:
        raw_target = self._strip(entry.link_target or "")
        if raw_target is None:
            raise IllegalLinkPathError(entry.link_target or "", hardlink=True)
        target = context.links.resolve_hardlink(raw_target)
        if context.dry_run:
            return
        self._ensure_directory(link_path.parent, entry)
        try:
            os.link(target.absolute, link_path.absolute)
        except OSError as exc:
            raise ArchiveIOError(f"failed to create hardlink '{entry.raw_path}': {exc}") from exc

    @staticmethod
    def _ensure_directory(directory: ValidatedPath, entry: ArchiveEntry) -> None:
        try:
            directory.absolute.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ArchiveIOError(
                f"failed to create directory for '{entry.raw_path}': {exc}"
            ) from exc

    @staticmethod
    def _apply_directory_modes(context: ExtractionContext) -> None:
        # Deepest first so a read-only parent never blocks a child chmod.
        ordered = sorted(context.pending_dir_modes, key=lambda item: len(item[0].parts), reverse=True)
        for path, mode in ordered:
            try:
                os.chmod(path, mode)
            except OSError as exc:
                raise ArchiveIOError(f"failed to set mode on '{path}': {exc}") from exc

    @staticmethod
    def _size_error(entry: ArchiveEntry, limit: int) -> ExtractionLimitError:
        return ExtractionLimitError(
            ExtractionErrorCode.FILE_SIZE,
            error_message(
                ExtractionErrorCode.FILE_SIZE,
                f"'{entry.raw_path}' exceeds {limit} bytes",
            ),
        )


# --- Module-level API ---------------------------------------------------------


def is_supported_archive(path: PathLike) -> bool:
    """Return ``True`` when ``path`` names a zip, tar, or tar.gz archive."""

    return detect_format(path) is not None


def unarchive(
    archive_path: PathLike,
    archive_name: str,
    target_dir: PathLike,
    *,
    settings: Optional[ExtractionSettings] = None,
    logger: Optional[logging.Logger] = None,
) -> ExtractionMetrics:
    """Extract ``archive_path`` into ``target_dir`` with a one-off :class:`Unarchiver`."""

    return Unarchiver(settings, logger=logger).unarchive(archive_path, archive_name, target_dir)


def inspect_archive(
    archive_path: PathLike,
    archive_name: str,
    *,
    settings: Optional[ExtractionSettings] = None,
    logger: Optional[logging.Logger] = None,
) -> ExtractionMetrics:
    """Validate every entry of ``archive_path`` without writing to disk."""

    return Unarchiver(settings, logger=logger).inspect(archive_path, archive_name)
